from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    ADMIN = "ADMIN"
    HR = "HR"
    MANAGER = "MANAGER"
    ACCTG = "ACCTG"
    PURCHASER = "PURCHASER"
    STOCKROOM = "STOCKROOM"
    EMPLOYEE = "EMPLOYEE"


class RequestStatus(StrEnum):
    PENDING_MANAGER = "PENDING_MANAGER"
    PENDING_HR = "PENDING_HR"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class LeaveSession(StrEnum):
    FULL_DAY = "FULL_DAY"
    MORNING = "MORNING"
    AFTERNOON = "AFTERNOON"


class MRStatus(StrEnum):
    DRAFT = "DRAFT"
    FOR_EDIT = "FOR_EDIT"
    FOR_REC_APPROVAL = "FOR_REC_APPROVAL"
    FOR_FINAL_APPROVAL = "FOR_FINAL_APPROVAL"
    FOR_SERVING = "FOR_SERVING"
    FOR_POSTING = "FOR_POSTING"
    POSTED = "POSTED"
    RECEIVED = "RECEIVED"
    DISAPPROVED = "DISAPPROVED"


class MRType(StrEnum):
    ITEM = "ITEM"
    SERVICE = "SERVICE"


class ApprovalDecision(StrEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DISAPPROVED = "DISAPPROVED"


class ApproverType(StrEnum):
    RECOMMENDING = "RECOMMENDING"
    FINAL = "FINAL"


class AssetStatus(StrEnum):
    AVAILABLE = "AVAILABLE"
    DEPLOYED = "DEPLOYED"
    IN_MAINTENANCE = "IN_MAINTENANCE"
    DAMAGED = "DAMAGED"
    RETIRED = "RETIRED"
    DISPOSED = "DISPOSED"


class DeploymentStatus(StrEnum):
    DEPLOYED = "DEPLOYED"
    RETURNED = "RETURNED"


class DepreciationMethod(StrEnum):
    STRAIGHT_LINE = "STRAIGHT_LINE"
    DECLINING_BALANCE = "DECLINING_BALANCE"
    SUM_OF_YEARS_DIGITS = "SUM_OF_YEARS_DIGITS"
    UNITS_OF_PRODUCTION = "UNITS_OF_PRODUCTION"


class DepreciationTrigger(StrEnum):
    MANUAL = "MANUAL"
    SCHEDULED = "SCHEDULED"


class ExecutionStatus(StrEnum):
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class AssetHistoryAction(StrEnum):
    CREATED = "CREATED"
    DEPLOYED = "DEPLOYED"
    RETURNED = "RETURNED"
    RETIRED = "RETIRED"
    DISPOSED = "DISPOSED"
    DEPRECIATED = "DEPRECIATED"
    TRANSFERRED = "TRANSFERRED"


class TransferType(StrEnum):
    EMPLOYEE = "EMPLOYEE"
    BUSINESS_UNIT = "BUSINESS_UNIT"


class AccountType(StrEnum):
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"


class NormalBalance(StrEnum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"
