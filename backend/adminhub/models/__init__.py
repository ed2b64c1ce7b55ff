"""Import all models so SQLAlchemy metadata is fully registered."""

from adminhub.db.base import Base

from adminhub.models.asset import (
    Asset,
    AssetCategory,
    AssetDeployment,
    AssetDisposal,
    AssetHistory,
    AssetRetirement,
)
from adminhub.models.audit import ActivityLog
from adminhub.models.depreciation import AssetDepreciation, DepreciationExecution
from adminhub.models.gl_account import GLAccount
from adminhub.models.leave import LeaveBalance, LeaveRequest, LeaveType
from adminhub.models.material_request import DepartmentApprover, MaterialRequest, MaterialRequestItem
from adminhub.models.organization import BusinessUnit, Department, User
from adminhub.models.overtime import OvertimeRequest

__all__ = [
    "Base",
    "ActivityLog",
    "Asset",
    "AssetCategory",
    "AssetDeployment",
    "AssetDepreciation",
    "AssetDisposal",
    "AssetHistory",
    "AssetRetirement",
    "BusinessUnit",
    "Department",
    "DepartmentApprover",
    "DepreciationExecution",
    "GLAccount",
    "LeaveBalance",
    "LeaveRequest",
    "LeaveType",
    "MaterialRequest",
    "MaterialRequestItem",
    "OvertimeRequest",
    "User",
]
