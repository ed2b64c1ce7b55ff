from __future__ import annotations

import calendar
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from adminhub.core import rbac
from adminhub.core.observability import record_depreciation
from adminhub.core.settings import settings
from adminhub.core.tenancy import require_business_unit_access
from adminhub.models.asset import Asset, AssetHistory
from adminhub.models.depreciation import AssetDepreciation, DepreciationExecution
from adminhub.models.enums import (
    AssetHistoryAction,
    AssetStatus,
    DepreciationMethod,
    DepreciationTrigger,
    ExecutionStatus,
    Role,
)
from adminhub.models.organization import BusinessUnit, User
from adminhub.services import depreciation_math as dm
from adminhub.services.activity import log_activity

logger = logging.getLogger(__name__)

DEPRECIATION_ROLES = (Role.ADMIN, Role.ACCTG)
INACTIVE_STATUSES = (AssetStatus.RETIRED, AssetStatus.DISPOSED)


class DepreciationError(ValueError):
    """A single asset could not be depreciated; the batch carries on."""


@dataclass
class CalendarCheck:
    today: date
    is_allowed_day: bool
    can_calculate: bool
    next_allowed_date: date
    message: Optional[str] = None


@dataclass
class BatchResult:
    execution: DepreciationExecution
    processed_count: int = 0
    failed_count: int = 0
    total_amount: Decimal = Decimal("0")
    errors: list[dict] = field(default_factory=list)


def _today() -> date:
    return datetime.now(timezone.utc).date()


def is_allowed_day(day: date, allowed_days: Optional[Iterable[int]] = None) -> bool:
    allowed = set(allowed_days if allowed_days is not None else settings.depreciation_days)
    last_day = calendar.monthrange(day.year, day.month)[1]
    return day.day in allowed or day.day == last_day


def next_allowed_date(day: date, allowed_days: Optional[Iterable[int]] = None) -> date:
    allowed = list(allowed_days if allowed_days is not None else settings.depreciation_days)
    candidate = day
    # Month-end always qualifies, so a match exists within two months.
    for _ in range(62):
        if is_allowed_day(candidate, allowed):
            return candidate
        candidate += timedelta(days=1)
    return candidate


def check_calendar(user: Optional[User], *, today: date, override: bool = False) -> CalendarCheck:
    allowed = is_allowed_day(today)
    upcoming = next_allowed_date(today)
    if allowed:
        return CalendarCheck(today=today, is_allowed_day=True, can_calculate=True, next_allowed_date=upcoming)

    is_admin = user is not None and rbac.user_has_role(user, Role.ADMIN)
    if override and is_admin:
        return CalendarCheck(
            today=today,
            is_allowed_day=False,
            can_calculate=True,
            next_allowed_date=upcoming,
            message="Admin override: depreciation outside the allowed calendar days",
        )
    return CalendarCheck(
        today=today,
        is_allowed_day=False,
        can_calculate=False,
        next_allowed_date=upcoming,
        message=f"Depreciation can only be calculated at month end. Next allowed date: {upcoming.isoformat()}",
    )


def require_depreciation_access(user: User, business_unit_id: int) -> None:
    rbac.require_roles(user, DEPRECIATION_ROLES)
    require_business_unit_access(user, business_unit_id)


def _is_depreciable(asset: Asset) -> bool:
    if asset.depreciation_method == DepreciationMethod.UNITS_OF_PRODUCTION:
        return Decimal(asset.depreciation_per_unit or 0) > 0
    return Decimal(asset.monthly_depreciation or 0) > 0


def _candidate_query(db: Session, business_unit_id: int):
    return db.query(Asset).filter(
        Asset.business_unit_id == business_unit_id,
        Asset.is_active.is_(True),
        Asset.is_fully_depreciated.is_(False),
        Asset.status.notin_(INACTIVE_STATUSES),
    )


def due_assets(db: Session, *, business_unit_id: int, as_of: date) -> list[Asset]:
    rows = (
        _candidate_query(db, business_unit_id)
        .filter(or_(Asset.next_depreciation_date.is_(None), Asset.next_depreciation_date <= as_of))
        .order_by(Asset.item_code.asc())
        .all()
    )
    return [asset for asset in rows if _is_depreciable(asset)]


def _next_month_assets(db: Session, *, business_unit_id: int, as_of: date) -> list[Asset]:
    horizon = dm.add_months(as_of, 1)
    rows = (
        _candidate_query(db, business_unit_id)
        .filter(Asset.next_depreciation_date > as_of, Asset.next_depreciation_date <= horizon)
        .order_by(Asset.next_depreciation_date.asc(), Asset.item_code.asc())
        .all()
    )
    return [asset for asset in rows if _is_depreciable(asset)]


def preview(
    db: Session,
    *,
    user: User,
    business_unit_id: int,
    override: bool = False,
    today: Optional[date] = None,
) -> dict:
    require_depreciation_access(user, business_unit_id)
    today = today or _today()
    check = check_calendar(user, today=today, override=override)

    assets = due_assets(db, business_unit_id=business_unit_id, as_of=today)
    estimated = Decimal("0")
    for asset in assets:
        if asset.depreciation_method == DepreciationMethod.UNITS_OF_PRODUCTION:
            continue
        estimated += dm.cap_to_salvage(
            Decimal(asset.monthly_depreciation),
            Decimal(asset.current_book_value),
            Decimal(asset.salvage_value),
        )
    by_category = Counter(asset.category_id for asset in assets)

    return {
        "today": today,
        "can_calculate": check.can_calculate and bool(assets),
        "is_allowed_day": check.is_allowed_day,
        "next_allowed_date": check.next_allowed_date,
        "message": check.message,
        "due_assets": assets,
        "total_assets": len(assets),
        "total_estimated_amount": dm.quantize(estimated),
        "by_category": dict(by_category),
        "next_month_assets": [] if assets else _next_month_assets(db, business_unit_id=business_unit_id, as_of=today),
    }


def period_amount(asset: Asset, *, period_date: date, units_used: Optional[int] = None) -> Decimal:
    """Raw amount for one period before the salvage cap."""
    cost = Decimal(asset.purchase_price)
    salvage = Decimal(asset.salvage_value)
    method = asset.depreciation_method

    if method == DepreciationMethod.STRAIGHT_LINE:
        if Decimal(asset.monthly_depreciation or 0) > 0:
            return Decimal(asset.monthly_depreciation)
        return dm.straight_line(cost, salvage, asset.total_useful_life_months)

    if method == DepreciationMethod.DECLINING_BALANCE:
        if not asset.depreciation_rate:
            raise DepreciationError("Declining balance requires a depreciation rate")
        return dm.declining_balance(Decimal(asset.current_book_value), Decimal(asset.depreciation_rate))

    if method == DepreciationMethod.SUM_OF_YEARS_DIGITS:
        start = asset.depreciation_start_date or asset.purchase_date
        if start is None:
            raise DepreciationError("Sum-of-years-digits requires a depreciation start date")
        life_years = asset.useful_life_years + (1 if asset.useful_life_months else 0)
        # The k-th monthly posting belongs to life year (k - 1) // 12 + 1.
        elapsed = max(dm.months_between(start, period_date), 1)
        if elapsed >= life_years * 12:
            # Last period of the life takes whatever rounding left above salvage.
            return Decimal(asset.current_book_value) - salvage
        current_year = (elapsed - 1) // 12 + 1
        return dm.sum_of_years_digits(cost, salvage, life_years, current_year)

    if method == DepreciationMethod.UNITS_OF_PRODUCTION:
        if units_used is None:
            raise DepreciationError("Units used are required for units-of-production assets")
        if units_used < 0:
            raise DepreciationError("Units used cannot be negative")
        per_unit = Decimal(asset.depreciation_per_unit or 0)
        return dm.units_of_production(per_unit, units_used)

    raise DepreciationError(f"Unsupported depreciation method: {method}")


def _post_asset(
    db: Session,
    *,
    asset: Asset,
    execution: DepreciationExecution,
    run_date: date,
    actor_id: Optional[int],
    units_used: Optional[int],
) -> Decimal:
    book_value = Decimal(asset.current_book_value)
    salvage = Decimal(asset.salvage_value)
    raw = period_amount(asset, period_date=run_date, units_used=units_used)
    amount = dm.cap_to_salvage(raw, book_value, salvage)
    if amount <= 0:
        raise DepreciationError("No depreciation amount for this period")

    new_book_value = dm.quantize(book_value - amount)
    accumulated = dm.quantize(Decimal(asset.accumulated_depreciation or 0) + amount)
    period_start = (
        asset.last_depreciation_date + timedelta(days=1)
        if asset.last_depreciation_date
        else (asset.depreciation_start_date or asset.purchase_date or run_date)
    )
    if period_start > run_date:
        period_start = run_date

    db.add(
        AssetDepreciation(
            asset_id=asset.id,
            business_unit_id=asset.business_unit_id,
            execution_id=execution.id,
            depreciation_date=run_date,
            period_start_date=period_start,
            period_end_date=run_date,
            book_value_start=book_value,
            depreciation_amount=amount,
            book_value_end=new_book_value,
            accumulated_depreciation=accumulated,
            method=asset.depreciation_method,
            units_in_period=units_used,
            calculated_by_id=actor_id,
        )
    )
    db.add(
        AssetHistory(
            asset_id=asset.id,
            business_unit_id=asset.business_unit_id,
            action=AssetHistoryAction.DEPRECIATED,
            notes=f"Depreciation posted for period ending {run_date.isoformat()}",
            previous_book_value=book_value,
            new_book_value=new_book_value,
            depreciation_amount=amount,
            performed_by_id=actor_id,
        )
    )

    asset.current_book_value = new_book_value
    asset.accumulated_depreciation = accumulated
    asset.last_depreciation_date = run_date
    asset.next_depreciation_date = dm.add_months(asset.next_depreciation_date or run_date, 1)
    asset.is_fully_depreciated = new_book_value <= salvage
    if asset.depreciation_method == DepreciationMethod.DECLINING_BALANCE:
        asset.monthly_depreciation = dm.declining_balance(new_book_value, Decimal(asset.depreciation_rate))
    db.add(asset)
    return amount


def run_batch(
    db: Session,
    *,
    business_unit_id: int,
    user: Optional[User],
    asset_ids: Optional[list[int]] = None,
    override: bool = False,
    units_used: Optional[dict[int, int]] = None,
    trigger: DepreciationTrigger = DepreciationTrigger.MANUAL,
    today: Optional[date] = None,
) -> BatchResult:
    """
    Post one period of depreciation for every due asset in a business unit.

    Each asset is handled independently: a failure is recorded in the
    execution's error list and the remaining assets are still processed.
    ``user`` is ``None`` only for scheduled runs.
    """
    today = today or _today()
    if user is not None:
        require_depreciation_access(user, business_unit_id)
        if override and not rbac.user_has_role(user, Role.ADMIN):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only admins can override the calendar")
    check = check_calendar(user, today=today, override=override)
    if not check.can_calculate:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=check.message)

    units_used = units_used or {}
    assets = due_assets(db, business_unit_id=business_unit_id, as_of=today)
    if asset_ids:
        wanted = set(asset_ids)
        assets = [asset for asset in assets if asset.id in wanted]

    actor_id = user.id if user is not None else None
    execution = DepreciationExecution(
        business_unit_id=business_unit_id,
        executed_by_id=actor_id,
        trigger=trigger,
        execution_date=today,
        override_used=override and not check.is_allowed_day,
        status=ExecutionStatus.RUNNING,
        started_at=datetime.now(timezone.utc),
        total_assets=len(assets),
    )
    db.add(execution)
    db.flush()

    result = BatchResult(execution=execution)
    for asset in assets:
        try:
            amount = _post_asset(
                db,
                asset=asset,
                execution=execution,
                run_date=today,
                actor_id=actor_id,
                units_used=units_used.get(asset.id),
            )
        except (DepreciationError, InvalidOperation) as exc:
            result.failed_count += 1
            result.errors.append({"id": asset.id, "label": asset.item_code, "error": str(exc)})
            record_depreciation("failed")
            logger.warning(
                "depreciation_asset_failed",
                extra={"entity": "asset", "entity_id": asset.id, "business_unit_id": business_unit_id},
            )
            continue
        result.processed_count += 1
        result.total_amount += amount
        record_depreciation("processed", float(amount))

    execution.processed_count = result.processed_count
    execution.failed_count = result.failed_count
    execution.total_amount = dm.quantize(result.total_amount)
    execution.errors = result.errors or None
    execution.completed_at = datetime.now(timezone.utc)
    execution.status = (
        ExecutionStatus.FAILED
        if result.failed_count and not result.processed_count
        else ExecutionStatus.COMPLETED
    )
    db.add(execution)
    db.flush()

    logger.info(
        "depreciation_run_finished",
        extra={"execution_id": execution.id, "business_unit_id": business_unit_id, "asset_count": result.processed_count},
    )
    log_activity(
        db,
        actor_user_id=actor_id,
        activity_type="DEPRECIATION_RUN",
        business_unit_id=business_unit_id,
        message=f"Depreciation run processed {result.processed_count} assets",
        payload={
            "execution_id": execution.id,
            "processed": result.processed_count,
            "failed": result.failed_count,
            "total_amount": str(execution.total_amount),
            "override": execution.override_used,
            "trigger": trigger.value,
        },
    )
    return result


def run_scheduled(db: Session, *, today: Optional[date] = None) -> list[BatchResult]:
    """Run the batch for every active business unit when today is an allowed day."""
    today = today or _today()
    if not is_allowed_day(today):
        logger.info("depreciation_skipped_not_allowed_day")
        return []

    results = []
    units = db.query(BusinessUnit).filter(BusinessUnit.is_active.is_(True)).order_by(BusinessUnit.id.asc()).all()
    for unit in units:
        result = run_batch(
            db,
            business_unit_id=unit.id,
            user=None,
            trigger=DepreciationTrigger.SCHEDULED,
            today=today,
        )
        results.append(result)
    return results


def list_executions(db: Session, *, business_unit_id: int):
    return (
        db.query(DepreciationExecution)
        .filter(DepreciationExecution.business_unit_id == business_unit_id)
        .order_by(DepreciationExecution.execution_date.desc(), DepreciationExecution.id.desc())
    )


def get_execution_or_404(db: Session, execution_id: int) -> DepreciationExecution:
    execution = db.get(DepreciationExecution, execution_id)
    if not execution:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Depreciation execution not found")
    return execution
