"""
Depreciation formulas.

Pure functions over ``Decimal``; no session, no clock. Invalid inputs
(zero life, zero units) yield ``Decimal("0")`` rather than raising, and
every result is quantized to 0.01.
"""

from __future__ import annotations

import calendar
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from adminhub.models.enums import DepreciationMethod

CENT = Decimal("0.01")
ZERO = Decimal("0")


def quantize(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def add_months(day: date, months: int) -> date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def months_between(start: date, end: date) -> int:
    return (end.year - start.year) * 12 + (end.month - start.month)


def straight_line(cost: Decimal, salvage_value: Decimal, useful_life_months: int) -> Decimal:
    """Fixed monthly amount: depreciable base spread over the useful life."""
    if useful_life_months <= 0:
        return ZERO
    return quantize((cost - salvage_value) / useful_life_months)


def declining_balance(book_value: Decimal, annual_rate: Decimal) -> Decimal:
    """Monthly amount: current book value times the annual rate, over twelve."""
    if annual_rate is None or annual_rate <= 0:
        return ZERO
    return quantize(book_value * annual_rate / 12)


def sum_of_years_digits(
    cost: Decimal,
    salvage_value: Decimal,
    useful_life_years: int,
    current_year: int,
) -> Decimal:
    """Monthly amount for the 1-based ``current_year`` of the asset's life."""
    if useful_life_years <= 0 or current_year < 1 or current_year > useful_life_years:
        return ZERO
    sum_digits = Decimal(useful_life_years * (useful_life_years + 1) // 2)
    remaining_years = Decimal(useful_life_years - current_year + 1)
    annual = (cost - salvage_value) * remaining_years / sum_digits
    return quantize(annual / 12)


def rate_per_unit(cost: Decimal, salvage_value: Decimal, total_expected_units: Optional[int]) -> Decimal:
    if not total_expected_units or total_expected_units <= 0:
        return ZERO
    return (cost - salvage_value) / Decimal(total_expected_units)


def units_of_production(per_unit: Decimal, units_used: int) -> Decimal:
    if units_used <= 0:
        return ZERO
    return quantize(per_unit * units_used)


def initial_monthly_depreciation(
    method: DepreciationMethod,
    *,
    cost: Decimal,
    salvage_value: Decimal,
    useful_life_years: int,
    useful_life_months: int,
    depreciation_rate: Optional[Decimal],
) -> Decimal:
    """Monthly amount recorded on an asset when it is registered."""
    total_months = useful_life_years * 12 + useful_life_months
    if method == DepreciationMethod.STRAIGHT_LINE:
        return straight_line(cost, salvage_value, total_months)
    if method == DepreciationMethod.DECLINING_BALANCE:
        return declining_balance(cost, depreciation_rate)
    if method == DepreciationMethod.SUM_OF_YEARS_DIGITS:
        life_years = useful_life_years + (1 if useful_life_months else 0)
        return sum_of_years_digits(cost, salvage_value, life_years, 1)
    return ZERO


def cap_to_salvage(amount: Decimal, book_value: Decimal, salvage_value: Decimal) -> Decimal:
    """Never let a posting take the book value below the salvage value."""
    headroom = book_value - salvage_value
    if headroom <= 0:
        return ZERO
    return min(amount, headroom)
