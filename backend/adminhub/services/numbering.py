"""Document and transmittal number generation."""

from __future__ import annotations

from datetime import date

from sqlalchemy.orm import Session

from adminhub.models.asset import AssetDeployment, AssetHistory
from adminhub.models.material_request import MaterialRequest


def _max_sequence(values: list[str], prefix: str) -> int:
    highest = 0
    for value in values:
        seq = value[len(prefix):].split("-", 1)[0]
        if seq.isdigit():
            highest = max(highest, int(seq))
    return highest


def next_material_request_number(db: Session, *, series: str, on: date) -> str:
    """Return the next ``SERIES-YY-NNNNN`` number, sequenced per series and year."""
    prefix = f"{series.upper()}-{on:%y}-"
    existing = [
        row[0]
        for row in db.query(MaterialRequest.doc_no).filter(MaterialRequest.doc_no.like(f"{prefix}%")).all()
    ]
    return f"{prefix}{_max_sequence(existing, prefix) + 1:05d}"


def next_transmittal_batch(db: Session, *, business_unit_code: str, on: date) -> str:
    """Return the next ``BU-YYYYMM-NNN`` batch number; items append ``-01``, ``-02``..."""
    prefix = f"{business_unit_code.upper()}-{on:%Y%m}-"
    existing = [
        row[0]
        for row in db.query(AssetDeployment.transmittal_number)
        .filter(AssetDeployment.transmittal_number.like(f"{prefix}%"))
        .all()
    ]
    return f"{prefix}{_max_sequence(existing, prefix) + 1:03d}"


def transmittal_item_number(batch: str, index: int) -> str:
    return f"{batch}-{index:02d}"


def next_transfer_batch(db: Session, *, business_unit_code: str, kind: str, on: date) -> str:
    """Return the next ``BU-TXF{EMP|BU}-YYYYMM-NNN`` transfer number for the source unit."""
    prefix = f"{business_unit_code.upper()}-TXF{kind}-{on:%Y%m}-"
    existing = [
        row[0]
        for row in db.query(AssetHistory.reference_number)
        .filter(AssetHistory.reference_number.like(f"{prefix}%"))
        .distinct()
        .all()
    ]
    return f"{prefix}{_max_sequence(existing, prefix) + 1:03d}"
