"""Scheduled month-end depreciation run for every active business unit."""
from __future__ import annotations

import argparse
import logging
from datetime import date
from typing import Callable, Optional

from sqlalchemy.orm import Session

from adminhub.core.logging import configure_logging
from adminhub.core.settings import settings
from adminhub.db.session import SessionLocal, session_scope
from adminhub.services.depreciation import run_scheduled

logger = logging.getLogger("adminhub.scripts.run_depreciation")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Run as of this ISO date instead of today (YYYY-MM-DD)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None, session_factory: Optional[Callable[[], Session]] = None) -> int:
    configure_logging(level=settings.log_level)
    args = _parse_args(argv)
    with session_scope(session_factory or SessionLocal) as db:
        results = run_scheduled(db, today=args.date)
        summary = [
            (result.execution.business_unit_id, result.execution.id, result.processed_count, result.failed_count)
            for result in results
        ]

    for business_unit_id, execution_id, processed, failed in summary:
        logger.info(
            "depreciation_run_complete",
            extra={
                "business_unit_id": business_unit_id,
                "execution_id": execution_id,
                "asset_count": processed,
            },
        )
        if failed:
            logger.warning("depreciation_run_had_failures", extra={"execution_id": execution_id})
    print(f"Depreciation ran for {len(summary)} business unit(s).")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
