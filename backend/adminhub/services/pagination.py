from __future__ import annotations

import math
from typing import Any, Tuple

from sqlalchemy.orm import Query


def paginate(query: Query, *, page: int, page_size: int) -> Tuple[list, dict[str, Any]]:
    total = query.order_by(None).count()
    offset = (page - 1) * page_size
    rows = query.offset(offset).limit(page_size).all()

    has_more = offset + page_size < total
    meta = {
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": math.ceil(total / page_size) if total else 0,
        "has_more": has_more,
        "next_page": page + 1 if has_more else None,
        "prev_page": page - 1 if page > 1 else None,
    }
    return rows, meta
