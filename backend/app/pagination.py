from __future__ import annotations

from dataclasses import dataclass

from fastapi import Query
from sqlalchemy.orm import Query as OrmQuery

# purpose: offset pagination shared by every list endpoint
# status: active

DEFAULT_LIMIT = 50
MAX_LIMIT = 1000


@dataclass
class PageParams:
    limit: int = DEFAULT_LIMIT
    offset: int = 0


def page_params(
    limit: int = Query(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    offset: int = Query(default=0, ge=0),
) -> PageParams:
    return PageParams(limit=limit, offset=offset)


def paginate(query: OrmQuery, params: PageParams, *order_by) -> dict:
    """Count ``query`` and return one ordered page as a list envelope.

    Callers pass a total ordering (ending in the primary key) so that
    consecutive pages never repeat or skip rows.
    """
    total = query.order_by(None).count()
    items = query.order_by(*order_by).offset(params.offset).limit(params.limit).all()
    return {
        "items": items,
        "total": total,
        "limit": params.limit,
        "offset": params.offset,
    }
