"""Lookups and query helpers shared by the service modules."""

import math
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy.orm import Query, Session

from contractflow.models import User


def get_user(db: Session, user_id: str) -> User:
    """Retrieve a user by ID or raise 404."""
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User '{user_id}' not found",
        )
    return user


def order_by_column(
    query: Query, columns: Dict[str, Any], sort_by: str, sort_order: str, tiebreaker: Any
) -> Query:
    """Apply a whitelisted sort column; unknown columns are a client error."""
    column = columns.get(sort_by)
    if column is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot sort by '{sort_by}'. Allowed: {', '.join(sorted(columns))}",
        )
    if sort_order == "asc":
        return query.order_by(column.asc(), tiebreaker.asc())
    return query.order_by(column.desc(), tiebreaker.desc())


def paginate(query: Query, page: int, limit: int) -> Tuple[List[Any], Dict[str, int]]:
    total = query.count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    pagination = {
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }
    return items, pagination


def parse_csv_enum(raw: Optional[str], enum_cls) -> List[Any]:
    """Parse ``"A,B"`` into enum members; ``"all"`` or blank means no filter."""
    if not raw or raw == "all":
        return []
    values = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            values.append(enum_cls(part))
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown status '{part}'",
            ) from exc
    return values
