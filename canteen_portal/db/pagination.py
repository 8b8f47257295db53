"""
Canteen Portal — Offset pagination for list endpoints
"""
import math
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession


async def paginate(db: AsyncSession, stmt: Select, page: int, limit: int) -> tuple[list[Any], dict[str, int]]:
    total = (
        await db.execute(select(func.count()).select_from(stmt.order_by(None).subquery()))
    ).scalar_one()
    rows = (await db.execute(stmt.offset((page - 1) * limit).limit(limit))).scalars().all()
    return list(rows), {
        "current_page": page,
        "total_pages": math.ceil(total / limit) if limit else 0,
        "total_items": total,
        "items_per_page": limit,
    }
