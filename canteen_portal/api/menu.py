"""
Canteen Portal — Menu API routes
"""
import datetime as dt
import logging
from collections import defaultdict

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from canteen_portal.api.deps import require_capability
from canteen_portal.core.clock import day_bounds, start_of_day
from canteen_portal.core.errors import ConflictError, NotFoundError
from canteen_portal.core.permissions import Capability
from canteen_portal.db.database import get_db
from canteen_portal.db.pagination import paginate
from canteen_portal.models.menu import Category, MenuItem
from canteen_portal.models.user import User
from canteen_portal.schemas.menu import MenuItemCreate, MenuItemResponse, MenuItemUpdate

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/menu", tags=["menu"])


async def _grouped_menu(db: AsyncSession, day: dt.date | None = None) -> dict[str, list[MenuItemResponse]]:
    start, end = day_bounds(day)
    result = await db.execute(
        select(MenuItem)
        .where(MenuItem.date >= start, MenuItem.date < end, MenuItem.is_available.is_(True))
        .order_by(MenuItem.category, MenuItem.dish_name)
    )
    grouped: dict[str, list[MenuItemResponse]] = defaultdict(list)
    for item in result.scalars().all():
        grouped[item.category.value].append(MenuItemResponse.model_validate(item))
    return dict(grouped)


async def _get_menu_item(db: AsyncSession, item_id: str) -> MenuItem:
    item = await db.get(MenuItem, item_id)
    if item is None:
        raise NotFoundError("Menu item not found")
    return item


async def _ensure_unique_listing(
    db: AsyncSession, dish_name: str, day: dt.date, exclude_id: str | None = None
) -> None:
    """At most one available listing per dish per day; disabled listings do not count."""
    start, end = day_bounds(day)
    stmt = select(MenuItem.id).where(
        MenuItem.dish_name == dish_name,
        MenuItem.date >= start,
        MenuItem.date < end,
        MenuItem.is_available.is_(True),
    )
    if exclude_id is not None:
        stmt = stmt.where(MenuItem.id != exclude_id)
    if (await db.execute(stmt.limit(1))).first():
        raise ConflictError("Dish already exists for this date")


@router.get("/today")
async def todays_menu(db: AsyncSession = Depends(get_db)):
    """Today's available dishes grouped by category."""
    return {
        "message": "Today's menu retrieved successfully",
        "menu": await _grouped_menu(db),
        "date": start_of_day(),
    }


@router.get("/date/{day}")
async def menu_for_date(day: dt.date, db: AsyncSession = Depends(get_db)):
    return {
        "message": "Menu retrieved successfully",
        "menu": await _grouped_menu(db, day),
        "date": start_of_day(day),
    }


@router.get("/manage/all")
async def list_menu_items(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    category: Category | None = None,
    day: dt.date | None = Query(None, alias="date"),
    _: User = Depends(require_capability(Capability.MANAGE_MENU)),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(MenuItem).order_by(MenuItem.created_at.desc(), MenuItem.dish_name)
    if category is not None:
        stmt = stmt.where(MenuItem.category == category)
    if day is not None:
        start, end = day_bounds(day)
        stmt = stmt.where(MenuItem.date >= start, MenuItem.date < end)

    items, pagination = await paginate(db, stmt, page, limit)
    return {
        "message": "Menu items retrieved successfully",
        "menu_items": [MenuItemResponse.model_validate(item) for item in items],
        "pagination": pagination,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def add_menu_item(
    payload: MenuItemCreate,
    user: User = Depends(require_capability(Capability.MANAGE_MENU)),
    db: AsyncSession = Depends(get_db),
):
    day = payload.date or start_of_day().date()
    await _ensure_unique_listing(db, payload.dish_name, day)

    item = MenuItem(**payload.model_dump(exclude={"date"}), date=start_of_day(day))
    db.add(item)
    await db.commit()
    await db.refresh(item)
    logger.info("Menu item %s listed for %s by %s", item.dish_name, day, user.college_id)
    return {"message": "Menu item added successfully", "menu_item": MenuItemResponse.model_validate(item)}


@router.put("/{item_id}")
async def update_menu_item(
    item_id: str,
    payload: MenuItemUpdate,
    _: User = Depends(require_capability(Capability.MANAGE_MENU)),
    db: AsyncSession = Depends(get_db),
):
    item = await _get_menu_item(db, item_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)

    if "date" in changes:
        changes["date"] = start_of_day(changes["date"])
    stays_available = changes.get("is_available", item.is_available)
    if stays_available and changes.keys() & {"dish_name", "date", "is_available"}:
        await _ensure_unique_listing(
            db,
            changes.get("dish_name", item.dish_name),
            changes.get("date", item.date).astimezone().date(),
            exclude_id=item.id,
        )

    for field, value in changes.items():
        setattr(item, field, value)
    await db.commit()
    await db.refresh(item)
    return {"message": "Menu item updated successfully", "menu_item": MenuItemResponse.model_validate(item)}


@router.delete("/{item_id}")
async def delete_menu_item(
    item_id: str,
    user: User = Depends(require_capability(Capability.DELETE_MENU)),
    db: AsyncSession = Depends(get_db),
):
    item = await _get_menu_item(db, item_id)
    await db.delete(item)
    await db.commit()
    logger.info("Menu item %s deleted by %s", item_id, user.college_id)
    return {"message": "Menu item deleted successfully"}


@router.patch("/{item_id}/toggle")
async def toggle_menu_item(
    item_id: str,
    _: User = Depends(require_capability(Capability.MANAGE_MENU)),
    db: AsyncSession = Depends(get_db),
):
    item = await _get_menu_item(db, item_id)
    if not item.is_available:
        await _ensure_unique_listing(db, item.dish_name, item.date.astimezone().date(), exclude_id=item.id)
    item.is_available = not item.is_available
    await db.commit()
    await db.refresh(item)
    state = "enabled" if item.is_available else "disabled"
    return {"message": f"Menu item {state} successfully", "menu_item": MenuItemResponse.model_validate(item)}
