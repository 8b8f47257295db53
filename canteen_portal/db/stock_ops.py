"""
Canteen Portal — Stock reservation and restore

Both are single conditional UPDATE statements, so concurrent orders for the
same low-stock dish cannot both pass a read-then-write check:
  - reserve: UPDATE ... SET qty = qty - :n WHERE id = :id AND qty >= :n
  - restore: UPDATE ... SET qty = qty + :n WHERE id = :id
Neither commits; the caller owns the transaction.
"""
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from canteen_portal.core.clock import day_bounds
from canteen_portal.core.errors import InsufficientStock, NotAvailable
from canteen_portal.models.menu import MenuItem

logger = logging.getLogger(__name__)


async def find_listed_today(db: AsyncSession, dish_name: str) -> MenuItem | None:
    """Today's available listing for `dish_name`, if any."""
    start, end = day_bounds()
    result = await db.execute(
        select(MenuItem)
        .where(
            MenuItem.dish_name == dish_name,
            MenuItem.date >= start,
            MenuItem.date < end,
            MenuItem.is_available.is_(True),
        )
        .order_by(MenuItem.created_at)
        .limit(1)
    )
    return result.scalars().first()


async def reserve_stock(db: AsyncSession, dish_name: str, quantity: int) -> MenuItem:
    """
    Resolve today's listing for `dish_name` and take `quantity` units off it.

    Raises NotAvailable when nothing is listed today and InsufficientStock
    when the conditional decrement matches no row.
    """
    item = await find_listed_today(db, dish_name)
    if item is None:
        raise NotAvailable(f'Dish "{dish_name}" is not available today')

    result = await db.execute(
        update(MenuItem)
        .where(
            MenuItem.id == item.id,
            MenuItem.is_available.is_(True),
            MenuItem.available_quantity >= quantity,
        )
        .values(available_quantity=MenuItem.available_quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.refresh(item)
        raise InsufficientStock(
            f'Insufficient quantity for "{dish_name}". Available: {item.available_quantity}'
        )

    await db.refresh(item)
    return item


async def restore_stock(db: AsyncSession, menu_item_id: str | None, dish_name: str, quantity: int) -> bool:
    """Give `quantity` units back to the listing an order line was taken from."""
    if menu_item_id is None:
        logger.warning("No source listing recorded for %s; stock not restored", dish_name)
        return False

    result = await db.execute(
        update(MenuItem)
        .where(MenuItem.id == menu_item_id)
        .values(available_quantity=MenuItem.available_quantity + quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        logger.warning("Listing %s (%s) no longer exists; stock not restored", menu_item_id, dish_name)
        return False
    return True
