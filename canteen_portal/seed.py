"""
Canteen Portal — Sample data

    python -m canteen_portal.seed

Creates the tables, one account per role and today's sample menu. Accounts
and dishes that already exist are left alone, so it is safe to run twice.
"""
import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from canteen_portal.core.clock import day_bounds, start_of_day
from canteen_portal.core.security import hash_password
from canteen_portal.db.database import AsyncSessionLocal, Base, engine
from canteen_portal.models.menu import Category, MenuItem
from canteen_portal.models.user import Role, User

logger = logging.getLogger(__name__)

SEED_USERS = [
    {
        "name": "System Admin",
        "college_id": "admin1",
        "email": "admin@college.edu",
        "password": "admin123",
        "role": Role.ADMIN,
        "department": "Administration",
    },
    {
        "name": "Canteen Staff",
        "college_id": "STAFF1",
        "email": "staff@college.edu",
        "password": "staff123",
        "role": Role.STAFF,
        "department": "Canteen Operations",
    },
    {
        "name": "Anirudha Khanrah",
        "college_id": "BWU/BTS/24/269",
        "email": "anirudha@college.edu",
        "password": "anirudha123",
        "role": Role.STUDENT,
        "department": "Computer Science",
    },
    {
        "name": "Dr. Sharma",
        "college_id": "PROF1",
        "email": "sharma@college.edu",
        "password": "prof123",
        "role": Role.PROFESSOR,
        "department": "Computer Science",
    },
]

SEED_MENU = [
    ("Masala Dosa", 50, 20, Category.BREAKFAST, "Crispy dosa with potato filling and chutney."),
    ("Chicken Biryani", 120, 15, Category.LUNCH, "Basmati rice with flavoured chicken and spices."),
    ("Samosa", 15, 40, Category.SNACKS, "Fried pastry with spiced potato filling."),
    ("Paneer Butter Masala", 100, 10, Category.DINNER, "Rich and creamy paneer curry."),
    ("Iced Tea", 30, 50, Category.BEVERAGES, "Refreshing lemon flavoured chilled tea."),
]


async def seed_users(db: AsyncSession) -> int:
    created = 0
    for entry in SEED_USERS:
        exists = await db.execute(select(User.id).where(User.college_id == entry["college_id"]))
        if exists.first():
            continue
        fields = {k: v for k, v in entry.items() if k != "password"}
        db.add(User(**fields, hashed_password=hash_password(entry["password"])))
        created += 1
    return created


async def seed_menu(db: AsyncSession) -> int:
    start, end = day_bounds()
    created = 0
    for dish_name, price, quantity, category, description in SEED_MENU:
        exists = await db.execute(
            select(MenuItem.id).where(
                MenuItem.dish_name == dish_name, MenuItem.date >= start, MenuItem.date < end
            )
        )
        if exists.first():
            continue
        db.add(MenuItem(
            dish_name=dish_name,
            price=price,
            available_quantity=quantity,
            category=category,
            description=description,
            date=start_of_day(),
        ))
        created += 1
    return created


async def seed(db: AsyncSession) -> tuple[int, int]:
    users = await seed_users(db)
    dishes = await seed_menu(db)
    await db.commit()
    return users, dishes


async def main() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with AsyncSessionLocal() as db:
        users, dishes = await seed(db)
    await engine.dispose()
    logger.info("Seeded %d user(s) and %d menu item(s)", users, dishes)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    asyncio.run(main())
