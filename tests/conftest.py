"""
Canteen Portal test fixtures

The app runs in-process over httpx.ASGITransport against a throwaway SQLite
database, fakeredis stands in for Redis and an httpx.MockTransport plays the
Razorpay API.
"""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_canteen.db"
os.environ["METRICS_ENABLED"] = "false"
os.environ["RAZORPAY_KEY_SECRET"] = "rzp_test_secret"
os.environ["QR_SIGNING_SECRET"] = "qr_test_secret"
os.environ["JWT_SECRET_KEY"] = "jwt_test_secret"

import json
import uuid

import fakeredis.aioredis
import httpx
import pytest
import pytest_asyncio

from canteen_portal.api.deps import gateway_dependency
from canteen_portal.core import redis_client
from canteen_portal.core.clock import start_of_day
from canteen_portal.core.config import get_settings
from canteen_portal.core.gateway import RazorpayGateway, callback_signature
from canteen_portal.core.security import create_access_token, hash_password
from canteen_portal.db.database import AsyncSessionLocal, Base, engine
from canteen_portal.main import app
from canteen_portal.models.menu import Category, MenuItem
from canteen_portal.models.user import Role, User, UserStatus

settings = get_settings()

DEFAULT_PASSWORD = "secret123"


# ─── Infrastructure ────────────────────────────────────────────────────────────
@pytest_asyncio.fixture
async def database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    redis_client._redis_client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield
    app.dependency_overrides.clear()
    await redis_client.close_redis()
    await engine.dispose()


@pytest_asyncio.fixture
async def client(database):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest_asyncio.fixture
async def db(database):
    async with AsyncSessionLocal() as session:
        yield session


# ─── Payment gateway ───────────────────────────────────────────────────────────
class FakeRazorpay:
    """Records every call and answers like the Razorpay orders/refunds API."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.fail_with: int | None = None
        self.timeout = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.timeout:
            raise httpx.ReadTimeout("gateway timed out", request=request)
        if self.fail_with:
            return httpx.Response(
                self.fail_with,
                json={"error": {"code": "BAD_REQUEST_ERROR", "description": "Gateway rejected the request"}},
            )

        body = json.loads(request.content)
        if request.url.path.endswith("/orders"):
            return httpx.Response(200, json={
                "id": f"order_{uuid.uuid4().hex[:14]}",
                "entity": "order",
                "amount": body["amount"],
                "currency": body["currency"],
                "receipt": body["receipt"],
                "status": "created",
            })
        if request.url.path.endswith("/refund"):
            return httpx.Response(200, json={
                "id": f"rfnd_{uuid.uuid4().hex[:14]}",
                "entity": "refund",
                "amount": body["amount"],
                "status": "processed",
            })
        return httpx.Response(404, json={"error": {"description": "Unknown endpoint"}})


@pytest.fixture
def razorpay():
    fake = FakeRazorpay()
    gateway = RazorpayGateway(
        key_id="rzp_test_key",
        key_secret=settings.RAZORPAY_KEY_SECRET,
        base_url="https://api.razorpay.test/v1",
        transport=httpx.MockTransport(fake),
    )
    app.dependency_overrides[gateway_dependency] = lambda: gateway
    return fake


def sign(gateway_order_id: str, gateway_payment_id: str) -> str:
    return callback_signature(settings.RAZORPAY_KEY_SECRET, gateway_order_id, gateway_payment_id)


# ─── Data builders ─────────────────────────────────────────────────────────────
async def make_user(
    role: Role = Role.STUDENT,
    college_id: str | None = None,
    name: str = "Test User",
    password: str = DEFAULT_PASSWORD,
    status: UserStatus = UserStatus.ACTIVE,
) -> User:
    college_id = college_id or f"{role.value.upper()}-{uuid.uuid4().hex[:6]}"
    async with AsyncSessionLocal() as session:
        user = User(
            name=name,
            college_id=college_id,
            email=f"{college_id.lower().replace('/', '.')}@college.edu",
            hashed_password=hash_password(password),
            role=role,
            status=status,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


async def add_dish(
    dish_name: str,
    price: float,
    quantity: int,
    category: Category = Category.LUNCH,
    day=None,
    is_available: bool = True,
) -> MenuItem:
    async with AsyncSessionLocal() as session:
        item = MenuItem(
            dish_name=dish_name,
            price=price,
            available_quantity=quantity,
            category=category,
            is_available=is_available,
            date=start_of_day(day),
        )
        session.add(item)
        await session.commit()
        await session.refresh(item)
        return item


async def stock_of(item_id: str) -> int:
    async with AsyncSessionLocal() as session:
        item = await session.get(MenuItem, item_id)
        return item.available_quantity


def auth(user: User) -> dict[str, str]:
    token = create_access_token({"sub": user.id, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def student(database):
    return await make_user(Role.STUDENT, college_id="BWU/BTS/24/269", name="Anirudha Khanrah")


@pytest_asyncio.fixture
async def other_student(database):
    return await make_user(Role.STUDENT, college_id="BWU/BTS/24/279", name="Rana Pratap Chaulya")


@pytest_asyncio.fixture
async def staff(database):
    return await make_user(Role.STAFF, college_id="STAFF1", name="Canteen Staff")


@pytest_asyncio.fixture
async def admin(database):
    return await make_user(Role.ADMIN, college_id="admin1", name="System Admin")


@pytest_asyncio.fixture
async def dosa(database):
    return await add_dish("Masala Dosa", 50, 20, Category.BREAKFAST)


# ─── Flows ─────────────────────────────────────────────────────────────────────
async def place_order(client, user, items) -> httpx.Response:
    return await client.post("/orders", json={"items": items}, headers=auth(user))


async def pay_order(client, user, order_id: str) -> dict:
    """Run create-order + a correctly signed verify callback; returns the verify body."""
    r = await client.post("/payments/create-order", json={"order_id": order_id}, headers=auth(user))
    assert r.status_code == 200, r.text
    intent = r.json()
    gateway_order_id = intent["razorpay_order"]["id"]
    gateway_payment_id = f"pay_{uuid.uuid4().hex[:14]}"

    r = await client.post(
        "/payments/verify",
        json={
            "payment_id": intent["payment_id"],
            "razorpay_order_id": gateway_order_id,
            "razorpay_payment_id": gateway_payment_id,
            "razorpay_signature": sign(gateway_order_id, gateway_payment_id),
        },
        headers=auth(user),
    )
    assert r.status_code == 200, r.text
    return r.json()
