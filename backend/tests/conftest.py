"""
Pytest fixtures for test database, client, fakes and authentication.

Each test gets a fresh in-memory SQLite database (aiosqlite, one shared
connection) with the schema created from the models. The payment processor
and the email provider are replaced by in-memory fakes through
`app.dependency_overrides`.
"""

import hashlib
import hmac
import json
import os
import time
from datetime import date, time as time_type, timedelta
from decimal import Decimal
from typing import AsyncGenerator, Optional

# Settings are read once and cached, so the environment must be set first
os.environ["REDIS_ENABLED"] = "false"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["RESEND_API_KEY"] = ""
os.environ["SECRET_KEY"] = "test-secret-key"

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from studio_booking.main import app
from studio_booking.api.deps import gateway_dependency, notifier_dependency
from studio_booking.core.exceptions import NotFoundError, PaymentProcessingError, PaymentSessionError
from studio_booking.core.security import create_access_token, hash_password
from studio_booking.db.base import Base
from studio_booking.db.session import get_db
from studio_booking.models import Booking, Package, SlotTemplate, User
from studio_booking.schemas.payment_event import CheckoutCompleted
from studio_booking.services.reconciliation_service import handle_event
from studio_booking.services.interfaces import (
    HostedSession,
    Notifier,
    PaymentGateway,
    RefundResult,
    SessionStatus,
)

WEBHOOK_SECRET = os.environ["STRIPE_WEBHOOK_SECRET"]
MONDAY = 1


class FakeGateway(PaymentGateway):
    """In-memory processor: records sessions and refunds, can be told to fail."""

    def __init__(self):
        self.sessions: dict[str, dict] = {}
        self.refunds: list[dict] = []
        self.fail_sessions = False
        self.fail_refunds = False
        self._counter = 0

    async def create_hosted_session(self, *, amount_minor_units, currency, description,
                                    product_name, success_url, cancel_url, metadata,
                                    customer_email=None) -> HostedSession:
        if self.fail_sessions:
            raise PaymentSessionError("Payment provider timed out")
        self._counter += 1
        session_id = f"cs_test_{self._counter}"
        self.sessions[session_id] = {
            "amount_minor_units": amount_minor_units,
            "currency": currency,
            "description": description,
            "product_name": product_name,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
            "customer_email": customer_email,
            "payment_status": "unpaid",
            "payment_reference": None,
        }
        return HostedSession(session_id=session_id, redirect_url=f"https://checkout.test/{session_id}")

    async def retrieve_session(self, session_id: str) -> SessionStatus:
        session = self.sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"Checkout session {session_id} not found")
        return SessionStatus(
            session_id=session_id,
            payment_status=session["payment_status"],
            payment_reference=session["payment_reference"],
            customer_email=session["customer_email"],
            metadata=session["metadata"],
        )

    async def create_refund(self, *, payment_reference, amount_minor_units, reason, metadata,
                            idempotency_key=None) -> RefundResult:
        if self.fail_refunds:
            raise PaymentProcessingError("Refund failed: charge already disputed")
        self.refunds.append({
            "payment_reference": payment_reference,
            "amount_minor_units": amount_minor_units,
            "reason": reason,
            "metadata": metadata,
            "idempotency_key": idempotency_key,
        })
        return RefundResult(
            refund_id=f"re_test_{len(self.refunds)}",
            amount_minor_units=amount_minor_units,
            status="succeeded",
        )


class FakeNotifier(Notifier):
    def __init__(self):
        self.sent: list[tuple[str, str, dict]] = []
        self.fail = False

    async def send(self, template_kind: str, to: str, fields: dict) -> None:
        if self.fail:
            raise RuntimeError("smtp down")
        self.sent.append((template_kind, to, fields))

    def kinds(self) -> list[str]:
        return [kind for kind, _, _ in self.sent]


def next_weekday(dow: int) -> date:
    """Next date strictly after today with the given Sunday-based weekday."""
    day = date.today() + timedelta(days=1)
    while (day.weekday() + 1) % 7 != dow:
        day += timedelta(days=1)
    return day


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header value for `payload`."""
    timestamp = timestamp or int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def booking_data(day: date, at: str = "10:00", package_id: str = "indie", price: str = "399",
                 email: str = "jane@example.com", template_id: Optional[int] = None) -> dict:
    return {
        "customer_name": "Jane Doe",
        "customer_email": email,
        "customer_phone": "+15550100",
        "package_id": package_id,
        "service_name": "Indie",
        "price": price,
        "date": day.isoformat(),
        "time": f"{at}:00",
        "time_slot_template_id": template_id,
    }


def stripe_event(event_type: str, obj: dict, event_id: str = "evt_test") -> dict:
    return {"id": event_id, "object": "event", "type": event_type, "data": {"object": obj}}


def checkout_completed_payload(session_id: str, payment_intent: str, data: dict,
                               amount_total: Optional[int] = None) -> dict:
    if amount_total is None:
        amount_total = int(Decimal(data["price"]) * 100)
    return stripe_event(
        "checkout.session.completed",
        {
            "id": session_id,
            "object": "checkout.session",
            "payment_intent": payment_intent,
            "amount_total": amount_total,
            "currency": "usd",
            "payment_status": "paid",
            "payment_method_types": ["card"],
            "customer_details": {
                "email": data["customer_email"],
                "name": data["customer_name"],
                "phone": data["customer_phone"],
            },
            "metadata": {"booking_data": json.dumps(data)},
        },
    )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory schema per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Let SQLAlchemy emit BEGIN itself so SAVEPOINTs behave as on PostgreSQL
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession, gateway: FakeGateway, notifier: FakeNotifier
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client wired to the test session and the fakes."""

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[gateway_dependency] = lambda: gateway
    app.dependency_overrides[notifier_dependency] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _make_user(db: AsyncSession, email: str, role: str, is_active: bool = True) -> User:
    user = User(
        email=email,
        full_name=role.replace("_", " ").title(),
        hashed_password=hash_password("testpassword123"),
        role=role,
        is_active=is_active,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user.id)})}"}


@pytest_asyncio.fixture
async def super_admin(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "root@example.com", "super_admin")


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "admin@example.com", "admin")


@pytest_asyncio.fixture
async def manager_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "manager@example.com", "manager")


@pytest_asyncio.fixture
async def viewer_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "viewer@example.com", "viewer")


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict:
    return headers_for(admin_user)


@pytest_asyncio.fixture
async def packages(db_session: AsyncSession) -> dict[str, Package]:
    """The default catalog."""
    catalog = {
        "indie": Package(id="indie", name="Indie", price=Decimal("399"), features=["1 hr studio rental"]),
        "feature": Package(id="feature", name="Feature", price=Decimal("799"), features=[], is_popular=True),
        "blockbuster": Package(id="blockbuster", name="Blockbuster", price=Decimal("1499"), features=[]),
    }
    db_session.add_all(catalog.values())
    await db_session.commit()
    return catalog


@pytest_asyncio.fixture
async def monday_template(db_session: AsyncSession, packages) -> SlotTemplate:
    """Mondays 09:00-17:00, one-hour slots, one booking each."""
    template = SlotTemplate(
        day_of_week=MONDAY,
        start_time=time_type(9, 0),
        end_time=time_type(17, 0),
        duration_hours=Decimal("1.0"),
        max_capacity=1,
    )
    db_session.add(template)
    await db_session.commit()
    await db_session.refresh(template)
    return template


@pytest.fixture
def next_monday() -> date:
    return next_weekday(MONDAY)


@pytest.fixture
def post_webhook(client: AsyncClient):
    """Sign and deliver a raw Stripe event to the webhook endpoint."""

    async def _post(raw_event: dict, secret: str = WEBHOOK_SECRET):
        payload = json.dumps(raw_event)
        return await client.post(
            "/api/v1/webhooks/payment",
            content=payload,
            headers={"Stripe-Signature": sign_payload(payload, secret), "Content-Type": "application/json"},
        )

    return _post


def completed_event(session_id: str, payment_reference: Optional[str], data: dict,
                    amount: Optional[Decimal] = None) -> CheckoutCompleted:
    """Processor-neutral checkout_completed, as translate_event would build it."""
    return CheckoutCompleted(
        session_id=session_id,
        payment_reference=payment_reference,
        amount=Decimal(data["price"]) if amount is None else amount,
        currency="usd",
        customer_email=data["customer_email"],
        customer_name=data["customer_name"],
        customer_phone=data["customer_phone"],
        payment_method="card",
        booking_data=data,
    )


@pytest_asyncio.fixture
async def confirmed_booking(db_session: AsyncSession, notifier: FakeNotifier, monday_template,
                            next_monday) -> Booking:
    """A paid Indie booking for next Monday 10:00, reconciled through the handler."""
    data = booking_data(next_monday, template_id=monday_template.id)
    result = await handle_event(db_session, notifier, completed_event("cs_paid", "pi_paid", data))
    booking = await db_session.get(Booking, result.booking_id)
    notifier.sent.clear()
    return booking
