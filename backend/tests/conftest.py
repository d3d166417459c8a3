import os

# Must be set before app.database is imported so the app engine is in-memory
os.environ.setdefault("PYTEST_RUN", "1")

from dataclasses import dataclass
from pathlib import Path

import pytest
from dotenv import load_dotenv
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db_utils import SchemaState, schema_state
from app.notifications.channels import ChannelDispatcher
from app.notifications.service import NotificationService

# Load environment variables for tests
load_dotenv(Path(__file__).resolve().parents[1] / ".env.test")

APP_URL = "https://rainbowpaws.test"

# Tables owned by the account and booking services; only read here
COLLABORATOR_DDL = [
    """CREATE TABLE users (
        user_id INTEGER PRIMARY KEY,
        email VARCHAR(255),
        first_name VARCHAR(100),
        last_name VARCHAR(100),
        phone VARCHAR(30),
        role VARCHAR(20) DEFAULT 'fur_parent',
        status VARCHAR(20) DEFAULT 'active',
        email_notifications INTEGER,
        sms_notifications INTEGER
    )""",
    """CREATE TABLE service_providers (
        provider_id INTEGER PRIMARY KEY,
        user_id INTEGER,
        name VARCHAR(255)
    )""",
    """CREATE TABLE businesses (
        id INTEGER PRIMARY KEY,
        user_id INTEGER
    )""",
    """CREATE TABLE service_packages (
        package_id INTEGER PRIMARY KEY,
        name VARCHAR(255)
    )""",
    """CREATE TABLE service_bookings (
        id INTEGER PRIMARY KEY,
        user_id INTEGER NOT NULL,
        provider_id INTEGER,
        package_id INTEGER,
        pet_name VARCHAR(100),
        booking_date DATE,
        booking_time TIME,
        price NUMERIC(10, 2),
        status VARCHAR(20) DEFAULT 'pending',
        updated_at DATETIME
    )""",
    """CREATE TABLE reviews (
        id INTEGER PRIMARY KEY,
        booking_id INTEGER,
        user_id INTEGER,
        rating INTEGER
    )""",
]


@dataclass
class SentEmail:
    to: str
    subject: str
    html: str
    text: str | None


class RecordingEmailSender:
    """Collects outgoing emails; ``fail`` or ``fail_for`` simulate SMTP errors."""

    def __init__(self) -> None:
        self.sent: list[SentEmail] = []
        self.fail = False
        self.fail_for: set[str] = set()

    def __call__(self, to, subject, html, text=None):
        if self.fail or to in self.fail_for:
            raise RuntimeError("SMTP connection refused")
        self.sent.append(SentEmail(to, subject, html, text))

    def to(self, address: str) -> list[SentEmail]:
        return [e for e in self.sent if e.to == address]


class RecordingSmsSender:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.fail = False

    def __call__(self, phone, message):
        if self.fail:
            raise RuntimeError("Twilio unavailable")
        self.sent.append((phone, message))


class RecordingLivePush:
    def __init__(self) -> None:
        self.events: list[tuple[int, str, dict]] = []

    def broadcast_to_user(self, user_id, account_type, payload):
        self.events.append((user_id, account_type, payload))


class Seeder:
    """Inserts collaborator rows with plain SQL, committing each one."""

    def __init__(self, db) -> None:
        self.db = db

    def _insert(self, sql: str, params: dict) -> None:
        self.db.execute(text(sql), params)
        self.db.commit()

    def user(
        self,
        user_id,
        email=None,
        first_name="Maria",
        last_name="Santos",
        phone=None,
        role="fur_parent",
        status="active",
        email_notifications=1,
        sms_notifications=0,
    ):
        self._insert(
            "INSERT INTO users (user_id, email, first_name, last_name, phone, role, status, "
            "email_notifications, sms_notifications) VALUES (:user_id, :email, :first_name, "
            ":last_name, :phone, :role, :status, :email_notifications, :sms_notifications)",
            {
                "user_id": user_id,
                "email": email if email is not None else f"user{user_id}@example.com",
                "first_name": first_name,
                "last_name": last_name,
                "phone": phone,
                "role": role,
                "status": status,
                "email_notifications": email_notifications,
                "sms_notifications": sms_notifications,
            },
        )

    def provider(self, provider_id, user_id, name="Peaceful Paws Crematory"):
        self._insert(
            "INSERT INTO service_providers (provider_id, user_id, name) VALUES (:provider_id, :user_id, :name)",
            {"provider_id": provider_id, "user_id": user_id, "name": name},
        )

    def package(self, package_id, name="Standard Cremation"):
        self._insert(
            "INSERT INTO service_packages (package_id, name) VALUES (:package_id, :name)",
            {"package_id": package_id, "name": name},
        )

    def booking(
        self,
        booking_id,
        user_id,
        provider_id=None,
        package_id=None,
        pet_name="Bella",
        booking_date="2025-03-10",
        booking_time="14:30:00",
        price=1500,
        status="confirmed",
        updated_at=None,
    ):
        self._insert(
            "INSERT INTO service_bookings (id, user_id, provider_id, package_id, pet_name, booking_date, "
            "booking_time, price, status, updated_at) VALUES (:id, :user_id, :provider_id, :package_id, "
            ":pet_name, :booking_date, :booking_time, :price, :status, :updated_at)",
            {
                "id": booking_id,
                "user_id": user_id,
                "provider_id": provider_id,
                "package_id": package_id,
                "pet_name": pet_name,
                "booking_date": booking_date,
                "booking_time": booking_time,
                "price": price,
                "status": status,
                "updated_at": updated_at,
            },
        )

    def marketplace(self):
        """Fur parent 7 booked Standard Cremation for Bella at provider 3 (owned by user 20)."""
        self.user(7, email="maria@example.com", phone="09171234567", sms_notifications=1)
        self.user(20, email="center@example.com", first_name="Juan", last_name="Cruz", role="business")
        self.provider(3, 20)
        self.package(5)
        self.booking(42, 7, provider_id=3, package_id=5)


@pytest.fixture(autouse=True)
def reset_schema_state():
    """Every test starts with a cold schema cache."""
    schema_state.reset()
    yield
    schema_state.reset()


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    with eng.begin() as conn:
        for ddl in COLLABORATOR_DDL:
            conn.execute(text(ddl))
    yield eng
    eng.dispose()


@pytest.fixture
def legacy_notifications_table(engine):
    """A ``notifications`` table from before the key was renamed to ``id``."""
    with engine.begin() as conn:
        conn.execute(
            text(
                """CREATE TABLE notifications (
                    notification_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    title VARCHAR(255) NOT NULL,
                    message TEXT NOT NULL,
                    type VARCHAR(20) NOT NULL DEFAULT 'info',
                    is_read BOOLEAN NOT NULL DEFAULT 0,
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                )"""
            )
        )
    return "notifications"


@pytest.fixture
def db(engine):
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seed(db):
    return Seeder(db)


@pytest.fixture
def email_sender():
    return RecordingEmailSender()


@pytest.fixture
def sms_sender():
    return RecordingSmsSender()


@pytest.fixture
def live_push():
    return RecordingLivePush()


@pytest.fixture
def dispatcher(email_sender, sms_sender, live_push):
    return ChannelDispatcher(email_sender, sms_sender=sms_sender, live_push=live_push, app_url=APP_URL)


@pytest.fixture
def service(db, dispatcher):
    return NotificationService(db, dispatcher, state=SchemaState())


def fetch_all(db, sql, **params):
    return [dict(r) for r in db.execute(text(sql), params).mappings().all()]


@pytest.fixture
def rows(db):
    """``rows("SELECT ...", key=value)`` returns result rows as dicts."""

    def _rows(sql, **params):
        return fetch_all(db, sql, **params)

    return _rows
