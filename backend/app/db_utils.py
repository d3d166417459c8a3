"""Schema guard for the tables owned by the notification subsystem.

The booking, user and provider tables belong to other services and are never
created here. The three notification tables are created lazily on first use
and the "exists" result is cached on a :class:`SchemaState` so later calls do
not query the catalog again.
"""

import logging
import threading

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from .models.notification import AdminNotification, BookingReminder, Notification

logger = logging.getLogger(__name__)

DEFAULT_ID_COLUMN = "id"
LEGACY_ID_COLUMN = "notification_id"


class SchemaState:
    """Process-wide cache of schema checks.

    A single instance (``schema_state``) is shared by every request in the
    process. Tests call :meth:`reset` between cases so each one starts from a
    cold cache.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.notifications_ready = False
        self.reminders_ready = False
        self.notification_id_column: str | None = None

    def reset(self) -> None:
        with self._lock:
            self.notifications_ready = False
            self.reminders_ready = False
            self.notification_id_column = None

    @property
    def id_column(self) -> str:
        return self.notification_id_column or DEFAULT_ID_COLUMN


schema_state = SchemaState()


def add_column_if_missing(engine: Engine, table: str, column: str, ddl: str) -> None:
    """Add a column to *table* if it does not exist."""

    inspector = inspect(engine)
    if table not in inspector.get_table_names():
        return
    column_names = [col["name"] for col in inspector.get_columns(table)]
    if column not in column_names:
        with engine.connect() as conn:
            normalized = ddl
            if engine.dialect.name == "postgresql":
                normalized = normalized.replace(" DATETIME", " TIMESTAMP")
            conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {normalized}"))
            conn.commit()


def detect_notification_id_column(engine: Engine) -> str:
    """Return the primary-key column name used by ``notifications``.

    Older deployments named the key ``notification_id``. Newer ones use
    ``id``. When neither is present the default is assumed.
    """

    inspector = inspect(engine)
    if "notifications" not in inspector.get_table_names():
        return DEFAULT_ID_COLUMN
    column_names = {col["name"] for col in inspector.get_columns("notifications")}
    if DEFAULT_ID_COLUMN in column_names:
        return DEFAULT_ID_COLUMN
    if LEGACY_ID_COLUMN in column_names:
        return LEGACY_ID_COLUMN
    return DEFAULT_ID_COLUMN


def ensure_notifications_table(engine: Engine, state: SchemaState = schema_state) -> None:
    """Create ``notifications`` (with its indexes) when absent.

    Errors from the existence check or the DDL propagate: nothing downstream
    can work without the table.
    """

    if state.notifications_ready:
        return
    with state._lock:
        if state.notifications_ready:
            return
        inspector = inspect(engine)
        if "notifications" not in inspector.get_table_names():
            logger.info("Creating notifications table")
            Notification.__table__.create(bind=engine, checkfirst=True)
        else:
            # Tables created before links and update stamps existed
            add_column_if_missing(engine, "notifications", "link", "link VARCHAR(255)")
            add_column_if_missing(engine, "notifications", "updated_at", "updated_at DATETIME")
        state.notification_id_column = detect_notification_id_column(engine)
        state.notifications_ready = True


def ensure_admin_notifications_table(engine: Engine) -> None:
    """Create ``admin_notifications`` when absent. Not cached."""

    inspector = inspect(engine)
    if "admin_notifications" not in inspector.get_table_names():
        logger.info("Creating admin_notifications table")
        AdminNotification.__table__.create(bind=engine, checkfirst=True)


def ensure_booking_reminders_table(engine: Engine, state: SchemaState = schema_state) -> None:
    """Create ``booking_reminders`` once per process.

    The table carries a unique ``(booking_id, reminder_type)`` constraint so a
    booking can never hold two reminders of the same kind.
    """

    if state.reminders_ready:
        return
    with state._lock:
        if state.reminders_ready:
            return
        inspector = inspect(engine)
        if "booking_reminders" not in inspector.get_table_names():
            logger.info("Creating booking_reminders table")
            BookingReminder.__table__.create(bind=engine, checkfirst=True)
        else:
            add_column_if_missing(engine, "booking_reminders", "sent_at", "sent_at DATETIME")
        state.reminders_ready = True


def ensure_notification_schema(engine: Engine, state: SchemaState = schema_state) -> str:
    """Run every guard at startup and return the resolved id column."""

    ensure_notifications_table(engine, state)
    ensure_admin_notifications_table(engine)
    ensure_booking_reminders_table(engine, state)
    logger.info("Notification id column resolved: %s", state.id_column)
    return state.id_column
