import pytest
from sqlalchemy import inspect, text
from sqlalchemy.exc import IntegrityError

from app.db_utils import (
    LEGACY_ID_COLUMN,
    SchemaState,
    add_column_if_missing,
    detect_notification_id_column,
    ensure_admin_notifications_table,
    ensure_booking_reminders_table,
    ensure_notification_schema,
    ensure_notifications_table,
)


def _columns(engine, table):
    return {c["name"] for c in inspect(engine).get_columns(table)}


def test_notifications_table_created_with_indexes(engine):
    state = SchemaState()
    ensure_notifications_table(engine, state)

    assert {"id", "user_id", "title", "message", "type", "is_read", "link", "created_at", "updated_at"} <= _columns(
        engine, "notifications"
    )
    index_names = {ix["name"] for ix in inspect(engine).get_indexes("notifications")}
    assert "idx_notifications_created_at" in index_names
    assert state.notifications_ready is True
    assert state.id_column == "id"


def test_ready_flag_skips_the_catalog_lookup(engine):
    state = SchemaState()
    state.notifications_ready = True

    ensure_notifications_table(engine, state)

    assert "notifications" not in inspect(engine).get_table_names()


def test_reset_clears_cached_results(engine):
    state = SchemaState()
    ensure_notification_schema(engine, state)
    state.reset()

    assert state.notifications_ready is False
    assert state.reminders_ready is False
    assert state.notification_id_column is None


def test_legacy_table_is_upgraded_and_key_detected(engine, legacy_notifications_table):
    state = SchemaState()

    ensure_notifications_table(engine, state)

    cols = _columns(engine, "notifications")
    assert "link" in cols
    assert "updated_at" in cols
    assert state.id_column == LEGACY_ID_COLUMN


def test_detect_id_column_defaults_when_table_missing(engine):
    assert detect_notification_id_column(engine) == "id"


def test_add_column_if_missing_is_noop_for_existing_column(engine):
    add_column_if_missing(engine, "users", "email", "email VARCHAR(255)")
    add_column_if_missing(engine, "users", "locale", "locale VARCHAR(10)")
    # Unknown tables are ignored
    add_column_if_missing(engine, "nope", "x", "x INTEGER")

    assert "locale" in _columns(engine, "users")


def test_admin_table_guard_is_not_cached(engine):
    ensure_admin_notifications_table(engine)
    with engine.begin() as conn:
        conn.execute(text("DROP TABLE admin_notifications"))

    ensure_admin_notifications_table(engine)

    assert "admin_notifications" in inspect(engine).get_table_names()


def test_booking_reminders_unique_per_type(engine, db):
    ensure_booking_reminders_table(engine, SchemaState())
    insert = text(
        "INSERT INTO booking_reminders (booking_id, reminder_type, scheduled_time, sent) "
        "VALUES (:booking_id, :reminder_type, '2025-03-09 14:30:00', 0)"
    )
    db.execute(insert, {"booking_id": 42, "reminder_type": "24h"})
    db.execute(insert, {"booking_id": 42, "reminder_type": "1h"})
    db.commit()

    with pytest.raises(IntegrityError):
        db.execute(insert, {"booking_id": 42, "reminder_type": "24h"})
    db.rollback()


def test_notification_schema_creates_all_tables(engine):
    state = SchemaState()

    assert ensure_notification_schema(engine, state) == "id"

    tables = set(inspect(engine).get_table_names())
    assert {"notifications", "admin_notifications", "booking_reminders"} <= tables
    assert state.reminders_ready is True
    assert "sent_at" in _columns(engine, "booking_reminders")
