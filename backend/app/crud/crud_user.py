"""Lookups against the ``users`` table owned by the account service.

Older databases predate the ``email_notifications`` and ``sms_notifications``
preference columns. Every preference lookup therefore has a reduced fallback
query that reads the preference as NULL. The only write here is the user's own
notification preferences, which adds the columns when they are missing.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.orm import Session

from ..db_utils import add_column_if_missing

logger = logging.getLogger(__name__)


def _fetch_with_optional_column(
    db: Session,
    sql: str,
    reduced_sql: str,
    params: Dict[str, Any],
) -> List[Dict[str, Any]]:
    try:
        return [dict(r) for r in db.execute(text(sql), params).mappings().all()]
    except (OperationalError, ProgrammingError) as exc:
        # Clear the failed statement before retrying on the same session
        db.rollback()
        logger.info("Preference column unavailable, assuming enabled: %s", exc.orig)
        return [dict(r) for r in db.execute(text(reduced_sql), params).mappings().all()]


_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})


def _flag(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, (bytes, bytearray)):
        # MySQL BIT(1) columns
        return any(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        return normalized in _TRUE_STRINGS if normalized else default
    return bool(value)


def preference_enabled(value: Any) -> bool:
    """Missing or NULL preferences count as opted in."""
    return _flag(value, True)


def sms_opted_in(value: Any) -> bool:
    """SMS is opt-in; NULL or a missing column means no."""
    return _flag(value, False)


def get_email_recipient(db: Session, user_id: int) -> Optional[Dict[str, Any]]:
    rows = _fetch_with_optional_column(
        db,
        "SELECT user_id, email, first_name, last_name, email_notifications "
        "FROM users WHERE user_id = :user_id",
        "SELECT user_id, email, first_name, last_name, NULL AS email_notifications "
        "FROM users WHERE user_id = :user_id",
        {"user_id": user_id},
    )
    return rows[0] if rows else None


def get_business_recipient(db: Session, user_id: int) -> Optional[Dict[str, Any]]:
    rows = _fetch_with_optional_column(
        db,
        "SELECT u.user_id, u.email, u.first_name, u.last_name, u.email_notifications, "
        "sp.name AS business_name "
        "FROM users u LEFT JOIN service_providers sp ON u.user_id = sp.user_id "
        "WHERE u.user_id = :user_id AND u.role = 'business'",
        "SELECT u.user_id, u.email, u.first_name, u.last_name, NULL AS email_notifications, "
        "sp.name AS business_name "
        "FROM users u LEFT JOIN service_providers sp ON u.user_id = sp.user_id "
        "WHERE u.user_id = :user_id AND u.role = 'business'",
        {"user_id": user_id},
    )
    return rows[0] if rows else None


def get_admin_recipients(db: Session) -> List[Dict[str, Any]]:
    """Active admins who have not opted out of email."""
    rows = _fetch_with_optional_column(
        db,
        "SELECT user_id, email, first_name, last_name, email_notifications "
        "FROM users WHERE role = 'admin' AND status = 'active'",
        "SELECT user_id, email, first_name, last_name, NULL AS email_notifications "
        "FROM users WHERE role = 'admin' AND status = 'active'",
        {},
    )
    return [r for r in rows if r.get("email") and preference_enabled(r.get("email_notifications"))]


def get_sms_recipient(db: Session, user_id: int) -> Optional[Dict[str, Any]]:
    rows = _fetch_with_optional_column(
        db,
        "SELECT user_id, phone, first_name, sms_notifications FROM users WHERE user_id = :user_id",
        "SELECT user_id, phone, first_name, NULL AS sms_notifications FROM users WHERE user_id = :user_id",
        {"user_id": user_id},
    )
    return rows[0] if rows else None


def get_active_user_ids(db: Session) -> List[int]:
    rows = db.execute(text("SELECT user_id FROM users WHERE status = 'active'")).all()
    return [int(r[0]) for r in rows]


def get_notification_preferences(db: Session, user_id: int) -> Optional[Dict[str, bool]]:
    """Effective email and SMS preferences, or ``None`` for an unknown user."""
    rows = _fetch_with_optional_column(
        db,
        "SELECT email_notifications, sms_notifications FROM users WHERE user_id = :user_id",
        "SELECT NULL AS email_notifications, NULL AS sms_notifications FROM users WHERE user_id = :user_id",
        {"user_id": user_id},
    )
    if not rows:
        return None
    return {
        "email_notifications": preference_enabled(rows[0].get("email_notifications")),
        "sms_notifications": sms_opted_in(rows[0].get("sms_notifications")),
    }


def update_notification_preferences(
    db: Session, user_id: int, email_notifications: bool, sms_notifications: bool
) -> Optional[Dict[str, bool]]:
    """Store both preferences; returns ``None`` when the user does not exist."""
    engine = db.get_bind()
    add_column_if_missing(engine, "users", "email_notifications", "email_notifications BOOLEAN")
    add_column_if_missing(engine, "users", "sms_notifications", "sms_notifications BOOLEAN")
    result = db.execute(
        text(
            "UPDATE users SET email_notifications = :email, sms_notifications = :sms "
            "WHERE user_id = :user_id"
        ),
        {"email": bool(email_notifications), "sms": bool(sms_notifications), "user_id": user_id},
    )
    db.commit()
    if result.rowcount == 0:
        return None
    logger.info("Notification preferences updated for user %s", user_id)
    return {"email_notifications": bool(email_notifications), "sms_notifications": bool(sms_notifications)}
