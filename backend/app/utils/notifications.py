"""Entry points used by routes, background loops and scripts.

Each helper wires a :class:`NotificationService` for the given session with
the configured transports, then delegates to the matching intent module.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from sqlalchemy.orm import Session

from ..core.config import settings
from ..database import get_db_session
from ..db_utils import ensure_booking_reminders_table, schema_state
from ..notifications import reminders
from ..notifications.channels import ChannelDispatcher
from ..notifications.intents import admin as admin_intents
from ..notifications.intents.booking_lifecycle import send_booking_notification
from ..notifications.intents.payment import send_payment_notification
from ..notifications.intents.system import send_system_notification
from ..notifications.service import NotificationService
from ..realtime.sse import LivePush, sse_broker
from ..schemas.notification import NotificationResult, SystemNotificationResult
from .email import send_email
from .sms import send_sms

logger = logging.getLogger(__name__)


def alert_scheduler_failure(exc: Exception) -> None:
    """Emit an error log when a background scheduler run fails."""
    logger.exception("Scheduler run failed: %s", exc)


def build_notification_service(db: Session, live_push: LivePush | None = None) -> NotificationService:
    dispatcher = ChannelDispatcher(
        email_sender=send_email,
        sms_sender=send_sms,
        live_push=live_push if live_push is not None else sse_broker,
        app_url=settings.APP_URL,
    )
    return NotificationService(db, dispatcher, state=schema_state)


def notify_booking_event(
    db: Session, booking_id: int, kind: str, extra: Mapping[str, Any] | None = None
) -> NotificationResult:
    return send_booking_notification(build_notification_service(db), booking_id, kind, extra)


def notify_payment_event(
    db: Session, booking_id: int, kind: str, extra: Mapping[str, Any] | None = None
) -> NotificationResult:
    return send_payment_notification(build_notification_service(db), booking_id, kind, extra)


def notify_system_event(
    db: Session, kind: str, title: str, message: str, user_ids: Iterable[int] | None = None
) -> SystemNotificationResult:
    return send_system_notification(build_notification_service(db), kind, title, message, user_ids)


def notify_admins(
    db: Session,
    type: str,
    title: str,
    message: str,
    entity_type: str | None = None,
    entity_id: int | None = None,
    should_send_email: bool = True,
) -> NotificationResult:
    return build_notification_service(db).create_admin_notification(
        type, title, message, entity_type=entity_type, entity_id=entity_id, should_send_email=should_send_email
    )


def notify_refund_request(db: Session, refund_id: int, booking_id: int, pet_name: str | None, amount, reason: str | None = None) -> NotificationResult:
    return admin_intents.send_refund_request_alert(
        build_notification_service(db), refund_id, booking_id, pet_name, amount, reason
    )


def schedule_booking_reminders(db: Session, booking_id: int) -> list[str]:
    return reminders.schedule_booking_reminders(build_notification_service(db), booking_id)


def run_reminder_maintenance(db: Session) -> dict[str, Any]:
    """One pass of the reminder worker: due reminders, then review requests."""
    service = build_notification_service(db)
    summary: dict[str, Any] = dict(reminders.process_pending_reminders(service))
    summary["review_requests"] = reminders.process_review_requests(service)
    summary["stats"] = reminder_stats(db)
    return summary


def reminder_stats(db: Session) -> dict[str, int]:
    ensure_booking_reminders_table(db.get_bind(), schema_state)
    return reminders.get_reminder_stats(db)


def run_reminder_maintenance_once() -> dict[str, Any]:
    """Open a short-lived session and run one reminder pass."""
    with get_db_session() as db:
        return run_reminder_maintenance(db)
