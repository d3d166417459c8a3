"""Notification creation for users, businesses and admins.

Every ``create_*`` operation persists first and only then delivers. A database
failure makes the call unsuccessful; a delivery failure never does.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..crud import crud_notification
from ..db_utils import SchemaState, ensure_notifications_table, schema_state
from ..models.notification import NotificationSeverity
from ..schemas.notification import NotificationResult
from .channels import ChannelDispatcher, push_payload

logger = logging.getLogger(__name__)

ADMIN_APPLICATION_TYPES = {"new_cremation_center", "pending_application"}
ADMIN_APPEAL_TYPES = {"new_appeal", "appeal_submitted"}
REFUND_LINK_TYPES = {"refund_processed", "refund_approved"}


def admin_link_for(notification_type: str, entity_type: str | None, entity_id: int | None) -> str | None:
    """Deep link into the admin panel for an admin event."""
    if notification_type in ADMIN_APPLICATION_TYPES:
        return f"/admin/applications/{entity_id}" if entity_id else "/admin/applications"
    if notification_type == "refund_request":
        return f"/admin/refunds?refundId={entity_id}" if entity_id else "/admin/refunds"
    if notification_type in ADMIN_APPEAL_TYPES:
        if entity_type in ("cremation", "business"):
            link = "/admin/users/cremation"
        else:
            link = "/admin/users/furparents"
        if entity_id:
            link += f"?appealId={entity_id}&userId={entity_id}"
        return link
    return None


def user_link_for(notification_type: str, entity_id: int | None) -> str | None:
    if notification_type in REFUND_LINK_TYPES:
        base = "/user/furparent_dashboard/bookings"
        return f"{base}?bookingId={entity_id}" if entity_id else base
    return None


class NotificationService:
    def __init__(
        self,
        db: Session,
        dispatcher: ChannelDispatcher,
        state: SchemaState = schema_state,
    ) -> None:
        self.db = db
        self.dispatcher = dispatcher
        self.state = state

    @property
    def engine(self):
        return self.db.get_bind()

    def _failed(self, action: str, exc: Exception) -> NotificationResult:
        self.db.rollback()
        logger.exception("%s failed: %s", action, exc)
        return NotificationResult(success=False, error=str(exc))

    def create_notification(
        self,
        user_id: int,
        title: str,
        message: str,
        type: str = NotificationSeverity.INFO.value,
        link: str | None = None,
        should_send_email: bool = False,
        account_type: str = "user",
    ) -> NotificationResult:
        try:
            notification_id = crud_notification.create_notification(
                self.db, user_id, title, message, type=type, link=link, state=self.state
            )
        except (SQLAlchemyError, ValueError) as exc:
            return self._failed("Notification insert", exc)

        if should_send_email:
            self.dispatcher.deliver_user_email(self.db, user_id, title, message, link)
        self.dispatcher.push(user_id, account_type, push_payload(notification_id, title, message, type, link))
        return NotificationResult(success=True, notification_id=notification_id)

    def create_notification_fast(
        self,
        user_id: int,
        title: str,
        message: str,
        type: str = NotificationSeverity.INFO.value,
        link: str | None = None,
        account_type: str = "user",
    ) -> NotificationResult:
        """Persist and push without the schema guard or email."""
        try:
            notification_id = crud_notification.create_notification_fast(
                self.db, user_id, title, message, type=type, link=link, id_column=self.state.id_column
            )
        except (SQLAlchemyError, ValueError) as exc:
            return self._failed("Notification insert", exc)
        self.dispatcher.push(user_id, account_type, push_payload(notification_id, title, message, type, link))
        return NotificationResult(success=True, notification_id=notification_id)

    def create_business_notification(
        self,
        user_id: int,
        title: str,
        message: str,
        type: str = NotificationSeverity.INFO.value,
        link: str | None = None,
        should_send_email: bool = True,
        email_subject: str | None = None,
    ) -> NotificationResult:
        try:
            notification_id = crud_notification.create_notification(
                self.db, user_id, title, message, type=type, link=link, state=self.state
            )
        except (SQLAlchemyError, ValueError) as exc:
            return self._failed("Business notification insert", exc)

        if should_send_email:
            self.dispatcher.deliver_business_email(self.db, user_id, title, message, link, subject=email_subject)
        self.dispatcher.push(user_id, "business", push_payload(notification_id, title, message, type, link))
        return NotificationResult(success=True, notification_id=notification_id)

    def create_admin_notification(
        self,
        type: str,
        title: str,
        message: str,
        entity_type: str | None = None,
        entity_id: int | None = None,
        should_send_email: bool = True,
        email_subject: str | None = None,
    ) -> NotificationResult:
        link = admin_link_for(type, entity_type, entity_id)
        try:
            notification_id = crud_notification.create_admin_notification(
                self.db, type, title, message, entity_type=entity_type, entity_id=entity_id, link=link
            )
        except SQLAlchemyError as exc:
            return self._failed("Admin notification insert", exc)

        if should_send_email:
            sent = self.dispatcher.deliver_admin_emails(self.db, type, title, message, link, subject=email_subject)
            logger.info("Admin notification %s emailed to %d admins", notification_id, sent)
        return NotificationResult(success=True, notification_id=notification_id)

    def create_user_notification(
        self,
        user_id: int,
        type: str,
        title: str,
        message: str,
        entity_id: int | None = None,
        should_send_email: bool = True,
    ) -> NotificationResult:
        """Notify a fur parent about an account-level event such as a refund."""
        severity = NotificationSeverity.SUCCESS.value if type in REFUND_LINK_TYPES else NotificationSeverity.INFO.value
        return self.create_notification(
            user_id,
            title,
            message,
            type=severity,
            link=user_link_for(type, entity_id),
            should_send_email=should_send_email,
        )

    def get_user_notifications(
        self, user_id: int, limit: int = 10, offset: int = 0, unread_only: bool = False
    ) -> List[Dict[str, Any]]:
        ensure_notifications_table(self.engine, self.state)
        return crud_notification.get_user_notifications(
            self.db, user_id, limit=limit, offset=offset, unread_only=unread_only, id_column=self.state.id_column
        )

    def mark_notification_as_read(self, notification_id: int, user_id: int) -> bool:
        ensure_notifications_table(self.engine, self.state)
        return crud_notification.mark_notification_as_read(
            self.db, notification_id, user_id, id_column=self.state.id_column
        )

    def mark_notifications_as_read(self, notification_ids: List[int], user_id: int) -> int:
        ensure_notifications_table(self.engine, self.state)
        return crud_notification.mark_notifications_as_read(
            self.db, notification_ids, user_id, id_column=self.state.id_column
        )

    def mark_all_notifications_as_read(self, user_id: int) -> int:
        ensure_notifications_table(self.engine, self.state)
        return crud_notification.mark_all_notifications_as_read(self.db, user_id)

    def get_unread_count(self, user_id: int) -> int:
        ensure_notifications_table(self.engine, self.state)
        return crud_notification.count_unread_notifications(self.db, user_id)
