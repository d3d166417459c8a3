"""Delivery of already-persisted notifications.

Each channel is best effort. A failure is logged and swallowed so the caller
still reports success for the stored notification.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict

from sqlalchemy.orm import Session

from ..crud import crud_user
from ..realtime.sse import LivePush, NullLivePush
from . import rendering
from .rendering import RenderedEmail

logger = logging.getLogger(__name__)

EmailSender = Callable[..., None]
SmsSender = Callable[[str, str], None]


def push_payload(
    notification_id: int,
    title: str,
    message: str,
    type: str,
    link: str | None,
    created_at: datetime | None = None,
) -> Dict[str, Any]:
    return {
        "id": notification_id,
        "title": title,
        "message": message,
        "type": type,
        "is_read": False,
        "link": link,
        "created_at": (created_at or datetime.now()).isoformat(),
    }


class ChannelDispatcher:
    def __init__(
        self,
        email_sender: EmailSender,
        sms_sender: SmsSender | None = None,
        live_push: LivePush | None = None,
        app_url: str = "",
    ) -> None:
        self.email_sender = email_sender
        self.sms_sender = sms_sender
        self.live_push: LivePush = live_push or NullLivePush()
        self.app_url = app_url

    def _send(self, to: str, email: RenderedEmail) -> None:
        self.email_sender(to, email.subject, email.html, email.text)

    def recipient_for_email(self, db: Session, user_id: int) -> Dict[str, Any] | None:
        """The user's address when they accept email, else ``None``."""
        try:
            recipient = crud_user.get_email_recipient(db, user_id)
        except Exception as exc:  # pragma: no cover - best effort
            logger.warning("Email recipient lookup for user %s failed: %s", user_id, exc)
            return None
        if not recipient or not recipient.get("email"):
            return None
        if not crud_user.preference_enabled(recipient.get("email_notifications")):
            logger.info("User %s has email notifications disabled", user_id)
            return None
        return recipient

    def deliver_user_email(
        self, db: Session, user_id: int, title: str, message: str, link: str | None
    ) -> bool:
        recipient = self.recipient_for_email(db, user_id)
        if recipient is None:
            return False
        try:
            email = rendering.render_user_email(recipient.get("first_name"), title, message, link, self.app_url)
            self._send(recipient["email"], email)
            return True
        except Exception as exc:
            logger.warning("Notification email to user %s failed: %s", user_id, exc)
            return False

    def send_rich_email(self, to: str, email: RenderedEmail) -> bool:
        try:
            self._send(to, email)
            return True
        except Exception as exc:  # pragma: no cover - best effort
            logger.warning("Booking email to %s failed: %s", to, exc)
            return False

    def deliver_business_email(
        self,
        db: Session,
        user_id: int,
        title: str,
        message: str,
        link: str | None,
        subject: str | None = None,
    ) -> bool:
        try:
            recipient = crud_user.get_business_recipient(db, user_id)
        except Exception as exc:  # pragma: no cover - best effort
            logger.warning("Business recipient lookup for user %s failed: %s", user_id, exc)
            return False
        if not recipient or not recipient.get("email"):
            return False
        if not crud_user.preference_enabled(recipient.get("email_notifications")):
            return False
        try:
            email = rendering.render_business_email(
                recipient.get("business_name"),
                recipient.get("first_name"),
                title,
                message,
                link,
                self.app_url,
                subject=subject,
            )
            self._send(recipient["email"], email)
            return True
        except Exception as exc:  # pragma: no cover - best effort
            logger.warning("Business email to user %s failed: %s", user_id, exc)
            return False

    def deliver_admin_emails(
        self,
        db: Session,
        notification_type: str,
        title: str,
        message: str,
        link: str | None,
        subject: str | None = None,
    ) -> int:
        """Email every opted-in admin; one failure never stops the rest."""
        try:
            admins = crud_user.get_admin_recipients(db)
        except Exception as exc:  # pragma: no cover - best effort
            logger.warning("Admin recipient lookup failed: %s", exc)
            return 0
        sent = 0
        for admin in admins:
            try:
                email = rendering.render_admin_email(
                    admin.get("first_name"), notification_type, title, message, link, self.app_url, subject=subject
                )
                self._send(admin["email"], email)
                sent += 1
            except Exception as exc:
                logger.warning("Admin email to %s failed: %s", admin.get("email"), exc)
        return sent

    def deliver_sms(self, db: Session, user_id: int, message_for: Callable[[str | None], str]) -> bool:
        """Text the user when they have a phone and accept SMS.

        ``message_for`` receives the first name and returns the SMS body.
        """
        if self.sms_sender is None:
            return False
        try:
            recipient = crud_user.get_sms_recipient(db, user_id)
            if not recipient or not recipient.get("phone"):
                return False
            if not crud_user.sms_opted_in(recipient.get("sms_notifications")):
                return False
            self.sms_sender(recipient["phone"], message_for(recipient.get("first_name")))
            return True
        except Exception as exc:  # pragma: no cover - best effort
            logger.warning("SMS to user %s failed: %s", user_id, exc)
            return False

    def push(self, user_id: int, account_type: str, payload: Dict[str, Any]) -> None:
        try:
            self.live_push.broadcast_to_user(user_id, account_type, payload)
        except Exception as exc:  # pragma: no cover - best effort
            logger.warning("Live push to %s/%s failed: %s", account_type, user_id, exc)
