from __future__ import annotations

import logging
from typing import Iterable

from app.crud import crud_user
from app.models import NotificationSeverity
from app.models import SystemNotificationKind as Kind
from app.notifications.service import NotificationService
from app.schemas.notification import SystemNotificationResult

logger = logging.getLogger(__name__)

SYSTEM_LINK = "/user/furparent_dashboard"


def send_system_notification(
    service: NotificationService,
    kind: Kind | str,
    title: str,
    message: str,
    user_ids: Iterable[int] | None = None,
) -> SystemNotificationResult:
    """Broadcast a platform notice to the given users, or to every active user.

    Each user is handled independently; the broadcast succeeds when at least
    one notification was stored.
    """
    kind = Kind(kind)
    maintenance = kind == Kind.SYSTEM_MAINTENANCE
    severity = NotificationSeverity.WARNING if maintenance else NotificationSeverity.INFO
    targets = list(user_ids) if user_ids is not None else crud_user.get_active_user_ids(service.db)

    created = failed = 0
    for user_id in targets:
        try:
            result = service.create_notification(
                user_id,
                title,
                message,
                type=severity.value,
                link=SYSTEM_LINK,
                should_send_email=maintenance,
            )
        except Exception as exc:
            logger.warning("System notification for user %s failed: %s", user_id, exc)
            failed += 1
            continue
        if result.success:
            created += 1
        else:
            failed += 1
    logger.info("System notification %s: %d created, %d failed", kind.value, created, failed)
    return SystemNotificationResult(success=created > 0, created=created, failed=failed)
