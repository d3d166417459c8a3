from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from typing import List
import asyncio
import json
import logging
import time
from datetime import datetime, timezone

from .. import schemas
from ..core.config import settings
from ..crud import crud_notification, crud_user
from ..notifications.intents.system import send_system_notification
from ..notifications.service import NotificationService
from ..realtime.sse import sse_broker
from ..utils import error_response
from ..utils.notifications import run_reminder_maintenance
from .dependencies import CurrentUser, get_current_user, get_db, get_notification_service, require_admin

router = APIRouter(tags=["notifications"])

logger = logging.getLogger(__name__)


@router.get("/notifications", response_model=List[schemas.NotificationResponse])
def read_my_notifications(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    unread_only: bool = False,
    service: NotificationService = Depends(get_notification_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Newest notifications for the signed-in account, one page at a time."""
    return service.get_user_notifications(
        current_user.user_id, limit=limit, offset=offset, unread_only=unread_only
    )


@router.get("/notifications/unread-count", response_model=schemas.UnreadCountResponse)
def read_unread_count(
    service: NotificationService = Depends(get_notification_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    return {"count": service.get_unread_count(current_user.user_id)}


@router.put("/notifications/read-all", response_model=schemas.ReadAllResponse)
def mark_all_read(
    service: NotificationService = Depends(get_notification_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    updated = service.mark_all_notifications_as_read(current_user.user_id)
    return {"updated": updated}


@router.put("/notifications/read", response_model=schemas.ReadAllResponse)
def mark_read_batch(
    body: schemas.MarkReadRequest,
    service: NotificationService = Depends(get_notification_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Mark several notifications read. Ids the caller does not own are ignored."""
    updated = service.mark_notifications_as_read(body.notification_ids, current_user.user_id)
    return {"updated": updated}


@router.get("/notifications/preferences", response_model=schemas.NotificationPreferences)
def read_notification_preferences(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    preferences = crud_user.get_notification_preferences(db, current_user.user_id)
    if preferences is None:
        raise error_response("User not found", {"user_id": "not_found"}, status.HTTP_404_NOT_FOUND)
    return preferences


@router.put("/notifications/preferences", response_model=schemas.NotificationPreferences)
def update_notification_preferences(
    body: schemas.NotificationPreferences,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Turn email and SMS notifications on or off for the signed-in account."""
    preferences = crud_user.update_notification_preferences(
        db,
        current_user.user_id,
        email_notifications=body.email_notifications,
        sms_notifications=body.sms_notifications,
    )
    if preferences is None:
        raise error_response("User not found", {"user_id": "not_found"}, status.HTTP_404_NOT_FOUND)
    return preferences


@router.put("/notifications/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT)
def mark_notification_read(
    notification_id: int,
    service: NotificationService = Depends(get_notification_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Mark a notification as read. Marking an already-read one is a no-op."""
    if not service.mark_notification_as_read(notification_id, current_user.user_id):
        raise error_response(
            "Notification not found",
            {"notification_id": "not_found"},
            status.HTTP_404_NOT_FOUND,
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/notifications/stream")
async def stream_notifications(
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
):
    """Server-Sent Events stream of notifications pushed to this account."""
    heartbeat = max(1, settings.SSE_KEEPALIVE_SECONDS)
    sub = sse_broker.subscribe(current_user.user_id, current_user.account_type)

    async def _aiter_events():
        try:
            hello = {
                "type": "connected",
                "message": "SSE connection established",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
            yield f"data: {json.dumps(hello)}\n\n"
            while True:
                if await request.is_disconnected():
                    break
                try:
                    event = await asyncio.wait_for(sub.queue.get(), timeout=heartbeat)
                except asyncio.TimeoutError:
                    # Heartbeat for proxies (Cloudflare/Fly/Nginx)
                    yield f": keepalive {int(time.time())}\n\n"
                    continue
                yield f"data: {json.dumps(event, default=str)}\n\n"
        finally:
            sse_broker.unsubscribe(sub)

    return StreamingResponse(_aiter_events(), media_type="text/event-stream", headers={
        "Cache-Control": "no-cache, private",
        "Connection": "keep-alive",
        "X-Accel-Buffering": "no",  # Nginx: disable response buffering
        "Vary": "Authorization, Cookie",  # Per-user stream
    })


@router.get("/admin/notifications", response_model=List[schemas.AdminNotificationResponse])
def read_admin_notifications(
    limit: int = Query(50, ge=1, le=200),
    unread_only: bool = False,
    db: Session = Depends(get_db),
    _: CurrentUser = Depends(require_admin),
):
    return crud_notification.get_admin_notifications(db, limit=limit, unread_only=unread_only)


@router.post(
    "/admin/notifications",
    response_model=schemas.NotificationResult,
    status_code=status.HTTP_201_CREATED,
)
def create_admin_notification(
    body: schemas.AdminNotificationCreate,
    service: NotificationService = Depends(get_notification_service),
    _: CurrentUser = Depends(require_admin),
):
    result = service.create_admin_notification(
        body.type,
        body.title,
        body.message,
        entity_type=body.entity_type,
        entity_id=body.entity_id,
        should_send_email=body.should_send_email,
    )
    if not result.success:
        raise error_response(
            "Could not create admin notification",
            {"admin_notification": result.error or "failed"},
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    return result


@router.put("/admin/notifications/read", response_model=schemas.ReadAllResponse)
def mark_admin_notifications_read(
    body: schemas.AdminMarkReadRequest,
    db: Session = Depends(get_db),
    _: CurrentUser = Depends(require_admin),
):
    if not body.mark_all and not body.notification_ids:
        raise error_response(
            "Provide notification_ids or set mark_all",
            {"notification_ids": "required"},
            status.HTTP_400_BAD_REQUEST,
        )
    updated = crud_notification.mark_admin_notifications_as_read(
        db,
        notification_ids=body.notification_ids,
        mark_all=body.mark_all,
        type=body.type,
    )
    return {"updated": updated}


@router.post("/admin/notifications/system", response_model=schemas.SystemNotificationResult)
def broadcast_system_notification(
    body: schemas.SystemNotificationCreate,
    service: NotificationService = Depends(get_notification_service),
    _: CurrentUser = Depends(require_admin),
):
    return send_system_notification(service, body.kind, body.title, body.message, body.user_ids)


@router.post("/notifications/reminders/process", response_model=schemas.ReminderRunResponse)
def process_reminders(
    db: Session = Depends(get_db),
    _: CurrentUser = Depends(require_admin),
):
    """Run one reminder pass on demand (cron or admin tooling)."""
    summary = run_reminder_maintenance(db)
    logger.info("Reminder run summary: %s", summary)
    return summary
