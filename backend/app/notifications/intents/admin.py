"""Admin-facing alerts raised by registration, refund and appeal flows."""

from __future__ import annotations

from decimal import Decimal

from app.notifications.service import NotificationService
from app.schemas.notification import NotificationResult


def send_new_application_alert(
    service: NotificationService, business_name: str, provider_id: int
) -> NotificationResult:
    return service.create_admin_notification(
        "new_cremation_center",
        "New Cremation Center Registration",
        f"{business_name} has registered and is awaiting application review.",
        entity_type="service_provider",
        entity_id=provider_id,
    )


def send_refund_request_alert(
    service: NotificationService,
    refund_id: int,
    booking_id: int,
    pet_name: str | None,
    amount: Decimal | float,
    reason: str | None = None,
) -> NotificationResult:
    message = (
        f"A refund of ₱{Decimal(str(amount)).quantize(Decimal('0.01'))} was requested for booking "
        f"#{booking_id} ({pet_name or 'unnamed pet'})."
    )
    if reason:
        message += f" Reason: {reason}"
    return service.create_admin_notification(
        "refund_request",
        "New Refund Request",
        message,
        entity_type="refund",
        entity_id=refund_id,
    )


def send_appeal_alert(
    service: NotificationService,
    user_id: int,
    user_name: str,
    account_type: str,
    subject: str,
) -> NotificationResult:
    """``account_type`` is ``furparent`` or ``cremation``; it picks the admin list linked."""
    return service.create_admin_notification(
        "new_appeal",
        "New Account Appeal",
        f"{user_name} submitted an appeal: {subject}",
        entity_type=account_type,
        entity_id=user_id,
    )
