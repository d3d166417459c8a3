from .notification import (
    AdminMarkReadRequest,
    AdminNotificationCreate,
    AdminNotificationResponse,
    BookingContext,
    MarkReadRequest,
    NotificationPreferences,
    NotificationResponse,
    NotificationResult,
    ReadAllResponse,
    ReminderRunResponse,
    ReminderStats,
    SystemNotificationCreate,
    SystemNotificationResult,
    UnreadCountResponse,
)

__all__ = [
    "AdminMarkReadRequest",
    "AdminNotificationCreate",
    "AdminNotificationResponse",
    "BookingContext",
    "MarkReadRequest",
    "NotificationPreferences",
    "NotificationResponse",
    "NotificationResult",
    "ReadAllResponse",
    "ReminderRunResponse",
    "ReminderStats",
    "SystemNotificationCreate",
    "SystemNotificationResult",
    "UnreadCountResponse",
]
