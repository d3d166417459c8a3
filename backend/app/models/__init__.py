from .notification import (
    AdminNotification,
    BookingNotificationKind,
    BookingReminder,
    Notification,
    NotificationSeverity,
    PaymentNotificationKind,
    ReminderType,
    SystemNotificationKind,
)

__all__ = [
    "AdminNotification",
    "BookingNotificationKind",
    "BookingReminder",
    "Notification",
    "NotificationSeverity",
    "PaymentNotificationKind",
    "ReminderType",
    "SystemNotificationKind",
]
