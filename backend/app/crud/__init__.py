from . import crud_booking, crud_booking_reminder, crud_notification, crud_user

__all__ = [
    "crud_booking",
    "crud_booking_reminder",
    "crud_notification",
    "crud_user",
]
