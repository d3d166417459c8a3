from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text, UniqueConstraint, false, func
import enum

from ..database import Base
from .base import BaseModel


class NotificationSeverity(str, enum.Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class ReminderType(str, enum.Enum):
    DAY_BEFORE = "24h"
    HOUR_BEFORE = "1h"


class BookingNotificationKind(str, enum.Enum):
    BOOKING_CREATED = "booking_created"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_PENDING = "booking_pending"
    BOOKING_IN_PROGRESS = "booking_in_progress"
    BOOKING_COMPLETED = "booking_completed"
    BOOKING_CANCELLED = "booking_cancelled"
    REVIEW_REQUEST = "review_request"
    REMINDER_24H = "reminder_24h"
    REMINDER_1H = "reminder_1h"


class PaymentNotificationKind(str, enum.Enum):
    PAYMENT_PENDING = "payment_pending"
    PAYMENT_CONFIRMED = "payment_confirmed"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_REFUNDED = "payment_refunded"


class SystemNotificationKind(str, enum.Enum):
    SYSTEM_MAINTENANCE = "system_maintenance"
    SERVICE_UPDATE = "service_update"
    POLICY_UPDATE = "policy_update"


class Notification(BaseModel):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(20), nullable=False, default=NotificationSeverity.INFO.value)
    is_read = Column(Boolean, nullable=False, default=False, server_default=false(), index=True)
    link = Column(String(255), nullable=True)

    __table_args__ = (Index("idx_notifications_created_at", "created_at"),)


class AdminNotification(Base):
    __tablename__ = "admin_notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String(50), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(Integer, nullable=True)
    link = Column(String(255), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False, server_default=false(), index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)


class BookingReminder(Base):
    __tablename__ = "booking_reminders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(Integer, nullable=False, index=True)
    reminder_type = Column(String(10), nullable=False)
    scheduled_time = Column(DateTime, nullable=False, index=True)
    sent = Column(Boolean, nullable=False, default=False, server_default=false(), index=True)
    sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("booking_id", "reminder_type", name="uq_booking_reminders_booking_type"),
    )
