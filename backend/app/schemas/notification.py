from datetime import date, datetime, time, timedelta
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from ..models.notification import NotificationSeverity, SystemNotificationKind


class NotificationResponse(BaseModel):
    id: int
    user_id: int
    title: str
    message: str
    type: NotificationSeverity
    is_read: bool
    link: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class AdminNotificationResponse(BaseModel):
    id: int
    type: str
    title: str
    message: str
    entity_type: str | None = None
    entity_id: int | None = None
    link: str | None = None
    is_read: bool
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class AdminNotificationCreate(BaseModel):
    type: str
    title: str
    message: str
    entity_type: str | None = None
    entity_id: int | None = None
    should_send_email: bool = True


class SystemNotificationCreate(BaseModel):
    kind: SystemNotificationKind
    title: str
    message: str
    user_ids: list[int] | None = None


class NotificationResult(BaseModel):
    """Uniform outcome of every notification-creating operation."""

    success: bool
    notification_id: int | None = None
    error: str | None = None


class SystemNotificationResult(BaseModel):
    success: bool
    created: int = 0
    failed: int = 0


class UnreadCountResponse(BaseModel):
    count: int


class ReadAllResponse(BaseModel):
    updated: int


class MarkReadRequest(BaseModel):
    notification_ids: list[int] = Field(min_length=1)


class AdminMarkReadRequest(BaseModel):
    """Either a list of ids or ``mark_all``, optionally narrowed by ``type``."""

    notification_ids: list[int] | None = None
    mark_all: bool = False
    type: str | None = None


class NotificationPreferences(BaseModel):
    email_notifications: bool
    sms_notifications: bool


class ReminderStats(BaseModel):
    total: int = 0
    pending: int = 0
    sent: int = 0
    overdue: int = 0


class ReminderRunResponse(BaseModel):
    processed: int = 0
    failed: int = 0
    review_requests: int = 0
    stats: ReminderStats = Field(default_factory=ReminderStats)


class BookingContext(BaseModel):
    """Read-only view of a booking used to render notification text."""

    id: int
    user_id: int
    provider_id: int | None = None
    pet_name: str | None = None
    service_name: str | None = None
    provider_name: str | None = None
    booking_date: date | None = None
    booking_time: time | None = None
    total_amount: Decimal | None = None

    @field_validator("booking_date", mode="before")
    @classmethod
    def _date_only(cls, v):
        if isinstance(v, datetime):
            return v.date()
        if isinstance(v, str) and len(v) > 10:
            return v[:10]
        return v

    @field_validator("booking_time", mode="before")
    @classmethod
    def _time_from_interval(cls, v):
        # MySQL drivers return TIME columns as timedelta
        if isinstance(v, timedelta):
            seconds = int(v.total_seconds()) % 86400
            return time(seconds // 3600, (seconds % 3600) // 60, seconds % 60)
        return v

    @property
    def scheduled_at(self) -> datetime | None:
        if self.booking_date is None or self.booking_time is None:
            return None
        return datetime.combine(self.booking_date, self.booking_time)
