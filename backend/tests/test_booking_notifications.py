import pytest
from sqlalchemy import text

from app.crud import crud_booking
from app.notifications.intents.booking_lifecycle import booking_message, send_booking_notification

BOOKING_LINK = "/user/furparent_dashboard/bookings?bookingId=42"


def _notifications(rows, user_id):
    return rows("SELECT * FROM notifications WHERE user_id = :user_id ORDER BY id", user_id=user_id)


def test_cancelled_by_provider_with_reason(service, seed, rows):
    seed.marketplace()

    result = send_booking_notification(
        service, 42, "booking_cancelled", {"cancelled_by": "provider", "reason": "Equipment failure"}
    )

    assert result.success is True
    owner = _notifications(rows, 7)
    assert len(owner) == 1
    assert owner[0]["title"] == "Booking Cancelled"
    assert owner[0]["type"] == "warning"
    assert owner[0]["link"] == BOOKING_LINK
    assert "cancelled by the service provider" in owner[0]["message"]
    assert "Equipment failure" in owner[0]["message"]

    provider = _notifications(rows, 20)
    assert provider[0]["message"] == "You cancelled the booking for Bella's Standard Cremation."
    assert provider[0]["link"] == "/cremation/bookings/42"


def test_cancelled_by_customer_tells_provider(service, seed, rows):
    seed.marketplace()

    send_booking_notification(service, 42, "booking_cancelled", {"reason": "Changed plans"})

    owner = _notifications(rows, 7)[0]
    assert owner["message"] == "Your booking for Bella's Standard Cremation has been cancelled. Reason: Changed plans"
    provider = _notifications(rows, 20)[0]
    assert "cancelled by the customer" in provider["message"]


def test_created_sends_one_rich_email_and_provider_echo(service, seed, rows, email_sender, live_push):
    seed.marketplace()

    result = send_booking_notification(service, 42, "booking_created")

    assert result.success is True
    owner = _notifications(rows, 7)[0]
    assert owner["title"] == "Booking Created Successfully"
    assert owner["type"] == "success"
    assert owner["message"] == (
        "Your booking for Bella's Standard Cremation with Peaceful Paws Crematory "
        "has been created and is pending confirmation."
    )
    assert [e.subject for e in email_sender.to("maria@example.com")] == ["Booking Confirmation - Rainbow Paws"]
    assert [e.subject for e in email_sender.to("center@example.com")] == ["[Rainbow Paws] New Booking Received"]
    assert [(uid, kind) for uid, kind, _ in live_push.events] == [(7, "user"), (20, "business")]


def test_confirmed_sends_status_email_and_sms(service, seed, rows, email_sender, sms_sender):
    seed.marketplace()

    send_booking_notification(service, 42, "booking_confirmed")

    owner = _notifications(rows, 7)[0]
    assert owner["message"] == (
        "Your booking for Bella's Standard Cremation on March 10, 2025 at 2:30 PM has been confirmed."
    )
    assert [e.subject for e in email_sender.sent] == ["Booking Confirmed - Rainbow Paws"]
    assert sms_sender.sent == [
        (
            "09171234567",
            "Hi Maria, your booking for Bella's Standard Cremation has been confirmed. "
            "Booking ID: 42. Thank you for choosing Rainbow Paws.",
        )
    ]
    # No provider echo for confirmations
    assert _notifications(rows, 20) == []


def test_pending_has_no_owner_email_but_alerts_provider(service, seed, rows, email_sender):
    seed.marketplace()

    send_booking_notification(service, 42, "booking_pending")

    assert _notifications(rows, 7)[0]["type"] == "warning"
    assert email_sender.to("maria@example.com") == []
    provider = _notifications(rows, 20)[0]
    assert provider["title"] == "Pending Booking Alert"
    assert provider["link"] == "/cremation/bookings?status=pending"


def test_reminder_24h_uses_plain_email(service, seed, rows, email_sender):
    seed.marketplace()

    send_booking_notification(service, 42, "reminder_24h")

    owner = _notifications(rows, 7)[0]
    assert owner["title"] == "Booking Reminder - 24 Hours"
    assert owner["message"] == (
        "Reminder: Your appointment for Bella's Standard Cremation is scheduled for tomorrow at 2:30 PM."
    )
    assert [e.subject for e in email_sender.sent] == ["Booking Reminder - 24 Hours"]


def test_reminder_1h_is_in_app_only(service, seed, rows, email_sender, sms_sender):
    seed.marketplace()

    send_booking_notification(service, 42, "reminder_1h")

    assert _notifications(rows, 7)[0]["type"] == "warning"
    assert email_sender.sent == []
    assert sms_sender.sent == []


def test_review_request_link_and_provider_name(service, seed, rows):
    seed.marketplace()

    send_booking_notification(service, 42, "review_request")

    owner = _notifications(rows, 7)[0]
    assert owner["link"] == BOOKING_LINK + "&showReview=true"
    assert owner["message"] == (
        "How was your experience with Peaceful Paws Crematory? Your feedback helps us improve our services."
    )


def test_email_preference_respected(service, seed, rows, email_sender):
    seed.marketplace()
    seed.db.execute(text("UPDATE users SET email_notifications = 0 WHERE user_id = 7"))
    seed.db.commit()

    result = send_booking_notification(service, 42, "booking_completed")

    assert result.success is True
    assert len(_notifications(rows, 7)) == 1
    assert email_sender.to("maria@example.com") == []


def test_email_failure_still_succeeds(service, seed, rows, email_sender):
    seed.marketplace()
    email_sender.fail = True

    result = send_booking_notification(service, 42, "booking_in_progress")

    assert result.success is True
    assert _notifications(rows, 7)[0]["message"] == "The Standard Cremation for Bella is now in progress."


def test_missing_booking_is_an_unsuccessful_result(service):
    result = send_booking_notification(service, 999, "booking_confirmed")

    assert result.success is False
    assert result.error == "Booking not found"


def test_unknown_kind_raises(service, seed):
    seed.marketplace()

    with pytest.raises(ValueError):
        send_booking_notification(service, 42, "booking_exploded")


def test_provider_name_falls_back_to_owner_name(db, seed):
    seed.user(7)
    seed.user(21, first_name="Rosa", last_name="Reyes", role="business")
    seed.provider(4, 21, name=None)
    seed.booking(50, 7, provider_id=4)

    booking = crud_booking.get_booking_context(db, 50)

    assert booking.provider_name == "Rosa Reyes"
    assert booking.service_name is None
    assert booking_message("booking_created", booking) == (
        "Your booking for Bella's cremation service with Rosa Reyes has been created and is pending confirmation."
    )


def test_legacy_bookings_table_is_used_as_fallback(db, seed):
    db.execute(
        text(
            "CREATE TABLE bookings (booking_id INTEGER PRIMARY KEY, user_id INTEGER, provider_id INTEGER, "
            "pet_name VARCHAR(100), booking_date DATE, booking_time TIME, total_price NUMERIC(10, 2))"
        )
    )
    db.execute(
        text(
            "INSERT INTO bookings VALUES (77, 7, NULL, 'Max', '2025-04-01', '09:00:00', 2500)"
        )
    )
    db.commit()

    booking = crud_booking.get_booking_context(db, 77)

    assert booking.id == 77
    assert booking.service_name == "Cremation Service"
    assert booking.pet_name == "Max"
    assert booking.total_amount == 2500


def test_provider_resolution_chain(db, seed):
    seed.user(20, role="business")
    seed.user(22, role="business")
    seed.provider(3, 20)
    db.execute(text("INSERT INTO businesses (id, user_id) VALUES (9, 21)"))
    db.commit()

    assert crud_booking.resolve_provider_user_id(db, 3) == 20
    assert crud_booking.resolve_provider_user_id(db, 9) == 21
    assert crud_booking.resolve_provider_user_id(db, 22) == 22
    assert crud_booking.resolve_provider_user_id(db, 404) is None
    assert crud_booking.resolve_provider_user_id(db, None) is None


def test_provider_resolution_stops_at_first_match(db):
    calls = []

    def first(db, provider_id):
        calls.append("first")
        return None

    def second(db, provider_id):
        calls.append("second")
        return 55

    def third(db, provider_id):  # pragma: no cover - must not run
        calls.append("third")
        return 66

    assert crud_booking.resolve_provider_user_id(db, 1, lookups=[first, second, third]) == 55
    assert calls == ["first", "second"]


def test_missing_lookup_table_is_skipped(db, seed):
    db.execute(text("DROP TABLE businesses"))
    db.commit()
    seed.user(22, role="business")

    assert crud_booking.resolve_provider_user_id(db, 22) == 22
