"""Transactional booking emails sent alongside booking notifications."""

from __future__ import annotations

from dataclasses import dataclass
from html import escape

from ..notifications.rendering import RenderedEmail, render_base_email

STATUS_TEXT = {
    "pending": "pending confirmation",
    "confirmed": "confirmed",
    "in_progress": "in progress",
    "completed": "completed",
    "cancelled": "cancelled",
}

STATUS_INFO = {
    "pending": "Your booking has been submitted and is awaiting confirmation from the service provider.",
    "confirmed": "We have confirmed your booking. Please arrive on time for your appointment.",
    "in_progress": "Your pet is being cared for with the utmost respect and compassion.",
    "completed": "Your service has been completed. Thank you for choosing our services during this difficult time.",
    "cancelled": "If you have any questions about this cancellation, please contact us.",
}

TIMELINE_STEPS = [
    ("pending", "Booking Created", "Your booking has been submitted"),
    ("confirmed", "Booking Confirmed", "We have confirmed your booking"),
    ("in_progress", "Service in Progress", "Your pet is being cared for"),
    ("completed", "Service Completed", "Your service has been completed"),
]


@dataclass
class BookingEmailDetails:
    customer_name: str
    service_name: str
    provider_name: str
    booking_date: str
    booking_time: str
    pet_name: str
    booking_id: int
    app_url: str
    status: str = "pending"
    notes: str | None = None


def _details_box(d: BookingEmailDetails) -> str:
    rows = [
        ("Service", d.service_name),
        ("Provider", d.provider_name),
        ("Date", d.booking_date),
        ("Time", d.booking_time),
        ("Pet", d.pet_name),
        ("Booking ID", str(d.booking_id)),
    ]
    if d.notes:
        rows.append(("Notes", d.notes))
    items = "".join(f"<p><strong>{label}:</strong> {escape(value)}</p>" for label, value in rows)
    return (
        '<div style="background-color:#f8fafc;border-left:4px solid #10B981;padding:15px;margin:20px 0">'
        f'<h3 style="margin-top:0">Booking Details</h3>{items}</div>'
    )


def _view_booking(app_url: str) -> str:
    return (
        f'<div style="text-align:center"><a href="{escape(app_url)}/user/furparent_dashboard/bookings" '
        'class="button">View Booking</a></div>'
    )


def timeline_html(current_status: str) -> str:
    """Progress dots for the booking lifecycle; empty for unknown states."""
    ids = [step[0] for step in TIMELINE_STEPS]
    if current_status not in ids:
        return ""
    current = ids.index(current_status)
    cells = []
    for index, (_, title, description) in enumerate(TIMELINE_STEPS):
        colour = "#10B981" if index <= current else "#d1d5db"
        weight = "bold" if index == current else "normal"
        cells.append(
            '<td style="text-align:center;vertical-align:top;width:25%">'
            f'<div style="width:16px;height:16px;border-radius:50%;background-color:{colour};margin:0 auto"></div>'
            f'<p style="font-size:13px;font-weight:{weight};margin:8px 0 2px">{title}</p>'
            f'<p style="font-size:11px;color:#6b7280;margin:0">{description}</p></td>'
        )
    return (
        '<div style="margin:30px 0;padding:20px;background-color:#f8fafc;border-radius:8px">'
        '<h3 style="margin-top:0;color:#1f2937;text-align:center;font-size:18px">Service Progress</h3>'
        '<table cellpadding="0" cellspacing="0" border="0" style="width:100%;max-width:500px;margin:20px auto">'
        f'<tr>{"".join(cells)}</tr></table></div>'
    )


def booking_confirmation_email(d: BookingEmailDetails) -> RenderedEmail:
    content = (
        "<h2>Booking Confirmation</h2>"
        f"<p>Dear {escape(d.customer_name)},</p>"
        "<p>Your booking has been successfully created and is now pending confirmation from the service provider.</p>"
        f"{_details_box(d)}"
        "<p>You will receive another email once the service provider confirms your booking.</p>"
        f"{_view_booking(d.app_url)}"
        "<p>Thank you for choosing Rainbow Paws for your pet memorial needs.</p>"
    )
    text = (
        f"Dear {d.customer_name},\n\nYour booking for {d.pet_name}'s {d.service_name} with {d.provider_name} "
        f"on {d.booking_date} at {d.booking_time} has been created and is pending confirmation.\n\n"
        f"Booking ID: {d.booking_id}\n\nView booking: {d.app_url}/user/furparent_dashboard/bookings"
    )
    return RenderedEmail(subject="Booking Confirmation - Rainbow Paws", html=render_base_email(content), text=text)


def booking_status_update_email(d: BookingEmailDetails) -> RenderedEmail:
    status_text = STATUS_TEXT.get(d.status, d.status.replace("_", " "))
    heading = f"Booking {status_text[:1].upper()}{status_text[1:]}"
    info = STATUS_INFO.get(d.status, "")
    timeline = "" if d.status == "cancelled" else timeline_html(d.status)
    content = (
        f"<h2>{escape(heading)}</h2>"
        f"<p>Dear {escape(d.customer_name)},</p>"
        f"<p>Your booking has been {escape(status_text)}.</p>"
        f"{timeline}{_details_box(d)}"
        f"<p>{escape(info)}</p>"
        f"{_view_booking(d.app_url)}"
        "<p>Thank you for choosing Rainbow Paws for your pet memorial needs.</p>"
    )
    text = f"Dear {d.customer_name},\n\nYour booking for {d.pet_name}'s {d.service_name} has been {status_text}.\n\n{info}"
    if d.notes:
        text += f"\n\nNotes: {d.notes}"
    text += f"\n\nBooking ID: {d.booking_id}\n\nView booking: {d.app_url}/user/furparent_dashboard/bookings"
    return RenderedEmail(subject=f"{heading} - Rainbow Paws", html=render_base_email(content), text=text)
