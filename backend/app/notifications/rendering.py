"""Email bodies for notifications.

Everything here is pure: callers pass already-fetched names, text and links,
and get back subject, HTML and plain-text parts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from html import escape

_STYLE = (
    "body{font-family:Arial,sans-serif;line-height:1.6;color:#333;margin:0;padding:0}"
    ".container{max-width:600px;margin:0 auto;padding:20px}"
    ".header{background-color:#10B981;padding:20px;text-align:center}"
    ".header h1{color:#fff;margin:0;font-size:24px}"
    ".content{padding:20px;background-color:#fff}"
    ".footer{background-color:#f5f5f5;padding:15px;text-align:center;font-size:12px;color:#666}"
    ".badge{display:inline-block;background-color:#ECFDF5;color:#047857;padding:4px 12px;border-radius:12px;font-size:13px}"
    ".button{display:inline-block;background-color:#10B981;color:#fff;padding:12px 24px;"
    "text-decoration:none;border-radius:25px;margin:20px 0;font-weight:normal}"
)


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str


def render_base_email(content: str, year: int | None = None) -> str:
    """Wrap ``content`` in the shared RainbowPaws layout."""
    year = year or datetime.now().year
    return (
        '<!DOCTYPE html><html lang="en"><head><meta charset="UTF-8">'
        '<meta name="viewport" content="width=device-width, initial-scale=1.0">'
        f"<title>RainbowPaws Notification</title><style>{_STYLE}</style></head>"
        '<body><div class="container"><div class="header"><h1>RainbowPaws</h1></div>'
        f'<div class="content">{content}</div>'
        f'<div class="footer"><p>&copy; {year} RainbowPaws - Pet Memorial Services</p>'
        "<p>This is an automated message, please do not reply to this email.</p></div>"
        "</div></body></html>"
    )


def _button(url: str | None, label: str) -> str:
    if not url:
        return ""
    return f'<div style="text-align:center"><a href="{escape(url)}" class="button">{escape(label)}</a></div>'


def _absolute(app_url: str, link: str | None) -> str | None:
    return f"{app_url.rstrip('/')}{link}" if link else None


def _body(heading: str, first_name: str | None, title: str, message: str, extra: str = "") -> str:
    return (
        f"<h2>{escape(heading)}</h2>"
        f"{extra}"
        f"<p>Hello {escape(first_name or 'there')},</p>"
        f"<h3>{escape(title)}</h3>"
        f"<p>{escape(message)}</p>"
    )


def render_user_email(
    first_name: str | None,
    title: str,
    message: str,
    link: str | None,
    app_url: str,
) -> RenderedEmail:
    url = _absolute(app_url, link)
    html = render_base_email(_body("Notification", first_name, title, message) + _button(url, "View Details"))
    text = f"Rainbow Paws Notification\n\nHello {first_name or 'there'},\n\n{title}\n\n{message}"
    if url:
        text += f"\n\nView details: {url}"
    return RenderedEmail(subject=title, html=html, text=text)


def render_business_email(
    business_name: str | None,
    first_name: str | None,
    title: str,
    message: str,
    link: str | None,
    app_url: str,
    subject: str | None = None,
) -> RenderedEmail:
    url = _absolute(app_url, link)
    badge = f'<p><span class="badge">{escape(business_name)}</span></p>' if business_name else ""
    html = render_base_email(
        _body("Business Notification", first_name, title, message, extra=badge) + _button(url, "View Details")
    )
    text = f"Hello {first_name or 'there'},\n\n{title}\n\n{message}"
    if url:
        text += f"\n\nBusiness Portal Link: {url}"
    return RenderedEmail(subject=subject or f"[Rainbow Paws] {title}", html=html, text=text)


def admin_button_label(notification_type: str) -> str:
    return "Review Refund" if notification_type == "refund_request" else "View Details"


def render_admin_email(
    first_name: str | None,
    notification_type: str,
    title: str,
    message: str,
    link: str | None,
    app_url: str,
    subject: str | None = None,
) -> RenderedEmail:
    url = _absolute(app_url, link)
    html = render_base_email(
        _body("Admin Notification", first_name, title, message) + _button(url, admin_button_label(notification_type))
    )
    text = f"Hello {first_name or 'there'},\n\n{title}\n\n{message}"
    if url:
        text += f"\n\nAdmin Panel Link: {url}"
    return RenderedEmail(subject=subject or f"[Rainbow Paws Admin] {title}", html=html, text=text)
