"""
Transactional email notifications.

Emails are sent through Resend. Without RESEND_API_KEY the service logs the
message as simulated and reports success, which is what development and the
test suite run with.

Notifications are side effects of the reservation workflow: they are
scheduled with dispatch() only after the workflow's transaction commits,
run as background tasks, and a failure is logged without ever reaching the
caller of the primary operation.
"""

import asyncio
import html
from datetime import datetime
from functools import lru_cache
from typing import Awaitable, Optional

import resend

from eventbook.core.config import get_settings
from eventbook.core.logging import get_logger
from eventbook.core.metrics import record_notification

logger = get_logger(__name__)

_pending_tasks: set[asyncio.Task] = set()


class EmailService:
    """Thin wrapper around the Resend API."""

    def __init__(self, api_key: str = "", from_email: str = "") -> None:
        self.api_key = api_key
        self.from_email = from_email
        self.configured = bool(api_key)
        if not self.configured:
            logger.warning("email_not_configured", message="RESEND_API_KEY missing, emails are simulated")

    async def send_email(self, to_email: str, subject: str, html_content: str, template: str = "generic") -> bool:
        if not self.configured:
            logger.info("email_simulated", to=to_email, subject=subject, template=template)
            record_notification(template, "simulated")
            return True

        params = {
            "from": self.from_email,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }
        resend.api_key = self.api_key
        # The Resend SDK is synchronous
        response = await asyncio.to_thread(resend.Emails.send, params)
        logger.info("email_sent", to=to_email, subject=subject, template=template, email_id=response.get("id"))
        record_notification(template, "sent")
        return True


@lru_cache()
def get_email_service() -> EmailService:
    settings = get_settings()
    return EmailService(api_key=settings.RESEND_API_KEY, from_email=settings.MAIL_FROM)


# ---------------------------------------------------------------------------
# Background dispatch
# ---------------------------------------------------------------------------

async def _run_guarded(awaitable: Awaitable, template: str) -> None:
    try:
        await awaitable
    except Exception as e:
        record_notification(template, "failed")
        logger.warning("notification_failed", template=template, error=str(e))


def dispatch(awaitable: Awaitable, template: str) -> None:
    """Schedule a notification without blocking the caller."""
    task = asyncio.create_task(_run_guarded(awaitable, template))
    _pending_tasks.add(task)
    task.add_done_callback(_pending_tasks.discard)


async def drain(timeout: float = 5.0) -> None:
    """Wait for in-flight notifications, e.g. on shutdown."""
    if not _pending_tasks:
        return
    done, pending = await asyncio.wait(set(_pending_tasks), timeout=timeout)
    if pending:
        logger.warning("notifications_abandoned", count=len(pending))
        for task in pending:
            task.cancel()


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

def _format_date(value: datetime) -> str:
    return value.strftime("%A, %B %d, %Y %H:%M")


def _layout(color: str, heading: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
  <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: {color}; color: white; padding: 20px; text-align: center;">
      <h1>{html.escape(heading)}</h1>
    </div>
    <div style="padding: 30px 20px; background: #f9fafb;">
      {body}
    </div>
    <div style="padding: 20px; text-align: center; font-size: 12px; color: #666;">
      <p>&copy; Event Management. All rights reserved.</p>
    </div>
  </div>
</body>
</html>"""


def _event_block(title: str, lines: list[tuple[str, str]]) -> str:
    rows = "".join(
        f"<p><strong>{html.escape(label)}:</strong> {html.escape(value)}</p>" for label, value in lines
    )
    return (
        '<div style="background: white; padding: 20px; margin: 20px 0;">'
        f"<h3>{html.escape(title)}</h3>{rows}</div>"
    )


def send_welcome(email: str, first_name: str) -> None:
    settings = get_settings()
    body = (
        f"<p>Hello {html.escape(first_name)},</p>"
        "<p>Thank you for registering! You can now browse events and make reservations.</p>"
        f'<p><a href="{html.escape(settings.APP_URL)}">Start exploring events</a></p>'
    )
    dispatch(
        get_email_service().send_email(
            email, "Welcome to Event Management!", _layout("#4f46e5", "Welcome!", body), "welcome"
        ),
        "welcome",
    )


def send_reservation_pending(email: str, first_name: str, event_title: str, event_date: datetime, seats: int) -> None:
    body = (
        f"<p>Hello {html.escape(first_name)},</p>"
        "<p>Your reservation has been received and is pending approval.</p>"
        + _event_block(event_title, [("Date", _format_date(event_date)), ("Number of seats", str(seats))])
        + "<p>You will receive a confirmation email once it is approved.</p>"
    )
    dispatch(
        get_email_service().send_email(
            email, f"Reservation Pending - {event_title}", _layout("#f59e0b", "Reservation Pending", body), "pending"
        ),
        "pending",
    )


def send_reservation_confirmed(
    email: str,
    first_name: str,
    event_title: str,
    event_date: datetime,
    location: str,
    seats: int,
) -> None:
    body = (
        f"<p>Hello {html.escape(first_name)},</p>"
        "<p>Great news! Your reservation has been confirmed.</p>"
        + _event_block(
            event_title,
            [("Date", _format_date(event_date)), ("Location", location), ("Number of seats", str(seats))],
        )
        + "<p>You can download your ticket from your dashboard.</p>"
    )
    dispatch(
        get_email_service().send_email(
            email, f"Reservation Confirmed - {event_title}", _layout("#22c55e", "Reservation Confirmed", body),
            "confirmed",
        ),
        "confirmed",
    )


def send_reservation_canceled(email: str, first_name: str, event_title: str, reason: Optional[str] = None) -> None:
    body = (
        f"<p>Hello {html.escape(first_name)},</p>"
        f"<p>Your reservation for <strong>{html.escape(event_title)}</strong> has been canceled.</p>"
    )
    if reason:
        body += f"<p><strong>Reason:</strong> {html.escape(reason)}</p>"
    dispatch(
        get_email_service().send_email(
            email, f"Reservation Canceled - {event_title}", _layout("#ef4444", "Reservation Canceled", body),
            "canceled",
        ),
        "canceled",
    )


def send_event_canceled(email: str, first_name: str, event_title: str, event_date: datetime) -> None:
    body = (
        f"<p>Hello {html.escape(first_name)},</p>"
        "<p>We are sorry to inform you that the following event has been canceled.</p>"
        + _event_block(event_title, [("Date", _format_date(event_date))])
        + "<p>Your reservation has been canceled automatically.</p>"
    )
    dispatch(
        get_email_service().send_email(
            email, f"Event Canceled - {event_title}", _layout("#ef4444", "Event Canceled", body), "event_canceled"
        ),
        "event_canceled",
    )
