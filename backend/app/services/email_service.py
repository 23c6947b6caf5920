"""
Transactional email over SMTP.

smtplib is blocking, so each send runs in a worker thread. Sends are always
scheduled as background jobs: a failure raises DependencyFailure so the task
runner can retry, and never reaches the request that triggered it. Without
SMTP credentials the message is logged and skipped.
"""

import asyncio
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from app.core.config import get_settings
from app.core.exceptions import DependencyFailure
from app.core.logging import get_logger

logger = get_logger(__name__)


def _deliver(to_email: str, subject: str, html_body: str) -> None:
    settings = get_settings()
    msg = MIMEMultipart("alternative")
    msg.attach(MIMEText(html_body, "html"))
    msg["Subject"] = subject
    msg["From"] = settings.EMAIL_FROM
    msg["To"] = to_email

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as server:
        if settings.SMTP_PORT != 25:
            server.starttls()
        server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        server.sendmail(settings.EMAIL_FROM, [to_email], msg.as_string())


async def send_email(to_email: str, subject: str, html_body: str) -> bool:
    """Send one HTML email. Returns False when SMTP is not configured."""
    settings = get_settings()
    if not settings.SMTP_USER or not settings.SMTP_PASSWORD:
        logger.warning("email_skipped", reason="smtp_not_configured", to=to_email, subject=subject)
        return False

    try:
        await asyncio.to_thread(_deliver, to_email, subject, html_body)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("email_send_failed", to=to_email, subject=subject, error=str(e))
        raise DependencyFailure(f"Email delivery failed: {e}")

    logger.info("email_sent", to=to_email, subject=subject)
    return True


def _money(value) -> str:
    return f"LKR {float(value or 0):,.2f}"


def _detail_rows(rows: list[tuple[str, str]]) -> str:
    return "".join(f"<p><strong>{label}:</strong> {escape(str(value))}</p>" for label, value in rows if value)


def booking_confirmation_email(user_name: str, target_name: str, booking, location: str = "") -> tuple[str, str]:
    """Subject and HTML body for a newly created booking."""
    settings = get_settings()
    when = booking.date.strftime("%b %d, %Y")
    rows = [
        ("Booking ID", booking.booking_code),
        ("Date", when),
        ("Time", booking.time_slot),
        ("Location", location),
        ("Participants", str(booking.participants)),
        ("Transportation", "Requested (details to follow)" if booking.needs_transportation else ""),
        ("Special Requests", booking.special_requests or ""),
    ]
    equipment = "".join(
        f"<li>{item['quantity']}x {escape(item['name'])}</li>" for item in booking.rented_equipment or []
    )
    equipment_html = f"<h3>Rented Equipment:</h3><ul>{equipment}</ul>" if equipment else ""

    subject = f"Booking Confirmed: {target_name} - {when}"
    html_body = f"""
        <div style="font-family: sans-serif; line-height: 1.6;">
            <h1 style="color: #059669;">Booking Confirmed!</h1>
            <p>Hi {escape(user_name or 'there')},</p>
            <p>Your booking for <strong>{escape(target_name)}</strong> is confirmed. Here are the details:</p>
            <div style="background-color: #f3f4f6; padding: 15px; border-left: 4px solid #10B981;">
                {_detail_rows(rows)}
            </div>
            {equipment_html}
            <p><strong>Total Cost:</strong> {_money(booking.total_cost)}</p>
            <p><strong>Payment Status:</strong> {escape(booking.payment_status)}</p>
            <p><a href="{settings.FRONTEND_URL}/bookings/{booking.id}">View Booking Details</a></p>
            <p style="font-size: 0.8em; color: #6b7280;">If you did not make this booking, please contact our support team.</p>
        </div>
    """
    return subject, html_body


def booking_status_email(user_name: str, target_name: str, booking) -> tuple[str, str]:
    """Subject and HTML body for a status change (cancellation, completion, no-show)."""
    settings = get_settings()
    when = booking.date.strftime("%b %d, %Y")
    status_label = booking.status.replace("-", " ").title()
    refund_html = (
        "<p>A refund for this booking has been flagged and will be processed separately.</p>"
        if booking.refund_due
        else ""
    )
    subject = f"Booking {status_label}: {target_name} - {when}"
    html_body = f"""
        <div style="font-family: sans-serif; line-height: 1.6;">
            <h1>Booking {status_label}</h1>
            <p>Hi {escape(user_name or 'there')},</p>
            <p>Your booking <strong>#{escape(booking.booking_code)}</strong> for
               <strong>{escape(target_name)}</strong> on {when} at {escape(booking.time_slot)}
               is now <strong>{status_label.lower()}</strong>.</p>
            {refund_html}
            <p><a href="{settings.FRONTEND_URL}/bookings/{booking.id}">View Booking Details</a></p>
        </div>
    """
    return subject, html_body
