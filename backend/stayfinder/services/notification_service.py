"""Templated plain-text email notifications over SMTP.

Notifications are side effects: they run as FastAPI background tasks after
the response is sent, and a failed send is logged and swallowed so it can
never undo the booking or review that triggered it. When SMTP credentials are
not configured every send is skipped with a warning.

Callers pass plain values (strings, dates, numbers), never ORM instances,
because the request's database session is closed by the time a background
task runs.
"""

import logging
import smtplib
import ssl
from email.message import EmailMessage

from stayfinder.config import settings

logger = logging.getLogger(__name__)

TEMPLATES = {
    "new_booking_request": {
        "subject": "New Booking Request - {app_name}",
        "body": (
            "Hello {host_name},\n\n"
            "{guest_name} has requested to book {property_title}.\n\n"
            "Booking Details:\n"
            "- Check-in: {check_in}\n"
            "- Check-out: {check_out}\n"
            "- Guests: {num_guests}\n"
            "- Total Price: {total_price} {currency}\n\n"
            "Review and confirm the request at {frontend_url}/host/bookings\n\n"
            "Best regards,\nThe {app_name} Team"
        ),
    },
    "booking_confirmed": {
        "subject": "Booking Confirmation - {app_name}",
        "body": (
            "Dear {guest_name},\n\n"
            "Your booking at {property_title} has been confirmed.\n\n"
            "Booking Details:\n"
            "- Booking ID: {booking_id}\n"
            "- Check-in: {check_in}\n"
            "- Check-out: {check_out}\n"
            "- Guests: {num_guests}\n"
            "- Total Price: {total_price} {currency}\n\n"
            "We hope you enjoy your stay!\n\n"
            "Best regards,\nThe {app_name} Team"
        ),
    },
    "booking_cancelled": {
        "subject": "Booking Cancelled - {app_name}",
        "body": (
            "Hello {recipient_name},\n\n"
            "The booking at {property_title} ({check_in} to {check_out}) "
            "has been cancelled by the {cancelled_by}.\n\n"
            "Reason: {reason}\n\n"
            "Best regards,\nThe {app_name} Team"
        ),
    },
    "password_reset": {
        "subject": "Password Reset Request - {app_name}",
        "body": (
            "Hello {name},\n\n"
            "We received a request to reset your password. Use the link below "
            "within {expires_minutes} minutes:\n\n"
            "{reset_url}\n\n"
            "If you didn't request this password reset, please ignore this email.\n\n"
            "Best regards,\nThe {app_name} Team"
        ),
    },
    "new_review": {
        "subject": "New Review for Your Property - {app_name}",
        "body": (
            "Hello {host_name},\n\n"
            "{reviewer_name} left a {rating}-star review for {property_title}:\n\n"
            '"{comment}"\n\n'
            "Reply to the review at {frontend_url}/host/properties/{property_id}\n\n"
            "Best regards,\nThe {app_name} Team"
        ),
    },
}


def render_template(template: str, **variables) -> tuple[str, str]:
    """Return ``(subject, body)`` for ``template`` filled with ``variables``.

    ``app_name`` and ``frontend_url`` are always available.
    """
    try:
        entry = TEMPLATES[template]
    except KeyError:
        raise ValueError(f"Unknown email template: {template!r}") from None

    context = {"app_name": settings.app_name, "frontend_url": settings.frontend_url, **variables}
    return entry["subject"].format(**context), entry["body"].format(**context)


def _build_message(to: str, subject: str, body: str) -> EmailMessage:
    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = settings.email_from
    message["To"] = to
    message.set_content(body)
    return message


def send_email(to: str, subject: str, body: str) -> bool:
    """Send one message. Returns False (after logging) instead of raising."""
    if not settings.email_enabled:
        logger.warning("SMTP credentials not configured; skipping email %r to %s", subject, to)
        return False

    message = _build_message(to, subject, body)
    try:
        if settings.smtp_port == 465:
            with smtplib.SMTP_SSL(
                settings.smtp_host,
                settings.smtp_port,
                timeout=settings.smtp_timeout_seconds,
                context=ssl.create_default_context(),
            ) as server:
                server.login(settings.smtp_user, settings.smtp_password)
                server.send_message(message)
        else:
            with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout_seconds) as server:
                server.starttls(context=ssl.create_default_context())
                server.login(settings.smtp_user, settings.smtp_password)
                server.send_message(message)
    except (smtplib.SMTPException, OSError):
        logger.exception("Failed to send email %r to %s", subject, to)
        return False

    logger.info("Email %r sent to %s", subject, to)
    return True


def send_templated_email(to: str, template: str, **variables) -> bool:
    """Render ``template`` and send it; the background-task entry point."""
    subject, body = render_template(template, **variables)
    return send_email(to, subject, body)
