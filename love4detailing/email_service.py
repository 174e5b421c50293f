"""
Email Service using Resend
Booking emails are written in MJML and compiled to HTML before sending
"""

import logging
from typing import Optional, Union

import resend
from fastapi import BackgroundTasks
from mjml import mjml_to_html

from . import config
from .email_templates import (
    admin_new_booking_template,
    booking_cancelled_template,
    booking_confirmation_template,
    booking_rescheduled_template,
)

logger = logging.getLogger(__name__)

resend.api_key = config.RESEND_API_KEY


class EmailServiceError(Exception):
    """Email could not be prepared or sent"""


def is_email_configured() -> bool:
    return bool(config.RESEND_API_KEY)


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise EmailServiceError(f"Failed to compile MJML template: {str(e)}") from e

    # mjml returns an object exposing .html/.errors; older releases return a dict
    if isinstance(result, dict):
        errors, html = result.get("errors"), result.get("html", "")
    else:
        errors, html = getattr(result, "errors", None), getattr(result, "html", str(result))
    if errors:
        logger.warning(f"MJML compilation warnings: {errors}")
    return html


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address

    Returns:
        Send response dict
    """
    if not is_email_configured():
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise EmailServiceError("Email service not configured")

    resend.api_key = config.RESEND_API_KEY
    html_content = compile_mjml_to_html(mjml_content)
    recipients = [to] if isinstance(to, str) else to

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = resend.Emails.send(
            {
                "from": from_address or config.EMAIL_FROM_ADDRESS,
                "to": recipients,
                "subject": subject,
                "html": html_content,
            }
        )
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise EmailServiceError(f"Failed to send email: {str(e)}") from e


# ============================================
# Booking emails
# ============================================


async def send_booking_confirmation(data: dict) -> dict:
    """Confirmation to the customer plus a notification to the business"""
    response = await send_email(
        to=data["customer_email"],
        subject=f"Booking confirmed - {data['booking_reference']}",
        mjml_content=booking_confirmation_template(data),
    )
    try:
        await send_email(
            to=data["admin_email"],
            subject=f"New booking {data['booking_reference']} - {data['booking_date']}",
            mjml_content=admin_new_booking_template(data),
        )
    except EmailServiceError as e:
        logger.error(f"❌ Admin booking notification failed: {e}")
    return response


async def send_booking_cancellation(data: dict) -> dict:
    return await send_email(
        to=data["customer_email"],
        subject=f"Booking cancelled - {data['booking_reference']}",
        mjml_content=booking_cancelled_template(data),
    )


async def send_booking_rescheduled(data: dict) -> dict:
    return await send_email(
        to=data["customer_email"],
        subject=f"Booking rescheduled - {data['booking_reference']}",
        mjml_content=booking_rescheduled_template(data),
    )


async def _deliver(sender, data: dict, label: str) -> None:
    """Background task wrapper: a failed send is logged, never raised into the server"""
    try:
        await sender(data)
    except Exception as e:
        logger.error(f"❌ {label} email for {data.get('booking_reference')} failed: {e}")


def queue_booking_confirmation(background_tasks: BackgroundTasks, data: dict) -> None:
    """
    Schedule the confirmation emails to run after the response is sent.

    Raises:
        EmailServiceError: Email is not configured, or the message cannot be rendered
    """
    if not is_email_configured():
        raise EmailServiceError("Email service not configured")
    # Render now so template errors surface in the booking response
    booking_confirmation_template(data)
    background_tasks.add_task(_deliver, send_booking_confirmation, data, "Booking confirmation")


def queue_booking_cancellation(background_tasks: BackgroundTasks, data: dict) -> None:
    if not is_email_configured():
        raise EmailServiceError("Email service not configured")
    background_tasks.add_task(_deliver, send_booking_cancellation, data, "Booking cancellation")


def queue_booking_rescheduled(background_tasks: BackgroundTasks, data: dict) -> None:
    if not is_email_configured():
        raise EmailServiceError("Email service not configured")
    background_tasks.add_task(_deliver, send_booking_rescheduled, data, "Booking rescheduled")
