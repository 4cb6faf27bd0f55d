# flatmates/utils/email.py

import logging
import secrets

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from flatmates import config
from flatmates.exceptions import DeliveryError

logger = logging.getLogger("uvicorn.error")

OTP_SUBJECT = "Password Reset OTP - Flatmates"

OTP_TEMPLATE = """\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #1976d2;">Password Reset Request</h2>
  <p>You have requested to reset your password. Please use the following OTP to proceed:</p>
  <div style="background-color: #f5f5f5; padding: 20px; text-align: center; margin: 20px 0;">
    <h1 style="color: #1976d2; letter-spacing: 5px; margin: 0;">{otp}</h1>
  </div>
  <p>This OTP will expire in <strong>10 minutes</strong>.</p>
  <p>If you did not request a password reset, please ignore this email.</p>
  <hr style="border: none; border-top: 1px solid #ddd; margin: 20px 0;">
  <p style="color: #666; font-size: 12px;">This is an automated email. Please do not reply.</p>
</div>
"""


def generate_otp() -> str:
    """Uniformly random 6-digit code in [100000, 999999]."""
    return str(100000 + secrets.randbelow(900000))


def render_otp_email(otp: str) -> str:
    return OTP_TEMPLATE.format(otp=otp)


def send_otp_email(to_email: str, otp: str):
    """Send the reset code. Raises DeliveryError if the mail cannot go out."""
    if not config.SENDGRID_API_KEY or not config.EMAIL_USER:
        logger.error("SENDGRID_API_KEY and EMAIL_USER must be set to send email")
        raise DeliveryError("Email transport is not configured")

    message = Mail(
        from_email=config.EMAIL_USER,
        to_emails=to_email,
        subject=OTP_SUBJECT,
        html_content=render_otp_email(otp),
    )
    try:
        sg = SendGridAPIClient(config.SENDGRID_API_KEY)
        response = sg.send(message)
    except Exception as e:
        # python-http-client raises HTTPError subclasses for 4xx/5xx, urllib errors otherwise
        logger.error("Error sending OTP email to %s: %s", to_email, e)
        raise DeliveryError("Failed to send OTP email") from e

    if response.status_code >= 400:
        logger.error("SendGrid rejected OTP email to %s (HTTP %s): %s",
                     to_email, response.status_code, response.body)
        raise DeliveryError("Failed to send OTP email")
    logger.info("OTP email sent to %s, status code: %s", to_email, response.status_code)
