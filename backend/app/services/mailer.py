"""Outbound email over SMTP."""
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
import logging
import smtplib

from app.config import get_settings

logger = logging.getLogger(__name__)


def send_email(
    to_address: str,
    subject: str,
    body: str,
    html_body: str | None = None,
) -> bool:
    """Send an email using SMTP.

    Returns False when SMTP is not configured or delivery fails; callers
    decide whether that is fatal.
    """
    settings = get_settings()
    if not settings.smtp_host:
        logger.warning("SMTP not configured, skipping email")
        return False

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = settings.smtp_from_email
    msg["To"] = to_address

    msg.attach(MIMEText(body, "plain"))
    if html_body:
        msg.attach(MIMEText(html_body, "html"))

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
            server.starttls()
            if settings.smtp_user and settings.smtp_password:
                server.login(settings.smtp_user, settings.smtp_password)
            server.send_message(msg)
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email: {e}")
        return False
