import logging
import smtplib
from email.mime.text import MIMEText

from .config import settings

logger = logging.getLogger(__name__)


def send_email(to_email: str, subject: str, body: str) -> bool:
    """Send a plain-text mail; returns False when simulated or failed."""
    if not settings.smtp_username or not settings.smtp_password:
        logger.warning(f"Email simulation: To={to_email}, Subject={subject}")
        return False

    msg = MIMEText(body)
    msg["Subject"] = subject
    msg["From"] = settings.smtp_username
    msg["To"] = to_email

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=15) as server:
            server.starttls()
            server.login(settings.smtp_username, settings.smtp_password)
            server.sendmail(settings.smtp_username, [to_email], msg.as_string())
        return True
    except (smtplib.SMTPException, OSError) as exc:
        logger.error(f"Failed to send email to {to_email}: {exc}")
        return False


def send_password_reset(to_email: str, link: str) -> bool:
    body = (
        "A password reset was requested for your administrator account.\n\n"
        f"Open this link to choose a new password: {link}\n\n"
        f"It expires in {settings.reset_token_ttl_minutes} minutes."
    )
    return send_email(to_email, "Password reset", body)
