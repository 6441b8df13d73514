"""
Transactional email over SMTP
"""
import smtplib
import logging
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional
from urllib.parse import quote

from futuresync import config

logger = logging.getLogger(__name__)

FOOTER = """
---
This is an automated message from FutureSync. Please do not reply to this email.
"""

def _send(to_email: str, subject: str, body: str) -> bool:
    if not config.SENDER_EMAIL or not config.SENDER_PASSWORD:
        logger.error("Email credentials not configured. Set SENDER_EMAIL and SENDER_PASSWORD environment variables.")
        return False

    message = MIMEMultipart()
    message["From"] = config.SENDER_EMAIL
    message["To"] = to_email
    message["Subject"] = subject
    message.attach(MIMEText(body + FOOTER, "plain"))

    try:
        with smtplib.SMTP(config.SMTP_SERVER, config.SMTP_PORT) as server:
            server.starttls()
            server.login(config.SENDER_EMAIL, config.SENDER_PASSWORD)
            server.send_message(message)
        logger.info(f"Email '{subject}' sent to {to_email}")
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email '{subject}' to {to_email}: {e}")
        return False

def _greeting(name: Optional[str]) -> str:
    return f"Hi {name}," if name else "Hi,"

def send_verification_email(to_email: str, token: str, name: Optional[str] = None) -> bool:
    link = f"{config.APP_URL}/auth/verify?token={quote(token)}"
    body = f"""{_greeting(name)}

Welcome to FutureSync! Please confirm your email address by opening the link below:

{link}

This link expires in {config.EMAIL_VERIFICATION_TOKEN_HOURS} hours.
"""
    return _send(to_email, "Verify your FutureSync email", body)

def send_password_reset_email(to_email: str, token: str, name: Optional[str] = None) -> bool:
    link = f"{config.APP_URL}/auth/reset-password?token={quote(token)}"
    body = f"""{_greeting(name)}

We received a request to reset your password. Open the link below to choose a new one:

{link}

This link expires in {config.PASSWORD_RESET_TOKEN_HOURS} hour. If you did not ask for a reset, you can ignore this email.
"""
    return _send(to_email, "Reset your FutureSync password", body)

def send_password_changed_email(to_email: str, name: Optional[str] = None) -> bool:
    body = f"""{_greeting(name)}

Your FutureSync password was just changed. If this wasn't you, reset your password right away:

{config.APP_URL}/auth/forgot-password
"""
    return _send(to_email, "Your FutureSync password was changed", body)

def send_welcome_email(to_email: str, name: Optional[str] = None) -> bool:
    body = f"""{_greeting(name)}

Your email is verified. Start by describing who you want to become:

{config.APP_URL}/onboarding
"""
    return _send(to_email, "Welcome to FutureSync", body)
