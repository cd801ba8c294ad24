"""
Email service for sending queued emails over SMTP.
"""

import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional, Dict, Any

from ..core.config import settings


logger = logging.getLogger(__name__)


class EmailService:
    """Service for sending emails."""

    def __init__(self):
        """Initialize email service with SMTP configuration."""
        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_username = settings.smtp_username
        self.smtp_password = settings.smtp_password
        self.from_email = settings.from_email
        self.from_name = settings.from_name

    def build_message(
        self,
        to_email: str,
        subject: str,
        html_content: Optional[str],
        text_content: Optional[str] = None,
    ) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to_email

        # Plain part first so clients prefer HTML when both exist
        if text_content:
            msg.attach(MIMEText(text_content, "plain"))
        if html_content:
            msg.attach(MIMEText(html_content, "html"))
        return msg

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: Optional[str],
        text_content: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send an email.

        Returns:
            Dict with ``success`` and, on failure, ``error``
        """
        if not html_content and not text_content:
            return {"success": False, "error": "Email has no body"}

        msg = self.build_message(to_email, subject, html_content, text_content)
        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
                # Only use TLS and login if credentials are provided
                if self.smtp_username and self.smtp_password:
                    server.starttls()
                    server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            return {"success": False, "error": str(e)}

        logger.info(f"Email sent successfully to {to_email}")
        return {"success": True}
