"""
Outbound email notifications.

Registration emails are fire-and-forget: send_registration_email never
raises, so a mail outage cannot fail a registration.
"""

import html
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from taskboard.config import Settings

logger = logging.getLogger(__name__)

REGISTRATION_SUBJECT = "Welcome to Task App"

REGISTRATION_TEMPLATE = """\
<html>
  <body>
    <h2>Welcome, {name}!</h2>
    <p>Your Task App account has been created.</p>
    <p>You can now create tasks, assign them to teammates and track what gets done.</p>
  </body>
</html>
"""


class EmailNotifier:
    """Sends HTML emails through an SMTP server with STARTTLS."""

    def __init__(self, host: str, port: int, username: str, password: str, sender: str, timeout: int = 15):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.timeout = timeout

    def send_email(self, to_addr: str, subject: str, body_html: str) -> None:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.sender
        message["To"] = to_addr
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(body_html, subtype="html")

        with smtplib.SMTP(host=self.host, port=self.port, timeout=self.timeout) as smtp:
            smtp.ehlo()
            smtp.starttls()
            smtp.ehlo()
            if self.username and self.password:
                smtp.login(self.username, self.password)
            smtp.send_message(message)
        logger.info(f"Email '{subject}' sent to {to_addr}")

    def send_registration_email(self, to_addr: str, name: str) -> None:
        body = REGISTRATION_TEMPLATE.format(name=html.escape(name))
        self.send_email(to_addr, REGISTRATION_SUBJECT, body)


def build_notifier(settings: Settings) -> Optional[EmailNotifier]:
    """Return an EmailNotifier, or None when SMTP is not configured."""
    if not settings.smtp_user:
        logger.info("SMTP_USER not set, registration emails disabled")
        return None
    return EmailNotifier(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_user,
        password=settings.smtp_password,
        sender=settings.smtp_from or settings.smtp_user,
    )


def send_registration_email(notifier: EmailNotifier, to_addr: str, name: str) -> None:
    """Send a welcome email, logging instead of raising on failure."""
    try:
        notifier.send_registration_email(to_addr, name)
    except Exception as e:
        logger.warning(f"Failed to send registration email to {to_addr}: {e}")
