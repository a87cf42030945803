import asyncio
import smtplib
from email.message import EmailMessage

import structlog

from notification_service.config import NotificationSettings

logger = structlog.get_logger(__name__)


class SmtpMailer:
    """Delivers one plain-text email per call over SMTP.

    Without EMAIL_HOST the message is only logged, which is how local and
    test environments run.
    """

    def __init__(self, settings: NotificationSettings):
        self.settings = settings

    def build_message(self, recipient: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.settings.email_from
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content(body)
        return message

    async def send(self, recipient: str, subject: str, body: str):
        message = self.build_message(recipient, subject, body)
        if not self.settings.email_host:
            logger.info("email_logged", recipient=recipient, subject=subject, body=body)
            return
        await asyncio.to_thread(self._deliver, message)
        logger.info("email_sent", recipient=recipient, subject=subject)

    def _deliver(self, message: EmailMessage):
        with smtplib.SMTP(self.settings.email_host, self.settings.email_port, timeout=30) as smtp:
            if self.settings.email_use_tls:
                smtp.starttls()
            if self.settings.email_user:
                smtp.login(self.settings.email_user, self.settings.email_pass or "")
            smtp.send_message(message)
