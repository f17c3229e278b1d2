"""E-mail delivery over SMTP.

When SMTP is not configured nothing is sent; a notice naming the masked
recipient and the subject is logged instead.
"""

from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from contentgate.app.core.config import Settings
from contentgate.app.core.logging import get_logger
from contentgate.app.core.utils import mask_email

logger = get_logger(__name__)


class EmailSender:
    def __init__(self, config: Settings) -> None:
        self._config = config

    async def send(self, to: str, subject: str, text: str, html: str) -> None:
        """Send one message.

        Raises:
            aiosmtplib.SMTPException: delivery failed (logged, then re-raised)
        """
        if not self._config.smtp_enabled:
            logger.info(f"[DEV] Would send e-mail to {mask_email(to)}: {subject}")
            return

        import aiosmtplib

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self._config.smtp_from_email
        msg["To"] = to
        msg.attach(MIMEText(text, "plain"))
        msg.attach(MIMEText(html, "html"))

        try:
            await aiosmtplib.send(
                msg,
                hostname=self._config.smtp_host,
                port=self._config.smtp_port,
                username=self._config.smtp_username or None,
                password=self._config.smtp_password or None,
                start_tls=self._config.smtp_use_tls,
            )
        except Exception:
            logger.exception(f"Failed to send e-mail to {mask_email(to)}")
            raise
        logger.info(f"E-mail sent to {mask_email(to)}")
