"""SMTP submission of HTML reports."""

import smtplib
from dataclasses import dataclass
from email.message import EmailMessage as MimeMessage
from typing import List

from .config import EmailConfig
from .errors import ErrorKind, RotatorError


@dataclass(frozen=True)
class EmailMessage:
    """An HTML report addressed to blind-carbon-copy recipients."""

    to_addresses: List[str]
    subject: str
    content: str


class EmailClient:
    """Sends messages through an SMTP server with PLAIN authentication."""

    def __init__(self, config: EmailConfig):
        self.config = config

    def build(self, message: EmailMessage) -> MimeMessage:
        mime = MimeMessage()
        mime['From'] = self.config.smtp_username
        mime['Subject'] = message.subject
        mime.set_content(message.content, subtype='html')
        return mime

    def send(self, message: EmailMessage) -> None:
        """Submit a message.

        Recipients only appear in the SMTP envelope, never in the headers.

        Raises:
            RotatorError: external-service error when submission fails
        """
        mime = self.build(message)

        try:
            with smtplib.SMTP(self.config.smtp_host, self.config.smtp_port) as smtp:
                smtp.ehlo()
                if self.config.smtp_starttls:
                    smtp.starttls()
                    smtp.ehlo()

                smtp.user, smtp.password = self.config.smtp_username, self.config.smtp_password
                smtp.auth('PLAIN', smtp.auth_plain)

                smtp.send_message(
                    mime,
                    from_addr=self.config.smtp_username,
                    to_addrs=list(message.to_addresses),
                )
        except (smtplib.SMTPException, OSError) as e:
            raise RotatorError(ErrorKind.EXTERNAL_SERVICE, f"Sending email failed: {e}", cause=e) from e
