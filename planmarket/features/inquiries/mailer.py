"""
planmarket/features/inquiries/mailer.py

Outbound mail. SmtpMailer talks to a real server (implicit SSL, STARTTLS or
plain); LogMailer only logs, and is what runs when MAIL_ENABLED is off.
"""

import logging
import smtplib
import socket
import ssl
from abc import ABC, abstractmethod
from collections import deque
from email.message import EmailMessage

from planmarket.core.config import Settings
from planmarket.core.errors import DeliveryError

logger = logging.getLogger(__name__)


class Mailer(ABC):
    @abstractmethod
    def send(self, message: EmailMessage) -> None:
        """Hand ``message`` to the transport; raise DeliveryError on failure."""


class LogMailer(Mailer):
    """Keeps the last messages in memory and logs their subject lines."""

    def __init__(self):
        self.outbox = deque(maxlen=50)

    def send(self, message: EmailMessage) -> None:
        self.outbox.append(message)
        logger.info(f"[mail] delivery disabled, subject={message['Subject']!r} to={message['To']!r}")


class SmtpMailer(Mailer):
    def __init__(self, settings: Settings):
        self._host = settings.SMTP_HOST
        self._port = settings.SMTP_PORT
        self._username = settings.SMTP_USERNAME
        self._password = settings.SMTP_PASSWORD
        self._security = (settings.SMTP_SECURITY or "starttls").lower()
        self._timeout = settings.SMTP_TIMEOUT

    def _connect(self) -> smtplib.SMTP:
        if self._security == "ssl":
            context = ssl.create_default_context()
            return smtplib.SMTP_SSL(self._host, self._port, timeout=self._timeout, context=context)
        server = smtplib.SMTP(self._host, self._port, timeout=self._timeout)
        server.ehlo()
        if self._security == "starttls":
            server.starttls(context=ssl.create_default_context())
            server.ehlo()
        return server

    def send(self, message: EmailMessage) -> None:
        server = None
        try:
            server = self._connect()
            if self._username and self._password:
                server.login(self._username, self._password)
            server.send_message(message)
            logger.info(f"[mail] sent subject={message['Subject']!r} via {self._host}:{self._port}")
        except (smtplib.SMTPException, OSError) as exc:
            # socket.timeout and ConnectionRefusedError are both OSErrors
            logger.error(
                f"[mail] delivery failed via {self._host}:{self._port}: {type(exc).__name__}",
                extra={"error_code": DeliveryError.code},
            )
            raise DeliveryError("Email could not be delivered") from exc
        finally:
            if server is not None:
                try:
                    server.quit()
                except (smtplib.SMTPException, socket.error):
                    pass


def build_mailer(settings: Settings) -> Mailer:
    if settings.MAIL_ENABLED:
        return SmtpMailer(settings)
    return LogMailer()
