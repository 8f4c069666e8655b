"""
Mail transports.

Two implementations of the MailTransport protocol:

  SmtpMailTransport       live delivery, one SMTP connection per message
  SimulatedMailTransport  degraded mode; logs and reports success

Which one the app uses is decided once at startup by
services.transport_selector.select_transport.
"""

import logging
import secrets
import smtplib
from email.message import EmailMessage
from email.policy import SMTP
from email.utils import formataddr, formatdate, make_msgid
from typing import Optional, Protocol

from formrelay.clock import Clock, utc_now
from formrelay.errors import TransportError
from formrelay.models.notification import OutgoingMessage, SendReceipt
from formrelay.services.events import EventSink, NullEventSink

logger = logging.getLogger(__name__)


class MailTransport(Protocol):
    def send(self, message: OutgoingMessage) -> SendReceipt:
        """Deliver one message. Raises TransportError on failure."""
        ...

    def probe(self) -> bool:
        """Check the mail endpoint is reachable and accepts our credentials."""
        ...


def build_mime_message(message: OutgoingMessage, message_id: str) -> EmailMessage:
    """
    multipart/mixed
      multipart/alternative (text/plain, text/html)
      application/pdf (optional)

    Built on the SMTP policy so smtplib can re-serialize it with utf8=True
    for internationalized addresses (SMTPUTF8).
    """
    root = EmailMessage(policy=SMTP)
    root["Subject"] = message.subject
    root["From"] = formataddr((message.sender_name, message.sender)) if message.sender_name else message.sender
    root["To"] = message.to
    if message.reply_to:
        root["Reply-To"] = message.reply_to
    root["Date"] = formatdate(localtime=True)
    root["Message-ID"] = message_id
    if message.correlation_id:
        root["X-Reference-ID"] = message.correlation_id

    root.set_content(message.text_body, subtype="plain", charset="utf-8")
    root.add_alternative(message.html_body, subtype="html", charset="utf-8")
    root.make_mixed()

    if message.attachment is not None:
        maintype, _, subtype = message.attachment.content_type.partition("/")
        root.add_attachment(
            message.attachment.content,
            maintype=maintype or "application",
            subtype=subtype or "octet-stream",
            filename=message.attachment.filename,
        )

    return root


class SmtpMailTransport:
    """
    SMTP delivery with STARTTLS (port 587) or implicit TLS (port 465).

    Every socket operation is bounded by timeout_seconds; a timeout surfaces
    as TransportError like any other SMTP failure.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        secure: bool = True,
        timeout_seconds: float = 15.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.secure = secure
        self.timeout_seconds = timeout_seconds

    def _connect(self) -> smtplib.SMTP:
        implicit_tls = self.secure and self.port == 465
        if implicit_tls:
            server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout_seconds)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds)
        try:
            server.ehlo()
            if self.secure and not implicit_tls:
                server.starttls()
                server.ehlo()
            if self.username:
                server.login(self.username, self.password)
        except (smtplib.SMTPException, OSError):
            server.close()
            raise
        return server

    def send(self, message: OutgoingMessage) -> SendReceipt:
        domain = message.sender.rpartition("@")[2] or None
        message_id = make_msgid(domain=domain)

        try:
            mime = build_mime_message(message, message_id)
            with self._connect() as server:
                refused = server.send_message(mime, from_addr=message.sender, to_addrs=[message.to])
        except (smtplib.SMTPException, OSError) as e:
            raise TransportError(f"SMTP delivery to {message.to} failed: {e}") from e
        except Exception as e:
            # Header and encoding errors raised by the email package
            logger.exception(f"Unexpected error sending to {message.to}")
            raise TransportError(f"SMTP delivery to {message.to} failed unexpectedly: {e}") from e

        if refused:
            raise TransportError(f"SMTP server refused {', '.join(refused)}")

        logger.info(f"Email sent to {message.to} via {self.host}:{self.port}")
        return SendReceipt(delivered=True, message_id=message_id, detail="sent")

    def probe(self) -> bool:
        try:
            with self._connect() as server:
                server.noop()
        except (smtplib.SMTPException, OSError) as e:
            logger.warning(f"SMTP probe against {self.host}:{self.port} failed: {e}")
            return False
        return True


class SimulatedMailTransport:
    """Degraded-mode transport: never touches the network, always 'delivers'."""

    def __init__(
        self,
        events: Optional[EventSink] = None,
        clock: Clock = utc_now,
        domain: str = "test.mitra-sanitaer.de",
    ):
        self.events = events or NullEventSink()
        self.clock = clock
        self.domain = domain

    def _synthetic_id(self) -> str:
        return f"mock-{int(self.clock().timestamp())}-{secrets.token_hex(5)[:9]}@{self.domain}"

    def send(self, message: OutgoingMessage) -> SendReceipt:
        message_id = self._synthetic_id()
        self.events.emit(
            "message.simulated",
            correlation_id=message.correlation_id,
            to=message.to,
            subject=message.subject,
            message_id=message_id,
            attachment=message.attachment.filename if message.attachment else None,
        )
        return SendReceipt(delivered=True, message_id=message_id, detail="simulated")

    def probe(self) -> bool:
        return True
