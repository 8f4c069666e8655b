"""
Shared fakes and fixtures.

External capabilities (SMTP, PDF engine) are always faked here; no test
touches the network or needs xhtml2pdf to produce a real PDF.
"""

import smtplib
import threading
from datetime import datetime, timedelta, timezone

import pytest

from formrelay.config import Settings
from formrelay.errors import TransportError
from formrelay.models.notification import SendReceipt


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            return self.now

    def advance(self, **kwargs) -> datetime:
        with self._lock:
            self.now = self.now + timedelta(**kwargs)
            return self.now


class RecordingEventSink:
    def __init__(self):
        self.events = []

    def emit(self, event, **attributes):
        self.events.append((event, attributes))

    @property
    def names(self):
        return [name for name, _ in self.events]

    def of(self, name):
        return [attrs for event, attrs in self.events if event == name]


class RecordingTransport:
    """MailTransport that records messages; addresses in fail_for raise TransportError."""

    def __init__(self, fail_for=(), reachable=True):
        self.sent = []
        self.fail_for = set(fail_for)
        self.reachable = reachable
        self.probes = 0

    def send(self, message):
        self.sent.append(message)
        if message.to in self.fail_for:
            raise TransportError(f"550 mailbox unavailable: {message.to}")
        return SendReceipt(delivered=True, message_id=f"<{len(self.sent)}@fake>", detail="sent")

    def probe(self):
        self.probes += 1
        return self.reachable


class LoopbackSMTP(smtplib.SMTP):
    """
    smtplib.SMTP without a socket.

    send_message is the real implementation, so the message is flattened
    exactly as it would be on the wire; only the protocol exchange below it
    is stubbed. Patch it in for smtplib.SMTP.
    """

    features = {"smtputf8": "", "8bitmime": ""}

    def __init__(self, host="", port=0, timeout=None):
        super().__init__(local_hostname="localhost", timeout=timeout)
        self.esmtp_features = dict(self.features)
        self.does_esmtp = True
        self.transactions = []
        type(self).last = self

    def ehlo(self, name=""):
        return 250, b"ok"

    def starttls(self, *args, **kwargs):
        return 220, b"ready"

    def login(self, user, password, *, initial_response_ok=True):
        return 235, b"authenticated"

    def sendmail(self, from_addr, to_addrs, msg, mail_options=(), rcpt_options=()):
        self.transactions.append((from_addr, list(to_addrs), msg, list(mail_options)))
        return {}

    def quit(self):
        return 221, b"bye"

    def close(self):
        pass


class AsciiOnlySMTP(LoopbackSMTP):
    features = {"8bitmime": ""}


class FakeEngine:
    """RenderEngine returning the markup bytes behind a PDF-looking header."""

    def __init__(self):
        self.calls = []

    def render_to_document(self, markup, options):
        self.calls.append((markup, options))
        return b"%PDF-1.4\n" + markup.encode("utf-8")


class FailingEngine:
    def __init__(self, error=None):
        self.error = error or RuntimeError("engine crashed")
        self.calls = 0

    def render_to_document(self, markup, options):
        self.calls += 1
        raise self.error


FROZEN_START = datetime(2026, 3, 14, 9, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return FrozenClock(FROZEN_START)


@pytest.fixture
def events():
    return RecordingEventSink()


@pytest.fixture
def settings():
    return Settings(
        email_username="mailer@mitra-sanitaer.de",
        email_password="a-real-looking-secret",
        email_to="hey@mitra-sanitaer.de",
        pdf_save_documents=False,
    )


@pytest.fixture
def contact_payload():
    return {
        "firstName": "Max",
        "lastName": "Mustermann",
        "email": "max@example.de",
        "subject": "Inquiry",
        "message": "Hello",
        "urgent": False,
    }


@pytest.fixture
def configuration_payload():
    return {
        "contactData": {
            "salutation": "Herr",
            "firstName": "Max",
            "lastName": "Mustermann",
            "email": "max@example.de",
            "phone": "030 1234567",
        },
        "bathroomData": {
            "bathroomSize": 8,
            "qualityLevel": {"name": "Komfort", "description": "Markenprodukte"},
            "equipment": [
                {
                    "id": "shower",
                    "name": "Dusche",
                    "selected": True,
                    "popupDetails": {
                        "options": [
                            {"name": "Walk-In", "description": "Bodengleich", "selected": True},
                            {"name": "Kabine", "selected": False},
                        ]
                    },
                },
                {"id": "bathtub", "name": "Badewanne", "selected": False},
                {"id": "toilet", "name": "WC", "selected": True},
            ],
            "floorTiles": ["Feinsteinzeug anthrazit"],
            "wallTiles": [],
            "heating": ["Fußbodenheizung"],
        },
        "comments": "Bitte vormittags.\nParkplatz vorhanden.",
        "additionalInfo": {"projektablauf": True, "garantie": False, "newsletter": True},
    }
