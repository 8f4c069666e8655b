"""
Pydantic models produced by the notification pipeline.

Models:
  RenderedDocument    — PDF produced by the document renderer
  Attachment          — file attached to an outgoing message
  OutgoingMessage     — one fully composed email, handed to a MailTransport
  SendReceipt         — what a MailTransport reports for one send
  RecipientOutcome    — bookkeeping for one attempted send
  NotificationResult  — aggregated result of one submission
  AdmitDecision       — rate limiter verdict for one request
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class RenderedDocument(BaseModel):
    """A rendered PDF. Owned by the dispatcher for one notification cycle."""
    model_config = {"frozen": True}

    filename: str
    content: bytes
    size_bytes: int
    created_at: datetime
    # Set only when a DocumentArchive stored the file.
    path: Optional[str] = None

    @property
    def size_kb(self) -> float:
        return round(self.size_bytes / 1024, 2)


class Attachment(BaseModel):
    model_config = {"frozen": True}

    filename: str
    content: bytes
    content_type: str = "application/pdf"

    @classmethod
    def from_document(cls, document: RenderedDocument) -> "Attachment":
        return cls(filename=document.filename, content=document.content)


class OutgoingMessage(BaseModel):
    model_config = {"frozen": True}

    sender: str
    sender_name: str = ""
    to: str
    reply_to: Optional[str] = None
    subject: str
    html_body: str
    text_body: str
    attachment: Optional[Attachment] = None
    correlation_id: Optional[str] = None


class SendReceipt(BaseModel):
    delivered: bool
    message_id: Optional[str] = None
    detail: str = ""


class RecipientRole(str, Enum):
    COMPANY = "company"
    CUSTOMER = "customer"


class RecipientOutcome(BaseModel):
    recipient: str
    role: RecipientRole
    delivered: bool
    detail: str = ""
    message_id: Optional[str] = None


class NotificationResult(BaseModel):
    """
    Aggregated result of one submission.

    overall_success is true when at least one recipient got their message.
    Whether a partial delivery is good enough for the end user is the
    caller's decision.
    """

    correlation_id: str
    overall_success: bool
    outcomes: List[RecipientOutcome] = Field(default_factory=list)
    document_attached: bool = False
    degraded_mode: bool = False
    document_filename: Optional[str] = None
    document_path: Optional[str] = None

    def outcome_for(self, role: RecipientRole) -> Optional[RecipientOutcome]:
        for outcome in self.outcomes:
            if outcome.role == role:
                return outcome
        return None

    @property
    def delivered_recipients(self) -> List[str]:
        return [o.recipient for o in self.outcomes if o.delivered]

    @property
    def failed_recipients(self) -> List[str]:
        return [o.recipient for o in self.outcomes if not o.delivered]


class AdmitDecision(BaseModel):
    allowed: bool
    limit: int
    remaining: int
    reset_at: datetime
    window_minutes: int = 0

    @property
    def enabled(self) -> bool:
        """False when rate limiting is switched off (limit <= 0)."""
        return self.limit > 0
