"""
Notification dispatcher.

Turns one validated form submission into the company notification and the
customer confirmation, attaching the configurator PDF when one could be
rendered.

Per submission, in this fixed order:

  1. mint the correlation id (CONTACT-xxxxxxxx / BATHROOM-xxxxxxxx)
  2. configuration only: render the PDF (best effort)
  3. check the customer email; invalid → InvalidRecipient, nothing sent
  4. send to the company inbox (reply-to: customer)
  5. send the confirmation to the customer (reply-to: company inbox)
  6. aggregate: overall_success = company delivered OR customer delivered

Render and send failures are recorded, never raised. InvalidRecipient is the
only error that escapes.

Public API:
  NotificationDispatcher.process_contact_submission(submission) -> NotificationResult
  NotificationDispatcher.process_configuration_submission(submission) -> NotificationResult
"""

import logging
import uuid
from typing import Callable, List, Optional

from formrelay.clock import Clock, utc_now
from formrelay.config import Settings
from formrelay.errors import InvalidRecipient, RenderError, TransportError
from formrelay.models.notification import (
    Attachment,
    NotificationResult,
    OutgoingMessage,
    RecipientOutcome,
    RecipientRole,
    RenderedDocument,
)
from formrelay.models.submission import ConfigurationSubmission, ContactSubmission
from formrelay.services import templates
from formrelay.services.document_renderer import DocumentRenderer
from formrelay.services.document_store import DocumentArchive
from formrelay.services.events import EventSink, NullEventSink
from formrelay.services.transport_selector import TransportSelection
from formrelay.services.validation import configuration_warnings, email_problem

logger = logging.getLogger(__name__)


def new_correlation_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8].upper()}"


def _single_line(value: str) -> str:
    """Header values must not contain line breaks."""
    return " ".join(value.replace("\r", " ").replace("\n", " ").split())


class NotificationDispatcher:
    """
    Stateless across calls; safe to share between request threads as long
    as the selected transport is (SmtpMailTransport opens one connection
    per message).
    """

    def __init__(
        self,
        settings: Settings,
        selection: TransportSelection,
        renderer: Optional[DocumentRenderer] = None,
        events: Optional[EventSink] = None,
        clock: Clock = utc_now,
        archive: Optional[DocumentArchive] = None,
        id_factory: Callable[[str], str] = new_correlation_id,
    ):
        self.settings = settings
        self.transport = selection.transport
        self.degraded = selection.degraded
        self.renderer = renderer
        self.events = events or NullEventSink()
        self.clock = clock
        self.archive = archive
        self.id_factory = id_factory

    # ------------------------------------------------------------------
    # Contact form
    # ------------------------------------------------------------------

    def process_contact_submission(self, submission: ContactSubmission) -> NotificationResult:
        correlation_id = self.id_factory(ContactSubmission.reference_prefix)
        self._require_valid_recipient(submission.email, correlation_id)

        company = self.settings.company
        received_at = self.clock()

        company_email = templates.contact_company_email(
            templates.contact_context(
                submission,
                correlation_id=correlation_id,
                received_at=received_at,
                company=company,
                degraded=self.degraded,
            )
        )
        customer_email = templates.contact_customer_email(
            templates.contact_context(
                submission,
                correlation_id=correlation_id,
                received_at=received_at,
                company=company,
                degraded=False,
            )
        )

        company_subject = f"Kontaktanfrage: {submission.subject}"
        if submission.urgent:
            company_subject = f"[DRINGEND] {company_subject}"

        outcomes = [
            self._deliver(
                RecipientRole.COMPANY,
                OutgoingMessage(
                    sender=self.settings.sender_address,
                    sender_name=self.settings.sender_name,
                    to=self.settings.email_to,
                    reply_to=submission.email,
                    subject=_single_line(company_subject),
                    html_body=company_email.html,
                    text_body=company_email.text,
                    correlation_id=correlation_id,
                ),
            ),
            self._deliver(
                RecipientRole.CUSTOMER,
                OutgoingMessage(
                    sender=self.settings.sender_address,
                    sender_name=self.settings.sender_name,
                    to=submission.email,
                    reply_to=self.settings.email_to,
                    subject=_single_line(f"Ihre Anfrage bei {company.name}: {submission.subject}"),
                    html_body=customer_email.html,
                    text_body=customer_email.text,
                    correlation_id=correlation_id,
                ),
            ),
        ]

        return self._aggregate(correlation_id, outcomes, document=None)

    # ------------------------------------------------------------------
    # Bathroom configurator
    # ------------------------------------------------------------------

    def process_configuration_submission(
        self, submission: ConfigurationSubmission
    ) -> NotificationResult:
        correlation_id = self.id_factory(ConfigurationSubmission.reference_prefix)

        for warning in configuration_warnings(submission):
            logger.warning(f"[{correlation_id}] {warning}")

        document = self._render_document(submission, correlation_id)
        self._require_valid_recipient(submission.contact.email, correlation_id)
        if document is not None:
            document = self._archive_document(document, correlation_id)

        contact = submission.contact
        company = self.settings.company
        received_at = self.clock()
        attached = document is not None

        def context(degraded: bool):
            return templates.configuration_context(
                submission,
                correlation_id=correlation_id,
                received_at=received_at,
                company=company,
                degraded=degraded,
                document_attached=attached,
            )

        company_email = templates.configuration_company_email(context(self.degraded))
        customer_email = templates.configuration_customer_email(context(False))
        attachment = Attachment.from_document(document) if document else None

        outcomes = [
            self._deliver(
                RecipientRole.COMPANY,
                OutgoingMessage(
                    sender=self.settings.sender_address,
                    sender_name=self.settings.sender_name,
                    to=self.settings.email_to,
                    reply_to=contact.email,
                    subject=_single_line(
                        f"Badkonfigurator Anfrage - {contact.first_name} {contact.last_name}"
                    ),
                    html_body=company_email.html,
                    text_body=company_email.text,
                    attachment=attachment,
                    correlation_id=correlation_id,
                ),
            ),
            self._deliver(
                RecipientRole.CUSTOMER,
                OutgoingMessage(
                    sender=self.settings.sender_address,
                    sender_name=self.settings.sender_name,
                    to=contact.email,
                    reply_to=self.settings.email_to,
                    subject=_single_line(f"Ihre Badkonfiguration bei {company.name}"),
                    html_body=customer_email.html,
                    text_body=customer_email.text,
                    attachment=attachment,
                    correlation_id=correlation_id,
                ),
            ),
        ]

        return self._aggregate(correlation_id, outcomes, document=document)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _require_valid_recipient(self, address: str, correlation_id: str) -> None:
        problem = email_problem(address)
        if problem:
            self.events.emit(
                "notification.rejected",
                correlation_id=correlation_id,
                reason="invalid customer email",
            )
            raise InvalidRecipient(address, problem)

    def _render_document(
        self, submission: ConfigurationSubmission, correlation_id: str
    ) -> Optional[RenderedDocument]:
        if self.renderer is None:
            return None
        try:
            document = self.renderer.render(submission, correlation_id)
        except RenderError as e:
            self.events.emit("document.failed", correlation_id=correlation_id, error=str(e))
            return None

        self.events.emit(
            "document.generated",
            correlation_id=correlation_id,
            filename=document.filename,
            size_kb=document.size_kb,
        )
        return document

    def _archive_document(self, document: RenderedDocument, correlation_id: str) -> RenderedDocument:
        if self.archive is None:
            return document
        try:
            path = self.archive.save(document)
        except OSError as e:
            logger.error(f"[{correlation_id}] Could not archive {document.filename}: {e}")
            return document

        self.events.emit("document.archived", correlation_id=correlation_id, path=path)
        return document.model_copy(update={"path": path})

    def _deliver(self, role: RecipientRole, message: OutgoingMessage) -> RecipientOutcome:
        try:
            receipt = self.transport.send(message)
        except TransportError as e:
            outcome = RecipientOutcome(
                recipient=message.to, role=role, delivered=False, detail=str(e)
            )
        else:
            outcome = RecipientOutcome(
                recipient=message.to,
                role=role,
                delivered=receipt.delivered,
                detail=receipt.detail or ("sent" if receipt.delivered else "not delivered"),
                message_id=receipt.message_id,
            )

        self.events.emit(
            "message.delivered" if outcome.delivered else "message.failed",
            correlation_id=message.correlation_id,
            role=role.value,
            recipient=outcome.recipient,
            detail=outcome.detail,
            message_id=outcome.message_id,
        )
        return outcome

    def _aggregate(
        self,
        correlation_id: str,
        outcomes: List[RecipientOutcome],
        document: Optional[RenderedDocument],
    ) -> NotificationResult:
        result = NotificationResult(
            correlation_id=correlation_id,
            overall_success=any(o.delivered for o in outcomes),
            outcomes=outcomes,
            document_attached=document is not None,
            degraded_mode=self.degraded,
            document_filename=document.filename if document else None,
            document_path=document.path if document else None,
        )
        self.events.emit(
            "notification.completed",
            correlation_id=correlation_id,
            overall_success=result.overall_success,
            delivered=len(result.delivered_recipients),
            failed=len(result.failed_recipients),
            document_attached=result.document_attached,
            degraded=result.degraded_mode,
        )
        return result
