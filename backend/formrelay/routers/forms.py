"""
Website form endpoints.

Endpoints (all rate limited):
  POST /contact                         — contact form → company + customer email
  POST /send-bathroom-configuration     — configurator → PDF + company + customer email
  POST /generate-pdf-only               — configurator → PDF, no email
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from formrelay.config import CompanyInfo
from formrelay.dependencies import Services, enforce_rate_limit, get_services
from formrelay.errors import InvalidRecipient, RenderError
from formrelay.models.notification import NotificationResult, RecipientRole
from formrelay.models.submission import ConfigurationSubmission, ContactSubmission
from formrelay.services.dispatcher import new_correlation_id
from formrelay.services.validation import contains_dangerous_content

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(enforce_rate_limit)])


def _error(status_code: int, message: str, error_code: str) -> HTTPException:
    """Build an HTTPException with a structured detail payload."""
    return HTTPException(
        status_code=status_code,
        detail={"detail": message, "error_code": error_code},
    )


def _fallback_message(company: CompanyInfo) -> str:
    return (
        "Ihre Anfrage konnte leider nicht übermittelt werden. "
        f"Bitte kontaktieren Sie uns direkt telefonisch unter {company.phone} "
        f"oder per E-Mail an {company.email}."
    )


def _delivered(result: NotificationResult, role: RecipientRole) -> bool:
    outcome = result.outcome_for(role)
    return bool(outcome and outcome.delivered)


def _base_response(result: NotificationResult, message: str) -> Dict[str, Any]:
    return {
        "success": True,
        "message": message,
        "referenceId": result.correlation_id,
        "emailSent": _delivered(result, RecipientRole.COMPANY),
        "customerConfirmation": _delivered(result, RecipientRole.CUSTOMER),
        "testMode": result.degraded_mode,
    }


@router.post("/contact")
def submit_contact(
    submission: ContactSubmission,
    services: Services = Depends(get_services),
):
    """Send the contact form to the company inbox and confirm to the customer."""
    if contains_dangerous_content(submission.subject) or contains_dangerous_content(submission.message):
        logger.warning(f"Rejected contact form with suspicious content from {submission.email!r}")
        raise _error(400, "Ungültige Zeichen in der Nachricht.", "invalid_content")

    try:
        result = services.dispatcher.process_contact_submission(submission)
    except InvalidRecipient as e:
        raise _error(400, f"Ungültige E-Mail-Adresse: {e.address}", "invalid_email")

    if not result.overall_success:
        logger.error(f"[{result.correlation_id}] Contact form could not be delivered to anyone")
        raise _error(500, _fallback_message(services.settings.company), "delivery_failed")

    response = _base_response(
        result, "Ihre Nachricht wurde erfolgreich gesendet. Wir melden uns bald bei Ihnen!"
    )
    response["timestamp"] = services.rate_limiter.clock().isoformat()
    return response


@router.post("/send-bathroom-configuration")
def submit_configuration(
    submission: ConfigurationSubmission,
    services: Services = Depends(get_services),
):
    """Render the configuration PDF and send it to the company and the customer."""
    try:
        result = services.dispatcher.process_configuration_submission(submission)
    except InvalidRecipient as e:
        raise _error(400, f"Ungültige E-Mail-Adresse: {e.address}", "invalid_email")

    if not result.overall_success:
        logger.error(f"[{result.correlation_id}] Configuration could not be delivered to anyone")
        raise _error(500, _fallback_message(services.settings.company), "delivery_failed")

    response = _base_response(
        result,
        "Ihre Badkonfiguration wurde erfolgreich übermittelt. Wir melden uns innerhalb von 24 Stunden!",
    )
    response["pdfGenerated"] = result.document_attached
    response["pdfFilename"] = result.document_filename
    response["timestamp"] = services.rate_limiter.clock().isoformat()
    return response


@router.post("/generate-pdf-only")
def generate_pdf_only(
    submission: ConfigurationSubmission,
    services: Services = Depends(get_services),
):
    """Render the configuration PDF without sending any email."""
    correlation_id = new_correlation_id(ConfigurationSubmission.reference_prefix)
    try:
        document = services.renderer.render(submission, correlation_id)
    except RenderError as e:
        logger.error(f"[{correlation_id}] PDF generation failed: {e}")
        raise _error(500, "Fehler beim Generieren des PDFs.", "render_failed")

    path = None
    if services.archive is not None:
        try:
            path = services.archive.save(document)
        except OSError as e:
            logger.error(f"[{correlation_id}] Could not archive {document.filename}: {e}")

    return {
        "success": True,
        "message": "PDF wurde erfolgreich generiert",
        "referenceId": correlation_id,
        "timestamp": document.created_at.isoformat(),
        "document": {
            "filename": document.filename,
            "sizeBytes": document.size_bytes,
            "sizeKb": document.size_kb,
            "saved": path is not None,
            "path": path if not services.settings.is_production else None,
        },
    }
