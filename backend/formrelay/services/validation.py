"""
Semantic checks on submissions.

is_valid_email is the one blocking check in the pipeline. Everything in
configuration_warnings is advisory: the configurator form is allowed
through with gaps, and the warnings only end up in the log.
"""

import logging
import re
from typing import List

from email_validator import EmailNotValidError, validate_email

from formrelay.models.submission import ConfigurationSubmission

logger = logging.getLogger(__name__)

# Markup / script fragments the contact form never legitimately contains.
_DANGEROUS_PATTERNS = (
    "<script",
    "javascript:",
    "onload=",
    "onclick=",
    "onerror=",
    "eval(",
    "exec(",
    "system(",
    "shell_exec",
)

_PHONE_STRIP_RE = re.compile(r"[^0-9+\-\s()]")


def email_problem(address: str) -> str:
    """Return a human-readable reason the address is invalid, or "" if it is fine."""
    if not address or not address.strip():
        return "address is empty"
    try:
        validate_email(address.strip(), check_deliverability=False)
    except EmailNotValidError as e:
        return str(e)
    return ""


def is_valid_email(address: str) -> bool:
    """Syntactic check only; no DNS lookups."""
    return not email_problem(address)


def is_plausible_phone(phone: str) -> bool:
    """Very tolerant: at least five digits/phone punctuation characters."""
    return len(_PHONE_STRIP_RE.sub("", phone)) >= 5


def contains_dangerous_content(text: str) -> bool:
    lowered = text.lower()
    return any(pattern in lowered for pattern in _DANGEROUS_PATTERNS)


def configuration_warnings(submission: ConfigurationSubmission) -> List[str]:
    """
    Collect advisory problems in a configurator submission.

    Never raises and never blocks: the caller logs the list and carries on.
    """
    warnings: List[str] = []
    contact = submission.contact

    if not contact.first_name.strip():
        warnings.append("contactData.firstName is empty")
    if not contact.last_name.strip():
        warnings.append("contactData.lastName is empty")
    if contact.phone and not is_plausible_phone(contact.phone):
        warnings.append("contactData.phone does not look like a phone number")

    configuration = submission.configuration
    if configuration.size is None:
        warnings.append("bathroomData.bathroomSize is missing")
    elif configuration.size <= 0:
        warnings.append("bathroomData.bathroomSize is not positive")
    if configuration.quality_level is None or not configuration.quality_level.name:
        warnings.append("bathroomData.qualityLevel is missing")

    for index, item in enumerate(configuration.equipment):
        if item.selected and not (item.name or "").strip():
            warnings.append(f"bathroomData.equipment[{index}] is selected but has no name")
        if item.popup_details is not None:
            chosen = [o for o in item.popup_details.options if o.selected]
            if len(chosen) > 1:
                warnings.append(
                    f"bathroomData.equipment[{index}] has {len(chosen)} selected options; using the first"
                )

    return warnings
