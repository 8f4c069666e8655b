"""
Markup for emails and the configurator PDF.

Every variant is a named, pure function from a context dict to markup:

  contact_company_email(ctx)          -> RenderedEmail
  contact_customer_email(ctx)         -> RenderedEmail
  configuration_company_email(ctx)    -> RenderedEmail
  configuration_customer_email(ctx)   -> RenderedEmail
  configuration_document(ctx)         -> str (HTML for the PDF engine)

Contexts are built once per submission by contact_context() /
configuration_context() so that the company email, customer email and PDF
all show the same data with the same placeholders.

HTML templates are autoescaped by Jinja; text templates are not.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from jinja2 import DictLoader, Environment, StrictUndefined, select_autoescape
from markupsafe import Markup, escape

from formrelay.clock import to_local
from formrelay.config import CompanyInfo
from formrelay.models.submission import (
    ConfigurationData,
    ConfigurationSubmission,
    ContactSubmission,
)

# ---------------------------------------------------------------------------
# Display constants
# ---------------------------------------------------------------------------

NOT_PROVIDED = "Nicht angegeben"
NOT_SELECTED = "Nicht ausgewählt"
NO_SELECTION = "Keine spezifische Auswahl"
NO_EQUIPMENT = "Keine spezifische Ausstattung ausgewählt"
STANDARD_OPTION = "Standard"

SERVICE_LABELS = {
    "heating": "Heizungsbau",
    "bathroom": "Bäderbau",
    "installation": "Installation",
    "emergency": "Notdienst",
    "consultation": "Beratung",
}

ADDITIONAL_INFO_LABELS = {
    "projektablauf": "Projektablauf",
    "garantie": "Garantie & Gewährleistung",
    "referenzen": "Referenzen",
    "foerderung": "Förderungsmöglichkeiten",
}

_TIMESTAMP_FORMAT = "%d.%m.%Y %H:%M:%S"


@dataclass(frozen=True)
class RenderedEmail:
    html: str
    text: str


@dataclass(frozen=True)
class EquipmentLine:
    name: str
    option: str
    description: str = ""


# ---------------------------------------------------------------------------
# Data preparation
# ---------------------------------------------------------------------------

def clean_list(values: Iterable[Optional[str]]) -> List[str]:
    """Drop None and blank entries, strip the rest."""
    return [v.strip() for v in values if v is not None and str(v).strip()]


def selected_equipment(configuration: ConfigurationData) -> List[EquipmentLine]:
    """Only the entries flagged selected, with their chosen option or "Standard"."""
    lines: List[EquipmentLine] = []
    for item in configuration.equipment:
        if not item.selected:
            continue
        option = item.selected_option
        lines.append(
            EquipmentLine(
                name=(item.name or "").strip() or NOT_PROVIDED,
                option=((option.name or "").strip() or STANDARD_OPTION) if option else STANDARD_OPTION,
                description=((option.description or "").strip() if option else ""),
            )
        )
    return lines


def additional_info_labels(flags: Dict[str, bool]) -> List[str]:
    """Translate the truthy flags; unknown keys pass through unchanged."""
    return [ADDITIONAL_INFO_LABELS.get(key, key) for key, value in flags.items() if value]


def format_size(size: Optional[float]) -> str:
    if size is None:
        return NOT_PROVIDED
    if float(size).is_integer():
        return f"{int(size)} m²"
    return f"{size:g} m²".replace(".", ",")


def service_label(service: Optional[str]) -> str:
    if not service:
        return NOT_PROVIDED
    return SERVICE_LABELS.get(service, service)


def format_timestamp(moment: datetime) -> str:
    return moment.strftime(_TIMESTAMP_FORMAT)


def _company_dict(company: CompanyInfo) -> Dict[str, str]:
    return company.model_dump()


def contact_context(
    submission: ContactSubmission,
    *,
    correlation_id: str,
    received_at: datetime,
    company: CompanyInfo,
    degraded: bool,
) -> Dict[str, Any]:
    return {
        "first_name": submission.first_name,
        "last_name": submission.last_name,
        "full_name": submission.full_name,
        "email": submission.email,
        "phone": (submission.phone or "").strip(),
        "subject": submission.subject,
        "message": submission.message,
        "service": service_label(submission.service_category),
        "urgent": submission.urgent,
        "reference_id": correlation_id,
        "received_at": format_timestamp(to_local(received_at, company.timezone)),
        "company": _company_dict(company),
        "degraded": degraded,
    }


def configuration_context(
    submission: ConfigurationSubmission,
    *,
    correlation_id: str,
    received_at: datetime,
    company: CompanyInfo,
    degraded: bool,
    document_attached: bool = False,
) -> Dict[str, Any]:
    contact = submission.contact
    configuration = submission.configuration
    quality = configuration.quality_level

    local_time = to_local(received_at, company.timezone)
    name_parts = [p for p in ((contact.salutation or "").strip(), contact.first_name, contact.last_name) if p]

    return {
        "salutation": (contact.salutation or "").strip(),
        "first_name": contact.first_name,
        "last_name": contact.last_name,
        "full_name": contact.full_name,
        "display_name": " ".join(name_parts) or NOT_PROVIDED,
        "email": contact.email,
        "phone": (contact.phone or "").strip(),
        "size": format_size(configuration.size),
        "quality_name": ((quality.name or "").strip() if quality else "") or NOT_SELECTED,
        "quality_description": ((quality.description or "").strip() if quality else ""),
        "equipment": selected_equipment(configuration),
        "floor_tiles": clean_list(configuration.floor_tiles),
        "wall_tiles": clean_list(configuration.wall_tiles),
        "heating": clean_list(configuration.heating),
        "comments": (submission.comments or "").strip(),
        "additional_info": additional_info_labels(submission.additional_info_flags),
        "reference_id": correlation_id,
        "received_at": format_timestamp(local_time),
        "generated_date": local_time.strftime("%d.%m.%Y"),
        "generated_time": local_time.strftime("%H:%M"),
        "company": _company_dict(company),
        "degraded": degraded,
        "document_attached": document_attached,
    }


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

_EMAIL_STYLE = """
    body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
    .header { background-color: #1e3a8a; color: white; padding: 20px; text-align: center; }
    .content { padding: 20px; }
    .section { margin-bottom: 20px; padding: 15px; border-left: 4px solid #1e3a8a; background-color: #f8fafc; }
    .urgent { background-color: #fee2e2; border-left-color: #dc2626; }
    .footer { background-color: #f1f5f9; padding: 15px; text-align: center; font-size: 12px; color: #64748b; }
    .label { font-weight: bold; padding-right: 12px; vertical-align: top; }
    .test-mode { background: #fef3cd; padding: 10px; margin-bottom: 20px; border: 1px solid #f59e0b; }
"""

_TEMPLATES = {
    # ------------------------------------------------------------------
    # Contact form → company inbox
    # ------------------------------------------------------------------
    "contact_company.html": """<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"><style>{{ style }}</style></head>
<body>
{% if degraded %}
<div class="test-mode"><strong>TEST-MODUS:</strong> Diese E-Mail wurde nur simuliert.</div>
{% endif %}
<div class="header">
  <h1>Neue Kontaktanfrage</h1>
  <p>{{ company.name }}</p>
{% if urgent %}
  <p style="font-size: 18px; font-weight: bold;">DRINGENDE ANFRAGE</p>
{% endif %}
</div>
<div class="content">
  <div class="section{% if urgent %} urgent{% endif %}">
    <h3>Kontaktdaten</h3>
    <table>
      <tr><td class="label">Name:</td><td>{{ full_name }}</td></tr>
      <tr><td class="label">E-Mail:</td><td><a href="mailto:{{ email }}">{{ email }}</a></td></tr>
{% if phone %}
      <tr><td class="label">Telefon:</td><td><a href="tel:{{ phone }}">{{ phone }}</a></td></tr>
{% endif %}
      <tr><td class="label">Service:</td><td>{{ service }}</td></tr>
      <tr><td class="label">Betreff:</td><td>{{ subject }}</td></tr>
    </table>
  </div>
  <div class="section">
    <h3>Nachricht</h3>
    <p>{{ message|nl2br }}</p>
  </div>
  <div class="section">
    <h3>System-Informationen</h3>
    <table>
      <tr><td class="label">Referenz-ID:</td><td>{{ reference_id }}</td></tr>
      <tr><td class="label">Eingegangen am:</td><td>{{ received_at }}</td></tr>
      <tr><td class="label">Dringend:</td><td>{% if urgent %}Ja - Antwort binnen 2 Stunden gewünscht{% else %}Nein{% endif %}</td></tr>
{% if degraded %}
      <tr><td class="label">Test-Modus:</td><td style="color: #f59e0b; font-weight: bold;">AKTIV - Keine echte E-Mail</td></tr>
{% endif %}
    </table>
  </div>
</div>
<div class="footer">
  <p>Diese E-Mail wurde {% if degraded %}simuliert{% else %}automatisch{% endif %} über das Kontaktformular der {{ company.name }} Website generiert.</p>
  <p>Bitte antworten Sie direkt an: <a href="mailto:{{ email }}">{{ email }}</a></p>
</div>
</body>
</html>
""",
    "contact_company.txt": """NEUE KONTAKTANFRAGE - {{ company.name }}
{% if urgent %}
*** DRINGENDE ANFRAGE ***
{% endif %}
========================================

KONTAKTDATEN:
Name: {{ full_name }}
E-Mail: {{ email }}
Telefon: {{ phone or "Nicht angegeben" }}
Service: {{ service }}
Betreff: {{ subject }}

NACHRICHT:
{{ message }}

SYSTEM-INFORMATIONEN:
Referenz-ID: {{ reference_id }}
Eingegangen am: {{ received_at }}
Dringend: {% if urgent %}Ja{% else %}Nein{% endif %}

{% if degraded %}
Test-Modus: AKTIV
{% endif %}

Bitte antworten Sie direkt an: {{ email }}
""",
    # ------------------------------------------------------------------
    # Contact form → customer confirmation
    # ------------------------------------------------------------------
    "contact_customer.html": """<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"><style>{{ style }}</style></head>
<body>
<div class="header">
  <h1>Vielen Dank für Ihre Nachricht</h1>
  <p>{{ company.name }}</p>
</div>
<div class="content">
  <p>Hallo {{ full_name }},</p>
  <p>wir haben Ihre Anfrage erhalten und melden uns schnellstmöglich bei Ihnen.
{% if urgent %}
  Da Sie Ihre Anfrage als dringend markiert haben, versuchen wir, Ihnen innerhalb von 2 Stunden zu antworten.
{% endif %}
  </p>
  <div class="section">
    <h3>Ihre Anfrage</h3>
    <table>
      <tr><td class="label">Betreff:</td><td>{{ subject }}</td></tr>
      <tr><td class="label">Service:</td><td>{{ service }}</td></tr>
      <tr><td class="label">Referenz-ID:</td><td>{{ reference_id }}</td></tr>
    </table>
    <p>{{ message|nl2br }}</p>
  </div>
  <p>Für Rückfragen erreichen Sie uns telefonisch unter {{ company.phone }} oder per E-Mail an
  <a href="mailto:{{ company.email }}">{{ company.email }}</a>.</p>
  <p>Mit freundlichen Grüßen<br>Ihr Team der {{ company.name }}</p>
</div>
<div class="footer">
  <p>{{ company.name }} | {{ company.address }} | {{ company.city }}</p>
</div>
</body>
</html>
""",
    "contact_customer.txt": """Hallo {{ full_name }},

vielen Dank für Ihre Nachricht an {{ company.name }}. Wir haben Ihre Anfrage
erhalten und melden uns schnellstmöglich bei Ihnen.
{% if urgent %}
Da Sie Ihre Anfrage als dringend markiert haben, versuchen wir, Ihnen
innerhalb von 2 Stunden zu antworten.
{% endif %}

IHRE ANFRAGE:
Betreff: {{ subject }}
Service: {{ service }}
Referenz-ID: {{ reference_id }}

{{ message }}

Für Rückfragen: {{ company.phone }} | {{ company.email }}

Mit freundlichen Grüßen
Ihr Team der {{ company.name }}
{{ company.address }}, {{ company.city }}
""",
    # ------------------------------------------------------------------
    # Configurator → company inbox
    # ------------------------------------------------------------------
    "configuration_company.html": """<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"><style>{{ style }}</style></head>
<body>
{% if degraded %}
<div class="test-mode"><strong>TEST-MODUS:</strong> Diese E-Mail wurde nur simuliert.</div>
{% endif %}
<div class="header">
  <h1>Neue Badkonfigurator Anfrage</h1>
  <p>{{ company.name }}</p>
</div>
<div class="content">
  <div class="section">
    <h3>Kontaktdaten</h3>
    <table>
      <tr><td class="label">Name:</td><td>{{ display_name }}</td></tr>
      <tr><td class="label">E-Mail:</td><td><a href="mailto:{{ email }}">{{ email }}</a></td></tr>
      <tr><td class="label">Telefon:</td><td>{% if phone %}<a href="tel:{{ phone }}">{{ phone }}</a>{% else %}Nicht angegeben{% endif %}</td></tr>
    </table>
  </div>
  <div class="section">
    <h3>Badkonfiguration</h3>
    <table>
      <tr><td class="label">Badgröße:</td><td>{{ size }}</td></tr>
      <tr><td class="label">Qualitätsstufe:</td><td>{{ quality_name }}</td></tr>
{% if quality_description %}
      <tr><td class="label">Beschreibung:</td><td>{{ quality_description }}</td></tr>
{% endif %}
    </table>
    <h4>Gewählte Ausstattung:</h4>
{% if equipment %}
    <ul>
{% for item in equipment %}
      <li>{{ item.name }}: {{ item.option }}</li>
{% endfor %}
    </ul>
{% else %}
    <p>{{ no_equipment }}</p>
{% endif %}
  </div>
  <div class="section">
    <h3>Fliesen &amp; Heizung</h3>
    <table>
      <tr><td class="label">Bodenfliesen:</td><td>{{ floor_tiles|join(", ") or no_selection }}</td></tr>
      <tr><td class="label">Wandfliesen:</td><td>{{ wall_tiles|join(", ") or no_selection }}</td></tr>
      <tr><td class="label">Heizung:</td><td>{{ heating|join(", ") or no_selection }}</td></tr>
    </table>
  </div>
{% if additional_info %}
  <div class="section">
    <h3>Gewünschte Informationen</h3>
    <ul>
{% for info in additional_info %}
      <li>{{ info }}</li>
{% endfor %}
    </ul>
  </div>
{% endif %}
{% if comments %}
  <div class="section">
    <h3>Anmerkungen</h3>
    <p>{{ comments|nl2br }}</p>
  </div>
{% endif %}
  <div class="section">
    <h3>System-Informationen</h3>
    <table>
      <tr><td class="label">Referenz-ID:</td><td>{{ reference_id }}</td></tr>
      <tr><td class="label">Eingegangen am:</td><td>{{ received_at }}</td></tr>
      <tr><td class="label">PDF-Konfiguration:</td><td>{% if document_attached %}im Anhang{% else %}nicht verfügbar{% endif %}</td></tr>
{% if degraded %}
      <tr><td class="label">Test-Modus:</td><td style="color: #f59e0b; font-weight: bold;">AKTIV - Keine echte E-Mail</td></tr>
{% endif %}
    </table>
  </div>
</div>
<div class="footer">
  <p>Diese E-Mail wurde {% if degraded %}simuliert{% else %}automatisch{% endif %} über den Badkonfigurator der {{ company.name }} Website generiert.</p>
  <p>Bitte antworten Sie direkt an: <a href="mailto:{{ email }}">{{ email }}</a></p>
  <p>{{ company.name }} | {{ company.address }} | {{ company.city }}</p>
</div>
</body>
</html>
""",
    "configuration_company.txt": """NEUE BADKONFIGURATOR ANFRAGE - {{ company.name }}
{% if degraded %}
*** TEST-MODUS AKTIV ***
{% endif %}
=============================================

KONTAKTDATEN:
Name: {{ display_name }}
E-Mail: {{ email }}
Telefon: {{ phone or "Nicht angegeben" }}

BADKONFIGURATION:
Badgröße: {{ size }}
Qualitätsstufe: {{ quality_name }}

GEWÄHLTE AUSSTATTUNG:
{% for item in equipment %}
- {{ item.name }}: {{ item.option }}
{% else %}
{{ no_equipment }}
{% endfor %}

FLIESEN & HEIZUNG:
Bodenfliesen: {{ floor_tiles|join(", ") or no_selection }}
Wandfliesen: {{ wall_tiles|join(", ") or no_selection }}
Heizung: {{ heating|join(", ") or no_selection }}
{% if additional_info %}

GEWÜNSCHTE INFORMATIONEN:
{% for info in additional_info %}
- {{ info }}
{% endfor %}
{% endif %}
{% if comments %}

ANMERKUNGEN:
{{ comments }}
{% endif %}

SYSTEM-INFORMATIONEN:
Referenz-ID: {{ reference_id }}
Eingegangen am: {{ received_at }}
PDF-Konfiguration: {% if document_attached %}im Anhang{% else %}nicht verfügbar{% endif %}

{% if degraded %}
Test-Modus: AKTIV
{% endif %}

Bitte antworten Sie direkt an: {{ email }}
""",
    # ------------------------------------------------------------------
    # Configurator → customer confirmation
    # ------------------------------------------------------------------
    "configuration_customer.html": """<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"><style>{{ style }}</style></head>
<body>
<div class="header">
  <h1>Ihre Badkonfiguration ist bei uns eingegangen</h1>
  <p>{{ company.name }}</p>
</div>
<div class="content">
  <p>Hallo {{ display_name }},</p>
  <p>vielen Dank für Ihr Interesse! Wir haben Ihre Badkonfiguration erhalten und erstellen Ihnen
  gerne ein individuelles Angebot. Wir melden uns innerhalb von 24 Stunden bei Ihnen.</p>
  <div class="section">
    <h3>Ihre Auswahl im Überblick</h3>
    <table>
      <tr><td class="label">Badgröße:</td><td>{{ size }}</td></tr>
      <tr><td class="label">Qualitätsstufe:</td><td>{{ quality_name }}</td></tr>
      <tr><td class="label">Ausstattung:</td><td>{% if equipment %}{% for item in equipment %}{{ item.name }} ({{ item.option }}){% if not loop.last %}, {% endif %}{% endfor %}{% else %}{{ no_equipment }}{% endif %}</td></tr>
      <tr><td class="label">Referenz-ID:</td><td>{{ reference_id }}</td></tr>
    </table>
  </div>
{% if document_attached %}
  <p>Ihre vollständige Konfiguration finden Sie als PDF im Anhang dieser E-Mail.</p>
{% endif %}
  <p>Für Rückfragen erreichen Sie uns telefonisch unter {{ company.phone }} oder per E-Mail an
  <a href="mailto:{{ company.email }}">{{ company.email }}</a>.</p>
  <p>Mit freundlichen Grüßen<br>Ihr Team der {{ company.name }}</p>
</div>
<div class="footer">
  <p>{{ company.name }} | {{ company.address }} | {{ company.city }}</p>
</div>
</body>
</html>
""",
    "configuration_customer.txt": """Hallo {{ display_name }},

vielen Dank für Ihr Interesse! Wir haben Ihre Badkonfiguration erhalten und
erstellen Ihnen gerne ein individuelles Angebot. Wir melden uns innerhalb von
24 Stunden bei Ihnen.

IHRE AUSWAHL IM ÜBERBLICK:
Badgröße: {{ size }}
Qualitätsstufe: {{ quality_name }}
{% for item in equipment %}
- {{ item.name }}: {{ item.option }}
{% else %}
{{ no_equipment }}
{% endfor %}
Referenz-ID: {{ reference_id }}
{% if document_attached %}

Ihre vollständige Konfiguration finden Sie als PDF im Anhang.
{% endif %}

Für Rückfragen: {{ company.phone }} | {{ company.email }}

Mit freundlichen Grüßen
Ihr Team der {{ company.name }}
{{ company.address }}, {{ company.city }}
""",
    # ------------------------------------------------------------------
    # Configurator PDF
    # ------------------------------------------------------------------
    "configuration_document.html": """<!DOCTYPE html>
<html lang="de">
<head>
<meta charset="UTF-8">
<title>Badkonfigurator - {{ full_name }}</title>
<style>
  @page {
    size: a4 portrait;
    margin: 2.5cm 1.5cm 2.5cm 1.5cm;
    @frame footer_frame {
      -pdf-frame-content: page-footer;
      left: 1.5cm; right: 1.5cm; bottom: 0.8cm; height: 1.4cm;
    }
  }
  body { font-family: Helvetica, Arial, sans-serif; font-size: 10pt; color: #1f2937; }
  .hero { background-color: #1e40af; color: #ffffff; padding: 16px; text-align: center; }
  .hero h1 { font-size: 18pt; margin: 4px 0; }
  .section { border: 1px solid #e2e8f0; padding: 10px; margin-top: 14px; }
  .section-header { background-color: #1e40af; color: #ffffff; padding: 6px 10px; font-weight: bold; }
  .label { width: 35%; font-weight: bold; color: #374151; vertical-align: top; }
  .option { color: #6b7280; }
  .no-selection { color: #6b7280; font-style: italic; }
  .next-steps { background-color: #ecfdf5; border: 1px solid #10b981; padding: 10px; margin-top: 14px; }
  #page-footer { font-size: 8pt; color: #6b7280; text-align: center; }
</style>
</head>
<body>
<div class="hero">
  <div>{{ company.name }}</div>
  <h1>Ihr Traumbad-Konfigurator</h1>
  <div>Individuelle Badplanung vom {{ generated_date }} um {{ generated_time }} Uhr</div>
</div>

<div class="section">
  <div class="section-header">Ihre Kontaktdaten</div>
  <table width="100%">
    <tr><td class="label">Name:</td><td><strong>{{ display_name }}</strong></td></tr>
    <tr><td class="label">E-Mail:</td><td>{{ email or not_provided }}</td></tr>
    <tr><td class="label">Telefon:</td><td>{% if phone %}{{ phone }}{% else %}<em>{{ not_provided }}</em>{% endif %}</td></tr>
  </table>
</div>

<div class="section">
  <div class="section-header">Ihre Badkonfiguration</div>
  <table width="100%">
    <tr><td class="label">Badezimmergröße:</td><td>{{ size }}</td></tr>
    <tr><td class="label">Qualitätsstufe:</td><td>{{ quality_name }}</td></tr>
{% if quality_description %}
    <tr><td class="label">Qualitätsbeschreibung:</td><td>{{ quality_description }}</td></tr>
{% endif %}
  </table>
  <h3>Gewählte Ausstattung</h3>
{% if equipment %}
  <table width="100%">
{% for item in equipment %}
    <tr>
      <td class="label">{{ item.name }}</td>
      <td><span class="option">{{ item.option }}</span>{% if item.description %}<br><em>{{ item.description }}</em>{% endif %}</td>
    </tr>
{% endfor %}
  </table>
{% else %}
  <p class="no-selection">{{ no_equipment }}. Wir beraten Sie gerne zu den passenden Optionen für Ihr Traumbad!</p>
{% endif %}
</div>

<div class="section">
  <div class="section-header">Fliesen &amp; Heizung</div>
  <table width="100%">
{% for label, values in tile_blocks %}
    <tr>
      <td class="label">{{ label }}</td>
      <td>{% if values %}{% for value in values %}{{ value }}{% if not loop.last %}<br>{% endif %}{% endfor %}{% else %}<span class="no-selection">{{ no_selection }}</span>{% endif %}</td>
    </tr>
{% endfor %}
  </table>
</div>
{% if additional_info %}

<div class="section">
  <div class="section-header">Gewünschte Informationen</div>
  <ul>
{% for info in additional_info %}
    <li><strong>{{ info }}</strong></li>
{% endfor %}
  </ul>
</div>
{% endif %}
{% if comments %}

<div class="section">
  <div class="section-header">Ihre Anmerkungen</div>
  <p>{{ comments|nl2br }}</p>
</div>
{% endif %}

<div class="next-steps">
  <h3>So geht es weiter</h3>
  <p><strong>Wir melden uns innerhalb von 24 Stunden bei Ihnen!</strong></p>
  <p>Unser Expertenteam erstellt Ihnen ein maßgeschneidertes Angebot basierend auf Ihrer Konfiguration.</p>
  <table width="100%">
    <tr><td class="label">Direkter Kontakt:</td><td>{{ company.phone }}</td></tr>
    <tr><td class="label">E-Mail:</td><td>{{ company.email }}</td></tr>
    <tr><td class="label">Adresse:</td><td>{{ company.address }}<br>{{ company.city }}</td></tr>
  </table>
</div>

<div id="page-footer">
  Erstellt am {{ generated_date }} um {{ generated_time }} Uhr | {{ company.phone }} | {{ company.email }}<br>
  {{ company.name }} | {{ company.address }} | {{ company.city }}
</div>
</body>
</html>
""",
}


def nl2br(value: Any) -> Markup:
    """Escape, then turn newlines into <br> tags."""
    text = str(value).replace("\r\n", "\n").replace("\r", "\n")
    return escape(text).replace("\n", Markup("<br>\n"))


_env = Environment(
    loader=DictLoader(_TEMPLATES),
    autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False, default=False),
    undefined=StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
)
_env.filters["nl2br"] = nl2br

_SHARED = {
    "style": Markup(_EMAIL_STYLE),
    "not_provided": NOT_PROVIDED,
    "no_selection": NO_SELECTION,
    "no_equipment": NO_EQUIPMENT,
}


def _render(name: str, context: Dict[str, Any]) -> str:
    return _env.get_template(name).render({**_SHARED, **context})


def _render_email(stem: str, context: Dict[str, Any]) -> RenderedEmail:
    return RenderedEmail(
        html=_render(f"{stem}.html", context),
        text=_render(f"{stem}.txt", context),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def contact_company_email(context: Dict[str, Any]) -> RenderedEmail:
    return _render_email("contact_company", context)


def contact_customer_email(context: Dict[str, Any]) -> RenderedEmail:
    return _render_email("contact_customer", context)


def configuration_company_email(context: Dict[str, Any]) -> RenderedEmail:
    return _render_email("configuration_company", context)


def configuration_customer_email(context: Dict[str, Any]) -> RenderedEmail:
    return _render_email("configuration_customer", context)


def configuration_document(context: Dict[str, Any]) -> str:
    """Full HTML page for the PDF engine."""
    tile_blocks = [
        ("Bodenfliesen", context["floor_tiles"]),
        ("Wandfliesen", context["wall_tiles"]),
        ("Heizung", context["heating"]),
    ]
    return _render("configuration_document.html", {**context, "tile_blocks": tile_blocks})
