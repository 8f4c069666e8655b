#!/usr/bin/env python3
"""
Dev helper: send a sample form submission to the local form relay backend.

Builds a contact-form or bathroom-configurator payload the way the website
JavaScript does and POST-s it to the matching endpoint.

Usage
-----
# Contact form, targeting localhost:8000
python scripts/send_test_submission.py

# Bathroom configurator (PDF + emails)
python scripts/send_test_submission.py --kind configuration

# Only render the configurator PDF, no emails
python scripts/send_test_submission.py --kind pdf-only

# Send the confirmation to your own inbox
python scripts/send_test_submission.py --email you@example.de

# Target a different backend URL
python scripts/send_test_submission.py --url http://staging.example.com

Without live SMTP credentials the backend runs in test mode and the
response carries "testMode": true.
"""

import argparse
import json
import sys
import textwrap

import httpx


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------

def _build_contact_payload(email: str, urgent: bool) -> dict:
    return {
        "firstName": "Max",
        "lastName": "Mustermann",
        "email": email,
        "phone": "030 1234567",
        "subject": "Anfrage Badsanierung",
        "message": "Hallo,\nich interessiere mich für eine Badsanierung.\nViele Grüße",
        "service": "bathroom",
        "urgent": urgent,
    }


def _build_configuration_payload(email: str, urgent: bool) -> dict:
    return {
        "contactData": {
            "salutation": "Herr",
            "firstName": "Max",
            "lastName": "Mustermann",
            "email": email,
            "phone": "030 1234567",
        },
        "bathroomData": {
            "bathroomSize": 8.5,
            "qualityLevel": {
                "name": "Komfort",
                "description": "Hochwertige Markenprodukte mit gutem Preis-Leistungs-Verhältnis",
            },
            "equipment": [
                {
                    "id": "shower",
                    "name": "Dusche",
                    "selected": True,
                    "popupDetails": {
                        "options": [
                            {"name": "Walk-In Dusche", "description": "Bodengleich, 120x90", "selected": True},
                            {"name": "Duschkabine", "selected": False},
                        ]
                    },
                },
                {"id": "bathtub", "name": "Badewanne", "selected": False},
                {"id": "toilet", "name": "WC", "selected": True},
            ],
            "floorTiles": ["Feinsteinzeug 60x60 anthrazit"],
            "wallTiles": [],
            "heating": ["Fußbodenheizung"],
        },
        "comments": "Bitte Termin am Vormittag.\nParkplatz vorhanden.",
        "additionalInfo": {"projektablauf": True, "foerderung": True, "garantie": False},
    }


_KINDS = {
    "contact": ("/api/contact", _build_contact_payload),
    "configuration": ("/api/send-bathroom-configuration", _build_configuration_payload),
    "pdf-only": ("/api/generate-pdf-only", _build_configuration_payload),
}


# ---------------------------------------------------------------------------
# Pretty printer
# ---------------------------------------------------------------------------

def _print_response(response: httpx.Response) -> None:
    status = response.status_code
    symbol = "OK" if status == 200 else "FAIL"
    print(f"\n[{symbol}] HTTP {status}")
    for header in ("X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After"):
        if header in response.headers:
            print(f"{header}: {response.headers[header]}")
    try:
        print(json.dumps(response.json(), indent=2, ensure_ascii=False))
    except ValueError:
        print(response.text)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> int:
    parser = argparse.ArgumentParser(
        prog="send_test_submission.py",
        description="Send a sample form submission to the form relay backend.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            Examples:
              python scripts/send_test_submission.py
              python scripts/send_test_submission.py --kind configuration
              python scripts/send_test_submission.py --kind pdf-only --dry-run
        """),
    )
    parser.add_argument(
        "--url",
        default="http://localhost:8000",
        help="Backend base URL (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--kind",
        default="contact",
        choices=list(_KINDS),
        help="Which form to submit (default: contact)",
    )
    parser.add_argument(
        "--email",
        default="max.mustermann@example.de",
        help="Customer email address (default: max.mustermann@example.de)",
    )
    parser.add_argument(
        "--urgent",
        action="store_true",
        help="Mark a contact submission as urgent.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=60.0,
        help="Request timeout in seconds (default: 60)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the payload JSON without sending it.",
    )

    args = parser.parse_args()

    path, builder = _KINDS[args.kind]
    payload = builder(args.email, args.urgent)
    endpoint = f"{args.url.rstrip('/')}{path}"

    print(f"Kind      : {args.kind}")
    print(f"Endpoint  : {endpoint}")
    print(f"Customer  : {args.email}")

    if args.dry_run:
        print("\n[DRY RUN] Payload:")
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return 0

    try:
        response = httpx.post(endpoint, json=payload, timeout=args.timeout)
    except httpx.HTTPError as e:
        print(f"ERROR: Request failed: {e}", file=sys.stderr)
        return 1

    _print_response(response)
    return 0 if response.status_code == 200 else 1


if __name__ == "__main__":
    sys.exit(main())
