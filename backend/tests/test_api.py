"""
HTTP tests for the form endpoints and health checks.

The app's services are replaced with ones built from fakes: a recording
transport, the fake PDF engine, a frozen clock and an in-memory rate store.
Nothing here sends mail or writes files outside tmp_path.
"""

import pytest
from fastapi.testclient import TestClient

from formrelay import main
from formrelay.dependencies import build_services
from formrelay.services.rate_limiter import InMemoryRateStateStore
from formrelay.services.transport_selector import TransportSelection

from conftest import FailingEngine, FakeEngine, RecordingEventSink, RecordingTransport


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def wire(settings, clock):
    """
    Install fake-backed services on the app and return a function that
    rebuilds them with overrides (transport, engine, settings).
    """
    def install(transport=None, engine=None, degraded=True, **setting_overrides):
        effective = settings.model_copy(update=setting_overrides) if setting_overrides else settings
        transport = transport or RecordingTransport()
        services = build_services(
            effective,
            events=RecordingEventSink(),
            clock=clock,
            engine=engine or FakeEngine(),
            selection=TransportSelection(transport=transport, degraded=degraded),
            rate_store=InMemoryRateStateStore(clock=clock),
        )
        main.app.state.services = services
        return transport

    yield install
    main.app.state.services = None


@pytest.fixture()
def client():
    return TestClient(main.app)


# ---------------------------------------------------------------------------
# POST /api/contact
# ---------------------------------------------------------------------------

class TestContactEndpoint:
    def test_success(self, wire, client, contact_payload):
        transport = wire()

        resp = client.post("/api/contact", json=contact_payload)

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["referenceId"].startswith("CONTACT-")
        assert body["emailSent"] is True
        assert body["customerConfirmation"] is True
        assert body["testMode"] is True
        assert body["timestamp"].startswith("2026-03-14T09:30:00")
        assert [m.to for m in transport.sent] == ["hey@mitra-sanitaer.de", "max@example.de"]

    def test_rate_limit_headers(self, wire, client, contact_payload):
        wire()

        resp = client.post("/api/contact", json=contact_payload)

        assert resp.headers["X-RateLimit-Limit"] == "10"
        assert resp.headers["X-RateLimit-Remaining"] == "9"
        assert "X-RateLimit-Reset" in resp.headers

    def test_invalid_email(self, wire, client, contact_payload):
        transport = wire()
        contact_payload["email"] = "not-an-email"

        resp = client.post("/api/contact", json=contact_payload)

        assert resp.status_code == 400
        assert resp.json()["detail"]["error_code"] == "invalid_email"
        assert transport.sent == []

    def test_missing_required_field(self, wire, client, contact_payload):
        wire()
        del contact_payload["firstName"]

        resp = client.post("/api/contact", json=contact_payload)

        assert resp.status_code == 422

    def test_blank_required_field(self, wire, client, contact_payload):
        wire()
        contact_payload["message"] = "   "

        resp = client.post("/api/contact", json=contact_payload)

        assert resp.status_code == 422

    def test_dangerous_content(self, wire, client, contact_payload):
        transport = wire()
        contact_payload["message"] = "<script>alert(1)</script>"

        resp = client.post("/api/contact", json=contact_payload)

        assert resp.status_code == 400
        assert resp.json()["detail"]["error_code"] == "invalid_content"
        assert transport.sent == []

    def test_nobody_reached(self, wire, client, contact_payload):
        wire(transport=RecordingTransport(fail_for={"hey@mitra-sanitaer.de", "max@example.de"}))

        resp = client.post("/api/contact", json=contact_payload)

        assert resp.status_code == 500
        detail = resp.json()["detail"]
        assert detail["error_code"] == "delivery_failed"
        assert "hey@mitra-sanitaer.de" in detail["detail"]

    def test_partial_delivery_is_success(self, wire, client, contact_payload):
        wire(transport=RecordingTransport(fail_for={"max@example.de"}))

        resp = client.post("/api/contact", json=contact_payload)

        assert resp.status_code == 200
        assert resp.json()["emailSent"] is True
        assert resp.json()["customerConfirmation"] is False


class TestRateLimiting:
    def test_third_request_rejected(self, wire, client, contact_payload):
        transport = wire(rate_limit_max_requests=2)

        first = client.post("/api/contact", json=contact_payload)
        second = client.post("/api/contact", json=contact_payload)
        third = client.post("/api/contact", json=contact_payload)

        assert first.status_code == 200
        assert second.status_code == 200
        assert third.status_code == 429
        assert int(third.headers["Retry-After"]) >= 1
        assert third.headers["X-RateLimit-Remaining"] == "0"
        assert third.json()["detail"]["error_code"] == "rate_limited"
        # The rejected request never reached the dispatcher
        assert len(transport.sent) == 4

    def test_different_clients_are_counted_separately(self, wire, client, contact_payload):
        wire(rate_limit_max_requests=1)

        a = client.post("/api/contact", json=contact_payload, headers={"X-Forwarded-For": "203.0.113.1"})
        b = client.post("/api/contact", json=contact_payload, headers={"X-Forwarded-For": "203.0.113.2"})

        assert a.status_code == 200
        assert b.status_code == 200

    def test_disabled_limiter_sends_no_headers(self, wire, client, contact_payload):
        wire(rate_limit_max_requests=0)

        resp = client.post("/api/contact", json=contact_payload)

        assert resp.status_code == 200
        assert "X-RateLimit-Limit" not in resp.headers


# ---------------------------------------------------------------------------
# POST /api/send-bathroom-configuration
# ---------------------------------------------------------------------------

class TestConfigurationEndpoint:
    def test_success_with_pdf(self, wire, client, configuration_payload):
        transport = wire()

        resp = client.post("/api/send-bathroom-configuration", json=configuration_payload)

        assert resp.status_code == 200
        body = resp.json()
        assert body["referenceId"].startswith("BATHROOM-")
        assert body["pdfGenerated"] is True
        assert body["pdfFilename"] == "Badkonfigurator_Max_Mustermann_2026-03-14_10-30-00.pdf"
        assert all(m.attachment is not None for m in transport.sent)

    def test_pdf_failure_still_sends(self, wire, client, configuration_payload):
        transport = wire(engine=FailingEngine())

        resp = client.post("/api/send-bathroom-configuration", json=configuration_payload)

        assert resp.status_code == 200
        assert resp.json()["pdfGenerated"] is False
        assert resp.json()["pdfFilename"] is None
        assert len(transport.sent) == 2

    def test_invalid_email(self, wire, client, configuration_payload):
        transport = wire()
        configuration_payload["contactData"]["email"] = "max@"

        resp = client.post("/api/send-bathroom-configuration", json=configuration_payload)

        assert resp.status_code == 400
        assert resp.json()["detail"]["error_code"] == "invalid_email"
        assert transport.sent == []

    def test_missing_contact_block(self, wire, client):
        wire()

        resp = client.post("/api/send-bathroom-configuration", json={"bathroomData": {}})

        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# POST /api/generate-pdf-only
# ---------------------------------------------------------------------------

class TestGeneratePdfOnly:
    def test_renders_without_mail(self, wire, client, configuration_payload):
        transport = wire()

        resp = client.post("/api/generate-pdf-only", json=configuration_payload)

        assert resp.status_code == 200
        document = resp.json()["document"]
        assert document["filename"].startswith("Badkonfigurator_Max_Mustermann_")
        assert document["sizeBytes"] > 0
        assert document["saved"] is False
        assert transport.sent == []

    def test_saves_when_archive_enabled(self, wire, client, configuration_payload, tmp_path):
        wire(pdf_save_documents=True, pdf_output_dir=str(tmp_path))

        resp = client.post("/api/generate-pdf-only", json=configuration_payload)

        document = resp.json()["document"]
        assert document["saved"] is True
        assert (tmp_path / document["filename"]).exists()

    def test_render_failure(self, wire, client, configuration_payload):
        wire(engine=FailingEngine())

        resp = client.post("/api/generate-pdf-only", json=configuration_payload)

        assert resp.status_code == 500
        assert resp.json()["detail"]["error_code"] == "render_failed"


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class TestHealth:
    @pytest.mark.parametrize("path", ["/health", "/api/health"])
    def test_reports_components(self, wire, client, path):
        wire()

        resp = client.get(path)

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["services"]["email"]["testMode"] is True
        assert body["services"]["email"]["credentialsConfigured"] is True
        assert body["services"]["rateLimit"]["maxRequests"] == 10

    def test_health_is_not_rate_limited(self, wire, client):
        wire(rate_limit_max_requests=1)

        statuses = [client.get("/health").status_code for _ in range(3)]

        assert statuses == [200, 200, 200]

    def test_root(self, client):
        assert client.get("/").json()["message"] == "Form Relay API"


class TestCorsOrigins:
    def test_defaults_and_extras_deduplicated(self, settings):
        configured = settings.model_copy(update={
            "frontend_url": "https://mitra-sanitaer.de/",
            "cors_origins": ["https://mitra-sanitaer.de", "http://localhost:3000", "https://www.mitra-sanitaer.de"],
        })

        origins = main.get_cors_origins(configured)

        assert origins == [
            "http://localhost:3000",
            "http://localhost:3001",
            "https://mitra-sanitaer.de",
            "https://www.mitra-sanitaer.de",
        ]
