"""
Unit tests for the configurator PDF renderer.
The render engine is always faked.
"""

import threading
from datetime import datetime

import pytest

from formrelay.config import CompanyInfo
from formrelay.errors import RenderError
from formrelay.models.submission import ConfigurationSubmission
from formrelay.services.document_renderer import DocumentRenderer, build_filename

from conftest import FailingEngine, FakeEngine


class TestBuildFilename:
    """Badkonfigurator_{First}_{Last}_{timestamp}.pdf with a sanitized name."""

    moment = datetime(2026, 3, 14, 9, 30, 5)

    def test_plain_name(self):
        assert build_filename("Max", "Mustermann", self.moment) == (
            "Badkonfigurator_Max_Mustermann_2026-03-14_09-30-05.pdf"
        )

    def test_unsafe_characters_are_dropped(self):
        assert build_filename("Jörg", "Müller-Lüdenscheidt", self.moment) == (
            "Badkonfigurator_Jrg_Mller-Ldenscheidt_2026-03-14_09-30-05.pdf"
        )

    def test_spaces_are_dropped(self):
        assert build_filename("Anna Maria", "von Berg", self.moment) == (
            "Badkonfigurator_AnnaMaria_vonBerg_2026-03-14_09-30-05.pdf"
        )

    def test_empty_name_falls_back_to_unknown(self):
        assert build_filename("", "", self.moment) == (
            "Badkonfigurator_Unknown_2026-03-14_09-30-05.pdf"
        )

    def test_name_that_sanitizes_to_nothing(self):
        assert build_filename("Ωμέγα", "../", self.moment).startswith("Badkonfigurator_Unknown_")


class TestRender:
    def test_returns_document_with_metadata(self, configuration_payload, clock):
        engine = FakeEngine()
        renderer = DocumentRenderer(engine, clock=clock)
        submission = ConfigurationSubmission.model_validate(configuration_payload)

        document = renderer.render(submission, "BATHROOM-1A2B3C4D")

        assert document.filename == "Badkonfigurator_Max_Mustermann_2026-03-14_10-30-00.pdf"
        assert document.content.startswith(b"%PDF")
        assert document.size_bytes == len(document.content)
        assert document.created_at == clock.now
        assert document.path is None

    def test_filename_uses_company_timezone(self, configuration_payload, clock):
        renderer = DocumentRenderer(FakeEngine(), company=CompanyInfo(timezone="UTC"), clock=clock)

        document = renderer.render(ConfigurationSubmission.model_validate(configuration_payload))

        assert document.filename.endswith("_2026-03-14_09-30-00.pdf")
        assert document.created_at == clock.now

    def test_single_engine_call_with_full_markup(self, configuration_payload, clock):
        engine = FakeEngine()
        renderer = DocumentRenderer(engine, clock=clock)

        renderer.render(ConfigurationSubmission.model_validate(configuration_payload))

        assert len(engine.calls) == 1
        markup, options = engine.calls[0]
        assert markup.startswith("<!DOCTYPE html>")
        assert options["paper"] == "A4"

    def test_deterministic_with_frozen_clock(self, configuration_payload, clock):
        renderer = DocumentRenderer(FakeEngine(), clock=clock)
        submission = ConfigurationSubmission.model_validate(configuration_payload)

        first = renderer.render(submission, "BATHROOM-1")
        second = renderer.render(submission, "BATHROOM-1")

        assert first.content == second.content
        assert first.filename == second.filename

    def test_missing_fields_render_fine(self, clock):
        renderer = DocumentRenderer(FakeEngine(), clock=clock)
        submission = ConfigurationSubmission.model_validate({"contactData": {}})

        document = renderer.render(submission)

        assert "Unknown" in document.filename
        assert b"Keine spezifische Ausstattung ausgew" in document.content


class TestRenderFailures:
    """Engine problems surface as RenderError, never as raw exceptions."""

    def test_engine_exception(self, configuration_payload, clock):
        renderer = DocumentRenderer(FailingEngine(ValueError("bad markup")), clock=clock)

        with pytest.raises(RenderError) as exc_info:
            renderer.render(ConfigurationSubmission.model_validate(configuration_payload))

        assert "bad markup" in str(exc_info.value)

    def test_engine_render_error_passes_through(self, configuration_payload, clock):
        renderer = DocumentRenderer(FailingEngine(RenderError("2 error(s)")), clock=clock)

        with pytest.raises(RenderError, match="2 error"):
            renderer.render(ConfigurationSubmission.model_validate(configuration_payload))

    def test_empty_output(self, configuration_payload, clock):
        class EmptyEngine:
            def render_to_document(self, markup, options):
                return b""

        renderer = DocumentRenderer(EmptyEngine(), clock=clock)

        with pytest.raises(RenderError, match="empty"):
            renderer.render(ConfigurationSubmission.model_validate(configuration_payload))

    def test_timeout(self, configuration_payload, clock):
        release = threading.Event()

        class HangingEngine:
            def render_to_document(self, markup, options):
                release.wait(5)
                return b"%PDF late"

        renderer = DocumentRenderer(HangingEngine(), clock=clock, timeout_seconds=0.05)
        try:
            with pytest.raises(RenderError, match="timed out"):
                renderer.render(ConfigurationSubmission.model_validate(configuration_payload))
        finally:
            release.set()
