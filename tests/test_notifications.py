"""
Tests for notification sinks and report e-mail composition.
"""

import asyncio

import requests

from src.notifications.email import build_report_email, format_date_for_display
from src.notifications.sink import LoggingNotificationSink, WebhookNotificationSink
from src.schemas.models import NotificationPayload


def make_payload():
    return NotificationPayload(
        type="criticidade_alta_immediate",
        message="Problema crítico detectado: Cabo rompido",
        recipients=["supervisor"],
        urgency="high",
        inspection_id="insp-1",
    )


class FakeResponse:
    def __init__(self, status_code, body=None):
        self.status_code = status_code
        self.text = "error" if status_code >= 300 else ""
        self.headers = {"Content-Type": "application/json"} if body is not None else {}
        self._body = body

    def json(self):
        return self._body


class TestLoggingSink:
    def test_records_payload(self):
        sink = LoggingNotificationSink()

        result = asyncio.run(sink.send(make_payload()))

        assert result.success is True
        assert result.delivery_id.startswith("log_")
        assert sink.sent[0].urgency == "high"


class TestWebhookSink:
    """Tests for webhook delivery with retries."""

    def test_delivered_on_first_attempt(self, monkeypatch):
        calls = []

        def fake_post(url, json, headers, timeout):
            calls.append(json)
            return FakeResponse(200, {"delivery_id": "d-1"})

        monkeypatch.setattr(requests, "post", fake_post)
        sink = WebhookNotificationSink("https://hooks.example.com/x", max_retries=3, backoff=0)

        result = asyncio.run(sink.send(make_payload()))

        assert result.success is True
        assert result.delivery_id == "d-1"
        assert calls[0]["type"] == "criticidade_alta_immediate"

    def test_retries_server_errors(self, monkeypatch):
        responses = [FakeResponse(503), FakeResponse(502), FakeResponse(204)]
        monkeypatch.setattr(requests, "post", lambda *args, **kwargs: responses.pop(0))
        sink = WebhookNotificationSink("https://hooks.example.com/x", max_retries=3, backoff=0)

        result = asyncio.run(sink.send(make_payload()))

        assert result.success is True
        assert responses == []

    def test_client_error_is_not_retried(self, monkeypatch):
        calls = []

        def fake_post(*args, **kwargs):
            calls.append(1)
            return FakeResponse(400)

        monkeypatch.setattr(requests, "post", fake_post)
        sink = WebhookNotificationSink("https://hooks.example.com/x", max_retries=3, backoff=0)

        result = asyncio.run(sink.send(make_payload()))

        assert result.success is False
        assert result.error.startswith("HTTP 400")
        assert len(calls) == 1

    def test_connection_errors_exhaust_retries(self, monkeypatch):
        def fake_post(*args, **kwargs):
            raise requests.exceptions.ConnectionError("refused")

        monkeypatch.setattr(requests, "post", fake_post)
        sink = WebhookNotificationSink("https://hooks.example.com/x", max_retries=2, backoff=0)

        result = asyncio.run(sink.send(make_payload()))

        assert result.success is False
        assert "refused" in result.error


class TestReportEmail:
    """Tests for build_report_email."""

    def test_subject_and_bodies(self):
        email = build_report_email(
            inspection_id="insp-1",
            client_name="ACME Energia",
            inspection_date="2024-03-15",
            version=2,
            os_number="OS-2024-001",
            pdf_url="https://files.example.com/reports/acme_v2.pdf",
            json_url="https://files.example.com/reports/acme_v2.json",
            responsible_name="Joana",
        )

        assert email.subject == "Inspeção Elétrica - ACME Energia - 15/03/2024"
        assert email.text_body.startswith("Prezado(a) Joana,")
        assert "- Versão do Relatório: v2" in email.text_body
        assert "Dados JSON: https://files.example.com/reports/acme_v2.json" in email.text_body
        assert 'href="https://files.example.com/reports/acme_v2.pdf"' in email.html_body

    def test_defaults_without_optional_data(self):
        email = build_report_email(
            inspection_id="insp-1",
            client_name="ACME",
            inspection_date="",
            version=1,
            os_number="AUTO-12345678",
            pdf_url="https://x/a.pdf",
        )

        assert "Prezado(a) Responsável," in email.text_body
        assert "Dados JSON" not in email.text_body
        assert "Baixar Dados JSON" not in email.html_body

    def test_date_display(self):
        assert format_date_for_display("2024-03-15T10:00:00") == "15/03/2024"
        assert format_date_for_display("15/03/2024") == "15/03/2024"
        assert format_date_for_display("março") == "março"
