"""Tests for snaprotator.email_report and snaprotator.email_client."""

from __future__ import annotations

import smtplib
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from snaprotator.config import Config, EmailConfig, RetentionPolicy
from snaprotator.email_client import EmailClient, EmailMessage
from snaprotator.email_report import EmailReporter, render_report
from snaprotator.errors import ErrorKind, RotatorError

START = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)


@pytest.fixture
def config(config_file) -> Config:
    return Config(str(config_file))


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class TestRenderReport:

    def test_error_report_contains_error_and_logs(self, config: Config) -> None:
        html = render_report(config, START, "line one\nline two", "ErrorMessage: boom")

        assert "kvm-host-01" in html
        assert "2024-05-01T12:30:00+00:00" in html
        assert "line one\nline two" in html
        assert "ErrorMessage: boom" in html
        assert "hunter2" not in html

    def test_success_report_has_no_error_section(self, config: Config) -> None:
        html = render_report(config, START, "all good")
        assert "<h3>Error</h3>" not in html
        assert "all good" in html

    def test_log_content_is_escaped(self, config: Config) -> None:
        html = render_report(config, START, "<script>alert(1)</script>")
        assert "<script>" not in html
        assert "&lt;script&gt;" in html


# ---------------------------------------------------------------------------
# EmailReporter
# ---------------------------------------------------------------------------


class TestEmailReporter:

    def test_error_report(self, config: Config) -> None:
        sink = MagicMock()
        sink.get_buffered_entries.return_value = ["Creating snapshot", "OUT | done"]
        client = MagicMock()
        reporter = EmailReporter(config, sink, START, client=client)

        reporter.send_error_report(RotatorError.from_message("delete failed"))

        message = client.send.call_args.args[0]
        assert message.subject == "[FAILURE] snaprotator | An error occurred on `kvm-host-01`."
        assert message.to_addresses == ["ops@example.com", "oncall@example.com"]
        assert "delete failed" in message.content
        assert "Creating snapshot\nOUT | done" in message.content

    def test_success_report(self, config: Config) -> None:
        sink = MagicMock()
        sink.get_buffered_entries.return_value = []
        client = MagicMock()
        reporter = EmailReporter(config, sink, START, client=client)

        reporter.send_success_report(RetentionPolicy("web01", 2))

        message = client.send.call_args.args[0]
        assert message.subject == (
            "[SUCCESS] snaprotator | Snapshot was created for vm `web01` on host `kvm-host-01`."
        )
        assert "<h3>Error</h3>" not in message.content


# ---------------------------------------------------------------------------
# EmailClient
# ---------------------------------------------------------------------------


class TestEmailClient:

    @pytest.fixture
    def email_config(self) -> EmailConfig:
        return EmailConfig(
            notification_emails=["a@example.com", "b@example.com"],
            smtp_username="rotator@example.com",
            smtp_password="secret",
            smtp_host="smtp.example.com",
            smtp_port=2525,
        )

    def test_sends_html_to_bcc_recipients(self, email_config: EmailConfig) -> None:
        message = EmailMessage(["a@example.com", "b@example.com"], "Subject", "<p>body</p>")

        with patch("snaprotator.email_client.smtplib.SMTP") as smtp_cls:
            smtp = smtp_cls.return_value.__enter__.return_value
            EmailClient(email_config).send(message)

        smtp_cls.assert_called_once_with("smtp.example.com", 2525)
        smtp.auth.assert_called_once_with("PLAIN", smtp.auth_plain)
        smtp.starttls.assert_not_called()

        mime = smtp.send_message.call_args.args[0]
        kwargs = smtp.send_message.call_args.kwargs
        assert kwargs["from_addr"] == "rotator@example.com"
        assert kwargs["to_addrs"] == ["a@example.com", "b@example.com"]
        assert mime["From"] == "rotator@example.com"
        assert mime["To"] is None
        assert mime["Bcc"] is None
        assert mime.get_content_subtype() == "html"

    def test_starttls_when_configured(self, email_config: EmailConfig) -> None:
        config = EmailConfig(**{**email_config.__dict__, "smtp_starttls": True})

        with patch("snaprotator.email_client.smtplib.SMTP") as smtp_cls:
            smtp = smtp_cls.return_value.__enter__.return_value
            EmailClient(config).send(EmailMessage(["a@example.com"], "s", "c"))

        smtp.starttls.assert_called_once()

    def test_smtp_failure_is_external_service_error(self, email_config: EmailConfig) -> None:
        with patch("snaprotator.email_client.smtplib.SMTP") as smtp_cls:
            smtp = smtp_cls.return_value.__enter__.return_value
            smtp.auth.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")

            with pytest.raises(RotatorError) as excinfo:
                EmailClient(email_config).send(EmailMessage(["a@example.com"], "s", "c"))

        assert excinfo.value.kind is ErrorKind.EXTERNAL_SERVICE

    def test_connection_failure_is_external_service_error(self, email_config: EmailConfig) -> None:
        with patch("snaprotator.email_client.smtplib.SMTP", side_effect=ConnectionRefusedError("refused")):
            with pytest.raises(RotatorError) as excinfo:
                EmailClient(email_config).send(EmailMessage(["a@example.com"], "s", "c"))

        assert excinfo.value.kind is ErrorKind.EXTERNAL_SERVICE
