"""Renders and sends the success and failure email reports."""

from datetime import datetime
from typing import Any, Dict, Optional

from jinja2 import Environment, PackageLoader, select_autoescape

from .config import Config, RetentionPolicy
from .email_client import EmailClient, EmailMessage
from .errors import RotatorError, format_error
from .log_sink import LogSink

TEMPLATE_NAME = "email-template.html"

_environment = Environment(
    loader=PackageLoader("snaprotator", "templates"),
    autoescape=select_autoescape(["html"]),
)


def render_report(config: Config, timestamp: datetime, logs: str,
                  formatted_error: Optional[str] = None) -> str:
    """Render the HTML report body.

    Args:
        config: Application configuration (credentials are masked)
        timestamp: Application start time
        logs: Accumulated log lines of this run
        formatted_error: Full error dump, omitted for success reports

    Returns:
        HTML document
    """
    context: Dict[str, Any] = {
        "app_config": config.redacted(),
        "hostname": config.hostname,
        "timestamp": timestamp.isoformat(),
        "logs": logs,
        "formatted_error": formatted_error,
    }
    return _environment.get_template(TEMPLATE_NAME).render(**context)


class EmailReporter:
    """Composes reports from the run's log history and mails them."""

    def __init__(self, config: Config, log_sink: LogSink, start_time: datetime,
                 client: Optional[EmailClient] = None):
        self.config = config
        self.log_sink = log_sink
        self.start_time = start_time
        self.client = client or EmailClient(config.email_config)

    def _logs(self) -> str:
        return "\n".join(self.log_sink.get_buffered_entries())

    def _send(self, subject: str, content: str) -> None:
        self.client.send(EmailMessage(
            to_addresses=self.config.email_config.notification_emails,
            subject=subject,
            content=content,
        ))

    def send_error_report(self, error: RotatorError) -> None:
        subject = f"[FAILURE] snaprotator | An error occurred on `{self.config.hostname}`."
        content = render_report(self.config, self.start_time, self._logs(), format_error(error))
        self._send(subject, content)

    def send_success_report(self, policy: RetentionPolicy) -> None:
        subject = (
            f"[SUCCESS] snaprotator | Snapshot was created for vm `{policy.vm_name}` "
            f"on host `{self.config.hostname}`."
        )
        content = render_report(self.config, self.start_time, self._logs())
        self._send(subject, content)
