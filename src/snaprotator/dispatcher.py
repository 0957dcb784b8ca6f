"""Fans a failure out to the log, the crash reporter and email."""

from .crash_reporter import CrashReporter
from .email_report import EmailReporter
from .errors import AttemptList, RotatorError, format_error
from .log_sink import LogSink


class ReportDispatcher:
    """Reports errors through every channel, even when some channels fail.

    Each dispatch attempts all of its channels and then raises the first
    channel failure, with the others attached as ``related``.
    """

    def __init__(self, log_sink: LogSink, crash_reporter: CrashReporter, email_reporter: EmailReporter):
        self.log_sink = log_sink
        self.crash_reporter = crash_reporter
        self.email_reporter = email_reporter

    def _standard_attempts(self, error: RotatorError) -> AttemptList:
        attempts = AttemptList()
        attempts.attempt(self.log_sink.elog, f"An error occurred: {format_error(error)}")
        attempts.attempt(self.crash_reporter.send_error, error)
        return attempts

    def dispatch_error(self, error: RotatorError) -> None:
        """Log the error and send it to the crash reporter."""
        self._standard_attempts(error).raise_first()

    def dispatch_fatal(self, error: RotatorError) -> None:
        """Log the error, send it to the crash reporter and email a failure report."""
        attempts = self._standard_attempts(error)
        attempts.attempt(self.email_reporter.send_error_report, error)
        attempts.raise_first()
