"""Application context built once at startup and passed to every command."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .config import Config
from .crash_reporter import CrashReporter
from .dispatcher import ReportDispatcher
from .email_report import EmailReporter
from .hypervisor import HypervisorTool, VirshTool
from .log_sink import LogSink, open_log_sink
from .process_runner import ProcessRunner
from .retention import RetentionEngine
from .snapshot_catalog import SnapshotCatalog
from .utils import utc_now


@dataclass
class AppContext:
    """Everything a command needs, initialized once and read everywhere."""

    config: Config
    log_sink: LogSink
    crash_reporter: CrashReporter
    email_reporter: EmailReporter
    dispatcher: ReportDispatcher
    runner: ProcessRunner
    tool: HypervisorTool
    catalog: SnapshotCatalog
    retention: RetentionEngine
    start_time: datetime

    @classmethod
    def create(cls, config_path: Optional[str] = None, tool: Optional[HypervisorTool] = None) -> "AppContext":
        """Load configuration and wire up all components.

        Args:
            config_path: Explicit configuration file path
            tool: Hypervisor tool, virsh when omitted

        Returns:
            Ready-to-use context
        """
        start_time = utc_now()
        config = Config(config_path)
        log_sink = open_log_sink(config.log_file, config.log_max_length)

        crash_reporter = CrashReporter(config.sentry_dsn, server_name=config.hostname)
        email_reporter = EmailReporter(config, log_sink, start_time)
        dispatcher = ReportDispatcher(log_sink, crash_reporter, email_reporter)

        tool = tool or VirshTool()
        runner = ProcessRunner(log_sink)
        catalog = SnapshotCatalog(runner, tool)
        retention = RetentionEngine(runner, catalog, log_sink)

        return cls(
            config=config,
            log_sink=log_sink,
            crash_reporter=crash_reporter,
            email_reporter=email_reporter,
            dispatcher=dispatcher,
            runner=runner,
            tool=tool,
            catalog=catalog,
            retention=retention,
            start_time=start_time,
        )
