"""
snaprotator - Virtual machine snapshot rotator

Creates hypervisor snapshots, prunes old ones according to a per-VM
retention policy and reports failures by log, crash report and email.
"""

__version__ = "0.1.0"

from .config import Config, RetentionPolicy
from .errors import ErrorKind, RotatorError
from .log_sink import LogSink
from .process_runner import CommandResult, ProcessRunner
from .retention import RetentionEngine
from .snapshot_catalog import SnapshotCatalog, SnapshotRecord
from .dispatcher import ReportDispatcher

__all__ = [
    "Config",
    "RetentionPolicy",
    "ErrorKind",
    "RotatorError",
    "LogSink",
    "CommandResult",
    "ProcessRunner",
    "RetentionEngine",
    "SnapshotCatalog",
    "SnapshotRecord",
    "ReportDispatcher",
]
