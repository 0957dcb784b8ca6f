"""Process-wide log with file, console and in-memory destinations."""

import os
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, List, Optional

import click

from .errors import AttemptList, ErrorKind, GuardedLock, RotatorError
from .utils import ensure_directory, format_log_timestamp, utc_now


@dataclass(frozen=True)
class LoggingConfiguration:
    """Where the log file lives and when it is rotated."""

    file_path: Path
    max_length: int


class FileAppender:
    """Append-only log file rotated once its tracked length reaches a maximum."""

    def __init__(self, config: LoggingConfiguration):
        self.config = config
        self._lock = GuardedLock("log file")

        ensure_directory(config.file_path.parent)
        self._handle = self._open()
        self._length = self._handle.seek(0, os.SEEK_END)

    def _open(self) -> BinaryIO:
        return open(self.config.file_path, 'ab')

    @property
    def length(self) -> int:
        """Bytes written to the live file, as tracked by this appender."""
        return self._length

    def rotated_path(self, now: Optional[datetime] = None) -> Path:
        """Sibling path the live file is renamed to on rotation."""
        now = now or utc_now()
        path = self.config.file_path
        formatted_date = now.strftime("%Y_%m_%d__")
        return path.with_name(f"{path.stem}__{formatted_date}{time.time_ns()}{path.suffix}")

    def _roll_file(self) -> None:
        # The old handle stays open until the new file exists.
        self._handle.flush()
        os.fsync(self._handle.fileno())
        os.rename(self.config.file_path, self.rotated_path())

        old_handle, self._handle = self._handle, self._open()
        self._length = 0
        old_handle.close()

    def writeln(self, message: str) -> None:
        data = f"{message}\n".encode('utf-8')

        with self._lock.hold():
            if self._length >= self.config.max_length:
                self._roll_file()

            self._handle.write(data)
            self._handle.flush()
            self._length += len(data)

    def close(self) -> None:
        with self._lock.hold():
            if not self._handle.closed:
                self._handle.close()


class ConsoleAppender:
    """Writes log lines to stdout, or stderr for the error path."""

    def __init__(self):
        self._lock = GuardedLock("console")

    def writeln(self, message: str) -> None:
        with self._lock.hold():
            click.echo(message)

    def ewriteln(self, message: str) -> None:
        with self._lock.hold():
            click.echo(message, err=True)


class InMemoryAppender:
    """Ordered history of raw messages, read back when composing reports."""

    def __init__(self):
        self._lock = GuardedLock("in-memory log")
        self._entries: List[str] = []

    def add_entry(self, message: str) -> None:
        with self._lock.hold():
            self._entries.append(message)

    def entries(self) -> List[str]:
        with self._lock.hold():
            return list(self._entries)


class LogSink:
    """Writes every message to the log file, the console and the in-memory buffer.

    All three destinations are attempted on every call. When more than one
    fails, the file destination's error is the one raised.
    """

    def __init__(self, config: LoggingConfiguration):
        self.file_appender = FileAppender(config)
        self.console_appender = ConsoleAppender()
        self.in_memory_appender = InMemoryAppender()

    @staticmethod
    def format_message(message: str) -> str:
        return f"{format_log_timestamp()} | {message}"

    def _write(self, message: str, to_stderr: bool) -> None:
        formatted = self.format_message(message)
        console_write = self.console_appender.ewriteln if to_stderr else self.console_appender.writeln

        attempts = AttemptList()
        attempts.attempt(self.file_appender.writeln, formatted)
        attempts.attempt(console_write, formatted)
        attempts.attempt(self.in_memory_appender.add_entry, message)
        attempts.raise_first()

    def log(self, message: str) -> None:
        """Log a message to all destinations."""
        self._write(message, to_stderr=False)

    def elog(self, message: str) -> None:
        """Log a message, sending the console copy to stderr."""
        self._write(message, to_stderr=True)

    def get_buffered_entries(self) -> List[str]:
        """Every raw message logged during this run, oldest first."""
        return self.in_memory_appender.entries()

    def close(self) -> None:
        self.file_appender.close()


def open_log_sink(file_path: Path, max_length: int) -> LogSink:
    """Create the log sink, wrapping I/O failures as RotatorErrors."""
    try:
        return LogSink(LoggingConfiguration(file_path=Path(file_path), max_length=max_length))
    except OSError as e:
        raise RotatorError(ErrorKind.IO, f"Cannot open log file {file_path}: {e}", cause=e) from e
