"""Error taxonomy for snaprotator."""

import json
import smtplib
import threading
import traceback
from contextlib import contextmanager
from enum import Enum
from typing import Callable, Iterator, List, Optional

import requests
import yaml


class ErrorKind(Enum):
    """Stable discriminant used to branch on error categories."""

    USER = "UserError"
    IO = "IoError"
    DATA_FORMAT = "DataFormatError"
    SYNCHRONIZATION = "PoisonedError"
    EXTERNAL_SERVICE = "ExternalServiceError"
    MESSAGE = "ErrorMessage"
    PANIC = "PanicErrorMessage"

    @property
    def label(self) -> str:
        """Category label used in crash reports."""
        return self.value


class RotatorError(Exception):
    """Single error type carrying a kind, a message and the originating cause."""

    def __init__(self, kind: ErrorKind, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.cause = cause
        self.related: List["RotatorError"] = []
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        return f"RotatorError(kind={self.kind.name}, message={self.message!r})"

    @classmethod
    def from_message(cls, message: str) -> "RotatorError":
        return cls(ErrorKind.MESSAGE, message)

    @classmethod
    def user_error(cls, message: str) -> "RotatorError":
        return cls(ErrorKind.USER, message)

    @classmethod
    def wrap(cls, exc: BaseException, kind: Optional[ErrorKind] = None) -> "RotatorError":
        """Convert any exception into a RotatorError.

        Args:
            exc: Exception to convert
            kind: Explicit kind, inferred from the exception type when omitted

        Returns:
            The same object if it already is a RotatorError, a new one otherwise
        """
        if isinstance(exc, RotatorError):
            return exc
        return cls(kind or _infer_kind(exc), str(exc) or type(exc).__name__, cause=exc)

    @property
    def is_user_error(self) -> bool:
        return self.kind is ErrorKind.USER

    def origin_traceback(self):
        """Traceback pointing at where the failure originally happened."""
        if self.cause is not None and self.cause.__traceback__ is not None:
            return self.cause.__traceback__
        return self.__traceback__


def _infer_kind(exc: BaseException) -> ErrorKind:
    if isinstance(exc, (requests.RequestException, smtplib.SMTPException)):
        return ErrorKind.EXTERNAL_SERVICE
    if isinstance(exc, OSError):
        return ErrorKind.IO
    if isinstance(exc, (yaml.YAMLError, json.JSONDecodeError, ValueError, KeyError, TypeError)):
        return ErrorKind.DATA_FORMAT
    return ErrorKind.PANIC


def format_error(error: RotatorError) -> str:
    """Render a full dump of an error: kind, message, cause and traceback.

    Args:
        error: Error to format

    Returns:
        Multi-line text suitable for logs and email reports
    """
    lines = [f"{error.kind.label}: {error.message}"]

    if error.cause is not None:
        lines.append(f"Caused by {type(error.cause).__name__}: {error.cause}")

    tb = error.origin_traceback()
    if tb is not None:
        lines.append("Traceback (most recent call last):")
        lines.append("".join(traceback.format_tb(tb)).rstrip("\n"))

    for other in error.related:
        lines.append("")
        lines.append("Also failed:")
        lines.append(format_error(other))

    return "\n".join(lines)


class AttemptList:
    """Runs every attempt regardless of earlier failures and reports them at the end."""

    def __init__(self):
        self.failures: List[RotatorError] = []

    def attempt(self, func: Callable, *args, **kwargs) -> None:
        try:
            func(*args, **kwargs)
        except Exception as exc:
            self.failures.append(RotatorError.wrap(exc))

    def raise_first(self) -> None:
        """Raise the first recorded failure with the rest attached as related."""
        if not self.failures:
            return
        first = self.failures[0]
        for other in self.failures[1:]:
            if other is not first and other not in first.related:
                first.related.append(other)
        raise first


class GuardedLock:
    """Mutex that becomes poisoned when a holder fails unexpectedly while holding it.

    I/O failures and RotatorErrors raised inside the critical section are
    ordinary returns and leave the lock usable.
    """

    recoverable = (OSError, RotatorError)

    def __init__(self, name: str):
        self.name = name
        self._lock = threading.Lock()
        self._poisoned = False

    @property
    def poisoned(self) -> bool:
        return self._poisoned

    @contextmanager
    def hold(self) -> Iterator[None]:
        with self._lock:
            if self._poisoned:
                raise RotatorError(
                    ErrorKind.SYNCHRONIZATION,
                    f"The `{self.name}` lock is poisoned by an earlier failure."
                )
            try:
                yield
            except self.recoverable:
                raise
            except BaseException:
                self._poisoned = True
                raise
