"""Minimal crash-reporting client speaking the Sentry store protocol."""

import json
import os
import platform
import socket
import sys
import time
import traceback
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

import requests

from . import __version__
from .errors import ErrorKind, RotatorError

SENTRY_VERSION = 7
CLIENT_NAME = f"snaprotator/{__version__}"
REQUEST_TIMEOUT = 30

# Frames inside the error conversion helpers add nothing to a report.
BOILERPLATE_MODULE = "snaprotator.errors"

# Third-party packages whose frames are never application code.
SYSTEM_PACKAGES = frozenset({
    "click", "jinja2", "requests", "urllib3", "yaml", "_pytest", "pytest", "pluggy",
})


@dataclass(frozen=True)
class Dsn:
    """Parsed crash-reporting connection string."""

    scheme: str
    host: str
    port: int
    path: str
    project_id: str
    public_key: str

    @property
    def store_url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}{self.path}/api/{self.project_id}/store/"


def parse_dsn(dsn: str) -> Dsn:
    """Parse a DSN of the form scheme://public_key@host[:port]/path/project_id.

    Raises:
        RotatorError: data-format error for malformed strings
    """
    try:
        parts = urlsplit(dsn)
        port = parts.port
    except ValueError as e:
        raise RotatorError(ErrorKind.DATA_FORMAT, f"Invalid dsn: {e}", cause=e) from e

    if not parts.scheme or not parts.hostname:
        raise RotatorError(ErrorKind.DATA_FORMAT, "Invalid dsn domain.")

    path, _, project_id = parts.path.rpartition("/")
    if not project_id:
        raise RotatorError(ErrorKind.DATA_FORMAT, "Invalid dsn: missing project id.")

    if port is None:
        port = 443 if parts.scheme == "https" else 80

    return Dsn(
        scheme=parts.scheme,
        host=parts.hostname,
        port=port,
        path=path,
        project_id=project_id,
        public_key=parts.username or "",
    )


def package_of(module: str) -> str:
    """Top-level package name of a dotted module path."""
    return module.split(".", 1)[0]


def is_system_module(module: str) -> bool:
    """Whether a module belongs to the interpreter or a third-party library."""
    top = package_of(module)
    return top in sys.stdlib_module_names or top in SYSTEM_PACKAGES


def stack_frames(tb) -> List[Dict[str, Any]]:
    """Convert a traceback into portable frames, oldest call first.

    Args:
        tb: Traceback object, may be None

    Returns:
        Frames annotated with in_app, conversion helpers removed
    """
    frames = []

    for frame, lineno in traceback.walk_tb(tb):
        module = frame.f_globals.get("__name__", "")
        if module == BOILERPLATE_MODULE:
            continue

        code = frame.f_code
        frames.append({
            "function": code.co_name,
            "module": module,
            "package": package_of(module) if module else None,
            "filename": os.path.basename(code.co_filename),
            "abs_path": code.co_filename,
            "lineno": lineno,
            "in_app": not is_system_module(module) if module else False,
        })

    return frames


class CrashReporter:
    """Sends errors to a crash-reporting service."""

    def __init__(self, dsn: str, server_name: Optional[str] = None):
        self.dsn = parse_dsn(dsn)
        self.server_name = server_name or socket.gethostname()

    def create_event(self) -> Dict[str, Any]:
        return {
            "event_id": uuid.uuid4().hex,
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime()),
            "platform": "python",
            "level": "error",
            "server_name": self.server_name,
            "release": os.environ.get("SENTRY_RELEASE"),
            "environment": os.environ.get("SENTRY_ENVIRONMENT", "production"),
            "contexts": {
                "os": {"name": platform.system(), "version": platform.release()},
                "runtime": {"name": platform.python_implementation(), "version": platform.python_version()},
            },
        }

    def error_event(self, error: RotatorError) -> Dict[str, Any]:
        """Build the event describing an error."""
        exception: Dict[str, Any] = {
            "type": error.kind.label,
            "value": error.message,
        }

        frames = stack_frames(error.origin_traceback())
        if frames:
            exception["stacktrace"] = {"frames": frames}

        event = self.create_event()
        event["exception"] = {"values": [exception]}
        return event

    def send_error(self, error: RotatorError) -> None:
        self.send_event(self.error_event(error))

    def auth_header(self) -> str:
        timestamp = int(time.time() * 1000)
        return (
            f"Sentry sentry_version={SENTRY_VERSION}, sentry_client={CLIENT_NAME}, "
            f"sentry_timestamp={timestamp}, sentry_key={self.dsn.public_key}"
        )

    def send_event(self, event: Dict[str, Any]) -> None:
        """POST an event to the store endpoint.

        Raises:
            RotatorError: external-service error on network failure or non-2xx status
        """
        headers = {
            "Content-Type": "application/json",
            "X-Sentry-Auth": self.auth_header(),
        }

        try:
            response = requests.post(
                self.dsn.store_url,
                data=json.dumps(event, default=str),
                headers=headers,
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise RotatorError(ErrorKind.EXTERNAL_SERVICE, f"Crash report failed: {e}", cause=e) from e
