"""Shared fixtures for snaprotator tests."""

from __future__ import annotations

import shlex
from pathlib import Path
from typing import Iterable, List, Tuple

import pytest
import yaml

from snaprotator.log_sink import LogSink, LoggingConfiguration
from snaprotator.process_runner import CommandResult

LISTING_HEADER = (
    " Name                                    Creation Time               State\n"
    "-------------------------------------------------------------------------------\n"
)


def listing_text(snapshot_ids: Iterable[str]) -> str:
    """Render snapshot names the way ``virsh snapshot-list`` prints them."""
    rows = [f" {snapshot_id:<40} 2024-01-01 00:00:00 +0000   running\n" for snapshot_id in snapshot_ids]
    return LISTING_HEADER + "".join(rows) + "\n"


class FakeHypervisor:
    """Stands in for ProcessRunner, emulating virsh snapshot commands in memory."""

    def __init__(self, snapshot_ids: Iterable[str] = (), failing: Iterable[str] = ()):
        self.snapshot_ids: List[str] = list(snapshot_ids)
        self.failing = set(failing)
        self.commands: List[Tuple[str, bool]] = []

    def _result(self, command_line: str, succeeded: bool, stdout: str = "") -> CommandResult:
        return CommandResult(
            exit_code=0 if succeeded else 1,
            succeeded=succeeded,
            stdout_text=stdout,
            stderr_text="" if succeeded else "error: failed\n",
            source_command=command_line,
        )

    def run(self, command_line: str, capture_to_log: bool = True) -> CommandResult:
        self.commands.append((command_line, capture_to_log))
        tokens = shlex.split(command_line)
        action = tokens[1]

        if action == "snapshot-list":
            return self._result(command_line, True, listing_text(self.snapshot_ids))

        if action == "snapshot-delete":
            snapshot_id = tokens[-1]
            if snapshot_id in self.failing:
                return self._result(command_line, False)
            self.snapshot_ids.remove(snapshot_id)
            return self._result(command_line, True)

        if action == "snapshot-create-as":
            self.snapshot_ids.append(tokens[-1])
            return self._result(command_line, True)

        raise AssertionError(f"unexpected command: {command_line}")

    def run_without_log(self, command_line: str) -> CommandResult:
        return self.run(command_line, capture_to_log=False)

    def deletes(self) -> List[str]:
        return [shlex.split(c)[-1] for c, _ in self.commands if "snapshot-delete" in c]


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch):
    for name in (
        "SNAPROTATOR_CONFIG", "CONFIG_DIRECTORY", "SNAPROTATOR_HOSTNAME",
        "SNAPROTATOR_SENTRY_DSN", "SNAPROTATOR_LOG_FILE", "SNAPROTATOR_LOG_MAX_LENGTH",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_hypervisor():
    return FakeHypervisor


@pytest.fixture
def log_sink(tmp_path: Path):
    sink = LogSink(LoggingConfiguration(file_path=tmp_path / "log" / "log.txt", max_length=1_000_000))
    yield sink
    sink.close()


@pytest.fixture
def config_data(tmp_path: Path) -> dict:
    return {
        "hostname": "kvm-host-01",
        "sentry_dsn": "https://publickey@sentry.example.com/42",
        "email_config": {
            "notification_emails": ["ops@example.com", "oncall@example.com"],
            "smtp_username": "rotator@example.com",
            "smtp_password": "hunter2",
            "smtp_host": "smtp.example.com",
            "smtp_port": 25,
        },
        "snapshot_config": {
            "web01": {"vm_name": "web01", "min_snapshot_count": 2},
            "db01": {"vm_name": "db01", "min_snapshot_count": 0},
        },
        "logging": {"file": "log/log.txt", "max_length": 4096},
    }


@pytest.fixture
def config_file(tmp_path: Path, config_data: dict) -> Path:
    path = tmp_path / "app-config.yaml"
    path.write_text(yaml.safe_dump(config_data), encoding="utf-8")
    return path
