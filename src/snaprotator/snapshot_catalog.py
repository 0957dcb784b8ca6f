"""Parses snapshot listings into structured records."""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from .hypervisor import HypervisorTool
from .process_runner import ProcessRunner

HEADER_LINES = 2

_EPOCH_RE = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class SnapshotRecord:
    """One snapshot recovered from a listing line."""

    vm_name: str
    created_at: datetime
    snapshot_id: str


def parse_snapshot_id(snapshot_id: str) -> Optional[SnapshotRecord]:
    """Parse a snapshot name of the form {vm_name}.{...}.{epoch_seconds}.

    Args:
        snapshot_id: Snapshot name as printed by the hypervisor tool

    Returns:
        The record, or None when the name has no numeric epoch suffix
    """
    if "." not in snapshot_id:
        return None

    vm_name = snapshot_id.split(".", 1)[0]
    suffix = snapshot_id.rsplit(".", 1)[1]

    if not _EPOCH_RE.fullmatch(suffix):
        return None

    try:
        created_at = datetime.fromtimestamp(int(suffix), tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None

    return SnapshotRecord(vm_name=vm_name, created_at=created_at, snapshot_id=snapshot_id)


def parse_listing(text: str) -> List[SnapshotRecord]:
    """Parse the textual snapshot table of one VM.

    Lines that do not carry a parseable snapshot name are dropped
    without error.

    Args:
        text: Full stdout of the listing command

    Returns:
        Records in listing order
    """
    records = []

    for line in text.split("\n")[HEADER_LINES:]:
        tokens = line.split()
        if not tokens:
            continue

        record = parse_snapshot_id(tokens[0])
        if record is not None:
            records.append(record)

    return records


class SnapshotCatalog:
    """Lists the snapshots of a virtual machine."""

    def __init__(self, runner: ProcessRunner, tool: HypervisorTool):
        self.runner = runner
        self.tool = tool

    def list(self, vm_name: str) -> List[SnapshotRecord]:
        """List snapshots of a VM in the order the tool prints them."""
        result = self.runner.run_without_log(self.tool.list_snapshots_command(vm_name)).as_result()
        return parse_listing(result.stdout_text)
