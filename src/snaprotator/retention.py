"""Snapshot retention: decides which snapshots are expendable and deletes them."""

from typing import List, Sequence

from .config import RetentionPolicy
from .errors import RotatorError
from .log_sink import LogSink
from .process_runner import ProcessRunner
from .snapshot_catalog import SnapshotCatalog, SnapshotRecord


def deletable_count(snapshot_count: int, min_snapshot_count: int) -> int:
    """Number of snapshots that exceed the retention minimum."""
    return max(0, snapshot_count - min_snapshot_count)


def select_for_deletion(snapshots: Sequence[SnapshotRecord], min_snapshot_count: int) -> List[SnapshotRecord]:
    """Pick the oldest snapshots beyond the retention minimum.

    Args:
        snapshots: Snapshots in listing order
        min_snapshot_count: How many snapshots must survive

    Returns:
        Snapshots to delete, oldest first. Equal timestamps keep listing order.
    """
    count = deletable_count(len(snapshots), min_snapshot_count)
    oldest_first = sorted(snapshots, key=lambda snapshot: snapshot.created_at)
    return oldest_first[:count]


class RetentionEngine:
    """Prunes snapshots according to a retention policy."""

    def __init__(self, runner: ProcessRunner, catalog: SnapshotCatalog, log_sink: LogSink):
        self.runner = runner
        self.catalog = catalog
        self.log_sink = log_sink

    def plan(self, policy: RetentionPolicy) -> List[SnapshotRecord]:
        """Snapshots that prune() would delete right now."""
        return select_for_deletion(self.catalog.list(policy.vm_name), policy.min_snapshot_count)

    def prune(self, policy: RetentionPolicy) -> None:
        """Delete the oldest snapshots exceeding the policy's minimum.

        Deletions stop at the first failing command and the error propagates.
        A final listing is issued afterwards in either case.

        Args:
            policy: Retention policy of the VM
        """
        tool = self.catalog.tool

        try:
            for snapshot in self.plan(policy):
                self.log_sink.log(f"Deleting snapshot `{snapshot.snapshot_id}` ...")
                self.runner.run(tool.delete_snapshot_command(snapshot.vm_name, snapshot.snapshot_id)).as_result()
        except RotatorError as deletion_error:
            try:
                self.runner.run_without_log(tool.list_snapshots_command(policy.vm_name))
            except RotatorError as probe_error:
                deletion_error.related.append(probe_error)
            raise

        self.runner.run_without_log(tool.list_snapshots_command(policy.vm_name)).as_result()
