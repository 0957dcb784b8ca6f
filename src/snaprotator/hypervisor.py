"""Command lines for the hypervisor management tool."""

import shlex
from abc import ABC, abstractmethod


class HypervisorTool(ABC):
    """Abstract base class for hypervisor command-line tools."""

    @abstractmethod
    def create_snapshot_command(self, vm_name: str, snapshot_name: str) -> str:
        """Command line that creates a named snapshot."""
        pass

    @abstractmethod
    def list_snapshots_command(self, vm_name: str) -> str:
        """Command line that prints the snapshot table of a VM.

        The first two lines of its output are headers and the first
        whitespace-delimited token of every other line is a snapshot name.
        """
        pass

    @abstractmethod
    def delete_snapshot_command(self, vm_name: str, snapshot_id: str) -> str:
        """Command line that deletes a named snapshot."""
        pass


class VirshTool(HypervisorTool):
    """libvirt's virsh, using internal snapshots."""

    def create_snapshot_command(self, vm_name: str, snapshot_name: str) -> str:
        return f"virsh snapshot-create-as {shlex.quote(vm_name)} --name {shlex.quote(snapshot_name)}"

    def list_snapshots_command(self, vm_name: str) -> str:
        return f"virsh snapshot-list --domain {shlex.quote(vm_name)} --internal"

    def delete_snapshot_command(self, vm_name: str, snapshot_id: str) -> str:
        return (
            f"virsh snapshot-delete --domain {shlex.quote(vm_name)} "
            f"--snapshotname {shlex.quote(snapshot_id)}"
        )
