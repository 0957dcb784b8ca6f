"""Utility functions for snaprotator."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

LOG_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
SNAPSHOT_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_log_timestamp(moment: Optional[datetime] = None) -> str:
    """Format a timestamp for log lines.

    Args:
        moment: Time to format, now when omitted

    Returns:
        Timestamp string in format YYYY-MM-DD HH:MM:SS (UTC)
    """
    return (moment or utc_now()).astimezone(timezone.utc).strftime(LOG_TIMESTAMP_FORMAT)


def generate_snapshot_name(vm_name: str, moment: datetime) -> str:
    """Generate a snapshot name for a virtual machine.

    The epoch-seconds suffix is what the catalog sorts on; the middle
    part is only there for humans reading the listing.

    Args:
        vm_name: Virtual machine name
        moment: Creation time (aware datetime)

    Returns:
        Name in format {vm_name}.{local timestamp}.{epoch seconds}
    """
    local_time = moment.astimezone().strftime(SNAPSHOT_TIMESTAMP_FORMAT)
    return f"{vm_name}.{local_time}.{int(moment.timestamp())}"


def ensure_directory(path: Union[str, Path]) -> Path:
    """Ensure directory exists, create if it doesn't.

    Args:
        path: Directory path

    Returns:
        Path object
    """
    path_obj = Path(path)
    path_obj.mkdir(parents=True, exist_ok=True)
    return path_obj

