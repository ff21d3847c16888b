"""Free disk space probe used before snapshots are written."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Union

DEFAULT_SAFETY_MARGIN = 1.2


def get_available_disk_space(target_path: Union[str, Path]) -> int:
    """Return bytes available on the filesystem holding `target_path`.

    Raises:
        OSError: If the path is invalid or inaccessible.
    """
    absolute = Path(target_path).resolve()
    try:
        return int(shutil.disk_usage(absolute).free)
    except OSError as exc:
        raise OSError(f'Failed to get disk space for path "{target_path}": {exc}') from exc


def has_sufficient_disk_space(
    target_path: Union[str, Path],
    required_bytes: int,
    safety_margin: float = DEFAULT_SAFETY_MARGIN,
) -> bool:
    return get_available_disk_space(target_path) >= required_bytes * safety_margin


def format_bytes(num_bytes: int, decimals: int = 2) -> str:
    """Human-readable size, e.g. `format_bytes(15728640) == "15.00 MB"`."""
    if num_bytes <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB", "TB"]
    index = 0
    value = float(num_bytes)
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{value:.{max(decimals, 0)}f} {units[index]}"
