"""
Small helpers shared across tools: timestamps, sizes, directory totals.
"""

import os
from datetime import datetime
from pathlib import Path
from typing import Optional

FILE_TIMESTAMP = "%Y%m%d_%H%M%S"
DISPLAY_TIMESTAMP = "%Y-%m-%d %H:%M:%S"


def file_timestamp(now: Optional[datetime] = None) -> str:
    """Timestamp used in generated file names, e.g. ``20240131_142501``."""
    return (now or datetime.now()).strftime(FILE_TIMESTAMP)


def display_timestamp(now: Optional[datetime] = None) -> str:
    return (now or datetime.now()).strftime(DISPLAY_TIMESTAMP)


def human_size(num_bytes: float) -> str:
    """
    Format a byte count like ``du -h``: 512B, 4.0K, 1.2M, 3.0G.
    """
    size = float(num_bytes)
    for unit in ("B", "K", "M", "G", "T"):
        if size < 1024 or unit == "T":
            if unit == "B":
                return f"{int(size)}B"
            return f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}P"


def path_size(path: Path) -> int:
    """Total size in bytes of a file, or of every file below a directory."""
    path = Path(path)
    if path.is_file():
        return path.stat().st_size
    total = 0
    for root, _dirs, files in os.walk(path):
        for name in files:
            try:
                total += os.lstat(os.path.join(root, name)).st_size
            except OSError:
                continue
    return total


def percent(part: float, whole: float) -> Optional[float]:
    """``part / whole * 100`` or None when ``whole`` is zero."""
    if not whole:
        return None
    return part * 100.0 / whole
