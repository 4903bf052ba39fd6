"""Utility functions for prdpad."""

import hashlib
import sys
import uuid
from datetime import UTC, datetime
from pathlib import Path


def get_app_data_path() -> Path:
    """
    Get the path to the application data directory.

    - On Windows, this is ``AppData/Local/prdpad``.
    - On macOS, this is ``~/Library/Application Support/prdpad``.
    - On Linux, this is ``~/.config/prdpad``.

    Raises:
        ValueError: If the platform is not supported

    Returns:
        Path to the application data directory

    """
    if sys.platform not in ["win32", "darwin", "linux"]:
        msg = f"Unsupported platform: {sys.platform}"
        raise ValueError(msg)
    if sys.platform == "win32":
        path = Path.home() / "AppData" / "Local" / "prdpad"
    elif sys.platform == "darwin":
        path = Path.home() / "Library" / "Application Support" / "prdpad"
    else:
        path = Path.home() / ".config" / "prdpad"
    path.mkdir(parents=True, exist_ok=True)
    return path


def to_utc_iso(dt: datetime | None) -> str | None:
    """
    Convert datetime to UTC ISO format string.

    Args:
        dt: Datetime object to convert, or None

    Returns:
        ISO format string with UTC timezone, or None

    """
    if dt is None:
        return None
    # If datetime is naive, assume it's already UTC (database stores UTC)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat()


def utc_now_iso() -> str:
    """Current time as a UTC ISO string, millisecond precision."""
    return datetime.now(UTC).isoformat(timespec="milliseconds")


def new_canvas_id() -> str:
    """Generate a fresh id for a new canvas."""
    return f"canvas-{uuid.uuid4().hex[:12]}"


def stable_canvas_id(seed: str) -> str:
    """
    Derive a canvas id from ``seed``.

    Used for stored canvases that carry no id, so that every read of the same
    stored text yields the same id.
    """
    return f"canvas-{hashlib.sha256(seed.encode('utf-8')).hexdigest()[:12]}"
