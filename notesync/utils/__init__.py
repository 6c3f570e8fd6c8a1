"""Utility modules."""

from notesync.utils.datetime import utc_now
from notesync.utils.exceptions import (
    InvalidDocument,
    NoteSyncException,
    NotFoundError,
    RemoteError,
    ServiceError,
    Unauthenticated,
    ValidationError,
    WriteError,
)

DEFAULT_FOLDERS = ["Personal", "Work", "Ideas"]

# Tag name -> color hex for first-run sample content
DEFAULT_TAGS = {
    "Work": "#3B82F6",
    "Personal": "#10B981",
    "Important": "#EF4444",
    "Ideas": "#F59E0B",
    "Projects": "#8B5CF6",
}

__all__ = [
    "utc_now",
    "InvalidDocument",
    "NoteSyncException",
    "NotFoundError",
    "RemoteError",
    "ServiceError",
    "Unauthenticated",
    "ValidationError",
    "WriteError",
    "DEFAULT_FOLDERS",
    "DEFAULT_TAGS",
    "normalize_hex_color",
]


def normalize_hex_color(value: str) -> str:
    """
    Normalize a color to ``#RRGGBB`` upper case.

    Args:
        value: Color such as "ef4444", "#EF4444" or "#f44"

    Returns:
        Normalized hex string, or the default blue when the value is unparsable
    """
    digits = value.strip().lstrip("#")
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    try:
        int(digits, 16)
    except ValueError:
        return "#3B82F6"
    if len(digits) != 6:
        return "#3B82F6"
    return f"#{digits.upper()}"
