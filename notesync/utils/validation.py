"""Policy checks applied before values reach the store."""

from notesync.config import settings
from notesync.utils.exceptions import ValidationError


def validate_title(title: str, limit: int | None = None) -> str:
    """
    Check a note title against the configured length limit.

    Args:
        title: Candidate title
        limit: Override for settings.max_note_title

    Returns:
        The stripped title

    Raises:
        ValidationError: If the title is empty or too long
    """
    limit = limit or settings.max_note_title
    title = title.strip()
    if not title:
        raise ValidationError("Title must not be empty")
    if len(title) > limit:
        raise ValidationError(f"Title exceeds {limit} characters")
    return title


def validate_block_content(content: str, limit: int | None = None) -> str:
    """Raise ValidationError when block content is longer than the limit."""
    limit = limit or settings.max_block_content
    if len(content) > limit:
        raise ValidationError(f"Block content exceeds {limit} characters")
    return content


def truncate_block_content(content: str, limit: int | None = None) -> str:
    """Cut generated content down to the block content limit."""
    limit = limit or settings.max_block_content
    return content[:limit]
