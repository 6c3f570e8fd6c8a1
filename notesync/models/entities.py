"""Note, Folder, Tag and Block value types."""

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from notesync.utils.datetime import utc_now


def new_id() -> str:
    """Generate an opaque entity id."""
    return str(uuid.uuid4()).upper()


class Entity(BaseModel):
    """Base for values identified by id: equality and hashing use the id only."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entity) or type(other) is not type(self):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.id))

    def same_fields(self, other: "Entity") -> bool:
        """Field-by-field comparison, unlike == which compares ids."""
        return self.model_dump() == other.model_dump()


class BlockType(str, Enum):
    """Kind of content held by a block."""

    TEXT = "text"
    IMAGE = "image"
    PDF_EMBED = "pdf_embed"
    PDF = "pdf"
    TRANSCRIPT = "transcript"
    OCR_TEXT = "ocr_text"
    AI_GENERATED = "ai_generated"
    MARKDOWN = "markdown"
    YOUTUBE = "youtube"
    CODE = "code"
    LINK = "link"
    AUDIO = "audio"
    VIDEO = "video"


class BlockMetadata(BaseModel):
    """Optional details attached to media and imported blocks."""

    model_config = ConfigDict(frozen=True)

    image_url: str | None = None
    pdf_url: str | None = None
    page_number: int | None = None
    ocr_confidence: float | None = None
    original_file_name: str | None = None
    mime_type: str | None = None


class Block(Entity):
    """Ordered content unit owned by exactly one note."""

    type: BlockType
    content: str
    metadata: BlockMetadata | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Folder(Entity):
    """User folder; notes reference it through folder_id."""

    user_id: str
    name: str
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Tag(Entity):
    """User tag with a display color stored as a hex string."""

    user_id: str
    name: str
    color_hex: str
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Note(Entity):
    """Note with its content blocks and weak folder/tag references."""

    user_id: str
    title: str = "New Note"
    blocks: tuple[Block, ...] = ()
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    folder_id: str | None = None
    tag_ids: tuple[str, ...] = ()
    is_pinned: bool = False
    is_deleted: bool = False
    deleted_at: datetime | None = None

    @model_validator(mode="after")
    def _check_deleted_state(self) -> "Note":
        if self.is_deleted != (self.deleted_at is not None):
            raise ValueError("is_deleted must be set exactly when deleted_at is set")
        return self

    def block(self, block_id: str) -> Block | None:
        """Find a block by id."""
        for block in self.blocks:
            if block.id == block_id:
                return block
        return None

    @property
    def text(self) -> str:
        """All block contents joined with blank lines."""
        return "\n\n".join(block.content for block in self.blocks)
