"""Conversion between entities and wire documents.

A document is a flat ``dict`` whose values are strings, numbers, booleans,
timestamps (timezone-aware ``datetime``), lists, nested dicts or ``None``.
Keys use the backend's camelCase field names. The JSON shape used for
persistence writes timestamps as ``{"_seconds": ..., "_nanoseconds": ...}``.
"""

import json
import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta
from typing import Any

from notesync.models.entities import Block, BlockMetadata, BlockType, Entity, Folder, Note, Tag
from notesync.utils.exceptions import InvalidDocument

logger = logging.getLogger(__name__)

NOTES = "notes"
FOLDERS = "folders"
TAGS = "tags"
COLLECTIONS = (NOTES, FOLDERS, TAGS)

Document = dict[str, Any]

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

_METADATA_FIELDS = {
    "image_url": "imageURL",
    "pdf_url": "pdfURL",
    "page_number": "pageNumber",
    "ocr_confidence": "ocrConfidence",
    "original_file_name": "originalFileName",
    "mime_type": "mimeType",
}


def encode_timestamp(value: datetime) -> datetime:
    """Normalize a datetime to the backend timestamp type (aware, UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


# Encoding


def encode_metadata(metadata: BlockMetadata) -> Document:
    data: Document = {}
    for attr, key in _METADATA_FIELDS.items():
        value = getattr(metadata, attr)
        if value is not None:
            data[key] = value
    return data


def encode_block(block: Block) -> Document:
    data: Document = {
        "id": block.id,
        "type": block.type.value,
        "content": block.content,
        "createdAt": encode_timestamp(block.created_at),
        "updatedAt": encode_timestamp(block.updated_at),
    }
    if block.metadata is not None:
        data["metadata"] = encode_metadata(block.metadata)
    return data


def encode_note(note: Note, merge: bool = False) -> Document:
    """
    Encode a note.

    Args:
        note: Note to encode
        merge: Write explicit nulls for cleared optional fields, so a
            merge-write removes their previous remote value

    Returns:
        Wire document
    """
    data: Document = {
        "id": note.id,
        "userId": note.user_id,
        "title": note.title,
        "contentBlocks": [encode_block(block) for block in note.blocks],
        "createdAt": encode_timestamp(note.created_at),
        "updatedAt": encode_timestamp(note.updated_at),
        "tagIds": list(note.tag_ids),
        "isPinned": note.is_pinned,
        "isDeleted": note.is_deleted,
    }

    if note.folder_id is not None:
        data["folderId"] = note.folder_id
    elif merge:
        data["folderId"] = None

    if note.deleted_at is not None:
        data["deletedAt"] = encode_timestamp(note.deleted_at)
    elif merge:
        data["deletedAt"] = None

    return data


def encode_folder(folder: Folder, merge: bool = False) -> Document:
    return {
        "id": folder.id,
        "userId": folder.user_id,
        "name": folder.name,
        "createdAt": encode_timestamp(folder.created_at),
        "updatedAt": encode_timestamp(folder.updated_at),
    }


def encode_tag(tag: Tag, merge: bool = False) -> Document:
    return {
        "id": tag.id,
        "userId": tag.user_id,
        "name": tag.name,
        "colorHex": tag.color_hex,
        "createdAt": encode_timestamp(tag.created_at),
        "updatedAt": encode_timestamp(tag.updated_at),
    }


def encode(entity: Entity, merge: bool = False) -> Document:
    """Encode any top-level entity."""
    if isinstance(entity, Note):
        return encode_note(entity, merge=merge)
    if isinstance(entity, Folder):
        return encode_folder(entity, merge=merge)
    if isinstance(entity, Tag):
        return encode_tag(entity, merge=merge)
    raise TypeError(f"Cannot encode {type(entity).__name__}")


def encode_fields(entity: Entity, *fields: str) -> Document:
    """
    Pick wire fields from an entity's merge encoding, for partial patches.

    Cleared optional fields come back as explicit ``None``.
    """
    data = encode(entity, merge=True)
    missing = [field for field in fields if field not in data]
    if missing:
        raise KeyError(f"Unknown document fields: {', '.join(missing)}")
    return {field: data[field] for field in fields}


# Decoding


def _required(data: Document, key: str, kind: type | tuple[type, ...]) -> Any:
    value = data.get(key)
    if value is None or not isinstance(value, kind) or isinstance(value, bool) and kind is not bool:
        raise InvalidDocument(f"Missing or invalid field '{key}'")
    return value


def _required_timestamp(data: Document, key: str) -> datetime:
    return encode_timestamp(_required(data, key, datetime))


def _optional(data: Document, key: str, kind: type | tuple[type, ...]) -> Any:
    value = data.get(key)
    if isinstance(value, bool) and kind is not bool:
        return None
    return value if isinstance(value, kind) else None


def decode_metadata(data: Document) -> BlockMetadata:
    ocr_confidence = _optional(data, "ocrConfidence", (int, float))
    return BlockMetadata(
        image_url=_optional(data, "imageURL", str),
        pdf_url=_optional(data, "pdfURL", str),
        page_number=_optional(data, "pageNumber", int),
        ocr_confidence=float(ocr_confidence) if ocr_confidence is not None else None,
        original_file_name=_optional(data, "originalFileName", str),
        mime_type=_optional(data, "mimeType", str),
    )


def decode_block(data: Document) -> Block:
    if not isinstance(data, dict):
        raise InvalidDocument("Content block is not a document")
    type_value = _required(data, "type", str)
    try:
        block_type = BlockType(type_value)
    except ValueError as e:
        raise InvalidDocument(f"Unknown block type '{type_value}'") from e

    metadata_data = data.get("metadata")
    return Block(
        id=_required(data, "id", str),
        type=block_type,
        content=_required(data, "content", str),
        metadata=decode_metadata(metadata_data) if isinstance(metadata_data, dict) else None,
        created_at=_required_timestamp(data, "createdAt"),
        updated_at=_required_timestamp(data, "updatedAt"),
    )


def decode_note(data: Document) -> Note:
    """
    Decode a note document.

    Required: id, userId, title, createdAt, updatedAt. Older documents may
    lack the flags, tags, blocks or folder; those default to False, empty
    and None. A malformed content block invalidates the whole note.

    Raises:
        InvalidDocument: If a required field is missing or mistyped
    """
    id_ = _required(data, "id", str)
    user_id = _required(data, "userId", str)
    title = _required(data, "title", str)
    created_at = _required_timestamp(data, "createdAt")
    updated_at = _required_timestamp(data, "updatedAt")

    raw_blocks = data.get("contentBlocks")
    blocks = [decode_block(item) for item in raw_blocks] if isinstance(raw_blocks, list) else []

    raw_tag_ids = data.get("tagIds")
    tag_ids: list[str] = []
    if isinstance(raw_tag_ids, list):
        for tag_id in raw_tag_ids:
            if isinstance(tag_id, str) and tag_id not in tag_ids:
                tag_ids.append(tag_id)

    is_deleted = _optional(data, "isDeleted", bool) or False
    deleted_at = _optional(data, "deletedAt", datetime)
    if is_deleted and deleted_at is None:
        deleted_at = updated_at
    elif not is_deleted:
        deleted_at = None

    return Note(
        id=id_,
        user_id=user_id,
        title=title,
        blocks=tuple(blocks),
        created_at=created_at,
        updated_at=updated_at,
        folder_id=_optional(data, "folderId", str),
        tag_ids=tuple(tag_ids),
        is_pinned=_optional(data, "isPinned", bool) or False,
        is_deleted=is_deleted,
        deleted_at=encode_timestamp(deleted_at) if deleted_at else None,
    )


def decode_folder(data: Document) -> Folder:
    return Folder(
        id=_required(data, "id", str),
        user_id=_required(data, "userId", str),
        name=_required(data, "name", str),
        created_at=_required_timestamp(data, "createdAt"),
        updated_at=_required_timestamp(data, "updatedAt"),
    )


def decode_tag(data: Document) -> Tag:
    return Tag(
        id=_required(data, "id", str),
        user_id=_required(data, "userId", str),
        name=_required(data, "name", str),
        color_hex=_required(data, "colorHex", str),
        created_at=_required_timestamp(data, "createdAt"),
        updated_at=_required_timestamp(data, "updatedAt"),
    )


DECODERS: dict[str, Callable[[Document], Entity]] = {
    NOTES: decode_note,
    FOLDERS: decode_folder,
    TAGS: decode_tag,
}


def decode(collection: str, data: Document) -> Entity:
    """Decode a document of the given collection."""
    if collection not in DECODERS:
        raise KeyError(f"Unknown collection '{collection}'")
    if not isinstance(data, dict):
        raise InvalidDocument("Document is not a mapping")
    return DECODERS[collection](data)


def decode_many(collection: str, documents: Iterable[Document]) -> list[Entity]:
    """Decode documents one by one, skipping (and logging) the invalid ones."""
    entities = []
    for data in documents:
        try:
            entities.append(decode(collection, data))
        except InvalidDocument as e:
            doc_id = data.get("id") if isinstance(data, dict) else None
            logger.warning(f"Skipping invalid {collection} document {doc_id}: {e.detail}")
    return entities


# JSON shape


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        delta = encode_timestamp(value) - _EPOCH
        seconds = delta.days * 86400 + delta.seconds
        return {"_seconds": seconds, "_nanoseconds": delta.microseconds * 1000}
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _json_object_hook(value: dict) -> Any:
    if set(value) != {"_seconds", "_nanoseconds"}:
        return value
    seconds, nanoseconds = value["_seconds"], value["_nanoseconds"]
    if not all(isinstance(part, int) and not isinstance(part, bool) for part in (seconds, nanoseconds)):
        return value
    try:
        return _EPOCH + timedelta(seconds=seconds, microseconds=nanoseconds // 1000)
    except OverflowError:
        # Left as a mapping; decoding rejects it as a non-timestamp field
        return value


def to_json(value: Any) -> str:
    """Serialize a document (or list of documents) to JSON."""
    return json.dumps(value, default=_json_default, ensure_ascii=False)


def from_json(text: str) -> Any:
    """
    Parse JSON produced by to_json, restoring timestamps.

    Timestamp objects with non-integer or out-of-range parts stay plain
    mappings, so the entity decoders reject them as invalid fields.

    Raises:
        json.JSONDecodeError: If the text is not valid JSON
    """
    return json.loads(text, object_hook=_json_object_hook)
