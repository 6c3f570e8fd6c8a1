"""Object storage for note attachments."""

import asyncio
import json
import logging
import re
import shutil
from collections.abc import Callable
from pathlib import Path

from notesync.config import settings
from notesync.models.entities import new_id
from notesync.services.auth_service import AuthSession
from notesync.utils.datetime import utc_now
from notesync.utils.exceptions import (
    FileTooLarge,
    InvalidURL,
    NotFoundError,
    UnsupportedFileType,
    UploadCancelled,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
MIB = 1024 * 1024

SUPPORTED_TYPES = {
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
    "text/plain",
    "text/markdown",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "audio/mpeg",
    "audio/wav",
    "audio/m4a",
    "video/mp4",
    "video/quicktime",
}

_UNSAFE_CHARACTERS = re.compile(r"[^A-Za-z0-9._-]")
_METADATA_SUFFIX = ".metadata.json"

ProgressCallback = Callable[[str, float], None]


def sanitize_file_name(file_name: str) -> str:
    """Replace characters outside ``[A-Za-z0-9._-]`` and make sure there is an extension."""
    sanitized = _UNSAFE_CHARACTERS.sub("_", file_name)
    if "." not in sanitized:
        return f"{sanitized}.file"
    return sanitized


def is_file_type_supported(mime_type: str) -> bool:
    return mime_type in SUPPORTED_TYPES


def max_file_size_for(mime_type: str) -> int:
    """Upload size limit in bytes for a MIME type."""
    if mime_type.startswith("image/"):
        return 10 * MIB
    if mime_type == "application/pdf":
        return 50 * MIB
    if mime_type.startswith("video/"):
        return 100 * MIB
    return 25 * MIB


class StorageService:
    """
    Filesystem object store published under a base URL.

    Objects live at ``{root}/{path}`` and are served at ``{base_url}/{path}``;
    each object has a JSON sidecar with its content type and custom metadata.
    """

    def __init__(
        self,
        session: AuthSession,
        root: str | Path | None = None,
        base_url: str | None = None,
        chunk_size: int = CHUNK_SIZE,
    ):
        """
        Initialize the storage service.

        Args:
            session: Auth session scoping note attachments
            root: Directory holding the objects
            base_url: Public URL prefix of the objects
            chunk_size: Bytes written between progress reports
        """
        self.session = session
        self.root = Path(root or settings.storage_root)
        self.base_url = (base_url or settings.storage_base_url).rstrip("/")
        self.chunk_size = chunk_size
        # Object path -> fraction uploaded, for uploads in flight
        self.upload_progress: dict[str, float] = {}

    @property
    def is_uploading(self) -> bool:
        return bool(self.upload_progress)

    def _object_path(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if not target.is_relative_to(self.root.resolve()):
            raise InvalidURL(path)
        return target

    def _path_from_url(self, url: str) -> str:
        prefix = f"{self.base_url}/"
        if not url.startswith(prefix) or len(url) == len(prefix):
            raise InvalidURL(url)
        return url[len(prefix):]

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path}"

    def get_upload_progress(self, path: str) -> float:
        return self.upload_progress.get(path, 0.0)

    def cancel_upload(self, path: str) -> None:
        """Stop tracking an upload; the upload aborts before its next chunk."""
        if self.upload_progress.pop(path, None) is not None:
            logger.info(f"Cancelling upload of {path}")

    async def upload(
        self,
        data: bytes,
        path: str,
        content_type: str,
        custom_metadata: dict[str, str] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """
        Store bytes at a path, reporting progress chunk by chunk.

        Args:
            data: Object content
            path: Object path below the storage root
            content_type: MIME type recorded with the object
            custom_metadata: Extra string metadata recorded with the object
            on_progress: Called with (path, fraction) after every chunk

        Returns:
            Download URL of the stored object

        Raises:
            UploadCancelled: If cancel_upload was called for the path meanwhile
        """
        target = self._object_path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        total = len(data)
        self.upload_progress[path] = 0.0

        try:
            with open(target, "wb") as f:
                for offset in range(0, total, self.chunk_size):
                    if path not in self.upload_progress:
                        raise UploadCancelled(path)
                    f.write(data[offset:offset + self.chunk_size])
                    progress = min(offset + self.chunk_size, total) / total
                    self.upload_progress[path] = progress
                    if on_progress:
                        on_progress(path, progress)
                    # Let other tasks run (and cancel) between chunks
                    await asyncio.sleep(0)

                if path not in self.upload_progress:
                    raise UploadCancelled(path)
        except UploadCancelled:
            target.unlink(missing_ok=True)
            logger.info(f"Upload of {path} cancelled, partial file removed")
            raise
        finally:
            self.upload_progress.pop(path, None)

        if total == 0 and on_progress:
            on_progress(path, 1.0)

        metadata = {
            "contentType": content_type,
            "size": total,
            "customMetadata": {"uploadedAt": utc_now().isoformat(), **(custom_metadata or {})},
        }
        target.with_name(target.name + _METADATA_SUFFIX).write_text(json.dumps(metadata))

        logger.info(f"Uploaded {path} ({total} bytes)")
        return self.url_for(path)

    def _note_path(self, note_id: str, category: str, file_name: str) -> str:
        user_id = self.session.require_user_id()
        return f"users/{user_id}/notes/{note_id}/{category}/{file_name}"

    async def upload_image(
        self,
        data: bytes,
        note_id: str,
        content_type: str = "image/jpeg",
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """Upload an image under a generated name in the note's images folder."""
        _check_size(data, content_type)
        extension = "png" if content_type == "image/png" else "jpg"
        path = self._note_path(note_id, "images", f"{new_id()}.{extension}")
        return await self.upload(data, path, content_type, {"type": "note_image"}, on_progress)

    async def upload_pdf(
        self,
        data: bytes,
        note_id: str,
        file_name: str,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        _check_size(data, "application/pdf")
        sanitized = sanitize_file_name(file_name)
        path = self._note_path(note_id, "documents", sanitized)
        return await self.upload(
            data,
            path,
            "application/pdf",
            {"originalFileName": sanitized, "type": "note_document"},
            on_progress,
        )

    async def upload_file(
        self,
        data: bytes,
        note_id: str,
        file_name: str,
        mime_type: str,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """
        Upload an arbitrary attachment.

        Raises:
            UnsupportedFileType: If the MIME type is not accepted
            FileTooLarge: If the data exceeds the limit for its type
            Unauthenticated: If no user is signed in
        """
        if not is_file_type_supported(mime_type):
            raise UnsupportedFileType(mime_type)
        _check_size(data, mime_type)
        path = self._note_path(note_id, "files", sanitize_file_name(file_name))
        return await self.upload(data, path, mime_type, {"originalFileName": file_name}, on_progress)

    async def download(self, url: str) -> bytes:
        """
        Read an object by its download URL.

        Raises:
            InvalidURL: If the URL does not belong to this store
            NotFoundError: If no object exists at the URL
            FileTooLarge: If the object exceeds the download limit
        """
        target = self._object_path(self._path_from_url(url))
        if not target.is_file():
            raise NotFoundError("File")
        size = target.stat().st_size
        if size > settings.max_download_size:
            raise FileTooLarge(size, settings.max_download_size)
        return await asyncio.to_thread(target.read_bytes)

    def get_metadata(self, url: str) -> dict:
        target = self._object_path(self._path_from_url(url))
        sidecar = target.with_name(target.name + _METADATA_SUFFIX)
        if not sidecar.is_file():
            raise NotFoundError("File")
        return json.loads(sidecar.read_text())

    async def delete(self, url: str) -> None:
        target = self._object_path(self._path_from_url(url))
        if not target.is_file():
            raise NotFoundError("File")
        target.unlink()
        target.with_name(target.name + _METADATA_SUFFIX).unlink(missing_ok=True)
        logger.info(f"Deleted {url}")

    async def delete_all_for_note(self, note_id: str) -> None:
        """Remove every attachment stored for a note."""
        user_id = self.session.require_user_id()
        directory = self._object_path(f"users/{user_id}/notes/{note_id}")
        if directory.is_dir():
            await asyncio.to_thread(shutil.rmtree, directory)
            logger.info(f"Deleted all files of note {note_id}")


def _check_size(data: bytes, mime_type: str) -> None:
    limit = max_file_size_for(mime_type)
    if len(data) > limit:
        raise FileTooLarge(len(data), limit)
