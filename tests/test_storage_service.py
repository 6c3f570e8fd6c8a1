"""Tests for attachment storage."""

import pytest

from notesync.services import AuthSession, StorageService
from notesync.services.storage_service import is_file_type_supported, max_file_size_for, sanitize_file_name
from notesync.utils.exceptions import (
    FileTooLarge,
    InvalidURL,
    NotFoundError,
    Unauthenticated,
    UnsupportedFileType,
    UploadCancelled,
)

BASE_URL = "http://files.test/storage"


@pytest.fixture(name="storage")
def storage_fixture(tmp_path) -> StorageService:
    session = AuthSession()
    session.sign_in("user-1")
    return StorageService(session, root=tmp_path, base_url=BASE_URL, chunk_size=4)


def test_sanitize_file_name():
    """Test unsafe characters and missing extensions."""
    assert sanitize_file_name("my notes (1).pdf") == "my_notes__1_.pdf"
    assert sanitize_file_name("README") == "README.file"
    assert sanitize_file_name("../etc/passwd") == ".._etc_passwd"


def test_type_rules():
    """Test the accepted types and per-type limits."""
    assert is_file_type_supported("application/pdf")
    assert not is_file_type_supported("application/x-msdownload")
    assert max_file_size_for("image/png") == 10 * 1024 * 1024
    assert max_file_size_for("video/mp4") == 100 * 1024 * 1024
    assert max_file_size_for("text/plain") == 25 * 1024 * 1024


async def test_upload_download_and_metadata(storage: StorageService):
    """Test an upload is readable by its URL and carries its metadata."""
    progress: list[float] = []
    url = await storage.upload_pdf(
        b"%PDF-1.4 body", "note-1", "Lecture 1.pdf", on_progress=lambda path, fraction: progress.append(fraction)
    )

    assert url == f"{BASE_URL}/users/user-1/notes/note-1/documents/Lecture_1.pdf"
    assert await storage.download(url) == b"%PDF-1.4 body"
    assert progress[-1] == 1.0
    assert progress == sorted(progress)
    assert storage.is_uploading is False

    metadata = storage.get_metadata(url)
    assert metadata["contentType"] == "application/pdf"
    assert metadata["customMetadata"]["originalFileName"] == "Lecture_1.pdf"
    assert "uploadedAt" in metadata["customMetadata"]


async def test_upload_image_generates_name(storage: StorageService):
    """Test images are stored under a generated name with a matching extension."""
    url = await storage.upload_image(b"\x89PNG", "note-1", content_type="image/png")
    assert url.startswith(f"{BASE_URL}/users/user-1/notes/note-1/images/")
    assert url.endswith(".png")


async def test_cancel_removes_partial_file(storage: StorageService, tmp_path):
    """Test cancelling mid-upload aborts and leaves no file behind."""
    path = "users/user-1/notes/note-1/files/big.txt"

    def cancel_after_first_chunk(upload_path: str, fraction: float) -> None:
        storage.cancel_upload(upload_path)

    with pytest.raises(UploadCancelled):
        await storage.upload(b"x" * 32, path, "text/plain", on_progress=cancel_after_first_chunk)

    assert not (tmp_path / path).exists()
    assert storage.get_upload_progress(path) == 0.0


async def test_upload_file_rejections(storage: StorageService, monkeypatch):
    """Test unsupported types, oversized data and signed-out uploads."""
    with pytest.raises(UnsupportedFileType):
        await storage.upload_file(b"MZ", "note-1", "tool.exe", "application/x-msdownload")

    monkeypatch.setattr("notesync.services.storage_service.MIB", 1)
    with pytest.raises(FileTooLarge):
        await storage.upload_file(b"x" * 64, "note-1", "notes.txt", "text/plain")

    storage.session.sign_out()
    with pytest.raises(Unauthenticated):
        await storage.upload_file(b"hi", "note-1", "notes.txt", "text/plain")


async def test_foreign_and_missing_urls(storage: StorageService):
    """Test URLs outside the store and objects that do not exist."""
    with pytest.raises(InvalidURL):
        await storage.download("https://elsewhere.test/file.pdf")
    with pytest.raises(InvalidURL):
        await storage.download(f"{BASE_URL}/../../outside.txt")
    with pytest.raises(NotFoundError):
        await storage.download(f"{BASE_URL}/users/user-1/missing.pdf")


async def test_delete_and_delete_all_for_note(storage: StorageService):
    """Test single deletion and removal of a note's attachments."""
    first = await storage.upload_file(b"one", "note-1", "a.txt", "text/plain")
    second = await storage.upload_file(b"two", "note-1", "b.txt", "text/plain")
    other = await storage.upload_file(b"three", "note-2", "c.txt", "text/plain")

    await storage.delete(first)
    with pytest.raises(NotFoundError):
        await storage.download(first)

    await storage.delete_all_for_note("note-1")
    with pytest.raises(NotFoundError):
        await storage.download(second)
    assert await storage.download(other) == b"three"
