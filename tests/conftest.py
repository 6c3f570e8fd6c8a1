"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime

import pytest
from sqlmodel import SQLModel, create_engine
from sqlmodel.pool import StaticPool

from notesync.models import Block, BlockMetadata, BlockType, Folder, Note, Tag
from notesync.repositories import DocumentRepository, LocalCacheRepository, SQLDocumentBackend
from notesync.services import AuthSession, NoteStore

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite://"

TEST_USER_ID = "user-1"


def _memory_engine():
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture(name="engine")
def engine_fixture():
    """Create the document backend database."""
    engine = _memory_engine()
    yield engine
    engine.dispose()


@pytest.fixture(name="cache_engine")
def cache_engine_fixture():
    """Create the local cache database."""
    engine = _memory_engine()
    yield engine
    engine.dispose()


@pytest.fixture(name="backend")
def backend_fixture(engine) -> SQLDocumentBackend:
    return SQLDocumentBackend(engine)


@pytest.fixture(name="auth_session")
def auth_session_fixture() -> AuthSession:
    """Create a signed-out auth session."""
    return AuthSession()


@pytest.fixture(name="repository")
def repository_fixture(backend: SQLDocumentBackend, auth_session: AuthSession) -> DocumentRepository:
    return DocumentRepository(backend, auth_session)


@pytest.fixture(name="cache")
def cache_fixture(cache_engine) -> LocalCacheRepository:
    return LocalCacheRepository(cache_engine)


@pytest.fixture(name="store")
async def store_fixture(
    repository: DocumentRepository, cache: LocalCacheRepository, auth_session: AuthSession
) -> AsyncGenerator[NoteStore, None]:
    """Create a started, unbound store."""
    store = NoteStore(repository, cache, auth_session, bind_timeout=2.0)
    await store.start()
    yield store
    await store.close()


@pytest.fixture(name="bound_store")
async def bound_store_fixture(store: NoteStore) -> NoteStore:
    """Create a store bound to the test user."""
    assert await store.bind(TEST_USER_ID)
    return store


@pytest.fixture(name="sample_note")
def sample_note_fixture() -> Note:
    """Create a note with a text block and a metadata-carrying transcript block."""
    created = datetime(2025, 7, 14, 9, 30, 15, 123456, tzinfo=UTC)
    return Note(
        user_id=TEST_USER_ID,
        title="Lecture notes",
        blocks=(
            Block(type=BlockType.TEXT, content="Photosynthesis converts light", created_at=created, updated_at=created),
            Block(
                type=BlockType.TRANSCRIPT,
                content="Chlorophyll absorbs red and blue light",
                metadata=BlockMetadata(
                    image_url="https://www.youtube.com/watch?v=dQw4w9WgXcQ",
                    page_number=3,
                    ocr_confidence=0.87,
                    original_file_name="lecture.mp4",
                ),
                created_at=created,
                updated_at=created,
            ),
        ),
        created_at=created,
        updated_at=created,
        folder_id="FOLDER-1",
        tag_ids=("TAG-1", "TAG-2"),
        is_pinned=True,
    )


@pytest.fixture(name="sample_folder")
def sample_folder_fixture() -> Folder:
    return Folder(user_id=TEST_USER_ID, name="Biology")


@pytest.fixture(name="sample_tag")
def sample_tag_fixture() -> Tag:
    return Tag(user_id=TEST_USER_ID, name="Exam", color_hex="#EF4444")
