"""NoteSync - application wiring."""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy.engine import Engine

from notesync import database
from notesync.database import create_db_and_tables
from notesync.repositories import DocumentRepository, LocalCacheRepository, SQLDocumentBackend
from notesync.services import (
    AIService,
    AuthSession,
    ContentService,
    NoteStore,
    StorageService,
    VideoService,
)

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Every service of one app session, constructed once at startup."""

    session: AuthSession
    backend: SQLDocumentBackend
    repository: DocumentRepository
    cache: LocalCacheRepository
    store: NoteStore
    ai_service: AIService
    video_service: VideoService
    storage_service: StorageService
    content_service: ContentService


def build_services(
    engine: Engine | None = None,
    cache_engine: Engine | None = None,
) -> ServiceContainer:
    """
    Construct the services and wire their dependencies.

    Args:
        engine: Document backend database (defaults to settings.database_url)
        cache_engine: Local cache database (defaults to settings.local_cache_url)

    Returns:
        Container holding the services
    """
    session = AuthSession()
    backend = SQLDocumentBackend(engine or database.engine)
    repository = DocumentRepository(backend, session)
    cache = LocalCacheRepository(cache_engine or database.cache_engine)
    store = NoteStore(repository, cache, session)
    ai_service = AIService()
    video_service = VideoService()
    return ServiceContainer(
        session=session,
        backend=backend,
        repository=repository,
        cache=cache,
        store=store,
        ai_service=ai_service,
        video_service=video_service,
        storage_service=StorageService(session),
        content_service=ContentService(store, ai_service, video_service),
    )


@asynccontextmanager
async def lifespan(engine: Engine | None = None, cache_engine: Engine | None = None):
    """Create tables, start the store and release its subscriptions on exit."""
    engine = engine or database.engine
    cache_engine = cache_engine or database.cache_engine
    create_db_and_tables(engine)
    create_db_and_tables(cache_engine)

    services = build_services(engine, cache_engine)
    await services.store.start()
    logger.info("Services started")
    try:
        yield services
    finally:
        await services.store.close()
        logger.info("Services stopped")
