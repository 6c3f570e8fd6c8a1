"""Data access layer."""

from notesync.repositories.document_backend import DocumentBackend, SQLDocumentBackend, WriteOp
from notesync.repositories.document_repository import DocumentRepository
from notesync.repositories.local_cache_repository import LocalCacheRepository

__all__ = [
    "DocumentBackend",
    "DocumentRepository",
    "LocalCacheRepository",
    "SQLDocumentBackend",
    "WriteOp",
]
