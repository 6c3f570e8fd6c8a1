"""Service modules for business logic."""

from notesync.services.ai_service import AIGenerationType, AIService
from notesync.services.auth_service import AuthSession
from notesync.services.content_service import ContentService
from notesync.services.note_store import NoteStore, StoreState
from notesync.services.storage_service import StorageService
from notesync.services.video_service import VideoInfo, VideoService

__all__ = [
    "AIGenerationType",
    "AIService",
    "AuthSession",
    "ContentService",
    "NoteStore",
    "StorageService",
    "StoreState",
    "VideoInfo",
    "VideoService",
]
