"""Note imports from videos and AI-generated blocks."""

import logging

from notesync.config import settings
from notesync.models.entities import Block, BlockMetadata, BlockType, Note
from notesync.services.ai_service import AIGenerationType, AIService
from notesync.services.note_store import NoteStore
from notesync.services.video_service import VideoService, extract_video_id, format_duration
from notesync.utils.exceptions import ServiceError
from notesync.utils.validation import truncate_block_content, validate_title

logger = logging.getLogger(__name__)


class ContentService:
    """Creates note content with the help of external services."""

    def __init__(self, store: NoteStore, ai_service: AIService, video_service: VideoService):
        """
        Initialize the content service.

        Args:
            store: Store receiving the created notes and blocks
            ai_service: Text generation client
            video_service: Video details client
        """
        self.store = store
        self.ai_service = ai_service
        self.video_service = video_service

    async def create_note_from_video(self, url: str) -> Note:
        """
        Create a note describing a YouTube video.

        A failure to read the URL or fetch the video still creates a note,
        holding the error message and the URL.

        Args:
            url: YouTube video URL

        Returns:
            The created note
        """
        if extract_video_id(url) is None:
            logger.error(f"Rejected video URL: {url}")
            return await self._create_error_note("YouTube Error", f"Invalid YouTube URL format\n\nURL: {url}")

        try:
            info = await self.video_service.get_video_info(url)
        except ServiceError as e:
            logger.error(f"Video import failed for {url}: {e.detail}")
            return await self._create_error_note(
                "YouTube Video", f"Failed to fetch video information: {e.detail}\n\nURL: {url}"
            )

        content = (
            f"YouTube Video: {info.title}\n\n"
            f"Duration: {format_duration(info.duration_seconds)}\n\n"
            f"Description: {info.description}"
        )
        block = Block(
            type=BlockType.TRANSCRIPT,
            content=truncate_block_content(content),
            metadata=BlockMetadata(image_url=url, original_file_name=info.title),
        )
        note = await self.store.create_note(title=_note_title(info.title), blocks=[block])
        logger.info(f"Created note {note.id} from video {info.video_id}")
        return note

    async def _create_error_note(self, title: str, message: str) -> Note:
        block = Block(type=BlockType.TEXT, content=truncate_block_content(message))
        return await self.store.create_note(title=title, blocks=[block])

    async def generate_ai_content(
        self,
        note_id: str,
        kind: AIGenerationType,
        instruction: str | None = None,
    ) -> Block | None:
        """
        Append generated content to a note.

        Args:
            note_id: Note whose blocks are the source content
            kind: Kind of content to generate
            instruction: Prompt for the custom kind

        Returns:
            The appended block, or None when the note has no content
        """
        note = self.store.get_note(note_id)
        source = note.text
        if not source:
            return None

        try:
            if kind is AIGenerationType.CUSTOM and instruction:
                generated = await self.ai_service.generate_custom(source, instruction)
            else:
                generated = await self.ai_service.generate_for(kind, source)
        except ServiceError as e:
            logger.error(f"AI generation ({kind.value}) failed for note {note_id}: {e.detail}")
            return await self.store.add_block(
                note_id, BlockType.TEXT, f"AI generation failed: {e.detail}"
            )

        return await self.store.add_block(
            note_id, BlockType.AI_GENERATED, truncate_block_content(generated)
        )


def _note_title(title: str) -> str:
    """Fit an imported title to the title limit."""
    title = title.strip()[: settings.max_note_title] or "YouTube Video"
    return validate_title(title)
