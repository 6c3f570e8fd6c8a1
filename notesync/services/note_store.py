"""Synchronized Note/Folder/Tag store."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from enum import Enum
from typing import Any, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from notesync.config import settings
from notesync.models.entities import Block, BlockMetadata, BlockType, Entity, Folder, Note, Tag
from notesync.repositories.document_backend import WriteOp
from notesync.repositories.document_repository import DocumentRepository
from notesync.repositories.local_cache_repository import LocalCacheRepository
from notesync.services.auth_service import AuthSession
from notesync.utils import DEFAULT_FOLDERS, DEFAULT_TAGS, normalize_hex_color
from notesync.utils.codec import COLLECTIONS, FOLDERS, NOTES, TAGS, encode_fields
from notesync.utils.datetime import utc_now
from notesync.utils.events import ListenerRegistry, Subscription
from notesync.utils.exceptions import NoteSyncException, NotFoundError, RemoteError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ATTRIBUTES = {NOTES: "_notes", FOLDERS: "_folders", TAGS: "_tags"}


class StoreState(str, Enum):
    UNBOUND = "unbound"
    BINDING = "binding"
    BOUND = "bound"


class NoteStore:
    """
    Owner of the in-memory notes, folders and tags.

    Unbound, mutations apply in memory and the whole collection is written to
    the local cache. Bound, mutations only write remotely: the live-query
    snapshots are the sole writer of the in-memory collections, so a failed
    write leaves them untouched. Collections are tuples replaced wholesale.
    """

    def __init__(
        self,
        repository: DocumentRepository,
        cache: LocalCacheRepository,
        session: AuthSession,
        bind_timeout: float | None = None,
    ):
        """
        Initialize the store.

        Args:
            repository: Remote store adapter
            cache: Local cache used while unbound and as the binding seed
            session: Auth session shared with the repository
            bind_timeout: Seconds to wait for the first snapshots when binding
        """
        self.repository = repository
        self.cache = cache
        self.session = session
        self.bind_timeout = bind_timeout or settings.bind_timeout_seconds

        self._notes: tuple[Note, ...] = ()
        self._folders: tuple[Folder, ...] = ()
        self._tags: tuple[Tag, ...] = ()

        self._state = StoreState.UNBOUND
        self._last_error: NoteSyncException | None = None
        self._pending_writes = 0

        self._lock = asyncio.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._subscriptions: list[Subscription] = []
        self._first_snapshot: dict[str, asyncio.Event] = {}
        # Bumped on every bind/unbind so queued snapshots of an old binding are dropped
        self._generation = 0
        self._watchers = ListenerRegistry()
        # (user id, collection) -> newest snapshot not yet written to the mirror
        self._mirror_pending: dict[tuple[str, str], list[Entity]] = {}
        self._mirror_task: asyncio.Task | None = None

    # State

    @property
    def notes(self) -> tuple[Note, ...]:
        return self._notes

    @property
    def folders(self) -> tuple[Folder, ...]:
        return self._folders

    @property
    def tags(self) -> tuple[Tag, ...]:
        return self._tags

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def is_loading(self) -> bool:
        return self._state is StoreState.BINDING or self._pending_writes > 0

    @property
    def last_error(self) -> NoteSyncException | None:
        return self._last_error

    def clear_error(self) -> None:
        self._last_error = None

    def watch(self, listener: Callable[[str], None]) -> Subscription:
        """Get called with the collection name whenever a collection is replaced."""
        return self._watchers.subscribe("changes", listener)

    def get_note(self, note_id: str) -> Note:
        return self._find(NOTES, note_id, "Note")

    def get_folder(self, folder_id: str) -> Folder:
        return self._find(FOLDERS, folder_id, "Folder")

    def get_tag(self, tag_id: str) -> Tag:
        return self._find(TAGS, tag_id, "Tag")

    def _find(self, collection: str, entity_id: str, resource: str) -> Any:
        for entity in getattr(self, _ATTRIBUTES[collection]):
            if entity.id == entity_id:
                return entity
        raise NotFoundError(resource)

    def _owner_id(self) -> str:
        if self._state is StoreState.BOUND and self.session.user_id:
            return self.session.user_id
        return settings.local_user_id

    @property
    def _bound(self) -> bool:
        return self._state is StoreState.BOUND

    # Lifecycle

    async def start(self) -> None:
        """Load the local cache for unbound use."""
        self._loop = asyncio.get_running_loop()
        async with self._lock:
            if self._state is StoreState.UNBOUND:
                self._load_local()
        logger.info(
            f"Store started with {len(self._notes)} notes, {len(self._folders)} folders, "
            f"{len(self._tags)} tags"
        )

    async def bind(self, user_id: str) -> bool:
        """
        Switch to the remote collections of an authenticated user.

        The user's mirrored snapshot is shown immediately; live snapshots
        replace it as soon as they arrive. If subscribing fails or the first
        snapshots do not all arrive in time, the store falls back to the
        local cache and records the error.

        Args:
            user_id: Id of the authenticated user

        Returns:
            True when bound, False after falling back to unbound
        """
        async with self._lock:
            if self._bound and self.session.user_id == user_id:
                return True
            if self._state is not StoreState.UNBOUND:
                self._teardown()
            await self._drain_mirror()

            self._loop = asyncio.get_running_loop()
            self.session.sign_in(user_id)
            self._state = StoreState.BINDING
            self._generation += 1
            generation = self._generation
            self._first_snapshot = {collection: asyncio.Event() for collection in COLLECTIONS}

            for collection in COLLECTIONS:
                self._set_collection(collection, self.cache.load_collection(collection, user_id))
            logger.info(f"Binding store to user {user_id}")

            try:
                for collection in COLLECTIONS:
                    subscription = await self.repository.subscribe(
                        collection, self._snapshot_listener(collection, generation)
                    )
                    self._subscriptions.append(subscription)
                await asyncio.wait_for(self._wait_for_first_snapshots(), timeout=self.bind_timeout)
            except TimeoutError:
                await self._fail_binding(user_id, RemoteError("Timed out waiting for the first snapshot"))
                return False
            except NoteSyncException as e:
                await self._fail_binding(user_id, e)
                return False
            except Exception as e:
                logger.exception(f"Unexpected error while binding to user {user_id}")
                await self._fail_binding(user_id, RemoteError(f"Subscription failed: {e}"))
                return False

            self._state = StoreState.BOUND
            logger.info(f"Store bound to user {user_id}")
            return True

    async def unbind(self) -> None:
        """Stop syncing, forget the user's data and go back to the local cache."""
        async with self._lock:
            if self._state is StoreState.UNBOUND:
                return
            user_id = self.session.user_id
            self._teardown()
            await self._drain_mirror()
            self._load_local()
            logger.info(f"Store unbound from user {user_id}")

    async def close(self) -> None:
        """Release live subscriptions."""
        async with self._lock:
            if self._state is not StoreState.UNBOUND:
                self._teardown()
            await self._drain_mirror()
        logger.info("Store closed")

    async def _wait_for_first_snapshots(self) -> None:
        for event in self._first_snapshot.values():
            await event.wait()

    async def _fail_binding(self, user_id: str, error: NoteSyncException) -> None:
        logger.error(f"Binding to user {user_id} failed: {error.detail}")
        self._teardown()
        self._last_error = error
        await self._drain_mirror()
        self._load_local()

    def _teardown(self) -> None:
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []
        self._first_snapshot = {}
        self._generation += 1
        self.session.sign_out()
        self._state = StoreState.UNBOUND
        for collection in COLLECTIONS:
            self._set_collection(collection, ())

    def _load_local(self) -> None:
        for collection in COLLECTIONS:
            self._set_collection(collection, self.cache.load_collection(collection))

    def _snapshot_listener(self, collection: str, generation: int) -> Callable[[list[Entity]], None]:
        loop = self._loop

        def on_snapshot(entities: list[Entity]) -> None:
            if loop is None or loop.is_closed():
                return
            loop.call_soon_threadsafe(self._apply_snapshot, collection, generation, entities)

        return on_snapshot

    def _apply_snapshot(self, collection: str, generation: int, entities: list[Entity]) -> None:
        if generation != self._generation:
            logger.debug(f"Dropping stale {collection} snapshot")
            return

        self._set_collection(collection, entities)
        if self.session.user_id:
            self._schedule_mirror(collection, entities, self.session.user_id)

        event = self._first_snapshot.get(collection)
        if event is not None and not event.is_set():
            logger.info(f"First {collection} snapshot received ({len(entities)} documents)")
            event.set()

    def _schedule_mirror(self, collection: str, entities: list[Entity], user_id: str) -> None:
        """Queue a snapshot for the user-scoped cache; only the latest per collection is written."""
        self._mirror_pending[(user_id, collection)] = entities
        if self._mirror_task is None or self._mirror_task.done():
            self._mirror_task = asyncio.get_running_loop().create_task(self._flush_mirror())

    async def _flush_mirror(self) -> None:
        while self._mirror_pending:
            key = next(iter(self._mirror_pending))
            user_id, collection = key
            entities = self._mirror_pending.pop(key)
            try:
                await asyncio.to_thread(self.cache.save_collection, collection, entities, user_id)
            except SQLAlchemyError as e:
                logger.warning(f"Could not mirror {collection} for user {user_id}: {e}")

    async def _drain_mirror(self) -> None:
        """Wait until queued mirror writes are on disk."""
        if self._mirror_task is not None:
            await self._mirror_task

    def _set_collection(self, collection: str, entities: Iterable[Entity]) -> None:
        setattr(self, _ATTRIBUTES[collection], tuple(entities))
        self._watchers.broadcast("changes", collection)

    # Mutation plumbing

    async def _remote(self, operation: Awaitable[T]) -> T:
        self._pending_writes += 1
        try:
            return await operation
        except NoteSyncException as e:
            self._last_error = e
            logger.error(f"Remote write failed: {e.detail}")
            raise
        finally:
            self._pending_writes -= 1

    def _persist(self, collection: str) -> None:
        self.cache.save_collection(collection, getattr(self, _ATTRIBUTES[collection]))

    def _put(self, collection: str, entity: Entity) -> None:
        current = getattr(self, _ATTRIBUTES[collection])
        if any(item.id == entity.id for item in current):
            updated = tuple(entity if item.id == entity.id else item for item in current)
        else:
            updated = current + (entity,)
        self._set_collection(collection, updated)
        self._persist(collection)

    def _put_many(self, collection: str, entities: Sequence[Entity]) -> None:
        replacements = {entity.id: entity for entity in entities}
        current = getattr(self, _ATTRIBUTES[collection])
        self._set_collection(collection, (replacements.get(item.id, item) for item in current))
        self._persist(collection)

    def _drop(self, collection: str, entity_id: str) -> None:
        current = getattr(self, _ATTRIBUTES[collection])
        self._set_collection(collection, (item for item in current if item.id != entity_id))
        self._persist(collection)

    async def _save_note(self, note: Note, *fields: str) -> Note:
        """Write a changed note: field patch when fields are named, else full merge update."""
        if self._bound:
            if fields:
                patch = encode_fields(note, *fields, "updatedAt")
                await self._remote(self.repository.update_fields(NOTES, note.id, patch))
            else:
                await self._remote(self.repository.update(NOTES, note.id, note))
        else:
            self._put(NOTES, note)
        return note

    async def _batch_notes(self, notes: Sequence[Note], *fields: str) -> None:
        if not notes:
            return
        if self._bound:
            ops = [
                self.repository.update_op(NOTES, note.id, encode_fields(note, *fields, "updatedAt"))
                for note in notes
            ]
            await self._remote(self.repository.batch(ops))
        else:
            self._put_many(NOTES, notes)

    # Notes

    async def create_note(
        self,
        title: str = "New Note",
        folder_id: str | None = None,
        blocks: Sequence[Block] = (),
    ) -> Note:
        async with self._lock:
            if folder_id is not None:
                self.get_folder(folder_id)
            note = Note(user_id=self._owner_id(), title=title, folder_id=folder_id, blocks=tuple(blocks))
            if self._bound:
                await self._remote(self.repository.create(NOTES, note, explicit_id=note.id))
            else:
                self._put(NOTES, note)
            logger.debug(f"Created note {note.id}")
            return note

    async def update_note(self, note: Note) -> Note:
        """
        Write a whole note (title, blocks, folder, tags and flags at once).

        Owner and creation time are kept from the stored note.

        Raises:
            NotFoundError: If the note, its folder or one of its tags does not exist
        """
        async with self._lock:
            current = self.get_note(note.id)
            if note.folder_id is not None:
                self.get_folder(note.folder_id)
            for tag_id in note.tag_ids:
                self.get_tag(tag_id)
            updated = note.model_copy(
                update={
                    "user_id": current.user_id,
                    "created_at": current.created_at,
                    "updated_at": utc_now(),
                }
            )
            return await self._save_note(updated)

    async def rename_note(self, note_id: str, title: str) -> Note:
        async with self._lock:
            note = self.get_note(note_id)
            updated = note.model_copy(update={"title": title, "updated_at": utc_now()})
            return await self._save_note(updated, "title")

    async def add_block(
        self,
        note_id: str,
        block_type: BlockType,
        content: str,
        metadata: BlockMetadata | None = None,
    ) -> Block:
        async with self._lock:
            note = self.get_note(note_id)
            block = Block(type=block_type, content=content, metadata=metadata)
            updated = note.model_copy(update={"blocks": note.blocks + (block,), "updated_at": utc_now()})
            await self._save_note(updated)
            return block

    async def update_block(
        self,
        note_id: str,
        block_id: str,
        content: str,
        metadata: BlockMetadata | None = None,
    ) -> Block:
        """Edit a block in place; metadata is kept unless a new value is given."""
        async with self._lock:
            note = self.get_note(note_id)
            block = note.block(block_id)
            if block is None:
                raise NotFoundError("Block")

            now = utc_now()
            changes: dict[str, Any] = {"content": content, "updated_at": now}
            if metadata is not None:
                changes["metadata"] = metadata
            edited = block.model_copy(update=changes)
            blocks = tuple(edited if item.id == block_id else item for item in note.blocks)
            await self._save_note(note.model_copy(update={"blocks": blocks, "updated_at": now}))
            return edited

    async def remove_block(self, note_id: str, block_id: str) -> Note:
        async with self._lock:
            note = self.get_note(note_id)
            if note.block(block_id) is None:
                raise NotFoundError("Block")
            blocks = tuple(item for item in note.blocks if item.id != block_id)
            return await self._save_note(note.model_copy(update={"blocks": blocks, "updated_at": utc_now()}))

    async def toggle_pin(self, note_id: str) -> Note:
        async with self._lock:
            note = self.get_note(note_id)
            updated = note.model_copy(update={"is_pinned": not note.is_pinned, "updated_at": utc_now()})
            return await self._save_note(updated, "isPinned")

    async def move_note(self, note_id: str, folder_id: str | None) -> Note:
        """File a note into a folder, or into no folder with None."""
        async with self._lock:
            note = self.get_note(note_id)
            if folder_id is not None:
                self.get_folder(folder_id)
            updated = note.model_copy(update={"folder_id": folder_id, "updated_at": utc_now()})
            return await self._save_note(updated, "folderId")

    async def add_tag_to_note(self, note_id: str, tag_id: str) -> Note:
        async with self._lock:
            note = self.get_note(note_id)
            self.get_tag(tag_id)
            if tag_id in note.tag_ids:
                return note
            updated = note.model_copy(update={"tag_ids": note.tag_ids + (tag_id,), "updated_at": utc_now()})
            return await self._save_note(updated, "tagIds")

    async def remove_tag_from_note(self, note_id: str, tag_id: str) -> Note:
        async with self._lock:
            note = self.get_note(note_id)
            if tag_id not in note.tag_ids:
                return note
            tag_ids = tuple(item for item in note.tag_ids if item != tag_id)
            updated = note.model_copy(update={"tag_ids": tag_ids, "updated_at": utc_now()})
            return await self._save_note(updated, "tagIds")

    async def soft_delete_note(self, note_id: str) -> Note:
        async with self._lock:
            return await self._save_note(_soft_deleted(self.get_note(note_id)), "isDeleted", "deletedAt")

    async def restore_note(self, note_id: str) -> Note:
        async with self._lock:
            note = self.get_note(note_id)
            updated = note.model_copy(
                update={"is_deleted": False, "deleted_at": None, "updated_at": utc_now()}
            )
            return await self._save_note(updated, "isDeleted", "deletedAt")

    async def permanently_delete_note(self, note_id: str) -> None:
        async with self._lock:
            self.get_note(note_id)
            if self._bound:
                await self._remote(self.repository.delete(NOTES, note_id))
            else:
                self._drop(NOTES, note_id)
            logger.info(f"Permanently deleted note {note_id}")

    async def soft_delete_notes(self, note_ids: Iterable[str]) -> list[Note]:
        async with self._lock:
            notes = [_soft_deleted(self.get_note(note_id)) for note_id in note_ids]
            await self._batch_notes(notes, "isDeleted", "deletedAt")
            return notes

    async def move_notes(self, note_ids: Iterable[str], folder_id: str | None) -> list[Note]:
        async with self._lock:
            if folder_id is not None:
                self.get_folder(folder_id)
            now = utc_now()
            notes = [
                self.get_note(note_id).model_copy(update={"folder_id": folder_id, "updated_at": now})
                for note_id in note_ids
            ]
            await self._batch_notes(notes, "folderId")
            return notes

    async def add_tag_to_notes(self, note_ids: Iterable[str], tag_id: str) -> list[Note]:
        """Tag several notes at once; notes already carrying the tag are skipped."""
        async with self._lock:
            self.get_tag(tag_id)
            now = utc_now()
            notes = [
                note.model_copy(update={"tag_ids": note.tag_ids + (tag_id,), "updated_at": now})
                for note in (self.get_note(note_id) for note_id in note_ids)
                if tag_id not in note.tag_ids
            ]
            await self._batch_notes(notes, "tagIds")
            return notes

    # Folders

    async def create_folder(self, name: str) -> Folder:
        async with self._lock:
            folder = Folder(user_id=self._owner_id(), name=name)
            if self._bound:
                await self._remote(self.repository.create(FOLDERS, folder, explicit_id=folder.id))
            else:
                self._put(FOLDERS, folder)
            logger.debug(f"Created folder {folder.id}")
            return folder

    async def rename_folder(self, folder_id: str, name: str) -> Folder:
        async with self._lock:
            folder = self.get_folder(folder_id)
            updated = folder.model_copy(update={"name": name, "updated_at": utc_now()})
            if self._bound:
                await self._remote(self.repository.update(FOLDERS, folder_id, updated))
            else:
                self._put(FOLDERS, updated)
            return updated

    async def delete_folder(self, folder_id: str) -> None:
        """Delete a folder and move its notes to no folder, in one transaction."""
        async with self._lock:
            self.get_folder(folder_id)
            now = utc_now()
            rehomed = [
                note.model_copy(update={"folder_id": None, "updated_at": now})
                for note in self._notes
                if note.folder_id == folder_id
            ]

            if self._bound:
                ops: list[WriteOp] = [
                    self.repository.update_op(NOTES, note.id, encode_fields(note, "folderId", "updatedAt"))
                    for note in rehomed
                ]
                ops.append(self.repository.delete_op(FOLDERS, folder_id))
                await self._remote(self.repository.batch(ops))
            else:
                if rehomed:
                    self._put_many(NOTES, rehomed)
                self._drop(FOLDERS, folder_id)
            logger.info(f"Deleted folder {folder_id}, re-homed {len(rehomed)} notes")

    # Tags

    async def create_tag(self, name: str, color_hex: str) -> Tag:
        async with self._lock:
            tag = Tag(user_id=self._owner_id(), name=name, color_hex=normalize_hex_color(color_hex))
            if self._bound:
                await self._remote(self.repository.create(TAGS, tag, explicit_id=tag.id))
            else:
                self._put(TAGS, tag)
            logger.debug(f"Created tag {tag.id}")
            return tag

    async def update_tag(self, tag_id: str, name: str | None = None, color_hex: str | None = None) -> Tag:
        async with self._lock:
            tag = self.get_tag(tag_id)
            changes: dict[str, Any] = {"updated_at": utc_now()}
            if name is not None:
                changes["name"] = name
            if color_hex is not None:
                changes["color_hex"] = normalize_hex_color(color_hex)
            updated = tag.model_copy(update=changes)
            if self._bound:
                await self._remote(self.repository.update(TAGS, tag_id, updated))
            else:
                self._put(TAGS, updated)
            return updated

    async def delete_tag(self, tag_id: str) -> None:
        """Delete a tag and scrub it from every note, in one transaction."""
        async with self._lock:
            self.get_tag(tag_id)
            now = utc_now()
            scrubbed = [
                note.model_copy(
                    update={
                        "tag_ids": tuple(item for item in note.tag_ids if item != tag_id),
                        "updated_at": now,
                    }
                )
                for note in self._notes
                if tag_id in note.tag_ids
            ]

            if self._bound:
                ops: list[WriteOp] = [
                    self.repository.update_op(NOTES, note.id, encode_fields(note, "tagIds", "updatedAt"))
                    for note in scrubbed
                ]
                ops.append(self.repository.delete_op(TAGS, tag_id))
                await self._remote(self.repository.batch(ops))
            else:
                if scrubbed:
                    self._put_many(NOTES, scrubbed)
                self._drop(TAGS, tag_id)
            logger.info(f"Deleted tag {tag_id}, scrubbed {len(scrubbed)} notes")

    # Sample content

    async def seed_sample_content(self) -> bool:
        """
        Fill an empty unbound store with starter folders, tags and notes.

        Returns:
            True if content was created
        """
        async with self._lock:
            if self._bound or self._notes or self._folders or self._tags:
                return False

            owner = self._owner_id()
            folders = {name: Folder(user_id=owner, name=name) for name in DEFAULT_FOLDERS}
            tags = {
                name: Tag(user_id=owner, name=name, color_hex=color)
                for name, color in DEFAULT_TAGS.items()
            }
            notes = [
                Note(
                    user_id=owner,
                    title="Welcome to NoteSync",
                    blocks=(
                        Block(
                            type=BlockType.TEXT,
                            content=(
                                "Welcome to NoteSync!\n\nHere's what you can do:\n\n"
                                "• Create and edit notes\n• Organize them with folders and tags\n"
                                "• Import YouTube videos\n• Generate AI-powered content"
                            ),
                        ),
                        Block(
                            type=BlockType.AI_GENERATED,
                            content=(
                                "Generate from any note:\n\n• Summaries\n• Flashcards\n"
                                "• Quizzes\n• Cornell Notes\n• Q&A pairs"
                            ),
                        ),
                    ),
                ),
                Note(
                    user_id=owner,
                    title="Personal Goals",
                    folder_id=folders["Personal"].id,
                    tag_ids=(tags["Personal"].id, tags["Ideas"].id),
                    blocks=(
                        Block(
                            type=BlockType.TEXT,
                            content=(
                                "# My Personal Goals\n\n- Exercise 3 times a week\n"
                                "- Read one book per month\n- Practice meditation daily"
                            ),
                        ),
                    ),
                ),
                Note(
                    user_id=owner,
                    title="Project Ideas",
                    folder_id=folders["Work"].id,
                    tag_ids=(tags["Work"].id, tags["Projects"].id),
                    is_pinned=True,
                    blocks=(
                        Block(
                            type=BlockType.TEXT,
                            content=(
                                "# Project Ideas\n\n1. Mobile app for task management\n"
                                "2. Smart home automation system\n3. Health tracking platform"
                            ),
                        ),
                    ),
                ),
            ]

            self._set_collection(FOLDERS, folders.values())
            self._set_collection(TAGS, tags.values())
            self._set_collection(NOTES, notes)
            for collection in COLLECTIONS:
                self._persist(collection)
            logger.info("Seeded sample content")
            return True


def _soft_deleted(note: Note) -> Note:
    now = utc_now()
    return note.model_copy(update={"is_deleted": True, "deleted_at": now, "updated_at": now})
