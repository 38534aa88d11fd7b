"""
Notedly Backend — Note Store
==============================

What:  Create, read, list, update and delete notes on boards.
How:   Every note operation resolves the parent board and asks the Access
       Evaluator. Mutations lock the board row first, so they serialize
       against grant/revoke on the same board.
Who:   Called by the note routes, /api/users/me/notes and the legacy importer.

Who may do what:
    ┌──────────────┬─────────────────────────────────────────────────────┐
    │ create       │ write access to the board                           │
    │ get / list   │ read access to the board                            │
    │ update       │ board owner, or the author while they still have    │
    │ delete       │ write access to the board                           │
    └──────────────┴─────────────────────────────────────────────────────┘

    Revoking a user's write grant therefore also stops them editing the notes
    they wrote earlier; the board owner is never affected.

Concealment:
    A caller who cannot read the parent board gets "note ... was not found",
    the same answer as for an identifier that does not exist.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from notedly.config import Settings, settings
from notedly.database import storage_errors
from notedly.exceptions import AccessDeniedError, IdentifierConflictError, NotFoundError
from notedly.models.board import Board
from notedly.models.note import Note
from notedly.models.permission import Permission
from notedly.models.user import User
from notedly.schemas.note import NoteUpdate
from notedly.services.access import (
    Action,
    Decision,
    authorize,
    evaluate,
    load_board,
    load_grant,
)
from notedly.services.board_service import clean_title
from notedly.services.identifiers import MAX_GENERATIONS, note_identifier

logger = logging.getLogger(__name__)


async def find_note_by_title(db: AsyncSession, board_id: str, author_id: int, title: str) -> Optional[Note]:
    """The author's note on `board_id` currently carrying `title`, if any."""
    result = await db.execute(
        select(Note).where(
            Note.board_id == board_id,
            Note.author_id == author_id,
            Note.title == title,
        )
    )
    return result.scalars().first()


async def allocate_note_identifier(
    db: AsyncSession,
    secret: str,
    board_id: str,
    author_id: int,
    title: str,
) -> str:
    """
    First free identifier for (board, author, title).

    Same rule as boards: a slot held by the same author's note on the same
    board was renamed away and is skipped; any other holder is a collision.
    """
    for generation in range(MAX_GENERATIONS):
        note_id = note_identifier(secret, board_id, author_id, title, generation)
        result = await db.execute(select(Note.board_id, Note.author_id).where(Note.id == note_id))
        holder = result.one_or_none()
        if holder is None:
            return note_id
        if tuple(holder) != (board_id, author_id):
            break
    raise IdentifierConflictError(resource="note", resource_id=note_id)


class NoteService:
    """
    Note Store operations.

    Error Handling Strategy:
        Board-level denials raised by the Access Evaluator are re-raised with
        the note as the resource, keeping the concealment flag, so a caller
        never learns the parent board identifier of a note it cannot read.
    """

    def __init__(self, config: Settings):
        self.config = config

    # ── Helpers ───────────────────────────────────────────────────────────
    async def _load_note(self, db: AsyncSession, note_id: str) -> Note:
        async with storage_errors("load note"):
            result = await db.execute(select(Note).where(Note.id == note_id))
            note = result.scalar_one_or_none()
        if note is None:
            raise NotFoundError(resource="note", resource_id=note_id)
        return note

    async def _authorize_read(self, db: AsyncSession, user: User, note: Note, board: Board) -> None:
        # Holding the note identifier counts as presenting it (unlisted boards)
        try:
            await authorize(db, user.id, board, Action.READ, presented_id=True)
        except AccessDeniedError as e:
            raise AccessDeniedError(
                resource="note",
                resource_id=note.id,
                action=e.action,
                conceal=e.conceal,
            ) from e

    async def _authorize_edit(self, db: AsyncSession, user: User, note: Note, board: Board) -> None:
        if user.id == board.owner_id:
            return

        grant = await load_grant(db, board.id, user.id)
        if user.id == note.author_id:
            if evaluate(user.id, board, Action.WRITE, grant, presented_id=True) == Decision.ALLOW:
                return
            message: Optional[str] = None
        else:
            message = "Only the note's author or the board owner may modify this note"

        can_read = evaluate(user.id, board, Action.READ, grant, presented_id=True) == Decision.ALLOW
        logger.info(
            "Denied edit of note %s for user %d (concealed=%s)",
            note.id[:12], user.id, not can_read,
        )
        raise AccessDeniedError(
            resource="note",
            resource_id=note.id,
            action=Action.WRITE.value,
            conceal=not can_read,
            message=message,
        )

    # ── Operations ────────────────────────────────────────────────────────
    async def create_note(
        self,
        db: AsyncSession,
        author: User,
        board_id: str,
        title: str,
        body: str = "",
    ) -> Note:
        """
        Create a note on a board the author can write to.

        Raises:
            ValidationError: Blank title
            NotFoundError: Board does not exist
            AccessDeniedError: No write access (concealed if no read access)
            IdentifierConflictError: Same author already has this title on the board
        """
        title = clean_title(title)
        board = await load_board(db, board_id, for_update=True)
        await authorize(db, author.id, board, Action.WRITE, presented_id=True)

        async with storage_errors("create note"):
            existing = await find_note_by_title(db, board.id, author.id, title)
            if existing is not None:
                raise IdentifierConflictError(resource="note", resource_id=existing.id)
            note_id = await allocate_note_identifier(
                db, self.config.identifier_secret, board.id, author.id, title,
            )

            note = Note(
                id=note_id,
                board_id=board.id,
                author_id=author.id,
                title=title,
                body=body or "",
            )
            db.add(note)
            await db.flush()

        logger.info("Note %s created on board %s by user %d", note_id[:12], board.id[:12], author.id)
        return note

    async def get_note(self, db: AsyncSession, note_id: str, user: User) -> Note:
        note = await self._load_note(db, note_id)
        board = await load_board(db, note.board_id)
        await self._authorize_read(db, user, note, board)
        return note

    async def update_note(
        self,
        db: AsyncSession,
        note_id: str,
        user: User,
        changes: NoteUpdate,
    ) -> Note:
        """
        Change a note's title and/or body. The identifier stays the same.

        Raises:
            NotFoundError: Note does not exist
            AccessDeniedError: Not the board owner, and not the author with
                               current write access
            ValidationError: Blank title
            IdentifierConflictError: The author already has a note with the new
                                     title on this board
        """
        note = await self._load_note(db, note_id)
        board = await load_board(db, note.board_id, for_update=True)
        await self._authorize_edit(db, user, note, board)

        title = clean_title(changes.title) if changes.title is not None else None
        if title is not None and title != note.title:
            async with storage_errors("rename note"):
                clash = await find_note_by_title(db, note.board_id, note.author_id, title)
            if clash is not None:
                raise IdentifierConflictError(resource="note", resource_id=clash.id)
            note.title = title
        if changes.body is not None:
            note.body = changes.body
        note.updated_at = datetime.now(timezone.utc)

        async with storage_errors("update note"):
            await db.flush()
        return note

    async def delete_note(self, db: AsyncSession, note_id: str, user: User) -> None:
        note = await self._load_note(db, note_id)
        board = await load_board(db, note.board_id, for_update=True)
        await self._authorize_edit(db, user, note, board)

        async with storage_errors("delete note"):
            await db.delete(note)
            await db.flush()
        logger.info("Note %s deleted by user %d", note_id[:12], user.id)

    async def list_board_notes(self, db: AsyncSession, board_id: str, user: User) -> List[Note]:
        """All notes on a readable board, oldest first."""
        board = await load_board(db, board_id)
        await authorize(db, user.id, board, Action.READ, presented_id=True)
        async with storage_errors("list notes"):
            result = await db.execute(
                select(Note)
                .where(Note.board_id == board_id)
                .order_by(Note.created_at, Note.id)
            )
            return list(result.scalars().all())

    async def list_for_author(self, db: AsyncSession, user: User) -> List[Note]:
        """
        Notes the user wrote, oldest first, on boards they can still read.

        Holding one's own note counts as presenting its identifier, as in
        get_note(). Notes on boards the user has lost access to are left out.
        """
        async with storage_errors("list authored notes"):
            result = await db.execute(
                select(Note, Board)
                .join(Board, Board.id == Note.board_id)
                .where(Note.author_id == user.id)
                .order_by(Note.created_at, Note.id)
            )
            rows = result.all()
            grants = await db.execute(
                select(Permission).where(
                    Permission.user_id == user.id,
                    Permission.board_id.in_([board.id for _, board in rows]),
                )
            )
            by_board = {grant.board_id: grant for grant in grants.scalars()}

        return [
            note
            for note, board in rows
            if evaluate(user.id, board, Action.READ, by_board.get(board.id), presented_id=True)
            == Decision.ALLOW
        ]


# ── Singleton Instance ────────────────────────────────────────────────────
note_service = NoteService(settings)
