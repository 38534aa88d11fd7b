"""
Notedly Backend — Board Store
===============================

What:  Create, read, list, update and delete boards.
How:   Every operation goes through the Access Evaluator first. Writes lock
       the board row so they serialize against grant and revoke.
Who:   Called by the /api/boards routes and the legacy importer.

Ownership:
    The owner implicitly holds full access and never gets a permission row.
    Only the owner may rename, change visibility or delete. A non-owner who
    cannot even read the board is told it does not exist.

Deletion:
    There is no ON DELETE CASCADE. delete_board() removes the board's notes
    and permission rows itself, inside the same transaction, so nothing is
    left referencing a missing board.

Titles:
    One owner never holds two boards with the same title, on create or on
    rename. Renaming keeps the identifier; a new board reusing a renamed
    board's old title gets the next identifier generation.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from notedly.config import Settings, settings
from notedly.database import storage_errors
from notedly.exceptions import IdentifierConflictError, ValidationError
from notedly.models.board import Board, Visibility
from notedly.models.note import Note
from notedly.models.permission import Permission
from notedly.models.user import User
from notedly.schemas.board import BoardUpdate
from notedly.services.access import Action, authorize, load_board, require_owner
from notedly.services.identifiers import MAX_GENERATIONS, board_identifier

logger = logging.getLogger(__name__)


def clean_title(title: str) -> str:
    """Strip surrounding whitespace; blank titles are a ValidationError."""
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationError(message="Title must not be empty", field="title")
    return cleaned


def parse_visibility(value) -> Visibility:
    if isinstance(value, Visibility):
        return value
    try:
        return Visibility(str(value).strip().lower())
    except ValueError:
        raise ValidationError(
            message=f"Invalid visibility '{value}'. Must be one of: private, unlisted, permissive",
            field="visibility",
        )


async def find_board_by_title(db: AsyncSession, owner_id: int, title: str) -> Optional[Board]:
    """The owner's board currently carrying `title`, if any."""
    result = await db.execute(
        select(Board).where(Board.owner_id == owner_id, Board.title == title)
    )
    return result.scalars().first()


async def allocate_board_identifier(db: AsyncSession, secret: str, owner_id: int, title: str) -> str:
    """
    First free identifier for (owner, title).

    A slot held by another of the owner's boards means that board was renamed
    away from `title`; the next generation is tried. A slot held by someone
    else's board is a genuine collision.

    Raises:
        IdentifierConflictError: Genuine collision, or every generation taken
    """
    for generation in range(MAX_GENERATIONS):
        board_id = board_identifier(secret, owner_id, title, generation)
        result = await db.execute(select(Board.owner_id).where(Board.id == board_id))
        holder = result.scalar_one_or_none()
        if holder is None:
            return board_id
        if holder != owner_id:
            break
    raise IdentifierConflictError(resource="board", resource_id=board_id)


async def lock_owner(db: AsyncSession, owner_id: int) -> None:
    """Serialize title changes across one owner's boards."""
    await db.execute(select(User.id).where(User.id == owner_id).with_for_update())


class BoardService:
    """
    Board Store operations.

    Responsibilities:
        - create_board(): derive the identifier, reject collisions, insert
        - get_board(): read access check, concealed on denial
        - list_boards(): owned and explicitly granted boards
        - update_board(): owner-only title/visibility change
        - delete_board(): owner-only, removes notes and grants too
    """

    def __init__(self, config: Settings):
        self.config = config

    async def create_board(
        self,
        db: AsyncSession,
        owner: User,
        title: str,
        visibility="private",
    ) -> Board:
        """
        Create a board owned by `owner`.

        The identifier is derived from (owner, title); a second board with the
        same title for the same owner is rejected, never merged. If the
        owner renamed a board away from this title, the new board gets the
        next identifier generation.

        Raises:
            ValidationError: Blank title or unknown visibility tier
            IdentifierConflictError: The owner already has a board with this
                                     title, or the identifier collides
        """
        title = clean_title(title)
        tier = parse_visibility(visibility)

        async with storage_errors("create board"):
            await lock_owner(db, owner.id)
            existing = await find_board_by_title(db, owner.id, title)
            if existing is not None:
                raise IdentifierConflictError(resource="board", resource_id=existing.id)
            board_id = await allocate_board_identifier(
                db, self.config.identifier_secret, owner.id, title,
            )

            board = Board(id=board_id, owner_id=owner.id, title=title, visibility=tier)
            db.add(board)
            await db.flush()

        logger.info("Board %s created by user %d (%s)", board_id[:12], owner.id, tier.value)
        return board

    async def get_board(self, db: AsyncSession, board_id: str, user: User) -> Board:
        """
        Fetch a board the user may read.

        Raises:
            NotFoundError: Missing board
            AccessDeniedError: Concealed; rendered exactly like NotFoundError
        """
        board = await load_board(db, board_id)
        await authorize(db, user.id, board, Action.READ, presented_id=True)
        return board

    async def list_boards(self, db: AsyncSession, user: User) -> List[Board]:
        """
        Boards the user owns or holds an explicit read or write grant on.

        Unlisted and permissive boards the user could open by identifier are
        not listed.
        """
        granted = select(Permission.board_id).where(
            Permission.user_id == user.id,
            or_(Permission.read.is_(True), Permission.write.is_(True)),
        )
        async with storage_errors("list boards"):
            result = await db.execute(
                select(Board)
                .where(or_(Board.owner_id == user.id, Board.id.in_(granted)))
                .order_by(Board.created_at, Board.id)
            )
            return list(result.scalars().all())

    async def update_board(
        self,
        db: AsyncSession,
        board_id: str,
        user: User,
        changes: BoardUpdate,
    ) -> Board:
        """
        Owner-only rename and/or visibility change.

        A visibility change bumps acl_version; it affects checks made after
        this transaction commits, never notes or grants already written.
        Renaming keeps the identifier.

        Raises:
            ValidationError: Blank title or unknown visibility tier; nothing
                             is changed
            IdentifierConflictError: The owner has another board with the
                                     new title
        """
        board = await load_board(db, board_id, for_update=True)
        await require_owner(db, user.id, board)

        # Validate everything before touching the row
        title = clean_title(changes.title) if changes.title is not None else None
        tier = parse_visibility(changes.visibility) if changes.visibility is not None else None

        if title is not None and title != board.title:
            async with storage_errors("rename board"):
                await lock_owner(db, board.owner_id)
                clash = await find_board_by_title(db, board.owner_id, title)
            if clash is not None:
                raise IdentifierConflictError(resource="board", resource_id=clash.id)
            board.title = title

        if tier is not None and tier != board.visibility:
            logger.info(
                "Board %s visibility %s -> %s",
                board.id[:12], board.visibility.value, tier.value,
            )
            board.visibility = tier
            board.acl_version += 1

        board.updated_at = datetime.now(timezone.utc)
        async with storage_errors("update board"):
            await db.flush()
        return board

    async def delete_board(self, db: AsyncSession, board_id: str, user: User) -> None:
        """Owner-only delete; removes the board's notes and permission rows first."""
        board = await load_board(db, board_id, for_update=True)
        await require_owner(db, user.id, board)

        async with storage_errors("delete board"):
            notes = await db.execute(delete(Note).where(Note.board_id == board_id))
            grants = await db.execute(delete(Permission).where(Permission.board_id == board_id))
            await db.delete(board)
            await db.flush()

        logger.info(
            "Board %s deleted by owner %d (%d notes, %d grants)",
            board_id[:12], user.id, notes.rowcount, grants.rowcount,
        )


# ── Singleton Instance ────────────────────────────────────────────────────
board_service = BoardService(settings)
