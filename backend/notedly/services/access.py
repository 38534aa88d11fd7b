"""
Notedly Backend — Access Evaluator
====================================

What:  The single rule every board and note operation must pass.
How:   evaluate() is a pure function over (user, board, action, grant).
       authorize() and require_owner() load the grant row, call evaluate()
       and raise the matching AccessDeniedError.
Who:   BoardService, PermissionService and NoteService, before any read or
       mutation of board-scoped data.

Decision table (first match wins):
    ┌───┬──────────────────────────────────────────────────┬────────┐
    │ 1 │ user owns the board                              │ ALLOW  │
    │ 2 │ READ on a permissive board                       │ ALLOW  │
    │ 3 │ READ on an unlisted board, identifier presented  │ ALLOW  │
    │ 4 │ grant row for (board, user) with the flag set    │ ALLOW  │
    │ 5 │ anything else                                    │ DENY   │
    └───┴──────────────────────────────────────────────────┴────────┘

A grant with write=True satisfies READ as well (WRITE_IMPLIES_READ).

Concealment:
    A denial is concealed (reported as not-found) whenever the caller could
    not read the board either. Only callers who can already see a board learn
    that an operation on it was refused.
"""

import enum
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from notedly.database import storage_errors
from notedly.exceptions import AccessDeniedError, NotFoundError, NotOwnerError
from notedly.models.board import Board, Visibility
from notedly.models.permission import Permission

logger = logging.getLogger(__name__)

WRITE_IMPLIES_READ = True


class Action(str, enum.Enum):
    READ = "read"
    WRITE = "write"


class Decision(str, enum.Enum):
    ALLOW = "allow"
    DENY = "deny"


def evaluate(
    user_id: int,
    board: Board,
    action: Action,
    grant: Optional[Permission] = None,
    presented_id: bool = False,
) -> Decision:
    """
    Decide whether `user_id` may perform `action` on `board`.

    Pure: reads only its arguments, so callers control which snapshot of the
    board and grant it sees. A grant belonging to another board or user is
    ignored.
    """
    if board.owner_id == user_id:
        return Decision.ALLOW

    if action == Action.READ:
        if board.visibility == Visibility.PERMISSIVE:
            return Decision.ALLOW
        if board.visibility == Visibility.UNLISTED and presented_id:
            return Decision.ALLOW

    if grant is not None and grant.board_id == board.id and grant.user_id == user_id:
        if action == Action.WRITE and grant.write:
            return Decision.ALLOW
        if action == Action.READ and (grant.read or (WRITE_IMPLIES_READ and grant.write)):
            return Decision.ALLOW

    return Decision.DENY


# ── Loaders ───────────────────────────────────────────────────────────────
async def load_board(db: AsyncSession, board_id: str, for_update: bool = False) -> Board:
    """
    Fetch a board or raise NotFoundError.

    for_update=True takes a row lock (SELECT ... FOR UPDATE) so that grant
    reads and the write that follows see one consistent ACL.
    """
    query = select(Board).where(Board.id == board_id)
    if for_update:
        query = query.with_for_update()
    async with storage_errors("load board"):
        result = await db.execute(query)
        board = result.scalar_one_or_none()
    if board is None:
        raise NotFoundError(resource="board", resource_id=board_id)
    return board


async def load_grant(db: AsyncSession, board_id: str, user_id: int) -> Optional[Permission]:
    async with storage_errors("load permission"):
        result = await db.execute(
            select(Permission).where(
                Permission.board_id == board_id,
                Permission.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()


# ── Enforcement ───────────────────────────────────────────────────────────
async def authorize(
    db: AsyncSession,
    user_id: int,
    board: Board,
    action: Action,
    presented_id: bool = True,
) -> None:
    """
    Raise AccessDeniedError unless evaluate() allows the action.

    Raises:
        AccessDeniedError: conceal=True when the user cannot read the board
    """
    if board.owner_id == user_id:
        return

    grant = await load_grant(db, board.id, user_id)
    if evaluate(user_id, board, action, grant, presented_id) == Decision.ALLOW:
        return

    can_read = evaluate(user_id, board, Action.READ, grant, presented_id) == Decision.ALLOW
    logger.info(
        "Denied %s on board %s for user %d (concealed=%s)",
        action.value, board.id[:12], user_id, not can_read,
    )
    raise AccessDeniedError(
        resource="board",
        resource_id=board.id,
        action=action.value,
        conceal=not can_read,
    )


async def require_owner(
    db: AsyncSession,
    user_id: int,
    board: Board,
    presented_id: bool = True,
) -> None:
    """Raise NotOwnerError unless `user_id` owns `board`, concealed if they cannot read it."""
    if board.owner_id == user_id:
        return

    grant = await load_grant(db, board.id, user_id)
    can_read = evaluate(user_id, board, Action.READ, grant, presented_id) == Decision.ALLOW
    logger.info(
        "Denied owner-only operation on board %s for user %d (concealed=%s)",
        board.id[:12], user_id, not can_read,
    )
    raise NotOwnerError(resource="board", resource_id=board.id, conceal=not can_read)
