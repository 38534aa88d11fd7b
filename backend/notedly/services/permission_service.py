"""
Notedly Backend — Permission Table
====================================

What:  Owner-issued read/write grants on a board.
How:   One row per (board, user). grant() upserts that row, revoke() deletes
       it. Both lock the board row and bump boards.acl_version, so a
       concurrent note write on the same board either sees the new ACL or
       fails with ConcurrentModificationError.
Who:   /api/boards/{id}/permissions routes, /api/users/me/assignments[/{id}], and
       the legacy importer (permission blobs become rows).
"""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from notedly.database import storage_errors
from notedly.exceptions import NotFoundError, ValidationError
from notedly.models.board import Board
from notedly.models.permission import Permission
from notedly.models.user import User
from notedly.services.access import load_board, load_grant, require_owner

logger = logging.getLogger(__name__)


class PermissionService:
    """
    Permission Table operations. Every operation except the caller-scoped
    list_for_user() and get_for_user() is owner-only.
    """

    async def grant(
        self,
        db: AsyncSession,
        board_id: str,
        granter: User,
        grantee_id: int,
        read: bool,
        write: bool,
    ) -> Permission:
        """
        Give `grantee_id` read and/or write access to a board.

        A later grant for the same user replaces the earlier flags.

        Raises:
            NotOwnerError: Granter is not the owner (concealed if they cannot read)
            ValidationError: Grantee is the owner
            NotFoundError: Board or grantee does not exist
        """
        board = await load_board(db, board_id, for_update=True)
        await require_owner(db, granter.id, board)

        if grantee_id == board.owner_id:
            raise ValidationError(
                message="The board owner already has full access",
                field="user_id",
            )

        async with storage_errors("grant permission"):
            result = await db.execute(select(User.id).where(User.id == grantee_id))
            if result.scalar_one_or_none() is None:
                raise NotFoundError(resource="user", resource_id=str(grantee_id))

            permission = await load_grant(db, board_id, grantee_id)
            if permission is None:
                permission = Permission(board_id=board_id, user_id=grantee_id)
                db.add(permission)
            permission.read = read
            permission.write = write
            board.acl_version += 1
            await db.flush()

        logger.info(
            "Board %s: user %d granted read=%s write=%s",
            board_id[:12], grantee_id, read, write,
        )
        return permission

    async def revoke(
        self,
        db: AsyncSession,
        board_id: str,
        granter: User,
        grantee_id: int,
    ) -> None:
        """Remove a grant. Revoking a grant that does not exist is a no-op."""
        board = await load_board(db, board_id, for_update=True)
        await require_owner(db, granter.id, board)

        async with storage_errors("revoke permission"):
            permission = await load_grant(db, board_id, grantee_id)
            if permission is None:
                return
            await db.delete(permission)
            board.acl_version += 1
            await db.flush()

        logger.info("Board %s: user %d revoked", board_id[:12], grantee_id)

    async def list_grants(self, db: AsyncSession, board_id: str, user: User) -> List[Permission]:
        board = await load_board(db, board_id)
        await require_owner(db, user.id, board)
        async with storage_errors("list permissions"):
            result = await db.execute(
                select(Permission)
                .where(Permission.board_id == board_id)
                .order_by(Permission.user_id)
            )
            return list(result.scalars().all())

    async def list_for_user(self, db: AsyncSession, user: User) -> List[Permission]:
        """The caller's own grants on boards that still exist."""
        async with storage_errors("list assignments"):
            result = await db.execute(
                select(Permission)
                .join(Board, Board.id == Permission.board_id)
                .where(Permission.user_id == user.id)
                .order_by(Board.created_at, Permission.board_id)
            )
            return list(result.scalars().all())

    async def get_for_user(self, db: AsyncSession, user: User, board_id: str) -> Permission:
        """
        The caller's own grant on one board.

        Raises:
            NotFoundError: No grant (also for a missing board, and for the
                           owner, who never holds a grant row)
        """
        async with storage_errors("load assignment"):
            result = await db.execute(
                select(Permission)
                .join(Board, Board.id == Permission.board_id)
                .where(Permission.user_id == user.id, Permission.board_id == board_id)
            )
            permission = result.scalar_one_or_none()
        if permission is None:
            raise NotFoundError(resource="permission", resource_id=board_id)
        return permission


# ── Singleton Instance ────────────────────────────────────────────────────
permission_service = PermissionService()
