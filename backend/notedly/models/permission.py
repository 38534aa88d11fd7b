"""
Notedly Backend — Permission SQLAlchemy Model
===============================================

What:  ORM model for the `permissions` table: explicit per-board, per-user
       read/write grants, independent of the board's visibility tier.
Who:   Written by PermissionService; read by the Access Evaluator.

Invariant: at most one row per (board_id, user_id), enforced by a unique
constraint. A second grant updates the flags of the existing row.
The owner never has a row; ownership already implies full access.
"""

from sqlalchemy import Boolean, ForeignKey, Integer, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from notedly.database import Base


class Permission(Base):
    """A read/write grant of one board to one user."""

    __tablename__ = "permissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    board_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("boards.id", name="fk_permissions_board_id_boards"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", name="fk_permissions_user_id_users"),
        nullable=False,
        index=True,
    )

    read: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    write: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    __table_args__ = (
        UniqueConstraint("board_id", "user_id", name="uq_permissions_board_user"),
    )

    def __repr__(self) -> str:
        return (
            f"<Permission(board_id={self.board_id[:12]}..., user_id={self.user_id}, "
            f"read={self.read}, write={self.write})>"
        )
