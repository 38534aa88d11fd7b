"""
Notedly Backend — Board SQLAlchemy Model
==========================================

What:  ORM model for the `boards` table and the Visibility tier enum.
Who:   Owned by BoardService; read by the Access Evaluator.

Table Design:
    - id: CHAR(64) content-derived identifier, HMAC-SHA3-256 of (owner, title);
      assigned once at creation and never re-keyed on rename
    - owner_id: exactly one owner, who implicitly holds read and write
    - visibility: private | unlisted | permissive, enforced by a CHECK constraint
    - acl_version: bumped by every grant, revoke and visibility change so that
      concurrent writers on the same board conflict at the row level

Notes and permission rows reference boards without ON DELETE CASCADE;
BoardService deletes them explicitly.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from notedly.database import Base


class Visibility(str, enum.Enum):
    """Default read access of a board, independent of explicit grants."""

    PRIVATE = "private"        # owner and grantees only
    UNLISTED = "unlisted"      # anyone presenting the identifier may read
    PERMISSIVE = "permissive"  # any authenticated user may read


class Board(Base):
    """A named, visibility-scoped container of notes."""

    __tablename__ = "boards"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Content-derived identifier (hex HMAC-SHA3-256 of owner and title)",
    )

    owner_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", name="fk_boards_owner_id_users"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(Text, nullable=False)

    visibility: Mapped[Visibility] = mapped_column(
        Enum(
            Visibility,
            name="board_visibility",
            native_enum=False,
            create_constraint=True,
            length=16,
            values_callable=lambda tiers: [tier.value for tier in tiers],
        ),
        nullable=False,
        default=Visibility.PRIVATE,
    )

    acl_version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
        comment="Incremented on grant, revoke and visibility change",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return (
            f"<Board(id={self.id[:12]}..., owner_id={self.owner_id}, "
            f"visibility='{self.visibility.value}')>"
        )
