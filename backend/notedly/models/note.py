"""
Notedly Backend — Note SQLAlchemy Model
=========================================

What:  ORM model representing the `notes` table.
Who:   Owned by NoteService; deleted in bulk by BoardService on board delete.

Table Design:
    - id: CHAR(64) content-derived identifier, HMAC-SHA3-256 of
      (board, author, title); never re-keyed on rename
    - board_id: every note is bound to exactly one board
    - author_id: the user who created it; only the author and the board owner
      may edit or delete it
    - body: TEXT, unbounded

Index on (board_id, created_at):
    Serves the per-board listing, which is the only multi-row note query.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from notedly.database import Base


class Note(Base):
    """A titled text note on a board."""

    __tablename__ = "notes"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Content-derived identifier (hex HMAC-SHA3-256 of board, author and title)",
    )

    # ── Ownership ─────────────────────────────────────────────────────────
    board_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("boards.id", name="fk_notes_board_id_boards"),
        nullable=False,
    )
    author_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", name="fk_notes_author_id_users"),
        nullable=False,
        index=True,
    )

    # ── Content ───────────────────────────────────────────────────────────
    title: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        server_default=text("''"),
    )

    # ── Timestamps ────────────────────────────────────────────────────────
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

    __table_args__ = (
        Index("idx_notes_board_created_at", "board_id", "created_at"),
    )

    def __repr__(self) -> str:
        """Developer-friendly string representation for debugging."""
        return f"<Note(id={self.id[:12]}..., board_id={self.board_id[:12]}..., author_id={self.author_id})>"
