"""
Notedly Backend — Note Schemas
================================

What:  Request and response models for notes on a board.
How:   Notes are created under /api/boards/{board_id}/notes and addressed
       afterwards by their own identifier at /api/notes/{note_id}.

Design Decision:
    NoteListItem carries a 200-character preview instead of the full body.
    A board listing is rendered as cards; the full body is fetched per note.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

PREVIEW_LENGTH = 200


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class NoteCreate(BaseModel):
    title: str = Field(description="Note title, must not be blank")
    body: str = Field(default="", description="Note text")


class NoteUpdate(BaseModel):
    """
    Author or board owner only. Omitted fields are left as they are.

    Changing the title does not change the note identifier.
    """
    title: Optional[str] = Field(default=None)
    body: Optional[str] = Field(default=None)


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class NoteResponse(BaseModel):
    """Full representation of a note."""
    id: str = Field(description="64-character content-derived identifier")
    board_id: str = Field(description="Board the note belongs to")
    author_id: int = Field(description="User who created the note")
    title: str
    body: str
    created_at: datetime = Field(description="When the note was created (UTC ISO 8601)")
    updated_at: datetime

    model_config = {"from_attributes": True}


class NoteListItem(BaseModel):
    id: str
    board_id: str
    author_id: int
    title: str
    body_preview: str = Field(description=f"First {PREVIEW_LENGTH} characters of the body")
    created_at: datetime

    @classmethod
    def from_note(cls, note) -> "NoteListItem":
        return cls(
            id=note.id,
            board_id=note.board_id,
            author_id=note.author_id,
            title=note.title,
            body_preview=note.body[:PREVIEW_LENGTH],
            created_at=note.created_at,
        )


class NoteListResponse(BaseModel):
    notes: List[NoteListItem] = Field(description="Notes, oldest first")
    total_count: int
