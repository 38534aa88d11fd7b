"""
Notedly Backend — Board Schemas
=================================

What:  Request and response models for /api/boards.

Titles and visibility tiers arrive as plain strings and are validated by
BoardService, so the CLI importer and HTTP callers get the same
ValidationError for an empty title or an unknown tier.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from notedly.models.board import Visibility


class BoardCreate(BaseModel):
    title: str = Field(description="Board title, must not be blank")
    visibility: str = Field(
        default=Visibility.PRIVATE.value,
        description="private, unlisted or permissive",
    )


class BoardUpdate(BaseModel):
    """
    Owner-only changes. Omitted fields are left as they are.

    Changing the title does not change the board identifier.
    """
    title: Optional[str] = Field(default=None)
    visibility: Optional[str] = Field(default=None)


class BoardResponse(BaseModel):
    id: str = Field(description="64-character content-derived identifier")
    owner_id: int
    title: str
    visibility: Visibility
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BoardListResponse(BaseModel):
    """Boards the caller owns or holds an explicit grant on."""
    boards: List[BoardResponse]
    total_count: int
