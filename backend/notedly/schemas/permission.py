"""
Notedly Backend — Permission Schemas
======================================

What:  Grant payloads for /api/boards/{id}/permissions and the caller's own
       assignments at /api/users/me/assignments.
"""

from typing import List

from pydantic import BaseModel, Field


class PermissionGrant(BaseModel):
    """
    A grant replaces any earlier grant for the same (board, user).

    write=True also allows reading the board.
    """
    user_id: int = Field(description="Grantee; must not be the board owner")
    read: bool = Field(default=True)
    write: bool = Field(default=False)


class PermissionResponse(BaseModel):
    board_id: str
    user_id: int
    read: bool
    write: bool

    model_config = {"from_attributes": True}


class PermissionListResponse(BaseModel):
    permissions: List[PermissionResponse]
