"""
Notedly Backend — User Route Handlers
=======================================

What:  The caller's own view of the service.

Endpoints:
    GET /api/user                             the caller
    GET /api/users/me/notes                   notes the caller wrote
    GET /api/users/me/assignments             the caller's board grants
    GET /api/users/me/assignments/{board_id}  the caller's grant on one board
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from notedly.database import get_db_session
from notedly.models.user import User
from notedly.routes.deps import get_current_user
from notedly.schemas.common import ErrorResponse
from notedly.schemas.note import NoteListItem, NoteListResponse
from notedly.schemas.permission import PermissionListResponse, PermissionResponse
from notedly.schemas.user import UserResponse
from notedly.services.note_service import note_service
from notedly.services.permission_service import permission_service

router = APIRouter(prefix="/api", tags=["Users"])

_UNAUTHORIZED = {"description": "Missing or unknown bearer token", "model": ErrorResponse}


@router.get(
    "/user",
    response_model=UserResponse,
    responses={401: _UNAUTHORIZED},
    summary="Get the authenticated user",
)
async def get_me(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(user)


@router.get(
    "/users/me/notes",
    response_model=NoteListResponse,
    responses={401: _UNAUTHORIZED},
    summary="List notes written by the caller",
)
async def list_my_notes(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> NoteListResponse:
    """Only notes on boards the caller can still read."""
    notes = await note_service.list_for_author(db, user)
    return NoteListResponse(
        notes=[NoteListItem.from_note(note) for note in notes],
        total_count=len(notes),
    )


@router.get(
    "/users/me/assignments",
    response_model=PermissionListResponse,
    responses={401: _UNAUTHORIZED},
    summary="List the caller's board grants",
)
async def list_assignments(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> PermissionListResponse:
    """Explicit grants only; owned boards are listed by GET /api/boards."""
    grants = await permission_service.list_for_user(db, user)
    return PermissionListResponse(
        permissions=[PermissionResponse.model_validate(g) for g in grants],
    )


@router.get(
    "/users/me/assignments/{board_id}",
    response_model=PermissionResponse,
    responses={
        401: _UNAUTHORIZED,
        404: {"description": "No grant on this board", "model": ErrorResponse},
    },
    summary="Get the caller's grant on one board",
)
async def get_assignment(
    board_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> PermissionResponse:
    permission = await permission_service.get_for_user(db, user, board_id)
    return PermissionResponse.model_validate(permission)
