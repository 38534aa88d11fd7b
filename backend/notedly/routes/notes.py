"""
Notedly Backend — Notes Route Handlers
========================================

What:  Notes on boards.

Endpoints:
    GET    /api/boards/{board_id}/notes   list (read access)
    POST   /api/boards/{board_id}/notes   create (write access)
    GET    /api/notes/{note_id}           read (read access to the board)
    PATCH  /api/notes/{note_id}           edit (author with write, or owner)
    DELETE /api/notes/{note_id}           delete (same as edit)

Caching Strategy:
    Notes are mutable and access can be revoked at any time, so single-note
    responses are marked `private, no-cache`.
"""

import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from notedly.database import get_db_session
from notedly.models.user import User
from notedly.routes.deps import get_current_user
from notedly.schemas.common import ErrorResponse
from notedly.schemas.note import (
    NoteCreate,
    NoteListItem,
    NoteListResponse,
    NoteResponse,
    NoteUpdate,
)
from notedly.services.note_service import note_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Notes"])

_NOT_FOUND = {"description": "Note or board not found (or not visible)", "model": ErrorResponse}


@router.get(
    "/boards/{board_id}/notes",
    response_model=NoteListResponse,
    responses={404: _NOT_FOUND},
    summary="List the notes on a board",
)
async def list_notes(
    board_id: str,
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> NoteListResponse:
    notes = await note_service.list_board_notes(db, board_id, user)
    response.headers["X-Total-Count"] = str(len(notes))
    return NoteListResponse(
        notes=[NoteListItem.from_note(note) for note in notes],
        total_count=len(notes),
    )


@router.post(
    "/boards/{board_id}/notes",
    response_model=NoteResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Blank title", "model": ErrorResponse},
        403: {"description": "No write access", "model": ErrorResponse},
        404: _NOT_FOUND,
        409: {"description": "Note with this title already exists", "model": ErrorResponse},
    },
    summary="Create a note on a board",
)
async def create_note(
    board_id: str,
    payload: NoteCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> NoteResponse:
    note = await note_service.create_note(db, user, board_id, payload.title, payload.body)
    return NoteResponse.model_validate(note)


@router.get(
    "/notes/{note_id}",
    response_model=NoteResponse,
    responses={404: _NOT_FOUND},
    summary="Get a single note by ID",
)
async def get_note(
    note_id: str,
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> NoteResponse:
    note = await note_service.get_note(db, note_id, user)
    response.headers["Cache-Control"] = "private, no-cache"
    return NoteResponse.model_validate(note)


@router.patch(
    "/notes/{note_id}",
    response_model=NoteResponse,
    responses={403: {"description": "Not the author or board owner", "model": ErrorResponse}, 404: _NOT_FOUND},
    summary="Edit a note",
)
async def update_note(
    note_id: str,
    changes: NoteUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> NoteResponse:
    note = await note_service.update_note(db, note_id, user, changes)
    return NoteResponse.model_validate(note)


@router.delete(
    "/notes/{note_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={403: {"description": "Not the author or board owner", "model": ErrorResponse}, 404: _NOT_FOUND},
    summary="Delete a note",
)
async def delete_note(
    note_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await note_service.delete_note(db, note_id, user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
