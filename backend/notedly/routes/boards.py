"""
Notedly Backend — Board Route Handlers
========================================

What:  Board CRUD and per-board permission management.
How:   Authenticates the caller, delegates to BoardService /
       PermissionService, serializes the ORM rows.

Endpoints:
    GET    /api/boards                              list owned + granted
    POST   /api/boards                              create
    GET    /api/boards/{board_id}                   read
    PATCH  /api/boards/{board_id}                   rename / change visibility
    DELETE /api/boards/{board_id}                   delete with notes + grants
    GET    /api/boards/{board_id}/permissions       list grants (owner)
    PUT    /api/boards/{board_id}/permissions       grant or replace (owner)
    DELETE /api/boards/{board_id}/permissions/{uid} revoke (owner)

A request the caller may not even read is answered 404, with the same body
as for a board that does not exist.
"""

import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from notedly.database import get_db_session
from notedly.models.user import User
from notedly.routes.deps import get_current_user
from notedly.schemas.board import BoardCreate, BoardListResponse, BoardResponse, BoardUpdate
from notedly.schemas.common import ErrorResponse
from notedly.schemas.permission import (
    PermissionGrant,
    PermissionListResponse,
    PermissionResponse,
)
from notedly.services.board_service import board_service
from notedly.services.permission_service import permission_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/boards", tags=["Boards"])

_NOT_FOUND = {"description": "Board not found (or not visible to the caller)", "model": ErrorResponse}


@router.get("", response_model=BoardListResponse, summary="List the caller's boards")
async def list_boards(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> BoardListResponse:
    boards = await board_service.list_boards(db, user)
    return BoardListResponse(
        boards=[BoardResponse.model_validate(b) for b in boards],
        total_count=len(boards),
    )


@router.post(
    "",
    response_model=BoardResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Blank title or unknown visibility", "model": ErrorResponse},
        409: {"description": "Board with this title already exists", "model": ErrorResponse},
    },
    summary="Create a board",
)
async def create_board(
    payload: BoardCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> BoardResponse:
    board = await board_service.create_board(db, user, payload.title, payload.visibility)
    return BoardResponse.model_validate(board)


@router.get(
    "/{board_id}",
    response_model=BoardResponse,
    responses={404: _NOT_FOUND},
    summary="Get a board by ID",
)
async def get_board(
    board_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> BoardResponse:
    board = await board_service.get_board(db, board_id, user)
    return BoardResponse.model_validate(board)


@router.patch(
    "/{board_id}",
    response_model=BoardResponse,
    responses={403: {"description": "Not the owner", "model": ErrorResponse}, 404: _NOT_FOUND},
    summary="Rename a board or change its visibility",
)
async def update_board(
    board_id: str,
    changes: BoardUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> BoardResponse:
    board = await board_service.update_board(db, board_id, user, changes)
    return BoardResponse.model_validate(board)


@router.delete(
    "/{board_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={403: {"description": "Not the owner", "model": ErrorResponse}, 404: _NOT_FOUND},
    summary="Delete a board with its notes and grants",
)
async def delete_board(
    board_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await board_service.delete_board(db, board_id, user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Permissions ───────────────────────────────────────────────────────────
@router.get(
    "/{board_id}/permissions",
    response_model=PermissionListResponse,
    responses={403: {"description": "Not the owner", "model": ErrorResponse}, 404: _NOT_FOUND},
    summary="List explicit grants on a board",
)
async def list_permissions(
    board_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> PermissionListResponse:
    grants = await permission_service.list_grants(db, board_id, user)
    return PermissionListResponse(
        permissions=[PermissionResponse.model_validate(g) for g in grants],
    )


@router.put(
    "/{board_id}/permissions",
    response_model=PermissionResponse,
    responses={
        400: {"description": "Grantee is the owner", "model": ErrorResponse},
        403: {"description": "Not the owner", "model": ErrorResponse},
        404: _NOT_FOUND,
    },
    summary="Grant or replace a user's access to a board",
)
async def grant_permission(
    board_id: str,
    payload: PermissionGrant,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> PermissionResponse:
    permission = await permission_service.grant(
        db, board_id, user, payload.user_id, payload.read, payload.write,
    )
    return PermissionResponse.model_validate(permission)


@router.delete(
    "/{board_id}/permissions/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={403: {"description": "Not the owner", "model": ErrorResponse}, 404: _NOT_FOUND},
    summary="Revoke a user's grant",
)
async def revoke_permission(
    board_id: str,
    user_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await permission_service.revoke(db, board_id, user, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
