"""
Notedly Backend — Legacy Dump Schemas
=======================================

What:  Pydantic models for JSON dumps of the three earlier storage schemas.
Who:   Parsed by notedly.services.legacy_import; produced by dumping the old
       tables one JSON array per table.

Dump layout:
    {
        "revision": 1 | 2 | 3,
        "users": [...],
        "boards": [...],
        "notes": [...],
        "permissions": [...]      # revision 2 only
    }

Revision 1: users keyed by OAuth id; boards carry an embedded JSON
            permission blob; notes are not bound to a board.
Revision 2: normalized tables; notes bound to boards; one permission row
            per (user, board).
Revision 3: users keyed by email; boards and notes reference users by
            email; permission blob again embedded; notes not bound.

Visibility is the legacy SMALLINT: 0 private, 1 unlisted, 2 permissive.
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

# Embedded permission blob: {"alice@example.com": "Write", ...}, where the
# value is "Admin", "Read", "Write" or {"read": bool, "write": bool}
PermissionBlob = Dict[str, Any]


class _LegacyRow(BaseModel):
    model_config = {"extra": "ignore"}


# ── Revision 1 ────────────────────────────────────────────────────────────
class Rev1User(_LegacyRow):
    id: int
    oauth_id: Union[int, str]
    oauth_token: str = ""
    email: str


class Rev1Board(_LegacyRow):
    id: Union[int, str]
    user_id: int
    title: str
    visibility: int = 0
    permissions: Optional[PermissionBlob] = None


class Rev1Note(_LegacyRow):
    id: Union[int, str]
    user_id: int
    title: str
    body: str = ""


class Rev1Dump(_LegacyRow):
    revision: Literal[1]
    users: List[Rev1User] = Field(default_factory=list)
    boards: List[Rev1Board] = Field(default_factory=list)
    notes: List[Rev1Note] = Field(default_factory=list)


# ── Revision 2 ────────────────────────────────────────────────────────────
class Rev2User(_LegacyRow):
    id: int
    oauth_id: Union[int, str]
    oauth_token: str = ""
    email: str


class Rev2Board(_LegacyRow):
    id: int
    user_id: int
    title: str
    visibility: int = 0


class Rev2Note(_LegacyRow):
    id: int
    user_id: int
    board_id: int
    title: str
    body: str = ""


class Rev2Permission(_LegacyRow):
    id: Optional[int] = None
    user_id: int
    board_id: int
    read: bool = False
    write: bool = False


class Rev2Dump(_LegacyRow):
    revision: Literal[2]
    users: List[Rev2User] = Field(default_factory=list)
    boards: List[Rev2Board] = Field(default_factory=list)
    notes: List[Rev2Note] = Field(default_factory=list)
    permissions: List[Rev2Permission] = Field(default_factory=list)


# ── Revision 3 ────────────────────────────────────────────────────────────
class Rev3User(_LegacyRow):
    email: str
    id: str = Field(default="", description="SHA3-256 hex of the access token")


class Rev3Board(_LegacyRow):
    id: str
    owner: str
    title: str
    visibility: int = 0
    permissions: Optional[PermissionBlob] = None


class Rev3Note(_LegacyRow):
    id: str
    author: str
    title: str
    body: str = ""


class Rev3Dump(_LegacyRow):
    revision: Literal[3]
    users: List[Rev3User] = Field(default_factory=list)
    boards: List[Rev3Board] = Field(default_factory=list)
    notes: List[Rev3Note] = Field(default_factory=list)


LegacyDump = Union[Rev1Dump, Rev2Dump, Rev3Dump]


class ImportReport(BaseModel):
    """Outcome of one import run. Skipped rows are listed, never silently dropped."""
    revision: int
    users: int = 0
    boards: int = 0
    notes: int = 0
    permissions: int = 0
    skipped: List[str] = Field(default_factory=list)
