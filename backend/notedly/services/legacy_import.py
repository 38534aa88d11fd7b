"""
Notedly Backend — Legacy Data Import
======================================

What:  Loads JSON dumps of the three earlier storage schemas into the
       current normalized schema.
How:   Each dump is validated by the pydantic models in
       notedly.schemas.legacy, then replayed through the Identity Registry,
       Board Store and Permission Table, so imported data obeys the same
       rules as data created through the API. New content-derived
       identifiers are computed; legacy ids are only used to link rows.
Who:   `notedly import-legacy <dump.json>`, inside run_in_transaction().

Per-revision handling:
    ┌─────┬───────────────────────────────────────────────────────────────┐
    │ 1   │ users by OAuth id; permission blob per board; notes unbound   │
    │ 2   │ normalized rows; notes bound to boards; permission rows       │
    │ 3   │ users by email; permission blob per board; notes unbound      │
    └─────┴───────────────────────────────────────────────────────────────┘

Notes without a board (revisions 1 and 3) are placed on a private
"Imported notes" board owned by their author.

Permission blob values: "Admin" → read+write, "Read" → read,
"Write" → write, or an explicit {"read": bool, "write": bool}.

Rows that cannot be imported (unknown user, blank title, duplicate
identifier, unknown visibility code) are skipped and listed in the report.
The run only fails as a whole on a malformed dump or a storage error.
"""

import enum
import logging
from typing import Any, Dict, Iterable, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from notedly.config import Settings, settings
from notedly.database import storage_errors
from notedly.exceptions import IdentifierConflictError, IdentityConflictError, ValidationError
from notedly.models.board import Board, Visibility
from notedly.models.note import Note
from notedly.models.user import User
from notedly.schemas.legacy import (
    ImportReport,
    LegacyDump,
    Rev1Dump,
    Rev2Dump,
    Rev3Dump,
)
from notedly.services.board_service import BoardService, clean_title, find_board_by_title
from notedly.services.identifiers import is_identifier
from notedly.services.identity_service import IdentityService, normalize_email
from notedly.services.note_service import allocate_note_identifier, find_note_by_title
from notedly.services.permission_service import PermissionService

logger = logging.getLogger(__name__)

IMPORTED_NOTES_TITLE = "Imported notes"

VISIBILITY_CODES = {
    0: Visibility.PRIVATE,
    1: Visibility.UNLISTED,
    2: Visibility.PERMISSIVE,
}


class SchemaRevision(enum.IntEnum):
    REV1 = 1
    REV2 = 2
    REV3 = 3


_DUMP_MODELS = {
    SchemaRevision.REV1: Rev1Dump,
    SchemaRevision.REV2: Rev2Dump,
    SchemaRevision.REV3: Rev3Dump,
}


def parse_dump(data: Dict[str, Any]) -> LegacyDump:
    """
    Validate a decoded JSON dump against the model for its revision tag.

    Raises:
        ValidationError: Missing or unknown revision, or malformed rows
    """
    try:
        revision = SchemaRevision(data.get("revision"))
    except ValueError:
        raise ValidationError(
            message=f"Unknown schema revision {data.get('revision')!r}. Expected 1, 2 or 3",
            field="revision",
        )
    try:
        return _DUMP_MODELS[revision].model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(
            message=f"Malformed revision {int(revision)} dump",
            context={"errors": e.errors(include_url=False)},
        ) from e


def parse_permission(value: Any) -> Optional[Tuple[bool, bool]]:
    """(read, write) for one permission blob value, or None if unrecognized."""
    if isinstance(value, str):
        return {
            "admin": (True, True),
            "read": (True, False),
            "write": (False, True),
        }.get(value.strip().lower())
    if isinstance(value, dict):
        return bool(value.get("read", False)), bool(value.get("write", False))
    return None


class LegacyImporter:
    """
    Replays one legacy dump into the current schema.

    An importer instance holds the legacy-id → new-row maps for a single run;
    create a new one per transaction attempt.
    """

    def __init__(self, config: Settings, provider: str = "github"):
        self.config = config
        self.provider = provider
        self.identities = IdentityService(config)
        self.boards = BoardService(config)
        self.permissions = PermissionService()

        self._users: Dict[Any, User] = {}
        self._by_email: Dict[str, User] = {}
        self._boards: Dict[Any, Board] = {}
        self._inboxes: Dict[int, Board] = {}
        self.report: Optional[ImportReport] = None

    async def run(self, db: AsyncSession, dump: LegacyDump) -> ImportReport:
        self.report = ImportReport(revision=dump.revision)

        if isinstance(dump, Rev3Dump):
            await self._import_rev3(db, dump)
        elif isinstance(dump, Rev2Dump):
            await self._import_rev2(db, dump)
        else:
            await self._import_rev1(db, dump)

        logger.info(
            "Imported revision %d dump: %d users, %d boards, %d notes, %d grants, %d skipped",
            dump.revision, self.report.users, self.report.boards, self.report.notes,
            self.report.permissions, len(self.report.skipped),
        )
        return self.report

    # ── Revisions ─────────────────────────────────────────────────────────
    async def _import_rev1(self, db: AsyncSession, dump: Rev1Dump) -> None:
        for row in dump.users:
            await self._import_user(db, row.id, str(row.oauth_id), row.email, row.oauth_token)
        for row in dump.boards:
            owner = self._users.get(row.user_id)
            board = await self._import_board(db, row.id, owner, row.title, row.visibility)
            if board is not None and row.permissions:
                await self._import_blob(db, board, owner, row.permissions)
        for row in dump.notes:
            author = self._users.get(row.user_id)
            await self._import_unbound_note(db, row.id, author, row.title, row.body)

    async def _import_rev2(self, db: AsyncSession, dump: Rev2Dump) -> None:
        for row in dump.users:
            await self._import_user(db, row.id, str(row.oauth_id), row.email, row.oauth_token)
        for row in dump.boards:
            await self._import_board(db, row.id, self._users.get(row.user_id), row.title, row.visibility)
        for row in dump.permissions:
            board = self._boards.get(row.board_id)
            grantee = self._users.get(row.user_id)
            if board is None or grantee is None:
                self._skip(f"permission for user {row.user_id} on board {row.board_id}: board or user not imported")
                continue
            await self._import_grants(db, board, [(grantee, row.read, row.write)])
        for row in dump.notes:
            author = self._users.get(row.user_id)
            board = self._boards.get(row.board_id)
            if board is None:
                self._skip(f"note {row.id}: board {row.board_id} not imported")
                continue
            await self._import_note(db, row.id, author, board, row.title, row.body)

    async def _import_rev3(self, db: AsyncSession, dump: Rev3Dump) -> None:
        for row in dump.users:
            email = normalize_email(row.email)
            await self._import_user(db, email, email, email, row.id)
        for row in dump.boards:
            owner = self._by_email.get(normalize_email(row.owner))
            board = await self._import_board(db, row.id, owner, row.title, row.visibility)
            if board is not None and row.permissions:
                await self._import_blob(db, board, owner, row.permissions)
        for row in dump.notes:
            author = self._by_email.get(normalize_email(row.author))
            await self._import_unbound_note(db, row.id, author, row.title, row.body)

    # ── Rows ──────────────────────────────────────────────────────────────
    async def _import_user(
        self,
        db: AsyncSession,
        legacy_id: Any,
        provider_id: str,
        email: str,
        token_hash: str,
    ) -> None:
        try:
            user = await self.identities.resolve(db, self.provider, provider_id, email)
        except (ValidationError, IdentityConflictError) as e:
            self._skip(f"user {legacy_id}: {e.message}")
            return

        # Legacy rows already store the SHA3-256 digest, not the token
        if is_identifier(token_hash):
            user.token_hash = token_hash

        self._users[legacy_id] = user
        self._by_email[user.email] = user
        self.report.users += 1

    async def _import_board(
        self,
        db: AsyncSession,
        legacy_id: Any,
        owner: Optional[User],
        title: str,
        visibility_code: int,
    ) -> Optional[Board]:
        if owner is None:
            self._skip(f"board {legacy_id}: owner not imported")
            return None
        tier = VISIBILITY_CODES.get(visibility_code)
        if tier is None:
            self._skip(f"board {legacy_id}: unknown visibility code {visibility_code}")
            return None

        try:
            board = await self.boards.create_board(db, owner, title, tier)
        except ValidationError as e:
            self._skip(f"board {legacy_id}: {e.message}")
            return None
        except IdentifierConflictError as e:
            # Same owner and title as a board already imported; its notes join that board
            async with storage_errors("import board"):
                board = await find_board_by_title(db, owner.id, clean_title(title))
            if board is None:
                self._skip(f"board {legacy_id}: {e.message}")
                return None
            self._skip(f"board {legacy_id}: merged into existing board {board.id[:12]}")
        else:
            self.report.boards += 1

        self._boards[legacy_id] = board
        return board

    async def _import_blob(
        self,
        db: AsyncSession,
        board: Board,
        owner: User,
        blob: Dict[str, Any],
    ) -> None:
        entries = []
        for email, value in blob.items():
            flags = parse_permission(value)
            grantee = self._by_email.get(normalize_email(email))
            if flags is None:
                self._skip(f"permission {email!r} on board {board.id[:12]}: unrecognized value {value!r}")
            elif grantee is None:
                self._skip(f"permission {email!r} on board {board.id[:12]}: user not imported")
            else:
                entries.append((grantee, flags[0], flags[1]))
        await self._import_grants(db, board, entries)

    async def _import_grants(
        self,
        db: AsyncSession,
        board: Board,
        entries: Iterable[Tuple[User, bool, bool]],
    ) -> None:
        owner = await self.identities.get_user(db, board.owner_id)
        for grantee, read, write in entries:
            if grantee.id == board.owner_id:
                self._skip(f"permission for user {grantee.id} on board {board.id[:12]}: owner already has full access")
                continue
            if not read and not write:
                self._skip(f"permission for user {grantee.id} on board {board.id[:12]}: grants nothing")
                continue
            await self.permissions.grant(db, board.id, owner, grantee.id, read, write)
            self.report.permissions += 1

    async def _import_unbound_note(
        self,
        db: AsyncSession,
        legacy_id: Any,
        author: Optional[User],
        title: str,
        body: str,
    ) -> None:
        if author is None:
            self._skip(f"note {legacy_id}: author not imported")
            return
        board = await self._inbox(db, author)
        await self._import_note(db, legacy_id, author, board, title, body)

    async def _import_note(
        self,
        db: AsyncSession,
        legacy_id: Any,
        author: Optional[User],
        board: Board,
        title: str,
        body: str,
    ) -> None:
        # Written directly: legacy authors may lack a write grant on the
        # board they posted to, and the import must not drop their notes
        if author is None:
            self._skip(f"note {legacy_id}: author not imported")
            return
        try:
            title = clean_title(title)
        except ValidationError as e:
            self._skip(f"note {legacy_id}: {e.message}")
            return

        async with storage_errors("import note"):
            existing = await find_note_by_title(db, board.id, author.id, title)
            if existing is not None:
                self._skip(f"note {legacy_id}: duplicate of note {existing.id[:12]}")
                return
            note_id = await allocate_note_identifier(
                db, self.config.identifier_secret, board.id, author.id, title,
            )
            db.add(Note(id=note_id, board_id=board.id, author_id=author.id, title=title, body=body))
            await db.flush()
        self.report.notes += 1

    # ── Helpers ───────────────────────────────────────────────────────────
    async def _inbox(self, db: AsyncSession, author: User) -> Board:
        """The author's private "Imported notes" board, created on first use."""
        if author.id in self._inboxes:
            return self._inboxes[author.id]

        async with storage_errors("import board"):
            board = await find_board_by_title(db, author.id, IMPORTED_NOTES_TITLE)
        if board is None:
            board = await self.boards.create_board(db, author, IMPORTED_NOTES_TITLE, Visibility.PRIVATE)
            self.report.boards += 1

        self._inboxes[author.id] = board
        return board

    def _skip(self, reason: str) -> None:
        logger.warning("Import skipped %s", reason)
        self.report.skipped.append(reason)


async def import_dump(
    db: AsyncSession,
    data: Dict[str, Any],
    config: Settings = settings,
    provider: str = "github",
) -> ImportReport:
    """Parse and import one decoded dump in the caller's transaction."""
    dump = parse_dump(data)
    return await LegacyImporter(config, provider=provider).run(db, dump)
