"""
Notedly Backend — Note Store Tests
====================================

What we test:
    ✅ Create: write access, title validation, collisions, missing board
    ✅ Get/list: read access through tiers and grants, concealment as note
    ✅ Update/delete: author or board owner only
    ✅ Revocation stops an author editing their own notes
    ✅ Titles: unique per author on a board, on create and rename
    ✅ Authored notes listing, limited to boards still readable
    ✅ The alice/bob sharing scenario end to end
"""

import pytest

from notedly.exceptions import (
    AccessDeniedError,
    IdentifierConflictError,
    NotFoundError,
    ValidationError,
)
from notedly.schemas.note import NoteUpdate
from notedly.services.identifiers import note_identifier


class TestCreateNote:

    @pytest.mark.asyncio
    async def test_owner_creates_note(self, db, board_service, note_service, alice):
        board = await board_service.create_board(db, alice, "Groceries")
        note = await note_service.create_note(db, alice, board.id, " Milk ", "2 litres")
        assert note.id == note_identifier("test-secret", board.id, alice.id, "Milk")
        assert (note.board_id, note.author_id, note.title, note.body) == (board.id, alice.id, "Milk", "2 litres")

    @pytest.mark.asyncio
    async def test_blank_title_rejected(self, db, board_service, note_service, alice):
        board = await board_service.create_board(db, alice, "Groceries")
        with pytest.raises(ValidationError):
            await note_service.create_note(db, alice, board.id, "  ", "body")

    @pytest.mark.asyncio
    async def test_missing_board(self, db, note_service, alice):
        with pytest.raises(NotFoundError) as exc_info:
            await note_service.create_note(db, alice, "0" * 64, "Milk", "")
        assert exc_info.value.resource == "board"

    @pytest.mark.asyncio
    async def test_duplicate_title_conflicts(self, db, board_service, note_service, alice):
        board = await board_service.create_board(db, alice, "Groceries")
        await note_service.create_note(db, alice, board.id, "Milk", "")
        with pytest.raises(IdentifierConflictError):
            await note_service.create_note(db, alice, board.id, "Milk", "again")

    @pytest.mark.asyncio
    async def test_same_title_by_different_authors(self, db, board_service, permission_service, note_service, alice, bob):
        board = await board_service.create_board(db, alice, "Groceries")
        await permission_service.grant(db, board.id, alice, bob.id, read=True, write=True)
        a = await note_service.create_note(db, alice, board.id, "Milk", "")
        b = await note_service.create_note(db, bob, board.id, "Milk", "")
        assert a.id != b.id

    @pytest.mark.asyncio
    async def test_permissive_board_is_not_writable(self, db, board_service, note_service, alice, bob):
        board = await board_service.create_board(db, alice, "Open", "permissive")
        with pytest.raises(AccessDeniedError) as exc_info:
            await note_service.create_note(db, bob, board.id, "Hi", "")
        assert exc_info.value.conceal is False

    @pytest.mark.asyncio
    async def test_private_board_write_is_concealed(self, db, board_service, note_service, alice, bob):
        board = await board_service.create_board(db, alice, "Diary")
        with pytest.raises(AccessDeniedError) as exc_info:
            await note_service.create_note(db, bob, board.id, "Hi", "")
        assert exc_info.value.conceal is True

    @pytest.mark.asyncio
    async def test_read_grant_is_not_enough_to_write(self, db, board_service, permission_service, note_service, alice, bob):
        board = await board_service.create_board(db, alice, "Team")
        await permission_service.grant(db, board.id, alice, bob.id, read=True, write=False)
        with pytest.raises(AccessDeniedError):
            await note_service.create_note(db, bob, board.id, "Hi", "")


class TestReadNotes:

    @pytest.mark.asyncio
    async def test_unlisted_note_readable_by_identifier(self, db, board_service, note_service, alice, bob):
        board = await board_service.create_board(db, alice, "Link", "unlisted")
        note = await note_service.create_note(db, alice, board.id, "Hello", "world")
        assert (await note_service.get_note(db, note.id, bob)).body == "world"

    @pytest.mark.asyncio
    async def test_private_note_concealed_as_note(self, db, board_service, note_service, alice, bob):
        board = await board_service.create_board(db, alice, "Diary")
        note = await note_service.create_note(db, alice, board.id, "Secret", "")
        with pytest.raises(AccessDeniedError) as exc_info:
            await note_service.get_note(db, note.id, bob)
        assert exc_info.value.conceal is True
        assert exc_info.value.message == NotFoundError(resource="note", resource_id=note.id).message

    @pytest.mark.asyncio
    async def test_missing_note(self, db, note_service, alice):
        with pytest.raises(NotFoundError):
            await note_service.get_note(db, "f" * 64, alice)

    @pytest.mark.asyncio
    async def test_list_board_notes(self, db, board_service, note_service, alice, bob):
        board = await board_service.create_board(db, alice, "Open", "permissive")
        first = await note_service.create_note(db, alice, board.id, "First", "")
        second = await note_service.create_note(db, alice, board.id, "Second", "")
        notes = await note_service.list_board_notes(db, board.id, bob)
        assert {n.id for n in notes} == {first.id, second.id}

    @pytest.mark.asyncio
    async def test_list_private_board_concealed(self, db, board_service, note_service, alice, bob):
        board = await board_service.create_board(db, alice, "Diary")
        with pytest.raises(AccessDeniedError) as exc_info:
            await note_service.list_board_notes(db, board.id, bob)
        assert exc_info.value.conceal is True


class TestEditNotes:

    @pytest.mark.asyncio
    async def test_author_edits_own_note(self, db, board_service, permission_service, note_service, alice, bob):
        board = await board_service.create_board(db, alice, "Team")
        await permission_service.grant(db, board.id, alice, bob.id, read=True, write=True)
        note = await note_service.create_note(db, bob, board.id, "Bob's", "v1")

        updated = await note_service.update_note(db, note.id, bob, NoteUpdate(title="Bob's note", body="v2"))
        assert updated.id == note.id
        assert (updated.title, updated.body) == ("Bob's note", "v2")

    @pytest.mark.asyncio
    async def test_board_owner_edits_any_note(self, db, board_service, permission_service, note_service, alice, bob):
        board = await board_service.create_board(db, alice, "Team")
        await permission_service.grant(db, board.id, alice, bob.id, read=True, write=True)
        note = await note_service.create_note(db, bob, board.id, "Bob's", "v1")

        updated = await note_service.update_note(db, note.id, alice, NoteUpdate(body="moderated"))
        assert updated.body == "moderated"
        await note_service.delete_note(db, note.id, alice)
        with pytest.raises(NotFoundError):
            await note_service.get_note(db, note.id, alice)

    @pytest.mark.asyncio
    async def test_other_writer_cannot_edit(self, db, board_service, permission_service, note_service, alice, bob, carol):
        board = await board_service.create_board(db, alice, "Team")
        await permission_service.grant(db, board.id, alice, bob.id, read=True, write=True)
        await permission_service.grant(db, board.id, alice, carol.id, read=True, write=True)
        note = await note_service.create_note(db, bob, board.id, "Bob's", "v1")

        with pytest.raises(AccessDeniedError) as exc_info:
            await note_service.update_note(db, note.id, carol, NoteUpdate(body="hijack"))
        assert exc_info.value.conceal is False
        with pytest.raises(AccessDeniedError):
            await note_service.delete_note(db, note.id, carol)

    @pytest.mark.asyncio
    async def test_revocation_blocks_author_edits(self, db, board_service, permission_service, note_service, alice, bob):
        board = await board_service.create_board(db, alice, "Team")
        await permission_service.grant(db, board.id, alice, bob.id, read=True, write=True)
        note = await note_service.create_note(db, bob, board.id, "Bob's", "v1")

        await permission_service.revoke(db, board.id, alice, bob.id)

        with pytest.raises(AccessDeniedError) as exc_info:
            await note_service.update_note(db, note.id, bob, NoteUpdate(body="v2"))
        assert exc_info.value.conceal is True
        with pytest.raises(AccessDeniedError):
            await note_service.delete_note(db, note.id, bob)
        # The owner is unaffected
        assert (await note_service.update_note(db, note.id, alice, NoteUpdate(body="kept"))).body == "kept"


class TestNoteTitles:

    @pytest.mark.asyncio
    async def test_rename_onto_taken_title_conflicts(self, db, board_service, note_service, alice):
        board = await board_service.create_board(db, alice, "Groceries")
        await note_service.create_note(db, alice, board.id, "Milk")
        eggs = await note_service.create_note(db, alice, board.id, "Eggs")

        with pytest.raises(IdentifierConflictError):
            await note_service.update_note(db, eggs.id, alice, NoteUpdate(title="Milk"))
        assert eggs.title == "Eggs"

    @pytest.mark.asyncio
    async def test_owner_rename_checks_the_authors_titles(
        self, db, board_service, permission_service, note_service, alice, bob,
    ):
        board = await board_service.create_board(db, alice, "Team")
        await permission_service.grant(db, board.id, alice, bob.id, read=True, write=True)
        await note_service.create_note(db, alice, board.id, "Agenda")
        await note_service.create_note(db, bob, board.id, "Minutes")
        draft = await note_service.create_note(db, bob, board.id, "Draft")

        # Alice's own "Agenda" does not block a title on Bob's note
        renamed = await note_service.update_note(db, draft.id, alice, NoteUpdate(title="Agenda"))
        assert renamed.title == "Agenda"
        with pytest.raises(IdentifierConflictError):
            await note_service.update_note(db, draft.id, alice, NoteUpdate(title="Minutes"))

    @pytest.mark.asyncio
    async def test_old_title_is_free_after_rename(self, db, board_service, note_service, alice):
        board = await board_service.create_board(db, alice, "Groceries")
        first = await note_service.create_note(db, alice, board.id, "Milk")
        await note_service.update_note(db, first.id, alice, NoteUpdate(title="Oat milk"))

        second = await note_service.create_note(db, alice, board.id, "Milk")
        assert second.id == note_identifier("test-secret", board.id, alice.id, "Milk", 1)
        assert second.id != first.id


class TestAuthoredNotes:

    @pytest.mark.asyncio
    async def test_lists_own_notes_across_boards(
        self, db, board_service, permission_service, note_service, alice, bob,
    ):
        mine = await board_service.create_board(db, bob, "Mine")
        team = await board_service.create_board(db, alice, "Team")
        await permission_service.grant(db, team.id, alice, bob.id, read=True, write=True)

        own = await note_service.create_note(db, bob, mine.id, "Private thought")
        shared = await note_service.create_note(db, bob, team.id, "Agenda")
        await note_service.create_note(db, alice, team.id, "Not bob's")

        notes = await note_service.list_for_author(db, bob)
        assert {n.id for n in notes} == {own.id, shared.id}

    @pytest.mark.asyncio
    async def test_revoked_boards_are_left_out(
        self, db, board_service, permission_service, note_service, alice, bob,
    ):
        team = await board_service.create_board(db, alice, "Team")
        await permission_service.grant(db, team.id, alice, bob.id, read=True, write=True)
        await note_service.create_note(db, bob, team.id, "Agenda")

        await permission_service.revoke(db, team.id, alice, bob.id)

        assert await note_service.list_for_author(db, bob) == []

    @pytest.mark.asyncio
    async def test_nothing_written(self, db, note_service, alice):
        assert await note_service.list_for_author(db, alice) == []


class TestSharingScenario:

    @pytest.mark.asyncio
    async def test_alice_shares_with_bob(self, db, board_service, permission_service, note_service, alice, bob):
        """
        1. alice creates a private board; bob cannot see it
        2. alice grants bob write; bob posts a note
        3. alice revokes; bob can neither read the board nor edit his note
        4. alice still reads bob's note
        """
        board = await board_service.create_board(db, alice, "Plans", "private")
        with pytest.raises(AccessDeniedError) as exc_info:
            await board_service.get_board(db, board.id, bob)
        assert exc_info.value.conceal is True

        await permission_service.grant(db, board.id, alice, bob.id, read=False, write=True)
        assert (await board_service.get_board(db, board.id, bob)).id == board.id
        note = await note_service.create_note(db, bob, board.id, "Idea", "picnic")

        await permission_service.revoke(db, board.id, alice, bob.id)
        with pytest.raises(AccessDeniedError):
            await board_service.get_board(db, board.id, bob)
        with pytest.raises(AccessDeniedError):
            await note_service.get_note(db, note.id, bob)
        with pytest.raises(AccessDeniedError):
            await note_service.update_note(db, note.id, bob, NoteUpdate(body="beach"))

        assert (await note_service.get_note(db, note.id, alice)).body == "picnic"
