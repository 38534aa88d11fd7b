"""
Notedly Backend — HTTP Route Tests
====================================

What we test:
    ✅ Bearer authentication (401 without or with an unknown token)
    ✅ Board create / read / update / delete status codes
    ✅ Concealed denials are indistinguishable from a missing board
    ✅ Grants via PUT /permissions unlock note creation for the grantee
    ✅ Notes: listing headers, caching headers, author-only edits
    ✅ /api/users/me/notes and /api/users/me/assignments/{board_id}
    ✅ /health and X-Request-ID
"""

import pytest
import pytest_asyncio

from notedly.services.identity_service import IdentityService
from notedly.config import settings


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def without_request_id(body: dict) -> dict:
    return {k: v for k, v in body.items() if k != "request_id"}


@pytest_asyncio.fixture
async def users(session_factory):
    """Register alice and bob in committed rows, so every request sees them."""
    identities = IdentityService(settings)
    async with session_factory() as session:
        alice = await identities.resolve(session, "github", "1001", "alice@example.com", access_token="tok-alice")
        bob = await identities.resolve(session, "github", "1002", "bob@example.com", access_token="tok-bob")
        await session.commit()
    return {"alice": alice, "bob": bob}


async def create_board(client, token="tok-alice", title="Roadmap", visibility="private") -> dict:
    response = await client.post(
        "/api/boards",
        json={"title": title, "visibility": visibility},
        headers=bearer(token),
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestAuthentication:

    @pytest.mark.asyncio
    async def test_missing_token(self, test_client, users):
        response = await test_client.get("/api/user")
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"
        assert response.json()["error"] == "unauthorized"

    @pytest.mark.asyncio
    async def test_unknown_token(self, test_client, users):
        response = await test_client.get("/api/user", headers=bearer("stolen"))
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_malformed_header(self, test_client, users):
        response = await test_client.get("/api/user", headers={"Authorization": "Basic tok-alice"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_current_user(self, test_client, users):
        response = await test_client.get("/api/user", headers=bearer("tok-alice"))
        assert response.status_code == 200
        body = response.json()
        assert body["email"] == "alice@example.com"
        assert body["provider"] == "github"
        assert "token_hash" not in body
        assert "provider_id" not in body


class TestBoardRoutes:

    @pytest.mark.asyncio
    async def test_create_and_read(self, test_client, users):
        board = await create_board(test_client)
        assert len(board["id"]) == 64
        assert board["visibility"] == "private"
        assert board["owner_id"] == users["alice"].id

        response = await test_client.get(f"/api/boards/{board['id']}", headers=bearer("tok-alice"))
        assert response.status_code == 200
        assert response.json()["title"] == "Roadmap"

    @pytest.mark.asyncio
    async def test_duplicate_title_conflicts(self, test_client, users):
        await create_board(test_client)
        response = await test_client.post(
            "/api/boards", json={"title": "Roadmap"}, headers=bearer("tok-alice"),
        )
        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

    @pytest.mark.asyncio
    async def test_blank_title_rejected(self, test_client, users):
        response = await test_client.post(
            "/api/boards", json={"title": "   "}, headers=bearer("tok-alice"),
        )
        assert response.status_code == 400
        assert response.json()["details"] == {"field": "title"}

    @pytest.mark.asyncio
    async def test_unknown_visibility_rejected(self, test_client, users):
        response = await test_client.post(
            "/api/boards", json={"title": "X", "visibility": "public"}, headers=bearer("tok-alice"),
        )
        assert response.status_code == 400
        assert response.json()["details"] == {"field": "visibility"}

    @pytest.mark.asyncio
    async def test_concealed_denial_matches_missing_board(self, test_client, users):
        board = await create_board(test_client, visibility="private")

        concealed = await test_client.get(f"/api/boards/{board['id']}", headers=bearer("tok-bob"))

        deleted = await test_client.delete(f"/api/boards/{board['id']}", headers=bearer("tok-alice"))
        assert deleted.status_code == 204

        missing = await test_client.get(f"/api/boards/{board['id']}", headers=bearer("tok-bob"))

        assert concealed.status_code == missing.status_code == 404
        assert without_request_id(concealed.json()) == without_request_id(missing.json())

    @pytest.mark.asyncio
    async def test_non_owner_update_on_readable_board_is_forbidden(self, test_client, users):
        board = await create_board(test_client, visibility="permissive")
        response = await test_client.patch(
            f"/api/boards/{board['id']}", json={"title": "Mine now"}, headers=bearer("tok-bob"),
        )
        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"

    @pytest.mark.asyncio
    async def test_rename_keeps_identifier(self, test_client, users):
        board = await create_board(test_client)
        response = await test_client.patch(
            f"/api/boards/{board['id']}",
            json={"title": "Roadmap 2027", "visibility": "unlisted"},
            headers=bearer("tok-alice"),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["id"] == board["id"]
        assert body["title"] == "Roadmap 2027"
        assert body["visibility"] == "unlisted"

    @pytest.mark.asyncio
    async def test_listing_includes_granted_boards(self, test_client, users):
        board = await create_board(test_client)
        await create_board(test_client, title="Secret")
        await test_client.put(
            f"/api/boards/{board['id']}/permissions",
            json={"user_id": users["bob"].id, "read": True},
            headers=bearer("tok-alice"),
        )

        response = await test_client.get("/api/boards", headers=bearer("tok-bob"))
        assert response.status_code == 200
        body = response.json()
        assert body["total_count"] == 1
        assert body["boards"][0]["id"] == board["id"]

    @pytest.mark.asyncio
    async def test_rename_onto_taken_title_conflicts(self, test_client, users):
        await create_board(test_client, title="Alpha")
        beta = await create_board(test_client, title="Beta")
        response = await test_client.patch(
            f"/api/boards/{beta['id']}", json={"title": "Alpha"}, headers=bearer("tok-alice"),
        )
        assert response.status_code == 409
        assert response.json()["error"] == "conflict"


class TestPermissionRoutes:

    @pytest.mark.asyncio
    async def test_grant_enables_note_creation(self, test_client, users):
        board = await create_board(test_client)
        bob_id = users["bob"].id

        before = await test_client.post(
            f"/api/boards/{board['id']}/notes", json={"title": "Hi"}, headers=bearer("tok-bob"),
        )
        assert before.status_code == 404

        granted = await test_client.put(
            f"/api/boards/{board['id']}/permissions",
            json={"user_id": bob_id, "read": False, "write": True},
            headers=bearer("tok-alice"),
        )
        assert granted.status_code == 200
        assert granted.json() == {"board_id": board["id"], "user_id": bob_id, "read": False, "write": True}

        after = await test_client.post(
            f"/api/boards/{board['id']}/notes", json={"title": "Hi", "body": "from bob"}, headers=bearer("tok-bob"),
        )
        assert after.status_code == 201
        assert after.json()["author_id"] == bob_id

        assignments = await test_client.get("/api/users/me/assignments", headers=bearer("tok-bob"))
        assert [p["board_id"] for p in assignments.json()["permissions"]] == [board["id"]]

    @pytest.mark.asyncio
    async def test_granting_owner_rejected(self, test_client, users):
        board = await create_board(test_client)
        response = await test_client.put(
            f"/api/boards/{board['id']}/permissions",
            json={"user_id": users["alice"].id, "write": True},
            headers=bearer("tok-alice"),
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_revoke(self, test_client, users):
        board = await create_board(test_client)
        bob_id = users["bob"].id
        await test_client.put(
            f"/api/boards/{board['id']}/permissions",
            json={"user_id": bob_id, "read": True},
            headers=bearer("tok-alice"),
        )

        response = await test_client.delete(
            f"/api/boards/{board['id']}/permissions/{bob_id}", headers=bearer("tok-alice"),
        )
        assert response.status_code == 204

        listed = await test_client.get(f"/api/boards/{board['id']}/permissions", headers=bearer("tok-alice"))
        assert listed.json()["permissions"] == []

        read = await test_client.get(f"/api/boards/{board['id']}", headers=bearer("tok-bob"))
        assert read.status_code == 404


    @pytest.mark.asyncio
    async def test_single_assignment(self, test_client, users):
        board = await create_board(test_client)
        missing = await test_client.get(f"/api/users/me/assignments/{board['id']}", headers=bearer("tok-bob"))
        assert missing.status_code == 404

        await test_client.put(
            f"/api/boards/{board['id']}/permissions",
            json={"user_id": users["bob"].id, "read": True},
            headers=bearer("tok-alice"),
        )
        found = await test_client.get(f"/api/users/me/assignments/{board['id']}", headers=bearer("tok-bob"))
        assert found.status_code == 200
        assert found.json() == {"board_id": board["id"], "user_id": users["bob"].id, "read": True, "write": False}


class TestNoteRoutes:

    @pytest.mark.asyncio
    async def test_note_lifecycle(self, test_client, users):
        board = await create_board(test_client)
        created = await test_client.post(
            f"/api/boards/{board['id']}/notes",
            json={"title": "Q1", "body": "x" * 300},
            headers=bearer("tok-alice"),
        )
        assert created.status_code == 201
        note = created.json()
        assert len(note["id"]) == 64

        listed = await test_client.get(f"/api/boards/{board['id']}/notes", headers=bearer("tok-alice"))
        assert listed.status_code == 200
        assert listed.headers["x-total-count"] == "1"
        assert len(listed.json()["notes"][0]["body_preview"]) == 200

        fetched = await test_client.get(f"/api/notes/{note['id']}", headers=bearer("tok-alice"))
        assert fetched.status_code == 200
        assert fetched.headers["cache-control"] == "private, no-cache"
        assert fetched.json()["body"] == "x" * 300

        edited = await test_client.patch(
            f"/api/notes/{note['id']}", json={"body": "short"}, headers=bearer("tok-alice"),
        )
        assert edited.status_code == 200
        assert edited.json()["id"] == note["id"]
        assert edited.json()["body"] == "short"

        deleted = await test_client.delete(f"/api/notes/{note['id']}", headers=bearer("tok-alice"))
        assert deleted.status_code == 204

        gone = await test_client.get(f"/api/notes/{note['id']}", headers=bearer("tok-alice"))
        assert gone.status_code == 404

    @pytest.mark.asyncio
    async def test_reader_cannot_edit(self, test_client, users):
        board = await create_board(test_client, visibility="permissive")
        note = (await test_client.post(
            f"/api/boards/{board['id']}/notes", json={"title": "Q1"}, headers=bearer("tok-alice"),
        )).json()

        read = await test_client.get(f"/api/notes/{note['id']}", headers=bearer("tok-bob"))
        assert read.status_code == 200

        edit = await test_client.patch(
            f"/api/notes/{note['id']}", json={"body": "defaced"}, headers=bearer("tok-bob"),
        )
        assert edit.status_code == 403


    @pytest.mark.asyncio
    async def test_my_notes(self, test_client, users):
        board = await create_board(test_client, visibility="permissive")
        note = (await test_client.post(
            f"/api/boards/{board['id']}/notes", json={"title": "Q1"}, headers=bearer("tok-alice"),
        )).json()

        mine = await test_client.get("/api/users/me/notes", headers=bearer("tok-alice"))
        assert mine.status_code == 200
        assert mine.json()["total_count"] == 1
        assert mine.json()["notes"][0]["id"] == note["id"]
        assert mine.json()["notes"][0]["board_id"] == board["id"]

        theirs = await test_client.get("/api/users/me/notes", headers=bearer("tok-bob"))
        assert theirs.json() == {"notes": [], "total_count": 0}


class TestOperationalRoutes:

    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"

    @pytest.mark.asyncio
    async def test_request_id_generated(self, test_client):
        response = await test_client.get("/health")
        assert response.headers["x-request-id"]

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, test_client):
        response = await test_client.get("/health", headers={"X-Request-ID": "trace-abc123"})
        assert response.headers["x-request-id"] == "trace-abc123"

    @pytest.mark.asyncio
    async def test_error_body_carries_request_id(self, test_client, users):
        response = await test_client.get(
            "/api/boards/" + "0" * 64,
            headers={**bearer("tok-alice"), "X-Request-ID": "trace-404"},
        )
        assert response.status_code == 404
        assert response.json()["request_id"] == "trace-404"
