"""
Pocket Diary Backend: HTTP API Tests
======================================

What:  End-to-end requests through the FastAPI app (middleware, validation,
       exception handlers, routes, services) on a SQLite database.
"""

from datetime import date, timedelta

import httpx
import pytest

from pocketdiary.services.chat_service import ChatService

from tests.conftest import TEST_EMAIL, TEST_NAME, TEST_PASSWORD, TEST_THEME

TOMORROW = (date.today() + timedelta(days=1)).isoformat()


async def register(client, email=TEST_EMAIL, password=TEST_PASSWORD, name=TEST_NAME, theme=TEST_THEME):
    return await client.post(
        "/api/users/register",
        json={"email": email, "password": password, "name": name, "theme": theme},
    )


async def login(client, email=TEST_EMAIL, password=TEST_PASSWORD):
    return await client.post("/api/users/login", json={"email": email, "password": password})


async def register_and_login(client):
    await register(client)
    return (await login(client)).json()["key"]


class TestDiaryScenario:

    @pytest.mark.asyncio
    async def test_register_login_add_and_list(self, test_client):
        response = await register(test_client)
        assert response.status_code == 200
        assert response.json() == {"message": "OK"}

        response = await login(test_client)
        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Ann"
        assert body["theme"] == 1
        key = body["key"]
        assert len(key) == 64

        response = await test_client.post(
            "/api/notes",
            json={"key": key, "email": TEST_EMAIL, "title": "Title", "description": "Desc", "date": TOMORROW},
        )
        assert response.status_code == 200
        assert response.json() == {"message": "OK"}

        response = await test_client.post("/api/notes/today", json={"key": key, "email": TEST_EMAIL})
        assert response.json() == {"notes": []}

        response = await test_client.post(
            "/api/notes/search", json={"key": key, "email": TEST_EMAIL, "date": TOMORROW}
        )
        assert response.status_code == 200
        assert response.headers["Cache-Control"] == "no-store"
        notes = response.json()["notes"]
        assert len(notes) == 1
        assert notes[0]["title"] == "Title"
        assert notes[0]["description"] == "Desc"
        assert notes[0]["scheduledDate"] == TOMORROW

        response = await test_client.request(
            "DELETE", f"/api/notes/{notes[0]['id']}", json={"key": key, "email": TEST_EMAIL}
        )
        assert response.json() == {"message": "OK"}
        response = await test_client.post(
            "/api/notes/search", json={"key": key, "email": TEST_EMAIL, "date": TOMORROW}
        )
        assert response.json() == {"notes": []}


class TestUserEndpoints:

    @pytest.mark.asyncio
    async def test_duplicate_registration(self, test_client):
        await register(test_client)
        response = await register(test_client, name="Other")
        assert response.status_code == 409
        assert response.json()["message"] == "Email already registered."

    @pytest.mark.asyncio
    async def test_login_failures_are_identical(self, test_client):
        await register(test_client)
        wrong_password = await login(test_client, password="nope")
        unknown_email = await login(test_client, email="nobody@x.com")
        assert wrong_password.status_code == unknown_email.status_code == 401
        assert wrong_password.json()["message"] == unknown_email.json()["message"] == "Invalid credentials"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"email": TEST_EMAIL, "password": "pw", "name": "Ann"},
            {"email": TEST_EMAIL, "password": "pw", "name": "Ann", "theme": "dark"},
            {"email": TEST_EMAIL, "password": "pw", "name": "Ann", "theme": "1"},
            {"email": TEST_EMAIL, "password": "pw", "name": "Ann", "theme": True},
            {"email": TEST_EMAIL, "password": "pw", "name": "Ann", "theme": 1.0},
            {"email": "not-an-email", "password": "pw", "name": "Ann", "theme": 1},
            {"email": TEST_EMAIL, "password": "p" * 129, "name": "Ann", "theme": 1},
            {"email": TEST_EMAIL, "password": "", "name": "Ann", "theme": 1},
        ],
    )
    async def test_register_validation(self, test_client, payload):
        response = await test_client.post("/api/users/register", json=payload)
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert "p" * 129 not in response.text

    @pytest.mark.asyncio
    async def test_availability(self, test_client):
        response = await test_client.post("/api/users/availability", json={"email": TEST_EMAIL})
        assert response.status_code == 200
        assert response.json() == {"message": "Email is available"}
        await register(test_client)
        response = await test_client.post("/api/users/availability", json={"email": TEST_EMAIL})
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_update_name_password_theme(self, test_client):
        key = await register_and_login(test_client)
        creds = {"key": key, "email": TEST_EMAIL, "password": TEST_PASSWORD}

        response = await test_client.patch("/api/users/name", json={**creds, "name": "Annie"})
        assert response.json() == {"message": "OK"}
        response = await test_client.patch("/api/users/theme", json={**creds, "theme": 4})
        assert response.json() == {"message": "OK"}
        response = await test_client.patch("/api/users/password", json={**creds, "newPassword": "pw456"})
        assert response.json() == {"message": "OK"}

        assert (await login(test_client)).status_code == 401
        body = (await login(test_client, password="pw456")).json()
        assert body == {"key": key, "name": "Annie", "theme": 4}

    @pytest.mark.asyncio
    async def test_generic_update(self, test_client):
        key = await register_and_login(test_client)
        creds = {"key": key, "email": TEST_EMAIL, "password": TEST_PASSWORD}

        response = await test_client.patch("/api/users", json=creds)
        assert response.status_code == 400

        response = await test_client.patch("/api/users", json={**creds, "name": "Anna", "theme": 2})
        assert response.json() == {"message": "OK"}
        body = (await login(test_client)).json()
        assert body["name"] == "Anna"
        assert body["theme"] == 2

    @pytest.mark.asyncio
    async def test_update_with_wrong_password(self, test_client):
        key = await register_and_login(test_client)
        response = await test_client.patch(
            "/api/users/name",
            json={"key": key, "email": TEST_EMAIL, "password": "nope", "name": "X"},
        )
        assert response.status_code == 401
        assert response.json()["message"] == "user not found"

    @pytest.mark.asyncio
    async def test_delete_user_with_wrong_key_keeps_account(self, test_client):
        key = await register_and_login(test_client)
        wrong_key = ("0" if key[0] != "0" else "1") + key[1:]
        response = await test_client.request(
            "DELETE",
            "/api/users",
            json={"key": wrong_key, "email": TEST_EMAIL, "password": TEST_PASSWORD},
        )
        assert response.status_code == 200
        assert response.json() == {"message": "no user found"}
        assert (await login(test_client)).status_code == 200

    @pytest.mark.asyncio
    async def test_delete_user_removes_notes(self, test_client):
        key = await register_and_login(test_client)
        await test_client.post(
            "/api/notes",
            json={"key": key, "email": TEST_EMAIL, "title": "T", "description": "D", "date": TOMORROW},
        )

        response = await test_client.request(
            "DELETE",
            "/api/users",
            json={"key": key, "email": TEST_EMAIL, "password": TEST_PASSWORD},
        )
        assert response.json() == {"message": "OK"}
        assert (await login(test_client)).status_code == 401

        # Same email registers again and sees none of the old notes
        new_key = await register_and_login(test_client)
        response = await test_client.post(
            "/api/notes/search", json={"key": new_key, "email": TEST_EMAIL, "date": TOMORROW}
        )
        assert response.json() == {"notes": []}


class TestNoteEndpoints:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "day",
        [
            (date.today() - timedelta(days=1)).isoformat(),
            date(date.today().year + 11, 1, 1).isoformat(),
        ],
    )
    async def test_out_of_range_date_rejected_regardless_of_credentials(self, test_client, day):
        response = await test_client.post(
            "/api/notes",
            json={"key": "bogus", "email": "nobody@x.com", "title": "T", "description": "D", "date": day},
        )
        assert response.status_code == 400
        assert response.json()["message"] == (
            "Date must be from today and within a reasonable future range."
        )

    @pytest.mark.asyncio
    async def test_wrong_key_rejected(self, test_client):
        await register(test_client)
        response = await test_client.post(
            "/api/notes",
            json={"key": "f" * 64, "email": TEST_EMAIL, "title": "T", "description": "D", "date": TOMORROW},
        )
        assert response.status_code == 401
        assert response.json()["error"] == "auth_error"

    @pytest.mark.asyncio
    async def test_title_too_long(self, test_client):
        key = await register_and_login(test_client)
        response = await test_client.post(
            "/api/notes",
            json={"key": key, "email": TEST_EMAIL, "title": "t" * 129, "description": "D", "date": TOMORROW},
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_fields(self, test_client):
        response = await test_client.post("/api/notes/today", json={"email": TEST_EMAIL})
        assert response.status_code == 400
        fields = [d["field"] for d in response.json()["details"]]
        assert "key" in fields


class TestChatAndHealth:

    @pytest.mark.asyncio
    async def test_chat_relays_reply(self, test_client, monkeypatch):
        def handler(request):
            return httpx.Response(200, json={"choices": [{"message": {"content": "Hello from AI"}}]})

        service = ChatService(api_key="test-key", transport=httpx.MockTransport(handler))
        monkeypatch.setattr("pocketdiary.routes.chat.chat_service", service)

        response = await test_client.post("/api/chat", json={"message": "hi"})
        assert response.status_code == 200
        assert response.json() == {"response": "Hello from AI"}

    @pytest.mark.asyncio
    async def test_chat_unconfigured_is_503(self, test_client, monkeypatch):
        service = ChatService(api_key="", transport=httpx.MockTransport(lambda r: httpx.Response(500)))
        monkeypatch.setattr("pocketdiary.routes.chat.chat_service", service)

        response = await test_client.post("/api/chat", json={"message": "hi"})
        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_chat_requires_message(self, test_client):
        response = await test_client.post("/api/chat", json={})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["database"] == "connected"
        assert body["status"] in ("healthy", "degraded")

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, test_client):
        response = await test_client.get("/health", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"

    @pytest.mark.asyncio
    async def test_unsafe_request_id_replaced(self, test_client):
        response = await test_client.get("/health", headers={"X-Request-ID": "bad id with spaces"})
        assert response.headers["X-Request-ID"] != "bad id with spaces"


class TestThemeTyping:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("theme", ["4", True])
    async def test_theme_update_requires_integer(self, test_client, theme):
        key = await register_and_login(test_client)
        response = await test_client.patch(
            "/api/users/theme",
            json={"key": key, "email": TEST_EMAIL, "password": TEST_PASSWORD, "theme": theme},
        )
        assert response.status_code == 400
        assert (await login(test_client)).json()["theme"] == TEST_THEME
