"""
Pocket Diary Backend: User Service Tests
==========================================

What:  Identity record store behavior on encrypted values.
"""

import asyncio
import time
from unittest.mock import AsyncMock

import bcrypt

import pytest
from sqlalchemy.exc import OperationalError

from pocketdiary.exceptions import DuplicateEmailError, StorageError
from pocketdiary.services import crypto
from pocketdiary.services.user_service import UserService

ENC_EMAIL = crypto.encrypt("0f" * 32, "a@x.com")
ENC_NAME = crypto.encrypt("0f" * 32, "Ann")
DIGEST = crypto.hash_password("pw123")


class TestUserService:

    def setup_method(self):
        self.service = UserService()

    @pytest.mark.asyncio
    async def test_create_and_find(self, db_session):
        key = await self.service.create_user(db_session, ENC_EMAIL, DIGEST, 2, ENC_NAME)
        user = await self.service.find_user(db_session, ENC_EMAIL, DIGEST)
        assert user is not None
        assert user.key == key
        assert user.theme == 2

    @pytest.mark.asyncio
    async def test_find_user_wrong_digest(self, db_session):
        await self.service.create_user(db_session, ENC_EMAIL, DIGEST, 0, ENC_NAME)
        assert await self.service.find_user(db_session, ENC_EMAIL, crypto.hash_password("x")) is None

    @pytest.mark.asyncio
    async def test_find_user_unknown_email(self, db_session):
        assert await self.service.find_user(db_session, ENC_EMAIL, DIGEST) is None

    @pytest.mark.asyncio
    async def test_duplicate_email(self, db_session):
        await self.service.create_user(db_session, ENC_EMAIL, DIGEST, 0, ENC_NAME)
        with pytest.raises(DuplicateEmailError):
            await self.service.create_user(db_session, ENC_EMAIL, DIGEST, 0, ENC_NAME)

    @pytest.mark.asyncio
    async def test_find_by_key_and_email(self, db_session):
        key = await self.service.create_user(db_session, ENC_EMAIL, DIGEST, 0, ENC_NAME)
        assert await self.service.find_user_by_key_and_email(db_session, key, ENC_EMAIL) is not None
        assert await self.service.find_user_by_key_and_email(db_session, "00" * 32, ENC_EMAIL) is None

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_column(self, db_session):
        key = await self.service.create_user(db_session, ENC_EMAIL, DIGEST, 0, ENC_NAME)
        with pytest.raises(ValueError):
            await self.service.update_user(db_session, key, ENC_EMAIL, DIGEST, {"key": "00" * 32})

    @pytest.mark.asyncio
    async def test_update_seals_new_password(self, db_session):
        key = await self.service.create_user(db_session, ENC_EMAIL, DIGEST, 0, ENC_NAME)
        new_digest = crypto.hash_password("new")
        assert await self.service.update_user(
            db_session, key, ENC_EMAIL, DIGEST, {"password_hash": new_digest}
        )
        user = await self.service.find_user(db_session, ENC_EMAIL, new_digest)
        assert user is not None
        assert user.password_hash != new_digest

    @pytest.mark.asyncio
    async def test_email_exists(self, db_session):
        assert not await self.service.email_exists(db_session, ENC_EMAIL)
        await self.service.create_user(db_session, ENC_EMAIL, DIGEST, 0, ENC_NAME)
        assert await self.service.email_exists(db_session, ENC_EMAIL)

    @pytest.mark.asyncio
    async def test_database_error_becomes_storage_error(self, mock_db_session):
        mock_db_session.execute = AsyncMock(
            side_effect=OperationalError("SELECT", {}, Exception("connection lost"))
        )
        with pytest.raises(StorageError) as exc_info:
            await self.service.email_exists(mock_db_session, ENC_EMAIL)
        assert "connection lost" not in exc_info.value.message


async def _max_heartbeat_gap(work) -> tuple:
    """Run `work` while a 5 ms ticker records the longest gap between ticks."""
    done = asyncio.Event()
    gaps = [0.0]

    async def ticker():
        last = time.perf_counter()
        while not done.is_set():
            await asyncio.sleep(0.005)
            now = time.perf_counter()
            gaps.append(now - last)
            last = now

    tick_task = asyncio.create_task(ticker())
    try:
        result = await work
    finally:
        done.set()
        await tick_task
    return max(gaps), result


class TestPasswordWorkOffLoop:
    """bcrypt at production cost must not block other requests."""

    def setup_method(self):
        self.service = UserService()

    @pytest.mark.asyncio
    async def test_verify_keeps_event_loop_responsive(self):
        sealed = bcrypt.hashpw(DIGEST.encode("ascii"), bcrypt.gensalt(rounds=12)).decode("ascii")

        async def verify_three_times():
            return [await crypto.verify_password_async(DIGEST, sealed) for _ in range(3)]

        gap, results = await _max_heartbeat_gap(verify_three_times())
        assert results == [True, True, True]
        assert gap < 0.1

    @pytest.mark.asyncio
    async def test_find_user_keeps_event_loop_responsive(self, db_session):
        await self.service.create_user(db_session, ENC_EMAIL, DIGEST, 0, ENC_NAME)
        user = await self.service.find_user(db_session, ENC_EMAIL, DIGEST)
        user.password_hash = bcrypt.hashpw(
            DIGEST.encode("ascii"), bcrypt.gensalt(rounds=12)
        ).decode("ascii")
        await db_session.flush()

        gap, found = await _max_heartbeat_gap(self.service.find_user(db_session, ENC_EMAIL, DIGEST))
        assert found is not None
        assert gap < 0.1
