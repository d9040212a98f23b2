"""
SightEd Backend — Account and Contact Service Tests
=====================================================
"""

import asyncio

import pytest

from sighted.exceptions import AuthenticationError, ConflictError, NotFoundError, ValidationError
from sighted.services.contact_service import SUBMISSIONS, contact_service
from sighted.services.user_service import USERS, pwd_context, user_service


async def register(store, email="Ada@Example.com ", password="secret1"):
    return await user_service.register(
        store, email=email, password=password, first_name="Ada", last_name="Lovelace"
    )


class TestRegister:

    async def test_creates_user_with_hashed_password(self, memory_store):
        result = await register(memory_store)

        assert result["success"] is True
        assert result["message"] == "User registered successfully"
        assert result["user"]["email"] == "ada@example.com"
        assert "password_hash" not in result["user"]

        stored = await memory_store.get(USERS, result["user"]["id"])
        assert stored["password_hash"] != "secret1"
        assert pwd_context.verify("secret1", stored["password_hash"])

    async def test_duplicate_email_conflicts(self, memory_store):
        await register(memory_store)
        with pytest.raises(ConflictError, match="User already exists"):
            await register(memory_store, email="ADA@example.com")

    async def test_concurrent_registrations_keep_one_account(self, memory_store):
        results = await asyncio.gather(
            register(memory_store),
            register(memory_store, email="ada@example.com"),
            return_exceptions=True,
        )

        conflicts = [r for r in results if isinstance(r, ConflictError)]
        created = [r for r in results if isinstance(r, dict)]
        assert len(conflicts) == 1
        assert len(created) == 1
        assert conflicts[0].message == "User already exists"
        assert await memory_store.count(USERS) == 1

    @pytest.mark.parametrize("email,password,message", [
        ("", "secret1", "Missing required fields"),
        ("ada@example.com", None, "Missing required fields"),
        ("not-an-email", "secret1", "Invalid email format"),
        ("ada@example.com", "12345", "at least 6 characters"),
    ])
    async def test_rejects_bad_input(self, memory_store, email, password, message):
        with pytest.raises(ValidationError, match=message):
            await register(memory_store, email=email, password=password)
        assert await memory_store.count(USERS) == 0


class TestLogin:

    async def test_login_success_returns_public_user(self, memory_store):
        await register(memory_store)
        result = await user_service.login(memory_store, "ada@example.com", "secret1")
        assert result["message"] == "Login successful"
        assert set(result["user"]) == {"id", "email", "firstName", "lastName"}

    async def test_wrong_password_and_unknown_email_look_the_same(self, memory_store):
        await register(memory_store)
        with pytest.raises(AuthenticationError) as wrong:
            await user_service.login(memory_store, "ada@example.com", "nope-nope")
        with pytest.raises(AuthenticationError) as unknown:
            await user_service.login(memory_store, "eve@example.com", "secret1")
        assert wrong.value.message == unknown.value.message == "Invalid email or password"

    async def test_missing_fields(self, memory_store):
        with pytest.raises(ValidationError):
            await user_service.login(memory_store, "ada@example.com", "")


class TestContact:

    async def test_submit_and_list_newest_first(self, memory_store):
        first = await contact_service.submit(memory_store, "Ada", "ada@example.com", "Hi", "One")
        await memory_store.update(SUBMISSIONS, first["id"], {"createdAt": "2000-01-01T00:00:00"})
        second = await contact_service.submit(memory_store, "Bob", "bob@example.com", "Yo", "Two")

        listing = await contact_service.list_submissions(memory_store)
        assert [s["id"] for s in listing["submissions"]] == [second["id"], first["id"]]
        assert listing["submissions"][0]["read"] is False

    async def test_submit_requires_every_field(self, memory_store):
        with pytest.raises(ValidationError, match="Missing required fields"):
            await contact_service.submit(memory_store, "Ada", "ada@example.com", " ", "Body")

    async def test_submit_rejects_bad_email(self, memory_store):
        with pytest.raises(ValidationError, match="Invalid email format"):
            await contact_service.submit(memory_store, "Ada", "ada-at-example", "Hi", "Body")

    async def test_mark_read(self, memory_store):
        created = await contact_service.submit(memory_store, "Ada", "ada@example.com", "Hi", "Body")
        result = await contact_service.mark_read(memory_store, created["id"])
        assert result["submission"]["read"] is True

    async def test_mark_read_unknown(self, memory_store):
        with pytest.raises(NotFoundError):
            await contact_service.mark_read(memory_store, "missing")
