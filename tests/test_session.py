"""
Test identity session: signup/login/logout transitions and persistence.
"""

# Path setup handled by conftest.py
import asyncio

from weekplan.core.constants import USER_KEY
from weekplan.core.exceptions import AuthenticationError, ValidationError
from weekplan.core.session import IdentitySession, hash_password, verify_password
import pytest


def test_password_hash_round_trip():
    stored = hash_password("1234")
    assert stored.startswith("pbkdf2_sha256$")
    assert "1234" not in stored.split("$", 1)[1]
    assert verify_password("1234", stored)
    assert not verify_password("4321", stored)
    assert not verify_password("1234", "garbage")


def test_signup_validation(context):
    session = context.session

    async def scenario():
        for email, name, password in [
            ("ana@example.com", "Ana", "12345"),
            ("ana@example.com", "Ana", "abcd"),
            ("not-an-email", "Ana", "1234"),
            ("ana@example.com", "  ", "1234"),
        ]:
            with pytest.raises(ValidationError):
                await session.signup(email, name, password)

    asyncio.run(scenario())
    assert session.current_identity().is_guest


def test_signup_login_logout(context):
    session = context.session
    events = []

    async def listener(previous, current):
        events.append((str(previous), str(current)))

    async def scenario():
        session.subscribe(listener)
        identity = await session.signup(" Ana@Example.com ", "Ana", "1234")
        assert identity.email == "ana@example.com"

        with pytest.raises(ValidationError):
            await session.login("ana@example.com", "1234")

        await session.logout()
        await session.logout()

        with pytest.raises(AuthenticationError):
            await session.login("ana@example.com", "9999")
        with pytest.raises(AuthenticationError):
            await session.login("nobody@example.com", "1234")
        return await session.login("ANA@example.com", "1234")

    identity = asyncio.run(scenario())
    assert identity.name == "Ana"
    assert events == [
        ("guest", "Ana <ana@example.com>"),
        ("Ana <ana@example.com>", "guest"),
        ("guest", "Ana <ana@example.com>"),
    ]


def test_duplicate_signup_rejected(context):
    async def scenario():
        await context.session.signup("ana@example.com", "Ana", "1234")
        await context.session.logout()
        with pytest.raises(ValidationError):
            await context.session.signup("ana@example.com", "Other", "5678")

    asyncio.run(scenario())


def test_session_survives_restart(context):
    async def scenario():
        return await context.session.signup("ana@example.com", "Ana", "1234")

    identity = asyncio.run(scenario())
    restored = IdentitySession(context.local_store, context.session.authenticator)

    assert restored.current_identity() == identity
    assert context.local_store.get_json(USER_KEY)["email"] == "ana@example.com"


def test_corrupt_saved_session_falls_back_to_guest(context):
    context.local_store.set(USER_KEY, "{oops")
    restored = IdentitySession(context.local_store, context.session.authenticator)

    assert restored.current_identity().is_guest
    assert context.local_store.get(USER_KEY) is None


@pytest.mark.parametrize("saved", ["[]", '"ana@example.com"', "42"])
def test_saved_session_of_wrong_shape_falls_back_to_guest(context, saved):
    context.local_store.set(USER_KEY, saved)
    restored = IdentitySession(context.local_store, context.session.authenticator)

    assert restored.current_identity().is_guest
    assert context.local_store.get(USER_KEY) is None


def test_unsubscribe(context):
    session = context.session
    events = []

    async def listener(previous, current):
        events.append(current)

    async def scenario():
        unsubscribe = session.subscribe(listener)
        unsubscribe()
        unsubscribe()
        await session.signup("ana@example.com", "Ana", "1234")

    asyncio.run(scenario())
    assert events == []
