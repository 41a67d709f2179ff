"""
FILE: weekplan/core/session.py
PURPOSE: Current identity (guest or account) and its login/logout transitions
EXPORTS:
  - LocalAuthenticator (class): signup/login against the remote store's users
  - IdentitySession (class)
    - current_identity() -> Identity
    - subscribe(listener) -> unsubscribe callable
    - signup(email, name, password) -> Identity
    - login(email, password) -> Identity
    - logout() -> None
  - hash_password(password) -> str / verify_password(password, stored) -> bool
DEPENDENCIES:
  - hashlib, hmac, secrets, re (stdlib)
  - weekplan.core.local_store (LocalCacheStore)
  - weekplan.core.remote (RemoteStore)
NOTES:
  - The signed-in identity is kept in the local cache so it survives restarts
  - Listeners are awaited in subscription order on every transition
  - Guest -> account and account -> guest are the only transitions; a second
    login without logout is rejected
  - Passwords are four digits; stored as salted PBKDF2 hashes
"""

import hashlib
import hmac
import logging
import re
import secrets
from typing import Awaitable, Callable, List

from .constants import EMAIL_PATTERN, PASSWORD_HASH_ITERATIONS, PASSWORD_PATTERN, USER_KEY
from .exceptions import AuthenticationError, BackingStoreError, ValidationError
from .local_store import LocalCacheStore
from .models import GUEST, Identity
from .remote import RemoteStore


logger = logging.getLogger(__name__)

Listener = Callable[[Identity, Identity], Awaitable[None]]


def hash_password(password: str) -> str:
    """Salted PBKDF2-SHA256 hash in 'pbkdf2_sha256$iterations$salt$digest' form."""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("ascii"), PASSWORD_HASH_ITERATIONS
    )
    return f"pbkdf2_sha256${PASSWORD_HASH_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        _, iterations, salt, expected = stored.split("$")
    except ValueError:
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("ascii"), int(iterations)
    )
    return hmac.compare_digest(digest.hex(), expected)


class LocalAuthenticator:
    """Accounts stored in the remote store's users table."""

    def __init__(self, remote_store: RemoteStore):
        self.remote_store = remote_store

    async def signup(self, email: str, name: str, password: str) -> Identity:
        """
        Register a new account and seed its default categories.

        Raises:
            ValidationError: If email/password are malformed or email is taken
        """
        email = email.strip().lower()
        name = name.strip()

        if not re.match(PASSWORD_PATTERN, password):
            raise ValidationError("Password must be exactly 4 digits")
        if not re.match(EMAIL_PATTERN, email):
            raise ValidationError(f"'{email}' is not a valid email address")
        if not name:
            raise ValidationError("Name cannot be empty")

        user = await self.remote_store.create_user(email, name, hash_password(password))
        await self.remote_store.seed_default_categories(user["id"])

        logger.info("Created account %s", user["id"])
        return Identity.from_dict(user)

    async def login(self, email: str, password: str) -> Identity:
        """
        Check credentials.

        Raises:
            AuthenticationError: If the email is unknown or the password is wrong
        """
        user = await self.remote_store.get_user_by_email(email.strip().lower())
        if not user or not verify_password(password, user["password_hash"]):
            raise AuthenticationError()
        return Identity.from_dict(user)


class IdentitySession:
    """Holds the current identity and notifies listeners when it changes."""

    def __init__(self, local_store: LocalCacheStore, authenticator: LocalAuthenticator):
        self.local_store = local_store
        self.authenticator = authenticator
        self._listeners: List[Listener] = []
        self._current = self._restore()

    def _restore(self) -> Identity:
        try:
            saved = self.local_store.get_json(USER_KEY)
        except BackingStoreError as e:
            logger.error("Discarding unreadable saved session: %s", e)
            self.local_store.remove(USER_KEY)
            return GUEST

        if saved is not None and not isinstance(saved, dict):
            logger.error("Discarding saved session of unexpected shape: %r", saved)
            self.local_store.remove(USER_KEY)
            return GUEST
        if not saved or not saved.get("id"):
            return GUEST
        return Identity.from_dict(saved)

    def current_identity(self) -> Identity:
        return self._current

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a coroutine called with (previous, current) on every transition."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def signup(self, email: str, name: str, password: str) -> Identity:
        self._require_guest()
        identity = await self.authenticator.signup(email, name, password)
        await self._transition(identity)
        return identity

    async def login(self, email: str, password: str) -> Identity:
        self._require_guest()
        identity = await self.authenticator.login(email, password)
        await self._transition(identity)
        return identity

    async def logout(self) -> None:
        if self._current.is_guest:
            return
        await self._transition(GUEST)

    def _require_guest(self) -> None:
        if not self._current.is_guest:
            raise ValidationError(f"Already signed in as {self._current.email}; log out first")

    async def _transition(self, identity: Identity) -> None:
        previous = self._current
        self._current = identity

        if identity.is_guest:
            self.local_store.remove(USER_KEY)
        else:
            self.local_store.set_json(USER_KEY, identity.to_dict())

        logger.info("Identity changed: %s -> %s", previous, identity)
        for listener in list(self._listeners):
            await listener(previous, identity)
