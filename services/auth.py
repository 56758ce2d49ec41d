# services/auth.py
"""Email/password accounts stored in `profiles`, bound to a Telegram account
while signed in."""
from __future__ import annotations

import hashlib
import hmac
import logging
import re
import secrets
from typing import Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from config import DEFAULT_PROFILE_PIC, MIN_PASSWORD_LENGTH, ROLES
from database.database import async_session
from database.profile import Profile
from feed.errors import AuthError, StoreError
from services.session import Identity, SIGNED_IN, SIGNED_OUT

log = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PBKDF2_ROUNDS = 120_000

SessionCallback = Callable[[str, Optional[int], Optional[Identity]], None]


# ─── passwords ─────────────────────────────────────────
def hash_password(password: str, salt: str | None = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ROUNDS)
    return f"{salt}${digest.hex()}"


def check_password(password: str, stored: str) -> bool:
    salt, _, _ = stored.partition("$")
    return hmac.compare_digest(hash_password(password, salt), stored)


def identity_of(profile: Profile) -> Identity:
    return Identity(id=profile.id, email=profile.email, full_name=profile.full_name,
                    role=profile.role, avatar_url=profile.avatar_url)


class AuthService:
    def __init__(self, session_factory=async_session):
        self.session_factory = session_factory
        self._listeners: list[SessionCallback] = []

    # ─── events ──────────────────────────────────────────
    def on_session_change(self, callback: SessionCallback) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)
        return unsubscribe

    def _emit(self, event: str, telegram_id: int | None, identity: Identity | None) -> None:
        for cb in list(self._listeners):
            try:
                cb(event, telegram_id, identity)
            except Exception:
                log.exception("Session change callback failed (%s)", event)

    # ─── sign up / in / out ─────────────────────────────
    async def sign_up(self, email: str, password: str, full_name: str, role: str,
                      telegram_id: int | None = None) -> Identity:
        email = (email or "").strip().lower()
        full_name = (full_name or "").strip()
        if not email or not password or not full_name:
            raise AuthError("Please fill in all fields")
        if not EMAIL_RE.match(email):
            raise AuthError("Unable to validate email address: invalid format")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if role not in ROLES:
            raise AuthError("Role must be student or coach")

        try:
            async with self.session_factory() as ses:
                if await ses.scalar(select(Profile.id).where(Profile.email == email)):
                    raise AuthError("User already registered")
                previous = await self._unlink(ses, telegram_id)
                profile = Profile(
                    email=email,
                    password_hash=hash_password(password),
                    full_name=full_name,
                    role=role,
                    avatar_url=DEFAULT_PROFILE_PIC,
                    telegram_id=telegram_id,
                )
                ses.add(profile)
                await ses.commit()
        except IntegrityError as e:
            raise AuthError("User already registered") from e
        except SQLAlchemyError as e:
            raise StoreError("Could not create profile") from e

        identity = identity_of(profile)
        log.info("New %s account %s", role, profile.id)
        if previous:
            log.debug("Telegram %s moved off profile %s", telegram_id, previous)
        self._emit(SIGNED_IN, telegram_id, identity)
        return identity

    async def sign_in(self, email: str, password: str, telegram_id: int | None = None) -> Identity:
        email = (email or "").strip().lower()
        if not email or not password:
            raise AuthError("Please fill in all fields")

        try:
            async with self.session_factory() as ses:
                profile = await ses.scalar(select(Profile).where(Profile.email == email))
                if profile is None or not check_password(password, profile.password_hash):
                    raise AuthError("Invalid login credentials")

                kicked = profile.telegram_id
                if telegram_id is not None and kicked != telegram_id:
                    await self._unlink(ses, telegram_id)
                    profile.telegram_id = telegram_id
                await ses.commit()
        except SQLAlchemyError as e:
            raise StoreError("Sign in failed") from e

        identity = identity_of(profile)
        if telegram_id is not None and kicked is not None and kicked != telegram_id:
            # the account was open in another Telegram chat
            self._emit(SIGNED_OUT, kicked, None)
        self._emit(SIGNED_IN, telegram_id, identity)
        return identity

    async def sign_out(self, telegram_id: int) -> None:
        try:
            async with self.session_factory() as ses:
                await self._unlink(ses, telegram_id)
                await ses.commit()
        except SQLAlchemyError as e:
            raise StoreError("Sign out failed") from e
        self._emit(SIGNED_OUT, telegram_id, None)

    async def restore(self, telegram_id: int) -> Identity | None:
        try:
            async with self.session_factory() as ses:
                profile = await ses.scalar(select(Profile).where(Profile.telegram_id == telegram_id))
        except SQLAlchemyError as e:
            raise StoreError("Could not restore session") from e
        return identity_of(profile) if profile else None

    @staticmethod
    async def _unlink(ses, telegram_id: int | None) -> str | None:
        if telegram_id is None:
            return None
        previous = await ses.scalar(select(Profile.id).where(Profile.telegram_id == telegram_id))
        if previous:
            await ses.execute(
                update(Profile).where(Profile.telegram_id == telegram_id).values(telegram_id=None)
            )
        return previous
