from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from portal.extensions import Database
from portal.models import AuthUser
from portal.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_and_update_password,
)

from .errors import AuthError, BackendError, db_error_message

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """An authenticated account as seen by callers of the backend."""

    id: int
    email: str
    user_metadata: dict[str, Any] = field(default_factory=dict)

    is_authenticated = True

    @property
    def role(self) -> str:
        # Accounts created without a role predate student accounts; they are teachers.
        return self.user_metadata.get("role") or "teacher"

    @classmethod
    def from_model(cls, user: AuthUser) -> "Principal":
        return cls(id=user.id, email=user.email, user_metadata=dict(user.user_metadata or {}))


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    user: Principal


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class AuthService:
    """Password accounts with free-form metadata and JWT session tokens."""

    def __init__(
        self,
        database: Database,
        secret_key: str,
        algorithm: str = "HS256",
        token_ttl: timedelta = timedelta(hours=12),
    ):
        self._db = database
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._token_ttl = token_ttl

    def sign_up(self, email: str, password: str, metadata: dict[str, Any] | None = None) -> Principal:
        email = _normalize_email(email)
        if not email or not password:
            raise AuthError("Email and password are required")
        try:
            with self._db.session() as session:
                if session.query(AuthUser).filter(AuthUser.email == email).first():
                    raise AuthError("User already registered")
                user = AuthUser(
                    email=email,
                    password_hash=hash_password(password),
                    user_metadata=dict(metadata or {}),
                )
                session.add(user)
                session.commit()
                session.refresh(user)
                log.info("Registered %s (role=%s)", email, user.user_metadata.get("role"))
                return Principal.from_model(user)
        except SQLAlchemyError as e:
            raise BackendError(f"Sign-up failed: {db_error_message(e)}") from e

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        email = _normalize_email(email)
        try:
            with self._db.session() as session:
                user = session.query(AuthUser).filter(AuthUser.email == email).first()
                if not user:
                    log.warning("Sign-in for unknown email %s", email)
                    raise AuthError("Invalid login credentials")
                verified, new_hash = verify_and_update_password(password, user.password_hash)
                if not verified:
                    log.warning("Sign-in with bad password for %s", email)
                    raise AuthError("Invalid login credentials")
                if new_hash:
                    user.password_hash = new_hash
                user.last_sign_in_at = datetime.now(timezone.utc)
                session.commit()
                principal = Principal.from_model(user)
        except SQLAlchemyError as e:
            raise BackendError(f"Sign-in failed: {db_error_message(e)}") from e

        token = create_access_token(
            {"sub": str(principal.id), "email": principal.email},
            self._secret_key,
            self._algorithm,
            self._token_ttl,
        )
        return AuthSession(access_token=token, user=principal)

    def get_user(self, access_token: str | None) -> Principal | None:
        if not access_token:
            return None
        payload = decode_access_token(access_token, self._secret_key, self._algorithm)
        if not payload or not payload.get("sub"):
            return None
        try:
            user_id = int(payload["sub"])
        except (TypeError, ValueError):
            return None
        return self.admin_get_user(user_id)

    def admin_get_user(self, user_id: int) -> Principal | None:
        try:
            with self._db.session() as session:
                user = session.get(AuthUser, user_id)
                return Principal.from_model(user) if user else None
        except SQLAlchemyError as e:
            raise BackendError(f"User lookup failed: {db_error_message(e)}") from e

    def admin_update_user(
        self,
        user_id: int,
        email: str | None = None,
        password: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Principal:
        """Update an account. ``metadata`` is merged into the existing metadata."""
        try:
            with self._db.session() as session:
                user = session.get(AuthUser, user_id)
                if not user:
                    raise AuthError("User not found")
                if email is not None:
                    email = _normalize_email(email)
                    clash = (
                        session.query(AuthUser)
                        .filter(AuthUser.email == email, AuthUser.id != user_id)
                        .first()
                    )
                    if clash:
                        raise AuthError("Email already in use")
                    user.email = email
                if password:
                    user.password_hash = hash_password(password)
                if metadata:
                    user.user_metadata = {**(user.user_metadata or {}), **metadata}
                session.commit()
                session.refresh(user)
                return Principal.from_model(user)
        except SQLAlchemyError as e:
            raise BackendError(f"User update failed: {db_error_message(e)}") from e

    def admin_delete_user(self, user_id: int) -> None:
        try:
            with self._db.session() as session:
                user = session.get(AuthUser, user_id)
                if not user:
                    raise AuthError("User not found")
                session.delete(user)
                session.commit()
                log.info("Deleted auth user %s", user_id)
        except SQLAlchemyError as e:
            raise BackendError(f"User deletion failed: {db_error_message(e)}") from e
