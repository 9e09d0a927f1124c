"""Authentication session adapters.

The pipeline never signs users in itself. It only needs to know who is
currently signed in, to refresh that session before a write, and (on the
trusted server) to turn a bearer token back into a user id.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import httpx
from supabase import Client

logger = logging.getLogger(__name__)

TokenVerifier = Callable[[str], Optional[str]]


class AuthSessionError(RuntimeError):
    """Raised when the session cannot be refreshed or inspected."""


@dataclass(frozen=True)
class CurrentUser:
    id: str
    access_token: Optional[str] = None


class AuthSession:
    """Interface to the external authentication capability."""

    @property
    def current_user(self) -> Optional[CurrentUser]:
        raise NotImplementedError

    def refresh_session(self) -> None:
        raise NotImplementedError


class SupabaseAuthSession(AuthSession):
    """Session held by a Supabase client that a user signed in with."""

    def __init__(self, client: Client) -> None:
        self.client = client

    @property
    def current_user(self) -> Optional[CurrentUser]:
        try:
            session = self.client.auth.get_session()
        except httpx.HTTPError as exc:
            raise AuthSessionError(f"Could not read auth session: {exc}") from exc
        if not session or not session.user:
            return None
        return CurrentUser(id=session.user.id, access_token=session.access_token)

    def refresh_session(self) -> None:
        try:
            self.client.auth.refresh_session()
        except Exception as exc:  # auth client raises its own error hierarchy
            raise AuthSessionError(f"Session refresh failed: {exc}") from exc


class StaticAuthSession(AuthSession):
    """Fixed signed-in user for local runs and tests."""

    def __init__(self, user_id: Optional[str], access_token: str = "local-token") -> None:
        self._user = CurrentUser(id=user_id, access_token=access_token) if user_id else None
        self.refresh_calls = 0

    @property
    def current_user(self) -> Optional[CurrentUser]:
        return self._user

    def refresh_session(self) -> None:
        self.refresh_calls += 1


def supabase_token_verifier(client: Client) -> TokenVerifier:
    """Build a verifier that resolves a Supabase access token to its user id."""

    def verify(token: str) -> Optional[str]:
        try:
            response = client.auth.get_user(token)
        except Exception as exc:  # invalid and expired tokens both surface here
            logger.info("Rejected bearer token", extra={"error": str(exc)})
            return None
        user = getattr(response, "user", None)
        return user.id if user else None

    return verify


def static_token_verifier(tokens: dict[str, str]) -> TokenVerifier:
    """Verifier backed by a fixed token -> user id map."""

    return tokens.get


__all__ = [
    "AuthSession",
    "AuthSessionError",
    "CurrentUser",
    "StaticAuthSession",
    "SupabaseAuthSession",
    "TokenVerifier",
    "static_token_verifier",
    "supabase_token_verifier",
]
