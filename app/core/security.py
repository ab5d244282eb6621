from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Protocol, Sequence

import jwt

from app.core.config import settings


class InvalidSessionError(Exception):
    pass


@dataclass(frozen=True)
class VerifiedSession:
    user_id: str
    email: str | None = None


class SessionVerifier(Protocol):
    def verify(self, token: str) -> VerifiedSession: ...


class JwtSessionVerifier:
    """Validates access tokens issued by the hosted auth provider."""

    def __init__(
        self,
        secret: str | None,
        *,
        algorithms: Sequence[str] = ("HS256",),
        audience: str | None = None,
    ):
        self._secret = (secret or "").strip()
        self._algorithms = list(algorithms)
        self._audience = audience

    def verify(self, token: str) -> VerifiedSession:
        if not self._secret:
            raise InvalidSessionError("Session verification is not configured.")
        if not token:
            raise InvalidSessionError("Missing token.")
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=self._algorithms,
                audience=self._audience,
                options={"require": ["sub", "exp"], "verify_aud": bool(self._audience)},
            )
        except jwt.PyJWTError as exc:
            raise InvalidSessionError("Invalid or expired token.") from exc

        user_id = str(claims.get("sub") or "").strip()
        if not user_id:
            raise InvalidSessionError("Token has no subject.")
        email = claims.get("email")
        return VerifiedSession(user_id=user_id, email=str(email) if email else None)


@lru_cache(maxsize=1)
def get_session_verifier() -> SessionVerifier:
    return JwtSessionVerifier(
        settings.auth_jwt_secret,
        algorithms=settings.auth_jwt_algorithms,
        audience=settings.auth_jwt_audience,
    )


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token of an ``Authorization: Bearer`` header, or None when absent."""
    if authorization is None:
        return None
    value = authorization.strip()
    if not value:
        return None
    scheme, _, token = value.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()
