"""Admission decisions for inbound requests.

Every route declares one of two policies. ``AUTH_REQUIRED`` routes only
accept a verified session and never look at the guest ledger.
``GUEST_ALLOWED`` routes accept a verified session when one is presented
and otherwise fall back to the anonymous quota, which is consumed here,
before any provider work starts.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Union

from fastapi import Depends, Request, status

from app.core.errors import ApiError
from app.core.guest_ledger import GuestUsageResult, check_and_consume
from app.core.identity import GuestIdentity, resolve_identity
from app.core.security import (
    InvalidSessionError,
    SessionVerifier,
    VerifiedSession,
    extract_bearer_token,
    get_session_verifier,
)

logger = logging.getLogger(__name__)


class RoutePolicy(str, enum.Enum):
    AUTH_REQUIRED = "auth_required"
    GUEST_ALLOWED = "guest_allowed"


@dataclass(frozen=True)
class AuthenticatedPass:
    user_id: str
    email: str | None = None


@dataclass(frozen=True)
class GuestPass:
    identity: GuestIdentity
    usage: GuestUsageResult

    @property
    def guest_id(self) -> str | None:
        return self.usage.guest_id

    @property
    def remaining(self) -> int:
        return self.usage.remaining


@dataclass(frozen=True)
class Reject:
    reason: str
    status_code: int
    payload: dict[str, Any] = field(default_factory=dict)


AdmissionDecision = Union[AuthenticatedPass, GuestPass, Reject]


class AdmissionRejected(ApiError):
    def __init__(self, decision: Reject):
        payload = dict(decision.payload)
        error = str(payload.pop("error", decision.reason))
        message = str(payload.pop("message", decision.reason))
        super().__init__(decision.status_code, error, message, extra=payload)
        self.decision = decision


def _unauthorized(message: str) -> Reject:
    return Reject(
        reason=message,
        status_code=status.HTTP_401_UNAUTHORIZED,
        payload={"error": "Unauthorized", "message": message},
    )


def _verify(verifier: SessionVerifier, token: str) -> VerifiedSession | None:
    try:
        return verifier.verify(token)
    except InvalidSessionError as exc:
        logger.info("session_verification_failed: %s", exc)
        return None


def admit(request: Request, policy: RoutePolicy, verifier: SessionVerifier) -> AdmissionDecision:
    token = extract_bearer_token(request.headers.get("authorization"))

    if token is not None:
        session = _verify(verifier, token) if token else None
        if session is not None:
            return AuthenticatedPass(user_id=session.user_id, email=session.email)
        if policy is RoutePolicy.AUTH_REQUIRED:
            return _unauthorized("Invalid or expired session. Please login again.")
    elif policy is RoutePolicy.AUTH_REQUIRED:
        return _unauthorized("Missing authorization header.")

    identity = resolve_identity(request)
    usage = check_and_consume(identity)
    if not usage.allowed:
        logger.info(
            "guest_rejected ip=%s tag=%s code=%s",
            identity.network_address,
            identity.hardware_tag or "-",
            usage.error_code,
        )
        return Reject(
            reason=usage.error_code or "limit_reached",
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            payload={
                "error": "Guest limit reached",
                "message": usage.message,
                "requiresLogin": True,
            },
        )
    return GuestPass(identity=identity, usage=usage)


def enforce(decision: AdmissionDecision) -> AuthenticatedPass | GuestPass:
    if isinstance(decision, Reject):
        raise AdmissionRejected(decision)
    return decision


def require_user(
    request: Request,
    verifier: SessionVerifier = Depends(get_session_verifier),
) -> AuthenticatedPass:
    """Dependency for routes that are closed to guests."""
    decision = admit(request, RoutePolicy.AUTH_REQUIRED, verifier)
    if isinstance(decision, AuthenticatedPass):
        return decision
    if isinstance(decision, Reject):
        raise AdmissionRejected(decision)
    raise AdmissionRejected(_unauthorized("Authentication required."))
