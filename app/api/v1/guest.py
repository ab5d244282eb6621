import logging
import sqlite3

from fastapi import APIRouter, Depends, Request

from app.core.errors import internal_error
from app.core.guest_ledger import peek_usage
from app.core.identity import resolve_identity
from app.core.security import (
    InvalidSessionError,
    SessionVerifier,
    extract_bearer_token,
    get_session_verifier,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/guest-status")
def guest_status(request: Request, verifier: SessionVerifier = Depends(get_session_verifier)):
    token = extract_bearer_token(request.headers.get("authorization"))
    if token:
        try:
            verifier.verify(token)
            return {"allowed": True, "requiresLogin": False}
        except InvalidSessionError:
            pass

    identity = resolve_identity(request)
    try:
        usage = peek_usage(identity)
    except sqlite3.Error as exc:
        logger.error(
            "guest_status_failed ip=%s tag=%s: %s",
            identity.network_address,
            identity.hardware_tag or "-",
            exc,
        )
        raise internal_error("Unable to check guest status. Please try again.") from exc

    if not usage.allowed:
        return {"allowed": False, "message": usage.message, "requiresLogin": True}
    return {"allowed": True, "requiresLogin": False, "remainingAnalyses": usage.remaining}
