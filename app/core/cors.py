from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings

# Exposed so browser clients can forward the optional device tag.
ALLOWED_HEADERS = ["Authorization", "Content-Type", "X-Mac-Address"]


def configure_cors(app: FastAPI) -> None:
    regex = (settings.cors_allow_origin_regex or "").strip() or None
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allowed_origins),
        allow_origin_regex=regex,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=ALLOWED_HEADERS,
    )
