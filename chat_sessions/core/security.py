from __future__ import annotations

from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .logging import get_logger

DEV_ORIGINS = ["http://localhost", "http://localhost:5173", "http://127.0.0.1:5173"]


def configure_cors(app: FastAPI) -> None:
    settings = get_settings()

    origins: List[str] = settings.cors_origins
    if not origins:
        # No wildcard; the chat page is served by the Vite dev server locally.
        origins = DEV_ORIGINS

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-API-Key", "X-Request-Id"],
        expose_headers=["X-Request-Id"],
    )


async def get_api_key(
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
) -> Optional[str]:
    return x_api_key


async def verify_api_key(
    request: Request,
    api_key: Optional[str] = Depends(get_api_key),
) -> Optional[str]:
    settings = get_settings()
    if not settings.api_keys:
        # API key auth disabled
        return None

    logger = get_logger("security").bind(endpoint=str(request.url.path))
    if not api_key:
        logger.warning("Missing API key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key.",
        )

    if api_key not in settings.api_keys:
        logger.warning("Invalid API key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key.",
        )

    return api_key
