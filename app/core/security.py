"""Optional shared API key guarding the HTTP endpoints."""

import logging
import secrets

from fastapi import Depends
from fastapi import HTTPException
from fastapi.security import APIKeyHeader

from app.core.config import settings

logger = logging.getLogger(__name__)

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(key: str | None = Depends(api_key_header)) -> bool:
    """Checks the 'X-API-Key' header against the configured API_KEY.

    When no API_KEY is configured the service is open (local use) and the
    check passes.

    Raises:
        HTTPException: 403 if a key is configured and the header is missing or wrong.
    """
    if not settings.api_key:
        logger.debug("No API_KEY configured; skipping API key check.")
        return True

    if key is None or not secrets.compare_digest(key, settings.api_key):
        raise HTTPException(status_code=403, detail="Invalid API Key")
    return True


def log_access_mode() -> None:
    """Warns once at startup when the API is running without an API_KEY."""
    if not settings.api_key:
        logger.warning(
            "No API_KEY is configured; every API request will be accepted without authentication. "
            "Set API_KEY to require the 'X-API-Key' header."
        )
    else:
        logger.info("API key authentication enabled for /api routes.")
