"""x-api-key authentication for the protected DateSafe endpoints."""

import logging
import secrets
from typing import Optional

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from datesafe import config

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"
api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


async def verify_api_key(api_key: Optional[str] = Security(api_key_header)) -> str:
    """Route dependency: 401 when the key is missing, empty or does not match DATESAFE_API_KEY."""
    if not api_key:
        logger.warning("Rejected request without an API key")
        raise _unauthorized(f"Missing API key. Please provide the '{API_KEY_HEADER}' header.")

    if not secrets.compare_digest(api_key.encode(), config.API_KEY.encode()):
        logger.warning("Rejected request with an invalid API key")
        raise _unauthorized("Invalid API key.")

    return api_key
