"""
API-key authentication

Every router, the dataflow catch-all included, depends on
:func:`verify_api_key`, so an unauthorised call is rejected before the
dispatcher creates a request record for it.  Authentication is off while
``ALLOWED_API_KEYS`` is empty.
"""

from __future__ import annotations

import secrets
from typing import Annotated, Optional, Sequence

import structlog
from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

from openapi_dataflow.core.config import Settings, get_settings

__all__: list[str] = [
    "API_KEY_HEADER",
    "verify_api_key",
]

logger = structlog.get_logger(__name__)

API_KEY_HEADER = "x-api-key"

_api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


def _key_matches(candidate: str, allowed: Sequence[str]) -> bool:
    """Constant-time comparison of **candidate** against every configured key."""
    encoded = candidate.encode()
    return any(secrets.compare_digest(encoded, key.encode()) for key in allowed)


async def verify_api_key(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: Annotated[Optional[str], Security(_api_key_header)] = None,
) -> str | None:
    """Check the ``x-api-key`` header against the configured keys.

    Returns:
        The accepted key, or None when authentication is disabled.

    Raises:
        HTTPException (401): If keys are configured and the header is missing
            or holds none of them.
    """

    allowed = settings.allowed_api_keys
    if not allowed:
        logger.debug("auth_skipped", reason="no_keys_configured")
        return None

    if api_key is None or not _key_matches(api_key, allowed):
        logger.warning(
            "auth_failed",
            path=request.url.path,
            has_header=api_key is not None,
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing x-api-key header.",
        )

    request.state.user = "api_key_user"
    logger.debug("auth_success", path=request.url.path)
    return api_key
