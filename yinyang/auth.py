"""yinyang/auth.py

Bearer-token authentication for the HTTP endpoints.

Verification itself is delegated to a ``TokenVerifier`` so deployments can
plug in their identity provider; the default checks a static table from
settings.
"""

from __future__ import annotations

# Standard Library
import logging
from collections.abc import Mapping
from typing import Protocol

# Third-Party Libraries
from fastapi import HTTPException, Request, status

logger = logging.getLogger(__name__)

_BEARER_PREFIX = "Bearer "


class TokenVerifier(Protocol):
    async def verify(self, token: str) -> str | None:
        """Return the caller id for ``token``, or ``None`` if invalid."""
        ...


class StaticTokenVerifier:
    """Accepts tokens listed in a fixed token → caller id table."""

    def __init__(self, tokens: Mapping[str, str]) -> None:
        self._tokens = dict(tokens)

    async def verify(self, token: str) -> str | None:
        return self._tokens.get(token)


async def authenticate(request: Request) -> str:
    """FastAPI dependency returning the verified caller id.

    Raises:
        HTTPException: 401 when the header is missing or the token is invalid.
    """
    header = request.headers.get("authorization", "")
    if not header.startswith(_BEARER_PREFIX):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: Missing Bearer token",
        )
    token = header[len(_BEARER_PREFIX):].strip()
    verifier: TokenVerifier = request.app.state.verifier
    uid = await verifier.verify(token)
    if uid is None:
        logger.warning("Token verification failed")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: Invalid token",
        )
    logger.info("Authenticated user: %s", uid)
    return uid
