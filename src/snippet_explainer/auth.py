"""Bearer-token verification against tokens issued by the store."""

from __future__ import annotations

import asyncio
import logging

from snippet_explainer.errors import AuthorizationError, PersistenceError
from snippet_explainer.store import Store

logger = logging.getLogger(__name__)

MISSING_HEADER = "Missing authorization header"
INVALID_TOKEN = "Invalid token"


def extract_bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise AuthorizationError(MISSING_HEADER)
    token = authorization.replace("Bearer ", "", 1).strip()
    if not token:
        raise AuthorizationError(INVALID_TOKEN)
    return token


class TokenVerifier:
    def __init__(self, store: Store):
        self.store = store

    async def verify(self, authorization: str | None) -> str:
        """Return the owner identity for an ``Authorization`` header value.

        Raises:
            AuthorizationError: Header missing, token unknown, or the token
                table could not be read.
        """
        token = extract_bearer_token(authorization)
        try:
            owner = await asyncio.to_thread(self.store.resolve_token, token)
        except PersistenceError as exc:
            logger.error("Token lookup failed: %s", exc)
            raise AuthorizationError(INVALID_TOKEN) from exc
        if not owner:
            raise AuthorizationError(INVALID_TOKEN)
        return owner
