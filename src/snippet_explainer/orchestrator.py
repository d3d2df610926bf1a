"""End-to-end handling of one explain request."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from snippet_explainer.auth import TokenVerifier
from snippet_explainer.config import Settings
from snippet_explainer.errors import (
    AuthorizationError,
    PersistenceError,
    RequestValidationError,
    SnippetNotFoundError,
)
from snippet_explainer.generator import ModelGenerator
from snippet_explainer.heuristic import generate_heuristic_bundle
from snippet_explainer.models import ExplainRequest, normalize_reading_level
from snippet_explainer.persistence import PersistenceSequencer, PersistState, shape_response
from snippet_explainer.store import Store

logger = logging.getLogger(__name__)

MISSING_FIELDS = "Missing required fields: code, language"
FALLBACK_ID = "fallback"
FALLBACK_CODE = "Sample code"
FALLBACK_LANGUAGE = "javascript"


@dataclass
class HandlerResponse:
    status_code: int
    body: dict[str, Any] = field(default_factory=dict)


def _error(status_code: int, message: str) -> HandlerResponse:
    return HandlerResponse(status_code=status_code, body={"error": message})


def parse_request(payload: Any) -> ExplainRequest:
    """Validate a decoded JSON body.

    Raises:
        RequestValidationError: Body is not an object, or ``code``/``language``
            are missing, empty or not strings.
    """
    if not isinstance(payload, dict) or not payload.get("code") or not payload.get("language"):
        raise RequestValidationError(MISSING_FIELDS)
    try:
        return ExplainRequest.model_validate(payload)
    except ValidationError as exc:
        raise RequestValidationError(MISSING_FIELDS) from exc


class ExplainHandler:
    """Authenticate, resolve the snippet, generate content, and persist it.

    Once past authentication and validation every path answers 200 with
    usable content, except a failure to create or claim the snippet row,
    which happens before any content exists.
    """

    def __init__(
        self,
        store: Store,
        verifier: TokenVerifier,
        generator: ModelGenerator,
        sequencer: PersistenceSequencer | None = None,
    ):
        self.store = store
        self.verifier = verifier
        self.generator = generator
        self.sequencer = sequencer or PersistenceSequencer(store)

    @classmethod
    def from_settings(cls, settings: Settings, store: Store | None = None) -> ExplainHandler:
        store = store or Store(settings.db_path)
        return cls(store=store, verifier=TokenVerifier(store), generator=ModelGenerator(settings))

    async def handle(self, authorization: str | None, payload: Any) -> HandlerResponse:
        try:
            owner = await self.verifier.verify(authorization)
        except AuthorizationError as exc:
            return _error(401, str(exc))

        try:
            request = parse_request(payload)
        except RequestValidationError as exc:
            return _error(400, str(exc))

        try:
            if request.snippet_id:
                snippet_id = request.snippet_id
                try:
                    await asyncio.to_thread(
                        self.store.mark_pending,
                        snippet_id,
                        owner,
                        request.title,
                        request.language,
                        request.code,
                    )
                except SnippetNotFoundError:
                    logger.warning("Snippet %s not found for owner %s", snippet_id, owner)
                    return _error(500, "Failed to update snippet")
                except PersistenceError:
                    logger.error("Update snippet error", exc_info=True)
                    return _error(500, "Failed to update snippet")
            else:
                try:
                    row = await asyncio.to_thread(
                        self.store.create_snippet,
                        owner,
                        request.title,
                        request.language,
                        request.code,
                    )
                except PersistenceError:
                    logger.error("Insert snippet error", exc_info=True)
                    return _error(500, "Failed to create snippet")
                snippet_id = row["id"]

            bundle = await self.generator.generate(request.code, request.language, request.reading_level)
            response = await self.sequencer.persist(bundle, snippet_id, owner)
            return HandlerResponse(status_code=200, body=response.model_dump(mode="json"))
        except Exception:
            logger.exception("Explain request failed, generating final fallback")
            return final_fallback(request)


def final_fallback(request: ExplainRequest | None) -> HandlerResponse:
    """Storage-independent response built from the last known request values."""
    code = request.code if request else FALLBACK_CODE
    language = request.language if request else FALLBACK_LANGUAGE
    reading_level = normalize_reading_level(request.reading_level if request else None)

    bundle = generate_heuristic_bundle(code, language, reading_level)
    response = shape_response(
        PersistState.NOT_PERSISTED,
        bundle,
        FALLBACK_ID,
        quiz_id_prefix=FALLBACK_ID,
    )
    return HandlerResponse(status_code=200, body=response.model_dump(mode="json"))
