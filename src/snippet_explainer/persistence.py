"""Ordered, individually fault-tolerant writes of a generated bundle.

The sequence is: save results on the snippet, then replace its quizzes. Each
step that completes advances ``PersistState``; ``shape_response`` turns the
final state into the response body, so a failed write only costs identifier
or freshness guarantees, never content.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any

from snippet_explainer.errors import PersistenceError
from snippet_explainer.models import ContentBundle, ExplainResponse, QuizRecord, SnippetRecord
from snippet_explainer.store import Store

logger = logging.getLogger(__name__)

TEMP_QUIZ_PREFIX = "temp"


class PersistState(str, Enum):
    NOT_PERSISTED = "not_persisted"
    RESULT_PERSISTED = "result_persisted"
    FULLY_PERSISTED = "fully_persisted"


def synthesized_quizzes(
    bundle: ContentBundle,
    snippet_id: str,
    prefix: str = TEMP_QUIZ_PREFIX,
) -> list[QuizRecord]:
    """Attach ``<prefix>_<index>`` identifiers to in-memory quizzes."""
    return [
        QuizRecord(
            id=f"{prefix}_{index}",
            snippet_id=snippet_id,
            question=quiz.question,
            choices=list(quiz.choices),
            answer=quiz.answer,
            hint=quiz.hint,
            difficulty=quiz.difficulty,
        )
        for index, quiz in enumerate(bundle.quizzes)
    ]


def synthesized_snippet(bundle: ContentBundle, snippet_id: str) -> SnippetRecord:
    return SnippetRecord(
        id=snippet_id,
        status="ready",
        explanation=bundle.explanation,
        mermaid_diagram=bundle.diagram,
        trace_table=bundle.trace.model_dump(mode="json", by_alias=True),
    )


def shape_response(
    state: PersistState,
    bundle: ContentBundle,
    snippet_id: str,
    snippet_row: dict[str, Any] | None = None,
    quiz_rows: list[dict[str, Any]] | None = None,
    quiz_id_prefix: str = TEMP_QUIZ_PREFIX,
) -> ExplainResponse:
    """Map a persistence state to the response returned to the caller.

    Args:
        state: How far the write sequence got.
        bundle: The generated content, always available.
        snippet_id: Identifier resolved before generation.
        snippet_row: Stored snippet; required from ``RESULT_PERSISTED`` on.
        quiz_rows: Stored quizzes; required for ``FULLY_PERSISTED``.
        quiz_id_prefix: Prefix for synthesized quiz identifiers.
    """
    if state is PersistState.NOT_PERSISTED:
        return ExplainResponse(
            snippet=synthesized_snippet(bundle, snippet_id),
            quizzes=synthesized_quizzes(bundle, snippet_id, quiz_id_prefix),
        )

    if snippet_row is None:
        raise ValueError(f"{state.value} requires a stored snippet row")
    snippet = SnippetRecord.model_validate(snippet_row)

    if state is PersistState.RESULT_PERSISTED:
        return ExplainResponse(snippet=snippet, quizzes=synthesized_quizzes(bundle, snippet_id, quiz_id_prefix))

    if quiz_rows is None:
        raise ValueError(f"{state.value} requires stored quiz rows")
    return ExplainResponse(snippet=snippet, quizzes=[QuizRecord.model_validate(row) for row in quiz_rows])


class PersistenceSequencer:
    def __init__(self, store: Store):
        self.store = store

    async def persist(self, bundle: ContentBundle, snippet_id: str, owner: str) -> ExplainResponse:
        """Write ``bundle`` for the owner's snippet and return the best available response.

        Store failures are logged and reflected in the response shape; they are
        never raised.
        """
        state = PersistState.NOT_PERSISTED
        snippet_row: dict[str, Any] | None = None
        quiz_rows: list[dict[str, Any]] | None = None

        try:
            snippet_row = await asyncio.to_thread(self.store.save_results, snippet_id, owner, bundle)
            state = PersistState.RESULT_PERSISTED
        except PersistenceError:
            logger.error("Saving results for snippet %s failed", snippet_id, exc_info=True)

        if state is PersistState.RESULT_PERSISTED:
            try:
                await asyncio.to_thread(self.store.delete_quizzes, snippet_id)
                quiz_rows = await asyncio.to_thread(self.store.insert_quizzes, snippet_id, bundle.quizzes)
                state = PersistState.FULLY_PERSISTED
            except PersistenceError:
                logger.error("Replacing quizzes for snippet %s failed", snippet_id, exc_info=True)

        logger.debug("Snippet %s persistence finished in state %s", snippet_id, state.value)
        return shape_response(state, bundle, snippet_id, snippet_row, quiz_rows)
