from __future__ import annotations

import json
import sys
import types
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from snippet_explainer.auth import TokenVerifier
from snippet_explainer.config import Settings
from snippet_explainer.errors import PersistenceError
from snippet_explainer.generator import ModelGenerator
from snippet_explainer.models import ContentBundle
from snippet_explainer.orchestrator import ExplainHandler
from snippet_explainer.store import Store


class FakeModels:
    """Stands in for ``client.aio.models`` and records each request."""

    def __init__(self, text: str | None = None, error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def generate_content(self, **kwargs: Any):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return types.SimpleNamespace(text=self.text)


def fake_client_factory(models: FakeModels):
    def factory(api_key: str):
        return types.SimpleNamespace(api_key=api_key, aio=types.SimpleNamespace(models=models))

    return factory


class FlakyStore(Store):
    """Store whose named operations raise ``PersistenceError``."""

    def __init__(self, db_path: Path, fail_on: set[str] | None = None) -> None:
        super().__init__(db_path)
        self.fail_on = set(fail_on or ())

    def _maybe_fail(self, name: str) -> None:
        if name in self.fail_on:
            raise PersistenceError(f"{name} failed: simulated outage")

    def save_results(self, *args: Any, **kwargs: Any):
        self._maybe_fail("save_results")
        return super().save_results(*args, **kwargs)

    def delete_quizzes(self, *args: Any, **kwargs: Any):
        self._maybe_fail("delete_quizzes")
        return super().delete_quizzes(*args, **kwargs)

    def insert_quizzes(self, *args: Any, **kwargs: Any):
        self._maybe_fail("insert_quizzes")
        return super().insert_quizzes(*args, **kwargs)

    def create_snippet(self, *args: Any, **kwargs: Any):
        self._maybe_fail("create_snippet")
        return super().create_snippet(*args, **kwargs)

    def mark_pending(self, *args: Any, **kwargs: Any):
        self._maybe_fail("mark_pending")
        return super().mark_pending(*args, **kwargs)


@pytest.fixture
def bundle_payload() -> dict[str, Any]:
    return {
        "explanation": "The loop prints each number from 0 to 9.",
        "mermaid": "graph TD\n    A[Start] --> B[Loop]\n    B --> C[End]",
        "trace": {
            "input": "none",
            "steps": [
                {"line": 1, "vars": {"i": 0}},
                {"line": 1, "vars": {"i": 1}},
            ],
        },
        "quizzes": [
            {
                "question": "How many numbers are printed?",
                "choices": ["9", "10", "11", "0"],
                "answer": "10",
                "hint": "range stops before its argument",
                "difficulty": "easy",
            },
            {
                "question": "What is the first value of i?",
                "choices": ["0", "1", "10", "None"],
                "answer": "0",
                "hint": "range starts at zero",
                "difficulty": "medium",
            },
            {
                "question": "What is printed last?",
                "choices": ["8", "9", "10", "nothing"],
                "answer": "9",
                "hint": "Predict the output",
                "difficulty": "hard",
            },
        ],
    }


@pytest.fixture
def bundle(bundle_payload) -> ContentBundle:
    return ContentBundle.model_validate(bundle_payload)


@pytest.fixture
def bundle_json(bundle_payload) -> str:
    return json.dumps(bundle_payload)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(gemini_api_key=None, model_name="gemini-test", db_path=tmp_path / "explainer.db")


@pytest.fixture
def keyed_settings(settings) -> Settings:
    return settings.model_copy(update={"gemini_api_key": "fake-key"})


@pytest.fixture
def store(settings) -> Store:
    store = Store(settings.db_path)
    store.init_db()
    return store


@pytest.fixture
def flaky_store(settings) -> FlakyStore:
    store = FlakyStore(settings.db_path)
    store.init_db()
    return store


@pytest.fixture
def alice_token(store) -> str:
    return store.issue_token("alice")


@pytest.fixture
def make_handler():
    """Build an ``ExplainHandler`` over a store with an optional fake model."""

    def build(store: Store, settings: Settings, models: FakeModels | None = None) -> ExplainHandler:
        client_factory = fake_client_factory(models) if models is not None else None
        return ExplainHandler(
            store=store,
            verifier=TokenVerifier(store),
            generator=ModelGenerator(settings, client_factory=client_factory),
        )

    return build
