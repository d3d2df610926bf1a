from __future__ import annotations

import hashlib
import json
import secrets
import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from snippet_explainer.errors import PersistenceError, SnippetNotFoundError
from snippet_explainer.models import ContentBundle, QuizItem


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS snippets (
    id TEXT PRIMARY KEY,
    owner TEXT NOT NULL,
    title TEXT NOT NULL DEFAULT 'Untitled',
    language TEXT NOT NULL,
    code TEXT NOT NULL,
    status TEXT NOT NULL CHECK (status IN ('pending', 'ready')),
    explanation TEXT,
    mermaid_diagram TEXT,
    trace_table TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_snippets_owner ON snippets(owner);

CREATE TABLE IF NOT EXISTS quizzes (
    id TEXT PRIMARY KEY,
    snippet_id TEXT NOT NULL,
    position INTEGER NOT NULL,
    question TEXT NOT NULL,
    choices TEXT NOT NULL,
    answer TEXT NOT NULL,
    hint TEXT NOT NULL DEFAULT '',
    difficulty TEXT NOT NULL CHECK (difficulty IN ('easy', 'medium', 'hard')),
    FOREIGN KEY (snippet_id) REFERENCES snippets(id)
);

CREATE INDEX IF NOT EXISTS idx_quizzes_snippet ON quizzes(snippet_id);

CREATE TABLE IF NOT EXISTS api_tokens (
    token_hash TEXT PRIMARY KEY,
    owner TEXT NOT NULL,
    created_at TEXT NOT NULL
);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _snippet_row(row: sqlite3.Row) -> dict[str, Any]:
    data = dict(row)
    trace = data.get("trace_table")
    data["trace_table"] = json.loads(trace) if trace else None
    return data


def _quiz_row(row: sqlite3.Row) -> dict[str, Any]:
    data = dict(row)
    data["choices"] = json.loads(data["choices"])
    data.pop("position", None)
    return data


class Store:
    """SQLite tables for snippets, their quizzes, and API tokens.

    Every public method opens its own connection and commits on exit, so two
    calls never share a transaction. ``sqlite3.Error`` is re-raised as
    ``PersistenceError``.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _session(self, action: str) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise PersistenceError(f"{action} failed: {exc}") from exc
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            raise PersistenceError(f"{action} failed: {exc}") from exc
        finally:
            conn.close()

    def init_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._session("init_db") as conn:
            conn.executescript(SCHEMA_SQL)

    def create_snippet(self, owner: str, title: str | None, language: str, code: str) -> dict[str, Any]:
        """Insert a pending snippet owned by ``owner`` and return the stored row."""
        snippet_id = uuid.uuid4().hex
        now = _now()
        with self._session("create_snippet") as conn:
            conn.execute(
                """
                INSERT INTO snippets(id, owner, title, language, code, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, 'pending', ?, ?)
                """,
                (snippet_id, owner, title or "Untitled", language, code, now, now),
            )
            row = conn.execute("SELECT * FROM snippets WHERE id = ?", (snippet_id,)).fetchone()
        return _snippet_row(row)

    def mark_pending(
        self,
        snippet_id: str,
        owner: str,
        title: str | None,
        language: str,
        code: str,
    ) -> None:
        """Reset an owned snippet to ``pending`` with new source.

        Raises:
            SnippetNotFoundError: When no row matches both id and owner.
        """
        with self._session("mark_pending") as conn:
            cursor = conn.execute(
                """
                UPDATE snippets
                SET title = COALESCE(?, title), language = ?, code = ?, status = 'pending', updated_at = ?
                WHERE id = ? AND owner = ?
                """,
                (title, language, code, _now(), snippet_id, owner),
            )
            if cursor.rowcount == 0:
                raise SnippetNotFoundError(f"Snippet not found: {snippet_id}")

    def save_results(self, snippet_id: str, owner: str, bundle: ContentBundle) -> dict[str, Any]:
        """Write generated results, mark the snippet ``ready`` and return the row."""
        trace_json = json.dumps(bundle.trace.model_dump(mode="json", by_alias=True), ensure_ascii=False)
        with self._session("save_results") as conn:
            cursor = conn.execute(
                """
                UPDATE snippets
                SET explanation = ?, mermaid_diagram = ?, trace_table = ?, status = 'ready', updated_at = ?
                WHERE id = ? AND owner = ?
                """,
                (bundle.explanation, bundle.diagram, trace_json, _now(), snippet_id, owner),
            )
            if cursor.rowcount == 0:
                raise SnippetNotFoundError(f"Snippet not found: {snippet_id}")
            row = conn.execute("SELECT * FROM snippets WHERE id = ?", (snippet_id,)).fetchone()
        return _snippet_row(row)

    def delete_quizzes(self, snippet_id: str) -> int:
        with self._session("delete_quizzes") as conn:
            cursor = conn.execute("DELETE FROM quizzes WHERE snippet_id = ?", (snippet_id,))
            return cursor.rowcount

    def insert_quizzes(self, snippet_id: str, quizzes: list[QuizItem]) -> list[dict[str, Any]]:
        """Insert quizzes in order and return them with their new identifiers."""
        payload = [
            (
                uuid.uuid4().hex,
                snippet_id,
                position,
                quiz.question,
                json.dumps(quiz.choices, ensure_ascii=False),
                quiz.answer,
                quiz.hint,
                quiz.difficulty,
            )
            for position, quiz in enumerate(quizzes)
        ]
        with self._session("insert_quizzes") as conn:
            conn.executemany(
                """
                INSERT INTO quizzes(id, snippet_id, position, question, choices, answer, hint, difficulty)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                payload,
            )
            rows = conn.execute(
                "SELECT * FROM quizzes WHERE snippet_id = ? ORDER BY position",
                (snippet_id,),
            ).fetchall()
        return [_quiz_row(r) for r in rows]

    def get_snippet(self, snippet_id: str, owner: str) -> dict[str, Any] | None:
        with self._session("get_snippet") as conn:
            row = conn.execute(
                "SELECT * FROM snippets WHERE id = ? AND owner = ?",
                (snippet_id, owner),
            ).fetchone()
        return _snippet_row(row) if row else None

    def list_quizzes(self, snippet_id: str) -> list[dict[str, Any]]:
        with self._session("list_quizzes") as conn:
            rows = conn.execute(
                "SELECT * FROM quizzes WHERE snippet_id = ? ORDER BY position",
                (snippet_id,),
            ).fetchall()
        return [_quiz_row(r) for r in rows]

    def issue_token(self, owner: str) -> str:
        """Create a bearer token for ``owner``; only its hash is stored."""
        token = secrets.token_urlsafe(32)
        with self._session("issue_token") as conn:
            conn.execute(
                "INSERT INTO api_tokens(token_hash, owner, created_at) VALUES (?, ?, ?)",
                (_hash_token(token), owner, _now()),
            )
        return token

    def resolve_token(self, token: str) -> str | None:
        with self._session("resolve_token") as conn:
            row = conn.execute(
                "SELECT owner FROM api_tokens WHERE token_hash = ?",
                (_hash_token(token),),
            ).fetchone()
        return row["owner"] if row else None
