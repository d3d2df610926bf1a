"""Typer-based CLI for running and inspecting snippet explanations locally."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import typer

from snippet_explainer.config import DEFAULT_DB_PATH, Settings
from snippet_explainer.errors import PersistenceError
from snippet_explainer.models import READING_LEVELS
from snippet_explainer.orchestrator import ExplainHandler
from snippet_explainer.renderer import render_package
from snippet_explainer.store import Store

app = typer.Typer(add_completion=False, help="snippet-explainer: beginner explanations, diagrams and quizzes for code")

DEFAULT_OUTPUT_ROOT = Path("explanations")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _settings(db_path: Path, model_name: str | None) -> Settings:
    settings = Settings.from_env()
    update: dict[str, object] = {"db_path": db_path}
    if model_name:
        update["model_name"] = model_name
    return settings.model_copy(update=update)


@app.command("init-db")
def init_db(
    db_path: Path = typer.Option(DEFAULT_DB_PATH, "--db", help="SQLite database path"),
) -> None:
    """Initialize the SQLite database schema."""
    store = Store(db_path)
    store.init_db()
    typer.echo(f"DB initialized: {db_path}")


@app.command("issue-token")
def issue_token(
    owner: str = typer.Argument(..., help="Owner identity the token authenticates"),
    db_path: Path = typer.Option(DEFAULT_DB_PATH, "--db", help="SQLite database path"),
) -> None:
    """Create a bearer token for an owner and print it once."""
    store = Store(db_path)
    store.init_db()
    typer.echo(store.issue_token(owner))


@app.command("explain")
def explain(
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source file to explain"),
    language: str = typer.Option(..., "--language", "-l", help="Programming language of the source"),
    reading_level: str = typer.Option("cs1", "--reading-level", "-r", help="One of: 12, 15, cs1, pro"),
    token: str = typer.Option(..., "--token", envvar="EXPLAINER_TOKEN", help="Bearer token from issue-token"),
    title: str | None = typer.Option(None, help="Snippet title"),
    snippet_id: str | None = typer.Option(None, "--snippet-id", help="Regenerate an existing snippet"),
    db_path: Path = typer.Option(DEFAULT_DB_PATH, "--db", help="SQLite database path"),
    model_name: str | None = typer.Option(None, help="Gemini model name"),
    output_root: Path | None = typer.Option(None, help="Also render the package under this directory"),
) -> None:
    """Run one explain request end to end and print the response body."""
    if reading_level not in READING_LEVELS:
        raise typer.BadParameter(f"reading level must be one of {', '.join(READING_LEVELS)}")

    settings = _settings(db_path, model_name)
    store = Store(settings.db_path)
    store.init_db()
    handler = ExplainHandler.from_settings(settings, store)

    payload = {
        "snippet_id": snippet_id,
        "title": title,
        "language": language,
        "code": source.read_text(encoding="utf-8"),
        "reading_level": reading_level,
    }
    result = asyncio.run(handler.handle(f"Bearer {token}", payload))
    typer.echo(json.dumps(result.body, indent=2, ensure_ascii=False))

    if result.status_code != 200:
        raise typer.Exit(code=1)

    if output_root is not None:
        out_dir = render_package(result.body["snippet"], result.body["quizzes"], output_root=output_root)
        typer.echo(f"Rendered package to: {out_dir}")


@app.command("render")
def render(
    snippet_id: str = typer.Argument(..., help="Snippet ID from database"),
    owner: str = typer.Option(..., help="Owner of the snippet"),
    db_path: Path = typer.Option(DEFAULT_DB_PATH, "--db", help="SQLite database path"),
    output_root: Path = typer.Option(DEFAULT_OUTPUT_ROOT, help="Package output directory"),
) -> None:
    """Render a persisted snippet and its quizzes to Markdown and JSON."""
    if not db_path.exists():
        raise typer.BadParameter(f"Database not found: {db_path}", param_hint="--db")

    store = Store(db_path)
    try:
        snippet = store.get_snippet(snippet_id, owner)
        quizzes = store.list_quizzes(snippet_id) if snippet else []
    except PersistenceError as exc:
        raise typer.BadParameter(str(exc), param_hint="--db") from exc
    if not snippet:
        raise typer.BadParameter(f"Snippet not found: {snippet_id}")

    out_dir = render_package(snippet, quizzes, output_root=output_root)
    typer.echo(f"Rendered package to: {out_dir}")


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address"),
    port: int = typer.Option(8000, help="Bind port"),
    db_path: Path = typer.Option(DEFAULT_DB_PATH, "--db", help="SQLite database path"),
) -> None:
    """Serve the HTTP API with uvicorn."""
    import uvicorn

    from snippet_explainer.api import create_app

    settings = _settings(db_path, None)
    uvicorn.run(create_app(settings), host=host, port=port)


@app.command("doctor")
def doctor(
    db_path: Path = typer.Option(DEFAULT_DB_PATH, "--db", help="SQLite database path"),
) -> None:
    """Print local environment diagnostics used by the CLI."""
    settings = _settings(db_path, None)
    typer.echo(f"DB exists: {db_path.exists()} ({db_path})")
    typer.echo(f"GEMINI_API_KEY set: {settings.model_configured}")
    typer.echo(f"Model: {settings.model_name}")


if __name__ == "__main__":
    app()
