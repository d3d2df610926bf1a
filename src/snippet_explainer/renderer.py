"""Render an explanation package into Markdown and JSON files."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any


def render_package(
    snippet: dict[str, Any],
    quizzes: list[dict[str, Any]],
    output_root: Path,
) -> Path:
    """Write a snippet's explanation package to disk and return the output directory.

    Args:
        snippet: Snippet payload from the store or a handler response.
        quizzes: Quiz records belonging to the snippet.
        output_root: Root directory where per-snippet folders are created.

    Returns:
        The snippet-specific directory containing rendered files.
    """
    target_dir = output_root / str(snippet["id"])
    target_dir.mkdir(parents=True, exist_ok=True)

    md_path = target_dir / "explanation.md"
    json_path = target_dir / "explanation.json"

    md_path.write_text(_render_markdown(snippet, quizzes), encoding="utf-8")

    json_payload = {
        "snippet": snippet,
        "quizzes": quizzes,
    }
    json_path.write_text(json.dumps(json_payload, indent=2, ensure_ascii=False), encoding="utf-8")

    return target_dir


def _render_markdown(snippet: dict[str, Any], quizzes: list[dict[str, Any]]) -> str:
    """Render a human-readable Markdown representation of a snippet package."""
    lines = [
        f"# {snippet.get('title') or 'Untitled'}",
        "",
        f"- Snippet ID: `{snippet['id']}`",
        f"- Status: `{snippet.get('status', 'ready')}`",
        "",
    ]

    if snippet.get("code"):
        lines.extend(
            [
                "## Code",
                "",
                f"```{snippet.get('language') or ''}",
                snippet["code"],
                "```",
                "",
            ]
        )

    lines.extend(
        [
            "## Explanation",
            "",
            snippet.get("explanation") or "",
            "",
            "## Flow",
            "",
            "```mermaid",
            snippet.get("mermaid_diagram") or "",
            "```",
            "",
            "## Trace",
            "",
        ]
    )
    lines.extend(_render_trace(snippet.get("trace_table") or {}))
    lines.extend(["", "## Quiz", ""])

    for idx, quiz in enumerate(quizzes, start=1):
        lines.append(f"### {idx}. {quiz['question']} ({quiz['difficulty']})")
        lines.append("")
        for choice in quiz["choices"]:
            marker = "x" if choice == quiz["answer"] else " "
            lines.append(f"- [{marker}] {choice}")
        if quiz.get("hint"):
            lines.extend(["", f"_Hint: {quiz['hint']}_"])
        lines.append("")

    return "\n".join(lines)


def _render_trace(trace: dict[str, Any]) -> list[str]:
    """Render trace steps as a Markdown table."""
    lines = [f"Input: `{trace.get('input', '')}`", ""]
    steps = trace.get("steps") or []
    if not steps:
        lines.append("_No steps recorded._")
        return lines

    lines.extend(["| line | variables |", "| --- | --- |"])
    for step in steps:
        variables = step.get("vars", step.get("variables", {}))
        rendered = ", ".join(f"{name}={json.dumps(value)}" for name, value in variables.items())
        lines.append(f"| {step['line']} | {_escape_cell(rendered)} |")
    return lines


def _escape_cell(value: str) -> str:
    return value.replace("|", "\\|")
