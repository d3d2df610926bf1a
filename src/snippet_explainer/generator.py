"""Model-backed content generation with the heuristic generator as its only fallback."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from typing import Any

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from pydantic import ValidationError

from snippet_explainer.config import Settings
from snippet_explainer.errors import UpstreamGenerationError
from snippet_explainer.heuristic import PROCESS_DIAGRAM, generate_heuristic_bundle
from snippet_explainer.models import ContentBundle
from snippet_explainer.prompting import build_system_prompt, build_user_prompt

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], Any]


def _default_client_factory(api_key: str) -> Any:
    return genai.Client(api_key=api_key)


def mock_bundle(language: str) -> ContentBundle:
    """Fixed development-mode bundle returned when no model credential is configured."""
    return ContentBundle.model_validate(
        {
            "explanation": (
                f"This {language} code demonstrates key programming concepts. It uses variables to store data "
                "and control structures to manage program flow. The logic is structured to handle the main "
                "use case efficiently."
            ),
            "mermaid": PROCESS_DIAGRAM,
            "trace": {
                "input": "sample input",
                "steps": [
                    {"line": 1, "vars": {"x": 1, "y": 2}},
                    {"line": 2, "vars": {"x": 1, "y": 2, "result": 3}},
                ],
            },
            "quizzes": [
                {
                    "question": "What is the main purpose of this code?",
                    "choices": ["Process data", "Create UI", "Manage files", "Handle network"],
                    "answer": "Process data",
                    "hint": "Look at the main operations",
                    "difficulty": "easy",
                },
                {
                    "question": "Which concept is most important here?",
                    "choices": ["Variables", "Networks", "Graphics", "Audio"],
                    "answer": "Variables",
                    "hint": "Think about data storage",
                    "difficulty": "medium",
                },
                {
                    "question": "What would this code output with input 'test'?",
                    "choices": ["test", "TEST", "error", "null"],
                    "answer": "test",
                    "hint": "Trace through the logic",
                    "difficulty": "hard",
                },
            ],
        }
    )


def _strip_json_fence(text: str) -> str:
    """Remove a surrounding Markdown JSON code fence when present."""
    fenced = re.match(r"^```(?:json)?\s*(.*?)\s*```$", text, re.DOTALL)
    if fenced:
        return fenced.group(1).strip()
    return text.strip()


def parse_bundle(raw: str) -> ContentBundle:
    """Parse model output into a ``ContentBundle``.

    Raises:
        UpstreamGenerationError: ``json`` when the text is not JSON, ``schema``
            when it is JSON of the wrong shape.
    """
    candidate = _strip_json_fence(raw)
    try:
        data = json.loads(candidate)
    except (ValueError, RecursionError) as exc:
        raise UpstreamGenerationError("json", f"Model returned non-JSON output: {exc!r}") from exc

    if not isinstance(data, dict):
        raise UpstreamGenerationError("schema", f"Model returned {type(data).__name__}, expected an object")

    try:
        return ContentBundle.model_validate(data)
    except ValidationError as exc:
        raise UpstreamGenerationError("schema", f"Model output failed schema validation: {exc}") from exc


class ModelGenerator:
    """Produce a content bundle from the model, degrading to local generation."""

    def __init__(self, settings: Settings, client_factory: ClientFactory | None = None):
        self.settings = settings
        self.client_factory = client_factory or _default_client_factory

    async def generate(self, code: str, language: str, reading_level: str) -> ContentBundle:
        """Return a bundle for ``code``; never raises.

        Without an API key the fixed mock bundle is returned. Any model-side
        failure returns ``generate_heuristic_bundle`` for the same inputs.
        """
        if not self.settings.gemini_api_key:
            logger.info("No model credential configured; returning development mock bundle")
            return mock_bundle(language)

        try:
            raw = await self._request(code, language, reading_level)
            return parse_bundle(raw)
        except UpstreamGenerationError as exc:
            logger.warning("Model generation failed (%s), using heuristic fallback: %s", exc.reason, exc)
        except Exception:
            logger.exception("Unclassified model generation failure, using heuristic fallback")

        return generate_heuristic_bundle(code, language, reading_level)

    async def _request(self, code: str, language: str, reading_level: str) -> str:
        try:
            client = self.client_factory(self.settings.gemini_api_key)
            response = await client.aio.models.generate_content(
                model=self.settings.model_name,
                contents=build_user_prompt(language, code),
                config=genai_types.GenerateContentConfig(
                    system_instruction=build_system_prompt(reading_level),
                    temperature=self.settings.temperature,
                    max_output_tokens=self.settings.max_output_tokens,
                    response_mime_type="application/json",
                ),
            )
        except genai_errors.APIError as exc:
            raise UpstreamGenerationError(
                "status", f"Model service returned status {exc.code}", status_code=exc.code
            ) from exc
        except Exception as exc:
            raise UpstreamGenerationError("transport", f"Model request failed: {exc!r}") from exc

        text = (getattr(response, "text", None) or "").strip()
        if not text:
            raise UpstreamGenerationError("empty", "Model returned an empty response")
        return text
