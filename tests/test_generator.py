from __future__ import annotations

import asyncio
import json

import httpx
import pytest
from google.genai import errors as genai_errors

from conftest import FakeModels, fake_client_factory
from snippet_explainer.errors import UpstreamGenerationError
from snippet_explainer.generator import ModelGenerator, _strip_json_fence, mock_bundle, parse_bundle
from snippet_explainer.heuristic import CHILD_LOOP_CLAUSE, LOOP_DIAGRAM, generate_heuristic_bundle

LOOP_CODE = "for i in range(10): print(i)"


def _generate(settings, models: FakeModels | None, code: str = LOOP_CODE, reading_level: str = "12"):
    client_factory = fake_client_factory(models) if models is not None else None
    generator = ModelGenerator(settings, client_factory=client_factory)
    return asyncio.run(generator.generate(code, "python", reading_level))


def test_generate_given_no_credential_when_called_then_mock_bundle_is_returned(settings) -> None:
    # Given
    models = FakeModels(text="{}")

    # When
    bundle = _generate(settings, models)

    # Then
    assert "variables to store data and control structures" in bundle.explanation
    assert bundle.model_dump() == mock_bundle("python").model_dump()
    assert bundle.model_dump() != generate_heuristic_bundle(LOOP_CODE, "python", "12").model_dump()
    assert models.calls == []


def test_generate_given_upstream_500_when_called_then_heuristic_bundle_is_returned(keyed_settings) -> None:
    # Given
    error = genai_errors.ServerError(500, {"error": {"code": 500, "message": "boom", "status": "INTERNAL"}})
    models = FakeModels(error=error)

    # When
    bundle = _generate(keyed_settings, models)

    # Then
    assert CHILD_LOOP_CLAUSE in bundle.explanation
    assert bundle.diagram == LOOP_DIAGRAM
    assert bundle.model_dump() == generate_heuristic_bundle(LOOP_CODE, "python", "12").model_dump()
    assert len(models.calls) == 1


@pytest.mark.parametrize(
    "raw",
    [
        "not json at all",
        "[1, 2, 3]",
        '{"explanation": "only an explanation"}',
        "",
    ],
)
def test_generate_given_malformed_body_when_called_then_result_equals_direct_heuristic_call(
    keyed_settings,
    raw: str,
) -> None:
    # Given
    models = FakeModels(text=raw)

    # When
    bundle = _generate(keyed_settings, models, code="if x: y()", reading_level="pro")

    # Then
    assert bundle.model_dump() == generate_heuristic_bundle("if x: y()", "python", "pro").model_dump()


def test_generate_given_answer_outside_choices_when_called_then_heuristic_bundle_is_returned(
    keyed_settings,
    bundle_payload,
) -> None:
    # Given
    bundle_payload["quizzes"][2]["answer"] = "42"
    models = FakeModels(text=json.dumps(bundle_payload))

    # When
    bundle = _generate(keyed_settings, models)

    # Then
    assert bundle.model_dump() == generate_heuristic_bundle(LOOP_CODE, "python", "12").model_dump()


def test_generate_given_transport_failure_when_called_then_heuristic_bundle_is_returned(keyed_settings) -> None:
    # Given
    models = FakeModels(error=httpx.ConnectError("connection refused"))

    # When
    bundle = _generate(keyed_settings, models)

    # Then
    assert bundle.model_dump() == generate_heuristic_bundle(LOOP_CODE, "python", "12").model_dump()


def test_generate_given_fenced_valid_json_when_called_then_model_bundle_is_returned(
    keyed_settings,
    bundle_json,
) -> None:
    # Given
    models = FakeModels(text=f"```json\n{bundle_json}\n```")

    # When
    bundle = _generate(keyed_settings, models)

    # Then
    assert bundle.explanation == "The loop prints each number from 0 to 9."
    assert bundle.trace.steps[1].variables == {"i": 1}
    assert [quiz.answer for quiz in bundle.quizzes] == ["10", "0", "9"]


def test_generate_given_credential_when_called_then_request_carries_prompts_and_settings(
    keyed_settings,
    bundle_json,
) -> None:
    # Given
    models = FakeModels(text=bundle_json)

    # When
    _generate(keyed_settings, models, reading_level="15")

    # Then
    request = models.calls[0]
    assert request["model"] == "gemini-test"
    assert request["contents"] == f"Language: python\nCode:\n{LOOP_CODE}"
    config = request["config"]
    assert "clear explanation for teenagers" in config.system_instruction
    assert config.response_mime_type == "application/json"
    assert config.max_output_tokens == 2000


def test_parse_bundle_given_invalid_json_when_parsed_then_json_reason_is_reported() -> None:
    with pytest.raises(UpstreamGenerationError) as excinfo:
        parse_bundle("{not json")

    assert excinfo.value.reason == "json"


def test_parse_bundle_given_two_quizzes_when_parsed_then_schema_reason_is_reported(bundle_payload) -> None:
    # Given
    bundle_payload["quizzes"] = bundle_payload["quizzes"][:2]

    # When
    with pytest.raises(UpstreamGenerationError) as excinfo:
        parse_bundle(json.dumps(bundle_payload))

    # Then
    assert excinfo.value.reason == "schema"
    assert "schema validation" in str(excinfo.value)


def test_strip_json_fence_given_fenced_json_when_stripped_then_payload_is_returned() -> None:
    # Given
    raw = '```json\n{"explanation":"x"}\n```'

    # When
    stripped = _strip_json_fence(raw)

    # Then
    assert stripped == '{"explanation":"x"}'


def test_mock_bundle_given_language_when_built_then_quizzes_are_answerable() -> None:
    # When
    bundle = mock_bundle("rust")

    # Then
    assert bundle.explanation.startswith("This rust code demonstrates key programming concepts.")
    assert [quiz.difficulty for quiz in bundle.quizzes] == ["easy", "medium", "hard"]
    assert all(quiz.answer in quiz.choices for quiz in bundle.quizzes)


def test_parse_bundle_given_deeply_nested_json_when_parsed_then_json_reason_is_reported() -> None:
    # Given
    raw = "[" * 200000 + "]" * 200000

    # When
    with pytest.raises(UpstreamGenerationError) as excinfo:
        parse_bundle(raw)

    # Then
    assert excinfo.value.reason == "json"


def test_generate_given_deeply_nested_body_when_called_then_result_equals_direct_heuristic_call(
    keyed_settings,
) -> None:
    # Given
    models = FakeModels(text="[" * 200000 + "]" * 200000)

    # When
    bundle = _generate(keyed_settings, models)

    # Then
    assert bundle.model_dump() == generate_heuristic_bundle(LOOP_CODE, "python", "12").model_dump()
