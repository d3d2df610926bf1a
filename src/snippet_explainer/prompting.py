from __future__ import annotations

import json

REGISTER_BY_LEVEL = {
    "12": "simple, analogical explanation for 12-year-olds",
    "15": "clear explanation for teenagers",
    "cs1": "technical but beginner-friendly explanation",
    "pro": "professional, concise explanation",
}


def build_system_prompt(reading_level: str) -> str:
    register = REGISTER_BY_LEVEL.get(reading_level, REGISTER_BY_LEVEL["cs1"])
    output_contract = {
        "explanation": f"<{register}>",
        "mermaid": "graph TD\n    A[Start] --> B[...]",
        "trace": {"input": "sample", "steps": [{"line": 1, "vars": {"name": "value"}}]},
        "quizzes": [
            {
                "question": "",
                "choices": ["..", "..", "..", ".."],
                "answer": "...",
                "hint": "...",
                "difficulty": "easy|medium|hard",
            }
        ],
    }

    return (
        "You are a patient coding teacher. Output JSON only. Given code, produce:\n"
        f"{json.dumps(output_contract, indent=2, ensure_ascii=False)}\n"
        "Rules:\n"
        "1) Limit explanation to 6 short paragraphs.\n"
        "2) mermaid must be a Mermaid flowchart starting with 'graph TD'.\n"
        "3) trace steps follow execution order; line numbers start at 1.\n"
        "4) Provide exactly 3 quizzes (2 MCQ, 1 predict output).\n"
        "5) Every quiz has 4 unique choices and its answer is copied verbatim from the choices.\n"
    )


def build_user_prompt(language: str, code: str) -> str:
    return f"Language: {language}\nCode:\n{code}"
