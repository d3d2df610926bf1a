"""Keyword-driven content generation used whenever the model path is unusable."""

from __future__ import annotations

import re
from dataclasses import dataclass

from snippet_explainer.models import ContentBundle, QuizItem, Trace, TraceStep

LOOP_RE = re.compile(r"\b(for|while|do)\b", re.IGNORECASE)
CONDITIONAL_RE = re.compile(r"\b(if|else|switch|case)\b", re.IGNORECASE)
FUNCTION_RE = re.compile(r"\b(function|def|func)\b", re.IGNORECASE)

LOOP_WITH_BRANCH_DIAGRAM = """graph TD
    A[Start] --> B[Initialize Variables]
    B --> C[Loop Condition]
    C -->|True| D{Check Condition}
    D -->|Met| E[Execute Action A]
    D -->|Not Met| F[Execute Action B]
    E --> G[Update Variables]
    F --> G
    G --> C
    C -->|False| H[End]"""

LOOP_DIAGRAM = """graph TD
    A[Start] --> B[Initialize Counter]
    B --> C[Check Loop Condition]
    C -->|True| D[Execute Loop Body]
    D --> E[Update Counter]
    E --> C
    C -->|False| F[End]"""

BRANCH_DIAGRAM = """graph TD
    A[Start] --> B[Check Condition]
    B -->|True| C[Execute Branch A]
    B -->|False| D[Execute Branch B]
    C --> E[End]
    D --> E"""

PROCESS_DIAGRAM = """graph TD
    A[Start] --> B[Process Input]
    B --> C[Apply Logic]
    C --> D[Generate Output]
    D --> E[End]"""

CHILD_LOOP_CLAUSE = (
    " Some steps say 'repeat this part until something happens' - that's like stirring until the mixture is smooth."
)
CHILD_CONDITIONAL_CLAUSE = (
    " Other steps say 'if this, then do that' - like checking if the cake is done before taking it out."
)
TEEN_LOOP_CLAUSE = " It uses loops to repeat certain operations efficiently."
TEEN_CONDITIONAL_CLAUSE = " Conditional statements help the program make decisions based on different scenarios."
TECHNICAL_LOOP_CLAUSE = " Iterative constructs handle repetitive operations with appropriate termination conditions."
TECHNICAL_CONDITIONAL_CLAUSE = " Conditional logic enables branching behavior based on runtime evaluation."
TECHNICAL_FUNCTION_CLAUSE = " Modular function design promotes code reusability and separation of concerns."


@dataclass(frozen=True)
class CodeSignals:
    has_loops: bool
    has_conditionals: bool
    has_functions: bool


def detect_signals(code: str) -> CodeSignals:
    """Scan code text for loop, conditional, and function keywords."""
    return CodeSignals(
        has_loops=bool(LOOP_RE.search(code)),
        has_conditionals=bool(CONDITIONAL_RE.search(code)),
        has_functions=bool(FUNCTION_RE.search(code)),
    )


def build_explanation(language: str, reading_level: str, signals: CodeSignals) -> str:
    if reading_level == "12":
        text = (
            f"This {language} code is like following a recipe! It takes some information (ingredients) "
            "and follows step-by-step instructions to create a result. The computer reads each line and "
            "does what it says, just like you would follow cooking instructions."
        )
        clauses = (CHILD_LOOP_CLAUSE, CHILD_CONDITIONAL_CLAUSE, None)
    elif reading_level == "15":
        text = (
            f"This {language} code demonstrates fundamental programming concepts. It processes input data "
            "through a series of logical operations to produce a desired output."
        )
        clauses = (TEEN_LOOP_CLAUSE, TEEN_CONDITIONAL_CLAUSE, None)
    else:
        text = (
            f"This {language} code implements a computational algorithm using standard programming constructs. "
            "The implementation follows best practices for readability and maintainability."
        )
        clauses = (TECHNICAL_LOOP_CLAUSE, TECHNICAL_CONDITIONAL_CLAUSE, TECHNICAL_FUNCTION_CLAUSE)

    loop_clause, conditional_clause, function_clause = clauses
    if signals.has_loops:
        text += loop_clause
    if signals.has_conditionals:
        text += conditional_clause
    if signals.has_functions and function_clause:
        text += function_clause
    return text


def select_diagram(has_loops: bool, has_conditionals: bool) -> str:
    """Pick the Mermaid template for a ``(loops, conditionals)`` pair."""
    if has_loops and has_conditionals:
        return LOOP_WITH_BRANCH_DIAGRAM
    if has_loops:
        return LOOP_DIAGRAM
    if has_conditionals:
        return BRANCH_DIAGRAM
    return PROCESS_DIAGRAM


def placeholder_trace() -> Trace:
    # Canned steps; this generator does not execute code.
    return Trace(
        input="sample_input",
        steps=[
            TraceStep(line=1, variables={"input": "sample_input"}),
            TraceStep(line=2, variables={"input": "sample_input", "processed": True}),
        ],
    )


def build_quizzes(signals: CodeSignals) -> list[QuizItem]:
    if signals.has_loops:
        concept_choices = ["Loops for repetition", "Database operations", "Network requests", "Graphics rendering"]
    elif signals.has_conditionals:
        concept_choices = ["Conditional logic", "File handling", "Memory management", "Thread synchronization"]
    else:
        concept_choices = ["Sequential processing", "Parallel computing", "Distributed systems", "Machine learning"]

    return [
        QuizItem(
            question="What is the main purpose of this code?",
            choices=[
                "Process data according to specific logic",
                "Create a user interface",
                "Manage database connections",
                "Handle file operations",
            ],
            answer="Process data according to specific logic",
            hint="Look at the overall structure and operations performed",
            difficulty="easy",
        ),
        QuizItem(
            question="Which programming concept is most evident in this code?",
            choices=concept_choices,
            answer=concept_choices[0],
            hint="Think about the fundamental programming constructs used",
            difficulty="medium",
        ),
        QuizItem(
            question="What should you consider before running this code?",
            choices=[
                "Input requirements and expected format",
                "Internet connection speed",
                "Screen resolution",
                "Audio settings",
            ],
            answer="Input requirements and expected format",
            hint="Consider what the code needs to work properly",
            difficulty="easy",
        ),
    ]


def generate_heuristic_bundle(code: str, language: str, reading_level: str) -> ContentBundle:
    """Build a complete bundle from keyword signals without any external calls.

    Args:
        code: Submitted source text.
        language: Language label used in the explanation prose.
        reading_level: ``12``, ``15``, ``cs1`` or ``pro``; anything else uses
            the technical register.

    Returns:
        A bundle with three quizzes whose answers are always among their choices.
    """
    signals = detect_signals(code)
    return ContentBundle(
        explanation=build_explanation(language, reading_level, signals),
        diagram=select_diagram(signals.has_loops, signals.has_conditionals),
        trace=placeholder_trace(),
        quizzes=build_quizzes(signals),
    )
