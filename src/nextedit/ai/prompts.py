"""System prompts and structured-output schemas for the suggestion models."""

from __future__ import annotations

from typing import Any, Dict

from ..core.edits import CURSOR_MARKER, Classification, EditKind

CLASSIFICATION_SCHEMA: Dict[str, Any] = {
    "type": "json_schema",
    "json_schema": {
        "name": "ChangeClassification",
        "schema": {
            "type": "object",
            "properties": {
                "classification": {
                    "type": "string",
                    "enum": [item.value for item in Classification],
                    "description": "Kind of change needed at the cursor marker",
                }
            },
            "required": ["classification"],
            "additionalProperties": False,
        },
    },
}

EDIT_PROPOSAL_SCHEMA: Dict[str, Any] = {
    "type": "json_schema",
    "json_schema": {
        "name": "ComplexEditChanges",
        "schema": {
            "type": "object",
            "properties": {
                "changes": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "type": {"type": "string", "enum": [kind.value for kind in EditKind]},
                            "oldText": {
                                "type": "string",
                                "description": "Verbatim text to change (empty for INSERT)",
                            },
                            "newText": {"type": "string", "description": "Replacement or inserted text"},
                            "confidence": {"type": "number", "minimum": 0.0, "maximum": 1.0},
                        },
                        "required": ["type", "oldText", "newText", "confidence"],
                        "additionalProperties": False,
                    },
                }
            },
            "required": ["changes"],
            "additionalProperties": False,
        },
    },
}

COMPLETION_STOP_SEQUENCES = ("````", "```")


def classification_prompt(language: str) -> str:
    return (
        f"You review {language} source code and decide what kind of edit belongs at the "
        f"{CURSOR_MARKER} marker. Answer with exactly one label:\n"
        "- SIMPLE_INSERTION: text can be typed at the marker without touching anything else "
        "(finishing a name, a statement, or a block body).\n"
        "- COMPLEX_EDIT: something near the marker is wrong and must be rewritten "
        "(a misspelled call, a broken signature, a stray character).\n"
        "- NO_SUGGESTION: the code around the marker is already complete, or the marker sits "
        "inside an existing identifier.\n\n"
        "Examples:\n"
        f"'public void test{CURSOR_MARKER}' -> SIMPLE_INSERTION\n"
        f"'public void test() {{ {CURSOR_MARKER} }}' -> SIMPLE_INSERTION\n"
        f"'public HelloWo{CURSOR_MARKER}rld(String foo) {{' -> NO_SUGGESTION\n"
        f"'int x = String.parseInt{CURSOR_MARKER}' -> COMPLEX_EDIT\n"
        f"'public int addFo{CURSOR_MARKER}(int foo, int bar)' -> COMPLEX_EDIT\n"
        f"'public void test() {{ return; {CURSOR_MARKER} }}' -> NO_SUGGESTION"
    )


def completion_prompt(language: str) -> str:
    return (
        f"You are an experienced {language} developer. Continue the code at the {CURSOR_MARKER} "
        "marker.\n"
        "- Only produce the text that goes at the marker; everything before and after it is fixed.\n"
        "- Finish the current statement or logical unit and stop.\n"
        "- Do not repeat code that already follows the marker.\n"
        "- Reply with raw code only: no markdown fences, no explanations."
    )


def edit_proposal_prompt(language: str) -> str:
    return (
        f"You are an experienced {language} developer. The code around the {CURSOR_MARKER} marker "
        "contains a problem that cannot be fixed by typing at the marker alone.\n"
        "1. Find the concrete problem (typo, wrong method name, missing character, bad signature).\n"
        "2. For each fix emit one change:\n"
        "   - REPLACE: oldText is the complete faulty line(s) copied verbatim from the code, "
        "newText is the corrected line(s) with the same indentation.\n"
        "   - DELETE: oldText is the exact text to remove, newText is empty.\n"
        "   - INSERT: oldText is empty, newText is inserted at the marker.\n"
        f"3. Never include {CURSOR_MARKER} in oldText or newText.\n"
        "4. Keep the number of changes minimal and rate each with a confidence between 0 and 1."
    )


def hints_note(hints: str | None) -> str:
    if not hints:
        return ""
    return f"\n\nEditor hints: {hints}"


__all__ = [
    "CLASSIFICATION_SCHEMA",
    "EDIT_PROPOSAL_SCHEMA",
    "COMPLETION_STOP_SEQUENCES",
    "classification_prompt",
    "completion_prompt",
    "edit_proposal_prompt",
    "hints_note",
]
