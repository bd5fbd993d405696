"""Typed answer handling for form fields.

Helpers shared by the validator, auto-fail detector and scoring engine:
what counts as an answer, how raw input is coerced per field kind, and how
an answer is matched against a field's options.
"""

from __future__ import annotations

from typing import Any

from models.form_schema import FieldDefinition, FieldKind, FieldOption, FormSchema

_TRUE_WORDS = frozenset({"true", "yes", "on", "1", "y"})
_FALSE_WORDS = frozenset({"false", "no", "off", "0", "n"})


def is_answered(value: Any) -> bool:
    """``None`` and ``""`` are unanswered; ``False`` and ``0`` are answers."""
    return value is not None and value != ""


def initial_answers(schema: FormSchema) -> dict[str, Any]:
    """Blank answer set for a fresh form: booleans start ``False``, the rest ``""``."""
    return {
        field.id: False if field.kind is FieldKind.BOOLEAN else ""
        for field in schema.fields
    }


def coerce_answer(field: FieldDefinition, raw: Any) -> Any:
    """Convert raw UI/API input into the value type the field kind expects.

    Unparseable input is returned unchanged rather than rejected; the
    validator only checks presence.
    """
    if raw is None:
        return None

    if field.kind is FieldKind.BOOLEAN:
        if isinstance(raw, bool):
            return raw
        word = str(raw).strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
        return raw if word else ""

    if field.kind is FieldKind.NUMBER:
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, (int, float)):
            return raw
        text = str(raw).strip()
        if not text:
            return ""
        try:
            number = float(text)
        except ValueError:
            return raw
        return int(number) if number.is_integer() and "." not in text else number

    return raw if isinstance(raw, str) else str(raw)


def coerce_answers(schema: FormSchema, raw_answers: dict[str, Any]) -> dict[str, Any]:
    """Coerce every known field's answer; keys not in the schema are dropped."""
    return {
        field.id: coerce_answer(field, raw_answers[field.id])
        for field in schema.fields
        if field.id in raw_answers
    }


def match_option(field: FieldDefinition, answer: Any) -> FieldOption | None:
    """Return the option the answer selects, or ``None``.

    Exact value match first, then a trimmed case-insensitive match.  Boolean
    answers select ``true``/``yes`` or ``false``/``no`` style options.
    """
    if not field.options or not is_answered(answer):
        return None

    if isinstance(answer, bool):
        words = _TRUE_WORDS if answer else _FALSE_WORDS
        for option in field.options:
            if option.value.strip().lower() in words:
                return option
        return None

    text = answer if isinstance(answer, str) else str(answer)
    for option in field.options:
        if option.value == text:
            return option

    folded = text.strip().casefold()
    for option in field.options:
        if option.value.strip().casefold() == folded:
            return option
    return None
