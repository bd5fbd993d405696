"""Required-field validation for answer sets."""

from __future__ import annotations

from typing import Any

from models.form_schema import FormSchema
from services.form_fields import is_answered


def validate(schema: FormSchema, answers: dict[str, Any]) -> dict[str, str]:
    """Return ``{field_id: "<label> is required"}`` for every missing required answer.

    An empty mapping means the answer set can be submitted.  Optional fields
    are never flagged, and an explicit ``False`` on a boolean field counts as
    answered.
    """
    errors: dict[str, str] = {}
    for field in schema.fields:
        if not field.required:
            continue
        if not is_answered(answers.get(field.id)):
            errors[field.id] = f"{field.label} is required"
    return errors
