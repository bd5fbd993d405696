"""Auto-fail detection — options that fail an audit outright."""

from __future__ import annotations

from typing import Any

from models.audit import AutoFailOutcome
from models.form_schema import FormSchema
from services.form_fields import match_option


def detect_auto_fail(schema: FormSchema, answers: dict[str, Any]) -> AutoFailOutcome:
    """Report the first field, in schema order, whose selected option is a fail option.

    When several fields trigger at once only the first one is reported, so
    the surfaced reason is deterministic for a given schema.
    """
    for field in schema.fields:
        if not field.options:
            continue
        option = match_option(field, answers.get(field.id))
        if option is not None and option.is_fail_option:
            return AutoFailOutcome(
                triggered=True,
                field_label=field.label,
                reason=f"{field.label}: '{option.value}' is an automatic failure",
            )
    return AutoFailOutcome(triggered=False)
