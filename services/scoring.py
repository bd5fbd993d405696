"""Weighted scoring of an answer set.

Per field:

- option selected → ``points * weight`` earned, ``best option points * weight`` possible
- boolean answered without a matching option → ``1 * weight`` possible,
  earned only when the answer is ``True``
- anything else (free text, numbers, unanswered selects) is informational

Values are accumulated unrounded; rounding happens once, when the result is
persisted.
"""

from __future__ import annotations

from typing import Any

from models.audit import ScoreResult
from models.form_schema import FieldKind, FormSchema
from services.form_fields import coerce_answer, is_answered, match_option


def score(schema: FormSchema, answers: dict[str, Any]) -> ScoreResult:
    earned = 0.0
    possible = 0.0

    for field in schema.fields:
        if not field.is_scored:
            continue
        answer = answers.get(field.id)

        option = match_option(field, answer)
        if option is not None:
            best = max(o.points for o in field.options)
            earned += option.points * field.weight
            possible += best * field.weight
            continue

        if field.kind is FieldKind.BOOLEAN and is_answered(answer):
            possible += field.weight
            if coerce_answer(field, answer) is True:
                earned += field.weight

    return ScoreResult(
        earned_points=earned,
        max_points=possible,
        percentage=percentage_of(earned, possible),
    )


def percentage_of(earned: float, possible: float) -> float:
    """``100 * earned / possible``, or 0 when nothing was possible."""
    if possible <= 0:
        return 0.0
    return 100.0 * earned / possible
