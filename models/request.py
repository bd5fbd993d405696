"""API request / response models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from models.audit import AutoFailOutcome, Classification, ScoreResult
from models.base import CamelModel
from models.form_schema import FormSchema
from services.audit_history import HistoryItem, HistorySummary


class FormResponse(CamelModel):
    """GET /api/forms/{form_id} — response body."""

    form_id: str
    schema_: FormSchema = Field(alias="schema")
    initial_answers: dict[str, Any]


class AnswersRequest(CamelModel):
    """Answers for evaluate / submit / resubmit."""

    answers: dict[str, Any] = Field(default_factory=dict)
    comments: str | None = None


class ResubmitRequest(AnswersRequest):
    """PUT /api/audits/{audit_id} — request body.

    ``expected_last_edit_at`` is the ``lastEditAt`` the client loaded; when
    sent, the update is rejected if someone else edited the audit since.
    Omit it to skip the check; send ``null`` for a never-edited audit.
    """

    expected_last_edit_at: datetime | None = None


class EvaluateResponse(CamelModel):
    """POST /api/forms/{form_id}/evaluate — response body."""

    valid: bool
    errors: dict[str, str] = Field(default_factory=dict)
    score: ScoreResult | None = None
    auto_fail: AutoFailOutcome | None = None
    classification: Classification | None = None
    display_result: str | None = None


class HistoryResponse(CamelModel):
    """GET /api/audits — response body."""

    summary: HistorySummary
    items: list[HistoryItem]
