"""Audit models — evaluation results and persisted audit records."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field, field_validator

from models.base import CamelModel


class AuditStatus(str, Enum):
    """Workflow state of an audit record."""

    DRAFT = "draft"
    PENDING = "pending"  # failed, open for corrective action
    COMPLETED = "completed"


class AuditResult(str, Enum):
    """Verdict of an evaluated audit."""

    PASS = "pass"
    FAILED = "failed"


class ScoreResult(CamelModel):
    earned_points: float = 0.0
    max_points: float = 0.0
    percentage: float = 0.0


class AutoFailOutcome(CamelModel):
    triggered: bool = False
    field_label: str | None = None
    reason: str | None = None


class Classification(CamelModel):
    """Verdict, workflow status and the score values to persist."""

    result: AuditResult
    status: AuditStatus
    marks: float
    percentage: float


class Evaluation(CamelModel):
    """Everything the pipeline computed for one answer set."""

    score: ScoreResult
    auto_fail: AutoFailOutcome
    classification: Classification


class AuditRecord(CamelModel):
    """One persisted form fill-out.

    ``status`` and ``result`` stay plain strings: older rows carry values
    such as ``in_progress``, ``done`` or ``passed`` that must still load.
    Writes go through :class:`NewAuditRecord` / :class:`AuditPatch`, which
    only accept the engine's enums.  The ``verification_*`` and
    ``corrective_action`` columns belong to the reviewer workflow and are
    read-only here.  ``form_title`` is joined from the form on listings.
    """

    id: int | str
    form_id: int | str
    user_id: str
    tenant_id: str | None = None
    status: str = AuditStatus.DRAFT.value
    result: str | None = None
    marks: float = 0.0
    percentage: float = 0.0
    comments: str | None = None
    answers: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    last_edit_at: datetime | None = None
    verification_status: str | None = None
    verified_by: str | None = None
    corrective_action: str | None = None
    form_title: str | None = None

    @field_validator("status", "result", mode="before")
    @classmethod
    def _enum_to_value(cls, value: Any) -> Any:
        return value.value if isinstance(value, Enum) else value


class NewAuditRecord(CamelModel):
    """Insert payload for a first submission."""

    form_id: int | str
    user_id: str
    tenant_id: str | None = None
    status: AuditStatus
    result: AuditResult
    marks: float
    percentage: float
    comments: str | None = None
    answers: dict[str, Any] = Field(default_factory=dict)


class AuditPatch(CamelModel):
    """Update payload for a resubmission. Identity and ``created_at`` are never patched."""

    status: AuditStatus
    result: AuditResult
    marks: float
    percentage: float
    comments: str | None = None
    answers: dict[str, Any] = Field(default_factory=dict)
    last_edit_at: datetime
