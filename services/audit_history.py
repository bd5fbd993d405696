"""Audit history — per-user listing, dashboard summary and display helpers.

The history and dashboard screens only render what comes out of here:
counts, averages, reference numbers and the tone each verdict/status is
shown in.
"""

from __future__ import annotations

from datetime import datetime

from models.audit import AuditRecord
from models.base import CamelModel
from services.audit_store import AuditStore
from services.result_classifier import format_result

UNKNOWN_FORM_TITLE = "Unknown Form"


class HistorySummary(CamelModel):
    total: int = 0
    passed: int = 0
    failed: int = 0
    average_percentage: int = 0


class HistoryItem(CamelModel):
    """An audit record decorated for list display."""

    record: AuditRecord
    reference: str
    form_title: str
    display_result: str
    result_tone: str
    status_label: str
    status_tone: str
    score_band: str
    last_activity_at: datetime
    is_edited: bool


async def list_history(
    store: AuditStore, user_id: str, tenant_id: str | None = None
) -> list[AuditRecord]:
    """The user's audits, newest first."""
    return await store.list_audits(user_id, tenant_id)


def summarize_history(records: list[AuditRecord]) -> HistorySummary:
    """Dashboard counts: passed/failed by verdict text, rounded mean percentage."""
    if not records:
        return HistorySummary()

    results = [(r.result or "").lower() for r in records]
    mean = sum(r.percentage for r in records) / len(records)
    return HistorySummary(
        total=len(records),
        passed=sum(1 for res in results if "pass" in res),
        failed=sum(1 for res in results if "fail" in res),
        average_percentage=int(mean + 0.5),
    )


def audit_reference(record_id: int | str) -> str:
    """Human-facing reference number, e.g. ``AR-0042``."""
    return f"AR-{str(record_id).zfill(4)}"


def last_activity_at(record: AuditRecord) -> datetime:
    return record.last_edit_at or record.created_at


def is_edited(record: AuditRecord) -> bool:
    return record.last_edit_at is not None and record.last_edit_at != record.created_at


def score_band(percentage: float) -> str:
    if percentage >= 80:
        return "high"
    if percentage >= 60:
        return "medium"
    return "low"


def result_tone(result: str | None) -> str:
    value = (result or "").lower()
    if value in ("pass", "passed"):
        return "success"
    if value in ("fail", "failed"):
        return "danger"
    return "neutral"


def status_tone(status: str) -> str:
    value = status.lower()
    if "complete" in value or "done" in value:
        return "success"
    if "progress" in value:
        return "warning"
    if "pending" in value or "draft" in value:
        return "info"
    if "failed" in value or "error" in value:
        return "danger"
    return "default"


def status_label(status: str) -> str:
    """``in_progress`` → ``In Progress``."""
    return " ".join(word[:1].upper() + word[1:] for word in status.replace("_", " ").split(" "))


def to_history_item(record: AuditRecord) -> HistoryItem:
    status = record.status
    return HistoryItem(
        record=record,
        reference=audit_reference(record.id),
        form_title=record.form_title or UNKNOWN_FORM_TITLE,
        display_result=format_result(record.result),
        result_tone=result_tone(record.result),
        status_label=status_label(status),
        status_tone=status_tone(status),
        score_band=score_band(record.percentage),
        last_activity_at=last_activity_at(record),
        is_edited=is_edited(record),
    )
