"""Verdict classification and result formatting."""

from __future__ import annotations

from models.audit import (
    AuditResult,
    AuditStatus,
    AutoFailOutcome,
    Classification,
    ScoreResult,
)

PASS_THRESHOLD = 60.0  # inclusive
STORED_DECIMALS = 2

# The audit table rejects exact-zero marks/percentage on failed rows, so an
# auto-failed audit is stored with these instead of its computed score.
AUTO_FAIL_MARKS = 0.1
AUTO_FAIL_PERCENTAGE = 1.0

_STATUS_FOR_RESULT = {
    AuditResult.PASS: AuditStatus.COMPLETED,
    AuditResult.FAILED: AuditStatus.PENDING,
}

_RESULT_LABELS = {
    AuditResult.PASS.value: "PASSED",
    AuditResult.FAILED.value: "FAILED",
}


def round_stored(value: float) -> float:
    """Round a score value the way the audit table stores it."""
    return round(value, STORED_DECIMALS)


def classify(score: ScoreResult, auto_fail: AutoFailOutcome) -> Classification:
    """Map a score and auto-fail outcome to a verdict and workflow status.

    Rules, first match wins:
        1. auto-fail triggered → ``failed`` with the sentinel marks/percentage
        2. percentage, at stored precision, ≥ 60 → ``pass``
        3. otherwise → ``failed``

    A failed audit is ``pending`` (open for corrective action); a passed one
    is ``completed``.
    """
    if auto_fail.triggered:
        return Classification(
            result=AuditResult.FAILED,
            status=_STATUS_FOR_RESULT[AuditResult.FAILED],
            marks=AUTO_FAIL_MARKS,
            percentage=AUTO_FAIL_PERCENTAGE,
        )

    # Threshold applies at stored precision: 59.99999999999999 is stored,
    # and judged, as 60.0.
    passed = round_stored(score.percentage) >= PASS_THRESHOLD
    result = AuditResult.PASS if passed else AuditResult.FAILED
    return Classification(
        result=result,
        status=_STATUS_FOR_RESULT[result],
        marks=score.earned_points,
        percentage=score.percentage,
    )


def format_result(raw: str | AuditResult | None) -> str:
    """Display label for a stored result: ``PASSED``/``FAILED``, legacy values upper-cased."""
    if isinstance(raw, AuditResult):
        raw = raw.value
    if not raw:
        return "DRAFT"
    return _RESULT_LABELS.get(raw, raw.upper())
