"""Compliance records and the forms attached to them.

A compliance record groups the forms an auditor can fill out; the caller
picks a record, then one of its forms.
"""

from __future__ import annotations

from models.base import CamelModel


class ComplianceRecord(CamelModel):
    id: int | str
    name: str = ""
    description: str | None = None
    status: str | None = None


class FormSummary(CamelModel):
    """A form as listed under its compliance record; no fields, just the header."""

    id: int | str
    compliance_id: int | str | None = None
    title: str = ""
    description: str | None = None
    status: str | None = None
