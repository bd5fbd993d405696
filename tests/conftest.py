"""Shared pytest fixtures for audit engine tests.

Provides:
- ``site_safety_document``: a raw form document mixing every field kind
- ``site_safety``: the same document loaded into a ``FormSchema``
- ``good_answers``: a complete answer set scoring 100%
- ``clock``: controllable UTC clock
- ``store``: fresh ``InMemoryAuditStore`` seeded with ``site-1``
- ``manager``: ``AuditLifecycleManager`` over ``store`` and ``clock``
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from models.form_schema import FormSchema, load_form_schema
from services.audit_lifecycle import AuditLifecycleManager
from services.audit_store import InMemoryAuditStore

USER_ID = "u-auditor-001"
OTHER_USER_ID = "u-auditor-002"
TENANT_ID = "t-northside"
FORM_ID = "site-1"


class FakeClock:
    """Deterministic clock; call ``advance`` to move time forward."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


def make_schema(*fields: dict[str, Any], title: str = "Test form") -> FormSchema:
    return load_form_schema({"title": title, "fields": list(fields)})


@pytest.fixture
def site_safety_document() -> dict[str, Any]:
    return {
        "title": "Site Safety Walkthrough",
        "description": "Monthly depot inspection",
        "fields": [
            {"id": "site_name", "kind": "text", "label": "Site name", "required": True},
            {
                "id": "fire_exits",
                "kind": "select",
                "label": "Fire exits",
                "required": True,
                "weight": 2,
                "options": [
                    {"value": "Clear", "points": 10},
                    {"value": "Partially blocked", "points": 5},
                    {"value": "Blocked", "points": 0, "isFailOption": True},
                ],
            },
            {"id": "ppe_worn", "kind": "boolean", "label": "PPE worn", "required": True},
            {
                "id": "extinguisher",
                "type": "select",
                "label": "Extinguisher",
                "weightage": 3,
                "options": [
                    {"value": "Serviced", "points": 4},
                    {"value": "Expired", "points": 0, "is_fail_option": True},
                ],
            },
            {"id": "notes", "kind": "textarea", "label": "Notes"},
            {"id": "headcount", "kind": "number", "label": "Headcount", "placeholder": "0"},
        ],
    }


@pytest.fixture
def site_safety(site_safety_document) -> FormSchema:
    return load_form_schema(site_safety_document)


@pytest.fixture
def good_answers() -> dict[str, Any]:
    return {
        "site_name": "Depot 4",
        "fire_exits": "Clear",
        "ppe_worn": True,
        "extinguisher": "Serviced",
        "notes": "",
        "headcount": 12,
    }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def store(clock, site_safety_document) -> InMemoryAuditStore:
    s = InMemoryAuditStore(clock=clock)
    s.add_form(FORM_ID, site_safety_document)
    return s


@pytest.fixture
def manager(store, clock) -> AuditLifecycleManager:
    return AuditLifecycleManager(store, clock=clock)
