"""
SalaryTalk — Common Primitives

Shared base models and utilities used across all systems.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel
from ulid import ULID


def new_id() -> str:
    """Generate a new ULID string. Time-sortable, unique within the process."""
    return str(ULID())


def utc_now() -> datetime:
    """Current UTC time, timezone-aware."""
    return datetime.now(timezone.utc)


def from_unix(seconds: int) -> datetime:
    """UTC datetime from unix seconds (ledger block timestamps)."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


# ─── Base Models ──────────────────────────────────────────────────


class STBaseModel(BaseModel):
    """Base model for all SalaryTalk types."""

    model_config = {"populate_by_name": True, "from_attributes": True}
