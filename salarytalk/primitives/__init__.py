"""
SalaryTalk — Shared Primitives
"""

from salarytalk.primitives.common import (
    STBaseModel,
    from_unix,
    new_id,
    utc_now,
)

__all__ = [
    "STBaseModel",
    "from_unix",
    "new_id",
    "utc_now",
]
