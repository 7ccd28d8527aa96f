"""
SalaryTalk — Transaction Tracker

One user-visible status per session, describing the latest mutating
operation: idle → pending → (success | error) → idle.

Terminal states clear themselves after a fixed delay (2s for success,
3s for error). The tracker owns the timer: every new status cancels the
pending clear of the previous one, so a stale clear can never hide a
newer status.
"""

from __future__ import annotations

import asyncio

import structlog

from salarytalk.config import TrackerConfig
from salarytalk.systems.negotiation.types import (
    IDLE_STATUS,
    TransactionState,
    TransactionStatus,
)

logger = structlog.get_logger("salarytalk.systems.negotiation.tracker")


class TransactionTracker:
    """Explicit, timer-owning state machine behind the status toast."""

    def __init__(self, config: TrackerConfig | None = None) -> None:
        self._config = config or TrackerConfig()
        self._status: TransactionStatus = IDLE_STATUS
        self._clear_handle: asyncio.TimerHandle | None = None
        self._logger = logger.bind(system="negotiation", component="transaction_tracker")

    @property
    def status(self) -> TransactionStatus:
        return self._status

    @property
    def is_idle(self) -> bool:
        return not self._status.visible

    @property
    def has_pending_clear(self) -> bool:
        return self._clear_handle is not None

    def pending(self, message: str) -> None:
        self._set(TransactionState.PENDING, message, clear_after=None)

    def succeed(self, message: str) -> None:
        self._set(TransactionState.SUCCESS, message, clear_after=self._config.success_clear_s)

    def fail(self, message: str) -> None:
        self._set(TransactionState.ERROR, message, clear_after=self._config.error_clear_s)

    def clear(self) -> None:
        """Return to idle immediately and drop any scheduled clear."""
        self._cancel_clear()
        self._status = IDLE_STATUS

    def _set(self, state: TransactionState, message: str, clear_after: float | None) -> None:
        self._cancel_clear()
        self._status = TransactionStatus(state=state, message=message, visible=True)
        self._logger.debug("transaction_status", state=state.value, message=message)

        if clear_after is not None:
            loop = asyncio.get_running_loop()
            self._clear_handle = loop.call_later(clear_after, self._expire)

    def _expire(self) -> None:
        self._clear_handle = None
        self._status = IDLE_STATUS

    def _cancel_clear(self) -> None:
        if self._clear_handle is not None:
            self._clear_handle.cancel()
            self._clear_handle = None
