"""
SalaryTalk — Negotiation Types

Data types for the offer lifecycle. Offers are immutable snapshots built
from ledger records; the repository replaces them wholesale on refresh.

Key design choices:
  - Pydantic models (frozen where the value is a snapshot)
  - The employer's cleartext only exists on an Offer once the ledger has
    marked it verified
  - is_match is whatever the ledger says it is; it is never recomputed here
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from pydantic import Field

from salarytalk.primitives.common import STBaseModel, utc_now
from salarytalk.systems.negotiation.errors import ErrorKind

# ─── Ledger Shapes ───────────────────────────────────────────────


class LedgerRecord(STBaseModel):
    """
    A raw offer record as the ledger returns it.

    Numeric fields are untyped on purpose: the ledger may hand back
    strings, big ints or garbage, and the repository converts them.
    """

    name: str = ""
    creator: str = ""
    description: str = ""
    encrypted_value: str = ""
    public_value1: Any = 0  # employer comparator hint (never surfaced)
    public_value2: Any = 0  # candidate expectation
    decrypted_value: Any = 0
    timestamp: Any = 0
    is_verified: bool = False
    is_match: bool = False


class Receipt(STBaseModel):
    """Confirmation that a ledger write has been mined."""

    tx_hash: str
    offer_id: str
    confirmed_at: datetime = Field(default_factory=utc_now)


class EncryptedInput(STBaseModel):
    """Ciphertext plus the proof that it was produced for a given context."""

    ciphertext: str
    proof: str


# ─── Offer ───────────────────────────────────────────────────────


class Offer(STBaseModel):
    """A salary offer as seen by the presentation layer."""

    model_config = {**STBaseModel.model_config, "frozen": True}

    id: str
    role: str
    employer_offer_encrypted: str
    employer_offer_cleartext: int | None = None
    candidate_expectation: int = 0
    created_at: datetime
    creator: str
    is_match: bool = False
    is_verified: bool = False


class OfferStats(STBaseModel):
    total: int = 0
    matches: int = 0
    verified: int = 0


class OfferDraft(STBaseModel):
    """The create-offer form as typed by the user."""

    role: str = ""
    employer_offer: str = ""
    candidate_expectation: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.role and self.employer_offer and self.candidate_expectation)


# ─── Transaction Status ──────────────────────────────────────────


class TransactionState(enum.StrEnum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class TransactionStatus(STBaseModel):
    """The single user-visible status of the latest mutating operation."""

    model_config = {**STBaseModel.model_config, "frozen": True}

    state: TransactionState = TransactionState.PENDING
    message: str = ""
    visible: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.state in (TransactionState.SUCCESS, TransactionState.ERROR)


IDLE_STATUS = TransactionStatus()


# ─── Operation Outcome ───────────────────────────────────────────


class OperationOutcome(STBaseModel):
    """Typed result of a NegotiationEngine operation."""

    ok: bool
    message: str = ""
    offer_id: str | None = None
    error: ErrorKind | None = None
    # Refused before starting (operation already in flight, or disconnected)
    skipped: bool = False

    @classmethod
    def refused(cls, reason: str) -> OperationOutcome:
        return cls(ok=False, message=reason, skipped=True)
