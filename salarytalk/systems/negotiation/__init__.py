"""
SalaryTalk — Negotiation

The offer lifecycle: encrypted employer offers, public candidate
expectations, ledger-decided matches, and on-chain decryption proofs.
"""

from salarytalk.systems.negotiation.errors import (
    ConnectivityError,
    DecryptionRejected,
    DecryptionUnavailable,
    DuplicateOfferError,
    EncryptionUnavailable,
    ErrorKind,
    NegotiationError,
    NotFoundError,
    SignatureRejected,
    classify,
)
from salarytalk.systems.negotiation.repository import OfferRepository
from salarytalk.systems.negotiation.service import NegotiationEngine
from salarytalk.systems.negotiation.session import SessionContext
from salarytalk.systems.negotiation.tracker import TransactionTracker
from salarytalk.systems.negotiation.types import (
    EncryptedInput,
    LedgerRecord,
    Offer,
    OfferDraft,
    OfferStats,
    OperationOutcome,
    Receipt,
    TransactionState,
    TransactionStatus,
)
from salarytalk.systems.negotiation.views import (
    OfferFilter,
    compute_history,
    compute_stats,
    filter_offers,
)

__all__ = [
    "NegotiationEngine",
    "OfferRepository",
    "SessionContext",
    "TransactionTracker",
    "Offer",
    "OfferDraft",
    "OfferStats",
    "OfferFilter",
    "OperationOutcome",
    "LedgerRecord",
    "Receipt",
    "EncryptedInput",
    "TransactionState",
    "TransactionStatus",
    "compute_stats",
    "compute_history",
    "filter_offers",
    "ErrorKind",
    "classify",
    "NegotiationError",
    "ConnectivityError",
    "NotFoundError",
    "DuplicateOfferError",
    "SignatureRejected",
    "EncryptionUnavailable",
    "DecryptionUnavailable",
    "DecryptionRejected",
]
