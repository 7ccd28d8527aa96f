"""
SalaryTalk — Negotiation Error Hierarchy

All exceptions raised by the ledger and encryption collaborators and
handled by the negotiation engine.

Namespace: salarytalk.systems.negotiation.errors

User-facing messages:
  SignatureRejected / DecryptionRejected  -> "Transaction rejected"
  everything else                         -> the operation's generic failure
"""

from __future__ import annotations

import enum


class NegotiationError(RuntimeError):
    """Base for all negotiation collaborator errors."""


class ConnectivityError(NegotiationError):
    """The ledger could not be reached."""


class NotFoundError(NegotiationError):
    """The referenced offer id is not known to the ledger."""

    def __init__(self, offer_id: str) -> None:
        super().__init__(f"Offer not found: {offer_id}")
        self.offer_id = offer_id


class DuplicateOfferError(NegotiationError):
    """The ledger already holds a record under this offer id."""

    def __init__(self, offer_id: str) -> None:
        super().__init__(f"Offer already exists: {offer_id}")
        self.offer_id = offer_id


class SignatureRejected(NegotiationError):
    """The connected identity declined to sign the transaction."""


class EncryptionUnavailable(NegotiationError):
    """The encryption session has not been initialised."""


class DecryptionUnavailable(NegotiationError):
    """The decryption service is not ready."""


class DecryptionRejected(NegotiationError):
    """The decrypt-and-prove protocol was refused or cancelled."""


class ErrorKind(enum.StrEnum):
    CONNECTIVITY = "connectivity"
    NOT_FOUND = "not_found"
    DUPLICATE_ID = "duplicate_id"
    SIGNATURE_REJECTED = "signature_rejected"
    ENCRYPTION_UNAVAILABLE = "encryption_unavailable"
    DECRYPTION_UNAVAILABLE = "decryption_unavailable"
    DECRYPTION_REJECTED = "decryption_rejected"
    UNKNOWN = "unknown"


def classify(exc: BaseException) -> ErrorKind:
    """Map an exception to its ErrorKind. Unrecognised exceptions are UNKNOWN."""
    match exc:
        case ConnectivityError():
            return ErrorKind.CONNECTIVITY
        case NotFoundError():
            return ErrorKind.NOT_FOUND
        case DuplicateOfferError():
            return ErrorKind.DUPLICATE_ID
        case SignatureRejected():
            return ErrorKind.SIGNATURE_REJECTED
        case EncryptionUnavailable():
            return ErrorKind.ENCRYPTION_UNAVAILABLE
        case DecryptionUnavailable():
            return ErrorKind.DECRYPTION_UNAVAILABLE
        case DecryptionRejected():
            return ErrorKind.DECRYPTION_REJECTED
        case _:
            return ErrorKind.UNKNOWN


def is_user_rejection(kind: ErrorKind) -> bool:
    """True when the failure was a deliberate cancellation by the user."""
    return kind in (ErrorKind.SIGNATURE_REJECTED, ErrorKind.DECRYPTION_REJECTED)
