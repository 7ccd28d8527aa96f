"""
SalaryTalk — Negotiation Engine

Drives offers through their lifecycle: created → matched/unmatched →
verified. Every mutating operation is a multi-step transaction across the
encryption gateway and the ledger, and ends in exactly one reported,
auto-expiring TransactionStatus.

Operations:
  create_offer              encrypt the employer figure, write the offer
  create_from_draft         create_offer from the create form's inputs
  request_verification      decrypt-and-prove, then verify on the ledger
  check_system_availability liveness probe, failures are only logged
  refresh                   rebuild the offer snapshot from the ledger

Guarantees:
  - an encryption failure never reaches the ledger
  - an already-verified offer never re-enters the decryption protocol
  - the ledger only sees a verification once a full proof exists
  - one in-flight operation per kind; a second call is refused, not queued
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import structlog

from salarytalk.config import NegotiationConfig, TrackerConfig
from salarytalk.primitives.common import new_id
from salarytalk.systems.negotiation.errors import (
    DuplicateOfferError,
    classify,
    is_user_rejection,
)
from salarytalk.systems.negotiation.repository import OfferRepository
from salarytalk.systems.negotiation.session import SessionContext
from salarytalk.systems.negotiation.tracker import TransactionTracker
from salarytalk.systems.negotiation.types import (
    Offer,
    OfferDraft,
    OfferStats,
    OperationOutcome,
    TransactionStatus,
)
from salarytalk.systems.negotiation.views import (
    OfferFilter,
    compute_history,
    compute_stats,
)

if TYPE_CHECKING:
    from salarytalk.clients.encryption import EncryptionGateway
    from salarytalk.clients.ledger import LedgerClient

logger = structlog.get_logger("salarytalk.systems.negotiation.service")

MSG_CREATING = "Creating encrypted salary offer..."
MSG_CREATED = "Offer created with FHE encryption!"
MSG_CREATE_FAILED = "Creation failed"
MSG_REJECTED = "Transaction rejected"
MSG_VERIFYING = "Decrypting and verifying on-chain..."
MSG_ALREADY_VERIFIED = "Already verified on-chain"
MSG_VERIFIED = "Decryption verified on-chain!"
MSG_DECRYPT_FAILED = "Decryption failed"
MSG_AVAILABLE = "FHE system available!"

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def parse_amount(raw: str) -> int:
    """Leading integer of a form field; anything else is 0."""
    m = _LEADING_INT.match(raw)
    return int(m.group(1)) if m else 0


class NegotiationEngine:
    """
    The offer lifecycle orchestrator for one session.

    Owns the session context, the offer repository, the transaction
    tracker and the presentation's form/filter state. Collaborators are
    injected; nothing here knows how encryption or the ledger work.
    """

    system_id: str = "negotiation"

    def __init__(
        self,
        ledger: LedgerClient,
        gateway: EncryptionGateway,
        *,
        target_context: str,
        config: NegotiationConfig | None = None,
        tracker_config: TrackerConfig | None = None,
    ) -> None:
        self._ledger = ledger
        self._gateway = gateway
        self._target_context = target_context
        self._config = config or NegotiationConfig()

        self._session = SessionContext(gateway)
        self._repository = OfferRepository(ledger)
        self._tracker = TransactionTracker(tracker_config)
        self._draft = OfferDraft()
        self._filter = OfferFilter()

        # Busy flags, one per mutating operation kind
        self._creating = False
        self._verifying = False

        self._logger = logger.bind(system="negotiation")

    # ─── Session ─────────────────────────────────────────────────────

    async def connect(self, identity: str) -> bool:
        """Connect identity, initialise encryption and load offers."""
        ready = await self._session.connect(identity)
        await self.refresh()
        return ready

    def disconnect(self) -> None:
        self._session.disconnect()
        self._repository.clear()
        self._tracker.clear()
        self._draft = OfferDraft()

    # ─── Display State ───────────────────────────────────────────────

    @property
    def session(self) -> SessionContext:
        return self._session

    @property
    def repository(self) -> OfferRepository:
        return self._repository

    @property
    def status(self) -> TransactionStatus:
        return self._tracker.status

    @property
    def offers(self) -> tuple[Offer, ...]:
        return self._repository.snapshot

    @property
    def loading(self) -> bool:
        return self._repository.loading

    @property
    def stats(self) -> OfferStats:
        return compute_stats(self.offers)

    @property
    def user_history(self) -> list[Offer]:
        return compute_history(self.offers, self._session.identity)

    @property
    def filtered_offers(self) -> list[Offer]:
        return self._filter.apply(self.offers)

    @property
    def filter(self) -> OfferFilter:
        return self._filter

    @property
    def draft(self) -> OfferDraft:
        return self._draft

    @property
    def is_creating(self) -> bool:
        return self._creating

    @property
    def is_verifying(self) -> bool:
        return self._verifying

    def set_search_term(self, term: str) -> None:
        self._filter.set_search_term(term)

    def set_verified_only(self, verified_only: bool) -> None:
        self._filter.set_verified_only(verified_only)

    def update_draft(self, **fields: str) -> OfferDraft:
        self._draft = self._draft.model_copy(update=fields)
        return self._draft

    # ─── Refresh ─────────────────────────────────────────────────────

    async def refresh(self) -> Sequence[Offer]:
        if not self._session.connected:
            self._logger.debug("refresh_suppressed_disconnected")
            return self._repository.snapshot
        return await self._repository.refresh()

    # ─── Create ──────────────────────────────────────────────────────

    async def create_from_draft(self, identity: str | None = None) -> OperationOutcome:
        draft = self._draft
        if not draft.is_complete:
            return OperationOutcome.refused("Offer form is incomplete")
        return await self.create_offer(
            role=draft.role,
            employer_value=parse_amount(draft.employer_offer),
            candidate_value=parse_amount(draft.candidate_expectation),
            identity=identity,
        )

    async def create_offer(
        self,
        role: str,
        employer_value: int,
        candidate_value: int,
        identity: str | None = None,
    ) -> OperationOutcome:
        identity = identity or self._session.identity
        if not self._session.connected or not identity:
            return OperationOutcome.refused("Not connected")
        if self._creating:
            return OperationOutcome.refused("Offer creation already in progress")

        self._creating = True
        try:
            return await self._create(role, employer_value, candidate_value, identity)
        finally:
            self._creating = False

    async def _create(
        self,
        role: str,
        employer_value: int,
        candidate_value: int,
        identity: str,
    ) -> OperationOutcome:
        self._tracker.pending(MSG_CREATING)
        attempts = self._config.duplicate_id_retries + 1

        for attempt in range(1, attempts + 1):
            offer_id = f"{self._config.id_prefix}{new_id()}"

            try:
                encrypted = await self._gateway.encrypt(
                    self._target_context, identity, employer_value,
                )
            except Exception as e:
                return self._create_failed(offer_id, e, stage="encrypt")

            try:
                receipt = await self._ledger.create_offer(
                    offer_id,
                    role,
                    encrypted.ciphertext,
                    encrypted.proof,
                    employer_value,
                    candidate_value,
                    self._config.offer_note,
                    identity,
                )
            except DuplicateOfferError as e:
                if attempt < attempts:
                    self._logger.warning("offer_id_collision", offer_id=offer_id, attempt=attempt)
                    continue
                return self._create_failed(offer_id, e, stage="ledger")
            except Exception as e:
                return self._create_failed(offer_id, e, stage="ledger")

            self._tracker.succeed(MSG_CREATED)
            self._logger.info(
                "offer_created", offer_id=offer_id, role=role, tx_hash=receipt.tx_hash,
            )
            await self.refresh()
            self._draft = OfferDraft()
            return OperationOutcome(ok=True, message=MSG_CREATED, offer_id=offer_id)

        # Unreachable: the final attempt always returns
        raise AssertionError("create loop exited without an outcome")

    def _create_failed(self, offer_id: str, exc: Exception, *, stage: str) -> OperationOutcome:
        kind = classify(exc)
        message = MSG_REJECTED if is_user_rejection(kind) else MSG_CREATE_FAILED
        self._tracker.fail(message)
        self._logger.warning(
            "offer_create_failed",
            offer_id=offer_id,
            stage=stage,
            kind=kind.value,
            error=str(exc),
        )
        return OperationOutcome(ok=False, message=message, offer_id=offer_id, error=kind)

    # ─── Verify ──────────────────────────────────────────────────────

    async def request_verification(
        self, offer_id: str, identity: str | None = None,
    ) -> OperationOutcome:
        identity = identity or self._session.identity
        if not self._session.connected or not identity:
            return OperationOutcome.refused("Not connected")
        if self._verifying:
            return OperationOutcome.refused("Verification already in progress")

        self._verifying = True
        try:
            return await self._verify(offer_id, identity)
        finally:
            self._verifying = False

    async def _verify(self, offer_id: str, identity: str) -> OperationOutcome:
        self._tracker.pending(MSG_VERIFYING)

        try:
            record = await self._ledger.get_offer(offer_id)
            if record.is_verified:
                self._tracker.succeed(MSG_ALREADY_VERIFIED)
                await self.refresh()
                return OperationOutcome(ok=True, message=MSG_ALREADY_VERIFIED, offer_id=offer_id)

            handle = await self._ledger.get_encrypted_handle(offer_id)

            async def submit(cleartexts: list[int], proof: str) -> Any:
                return await self._ledger.submit_verification(offer_id, cleartexts, proof)

            await self._gateway.verify_decryption([handle], self._target_context, submit)
        except Exception as e:
            kind = classify(e)
            message = MSG_REJECTED if is_user_rejection(kind) else MSG_DECRYPT_FAILED
            self._tracker.fail(message)
            self._logger.warning(
                "offer_verification_failed",
                offer_id=offer_id,
                identity=identity,
                kind=kind.value,
                error=str(e),
            )
            return OperationOutcome(ok=False, message=message, offer_id=offer_id, error=kind)

        self._tracker.succeed(MSG_VERIFIED)
        self._logger.info("offer_verified", offer_id=offer_id, identity=identity)
        await self.refresh()
        return OperationOutcome(ok=True, message=MSG_VERIFIED, offer_id=offer_id)

    # ─── Availability ────────────────────────────────────────────────

    async def check_system_availability(self) -> OperationOutcome:
        """Best-effort probe; a failure is logged and never shown as an error."""
        try:
            available = await self._ledger.check_availability()
        except Exception as e:
            kind = classify(e)
            self._logger.warning("availability_check_failed", kind=kind.value, error=str(e))
            return OperationOutcome(ok=False, message=str(e), error=kind)

        if not available:
            self._logger.warning("availability_check_failed", reason="ledger reported unavailable")
            return OperationOutcome(ok=False, message="FHE system unavailable")

        self._tracker.succeed(MSG_AVAILABLE)
        return OperationOutcome(ok=True, message=MSG_AVAILABLE)

    # ─── Health ──────────────────────────────────────────────────────

    async def health(self) -> dict[str, Any]:
        stats = self.stats
        return {
            "status": "healthy" if self._session.connected else "disconnected",
            "identity": self._session.identity,
            "encryption_ready": self._session.encryption_ready,
            "offers": stats.total,
            "creating": self._creating,
            "verifying": self._verifying,
        }
