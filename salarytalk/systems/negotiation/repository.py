"""
SalaryTalk — Offer Repository

The materialized view of every offer on the ledger. refresh() rebuilds the
snapshot from scratch; nothing is patched in place.

Failure policy is best-effort:
  - one record that cannot be fetched is logged and skipped, the rest of
    the refresh still lands
  - if the id list itself cannot be fetched, the previous snapshot stays
  - a malformed numeric field becomes 0 rather than failing the record
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog

from salarytalk.primitives.common import from_unix
from salarytalk.systems.negotiation.errors import NegotiationError, classify
from salarytalk.systems.negotiation.types import LedgerRecord, Offer

if TYPE_CHECKING:
    from salarytalk.clients.ledger import LedgerClient

logger = structlog.get_logger("salarytalk.systems.negotiation.repository")


def coerce_int(value: Any) -> int:
    """Convert a ledger numeric field to int; anything unparseable is 0."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip(), 0)
    except (TypeError, ValueError):
        pass
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0


def _safe_timestamp(value: Any) -> datetime:
    """Ledger timestamp as UTC; negative or out-of-range values become the epoch."""
    try:
        return from_unix(max(coerce_int(value), 0))
    except (OverflowError, ValueError, OSError):
        return from_unix(0)


def record_to_offer(offer_id: str, record: LedgerRecord) -> Offer:
    """Map a ledger record into an Offer. The cleartext only rides along once verified."""
    return Offer(
        id=offer_id,
        role=record.name,
        employer_offer_encrypted=record.encrypted_value,
        employer_offer_cleartext=coerce_int(record.decrypted_value) if record.is_verified else None,
        candidate_expectation=coerce_int(record.public_value2),
        created_at=_safe_timestamp(record.timestamp),
        creator=record.creator,
        is_match=record.is_match,
        is_verified=record.is_verified,
    )


class OfferRepository:
    """In-memory snapshot of all offers, rebuilt from the ledger on demand."""

    def __init__(self, ledger: LedgerClient) -> None:
        self._ledger = ledger
        self._snapshot: tuple[Offer, ...] = ()
        self._verified: dict[str, Offer] = {}
        self._refreshing = 0
        # Bumped by clear(); a refresh that started under an older generation is dropped
        self._generation = 0
        self._logger = logger.bind(system="negotiation", component="offer_repository")

    @property
    def snapshot(self) -> tuple[Offer, ...]:
        return self._snapshot

    @property
    def loading(self) -> bool:
        return self._refreshing > 0

    def get(self, offer_id: str) -> Offer | None:
        for offer in self._snapshot:
            if offer.id == offer_id:
                return offer
        return None

    def clear(self) -> None:
        self._generation += 1
        self._snapshot = ()
        self._verified.clear()

    async def refresh(self) -> Sequence[Offer]:
        self._refreshing += 1
        generation = self._generation
        try:
            try:
                ids = await self._ledger.list_offer_ids()
            except NegotiationError as e:
                self._logger.warning(
                    "offer_list_failed", error=str(e), kind=classify(e).value,
                )
                return self._snapshot

            offers: list[Offer] = []
            skipped = 0
            for offer_id in ids:
                try:
                    record = await self._ledger.get_offer(offer_id)
                    offer = record_to_offer(offer_id, record)
                except Exception as e:
                    skipped += 1
                    self._logger.error(
                        "offer_fetch_failed",
                        offer_id=offer_id,
                        error=str(e),
                        kind=classify(e).value,
                    )
                    continue
                offers.append(offer)

            if generation != self._generation:
                self._logger.debug("offers_refresh_discarded", count=len(offers))
                return self._snapshot

            self._snapshot = tuple(self._hold_verified(o) for o in offers)
            self._logger.debug("offers_refreshed", count=len(offers), skipped=skipped)
            return self._snapshot
        finally:
            self._refreshing -= 1

    def _hold_verified(self, offer: Offer) -> Offer:
        """Verification never reverts; keep the verified view if the ledger regresses."""
        if offer.is_verified:
            self._verified[offer.id] = offer
            return offer
        previous = self._verified.get(offer.id)
        if previous is not None:
            self._logger.warning("offer_verification_regressed", offer_id=offer.id)
            return previous
        return offer
