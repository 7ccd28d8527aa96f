"""
SalaryTalk — In-Process Ledger

A LedgerClient that keeps offer records in memory. Used for local
development (ledger.backend = "memory") and as the ledger in tests.

It behaves like the negotiation contract:
  - ids are unique; a second create under the same id is rejected
  - the ledger computes is_match itself via a pluggable match rule
  - input proofs and decryption proofs are checked by a ProofVerifier
  - verification is one-way; a verified record cannot be verified again
  - every write asks the signer first, and a declined signature aborts
    the write before anything is stored
"""

from __future__ import annotations

import asyncio
import hashlib
import time
from collections.abc import Callable, Sequence
from typing import Protocol

import structlog

from salarytalk.systems.negotiation.errors import (
    ConnectivityError,
    DuplicateOfferError,
    NegotiationError,
    NotFoundError,
    SignatureRejected,
)
from salarytalk.systems.negotiation.types import LedgerRecord, Receipt

logger = structlog.get_logger("salarytalk.clients.memory_ledger")

MatchRule = Callable[[int, int], bool]
# (action, offer_id) -> approved?
Signer = Callable[[str, str], bool]


class ProofVerifier(Protocol):
    def verify_input_proof(
        self, ciphertext: str, proof: str, target_context: str, owner: str,
    ) -> bool:
        ...

    def verify_decryption_proof(
        self, handles: Sequence[str], cleartexts: Sequence[int], proof: str,
    ) -> bool:
        ...


def exact_match(employer_value: int, candidate_value: int) -> bool:
    return employer_value == candidate_value


class InMemoryLedger:
    """Process-local ledger with contract-like rules."""

    def __init__(
        self,
        *,
        contract_address: str = "0x0000000000000000000000000000000000000000",
        match_rule: MatchRule = exact_match,
        verifier: ProofVerifier | None = None,
        signer: Signer | None = None,
    ) -> None:
        self.contract_address = contract_address
        self._match_rule = match_rule
        self._verifier = verifier
        self._signer = signer
        self._records: dict[str, LedgerRecord] = {}
        self._lock = asyncio.Lock()
        self._tx_count = 0
        # Set False to simulate an unreachable node
        self.online = True
        self._log = logger.bind(contract=contract_address)

    # ── Reads ──────────────────────────────────────────────────────

    async def list_offer_ids(self) -> list[str]:
        self._require_online()
        return list(self._records)

    async def get_offer(self, offer_id: str) -> LedgerRecord:
        self._require_online()
        record = self._records.get(offer_id)
        if record is None:
            raise NotFoundError(offer_id)
        return record.model_copy()

    async def get_encrypted_handle(self, offer_id: str) -> str:
        record = await self.get_offer(offer_id)
        return record.encrypted_value

    async def check_availability(self) -> bool:
        self._require_online()
        return True

    # ── Writes ─────────────────────────────────────────────────────

    async def create_offer(
        self,
        offer_id: str,
        role: str,
        ciphertext: str,
        proof: str,
        employer_plain_hint: int,
        candidate_expectation: int,
        note: str,
        creator: str,
    ) -> Receipt:
        self._require_online()
        self._require_signature("create_offer", offer_id)

        async with self._lock:
            if offer_id in self._records:
                raise DuplicateOfferError(offer_id)
            if self._verifier is not None and not self._verifier.verify_input_proof(
                ciphertext, proof, self.contract_address, creator,
            ):
                raise NegotiationError(f"Invalid input proof for {offer_id}")

            self._records[offer_id] = LedgerRecord(
                name=role,
                creator=creator,
                description=note,
                encrypted_value=ciphertext,
                public_value1=employer_plain_hint,
                public_value2=candidate_expectation,
                decrypted_value=0,
                timestamp=int(time.time()),
                is_verified=False,
                is_match=self._match_rule(employer_plain_hint, candidate_expectation),
            )
            receipt = self._receipt(offer_id)

        self._log.info("memory_ledger_offer_created", offer_id=offer_id, creator=creator)
        return receipt

    async def submit_verification(
        self,
        offer_id: str,
        cleartexts: Sequence[int],
        proof: str,
    ) -> Receipt:
        self._require_online()
        self._require_signature("verify_decryption", offer_id)

        async with self._lock:
            record = self._records.get(offer_id)
            if record is None:
                raise NotFoundError(offer_id)
            if record.is_verified:
                raise NegotiationError(f"Offer {offer_id} is already verified")
            if not cleartexts:
                raise NegotiationError("No cleartext supplied")
            if self._verifier is not None and not self._verifier.verify_decryption_proof(
                [record.encrypted_value], cleartexts, proof,
            ):
                raise NegotiationError(f"Invalid decryption proof for {offer_id}")

            self._records[offer_id] = record.model_copy(
                update={"decrypted_value": int(cleartexts[0]), "is_verified": True},
            )
            receipt = self._receipt(offer_id)

        self._log.info("memory_ledger_offer_verified", offer_id=offer_id)
        return receipt

    # ── Internal helpers ──────────────────────────────────────────

    def _require_online(self) -> None:
        if not self.online:
            raise ConnectivityError("Ledger node is offline")

    def _require_signature(self, action: str, offer_id: str) -> None:
        if self._signer is not None and not self._signer(action, offer_id):
            self._log.info("memory_ledger_signature_declined", action=action, offer_id=offer_id)
            raise SignatureRejected(f"User rejected {action} for {offer_id}")

    def _receipt(self, offer_id: str) -> Receipt:
        self._tx_count += 1
        digest = hashlib.sha256(f"{offer_id}:{self._tx_count}".encode()).hexdigest()
        return Receipt(tx_hash=f"0x{digest}", offer_id=offer_id)
