"""
SalaryTalk — Ledger Client

The ledger persists offer records and decides matches. The negotiation
engine talks to it through the LedgerClient protocol; this module also
ships the HTTP adapter for a ledger relay that fronts the negotiation
contract.

Relay API:
  GET  /offers                      — all offer ids
  GET  /offers/{id}                 — one offer record
  POST /offers                      — create an offer (waits for the receipt)
  GET  /offers/{id}/handle          — ciphertext handle for the stored offer
  POST /offers/{id}/verification    — submit cleartexts + decryption proof
  GET  /availability                — liveness probe, no side effects

Error mapping:
  transport failure / 5xx           → ConnectivityError
  404                               → NotFoundError
  409                               → DuplicateOfferError
  4xx with code "user_rejected"     → SignatureRejected
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Protocol

import httpx
import structlog

from salarytalk.systems.negotiation.errors import (
    ConnectivityError,
    DuplicateOfferError,
    NegotiationError,
    NotFoundError,
    SignatureRejected,
)
from salarytalk.systems.negotiation.types import LedgerRecord, Receipt

if TYPE_CHECKING:
    from salarytalk.config import LedgerConfig

logger = structlog.get_logger("salarytalk.clients.ledger")


# ─── Protocol ─────────────────────────────────────────────────────


class LedgerClient(Protocol):
    """Read/write access to persisted offer records."""

    async def list_offer_ids(self) -> Sequence[str]:
        """All known offer ids. Raises ConnectivityError if unreachable."""
        ...

    async def get_offer(self, offer_id: str) -> LedgerRecord:
        """Raises NotFoundError if the id is unknown."""
        ...

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
        """
        Write a new offer and wait for confirmation.

        The ledger computes and stores the match state itself. Once the
        receipt is returned the offer is visible to get_offer/list_offer_ids.
        """
        ...

    async def get_encrypted_handle(self, offer_id: str) -> str:
        ...

    async def submit_verification(
        self,
        offer_id: str,
        cleartexts: Sequence[int],
        proof: str,
    ) -> Receipt:
        ...

    async def check_availability(self) -> bool:
        ...


# ─── HTTP Adapter ─────────────────────────────────────────────────


class HttpLedgerClient:
    """
    Async HTTP client for the ledger relay.

    Lifecycle: construct → use → close().
    Timeouts are owned here (LedgerConfig.timeout_s); no retries.
    """

    def __init__(
        self,
        config: LedgerConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        headers = {"X-API-Key": config.api_key} if config.api_key else {}
        self._client = httpx.AsyncClient(
            base_url=config.base_url.rstrip("/"),
            timeout=httpx.Timeout(config.timeout_s, connect=5.0),
            headers=headers,
            transport=transport,
        )
        self._log = logger.bind(ledger_url=config.base_url)

    async def close(self) -> None:
        await self._client.aclose()

    # ── Reads ──────────────────────────────────────────────────────

    async def list_offer_ids(self) -> list[str]:
        data = await self._request("GET", "/offers")
        return [str(i) for i in data.get("ids", [])]

    async def get_offer(self, offer_id: str) -> LedgerRecord:
        data = await self._request("GET", f"/offers/{offer_id}", offer_id=offer_id)
        return LedgerRecord.model_validate(data)

    async def get_encrypted_handle(self, offer_id: str) -> str:
        data = await self._request("GET", f"/offers/{offer_id}/handle", offer_id=offer_id)
        return str(data["handle"])

    async def check_availability(self) -> bool:
        data = await self._request("GET", "/availability")
        return bool(data.get("available", False))

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
        payload = {
            "id": offer_id,
            "name": role,
            "encrypted_value": ciphertext,
            "input_proof": proof,
            "public_value1": employer_plain_hint,
            "public_value2": candidate_expectation,
            "description": note,
            "creator": creator,
        }
        data = await self._request("POST", "/offers", offer_id=offer_id, json=payload)
        receipt = Receipt(tx_hash=str(data["tx_hash"]), offer_id=offer_id)
        self._log.info("ledger_offer_written", offer_id=offer_id, tx_hash=receipt.tx_hash)
        return receipt

    async def submit_verification(
        self,
        offer_id: str,
        cleartexts: Sequence[int],
        proof: str,
    ) -> Receipt:
        payload = {"cleartexts": list(cleartexts), "decryption_proof": proof}
        data = await self._request(
            "POST", f"/offers/{offer_id}/verification", offer_id=offer_id, json=payload,
        )
        receipt = Receipt(tx_hash=str(data["tx_hash"]), offer_id=offer_id)
        self._log.info("ledger_verification_written", offer_id=offer_id, tx_hash=receipt.tx_hash)
        return receipt

    # ── Internal helpers ──────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        *,
        offer_id: str = "",
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            resp = await self._client.request(method, path, json=json)
        except httpx.TransportError as e:
            self._log.warning("ledger_unreachable", method=method, path=path, error=str(e))
            raise ConnectivityError(f"Ledger unreachable: {e}") from e

        if resp.status_code == 404:
            raise NotFoundError(offer_id or path)
        if resp.status_code == 409:
            raise DuplicateOfferError(offer_id)
        if resp.status_code >= 500:
            raise ConnectivityError(f"Ledger error {resp.status_code} on {method} {path}")
        if resp.status_code >= 400:
            body = _safe_json(resp)
            if body.get("code") == "user_rejected":
                raise SignatureRejected(body.get("message", "User rejected the request"))
            raise NegotiationError(
                f"Ledger rejected {method} {path}: {resp.status_code} {body.get('message', '')}".rstrip()
            )

        return _safe_json(resp)


def _safe_json(resp: httpx.Response) -> dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
