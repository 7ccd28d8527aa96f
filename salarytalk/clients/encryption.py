"""
SalaryTalk — Encryption Gateway

The encryption service turns a plaintext salary into a ciphertext plus an
input proof, and runs the decrypt-and-prove protocol that lets the ledger
check a claimed cleartext. The negotiation engine only sees the
EncryptionGateway protocol; the scheme behind it is not its concern.

LocalEncryptionGateway is the in-process implementation:
  - AES-GCM under a gateway-wide network key produces ciphertexts
  - Ed25519 signatures over the ciphertext, target context and owner are
    the input proofs
  - Ed25519 signatures over (handles, cleartexts) are the decryption proofs
  - a ciphertext handle is the hex ciphertext the ledger stores

Session lifecycle: initialize() once per connected identity before first
use. Initialization is idempotent and concurrent callers wait on the same
lock, so they converge on a single session. reset() drops the session on
disconnect; the network key survives so existing handles stay decryptable.
"""

from __future__ import annotations

import asyncio
import json
import os
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Protocol

import structlog
from cryptography.exceptions import InvalidSignature, InvalidTag
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from salarytalk.primitives.common import new_id
from salarytalk.systems.negotiation.errors import (
    DecryptionRejected,
    DecryptionUnavailable,
    EncryptionUnavailable,
)
from salarytalk.systems.negotiation.types import EncryptedInput

logger = structlog.get_logger("salarytalk.clients.encryption")

# Encrypted salaries are unsigned 64-bit integers
_PLAINTEXT_BYTES = 8
_NONCE_BYTES = 12

SubmitCallback = Callable[[list[int], str], Awaitable[Any]]
# handles -> approved?
DecryptApprover = Callable[[Sequence[str]], bool]


# ─── Protocol ─────────────────────────────────────────────────────


class EncryptionGateway(Protocol):
    @property
    def is_initialized(self) -> bool:
        ...

    async def initialize(self) -> None:
        ...

    def reset(self) -> None:
        ...

    async def encrypt(
        self, target_context: str, owner_identity: str, plaintext: int,
    ) -> EncryptedInput:
        """Raises EncryptionUnavailable if the session is not initialised."""
        ...

    async def verify_decryption(
        self,
        handles: Sequence[str],
        target_context: str,
        submit_callback: SubmitCallback,
    ) -> None:
        """
        Decrypt the handles, prove the result, and await
        submit_callback(cleartexts, proof) exactly once on success.

        Raises DecryptionRejected or DecryptionUnavailable.
        """
        ...


# ─── Local Gateway ────────────────────────────────────────────────


class LocalEncryptionGateway:
    """In-process encryption service backed by the cryptography package."""

    def __init__(
        self,
        *,
        network_key: bytes | None = None,
        signing_key: Ed25519PrivateKey | None = None,
        approver: DecryptApprover | None = None,
    ) -> None:
        self._aead = AESGCM(network_key or AESGCM.generate_key(bit_length=256))
        self._signing_key = signing_key or Ed25519PrivateKey.generate()
        self._public_key: Ed25519PublicKey = self._signing_key.public_key()
        self._approver = approver
        self._session_id: str | None = None
        self._init_lock = asyncio.Lock()
        self.initialization_count = 0
        self._logger = logger.bind(component="local_encryption_gateway")

    # ── Session ────────────────────────────────────────────────────

    @property
    def is_initialized(self) -> bool:
        return self._session_id is not None

    async def initialize(self) -> None:
        if self._session_id is not None:
            return
        async with self._init_lock:
            if self._session_id is not None:
                return
            # Yield once so concurrent callers queue on the lock
            await asyncio.sleep(0)
            self._session_id = new_id()
            self.initialization_count += 1
            self._logger.info("encryption_session_initialized", session_id=self._session_id)

    def reset(self) -> None:
        if self._session_id is not None:
            self._logger.info("encryption_session_reset", session_id=self._session_id)
        self._session_id = None

    # ── Encryption ─────────────────────────────────────────────────

    async def encrypt(
        self, target_context: str, owner_identity: str, plaintext: int,
    ) -> EncryptedInput:
        if not self.is_initialized:
            raise EncryptionUnavailable("Encryption session not initialised")
        if not 0 <= plaintext < 2 ** (8 * _PLAINTEXT_BYTES):
            raise ValueError(f"Plaintext out of range for euint64: {plaintext}")

        nonce = os.urandom(_NONCE_BYTES)
        sealed = nonce + self._aead.encrypt(
            nonce, plaintext.to_bytes(_PLAINTEXT_BYTES, "big"), None,
        )
        ciphertext = sealed.hex()
        proof = self._signing_key.sign(
            _input_payload(ciphertext, target_context, owner_identity),
        ).hex()
        return EncryptedInput(ciphertext=ciphertext, proof=proof)

    # ── Decryption ─────────────────────────────────────────────────

    async def verify_decryption(
        self,
        handles: Sequence[str],
        target_context: str,
        submit_callback: SubmitCallback,
    ) -> None:
        if not self.is_initialized:
            raise DecryptionUnavailable("Decryption session not initialised")
        if self._approver is not None and not self._approver(handles):
            raise DecryptionRejected("User rejected the decryption request")

        cleartexts = [self._decrypt_handle(h) for h in handles]
        proof = self._signing_key.sign(_decryption_payload(handles, cleartexts)).hex()

        self._logger.debug(
            "decryption_proof_ready",
            handles=len(handles),
            target_context=target_context,
        )
        await submit_callback(cleartexts, proof)

    def _decrypt_handle(self, handle: str) -> int:
        try:
            sealed = bytes.fromhex(handle)
            nonce, body = sealed[:_NONCE_BYTES], sealed[_NONCE_BYTES:]
            raw = self._aead.decrypt(nonce, body, None)
        except (ValueError, InvalidTag) as e:
            raise DecryptionRejected(f"Handle does not decrypt under the network key: {e}") from e
        return int.from_bytes(raw, "big")

    # ── Proof checks (used by the ledger) ──────────────────────────

    def verify_input_proof(
        self, ciphertext: str, proof: str, target_context: str, owner: str,
    ) -> bool:
        return self._check(proof, _input_payload(ciphertext, target_context, owner))

    def verify_decryption_proof(
        self, handles: Sequence[str], cleartexts: Sequence[int], proof: str,
    ) -> bool:
        return self._check(proof, _decryption_payload(handles, cleartexts))

    def _check(self, proof: str, payload: bytes) -> bool:
        try:
            self._public_key.verify(bytes.fromhex(proof), payload)
        except (ValueError, InvalidSignature):
            return False
        return True


def _input_payload(ciphertext: str, target_context: str, owner: str) -> bytes:
    return f"input|{ciphertext}|{target_context.lower()}|{owner.lower()}".encode()


def _decryption_payload(handles: Sequence[str], cleartexts: Sequence[int]) -> bytes:
    return json.dumps(
        {"handles": list(handles), "cleartexts": [int(c) for c in cleartexts]},
        sort_keys=True,
    ).encode()
