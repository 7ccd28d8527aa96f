"""
SalaryTalk — Session Context

The connected identity and its encryption session, as an explicit object
instead of ambient wallet state. connect() and disconnect() are the only
transitions; each one leaves the encryption session in a known state.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from salarytalk.clients.encryption import EncryptionGateway

logger = structlog.get_logger("salarytalk.systems.negotiation.session")


class SessionContext:
    """One connected identity and its encryption session."""

    def __init__(self, gateway: EncryptionGateway) -> None:
        self._gateway = gateway
        self._identity: str | None = None
        self._logger = logger.bind(system="negotiation", component="session")

    @property
    def identity(self) -> str | None:
        return self._identity

    @property
    def connected(self) -> bool:
        return self._identity is not None

    @property
    def encryption_ready(self) -> bool:
        return self._gateway.is_initialized

    async def connect(self, identity: str) -> bool:
        """
        Mark identity as connected and initialise the encryption session.

        Returns whether the encryption session is ready. A failed
        initialisation leaves the session connected but not ready; the
        next connect() retries it.
        """
        if not identity:
            raise ValueError("identity must be a non-empty address")

        if self._identity is not None and self._identity.lower() != identity.lower():
            # Switching accounts: the old session must not carry over
            self._gateway.reset()
        self._identity = identity

        try:
            await self._gateway.initialize()
        except Exception as e:
            self._logger.error("encryption_init_failed", identity=identity, error=str(e))
            return False

        self._logger.info("session_connected", identity=identity)
        return True

    def disconnect(self) -> None:
        if self._identity is None:
            return
        self._gateway.reset()
        self._logger.info("session_disconnected", identity=self._identity)
        self._identity = None
