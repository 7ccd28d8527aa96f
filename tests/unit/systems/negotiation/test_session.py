"""Tests for SessionContext and the error taxonomy."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from salarytalk.systems.negotiation.errors import (
    ConnectivityError,
    DecryptionRejected,
    DuplicateOfferError,
    ErrorKind,
    SignatureRejected,
    classify,
    is_user_rejection,
)
from salarytalk.systems.negotiation.session import SessionContext


def _gateway() -> MagicMock:
    gateway = MagicMock()
    gateway.initialize = AsyncMock()
    gateway.is_initialized = True
    return gateway


class TestSessionContext:
    @pytest.mark.asyncio
    async def test_connect_initialises_encryption(self):
        gateway = _gateway()
        session = SessionContext(gateway)
        assert session.connected is False

        assert await session.connect("0xAbC") is True
        assert session.identity == "0xAbC"
        assert session.connected is True
        gateway.initialize.assert_awaited_once()
        gateway.reset.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_identity_rejected(self):
        session = SessionContext(_gateway())
        with pytest.raises(ValueError):
            await session.connect("")

    @pytest.mark.asyncio
    async def test_switching_identity_resets_encryption(self):
        gateway = _gateway()
        session = SessionContext(gateway)
        await session.connect("0xabc")
        await session.connect("0xABC")
        gateway.reset.assert_not_called()

        await session.connect("0xdef")
        gateway.reset.assert_called_once()
        assert session.identity == "0xdef"

    @pytest.mark.asyncio
    async def test_init_failure_leaves_session_connected(self):
        gateway = _gateway()
        gateway.initialize.side_effect = RuntimeError("relayer down")
        gateway.is_initialized = False
        session = SessionContext(gateway)

        assert await session.connect("0xabc") is False
        assert session.connected is True
        assert session.encryption_ready is False

    @pytest.mark.asyncio
    async def test_disconnect(self):
        gateway = _gateway()
        session = SessionContext(gateway)
        session.disconnect()
        gateway.reset.assert_not_called()

        await session.connect("0xabc")
        session.disconnect()
        gateway.reset.assert_called_once()
        assert session.identity is None


class TestClassify:
    def test_known_kinds(self):
        assert classify(ConnectivityError("x")) is ErrorKind.CONNECTIVITY
        assert classify(DuplicateOfferError("offer-1")) is ErrorKind.DUPLICATE_ID
        assert classify(SignatureRejected("no")) is ErrorKind.SIGNATURE_REJECTED
        assert classify(DecryptionRejected("no")) is ErrorKind.DECRYPTION_REJECTED

    def test_unknown(self):
        assert classify(KeyError("x")) is ErrorKind.UNKNOWN

    def test_user_rejection(self):
        assert is_user_rejection(ErrorKind.SIGNATURE_REJECTED)
        assert is_user_rejection(ErrorKind.DECRYPTION_REJECTED)
        assert not is_user_rejection(ErrorKind.CONNECTIVITY)
        assert not is_user_rejection(ErrorKind.UNKNOWN)
