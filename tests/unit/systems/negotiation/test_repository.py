"""
Tests for the OfferRepository.

Covers:
  - best-effort refresh (one bad record is skipped, not fatal)
  - defensive numeric conversion
  - cleartext only on verified offers
  - verification monotonicity across refreshes
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from salarytalk.systems.negotiation.errors import ConnectivityError, NotFoundError
from salarytalk.systems.negotiation.repository import OfferRepository, coerce_int
from salarytalk.systems.negotiation.types import LedgerRecord


def _record(**overrides) -> LedgerRecord:
    defaults = {
        "name": "Engineer",
        "creator": "0xabc",
        "encrypted_value": "deadbeef",
        "public_value1": 100000,
        "public_value2": 100000,
        "decrypted_value": 0,
        "timestamp": 1_700_000_000,
        "is_verified": False,
        "is_match": True,
    }
    defaults.update(overrides)
    return LedgerRecord(**defaults)


def _mock_ledger(records: dict[str, LedgerRecord | Exception]) -> MagicMock:
    ledger = MagicMock()
    ledger.list_offer_ids = AsyncMock(return_value=list(records))

    async def get_offer(offer_id: str) -> LedgerRecord:
        value = records[offer_id]
        if isinstance(value, Exception):
            raise value
        return value

    ledger.get_offer = AsyncMock(side_effect=get_offer)
    return ledger


class TestCoerceInt:
    def test_plain_values(self):
        assert coerce_int(5) == 5
        assert coerce_int("100000") == 100000
        assert coerce_int(" 42 ") == 42
        assert coerce_int("0x10") == 16
        assert coerce_int(12.9) == 12

    def test_garbage_is_zero(self):
        assert coerce_int("not-a-number") == 0
        assert coerce_int(None) == 0
        assert coerce_int("") == 0
        assert coerce_int(float("nan")) == 0
        assert coerce_int(float("inf")) == 0


class TestRefresh:
    @pytest.mark.asyncio
    async def test_maps_records(self):
        repo = OfferRepository(_mock_ledger({"offer-1": _record()}))
        offers = await repo.refresh()

        assert len(offers) == 1
        offer = offers[0]
        assert offer.id == "offer-1"
        assert offer.role == "Engineer"
        assert offer.candidate_expectation == 100000
        assert offer.is_match is True
        assert offer.is_verified is False
        assert offer.employer_offer_cleartext is None
        assert offer.created_at == datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)

    @pytest.mark.asyncio
    async def test_one_failed_record_is_skipped(self):
        ledger = _mock_ledger({
            "a": _record(),
            "b": NotFoundError("b"),
            "c": _record(name="Designer"),
            "d": RuntimeError("decode error"),
        })
        repo = OfferRepository(ledger)
        offers = await repo.refresh()

        assert [o.id for o in offers] == ["a", "c"]
        assert ledger.get_offer.await_count == 4

    @pytest.mark.asyncio
    async def test_list_failure_keeps_previous_snapshot(self):
        ledger = _mock_ledger({"a": _record()})
        repo = OfferRepository(ledger)
        await repo.refresh()

        ledger.list_offer_ids.side_effect = ConnectivityError("node down")
        offers = await repo.refresh()
        assert [o.id for o in offers] == ["a"]
        assert repo.snapshot == offers

    @pytest.mark.asyncio
    async def test_malformed_numbers_default_to_zero(self):
        ledger = _mock_ledger({
            "a": _record(public_value2="lots", timestamp="yesterday"),
        })
        offers = await OfferRepository(ledger).refresh()
        assert offers[0].candidate_expectation == 0
        assert offers[0].created_at == datetime.fromtimestamp(0, tz=timezone.utc)

    @pytest.mark.asyncio
    async def test_out_of_range_timestamp_keeps_the_record(self):
        ledger = _mock_ledger({
            "a": _record(timestamp=10**20),
            "b": _record(),
        })
        offers = await OfferRepository(ledger).refresh()
        assert [o.id for o in offers] == ["a", "b"]
        assert offers[0].created_at == datetime.fromtimestamp(0, tz=timezone.utc)

    @pytest.mark.asyncio
    async def test_cleartext_hidden_until_verified(self):
        ledger = _mock_ledger({
            "hidden": _record(decrypted_value=99, is_verified=False),
            "shown": _record(decrypted_value="120000", is_verified=True),
        })
        offers = await OfferRepository(ledger).refresh()
        by_id = {o.id: o for o in offers}
        assert by_id["hidden"].employer_offer_cleartext is None
        assert by_id["shown"].employer_offer_cleartext == 120000

    @pytest.mark.asyncio
    async def test_repeated_refresh_is_idempotent(self):
        repo = OfferRepository(_mock_ledger({"a": _record(), "b": _record()}))
        first = await repo.refresh()
        second = await repo.refresh()
        assert first == second

    @pytest.mark.asyncio
    async def test_verification_never_reverts(self):
        records: dict[str, LedgerRecord | Exception] = {
            "a": _record(is_verified=True, decrypted_value=100000),
        }
        ledger = _mock_ledger(records)
        repo = OfferRepository(ledger)
        await repo.refresh()

        records["a"] = _record(is_verified=False)
        offers = await repo.refresh()
        assert offers[0].is_verified is True
        assert offers[0].employer_offer_cleartext == 100000


class TestSnapshot:
    @pytest.mark.asyncio
    async def test_get_and_clear(self):
        repo = OfferRepository(_mock_ledger({"a": _record()}))
        await repo.refresh()
        assert repo.get("a") is not None
        assert repo.get("missing") is None

        repo.clear()
        assert repo.snapshot == ()
        assert repo.loading is False

    @pytest.mark.asyncio
    async def test_refresh_in_flight_during_clear_is_discarded(self):
        release = asyncio.Event()
        ledger = _mock_ledger({"a": _record()})

        async def slow_get_offer(offer_id: str) -> LedgerRecord:
            await release.wait()
            return _record()

        ledger.get_offer = AsyncMock(side_effect=slow_get_offer)
        repo = OfferRepository(ledger)

        task = asyncio.create_task(repo.refresh())
        await asyncio.sleep(0)
        assert repo.loading is True

        repo.clear()
        release.set()
        result = await task

        assert result == ()
        assert repo.snapshot == ()
        assert repo.loading is False

        # The next refresh after the clear lands normally
        assert [o.id for o in await repo.refresh()] == ["a"]
