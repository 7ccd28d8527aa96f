"""
SalaryTalk — Offer Views

Pure derivations over a repository snapshot: aggregate stats, a user's own
offers, and the search/verified filter. None of these mutate their input
and all of them preserve the snapshot's order.
"""

from __future__ import annotations

from collections.abc import Sequence

from salarytalk.primitives.common import STBaseModel
from salarytalk.systems.negotiation.types import Offer, OfferStats


def compute_stats(offers: Sequence[Offer]) -> OfferStats:
    return OfferStats(
        total=len(offers),
        matches=sum(1 for o in offers if o.is_match),
        verified=sum(1 for o in offers if o.is_verified),
    )


def compute_history(offers: Sequence[Offer], identity: str | None) -> list[Offer]:
    """Offers created by identity (case-insensitive, e.g. checksummed addresses)."""
    if not identity:
        return []
    wanted = identity.lower()
    return [o for o in offers if o.creator.lower() == wanted]


def filter_offers(
    offers: Sequence[Offer],
    search_term: str = "",
    verified_only: bool = False,
) -> list[Offer]:
    term = search_term.lower()
    return [
        o
        for o in offers
        if term in o.role.lower() and (not verified_only or o.is_verified)
    ]


class OfferFilter(STBaseModel):
    """The presentation's filter inputs."""

    search_term: str = ""
    verified_only: bool = False

    def set_search_term(self, term: str) -> None:
        self.search_term = term

    def set_verified_only(self, verified_only: bool) -> None:
        self.verified_only = verified_only

    def apply(self, offers: Sequence[Offer]) -> list[Offer]:
        return filter_offers(offers, self.search_term, self.verified_only)
