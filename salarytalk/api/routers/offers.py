"""
SalaryTalk — Offers REST Router

Exposes the negotiation engine's display state and operations to the
frontend. The employer's cleartext is only ever serialized for offers the
ledger has verified.

Endpoints:
  POST /api/v1/session/connect       — connect an identity, load offers
  POST /api/v1/session/disconnect    — drop the session
  GET  /api/v1/offers                — offers filtered by search / verified_only
  GET  /api/v1/offers/filter         — the saved filter
  POST /api/v1/offers/filter         — update the saved filter
  GET  /api/v1/offers/stats          — total / matches / verified
  GET  /api/v1/offers/history        — the connected identity's own offers
  POST /api/v1/offers                — create an encrypted offer
  POST /api/v1/offers/refresh        — reload offers from the ledger
  POST /api/v1/offers/{id}/verify    — decrypt and verify on-chain
  GET  /api/v1/status                — latest transaction status
  POST /api/v1/system/availability   — FHE system liveness probe
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Request
from pydantic import BaseModel

from salarytalk.systems.negotiation.types import Offer, OperationOutcome
from salarytalk.systems.negotiation.views import filter_offers

logger = structlog.get_logger("salarytalk.api.offers")

router = APIRouter()


class ConnectRequest(BaseModel):
    identity: str


class CreateOfferRequest(BaseModel):
    role: str
    employer_offer: str
    candidate_expectation: str


class FilterRequest(BaseModel):
    search_term: str | None = None
    verified_only: bool | None = None


def _serialize_offer(offer: Offer) -> dict[str, Any]:
    return {
        "id": offer.id,
        "role": offer.role,
        "employer_offer_encrypted": offer.employer_offer_encrypted,
        "employer_offer_cleartext": (
            offer.employer_offer_cleartext if offer.is_verified else None
        ),
        "candidate_expectation": offer.candidate_expectation,
        "created_at": offer.created_at.isoformat(),
        "creator": offer.creator,
        "is_match": offer.is_match,
        "is_verified": offer.is_verified,
    }


def _serialize_outcome(outcome: OperationOutcome) -> dict[str, Any]:
    return {
        "status": "ok" if outcome.ok else "error",
        "data": {
            "message": outcome.message,
            "offer_id": outcome.offer_id,
            "error": outcome.error.value if outcome.error else None,
            "skipped": outcome.skipped,
        },
    }


# ─── Session ─────────────────────────────────────────────────────


@router.post("/api/v1/session/connect")
async def connect_session(body: ConnectRequest, request: Request) -> dict[str, Any]:
    engine = request.app.state.negotiation
    ready = await engine.connect(body.identity)
    return {
        "status": "ok",
        "data": {"identity": body.identity, "encryption_ready": ready},
    }


@router.post("/api/v1/session/disconnect")
async def disconnect_session(request: Request) -> dict[str, Any]:
    request.app.state.negotiation.disconnect()
    return {"status": "ok", "data": {"connected": False}}


# ─── Reads ───────────────────────────────────────────────────────


@router.get("/api/v1/offers")
async def list_offers(
    request: Request,
    search: str | None = None,
    verified_only: bool | None = None,
) -> dict[str, Any]:
    engine = request.app.state.negotiation
    # Query params override the saved filter for this read only
    saved = engine.filter
    offers = filter_offers(
        engine.offers,
        saved.search_term if search is None else search,
        saved.verified_only if verified_only is None else verified_only,
    )
    return {
        "status": "ok",
        "data": {
            "loading": engine.loading,
            "count": len(offers),
            "offers": [_serialize_offer(o) for o in offers],
        },
    }


@router.get("/api/v1/offers/filter")
async def get_filter(request: Request) -> dict[str, Any]:
    return {"status": "ok", "data": request.app.state.negotiation.filter.model_dump()}


@router.get("/api/v1/offers/stats")
async def get_stats(request: Request) -> dict[str, Any]:
    return {"status": "ok", "data": request.app.state.negotiation.stats.model_dump()}


@router.get("/api/v1/offers/history")
async def get_history(request: Request) -> dict[str, Any]:
    engine = request.app.state.negotiation
    if not engine.session.connected:
        return {"status": "unavailable", "error": "Not connected"}
    return {
        "status": "ok",
        "data": {"offers": [_serialize_offer(o) for o in engine.user_history]},
    }


@router.get("/api/v1/status")
async def get_status(request: Request) -> dict[str, Any]:
    status = request.app.state.negotiation.status
    return {
        "status": "ok",
        "data": {
            "state": status.state.value,
            "message": status.message,
            "visible": status.visible,
        },
    }


# ─── Operations ──────────────────────────────────────────────────


@router.post("/api/v1/offers")
async def create_offer(body: CreateOfferRequest, request: Request) -> dict[str, Any]:
    engine = request.app.state.negotiation
    engine.update_draft(
        role=body.role,
        employer_offer=body.employer_offer,
        candidate_expectation=body.candidate_expectation,
    )
    outcome = await engine.create_from_draft()
    return _serialize_outcome(outcome)


@router.post("/api/v1/offers/filter")
async def set_filter(body: FilterRequest, request: Request) -> dict[str, Any]:
    engine = request.app.state.negotiation
    if body.search_term is not None:
        engine.set_search_term(body.search_term)
    if body.verified_only is not None:
        engine.set_verified_only(body.verified_only)
    return {"status": "ok", "data": engine.filter.model_dump()}


@router.post("/api/v1/offers/refresh")
async def refresh_offers(request: Request) -> dict[str, Any]:
    engine = request.app.state.negotiation
    offers = await engine.refresh()
    return {"status": "ok", "data": {"count": len(offers)}}


@router.post("/api/v1/offers/{offer_id}/verify")
async def verify_offer(offer_id: str, request: Request) -> dict[str, Any]:
    outcome = await request.app.state.negotiation.request_verification(offer_id)
    return _serialize_outcome(outcome)


@router.post("/api/v1/system/availability")
async def check_availability(request: Request) -> dict[str, Any]:
    outcome = await request.app.state.negotiation.check_system_availability()
    if not outcome.ok:
        return {"status": "unavailable", "error": outcome.message}
    return _serialize_outcome(outcome)
