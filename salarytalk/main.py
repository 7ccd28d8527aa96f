"""
SalaryTalk — Application Entry Point

FastAPI application wiring the negotiation engine to its collaborators.

`uvicorn salarytalk.main:app`
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import Any

import structlog
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env file before any configuration is loaded
load_dotenv()

from salarytalk.api.routers.offers import router as offers_router  # noqa: E402
from salarytalk.clients.encryption import LocalEncryptionGateway  # noqa: E402
from salarytalk.clients.ledger import HttpLedgerClient  # noqa: E402
from salarytalk.clients.memory_ledger import InMemoryLedger  # noqa: E402
from salarytalk.config import SalaryTalkConfig, load_config  # noqa: E402
from salarytalk.systems.negotiation.service import NegotiationEngine  # noqa: E402
from salarytalk.telemetry.logging import setup_logging  # noqa: E402

logger = structlog.get_logger()

CONFIG_PATH = os.environ.get("SALARYTALK_CONFIG_PATH", "config/default.yaml")


def build_engine(config: SalaryTalkConfig) -> tuple[NegotiationEngine, Any]:
    """
    Construct the engine and its collaborators from config.

    Returns the engine and the ledger client (which may need closing).
    """
    gateway = LocalEncryptionGateway()

    ledger: Any
    if config.ledger.backend == "http":
        ledger = HttpLedgerClient(config.ledger)
    else:
        ledger = InMemoryLedger(
            contract_address=config.ledger.contract_address,
            verifier=gateway,
        )

    engine = NegotiationEngine(
        ledger,
        gateway,
        target_context=config.target_context,
        config=config.negotiation,
        tracker_config=config.tracker,
    )
    return engine, ledger


def cors_origins(config: SalaryTalkConfig) -> list[str]:
    """Origins from server.cors_origins plus CORS_ALLOWED_ORIGINS (comma-separated)."""
    origins = list(config.server.cors_origins)
    extra = os.environ.get("CORS_ALLOWED_ORIGINS", "")
    origins.extend(o.strip() for o in extra.split(",") if o.strip())
    return origins


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown sequence."""
    config = load_config(CONFIG_PATH)
    app.state.config = config

    setup_logging(config.logging, instance_id=config.instance_id)
    logger.info(
        "salarytalk_starting",
        instance_id=config.instance_id,
        config_path=CONFIG_PATH,
        ledger_backend=config.ledger.backend,
    )

    engine, ledger = build_engine(config)
    app.state.negotiation = engine
    app.state.ledger = ledger

    yield

    logger.info("salarytalk_shutting_down")
    engine.disconnect()
    if isinstance(ledger, HttpLedgerClient):
        await ledger.close()


app = FastAPI(
    title="SalaryTalk",
    description="Confidential salary negotiation — API surface",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS for frontend
_cors_origins = cors_origins(load_config(CONFIG_PATH))

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(offers_router)


@app.get("/health")
async def health() -> dict[str, Any]:
    engine: NegotiationEngine | None = getattr(app.state, "negotiation", None)
    if engine is None:
        return {"status": "starting"}
    return await engine.health()
