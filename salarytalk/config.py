"""
SalaryTalk — Configuration System

All configuration is Pydantic-validated and loaded from:
1. default.yaml (defaults)
2. Environment variables (overrides)

Every tunable parameter in the system lives here.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ─── Sub-configs ──────────────────────────────────────────────────


class ServerConfig(BaseModel):
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])


class LedgerConfig(BaseModel):
    backend: str = "memory"  # "memory" | "http"
    base_url: str = "http://localhost:8545"
    timeout_s: float = 30.0
    # Address of the negotiation contract; also the encryption target context
    contract_address: str = "0x0000000000000000000000000000000000000000"
    api_key: str = ""

    @model_validator(mode="after")
    def _validate_backend(self) -> LedgerConfig:
        if self.backend not in ("memory", "http"):
            raise ValueError(f"Unknown ledger backend: {self.backend!r}")
        return self


class EncryptionConfig(BaseModel):
    # Empty means "use the ledger contract address"
    target_context: str = ""


class TrackerConfig(BaseModel):
    success_clear_s: float = 2.0
    error_clear_s: float = 3.0


class NegotiationConfig(BaseModel):
    # How many times create_offer regenerates its id after a duplicate rejection
    duplicate_id_retries: int = Field(default=1, ge=0)
    offer_note: str = "Salary negotiation offer"
    id_prefix: str = "offer-"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "console"  # "console" | "json"


# ─── Root Configuration ──────────────────────────────────────────


class SalaryTalkConfig(BaseSettings):
    """
    Root configuration. Loads from YAML, overridable by env vars.
    """

    model_config = SettingsConfigDict(
        env_prefix="SALARYTALK_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    instance_id: str = "salarytalk-default"

    server: ServerConfig = Field(default_factory=ServerConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    encryption: EncryptionConfig = Field(default_factory=EncryptionConfig)
    tracker: TrackerConfig = Field(default_factory=TrackerConfig)
    negotiation: NegotiationConfig = Field(default_factory=NegotiationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def target_context(self) -> str:
        return self.encryption.target_context or self.ledger.contract_address


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: str | Path | None = None) -> SalaryTalkConfig:
    """
    Load configuration from YAML file, then apply environment variable overrides.
    """
    raw: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                raw = yaml.safe_load(f) or {}

    # Secrets and deployment-specific values from the environment
    overrides: dict[str, Any] = {}
    if ledger_url := os.environ.get("SALARYTALK_LEDGER__BASE_URL"):
        overrides.setdefault("ledger", {})["base_url"] = ledger_url
    if ledger_backend := os.environ.get("SALARYTALK_LEDGER__BACKEND"):
        overrides.setdefault("ledger", {})["backend"] = ledger_backend
    if ledger_key := os.environ.get("SALARYTALK_LEDGER_API_KEY"):
        overrides.setdefault("ledger", {})["api_key"] = ledger_key.strip()
    if contract := os.environ.get("SALARYTALK_LEDGER__CONTRACT_ADDRESS"):
        overrides.setdefault("ledger", {})["contract_address"] = contract
    if log_level := os.environ.get("SALARYTALK_LOGGING__LEVEL"):
        overrides.setdefault("logging", {})["level"] = log_level
    if instance_id := os.environ.get("SALARYTALK_INSTANCE_ID"):
        overrides["instance_id"] = instance_id

    return SalaryTalkConfig(**_deep_merge(raw, overrides))
