"""Tests for configuration loading."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from salarytalk.config import LedgerConfig, SalaryTalkConfig, _deep_merge, load_config

_ENV_VARS = (
    "SALARYTALK_LEDGER__BASE_URL",
    "SALARYTALK_LEDGER__BACKEND",
    "SALARYTALK_LEDGER_API_KEY",
    "SALARYTALK_LEDGER__CONTRACT_ADDRESS",
    "SALARYTALK_LOGGING__LEVEL",
    "SALARYTALK_INSTANCE_ID",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    def test_defaults(self):
        config = load_config(None)
        assert config.ledger.backend == "memory"
        assert config.tracker.success_clear_s == 2.0
        assert config.tracker.error_clear_s == 3.0
        assert config.negotiation.duplicate_id_retries == 1
        assert config.negotiation.id_prefix == "offer-"

    def test_missing_file_falls_back_to_defaults(self, tmp_path):
        config = load_config(tmp_path / "absent.yaml")
        assert config.instance_id == "salarytalk-default"

    def test_target_context_falls_back_to_contract(self):
        config = SalaryTalkConfig(ledger={"contract_address": "0xC0"})
        assert config.target_context == "0xC0"

        config = SalaryTalkConfig(
            ledger={"contract_address": "0xC0"},
            encryption={"target_context": "0xE1"},
        )
        assert config.target_context == "0xE1"


class TestYaml:
    def test_yaml_overrides_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "instance_id: test-node\n"
            "ledger:\n"
            "  backend: http\n"
            "  base_url: http://relay:9000\n"
            "tracker:\n"
            "  error_clear_s: 5\n"
        )
        config = load_config(path)
        assert config.instance_id == "test-node"
        assert config.ledger.backend == "http"
        assert config.ledger.base_url == "http://relay:9000"
        # Untouched keys keep their defaults
        assert config.ledger.timeout_s == 30.0
        assert config.tracker.error_clear_s == 5.0
        assert config.tracker.success_clear_s == 2.0

    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("ledger:\n  base_url: http://from-yaml\n")
        monkeypatch.setenv("SALARYTALK_LEDGER__BASE_URL", "http://from-env")
        monkeypatch.setenv("SALARYTALK_LEDGER_API_KEY", "  key  ")

        config = load_config(path)
        assert config.ledger.base_url == "http://from-env"
        assert config.ledger.api_key == "key"


class TestValidation:
    def test_unknown_backend(self):
        with pytest.raises(ValidationError):
            LedgerConfig(backend="postgres")

    def test_negative_retries(self):
        with pytest.raises(ValidationError):
            SalaryTalkConfig(negotiation={"duplicate_id_retries": -1})


def test_deep_merge_is_recursive():
    merged = _deep_merge({"a": {"b": 1, "c": 2}, "d": 3}, {"a": {"c": 4}})
    assert merged == {"a": {"b": 1, "c": 4}, "d": 3}


class TestCorsOrigins:
    def test_origins_come_from_server_config(self, tmp_path, monkeypatch):
        from salarytalk.main import cors_origins

        monkeypatch.delenv("CORS_ALLOWED_ORIGINS", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text("server:\n  cors_origins:\n    - https://app.example\n")

        assert cors_origins(load_config(path)) == ["https://app.example"]

    def test_extra_origins_from_env(self, monkeypatch):
        from salarytalk.main import cors_origins

        monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "https://a.example, ,https://b.example")
        config = SalaryTalkConfig(server={"cors_origins": ["http://localhost:3000"]})

        assert cors_origins(config) == [
            "http://localhost:3000",
            "https://a.example",
            "https://b.example",
        ]
