"""Unit tests for environment settings and the factories built on them."""

from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError as SettingsError

from fhir_patients.auth.base_signer import BearerTokenSigner, NoAuthSigner
from fhir_patients.auth.client_credentials import ClientCredentialsSigner
from fhir_patients.auth.jwt_assertion import JWTAssertionSigner
from fhir_patients.config import (
    DEFAULT_BASE_URL,
    Settings,
    build_gateway,
    build_signer,
    build_store,
    configure_logging,
)
from fhir_patients.fhir.patient_gateway import PatientGateway
from fhir_patients.store.sqlite_store import SQLiteStore


class TestSettingsFromEnv:
    def test_defaults(self) -> None:
        settings = Settings.from_env({})
        assert settings.base_url == DEFAULT_BASE_URL
        assert settings.store_path == ":memory:"
        assert settings.timeout_s is None

    def test_reads_variables(self) -> None:
        settings = Settings.from_env({
            "FHIR_BASE_URL": "https://fhirtest.uhn.ca/baseDstu2",
            "FHIR_STORE_PATH": "/tmp/p.sqlite3",
            "FHIR_TIMEOUT_S": "12.5",
            "FHIR_LOG_LEVEL": "DEBUG",
        })
        assert settings.base_url == "https://fhirtest.uhn.ca/baseDstu2"
        assert settings.store_path == "/tmp/p.sqlite3"
        assert settings.timeout_s == 12.5
        assert settings.log_level == "DEBUG"

    def test_empty_values_use_defaults(self) -> None:
        assert Settings.from_env({"FHIR_BASE_URL": ""}).base_url == DEFAULT_BASE_URL

    def test_invalid_timeout(self) -> None:
        with pytest.raises(SettingsError):
            Settings.from_env({"FHIR_TIMEOUT_S": "-1"})

    def test_process_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FHIR_ACCESS_TOKEN", "env-token")
        assert Settings.from_env().access_token == "env-token"


class TestBuildSigner:
    def test_no_credentials(self) -> None:
        assert isinstance(build_signer(Settings()), NoAuthSigner)

    def test_static_token(self) -> None:
        signer = build_signer(Settings(access_token="tok"))
        assert isinstance(signer, BearerTokenSigner)
        assert signer.auth_headers() == {"Authorization": "Bearer tok"}

    def test_client_credentials(self) -> None:
        settings = Settings(client_id="id", client_secret="secret", token_url="https://auth/token")
        assert isinstance(build_signer(settings), ClientCredentialsSigner)

    def test_private_key_wins(self) -> None:
        settings = Settings(
            client_id="id",
            client_secret="secret",
            token_url="https://auth/token",
            private_key_path="/keys/private.pem",
            access_token="tok",
        )
        assert isinstance(build_signer(settings), JWTAssertionSigner)

    def test_oauth_needs_client_id_and_token_url(self) -> None:
        with pytest.raises(ValueError, match="FHIR_TOKEN_URL"):
            build_signer(Settings(client_secret="secret"))


class TestFactories:
    def test_build_gateway(self) -> None:
        assert isinstance(build_gateway(Settings(timeout_s=3)), PatientGateway)

    def test_build_store(self, tmp_path) -> None:
        store = build_store(Settings(store_path=str(tmp_path / "p.sqlite3")))
        try:
            assert isinstance(store, SQLiteStore)
            assert store.get("missing") is None
        finally:
            store.close()

    def test_configure_logging_accepts_lowercase(self) -> None:
        configure_logging("debug")
        assert logging.getLogger("fhir_patients").level == logging.DEBUG
        configure_logging(logging.WARNING)
        assert logging.getLogger("fhir_patients").level == logging.WARNING
