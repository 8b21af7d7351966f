"""Environment-driven settings and factories for the sync stack.

Environment variables:
  FHIR_BASE_URL           FHIR server base (default: public HAPI R4 server)
  FHIR_STORE_PATH         SQLite file for the local cache (default ':memory:')
  FHIR_TIMEOUT_S          Per-request timeout in seconds (default: transport default)
  FHIR_ACCESS_TOKEN       Static bearer token
  FHIR_CLIENT_ID          OAuth2 client id
  FHIR_CLIENT_SECRET      OAuth2 client secret (client credentials grant)
  FHIR_TOKEN_URL          OAuth2 token endpoint
  FHIR_PRIVATE_KEY_PATH   RSA private key PEM (JWT assertion grant)
  FHIR_LOG_LEVEL          Logging level for configure_logging (default INFO)
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping

from pydantic import BaseModel, Field

from .auth.base_signer import BearerTokenSigner, NoAuthSigner, RequestSigner
from .auth.client_credentials import ClientCredentialsSigner
from .auth.jwt_assertion import JWTAssertionSigner
from .fhir.fhir_client import FHIRClient
from .fhir.patient_gateway import PatientGateway
from .store.sqlite_store import SQLiteStore

DEFAULT_BASE_URL = "https://hapi.fhir.org/baseR4"
_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class Settings(BaseModel):
    """Connection, authentication and storage settings."""

    base_url: str = Field(default=DEFAULT_BASE_URL)
    store_path: str = Field(default=":memory:")
    timeout_s: float | None = Field(default=None, gt=0)
    access_token: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    token_url: str | None = None
    private_key_path: str | None = None
    log_level: str = Field(default="INFO")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        values = {
            "base_url":         env.get("FHIR_BASE_URL"),
            "store_path":       env.get("FHIR_STORE_PATH"),
            "timeout_s":        env.get("FHIR_TIMEOUT_S"),
            "access_token":     env.get("FHIR_ACCESS_TOKEN"),
            "client_id":        env.get("FHIR_CLIENT_ID"),
            "client_secret":    env.get("FHIR_CLIENT_SECRET"),
            "token_url":        env.get("FHIR_TOKEN_URL"),
            "private_key_path": env.get("FHIR_PRIVATE_KEY_PATH"),
            "log_level":        env.get("FHIR_LOG_LEVEL"),
        }
        # Unset and empty variables fall back to the field defaults.
        return cls(**{k: v for k, v in values.items() if v})


def build_signer(settings: Settings) -> RequestSigner:
    """Pick the signer implied by the configured credentials.

    Precedence: JWT assertion (private key path), client credentials
    (client secret), static bearer token, then no authentication.

    Raises:
        ValueError: if an OAuth2 grant is configured without client id or token URL.
    """
    if settings.private_key_path or settings.client_secret:
        if not settings.client_id or not settings.token_url:
            raise ValueError("FHIR_CLIENT_ID and FHIR_TOKEN_URL are required for OAuth2 signing")
        if settings.private_key_path:
            return JWTAssertionSigner(
                token_url=settings.token_url,
                client_id=settings.client_id,
                private_key_path=settings.private_key_path,
            )
        return ClientCredentialsSigner(
            token_url=settings.token_url,
            client_id=settings.client_id,
            client_secret=settings.client_secret,  # type: ignore[arg-type]
        )
    if settings.access_token:
        return BearerTokenSigner(settings.access_token)
    return NoAuthSigner()


def build_gateway(settings: Settings) -> PatientGateway:
    client = FHIRClient(
        settings.base_url,
        signer=build_signer(settings),
        timeout=settings.timeout_s,
    )
    return PatientGateway(client)


def build_store(settings: Settings) -> SQLiteStore:
    return SQLiteStore(settings.store_path)


def configure_logging(level: str | int = "INFO") -> None:
    """Send package logs to stderr at ``level``."""
    if isinstance(level, str):
        level = level.upper()
    logging.basicConfig(level=level, format=_LOG_FORMAT)
    logging.getLogger("fhir_patients").setLevel(level)
