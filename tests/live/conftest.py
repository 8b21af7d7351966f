"""Skip guards for live tests.

Every live test talks to a real FHIR server and is guarded by a
pytest.mark.skipif on the required environment variables. Tests silently
skip when they are absent; they never fail due to missing config.

Environment variables:
  FHIR_LIVE_BASE_URL      Base URL of a writable FHIR R4 server
                          (e.g. https://hapi.fhir.org/baseR4)
  FHIR_LIVE_ACCESS_TOKEN  Optional bearer token for that server

Set them in your shell before running:
  export FHIR_LIVE_BASE_URL=https://hapi.fhir.org/baseR4
  pytest tests/live -v -m live
"""

from __future__ import annotations

import os

import pytest

from fhir_patients.auth.base_signer import BearerTokenSigner, NoAuthSigner
from fhir_patients.fhir.fhir_client import FHIRClient
from fhir_patients.fhir.patient_gateway import PatientGateway

TIMEOUT_S = 30

skip_no_server = pytest.mark.skipif(
    not os.environ.get("FHIR_LIVE_BASE_URL"),
    reason="Set FHIR_LIVE_BASE_URL to run live FHIR server tests",
)


@pytest.fixture(scope="session")
def live_gateway() -> PatientGateway:
    base_url = os.environ.get("FHIR_LIVE_BASE_URL", "")
    if not base_url:
        pytest.skip("FHIR_LIVE_BASE_URL not set")
    token = os.environ.get("FHIR_LIVE_ACCESS_TOKEN", "")
    signer = BearerTokenSigner(token) if token else NoAuthSigner()
    return PatientGateway(FHIRClient(base_url, signer=signer, timeout=TIMEOUT_S))
