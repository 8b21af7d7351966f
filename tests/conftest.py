"""Shared pytest fixtures, mock factories, and test markers.

Test tiers
----------
  unit        Fast, fully offline, zero external dependencies.
              Always run. Target: < 1 second total.

  integration Mocked FHIR server (requests-mock) with a real SQLite store.
              Always run. Validates save/upload/download end to end
              without real network calls.

  quality     Property-based tests (Hypothesis) on draft validity and
              wire decoding. Always run offline.

  live        Real FHIR server calls. Skipped unless FHIR_LIVE_BASE_URL
              is set. See tests/live/conftest.py for guards.

Run specific tiers:
  pytest tests/unit tests/integration tests/quality   # offline only
  pytest tests/live -m live                           # live only
  pytest tests/ -v                                    # everything
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import date
from unittest.mock import MagicMock

import pytest

from fhir_patients.fhir.patient_gateway import PatientGateway
from fhir_patients.patients.edit_model import PatientEditModel
from fhir_patients.patients.models import Gender, Patient
from fhir_patients.store.memory import InMemoryStore
from tests.fixtures.patients import fhir_patient

BASE_URL = "https://fhir.example.com/r4"
FUTURE_TIMEOUT_S = 5


# ---------------------------------------------------------------------------
# Pytest markers
# ---------------------------------------------------------------------------

def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast offline unit tests")
    config.addinivalue_line("markers", "integration: mock-server integration tests")
    config.addinivalue_line("markers", "quality: property-based tests")
    config.addinivalue_line("markers", "live: requires a reachable FHIR server (skipped by default)")


# ---------------------------------------------------------------------------
# Patient fixtures
# ---------------------------------------------------------------------------

def make_patient(patient_id: str | None = None, **overrides: object) -> Patient:
    """Build a complete, saveable Patient."""
    fields: dict = {
        "id":          patient_id,
        "given_name":  "Jane",
        "family_name": "Doe",
        "birth_date":  date(1990, 1, 1),
        "gender":      "female",
    }
    fields.update(overrides)
    return Patient(**fields)


@pytest.fixture
def sample_patient() -> Patient:
    return make_patient()


@pytest.fixture
def server_patient_json() -> dict:
    return fhir_patient(
        patient_id="42",
        telecom=[{"system": "phone", "value": "555-0100", "use": "home"}],
    )


# ---------------------------------------------------------------------------
# Collaborator mocks
# ---------------------------------------------------------------------------

@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def mock_gateway() -> MagicMock:
    """A PatientGateway double; create/update echo the patient back with id '42'."""
    gateway = MagicMock(spec=PatientGateway)
    gateway.create.side_effect = lambda patient: patient.model_copy(update={"id": "42"})
    gateway.update.side_effect = lambda patient_id, patient: patient.model_copy(update={"id": patient_id})
    return gateway


@pytest.fixture
def edit_model(store: InMemoryStore, mock_gateway: MagicMock) -> Iterator[PatientEditModel]:
    model = PatientEditModel(store, mock_gateway)
    yield model
    model.close()


def fill_required(model: PatientEditModel) -> None:
    """Set every field ``can_save`` depends on."""
    model.given_name = "Jane"
    model.family_name = "Doe"
    model.birth_date = date(1990, 1, 1)
    model.gender = Gender.FEMALE
