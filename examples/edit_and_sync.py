"""Example: create a patient locally, upload it, edit it, and download it back.

The FHIR server is mocked, so this runs offline.

Usage:
    python examples/edit_and_sync.py
"""

from __future__ import annotations

import json
import sys
from datetime import date
from pathlib import Path
from unittest.mock import MagicMock

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fhir_patients.config import configure_logging
from fhir_patients.fhir.fhir_client import FHIRClient
from fhir_patients.fhir.patient_gateway import PatientGateway
from fhir_patients.patients.edit_model import PatientEditModel
from fhir_patients.patients.models import ContactPoint, Gender
from fhir_patients.store.sqlite_store import SQLiteStore


def _mock_response(status_code: int, resource: dict) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.json.return_value = resource
    response.text = json.dumps(resource)
    return response


def _echo_with_id(patient_id: str, status_code: int):
    """Answer a write the way a server honoring Prefer: return=representation does."""
    def respond(url: str, json: dict, **kwargs: object) -> MagicMock:
        return _mock_response(status_code, {**json, "id": patient_id, "meta": {"versionId": "1"}})
    return respond


def main() -> None:
    configure_logging("INFO")
    print("=== Local-first Patient Sync Demo ===\n")

    session = MagicMock()
    session.post.side_effect = _echo_with_id("42", 201)
    session.put.side_effect = _echo_with_id("42", 200)

    gateway = PatientGateway(FHIRClient("https://fhir.example.com/r4", session=session))
    store = SQLiteStore()

    with PatientEditModel(store, gateway) as model:
        model.subscribe_can_save(lambda ok: print(f"  can_save -> {ok}"))

        # 1. Fill in the required fields
        model.given_name = "Jane"
        model.family_name = "Doe"
        model.birth_date = date(1990, 1, 1)
        model.gender = Gender.FEMALE
        model.telecom = [ContactPoint(system="phone", value="555-0100", use="mobile")]

        # 2. Save locally: a local key, but no server id yet
        model.save()
        print(f"\nSaved locally: state={model.state}")

        # 3. Upload: POST, the server assigns the id
        error = model.upload().result()
        print(f"Uploaded: error={error!r} reference={model.reference}")

        # 4. Edit and upload again: PUT to Patient/42
        model.given_name = "Janet"
        model.save()
        model.upload().result()
        sent = session.put.call_args[1]["json"]
        print(f"PUT body name: {sent['name']}")

        # 5. Download: the server copy replaces local state
        session.get.return_value = _mock_response(200, {**sent, "gender": "other"})
        model.download().result()
        print(f"Downloaded: gender={model.gender.value if model.gender else None}")

    record = store.get_by_server_id("42")
    print(f"\nCached record {record.local_key}: {record.patient.to_fhir()}")
    store.close()
    print("\nSync demo complete.")


if __name__ == "__main__":
    main()
