"""Patient create / update / fetch / search against a FHIR server.

The gateway only translates between ``Patient`` models and FHIR JSON and
maps failures onto the package error taxonomy:

  * a response outside 2xx                -> RemoteError(status, body)
  * a 2xx response without a Patient body -> RemoteError
  * requests.RequestException             -> TransportError

Searches follow the Bundle's ``next`` links, so every page is fetched.

Nothing is retried here; retry policy belongs to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import requests

from ..errors import RemoteError, TransportError
from ..patients.models import RESOURCE_TYPE, Patient
from .fhir_client import FHIRClient

logger = logging.getLogger(__name__)


class PatientGateway:
    """Stateless request/response translation for the Patient resource."""

    def __init__(self, client: FHIRClient) -> None:
        self._client = client

    def find_by_family_name(self, family_name: str) -> list[Patient]:
        """Return every patient the server matches (fuzzily) on ``family_name``.

        Paged searchsets are followed through their ``next`` links until the
        last page. A page that is not a Bundle, or a Patient entry that
        cannot be decoded, raises ``RemoteError``.
        """
        response = self._send(
            "search",
            lambda: self._client.search_resources(RESOURCE_TYPE, {"family": family_name}),
        )
        patients: list[Patient] = []
        seen_pages: set[str] = set()
        while True:
            bundle = _json_body(response)
            if not isinstance(bundle, dict) or bundle.get("resourceType") != "Bundle":
                raise RemoteError(response.status_code, response.text, "Search did not return a Bundle")
            patients.extend(_bundle_patients(bundle, response))

            next_url = _next_link(bundle)
            if next_url is None or next_url in seen_pages:
                break
            seen_pages.add(next_url)
            response = self._send("search", lambda: self._client.get_url(next_url))
        logger.debug(
            "Search family=%r matched %d patient(s) over %d page(s)",
            family_name, len(patients), len(seen_pages) + 1,
        )
        return patients

    def create(self, patient: Patient) -> Patient:
        """POST ``patient`` without an id; the server assigns one."""
        body = patient.to_fhir()
        body.pop("id", None)
        response = self._send("create", lambda: self._client.post_resource(RESOURCE_TYPE, body))
        created = _patient_body(response)
        if created.id is None:
            raise RemoteError(
                response.status_code, response.text, "Server did not assign an id to the created Patient"
            )
        logger.info("Created %s", created.reference)
        return created

    def update(self, patient_id: str, patient: Patient) -> Patient:
        """PUT ``patient`` at ``Patient/<patient_id>``."""
        body = patient.to_fhir()
        body["id"] = patient_id
        response = self._send(
            "update", lambda: self._client.put_resource(RESOURCE_TYPE, patient_id, body)
        )
        updated = _patient_body(response)
        logger.info("Updated %s", updated.reference)
        return updated

    def fetch_by_id(self, patient_id: str) -> Patient:
        """GET ``Patient/<patient_id>``."""
        response = self._send(
            "fetch", lambda: self._client.get_resource(RESOURCE_TYPE, patient_id)
        )
        return _patient_body(response)

    def _send(self, operation: str, call: Callable[[], requests.Response]) -> requests.Response:
        try:
            response = call()
        except requests.RequestException as exc:
            logger.error("Patient %s failed before a response arrived: %s", operation, exc)
            raise TransportError(f"Patient {operation} failed: {exc}") from exc
        if not response.ok:
            logger.error("Patient %s rejected with HTTP %d", operation, response.status_code)
            raise RemoteError(response.status_code, response.text)
        return response


# ------------------------------------------------------------------
# Private helpers
# ------------------------------------------------------------------

def _json_body(response: requests.Response) -> object:
    try:
        return response.json()
    except ValueError as exc:
        raise RemoteError(
            response.status_code, response.text, "Response body is not JSON"
        ) from exc


def _bundle_patients(bundle: dict, response: requests.Response) -> list[Patient]:
    patients = []
    for entry in bundle.get("entry") or []:
        resource = entry.get("resource") if isinstance(entry, dict) else None
        if isinstance(resource, dict) and resource.get("resourceType") == RESOURCE_TYPE:
            patients.append(_patient_from(resource, response))
    return patients


def _next_link(bundle: dict) -> str | None:
    for link in bundle.get("link") or []:
        if isinstance(link, dict) and link.get("relation") == "next" and link.get("url"):
            return link["url"]
    return None


def _patient_body(response: requests.Response) -> Patient:
    return _patient_from(_json_body(response), response)


def _patient_from(resource: object, response: requests.Response) -> Patient:
    try:
        return Patient.from_fhir(resource)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise RemoteError(response.status_code, response.text, str(exc)) from exc
