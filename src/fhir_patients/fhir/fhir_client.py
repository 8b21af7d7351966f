"""Generic FHIR REST client."""

from __future__ import annotations

import requests

from ..auth.base_signer import NoAuthSigner, RequestSigner

FHIR_JSON = "application/fhir+json"
PREFER_REPRESENTATION = "return=representation"


class FHIRClient:
    """Minimal FHIR REST client for reading and writing resources.

    Every request asks the server to return the full representation on
    writes and carries the signer's authentication headers.
    """

    def __init__(
        self,
        base_url: str,
        signer: RequestSigner | None = None,
        session: requests.Session | None = None,
        timeout: float | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._signer = signer or NoAuthSigner()
        self._session = session or requests.Session()
        self._timeout = timeout

    def search_resources(
        self,
        resource_type: str,
        params: dict[str, str],
        headers: dict | None = None,
    ) -> requests.Response:
        """GET a search Bundle for ``resource_type`` filtered by ``params``."""
        url = f"{self.base_url}/{resource_type}"
        return self._session.get(
            url, params=params, headers=self._headers(headers), timeout=self._timeout
        )

    def get_resource(
        self,
        resource_type: str,
        resource_id: str,
        headers: dict | None = None,
    ) -> requests.Response:
        """GET a FHIR resource by type and logical ID."""
        url = f"{self.base_url}/{resource_type}/{resource_id}"
        return self._session.get(url, headers=self._headers(headers), timeout=self._timeout)

    def get_url(self, url: str, headers: dict | None = None) -> requests.Response:
        """GET an absolute URL handed out by the server, such as a Bundle ``next`` link."""
        return self._session.get(url, headers=self._headers(headers), timeout=self._timeout)

    def post_resource(
        self,
        resource_type: str,
        resource: dict,
        headers: dict | None = None,
    ) -> requests.Response:
        """POST a FHIR resource and return the response."""
        url = f"{self.base_url}/{resource_type}"
        return self._session.post(
            url, json=resource, headers=self._headers(headers, body=True), timeout=self._timeout
        )

    def put_resource(
        self,
        resource_type: str,
        resource_id: str,
        resource: dict,
        headers: dict | None = None,
    ) -> requests.Response:
        """PUT a FHIR resource at its logical ID and return the response."""
        url = f"{self.base_url}/{resource_type}/{resource_id}"
        return self._session.put(
            url, json=resource, headers=self._headers(headers, body=True), timeout=self._timeout
        )

    def _headers(self, extra: dict | None, body: bool = False) -> dict[str, str]:
        default_headers = {"Accept": FHIR_JSON, "Prefer": PREFER_REPRESENTATION}
        if body:
            default_headers["Content-Type"] = FHIR_JSON
        default_headers.update(self._signer.auth_headers())
        if extra:
            default_headers.update(extra)
        return default_headers
