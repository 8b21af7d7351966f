"""Pluggable request signing for FHIR calls."""

from __future__ import annotations

from abc import ABC, abstractmethod

import requests


class RequestSigner(ABC):
    """Supplies the authentication headers applied to every FHIR request."""

    @abstractmethod
    def auth_headers(self) -> dict[str, str]:
        """Return the headers to merge into the outgoing request."""


class NoAuthSigner(RequestSigner):
    """For open servers such as the public HAPI test server."""

    def auth_headers(self) -> dict[str, str]:
        return {}


class BearerTokenSigner(RequestSigner):
    """A fixed, pre-issued access token."""

    def __init__(self, access_token: str) -> None:
        if not access_token:
            raise ValueError("access_token must not be empty")
        self._access_token = access_token

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}"}


class OAuth2Signer(RequestSigner):
    """Abstract base for signers that obtain a token from an OAuth2 endpoint.

    The token is fetched lazily on first use and cached for the lifetime
    of the signer.
    """

    def __init__(self, token_url: str, session: requests.Session | None = None) -> None:
        self._token_url = token_url
        self._session = session or requests.Session()
        self._access_token: str | None = None

    @abstractmethod
    def authenticate(self) -> str:
        """Obtain an OAuth2 access token. Returns the token string."""

    def auth_headers(self) -> dict[str, str]:
        if not self._access_token:
            self.authenticate()
        return {"Authorization": f"Bearer {self._access_token}"}

    def _request_token(self, data: dict[str, str]) -> str:
        response = self._session.post(
            self._token_url,
            data=data,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        response.raise_for_status()
        self._access_token = response.json()["access_token"]
        return self._access_token
