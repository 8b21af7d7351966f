"""OAuth2 client credentials signer (SMART on FHIR, symmetric secret)."""

from __future__ import annotations

import requests

from .base_signer import OAuth2Signer


class ClientCredentialsSigner(OAuth2Signer):
    """Signs requests with a token from the client credentials grant."""

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        scope: str = "system/Patient.read system/Patient.write",
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(token_url, session)
        self._client_id = client_id
        self._client_secret = client_secret
        self._scope = scope

    def authenticate(self) -> str:
        """Obtain an access token using the client credentials grant.

        Returns:
            The access token string.

        Raises:
            requests.HTTPError: if the token endpoint rejects the credentials.
        """
        return self._request_token({
            "grant_type":    "client_credentials",
            "client_id":     self._client_id,
            "client_secret": self._client_secret,
            "scope":         self._scope,
        })
