"""SMART backend services signer: client credentials with a signed JWT assertion.

The flow:
  1. Build a JWT signed with the client's RSA private key.
  2. POST it to the token endpoint as a client assertion.
  3. Use the returned access token as Bearer on all FHIR API calls.
"""

from __future__ import annotations

import time
import uuid
from pathlib import Path

import jwt
import requests

from .base_signer import OAuth2Signer

_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"
_ASSERTION_LIFETIME_S = 300


class JWTAssertionSigner(OAuth2Signer):
    """Signs requests with a token obtained through an RS384 client assertion."""

    def __init__(
        self,
        token_url: str,
        client_id: str,
        private_key: str | bytes | None = None,
        private_key_path: str | Path | None = None,
        session: requests.Session | None = None,
    ) -> None:
        if private_key is None and private_key_path is None:
            raise ValueError("Provide private_key or private_key_path")
        super().__init__(token_url, session)
        self._client_id = client_id
        self._private_key = private_key
        self._private_key_path = private_key_path

    def authenticate(self) -> str:
        """Obtain an access token with a freshly signed client assertion.

        Returns:
            The access token string.

        Raises:
            requests.HTTPError: if the token endpoint rejects the assertion.
        """
        private_key = self._private_key
        if private_key is None:
            private_key = Path(self._private_key_path).read_bytes()  # type: ignore[arg-type]

        now = int(time.time())
        claims = {
            "iss": self._client_id,
            "sub": self._client_id,
            "aud": self._token_url,
            "jti": str(uuid.uuid4()),
            "iat": now,
            "exp": now + _ASSERTION_LIFETIME_S,
        }
        signed_jwt = jwt.encode(claims, private_key, algorithm="RS384")

        return self._request_token({
            "grant_type":            "client_credentials",
            "client_assertion_type": _ASSERTION_TYPE,
            "client_assertion":      signed_jwt,
        })
