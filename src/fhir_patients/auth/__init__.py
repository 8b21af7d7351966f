from .base_signer import BearerTokenSigner, NoAuthSigner, OAuth2Signer, RequestSigner
from .client_credentials import ClientCredentialsSigner
from .jwt_assertion import JWTAssertionSigner

__all__ = [
    "RequestSigner",
    "NoAuthSigner",
    "BearerTokenSigner",
    "OAuth2Signer",
    "ClientCredentialsSigner",
    "JWTAssertionSigner",
]
