"""
Authentication collaborator.

Endpoints only depend on ``verify(request) -> AuthResult``. The bundled
``TokenAuthVerifier`` checks a static bearer-token table from configuration;
an identity-provider backed verifier can be swapped in via ``create_app``.
"""
import hmac
import logging
from typing import Dict, Optional, Protocol

from pydantic import BaseModel

logger = logging.getLogger(__name__)

ANONYMOUS_SUBJECT = "local-user"


class AuthUser(BaseModel):
    sub: str


class AuthResult(BaseModel):
    authorized: bool
    user: Optional[AuthUser] = None
    error: Optional[str] = None


class AuthVerifier(Protocol):
    def verify(self, request) -> AuthResult:
        ...


def bearer_token(request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class TokenAuthVerifier:
    """Maps configured bearer tokens to identity subjects"""

    def __init__(self, tokens: Dict[str, str], require_authentication: bool = True):
        self.tokens = dict(tokens)
        self.require_authentication = require_authentication

    def verify(self, request) -> AuthResult:
        token = bearer_token(request)

        if token is None:
            if not self.require_authentication:
                return AuthResult(authorized=True, user=AuthUser(sub=ANONYMOUS_SUBJECT))
            return AuthResult(authorized=False, error="Missing bearer token")

        for known, subject in self.tokens.items():
            if hmac.compare_digest(known, token):
                return AuthResult(authorized=True, user=AuthUser(sub=subject))

        logger.warning("Rejected request with unknown bearer token")
        return AuthResult(authorized=False, error="Invalid token")
