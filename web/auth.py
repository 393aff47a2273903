"""Request authentication: map an API token to a user id."""
import hmac
import logging
from typing import Optional, Protocol

logger = logging.getLogger("metricwatch.web.auth")


class AuthProvider(Protocol):
    def resolve(self, request) -> Optional[str]: ...


class TokenAuthProvider:
    """Resolves ``Authorization: Bearer <token>`` or ``X-API-Key`` via a token table."""

    def __init__(self, tokens=None):
        self.tokens = {str(k): str(v) for k, v in (tokens or {}).items()}

    def _token_from(self, request):
        header = request.headers.get("Authorization", "")
        scheme, _, value = header.partition(" ")
        if scheme.lower() == "bearer" and value.strip():
            return value.strip()
        api_key = request.headers.get("X-API-Key", "").strip()
        return api_key or None

    def resolve(self, request):
        token = self._token_from(request)
        if token is None:
            return None
        for known, user_id in self.tokens.items():
            if hmac.compare_digest(known.encode(), token.encode()):
                return user_id
        logger.debug("Rejected unknown API token")
        return None
