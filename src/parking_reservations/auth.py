"""Current-user lookup delegated to the upstream auth service."""

import logging
from typing import Optional

from fastapi import Request

logger = logging.getLogger(__name__)


class AuthProvider:
    """Resolves the authenticated user behind a request."""

    def current_user_id(self, request: Request) -> Optional[str]:
        """Return the user id, or None when the request is anonymous."""
        raise NotImplementedError


class HeaderAuthProvider(AuthProvider):
    """
    Trusts the identity header set by the auth gateway in front of the API.

    Sign-in, sign-out and password changes happen at the gateway; this
    service only reads who the caller is.
    """

    def __init__(self, header: str = "X-User-Id"):
        self.header = header

    def current_user_id(self, request: Request) -> Optional[str]:
        value = request.headers.get(self.header, "").strip()
        if not value:
            logger.debug(f"No {self.header} header on {request.url.path}")
            return None
        return value
