"""Admin authentication.

The admin routes only need an answer to "is this username/password pair
acceptable?". The verifier behind that question lives on ``app.state`` and
can be swapped for anything with a matching ``verify`` method.
"""
import logging
import secrets
from typing import Optional, Protocol

from fastapi import Depends, Request
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from filedrop.errors import Unauthorized

logger = logging.getLogger(__name__)

basic_scheme = HTTPBasic(realm="Admin Area", auto_error=False)


class CredentialVerifier(Protocol):
    def verify(self, username: str, password: str) -> bool: ...


class StaticCredentialVerifier:
    """Compares against a single configured username/password pair.

    Fine for a demo deployment, not for anything facing the internet.
    """

    def __init__(self, username: str, password: str):
        self._username = username.encode("utf-8")
        self._password = password.encode("utf-8")

    def verify(self, username: str, password: str) -> bool:
        user_ok = secrets.compare_digest(username.encode("utf-8"), self._username)
        pass_ok = secrets.compare_digest(password.encode("utf-8"), self._password)
        return user_ok and pass_ok


async def require_admin(
    request: Request,
    credentials: Optional[HTTPBasicCredentials] = Depends(basic_scheme),
) -> str:
    """Dependency for admin routes. Returns the authenticated username."""
    if credentials is None:
        raise Unauthorized("Authentication required.")

    verifier: CredentialVerifier = request.app.state.admin_verifier
    if not verifier.verify(credentials.username, credentials.password):
        client = request.client.host if request.client else "unknown"
        logger.warning("Failed admin login for %r from %s", credentials.username, client)
        raise Unauthorized("Invalid credentials.")
    return credentials.username
