"""Cookie-based gate in front of every page that is not explicitly public."""

import logging
from typing import Iterable

from fastapi import Request
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from app.core.security import TokenIdentityProvider

logger = logging.getLogger(__name__)


class RouteGuardMiddleware(BaseHTTPMiddleware):
    """Redirect to the sign-up page unless the request carries a valid token cookie.

    The root page and anything under an exempt prefix (API, sign-up, docs)
    pass straight through. An invalid cookie is cleared on the redirect so the
    browser stops replaying it. The guard keeps no state; verification is the
    identity provider's local signature and expiry check.
    """

    def __init__(
        self,
        app: ASGIApp,
        identity: TokenIdentityProvider,
        cookie_name: str = "token",
        signup_path: str = "/signup",
        exempt_prefixes: Iterable[str] = ("/api", "/signup"),
    ):
        super().__init__(app)
        self.identity = identity
        self.cookie_name = cookie_name
        self.signup_path = signup_path
        self.exempt_prefixes = tuple(prefix.rstrip("/") for prefix in exempt_prefixes)

    def is_exempt(self, path: str) -> bool:
        if path == "/":
            return True
        return any(path == prefix or path.startswith(prefix + "/") for prefix in self.exempt_prefixes)

    async def dispatch(self, request: Request, call_next):
        if self.is_exempt(request.url.path):
            return await call_next(request)

        token = request.cookies.get(self.cookie_name)
        if not token:
            return RedirectResponse(self.signup_path)

        claims = self.identity.verify(token)
        if claims is None:
            logger.info("Rejected invalid session cookie on %s", request.url.path)
            response = RedirectResponse(self.signup_path)
            response.delete_cookie(self.cookie_name, path="/")
            return response

        request.state.token_claims = claims
        return await call_next(request)
