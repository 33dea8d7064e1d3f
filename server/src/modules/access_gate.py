from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from fastapi import Request
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from server.src.modules.authentification_helpers import IdentityLookup
from server.src.modules.logging_helpers import logger


PROTECTED_PREFIX = "/dashboard"
LOGIN_PATH = "/login"
DEFAULT_PROTECTED_PATH = "/dashboard"

# static assets never go through the gate
_SKIP_RE = re.compile(r"^/static/|^/favicon\.ico$|.*\.(?:svg|png|jpg|jpeg|gif|webp)$", re.IGNORECASE)


@dataclass(frozen=True)
class Allow:
    pass


@dataclass(frozen=True)
class RedirectTo:
    target: str


Decision = Union[Allow, RedirectTo]


def decide(path: str, is_authenticated: bool) -> Decision:
    if path.startswith(PROTECTED_PREFIX) and not is_authenticated:
        return RedirectTo(LOGIN_PATH)
    if path == LOGIN_PATH and is_authenticated:
        return RedirectTo(DEFAULT_PROTECTED_PATH)
    return Allow()


def is_gated_path(path: str) -> bool:
    return not _SKIP_RE.match(path or "")


class SessionGateMiddleware(BaseHTTPMiddleware):
    """Redirects page requests based on session state.

    The identity lookup is handed in by the app; when it is ``None`` the
    gate lets everything through (auth not configured).
    """

    def __init__(self, app, identity: IdentityLookup | None = None):
        super().__init__(app)
        self.identity = identity

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if self.identity is None or not is_gated_path(path):
            return await call_next(request)

        lookup = self.identity.lookup(request)
        decision = decide(path, lookup.user is not None)
        if isinstance(decision, RedirectTo):
            logger.info("gate redirect %s -> %s", path, decision.target)
            response = RedirectResponse(decision.target, status_code=307)
        else:
            response = await call_next(request)
        self.identity.apply_refresh(response, lookup)
        return response
