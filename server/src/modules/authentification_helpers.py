import hashlib
import secrets
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional
from fastapi import HTTPException, Request
from starlette.responses import Response

from db_mongo import get_col


@dataclass
class Session:
    email: str
    role: str
    expires_at: float


@dataclass(frozen=True)
class User:
    email: str
    role: str


@dataclass(frozen=True)
class LookupResult:
    user: Optional[User] = None
    token: Optional[str] = None
    refreshed: bool = False
    stale_cookie: bool = False


SESSIONS: Dict[str, Session] = {}  # token -> Session


def _sha256(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()

def make_token() -> str:
    return secrets.token_hex(16)

def get_auth_token(request: Request) -> Optional[str]:
    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        return auth.split(" ", 1)[1].strip()
    return None

def verify_password(input_pw: str, user_doc: dict) -> bool:
    return user_doc.get("password_hash") == _sha256(input_pw)

def normalize_email(email: str) -> str:
    return (email or "").strip().lower()

def find_user(email: str) -> Optional[dict]:
    return get_col("users").find_one({"email": normalize_email(email)}, {"_id": 0})


class IdentityLookup:
    """Resolves the current user from a bearer token or the session cookie.

    Sessions slide: every successful lookup pushes ``expires_at`` forward,
    and callers use ``apply_refresh`` to push the new cookie lifetime to the
    client.
    """

    def __init__(
        self,
        sessions: Dict[str, Session],
        ttl_seconds: int,
        cookie_name: str,
        clock: Callable[[], float] = time.time,
    ):
        self.sessions = sessions
        self.ttl_seconds = ttl_seconds
        self.cookie_name = cookie_name
        self.clock = clock

    def open_session(self, email: str, role: str) -> str:
        token = make_token()
        self.sessions[token] = Session(email=email, role=role, expires_at=self.clock() + self.ttl_seconds)
        return token

    def close_session(self, token: Optional[str]) -> None:
        if token:
            self.sessions.pop(token, None)

    def token_from(self, request: Request) -> tuple[Optional[str], bool]:
        token = get_auth_token(request)
        if token:
            return token, False
        cookie = request.cookies.get(self.cookie_name)
        return (cookie or None), bool(cookie)

    def lookup(self, request: Request) -> LookupResult:
        token, from_cookie = self.token_from(request)
        if not token:
            return LookupResult()
        session = self.sessions.get(token)
        now = self.clock()
        if session is None or session.expires_at <= now:
            self.sessions.pop(token, None)
            return LookupResult(stale_cookie=from_cookie)
        session.expires_at = now + self.ttl_seconds
        return LookupResult(
            user=User(email=session.email, role=session.role),
            token=token,
            refreshed=from_cookie,
        )

    def current_user(self, request: Request) -> Optional[User]:
        return self.lookup(request).user

    def set_cookie(self, response: Response, token: str) -> None:
        response.set_cookie(
            self.cookie_name,
            token,
            max_age=self.ttl_seconds,
            httponly=True,
            samesite="lax",
        )

    def apply_refresh(self, response: Response, result: LookupResult) -> None:
        # a logout during the request has already dropped the session
        if result.refreshed and result.token in self.sessions:
            self.set_cookie(response, result.token)
        elif result.stale_cookie:
            response.delete_cookie(self.cookie_name)


def require_auth(request: Request) -> User:
    """Return the signed-in user or raise a 401."""
    identity: Optional[IdentityLookup] = getattr(request.app.state, "identity", None)
    if identity is None:
        return User(email="anonymous", role="admin")
    user = identity.current_user(request)
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user
