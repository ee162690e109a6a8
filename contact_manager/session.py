"""Server-side sessions and the authentication guards built on them.

Each request carries a :class:`SessionContext` on ``request.state.session``.
The context is loaded from Redis by :class:`SessionMiddleware` using the id
in the session cookie, and written back (or destroyed) once the response is
ready. A cookie is only issued once something has been written to the
session.
"""

import json
import secrets
from dataclasses import asdict, dataclass
from typing import Any

import redis.asyncio as redis
from fakeredis.aioredis import FakeRedis
from fastapi import Request
from loguru import logger
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from .core import get_settings
from .errors import AlreadyAuthenticated, LoginRequired
from .models import User


@dataclass
class SessionUser:
    """Identity stored in an authenticated session."""

    id: int
    username: str

    @classmethod
    def from_model(cls, user: User) -> "SessionUser":
        """
        Create a SessionUser from a User ORM model.

        Args:
            user (User): SQLAlchemy User model.

        Returns:
            SessionUser: Identity to keep in the session.
        """
        return cls(id=user.id, username=user.username)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "SessionUser":
        return cls(id=int(raw["id"]), username=str(raw["username"]))


class SessionContext:
    """Per-request view of a visitor's session."""

    def __init__(self, session_id: str | None = None, data: dict | None = None):
        self.session_id = session_id
        self.previous_id: str | None = None
        self.data: dict[str, Any] = dict(data or {})
        self.modified = False
        self.destroyed = False

    @property
    def user(self) -> SessionUser | None:
        raw = self.data.get("user")
        return SessionUser.from_dict(raw) if raw else None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value
        self.modified = True

    def pop(self, key: str, default: Any = None) -> Any:
        if key in self.data:
            self.modified = True
        return self.data.pop(key, default)

    def login(self, user: User) -> SessionUser:
        """
        Attach an identity, moving the session to a fresh id.

        Args:
            user (User): Authenticated user.

        Returns:
            SessionUser: The identity now held by the session.
        """
        identity = SessionUser.from_model(user)
        if self.session_id is not None:
            self.previous_id = self.session_id
            self.session_id = None
        self.set("user", asdict(identity))
        return identity

    def destroy(self) -> None:
        """Drop all session data; the stored record and cookie go too."""
        self.data = {}
        self.destroyed = True


class SessionStore:
    """Session records kept in Redis with a sliding expiry."""

    KEY_PREFIX = "session:"

    def __init__(self, client, expire_minutes: int):
        self.client = client
        self.ttl_seconds = expire_minutes * 60

    def _key(self, session_id: str) -> str:
        return f"{self.KEY_PREFIX}{session_id}"

    async def load(self, session_id: str) -> dict | None:
        """
        Fetch the data of a live session and push back its expiry.

        Args:
            session_id (str): Id read from the session cookie.

        Returns:
            dict | None: Session data, or ``None`` if unknown or expired.
        """
        key = self._key(session_id)
        raw = await self.client.get(key)
        if raw is None:
            return None
        await self.client.expire(key, self.ttl_seconds)
        return json.loads(raw)

    async def save(self, context: SessionContext) -> str:
        """
        Persist a session, allocating an id if it has none.

        Returns:
            str: The session id to send back in the cookie.
        """
        if context.session_id is None:
            context.session_id = secrets.token_urlsafe(32)
        await self.client.set(
            self._key(context.session_id),
            json.dumps(context.data),
            ex=self.ttl_seconds,
        )
        return context.session_id

    async def delete(self, session_id: str) -> None:
        await self.client.delete(self._key(session_id))


_session_store: SessionStore | None = None


async def get_session_store() -> SessionStore:
    """
    Return the session store, connecting on first use.

    Falls back to an in-process fakeredis server when Redis cannot be
    reached; sessions then do not survive a restart.

    Returns:
        SessionStore: Store shared by all requests.
    """
    global _session_store
    if _session_store is not None:
        return _session_store
    settings = get_settings()
    try:
        client = redis.from_url(
            settings.REDIS_URL, encoding="utf-8", decode_responses=True
        )
        await client.ping()
    except (RedisError, OSError):
        logger.warning(
            f"Redis unavailable at {settings.REDIS_URL}, "
            "keeping sessions in process memory"
        )
        client = FakeRedis(decode_responses=True)
    _session_store = SessionStore(client, settings.SESSION_EXPIRE_MINUTES)
    return _session_store


class SessionMiddleware(BaseHTTPMiddleware):
    """Load the session before a request and persist it afterwards."""

    async def dispatch(self, request: Request, call_next):
        settings = get_settings()
        store = await get_session_store()

        session_id = request.cookies.get(settings.SESSION_COOKIE_NAME)
        data = await store.load(session_id) if session_id else None
        context = SessionContext(session_id if data is not None else None, data)
        request.state.session = context

        response = await call_next(request)

        if context.destroyed:
            if context.session_id:
                await store.delete(context.session_id)
            response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
            return response

        if context.modified:
            if context.previous_id:
                await store.delete(context.previous_id)
            await store.save(context)
        if context.session_id:
            response.set_cookie(
                settings.SESSION_COOKIE_NAME,
                context.session_id,
                max_age=store.ttl_seconds,
                path="/",
                httponly=True,
                samesite="lax",
                secure=settings.SESSION_COOKIE_SECURE,
            )
        return response


def get_session(request: Request) -> SessionContext:
    """Dependency returning the session attached to the request."""
    return request.state.session


def require_authenticated(request: Request) -> SessionUser:
    """
    Dependency refusing anonymous callers.

    The requested page is remembered so that login can resume it.

    Raises:
        LoginRequired: If no identity is attached to the session.

    Returns:
        SessionUser: The authenticated identity.
    """
    user = request.state.session.user
    if user is None:
        return_to = "/"
        if request.method == "GET":
            return_to = request.url.path
            if request.url.query:
                return_to += f"?{request.url.query}"
        raise LoginRequired(return_to)
    return user


def redirect_if_authenticated(request: Request) -> None:
    """Dependency sending authenticated callers away from login and signup."""
    if request.state.session.user is not None:
        raise AlreadyAuthenticated()
