# Overview: Token verification and role lookup against the external identity service.

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Protocol

import httpx
import jwt
from jwt.exceptions import PyJWTError
from flask import current_app

from ..permissions import DEFAULT_ROLE, Role, normalize_role


logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Token missing, malformed, expired or of the wrong type."""

    def __init__(self, message: str, status_code: int = 401):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class Principal:
    username: str
    role: str

    def to_dict(self) -> dict:
        return {"username": self.username, "role": self.role}


class RoleResolver(Protocol):
    def resolve_role(self, username: str) -> str:
        ...


class StaticRoleResolver:
    """Role lookup from a fixed mapping (tests, local development)."""

    def __init__(self, roles: Optional[Mapping[str, str]] = None, default: str = DEFAULT_ROLE):
        self.roles = dict(roles or {})
        self.default = default

    def resolve_role(self, username: str) -> str:
        return self.roles.get(username, self.default)

    def fetch_profile(self, cookie_header: str) -> dict:
        return {}


class HttpRoleResolver:
    """
    Resolve roles through GET {base_url}/auth/user-projects?username=...

    - is_admin -> ADMIN
    - otherwise the role attached to the project named project_name
    - otherwise (or when the service is unreachable) DEFAULT_ROLE

    Successful lookups are cached per username for ttl_seconds. Fallback
    results are not cached so a recovered identity service is picked up on
    the next request.
    """

    def __init__(
        self,
        base_url: str,
        project_name: str,
        *,
        timeout: float = 3.0,
        ttl_seconds: int = 60,
        client: Optional[httpx.Client] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_url = base_url.rstrip("/")
        self.project_name = project_name
        self.timeout = timeout
        self.ttl_seconds = ttl_seconds
        self._client = client
        self._clock = clock
        self._cache: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        return self._client

    def _evict_expired(self, now: float) -> None:
        # caller holds self._lock
        stale = [name for name, (_, expires_at) in self._cache.items() if expires_at <= now]
        for name in stale:
            del self._cache[name]

    def invalidate(self, username: Optional[str] = None) -> None:
        with self._lock:
            if username is None:
                self._cache.clear()
            else:
                self._cache.pop(username, None)

    def resolve_role(self, username: str) -> str:
        now = self._clock()
        with self._lock:
            cached = self._cache.get(username)
            if cached and cached[1] > now:
                return cached[0]
            self._evict_expired(now)

        role = self._fetch_role(username)
        if role is None:
            return DEFAULT_ROLE

        with self._lock:
            self._cache[username] = (role, now + self.ttl_seconds)
        return role

    def _fetch_role(self, username: str) -> Optional[str]:
        url = f"{self.base_url}/auth/user-projects"
        try:
            response = self._get_client().get(url, params={"username": username})
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Identity service lookup failed for %s: %s", username, e)
            return None

        return role_from_projects(data, self.project_name)

    def fetch_profile(self, cookie_header: str) -> dict:
        """
        full_name / email of the caller from GET {base_url}/auth/me.

        The caller's cookies are forwarded; an unreachable service yields {}.
        """
        try:
            response = self._get_client().get(
                f"{self.base_url}/auth/me",
                headers={"Cookie": cookie_header or ""},
            )
            if response.status_code != 200:
                return {}
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.info("Identity profile lookup failed: %s", e)
            return {}
        if not isinstance(data, dict):
            return {}
        return {"full_name": data.get("full_name"), "email": data.get("email")}


def role_from_projects(data, project_name: str) -> str:
    """Map an identity-service user-projects payload to a role."""
    if not isinstance(data, dict):
        return DEFAULT_ROLE
    if data.get("is_admin"):
        return Role.ADMIN
    for project in data.get("projects") or []:
        if isinstance(project, dict) and project.get("project_name") == project_name:
            return normalize_role(project.get("role")) or DEFAULT_ROLE
    return DEFAULT_ROLE


def get_role_resolver() -> RoleResolver:
    """
    Resolver for the current app.

    An instance placed in app.config["ROLE_RESOLVER"] wins (tests inject a
    StaticRoleResolver there); otherwise one HttpRoleResolver is built per
    app and kept in app.extensions.
    """
    app = current_app
    configured = app.config.get("ROLE_RESOLVER")
    if configured is not None:
        return configured

    resolver = app.extensions.get("role_resolver")
    if resolver is None:
        resolver = HttpRoleResolver(
            app.config["IDENTITY_SERVICE_URL"],
            app.config["IDENTITY_PROJECT_NAME"],
            timeout=app.config.get("IDENTITY_TIMEOUT_SECONDS", 3.0),
            ttl_seconds=app.config.get("ROLE_CACHE_TTL_SECONDS", 60),
        )
        app.extensions["role_resolver"] = resolver
    return resolver


def extract_token(headers, cookies, cookie_name: str) -> Optional[str]:
    """Bearer token from the Authorization header, else the session cookie."""
    auth_header = headers.get("Authorization") or ""
    if auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1].strip()
        if token:
            return token
    return cookies.get(cookie_name) or None


def decode_token(token: str, secret: str, algorithms) -> str:
    """
    Verify a token and return its username.

    Tokens carrying a type claim other than "access" are refused. The
    username is the sub claim, falling back to username.
    """
    try:
        payload = jwt.decode(token, secret, algorithms=list(algorithms))
    except PyJWTError as e:
        logger.debug("JWT decode error: %s", e)
        raise AuthenticationError("Invalid or expired token", status_code=403)

    token_type = payload.get("type")
    if token_type and token_type != "access":
        raise AuthenticationError("Invalid token type", status_code=401)

    username = payload.get("sub") or payload.get("username")
    if not username:
        raise AuthenticationError("Invalid token: no username", status_code=403)
    return str(username)


def authenticate(token: Optional[str]) -> Principal:
    if not token:
        raise AuthenticationError("Access token required", status_code=401)

    secret = current_app.config.get("JWT_SECRET")
    if not secret:
        logger.error("JWT_SECRET is not configured")
        raise AuthenticationError("Server configuration error", status_code=500)

    username = decode_token(token, secret, current_app.config.get("JWT_ALGORITHMS") or ["HS256"])
    role = get_role_resolver().resolve_role(username)
    return Principal(username=username, role=role)


def fetch_profile(cookie_header: str) -> dict:
    """Optional profile fields for the current caller; empty when the resolver has none."""
    resolver = get_role_resolver()
    lookup = getattr(resolver, "fetch_profile", None)
    if lookup is None:
        return {}
    return lookup(cookie_header) or {}
