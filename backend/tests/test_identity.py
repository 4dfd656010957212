"""
Identity service client tests.

Role lookups run against an httpx.MockTransport standing in for the
identity service.
"""

import httpx
import jwt
import pytest

from app.permissions import Role
from app.services.identity_service import (
    AuthenticationError,
    HttpRoleResolver,
    decode_token,
    extract_token,
    role_from_projects,
)
from conftest import JWT_SECRET, make_token


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def make_resolver(handler, clock=None, ttl_seconds=60):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpRoleResolver(
        "http://identity.test/",
        "MintStock",
        ttl_seconds=ttl_seconds,
        client=client,
        clock=clock or FakeClock(),
    )


def projects_handler(payload, calls=None):
    def handler(request):
        if calls is not None:
            calls.append(request)
        return httpx.Response(200, json=payload)
    return handler


class TestRoleFromProjects:
    def test_admin_flag_wins(self):
        data = {"is_admin": True, "projects": [{"project_name": "MintStock", "role": "SUPERVISOR"}]}
        assert role_from_projects(data, "MintStock") == Role.ADMIN

    def test_project_role(self):
        data = {"projects": [
            {"project_name": "Other", "role": "ADMIN"},
            {"project_name": "MintStock", "role": "warehouse_manager"},
        ]}
        assert role_from_projects(data, "MintStock") == Role.WAREHOUSE_MANAGER

    @pytest.mark.parametrize("data", [
        {"projects": []},
        {"projects": [{"project_name": "MintStock", "role": "JANITOR"}]},
        [],
        None,
    ])
    def test_defaults_to_supervisor(self, data):
        assert role_from_projects(data, "MintStock") == Role.SUPERVISOR


class TestHttpRoleResolver:
    def test_lookup_query(self):
        calls = []
        resolver = make_resolver(projects_handler(
            {"projects": [{"project_name": "MintStock", "role": "PROCUREMENT"}]}, calls
        ))
        assert resolver.resolve_role("buyer") == Role.PROCUREMENT
        assert calls[0].url.path == "/auth/user-projects"
        assert calls[0].url.params["username"] == "buyer"

    def test_cached_until_ttl(self):
        calls = []
        clock = FakeClock()
        resolver = make_resolver(projects_handler({"is_admin": True}, calls), clock=clock, ttl_seconds=60)

        assert resolver.resolve_role("admin") == Role.ADMIN
        clock.now += 59
        assert resolver.resolve_role("admin") == Role.ADMIN
        assert len(calls) == 1

        clock.now += 2
        resolver.resolve_role("admin")
        assert len(calls) == 2

    def test_expired_entries_are_evicted(self):
        clock = FakeClock()
        resolver = make_resolver(projects_handler({"is_admin": True}), clock=clock, ttl_seconds=60)
        for name in ("ann", "ben", "cy"):
            resolver.resolve_role(name)
        assert len(resolver._cache) == 3

        clock.now += 61
        resolver.resolve_role("dee")
        assert list(resolver._cache) == ["dee"]

    def test_invalidate(self):
        calls = []
        resolver = make_resolver(projects_handler({"is_admin": True}, calls))
        resolver.resolve_role("admin")
        resolver.invalidate("admin")
        resolver.resolve_role("admin")
        assert len(calls) == 2

    def test_unreachable_service_falls_back_uncached(self):
        state = {"up": False}

        def handler(request):
            if not state["up"]:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, json={"is_admin": True})

        resolver = make_resolver(handler)
        assert resolver.resolve_role("admin") == Role.SUPERVISOR

        state["up"] = True
        assert resolver.resolve_role("admin") == Role.ADMIN

    def test_error_status_falls_back(self):
        resolver = make_resolver(lambda request: httpx.Response(500))
        assert resolver.resolve_role("admin") == Role.SUPERVISOR

    def test_fetch_profile_forwards_cookie(self):
        seen = {}

        def handler(request):
            seen["cookie"] = request.headers.get("cookie")
            return httpx.Response(200, json={"full_name": "Kim Keeper", "email": "kim@mint.test", "extra": 1})

        resolver = make_resolver(handler)
        profile = resolver.fetch_profile("mint_session=abc")
        assert profile == {"full_name": "Kim Keeper", "email": "kim@mint.test"}
        assert seen["cookie"] == "mint_session=abc"

    def test_fetch_profile_failure(self):
        resolver = make_resolver(lambda request: httpx.Response(401))
        assert resolver.fetch_profile("") == {}


class TestTokens:
    def test_sub_claim(self):
        assert decode_token(make_token("alice"), JWT_SECRET, ["HS256"]) == "alice"

    def test_username_claim_fallback(self):
        token = jwt.encode({"username": "bob"}, JWT_SECRET, algorithm="HS256")
        assert decode_token(token, JWT_SECRET, ["HS256"]) == "bob"

    def test_missing_username(self):
        token = jwt.encode({"type": "access"}, JWT_SECRET, algorithm="HS256")
        with pytest.raises(AuthenticationError) as exc:
            decode_token(token, JWT_SECRET, ["HS256"])
        assert exc.value.status_code == 403

    def test_header_preferred_over_cookie(self):
        headers = {"Authorization": "Bearer from-header"}
        assert extract_token(headers, {"mint_session": "from-cookie"}, "mint_session") == "from-header"
        assert extract_token({}, {"mint_session": "from-cookie"}, "mint_session") == "from-cookie"
        assert extract_token({"Authorization": "Basic x"}, {}, "mint_session") is None
