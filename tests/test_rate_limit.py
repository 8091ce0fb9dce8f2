"""Tests for rate-limit keys and trusted proxy handling."""

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from gigboard.api.auth import AUTH_COOKIE_NAME, create_access_token
from gigboard.api.context import build_context
from gigboard.api.main import create_app
from gigboard.api.rate_limit import get_client_ip, limiter, parse_trusted_networks, rate_limit_key
from gigboard.market.users import User


def make_request(context, peer="203.0.113.5", headers=None):
    app = SimpleNamespace(state=SimpleNamespace(context=context, rate_limit_namespace="app-1"))
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": (peer, 50000),
        "app": app,
    }
    return Request(scope)


class TestClientIp:
    def test_direct_peer(self, context):
        request = make_request(context, headers={"X-Forwarded-For": "198.51.100.7"})
        assert get_client_ip(request) == "203.0.113.5"

    def test_forwarded_from_trusted_proxy(self, context):
        request = make_request(context, peer="10.0.0.2", headers={"X-Forwarded-For": "198.51.100.7, 10.0.0.9"})
        assert get_client_ip(request) == "198.51.100.7"

    def test_trusted_proxy_without_header(self, context):
        assert get_client_ip(make_request(context, peer="10.0.0.2")) == "10.0.0.2"

    def test_invalid_cidrs_are_skipped(self):
        networks = parse_trusted_networks(("10.0.0.0/8", "not-a-cidr", ""))
        assert [str(n) for n in networks] == ["10.0.0.0/8"]


class TestRateLimitKey:
    def test_anonymous_keyed_by_ip(self, context):
        assert rate_limit_key(make_request(context)) == "app-1:ip:203.0.113.5"

    def test_authenticated_keyed_by_user(self, context):
        user = User(id="user_42", name="Ada Lovelace", email="ada@example.com", password_hash="x")
        token = create_access_token(user, context.settings)

        by_header = make_request(context, headers={"Authorization": f"Bearer {token}"})
        by_cookie = make_request(context, headers={"Cookie": f"{AUTH_COOKIE_NAME}={token}"})

        assert rate_limit_key(by_header) == "app-1:user:user_42"
        assert rate_limit_key(by_cookie) == "app-1:user:user_42"

    def test_bad_token_falls_back_to_ip(self, context):
        request = make_request(context, headers={"Authorization": "Bearer nonsense"})
        assert rate_limit_key(request) == "app-1:ip:203.0.113.5"


class TestLimits:
    LOGIN = {"email": "nobody@example.com", "password": "whatever"}

    @pytest.fixture(autouse=True)
    def fresh_counters(self):
        limiter.reset()
        yield
        limiter.reset()

    def app_with_limits(self, settings, enabled):
        settings = settings.model_copy(update={"rate_limit_enabled": enabled})
        return create_app(build_context(settings))

    def logins(self, client, count):
        return [client.post("/api/auth/login", json=self.LOGIN).status_code for _ in range(count)]

    def test_login_is_limited(self, settings):
        with TestClient(self.app_with_limits(settings, True)) as client:
            codes = self.logins(client, 11)

        assert codes[:10] == [401] * 10
        assert codes[10] == 429

    def test_apps_keep_their_own_setting(self, settings):
        limited = self.app_with_limits(settings, True)
        # Building a second app must not switch limits off for the first
        unlimited = self.app_with_limits(settings, False)
        enabled_before = limiter.enabled

        with TestClient(limited) as limited_client, TestClient(unlimited) as unlimited_client:
            assert self.logins(unlimited_client, 12) == [401] * 12
            assert self.logins(limited_client, 11)[-1] == 429

        assert limiter.enabled is enabled_before

    def test_apps_do_not_share_counters(self, settings):
        first = self.app_with_limits(settings, True)
        second = self.app_with_limits(settings, True)

        with TestClient(first) as first_client, TestClient(second) as second_client:
            assert self.logins(first_client, 11)[-1] == 429
            assert self.logins(second_client, 10) == [401] * 10
