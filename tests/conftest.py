"""
Pytest configuration and shared fixtures for OAuth gateway tests.

The external authorization server and identity/data API are replaced by
``FakeUpstream``, plugged into the gateway's httpx client through an
``httpx.MockTransport``. Every request the gateway sends upstream is
recorded so tests can assert on it (or on its absence).
"""

import pytest
import httpx
from typing import Dict, Any, List
from fastapi.testclient import TestClient

from src.gateway.config import GatewayConfig
from src.gateway.main import create_app
from src.shared.oauth_models import Credential


LOGIN_URL = "https://login.example.com"
INSTANCE_URL = "https://na1.example.com"
API_VERSION = "59.0"

TOKEN_PAYLOAD: Dict[str, Any] = {
    "access_token": "00Dxx0000001gPL!AR8AQJXg5oj8jXSgxJfA0lBog.39AsX.LVpxezPwuX5VAIrrbbHMuol7GQxnMeYMN7cj8EoWr78nt1u44zU31IbYNNJguseu",
    "token_type": "Bearer",
    "instance_url": INSTANCE_URL,
    "id": f"{LOGIN_URL}/id/00Dxx0000001gPLEAY/005xx000001SwiUAAS",
    "issued_at": "1278448101416",
    "signature": "miQQ1J4sdMPiduBsvyRYPCDozqhe43KRc1i9LmZHR70=",
    "scope": "api"
}

IDENTITY_PAYLOAD: Dict[str, Any] = {
    "user_id": "005xx000001SwiUAAS",
    "organization_id": "00Dxx0000001gPLEAY",
    "username": "alice@example.com",
    "display_name": "Alice Demo",
    "email": "alice@example.com"
}

QUERY_BODY = b'{"totalSize":1,"done":true,"records":[{"attributes":{"type":"Account"},"Id":"001xx000003DGb2AAG"}]}'


class FakeUpstream:
    """
    Scriptable stand-in for the external OAuth provider.

    Each endpoint answers with a ``(status, response kwargs)`` pair, or raises
    when set to an exception instance.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.token_response = (200, {"json": TOKEN_PAYLOAD})
        self.revoke_response = (200, {})
        self.identity_response = (200, {"json": IDENTITY_PAYLOAD})
        self.query_response = (200, {
            "content": QUERY_BODY,
            "headers": {"content-type": "application/json;charset=UTF-8"}
        })

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/services/oauth2/token":
            scripted = self.token_response
        elif path == "/services/oauth2/revoke":
            scripted = self.revoke_response
        elif path.startswith("/id/") or path == "/services/oauth2/userinfo":
            scripted = self.identity_response
        elif path.startswith(f"/services/data/v{API_VERSION}/query"):
            scripted = self.query_response
        else:
            return httpx.Response(404, json=[{"errorCode": "NOT_FOUND", "message": path}])

        if isinstance(scripted, Exception):
            raise scripted

        status, kwargs = scripted
        return httpx.Response(status, **kwargs)

    def calls_to(self, path_prefix: str) -> List[httpx.Request]:
        """Recorded requests whose path starts with ``path_prefix``."""
        return [r for r in self.requests if r.url.path.startswith(path_prefix)]


@pytest.fixture
def gateway_config() -> GatewayConfig:
    """Gateway configuration pointing at the fake provider."""
    return GatewayConfig(
        session_secret="test-session-secret",
        client_id="test-client-id",
        client_secret="test-client-secret",
        login_url=LOGIN_URL,
        callback_url="http://testserver/auth/callback",
        api_version=API_VERSION
    )


@pytest.fixture
def upstream_api() -> FakeUpstream:
    """Fake external provider recording every upstream request."""
    return FakeUpstream()


@pytest.fixture
def gateway_app(gateway_config, upstream_api):
    """Gateway application wired to the fake provider."""
    return create_app(gateway_config, transport=httpx.MockTransport(upstream_api.handle))


@pytest.fixture
def client(gateway_app):
    """Test client that does not follow redirects."""
    with TestClient(gateway_app, follow_redirects=False) as test_client:
        yield test_client


@pytest.fixture
def authenticated_client(client, upstream_api):
    """Test client whose session completed the authorization-code flow."""
    response = client.get("/auth/callback", params={"code": "aPrxsmIEeqM9PiQroGEWx1UiMQd95_5JUZVEhsOFhS8EVvbfYBBJli2W5fn3zbo.8hojaNW_1g=="})
    assert response.status_code == 302
    upstream_api.requests.clear()
    return client


@pytest.fixture
def stored_credential() -> Credential:
    """Credential the fake provider issues on a successful exchange."""
    return Credential(**TOKEN_PAYLOAD)


@pytest.fixture(autouse=True)
def disable_logging():
    """Disable logging during tests to reduce noise."""
    import logging
    logging.disable(logging.CRITICAL)
    yield
    logging.disable(logging.NOTSET)


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as full login/logout flow tests"
    )
    config.addinivalue_line(
        "markers", "security: marks tests as security-focused tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )


def pytest_collection_modifyitems(config, items):
    """Add markers automatically based on test file names."""
    for item in items:
        if "flow" in item.nodeid:
            item.add_marker(pytest.mark.integration)
        elif "security" in item.nodeid or "error_handling" in item.nodeid:
            item.add_marker(pytest.mark.security)
        else:
            item.add_marker(pytest.mark.unit)
