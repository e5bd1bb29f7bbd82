"""
Unit tests for the upstream OAuth provider client.
"""

import asyncio
import httpx
import pytest
from urllib.parse import parse_qs, urlparse

from src.gateway.config import GatewayConfig
from src.gateway.errors import (
    ClientNotConfigured,
    UpstreamAuthError,
    UpstreamDataError,
    UpstreamIdentityError,
    UpstreamRevokeError,
)
from src.gateway.upstream import UpstreamClient, error_payload
from src.shared.oauth_models import Credential, DataQuery
from tests.conftest import TOKEN_PAYLOAD


def make_client(gateway_config, handler) -> UpstreamClient:
    return UpstreamClient.create(gateway_config, transport=httpx.MockTransport(handler))


def run(coro):
    return asyncio.run(coro)


class TestAuthorizationUrl:
    """Test cases for authorization URL construction."""

    def test_authorization_url(self, gateway_config):
        client = make_client(gateway_config, lambda request: httpx.Response(200))

        url = urlparse(client.authorization_url())

        assert url.netloc == "login.example.com"
        assert url.path == "/services/oauth2/authorize"
        assert parse_qs(url.query) == {
            "response_type": ["code"],
            "client_id": ["test-client-id"],
            "redirect_uri": ["http://testserver/auth/callback"],
            "scope": ["api"]
        }

    def test_authorization_url_custom_scope(self, gateway_config):
        client = make_client(gateway_config, lambda request: httpx.Response(200))

        url = client.authorization_url(scope="api refresh_token")

        assert parse_qs(urlparse(url).query)["scope"] == ["api refresh_token"]


class TestTokenExchange:
    """Test cases for the authorization-code exchange."""

    def test_exchange_returns_credential(self, gateway_config):
        client = make_client(gateway_config, lambda request: httpx.Response(200, json=TOKEN_PAYLOAD))

        credential = run(client.exchange_code("one-time-code"))

        assert credential == Credential(**TOKEN_PAYLOAD)

    def test_exchange_keeps_auxiliary_fields(self, gateway_config):
        payload = dict(TOKEN_PAYLOAD, sfdc_community_id="0DBxx0000000001")
        client = make_client(gateway_config, lambda request: httpx.Response(200, json=payload))

        credential = run(client.exchange_code("one-time-code"))

        assert credential.sfdc_community_id == "0DBxx0000000001"

    def test_exchange_without_access_token(self, gateway_config):
        client = make_client(gateway_config, lambda request: httpx.Response(200, json={"instance_url": "https://na1.example.com"}))

        with pytest.raises(UpstreamAuthError) as exc_info:
            run(client.exchange_code("one-time-code"))

        assert exc_info.value.payload["error"] == "invalid_token_response"

    def test_exchange_with_non_json_body(self, gateway_config):
        client = make_client(gateway_config, lambda request: httpx.Response(200, text="<html>maintenance</html>"))

        with pytest.raises(UpstreamAuthError) as exc_info:
            run(client.exchange_code("one-time-code"))

        assert exc_info.value.payload["error"] == "invalid_token_response"

    def test_exchange_rejected(self, gateway_config):
        body = {"error": "invalid_client_id", "error_description": "client identifier invalid"}
        client = make_client(gateway_config, lambda request: httpx.Response(400, json=body))

        with pytest.raises(UpstreamAuthError) as exc_info:
            run(client.exchange_code("one-time-code"))

        assert exc_info.value.payload == body
        assert exc_info.value.upstream_status == 400
        assert exc_info.value.status_code == 500


class TestRevocation:
    """Test cases for token revocation."""

    def test_revoke_posts_token(self, gateway_config):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200)

        client = make_client(gateway_config, handler)
        run(client.revoke(Credential(**TOKEN_PAYLOAD)))

        assert seen[0].method == "POST"
        assert str(seen[0].url) == "https://login.example.com/services/oauth2/revoke"
        assert parse_qs(seen[0].content.decode()) == {"token": [TOKEN_PAYLOAD["access_token"]]}

    def test_revoke_failure(self, gateway_config):
        client = make_client(gateway_config, lambda request: httpx.Response(400, json={"error": "unsupported_token_type"}))

        with pytest.raises(UpstreamRevokeError):
            run(client.revoke(Credential(**TOKEN_PAYLOAD)))


class TestIdentityAndData:
    """Test cases for identity lookup and data requests."""

    def test_identity_url_prefers_credential_id(self, gateway_config):
        client = make_client(gateway_config, lambda request: httpx.Response(200))

        assert client.identity_url(Credential(**TOKEN_PAYLOAD)) == TOKEN_PAYLOAD["id"]

    def test_identity_url_falls_back_to_userinfo(self, gateway_config):
        client = make_client(gateway_config, lambda request: httpx.Response(200))
        payload = {k: v for k, v in TOKEN_PAYLOAD.items() if k != "id"}

        url = client.identity_url(Credential(**payload))

        assert url == "https://na1.example.com/services/oauth2/userinfo"

    def test_identity_network_error(self, gateway_config):
        def handler(request):
            raise httpx.ConnectTimeout("timed out")

        client = make_client(gateway_config, handler)

        with pytest.raises(UpstreamIdentityError) as exc_info:
            run(client.get_identity(Credential(**TOKEN_PAYLOAD)))

        assert exc_info.value.payload == {"error": "network_error", "error_description": "timed out"}

    def test_query_url(self, gateway_config):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"totalSize": 0, "done": True, "records": []})

        client = make_client(gateway_config, handler)
        response = run(client.query(Credential(**TOKEN_PAYLOAD), DataQuery(q="SELECT Name FROM Contact")))

        assert response.json()["done"] is True
        assert seen[0].url.raw_path == b"/services/data/v59.0/query?q=SELECT%20Name%20FROM%20Contact"

    def test_query_failure(self, gateway_config):
        client = make_client(gateway_config, lambda request: httpx.Response(502, text="Bad Gateway"))

        with pytest.raises(UpstreamDataError) as exc_info:
            run(client.query(Credential(**TOKEN_PAYLOAD), DataQuery(q="SELECT Id FROM X")))

        assert exc_info.value.payload == {"error": "http_502", "error_description": "Bad Gateway"}


class TestClientConfiguration:
    """Test cases for client construction."""

    def test_default_timeout_is_httpx_default(self, gateway_config):
        client = UpstreamClient.create(gateway_config)

        assert client.http_client.timeout == httpx.Timeout(5.0)

    def test_configured_timeout(self, gateway_config):
        config = gateway_config.copy(update={"upstream_timeout": 2.5})

        client = UpstreamClient.create(config)

        assert client.http_client.timeout == httpx.Timeout(2.5)

    def test_error_payload_for_empty_body(self):
        response = httpx.Response(503)

        assert error_payload(response) == {"error": "http_503", "error_description": "Service Unavailable"}

    def test_missing_client_id_is_rejected_before_any_request(self, gateway_config):
        requests = []
        config = gateway_config.copy(update={"client_id": ""})
        client = make_client(config, lambda request: requests.append(request) or httpx.Response(200, json=TOKEN_PAYLOAD))

        with pytest.raises(ClientNotConfigured):
            client.authorization_url()
        with pytest.raises(ClientNotConfigured):
            run(client.exchange_code("one-time-code"))

        assert requests == []
