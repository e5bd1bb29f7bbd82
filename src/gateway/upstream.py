"""
Upstream OAuth provider client.

All traffic from the gateway to the external authorization server and the
identity/data API goes through ``UpstreamClient``. Each call either returns
its result or raises the upstream error type of the operation it serves,
carrying the upstream's own error payload for pass-through.
"""

from typing import Any, Optional, Type

import httpx
from pydantic import ValidationError

from ..shared.logging_utils import OAuthLogger
from ..shared.oauth_models import (
    AuthorizationRequest,
    Credential,
    DataQuery,
    OAuthError,
    TokenRequest,
)
from ..shared.security import mask_token
from .config import GatewayConfig
from .errors import (
    ClientNotConfigured,
    UpstreamAuthError,
    UpstreamDataError,
    UpstreamError,
    UpstreamIdentityError,
    UpstreamRevokeError,
)

logger = OAuthLogger("GATEWAY")


def error_payload(response: httpx.Response) -> Any:
    """
    Extract the error payload of a failed upstream response.

    JSON bodies are returned as parsed; anything else is wrapped in an
    OAuth error object.
    """
    try:
        return response.json()
    except ValueError:
        return OAuthError(
            error=f"http_{response.status_code}",
            error_description=response.text or response.reason_phrase
        ).dict(exclude_none=True)


def network_error_payload(exc: httpx.HTTPError) -> dict:
    return OAuthError(
        error="network_error",
        error_description=str(exc) or type(exc).__name__
    ).dict()


class UpstreamClient:
    """
    Async client for a Salesforce-style OAuth provider.

    Authorization, token and revocation endpoints live on the login domain;
    identity and data endpoints live on the instance URL returned with the
    credential.
    """

    def __init__(self, config: GatewayConfig, http_client: httpx.AsyncClient):
        self.config = config
        self.http_client = http_client

    @classmethod
    def create(cls, config: GatewayConfig,
               transport: Optional[httpx.AsyncBaseTransport] = None) -> "UpstreamClient":
        """
        Build a client with its own connection pool.

        Args:
            config: Gateway configuration
            transport: Optional transport override (tests use ``httpx.MockTransport``)
        """
        kwargs = {}
        if config.upstream_timeout is not None:
            kwargs["timeout"] = config.upstream_timeout
        if transport is not None:
            kwargs["transport"] = transport
        return cls(config, httpx.AsyncClient(**kwargs))

    async def aclose(self) -> None:
        await self.http_client.aclose()

    def _client_id(self) -> str:
        if not self.config.client_id:
            raise ClientNotConfigured()
        return self.config.client_id

    def authorization_url(self, scope: Optional[str] = None) -> str:
        """
        Authorization page URL the browser is sent to on login.

        Raises:
            ClientNotConfigured: If no OAuth client id is configured
        """
        request = AuthorizationRequest(
            client_id=self._client_id(),
            redirect_uri=self.config.callback_url,
            scope=scope or self.config.scope
        )
        return request.to_url(self.config.authorize_endpoint)

    def identity_url(self, credential: Credential) -> str:
        if credential.id:
            return credential.id
        return f"{credential.instance_url}/services/oauth2/userinfo"

    def data_url(self, credential: Credential, resource: str) -> str:
        return f"{credential.instance_url}/services/data/v{self.config.api_version}/{resource}"

    async def _send(self, error_cls: Type[UpstreamError], destination: str,
                    method: str, url: str, **kwargs) -> httpx.Response:
        """
        Issue one upstream request.

        Raises:
            error_cls: On transport failure or a non-2xx response
        """
        try:
            response = await self.http_client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            payload = network_error_payload(e)
            logger.log_oauth_message(
                "GATEWAY", destination,
                f"{error_cls.__name__}: Network Error",
                {"method": method, "url": url.split("?")[0], **payload},
                success=False
            )
            raise error_cls(f"Failed to reach {destination}", payload) from e

        if not response.is_success:
            payload = error_payload(response)
            logger.log_oauth_message(
                destination, "GATEWAY",
                f"{error_cls.__name__}: Upstream Rejected Request",
                {
                    "method": method,
                    "url": url.split("?")[0],
                    "status_code": response.status_code,
                    "payload": payload
                },
                success=False
            )
            raise error_cls(
                f"{destination} answered with status {response.status_code}",
                payload,
                upstream_status=response.status_code
            )

        return response

    async def exchange_code(self, code: str) -> Credential:
        """
        Exchange an authorization code for a credential.

        Raises:
            UpstreamAuthError: If the exchange fails or returns no usable token
            ClientNotConfigured: If no OAuth client id is configured
        """
        token_request = TokenRequest(
            code=code,
            client_id=self._client_id(),
            client_secret=self.config.client_secret,
            redirect_uri=self.config.callback_url
        )

        logger.log_oauth_message(
            "GATEWAY", "AUTH-SERVER",
            "Token Exchange Request",
            {
                "grant_type": token_request.grant_type,
                "code": code,
                "redirect_uri": token_request.redirect_uri,
                "endpoint": self.config.token_endpoint
            }
        )

        response = await self._send(
            UpstreamAuthError, "AUTH-SERVER",
            "POST", self.config.token_endpoint,
            data=token_request.dict(),
            headers={"Accept": "application/json"}
        )

        try:
            credential = Credential(**response.json())
        except (ValueError, TypeError, ValidationError) as e:
            payload = OAuthError(
                error="invalid_token_response",
                error_description=f"Token endpoint returned an unusable body: {e}"
            ).dict()
            logger.log_error("UpstreamAuthError", payload["error_description"])
            raise UpstreamAuthError("Invalid token response", payload) from e

        logger.log_oauth_message(
            "AUTH-SERVER", "GATEWAY",
            "RESPONSE",
            {
                "access_token": credential.access_token,
                "token_type": credential.token_type,
                "instance_url": credential.instance_url,
                "scope": credential.scope
            }
        )
        return credential

    async def revoke(self, credential: Credential) -> None:
        """
        Revoke the credential's access token.

        Raises:
            UpstreamRevokeError: If the authorization server refuses or is unreachable
        """
        logger.log_oauth_message(
            "GATEWAY", "AUTH-SERVER",
            "Token Revocation Request",
            {
                "access_token": credential.access_token,
                "endpoint": self.config.revoke_endpoint
            }
        )
        await self._send(
            UpstreamRevokeError, "AUTH-SERVER",
            "POST", self.config.revoke_endpoint,
            data={"token": credential.access_token}
        )

    async def get_identity(self, credential: Credential) -> httpx.Response:
        """
        Fetch the authenticated user's profile.

        Raises:
            UpstreamIdentityError: On transport failure or a non-2xx response
        """
        url = self.identity_url(credential)
        logger.log_oauth_message(
            "GATEWAY", "IDENTITY-API",
            "Identity Request",
            {"url": url, "authorization": f"{credential.token_type} {mask_token(credential.access_token)}"}
        )
        return await self._send(
            UpstreamIdentityError, "IDENTITY-API",
            "GET", url,
            headers={"Authorization": credential.authorization_header, "Accept": "application/json"}
        )

    async def query(self, credential: Credential, data_query: DataQuery) -> httpx.Response:
        """
        Forward a query to the data API.

        Raises:
            UpstreamDataError: On transport failure or a non-2xx response
        """
        url = self.data_url(credential, f"query?q={data_query.encoded}")
        logger.log_oauth_message(
            "GATEWAY", "DATA-API",
            "Data Query Request",
            {"url": url.split("?")[0], "query": data_query.q}
        )
        return await self._send(
            UpstreamDataError, "DATA-API",
            "GET", url,
            headers={"Authorization": credential.authorization_header}
        )
