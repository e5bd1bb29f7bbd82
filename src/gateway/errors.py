"""
Error taxonomy for the OAuth gateway.

Client-input errors are answered immediately with their own status and a
short plain-text message. Upstream errors are answered with HTTP 500 and
the upstream error payload passed through untouched.
"""

from typing import Any, Optional


class GatewayError(Exception):
    """Base exception for gateway errors."""

    error_code = "gateway_error"
    status_code = 500

    def __init__(self, description: str, status_code: Optional[int] = None):
        self.description = description
        if status_code is not None:
            self.status_code = status_code
        super().__init__(description)


class Unauthenticated(GatewayError):
    """The session holds no credential."""

    error_code = "unauthenticated"
    status_code = 401

    def __init__(self, description: str = "No active session"):
        super().__init__(description)


class MissingAuthorizationCode(GatewayError):
    """The authorization server called back without a code.

    Answered with 500, not 400.
    """

    error_code = "missing_authorization_code"
    status_code = 500

    def __init__(self, description: str = "Failed to get authorization code from server callback."):
        super().__init__(description)


class MissingQueryParameter(GatewayError):
    """The query endpoint was called without a query."""

    error_code = "missing_query_parameter"
    status_code = 400

    def __init__(self, description: str = "Missing query parameter."):
        super().__init__(description)


class ClientNotConfigured(GatewayError):
    """No OAuth client id is configured, so no request can be built."""

    error_code = "client_not_configured"
    status_code = 500

    def __init__(self, description: str = "OAuth client id is not configured (OAUTH_CLIENT_ID)."):
        super().__init__(description)


class UpstreamError(GatewayError):
    """An upstream call failed; ``payload`` is what the upstream said."""

    error_code = "upstream_error"
    status_code = 500

    def __init__(self, description: str, payload: Any,
                 upstream_status: Optional[int] = None):
        self.payload = payload
        self.upstream_status = upstream_status
        super().__init__(description)


class UpstreamAuthError(UpstreamError):
    """Authorization-code exchange failed."""

    error_code = "upstream_auth_error"


class UpstreamIdentityError(UpstreamError):
    """Identity lookup failed."""

    error_code = "upstream_identity_error"


class UpstreamDataError(UpstreamError):
    """Data API request failed."""

    error_code = "upstream_data_error"


class UpstreamRevokeError(UpstreamError):
    """Token revocation failed. Logged only, never sent to the client."""

    error_code = "upstream_revoke_error"


class SessionDestructionError(GatewayError):
    """Local session teardown failed. Logged only, never sent to the client."""

    error_code = "session_destruction_error"
