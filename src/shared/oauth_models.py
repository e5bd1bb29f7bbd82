"""
Pydantic models for the OAuth gateway.

This module defines the data exchanged with the external authorization
server (authorization request, token request, token response) and the
values the gateway keeps or forwards on the browser's behalf (credential,
data query).
"""

from pydantic import BaseModel, Field, validator
from typing import Optional
from urllib.parse import urlencode, quote
from enum import Enum


class GrantType(str, Enum):
    """OAuth grant types used by the gateway."""
    AUTHORIZATION_CODE = "authorization_code"


class ResponseType(str, Enum):
    """OAuth response types."""
    CODE = "code"


class AuthorizationRequest(BaseModel):
    """
    Authorization request sent to the external authorization server.

    Never persisted: it only exists long enough to be rendered as the
    redirect URL handed to the browser.
    """
    response_type: str = Field(
        default=ResponseType.CODE.value,
        description="OAuth response type (always 'code')"
    )
    client_id: str = Field(..., min_length=1, description="OAuth client identifier")
    redirect_uri: str = Field(..., min_length=1, description="Gateway callback URL")
    scope: str = Field(..., min_length=1, description="Requested scope")

    def to_url(self, authorize_endpoint: str) -> str:
        """Render the request as a URL on the given authorization endpoint."""
        return f"{authorize_endpoint}?{urlencode(self.dict())}"


class TokenRequest(BaseModel):
    """
    Form body of the authorization-code exchange.
    """
    grant_type: str = Field(
        default=GrantType.AUTHORIZATION_CODE.value,
        description="OAuth grant type"
    )
    code: str = Field(..., min_length=1, description="Authorization code")
    client_id: str = Field(..., min_length=1, description="OAuth client identifier")
    client_secret: str = Field(default="", description="OAuth client secret")
    redirect_uri: str = Field(..., min_length=1, description="Gateway callback URL")


class Credential(BaseModel):
    """
    OAuth token record returned by the code exchange.

    Immutable once built. Fields beyond the ones declared here (whatever the
    authorization server chose to return) are retained as extras.
    """
    access_token: str = Field(..., min_length=1, description="OAuth access token")
    token_type: str = Field(default="Bearer", description="Token type")
    instance_url: str = Field(..., min_length=1, description="API instance that issued the token")
    id: Optional[str] = Field(default=None, description="Identity URL of the authenticated user")
    issued_at: Optional[str] = Field(default=None, description="Issue timestamp (epoch millis)")
    signature: Optional[str] = Field(default=None, description="Signature over id and issued_at")
    scope: Optional[str] = Field(default=None, description="Granted scope")
    refresh_token: Optional[str] = Field(default=None, description="Refresh token, unused")

    @validator('instance_url')
    def strip_trailing_slash(cls, v):
        """Normalize the instance URL so paths can be appended directly."""
        return v.rstrip('/')

    @property
    def authorization_header(self) -> str:
        """Value of the Authorization header for upstream calls."""
        return f"{self.token_type} {self.access_token}"

    class Config:
        """Pydantic model configuration."""
        frozen = True
        extra = "allow"


class OAuthError(BaseModel):
    """
    OAuth error payload, as defined in RFC 6749.

    Used when an upstream failure carries no JSON body the gateway could
    pass through as-is.
    """
    error: str = Field(..., description="Error code")
    error_description: Optional[str] = Field(
        default=None,
        description="Human-readable error description"
    )


class DataQuery(BaseModel):
    """
    Caller-supplied query forwarded to the data API.
    """
    q: str = Field(..., description="Query string, e.g. SOQL")

    @validator('q')
    def validate_not_blank(cls, v):
        """Reject empty and whitespace-only queries."""
        if not v.strip():
            raise ValueError("Query must not be empty")
        return v

    @property
    def encoded(self) -> str:
        """Percent-encoded form of the query, with every reserved character escaped."""
        return quote(self.q, safe='')
