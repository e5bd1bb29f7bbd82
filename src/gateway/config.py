"""
Gateway configuration loaded from environment variables.
"""

import os
from typing import Optional

from pydantic import BaseModel, Field

from ..shared.security import TokenGenerator

DEFAULT_SESSION_MAX_AGE = 14 * 24 * 60 * 60


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class GatewayConfig(BaseModel):
    """
    Settings for the gateway process and its upstream OAuth provider.

    The defaults target a Salesforce-style provider: a login domain serving
    ``/services/oauth2/*`` and instance URLs serving the versioned data API.
    """
    port: int = Field(default=8080, ge=1, le=65535)
    session_secret: str = Field(default_factory=TokenGenerator.generate_session_secret)
    is_https: bool = Field(default=False, description="Mark the session cookie as secure")
    session_max_age: int = Field(default=DEFAULT_SESSION_MAX_AGE, ge=1)

    login_url: str = "https://login.salesforce.com"
    client_id: str = ""
    client_secret: str = ""
    callback_url: str = "http://localhost:8080/auth/callback"
    api_version: str = "59.0"
    scope: str = "api"
    upstream_timeout: Optional[float] = Field(default=None, gt=0)

    static_dir: str = "public"
    main_page: str = "/index.html"

    @property
    def authorize_endpoint(self) -> str:
        return f"{self.login_url.rstrip('/')}/services/oauth2/authorize"

    @property
    def token_endpoint(self) -> str:
        return f"{self.login_url.rstrip('/')}/services/oauth2/token"

    @property
    def revoke_endpoint(self) -> str:
        return f"{self.login_url.rstrip('/')}/services/oauth2/revoke"

    @classmethod
    def from_env(cls) -> "GatewayConfig":
        """Build the configuration from the process environment."""
        values = {
            "port": int(os.getenv("PORT", "8080")),
            "is_https": _env_flag("IS_HTTPS"),
            "session_max_age": int(os.getenv("SESSION_MAX_AGE", str(DEFAULT_SESSION_MAX_AGE))),
            "login_url": os.getenv("OAUTH_LOGIN_URL", "https://login.salesforce.com"),
            "client_id": os.getenv("OAUTH_CLIENT_ID", ""),
            "client_secret": os.getenv("OAUTH_CLIENT_SECRET", ""),
            "callback_url": os.getenv("OAUTH_CALLBACK_URL", "http://localhost:8080/auth/callback"),
            "api_version": os.getenv("API_VERSION", "59.0"),
            "static_dir": os.getenv("STATIC_DIR", "public"),
        }

        session_secret = os.getenv("SESSION_SECRET")
        if session_secret:
            values["session_secret"] = session_secret

        timeout = os.getenv("UPSTREAM_TIMEOUT")
        if timeout:
            values["upstream_timeout"] = float(timeout)

        return cls(**values)
