"""
OAuth Gateway Application

This FastAPI application brokers the OAuth authorization-code flow between
a browser and an external identity/data provider. OAuth tokens are kept in
a server-side session store; the browser only receives a signed cookie
holding an opaque session identifier.

Key Endpoints:
- `/auth/login`    - Redirect to the external authorization page
- `/auth/callback` - Exchange the authorization code for a credential
- `/auth/logout`   - Revoke the credential and destroy the session
- `/auth/whoami`   - Profile of the authenticated user
- `/query`         - Authenticated query against the data API
- `/health`        - Health check endpoint

Anything else is served from the static directory (`public/` by default).
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.sessions import SessionMiddleware

from ..shared.logging_utils import OAuthLogger
from ..shared.security import SecurityHeaders
from .config import GatewayConfig
from .errors import GatewayError, UpstreamError
from .routes import router
from .session_store import SessionStore
from .upstream import UpstreamClient

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SESSION_COOKIE = "gateway_session"

logger = OAuthLogger("GATEWAY")


async def gateway_error_handler(request: Request, exc: GatewayError):
    """
    Map gateway errors to HTTP responses.

    Upstream failures pass the upstream's own error payload through as JSON;
    local failures answer with a short plain-text message.
    """
    details = {
        "error": exc.error_code,
        "path": str(request.url.path),
        "status_code": exc.status_code
    }

    if isinstance(exc, UpstreamError):
        details["upstream_status"] = exc.upstream_status
        logger.log_error(type(exc).__name__, exc.description, details)
        return JSONResponse(status_code=exc.status_code, content=exc.payload)

    logger.log_error(type(exc).__name__, exc.description, details)
    return PlainTextResponse(exc.description, status_code=exc.status_code)


def _resolve_static_dir(static_dir: str) -> Path:
    path = Path(static_dir)
    if not path.is_absolute():
        path = PROJECT_ROOT / path
    return path


def create_app(config: Optional[GatewayConfig] = None,
               transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    """
    Build the gateway application.

    Args:
        config: Gateway configuration (read from the environment when omitted)
        transport: Optional httpx transport for upstream calls

    Returns:
        FastAPI: Configured application
    """
    if config is None:
        config = GatewayConfig.from_env()

    upstream = UpstreamClient.create(config, transport=transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await upstream.aclose()

    app = FastAPI(
        title="OAuth Gateway",
        description="Server-side OAuth gateway keeping tokens out of the browser",
        version="1.0.0",
        lifespan=lifespan
    )

    app.state.config = config
    app.state.session_store = SessionStore(max_age=config.session_max_age)
    app.state.upstream = upstream

    app.add_middleware(
        SessionMiddleware,
        secret_key=config.session_secret,
        session_cookie=SESSION_COOKIE,
        max_age=config.session_max_age,
        same_site="lax",
        https_only=config.is_https
    )

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        """Add security headers to all HTTP responses."""
        if request.url.path != "/health":
            logger.log_http_request(
                request.method,
                str(request.url.path),
                params=dict(request.query_params)
            )

        response = await call_next(request)

        for header_name, header_value in SecurityHeaders.get_oauth_security_headers().items():
            response.headers[header_name] = header_value

        return response

    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.include_router(router)

    static_dir = _resolve_static_dir(config.static_dir)
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=str(static_dir), html=True), name="static")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    gateway_config = app.state.config
    logger.log_startup(gateway_config.port, {
        "login_url": gateway_config.login_url,
        "callback_url": gateway_config.callback_url,
        "api_version": gateway_config.api_version,
        "https_only": gateway_config.is_https
    })

    uvicorn.run(app, host="0.0.0.0", port=gateway_config.port)
