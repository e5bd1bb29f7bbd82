"""
OAuth Gateway Routes

Login, callback and logout drive the authorization-code flow against the
external authorization server; whoami and query proxy authenticated calls
to the identity and data APIs using the credential held in the server-side
session. The credential itself never reaches the browser.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse, Response
from pydantic import ValidationError

from ..shared.logging_utils import OAuthLogger
from ..shared.oauth_models import DataQuery
from ..shared.security import TokenGenerator, mask_token
from .config import GatewayConfig
from .errors import (
    MissingAuthorizationCode,
    MissingQueryParameter,
    Unauthenticated,
    UpstreamRevokeError,
)
from .session_store import Session, SessionStore
from .upstream import UpstreamClient

SESSION_ID_KEY = "sid"

router = APIRouter()
logger = OAuthLogger("GATEWAY")


async def get_config(request: Request) -> GatewayConfig:
    return request.app.state.config


async def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


async def get_upstream(request: Request) -> UpstreamClient:
    return request.app.state.upstream


async def authenticated_session(
    request: Request,
    store: SessionStore = Depends(get_session_store)
) -> Session:
    """
    Resolve the live, authenticated session bound to the request's cookie.

    Never creates a session: a missing, unknown or expired identifier is
    rejected before any lock is taken or any state is stored.

    Raises:
        Unauthenticated: If no authenticated session is bound to the cookie
    """
    session = store.find(request.session.get(SESSION_ID_KEY))
    if session is None or not session.authenticated:
        raise Unauthenticated()
    return session


def passthrough(upstream_response) -> Response:
    """Relay an upstream body verbatim, keeping its content type."""
    return Response(
        content=upstream_response.content,
        status_code=200,
        media_type=upstream_response.headers.get("content-type")
    )


@router.get("/auth/login")
async def login(upstream: UpstreamClient = Depends(get_upstream)):
    """
    Send the browser to the external authorization page.

    No session state is touched here: the pending authorization lives with
    the authorization server until it calls back.
    """
    redirect_url = upstream.authorization_url()

    logger.log_oauth_message(
        "GATEWAY", "BROWSER",
        "REDIRECT",
        {
            "redirect_url": redirect_url,
            "scope": upstream.config.scope
        }
    )

    return RedirectResponse(redirect_url, status_code=302)


@router.get("/auth/callback")
async def oauth_callback(
    request: Request,
    code: Optional[str] = None,
    store: SessionStore = Depends(get_session_store),
    upstream: UpstreamClient = Depends(get_upstream),
    config: GatewayConfig = Depends(get_config)
):
    """
    Handle the authorization server's callback.

    Exchanges the one-time code for a credential, stores it in the session
    and sends the browser to the main page. This is the only place a
    server-side session is created, and only once a credential exists.
    """
    logger.log_oauth_message(
        "AUTH-SERVER", "GATEWAY",
        "Authorization Callback Received",
        {"code": code}
    )

    if not code:
        raise MissingAuthorizationCode()

    credential = await upstream.exchange_code(code)

    session_id = request.session.get(SESSION_ID_KEY)
    if not session_id:
        session_id = TokenGenerator.generate_session_id()
        request.session[SESSION_ID_KEY] = session_id

    async with store.lock(session_id):
        session = store.get(session_id)
        store.set_credential(session, credential)

    return RedirectResponse(config.main_page, status_code=302)


@router.get("/auth/logout")
async def logout(
    request: Request,
    session: Session = Depends(authenticated_session),
    store: SessionStore = Depends(get_session_store),
    upstream: UpstreamClient = Depends(get_upstream),
    config: GatewayConfig = Depends(get_config)
):
    """
    Revoke the credential and tear down the session.

    Revocation is best effort: if the authorization server refuses or cannot
    be reached, the failure is logged and the local session is destroyed
    anyway. The browser is always sent to the main page.
    """
    async with store.lock(session.session_id):
        credential = store.require_authenticated(session)

        try:
            await upstream.revoke(credential)
        except UpstreamRevokeError as e:
            logger.log_error(
                type(e).__name__,
                "Token revocation failed, logging out locally",
                {"session_id": mask_token(session.session_id), "payload": e.payload}
            )

        store.destroy(session)

    request.session.clear()

    logger.log_oauth_message(
        "GATEWAY", "BROWSER",
        "Logout Complete",
        {"redirect_url": config.main_page}
    )

    return RedirectResponse(config.main_page, status_code=302)


@router.get("/auth/whoami")
async def whoami(
    session: Session = Depends(authenticated_session),
    store: SessionStore = Depends(get_session_store),
    upstream: UpstreamClient = Depends(get_upstream)
):
    """Return the upstream profile of the authenticated user, verbatim."""
    async with store.lock(session.session_id):
        credential = store.require_authenticated(session)
        response = await upstream.get_identity(credential)

    logger.log_oauth_message(
        "IDENTITY-API", "GATEWAY",
        "RESPONSE",
        {
            "status_code": response.status_code,
            "content_type": response.headers.get("content-type")
        }
    )

    return passthrough(response)


@router.get("/query")
async def query(
    q: Optional[str] = None,
    session: Session = Depends(authenticated_session),
    store: SessionStore = Depends(get_session_store),
    upstream: UpstreamClient = Depends(get_upstream)
):
    """
    Forward a query to the data API and relay the response unparsed.
    """
    async with store.lock(session.session_id):
        credential = store.require_authenticated(session)

        if not q:
            raise MissingQueryParameter()
        try:
            data_query = DataQuery(q=q)
        except ValidationError as e:
            raise MissingQueryParameter() from e

        response = await upstream.query(credential, data_query)

    logger.log_oauth_message(
        "DATA-API", "GATEWAY",
        "RESPONSE",
        {
            "status_code": response.status_code,
            "content_length": len(response.content),
            "content_type": response.headers.get("content-type")
        }
    )

    return passthrough(response)


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "oauth-gateway"}
