"""Third-Party Authentication Routes

Browser-facing endpoints driving the provider-agnostic flow. Provider is taken
from the route, from ?provider=, or deduced from a session in progress.

Key Endpoints:
- GET /auth/{provider}: Return the user if already authenticated, else redirect to the provider
- GET|POST /auth/{provider}/callback: Complete authentication and return the user
- GET /logout/{provider}: Invalidate the in-progress authentication and redirect
- GET /providers: Registered provider names
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel

from federated_auth.config.settings import get_settings
from federated_auth.core.auth import (
    AuthFlowError,
    AuthOrchestrator,
    AuthRequest,
    User,
    get_provider_registry,
)
from federated_auth.infrastructure.session.backend import get_session_backend
from federated_auth.infrastructure.session.store import SessionBackend, SessionStore

router = APIRouter(tags=["authentication"])
logger = logging.getLogger(__name__)


# ============================================================================
# Response Models
# ============================================================================

class UserResponse(BaseModel):
    """Authenticated user (tokens are never echoed to the browser)."""
    provider: str
    user_id: str
    name: str
    email: str
    first_name: str = ""
    last_name: str = ""
    nick_name: str = ""
    description: str = ""
    avatar_url: str = ""
    location: str = ""
    expires_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(**user.model_dump(include=set(cls.model_fields)))


class ProvidersResponse(BaseModel):
    providers: list[str]


# ============================================================================
# Dependencies
# ============================================================================

def get_auth_orchestrator() -> AuthOrchestrator:
    """Orchestrator over the process-wide provider registry"""
    settings = get_settings()
    return AuthOrchestrator(
        get_provider_registry(),
        invalidation_grace_seconds=settings.session_invalidation_grace_seconds,
    )


async def get_auth_request(
    request: Request,
    backend: SessionBackend = Depends(get_session_backend),
) -> AuthRequest:
    """Build the orchestrator's view of the current HTTP request"""
    settings = get_settings()
    session = await SessionStore.load(
        backend,
        request.cookies.get(settings.session_cookie_name),
        cookie_name=settings.session_cookie_name,
        max_age=settings.session_max_age_seconds,
        cookie_secure=settings.session_cookie_secure,
        cookie_samesite=settings.session_cookie_samesite,
    )

    form_items = []
    if request.method == "POST":
        form = await request.form()
        form_items = [(key, value) for key, value in form.multi_items() if isinstance(value, str)]

    return AuthRequest.from_pairs(
        session,
        method=request.method,
        path_params=request.path_params,
        query_items=request.query_params.multi_items(),
        form_items=form_items,
    )


def _http_error(error: AuthFlowError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=str(error))


def _user_response(user: User, auth_request: AuthRequest) -> JSONResponse:
    response = JSONResponse(content=UserResponse.from_user(user).model_dump(mode="json"))
    auth_request.session.apply_cookie(response)
    return response


# ============================================================================
# Endpoints
# ============================================================================

@router.get("/providers", response_model=ProvidersResponse)
async def list_providers():
    """List registered provider names in sorted order."""
    return ProvidersResponse(providers=list(get_provider_registry().list_names()))


@router.api_route("/auth/callback", methods=["GET", "POST"], response_model=UserResponse)
@router.api_route("/auth/{provider}/callback", methods=["GET", "POST"], response_model=UserResponse)
async def auth_callback(
    auth_request: AuthRequest = Depends(get_auth_request),
    orchestrator: AuthOrchestrator = Depends(get_auth_orchestrator),
):
    """Complete authentication with the provider.

    Validates the echoed state token, exchanges the callback for a token and
    resolves the user. The in-progress session is invalidated either way.

    Raises:
        HTTPException: With the status of the flow error
    """
    try:
        user = await orchestrator.complete_user_auth(auth_request)
    except AuthFlowError as e:
        logger.warning(f"Callback failed ({e.error}): {e}")
        raise _http_error(e)

    return _user_response(user, auth_request)


@router.get("/auth", response_model=UserResponse)
@router.get("/auth/{provider}", response_model=UserResponse)
async def begin_auth(
    auth_request: AuthRequest = Depends(get_auth_request),
    orchestrator: AuthOrchestrator = Depends(get_auth_orchestrator),
):
    """Start authentication with the provider.

    Returns the user straight away when the session already resolves one,
    otherwise redirects (307) to the provider's authorization URL.
    """
    try:
        user = await orchestrator.complete_user_auth(auth_request)
        return _user_response(user, auth_request)
    except AuthFlowError as e:
        logger.debug(f"No completed session, beginning auth: {e}")

    try:
        auth_url = await orchestrator.begin_auth(auth_request)
    except AuthFlowError as e:
        logger.error(f"Could not begin auth: {e}")
        raise _http_error(e)

    response = RedirectResponse(auth_url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
    auth_request.session.apply_cookie(response)
    return response


@router.get("/logout/{provider}")
async def logout(
    auth_request: AuthRequest = Depends(get_auth_request),
    orchestrator: AuthOrchestrator = Depends(get_auth_orchestrator),
):
    """Invalidate the client's authentication session and redirect to the landing page."""
    try:
        await orchestrator.logout(auth_request)
    except AuthFlowError as e:
        raise _http_error(e)

    response = RedirectResponse(
        get_settings().logout_redirect_url,
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    )
    auth_request.session.apply_cookie(response)
    return response
