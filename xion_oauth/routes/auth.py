"""Authorization-code login routes."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from xion_oauth.auth import (
    CallbackParams,
    ClientCredentials,
    OAuthError,
    build_authorization_request,
    current_time_ms,
    validate_callback,
)
from xion_oauth.config import AppSettings
from xion_oauth.dependencies import (
    get_app_settings,
    get_db_session,
    get_oauth_server_client,
    get_pending_store,
    get_token_store,
)
from xion_oauth.integrations.oauth_server import (
    OAuthServerClientProtocol,
    build_client_credentials,
)
from xion_oauth.repositories.pending_authorizations import SqlPendingAuthorizationStore
from xion_oauth.repositories.tokens import SqlTokenStore
from xion_oauth.routes.responses import (
    error_detail,
    error_redirect,
    error_response,
    success_response,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])
SettingsDep = Annotated[AppSettings, Depends(get_app_settings)]
DbSessionDep = Annotated[Session, Depends(get_db_session)]
OAuthServerClientDep = Annotated[OAuthServerClientProtocol, Depends(get_oauth_server_client)]
PendingStoreDep = Annotated[SqlPendingAuthorizationStore, Depends(get_pending_store)]
TokenStoreDep = Annotated[SqlTokenStore, Depends(get_token_store)]


@router.get("/api/auth/login")
async def api_auth_login(
    settings: SettingsDep,
    oauth_client: OAuthServerClientDep,
    pending_store: PendingStoreDep,
    token_store: TokenStoreDep,
    db_session: DbSessionDep,
) -> RedirectResponse:
    try:
        credentials = await _client_credentials(settings, oauth_client)
        auth_request = build_authorization_request(
            credentials,
            use_pkce=not credentials.is_confidential,
            ttl_seconds=settings.oauth_state_ttl_seconds,
        )
    except OAuthError as exc:
        logger.error("login could not start: %s", exc, extra={"error_code": exc.code})
        return error_redirect(exc)

    now_ms = current_time_ms()
    pending_store.purge_expired(now_ms=now_ms)
    token_store.purge_expired(now_ms=now_ms)
    pending_store.save(auth_request.pending)
    db_session.commit()

    logger.info("login started", extra={"client_type": credentials.client_type})
    return RedirectResponse(auth_request.redirect_url, status_code=302)


@router.get("/api/auth/callback")
async def api_auth_callback(
    settings: SettingsDep,
    oauth_client: OAuthServerClientDep,
    pending_store: PendingStoreDep,
    token_store: TokenStoreDep,
    db_session: DbSessionDep,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
) -> RedirectResponse:
    params = CallbackParams.from_query(
        code=code,
        state=state,
        error=error,
        error_description=error_description,
    )

    try:
        result = validate_callback(params, pending_store)
    except OAuthError as exc:
        db_session.commit()
        return _callback_failed(exc)

    # Single-use: persist the removal before any network call can fail.
    db_session.commit()

    try:
        credentials = await _client_credentials(settings, oauth_client)
        if result.redirect_uri != credentials.redirect_uri:
            credentials = replace(credentials, redirect_uri=result.redirect_uri)
        record = await oauth_client.exchange_code(
            credentials,
            code=result.code,
            code_verifier=result.code_verifier,
        )
    except OAuthError as exc:
        return _callback_failed(exc)

    token_store.save(record)
    db_session.commit()
    logger.info("login completed", extra={"client_type": credentials.client_type})
    return RedirectResponse("/dashboard", status_code=302)


@router.post("/api/auth/logout")
async def api_auth_logout(
    request: Request,
    pending_store: PendingStoreDep,
    token_store: TokenStoreDep,
    db_session: DbSessionDep,
) -> JSONResponse:
    token_store.clear()
    pending_store.discard()
    request.session.clear()
    db_session.commit()
    logger.info("logout")
    return success_response({"logged_out": True})


@router.get("/api/auth/session")
async def api_auth_session(
    token_store: TokenStoreDep,
    db_session: DbSessionDep,
) -> JSONResponse:
    record = token_store.load()
    db_session.commit()
    if record is None:
        return success_response({"authenticated": False})

    return success_response(
        {
            "authenticated": True,
            "token_type": record.token_type,
            "expires_in": record.expires_in_seconds(current_time_ms()),
            "expires_at": record.expires_at_ms,
            "refreshable": record.refresh_token is not None,
        }
    )


@router.post("/api/auth/refresh")
async def api_auth_refresh(
    settings: SettingsDep,
    oauth_client: OAuthServerClientDep,
    token_store: TokenStoreDep,
    db_session: DbSessionDep,
) -> JSONResponse:
    current = token_store.load()
    if current is None:
        db_session.commit()
        return error_response(
            status_code=401,
            code="unauthenticated",
            message="Authentication required.",
        )

    if current.refresh_token is None:
        return error_response(
            status_code=400,
            code="refresh_unavailable",
            message="No refresh token was issued for this session.",
        )

    try:
        credentials = await _client_credentials(settings, oauth_client)
        record = await oauth_client.refresh(credentials, refresh_token=current.refresh_token)
    except OAuthError as exc:
        token_store.clear()
        db_session.commit()
        logger.warning("refresh failed code=%s", exc.code, extra={"error_code": exc.code})
        return error_response(
            status_code=401,
            code=exc.code,
            message=exc.message,
            details={"detail": error_detail(exc)} if error_detail(exc) else None,
        )

    token_store.save(record)
    db_session.commit()
    return success_response(
        {
            "token_type": record.token_type,
            "expires_in": record.expires_in_seconds(current_time_ms()),
            "expires_at": record.expires_at_ms,
        }
    )


async def _client_credentials(
    settings: AppSettings,
    oauth_client: OAuthServerClientProtocol,
) -> ClientCredentials:
    metadata = await oauth_client.discover()
    return build_client_credentials(settings, metadata)


def _callback_failed(exc: OAuthError) -> RedirectResponse:
    logger.warning(
        "callback failed code=%s detail=%s",
        exc.code,
        error_detail(exc),
        extra={"error_code": exc.code},
    )
    return error_redirect(exc)
