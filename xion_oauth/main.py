from __future__ import annotations

from typing import Annotated

from fastapi import Depends, FastAPI
from starlette.middleware.sessions import SessionMiddleware

from xion_oauth.auth import errors as auth_errors
from xion_oauth.auth.models import TokenRecord, current_time_ms
from xion_oauth.config import AppSettings, get_settings
from xion_oauth.core.logging import setup_logging
from xion_oauth.db.session import create_app_engine, create_session_factory
from xion_oauth.dependencies import get_current_token
from xion_oauth.integrations.oauth_server import OAuthServerClient
from xion_oauth.integrations.xion_api import XionApiClient
from xion_oauth.routes.account import router as account_router
from xion_oauth.routes.auth import router as auth_router

ERROR_MESSAGES: dict[str, str] = {
    error_cls.code: error_cls.message
    for error_cls in (
        auth_errors.AuthorizationDenied,
        auth_errors.MissingCode,
        auth_errors.StateMismatch,
        auth_errors.ExpiredAuthorization,
        auth_errors.TokenExchangeFailed,
        auth_errors.MalformedResponse,
        auth_errors.DiscoveryFailed,
        auth_errors.InvalidVerifier,
        auth_errors.EntropySourceUnavailable,
        auth_errors.ConfigurationError,
    )
}


def create_app(settings: AppSettings | None = None) -> FastAPI:
    app_settings = (settings or get_settings()).validate()
    setup_logging(app_settings.log_level, json_format=app_settings.log_json)

    app = FastAPI(title="XION OAuth2 Client", version="0.1.0")
    app.state.settings = app_settings
    app.state.session_maker = create_session_factory(create_app_engine(app_settings.database_url))
    app.state.oauth_server_client = OAuthServerClient.from_settings(app_settings)
    app.state.xion_api_client = XionApiClient.from_settings(app_settings)

    app.add_middleware(
        SessionMiddleware,
        secret_key=app_settings.app_secret_key,
        session_cookie=app_settings.session_cookie_name,
        max_age=app_settings.session_cookie_max_age_seconds,
        same_site="lax",
        https_only=app_settings.session_cookie_secure,
    )

    app.include_router(auth_router)
    app.include_router(account_router)

    @app.get("/", tags=["system"], name="root")
    async def root() -> dict[str, str]:
        return {
            "service": "xion-oauth",
            "status": "ok",
            "client_type": "confidential" if app_settings.is_confidential_client else "public",
        }

    @app.get("/healthz", tags=["system"])
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/dashboard", tags=["account"], name="dashboard_page")
    async def dashboard(
        token: Annotated[TokenRecord, Depends(get_current_token)],
    ) -> dict[str, object]:
        return {
            "status": "authenticated",
            "token_type": token.token_type,
            "expires_in": token.expires_in_seconds(current_time_ms()),
        }

    @app.get("/error", tags=["system"], name="error_page")
    async def error_page(code: str = "unknown", detail: str | None = None) -> dict[str, str | None]:
        return {
            "status": "error",
            "code": code,
            "message": ERROR_MESSAGES.get(code, "Unknown error"),
            "detail": detail,
        }

    return app
