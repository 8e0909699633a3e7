"""JSON envelope helpers shared by API routes."""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

from fastapi.responses import JSONResponse, RedirectResponse

from xion_oauth.auth.errors import AuthorizationDenied, OAuthError, TokenExchangeFailed


def success_response(data: dict[str, Any], *, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"data": data})


def error_response(
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "details": details or {},
            }
        },
    )


def error_redirect(exc: OAuthError) -> RedirectResponse:
    query = {"code": exc.code}
    detail = error_detail(exc)
    if detail:
        query["detail"] = detail
    return RedirectResponse(f"/error?{urlencode(query)}", status_code=302)


def error_detail(exc: OAuthError) -> str | None:
    if isinstance(exc, AuthorizationDenied | TokenExchangeFailed):
        return exc.error
    return None
