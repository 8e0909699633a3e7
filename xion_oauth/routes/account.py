"""Account and transaction routes backed by the stored access token."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from xion_oauth.auth.models import TokenRecord
from xion_oauth.dependencies import (
    get_current_token,
    get_db_session,
    get_token_store,
    get_xion_api_client,
)
from xion_oauth.integrations.xion_api import (
    DEFAULT_DENOM,
    AccountApiError,
    XionApiClientProtocol,
)
from xion_oauth.repositories.tokens import SqlTokenStore
from xion_oauth.routes.responses import error_response, success_response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["account"])
TokenDep = Annotated[TokenRecord, Depends(get_current_token)]
XionApiClientDep = Annotated[XionApiClientProtocol, Depends(get_xion_api_client)]
TokenStoreDep = Annotated[SqlTokenStore, Depends(get_token_store)]
DbSessionDep = Annotated[Session, Depends(get_db_session)]


class SendTokensPayload(BaseModel):
    to_address: str
    amount: int
    denom: str | None = None

    @field_validator("to_address")
    @classmethod
    def _validate_address(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("to_address is required")
        return normalized

    @field_validator("amount")
    @classmethod
    def _validate_amount(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("amount must be positive")
        return value

    @field_validator("denom")
    @classmethod
    def _normalize_denom(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        return normalized or None


@router.get("/api/account/me")
async def api_account_me(
    token: TokenDep,
    api_client: XionApiClientDep,
    token_store: TokenStoreDep,
    db_session: DbSessionDep,
) -> JSONResponse:
    try:
        profile = await api_client.get_me(access_token=token.access_token)
    except AccountApiError as exc:
        return _account_error(exc, token_store=token_store, db_session=db_session)

    return success_response({"account": profile.to_dict()})


@router.post("/api/account/transactions")
async def api_account_send_tokens(
    payload: SendTokensPayload,
    token: TokenDep,
    api_client: XionApiClientDep,
    token_store: TokenStoreDep,
    db_session: DbSessionDep,
) -> JSONResponse:
    denom = payload.denom or DEFAULT_DENOM
    try:
        result = await api_client.send_tokens(
            access_token=token.access_token,
            to_address=payload.to_address,
            amount=payload.amount,
            denom=denom,
        )
    except AccountApiError as exc:
        return _account_error(exc, token_store=token_store, db_session=db_session)

    logger.info("token transfer submitted denom=%s", denom)
    return success_response({"transaction": dict(result)})


def _account_error(
    exc: AccountApiError,
    *,
    token_store: SqlTokenStore,
    db_session: Session,
) -> JSONResponse:
    if exc.status_code == 401:
        # The server no longer accepts the token; drop it so the user logs in again.
        token_store.clear()
        db_session.commit()
        return error_response(
            status_code=401,
            code="unauthenticated",
            message="Access token was rejected. Sign in again.",
        )

    return error_response(
        status_code=502,
        code="account_api_error",
        message="Account API request failed.",
        details={"status_code": exc.status_code} if exc.status_code else None,
    )
