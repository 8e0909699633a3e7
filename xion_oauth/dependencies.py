"""Common FastAPI dependencies."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Annotated, cast

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session, sessionmaker

from xion_oauth.auth.models import TokenRecord
from xion_oauth.config import AppSettings
from xion_oauth.integrations.oauth_server import OAuthServerClientProtocol
from xion_oauth.integrations.xion_api import XionApiClientProtocol
from xion_oauth.repositories.pending_authorizations import SqlPendingAuthorizationStore
from xion_oauth.repositories.tokens import SqlTokenStore


def get_app_settings(request: Request) -> AppSettings:
    return cast(AppSettings, request.app.state.settings)


def get_oauth_server_client(request: Request) -> OAuthServerClientProtocol:
    return cast(OAuthServerClientProtocol, request.app.state.oauth_server_client)


def get_xion_api_client(request: Request) -> XionApiClientProtocol:
    return cast(XionApiClientProtocol, request.app.state.xion_api_client)


def get_db_session(request: Request) -> Iterator[Session]:
    session_factory = cast(sessionmaker[Session], request.app.state.session_maker)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def get_pending_store(
    request: Request,
    db_session: Annotated[Session, Depends(get_db_session)],
) -> SqlPendingAuthorizationStore:
    return SqlPendingAuthorizationStore(db_session, request.session)


def get_token_store(
    request: Request,
    db_session: Annotated[Session, Depends(get_db_session)],
) -> SqlTokenStore:
    return SqlTokenStore(db_session, request.session)


def get_current_token(
    token_store: Annotated[SqlTokenStore, Depends(get_token_store)],
    db_session: Annotated[Session, Depends(get_db_session)],
) -> TokenRecord:
    record = token_store.load()
    # load() may have cleared an expired row.
    db_session.commit()
    if record is None:
        raise HTTPException(status_code=401, detail="authentication required")
    return record
