from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tests.stubs import StubOAuthServerClient, StubXionApiClient, build_settings
from xion_oauth.config import AppSettings
from xion_oauth.db import models as _models  # noqa: F401
from xion_oauth.db.base import Base
from xion_oauth.main import create_app


@pytest.fixture()
def app_settings() -> AppSettings:
    return build_settings()


@pytest.fixture()
def db_engine() -> Generator[Engine]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session_factory(db_engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(
        bind=db_engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session]:
    with session_factory() as session:
        yield session


@pytest.fixture()
def stub_oauth_client() -> StubOAuthServerClient:
    return StubOAuthServerClient()


@pytest.fixture()
def stub_api_client() -> StubXionApiClient:
    return StubXionApiClient()


@pytest.fixture()
def test_app(
    app_settings: AppSettings,
    session_factory: sessionmaker[Session],
    stub_oauth_client: StubOAuthServerClient,
    stub_api_client: StubXionApiClient,
) -> FastAPI:
    app = create_app(settings=app_settings)
    app.state.session_maker = session_factory
    app.state.oauth_server_client = stub_oauth_client
    app.state.xion_api_client = stub_api_client
    return app


@pytest.fixture()
def client(test_app: FastAPI) -> Generator[TestClient]:
    with TestClient(test_app) as test_client:
        yield test_client
