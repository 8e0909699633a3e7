from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.orm import Session

from tests.stubs import AUTHORIZATION_ENDPOINT, StubOAuthServerClient, make_token
from xion_oauth.auth.errors import DiscoveryFailed, TokenExchangeFailed
from xion_oauth.auth.tokens import derive_challenge
from xion_oauth.db.models import OauthPendingAuthorization, OauthTokenRecord


def _start_login(client: TestClient) -> dict[str, list[str]]:
    response = client.get("/api/auth/login", follow_redirects=False)
    assert response.status_code == 302
    return parse_qs(urlsplit(response.headers["location"]).query)


def _complete_login(client: TestClient) -> str:
    state = _start_login(client)["state"][0]
    response = client.get(
        "/api/auth/callback",
        params={"code": "auth-code", "state": state},
        follow_redirects=False,
    )
    assert response.status_code == 302
    assert response.headers["location"] == "/dashboard"
    return state


def _error_query(location: str) -> dict[str, list[str]]:
    parsed = urlsplit(location)
    assert parsed.path == "/error"
    return parse_qs(parsed.query)


def test_login_redirects_with_pkce_challenge(client: TestClient, db_session: Session) -> None:
    response = client.get("/api/auth/login", follow_redirects=False)

    assert response.status_code == 302
    location = response.headers["location"]
    assert location.startswith(f"{AUTHORIZATION_ENDPOINT}?")

    params = parse_qs(urlsplit(location).query)
    assert params["client_id"] == ["client-id"]
    assert params["redirect_uri"] == ["http://testserver/api/auth/callback"]
    assert params["response_type"] == ["code"]
    assert params["scope"] == ["xion:transactions:submit"]
    assert params["code_challenge_method"] == ["S256"]

    row = db_session.execute(
        select(OauthPendingAuthorization).where(
            OauthPendingAuthorization.state == params["state"][0]
        )
    ).scalar_one()
    assert row.code_verifier is not None
    assert params["code_challenge"] == [derive_challenge(row.code_verifier)]
    assert row.code_verifier not in location


def test_login_discovery_failure_redirects_to_error(
    client: TestClient,
    stub_oauth_client: StubOAuthServerClient,
) -> None:
    stub_oauth_client.metadata = DiscoveryFailed("unreachable")

    response = client.get("/api/auth/login", follow_redirects=False)

    assert response.status_code == 302
    assert _error_query(response.headers["location"]) == {"code": ["discovery_failed"]}


def test_callback_exchanges_code_with_stored_verifier(
    client: TestClient,
    db_session: Session,
    stub_oauth_client: StubOAuthServerClient,
) -> None:
    params = _start_login(client)
    state = params["state"][0]
    verifier = db_session.execute(
        select(OauthPendingAuthorization.code_verifier).where(
            OauthPendingAuthorization.state == state
        )
    ).scalar_one()

    response = client.get(
        "/api/auth/callback",
        params={"code": "auth-code", "state": state},
        follow_redirects=False,
    )

    assert response.status_code == 302
    assert response.headers["location"] == "/dashboard"

    assert len(stub_oauth_client.exchange_calls) == 1
    call = stub_oauth_client.exchange_calls[0]
    assert call["code"] == "auth-code"
    assert call["code_verifier"] == verifier
    assert call["credentials"].client_secret is None
    assert call["credentials"].redirect_uri == "http://testserver/api/auth/callback"

    db_session.expire_all()
    assert db_session.execute(select(OauthPendingAuthorization)).scalars().all() == []
    token_row = db_session.execute(select(OauthTokenRecord)).scalar_one()
    assert token_row.access_token == "access-token"

    session_response = client.get("/api/auth/session")
    assert session_response.status_code == 200
    data = session_response.json()["data"]
    assert data["authenticated"] is True
    assert data["token_type"] == "Bearer"
    assert data["refreshable"] is True
    assert 0 < data["expires_in"] <= 3600


def test_callback_replay_is_rejected(
    client: TestClient,
    stub_oauth_client: StubOAuthServerClient,
) -> None:
    state = _complete_login(client)

    replay = client.get(
        "/api/auth/callback",
        params={"code": "auth-code", "state": state},
        follow_redirects=False,
    )

    assert replay.status_code == 302
    assert _error_query(replay.headers["location"]) == {"code": ["invalid_state"]}
    assert len(stub_oauth_client.exchange_calls) == 1


def test_callback_state_mismatch_consumes_pending_state(
    client: TestClient,
    db_session: Session,
    stub_oauth_client: StubOAuthServerClient,
) -> None:
    state = _start_login(client)["state"][0]

    forged = client.get(
        "/api/auth/callback",
        params={"code": "auth-code", "state": "forged-state"},
        follow_redirects=False,
    )
    assert _error_query(forged.headers["location"]) == {"code": ["invalid_state"]}

    retry = client.get(
        "/api/auth/callback",
        params={"code": "auth-code", "state": state},
        follow_redirects=False,
    )
    assert _error_query(retry.headers["location"]) == {"code": ["invalid_state"]}

    assert stub_oauth_client.exchange_calls == []
    db_session.expire_all()
    assert db_session.execute(select(OauthPendingAuthorization)).scalars().all() == []


def test_callback_from_another_browser_is_rejected(
    test_app: FastAPI,
    client: TestClient,
    stub_oauth_client: StubOAuthServerClient,
) -> None:
    state = _start_login(client)["state"][0]

    with TestClient(test_app) as other_browser:
        response = other_browser.get(
            "/api/auth/callback",
            params={"code": "auth-code", "state": state},
            follow_redirects=False,
        )

    assert _error_query(response.headers["location"]) == {"code": ["invalid_state"]}
    assert stub_oauth_client.exchange_calls == []


def test_callback_authorization_error_is_reported(
    client: TestClient,
    db_session: Session,
    stub_oauth_client: StubOAuthServerClient,
) -> None:
    state = _start_login(client)["state"][0]

    response = client.get(
        "/api/auth/callback",
        params={"error": "access_denied", "error_description": "User canceled", "state": state},
        follow_redirects=False,
    )

    assert response.status_code == 302
    assert _error_query(response.headers["location"]) == {
        "code": ["authorization_denied"],
        "detail": ["access_denied"],
    }
    assert stub_oauth_client.exchange_calls == []
    db_session.expire_all()
    assert db_session.execute(select(OauthPendingAuthorization)).scalars().all() == []


def test_callback_missing_code(client: TestClient) -> None:
    state = _start_login(client)["state"][0]

    response = client.get(
        "/api/auth/callback",
        params={"state": state},
        follow_redirects=False,
    )

    assert _error_query(response.headers["location"]) == {"code": ["missing_code"]}


def test_callback_token_exchange_failure(
    client: TestClient,
    stub_oauth_client: StubOAuthServerClient,
) -> None:
    stub_oauth_client.token_result = TokenExchangeFailed(
        "invalid_grant",
        "authorization code expired",
        status_code=400,
    )
    state = _start_login(client)["state"][0]

    response = client.get(
        "/api/auth/callback",
        params={"code": "auth-code", "state": state},
        follow_redirects=False,
    )

    assert _error_query(response.headers["location"]) == {
        "code": ["token_exchange_failed"],
        "detail": ["invalid_grant"],
    }
    assert client.get("/api/auth/session").json() == {"data": {"authenticated": False}}


def test_error_page_describes_code(client: TestClient) -> None:
    response = client.get("/error", params={"code": "invalid_state"})

    assert response.status_code == 200
    body = response.json()
    assert body["code"] == "invalid_state"
    assert body["message"] == "Login session is invalid or has already been used."


def test_session_expired_token_reports_unauthenticated(
    client: TestClient,
    db_session: Session,
    stub_oauth_client: StubOAuthServerClient,
) -> None:
    stub_oauth_client.token_result = make_token(expires_in_seconds=-1)
    _complete_login(client)

    response = client.get("/api/auth/session")

    assert response.json() == {"data": {"authenticated": False}}
    db_session.expire_all()
    assert db_session.execute(select(OauthTokenRecord)).scalars().all() == []


def test_dashboard_requires_authentication(client: TestClient) -> None:
    assert client.get("/dashboard").status_code == 401

    _complete_login(client)

    response = client.get("/dashboard")
    assert response.status_code == 200
    assert response.json()["status"] == "authenticated"


def test_logout_clears_token(client: TestClient, db_session: Session) -> None:
    _complete_login(client)

    response = client.post("/api/auth/logout")

    assert response.status_code == 200
    assert response.json() == {"data": {"logged_out": True}}
    assert client.get("/api/auth/session").json() == {"data": {"authenticated": False}}
    db_session.expire_all()
    assert db_session.execute(select(OauthTokenRecord)).scalars().all() == []


def test_refresh_replaces_access_token(
    client: TestClient,
    db_session: Session,
    stub_oauth_client: StubOAuthServerClient,
) -> None:
    _complete_login(client)

    response = client.post("/api/auth/refresh")

    assert response.status_code == 200
    assert response.json()["data"]["token_type"] == "Bearer"
    assert stub_oauth_client.refresh_calls[0]["refresh_token"] == "refresh-token"
    db_session.expire_all()
    token_row = db_session.execute(select(OauthTokenRecord)).scalar_one()
    assert token_row.access_token == "refreshed-token"


def test_refresh_requires_authentication(client: TestClient) -> None:
    response = client.post("/api/auth/refresh")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "unauthenticated"


def test_refresh_without_refresh_token(
    client: TestClient,
    stub_oauth_client: StubOAuthServerClient,
) -> None:
    stub_oauth_client.token_result = make_token(refresh_token=None)
    _complete_login(client)

    response = client.post("/api/auth/refresh")

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "refresh_unavailable"
    assert stub_oauth_client.refresh_calls == []


def test_refresh_failure_clears_session(
    client: TestClient,
    stub_oauth_client: StubOAuthServerClient,
) -> None:
    stub_oauth_client.refresh_result = TokenExchangeFailed("invalid_grant", status_code=400)
    _complete_login(client)

    response = client.post("/api/auth/refresh")

    assert response.status_code == 401
    error = response.json()["error"]
    assert error["code"] == "token_exchange_failed"
    assert error["details"] == {"detail": "invalid_grant"}
    assert client.get("/api/auth/session").json() == {"data": {"authenticated": False}}


def test_callback_unexpected_exchange_error_still_consumes_pending_state(
    test_app: FastAPI,
    db_session: Session,
    stub_oauth_client: StubOAuthServerClient,
) -> None:
    stub_oauth_client.token_result = RuntimeError("token store unavailable")

    with TestClient(test_app, raise_server_exceptions=False) as client:
        state = _start_login(client)["state"][0]

        response = client.get(
            "/api/auth/callback",
            params={"code": "auth-code", "state": state},
            follow_redirects=False,
        )
        assert response.status_code == 500

        db_session.expire_all()
        assert db_session.execute(select(OauthPendingAuthorization)).scalars().all() == []

        replay = client.get(
            "/api/auth/callback",
            params={"code": "auth-code", "state": state},
            follow_redirects=False,
        )

    assert replay.status_code == 302
    assert _error_query(replay.headers["location"]) == {"code": ["invalid_state"]}
    assert len(stub_oauth_client.exchange_calls) == 1


def test_login_purges_expired_tokens_of_other_sessions(
    client: TestClient,
    db_session: Session,
) -> None:
    db_session.add(
        OauthTokenRecord(
            session_key="abandoned-session",
            access_token="stale-token",
            token_type="Bearer",
            expires_at_ms=1_000,
        )
    )
    db_session.commit()

    _start_login(client)

    db_session.expire_all()
    assert db_session.execute(select(OauthTokenRecord)).scalars().all() == []
