from fastapi.testclient import TestClient

from tests.stubs import build_settings
from xion_oauth.main import create_app


def test_healthz_endpoint() -> None:
    app = create_app(settings=build_settings())
    with TestClient(app) as client:
        response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_root_reports_public_client() -> None:
    app = create_app(settings=build_settings())
    with TestClient(app) as client:
        response = client.get("/")

    assert response.json() == {
        "service": "xion-oauth",
        "status": "ok",
        "client_type": "public",
    }


def test_error_page_unknown_code() -> None:
    app = create_app(settings=build_settings())
    with TestClient(app) as client:
        response = client.get("/error", params={"code": "not-a-code"})

    assert response.json()["message"] == "Unknown error"
