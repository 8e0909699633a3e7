from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from xion_oauth.integrations.xion_api import (
    MSG_SEND_TYPE_URL,
    AccountApiError,
    XionApiClient,
    create_send_tokens_message,
    parse_account_profile,
)

API_URL = "https://api.xion.example.test"


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> XionApiClient:
    def factory(**kwargs: Any) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler), **kwargs)

    return XionApiClient(base_url=API_URL, timeout_seconds=2.0, http_client_factory=factory)


def test_get_me_sends_bearer_token_and_parses_profile() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(
            200,
            json={
                "id": "xion1account",
                "authenticators": [
                    {"id": "auth-0", "type": "Secp256K1", "index": 0, "data": {"k": "v"}},
                    "ignored",
                ],
                "balances": {
                    "xion": {"amount": "1.5", "denom": "uxion", "microAmount": "1500000"},
                    "usdc": {"amount": "0", "denom": "uusdc", "microAmount": "0"},
                },
            },
        )

    profile = asyncio.run(_client(handler).get_me(access_token="access-token"))

    assert str(captured[0].url) == f"{API_URL}/api/v1/me"
    assert captured[0].headers["authorization"] == "Bearer access-token"
    assert profile.id == "xion1account"
    assert len(profile.authenticators) == 1
    assert profile.to_dict()["balances"]["xion"] == {
        "amount": "1.5",
        "denom": "uxion",
        "microAmount": "1500000",
    }


def test_send_tokens_posts_msg_send() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={"success": True, "transactionHash": "ABC"})

    result = asyncio.run(
        _client(handler).send_tokens(
            access_token="access-token",
            to_address="xion1recipient",
            amount=1000,
        )
    )

    assert result == {"success": True, "transactionHash": "ABC"}
    request = captured[0]
    assert request.method == "POST"
    assert str(request.url) == f"{API_URL}/api/v1/transaction"
    assert json.loads(request.content) == {
        "messages": [
            {
                "typeUrl": MSG_SEND_TYPE_URL,
                "value": {
                    "fromAddress": "",
                    "toAddress": "xion1recipient",
                    "amount": [{"denom": "uxion", "amount": "1000"}],
                },
            }
        ]
    }


def test_rejected_token_surfaces_status_code() -> None:
    client = _client(lambda request: httpx.Response(401, json={"error": "invalid_token"}))

    with pytest.raises(AccountApiError) as exc_info:
        asyncio.run(client.get_me(access_token="expired"))

    assert exc_info.value.status_code == 401


def test_network_failure_raises_account_api_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(AccountApiError) as exc_info:
        asyncio.run(_client(handler).get_me(access_token="access-token"))

    assert exc_info.value.status_code is None


@pytest.mark.parametrize(
    ("to_address", "amount"),
    [("", 10), ("   ", 10), ("xion1recipient", 0), ("xion1recipient", -1)],
)
def test_create_send_tokens_message_validates_input(to_address: str, amount: int) -> None:
    with pytest.raises(ValueError):
        create_send_tokens_message(to_address, amount, "uxion")


def test_parse_account_profile_requires_id() -> None:
    with pytest.raises(AccountApiError):
        parse_account_profile({"balances": {}})
