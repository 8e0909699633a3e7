"""Bearer-authenticated client for the XION account and transaction API."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from xion_oauth.config import AppSettings

logger = logging.getLogger(__name__)

MSG_SEND_TYPE_URL = "/cosmos.bank.v1beta1.MsgSend"
DEFAULT_DENOM = "uxion"

AsyncHTTPClientFactory = Callable[..., httpx.AsyncClient]


class AccountApiError(Exception):
    """Raised when the account API request fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True, slots=True)
class Authenticator:
    id: str
    type: str
    index: int
    data: Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class Balance:
    amount: str
    denom: str
    micro_amount: str


@dataclass(frozen=True, slots=True)
class AccountProfile:
    id: str
    authenticators: tuple[Authenticator, ...]
    balances: Mapping[str, Balance]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "authenticators": [
                {"id": item.id, "type": item.type, "index": item.index, "data": dict(item.data)}
                for item in self.authenticators
            ],
            "balances": {
                key: {
                    "amount": balance.amount,
                    "denom": balance.denom,
                    "microAmount": balance.micro_amount,
                }
                for key, balance in self.balances.items()
            },
        }


class XionApiClientProtocol(Protocol):
    async def get_me(self, *, access_token: str) -> AccountProfile: ...

    async def send_tokens(
        self,
        *,
        access_token: str,
        to_address: str,
        amount: int,
        denom: str | None = None,
    ) -> Mapping[str, Any]: ...


class XionApiClient(XionApiClientProtocol):
    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float = 10.0,
        http_client_factory: AsyncHTTPClientFactory = httpx.AsyncClient,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._http_client_factory = http_client_factory

    @classmethod
    def from_settings(cls, settings: AppSettings) -> XionApiClient:
        return cls(
            base_url=settings.resolved_api_base_url,
            timeout_seconds=settings.oauth_http_timeout_seconds,
        )

    async def get_me(self, *, access_token: str) -> AccountProfile:
        data = await self._request("GET", "/api/v1/me", access_token=access_token)
        return parse_account_profile(data)

    async def send_tokens(
        self,
        *,
        access_token: str,
        to_address: str,
        amount: int,
        denom: str | None = None,
    ) -> Mapping[str, Any]:
        message = create_send_tokens_message(to_address, amount, denom or DEFAULT_DENOM)
        return await self._request(
            "POST",
            "/api/v1/transaction",
            access_token=access_token,
            json_body={"messages": [message]},
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        access_token: str,
        json_body: dict[str, Any] | None = None,
    ) -> Mapping[str, Any]:
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }
        try:
            async with self._http_client_factory(
                base_url=self._base_url,
                timeout=self._timeout_seconds,
            ) as client:
                response = await client.request(method, path, headers=headers, json=json_body)
        except httpx.RequestError as exc:
            logger.warning("account API request failed method=%s path=%s", method, path)
            raise AccountApiError(f"{method} {path} request failed") from exc

        if not response.is_success:
            logger.warning(
                "account API error method=%s path=%s",
                method,
                path,
                extra={"status_code": response.status_code},
            )
            raise AccountApiError(
                f"{method} {path} failed with status={response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise AccountApiError("account API response is not valid JSON") from exc
        if not isinstance(data, Mapping):
            raise AccountApiError("account API response root must be a JSON object")
        return data


def create_send_tokens_message(to_address: str, amount: int, denom: str) -> dict[str, Any]:
    normalized_address = to_address.strip()
    if not normalized_address:
        raise ValueError("to_address is required")
    if isinstance(amount, bool) or amount <= 0:
        raise ValueError("amount must be a positive integer")

    return {
        "typeUrl": MSG_SEND_TYPE_URL,
        "value": {
            "fromAddress": "",
            "toAddress": normalized_address,
            "amount": [{"denom": denom, "amount": str(amount)}],
        },
    }


def parse_account_profile(data: Mapping[str, Any]) -> AccountProfile:
    account_id = data.get("id")
    if not isinstance(account_id, str) or not account_id:
        raise AccountApiError("account profile missing id")

    authenticators: list[Authenticator] = []
    raw_authenticators = data.get("authenticators")
    if isinstance(raw_authenticators, list):
        for item in raw_authenticators:
            if not isinstance(item, Mapping):
                continue
            raw_data = item.get("data")
            raw_index = item.get("index")
            authenticators.append(
                Authenticator(
                    id=str(item.get("id", "")),
                    type=str(item.get("type", "")),
                    index=raw_index if isinstance(raw_index, int) else 0,
                    data=raw_data if isinstance(raw_data, Mapping) else {},
                )
            )

    balances: dict[str, Balance] = {}
    raw_balances = data.get("balances")
    if isinstance(raw_balances, Mapping):
        for key, value in raw_balances.items():
            if not isinstance(value, Mapping):
                continue
            balances[str(key)] = Balance(
                amount=str(value.get("amount", "0")),
                denom=str(value.get("denom", key)),
                micro_amount=str(value.get("microAmount", "0")),
            )

    return AccountProfile(
        id=account_id,
        authenticators=tuple(authenticators),
        balances=balances,
    )
