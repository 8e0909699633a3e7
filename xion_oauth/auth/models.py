"""Value objects shared by the authorization-code flow."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any


def current_time_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class ServerMetadata:
    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    scopes_supported: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ClientCredentials:
    client_id: str
    redirect_uri: str
    authorization_endpoint: str
    token_endpoint: str
    scope: str
    client_secret: str | None = None

    @property
    def is_confidential(self) -> bool:
        return bool(self.client_secret)

    @property
    def client_type(self) -> str:
        return "confidential" if self.is_confidential else "public"


@dataclass(frozen=True, slots=True)
class PendingAuthorization:
    state: str
    redirect_uri: str
    expires_at_ms: int
    code_verifier: str | None = None

    def is_expired(self, now_ms: int) -> bool:
        return self.expires_at_ms <= now_ms


@dataclass(frozen=True, slots=True)
class TokenRecord:
    access_token: str
    expires_at_ms: int
    token_type: str = "Bearer"
    refresh_token: str | None = None

    def is_expired(self, now_ms: int) -> bool:
        return self.expires_at_ms <= now_ms

    def expires_in_seconds(self, now_ms: int) -> int:
        return max(0, (self.expires_at_ms - now_ms) // 1000)

    def to_dict(self) -> dict[str, Any]:
        return {
            "accessToken": self.access_token,
            "tokenType": self.token_type,
            "expiresAt": self.expires_at_ms,
            "refreshToken": self.refresh_token,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenRecord:
        refresh_token = data.get("refreshToken")
        return cls(
            access_token=str(data["accessToken"]),
            token_type=str(data.get("tokenType") or "Bearer"),
            expires_at_ms=int(data["expiresAt"]),
            refresh_token=str(refresh_token) if refresh_token else None,
        )
