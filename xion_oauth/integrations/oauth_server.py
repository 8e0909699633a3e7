"""Authorization-server client: discovery, code exchange and refresh."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Mapping
from typing import Any, Protocol

import httpx

from xion_oauth.auth.errors import (
    DiscoveryFailed,
    InvalidVerifier,
    MalformedResponse,
    TokenExchangeFailed,
)
from xion_oauth.auth.models import (
    ClientCredentials,
    ServerMetadata,
    TokenRecord,
    current_time_ms,
)
from xion_oauth.auth.tokens import validate_code_verifier
from xion_oauth.config import AppSettings

logger = logging.getLogger(__name__)

DISCOVERY_PATH = "/.well-known/oauth-authorization-server"
DEFAULT_EXPIRES_IN_SECONDS = 3600
MAX_EXPIRES_IN_SECONDS = 365 * 24 * 60 * 60
DEFAULT_TOKEN_TYPE = "Bearer"

AsyncHTTPClientFactory = Callable[..., httpx.AsyncClient]


class OAuthServerClientProtocol(Protocol):
    async def discover(self, *, refresh: bool = False) -> ServerMetadata: ...

    async def exchange_code(
        self,
        credentials: ClientCredentials,
        *,
        code: str,
        code_verifier: str | None = None,
    ) -> TokenRecord: ...

    async def refresh(
        self,
        credentials: ClientCredentials,
        *,
        refresh_token: str,
    ) -> TokenRecord: ...


class OAuthServerClient(OAuthServerClientProtocol):
    def __init__(
        self,
        *,
        server_url: str,
        timeout_seconds: float = 10.0,
        http_client_factory: AsyncHTTPClientFactory = httpx.AsyncClient,
        clock: Callable[[], int] = current_time_ms,
    ) -> None:
        self._server_url = server_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._http_client_factory = http_client_factory
        self._clock = clock
        self._metadata: ServerMetadata | None = None

    @classmethod
    def from_settings(cls, settings: AppSettings) -> OAuthServerClient:
        return cls(
            server_url=settings.oauth_server_url,
            timeout_seconds=settings.oauth_http_timeout_seconds,
        )

    async def discover(self, *, refresh: bool = False) -> ServerMetadata:
        if self._metadata is not None and not refresh:
            return self._metadata

        discovery_url = f"{self._server_url}{DISCOVERY_PATH}"
        try:
            async with self._http_client_factory(timeout=self._timeout_seconds) as client:
                response = await client.get(discovery_url)
        except httpx.RequestError as exc:
            raise DiscoveryFailed("discovery request failed") from exc

        if not response.is_success:
            raise DiscoveryFailed(f"discovery failed with status={response.status_code}")

        try:
            data = _json_object(response)
        except MalformedResponse as exc:
            raise DiscoveryFailed(str(exc)) from exc

        self._metadata = parse_server_metadata(data, default_issuer=self._server_url)
        logger.info("fetched authorization server metadata issuer=%s", self._metadata.issuer)
        return self._metadata

    async def exchange_code(
        self,
        credentials: ClientCredentials,
        *,
        code: str,
        code_verifier: str | None = None,
    ) -> TokenRecord:
        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": credentials.redirect_uri,
            "client_id": credentials.client_id,
        }
        if credentials.is_confidential:
            # Confidential clients authenticate with the secret alone.
            payload["client_secret"] = str(credentials.client_secret)
        else:
            if code_verifier is None:
                raise InvalidVerifier("public client token exchange requires a code verifier")
            payload["code_verifier"] = validate_code_verifier(code_verifier)

        data = await self._post_token(credentials.token_endpoint, payload)
        record = _token_record(data, issued_at_ms=self._clock())
        logger.info(
            "authorization code exchanged",
            extra={"client_type": credentials.client_type},
        )
        return record

    async def refresh(
        self,
        credentials: ClientCredentials,
        *,
        refresh_token: str,
    ) -> TokenRecord:
        payload = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": credentials.client_id,
        }
        if credentials.is_confidential:
            payload["client_secret"] = str(credentials.client_secret)

        data = await self._post_token(credentials.token_endpoint, payload)
        record = _token_record(
            data,
            issued_at_ms=self._clock(),
            fallback_refresh_token=refresh_token,
        )
        logger.info("access token refreshed", extra={"client_type": credentials.client_type})
        return record

    async def _post_token(self, token_endpoint: str, payload: dict[str, str]) -> Mapping[str, Any]:
        try:
            async with self._http_client_factory(timeout=self._timeout_seconds) as client:
                response = await client.post(
                    token_endpoint,
                    data=payload,
                    headers={"Accept": "application/json"},
                )
        except httpx.TimeoutException as exc:
            raise TokenExchangeFailed("timeout", "token endpoint did not respond in time") from exc
        except httpx.RequestError as exc:
            raise TokenExchangeFailed("network_error", "token request failed") from exc

        if not response.is_success:
            error = _token_error(response)
            logger.warning(
                "token request rejected error=%s",
                error.error,
                extra={"status_code": response.status_code, "error_code": error.code},
            )
            raise error

        return _json_object(response)


def parse_server_metadata(
    data: Mapping[str, Any],
    *,
    default_issuer: str,
) -> ServerMetadata:
    authorization_endpoint = data.get("authorization_endpoint")
    token_endpoint = data.get("token_endpoint")
    if not isinstance(authorization_endpoint, str) or not authorization_endpoint:
        raise DiscoveryFailed("server metadata missing authorization_endpoint")
    if not isinstance(token_endpoint, str) or not token_endpoint:
        raise DiscoveryFailed("server metadata missing token_endpoint")

    issuer = data.get("issuer")
    raw_scopes = data.get("scopes_supported")
    scopes: tuple[str, ...] = ()
    if isinstance(raw_scopes, list):
        scopes = tuple(scope for scope in raw_scopes if isinstance(scope, str))

    return ServerMetadata(
        issuer=issuer if isinstance(issuer, str) and issuer else default_issuer,
        authorization_endpoint=authorization_endpoint,
        token_endpoint=token_endpoint,
        scopes_supported=scopes,
    )


def build_client_credentials(settings: AppSettings, metadata: ServerMetadata) -> ClientCredentials:
    return ClientCredentials(
        client_id=settings.oauth_client_id,
        client_secret=settings.oauth_client_secret or None,
        redirect_uri=settings.redirect_uri,
        authorization_endpoint=metadata.authorization_endpoint,
        token_endpoint=metadata.token_endpoint,
        scope=settings.oauth_scope_param,
    )


def _token_record(
    data: Mapping[str, Any],
    *,
    issued_at_ms: int,
    fallback_refresh_token: str | None = None,
) -> TokenRecord:
    access_token = data.get("access_token")
    if not isinstance(access_token, str) or not access_token:
        raise MalformedResponse("token response missing access_token")

    expires_in = _coerce_positive_int(data.get("expires_in"))
    if expires_in is None or expires_in > MAX_EXPIRES_IN_SECONDS:
        expires_in = DEFAULT_EXPIRES_IN_SECONDS

    token_type = data.get("token_type")
    if not isinstance(token_type, str) or not token_type.strip():
        token_type = DEFAULT_TOKEN_TYPE

    refresh_token = data.get("refresh_token")
    if not isinstance(refresh_token, str) or not refresh_token:
        refresh_token = fallback_refresh_token

    return TokenRecord(
        access_token=access_token,
        token_type=token_type,
        expires_at_ms=issued_at_ms + expires_in * 1000,
        refresh_token=refresh_token,
    )


def _token_error(response: httpx.Response) -> TokenExchangeFailed:
    try:
        data = response.json()
    except ValueError:
        return TokenExchangeFailed("unknown", status_code=response.status_code)

    if not isinstance(data, Mapping):
        return TokenExchangeFailed("unknown", status_code=response.status_code)

    error = data.get("error")
    description = data.get("error_description")
    return TokenExchangeFailed(
        error if isinstance(error, str) and error else "unknown",
        description if isinstance(description, str) and description else None,
        status_code=response.status_code,
    )


def _json_object(response: httpx.Response) -> Mapping[str, Any]:
    try:
        data = response.json()
    except ValueError as exc:
        raise MalformedResponse("upstream response is not valid JSON") from exc

    if not isinstance(data, Mapping):
        raise MalformedResponse("upstream response root must be a JSON object")
    return data


def _coerce_positive_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, int):
        return value if value > 0 else None

    if isinstance(value, float):
        return int(value) if math.isfinite(value) and value >= 1 else None

    if isinstance(value, str):
        try:
            parsed = int(value.strip())
        except ValueError:
            return None
        return parsed if parsed > 0 else None

    return None
