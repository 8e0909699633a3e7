"""Authorization request building and callback validation."""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from xion_oauth.auth.errors import (
    AuthorizationDenied,
    ExpiredAuthorization,
    MissingCode,
    StateMismatch,
)
from xion_oauth.auth.models import ClientCredentials, PendingAuthorization, current_time_ms
from xion_oauth.auth.stores import PendingAuthorizationStore
from xion_oauth.auth.tokens import (
    CODE_CHALLENGE_METHOD,
    derive_challenge,
    generate_code_verifier,
    generate_state,
)

DEFAULT_PENDING_TTL_SECONDS = 10 * 60


@dataclass(frozen=True, slots=True)
class AuthorizationRequest:
    redirect_url: str
    pending: PendingAuthorization


@dataclass(frozen=True, slots=True)
class CallbackParams:
    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None

    @classmethod
    def from_query(
        cls,
        *,
        code: str | None = None,
        state: str | None = None,
        error: str | None = None,
        error_description: str | None = None,
    ) -> CallbackParams:
        return cls(
            code=_normalize_optional_text(code),
            state=_normalize_optional_text(state),
            error=_normalize_optional_text(error),
            error_description=_normalize_optional_text(error_description),
        )


@dataclass(frozen=True, slots=True)
class CallbackResult:
    code: str
    redirect_uri: str
    code_verifier: str | None = None


def build_authorization_request(
    credentials: ClientCredentials,
    use_pkce: bool,
    *,
    ttl_seconds: int = DEFAULT_PENDING_TTL_SECONDS,
    now_ms: int | None = None,
) -> AuthorizationRequest:
    issued_at_ms = current_time_ms() if now_ms is None else now_ms
    state = generate_state()

    query_params = {
        "client_id": credentials.client_id,
        "redirect_uri": credentials.redirect_uri,
        "response_type": "code",
        "scope": credentials.scope,
        "state": state,
    }

    code_verifier: str | None = None
    if use_pkce:
        code_verifier = generate_code_verifier()
        query_params["code_challenge"] = derive_challenge(code_verifier)
        query_params["code_challenge_method"] = CODE_CHALLENGE_METHOD

    pending = PendingAuthorization(
        state=state,
        redirect_uri=credentials.redirect_uri,
        expires_at_ms=issued_at_ms + ttl_seconds * 1000,
        code_verifier=code_verifier,
    )
    redirect_url = _append_query(credentials.authorization_endpoint, query_params)
    return AuthorizationRequest(redirect_url=redirect_url, pending=pending)


def validate_callback(
    params: CallbackParams,
    pending_store: PendingAuthorizationStore,
    *,
    now_ms: int | None = None,
) -> CallbackResult:
    """Check a redirect back from the authorization server.

    The pending authorization is single-use: it is removed from
    ``pending_store`` on every path, so replaying a callback always fails.
    """
    if params.error:
        pending_store.discard()
        raise AuthorizationDenied(params.error, params.error_description)

    if not params.code:
        pending_store.discard()
        raise MissingCode()

    pending = pending_store.pop()
    if pending is None or params.state is None:
        raise StateMismatch("no pending authorization for callback")

    if not hmac.compare_digest(pending.state.encode("utf-8"), params.state.encode("utf-8")):
        raise StateMismatch("callback state does not match pending authorization")

    checked_at_ms = current_time_ms() if now_ms is None else now_ms
    if pending.is_expired(checked_at_ms):
        raise ExpiredAuthorization("pending authorization expired")

    return CallbackResult(
        code=params.code,
        redirect_uri=pending.redirect_uri,
        code_verifier=pending.code_verifier,
    )


def _append_query(url: str, params: dict[str, str]) -> str:
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.extend(params.items())
    return urlunsplit(parts._replace(query=urlencode(query)))


def _normalize_optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None
