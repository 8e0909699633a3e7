"""Public-client (PKCE) command line for the XION OAuth2 server."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
import webbrowser
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from urllib.parse import parse_qs, urlsplit

from xion_oauth.auth import (
    CallbackParams,
    ClientCredentials,
    ConfigurationError,
    FileTokenStore,
    InMemoryPendingAuthorizationStore,
    OAuthError,
    TokenRecord,
    TokenStore,
    build_authorization_request,
    current_time_ms,
    validate_callback,
)
from xion_oauth.config import AppSettings, get_settings
from xion_oauth.core.logging import setup_logging
from xion_oauth.integrations.oauth_server import (
    OAuthServerClient,
    OAuthServerClientProtocol,
    build_client_credentials,
)
from xion_oauth.integrations.xion_api import (
    AccountApiError,
    XionApiClient,
    XionApiClientProtocol,
)


@dataclass(slots=True)
class CliContext:
    settings: AppSettings
    oauth_client: OAuthServerClientProtocol
    api_client: XionApiClientProtocol
    token_store: TokenStore
    input_func: Callable[[str], str] = input
    open_browser: Callable[[str], object] | None = webbrowser.open


def main(argv: Sequence[str] | None = None, *, context: CliContext | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        ctx = context or _default_context()
    except ConfigurationError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if args.command == "status":
        return _run_status(ctx)
    if args.command == "logout":
        ctx.token_store.clear()
        print("Credentials cleared.")
        return 0

    try:
        if args.command == "login":
            return asyncio.run(_run_login(ctx, args))
        if args.command == "refresh":
            return asyncio.run(_run_refresh(ctx))
        if args.command == "me":
            return asyncio.run(_run_me(ctx))
        if args.command == "send":
            return asyncio.run(_run_send(ctx, args))
    except OAuthError as exc:
        print(f"error: {exc.message} ({exc.code}: {exc})", file=sys.stderr)
        return 1
    except AccountApiError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    parser.error(f"unsupported command: {args.command}")
    return 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="python -m xion_oauth.cli.public_client")
    subparsers = parser.add_subparsers(dest="command", required=True)

    login_parser = subparsers.add_parser("login", help="authorize with PKCE and store the token")
    login_parser.add_argument("--redirect-uri", help="override the registered redirect URI")
    login_parser.add_argument("--no-browser", action="store_true")

    subparsers.add_parser("status", help="show authentication status")
    subparsers.add_parser("logout", help="clear the stored token")
    subparsers.add_parser("refresh", help="renew the access token with the refresh token")
    subparsers.add_parser("me", help="show the authenticated account")

    send_parser = subparsers.add_parser("send", help="send tokens to an address")
    send_parser.add_argument("to_address")
    send_parser.add_argument("amount", type=int)
    send_parser.add_argument("--denom")
    return parser


def _default_context() -> CliContext:
    settings = get_settings()
    setup_logging(settings.log_level, json_format=settings.log_json)
    return CliContext(
        settings=settings,
        oauth_client=OAuthServerClient.from_settings(settings),
        api_client=XionApiClient.from_settings(settings),
        token_store=FileTokenStore(Path(settings.cli_token_file).expanduser()),
    )


async def _public_credentials(ctx: CliContext, redirect_uri: str | None = None) -> ClientCredentials:
    metadata = await ctx.oauth_client.discover()
    credentials = build_client_credentials(ctx.settings, metadata)
    # The command line can never keep a secret; it always authenticates with PKCE.
    credentials = replace(credentials, client_secret=None)
    if redirect_uri:
        credentials = replace(credentials, redirect_uri=redirect_uri)
    return credentials


async def _run_login(ctx: CliContext, args: argparse.Namespace) -> int:
    credentials = await _public_credentials(ctx, args.redirect_uri)
    pending_store = InMemoryPendingAuthorizationStore()
    auth_request = build_authorization_request(
        credentials,
        use_pkce=True,
        ttl_seconds=ctx.settings.oauth_state_ttl_seconds,
    )
    pending_store.save(auth_request.pending)

    print("Open this URL to authorize:\n")
    print(auth_request.redirect_url)
    if not args.no_browser and ctx.open_browser is not None:
        ctx.open_browser(auth_request.redirect_url)

    callback_url = ctx.input_func("\nPaste the full URL you were redirected to: ")
    params = parse_callback_url(callback_url)
    result = validate_callback(params, pending_store)
    record = await ctx.oauth_client.exchange_code(
        credentials,
        code=result.code,
        code_verifier=result.code_verifier,
    )
    ctx.token_store.save(record)

    print("\nSuccess! You are now authenticated.")
    print(f"Token expires: {_format_ms(record.expires_at_ms)}")
    return 0


def _run_status(ctx: CliContext) -> int:
    record = ctx.token_store.load()
    if record is None:
        print('Not authenticated. Run "login" to authenticate.')
        return 1

    print("Authenticated")
    print(f"Token type: {record.token_type}")
    print(f"Token expires: {_format_ms(record.expires_at_ms)}")
    print(f"Expires in: {record.expires_in_seconds(current_time_ms())}s")
    return 0


async def _run_refresh(ctx: CliContext) -> int:
    record = ctx.token_store.load()
    if record is None or record.refresh_token is None:
        print('No refresh token available. Run "login" to authenticate.', file=sys.stderr)
        return 1

    credentials = await _public_credentials(ctx)
    try:
        refreshed = await ctx.oauth_client.refresh(
            credentials,
            refresh_token=record.refresh_token,
        )
    except OAuthError:
        ctx.token_store.clear()
        raise

    ctx.token_store.save(refreshed)
    print(f"Token refreshed. Expires: {_format_ms(refreshed.expires_at_ms)}")
    return 0


async def _run_me(ctx: CliContext) -> int:
    record = _require_token(ctx)
    if record is None:
        return 1

    profile = await ctx.api_client.get_me(access_token=record.access_token)
    print(json.dumps(profile.to_dict(), indent=2))
    return 0


async def _run_send(ctx: CliContext, args: argparse.Namespace) -> int:
    record = _require_token(ctx)
    if record is None:
        return 1
    if args.amount <= 0:
        print("error: amount must be positive", file=sys.stderr)
        return 2

    result = await ctx.api_client.send_tokens(
        access_token=record.access_token,
        to_address=args.to_address,
        amount=args.amount,
        denom=args.denom,
    )
    print(json.dumps(dict(result), indent=2))
    return 0


def parse_callback_url(callback_url: str) -> CallbackParams:
    query = parse_qs(urlsplit(callback_url.strip()).query)

    def first(name: str) -> str | None:
        values = query.get(name)
        return values[0] if values else None

    return CallbackParams.from_query(
        code=first("code"),
        state=first("state"),
        error=first("error"),
        error_description=first("error_description"),
    )


def _require_token(ctx: CliContext) -> TokenRecord | None:
    record = ctx.token_store.load()
    if record is None:
        print('Not authenticated. Run "login" first.', file=sys.stderr)
    return record


def _format_ms(epoch_ms: int) -> str:
    return datetime.fromtimestamp(epoch_ms / 1000).isoformat(timespec="seconds")


if __name__ == "__main__":
    raise SystemExit(main())
