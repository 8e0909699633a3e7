"""Application configuration loading."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, cast
from urllib.parse import urlsplit

import yaml

from xion_oauth.auth.errors import ConfigurationError

DEFAULT_RUNTIME_CONFIG_PATH = "runtime-config.yaml"
DEFAULT_OAUTH_SERVER_URL = "http://localhost:8787"
DEFAULT_APP_BASE_URL = "http://localhost:3000"
DEFAULT_SCOPES = ("xion:transactions:submit",)
DEFAULT_TOKEN_FILE = str(Path.home() / ".xion-oauth" / "credentials.json")


@dataclass(frozen=True, slots=True)
class AppSettings:
    app_env: str
    app_secret_key: str
    app_base_url: str
    session_cookie_name: str
    session_cookie_max_age_seconds: int
    session_cookie_secure: bool
    oauth_state_ttl_seconds: int
    oauth_server_url: str
    oauth_client_id: str
    oauth_client_secret: str
    oauth_scopes: tuple[str, ...]
    oauth_http_timeout_seconds: float
    oauth_callback_path: str = "/api/auth/callback"
    api_base_url: str = ""
    log_level: str = "info"
    log_json: bool = False
    database_url: str = "sqlite+pysqlite:///./xion-oauth.db"
    cli_token_file: str = DEFAULT_TOKEN_FILE
    runtime_config_path: str = DEFAULT_RUNTIME_CONFIG_PATH

    @property
    def oauth_scope_param(self) -> str:
        return " ".join(self.oauth_scopes)

    @property
    def redirect_uri(self) -> str:
        return f"{self.app_base_url.rstrip('/')}{self.oauth_callback_path}"

    @property
    def is_confidential_client(self) -> bool:
        return bool(self.oauth_client_secret)

    @property
    def resolved_api_base_url(self) -> str:
        return (self.api_base_url or self.oauth_server_url).rstrip("/")

    def validate(self) -> AppSettings:
        """Fail fast on configuration the OAuth flow cannot run with."""
        if not self.oauth_client_id.strip():
            raise ConfigurationError("XION_OAUTH2_CLIENT_ID is not configured")

        for name, value in (
            ("oauth.server_url", self.oauth_server_url),
            ("app.base_url", self.app_base_url),
            ("api.base_url", self.resolved_api_base_url),
        ):
            if not _is_http_url(value):
                raise ConfigurationError(f"{name} must be an absolute http(s) URL: {value!r}")

        if not self.oauth_callback_path.startswith("/"):
            raise ConfigurationError("oauth.callback_path must start with '/'")
        if not self.oauth_scopes:
            raise ConfigurationError("oauth.scopes must list at least one scope")
        if self.oauth_http_timeout_seconds <= 0:
            raise ConfigurationError("oauth.http_timeout_seconds must be positive")
        return self

    @classmethod
    def from_yaml(cls, runtime_config_path: str = DEFAULT_RUNTIME_CONFIG_PATH) -> AppSettings:
        normalized_path = runtime_config_path.strip() or DEFAULT_RUNTIME_CONFIG_PATH
        config = _load_runtime_config(normalized_path)

        app_cfg = cast(dict[str, Any], config.get("app", {}))
        session_cfg = cast(dict[str, Any], config.get("session", {}))
        auth_cfg = cast(dict[str, Any], config.get("auth", {}))
        oauth_cfg = cast(dict[str, Any], config.get("oauth", {}))
        api_cfg = cast(dict[str, Any], config.get("api", {}))
        logging_cfg = cast(dict[str, Any], config.get("logging", {}))
        database_cfg = cast(dict[str, Any], config.get("database", {}))
        cli_cfg = cast(dict[str, Any], config.get("cli", {}))

        app_env = str(app_cfg.get("env", "development")).lower()
        oauth_scopes = _normalize_scopes(
            tuple(cast(list[str], oauth_cfg.get("scopes", list(DEFAULT_SCOPES))))
        )

        return cls(
            app_env=app_env,
            app_secret_key=str(app_cfg.get("secret_key", "change-me")),
            app_base_url=_normalize_base_url(
                os.environ.get("APP_URL") or str(app_cfg.get("base_url", DEFAULT_APP_BASE_URL))
            ),
            session_cookie_name=str(session_cfg.get("cookie_name", "xion_oauth_session")),
            session_cookie_max_age_seconds=int(
                session_cfg.get("cookie_max_age_seconds", 8 * 60 * 60)
            ),
            session_cookie_secure=bool(
                session_cfg.get("cookie_secure", app_env == "production")
            ),
            oauth_state_ttl_seconds=max(
                30,
                int(auth_cfg.get("oauth_state_ttl_seconds", 10 * 60)),
            ),
            oauth_server_url=_normalize_base_url(
                os.environ.get("XION_OAUTH2_SERVER_URL")
                or str(oauth_cfg.get("server_url", DEFAULT_OAUTH_SERVER_URL))
            ),
            oauth_client_id=(
                os.environ.get("XION_OAUTH2_CLIENT_ID") or str(oauth_cfg.get("client_id", ""))
            ).strip(),
            oauth_client_secret=(
                os.environ.get("XION_OAUTH2_CLIENT_SECRET")
                or str(oauth_cfg.get("client_secret", "") or "")
            ).strip(),
            oauth_scopes=oauth_scopes,
            oauth_http_timeout_seconds=float(oauth_cfg.get("http_timeout_seconds", 10.0)),
            oauth_callback_path=str(oauth_cfg.get("callback_path", "/api/auth/callback")),
            api_base_url=_normalize_base_url(str(api_cfg.get("base_url", "") or "")),
            log_level=(
                os.environ.get("LOG_LEVEL") or str(logging_cfg.get("level", "info"))
            ).lower(),
            log_json=_env_flag("LOG_JSON", bool(logging_cfg.get("json", False))),
            database_url=os.environ.get("DATABASE_URL")
            or str(database_cfg.get("url", "sqlite+pysqlite:///./xion-oauth.db")),
            cli_token_file=str(cli_cfg.get("token_file", DEFAULT_TOKEN_FILE)),
            runtime_config_path=normalized_path,
        )


def _load_runtime_config(runtime_config_path: str) -> dict[str, Any]:
    path = Path(runtime_config_path)
    if not path.exists() or not path.is_file():
        return {}

    parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
    if isinstance(parsed, dict):
        return parsed
    return {}


def _normalize_scopes(scopes: tuple[str, ...]) -> tuple[str, ...]:
    normalized: list[str] = []
    seen: set[str] = set()
    for scope in scopes:
        normalized_scope = str(scope).strip()
        if not normalized_scope or normalized_scope in seen:
            continue
        seen.add(normalized_scope)
        normalized.append(normalized_scope)
    return tuple(normalized)


def _normalize_base_url(value: str) -> str:
    return value.strip().rstrip("/")


def _is_http_url(value: str) -> bool:
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    runtime_config_path = os.environ.get(
        "XION_OAUTH_RUNTIME_CONFIG_PATH", DEFAULT_RUNTIME_CONFIG_PATH
    )
    return AppSettings.from_yaml(runtime_config_path).validate()
