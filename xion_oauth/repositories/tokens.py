"""Server-side token records keyed by an opaque session id."""

from __future__ import annotations

from collections.abc import MutableMapping
from typing import Any

from sqlalchemy import delete
from sqlalchemy.orm import Session

from xion_oauth.auth.models import TokenRecord, current_time_ms
from xion_oauth.auth.stores import Clock, ExpiringTokenStore
from xion_oauth.auth.tokens import generate_token
from xion_oauth.db.models import OauthTokenRecord

SESSION_TOKEN_KEY = "token_session_key"


class SqlTokenStore(ExpiringTokenStore):
    def __init__(
        self,
        db_session: Session,
        session_data: MutableMapping[str, Any],
        *,
        clock: Clock = current_time_ms,
    ) -> None:
        super().__init__(clock=clock)
        self._db_session = db_session
        self._session_data = session_data

    def _session_key(self) -> str | None:
        value = self._session_data.get(SESSION_TOKEN_KEY)
        return value if isinstance(value, str) and value else None

    def _read(self) -> TokenRecord | None:
        session_key = self._session_key()
        if session_key is None:
            return None

        row = self._db_session.get(OauthTokenRecord, session_key)
        if row is None:
            return None
        return TokenRecord(
            access_token=row.access_token,
            token_type=row.token_type,
            expires_at_ms=row.expires_at_ms,
            refresh_token=row.refresh_token,
        )

    def _write(self, record: TokenRecord) -> None:
        session_key = self._session_key()
        row = self._db_session.get(OauthTokenRecord, session_key) if session_key else None
        if row is None:
            session_key = generate_token()
            row = OauthTokenRecord(session_key=session_key)
            self._db_session.add(row)

        row.access_token = record.access_token
        row.token_type = record.token_type
        row.expires_at_ms = record.expires_at_ms
        row.refresh_token = record.refresh_token
        self._db_session.flush()
        self._session_data[SESSION_TOKEN_KEY] = session_key

    def _delete(self) -> None:
        session_key = self._session_data.pop(SESSION_TOKEN_KEY, None)
        if isinstance(session_key, str):
            self._db_session.execute(
                delete(OauthTokenRecord).where(OauthTokenRecord.session_key == session_key)
            )
            self._db_session.flush()

    def purge_expired(self, *, now_ms: int) -> int:
        """Delete expired rows of every session, not only the current one."""
        result = self._db_session.execute(
            delete(OauthTokenRecord).where(OauthTokenRecord.expires_at_ms <= now_ms)
        )
        self._db_session.flush()
        return int(result.rowcount or 0)
