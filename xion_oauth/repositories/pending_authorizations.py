"""Server-side pending authorizations bound to the browser session."""

from __future__ import annotations

from collections.abc import MutableMapping
from typing import Any

from sqlalchemy import delete
from sqlalchemy.orm import Session

from xion_oauth.auth.models import PendingAuthorization
from xion_oauth.db.models import OauthPendingAuthorization

SESSION_STATE_KEY = "oauth_state"


class SqlPendingAuthorizationStore:
    """Pending authorization row keyed by state; the state lives in the session.

    A callback can only consume the row its own session created, and the row
    and the session entry are erased together.
    """

    def __init__(self, db_session: Session, session_data: MutableMapping[str, Any]) -> None:
        self._db_session = db_session
        self._session_data = session_data

    def save(self, pending: PendingAuthorization) -> None:
        self.discard()
        self._db_session.add(
            OauthPendingAuthorization(
                state=pending.state,
                code_verifier=pending.code_verifier,
                redirect_uri=pending.redirect_uri,
                expires_at_ms=pending.expires_at_ms,
            )
        )
        self._db_session.flush()
        self._session_data[SESSION_STATE_KEY] = pending.state

    def pop(self) -> PendingAuthorization | None:
        state = self._session_data.pop(SESSION_STATE_KEY, None)
        if not isinstance(state, str):
            return None

        row = self._db_session.get(OauthPendingAuthorization, state)
        if row is None:
            return None

        pending = PendingAuthorization(
            state=row.state,
            redirect_uri=row.redirect_uri,
            expires_at_ms=row.expires_at_ms,
            code_verifier=row.code_verifier,
        )
        self._db_session.delete(row)
        self._db_session.flush()
        return pending

    def discard(self) -> None:
        state = self._session_data.pop(SESSION_STATE_KEY, None)
        if isinstance(state, str):
            self._db_session.execute(
                delete(OauthPendingAuthorization).where(OauthPendingAuthorization.state == state)
            )
            self._db_session.flush()

    def purge_expired(self, *, now_ms: int) -> int:
        result = self._db_session.execute(
            delete(OauthPendingAuthorization).where(
                OauthPendingAuthorization.expires_at_ms <= now_ms
            )
        )
        self._db_session.flush()
        return int(result.rowcount or 0)
