"""Storage capabilities for pending authorizations and token records."""

from __future__ import annotations

import json
import logging
import os
import stat
from collections.abc import Callable
from pathlib import Path
from typing import Protocol, TypeAlias

from xion_oauth.auth.models import PendingAuthorization, TokenRecord, current_time_ms

logger = logging.getLogger(__name__)

Clock: TypeAlias = Callable[[], int]


class PendingAuthorizationStore(Protocol):
    def save(self, pending: PendingAuthorization) -> None: ...

    def pop(self) -> PendingAuthorization | None: ...

    def discard(self) -> None: ...


class TokenStore(Protocol):
    def save(self, record: TokenRecord) -> None: ...

    def load(self) -> TokenRecord | None: ...

    def clear(self) -> None: ...

    def is_authenticated(self) -> bool: ...


class InMemoryPendingAuthorizationStore:
    def __init__(self) -> None:
        self._pending: PendingAuthorization | None = None

    def save(self, pending: PendingAuthorization) -> None:
        self._pending = pending

    def pop(self) -> PendingAuthorization | None:
        pending, self._pending = self._pending, None
        return pending

    def discard(self) -> None:
        self._pending = None


class ExpiringTokenStore:
    """Lazy-expiry ``load`` on top of raw read/write/delete primitives."""

    def __init__(self, *, clock: Clock = current_time_ms) -> None:
        self._clock = clock

    def load(self) -> TokenRecord | None:
        record = self._read()
        if record is None:
            return None
        if record.is_expired(self._clock()):
            logger.info("stored access token expired; clearing")
            self.clear()
            return None
        return record

    def save(self, record: TokenRecord) -> None:
        self._write(record)

    def clear(self) -> None:
        self._delete()

    def is_authenticated(self) -> bool:
        return self.load() is not None

    def _read(self) -> TokenRecord | None:
        raise NotImplementedError

    def _write(self, record: TokenRecord) -> None:
        raise NotImplementedError

    def _delete(self) -> None:
        raise NotImplementedError


class InMemoryTokenStore(ExpiringTokenStore):
    def __init__(self, *, clock: Clock = current_time_ms) -> None:
        super().__init__(clock=clock)
        self._record: TokenRecord | None = None

    def _read(self) -> TokenRecord | None:
        return self._record

    def _write(self, record: TokenRecord) -> None:
        self._record = record

    def _delete(self) -> None:
        self._record = None


class FileTokenStore(ExpiringTokenStore):
    """JSON token file readable only by the owning user."""

    def __init__(self, path: Path, *, clock: Clock = current_time_ms) -> None:
        super().__init__(clock=clock)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> TokenRecord | None:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("token file root must be a JSON object")
            return TokenRecord.from_dict(data)
        except FileNotFoundError:
            return None
        except (KeyError, TypeError, ValueError):
            logger.warning("discarding unreadable token file path=%s", self._path)
            self._delete()
            return None

    def _write(self, record: TokenRecord) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        owner_only = stat.S_IRUSR | stat.S_IWUSR
        fd = os.open(self._path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, owner_only)
        if os.name != "nt":
            # The open() mode only applies to new files.
            os.fchmod(fd, owner_only)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(json.dumps(record.to_dict(), indent=2))

    def _delete(self) -> None:
        self._path.unlink(missing_ok=True)
