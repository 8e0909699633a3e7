"""Repository layer exports."""

from xion_oauth.repositories.pending_authorizations import SqlPendingAuthorizationStore
from xion_oauth.repositories.tokens import SqlTokenStore

__all__ = [
    "SqlPendingAuthorizationStore",
    "SqlTokenStore",
]
