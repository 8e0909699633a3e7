"""Database layer exports."""

from xion_oauth.db.base import Base
from xion_oauth.db.models import OauthPendingAuthorization, OauthTokenRecord

__all__ = [
    "Base",
    "OauthPendingAuthorization",
    "OauthTokenRecord",
]
