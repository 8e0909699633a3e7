"""Authorization-code flow core."""

from xion_oauth.auth.errors import (
    AuthorizationDenied,
    ConfigurationError,
    DiscoveryFailed,
    EntropySourceUnavailable,
    ExpiredAuthorization,
    InvalidVerifier,
    MalformedResponse,
    MissingCode,
    OAuthError,
    StateMismatch,
    TokenExchangeFailed,
)
from xion_oauth.auth.flow import (
    AuthorizationRequest,
    CallbackParams,
    CallbackResult,
    build_authorization_request,
    validate_callback,
)
from xion_oauth.auth.models import (
    ClientCredentials,
    PendingAuthorization,
    ServerMetadata,
    TokenRecord,
    current_time_ms,
)
from xion_oauth.auth.stores import (
    FileTokenStore,
    InMemoryPendingAuthorizationStore,
    InMemoryTokenStore,
    PendingAuthorizationStore,
    TokenStore,
)
from xion_oauth.auth.tokens import derive_challenge, generate_token

__all__ = [
    "AuthorizationDenied",
    "AuthorizationRequest",
    "CallbackParams",
    "CallbackResult",
    "ClientCredentials",
    "ConfigurationError",
    "DiscoveryFailed",
    "EntropySourceUnavailable",
    "ExpiredAuthorization",
    "FileTokenStore",
    "InMemoryPendingAuthorizationStore",
    "InMemoryTokenStore",
    "InvalidVerifier",
    "MalformedResponse",
    "MissingCode",
    "OAuthError",
    "PendingAuthorization",
    "PendingAuthorizationStore",
    "ServerMetadata",
    "StateMismatch",
    "TokenExchangeFailed",
    "TokenRecord",
    "TokenStore",
    "build_authorization_request",
    "current_time_ms",
    "derive_challenge",
    "generate_token",
    "validate_callback",
]
