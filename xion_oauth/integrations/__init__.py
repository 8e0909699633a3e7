"""External service integrations."""

from xion_oauth.integrations.oauth_server import (
    OAuthServerClient,
    OAuthServerClientProtocol,
    build_client_credentials,
    parse_server_metadata,
)
from xion_oauth.integrations.xion_api import (
    AccountApiError,
    AccountProfile,
    XionApiClient,
    XionApiClientProtocol,
    create_send_tokens_message,
    parse_account_profile,
)

__all__ = [
    "AccountApiError",
    "AccountProfile",
    "OAuthServerClient",
    "OAuthServerClientProtocol",
    "XionApiClient",
    "XionApiClientProtocol",
    "build_client_credentials",
    "create_send_tokens_message",
    "parse_account_profile",
    "parse_server_metadata",
]
