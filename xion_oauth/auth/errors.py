"""OAuth client error taxonomy."""

from __future__ import annotations


class OAuthError(Exception):
    """Base OAuth client exception.

    ``code`` is a stable identifier used for logging and error redirects,
    ``message`` is safe to show to an end user.
    """

    code = "oauth_error"
    message = "Authorization failed."

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.message)
        self.detail = detail


class ConfigurationError(OAuthError):
    """Raised when client configuration is missing or malformed."""

    code = "configuration_error"
    message = "OAuth client is not configured correctly."


class EntropySourceUnavailable(OAuthError):
    """Raised when no cryptographically secure random source exists."""

    code = "entropy_unavailable"
    message = "Secure random source is unavailable."


class InvalidVerifier(OAuthError):
    """Raised when a PKCE code verifier violates RFC 7636."""

    code = "invalid_verifier"
    message = "PKCE code verifier is invalid."


class AuthorizationDenied(OAuthError):
    code = "authorization_denied"
    message = "Login was canceled or rejected by the authorization server."

    def __init__(self, error: str, description: str | None = None) -> None:
        super().__init__(f"{error}: {description}" if description else error)
        self.error = error
        self.description = description


class MissingCode(OAuthError):
    code = "missing_code"
    message = "Callback is missing the authorization code."


class StateMismatch(OAuthError):
    code = "invalid_state"
    message = "Login session is invalid or has already been used."


class ExpiredAuthorization(StateMismatch):
    code = "expired_state"
    message = "Login session expired before the callback completed."


class TokenExchangeFailed(OAuthError):
    code = "token_exchange_failed"
    message = "Token request to the authorization server failed."

    def __init__(
        self,
        error: str,
        description: str | None = None,
        *,
        status_code: int | None = None,
    ) -> None:
        super().__init__(f"{error}: {description}" if description else error)
        self.error = error
        self.description = description
        self.status_code = status_code


class MalformedResponse(OAuthError):
    code = "malformed_response"
    message = "Authorization server returned an invalid response."


class DiscoveryFailed(OAuthError):
    code = "discovery_failed"
    message = "Failed to fetch OAuth server info."
