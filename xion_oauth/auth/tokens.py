"""Random token and PKCE challenge helpers."""

from __future__ import annotations

import base64
import hashlib
import re
import secrets

from xion_oauth.auth.errors import EntropySourceUnavailable, InvalidVerifier

TOKEN_BYTES = 32
CODE_CHALLENGE_METHOD = "S256"

_VERIFIER_PATTERN = re.compile(r"[A-Za-z0-9\-._~]{43,128}")


def generate_token() -> str:
    """Return a URL-safe opaque token carrying 256 bits of entropy."""
    try:
        random_bytes = secrets.token_bytes(TOKEN_BYTES)
    except NotImplementedError as exc:
        raise EntropySourceUnavailable("os.urandom is not available") from exc
    return _b64url(random_bytes)


def generate_state() -> str:
    return generate_token()


def generate_code_verifier() -> str:
    # 32 random bytes encode to 43 chars, the RFC 7636 minimum.
    return generate_token()


def validate_code_verifier(verifier: str) -> str:
    if not isinstance(verifier, str) or _VERIFIER_PATTERN.fullmatch(verifier) is None:
        raise InvalidVerifier("code verifier must be 43-128 unreserved characters")
    return verifier


def derive_challenge(verifier: str) -> str:
    validate_code_verifier(verifier)
    digest = hashlib.sha256(verifier.encode("utf-8")).digest()
    return _b64url(digest)


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")
