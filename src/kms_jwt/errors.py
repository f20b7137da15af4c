"""Errors raised while signing or verifying tokens with remote keys.

Everything raised by this package inherits from KMSJWTError, except for a
malformed key argument: that reuses PyJWT's own ``InvalidKeyError`` so that
callers handling built-in algorithms keep working unchanged.

Each error carries an ``error_code`` (the HTTP status the Flask extension
answers with) and a ``description`` safe to return to clients.
"""

from __future__ import annotations

from jwt.exceptions import InvalidKeyError

__all__ = [
    "InvalidKeyError",
    "InvalidToken",
    "KMSJWTError",
    "KeyNotFound",
    "MissingConfig",
    "MissingToken",
    "RemoteOperationFailed",
    "SignatureInvalid",
]


class KMSJWTError(Exception):
    """Base exception for all failures of this package.

    Attributes:
        error_code: HTTP status code used when the error reaches a Flask view.
        description: Client-safe message. Detailed reasons stay in ``args``.
    """

    error_code: int = 401
    description: str = "Authentication failed"


class MissingConfig(KMSJWTError):  # noqa: N818
    """Raised when a KMSContext reaches a signing method without a KMSConfig.

    The context was the right shape, but nobody attached the remote key to
    use. This is a programming error on the caller's side.
    """

    error_code = 500
    description = "Signing configuration missing"


class RemoteOperationFailed(KMSJWTError):  # noqa: N818
    """Raised when the remote key-management service fails a request.

    Covers network failures, permission errors and unknown key versions.
    Signing methods never retry or wrap these; retries belong to the client.
    """

    error_code = 503
    description = "Key service unavailable"


class KeyNotFound(RemoteOperationFailed):
    """Raised when a key version does not exist in the key-management service.

    This is how a token carrying an unknown ``kid`` gets rejected, so it maps
    to 401 rather than 503.
    """

    error_code = 401
    description = "Unknown signing key"


class MissingToken(KMSJWTError):  # noqa: N818
    """Raised when no token is found in the request."""

    description = "Missing token"


class InvalidToken(KMSJWTError):  # noqa: N818
    """Raised when a token is present but cannot be decoded or verified.

    Malformed segments, a disallowed ``alg`` header or a non-JSON payload all
    end up here.
    """

    description = "Invalid token"


class SignatureInvalid(InvalidToken):  # noqa: N818
    """Raised when a signature does not match a successfully fetched key.

    Distinct from RemoteOperationFailed: the key is fine, the token is forged
    or corrupted.
    """

    description = "Invalid token signature"
