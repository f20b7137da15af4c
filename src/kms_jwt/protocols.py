"""Protocol definitions for the KMS-backed JWT signing methods.

This module defines structural interfaces using Protocol (PEP 544) for:
- The remote signer (the key-management service client)
- Caching of fetched verification keys
- Token extraction from HTTP requests

Any class that implements the required methods satisfies the protocol, which
keeps the signing methods testable without a real key-management service.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol

from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes

if TYPE_CHECKING:
    from .context import KMSContext

# ============================================================================
# Type Aliases
# ============================================================================

type Claims = Mapping[str, Any]
"""Represents the decoded JWT payload as an immutable mapping."""

type PublicKey = PublicKeyTypes
"""Verification key material returned by a remote signer."""

type ViewFunc = Callable[..., Any]
"""Type alias for Flask view functions."""


class AlgorithmFamily(StrEnum):
    """Signature scheme requested from the remote signer."""

    RSA_PKCS1 = "RSA_PKCS1"
    RSA_PSS = "RSA_PSS"
    ECDSA = "ECDSA"


# ============================================================================
# Core Protocols
# ============================================================================


class RemoteSigner(Protocol):
    """Protocol for a remote key-management service.

    Private key material never leaves the service: callers send a digest and
    receive a signature, or ask for the public half of a key version.

    Both calls receive the caller's KMSContext untouched so implementations
    can honour its timeout.
    """

    def sign(
        self,
        ctx: KMSContext,
        key_version: str,
        digest: bytes,
        family: AlgorithmFamily,
    ) -> bytes:
        """Sign a precomputed digest with a key version.

        Args:
            ctx: Context of the calling operation.
            key_version: Fully-qualified key-version name.
            digest: Message digest, already computed by the caller.
            family: Signature scheme the key version is expected to use.

        Returns:
            Signature bytes. ECDSA signatures are DER-encoded, as the
            key-management service returns them.

        Raises:
            KeyNotFound: The key version does not exist.
            RemoteOperationFailed: Any other failure of the remote call.
        """
        ...

    def get_public_key(self, ctx: KMSContext, key_version: str) -> PublicKey:
        """Fetch the public key of a key version.

        Raises:
            KeyNotFound: The key version does not exist.
            RemoteOperationFailed: Any other failure of the remote call.
        """
        ...


class KeyStore(Protocol):
    """Protocol for caching verification keys by key-version name.

    Keys have no TTL: entries live until invalidated. Unknown key versions
    can be remembered for a short TTL (negative cache). Implementations must
    be safe to call from several threads; last write wins.
    """

    def get(self, key_version: str) -> PublicKey | None:
        """Return the cached key, or None on a miss."""
        ...

    def put(self, key_version: str, key: PublicKey) -> None:
        """Store a key, replacing any previous entry."""
        ...

    def set_missing(self, key_version: str, ttl_seconds: int) -> None:
        """Remember that ``key_version`` does not exist for ``ttl_seconds``."""
        ...

    def is_missing(self, key_version: str) -> bool:
        """True if ``key_version`` is known-missing and the entry has not expired."""
        ...


class Extractor(Protocol):
    """Protocol for extracting JWT tokens from HTTP requests.

    Implementers must provide an extract() method that retrieves the raw JWT
    string from the current Flask request context.
    """

    def extract(self) -> str:
        """Extract the raw JWT string from the Flask request.

        Raises:
            MissingToken: Token not found or improperly formatted.
        """
        ...
