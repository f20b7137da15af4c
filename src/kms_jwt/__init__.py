"""
PyJWT signing methods backed by a remote key-management service.

High-level flow
---------------
Signing:
1. The caller attaches a `KMSConfig` (which key version) to a `KMSContext`.
2. The context is passed to PyJWT where a key would normally go.
3. `KMSSigningMethod.sign` digests the signing input and asks the remote
   signer (Cloud KMS by default) for a signature.

Verifying:
1. `KMSVerifier` reads the token's `kid` header and threads it into the
   context.
2. `KMSSigningMethod.verify` resolves the key version (`kid` relative to the
   configured key, or the configured version itself), fetches its public key
   once and caches it.
3. PyJWT's built-in algorithm of the same name checks the signature.

Overriding
----------
`KMS_RS256.override()` replaces PyJWT's own "RS256" for the whole process:
existing `jwt.encode`/`jwt.decode` calls keep working, now with a context in
place of the key. The replacement is permanent.

Example usage
-------------

.. code-block:: python

    from kms_jwt import KMS_ES256, KMSConfig, KMSSigner, KMSVerifier, new_context

    config = KMSConfig(
        key_path=(
            "projects/acme/locations/global/keyRings/jwt"
            "/cryptoKeys/es256/cryptoKeyVersions/1"
        )
    )
    ctx = new_context(config, timeout=5.0)

    token = KMSSigner(KMS_ES256).sign({"sub": "u1"}, ctx)
    claims = KMSVerifier(KMS_ES256).verify(token, ctx)
"""

# Remote signers
from .clients import GoogleKMSClient

# Configuration and context
from .config import KeyVersionName, KMSConfig, resolve_key_version
from .context import KMSContext, config_from, new_context, with_config, with_key_id

# Errors
from .errors import (
    InvalidKeyError,
    InvalidToken,
    KeyNotFound,
    KMSJWTError,
    MissingConfig,
    MissingToken,
    RemoteOperationFailed,
    SignatureInvalid,
)

# Extractors
from .extractors import BearerExtractor, CookieExtractor

# Flask extension
from .flask_extension import KMSJWT

# Key cache
from .key_cache import KeyCache, default_key_cache

# Protocols
from .protocols import AlgorithmFamily, Claims, Extractor, KeyStore, PublicKey, RemoteSigner

# Registry
from .registry import SigningMethodRegistry, default_registry

# Signing methods
from .signing_method import (
    KMS_ES256,
    KMS_ES384,
    KMS_PS256,
    KMS_RS256,
    SIGNING_METHODS,
    KMSSigningMethod,
    get_signing_method,
)

# Tokens
from .tokens import KMSSigner, KMSVerifier

__all__ = [
    # Errors
    "InvalidKeyError",
    "InvalidToken",
    "KMSJWTError",
    "KeyNotFound",
    "MissingConfig",
    "MissingToken",
    "RemoteOperationFailed",
    "SignatureInvalid",
    # Protocols
    "AlgorithmFamily",
    "Claims",
    "Extractor",
    "KeyStore",
    "PublicKey",
    "RemoteSigner",
    # Configuration and context
    "KMSConfig",
    "KMSContext",
    "KeyVersionName",
    "config_from",
    "new_context",
    "resolve_key_version",
    "with_config",
    "with_key_id",
    # Key cache
    "KeyCache",
    "default_key_cache",
    # Registry
    "SigningMethodRegistry",
    "default_registry",
    # Signing methods
    "KMSSigningMethod",
    "KMS_ES256",
    "KMS_ES384",
    "KMS_PS256",
    "KMS_RS256",
    "SIGNING_METHODS",
    "get_signing_method",
    # Tokens
    "KMSSigner",
    "KMSVerifier",
    # Remote signers
    "GoogleKMSClient",
    # Extractors
    "BearerExtractor",
    "CookieExtractor",
    # Flask extension
    "KMSJWT",
]
