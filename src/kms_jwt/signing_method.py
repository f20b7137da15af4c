"""PyJWT algorithms whose private key lives in a key-management service.

A KMSSigningMethod is a drop-in ``jwt.algorithms.Algorithm``: PyJWS calls its
``prepare_key``, ``sign`` and ``verify`` exactly as it calls the built-in RSA
and EC algorithms. The difference is the ``key`` argument. Instead of key
material it takes a KMSContext naming the remote key version, and the
cryptographic work happens in two places:

- signing: the digest is sent to the remote signer, which returns the
  signature (private keys never leave the service);
- verifying: the public key is fetched once per key version, cached, and the
  built-in PyJWT algorithm of the same name checks the signature locally.

Flow of a verification:

1. ``prepare_key`` checks the key is a KMSContext (else ``InvalidKeyError``).
2. The attached KMSConfig is recovered (else ``MissingConfig``).
3. The key version is resolved from ``config.key_path`` and the token's
   ``kid``, threaded through the context by the caller.
4. The public key comes from the key cache, or from the remote signer on a
   miss. Fetch failures (unknown ``kid``) propagate unchanged, and unknown
   versions are negative-cached for ``missing_ttl_seconds``.
5. The key is checked against the algorithm. A ``kid`` naming a key of
   another type or curve fails as ``KeyNotFound``.
6. The built-in algorithm verifies; a mismatch returns False, which PyJWS
   reports as ``InvalidSignatureError``.

Module-level singletons cover RS256, PS256, ES256 and ES384. They are safe to
share between threads: all per-call state travels in the context.
"""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Any, Final, NoReturn

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from jwt.algorithms import Algorithm, ECAlgorithm, RSAAlgorithm, RSAPSSAlgorithm
from jwt.exceptions import InvalidKeyError
from jwt.utils import der_to_raw_signature

from .config import resolve_key_version
from .context import KMSContext, config_from
from .errors import KeyNotFound
from .key_cache import default_key_cache
from .protocols import AlgorithmFamily
from .registry import SigningMethodRegistry, default_registry

if TYPE_CHECKING:
    from .config import KMSConfig
    from .protocols import KeyStore, PublicKey, RemoteSigner


@functools.cache
def _default_client() -> RemoteSigner:
    """Cloud KMS client shared by methods that were given none."""
    from .clients.google_kms import GoogleKMSClient

    return GoogleKMSClient()


class KMSSigningMethod(Algorithm):
    """A JWT signing algorithm backed by a remote key-management service.

    Args:
        name: JWT ``alg`` value, e.g. "RS256".
        family: Signature scheme requested from the remote signer.
        hash_alg: Hash used to digest the signing input.
        local: Built-in PyJWT algorithm of the same name. It verifies
            signatures against fetched public keys, and is the entry this
            method replaces in a registry on ``override()``.
        curve: Curve of ECDSA methods, None for RSA.
        client: Default remote signer, used when the config names none.
            Falls back to a shared GoogleKMSClient.
        cache: Store for fetched public keys. Defaults to the process-wide
            ``default_key_cache``.
        missing_ttl_seconds: How long a key version the remote signer
            reported unknown is negative-cached.
    """

    def __init__(
        self,
        name: str,
        family: AlgorithmFamily,
        hash_alg: type[hashes.HashAlgorithm],
        local: Algorithm,
        curve: ec.EllipticCurve | None = None,
        *,
        client: RemoteSigner | None = None,
        cache: KeyStore | None = None,
        missing_ttl_seconds: int = 30,
    ) -> None:
        self.name = name
        self.family = family
        self.hash_alg = hash_alg
        self.local = local
        self.curve = curve
        self._client = client
        self._cache: KeyStore = cache if cache is not None else default_key_cache
        self._missing_ttl = missing_ttl_seconds

    def __repr__(self) -> str:
        return f"<KMSSigningMethod {self.name}>"

    def algorithm_name(self) -> str:
        return self.name

    def prepare_key(self, key: Any) -> KMSContext:
        """Accept only a KMSContext as key.

        Raw key material (PEM strings, bytes, key objects) is refused with
        PyJWT's own InvalidKeyError, the error callers of built-in algorithms
        already handle.
        """
        match key:
            case KMSContext():
                return key
            case _:
                raise InvalidKeyError(
                    f"{self.name} signs with a remote key: expected KMSContext, "
                    f"got {type(key).__name__}"
                )

    def sign(self, msg: bytes, key: Any) -> bytes:
        """Sign ``msg`` with the key version of the attached config.

        The ``kid`` of the context plays no role here: tokens are always
        signed with ``config.key_path``.

        Raises:
            InvalidKeyError: ``key`` is not a KMSContext.
            MissingConfig: No config attached to the context.
            RemoteOperationFailed: The remote signer failed.
        """
        ctx = self.prepare_key(key)
        config = config_from(ctx)

        signature = self._client_for(config).sign(
            ctx, config.key_path, self.digest(msg), self.family
        )
        if self.curve is not None:
            # Remote ECDSA signatures are DER; JWS wants fixed-size r || s.
            return der_to_raw_signature(signature, self.curve)
        return signature

    def verify(self, msg: bytes, key: Any, sig: bytes) -> bool:
        """Check ``sig`` against the public key of the resolved key version.

        Returns:
            True if the signature matches, False otherwise.

        Raises:
            InvalidKeyError: ``key`` is not a KMSContext, or the configured
                key does not fit this algorithm.
            MissingConfig: No config attached to the context.
            RemoteOperationFailed: Fetching the public key failed. An unknown
                ``kid``, or one naming a key of another algorithm, surfaces
                here as KeyNotFound.
        """
        ctx = self.prepare_key(key)
        config = config_from(ctx)

        key_version = resolve_key_version(config.key_path, ctx.key_id)
        try:
            public_key = self.public_key(ctx, key_version)
        except InvalidKeyError as e:
            if key_version == config.key_path:
                raise
            raise KeyNotFound(f"kid {ctx.key_id!r} does not name a {self.name} key") from e
        return self.local.verify(msg, public_key, sig)

    def digest(self, msg: bytes) -> bytes:
        h = hashes.Hash(self.hash_alg())
        h.update(msg)
        return h.finalize()

    def public_key(self, ctx: KMSContext, key_version: str) -> PublicKey:
        """Return the public key of ``key_version``, fetching it on a cache miss.

        The cache is keyed by name only, so the key is checked against this
        algorithm on every call.

        Raises:
            InvalidKeyError: The key does not fit this algorithm.
            KeyNotFound: The key version is unknown, possibly known-missing
                from an earlier fetch.
            RemoteOperationFailed: Fetching the public key failed.
        """
        public_key = self._cache.get(key_version)
        if public_key is None:
            public_key = self._fetch(ctx, key_version)
        self._check_key(key_version, public_key)
        return public_key

    def override(self, registry: SigningMethodRegistry | None = None) -> SigningMethodRegistry:
        """Install this method under its name, replacing the built-in one.

        Without ``registry`` this mutates PyJWT's global algorithm table: for
        the rest of the process, ``jwt.encode``/``jwt.decode`` with this
        ``alg`` go through the key-management service. Calling it again is a
        no-op.

        Returns:
            The registry the method was installed in.
        """
        if registry is None:
            registry = default_registry()
        registry.override(self)
        return registry

    @staticmethod
    def to_jwk(key_obj: Any, as_dict: bool = False) -> NoReturn:
        raise NotImplementedError("KMS keys cannot be exported as JWK")

    @staticmethod
    def from_jwk(jwk: str | dict[str, Any]) -> NoReturn:
        raise NotImplementedError("KMS keys cannot be loaded from JWK")

    def _client_for(self, config: KMSConfig) -> RemoteSigner:
        if config.client is not None:
            return config.client
        if self._client is not None:
            return self._client
        return _default_client()

    def _fetch(self, ctx: KMSContext, key_version: str) -> PublicKey:
        if self._cache.is_missing(key_version):
            raise KeyNotFound(f"key version {key_version} not found (cached)")

        try:
            public_key = self._client_for(config_from(ctx)).get_public_key(ctx, key_version)
        except KeyNotFound:
            self._cache.set_missing(key_version, ttl_seconds=self._missing_ttl)
            raise
        self._cache.put(key_version, public_key)
        return public_key

    def _check_key(self, key_version: str, public_key: PublicKey) -> None:
        if self.curve is None:
            if not isinstance(public_key, rsa.RSAPublicKey):
                raise InvalidKeyError(f"{key_version} is not an RSA key, cannot verify {self.name}")
            return

        if not isinstance(public_key, ec.EllipticCurvePublicKey):
            raise InvalidKeyError(f"{key_version} is not an EC key, cannot verify {self.name}")
        if public_key.curve.name != self.curve.name:
            raise InvalidKeyError(
                f"{key_version} uses curve {public_key.curve.name}, {self.name} needs {self.curve.name}"
            )


KMS_RS256: Final = KMSSigningMethod(
    "RS256",
    AlgorithmFamily.RSA_PKCS1,
    hashes.SHA256,
    RSAAlgorithm(RSAAlgorithm.SHA256),
)
KMS_PS256: Final = KMSSigningMethod(
    "PS256",
    AlgorithmFamily.RSA_PSS,
    hashes.SHA256,
    RSAPSSAlgorithm(RSAPSSAlgorithm.SHA256),
)
KMS_ES256: Final = KMSSigningMethod(
    "ES256",
    AlgorithmFamily.ECDSA,
    hashes.SHA256,
    ECAlgorithm(ECAlgorithm.SHA256),
    ec.SECP256R1(),
)
KMS_ES384: Final = KMSSigningMethod(
    "ES384",
    AlgorithmFamily.ECDSA,
    hashes.SHA384,
    ECAlgorithm(ECAlgorithm.SHA384),
    ec.SECP384R1(),
)

SIGNING_METHODS: Final[dict[str, KMSSigningMethod]] = {
    m.name: m for m in (KMS_RS256, KMS_PS256, KMS_ES256, KMS_ES384)
}
"""The module-level signing methods by JWT ``alg`` name."""


def get_signing_method(name: str) -> KMSSigningMethod:
    """Return the module-level signing method for ``name``.

    Raises:
        NotImplementedError: If there is no KMS method for ``name``.
    """
    try:
        return SIGNING_METHODS[name]
    except KeyError as e:
        raise NotImplementedError(f"no KMS signing method for {name!r}") from e
