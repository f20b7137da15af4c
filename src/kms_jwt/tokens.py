"""Minting and verifying whole tokens with a KMS signing method.

KMSSigningMethod plugs into PyJWT at the algorithm level, where the token
header is not visible. These helpers sit one level up:

- KMSSigner stamps the signing key version into the ``kid`` header.
- KMSVerifier reads the unverified header and threads its ``kid`` into the
  context, so the method verifies against the key version that signed.

Both go through the PyJWS object of a SigningMethodRegistry, so they work
against PyJWT's global table or an isolated one. Payloads are JSON objects;
registered claims (``exp``, ``aud``...) are not validated here.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import jwt

from .context import config_from, with_key_id
from .errors import InvalidToken, SignatureInvalid

if TYPE_CHECKING:
    from .context import KMSContext
    from .protocols import Claims
    from .registry import SigningMethodRegistry
    from .signing_method import KMSSigningMethod


class KMSSigner:
    """Mints tokens signed by a remote key.

    Creating a signer installs ``method`` in ``registry`` (the global PyJWT
    table by default), because PyJWS looks algorithms up by ``alg`` name.

    Example:
        ```python
        signer = KMSSigner(KMS_ES256)
        token = signer.sign({"sub": "u1"}, new_context(config))
        ```
    """

    def __init__(
        self,
        method: KMSSigningMethod,
        registry: SigningMethodRegistry | None = None,
        *,
        include_kid: bool = True,
    ) -> None:
        self._method = method
        self._registry = method.override(registry)
        self._include_kid = include_kid

    def sign(
        self,
        claims: Claims,
        ctx: KMSContext,
        headers: Mapping[str, Any] | None = None,
    ) -> str:
        """Return a compact JWS over ``claims``.

        Args:
            claims: JSON-serialisable payload.
            ctx: Context with the signing KMSConfig attached.
            headers: Extra header fields. An explicit ``kid`` wins over the
                one derived from the config.

        Raises:
            InvalidKeyError: ``ctx`` is not a KMSContext.
            MissingConfig: No config attached to ``ctx``.
            RemoteOperationFailed: The remote signer failed.
        """
        ctx = self._method.prepare_key(ctx)
        config = config_from(ctx)

        header: dict[str, Any] = {}
        if self._include_kid:
            header["kid"] = config.key_id
        header.update(headers or {})

        payload = json.dumps(dict(claims), separators=(",", ":")).encode("utf-8")
        return self._registry.jws.encode(
            payload,
            ctx,
            algorithm=self._method.name,
            headers=header,
        )


class KMSVerifier:
    """Verifies tokens against remote keys and returns their claims.

    Architecture:
        1. Read ``kid`` from the token header (unverified)
        2. Attach it to the context
        3. Decode via PyJWS, which calls the KMS method's ``verify``
        4. Map PyJWT exceptions to domain errors

    Errors from the key-management service (including KeyNotFound for an
    unknown ``kid``) propagate unchanged, so callers can tell a key problem
    from a forged token.
    """

    def __init__(
        self,
        method: KMSSigningMethod,
        registry: SigningMethodRegistry | None = None,
    ) -> None:
        self._method = method
        self._registry = method.override(registry)

    def verify(self, token: str, ctx: KMSContext) -> Claims:
        """Verify ``token`` and return its claims.

        Raises:
            InvalidToken: Token is malformed, uses another ``alg`` or carries
                a non-object payload.
            SignatureInvalid: The signature does not match the fetched key.
            InvalidKeyError: ``ctx`` is not a KMSContext.
            MissingConfig: No config attached to ``ctx``.
            RemoteOperationFailed: Fetching the public key failed.
        """
        ctx = self._method.prepare_key(ctx)

        # Only selects a key version inside the configured key ring; nothing
        # in the header is trusted before the signature checks out.
        try:
            header = self._registry.jws.get_unverified_header(token)
        except jwt.InvalidTokenError as e:
            raise InvalidToken(f"Malformed token header: {e}") from e

        ctx = with_key_id(ctx, header.get("kid"))

        try:
            decoded = self._registry.jws.decode_complete(
                token,
                ctx,
                algorithms=[self._method.name],
            )
        except jwt.InvalidSignatureError as e:
            raise SignatureInvalid("Signature verification failed") from e
        except jwt.InvalidTokenError as e:
            raise InvalidToken(f"Token validation failed: {e}") from e

        try:
            claims = json.loads(decoded["payload"])
        except ValueError as e:
            raise InvalidToken("Token payload is not JSON") from e

        if not isinstance(claims, dict):
            raise InvalidToken("Token payload is not a JSON object")
        return claims
