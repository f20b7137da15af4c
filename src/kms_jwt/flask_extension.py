"""Flask extension minting and verifying tokens with a remote key.

Configuration (``app.config``):

- ``KMS_JWT_KEY_PATH``: key-version name used to sign, and to verify tokens
  without ``kid``. Required.
- ``KMS_JWT_ALGORITHM``: JWT ``alg``, one of RS256, PS256, ES256, ES384.
  Defaults to RS256.
- ``KMS_JWT_OVERRIDE``: when true (default), the KMS method replaces PyJWT's
  built-in algorithm process-wide, so plain ``jwt.decode`` calls elsewhere in
  the app use it too. When false, the extension keeps a private algorithm
  table. Strings such as "false" or "0" from the environment are accepted.
- ``KMS_JWT_TIMEOUT``: seconds allowed per Cloud KMS call. Defaults to the
  client's own deadline.

Error mapping of ``require()``:

- ``MissingToken``, ``InvalidToken``, ``SignatureInvalid``, ``KeyNotFound``
  -> HTTP 401
- other ``RemoteOperationFailed`` -> HTTP 503
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from typing import TYPE_CHECKING, Any, Final

import structlog
from flask import Flask, abort, current_app, g
from jwt.api_jws import PyJWS

from .config import KMSConfig
from .context import KMSContext, new_context
from .errors import KMSJWTError
from .extractors import BearerExtractor
from .registry import SigningMethodRegistry, default_registry
from .signing_method import get_signing_method
from .tokens import KMSSigner, KMSVerifier

if TYPE_CHECKING:
    from collections.abc import Callable

    from .protocols import Claims, Extractor, RemoteSigner, ViewFunc
    from .signing_method import KMSSigningMethod

logger = structlog.get_logger(__name__)

_EXT_KEY: Final[str] = "kms_jwt"
"""Flask extensions registry key."""

_TRUE: Final = frozenset({"1", "true", "yes", "on"})
_FALSE: Final = frozenset({"0", "false", "no", "off", ""})


def _config_flag(value: Any, name: str) -> bool:
    """Read a boolean config value, accepting the strings env files produce."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


@dataclass(frozen=True, slots=True)
class _State:
    """Per-app state stored in ``app.extensions``."""

    method: KMSSigningMethod
    ctx: KMSContext
    signer: KMSSigner
    verifier: KMSVerifier


class KMSJWT:
    """
    Flask glue for KMS-signed JWTs.

    Responsibilities:
    - Build the KMS context of the app from its config
    - Optionally override PyJWT's built-in algorithm
    - Mint tokens (``sign``)
    - Protect views (``require``), storing verified claims in ``flask.g.jwt``

    Pattern:
        kms_jwt = KMSJWT()
        kms_jwt.init_app(app)

    Usage:
        @app.get("/me")
        @kms_jwt.require()
        def me(): ...
    """

    def __init__(
        self,
        app: Flask | None = None,
        *,
        client: RemoteSigner | None = None,
        extractor: Extractor | None = None,
        registry: SigningMethodRegistry | None = None,
    ) -> None:
        self._client = client
        self._extractor: Extractor = extractor or BearerExtractor()
        self._registry = registry

        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Read the app's KMS_JWT_* config and register the extension.

        Raises:
            RuntimeError: If ``KMS_JWT_KEY_PATH`` is not set.
            ValueError: If the key path is malformed, or ``KMS_JWT_OVERRIDE``
                is not a boolean.
            NotImplementedError: If ``KMS_JWT_ALGORITHM`` has no KMS method.
        """
        key_path = app.config.get("KMS_JWT_KEY_PATH")
        if not key_path:
            raise RuntimeError("KMS_JWT_KEY_PATH is not configured")

        method = get_signing_method(app.config.get("KMS_JWT_ALGORITHM", "RS256"))
        timeout = app.config.get("KMS_JWT_TIMEOUT")
        ctx = new_context(
            KMSConfig(key_path=key_path, client=self._client),
            timeout=float(timeout) if timeout is not None else None,
        )

        registry = self._registry
        if registry is None:
            if _config_flag(app.config.get("KMS_JWT_OVERRIDE", True), "KMS_JWT_OVERRIDE"):
                registry = default_registry()
            else:
                registry = SigningMethodRegistry(PyJWS())

        app.extensions[_EXT_KEY] = _State(
            method=method,
            ctx=ctx,
            signer=KMSSigner(method, registry),
            verifier=KMSVerifier(method, registry),
        )
        logger.info("KMS JWT configured", alg=method.name, key_path=key_path)

    def sign(self, claims: Claims, headers: dict[str, Any] | None = None) -> str:
        """Mint a token for ``claims`` with the current app's key."""
        state = self._state()
        return state.signer.sign(claims, state.ctx, headers=headers)

    def verify(self, token: str) -> Claims:
        """Verify ``token`` with the current app's key and return its claims."""
        state = self._state()
        return state.verifier.verify(token, state.ctx)

    def require(self) -> Callable[[ViewFunc], ViewFunc]:
        """Decorator rejecting requests without a valid KMS-signed token.

        Side Effects:
            - Writes decoded claims to ``flask.g.jwt`` before calling the view.
            - May end the request early via ``flask.abort``.
        """

        def decorator(view: ViewFunc) -> ViewFunc:
            @wraps(view)
            def wrapper(*args: Any, **kwargs: Any) -> Any:
                try:
                    token = self._extractor.extract()
                    g.jwt = self.verify(token)
                except KMSJWTError as e:
                    logger.warning("Token rejected", error=type(e).__name__, reason=str(e))
                    abort(e.error_code, description=e.description)

                return view(*args, **kwargs)

            return wrapper

        return decorator

    def _state(self) -> _State:
        try:
            return current_app.extensions[_EXT_KEY]
        except KeyError as e:
            raise RuntimeError("KMSJWT.init_app() was not called for this app") from e
