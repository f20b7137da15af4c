"""The key argument of KMS signing methods.

PyJWT passes a single ``key`` value to an algorithm's ``sign`` and ``verify``.
Built-in algorithms expect key material there; KMS signing methods expect a
KMSContext instead, which carries:

- the call's ``timeout``, handed to the remote signer untouched,
- the attached KMSConfig (which remote key to use),
- the ``kid`` of the token being verified, when there is one.

Contexts are immutable. Attaching a config returns a new context, so one
signing method can serve concurrent calls with different configs.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from .config import KMSConfig
from .errors import MissingConfig


@dataclass(frozen=True, slots=True)
class KMSContext:
    """Per-call context for KMS signing methods.

    ``KMSContext()`` is the empty background context: no timeout, no config.
    """

    config: KMSConfig | None = None
    key_id: str | None = None
    timeout: float | None = None


def new_context(config: KMSConfig, timeout: float | None = None) -> KMSContext:
    """Return a fresh context with ``config`` attached."""
    return KMSContext(config=config, timeout=timeout)


def with_config(ctx: KMSContext, config: KMSConfig) -> KMSContext:
    """Return a copy of ``ctx`` carrying ``config``."""
    return replace(ctx, config=config)


def with_key_id(ctx: KMSContext, kid: str | None) -> KMSContext:
    """Return a copy of ``ctx`` carrying the ``kid`` of a token header."""
    return replace(ctx, key_id=kid)


def config_from(ctx: KMSContext) -> KMSConfig:
    """Recover the config attached to ``ctx``.

    Raises:
        MissingConfig: If no config is attached.
    """
    if ctx.config is None:
        raise MissingConfig("no KMSConfig attached to context")
    return ctx.config
