"""Remote key configuration and key-version name handling.

Key versions are addressed by their fully-qualified Cloud KMS name::

    projects/{project}/locations/{location}/keyRings/{ring}/cryptoKeys/{key}/cryptoKeyVersions/{version}

A token header ``kid`` selects another version relative to the configured one.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from .errors import KeyNotFound

if TYPE_CHECKING:
    from .protocols import RemoteSigner

_KEY_VERSION_RE: Final[re.Pattern[str]] = re.compile(
    r"^(?P<ring>projects/[^/]+/locations/[^/]+/keyRings/[^/]+)"
    r"/cryptoKeys/(?P<key>[^/]+)"
    r"/cryptoKeyVersions/(?P<version>[^/]+)$"
)
"""Matches a fully-qualified key-version name."""

_SEGMENT_RE: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass(frozen=True, slots=True)
class KeyVersionName:
    """A parsed key-version name.

    Attributes:
        ring: ``projects/{p}/locations/{l}/keyRings/{r}``
        key: Crypto key id inside the ring.
        version: Version id of the crypto key.
    """

    ring: str
    key: str
    version: str

    @classmethod
    def parse(cls, name: str) -> KeyVersionName:
        """Parse a fully-qualified key-version name.

        Raises:
            ValueError: If ``name`` is not a key-version name.
        """
        match = _KEY_VERSION_RE.match(name)
        if match is None:
            raise ValueError(f"not a key version name: {name!r}")
        return cls(match["ring"], match["key"], match["version"])

    def __str__(self) -> str:
        return f"{self.ring}/cryptoKeys/{self.key}/cryptoKeyVersions/{self.version}"


@dataclass(frozen=True, slots=True)
class KMSConfig:
    """Which remote key a sign or verify call uses.

    Attributes:
        key_path: Fully-qualified key-version name. Used for signing, and for
            verifying tokens that carry no ``kid`` header.
        client: Remote signer to use for this key. When None, the signing
            method falls back to its default client.

    Example:
        ```python
        config = KMSConfig(
            key_path=(
                "projects/acme/locations/global/keyRings/jwt"
                "/cryptoKeys/rs256/cryptoKeyVersions/1"
            )
        )
        ctx = new_context(config)
        ```
    """

    key_path: str
    client: RemoteSigner | None = None

    def __post_init__(self) -> None:
        KeyVersionName.parse(self.key_path)

    @property
    def key_version(self) -> KeyVersionName:
        return KeyVersionName.parse(self.key_path)

    @property
    def key_id(self) -> str:
        """Version id of ``key_path``, the value signers put in ``kid``."""
        return self.key_version.version


def resolve_key_version(key_path: str, kid: str | None = None) -> str:
    """Resolve which key version verifies a token.

    Args:
        key_path: Configured key-version name.
        kid: ``kid`` header of the token, if any. Either a version id of the
            configured crypto key (``"2"``), a ``"<cryptoKey>/<version>"`` pair
            inside the configured key ring, or a full key-version name in that ring.

    Returns:
        Fully-qualified key-version name.

    Raises:
        KeyNotFound: If ``kid`` cannot name a key version, or names one outside
            the configured key ring.
    """
    if kid is None:
        return key_path

    base = KeyVersionName.parse(key_path)
    if _KEY_VERSION_RE.match(kid):
        if KeyVersionName.parse(kid).ring != base.ring:
            raise KeyNotFound(f"kid {kid!r} is outside key ring {base.ring}")
        return kid

    parts = kid.split("/")
    if not all(_SEGMENT_RE.match(p) for p in parts):
        raise KeyNotFound(f"malformed kid {kid!r}")

    match parts:
        case [version]:
            return str(KeyVersionName(base.ring, base.key, version))
        case [key, version]:
            return str(KeyVersionName(base.ring, key, version))
        case _:
            raise KeyNotFound(f"malformed kid {kid!r}")
