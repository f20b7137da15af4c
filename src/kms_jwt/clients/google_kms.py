"""
Google Cloud KMS remote signer.

Signs digests and fetches public keys of asymmetric Cloud KMS key versions.
"""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Any, Final

import google_crc32c
import structlog
from cryptography.hazmat.primitives import serialization
from google.api_core import exceptions as core_exceptions
from google.cloud import kms

from ..errors import KeyNotFound, RemoteOperationFailed
from ..protocols import AlgorithmFamily, RemoteSigner

if TYPE_CHECKING:
    from ..context import KMSContext
    from ..protocols import PublicKey

logger = structlog.get_logger(__name__)

_DIGEST_FIELDS: Final[dict[int, str]] = {32: "sha256", 48: "sha384", 64: "sha512"}
"""Cloud KMS digest field by digest length in bytes."""


def crc32c(data: bytes) -> int:
    return google_crc32c.value(data)


class GoogleKMSClient(RemoteSigner):
    """
    RemoteSigner over the Cloud KMS API.

    Responsibilities
    ----------------
    1. Send digests to ``AsymmetricSign`` and return the signatures.
    2. Fetch PEM public keys with ``GetPublicKey`` and load them.
    3. Check CRC32C checksums both ways to detect corruption in transit.
    4. Map API errors onto KeyNotFound / RemoteOperationFailed.

    The underlying ``KeyManagementServiceClient`` is created on first use and
    loads Application Default Credentials itself. Its own retry policy
    applies; this class adds none.

    Parameters
    ----------
    client : kms.KeyManagementServiceClient | None
        Preconfigured client (custom credentials, endpoint, transport).

    Example
    -------
    signer = GoogleKMSClient()
    config = KMSConfig(key_path=name, client=signer)
    """

    def __init__(self, client: kms.KeyManagementServiceClient | None = None) -> None:
        self._injected = client

    @functools.cached_property
    def client(self) -> kms.KeyManagementServiceClient:
        if self._injected is not None:
            return self._injected
        logger.info("Creating Cloud KMS client")
        return kms.KeyManagementServiceClient()

    def sign(
        self,
        ctx: KMSContext,
        key_version: str,
        digest: bytes,
        family: AlgorithmFamily,
    ) -> bytes:
        field = _DIGEST_FIELDS.get(len(digest))
        if field is None:
            raise ValueError(f"unsupported digest length {len(digest)}")

        request = {
            "name": key_version,
            "digest": {field: digest},
            "digest_crc32c": crc32c(digest),
        }
        logger.debug("Signing digest", key_version=key_version, family=str(family), digest=field)

        response = self._call(self.client.asymmetric_sign, ctx, key_version, request)

        if not response.verified_digest_crc32c:
            raise RemoteOperationFailed(f"digest corrupted in transit to {key_version}")
        if response.name != key_version:
            raise RemoteOperationFailed(f"response names {response.name}, expected {key_version}")
        if response.signature_crc32c != crc32c(response.signature):
            raise RemoteOperationFailed(f"signature from {key_version} corrupted in transit")

        return response.signature

    def get_public_key(self, ctx: KMSContext, key_version: str) -> PublicKey:
        logger.debug("Fetching public key", key_version=key_version)

        response = self._call(self.client.get_public_key, ctx, key_version, {"name": key_version})

        pem = response.pem.encode("utf-8")
        if response.pem_crc32c != crc32c(pem):
            raise RemoteOperationFailed(f"public key of {key_version} corrupted in transit")

        try:
            return serialization.load_pem_public_key(pem)
        except ValueError as e:
            raise RemoteOperationFailed(f"unreadable public key for {key_version}") from e

    def _call(self, rpc: Any, ctx: KMSContext, key_version: str, request: dict[str, Any]) -> Any:
        kwargs: dict[str, Any] = {}
        if ctx.timeout is not None:
            kwargs["timeout"] = ctx.timeout

        try:
            return rpc(request=request, **kwargs)
        except core_exceptions.NotFound as e:
            logger.warning("Key version not found", key_version=key_version)
            raise KeyNotFound(f"key version {key_version} not found") from e
        except core_exceptions.GoogleAPIError as e:
            logger.error("Cloud KMS call failed", key_version=key_version, error=str(e))
            raise RemoteOperationFailed(f"Cloud KMS call failed for {key_version}: {e}") from e
