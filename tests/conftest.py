from collections.abc import Callable
from typing import Any

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed
from flask import Flask
from jwt.api_jws import PyJWS

import kms_jwt as m

RING = "projects/test/locations/global/keyRings/jwt"


def key_version(key: str, version: str = "1") -> str:
    return f"{RING}/cryptoKeys/{key}/cryptoKeyVersions/{version}"


class FakeKMS:
    """
    In-memory RemoteSigner holding real private keys.
    Records every call so tests can count round-trips.
    """

    def __init__(self):
        self._keys: dict[str, Any] = {}
        self.sign_calls: list[tuple[str, m.AlgorithmFamily]] = []
        self.public_key_calls: list[str] = []
        self.timeouts: list[float | None] = []
        self.fail_with: Exception | None = None

    def add_key(self, name: str, private_key: Any) -> None:
        self._keys[name] = private_key

    def sign(
        self,
        ctx: m.KMSContext,
        key_version: str,
        digest: bytes,
        family: m.AlgorithmFamily,
    ) -> bytes:
        self.sign_calls.append((key_version, family))
        self.timeouts.append(ctx.timeout)
        key = self._lookup(key_version)
        hash_alg = {32: hashes.SHA256(), 48: hashes.SHA384()}[len(digest)]

        if family is m.AlgorithmFamily.RSA_PKCS1:
            return key.sign(digest, padding.PKCS1v15(), Prehashed(hash_alg))
        if family is m.AlgorithmFamily.RSA_PSS:
            pss = padding.PSS(mgf=padding.MGF1(hash_alg), salt_length=hash_alg.digest_size)
            return key.sign(digest, pss, Prehashed(hash_alg))
        return key.sign(digest, ec.ECDSA(Prehashed(hash_alg)))

    def get_public_key(self, ctx: m.KMSContext, key_version: str) -> Any:
        self.public_key_calls.append(key_version)
        self.timeouts.append(ctx.timeout)
        return self._lookup(key_version).public_key()

    def _lookup(self, name: str) -> Any:
        if self.fail_with is not None:
            raise self.fail_with
        try:
            return self._keys[name]
        except KeyError:
            raise m.KeyNotFound(f"key version {name} not found") from None


@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def p256_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def p384_key():
    return ec.generate_private_key(ec.SECP384R1())


@pytest.fixture
def fake_kms(rsa_key, other_rsa_key, p256_key, p384_key) -> FakeKMS:
    """
    One key per algorithm, version 1. rs256 also has a rotated version 2.
    """
    kms = FakeKMS()
    kms.add_key(key_version("rs256"), rsa_key)
    kms.add_key(key_version("rs256", "2"), other_rsa_key)
    kms.add_key(key_version("ps256"), rsa_key)
    kms.add_key(key_version("es256"), p256_key)
    kms.add_key(key_version("es384"), p384_key)
    return kms


@pytest.fixture
def key_name() -> Callable[..., str]:
    return key_version


@pytest.fixture
def make_ctx(fake_kms: FakeKMS) -> Callable[..., m.KMSContext]:
    """
    Factory fixture returning contexts bound to the fake KMS.

    Usage in tests:
        ctx = make_ctx("es256")
    """

    def _make(key: str = "rs256", version: str = "1", timeout: float | None = None) -> m.KMSContext:
        config = m.KMSConfig(key_path=key_version(key, version), client=fake_kms)
        return m.new_context(config, timeout=timeout)

    return _make


@pytest.fixture
def registry() -> m.SigningMethodRegistry:
    """Registry over a private PyJWS, leaving PyJWT's global table alone."""
    return m.SigningMethodRegistry(PyJWS())


@pytest.fixture(autouse=True)
def _clear_default_key_cache():
    m.default_key_cache.clear()
    yield
    m.default_key_cache.clear()


@pytest.fixture()
def app():
    app = Flask(__name__)
    app.config["TESTING"] = True
    return app
