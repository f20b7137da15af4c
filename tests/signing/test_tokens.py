"""
Tests for KMSSigner / KMSVerifier: whole tokens through a registry's PyJWS.
"""

import json

import jwt
import pytest
from jwt.utils import base64url_decode, base64url_encode

import kms_jwt as m

METHODS = [
    (m.KMS_RS256, "rs256"),
    (m.KMS_PS256, "ps256"),
    (m.KMS_ES256, "es256"),
    (m.KMS_ES384, "es384"),
]

CLAIMS = {"foo": "bar"}


def _reheader(token: str, **changes) -> str:
    """Return ``token`` with header fields changed and its old signature."""
    header_b64, payload_b64, sig_b64 = token.split(".")
    header = json.loads(base64url_decode(header_b64))
    header.update(changes)
    header = {k: v for k, v in header.items() if v is not None}
    new_header = base64url_encode(json.dumps(header).encode()).decode()
    return f"{new_header}.{payload_b64}.{sig_b64}"


@pytest.mark.parametrize(("method", "key"), METHODS, ids=lambda v: getattr(v, "name", v))
class TestRoundTrip:
    """Sign then verify across all algorithm families."""

    def test_no_kid(self, method, key, make_ctx, registry):
        ctx = make_ctx(key)
        signer = m.KMSSigner(method, registry, include_kid=False)
        verifier = m.KMSVerifier(method, registry)

        token = signer.sign(CLAIMS, ctx)

        assert "kid" not in jwt.get_unverified_header(token)
        assert verifier.verify(token, ctx) == CLAIMS

    def test_valid_kid(self, method, key, make_ctx, registry):
        ctx = make_ctx(key)
        token = m.KMSSigner(method, registry).sign(CLAIMS, ctx)

        header = jwt.get_unverified_header(token)
        assert header == {"alg": method.name, "typ": "JWT", "kid": "1"}
        assert m.KMSVerifier(method, registry).verify(token, ctx) == CLAIMS

    def test_wrong_kid(self, method, key, make_ctx, registry):
        ctx = make_ctx(key)
        token = m.KMSSigner(method, registry).sign(CLAIMS, ctx, headers={"kid": "invalid"})

        with pytest.raises(m.KeyNotFound):
            m.KMSVerifier(method, registry).verify(token, ctx)


def test_signer_installs_method(registry):
    m.KMSSigner(m.KMS_PS256, registry)
    assert registry.get("PS256") is m.KMS_PS256


def test_verify_uses_kid_version(make_ctx, registry, fake_kms, key_name):
    signer = m.KMSSigner(m.KMS_RS256, registry)
    verifier = m.KMSVerifier(m.KMS_RS256, registry)

    token = signer.sign(CLAIMS, make_ctx("rs256", "2"))

    # Verifier configured with version 1; the kid points it at version 2.
    assert verifier.verify(token, make_ctx("rs256", "1")) == CLAIMS
    assert fake_kms.public_key_calls == [key_name("rs256", "2")]


def test_stripped_kid_falls_back_to_configured_version(make_ctx, registry):
    token = m.KMSSigner(m.KMS_RS256, registry).sign(CLAIMS, make_ctx("rs256", "2"))
    stripped = _reheader(token, kid=None)

    with pytest.raises(m.SignatureInvalid):
        m.KMSVerifier(m.KMS_RS256, registry).verify(stripped, make_ctx("rs256", "1"))


def test_tampered_payload(make_ctx, registry):
    ctx = make_ctx("es256")
    token = m.KMSSigner(m.KMS_ES256, registry).sign(CLAIMS, ctx)
    header_b64, _, sig_b64 = token.split(".")
    forged_payload = base64url_encode(b'{"foo":"baz"}').decode()

    with pytest.raises(m.SignatureInvalid):
        m.KMSVerifier(m.KMS_ES256, registry).verify(f"{header_b64}.{forged_payload}.{sig_b64}", ctx)


def test_repeated_verification_fetches_key_once(make_ctx, registry, fake_kms):
    ctx = make_ctx("es384")
    token = m.KMSSigner(m.KMS_ES384, registry).sign(CLAIMS, ctx)
    verifier = m.KMSVerifier(m.KMS_ES384, registry)

    for _ in range(3):
        verifier.verify(token, ctx)

    assert len(fake_kms.public_key_calls) == 1


def test_remote_failure_propagates(make_ctx, registry, fake_kms):
    ctx = make_ctx("rs256")
    token = m.KMSSigner(m.KMS_RS256, registry).sign(CLAIMS, ctx)
    fake_kms.fail_with = m.RemoteOperationFailed("permission denied")

    with pytest.raises(m.RemoteOperationFailed, match="permission denied"):
        m.KMSVerifier(m.KMS_RS256, registry).verify(token, ctx)


def test_other_algorithm_is_rejected(make_ctx, registry):
    ctx = make_ctx("rs256")
    token = m.KMSSigner(m.KMS_RS256, registry).sign(CLAIMS, ctx)

    with pytest.raises(m.InvalidToken):
        m.KMSVerifier(m.KMS_PS256, registry).verify(token, ctx)


@pytest.mark.parametrize("token", ["", "not-a-token", "a.b", "!!!.e30.sig"])
def test_malformed_token(token, make_ctx, registry):
    with pytest.raises(m.InvalidToken):
        m.KMSVerifier(m.KMS_RS256, registry).verify(token, make_ctx())


def test_non_object_payload(make_ctx, registry):
    ctx = make_ctx("es256")
    m.KMS_ES256.override(registry)
    token = registry.jws.encode(b"[1, 2]", ctx, algorithm="ES256")

    with pytest.raises(m.InvalidToken, match="JSON object"):
        m.KMSVerifier(m.KMS_ES256, registry).verify(token, ctx)


def test_sign_rejects_plain_key(registry):
    with pytest.raises(jwt.InvalidKeyError):
        m.KMSSigner(m.KMS_RS256, registry).sign(CLAIMS, "secret")  # type: ignore[arg-type]


def test_sign_without_config(registry):
    with pytest.raises(m.MissingConfig):
        m.KMSSigner(m.KMS_RS256, registry).sign(CLAIMS, m.KMSContext())


def test_verify_without_config(make_ctx, registry):
    token = m.KMSSigner(m.KMS_RS256, registry).sign(CLAIMS, make_ctx())

    with pytest.raises(m.MissingConfig):
        m.KMSVerifier(m.KMS_RS256, registry).verify(token, m.KMSContext())


def test_kid_naming_a_foreign_key_ring_is_rejected(make_ctx, registry, fake_kms, p256_key):
    foreign = "projects/attacker/locations/global/keyRings/jwt/cryptoKeys/es256/cryptoKeyVersions/1"
    fake_kms.add_key(foreign, p256_key)
    foreign_ctx = m.new_context(m.KMSConfig(key_path=foreign, client=fake_kms))
    token = m.KMSSigner(m.KMS_ES256, registry).sign(CLAIMS, foreign_ctx, headers={"kid": foreign})

    with pytest.raises(m.KeyNotFound):
        m.KMSVerifier(m.KMS_ES256, registry).verify(token, make_ctx("es256"))

    assert foreign not in fake_kms.public_key_calls
