"""
Unit tests for key material and the cryptography backend.

Tests RSA-2048 generation, PKCS#8/SPKI/JWK import and export, and
RSASSA-PKCS1-v1_5 signing over SHA-512.
"""

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from transfer_client.signers.errors import InvalidKeyError, SigningError
from transfer_client.signers.keys import (
    CryptographyBackend,
    KeyMaterial,
    RsaPrivateJwk,
    RsaPublicJwk,
)


@pytest.fixture
def backend() -> CryptographyBackend:
    """Create a CryptographyBackend instance."""
    return CryptographyBackend()


class TestKeyMaterial:
    """Tests for the KeyMaterial handle."""

    def test_private_key_has_sign_usage(self, rsa_private_key):
        """Should tag private keys with the sign usage only."""
        key = KeyMaterial.from_private_key(rsa_private_key)
        assert key.is_private
        assert key.usages == frozenset({"sign"})
        assert key.key_size == 2048

    def test_public_key_has_verify_usage(self, rsa_private_key):
        """Should tag public keys with the verify usage only."""
        key = KeyMaterial.from_public_key(rsa_private_key.public_key())
        assert not key.is_private
        assert key.usages == frozenset({"verify"})

    def test_repr_hides_key_numbers(self, rsa_private_key):
        """Repr should not expose the private exponent or modulus."""
        key = KeyMaterial.from_private_key(rsa_private_key)
        numbers = rsa_private_key.private_numbers()

        text = repr(key)
        assert "private" in text
        assert str(numbers.d) not in text
        assert str(numbers.public_numbers.n) not in text

    def test_invalid_key_type_raises(self):
        """Should raise InvalidKeyError for non-RSA keys."""
        with pytest.raises(InvalidKeyError, match="Expected RSAPrivateKey"):
            KeyMaterial.from_private_key("not-a-key")  # type: ignore[arg-type]

    def test_small_key_raises(self):
        """Should raise InvalidKeyError for keys smaller than 2048 bits."""
        small_key = rsa.generate_private_key(public_exponent=65537, key_size=1024)
        with pytest.raises(InvalidKeyError, match="at least 2048 bits"):
            KeyMaterial.from_private_key(small_key)


class TestGenerateKeyPair:
    """Tests for keypair generation."""

    def test_generates_rsa_2048_with_standard_exponent(self, backend):
        """Should generate a 2048-bit key with exponent 65537."""
        private_key, public_key = backend.generate_key_pair()

        assert private_key.key_size == 2048
        assert public_key.key.public_numbers().e == 65537
        assert private_key.can("sign")
        assert public_key.can("verify")

    def test_pair_matches(self, backend):
        """The public key should verify signatures of the private key."""
        private_key, public_key = backend.generate_key_pair()
        signature = backend.sign(private_key, b"payload")
        assert backend.verify(public_key, signature, b"payload")


class TestImportExport:
    """Tests for key import and export formats."""

    def test_pkcs8_round_trip(self, backend, pkcs8_der):
        """Exported PKCS#8 should match the imported bytes."""
        key = backend.import_key("pkcs8", pkcs8_der)
        assert backend.export_key(key, "pkcs8") == pkcs8_der

    def test_pem_with_escaped_newlines(self, backend, pkcs8_pem, pkcs8_der):
        """Should import PEM text whose newlines were escaped."""
        escaped = pkcs8_pem.decode("utf-8").replace("\n", "\\n")
        key = backend.import_key("pem", escaped)
        assert backend.export_key(key, "pkcs8") == pkcs8_der

    def test_invalid_pkcs8_raises(self, backend):
        """Should raise InvalidKeyError for garbage bytes."""
        with pytest.raises(InvalidKeyError, match="Failed to load pkcs8 key"):
            backend.import_key("pkcs8", b"\x30\x03\x02\x01\x00")

    def test_spki_round_trip(self, backend, rsa_private_key):
        """SPKI export should re-import to the same public key."""
        public_key = KeyMaterial.from_public_key(rsa_private_key.public_key())
        der = backend.export_key(public_key, "spki")
        reloaded = backend.import_key("spki", der)
        assert (
            reloaded.key.public_numbers() == rsa_private_key.public_key().public_numbers()
        )

    def test_spki_export_of_private_key_raises(self, backend, private_key):
        """Should refuse SPKI export of a private key."""
        with pytest.raises(InvalidKeyError, match="requires a public key"):
            backend.export_key(private_key, "spki")

    def test_pkcs8_export_of_public_key_raises(self, backend, rsa_private_key):
        """Should refuse PKCS#8 export of a public key."""
        public_key = KeyMaterial.from_public_key(rsa_private_key.public_key())
        with pytest.raises(InvalidKeyError, match="requires a private key"):
            backend.export_key(public_key, "pkcs8")

    def test_private_jwk_round_trip(self, backend, private_key, rsa_private_key):
        """Private JWK export should re-import to the same key."""
        jwk = backend.export_key(private_key, "jwk")
        assert isinstance(jwk, RsaPrivateJwk)
        assert jwk.e == "AQAB"

        reloaded = backend.import_key("jwk", jwk.to_dict())
        assert reloaded.is_private
        assert (
            reloaded.key.private_numbers() == rsa_private_key.private_numbers()
        )

    def test_private_jwk_without_sign_usage_raises(self, backend, private_key):
        """Should reject a private JWK that does not allow signing."""
        data = backend.export_key(private_key, "jwk").to_dict()
        data["key_ops"] = ["verify"]
        with pytest.raises(InvalidKeyError, match="does not allow signing"):
            backend.import_key("jwk", data)

    def test_jwk_wrong_kty_raises(self, backend):
        """Should reject non-RSA JWKs."""
        with pytest.raises(InvalidKeyError, match="Unsupported JWK key type"):
            backend.import_key("jwk", {"kty": "EC", "x": "a", "y": "b"})

    def test_jwk_missing_field_raises(self, backend, private_key):
        """Should reject a private JWK with a missing CRT field."""
        data = backend.export_key(private_key, "jwk").to_dict()
        del data["qi"]
        with pytest.raises(InvalidKeyError, match="missing field"):
            backend.import_key("jwk", data)


class TestJwkRedaction:
    """Tests for converting a private JWK to its public counterpart."""

    def test_to_public_strips_private_fields(self, backend, private_key):
        """Should keep only n and e and downgrade usage to verify."""
        private_jwk = backend.export_key(private_key, "jwk")
        public_jwk = private_jwk.to_public()

        assert isinstance(public_jwk, RsaPublicJwk)
        data = public_jwk.to_dict()
        for name in ("d", "p", "q", "dp", "dq", "qi"):
            assert name not in data
        assert data["key_ops"] == ["verify"]
        assert data["n"] == private_jwk.n
        assert data["e"] == private_jwk.e

    def test_to_public_does_not_mutate_private(self, backend, private_key):
        """The private JWK should be left intact."""
        private_jwk = backend.export_key(private_key, "jwk")
        before = private_jwk.to_dict()
        private_jwk.to_public()
        assert private_jwk.to_dict() == before

    def test_private_jwk_repr_hides_secrets(self, backend, private_key):
        """Repr should not include the private exponent."""
        private_jwk = backend.export_key(private_key, "jwk")
        assert private_jwk.d not in repr(private_jwk)


class TestSignVerify:
    """Tests for RSASSA-PKCS1-v1_5 / SHA-512 signing."""

    def test_signature_verifies_with_cryptography(self, backend, private_key, rsa_private_key):
        """Signature should verify with PKCS1v15 and SHA-512."""
        message = b'{"iat":1699012345678}'
        signature = backend.sign(private_key, message)

        # This should not raise if signature is valid
        rsa_private_key.public_key().verify(
            signature,
            message,
            padding.PKCS1v15(),
            hashes.SHA512(),
        )

    def test_signing_is_deterministic(self, backend, private_key):
        """Signing the same bytes twice should give identical signatures."""
        message = b"same body"
        assert backend.sign(private_key, message) == backend.sign(private_key, message)

    def test_signature_length_matches_modulus(self, backend, private_key):
        """A 2048-bit key should produce 256-byte signatures."""
        assert len(backend.sign(private_key, b"")) == 256

    def test_verify_rejects_tampered_message(self, backend, private_key, rsa_private_key):
        """Should return False when the message changed."""
        public_key = KeyMaterial.from_public_key(rsa_private_key.public_key())
        signature = backend.sign(private_key, b"amount=1")
        assert backend.verify(public_key, signature, b"amount=2") is False

    def test_sign_with_public_key_raises(self, backend, rsa_private_key):
        """Should raise SigningError when given a public key."""
        public_key = KeyMaterial.from_public_key(rsa_private_key.public_key())
        with pytest.raises(SigningError, match="not usable for signing"):
            backend.sign(public_key, b"payload")
