"""
Shared fixtures for wallet and signing tests.

RSA-2048 generation is slow, so one key is generated per session.
"""

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from transfer_client.signers.key_provider import KeyProvider
from transfer_client.signers.keys import KeyMaterial


@pytest.fixture(scope="session")
def rsa_private_key():
    """Generate an RSA-2048 private key for the test session."""
    return rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048,
    )


@pytest.fixture(scope="session")
def pkcs8_der(rsa_private_key) -> bytes:
    """Get the PKCS#8 DER encoding of the session key."""
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def pkcs8_pem(rsa_private_key) -> bytes:
    """Get the PKCS#8 PEM encoding of the session key."""
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture
def private_key(rsa_private_key) -> KeyMaterial:
    """Wrap the session key as signing key material."""
    return KeyMaterial.from_private_key(rsa_private_key)


@pytest.fixture
def provider() -> KeyProvider:
    """Create a KeyProvider on the default backend."""
    return KeyProvider()
