"""
Key Provider

Resolves the cryptographic backend used for wallet keys and exposes the
key operations the wallet, the registrar and the request signer need.

Resolution order:
1. A backend instance injected into the provider
2. A backend registered process-wide under the configured name
3. The platform default, ``cryptography``

Resolution runs at most once per provider. Concurrent callers share the
same pending resolution and its result, including a failure.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from typing import Any

import structlog
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from transfer_client.signers.codec import base64_to_bytes, hex_to_bytes
from transfer_client.signers.errors import (
    InvalidKeyError,
    KeyDerivationError,
    UnavailableError,
)
from transfer_client.signers.keys import (
    USAGE_SIGN,
    CryptoBackend,
    CryptographyBackend,
    EncodedKey,
    KeyFormat,
    KeyMaterial,
    NativeKey,
    PrivateKeyInput,
    RsaPrivateJwk,
)

logger = structlog.get_logger(__name__)

BackendFactory = Callable[[], CryptoBackend]

DEFAULT_BACKEND = "cryptography"

_BACKENDS: dict[str, BackendFactory] = {DEFAULT_BACKEND: CryptographyBackend}


def register_backend(name: str, factory: BackendFactory) -> None:
    """
    Register a backend factory process-wide.

    Providers created with ``backend_name=name`` resolve to the backend the
    factory builds.

    Example:
        >>> register_backend("hsm", lambda: HsmBackend(slot=0))
        >>> provider = KeyProvider(backend_name="hsm")
    """
    if not name:
        raise ValueError("Backend name cannot be empty")
    _BACKENDS[name] = factory


def unregister_backend(name: str) -> None:
    """Remove a registered backend. The platform default cannot be removed."""
    if name == DEFAULT_BACKEND:
        raise ValueError(f"Cannot unregister the default backend {name!r}")
    _BACKENDS.pop(name, None)


def available_backends() -> list[str]:
    """Names of all registered backends."""
    return sorted(_BACKENDS)


class KeyProvider:
    """
    Lazily resolved access to a cryptographic backend.

    Example:
        >>> provider = KeyProvider()
        >>> private_key, public_key = await provider.generate_key_pair()
        >>> signature = await provider.sign(private_key, b"payload")
        >>> await provider.verify(public_key, signature, b"payload")
        True
    """

    def __init__(
        self,
        backend: CryptoBackend | None = None,
        backend_name: str | None = None,
    ) -> None:
        """
        Initialize the provider.

        Args:
            backend: A backend instance to use as-is (optional).
            backend_name: Name of a registered backend (optional). Ignored
                          when ``backend`` is given.
        """
        self._backend = backend
        self._backend_name = backend_name
        self._resolution: asyncio.Future[CryptoBackend] | None = None

    @property
    def is_resolved(self) -> bool:
        """True once a backend has been resolved successfully."""
        if self._backend is not None:
            return True
        return (
            self._resolution is not None
            and self._resolution.done()
            and not self._resolution.cancelled()
            and self._resolution.exception() is None
        )

    async def resolve(self) -> CryptoBackend:
        """
        Resolve the backend, once.

        Returns:
            The resolved backend.

        Raises:
            UnavailableError: If no backend can be resolved.
        """
        if self._backend is not None:
            return self._backend

        if self._resolution is None:
            self._resolution = asyncio.ensure_future(self._resolve())

        # Shielded so a cancelled waiter does not cancel the shared resolution
        return await asyncio.shield(self._resolution)

    async def _resolve(self) -> CryptoBackend:
        name = self._backend_name or DEFAULT_BACKEND
        factory = _BACKENDS.get(name)
        if factory is None:
            raise UnavailableError(
                f"No cryptographic backend registered as {name!r}; "
                f"available: {', '.join(available_backends())}"
            )

        try:
            backend = factory()
        except Exception as e:
            raise UnavailableError(
                f"Cryptographic backend {name!r} is unavailable: {e}"
            ) from e

        if backend is None:
            raise UnavailableError(f"Cryptographic backend {name!r} is unavailable")

        logger.debug("Resolved cryptographic backend", backend=name)
        return backend

    async def generate_key_pair(self) -> tuple[KeyMaterial, KeyMaterial]:
        """Generate an RSA-2048 signing keypair as (private, public)."""
        backend = await self.resolve()
        return await asyncio.to_thread(backend.generate_key_pair)

    async def import_private_key(
        self,
        key_input: PrivateKeyInput | KeyMaterial | RSAPrivateKey | Mapping[str, Any],
    ) -> KeyMaterial:
        """
        Import a caller-supplied private key.

        Args:
            key_input: ``NativeKey``, ``EncodedKey`` (PKCS#8 as hex, base64
                       or PEM), ``RsaPrivateJwk`` or a private JWK mapping.
                       A bare ``KeyMaterial`` or ``RSAPrivateKey`` is treated
                       as a ``NativeKey``.

        Returns:
            A private KeyMaterial handle with the ``sign`` usage.

        Raises:
            InvalidKeyError: If the key cannot be imported.
            FormatError: If encoded text is not valid hex or base64.
        """
        if isinstance(key_input, (KeyMaterial, RSAPrivateKey)):
            key_input = NativeKey(key_input)
        elif isinstance(key_input, Mapping):
            key_input = RsaPrivateJwk.from_dict(key_input)

        if isinstance(key_input, NativeKey):
            return self._native_private_key(key_input)

        backend = await self.resolve()

        if isinstance(key_input, EncodedKey):
            if key_input.encoding == "pem":
                return backend.import_key("pem", key_input.key)
            if key_input.encoding == "hex":
                raw = hex_to_bytes(key_input.key)
            elif key_input.encoding == "base64":
                raw = base64_to_bytes(key_input.key)
            else:
                raise InvalidKeyError(
                    f"Unsupported key encoding: {key_input.encoding!r}"
                )
            return backend.import_key("pkcs8", raw)

        if isinstance(key_input, RsaPrivateJwk):
            return backend.import_key("jwk", key_input)

        raise InvalidKeyError(
            f"Unsupported private key input: {type(key_input).__name__}"
        )

    @staticmethod
    def _native_private_key(native: NativeKey) -> KeyMaterial:
        key = native.key
        if isinstance(key, KeyMaterial):
            if not key.is_private or not key.can(USAGE_SIGN):
                raise InvalidKeyError("Key material is not a signing private key")
            return key
        return KeyMaterial.from_private_key(key)

    async def import_public_key(self, spki_der: bytes) -> KeyMaterial:
        """Import a DER SubjectPublicKeyInfo public key."""
        backend = await self.resolve()
        return backend.import_key("spki", spki_der)

    async def export_key(self, key: KeyMaterial, fmt: KeyFormat) -> Any:
        """Export a key as ``pkcs8``/``pem`` (private), ``spki`` (public) or ``jwk``."""
        backend = await self.resolve()
        return backend.export_key(key, fmt)

    async def sign(self, key: KeyMaterial, message: bytes) -> bytes:
        """Sign a message with RSASSA-PKCS1-v1_5 over SHA-512."""
        backend = await self.resolve()
        return await asyncio.to_thread(backend.sign, key, message)

    async def verify(self, key: KeyMaterial, signature: bytes, message: bytes) -> bool:
        """Verify a signature produced by ``sign``."""
        backend = await self.resolve()
        return backend.verify(key, signature, message)

    async def derive_public_key(self, private_key: KeyMaterial) -> KeyMaterial:
        """
        Derive the verify-only public key of a private key.

        The private key is exported as a JWK, redacted to its public part
        and re-imported.

        Raises:
            InvalidKeyError: If ``private_key`` is not a private key.
            KeyDerivationError: If the export/import round trip fails.
        """
        if not private_key.is_private:
            raise InvalidKeyError("Public key derivation requires a private key")

        backend = await self.resolve()
        try:
            jwk = backend.export_key(private_key, "jwk")
            if not isinstance(jwk, RsaPrivateJwk):
                raise KeyDerivationError(
                    f"Backend exported {type(jwk).__name__} for a private key"
                )
            public_key = backend.import_key("jwk", jwk.to_public())
        except KeyDerivationError:
            raise
        except Exception as e:
            raise KeyDerivationError(f"Failed to derive public key: {e}") from e

        if public_key.is_private:
            raise KeyDerivationError("Derived key still carries private material")
        return public_key
