"""
Wallet

A wallet binds the identifier the server assigned at registration to the
private key that signs requests on its behalf. Wallet objects only exist in
the bound state; a client without a wallet is the unbound state.

A private key supplied as text is imported lazily: the wallet holds a
PendingKey that resolves on first use and caches the result.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from transfer_client.signers.codec import bytes_to_base64, bytes_to_hex
from transfer_client.signers.errors import InvalidKeyError
from transfer_client.signers.key_provider import KeyProvider
from transfer_client.signers.keys import (
    EncodedKey,
    KeyMaterial,
    NativeKey,
    PrivateKeyInput,
    RsaPrivateJwk,
)

ExportEncoding = Literal["hex", "base64"]


@dataclass(frozen=True)
class WalletInput:
    """
    Caller-supplied wallet: a known id plus its private key.

    Example:
        >>> WalletInput("w1", EncodedKey(os.environ["WALLET_KEY"], "hex"))
    """

    id: str
    private_key: PrivateKeyInput | KeyMaterial | RSAPrivateKey | Mapping[str, Any]


class PendingKey:
    """
    A private key whose import finishes on first use.

    Every caller of ``get`` awaits the same import. A failed import is
    re-raised to each caller and never retried.
    """

    def __init__(self, key_input: PrivateKeyInput, provider: KeyProvider) -> None:
        self._input = key_input
        self._provider = provider
        self._task: asyncio.Future[KeyMaterial] | None = None

    @property
    def resolved(self) -> bool:
        return (
            self._task is not None
            and self._task.done()
            and not self._task.cancelled()
            and self._task.exception() is None
        )

    async def get(self) -> KeyMaterial:
        if self._task is None:
            self._task = asyncio.ensure_future(
                self._provider.import_private_key(self._input)
            )
        return await asyncio.shield(self._task)

    def __repr__(self) -> str:
        return f"PendingKey(resolved={self.resolved})"


class Wallet:
    """
    Server-assigned wallet id bound to a private signing key.

    Attributes:
        id: Wallet identifier returned by the registration endpoint.

    Example:
        >>> wallet = Wallet("w1", private_key)
        >>> key = await wallet.get_private_key()
        >>> exported = await wallet.export_private_key("base64")
    """

    def __init__(
        self,
        wallet_id: str,
        private_key: KeyMaterial | PendingKey,
        provider: KeyProvider | None = None,
    ) -> None:
        """
        Initialize a bound wallet.

        Args:
            wallet_id: The server-assigned wallet id.
            private_key: A private KeyMaterial or a PendingKey.
            provider: Key provider used for export (a default one if omitted).

        Raises:
            InvalidKeyError: If the id is empty or the key is not private.
        """
        if not wallet_id:
            raise InvalidKeyError("Wallet id cannot be empty")
        if isinstance(private_key, KeyMaterial) and not private_key.is_private:
            raise InvalidKeyError("Wallet requires a private key, got a public key")
        if not isinstance(private_key, (KeyMaterial, PendingKey)):
            raise InvalidKeyError(
                f"Expected KeyMaterial or PendingKey, got {type(private_key).__name__}"
            )

        self._id = wallet_id
        self._private_key = private_key
        self._provider = provider or KeyProvider()

    @classmethod
    def from_input(
        cls,
        wallet_input: WalletInput,
        provider: KeyProvider | None = None,
    ) -> Wallet:
        """
        Build a wallet from a caller-supplied id and key.

        Native keys are bound immediately. Encoded keys and JWKs (an
        ``RsaPrivateJwk`` or a plain mapping) are imported on first use.
        """
        provider = provider or KeyProvider()
        key = wallet_input.private_key

        if isinstance(key, (KeyMaterial, RSAPrivateKey)):
            key = NativeKey(key)
        elif isinstance(key, Mapping):
            key = RsaPrivateJwk.from_dict(key)

        if isinstance(key, NativeKey):
            material = (
                key.key
                if isinstance(key.key, KeyMaterial)
                else KeyMaterial.from_private_key(key.key)
            )
            return cls(wallet_input.id, material, provider=provider)

        if isinstance(key, (EncodedKey, RsaPrivateJwk)):
            return cls(wallet_input.id, PendingKey(key, provider), provider=provider)

        raise InvalidKeyError(f"Unsupported private key input: {type(key).__name__}")

    @property
    def id(self) -> str:
        return self._id

    @property
    def provider(self) -> KeyProvider:
        return self._provider

    @property
    def is_key_resolved(self) -> bool:
        if isinstance(self._private_key, PendingKey):
            return self._private_key.resolved
        return True

    async def get_private_key(self) -> KeyMaterial:
        """Return the private key, waiting for a pending import if needed."""
        if isinstance(self._private_key, PendingKey):
            return await self._private_key.get()
        return self._private_key

    async def get_public_key(self) -> KeyMaterial:
        """Derive the verify-only public key."""
        private_key = await self.get_private_key()
        return await self._provider.derive_public_key(private_key)

    async def export_private_key(self, encoding: ExportEncoding = "hex") -> str:
        """
        Export the private key as PKCS#8 DER, hex or base64 encoded.

        Args:
            encoding: ``hex`` (lowercase, the default) or ``base64``.

        Returns:
            The encoded PKCS#8 bytes.
        """
        if encoding not in ("hex", "base64"):
            raise ValueError(f"Unsupported export encoding: {encoding!r}")

        private_key = await self.get_private_key()
        der = await self._provider.export_key(private_key, "pkcs8")
        if encoding == "hex":
            return bytes_to_hex(der)
        return bytes_to_base64(der)

    def __repr__(self) -> str:
        return f"Wallet(id={self._id!r})"
