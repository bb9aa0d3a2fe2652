"""
Signers module for wallet authentication.

Provides:
- Codec helpers for hex, base64 and base64url key material
- RSA-2048 key material and the Key Provider
- Wallets binding a server-assigned id to a private key
- WalletAuth, the httpx flow that signs mutating requests
"""

from transfer_client.signers.codec import (
    base64_to_bytes,
    bytes_to_base64,
    bytes_to_hex,
    hex_to_bytes,
)
from transfer_client.signers.errors import (
    FormatError,
    InvalidKeyError,
    KeyDerivationError,
    NoWalletError,
    SigningError,
    UnavailableError,
    WalletError,
)
from transfer_client.signers.key_provider import (
    KeyProvider,
    available_backends,
    register_backend,
    unregister_backend,
)
from transfer_client.signers.keys import (
    CryptoBackend,
    CryptographyBackend,
    EncodedKey,
    KeyMaterial,
    NativeKey,
    RsaPrivateJwk,
    RsaPublicJwk,
)
from transfer_client.signers.request_signer import SIGNATURE_ALGORITHM, WalletAuth
from transfer_client.signers.wallet import PendingKey, Wallet, WalletInput

__all__ = [
    # Codec
    "bytes_to_hex",
    "hex_to_bytes",
    "bytes_to_base64",
    "base64_to_bytes",
    # Errors
    "WalletError",
    "UnavailableError",
    "FormatError",
    "InvalidKeyError",
    "KeyDerivationError",
    "NoWalletError",
    "SigningError",
    # Keys
    "CryptoBackend",
    "CryptographyBackend",
    "KeyMaterial",
    "NativeKey",
    "EncodedKey",
    "RsaPrivateJwk",
    "RsaPublicJwk",
    "KeyProvider",
    "register_backend",
    "unregister_backend",
    "available_backends",
    # Wallet and signing
    "Wallet",
    "WalletInput",
    "PendingKey",
    "WalletAuth",
    "SIGNATURE_ALGORITHM",
]
