"""
Client for a value-transfer API with wallet-signed requests.

Every state-changing request is signed with the bound wallet's RSA-2048
key (RSASSA-PKCS1-v1_5, SHA-512).
"""

from transfer_client.clients import (
    TransferAPIError,
    TransferAuthenticationError,
    TransferClient,
    TransferClientError,
)
from transfer_client.signers import (
    EncodedKey,
    FormatError,
    InvalidKeyError,
    KeyDerivationError,
    KeyMaterial,
    KeyProvider,
    NativeKey,
    NoWalletError,
    SigningError,
    UnavailableError,
    Wallet,
    WalletAuth,
    WalletError,
    WalletInput,
)

__version__ = "0.1.0"

__all__ = [
    "TransferClient",
    "TransferClientError",
    "TransferAPIError",
    "TransferAuthenticationError",
    "EncodedKey",
    "KeyMaterial",
    "KeyProvider",
    "NativeKey",
    "Wallet",
    "WalletAuth",
    "WalletInput",
    "WalletError",
    "FormatError",
    "InvalidKeyError",
    "KeyDerivationError",
    "NoWalletError",
    "SigningError",
    "UnavailableError",
]
