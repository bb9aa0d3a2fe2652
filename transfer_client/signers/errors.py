"""
Exceptions raised by wallet key management and request signing.
"""

from __future__ import annotations


class WalletError(Exception):
    """Base exception for wallet and signing errors."""

    pass


class UnavailableError(WalletError):
    """Raised when no cryptographic backend can be resolved."""

    pass


class FormatError(WalletError, ValueError):
    """Raised when hex, base64 or base64url input is malformed."""

    pass


class InvalidKeyError(WalletError):
    """Raised when key material cannot be imported or is not a usable RSA key."""

    pass


class KeyDerivationError(WalletError):
    """Raised when a public key cannot be derived from a valid private key."""

    pass


class NoWalletError(WalletError):
    """Raised when an operation needs a bound wallet and none is bound."""

    pass


class SigningError(WalletError):
    """Raised when a request body cannot be signed. The request is not sent."""

    pass
