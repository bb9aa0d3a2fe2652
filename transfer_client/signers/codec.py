"""
Text encodings for key and signature material.

Pure helpers converting raw bytes to and from lowercase hex, standard
padded base64 and the unpadded base64url integer form used by JWK.
"""

from __future__ import annotations

import base64
import binascii
import re

from transfer_client.signers.errors import FormatError

_HEX_PAIR = re.compile(r"[0-9a-fA-F]{2}")
_STRICT_HEX = re.compile(r"(?:[0-9a-fA-F]{2})*")
_BASE64URL = re.compile(r"[A-Za-z0-9_-]+")


def bytes_to_hex(data: bytes) -> str:
    """Encode bytes as lowercase hex, two characters per byte."""
    return bytes(data).hex()


def hex_to_bytes(value: str, strict: bool = True) -> bytes:
    """
    Decode a hex string.

    Args:
        value: Hex text, upper or lower case. Surrounding whitespace is ignored.
        strict: When True the whole input must be an even-length run of hex
                digits. When False every hex-digit pair found in the input is
                decoded and anything else is skipped, so input without a
                single pair decodes to ``b""``.

    Returns:
        The decoded bytes.

    Raises:
        FormatError: In strict mode, if the input is not valid hex.
    """
    if not isinstance(value, str):
        raise FormatError(f"Expected str, got {type(value).__name__}")

    if not strict:
        return bytes(int(pair, 16) for pair in _HEX_PAIR.findall(value))

    cleaned = value.strip()
    if not _STRICT_HEX.fullmatch(cleaned):
        raise FormatError("Input is not an even-length hex string")
    return bytes.fromhex(cleaned)


def bytes_to_base64(data: bytes) -> str:
    """Encode bytes as standard base64 with padding."""
    return base64.b64encode(bytes(data)).decode("ascii")


def base64_to_bytes(value: str) -> bytes:
    """
    Decode standard (non URL-safe) padded base64.

    Raises:
        FormatError: If the alphabet or padding is invalid.
    """
    try:
        return base64.b64decode(value.strip(), validate=True)
    except (binascii.Error, ValueError, AttributeError) as e:
        raise FormatError(f"Invalid base64 input: {e}") from e


def int_to_base64url(number: int) -> str:
    """Encode a non-negative integer as unpadded base64url of its big-endian bytes."""
    if number < 0:
        raise FormatError("Cannot encode a negative integer")
    length = max(1, (number.bit_length() + 7) // 8)
    raw = number.to_bytes(length, "big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def base64url_to_int(value: str) -> int:
    """
    Decode an unpadded base64url big-endian integer.

    Raises:
        FormatError: If the value is empty or uses characters outside the
                     base64url alphabet.
    """
    if not isinstance(value, str) or not _BASE64URL.fullmatch(value):
        raise FormatError("Invalid base64url integer")
    padded = value + "=" * (-len(value) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError) as e:
        raise FormatError(f"Invalid base64url integer: {e}") from e
    return int.from_bytes(raw, "big")
