"""
RSA key material for wallet signing.

Wallet keys are RSA-2048 keys used with RSASSA-PKCS1-v1_5 over SHA-512.
This module holds the value types describing that material and the
default cryptographic backend built on the ``cryptography`` package:

- KeyMaterial: an opaque handle to a private (sign) or public (verify) key
- RsaPrivateJwk / RsaPublicJwk: the structured JWK representation
- NativeKey / EncodedKey: the accepted shapes of caller-supplied private keys
- CryptographyBackend: key generation, import/export, signing, verification
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal, Protocol, Union

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey

from transfer_client.signers.codec import base64url_to_int, int_to_base64url
from transfer_client.signers.errors import InvalidKeyError, SigningError

ALGORITHM_NAME = "RSASSA-PKCS1-v1_5"
HASH_NAME = "SHA-512"
JWK_ALGORITHM = "RS512"
MODULUS_LENGTH = 2048
PUBLIC_EXPONENT = 65537

USAGE_SIGN = "sign"
USAGE_VERIFY = "verify"

KeyFormat = Literal["pkcs8", "spki", "jwk", "pem"]
KeyEncodingName = Literal["hex", "base64", "pem"]


@dataclass(frozen=True, repr=False)
class KeyMaterial:
    """
    Handle to an RSA key tagged with what it may be used for.

    Private handles carry the ``sign`` usage, public handles ``verify``.
    The repr never includes key numbers, so a handle can be logged safely.

    Attributes:
        key: The underlying ``cryptography`` RSA key object.
        usages: Capabilities granted to this handle.
        algorithm: Signature scheme name.
        hash_name: Digest used by the signature scheme.
    """

    key: RSAPrivateKey | RSAPublicKey
    usages: frozenset[str]
    algorithm: str = ALGORITHM_NAME
    hash_name: str = HASH_NAME

    @classmethod
    def from_private_key(cls, private_key: RSAPrivateKey) -> KeyMaterial:
        """Wrap a ``cryptography`` RSA private key after validating it."""
        validate_private_key(private_key)
        return cls(key=private_key, usages=frozenset({USAGE_SIGN}))

    @classmethod
    def from_public_key(cls, public_key: RSAPublicKey) -> KeyMaterial:
        """Wrap a ``cryptography`` RSA public key."""
        if not isinstance(public_key, RSAPublicKey):
            raise InvalidKeyError(
                f"Expected RSAPublicKey, got {type(public_key).__name__}"
            )
        return cls(key=public_key, usages=frozenset({USAGE_VERIFY}))

    @property
    def is_private(self) -> bool:
        """True if this handle holds a private key."""
        return isinstance(self.key, RSAPrivateKey)

    @property
    def key_size(self) -> int:
        """Modulus length in bits."""
        return self.key.key_size

    def can(self, usage: str) -> bool:
        return usage in self.usages

    def __repr__(self) -> str:
        kind = "private" if self.is_private else "public"
        return (
            f"KeyMaterial(type={kind!r}, usages={sorted(self.usages)}, "
            f"key_size={self.key_size})"
        )


def validate_private_key(private_key: Any) -> None:
    """
    Validate that the key is an RSA private key of at least 2048 bits.

    Raises:
        InvalidKeyError: If the key is of the wrong type or too small.
    """
    if not isinstance(private_key, RSAPrivateKey):
        raise InvalidKeyError(
            f"Expected RSAPrivateKey, got {type(private_key).__name__}"
        )

    key_size = private_key.key_size
    if key_size < MODULUS_LENGTH:
        raise InvalidKeyError(
            f"RSA key size must be at least {MODULUS_LENGTH} bits, got {key_size}"
        )


@dataclass(frozen=True)
class RsaPublicJwk:
    """Public-only JWK: modulus and exponent, verify usage."""

    n: str
    e: str
    key_ops: tuple[str, ...] = (USAGE_VERIFY,)
    kty: str = "RSA"
    alg: str = JWK_ALGORITHM
    ext: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "kty": self.kty,
            "alg": self.alg,
            "n": self.n,
            "e": self.e,
            "key_ops": list(self.key_ops),
            "ext": self.ext,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RsaPublicJwk:
        _check_kty(data)
        try:
            return cls(
                n=data["n"],
                e=data["e"],
                key_ops=tuple(data.get("key_ops", (USAGE_VERIFY,))),
                alg=data.get("alg", JWK_ALGORITHM),
                ext=bool(data.get("ext", True)),
            )
        except KeyError as e:
            raise InvalidKeyError(f"JWK is missing field {e}") from e


@dataclass(frozen=True, repr=False)
class RsaPrivateJwk:
    """
    Private JWK carrying the private exponent and the CRT parameters.

    ``to_public`` is the only way to obtain the public counterpart: it builds
    a new ``RsaPublicJwk`` holding just ``n`` and ``e`` with the usage
    downgraded to ``verify``.
    """

    n: str
    e: str
    d: str
    p: str
    q: str
    dp: str
    dq: str
    qi: str
    key_ops: tuple[str, ...] = (USAGE_SIGN,)
    kty: str = "RSA"
    alg: str = JWK_ALGORITHM
    ext: bool = True

    PRIVATE_FIELDS = ("d", "p", "q", "dp", "dq", "qi")

    def to_public(self) -> RsaPublicJwk:
        return RsaPublicJwk(
            n=self.n,
            e=self.e,
            key_ops=(USAGE_VERIFY,),
            kty=self.kty,
            alg=self.alg,
            ext=self.ext,
        )

    def to_dict(self) -> dict[str, Any]:
        data = self.to_public().to_dict()
        data["key_ops"] = list(self.key_ops)
        for name in self.PRIVATE_FIELDS:
            data[name] = getattr(self, name)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RsaPrivateJwk:
        _check_kty(data)
        try:
            return cls(
                n=data["n"],
                e=data["e"],
                d=data["d"],
                p=data["p"],
                q=data["q"],
                dp=data["dp"],
                dq=data["dq"],
                qi=data["qi"],
                key_ops=tuple(data.get("key_ops", (USAGE_SIGN,))),
                alg=data.get("alg", JWK_ALGORITHM),
                ext=bool(data.get("ext", True)),
            )
        except KeyError as e:
            raise InvalidKeyError(f"Private JWK is missing field {e}") from e

    def __repr__(self) -> str:
        return f"RsaPrivateJwk(alg={self.alg!r}, key_ops={list(self.key_ops)})"


def _check_kty(data: Mapping[str, Any]) -> None:
    if data.get("kty") != "RSA":
        raise InvalidKeyError(f"Unsupported JWK key type: {data.get('kty')!r}")


@dataclass(frozen=True)
class NativeKey:
    """A private key that is already a usable key object."""

    key: KeyMaterial | RSAPrivateKey


@dataclass(frozen=True, repr=False)
class EncodedKey:
    """
    A private key carried as text.

    ``hex`` and ``base64`` hold PKCS#8 DER bytes. ``pem`` holds a PKCS#8 PEM
    block, as typically stored in environment variables.
    """

    key: str
    encoding: KeyEncodingName = "hex"

    def __repr__(self) -> str:
        return f"EncodedKey(encoding={self.encoding!r})"


PrivateKeyInput = Union[NativeKey, EncodedKey, RsaPrivateJwk]


class CryptoBackend(Protocol):
    """Operations the wallet needs from a cryptographic backend."""

    name: str

    def generate_key_pair(self) -> tuple[KeyMaterial, KeyMaterial]: ...

    def import_key(self, fmt: KeyFormat, data: Any) -> KeyMaterial: ...

    def export_key(self, key: KeyMaterial, fmt: KeyFormat) -> Any: ...

    def sign(self, key: KeyMaterial, message: bytes) -> bytes: ...

    def verify(self, key: KeyMaterial, signature: bytes, message: bytes) -> bool: ...


class CryptographyBackend:
    """
    RSASSA-PKCS1-v1_5 / SHA-512 backend on top of the ``cryptography`` package.

    Example:
        >>> backend = CryptographyBackend()
        >>> private_key, public_key = backend.generate_key_pair()
        >>> signature = backend.sign(private_key, b"{}")
        >>> backend.verify(public_key, signature, b"{}")
        True
    """

    name = "cryptography"

    def generate_key_pair(self) -> tuple[KeyMaterial, KeyMaterial]:
        """Generate an RSA-2048 keypair with public exponent 65537."""
        private_key = rsa.generate_private_key(
            public_exponent=PUBLIC_EXPONENT,
            key_size=MODULUS_LENGTH,
        )
        return (
            KeyMaterial.from_private_key(private_key),
            KeyMaterial.from_public_key(private_key.public_key()),
        )

    def import_key(self, fmt: KeyFormat, data: Any) -> KeyMaterial:
        """
        Import key material.

        Args:
            fmt: ``pkcs8`` (private, DER bytes), ``pem`` (private, PEM bytes
                 or text), ``spki`` (public, DER bytes) or ``jwk``
                 (``RsaPrivateJwk``, ``RsaPublicJwk`` or a JWK mapping).
            data: The key material in that format.

        Returns:
            A KeyMaterial handle.

        Raises:
            InvalidKeyError: If the material cannot be parsed or is not a
                             usable RSA key.
        """
        if fmt == "jwk":
            return self._import_jwk(data)

        try:
            if fmt == "pkcs8":
                loaded = serialization.load_der_private_key(bytes(data), password=None)
            elif fmt == "pem":
                if isinstance(data, str):
                    # Handle keys that may have escaped newlines
                    data = data.replace("\\n", "\n").encode("utf-8")
                loaded = serialization.load_pem_private_key(bytes(data), password=None)
            elif fmt == "spki":
                loaded = serialization.load_der_public_key(bytes(data))
            else:
                raise InvalidKeyError(f"Unsupported import format: {fmt!r}")
        except InvalidKeyError:
            raise
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise InvalidKeyError(f"Failed to load {fmt} key: {e}") from e

        if fmt == "spki":
            return KeyMaterial.from_public_key(loaded)
        return KeyMaterial.from_private_key(loaded)

    def _import_jwk(self, data: Any) -> KeyMaterial:
        if isinstance(data, Mapping):
            data = (
                RsaPrivateJwk.from_dict(data)
                if "d" in data
                else RsaPublicJwk.from_dict(data)
            )

        if isinstance(data, RsaPrivateJwk):
            if USAGE_SIGN not in data.key_ops:
                raise InvalidKeyError("Private JWK does not allow signing")
            try:
                public_numbers = rsa.RSAPublicNumbers(
                    e=base64url_to_int(data.e),
                    n=base64url_to_int(data.n),
                )
                private_key = rsa.RSAPrivateNumbers(
                    p=base64url_to_int(data.p),
                    q=base64url_to_int(data.q),
                    d=base64url_to_int(data.d),
                    dmp1=base64url_to_int(data.dp),
                    dmq1=base64url_to_int(data.dq),
                    iqmp=base64url_to_int(data.qi),
                    public_numbers=public_numbers,
                ).private_key()
            except ValueError as e:
                raise InvalidKeyError(f"Failed to load private JWK: {e}") from e
            return KeyMaterial.from_private_key(private_key)

        if isinstance(data, RsaPublicJwk):
            if USAGE_VERIFY not in data.key_ops:
                raise InvalidKeyError("Public JWK does not allow verification")
            try:
                public_key = rsa.RSAPublicNumbers(
                    e=base64url_to_int(data.e),
                    n=base64url_to_int(data.n),
                ).public_key()
            except ValueError as e:
                raise InvalidKeyError(f"Failed to load public JWK: {e}") from e
            return KeyMaterial.from_public_key(public_key)

        raise InvalidKeyError(f"Unsupported JWK value: {type(data).__name__}")

    def export_key(self, key: KeyMaterial, fmt: KeyFormat) -> Any:
        """
        Export key material.

        ``pkcs8`` and ``pem`` need a private key, ``spki`` a public key.
        ``jwk`` returns an ``RsaPrivateJwk`` or ``RsaPublicJwk``.
        """
        if fmt == "jwk":
            return self._export_jwk(key)

        if fmt in ("pkcs8", "pem"):
            if not key.is_private:
                raise InvalidKeyError(f"{fmt} export requires a private key")
            encoding = (
                serialization.Encoding.DER
                if fmt == "pkcs8"
                else serialization.Encoding.PEM
            )
            return key.key.private_bytes(
                encoding=encoding,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            )

        if fmt == "spki":
            if key.is_private:
                raise InvalidKeyError("spki export requires a public key")
            return key.key.public_bytes(
                encoding=serialization.Encoding.DER,
                format=serialization.PublicFormat.SubjectPublicKeyInfo,
            )

        raise InvalidKeyError(f"Unsupported export format: {fmt!r}")

    def _export_jwk(self, key: KeyMaterial) -> RsaPrivateJwk | RsaPublicJwk:
        if not key.is_private:
            numbers = key.key.public_numbers()
            return RsaPublicJwk(
                n=int_to_base64url(numbers.n),
                e=int_to_base64url(numbers.e),
            )

        private = key.key.private_numbers()
        public = private.public_numbers
        return RsaPrivateJwk(
            n=int_to_base64url(public.n),
            e=int_to_base64url(public.e),
            d=int_to_base64url(private.d),
            p=int_to_base64url(private.p),
            q=int_to_base64url(private.q),
            dp=int_to_base64url(private.dmp1),
            dq=int_to_base64url(private.dmq1),
            qi=int_to_base64url(private.iqmp),
            key_ops=tuple(sorted(key.usages)),
        )

    def sign(self, key: KeyMaterial, message: bytes) -> bytes:
        """
        Sign a message with RSASSA-PKCS1-v1_5 over SHA-512.

        Raises:
            SigningError: If the key cannot sign or the operation fails.
        """
        if not key.is_private or not key.can(USAGE_SIGN):
            raise SigningError("Key is not usable for signing")
        try:
            return key.key.sign(message, padding.PKCS1v15(), hashes.SHA512())
        except Exception as e:
            raise SigningError(f"Failed to sign message: {e}") from e

    def verify(self, key: KeyMaterial, signature: bytes, message: bytes) -> bool:
        """Return True if ``signature`` is valid for ``message`` under ``key``."""
        if key.is_private or not key.can(USAGE_VERIFY):
            raise InvalidKeyError("Key is not usable for verification")
        try:
            key.key.verify(signature, message, padding.PKCS1v15(), hashes.SHA512())
        except InvalidSignature:
            return False
        return True
