"""
Wallet Request Signer

Signs every state-changing request with the bound wallet's private key.

Authentication Flow:
1. Skip reads (GET, HEAD, OPTIONS, TRACE) and requests made without a wallet
2. Read the finalized request body as bytes
3. Sign the body with RSASSA-PKCS1-v1_5 (SHA-512)
4. Base64 encode the signature
5. Set the Wallet-Id, Signature and Signature-Algorithm headers together

If a wallet is bound and signing fails, the request is aborted with
SigningError and never sent unsigned.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Callable, Generator
from typing import TYPE_CHECKING

import httpx
import structlog

from transfer_client.signers.codec import bytes_to_base64
from transfer_client.signers.errors import SigningError, UnavailableError
from transfer_client.signers.key_provider import KeyProvider

if TYPE_CHECKING:
    from transfer_client.signers.wallet import Wallet

logger = structlog.get_logger(__name__)

HEADER_WALLET_ID = "Wallet-Id"
HEADER_SIGNATURE = "Signature"
HEADER_SIGNATURE_ALGORITHM = "Signature-Algorithm"
SIGNATURE_ALGORITHM = "RSA-SHA512"

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})


def is_mutating(method: str) -> bool:
    """True for every HTTP method except the pure reads."""
    return method.upper() not in SAFE_METHODS


class WalletAuth(httpx.Auth):
    """
    httpx authentication flow that signs request bodies with a wallet.

    The wallet is looked up through ``get_wallet`` each time a request is
    signed, so a wallet bound later (for example by registration) applies to
    every request signed after it is bound.

    Example:
        >>> auth = WalletAuth(lambda: client.wallet, KeyProvider())
        >>> async with httpx.AsyncClient(auth=auth) as http:
        ...     await http.post(url, json={"iat": 1700000000000})
    """

    requires_request_body = True

    def __init__(
        self,
        get_wallet: Callable[[], Wallet | None],
        provider: KeyProvider,
        timeout: float | None = None,
    ) -> None:
        """
        Initialize the signer.

        Args:
            get_wallet: Returns the currently bound wallet, or None.
            provider: Key provider used for signing.
            timeout: Optional bound in seconds on key resolution plus signing.
        """
        self._get_wallet = get_wallet
        self._provider = provider
        self._timeout = timeout

    async def sign_body(self, wallet: Wallet, body: bytes) -> dict[str, str]:
        """
        Sign a request body and build the authentication headers.

        Args:
            wallet: The wallet to sign with.
            body: The exact bytes that will be transmitted.

        Returns:
            A dictionary containing the three authentication headers:
            - Wallet-Id: The wallet id
            - Signature: Base64-encoded RSA signature of the body
            - Signature-Algorithm: Always RSA-SHA512

        Raises:
            SigningError: If the key cannot be resolved or signing fails.
            UnavailableError: If no cryptographic backend is available.
        """
        try:
            if self._timeout is None:
                signature = await self._sign(wallet, body)
            else:
                signature = await asyncio.wait_for(
                    self._sign(wallet, body), timeout=self._timeout
                )
        except (SigningError, UnavailableError):
            raise
        except asyncio.TimeoutError as e:
            raise SigningError(f"Signing timed out after {self._timeout}s") from e
        except Exception as e:
            raise SigningError(f"Failed to sign request body: {e}") from e

        return {
            HEADER_WALLET_ID: wallet.id,
            HEADER_SIGNATURE: bytes_to_base64(signature),
            HEADER_SIGNATURE_ALGORITHM: SIGNATURE_ALGORITHM,
        }

    async def _sign(self, wallet: Wallet, body: bytes) -> bytes:
        private_key = await wallet.get_private_key()
        return await self._provider.sign(private_key, body)

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        if not is_mutating(request.method):
            yield request
            return

        wallet = self._get_wallet()
        log = logger.bind(method=request.method, path=request.url.path)

        if wallet is None:
            log.debug("No wallet bound, sending request unsigned")
            yield request
            return

        # Copy of the frozen body; the stream httpx sends stays untouched
        await request.aread()
        body = bytes(request.content)
        headers = await self.sign_body(wallet, body)

        request.headers.update(headers)
        log.debug("Signed request", wallet_id=wallet.id, body_length=len(body))
        yield request

    def sync_auth_flow(
        self, request: httpx.Request
    ) -> Generator[httpx.Request, httpx.Response, None]:
        if is_mutating(request.method) and self._get_wallet() is not None:
            raise SigningError(
                "Wallet signing requires an async client; refusing to send unsigned"
            )
        yield request
