"""
Transfer API Client

Async HTTP client for the value-transfer API.
Registers wallets and signs every state-changing request with the bound
wallet's RSA key via WalletAuth.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from transfer_client.signers.codec import bytes_to_base64
from transfer_client.signers.errors import NoWalletError
from transfer_client.signers.key_provider import KeyProvider
from transfer_client.signers.keys import EncodedKey, KeyMaterial, PrivateKeyInput
from transfer_client.signers.request_signer import WalletAuth
from transfer_client.signers.wallet import ExportEncoding, Wallet, WalletInput

if TYPE_CHECKING:
    from transfer_client.utils.config import Settings

logger = structlog.get_logger(__name__)


class TransferClientError(Exception):
    """Base exception for transfer client errors."""

    pass


class TransferAPIError(TransferClientError):
    """Raised when API returns an error response."""

    def __init__(self, message: str, status_code: int, response_body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class TransferAuthenticationError(TransferAPIError):
    """Raised when the server rejects the wallet id or request signature."""

    pass


class TransferClient:
    """
    Async HTTP client for the transfer API.

    Example:
        >>> async with TransferClient("https://api.example.com") as client:
        ...     wallet = await client.register("USD")
        ...     backup = await client.export_wallet("base64")
        ...     balance = await client.get_balance()
    """

    # API paths
    PATH_REGISTER = "/v1/register"
    PATH_BALANCE = "/v1/balance"
    PATH_RECIPIENT = "/v1/recipient"
    PATH_TRANSFER = "/v1/transfer"
    PATH_TRANSFER_REQUEST = "/v1/transfer-request"
    PATH_TRANSFER_REQUEST_PAY = "/v1/transfer-request/pay"

    def __init__(
        self,
        base_url: str,
        wallet: Wallet | WalletInput | None = None,
        key_provider: KeyProvider | None = None,
        timeout: float = 30.0,
        signing_timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the transfer client.

        Args:
            base_url: API base URL.
            wallet: A bound wallet, or an id plus key to bind (optional).
            key_provider: Key provider (a default one if omitted).
            timeout: Request timeout in seconds.
            signing_timeout: Optional bound in seconds on request signing.
            transport: Custom httpx transport (optional).
        """
        if not base_url:
            raise TransferClientError("Base URL cannot be empty")

        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._provider = key_provider or KeyProvider()

        if isinstance(wallet, WalletInput):
            wallet = Wallet.from_input(wallet, self._provider)
        self._wallet: Wallet | None = wallet

        self._auth = WalletAuth(
            lambda: self._wallet,
            self._provider,
            timeout=signing_timeout,
        )
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> TransferClient:
        """
        Build a client from loaded settings.

        Raises:
            TransferClientError: If the wallet section is not configured.
        """
        config = settings.wallet
        if config is None:
            raise TransferClientError(
                "Wallet settings not configured. Set WALLET_BASE_URL."
            )

        provider = KeyProvider(backend_name=config.crypto_backend)
        wallet = None
        if config.id and config.private_key is not None:
            wallet = WalletInput(
                config.id,
                EncodedKey(
                    config.private_key.get_secret_value(),
                    config.private_key_encoding,
                ),
            )

        return cls(
            base_url=config.base_url,
            wallet=wallet,
            key_provider=provider,
            timeout=config.timeout,
            signing_timeout=config.signing_timeout,
        )

    async def __aenter__(self) -> TransferClient:
        """Enter async context manager."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            auth=self._auth,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def wallet(self) -> Wallet | None:
        """The bound wallet, or None if the client is unbound."""
        return self._wallet

    @property
    def key_provider(self) -> KeyProvider:
        return self._provider

    def _get_client(self) -> httpx.AsyncClient:
        """Get the HTTP client, raising if not initialized."""
        if self._client is None:
            raise TransferClientError(
                "Client not initialized. Use 'async with TransferClient(...) as client:'"
            )
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Make a request to the transfer API.

        Mutating requests are signed by WalletAuth when a wallet is bound.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: API endpoint path.
            json_body: JSON request body (optional).

        Returns:
            Parsed JSON response.

        Raises:
            TransferAuthenticationError: If API returns 401.
            TransferAPIError: If API returns another error status, or a
                              success body that is not a JSON object.
            TransferClientError: If the request fails in transport.
            SigningError: If a wallet is bound and the body cannot be signed.
        """
        client = self._get_client()

        log = logger.bind(method=method, path=path)
        log.debug("Making transfer API request")

        try:
            response = await client.request(method=method, url=path, json=json_body)
        except httpx.RequestError as e:
            log.error("Request failed", error=str(e))
            raise TransferClientError(f"Request failed: {e}") from e

        if response.status_code >= 400:
            try:
                error_body = response.json()
            except ValueError:
                error_body = response.text

            if response.status_code == 401:
                log.error("Authentication failed", response=error_body)
                raise TransferAuthenticationError(
                    "Authentication failed - check wallet id and signature",
                    status_code=401,
                    response_body=error_body,
                )

            log.error(
                "API error",
                status_code=response.status_code,
                response=error_body,
            )
            raise TransferAPIError(
                f"API error: {response.status_code}",
                status_code=response.status_code,
                response_body=error_body,
            )

        try:
            data = response.json()
        except ValueError as e:
            log.error("Response is not JSON", status_code=response.status_code)
            raise TransferAPIError(
                "API returned a non-JSON response",
                status_code=response.status_code,
                response_body=response.text,
            ) from e

        if not isinstance(data, dict):
            log.error("Response is not a JSON object", status_code=response.status_code)
            raise TransferAPIError(
                "API returned a JSON value that is not an object",
                status_code=response.status_code,
                response_body=data,
            )

        return data

    @staticmethod
    def _issued_at() -> int:
        """Current Unix timestamp in milliseconds."""
        return int(time.time() * 1000)

    async def register(
        self,
        currency: str,
        private_key: PrivateKeyInput | KeyMaterial | RSAPrivateKey | None = None,
    ) -> Wallet:
        """
        Register a wallet and bind it to this client.

        With ``private_key`` the given key becomes the signing key; without
        it a fresh RSA-2048 keypair is generated. The public key is sent as
        base64 DER SubjectPublicKeyInfo. Registering on a client that already
        has a wallet replaces that wallet.

        Args:
            currency: Currency code of the wallet (e.g. "USD").
            private_key: Existing signing key (optional).

        Returns:
            The newly bound Wallet.

        Raises:
            TransferAPIError: If registration is rejected. No wallet is bound.
            TransferClientError: If the request fails. No wallet is bound.
        """
        if private_key is not None:
            signing_key = await self._provider.import_private_key(private_key)
            public_key = await self._provider.derive_public_key(signing_key)
        else:
            signing_key, public_key = await self._provider.generate_key_pair()

        spki = await self._provider.export_key(public_key, "spki")
        body = {"currency": currency, "publicKey": bytes_to_base64(spki)}

        data = await self._request("POST", self.PATH_REGISTER, json_body=body)

        wallet_id = data.get("id")
        if not wallet_id:
            raise TransferAPIError(
                "Registration response did not include a wallet id",
                status_code=200,
                response_body=data,
            )

        wallet = Wallet(str(wallet_id), signing_key, provider=self._provider)
        if self._wallet is not None:
            logger.warning(
                "Replacing bound wallet",
                previous_wallet_id=self._wallet.id,
                wallet_id=wallet.id,
            )
        self._wallet = wallet
        logger.info("Wallet registered", wallet_id=wallet.id, currency=currency)
        return wallet

    async def export_wallet(self, encoding: ExportEncoding = "hex") -> str:
        """
        Export the bound wallet's private key as PKCS#8, hex or base64.

        Raises:
            NoWalletError: If no wallet is bound.
        """
        wallet = self._wallet
        if wallet is None:
            raise NoWalletError("No wallet bound. Register or supply a wallet first.")
        return await wallet.export_private_key(encoding)

    async def get_balance(self) -> dict[str, Any]:
        """Get the bound wallet's balance."""
        return await self._request(
            "POST", self.PATH_BALANCE, json_body={"iat": self._issued_at()}
        )

    async def recipient_info(self, recipient_id: str) -> dict[str, Any]:
        """Look up a recipient id."""
        return await self._request("GET", f"{self.PATH_RECIPIENT}/{recipient_id}")

    async def create_recipient_id(self) -> dict[str, Any]:
        """Create a recipient id for the bound wallet."""
        return await self._request(
            "POST", self.PATH_RECIPIENT, json_body={"iat": self._issued_at()}
        )

    async def transfer(self, recipient_id: str, amount: int | float) -> dict[str, Any]:
        """
        Transfer an amount from the bound wallet to a recipient.

        Args:
            recipient_id: Recipient id from ``create_recipient_id``.
            amount: Amount to transfer.
        """
        return await self._request(
            "POST",
            self.PATH_TRANSFER,
            json_body={
                "iat": self._issued_at(),
                "recipient": recipient_id,
                "amount": amount,
            },
        )

    async def transfer_request_info(self, request_id: str) -> dict[str, Any]:
        """Look up a transfer request."""
        return await self._request("GET", f"{self.PATH_TRANSFER_REQUEST}/{request_id}")

    async def create_transfer_request(self, amount: int | float) -> dict[str, Any]:
        """Create a transfer request payable to the bound wallet."""
        return await self._request(
            "POST",
            self.PATH_TRANSFER_REQUEST,
            json_body={"iat": self._issued_at(), "amount": amount},
        )

    async def pay_transfer_request(self, request_id: str) -> dict[str, Any]:
        """Pay a transfer request from the bound wallet."""
        return await self._request(
            "POST",
            self.PATH_TRANSFER_REQUEST_PAY,
            json_body={"iat": self._issued_at(), "transferRequest": request_id},
        )
