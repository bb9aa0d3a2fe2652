"""
Async HTTP client for the transfer API.
"""

from transfer_client.clients.transfer_client import (
    TransferAPIError,
    TransferAuthenticationError,
    TransferClient,
    TransferClientError,
)

__all__ = [
    "TransferClient",
    "TransferClientError",
    "TransferAPIError",
    "TransferAuthenticationError",
]
