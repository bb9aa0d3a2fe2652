"""
Utility modules for the transfer client.

Provides:
- Configuration management (config)
- Structured logging (logger)
"""

from transfer_client.utils.config import (
    AppConfig,
    Settings,
    WalletConfig,
    get_settings,
)
from transfer_client.utils.logger import (
    configure_from_settings,
    configure_logging,
    get_logger,
    redact_secrets,
)

__all__ = [
    # Config
    "AppConfig",
    "Settings",
    "WalletConfig",
    "get_settings",
    # Logger
    "configure_from_settings",
    "configure_logging",
    "get_logger",
    "redact_secrets",
]
