"""Services package - Infrastructure components."""

from .broker_base import ExchangeClient, get_exchange
from .errors import (
    SignalTraderError,
    ConfigError,
    ExchangeError,
    OrderRejected,
    PolicyStoreError,
)

__all__ = [
    # Exchange abstraction
    "ExchangeClient",
    "get_exchange",
    # Errors
    "SignalTraderError",
    "ConfigError",
    "ExchangeError",
    "OrderRejected",
    "PolicyStoreError",
]
