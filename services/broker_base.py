# broker_base.py - Abstract base class for exchange client implementations.
"""
This module defines the interface that every exchange client must follow.
One client instance is created per configured account; the order
coordinator and account tools only ever talk to this interface.

To add a new exchange:
1. Create a new file (e.g., services/my_exchange.py)
2. Implement a class that inherits from ExchangeClient
3. Decorate it with @register_exchange("my_exchange")
"""

from abc import ABC, abstractmethod
from typing import Any

from models import Account


class ExchangeClient(ABC):
    """
    Abstract base class for all exchange account clients.

    Every method is a coroutine and raises on failure; callers decide
    which failures are fatal.
    """

    # Override in subclass
    NAME: str = "base"

    def __init__(self, account: Account):
        self.account = account

    @abstractmethod
    async def load_markets(self) -> dict[str, dict]:
        """Connect and load tradable markets, keyed by symbol."""

    @abstractmethod
    async def fetch_balance(self) -> dict[str, Any]:
        """
        Fetch account balances.

        Returns:
            {"total": float, "used": float, "free": float}
        """

    @abstractmethod
    async def fetch_ticker(self, symbol: str) -> dict[str, Any]:
        """Fetch the current price. Returns {"symbol": str, "last": float}."""

    @abstractmethod
    async def set_leverage(self, leverage: int, symbol: str) -> Any:
        """Set leverage for a symbol on this account."""

    @abstractmethod
    async def create_order(
        self,
        symbol: str,
        order_type: str,
        side: str,
        amount: float,
        price: float | None = None,
        params: dict | None = None
    ) -> dict[str, Any]:
        """
        Place an order.

        Args:
            symbol: Trading symbol (e.g., "BTC/USDT")
            order_type: "market", "limit" or "stop"
            side: "buy" or "sell"
            amount: Size in base units (fractional allowed)
            price: Limit price (limit orders only)
            params: Extra fields: "positionSide", "stopPrice", "reduceOnly"

        Returns:
            {"id": str, "status": str, ...}
        """

    @abstractmethod
    async def fetch_positions(self, symbols: list[str] | None = None) -> list[dict]:
        """Fetch open positions. Each: {"symbol", "side", "size", "entry_price", ...}"""

    @abstractmethod
    async def cancel_order(self, order_id: str, symbol: str) -> Any:
        """Cancel an open order."""

    @abstractmethod
    async def fetch_open_orders(self, symbol: str | None = None) -> list[dict]:
        """Fetch resting orders, optionally for one symbol."""

    async def close(self) -> None:
        """Release network resources. Default: nothing to release."""


# Registry of available exchanges
EXCHANGE_REGISTRY: dict[str, type[ExchangeClient]] = {}


def register_exchange(name: str):
    """Decorator to register an exchange implementation."""
    def decorator(cls: type[ExchangeClient]):
        EXCHANGE_REGISTRY[name.lower()] = cls
        return cls
    return decorator


def get_exchange(name: str) -> type[ExchangeClient]:
    """Get an exchange client class by name."""
    name_lower = name.lower()
    if name_lower not in EXCHANGE_REGISTRY:
        available = ", ".join(EXCHANGE_REGISTRY.keys())
        raise ValueError(f"Unknown exchange: {name}. Available: {available}")
    return EXCHANGE_REGISTRY[name_lower]

