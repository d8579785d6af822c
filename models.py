# models.py - Pure data classes with NO dependencies.
"""
This module contains all shared data classes used across the application.
Having them in a separate file prevents circular imports.

All classes here should be:
- Pure dataclasses
- Have NO imports from other project modules
- Be importable by any module in the project
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class InboundMessage:
    """A chat message received from the transport."""
    id: int
    chat_id: int
    date: datetime
    text: str | None = None
    photo_base64: str | None = None


@dataclass(frozen=True)
class Signal:
    """A single trading intent extracted from a chat message."""
    action: str | None              # "buy", "sell", "close" or None
    confidence: float               # 0..1, sole gate for execution
    source_chat_id: int
    raw_message: str
    symbol: str | None = None
    price: float | None = None
    stop_loss: float | None = None
    take_profit: float | None = None
    quantity: float | None = None
    order_type: str = "market"      # "market" or "limit"
    leverage: int | None = None
    reasoning: str | None = None


@dataclass(frozen=True)
class Account:
    """One configured set of exchange credentials bound to permitted chats."""
    id: str
    name: str
    allowed_chat_ids: frozenset[int] = frozenset()
    credentials: dict[str, Any] = field(default_factory=dict, hash=False, repr=False)

    @property
    def has_credentials(self) -> bool:
        return bool(self.credentials.get("private_key"))


@dataclass(frozen=True)
class OrderLeg:
    """One order to submit to the exchange (entry, stop or take-profit)."""
    symbol: str
    side: str               # "buy" or "sell"
    kind: str               # "entry", "stop" or "take_profit"
    order_type: str         # "market", "limit" or "stop"
    amount: float
    position_side: str      # "long" or "short"
    price: float | None = None
    trigger_price: float | None = None


@dataclass(frozen=True)
class TradingConfig:
    """Live trading policy. Replaced wholesale on every update."""
    is_enabled: bool = False
    max_position_size: float = 100
    risk_percentage: float = 2

    # Stored document uses camelCase keys
    FIELD_NAMES = {
        "is_enabled": "isEnabled",
        "max_position_size": "maxPositionSize",
        "risk_percentage": "riskPercentage",
    }

    @classmethod
    def from_document(cls, data: dict | None) -> "TradingConfig":
        """
        Merge a stored document over the defaults. Unknown keys are ignored.

        Only a real boolean true enables trading. Numbers may be stored as
        strings; anything that is not a number keeps the default.
        """
        data = data or {}
        values = {"is_enabled": data.get("isEnabled") is True}
        for attr in ("max_position_size", "risk_percentage"):
            value = data.get(cls.FIELD_NAMES[attr])
            if value is None or isinstance(value, bool):
                continue
            try:
                values[attr] = float(value)
            except (TypeError, ValueError):
                continue
        return cls(**values)

    def to_document(self) -> dict:
        return {key: getattr(self, attr) for attr, key in self.FIELD_NAMES.items()}


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one signal execution, consumed by notification."""
    signal: Signal
    source_chat_id: int
    raw_message: str
    is_success: bool = False
    details: str | None = None
