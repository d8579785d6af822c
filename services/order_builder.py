# order_builder.py - Position sizing and order leg construction.
"""
Turns a signal into the legs the coordinator submits:
- entry (always)
- stop (when the signal has a stop loss)
- take_profit (when the signal has a take profit)

Pure functions: no I/O, same inputs always give the same legs.
"""

from models import OrderLeg, Signal, TradingConfig


DEFAULT_BTC_LEVERAGE = 5
DEFAULT_LEVERAGE = 3

# Divisor used when the signal carries no reference price
FALLBACK_PRICE_DIVISOR = 100


def determine_side(action: str | None) -> str:
    """close maps to sell; a short position cannot be closed this way."""
    return "sell" if action in ("sell", "close") else "buy"


def determine_position_side(action: str | None) -> str:
    """buy -> long, sell -> short, everything else (including close) -> long."""
    if action == "buy":
        return "long"
    if action == "sell":
        return "short"
    return "long"


def calculate_position_size(signal: Signal, policy: TradingConfig) -> float:
    """Explicit quantity wins; otherwise risk a share of the max position size."""
    if signal.quantity:
        return signal.quantity

    risk_amount = policy.max_position_size * policy.risk_percentage / 100

    if signal.price:
        return risk_amount / signal.price

    return risk_amount / FALLBACK_PRICE_DIVISOR


def resolve_leverage(signal: Signal) -> int:
    if signal.leverage:
        return signal.leverage
    symbol = (signal.symbol or "").upper()
    return DEFAULT_BTC_LEVERAGE if "BTC" in symbol else DEFAULT_LEVERAGE


def build_order(signal: Signal, policy: TradingConfig) -> list[OrderLeg]:
    """
    Build the entry leg plus optional stop and take-profit legs.

    Raises:
        ValueError: signal has no symbol
    """
    if not signal.symbol:
        raise ValueError("Signal has no symbol")

    side = determine_side(signal.action)
    exit_side = "sell" if side == "buy" else "buy"
    position_side = determine_position_side(signal.action)
    amount = calculate_position_size(signal, policy)

    entry_price = signal.price if signal.order_type == "limit" and signal.price else None

    legs = [OrderLeg(
        symbol=signal.symbol,
        side=side,
        kind="entry",
        order_type=signal.order_type,
        amount=amount,
        position_side=position_side,
        price=entry_price,
    )]

    if signal.stop_loss:
        legs.append(OrderLeg(
            symbol=signal.symbol,
            side=exit_side,
            kind="stop",
            order_type="stop",
            amount=amount,
            position_side=position_side,
            trigger_price=signal.stop_loss,
        ))

    if signal.take_profit:
        legs.append(OrderLeg(
            symbol=signal.symbol,
            side=exit_side,
            kind="take_profit",
            order_type="limit",
            amount=amount,
            position_side=position_side,
            price=signal.take_profit,
        ))

    return legs
