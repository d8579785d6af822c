"""Admin tools for account, order and policy management.

Each call targets the account routed for chat_id, or the first
initialized account when no chat is given. Failures are printed and
come back as empty/zero/False results, never as exceptions.
"""

from services.account_router import AccountRouter, RoutedAccount
from services.config_sync import ConfigSynchronizer


def _resolve(router: AccountRouter, chat_id: int | None) -> RoutedAccount | None:
    if chat_id is not None:
        return router.route_account(chat_id)
    for account in router.accounts:
        routed = router.get(account.id)
        if routed is not None:
            return routed
    return None


async def get_balance(router: AccountRouter, chat_id: int | None = None) -> float:
    """Free collateral of the account, 0 if unavailable."""
    routed = _resolve(router, chat_id)
    if routed is None:
        return 0.0
    try:
        balance = await routed.client.fetch_balance()
        return float(balance.get("free") or 0)
    except Exception as e:
        print(f"❌ Failed to get balance: {e}")
        return 0.0


async def get_current_price(router: AccountRouter, symbol: str, chat_id: int | None = None) -> float:
    routed = _resolve(router, chat_id)
    if routed is None:
        return 0.0
    try:
        ticker = await routed.client.fetch_ticker(symbol)
        return float(ticker.get("last") or 0)
    except Exception as e:
        print(f"❌ Failed to get price for {symbol}: {e}")
        return 0.0


async def get_positions(router: AccountRouter, symbol: str | None = None, chat_id: int | None = None) -> list[dict]:
    """Open positions with a non-zero size."""
    routed = _resolve(router, chat_id)
    if routed is None:
        return []
    try:
        positions = await routed.client.fetch_positions([symbol] if symbol else None)
        return [p for p in positions if p.get("size", 0) > 0]
    except Exception as e:
        print(f"❌ Failed to get positions: {e}")
        return []


async def close_position(
    router: AccountRouter,
    symbol: str,
    position_side: str | None = None,
    chat_id: int | None = None
) -> bool:
    """
    Close an open position with a reduce-only market order.

    Args:
        position_side: "long" or "short" to pick one side; None closes whichever is open
    """
    routed = _resolve(router, chat_id)
    if routed is None:
        return False

    try:
        positions = await routed.client.fetch_positions([symbol])
        if position_side:
            position = next((p for p in positions if p.get("side") == position_side), None)
        else:
            position = next((p for p in positions if p.get("side") in ("long", "short")), None)

        if not position or position.get("size", 0) <= 0:
            return False

        order = await routed.client.create_order(
            symbol,
            "market",
            "sell" if position["side"] == "long" else "buy",
            position["size"],
            None,
            {"positionSide": position["side"], "reduceOnly": True}
        )
        print(f"✅ Closed position: {order.get('id')} ({position['side']})")
        return True

    except Exception as e:
        print(f"❌ Failed to close position: {e}")
        return False


async def get_open_orders(router: AccountRouter, symbol: str | None = None, chat_id: int | None = None) -> list[dict]:
    routed = _resolve(router, chat_id)
    if routed is None:
        return []
    try:
        return await routed.client.fetch_open_orders(symbol)
    except Exception as e:
        print(f"❌ Failed to get open orders: {e}")
        return []


async def cancel_order(router: AccountRouter, order_id: str, symbol: str, chat_id: int | None = None) -> bool:
    routed = _resolve(router, chat_id)
    if routed is None:
        return False
    try:
        await routed.client.cancel_order(order_id, symbol)
        print(f"✅ Cancelled order: {order_id}")
        return True
    except Exception as e:
        print(f"❌ Failed to cancel order: {e}")
        return False


async def set_trading_enabled(config: ConfigSynchronizer, enabled: bool) -> bool:
    """Flip the remote kill switch. Returns False if the store rejected it."""
    try:
        if enabled:
            await config.enable_trading()
        else:
            await config.disable_trading()
        return True
    except Exception as e:
        print(f"❌ Failed to update trading switch: {e}")
        return False
