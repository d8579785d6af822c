# order_service.py - Signal execution with policy gate and leg sequencing.
"""
This module turns a validated signal into exchange orders:
- Policy gate (trading must be enabled in the latest policy snapshot)
- Account routing (source chat -> exactly one account)
- Leverage (best effort, never blocks the entry)
- Legs, strictly in order: entry -> stop -> take profit

All orders go through execute_signal() - the single entry point for trading.

Reporting policy: the result is False if ANY leg fails, even when the
entry is already live on the exchange. Nothing is cancelled to
compensate. Operators see the failure notification and reconcile by hand.
"""

from models import OrderLeg, Signal, TradingConfig
from services.account_router import AccountRouter, RoutedAccount
from services.config_sync import ConfigSynchronizer
from services.order_builder import build_order, resolve_leverage


def leg_params(leg: OrderLeg) -> dict:
    """Exchange params for a leg. Exit legs only ever reduce the position."""
    params = {"positionSide": leg.position_side}
    if leg.kind == "stop":
        params["stopPrice"] = leg.trigger_price
    if leg.kind in ("stop", "take_profit"):
        params["reduceOnly"] = True
    return params


class OrderExecutor:
    """Executes signals against the routed exchange account."""

    def __init__(self, router: AccountRouter, config: ConfigSynchronizer, notifier):
        self.router = router
        self.config = config
        self.notifier = notifier

    async def execute_signal(self, signal: Signal, policy: TradingConfig | None = None) -> bool:
        """
        Gate, route, size and submit a signal.

        Args:
            signal: Signal that already passed the confidence filter
            policy: Policy snapshot to use (default: latest delivered snapshot)

        Returns:
            True only if every leg was accepted by the exchange
        """
        if policy is None:
            if not self.config.is_trading_enabled():
                print("[Orders] Trading is disabled, skipping signal execution")
                return False
            policy = self.config.current()

        if not policy.is_enabled:
            print("[Orders] Trading is disabled, skipping signal execution")
            return False

        if not signal.action or not signal.symbol:
            print("[Orders] Invalid signal, skipping execution")
            return False

        try:
            routed = self.router.route_account(signal.source_chat_id)
            if routed is None:
                print(f"[Orders] No exchange account configured for chat {signal.source_chat_id}")
                return False

            legs = build_order(signal, policy)
            result = await self.execute(legs, routed, resolve_leverage(signal))

            if result:
                print(f"[Orders] Executed signal: {signal.action} {signal.symbol} at {signal.price}")
            return result

        except Exception as e:
            print(f"[Orders] Failed to execute signal: {e}")
            return False

    async def apply_leverage(self, routed: RoutedAccount, symbol: str, leverage: int) -> bool:
        """Set leverage on the account. Failure is reported, not raised."""
        try:
            await routed.client.set_leverage(leverage, symbol)
            print(f"[Orders] Leverage for {symbol} set to {leverage}x on {routed.id}")
            return True
        except Exception as e:
            print(f"[Orders] Failed to set leverage for {symbol}: {e}")
            await self.notifier.send_error_notification(
                f"Failed to set leverage {leverage}x for {symbol} on {routed.id}: {e}",
                "Leverage"
            )
            return False

    async def submit_leg(self, routed: RoutedAccount, leg: OrderLeg) -> dict:
        order = await routed.client.create_order(
            leg.symbol,
            leg.order_type,
            leg.side,
            leg.amount,
            leg.price,
            leg_params(leg)
        )
        print(f"[Orders] Created {leg.kind} order: {order.get('id')} ({leg.position_side})")
        return order

    async def execute(self, legs: list[OrderLeg], routed: RoutedAccount, leverage: int) -> bool:
        """
        Submit legs sequentially on one account.

        1. leverage (non-fatal)
        2. entry - failure aborts before any exit leg
        3. stop, if present
        4. take profit, if present
        """
        entry, exits = legs[0], legs[1:]
        await self.apply_leverage(routed, entry.symbol, leverage)

        try:
            await self.submit_leg(routed, entry)
        except Exception as e:
            print(f"[Orders] Failed to execute entry order: {e}")
            return False

        # The entry is live from here on; a failed exit leg only flips the result
        success = True
        for leg in exits:
            try:
                await self.submit_leg(routed, leg)
            except Exception as e:
                print(f"[Orders] Failed to execute {leg.kind} order: {e}")
                success = False

        return success
