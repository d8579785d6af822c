import asyncio
from unittest.mock import MagicMock, patch

import pytest

from models import TradingConfig
from services.account_router import AccountRouter
from services.config_sync import ConfigSynchronizer
from services.order_service import OrderExecutor, leg_params
from services.order_builder import build_order

from fakes import ENABLED, PRIMARY_CHAT, FakeExchange, FakePolicyStore, make_accounts, make_signal


def make_executor(notifier, policy=ENABLED, fail_on=None):
    clients = {}

    def factory(account):
        clients[account.id] = FakeExchange(account, fail_on=fail_on)
        return clients[account.id]

    router = AccountRouter(make_accounts(), client_factory=factory)
    asyncio.run(router.initialize())

    config = MagicMock()
    config.current.return_value = policy
    config.is_trading_enabled.return_value = policy is not None and policy.is_enabled

    return OrderExecutor(router, config, notifier), clients["primary"]


FULL_SIGNAL = dict(price=45000, order_type="limit", stop_loss=44000, take_profit=47000)


class TestPolicyGate:

    def test_disabled_policy_returns_false_before_routing(self, notifier):
        executor, client = make_executor(notifier, policy=TradingConfig(is_enabled=False))

        with patch.object(executor.router, "route_account") as route:
            assert asyncio.run(executor.execute_signal(make_signal())) is False
            route.assert_not_called()
        assert client.exchange_calls() == []

    def test_no_snapshot_yet_is_fail_closed(self, notifier):
        executor, client = make_executor(notifier, policy=None)

        assert asyncio.run(executor.execute_signal(make_signal())) is False
        assert client.exchange_calls() == []

    def test_explicit_snapshot_overrides_latest(self, notifier):
        executor, client = make_executor(notifier, policy=None)

        assert asyncio.run(executor.execute_signal(make_signal(), policy=ENABLED)) is True
        assert len(client.orders()) == 1

    def test_gate_follows_live_snapshot(self, notifier):
        executor, client = make_executor(notifier)
        store = FakePolicyStore()
        executor.config = ConfigSynchronizer(store)

        async def scenario():
            executor.config.subscribe()
            store.push({"isEnabled": True})
            await asyncio.sleep(0)
            first = await executor.execute_signal(make_signal())
            store.push({"isEnabled": False})
            await asyncio.sleep(0)
            second = await executor.execute_signal(make_signal())
            return first, second

        assert asyncio.run(scenario()) == (True, False)
        assert len(client.orders()) == 1


class TestValidationAndRouting:

    def test_signal_without_symbol_is_rejected(self, notifier):
        executor, client = make_executor(notifier)
        assert asyncio.run(executor.execute_signal(make_signal(symbol=None))) is False
        assert client.exchange_calls() == []

    def test_signal_without_action_is_rejected(self, notifier):
        executor, client = make_executor(notifier)
        assert asyncio.run(executor.execute_signal(make_signal(action=None))) is False
        assert client.exchange_calls() == []

    def test_unrouted_chat_returns_false(self, notifier):
        executor, client = make_executor(notifier)
        assert asyncio.run(executor.execute_signal(make_signal(source_chat_id=999))) is False
        assert client.exchange_calls() == []


class TestExecution:

    def test_full_sequence_in_order(self, notifier):
        executor, client = make_executor(notifier)

        assert asyncio.run(executor.execute_signal(make_signal(**FULL_SIGNAL))) is True

        calls = client.exchange_calls()
        assert calls[0] == ("set_leverage", 5, "BTC/USDT")
        assert [c[1] for c in calls[1:]] == ["entry", "stop", "take_profit"]

        _, _, symbol, order_type, side, amount, price, params = calls[1]
        assert (symbol, order_type, side, price) == ("BTC/USDT", "limit", "buy", 45000)
        assert amount == pytest.approx(0.02 / 45000)
        assert params == {"positionSide": "long"}

        _, _, _, order_type, side, _, price, params = calls[2]
        assert (order_type, side, price) == ("stop", "sell", None)
        assert params == {"positionSide": "long", "stopPrice": 44000, "reduceOnly": True}

        _, _, _, order_type, side, _, price, params = calls[3]
        assert (order_type, side, price) == ("limit", "sell", 47000)
        assert params == {"positionSide": "long", "reduceOnly": True}

    def test_signal_leverage_is_applied(self, notifier):
        executor, client = make_executor(notifier)
        asyncio.run(executor.execute_signal(make_signal(symbol="ETH/USDT", leverage=10)))
        assert client.exchange_calls()[0] == ("set_leverage", 10, "ETH/USDT")

    def test_leverage_failure_is_not_fatal(self, notifier):
        executor, client = make_executor(notifier, fail_on={"set_leverage"})

        assert asyncio.run(executor.execute_signal(make_signal(**FULL_SIGNAL))) is True
        assert len(client.orders()) == 3
        notifier.send_error_notification.assert_awaited_once()
        assert notifier.send_error_notification.await_args.args[1] == "Leverage"

    def test_entry_failure_aborts_remaining_legs(self, notifier):
        executor, client = make_executor(notifier, fail_on={"entry"})

        assert asyncio.run(executor.execute_signal(make_signal(**FULL_SIGNAL))) is False
        assert [c[1] for c in client.orders()] == ["entry"]

    def test_stop_failure_reports_false_although_entry_is_live(self, notifier):
        executor, client = make_executor(notifier, fail_on={"stop"})

        assert asyncio.run(executor.execute_signal(make_signal(**FULL_SIGNAL))) is False
        # no compensating cancel of the live entry
        assert not any(c[0] == "cancel_order" for c in client.calls)

    def test_take_profit_still_attempted_after_stop_failure(self, notifier):
        executor, client = make_executor(notifier, fail_on={"stop"})

        asyncio.run(executor.execute_signal(make_signal(**FULL_SIGNAL)))
        assert [c[1] for c in client.orders()] == ["entry", "stop", "take_profit"]

    def test_take_profit_failure_reports_false(self, notifier):
        executor, client = make_executor(notifier, fail_on={"take_profit"})

        assert asyncio.run(executor.execute_signal(make_signal(**FULL_SIGNAL))) is False
        assert not any(c[0] == "cancel_order" for c in client.calls)

    def test_execute_uses_given_account_only(self, notifier):
        executor, primary = make_executor(notifier, fail_on={"entry"})
        routed = executor.router.route_account(PRIMARY_CHAT)
        legs = build_order(make_signal(), ENABLED)

        assert asyncio.run(executor.execute(legs, routed, 3)) is False
        secondary = executor.router.get("secondary").client
        assert secondary.exchange_calls() == []


def test_leg_params_for_entry_only_carry_position_side():
    entry = build_order(make_signal(action="sell"), ENABLED)[0]
    assert leg_params(entry) == {"positionSide": "short"}
