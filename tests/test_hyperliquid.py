import asyncio
from unittest.mock import MagicMock

import pytest

from models import Account
from services.broker_base import get_exchange
from services.errors import ExchangeError, OrderRejected
from services.hyperliquid import HyperliquidClient, normalize_symbol, parse_order_response, round_price


@pytest.mark.parametrize("raw,coin", [
    ("BTC/USDT", "BTC"),
    ("BTC/USDT:USDT", "BTC"),
    ("ethusdt", "ETH"),
    ("SOL-PERP", "SOL"),
    ("DOGE", "DOGE"),
    ("USDT", "USDT"),
])
def test_normalize_symbol(raw, coin):
    assert normalize_symbol(raw) == coin


def test_registered_under_exchange_name():
    assert get_exchange("Hyperliquid") is HyperliquidClient


def test_round_price_significant_figures():
    assert round_price(45123.456, 5) == 45123.0
    assert round_price(0.0123456, 0) == 0.012346


class TestParseOrderResponse:

    def test_filled(self):
        result = {"status": "ok", "response": {"type": "order", "data": {"statuses": [
            {"filled": {"oid": 12, "avgPx": "45010.5", "totalSz": "0.01"}}
        ]}}}
        order = parse_order_response(result)
        assert order["id"] == "12"
        assert order["status"] == "filled"
        assert order["average"] == 45010.5

    def test_resting(self):
        result = {"status": "ok", "response": {"type": "order", "data": {"statuses": [{"resting": {"oid": 7}}]}}}
        assert parse_order_response(result)["status"] == "open"

    def test_order_error_raises(self):
        result = {"status": "ok", "response": {"type": "order", "data": {"statuses": [
            {"error": "Insufficient margin"}
        ]}}}
        with pytest.raises(OrderRejected, match="Insufficient margin"):
            parse_order_response(result)

    def test_top_level_error_raises(self):
        with pytest.raises(OrderRejected):
            parse_order_response({"status": "err", "response": "bad signature"})


def make_client():
    account = Account(id="primary", name="Primary", credentials={"private_key": "0xabc", "testnet": True})
    client = HyperliquidClient(account)
    client._info = MagicMock()
    client._exchange = MagicMock()
    client.wallet_address = "0xwallet"
    client._markets = {"BTC": {"sz_decimals": 5, "max_leverage": 50}}
    return client


OK_RESTING = {"status": "ok", "response": {"type": "order", "data": {"statuses": [{"resting": {"oid": 1}}]}}}


class TestClient:

    def test_calls_require_connection(self):
        client = HyperliquidClient(Account(id="x", name="X", credentials={"private_key": "0xabc"}))
        with pytest.raises(ExchangeError):
            asyncio.run(client.fetch_balance())

    def test_limit_order(self):
        client = make_client()
        client._exchange.order.return_value = OK_RESTING

        order = asyncio.run(client.create_order("BTC/USDT", "limit", "buy", 0.0123456789, 45000.0,
                                                {"positionSide": "long"}))

        client._exchange.order.assert_called_once_with(
            "BTC", True, 0.01235, 45000.0, {"limit": {"tif": "Gtc"}}, False
        )
        assert order["id"] == "1"
        assert order["symbol"] == "BTC"

    def test_stop_order_is_reduce_only_trigger(self):
        client = make_client()
        client._exchange.order.return_value = OK_RESTING

        asyncio.run(client.create_order("BTC/USDT", "stop", "sell", 0.01, None,
                                        {"positionSide": "long", "stopPrice": 44000, "reduceOnly": True}))

        args = client._exchange.order.call_args.args
        assert args[:4] == ("BTC", False, 0.01, 44000.0)
        assert args[4] == {"trigger": {"triggerPx": 44000.0, "isMarket": True, "tpsl": "sl"}}
        assert args[5] is True

    def test_reduce_only_limit_is_take_profit_trigger(self):
        client = make_client()
        client._exchange.order.return_value = OK_RESTING

        asyncio.run(client.create_order("BTC/USDT", "limit", "sell", 0.01, 47000.0,
                                        {"positionSide": "long", "reduceOnly": True}))

        client._exchange.order.assert_called_once_with(
            "BTC", False, 0.01, 47000.0,
            {"trigger": {"triggerPx": 47000.0, "isMarket": False, "tpsl": "tp"}},
            True
        )

    def test_market_open(self):
        client = make_client()
        client._exchange.market_open.return_value = {"status": "ok", "response": {"type": "order", "data": {
            "statuses": [{"filled": {"oid": 3, "avgPx": "45000"}}]}}}

        order = asyncio.run(client.create_order("BTC", "market", "sell", 0.01))
        assert order["status"] == "filled"
        assert client._exchange.market_open.call_args.args[:3] == ("BTC", False, 0.01)

    def test_amount_rounding_to_zero_is_rejected(self):
        client = make_client()
        with pytest.raises(OrderRejected):
            asyncio.run(client.create_order("BTC", "market", "buy", 0.000001))

    def test_unknown_market_raises(self):
        client = make_client()
        with pytest.raises(ExchangeError):
            asyncio.run(client.create_order("PEPE", "market", "buy", 1))

    def test_set_leverage_failure_raises(self):
        client = make_client()
        client._exchange.update_leverage.return_value = {"status": "err", "response": "nope"}
        with pytest.raises(ExchangeError):
            asyncio.run(client.set_leverage(5, "BTC/USDT"))
        client._exchange.update_leverage.assert_called_once_with(5, "BTC", True)

    def test_fetch_positions_filters_and_maps_side(self):
        client = make_client()
        client._info.user_state.return_value = {"assetPositions": [
            {"position": {"coin": "BTC", "szi": "-0.5", "entryPx": "45000", "unrealizedPnl": "10",
                          "leverage": {"value": 5}}},
            {"position": {"coin": "ETH", "szi": "2", "entryPx": "3000", "unrealizedPnl": "0"}},
            {"position": {"coin": "SOL", "szi": "0"}},
        ]}

        positions = asyncio.run(client.fetch_positions(["BTC/USDT"]))
        assert positions == [{
            "symbol": "BTC", "side": "short", "size": 0.5, "entry_price": 45000.0,
            "unrealized_pnl": 10.0, "leverage": 5,
        }]

    def test_fetch_balance(self):
        client = make_client()
        client._info.user_state.return_value = {
            "marginSummary": {"accountValue": "1000", "totalMarginUsed": "200"},
            "withdrawable": "800",
        }
        assert asyncio.run(client.fetch_balance()) == {"total": 1000.0, "used": 200.0, "free": 800.0}
