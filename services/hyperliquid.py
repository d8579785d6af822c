# hyperliquid.py - Hyperliquid exchange account client.
"""
This client provides Hyperliquid perpetual trading for one account.
Implements ExchangeClient so the coordinator never touches the SDK.

Hyperliquid is a decentralized perpetual futures exchange.
Uses Ethereum wallet keys for authentication.

Supports:
- Perpetual futures trading (BTC, ETH, etc.)
- Fractional quantities
- Long and short positions (one-way mode: positionSide is informational)
- Native trigger orders for stop-loss and take-profit legs
- Testnet for paper trading

The SDK is synchronous; every call runs in a worker thread so the
event loop keeps serving other messages.
"""

import asyncio
from typing import Any

from eth_account import Account as Wallet
from hyperliquid.exchange import Exchange
from hyperliquid.info import Info
from hyperliquid.utils import constants

from models import Account
from services import settings
from services.broker_base import ExchangeClient, register_exchange
from services.errors import ExchangeError, OrderRejected


SYMBOL_SUFFIXES = ("-PERP", "PERP", "USDT", "USDC", "USD")


def normalize_symbol(symbol: str) -> str:
    """
    Translate signal symbols to Hyperliquid coin names.

    BTC/USDT -> BTC, BTC/USDT:USDT -> BTC, ETHUSDT -> ETH, SOL -> SOL
    """
    symbol = symbol.upper().strip()
    symbol = symbol.split(":")[0]
    if "/" in symbol:
        return symbol.split("/")[0]
    for suffix in SYMBOL_SUFFIXES:
        if symbol.endswith(suffix) and len(symbol) > len(suffix):
            return symbol[:-len(suffix)]
    return symbol


def round_price(px: float, sz_decimals: int) -> float:
    """Hyperliquid prices: max 5 significant figures and (6 - szDecimals) decimals."""
    return round(float(f"{px:.5g}"), 6 - sz_decimals)


def parse_order_response(result: Any) -> dict[str, Any]:
    """
    Parse an order/cancel response into {"id", "status", "average"}.

    Raises:
        OrderRejected: top-level status is not "ok" or the order status is an error
    """
    if not isinstance(result, dict) or result.get("status") != "ok":
        raise OrderRejected(f"Order failed: {result}", result)

    response = result.get("response", {})
    statuses = response.get("data", {}).get("statuses", []) if isinstance(response, dict) else []
    if not statuses:
        return {"id": None, "status": "ok", "info": result}

    status = statuses[0]
    if isinstance(status, dict) and "error" in status:
        raise OrderRejected(f"Order rejected: {status['error']}", result)
    if isinstance(status, dict) and "filled" in status:
        filled = status["filled"]
        return {
            "id": str(filled.get("oid")),
            "status": "filled",
            "average": float(filled.get("avgPx", 0)),
            "info": result,
        }
    if isinstance(status, dict) and "resting" in status:
        return {"id": str(status["resting"].get("oid")), "status": "open", "info": result}
    return {"id": None, "status": str(status), "info": result}


@register_exchange("hyperliquid")
class HyperliquidClient(ExchangeClient):
    """
    Hyperliquid perpetual futures client for a single account.

    Uses the official hyperliquid-python-sdk for API access.
    """

    NAME = "hyperliquid"

    def __init__(self, account: Account):
        super().__init__(account)
        self.private_key = account.credentials.get("private_key", "")
        self.testnet = account.credentials.get("testnet", settings.HYPERLIQUID_TESTNET)
        self.wallet_address = account.credentials.get("wallet_address", "")

        self._info: Info | None = None
        self._exchange: Exchange | None = None

        # coin -> {"sz_decimals": int, "max_leverage": int}
        self._markets: dict[str, dict] = {}

    @property
    def label(self) -> str:
        return f"[Hyperliquid:{self.account.id}]"

    # === CONNECTION ===

    def _connect(self) -> None:
        env_label = "Testnet" if self.testnet else "Mainnet"
        if not self.private_key:
            raise ExchangeError(f"{self.label} Private key not configured")

        base_url = constants.TESTNET_API_URL if self.testnet else constants.MAINNET_API_URL
        print(f"{self.label} Connecting to {env_label} ({base_url})...")

        self._info = Info(base_url, skip_ws=True)
        wallet = Wallet.from_key(self.private_key)

        # API wallets sign for a master account; plain wallets trade for themselves
        self._exchange = Exchange(
            wallet=wallet,
            base_url=base_url,
            account_address=self.wallet_address or None
        )
        self.wallet_address = self.wallet_address or wallet.address
        print(f"{self.label} Wallet: {self.wallet_address}")

    def _require_connection(self) -> None:
        if not self._info or not self._exchange:
            raise ExchangeError(f"{self.label} Not connected - call load_markets() first")

    async def load_markets(self) -> dict[str, dict]:
        """Connect and load perpetual market metadata."""
        if not self._info:
            await asyncio.to_thread(self._connect)

        meta = await asyncio.to_thread(self._info.meta)
        self._markets = {
            asset["name"]: {
                "sz_decimals": int(asset.get("szDecimals", 0)),
                "max_leverage": int(asset.get("maxLeverage", 1)),
            }
            for asset in meta.get("universe", [])
        }
        print(f"{self.label} Loaded {len(self._markets)} markets")
        return self._markets

    def _market(self, coin: str) -> dict:
        market = self._markets.get(coin)
        if market is None:
            raise ExchangeError(f"{self.label} Unknown market: {coin}")
        return market

    # === ACCOUNT DATA ===

    async def fetch_balance(self) -> dict[str, Any]:
        self._require_connection()
        user_state = await asyncio.to_thread(self._info.user_state, self.wallet_address)

        margin_summary = user_state.get("marginSummary", {})
        total = float(margin_summary.get("accountValue", 0))
        used = float(margin_summary.get("totalMarginUsed", 0))
        free = float(user_state.get("withdrawable", total - used))
        return {"total": total, "used": used, "free": free}

    async def fetch_ticker(self, symbol: str) -> dict[str, Any]:
        self._require_connection()
        coin = normalize_symbol(symbol)
        all_mids = await asyncio.to_thread(self._info.all_mids)
        if coin not in all_mids:
            raise ExchangeError(f"{self.label} No price for {coin}")
        return {"symbol": coin, "last": float(all_mids[coin])}

    async def fetch_positions(self, symbols: list[str] | None = None) -> list[dict]:
        self._require_connection()
        wanted = {normalize_symbol(s) for s in symbols} if symbols else None
        user_state = await asyncio.to_thread(self._info.user_state, self.wallet_address)

        positions = []
        for pos in user_state.get("assetPositions", []):
            data = pos.get("position", {})
            coin = data.get("coin", "")
            szi = float(data.get("szi", 0))  # Signed size (negative = short)
            if szi == 0 or (wanted is not None and coin not in wanted):
                continue
            positions.append({
                "symbol": coin,
                "side": "long" if szi > 0 else "short",
                "size": abs(szi),
                "entry_price": float(data.get("entryPx") or 0),
                "unrealized_pnl": float(data.get("unrealizedPnl") or 0),
                "leverage": data.get("leverage", {}).get("value"),
            })
        return positions

    async def fetch_open_orders(self, symbol: str | None = None) -> list[dict]:
        self._require_connection()
        coin = normalize_symbol(symbol) if symbol else None
        orders = await asyncio.to_thread(self._info.open_orders, self.wallet_address)

        return [
            {
                "id": str(o.get("oid")),
                "symbol": o.get("coin"),
                "side": "buy" if o.get("side") == "B" else "sell",
                "price": float(o.get("limitPx", 0)),
                "amount": float(o.get("sz", 0)),
                "timestamp": o.get("timestamp"),
            }
            for o in orders
            if coin is None or o.get("coin") == coin
        ]

    # === TRADING ===

    async def set_leverage(self, leverage: int, symbol: str) -> Any:
        self._require_connection()
        coin = normalize_symbol(symbol)
        result = await asyncio.to_thread(self._exchange.update_leverage, int(leverage), coin, True)
        if not isinstance(result, dict) or result.get("status") != "ok":
            raise ExchangeError(f"{self.label} Leverage update failed: {result}")
        print(f"{self.label} Leverage for {coin} set to {leverage}x")
        return result

    async def create_order(
        self,
        symbol: str,
        order_type: str,
        side: str,
        amount: float,
        price: float | None = None,
        params: dict | None = None
    ) -> dict[str, Any]:
        self._require_connection()
        params = params or {}
        coin = normalize_symbol(symbol)
        market = self._market(coin)
        sz_decimals = market["sz_decimals"]

        is_buy = side.lower() == "buy"
        sz = round(float(amount), sz_decimals)
        if sz <= 0:
            raise OrderRejected(f"{self.label} Amount {amount} rounds to zero for {coin}")

        reduce_only = bool(params.get("reduceOnly", False))
        position_side = params.get("positionSide", "-")
        order_type = order_type.lower()

        print(f"{self.label} {side.upper()} {sz} {coin} {order_type} "
              f"(positionSide={position_side}, reduceOnly={reduce_only})")

        if order_type == "market":
            if reduce_only:
                result = await asyncio.to_thread(
                    self._exchange.market_close, coin, sz, None, settings.MARKET_SLIPPAGE
                )
            else:
                result = await asyncio.to_thread(
                    self._exchange.market_open, coin, is_buy, sz, None, settings.MARKET_SLIPPAGE
                )
        elif order_type == "limit":
            if price is None:
                raise OrderRejected(f"{self.label} Limit order for {coin} needs a price")
            limit_px = round_price(price, sz_decimals)
            # A resting reduce-only limit is rejected while the entry has not
            # filled; a take-profit trigger is accepted before the position exists
            if reduce_only:
                order_spec = {"trigger": {"triggerPx": limit_px, "isMarket": False, "tpsl": "tp"}}
            else:
                order_spec = {"limit": {"tif": "Gtc"}}
            result = await asyncio.to_thread(
                self._exchange.order,
                coin, is_buy, sz, limit_px,
                order_spec,
                reduce_only
            )
        elif order_type == "stop":
            stop_price = params.get("stopPrice")
            if stop_price is None:
                raise OrderRejected(f"{self.label} Stop order for {coin} needs stopPrice")
            trigger_px = round_price(stop_price, sz_decimals)
            result = await asyncio.to_thread(
                self._exchange.order,
                coin, is_buy, sz, trigger_px,
                {"trigger": {"triggerPx": trigger_px, "isMarket": True, "tpsl": "sl"}},
                reduce_only
            )
        else:
            raise OrderRejected(f"{self.label} Unsupported order type: {order_type}")

        order = parse_order_response(result)
        order.update({"symbol": coin, "side": side, "amount": sz, "type": order_type})
        print(f"{self.label} Order {order['id']}: {order['status']}")
        return order

    async def cancel_order(self, order_id: str, symbol: str) -> Any:
        self._require_connection()
        coin = normalize_symbol(symbol)
        result = await asyncio.to_thread(self._exchange.cancel, coin, int(order_id))
        return parse_order_response(result)
