# main.py - Application entry point and orchestration.
"""
This file:
1. Loads .env and starts terminal logging
2. Creates and injects dependencies between services
3. Runs the Signal Trader until SIGINT/SIGTERM
4. Shuts down in order: policy subscription, transport, notification

Run with: python main.py
"""

import asyncio
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

# Project paths
PROJECT_ROOT = Path(__file__).parent

# Load environment variables before services read them
load_dotenv(PROJECT_ROOT / ".env")

import context
from services import settings
from services.account_router import AccountRouter
from services.agent import SignalExtractor
from services.config_sync import ConfigSynchronizer
from services.errors import ConfigError
from services.hyperliquid import HyperliquidClient
from services.logger import terminal_logger
from services.notifier import NotificationService
from services.order_service import OrderExecutor
from services.policy_store import FirestorePolicyStore
from services.signal_trader import SignalTrader
from services.telegram import TelegramListener


def handle_shutdown(signum, frame):
    """Handle shutdown signals."""
    print("\nShutting down...")
    context.request_shutdown()


def build_trader() -> tuple[SignalTrader, NotificationService]:
    """Create every service and wire them together."""
    accounts = settings.load_accounts()
    settings.validate_env(accounts)

    notifier = NotificationService()
    router = AccountRouter(accounts, client_factory=HyperliquidClient)
    store = FirestorePolicyStore(settings.USER_ID, settings.POLICY_EXCHANGE, settings.POLICY_TRADE_TYPE)
    config = ConfigSynchronizer(store, notifier)

    trader = SignalTrader(
        extractor=SignalExtractor(notifier=notifier),
        executor=OrderExecutor(router, config, notifier),
        config=config,
        router=router,
        transport=TelegramListener(router.all_chat_ids(), notifier=notifier),
        notifier=notifier,
    )
    return trader, notifier


async def main() -> int:
    """Main application entry point."""
    # Start terminal logging FIRST (before any print)
    log_path = terminal_logger.start()

    print("=" * 50)
    print("Chat Signal Trader (HYPERLIQUID)")
    print("=" * 50)
    print(f"Terminal log: {log_path}")

    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)

    notifier = None
    try:
        try:
            trader, notifier = build_trader()
        except (ConfigError, ValueError) as e:
            print(f"❌ {e}")
            return 1

        if not await trader.start():
            return 1

        await context.wait_for_shutdown()
        await trader.stop()
        return 0

    finally:
        if notifier is not None:
            await notifier.close()
        print("Shutdown complete.")

        # Stop terminal logging LAST
        terminal_logger.stop()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
