# config_sync.py - Live trading policy with fail-closed reads.
"""
Holds the most recently delivered TradingConfig snapshot.

- read(): point read from the store (default when missing or unreadable)
- subscribe(): push updates; every delivery replaces the snapshot whole
- current(): latest pushed snapshot, None until the first delivery
- is_trading_enabled(): False until a snapshot says otherwise

Store callbacks arrive on a foreign thread and are handed to the event
loop with call_soon_threadsafe, so subscribers always run on the loop.
"""

import asyncio
import threading
from dataclasses import fields as dataclass_fields
from typing import Any, Callable

from models import TradingConfig
from services.policy_store import PolicyStore


DEFAULT_TRADING_CONFIG = TradingConfig()

ConfigCallback = Callable[[TradingConfig], None]


class Subscription:
    """Cancellable handle for a policy subscription. cancel() is idempotent."""

    def __init__(self, on_cancel: Callable[[], None]):
        self._on_cancel = on_cancel
        self._lock = threading.Lock()
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> bool:
        """Stop delivery. Returns True only for the call that actually cancelled."""
        with self._lock:
            if self._cancelled:
                return False
            self._cancelled = True
        self._on_cancel()
        return True


class ConfigSynchronizer:
    """Reads, updates and subscribes to the remote trading policy."""

    def __init__(self, store: PolicyStore, notifier=None):
        self.store = store
        self.notifier = notifier
        self._snapshot: TradingConfig | None = None
        self._lock = threading.Lock()
        self._pending: set[asyncio.Task] = set()

    async def _report_error(self, error: Exception) -> None:
        if self.notifier:
            await self.notifier.send_error_notification(str(error), "Config")

    # === READS ===

    async def read(self) -> TradingConfig:
        """Point read. Falls back to the default policy."""
        try:
            document = await asyncio.to_thread(self.store.get)
        except Exception as e:
            print(f"[Config] Failed to get trading config: {e}")
            await self._report_error(e)
            return DEFAULT_TRADING_CONFIG

        if document is None:
            print("[Config] Trading config not found, using default config")
            return DEFAULT_TRADING_CONFIG

        print("[Config] Retrieved trading config")
        return TradingConfig.from_document(document)

    def current(self) -> TradingConfig | None:
        with self._lock:
            return self._snapshot

    def is_trading_enabled(self) -> bool:
        snapshot = self.current()
        return snapshot is not None and snapshot.is_enabled

    def _replace_snapshot(self, config: TradingConfig) -> None:
        with self._lock:
            self._snapshot = config

    # === SUBSCRIPTION ===

    def subscribe(self, on_change: ConfigCallback | None = None) -> Subscription:
        """
        Listen for remote policy changes.

        Must be called from the running event loop. The internal snapshot is
        replaced before on_change runs. A missing document is seeded with
        the default policy.
        """
        loop = asyncio.get_running_loop()
        state: dict[str, Any] = {"active": True}

        def deliver(document: dict) -> None:
            if not state["active"]:
                return
            config = TradingConfig.from_document(document)
            self._replace_snapshot(config)
            print(f"[Config] Trading config updated in real-time: {config}")
            if on_change:
                try:
                    on_change(config)
                except Exception as e:
                    print(f"[Config] Subscriber error: {e}")

        def on_document(document: dict | None) -> None:
            # Runs on the store's thread
            if document is None:
                print("[Config] Trading config document does not exist, creating default")
                try:
                    self.store.put(DEFAULT_TRADING_CONFIG.to_document())
                except Exception as e:
                    print(f"[Config] Failed to seed default trading config: {e}")
                    loop.call_soon_threadsafe(report, e)
                return
            loop.call_soon_threadsafe(deliver, document)

        def report(error: Exception) -> None:
            if not state["active"]:
                return
            task = loop.create_task(self._report_error(error))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

        def on_error(error: Exception) -> None:
            # Runs on the store's thread
            print(f"[Config] Error in real-time updates: {error}")
            loop.call_soon_threadsafe(report, error)

        watch = self.store.watch(on_document, on_error)

        def unsubscribe() -> None:
            state["active"] = False
            watch.unsubscribe()
            print("[Config] Stopped real-time updates for trading config")

        print("[Config] Started real-time updates for trading config")
        return Subscription(unsubscribe)

    # === WRITES ===

    async def update(self, **changes: Any) -> None:
        """
        Partially update the stored policy.

        Raises:
            ValueError: unknown field name
            PolicyStoreError: the store rejected the write
        """
        known = {f.name for f in dataclass_fields(TradingConfig)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown trading config fields: {', '.join(sorted(unknown))}")

        document = {TradingConfig.FIELD_NAMES[name]: value for name, value in changes.items()}
        await asyncio.to_thread(self.store.update, document)

    async def enable_trading(self) -> None:
        await self.update(is_enabled=True)

    async def disable_trading(self) -> None:
        await self.update(is_enabled=False)

    async def set_max_position_size(self, size: float) -> None:
        await self.update(max_position_size=size)

    async def set_risk_percentage(self, percentage: float) -> None:
        await self.update(risk_percentage=percentage)
