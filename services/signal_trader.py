# signal_trader.py - Per-message control loop.
"""
Wires the services together:

    message -> SignalExtractor -> confidence filter -> OrderExecutor -> notifier

Every signal in a message is handled on its own: a failed or rejected
signal never stops its siblings. Nothing raised while handling a message
escapes on_message().
"""

from models import ExecutionResult, InboundMessage, Signal
from services import settings
from services.config_sync import Subscription


def is_signal_valid(signal: Signal) -> bool:
    return signal.confidence >= settings.CONFIDENCE_THRESHOLD


class SignalTrader:
    """Owns the lifecycle: start, per-message handling, shutdown."""

    def __init__(self, extractor, executor, config, router, transport, notifier):
        self.extractor = extractor
        self.executor = executor
        self.config = config
        self.router = router
        self.transport = transport
        self.notifier = notifier

        self.is_running = False
        self._subscription: Subscription | None = None

    async def start(self) -> bool:
        """Initialize accounts and policy, then start listening. Returns False on failure."""
        try:
            print("Starting Signal Trader...")

            await self.router.initialize()

            initial = await self.config.read()
            print(f"Trading config loaded: {initial}")
            self._subscription = self.config.subscribe()

            self.is_running = True
            await self.notifier.send_startup_notification()
            await self.transport.start(self.on_message)

            print("Signal Trader is running. Press Ctrl+C to stop.")
            return True

        except Exception as e:
            print(f"❌ Failed to start Signal Trader: {e}")
            await self.notifier.send_error_notification(str(e), "Startup")
            self.is_running = False
            await self._shutdown(notify=False)
            return False

    async def on_message(self, message: InboundMessage) -> list[ExecutionResult]:
        """Extract, filter and execute every signal in a message."""
        results: list[ExecutionResult] = []

        try:
            signals = await self.extractor.extract(message)

            if not signals:
                print("Message has no valid trading signal")
                return results

            print(f"Found {len(signals)} signal(s) in message")

            for i, signal in enumerate(signals, start=1):
                if not is_signal_valid(signal):
                    print(f"Signal {i}/{len(signals)} has low confidence: {signal.confidence}")
                    continue

                print(f"Valid signal {i}/{len(signals)}: {signal.action} {signal.symbol}")
                results.append(await self.handle_signal(signal))

        except Exception as e:
            print(f"Failed to handle new message: {e}")
            await self.notifier.send_error_notification(str(e), "Message Processing")

        return results

    async def handle_signal(self, signal: Signal) -> ExecutionResult:
        """Execute one signal and notify its result."""
        try:
            print(f"Executing signal: {signal.action} {signal.symbol} at {signal.price}")
            is_success = await self.executor.execute_signal(signal)

            result = ExecutionResult(
                signal=signal,
                source_chat_id=signal.source_chat_id,
                raw_message=signal.raw_message,
                is_success=is_success,
                details=None if is_success else "Order execution failed",
            )
            if is_success:
                print(f"✅ Successfully executed signal: {signal.action} {signal.symbol}")
            else:
                print(f"❌ Signal execution failed: {signal.action} {signal.symbol}")

        except Exception as e:
            print(f"Error executing signal: {e}")
            result = ExecutionResult(
                signal=signal,
                source_chat_id=signal.source_chat_id,
                raw_message=signal.raw_message,
                is_success=False,
                details=str(e),
            )

        await self.notifier.send_signal_result(result)
        return result

    async def stop(self) -> None:
        """
        Shut down in order: policy subscription, transport, notification.
        Each step runs even if an earlier one failed. Safe to call twice.
        """
        if not self.is_running:
            return

        print("Stopping Signal Trader...")
        self.is_running = False
        await self._shutdown()

    async def _shutdown(self, notify: bool = True) -> None:
        if self._subscription is not None:
            try:
                self._subscription.cancel()
            except Exception as e:
                print(f"Error cancelling config subscription: {e}")

        try:
            await self.transport.stop()
        except Exception as e:
            print(f"Error disconnecting transport: {e}")

        if notify:
            try:
                await self.notifier.send_shutdown_notification()
            except Exception as e:
                print(f"Error sending shutdown notification: {e}")

        try:
            await self.router.close()
        except Exception as e:
            print(f"Error closing exchange clients: {e}")

        print("Signal Trader stopped")
