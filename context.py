# context.py - Process-wide shutdown signalling.
"""
This module contains ONLY the shutdown flag shared by the signal handler,
the main coroutine and any SDK worker threads.

Trading policy and account state are NOT kept here; they are passed to
the services that need them.
"""

import asyncio
import threading


shutdown_event = threading.Event()


def request_shutdown() -> None:
    """Ask the process to shut down (safe from signal handlers and threads)."""
    shutdown_event.set()


async def wait_for_shutdown(poll_interval: float = 0.5) -> None:
    """Suspend until request_shutdown() has been called."""
    while not shutdown_event.is_set():
        await asyncio.sleep(poll_interval)
