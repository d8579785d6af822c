# services/logger.py - Terminal session logging
"""
Terminal Logger:
- Captures ALL print() output without modifying existing code
- Prefixes every line with a UTC timestamp
- Session-based files: data/logs/signal_trader_YYYYMMDD_HHMMSS.txt
"""

import sys
import threading
from pathlib import Path
from typing import TextIO

from services.time_utils import get_utc_now


# === PATHS ===

LOG_DIR = Path(__file__).parent.parent / "data" / "logs"


def ensure_log_dir(log_dir: Path) -> None:
    """Create logs directory if it doesn't exist."""
    log_dir.mkdir(parents=True, exist_ok=True)


class TeeWriter:
    """
    A file-like object that writes to both the original stream and a log file.

    Thread-safe: uses a lock for file writes (exchange and Firestore SDK
    calls print from worker threads).
    """

    def __init__(self, original: TextIO, log_file: TextIO):
        self.original = original
        self.log_file = log_file
        self._lock = threading.Lock()
        self.at_line_start = True

    def _stamp(self, message: str) -> str:
        timestamp = f"[{get_utc_now().strftime('%H:%M:%S')}] "
        out = []
        parts = message.split("\n")

        for i, part in enumerate(parts):
            is_last = i == len(parts) - 1
            if part and self.at_line_start:
                out.append(timestamp)
            out.append(part)
            if not is_last:
                out.append("\n")
                self.at_line_start = True
            elif part:
                self.at_line_start = False

        return "".join(out)

    def write(self, message: str) -> int:
        """Write to both original stream and log file with timestamps."""
        with self._lock:
            out_str = self._stamp(message)
            self.original.write(out_str)
            self.log_file.write(out_str)
            self.log_file.flush()
        return len(message)

    def flush(self) -> None:
        """Flush both streams."""
        self.original.flush()
        with self._lock:
            if not self.log_file.closed:
                self.log_file.flush()

    def fileno(self) -> int:
        """Return original fileno for compatibility."""
        return self.original.fileno()

    def isatty(self) -> bool:
        return self.original.isatty()


class TerminalLogger:
    """
    Terminal logger that captures all stdout/stderr.

    Usage:
        from services.logger import terminal_logger
        terminal_logger.start()

        # All subsequent print() calls are logged automatically

        terminal_logger.stop()
    """

    def __init__(self, log_dir: Path = LOG_DIR):
        self.log_dir = log_dir
        self._log_file: TextIO | None = None
        self._original_stdout: TextIO | None = None
        self._original_stderr: TextIO | None = None
        self._session_file: Path | None = None
        self._started = False

    def start(self) -> Path:
        """Start capturing terminal output. Returns the session file path."""
        if self._started:
            return self._session_file

        ensure_log_dir(self.log_dir)

        timestamp = get_utc_now().strftime("%Y%m%d_%H%M%S")
        self._session_file = self.log_dir / f"signal_trader_{timestamp}.txt"
        self._log_file = open(self._session_file, "w", encoding="utf-8")

        self._log_file.write(f"=== Signal Trader Session: {timestamp} ===\n")
        self._log_file.write(f"Started: {get_utc_now().isoformat()}\n")
        self._log_file.write("=" * 60 + "\n\n")
        self._log_file.flush()

        self._original_stdout = sys.stdout
        self._original_stderr = sys.stderr
        sys.stdout = TeeWriter(self._original_stdout, self._log_file)
        sys.stderr = TeeWriter(self._original_stderr, self._log_file)

        self._started = True
        return self._session_file

    def stop(self) -> None:
        """Stop capturing and restore original stdout/stderr."""
        if not self._started:
            return

        sys.stdout = self._original_stdout
        sys.stderr = self._original_stderr

        self._log_file.write(f"\n{'=' * 60}\n")
        self._log_file.write(f"Session ended: {get_utc_now().isoformat()}\n")
        self._log_file.close()

        self._started = False

    @property
    def log_path(self) -> Path | None:
        """Get current log file path."""
        return self._session_file


# Shared instance
terminal_logger = TerminalLogger()
