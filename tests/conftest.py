from unittest.mock import AsyncMock, MagicMock

import pytest


@pytest.fixture
def notifier():
    mock = MagicMock()
    mock.send_signal_result = AsyncMock()
    mock.send_error_notification = AsyncMock()
    mock.send_startup_notification = AsyncMock()
    mock.send_shutdown_notification = AsyncMock()
    mock.send_log_message = AsyncMock()
    return mock
