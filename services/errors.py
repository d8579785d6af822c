# errors.py - Exception types shared across services.
"""
Routing failures and the policy gate are NOT exceptions - they come back
as False / None from the services. These types cover the failures that
do propagate to a caller.
"""


class SignalTraderError(Exception):
    """Base class for all project errors."""


class ConfigError(SignalTraderError):
    """Missing or invalid environment configuration."""


class ExchangeError(SignalTraderError):
    """An exchange call failed."""


class OrderRejected(ExchangeError):
    """The exchange answered an order request with a non-ok status."""

    def __init__(self, message: str, response: object = None):
        super().__init__(message)
        self.response = response


class PolicyStoreError(SignalTraderError):
    """The trading policy document could not be read or written."""
