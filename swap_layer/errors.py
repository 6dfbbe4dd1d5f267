"""
Error taxonomy for the swap bot.

- ConfigurationError: fatal, raised at construction / initialize
- ProviderError: recoverable, the trading loop logs and retries on its cadence
- CircuitOpenError: provider is degraded, do not even attempt the call
"""


class BotError(Exception):
    """Base class for all swap bot errors."""
    pass


class ConfigurationError(BotError):
    """Raised when the bot cannot start (bad signing key, unreachable endpoint)."""
    pass


class ProviderError(BotError):
    """Raised when a quote, swap or RPC call fails."""
    pass


class NoRouteError(ProviderError):
    """Raised when the routing service has no viable route for a pair."""
    pass


class SwapExecutionError(ProviderError):
    """Raised when building, signing or submitting a swap fails."""
    pass


class ConfirmationTimeoutError(SwapExecutionError):
    """Raised when a submitted transaction is not confirmed in time."""
    pass


class CircuitOpenError(ProviderError):
    """Raised by a circuit breaker that is short-circuiting calls."""
    pass
