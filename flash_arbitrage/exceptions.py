"""
Exception hierarchy for the flash arbitrage scanner.

Per-source failures (one DEX, one pool, one pending transaction) are absorbed
where they happen and never surface as these types. The exceptions below are
for failures a caller is expected to act on.
"""

from typing import Any, Dict, Optional


class FlashArbitrageError(Exception):
    """Base exception for all flash arbitrage related errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(FlashArbitrageError):
    """Raised when required configuration is missing or malformed.

    This is the only error class allowed to abort the process.
    """

    pass


class DataError(FlashArbitrageError):
    """Raised when on-chain data is missing or inconsistent."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        token: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.source = source
        self.token = token


class NetworkError(FlashArbitrageError):
    """Raised when an RPC or HTTP endpoint cannot be reached."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.endpoint = endpoint
        self.status_code = status_code


class SimulationError(FlashArbitrageError):
    """Raised when a path cannot be simulated (malformed cycle, bad bracket)."""

    pass


class ExecutionError(FlashArbitrageError):
    """Raised when the settlement hand-off fails or is rejected."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.path = path
