"""
Common helpers for the flash arbitrage scanner.

Address normalisation, unit conversion, batching and logger construction are
shared by the oracle, the graph and the scanner.
"""

import logging
from decimal import Decimal
from typing import Iterable, Iterator, List, Optional, Sequence, TypeVar, Union

from web3 import Web3

T = TypeVar("T")

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


# Address utilities
def normalize_address(address: str) -> str:
    """
    Return the canonical (lowercase hex) form of an address.

    Args:
        address: 20-byte hex address in any casing

    Returns:
        Lowercase address with 0x prefix

    Raises:
        ValueError: If the value is not a 20-byte hex address
    """
    if not isinstance(address, str) or not Web3.is_address(address.lower()):
        raise ValueError(f"Invalid address: {address!r}")
    return address.lower()


def same_address(a: str, b: str) -> bool:
    """Case-insensitive address equality."""
    return a.lower() == b.lower()


def is_zero_address(address: str) -> bool:
    """Check for the zero-address sentinel returned by factories."""
    return not address or same_address(address, ZERO_ADDRESS)


def to_checksum(address: str) -> str:
    """Checksum form for web3 contract calls."""
    return Web3.to_checksum_address(address)


# Unit utilities
def units_to_raw(amount: Union[int, float, str, Decimal], decimals: int) -> int:
    """
    Convert a human amount (e.g. 1000 USDC) to the token's raw integer unit.

    Args:
        amount: Human-readable amount
        decimals: Token decimal precision

    Returns:
        Raw integer amount, truncated toward zero
    """
    return int(Decimal(str(amount)) * (Decimal(10) ** decimals))


def raw_to_units(amount: int, decimals: int) -> Decimal:
    """Convert a raw integer amount to a human-readable Decimal."""
    return Decimal(amount) / (Decimal(10) ** decimals)


def apply_bps_discount(amount: int, bps: int) -> int:
    """Reduce an integer amount by ``bps`` basis points, rounding down."""
    return amount * (10_000 - bps) // 10_000


# Iteration utilities
def batched(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """
    Split a sequence into consecutive chunks of at most ``size`` items.

    Args:
        items: Sequence to split
        size: Chunk size (must be positive)

    Yields:
        Lists of up to ``size`` items, in order
    """
    if size <= 0:
        raise ValueError(f"Batch size must be positive: {size}")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


def dedupe(items: Iterable[T]) -> List[T]:
    """Drop repeated items while keeping first-seen order."""
    seen = set()
    out: List[T] = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        out.append(item)
    return out


# Logging utilities
def get_logger(
    name: str, level: Optional[Union[str, int]] = None
) -> logging.Logger:
    """
    Get a module logger.

    Formatting and handlers are installed once by
    :func:`flash_arbitrage.logging_config.setup`. Module loggers inherit the
    package level unless ``level`` pins one explicitly.

    Args:
        name: Logger name (typically __name__)
        level: Optional logging level override

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)

    if level is not None:
        logger.setLevel(level)

    return logger
