"""
Logging configuration for the scanner.

Usage:
    from flash_arbitrage import logging_config
    logging_config.setup()
"""

import logging
import sys

NOISY_LOGGERS = ("web3", "urllib3", "websockets", "aiohttp", "asyncio")


def setup(level=logging.INFO):
    """
    Configure logging for compact console output.

    - Uses short timestamps (HH:MM:SS)
    - Silences RPC/HTTP/websocket client chatter below WARNING
    - Keeps scanner loggers at the requested level
    """
    root = logging.getLogger()
    root.setLevel(level)

    # Clear existing handlers
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-7s | %(message)s", datefmt="%H:%M:%S"
    )
    console.setFormatter(formatter)
    root.addHandler(console)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("flash_arbitrage").setLevel(level)


def setup_debug():
    """
    Verbose logging for debugging.
    Shows per-DEX lookup failures and raw websocket traffic.
    """
    setup(level=logging.DEBUG)
    logging.getLogger("websockets").setLevel(logging.INFO)
