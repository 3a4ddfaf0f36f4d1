"""
Flash arbitrage scanner CLI.

Usage:
    flash-arbitrage --config config/polygon.yaml
    flash-arbitrage --config config/polygon.yaml --once
    flash-arbitrage --config config/polygon.yaml --no-mempool --debug
"""

import argparse
import asyncio
import os
import signal
import sys
from typing import Mapping, Optional, Sequence

from dotenv import load_dotenv
from eth_account import Account

from . import logging_config
from .chain import Web3ChainReader
from .config import ArbConfig, load_config
from .exceptions import ConfigurationError
from .gas import GasPriceClient
from .mempool import MempoolWatcher
from .oracle import DecimalsCache, ReserveOracle
from .scanner import ArbitrageScanner
from .settlement import ContractSettlement, DryRunSettlement, Settlement
from .utils import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = "config/polygon.yaml"


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Cyclic flash-loan arbitrage scanner for Uniswap V2 style DEXs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config
  flash-arbitrage

  # Single scan (for testing/CI)
  flash-arbitrage --config config/polygon.yaml --once
        """,
    )

    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to config YAML file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single scan and exit",
    )
    parser.add_argument(
        "--no-mempool",
        action="store_true",
        help="Disable the mempool trigger and rely on the periodic scan only",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Verbose logging",
    )

    return parser.parse_args(argv)


def build_settlement(
    config: ArbConfig, reader: Web3ChainReader, environ: Mapping[str, str]
) -> Settlement:
    """
    Pick the settlement collaborator for the configuration.

    Raises:
        ConfigurationError: If live settlement is enabled without a private key
    """
    settings = config.settlement
    if settings.dry_run:
        return DryRunSettlement()

    private_key = environ.get(settings.private_key_env)
    if not private_key:
        raise ConfigurationError(
            f"{settings.private_key_env} is not set but settlement.dry_run is off"
        )

    try:
        account = Account.from_key(private_key)
    except ValueError as e:
        raise ConfigurationError(f"Invalid {settings.private_key_env}: {e}") from e
    logger.info(f"Wallet address: {account.address}")
    logger.info(f"Contract address: {settings.contract_address}")
    return ContractSettlement(
        reader.web3, settings.contract_address, account, config.chain_id
    )


def build_scanner(
    config: ArbConfig, environ: Optional[Mapping[str, str]] = None
) -> ArbitrageScanner:
    """Wire the chain reader, oracle, settlement and gas client into a scanner."""
    env = os.environ if environ is None else environ

    reader = Web3ChainReader.from_url(
        config.rpc_url,
        timeout=config.oracle.request_timeout_sec,
        max_retries=config.oracle.max_retries,
    )
    oracle = ReserveOracle(
        reader,
        config.dexes.values(),
        batch_size=config.oracle.dex_batch_size,
        decimals_cache=DecimalsCache.from_tokens(config.tokens.values()),
    )
    return ArbitrageScanner(
        config,
        oracle,
        settlement=build_settlement(config, reader, env),
        gas_client=GasPriceClient.from_settings(config.gas, env),
    )


async def run_scanner(
    config: ArbConfig, scanner: ArbitrageScanner, once: bool, use_mempool: bool
) -> None:
    if once:
        await scanner.scan_cache()
        return

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Not supported on Windows
            pass

    watcher_factory = None
    if use_mempool:
        if config.ws_url:

            def watcher_factory(on_swap):
                return MempoolWatcher(
                    config.ws_url,
                    scanner.oracle.reader,
                    config.router_addresses,
                    on_swap,
                )

        else:
            logger.warning("No websocket endpoint configured, mempool trigger disabled")

    await scanner.run(stop_event, watcher_factory)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)
    load_dotenv()

    if args.debug:
        logging_config.setup_debug()
    else:
        logging_config.setup()

    try:
        config = load_config(args.config)
        scanner = build_scanner(config)
    except ConfigurationError as e:
        logger.error(f"Config error: {e}")
        for error in e.details.get("errors", []):
            location = ".".join(str(part) for part in error["loc"])
            logger.error(f"  {location}: {error['msg']}")
        return 1

    logger.info("Arbitrage scanner starting...")
    logger.info(
        f"Tokens: {len(config.tokens)}  DEXs: {len(config.dexes)}  "
        f"Min profit: {config.scanner.min_profit}"
    )

    try:
        asyncio.run(
            run_scanner(config, scanner, once=args.once, use_mempool=not args.no_mempool)
        )
    except KeyboardInterrupt:
        logger.info("Stopped by user")
    return 0


if __name__ == "__main__":
    sys.exit(main())
