"""
Scan orchestrator.

Keeps a TTL cache of ranked candidate paths, simulates them in small
concurrent batches and hands the first sufficiently profitable one to the
settlement collaborator. Scans are requested by a periodic timer and by the
mempool watcher; both feed a single worker through a one-slot queue, so
requests that arrive while one is already waiting coalesce.
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Deque, List, Optional, Tuple

from .config import ArbConfig
from .gas import GasPriceClient
from .graph import (
    LiquidityGraph,
    build_graph,
    find_paths,
    find_triangular_paths,
    format_path,
    rank_by_liquidity,
)
from .mempool import MempoolWatcher
from .oracle import ReserveOracle
from .settlement import DryRunSettlement, Settlement
from .simulator import ProfitSimulator
from .types import Path, SettlementRequest, SimulationResult
from .utils import batched, get_logger, raw_to_units, units_to_raw

logger = get_logger(__name__)

MAX_RECORDED_OPPORTUNITIES = 100


class ScanState(str, Enum):
    IDLE = "idle"
    BUILDING_CACHE = "building_cache"
    SCANNING = "scanning"
    EXECUTING = "executing"


@dataclass(frozen=True)
class PathCache:
    """Ranked candidate paths and the clock reading they were built at."""

    paths: Tuple[Path, ...] = ()
    built_at: Optional[float] = None

    def is_stale(self, now: float, ttl: float) -> bool:
        return self.built_at is None or now - self.built_at > ttl


class ArbitrageScanner:
    """
    Ties the oracle, cycle finder, simulator and settlement together.

    Example:
        scanner = ArbitrageScanner(config, oracle)
        await scanner.run(stop_event)
    """

    def __init__(
        self,
        config: ArbConfig,
        oracle: ReserveOracle,
        simulator: Optional[ProfitSimulator] = None,
        settlement: Optional[Settlement] = None,
        gas_client: Optional[GasPriceClient] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the scanner.

        Args:
            config: Validated configuration
            oracle: Reserve oracle shared with the simulator
            simulator: Profit simulator (built from config if omitted)
            settlement: Settlement collaborator (dry run if omitted)
            gas_client: Gas override source (static gas limit if omitted)
            clock: Monotonic clock used for the path cache TTL
            sleep: Coroutine used for the delay between batches
        """
        self.config = config
        self.oracle = oracle
        self.simulator = simulator or ProfitSimulator(
            oracle,
            config.optimizer,
            slippage_bps=config.slippage_bps,
            pin_hop_dex=config.scanner.pin_hop_dex,
        )
        self.settlement = settlement or DryRunSettlement()
        self.gas_client = gas_client or GasPriceClient.from_settings(config.gas)
        self.clock = clock
        self._sleep = sleep
        self.symbols = {
            address: token.symbol for address, token in config.tokens.items()
        }

        self.state = ScanState.IDLE
        self.cache = PathCache()
        self.opportunities: Deque[SimulationResult] = deque(
            maxlen=MAX_RECORDED_OPPORTUNITIES
        )
        self.scans_completed = 0
        self._requests: asyncio.Queue = asyncio.Queue(maxsize=1)

    # Path cache

    @property
    def start_tokens(self) -> List[str]:
        return self.config.hub_tokens or self.config.token_addresses

    def find_cycles(self, graph: LiquidityGraph, start: str) -> List[Path]:
        settings = self.config.scanner
        if settings.cycle_strategy == "triangular":
            return find_triangular_paths(graph, start, settings.max_paths_per_token)
        return find_paths(graph, start, settings.max_hops, settings.max_paths_per_token)

    async def ensure_fresh_cache(self) -> PathCache:
        """
        Rebuild the path cache if its TTL has expired.

        A failed rebuild is logged and the previous cache stays in place.

        Returns:
            The current cache
        """
        now = self.clock()
        if not self.cache.is_stale(now, self.config.scanner.path_cache_ttl_sec):
            return self.cache

        self.state = ScanState.BUILDING_CACHE
        logger.info("Updating arbitrage paths...")
        try:
            graph = await build_graph(self.oracle, self.config.token_addresses)

            candidates: List[Path] = []
            for token in self.start_tokens:
                candidates.extend(self.find_cycles(graph, token))

            ranked = await rank_by_liquidity(self.oracle, candidates)
            self.cache = PathCache(
                paths=tuple(ranked[: self.config.scanner.top_n_paths]), built_at=now
            )
        except Exception as e:
            logger.error(f"Path cache rebuild failed, keeping previous paths: {e}")
            return self.cache

        logger.info(
            f"Cached {len(self.cache.paths)} of {len(candidates)} candidate paths"
        )
        for path in self.cache.paths[:5]:
            logger.info(f"  - {format_path(path, self.symbols)}")
        return self.cache

    # Scanning

    def min_profit_raw(self, token: str, decimals: int) -> int:
        """Minimum profit for a start token, in its raw unit."""
        info = self.config.tokens.get(token.lower())
        if info is not None and info.min_profit is not None:
            return units_to_raw(info.min_profit, decimals)
        return units_to_raw(self.config.scanner.min_profit, decimals)

    async def evaluate_path(self, path: Path) -> Optional[SimulationResult]:
        """Simulate one path; returns the result only if it clears the minimum profit."""
        result = await self.simulator.simulate_arbitrage(path.start_token, path)
        if result is None or result.profit <= 0:
            return None
        if result.profit > self.min_profit_raw(path.start_token, result.decimals):
            return result
        return None

    async def scan_cache(self) -> Optional[SimulationResult]:
        """
        Scan cached paths for an opportunity.

        Paths are simulated in batches; a failing path is logged and skipped.
        The scan stops after the first batch that yields an opportunity, and
        the first such path (in cache order) is settled.

        Returns:
            The settled opportunity, or None
        """
        cache = await self.ensure_fresh_cache()
        if not cache.paths:
            logger.warning("No paths available")
            self.state = ScanState.IDLE
            return None

        settings = self.config.scanner
        self.state = ScanState.SCANNING
        logger.debug(f"Scanning {len(cache.paths)} paths...")

        try:
            for index, batch in enumerate(batched(cache.paths, settings.path_batch_size)):
                if index:
                    await self._sleep(settings.batch_delay_ms / 1000)

                outcomes = await asyncio.gather(
                    *(self.evaluate_path(path) for path in batch),
                    return_exceptions=True,
                )

                found: Optional[SimulationResult] = None
                for path, outcome in zip(batch, outcomes):
                    if isinstance(outcome, BaseException):
                        logger.error(f"Error on path {self._describe(path)}: {outcome}")
                    elif outcome is not None and found is None:
                        found = outcome

                if found is not None:
                    await self.settle(found)
                    return found
            return None
        finally:
            self.scans_completed += 1
            self.state = ScanState.IDLE

    async def settle(self, result: SimulationResult) -> None:
        """Hand an opportunity to the settlement collaborator."""
        self.state = ScanState.EXECUTING
        logger.info(f"Profitable arb found: {self._describe(result.path)}")
        logger.info(
            f"  Profit: {raw_to_units(result.profit, result.decimals):.6f} "
            f"Loan: {raw_to_units(result.optimal_input, result.decimals):.6f}"
        )

        overrides = await self.gas_client.get_overrides()
        request = SettlementRequest.from_result(result, overrides.to_tx_params())
        self.opportunities.append(result)

        try:
            await self.settlement.execute(request)
        except Exception as e:
            logger.error(f"Settlement failed for {self._describe(result.path)}: {e}")

    def _describe(self, path: Path) -> str:
        return format_path(path, self.symbols)

    # Triggers

    def request_scan(self, reason: str = "manual") -> bool:
        """
        Ask the worker for a scan.

        Returns:
            False when a request is already waiting (this one coalesces into it)
        """
        try:
            self._requests.put_nowait(reason)
        except asyncio.QueueFull:
            logger.debug(f"Scan request from {reason} coalesced")
            return False
        return True

    async def _worker(self) -> None:
        while True:
            reason = await self._requests.get()
            try:
                logger.debug(f"Scan triggered by {reason}")
                await self.scan_cache()
            except Exception as e:
                logger.error(f"Scan failed: {e}")
            finally:
                self._requests.task_done()

    async def _periodic(self) -> None:
        while True:
            self.request_scan("periodic")
            await asyncio.sleep(self.config.scanner.scan_interval_sec)

    @staticmethod
    def _log_task_exit(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Task {task.get_name()} stopped: {error}")

    async def run(
        self,
        stop_event: asyncio.Event,
        watcher_factory: Optional[
            Callable[[Callable[[dict], None]], MempoolWatcher]
        ] = None,
    ) -> None:
        """
        Run the worker and its producers until ``stop_event`` is set.

        Args:
            stop_event: Set to request shutdown
            watcher_factory: Builds a mempool watcher given the swap callback;
                no mempool trigger when omitted
        """
        tasks = [
            asyncio.create_task(self._worker(), name="scan-worker"),
            asyncio.create_task(self._periodic(), name="periodic-trigger"),
        ]
        if watcher_factory is not None:
            watcher = watcher_factory(lambda tx: self.request_scan("mempool"))
            tasks.append(asyncio.create_task(watcher.run(), name="mempool-watcher"))

        for task in tasks:
            task.add_done_callback(self._log_task_exit)

        logger.info("Scanner is running")
        try:
            await stop_event.wait()
        finally:
            logger.info("Shutting down...")
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
