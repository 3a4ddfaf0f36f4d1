"""
Flash Arbitrage Scanner.

Discovers cyclic arbitrage routes across Uniswap V2 style DEXs, simulates them
against live reserves and sizes the flash loan that maximises profit.
"""

from flash_arbitrage.version import __version__
from flash_arbitrage.config import ArbConfig, load_config
from flash_arbitrage.exceptions import (
    ConfigurationError,
    DataError,
    ExecutionError,
    FlashArbitrageError,
    NetworkError,
    SimulationError,
)
from flash_arbitrage.graph import (
    LiquidityGraph,
    build_graph,
    find_paths,
    find_triangular_paths,
    rank_by_liquidity,
)
from flash_arbitrage.oracle import DecimalsCache, PairAddressCache, ReserveOracle
from flash_arbitrage.scanner import ArbitrageScanner, PathCache, ScanState
from flash_arbitrage.simulator import ProfitSimulator, amount_out, find_optimal_input
from flash_arbitrage.types import (
    DexInfo,
    Hop,
    Path,
    ReserveSnapshot,
    SimulationResult,
    TokenInfo,
)

__all__ = [
    "__version__",
    "ArbConfig",
    "load_config",
    "FlashArbitrageError",
    "ConfigurationError",
    "DataError",
    "NetworkError",
    "SimulationError",
    "ExecutionError",
    "LiquidityGraph",
    "build_graph",
    "find_paths",
    "find_triangular_paths",
    "rank_by_liquidity",
    "PairAddressCache",
    "DecimalsCache",
    "ReserveOracle",
    "ArbitrageScanner",
    "PathCache",
    "ScanState",
    "ProfitSimulator",
    "amount_out",
    "find_optimal_input",
    "DexInfo",
    "Hop",
    "Path",
    "ReserveSnapshot",
    "SimulationResult",
    "TokenInfo",
]
