"""
Constant-product profit simulation and loan-size optimisation.

All swap math is exact integer arithmetic on raw token units, matching the
Uniswap V2 ``getAmountOut`` formula with its 0.3% fee. Three strategies size
the flash loan:

- ``step``: brute-force samples across a fixed bracket (default)
- ``golden``: integer golden-section search over a wide bracket
- ``hybrid``: golden-section cross-checked by the step search
"""

from typing import Callable, List, Optional, Sequence, Tuple

from .config_schema import OptimizerSettings
from .exceptions import SimulationError
from .oracle import ReserveOracle
from .types import Hop, OptimizationResult, Path, ReserveSnapshot, SimulationResult
from .utils import apply_bps_discount, get_logger, same_address, units_to_raw

logger = get_logger(__name__)

FEE_NUMERATOR = 997
FEE_DENOMINATOR = 1000

# 1/phi as an integer ratio
INV_PHI_NUM = 618033988749895
INV_PHI_DEN = 10**15

DEFAULT_SLIPPAGE_BPS = 300


def amount_out(amount_in: int, reserve_in: int, reserve_out: int) -> int:
    """
    Output of a single constant-product swap after the 0.3% fee.

    Returns 0 when the input or either reserve is not positive.
    """
    if amount_in <= 0 or reserve_in <= 0 or reserve_out <= 0:
        return 0
    amount_in_with_fee = amount_in * FEE_NUMERATOR
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * FEE_DENOMINATOR + amount_in_with_fee
    return numerator // denominator


def simulate(
    amount_in: int, reserves: Sequence[ReserveSnapshot]
) -> Tuple[int, Tuple[int, ...]]:
    """
    Push an amount through a sequence of pools.

    Args:
        amount_in: Loan amount in raw units of the start token
        reserves: Oriented reserves, one per hop

    Returns:
        (profit, outputs) where profit is ``max(0, final - amount_in)``
    """
    outputs: List[int] = []
    current = amount_in
    for reserve in reserves:
        current = amount_out(current, reserve.reserve_in, reserve.reserve_out)
        outputs.append(current)

    if not outputs:
        return 0, ()
    return max(0, outputs[-1] - amount_in), tuple(outputs)


def golden_section_search(
    objective: Callable[[int], int], lo: int, hi: int, iterations: int = 100
) -> int:
    """
    Maximise a unimodal integer objective on [lo, hi].

    Stops after ``iterations`` rounds or once the bracket is narrower than 3,
    and returns the midpoint of the final bracket.

    Raises:
        SimulationError: If the bracket is empty
    """
    if lo > hi:
        raise SimulationError(f"Empty search bracket [{lo}, {hi}]")

    for _ in range(iterations):
        span = hi - lo
        if span < 3:
            break
        # Rounded so the two probes never cross on small brackets
        offset = (span * INV_PHI_NUM + INV_PHI_DEN // 2) // INV_PHI_DEN
        x1 = hi - offset
        x2 = lo + offset
        if objective(x1) < objective(x2):
            lo = x1
        else:
            hi = x2

    return (lo + hi) // 2


def step_search(
    objective: Callable[[int], int], lo: int, hi: int, step: int
) -> Tuple[int, int]:
    """
    Sample ``lo, lo + step, ...`` up to ``hi`` and keep the best.

    Returns:
        (amount, value) of the first sample reaching the maximum

    Raises:
        SimulationError: If the bracket is empty or the step is not positive
    """
    if lo > hi:
        raise SimulationError(f"Empty search bracket [{lo}, {hi}]")
    if step <= 0:
        raise SimulationError(f"Step must be positive: {step}")

    best_amount = lo
    best_value = objective(lo)
    amount = lo + step
    while amount <= hi:
        value = objective(amount)
        if value > best_value:
            best_amount, best_value = amount, value
        amount += step
    return best_amount, best_value


def _evaluate(amount: int, reserves: Sequence[ReserveSnapshot]) -> OptimizationResult:
    profit, outputs = simulate(amount, reserves)
    return OptimizationResult(amount=amount, profit=profit, outputs=outputs)


def _golden(
    reserves: Sequence[ReserveSnapshot], decimals: int, settings: OptimizerSettings
) -> OptimizationResult:
    lo = max(1, units_to_raw(settings.golden_min_units, decimals))
    hi = units_to_raw(settings.golden_max_units, decimals)

    # Signed delta keeps a slope where clamped profit would be flat at zero
    def objective(amount: int) -> int:
        _, outputs = simulate(amount, reserves)
        return outputs[-1] - amount

    amount = golden_section_search(objective, lo, hi, settings.golden_iterations)
    return _evaluate(amount, reserves)


def _step(
    reserves: Sequence[ReserveSnapshot], decimals: int, settings: OptimizerSettings
) -> OptimizationResult:
    lo = max(1, units_to_raw(settings.step_min_units, decimals))
    hi = units_to_raw(settings.step_max_units, decimals)
    step = max(1, units_to_raw(settings.step_units, decimals))

    def objective(amount: int) -> int:
        _, outputs = simulate(amount, reserves)
        return outputs[-1] - amount

    amount, delta = step_search(objective, lo, hi, step)
    if delta <= 0:
        amount = lo
    return _evaluate(amount, reserves)


def find_optimal_input(
    reserves: Sequence[ReserveSnapshot],
    decimals: int,
    settings: Optional[OptimizerSettings] = None,
) -> OptimizationResult:
    """
    Find the loan size that maximises cycle profit.

    Args:
        reserves: Oriented reserves, one per hop
        decimals: Start token decimals (brackets are given in whole units)
        settings: Strategy and brackets (defaults to the step search)

    Returns:
        OptimizationResult with the chosen amount, its profit (never negative)
        and the per-hop outputs at that amount

    Raises:
        SimulationError: If there are no hops to simulate
    """
    if not reserves:
        raise SimulationError("Cannot optimise an empty path")

    settings = settings or OptimizerSettings()

    if settings.strategy == "golden":
        return _golden(reserves, decimals, settings)
    if settings.strategy == "step":
        return _step(reserves, decimals, settings)

    golden = _golden(reserves, decimals, settings)
    stepped = _step(reserves, decimals, settings)
    if stepped.profit > golden.profit:
        logger.debug(
            f"Step search beat golden section: {stepped.profit} > {golden.profit}"
        )
        return stepped
    return golden


class ProfitSimulator:
    """
    Sizes opportunities for candidate paths using live reserves.

    Example:
        simulator = ProfitSimulator(oracle, config.optimizer, config.slippage_bps)
        result = await simulator.simulate_arbitrage(usdc, path)
    """

    def __init__(
        self,
        oracle: ReserveOracle,
        optimizer: Optional[OptimizerSettings] = None,
        slippage_bps: int = DEFAULT_SLIPPAGE_BPS,
        pin_hop_dex: bool = False,
    ):
        """
        Initialize the simulator.

        Args:
            oracle: Reserve oracle for decimals and hop reserves
            optimizer: Loan-size search settings
            slippage_bps: Buffer applied to every hop output for min-out guards
            pin_hop_dex: Price each hop on its assigned DEX instead of the
                deepest pool for the pair
        """
        self.oracle = oracle
        self.optimizer = optimizer or OptimizerSettings()
        self.slippage_bps = slippage_bps
        self.pin_hop_dex = pin_hop_dex

    async def _hop_reserves(self, hop: Hop) -> Optional[ReserveSnapshot]:
        if self.pin_hop_dex:
            return await self.oracle.get_reserves_from_dex(
                hop.token_in, hop.token_out, hop.dex
            )
        return await self.oracle.get_reserves(hop.token_in, hop.token_out)

    async def simulate_arbitrage(
        self, start_token: str, path: Path
    ) -> Optional[SimulationResult]:
        """
        Simulate a cycle and size the optimal flash loan.

        Args:
            start_token: Loan token; must be the path's start token
            path: Closed cycle to simulate

        Returns:
            SimulationResult, or None when the path cannot be priced or the
            loan cannot be sized at the start token's decimals

        Raises:
            SimulationError: If the path does not start at start_token
        """
        if not same_address(start_token, path.start_token):
            raise SimulationError(
                f"Path starts at {path.start_token}, not {start_token}"
            )

        try:
            decimals = await self.oracle.get_decimals(start_token)

            reserves: List[ReserveSnapshot] = []
            for hop in path:
                snapshot = await self._hop_reserves(hop)
                if snapshot is None:
                    logger.debug(
                        f"No liquidity for hop {hop.token_in[:10]} -> {hop.token_out[:10]}"
                    )
                    return None
                reserves.append(snapshot)
        except Exception as e:
            logger.warning(f"Simulation aborted, chain data unavailable: {e}")
            return None

        try:
            best = find_optimal_input(reserves, decimals, self.optimizer)
        except SimulationError as e:
            logger.warning(f"Could not size loan for {path.start_token[:10]}: {e}")
            return None

        min_outputs = tuple(
            apply_bps_discount(output, self.slippage_bps) for output in best.outputs
        )

        return SimulationResult(
            path=path,
            optimal_input=best.amount,
            profit=best.profit,
            outputs=best.outputs,
            min_outputs=min_outputs,
            decimals=decimals,
        )
