"""
Core data types for cyclic DEX arbitrage scanning.
"""

from dataclasses import dataclass, field
from typing import Iterator, List, NamedTuple, Optional, Tuple


@dataclass(frozen=True)
class TokenInfo:
    """
    Whitelisted token.

    Attributes:
        symbol: Display symbol (e.g., "USDC")
        address: Canonical lowercase address
        decimals: Decimal precision if known from config (else read on-chain)
        min_profit: Minimum profit in human units of this token to act on
    """

    symbol: str
    address: str
    decimals: Optional[int] = None
    min_profit: Optional[float] = None


@dataclass(frozen=True)
class DexInfo:
    """
    A Uniswap V2 style DEX.

    Attributes:
        name: Label (e.g., "quickswap")
        factory: Factory address, queried for pair addresses
        router: Router address, matched against pending transactions (optional)
    """

    name: str
    factory: str
    router: Optional[str] = None


class ReserveSnapshot(NamedTuple):
    """Pool reserves oriented to a swap direction (not pool storage order)."""

    reserve_in: int
    reserve_out: int

    @property
    def product(self) -> int:
        return self.reserve_in * self.reserve_out


@dataclass(frozen=True)
class DexReserves:
    """
    One DEX's answer for a token pair.

    Attributes:
        dex: DEX the pool lives on
        reserves: Reserves oriented to the requested direction
        pair_address: Pool contract address
        liquidity: Integer geometric mean of the two reserves
    """

    dex: DexInfo
    reserves: ReserveSnapshot
    pair_address: str
    liquidity: int


@dataclass(frozen=True)
class Hop:
    """A single swap: token_in -> token_out on one DEX."""

    token_in: str
    token_out: str
    dex: DexInfo

    @property
    def pair(self) -> Tuple[str, str]:
        return (self.token_in, self.token_out)


@dataclass(frozen=True)
class Path:
    """
    A closed cycle of hops.

    The first hop's token_in equals the last hop's token_out, and no other
    token appears twice.
    """

    hops: Tuple[Hop, ...]

    def __post_init__(self):
        if not self.hops:
            raise ValueError("Path needs at least one hop")
        for prev, nxt in zip(self.hops, self.hops[1:]):
            if prev.token_out != nxt.token_in:
                raise ValueError(
                    f"Broken path: {prev.token_out} does not feed {nxt.token_in}"
                )
        if self.hops[0].token_in != self.hops[-1].token_out:
            raise ValueError("Path does not close back on its start token")

    def __len__(self) -> int:
        return len(self.hops)

    def __iter__(self) -> Iterator[Hop]:
        return iter(self.hops)

    @property
    def start_token(self) -> str:
        return self.hops[0].token_in

    @property
    def tokens(self) -> List[str]:
        """Token sequence including the closing start token."""
        return [self.hops[0].token_in] + [hop.token_out for hop in self.hops]

    @property
    def dexes(self) -> List[str]:
        return [hop.dex.name for hop in self.hops]


@dataclass(frozen=True)
class OptimizationResult:
    """Best loan size found by a search strategy and what it yields."""

    amount: int
    profit: int
    outputs: Tuple[int, ...]


@dataclass(frozen=True)
class SimulationResult:
    """
    Sized opportunity for one path.

    Attributes:
        path: The cycle that was simulated
        optimal_input: Loan amount in the start token's raw unit
        profit: Projected profit in the start token's raw unit (never negative)
        outputs: Simulated per-hop outputs at optimal_input
        min_outputs: Outputs reduced by the slippage buffer
        decimals: Start token decimals, for display
    """

    path: Path
    optimal_input: int
    profit: int
    outputs: Tuple[int, ...]
    min_outputs: Tuple[int, ...]
    decimals: int

    @property
    def start_token(self) -> str:
        return self.path.start_token


@dataclass
class SettlementRequest:
    """
    Arguments handed to the settlement collaborator.

    Attributes:
        loan_token: Token borrowed and repaid
        hop_pairs: One (token_in, token_out) pair per hop
        loan_amount: Flash-loan size, raw units
        min_outputs: Slippage-adjusted minimum output per hop
        gas: web3 transaction overrides (``gas`` and optional EIP-1559 fee caps)
    """

    loan_token: str
    hop_pairs: List[Tuple[str, str]]
    loan_amount: int
    min_outputs: List[int]
    gas: dict = field(default_factory=dict)

    @classmethod
    def from_result(cls, result: SimulationResult, gas: Optional[dict] = None):
        return cls(
            loan_token=result.start_token,
            hop_pairs=[hop.pair for hop in result.path],
            loan_amount=result.optimal_input,
            min_outputs=list(result.min_outputs),
            gas=dict(gas or {}),
        )
