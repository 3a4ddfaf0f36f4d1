"""
Reserve oracle: pair discovery and live reserves across competing DEXs.

For a token pair every configured factory is asked for its pool, in small
concurrent batches to stay under provider rate limits. Reserves are always
returned oriented to the caller's swap direction, and the deepest pool
(largest reserve product) wins. One DEX failing never fails the lookup; the
DEX is simply left out.
"""

import asyncio
from math import isqrt
from typing import Dict, Iterable, List, Optional, Tuple

from .chain import ChainReader
from .exceptions import DataError
from .types import DexInfo, DexReserves, ReserveSnapshot, TokenInfo
from .utils import ZERO_ADDRESS, batched, get_logger, is_zero_address, same_address

logger = get_logger(__name__)

DEFAULT_DEX_BATCH_SIZE = 3


class PairAddressCache:
    """
    Memo of factory pair lookups.

    Entries are stored under both token orderings. Pair addresses never change
    once created on-chain, so entries are never invalidated.
    """

    def __init__(self):
        self._pairs: Dict[Tuple[str, str, str], str] = {}

    @staticmethod
    def _key(factory: str, token_a: str, token_b: str) -> Tuple[str, str, str]:
        return (factory.lower(), token_a.lower(), token_b.lower())

    def get(self, factory: str, token_a: str, token_b: str) -> Optional[str]:
        return self._pairs.get(self._key(factory, token_a, token_b))

    def set(self, factory: str, token_a: str, token_b: str, pair: str) -> None:
        self._pairs[self._key(factory, token_a, token_b)] = pair
        self._pairs[self._key(factory, token_b, token_a)] = pair

    def __len__(self) -> int:
        return len(self._pairs)

    def clear(self) -> None:
        self._pairs.clear()


class DecimalsCache:
    """Memo of ERC20 decimals keyed by lowercase token address."""

    def __init__(self, seed: Optional[Dict[str, int]] = None):
        self._decimals: Dict[str, int] = {}
        for token, decimals in (seed or {}).items():
            self.set(token, decimals)

    def get(self, token: str) -> Optional[int]:
        return self._decimals.get(token.lower())

    def set(self, token: str, decimals: int) -> None:
        self._decimals[token.lower()] = int(decimals)

    def __contains__(self, token: str) -> bool:
        return token.lower() in self._decimals

    @classmethod
    def from_tokens(cls, tokens: Iterable[TokenInfo]) -> "DecimalsCache":
        """Seed the cache with decimals declared in the token whitelist."""
        return cls(
            {token.address: token.decimals for token in tokens if token.decimals is not None}
        )


class ReserveOracle:
    """
    Resolves pool addresses and reserves for token pairs across DEXs.

    Example:
        oracle = ReserveOracle(reader, config.dexes.values())
        reserves = await oracle.get_reserves(usdc, weth)
    """

    def __init__(
        self,
        reader: ChainReader,
        dexes: Iterable[DexInfo],
        batch_size: int = DEFAULT_DEX_BATCH_SIZE,
        pair_cache: Optional[PairAddressCache] = None,
        decimals_cache: Optional[DecimalsCache] = None,
    ):
        """
        Initialize the oracle.

        Args:
            reader: Chain reader used for all on-chain calls
            dexes: DEX registry, queried in the given order
            batch_size: Number of DEXs queried concurrently
            pair_cache: Shared pair-address cache (a fresh one if omitted)
            decimals_cache: Shared decimals cache (a fresh one if omitted)
        """
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive: {batch_size}")
        self.reader = reader
        self.dexes: List[DexInfo] = list(dexes)
        self.batch_size = batch_size
        self.pair_cache = pair_cache if pair_cache is not None else PairAddressCache()
        self.decimals_cache = (
            decimals_cache if decimals_cache is not None else DecimalsCache()
        )

    async def resolve_pair_address(
        self, factory: str, token_a: str, token_b: str
    ) -> str:
        """
        Get the pool address for a pair on one factory.

        Args:
            factory: Factory contract address
            token_a: First token address
            token_b: Second token address

        Returns:
            Pair address, or the zero address when the DEX has no such pool
            or the factory could not be queried. Failures are not cached.
        """
        cached = self.pair_cache.get(factory, token_a, token_b)
        if cached is not None:
            return cached

        try:
            pair = await self.reader.get_pair(factory, token_a, token_b)
        except Exception as e:
            logger.debug(f"getPair failed on factory {factory}: {e}")
            return ZERO_ADDRESS

        pair = pair or ZERO_ADDRESS
        self.pair_cache.set(factory, token_a, token_b, pair)
        return pair

    async def get_decimals(self, token: str) -> int:
        """
        Get ERC20 decimals for a token, cached for the process lifetime.

        Raises:
            Exception: Whatever the chain reader raises on a failed lookup
        """
        cached = self.decimals_cache.get(token)
        if cached is not None:
            return cached

        decimals = await self.reader.decimals(token)
        self.decimals_cache.set(token, decimals)
        return decimals

    async def _query_dex(
        self, dex: DexInfo, token_in: str, token_out: str
    ) -> Optional[DexReserves]:
        """Reserves on one DEX, oriented (token_in, token_out); None on any failure."""
        try:
            pair = await self.resolve_pair_address(dex.factory, token_in, token_out)
            if is_zero_address(pair):
                return None

            (reserve0, reserve1), token0 = await asyncio.gather(
                self.reader.get_reserves(pair), self.reader.token0(pair)
            )

            # Pools store reserves in token-address order, not the caller's order
            if same_address(token0, token_in):
                oriented = ReserveSnapshot(int(reserve0), int(reserve1))
            elif same_address(token0, token_out):
                oriented = ReserveSnapshot(int(reserve1), int(reserve0))
            else:
                raise DataError(
                    f"Pair {pair} token0 {token0} is neither side of the swap",
                    source=dex.name,
                    token=token0,
                )
        except Exception as e:
            logger.debug(f"Reserve lookup failed on {dex.name}: {e}")
            return None

        if oriented.reserve_in <= 0 or oriented.reserve_out <= 0:
            return None

        return DexReserves(
            dex=dex,
            reserves=oriented,
            pair_address=pair,
            liquidity=isqrt(oriented.product),
        )

    async def _query_all(
        self, token_in: str, token_out: str, dexes: Optional[List[DexInfo]] = None
    ) -> List[DexReserves]:
        results: List[DexReserves] = []
        for batch in batched(dexes if dexes is not None else self.dexes, self.batch_size):
            batch_results = await asyncio.gather(
                *(self._query_dex(dex, token_in, token_out) for dex in batch)
            )
            results.extend(r for r in batch_results if r is not None)
        return results

    async def get_all_reserves_for_pair(
        self, token_a: str, token_b: str
    ) -> List[DexReserves]:
        """
        Every DEX with a live pool for the pair.

        Args:
            token_a: Token the reserves are oriented from
            token_b: Token the reserves are oriented to

        Returns:
            One DexReserves per DEX with both reserves positive, in registry order
        """
        return await self._query_all(token_a, token_b)

    async def get_reserves(
        self, token_in: str, token_out: str
    ) -> Optional[ReserveSnapshot]:
        """
        Reserves of the deepest pool for a swap direction.

        Args:
            token_in: Token being sold
            token_out: Token being bought

        Returns:
            (reserve_in, reserve_out) from the pool with the largest reserve
            product, or None if no DEX has a valid pool
        """
        best = self._deepest(await self._query_all(token_in, token_out))
        return best.reserves if best else None

    async def get_reserves_from_dex(
        self, token_in: str, token_out: str, dex: DexInfo
    ) -> Optional[ReserveSnapshot]:
        """Reserves for a swap direction on one specific DEX."""
        result = await self._query_dex(dex, token_in, token_out)
        return result.reserves if result else None

    @staticmethod
    def _deepest(results: List[DexReserves]) -> Optional[DexReserves]:
        best: Optional[DexReserves] = None
        for result in results:
            if best is None or result.reserves.product > best.reserves.product:
                best = result
        return best
