"""
Test the reserve oracle: pair discovery, orientation, deepest-pool selection.
"""

import logging

import pytest

from flash_arbitrage.oracle import DecimalsCache, PairAddressCache, ReserveOracle
from flash_arbitrage.types import DexInfo, ReserveSnapshot, TokenInfo
from flash_arbitrage.utils import ZERO_ADDRESS

TOKEN_A = "0x" + "a" * 40
TOKEN_B = "0x" + "b" * 40
TOKEN_C = "0x" + "c" * 40


class TestPairAddressCache:
    def test_stores_both_orderings(self):
        cache = PairAddressCache()
        cache.set("0xF", TOKEN_A, TOKEN_B, "0xpair")

        assert cache.get("0xf", TOKEN_B, TOKEN_A) == "0xpair"
        assert cache.get("0xf", TOKEN_A, TOKEN_B.upper()) == "0xpair"
        assert cache.get("0xf", TOKEN_A, TOKEN_C) is None
        assert len(cache) == 2


class TestDecimalsCache:
    def test_seeded_from_tokens(self):
        cache = DecimalsCache.from_tokens(
            [TokenInfo("AAA", TOKEN_A, decimals=6), TokenInfo("BBB", TOKEN_B)]
        )
        assert cache.get(TOKEN_A) == 6
        assert TOKEN_B not in cache


class TestResolvePairAddress:
    @pytest.mark.asyncio
    async def test_cached_under_both_orders(self, reader, dexes):
        quick = dexes[0]
        pair = reader.add_pool(quick, TOKEN_A, TOKEN_B, 10, 20)
        oracle = ReserveOracle(reader, dexes)

        assert await oracle.resolve_pair_address(quick.factory, TOKEN_A, TOKEN_B) == pair
        assert await oracle.resolve_pair_address(quick.factory, TOKEN_B, TOKEN_A) == pair
        assert reader.calls["get_pair"] == 1

    @pytest.mark.asyncio
    async def test_missing_pair_returns_zero_address(self, reader, dexes):
        oracle = ReserveOracle(reader, dexes)
        result = await oracle.resolve_pair_address(dexes[0].factory, TOKEN_A, TOKEN_C)
        assert result == ZERO_ADDRESS

    @pytest.mark.asyncio
    async def test_failure_returns_zero_address_and_is_not_cached(self, reader, dexes):
        quick = dexes[0]
        pair = reader.add_pool(quick, TOKEN_A, TOKEN_B, 10, 20)
        reader.failing.add(quick.factory)
        oracle = ReserveOracle(reader, dexes)

        assert await oracle.resolve_pair_address(quick.factory, TOKEN_A, TOKEN_B) == ZERO_ADDRESS

        reader.failing.clear()
        assert await oracle.resolve_pair_address(quick.factory, TOKEN_A, TOKEN_B) == pair
        assert reader.calls["get_pair"] == 2


class TestGetReserves:
    @pytest.mark.asyncio
    async def test_orients_to_swap_direction(self, reader, dexes):
        # Pool stores token0 = B
        reader.add_pool(dexes[0], TOKEN_B, TOKEN_A, 500, 100)
        oracle = ReserveOracle(reader, dexes)

        assert await oracle.get_reserves(TOKEN_A, TOKEN_B) == ReserveSnapshot(100, 500)
        assert await oracle.get_reserves(TOKEN_B, TOKEN_A) == ReserveSnapshot(500, 100)

    @pytest.mark.asyncio
    async def test_token0_comparison_ignores_case(self, reader, dexes):
        pair = reader.add_pool(dexes[0], TOKEN_A, TOKEN_B, 100, 500)
        reader.token0s[pair] = TOKEN_A.upper().replace("0X", "0x")
        oracle = ReserveOracle(reader, dexes)

        assert await oracle.get_reserves(TOKEN_A, TOKEN_B) == ReserveSnapshot(100, 500)

    @pytest.mark.asyncio
    async def test_pool_with_foreign_token0_is_excluded(self, reader, dexes, caplog):
        quick, sushi, _ = dexes
        reader.add_pool(quick, TOKEN_A, TOKEN_B, 100, 500)
        bad_pair = reader.add_pool(sushi, TOKEN_A, TOKEN_B, 1000, 5000)
        reader.token0s[bad_pair] = TOKEN_C
        oracle = ReserveOracle(reader, dexes)

        with caplog.at_level(logging.DEBUG, logger="flash_arbitrage.oracle"):
            results = await oracle.get_all_reserves_for_pair(TOKEN_A, TOKEN_B)

        assert [r.dex for r in results] == [quick]
        assert "neither side of the swap" in caplog.text

    @pytest.mark.asyncio
    async def test_picks_deepest_pool(self, reader, dexes):
        quick, sushi, ape = dexes
        reader.add_pool(quick, TOKEN_A, TOKEN_B, 100, 100)
        reader.add_pool(sushi, TOKEN_A, TOKEN_B, 1000, 900)
        reader.add_pool(ape, TOKEN_A, TOKEN_B, 500, 500)
        oracle = ReserveOracle(reader, dexes)

        assert await oracle.get_reserves(TOKEN_A, TOKEN_B) == ReserveSnapshot(1000, 900)

    @pytest.mark.asyncio
    async def test_tie_keeps_first_dex(self, reader, dexes):
        quick, sushi, _ = dexes
        reader.add_pool(quick, TOKEN_A, TOKEN_B, 100, 400)
        reader.add_pool(sushi, TOKEN_A, TOKEN_B, 200, 200)
        oracle = ReserveOracle(reader, dexes)

        results = await oracle.get_all_reserves_for_pair(TOKEN_A, TOKEN_B)
        assert [r.dex for r in results] == [quick, sushi]
        assert await oracle.get_reserves(TOKEN_A, TOKEN_B) == ReserveSnapshot(100, 400)

    @pytest.mark.asyncio
    async def test_failing_dex_is_excluded(self, reader, dexes):
        quick, sushi, _ = dexes
        reader.add_pool(quick, TOKEN_A, TOKEN_B, 10_000, 10_000)
        bad_pair = reader.add_pool(sushi, TOKEN_A, TOKEN_B, 100, 100)
        reader.failing.add(bad_pair)
        oracle = ReserveOracle(reader, dexes)

        results = await oracle.get_all_reserves_for_pair(TOKEN_A, TOKEN_B)
        assert [r.dex for r in results] == [quick]

    @pytest.mark.asyncio
    async def test_empty_pools_are_excluded(self, reader, dexes):
        reader.add_pool(dexes[0], TOKEN_A, TOKEN_B, 0, 1000)
        reader.add_pool(dexes[1], TOKEN_A, TOKEN_B, 1000, 0)
        oracle = ReserveOracle(reader, dexes)

        assert await oracle.get_reserves(TOKEN_A, TOKEN_B) is None

    @pytest.mark.asyncio
    async def test_absence_never_raises(self, reader, dexes):
        for venue in dexes:
            reader.failing.add(venue.factory)
        oracle = ReserveOracle(reader, dexes)

        assert await oracle.get_reserves(TOKEN_A, TOKEN_C) is None
        assert await oracle.get_all_reserves_for_pair(TOKEN_A, TOKEN_C) == []

    @pytest.mark.asyncio
    async def test_dex_queries_are_batched(self, reader):
        many = [
            DexInfo(name=f"dex{i}", factory="0x" + f"{0x100 + i:040x}") for i in range(7)
        ]
        for venue in many:
            reader.add_pool(venue, TOKEN_A, TOKEN_B, 100, 100)
        oracle = ReserveOracle(reader, many, batch_size=2)

        results = await oracle.get_all_reserves_for_pair(TOKEN_A, TOKEN_B)

        assert len(results) == 7
        # getReserves and token0 run together for each DEX in a batch
        assert reader.max_inflight <= 4

    def test_batch_size_must_be_positive(self, reader, dexes):
        with pytest.raises(ValueError):
            ReserveOracle(reader, dexes, batch_size=0)


class TestSingleDexAndLiquidity:
    @pytest.mark.asyncio
    async def test_reserves_from_named_dex(self, reader, dexes):
        quick, sushi, _ = dexes
        reader.add_pool(quick, TOKEN_A, TOKEN_B, 100, 100)
        reader.add_pool(sushi, TOKEN_A, TOKEN_B, 900, 900)
        oracle = ReserveOracle(reader, dexes)

        assert await oracle.get_reserves_from_dex(TOKEN_A, TOKEN_B, quick) == (100, 100)
        assert await oracle.get_reserves_from_dex(TOKEN_A, TOKEN_C, quick) is None

    @pytest.mark.asyncio
    async def test_liquidity_is_geometric_mean(self, reader, dexes):
        pair = reader.add_pool(dexes[0], TOKEN_A, TOKEN_B, 100, 400)
        oracle = ReserveOracle(reader, dexes)

        (result,) = await oracle.get_all_reserves_for_pair(TOKEN_A, TOKEN_B)
        assert result.liquidity == 200
        assert result.pair_address == pair


class TestDecimals:
    @pytest.mark.asyncio
    async def test_decimals_cached(self, reader, dexes):
        reader.decimals_map[TOKEN_A] = 6
        oracle = ReserveOracle(reader, dexes)

        assert await oracle.get_decimals(TOKEN_A) == 6
        assert await oracle.get_decimals(TOKEN_A) == 6
        assert reader.calls["decimals"] == 1

    @pytest.mark.asyncio
    async def test_seeded_decimals_skip_chain(self, reader, dexes):
        oracle = ReserveOracle(
            reader, dexes, decimals_cache=DecimalsCache({TOKEN_B: 18})
        )
        assert await oracle.get_decimals(TOKEN_B) == 18
        assert reader.calls["decimals"] == 0
