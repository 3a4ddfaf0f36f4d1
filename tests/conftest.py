"""
Shared fixtures: an in-memory chain reader and small token/DEX registries.
"""

import asyncio
from collections import Counter

import pytest

from flash_arbitrage.types import DexInfo
from flash_arbitrage.utils import ZERO_ADDRESS

TOKEN_A = "0x" + "a" * 40
TOKEN_B = "0x" + "b" * 40
TOKEN_C = "0x" + "c" * 40
TOKEN_D = "0x" + "d" * 40


def make_dex(name: str, index: int) -> DexInfo:
    return DexInfo(
        name=name,
        factory="0x" + f"{0xF0 + index:040x}",
        router="0x" + f"{0xE0 + index:040x}",
    )


class FakeChainReader:
    """
    ChainReader backed by dictionaries.

    Pools are registered with :meth:`add_pool` in pool storage order
    (token0, token1). Factories or pairs listed in ``failing`` raise.
    """

    def __init__(self):
        self.pairs = {}
        self.reserves = {}
        self.token0s = {}
        self.decimals_map = {}
        self.transactions = {}
        self.failing = set()
        self.calls = Counter()
        self.inflight = 0
        self.max_inflight = 0

    def add_pool(self, dex, token0, token1, reserve0, reserve1):
        pair = "0x" + f"{0xDEAD0000 + len(self.reserves) + 1:040x}"
        self.pairs[(dex.factory, token0, token1)] = pair
        self.pairs[(dex.factory, token1, token0)] = pair
        self.reserves[pair] = (reserve0, reserve1)
        self.token0s[pair] = token0
        return pair

    async def _enter(self, name, key):
        self.calls[name] += 1
        self.inflight += 1
        self.max_inflight = max(self.max_inflight, self.inflight)
        try:
            await asyncio.sleep(0)
            if key in self.failing:
                raise ConnectionError(f"{name} failed for {key}")
        finally:
            self.inflight -= 1

    async def get_pair(self, factory, token_a, token_b):
        await self._enter("get_pair", factory)
        return self.pairs.get((factory, token_a, token_b), ZERO_ADDRESS)

    async def get_reserves(self, pair):
        await self._enter("get_reserves", pair)
        return self.reserves[pair]

    async def token0(self, pair):
        await self._enter("token0", pair)
        return self.token0s[pair]

    async def decimals(self, token):
        await self._enter("decimals", token)
        return self.decimals_map[token]

    async def get_transaction(self, tx_hash):
        await self._enter("get_transaction", tx_hash)
        return self.transactions.get(tx_hash)


@pytest.fixture
def reader():
    return FakeChainReader()


@pytest.fixture
def dexes():
    return [make_dex("quickswap", 1), make_dex("sushiswap", 2), make_dex("apeswap", 3)]


@pytest.fixture
def raw_config():
    """Minimal valid configuration dictionary."""
    return {
        "rpc_url": "https://rpc.example.org",
        "tokens": {
            "AAA": {"address": TOKEN_A, "decimals": 6},
            "BBB": {"address": TOKEN_B, "decimals": 18},
            "CCC": {"address": TOKEN_C, "decimals": 18, "min_profit": 0.5},
        },
        "hub_tokens": ["AAA"],
        "dexes": {
            "quickswap": {
                "factory": "0x" + "1" * 40,
                "router": "0x" + "2" * 40,
            },
            "wault": {"factory": "0x" + "3" * 40},
        },
    }
