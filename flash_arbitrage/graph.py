"""
Liquidity graph and cycle enumeration.

The graph is a directed networkx graph over token addresses. Each edge carries
a ``dexes`` attribute: the ordered list of DEXs that can execute that swap
direction. Cycles are materialised as :class:`~flash_arbitrage.types.Path`
objects, one per combination of DEX choices along the cycle.
"""

from collections import deque
from itertools import product
from math import isqrt
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import networkx as nx

from .oracle import ReserveOracle
from .types import DexInfo, Hop, Path, ReserveSnapshot
from .utils import dedupe, get_logger, normalize_address

logger = get_logger(__name__)


class LiquidityGraph:
    """
    Directed graph of tradeable token pairs.

    Built wholesale on every cache refresh and treated as read-only while a
    scan runs. Neighbour and DEX iteration follow insertion order.
    """

    def __init__(self):
        self._graph = nx.DiGraph()

    def add_edge(self, token_in: str, token_out: str, dex: DexInfo) -> None:
        """Record that ``dex`` can swap token_in -> token_out."""
        token_in, token_out = token_in.lower(), token_out.lower()
        if self._graph.has_edge(token_in, token_out):
            dexes = self._graph[token_in][token_out]["dexes"]
            if dex not in dexes:
                dexes.append(dex)
        else:
            self._graph.add_edge(token_in, token_out, dexes=[dex])

    def has_edge(self, token_in: str, token_out: str) -> bool:
        return self._graph.has_edge(token_in.lower(), token_out.lower())

    def neighbors(self, token: str) -> List[str]:
        token = token.lower()
        if token not in self._graph:
            return []
        return list(self._graph.successors(token))

    def dexes(self, token_in: str, token_out: str) -> List[DexInfo]:
        """DEXs offering the swap, in the order they were discovered."""
        token_in, token_out = token_in.lower(), token_out.lower()
        if not self._graph.has_edge(token_in, token_out):
            return []
        return list(self._graph[token_in][token_out]["dexes"])

    @property
    def tokens(self) -> List[str]:
        return list(self._graph.nodes)

    @property
    def edge_count(self) -> int:
        """Number of (token_in, token_out, dex) edges."""
        return sum(len(data["dexes"]) for _, _, data in self._graph.edges(data=True))

    def __contains__(self, token: str) -> bool:
        return token.lower() in self._graph

    def __len__(self) -> int:
        return self._graph.number_of_nodes()


async def build_graph(oracle: ReserveOracle, tokens: Iterable[str]) -> LiquidityGraph:
    """
    Build the liquidity graph for a token whitelist.

    Every unordered pair is checked once, sequentially, across all DEXs. Each
    DEX with a live pool contributes an edge in both directions.

    Args:
        oracle: Reserve oracle used to discover pools
        tokens: Token addresses to connect (repeats are checked once)

    Returns:
        Populated LiquidityGraph

    Raises:
        ValueError: If a token is not a valid address
    """
    token_list = dedupe(normalize_address(token) for token in tokens)
    graph = LiquidityGraph()
    skipped = 0

    for i, token_a in enumerate(token_list):
        for token_b in token_list[i + 1 :]:
            try:
                results = await oracle.get_all_reserves_for_pair(token_a, token_b)
            except Exception as e:
                skipped += 1
                logger.warning(f"Skipping pair {token_a[:10]}/{token_b[:10]}: {e}")
                continue

            for result in results:
                graph.add_edge(token_a, token_b, result.dex)
                graph.add_edge(token_b, token_a, result.dex)

    logger.info(
        f"Liquidity graph: {len(graph)} tokens, {graph.edge_count} edges"
        + (f", {skipped} pairs skipped" if skipped else "")
    )
    return graph


def _expand(graph: LiquidityGraph, tokens: List[str]) -> List[Path]:
    """All DEX assignments for a closed token sequence (first == last)."""
    legs = list(zip(tokens, tokens[1:]))
    choices = [graph.dexes(token_in, token_out) for token_in, token_out in legs]
    return [
        Path(
            tuple(
                Hop(token_in, token_out, dex)
                for (token_in, token_out), dex in zip(legs, combo)
            )
        )
        for combo in product(*choices)
    ]


def find_triangular_paths(
    graph: LiquidityGraph, start: str, max_paths: int = 20
) -> List[Path]:
    """
    Enumerate 3-hop cycles start -> B -> C -> start.

    Args:
        graph: Liquidity graph
        start: Start (and end) token
        max_paths: Stop once this many paths are collected

    Returns:
        Up to max_paths paths, in traversal order
    """
    start = start.lower()
    paths: List[Path] = []

    for token_b in graph.neighbors(start):
        if token_b == start:
            continue
        for token_c in graph.neighbors(token_b):
            if token_c in (start, token_b) or not graph.has_edge(token_c, start):
                continue
            for path in _expand(graph, [start, token_b, token_c, start]):
                paths.append(path)
                if len(paths) >= max_paths:
                    return paths

    return paths


def find_paths(
    graph: LiquidityGraph, start: str, max_hops: int = 3, max_paths: int = 20
) -> List[Path]:
    """
    Enumerate cycles of 2..max_hops hops with a breadth-first search.

    A partial route is extended only to tokens it has not visited yet, so no
    token other than ``start`` repeats. Reaching ``start`` again closes a
    cycle, which is expanded into one path per DEX combination.

    Args:
        graph: Liquidity graph
        start: Start (and end) token
        max_hops: Longest cycle to consider
        max_paths: Stop once this many paths are collected

    Returns:
        Up to max_paths paths, shorter cycles first
    """
    start = start.lower()
    paths: List[Path] = []
    queue = deque([[start]])

    while queue:
        route = queue.popleft()
        for token in graph.neighbors(route[-1]):
            if token == start:
                if len(route) < 2:
                    continue
                for path in _expand(graph, route + [start]):
                    paths.append(path)
                    if len(paths) >= max_paths:
                        return paths
            elif token not in route and len(route) < max_hops:
                queue.append(route + [token])

    return paths


async def rank_by_liquidity(oracle: ReserveOracle, paths: List[Path]) -> List[Path]:
    """
    Order paths by total hop liquidity, deepest first.

    Each hop scores ``isqrt(reserve_in * reserve_out)`` of its deepest pool; a
    hop with no pool scores 0. Ties keep their input order. Paths whose
    scoring fails are dropped.
    """
    reserves_seen: Dict[Tuple[str, str], Optional[ReserveSnapshot]] = {}
    scored: List[Tuple[int, Path]] = []

    for path in paths:
        try:
            score = 0
            for hop in path:
                if hop.pair not in reserves_seen:
                    reserves_seen[hop.pair] = await oracle.get_reserves(
                        hop.token_in, hop.token_out
                    )
                reserves = reserves_seen[hop.pair]
                if reserves is not None:
                    score += isqrt(reserves.product)
        except Exception as e:
            logger.debug(f"Dropping path from ranking: {e}")
            continue
        scored.append((score, path))

    scored.sort(key=lambda item: item[0], reverse=True)
    return [path for _, path in scored]


def format_path(path: Path, symbols: Optional[Mapping[str, str]] = None) -> str:
    """Render a path as ``USDC → WETH (quickswap) → USDC (sushiswap)``."""
    symbols = symbols or {}

    def label(token: str) -> str:
        return symbols.get(token.lower(), token[:8])

    parts = [label(path.start_token)]
    for hop in path:
        parts.append(f"{label(hop.token_out)} ({hop.dex.name})")
    return " → ".join(parts)
