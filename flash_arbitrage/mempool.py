"""
Pending-transaction watcher.

Subscribes to ``newPendingTransactions`` over a websocket, resolves each hash
through the chain reader and fires a callback for swaps sent to a known DEX
router. The connection is re-established automatically when it drops.
"""

import asyncio
import json
from typing import Any, Callable, Dict, Iterable, Optional, Set, Union

import websockets

from .chain import ChainReader
from .utils import get_logger

logger = get_logger(__name__)

# Uniswap V2 router swap entry points
SWAP_SELECTORS = frozenset(
    {
        "0x38ed1739",  # swapExactTokensForTokens
        "0x8803dbee",  # swapTokensForExactTokens
        "0x7ff36ab5",  # swapExactETHForTokens
        "0x18cbafe5",  # swapExactTokensForETH
        "0xfb3bdb41",  # swapETHForExactTokens
        "0x4a25d94a",  # swapTokensForExactETH
    }
)

DEFAULT_MAX_INFLIGHT = 64


def _selector(data: Union[str, bytes, None]) -> Optional[str]:
    if data is None:
        return None
    if isinstance(data, (bytes, bytearray)):
        if len(data) < 4:
            return None
        return "0x" + bytes(data)[:4].hex()
    data = str(data).lower()
    if not data.startswith("0x"):
        data = "0x" + data
    if len(data) < 10:
        return None
    return data[:10]


def is_swap_transaction(
    to: Optional[str], data: Union[str, bytes, None], routers: Iterable[str]
) -> bool:
    """
    Check whether a transaction is a router swap.

    Args:
        to: Transaction recipient (None for contract creation)
        data: Calldata as hex string or bytes
        routers: Known router addresses

    Returns:
        True when ``to`` is a router and the calldata starts with a swap selector
    """
    if not to:
        return False
    router_set = {router.lower() for router in routers}
    if to.lower() not in router_set:
        return False
    return _selector(data) in SWAP_SELECTORS


class MempoolWatcher:
    """
    Streams pending transactions and reports router swaps.

    Example:
        watcher = MempoolWatcher(ws_url, reader, config.router_addresses,
                                 on_swap=lambda tx: scanner.request_scan("mempool"))
        await watcher.run()
    """

    def __init__(
        self,
        ws_url: str,
        reader: ChainReader,
        routers: Iterable[str],
        on_swap: Callable[[Dict[str, Any]], None],
        max_inflight: int = DEFAULT_MAX_INFLIGHT,
    ):
        """
        Initialize the watcher.

        Args:
            ws_url: Websocket RPC endpoint
            reader: Chain reader used to fetch transaction bodies
            routers: Router addresses to match
            on_swap: Called with the transaction dict for each matching swap
            max_inflight: Pending hashes resolved concurrently; extra hashes
                are dropped while the limit is reached
        """
        self.ws_url = ws_url
        self.reader = reader
        self.routers = {router.lower() for router in routers}
        self.on_swap = on_swap
        self.max_inflight = max_inflight
        self._tasks: Set[asyncio.Task] = set()
        self.swaps_seen = 0

    async def handle_tx_hash(self, tx_hash: str) -> bool:
        """
        Resolve one pending hash and fire the callback if it is a router swap.

        Returns:
            True if the callback fired
        """
        try:
            tx = await self.reader.get_transaction(tx_hash)
        except Exception as e:
            logger.debug(f"Pending tx {tx_hash} lookup failed: {e}")
            return False

        if not tx:
            return False

        if not is_swap_transaction(tx.get("to"), tx.get("input"), self.routers):
            return False

        self.swaps_seen += 1
        logger.debug(f"Router swap pending: {tx_hash}")
        self.on_swap(tx)
        return True

    def _dispatch(self, tx_hash: str) -> None:
        if len(self._tasks) >= self.max_inflight:
            logger.debug(f"Dropping pending tx {tx_hash}, {len(self._tasks)} in flight")
            return
        task = asyncio.create_task(self.handle_tx_hash(tx_hash))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @staticmethod
    def _subscription_request() -> str:
        return json.dumps(
            {
                "jsonrpc": "2.0",
                "id": 1,
                "method": "eth_subscribe",
                "params": ["newPendingTransactions"],
            }
        )

    async def run(self) -> None:
        """Watch until cancelled, reconnecting whenever the socket closes."""
        try:
            async for websocket in websockets.connect(
                self.ws_url, ping_timeout=None, max_queue=None
            ):
                try:
                    await websocket.send(self._subscription_request())
                    reply = json.loads(await websocket.recv())
                    logger.info(f"Mempool subscription active: {reply.get('result')}")

                    async for raw in websocket:
                        try:
                            message = json.loads(raw)
                            tx_hash = message.get("params", {}).get("result")
                        except (ValueError, AttributeError, TypeError) as e:
                            logger.debug(f"Skipping malformed mempool message: {e}")
                            continue
                        if isinstance(tx_hash, str):
                            self._dispatch(tx_hash)
                except websockets.exceptions.ConnectionClosed as e:
                    logger.warning(f"Mempool websocket closed ({e}), reconnecting...")
                    continue
        finally:
            for task in list(self._tasks):
                task.cancel()
