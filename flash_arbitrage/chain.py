"""
Async access to on-chain reads.

The oracle and the mempool watcher talk to the chain only through the
:class:`ChainReader` protocol, so tests can substitute an in-memory fake.
:class:`Web3ChainReader` implements it over a synchronous web3 HTTP provider,
running every call in the default thread pool to keep the event loop free.
"""

import asyncio
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

from web3 import Web3
from web3.exceptions import TransactionNotFound

from .abi import ERC20_ABI, UNISWAP_V2_FACTORY_ABI, UNISWAP_V2_PAIR_ABI
from .exceptions import NetworkError
from .utils import get_logger, to_checksum

logger = get_logger(__name__)

RATE_LIMIT_MARKERS = ("429", "too many requests", "-32005", "limit exceeded")


class ChainReader(Protocol):
    """Read-only chain calls used by the scanner."""

    async def get_pair(self, factory: str, token_a: str, token_b: str) -> str:
        ...

    async def get_reserves(self, pair: str) -> Tuple[int, int]:
        ...

    async def token0(self, pair: str) -> str:
        ...

    async def decimals(self, token: str) -> int:
        ...

    async def get_transaction(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        ...


def is_rate_limit_error(error: Exception) -> bool:
    """Check for the common rate-limit patterns returned by RPC providers."""
    message = str(error).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


class Web3ChainReader:
    """
    ChainReader backed by ``web3.Web3`` with an HTTP provider.

    Contract objects are built once per address. Rate-limited calls are
    retried with exponential backoff; any other failure is raised unchanged
    so the caller can decide whether it is fatal.
    """

    def __init__(
        self,
        web3: Web3,
        max_retries: int = 3,
        backoff_base_sec: float = 1.0,
    ):
        """
        Initialize the reader.

        Args:
            web3: Connected Web3 instance
            max_retries: Attempts per call before giving up on rate limits
            backoff_base_sec: First backoff delay, doubled per attempt
        """
        self.web3 = web3
        self.max_retries = max_retries
        self.backoff_base_sec = backoff_base_sec
        self._contracts: Dict[Tuple[str, str], Any] = {}

    @classmethod
    def from_url(
        cls, rpc_url: str, timeout: float = 10.0, max_retries: int = 3
    ) -> "Web3ChainReader":
        web3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
        return cls(web3, max_retries=max_retries)

    def _contract(self, kind: str, address: str, abi: list):
        key = (kind, address.lower())
        contract = self._contracts.get(key)
        if contract is None:
            contract = self.web3.eth.contract(address=to_checksum(address), abi=abi)
            self._contracts[key] = contract
        return contract

    async def _call(self, fn: Callable[[], Any], label: str) -> Any:
        loop = asyncio.get_running_loop()
        attempt = 0

        while True:
            try:
                return await loop.run_in_executor(None, fn)
            except Exception as e:
                if not is_rate_limit_error(e):
                    raise
                attempt += 1
                if attempt >= self.max_retries:
                    raise NetworkError(
                        f"{label} still rate limited after {attempt} attempts: {e}"
                    ) from e
                wait_time = self.backoff_base_sec * (2 ** (attempt - 1))
                logger.debug(f"Rate limited on {label}, retrying in {wait_time:.1f}s")
                await asyncio.sleep(wait_time)

    async def get_pair(self, factory: str, token_a: str, token_b: str) -> str:
        contract = self._contract("factory", factory, UNISWAP_V2_FACTORY_ABI)
        call = contract.functions.getPair(to_checksum(token_a), to_checksum(token_b))
        return await self._call(call.call, f"getPair({factory})")

    async def get_reserves(self, pair: str) -> Tuple[int, int]:
        contract = self._contract("pair", pair, UNISWAP_V2_PAIR_ABI)
        reserves = await self._call(
            contract.functions.getReserves().call, f"getReserves({pair})"
        )
        return int(reserves[0]), int(reserves[1])

    async def token0(self, pair: str) -> str:
        contract = self._contract("pair", pair, UNISWAP_V2_PAIR_ABI)
        return await self._call(contract.functions.token0().call, f"token0({pair})")

    async def decimals(self, token: str) -> int:
        contract = self._contract("erc20", token, ERC20_ABI)
        value = await self._call(
            contract.functions.decimals().call, f"decimals({token})"
        )
        return int(value)

    async def get_transaction(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        def fetch():
            try:
                return dict(self.web3.eth.get_transaction(tx_hash))
            except TransactionNotFound:
                return None

        return await self._call(fetch, f"getTransaction({tx_hash})")
