"""
Gas price sourcing for settlement transactions.

Fee caps come from an optional HTTP gas API returning gwei values. Any failure
falls back to a static gas limit with no fee override, leaving fee selection
to the node.
"""

import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

import aiohttp
from web3 import Web3

from .config_schema import GasSettings
from .exceptions import NetworkError
from .utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class GasOverrides:
    """Transaction gas parameters, fee caps in wei."""

    gas_limit: int
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None

    def to_tx_params(self) -> Dict[str, int]:
        params = {"gas": self.gas_limit}
        if self.max_fee_per_gas is not None:
            params["maxFeePerGas"] = self.max_fee_per_gas
        if self.max_priority_fee_per_gas is not None:
            params["maxPriorityFeePerGas"] = self.max_priority_fee_per_gas
        return params


def gwei_to_wei(value: Any) -> int:
    return int(Web3.to_wei(Decimal(str(value)), "gwei"))


class GasPriceClient:
    """
    Fetches EIP-1559 fee caps from a gas API.

    Example:
        client = GasPriceClient.from_settings(config.gas)
        overrides = await client.get_overrides()
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        gas_limit: int = 1_000_000,
        timeout_sec: float = 5.0,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.gas_limit = gas_limit
        self.timeout_sec = timeout_sec

    @classmethod
    def from_settings(
        cls, settings: GasSettings, environ: Optional[Mapping[str, str]] = None
    ) -> "GasPriceClient":
        env = os.environ if environ is None else environ
        return cls(
            api_url=settings.api_url,
            api_key=env.get(settings.api_key_env),
            gas_limit=settings.gas_limit,
            timeout_sec=settings.timeout_sec,
        )

    def fallback(self) -> GasOverrides:
        return GasOverrides(gas_limit=self.gas_limit)

    async def _fetch_json(self) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        timeout = aiohttp.ClientTimeout(total=self.timeout_sec)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(self.api_url, headers=headers) as response:
                if response.status != 200:
                    raise NetworkError(
                        f"Gas API returned HTTP {response.status}",
                        endpoint=self.api_url,
                        status_code=response.status,
                    )
                return await response.json()

    async def get_overrides(self) -> GasOverrides:
        """
        Current gas overrides.

        Returns:
            Fee caps from the gas API, or the static gas limit alone when the
            API is not configured or the lookup fails
        """
        if not self.api_url:
            return self.fallback()

        try:
            data = await self._fetch_json()
            return GasOverrides(
                gas_limit=self.gas_limit,
                max_fee_per_gas=gwei_to_wei(data["maxFeePerGas"]),
                max_priority_fee_per_gas=gwei_to_wei(data["maxPriorityFeePerGas"]),
            )
        except Exception as e:
            logger.warning(f"Gas API fallback: {e}")
            return self.fallback()
