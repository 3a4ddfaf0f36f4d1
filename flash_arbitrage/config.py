"""
Configuration loading for the flash arbitrage scanner.

YAML is parsed here, validated against :mod:`flash_arbitrage.config_schema`,
then normalised into immutable token and DEX registries keyed by address and
name. Endpoints may be overridden from the environment.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import ValidationError as PydanticValidationError

from .config_schema import (
    ArbConfigModel,
    GasSettings,
    OptimizerSettings,
    OracleSettings,
    ScannerSettings,
    SettlementSettings,
)
from .exceptions import ConfigurationError
from .types import DexInfo, TokenInfo

ENV_RPC_URL = "RPC_URL"
ENV_WS_URL = "WS_URL"


@dataclass(frozen=True)
class ArbConfig:
    """
    Validated, read-only scanner configuration.

    Attributes:
        rpc_url: HTTP(S) RPC endpoint (required)
        ws_url: Websocket endpoint for the mempool feed (optional)
        chain_id: Chain id the addresses belong to
        slippage_bps: Buffer subtracted from every simulated hop output
        tokens: Token registry keyed by lowercase address
        dexes: DEX registry keyed by name, in configuration order
        hub_tokens: Start tokens for cycle discovery (addresses)
    """

    rpc_url: str
    ws_url: Optional[str]
    chain_id: int
    slippage_bps: int
    tokens: Dict[str, TokenInfo]
    dexes: Dict[str, DexInfo]
    hub_tokens: List[str]
    oracle: OracleSettings
    scanner: ScannerSettings
    optimizer: OptimizerSettings
    gas: GasSettings
    settlement: SettlementSettings

    @property
    def token_addresses(self) -> List[str]:
        return list(self.tokens)

    @property
    def router_addresses(self) -> List[str]:
        return [dex.router for dex in self.dexes.values() if dex.router]


def build_config(
    config_dict: Dict[str, Any], environ: Optional[Dict[str, str]] = None
) -> ArbConfig:
    """
    Validate a raw config dictionary and build an :class:`ArbConfig`.

    Args:
        config_dict: Loaded YAML config
        environ: Environment used for endpoint overrides (defaults to os.environ)

    Returns:
        Validated ArbConfig

    Raises:
        ConfigurationError: If validation fails or no RPC endpoint is available
    """
    env = os.environ if environ is None else environ

    try:
        model = ArbConfigModel.model_validate(config_dict)
    except PydanticValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration: {e.error_count()} error(s)",
            details={"errors": e.errors()},
        ) from e

    rpc_url = env.get(ENV_RPC_URL) or model.rpc_url
    if not rpc_url:
        raise ConfigurationError(
            f"No RPC endpoint: set {ENV_RPC_URL} or rpc_url in the config file"
        )
    if not rpc_url.startswith(("http://", "https://")):
        raise ConfigurationError(f"Invalid RPC URL format: {rpc_url}")

    ws_url = env.get(ENV_WS_URL) or model.ws_url

    tokens = {
        entry.address: TokenInfo(
            symbol=symbol,
            address=entry.address,
            decimals=entry.decimals,
            min_profit=entry.min_profit,
        )
        for symbol, entry in model.tokens.items()
    }
    dexes = {
        name: DexInfo(name=name, router=entry.router, factory=entry.factory)
        for name, entry in model.dexes.items()
    }
    hub_tokens = [model.tokens[symbol].address for symbol in model.hub_tokens]

    return ArbConfig(
        rpc_url=rpc_url,
        ws_url=ws_url,
        chain_id=model.chain_id,
        slippage_bps=model.slippage_bps,
        tokens=tokens,
        dexes=dexes,
        hub_tokens=hub_tokens,
        oracle=model.oracle,
        scanner=model.scanner,
        optimizer=model.optimizer,
        gas=model.gas,
        settlement=model.settlement,
    )


def load_config(
    config_path: Union[str, Path], environ: Optional[Dict[str, str]] = None
) -> ArbConfig:
    """
    Load and validate config from YAML file.

    Args:
        config_path: Path to config YAML file
        environ: Environment used for endpoint overrides

    Returns:
        Validated ArbConfig instance

    Raises:
        ConfigurationError: If config invalid or file not found
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")

    try:
        with open(path, "r") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML: {e}") from e

    if not isinstance(config_dict, dict):
        raise ConfigurationError("Config file must contain a YAML dictionary")

    return build_config(config_dict, environ)
