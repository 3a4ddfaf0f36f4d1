"""
Configuration schema validation using Pydantic
"""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from web3 import Web3


def _check_address(value: str) -> str:
    # Case-insensitive; checksums are not enforced
    if not isinstance(value, str) or not Web3.is_address(value.lower()):
        raise ValueError(f"not a 20-byte hex address: {value!r}")
    return value.lower()


class TokenModel(BaseModel):
    """Whitelisted token entry"""

    address: str
    decimals: Optional[int] = Field(default=None, ge=0, le=77)
    min_profit: Optional[float] = Field(
        default=None, ge=0, description="Minimum profit in human units"
    )

    @field_validator("address")
    @classmethod
    def validate_address(cls, v):
        return _check_address(v)


class DexModel(BaseModel):
    """Uniswap V2 style DEX entry (router only needed for mempool matching)"""

    factory: str
    router: Optional[str] = None

    @field_validator("router", "factory")
    @classmethod
    def validate_addresses(cls, v):
        if v is None:
            return v
        return _check_address(v)


class OracleSettings(BaseModel):
    """Reserve oracle tuning"""

    dex_batch_size: int = Field(default=3, ge=1, le=50)
    request_timeout_sec: float = Field(default=10.0, gt=0, le=120)
    max_retries: int = Field(default=3, ge=1, le=10)


class ScannerSettings(BaseModel):
    """Scan orchestrator tuning"""

    path_cache_ttl_sec: float = Field(default=300.0, gt=0)
    scan_interval_sec: float = Field(default=30.0, gt=0)
    path_batch_size: int = Field(default=3, ge=1, le=50)
    batch_delay_ms: int = Field(default=100, ge=0, le=60000)
    top_n_paths: int = Field(default=10, ge=1)
    cycle_strategy: Literal["general", "triangular"] = "general"
    max_hops: int = Field(default=3, ge=2, le=6)
    max_paths_per_token: int = Field(default=20, ge=1)
    min_profit: float = Field(
        default=10.0, ge=0, description="Default minimum profit in human units"
    )
    pin_hop_dex: bool = False


class OptimizerSettings(BaseModel):
    """Loan-size search configuration (amounts in human units of the loan token)"""

    strategy: Literal["step", "golden", "hybrid"] = "step"
    golden_min_units: float = Field(default=1, gt=0)
    golden_max_units: float = Field(default=1_000_000, gt=0)
    golden_iterations: int = Field(default=100, ge=1, le=1000)
    step_min_units: float = Field(default=1_000, gt=0)
    step_max_units: float = Field(default=100_000, gt=0)
    step_units: float = Field(default=1_000, gt=0)

    @model_validator(mode="after")
    def validate_brackets(self):
        if self.golden_min_units >= self.golden_max_units:
            raise ValueError("golden_min_units must be below golden_max_units")
        if self.step_min_units > self.step_max_units:
            raise ValueError("step_min_units must not exceed step_max_units")
        return self


class GasSettings(BaseModel):
    """Gas price collaborator"""

    api_url: Optional[str] = None
    api_key_env: str = "GAS_API_KEY"
    gas_limit: int = Field(default=1_000_000, ge=21_000)
    timeout_sec: float = Field(default=5.0, gt=0)


class SettlementSettings(BaseModel):
    """Settlement contract hand-off"""

    contract_address: Optional[str] = None
    dry_run: bool = True
    private_key_env: str = "PRIVATE_KEY"

    @field_validator("contract_address")
    @classmethod
    def validate_contract(cls, v):
        if v is None:
            return v
        return _check_address(v)


class ArbConfigModel(BaseModel):
    """Top-level scanner configuration"""

    rpc_url: Optional[str] = None
    ws_url: Optional[str] = None
    chain_id: int = Field(default=137, ge=1)
    slippage_bps: int = Field(default=300, ge=0, lt=10_000)
    tokens: Dict[str, TokenModel]
    hub_tokens: List[str] = Field(default_factory=list)
    dexes: Dict[str, DexModel]
    oracle: OracleSettings = Field(default_factory=OracleSettings)
    scanner: ScannerSettings = Field(default_factory=ScannerSettings)
    optimizer: OptimizerSettings = Field(default_factory=OptimizerSettings)
    gas: GasSettings = Field(default_factory=GasSettings)
    settlement: SettlementSettings = Field(default_factory=SettlementSettings)

    @field_validator("tokens")
    @classmethod
    def validate_tokens(cls, v):
        if len(v) < 2:
            raise ValueError("At least two tokens are required to form a pair")
        addresses = [token.address for token in v.values()]
        if len(set(addresses)) != len(addresses):
            raise ValueError("Token addresses must be unique")
        return v

    @field_validator("dexes")
    @classmethod
    def validate_dexes(cls, v):
        if not v:
            raise ValueError("At least one DEX must be configured")
        return v

    @model_validator(mode="after")
    def validate_hub_tokens(self):
        missing = [symbol for symbol in self.hub_tokens if symbol not in self.tokens]
        if missing:
            raise ValueError(f"hub_tokens not found in tokens: {missing}")
        if not self.settlement.dry_run and not self.settlement.contract_address:
            raise ValueError("settlement.contract_address is required when dry_run is off")
        return self
