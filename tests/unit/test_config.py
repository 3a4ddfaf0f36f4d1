"""
Test configuration loading and validation.
"""

import copy
from pathlib import Path

import pytest
import yaml

from flash_arbitrage.config import build_config, load_config
from flash_arbitrage.exceptions import ConfigurationError

TOKEN_A = "0x" + "a" * 40

REPO_ROOT = Path(__file__).resolve().parents[2]


class TestBuildConfig:
    def test_valid_config(self, raw_config):
        config = build_config(raw_config, environ={})

        assert config.rpc_url == "https://rpc.example.org"
        assert config.chain_id == 137
        assert config.slippage_bps == 300
        assert config.hub_tokens == [TOKEN_A]
        assert config.tokens[TOKEN_A].symbol == "AAA"
        assert config.tokens[TOKEN_A].decimals == 6
        assert list(config.dexes) == ["quickswap", "wault"]

    def test_defaults(self, raw_config):
        config = build_config(raw_config, environ={})

        assert config.scanner.path_cache_ttl_sec == 300
        assert config.scanner.path_batch_size == 3
        assert config.scanner.batch_delay_ms == 100
        assert config.scanner.top_n_paths == 10
        assert config.scanner.cycle_strategy == "general"
        assert config.optimizer.strategy == "step"
        assert config.oracle.dex_batch_size == 3
        assert config.settlement.dry_run is True

    def test_addresses_normalised(self, raw_config):
        raw_config["tokens"]["AAA"]["address"] = "0x" + "A" * 40
        config = build_config(raw_config, environ={})
        assert TOKEN_A in config.tokens

    def test_router_addresses_skip_factory_only_dexes(self, raw_config):
        config = build_config(raw_config, environ={})
        assert config.router_addresses == ["0x" + "2" * 40]

    def test_environment_overrides_endpoints(self, raw_config):
        config = build_config(
            raw_config,
            environ={"RPC_URL": "https://other.example.org", "WS_URL": "wss://ws.example.org"},
        )
        assert config.rpc_url == "https://other.example.org"
        assert config.ws_url == "wss://ws.example.org"

    def test_missing_rpc_is_fatal(self, raw_config):
        del raw_config["rpc_url"]
        with pytest.raises(ConfigurationError, match="RPC"):
            build_config(raw_config, environ={})

    def test_rpc_must_be_http(self, raw_config):
        raw_config["rpc_url"] = "wss://rpc.example.org"
        with pytest.raises(ConfigurationError):
            build_config(raw_config, environ={})

    @pytest.mark.parametrize(
        "mutate",
        [
            lambda c: c["tokens"]["AAA"].update(address="0x1234"),
            lambda c: c["tokens"].pop("BBB") and c["tokens"].pop("CCC"),
            lambda c: c["tokens"]["BBB"].update(address=TOKEN_A),
            lambda c: c.update(hub_tokens=["NOPE"]),
            lambda c: c.update(dexes={}),
            lambda c: c.update(slippage_bps=10_000),
            lambda c: c.update(settlement={"dry_run": False}),
            lambda c: c.update(optimizer={"step_min_units": 10, "step_max_units": 5}),
            lambda c: c.update(scanner={"cycle_strategy": "dfs"}),
        ],
    )
    def test_invalid_configs(self, raw_config, mutate):
        broken = copy.deepcopy(raw_config)
        mutate(broken)

        with pytest.raises(ConfigurationError) as exc_info:
            build_config(broken, environ={})
        assert exc_info.value.details["errors"]


class TestLoadConfig:
    def test_load_from_file(self, raw_config, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(raw_config))

        config = load_config(path, environ={})
        assert len(config.tokens) == 3

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("tokens: [unclosed")
        with pytest.raises(ConfigurationError, match="parse"):
            load_config(path)

    def test_non_mapping_document(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="dictionary"):
            load_config(path)

    def test_shipped_polygon_config(self):
        config = load_config(REPO_ROOT / "config" / "polygon.yaml", environ={})

        assert config.chain_id == 137
        assert len(config.tokens) == 10
        assert len(config.dexes) == 6
        assert len(config.router_addresses) == 4
        assert [config.tokens[token].symbol for token in config.hub_tokens] == [
            "USDC",
            "WETH",
            "WMATIC",
            "USDT",
            "DAI",
        ]
