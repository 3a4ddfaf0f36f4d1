"""
Test CLI argument parsing and wiring.
"""

from unittest.mock import MagicMock, patch

import pytest

from flash_arbitrage.cli import build_settlement, main, parse_args
from flash_arbitrage.config import build_config
from flash_arbitrage.exceptions import ConfigurationError
from flash_arbitrage.settlement import ContractSettlement, DryRunSettlement

# Well-known test key, never funded
TEST_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"


def test_parse_args_defaults():
    args = parse_args([])
    assert args.config == "config/polygon.yaml"
    assert not args.once
    assert not args.no_mempool
    assert not args.debug


def test_parse_args_flags():
    args = parse_args(["--config", "x.yaml", "--once", "--no-mempool", "--debug"])
    assert args.config == "x.yaml"
    assert args.once and args.no_mempool and args.debug


def test_missing_config_exits_non_zero(tmp_path):
    assert main(["--config", str(tmp_path / "missing.yaml")]) == 1


def test_invalid_config_exits_non_zero(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("tokens: {}\ndexes: {}\n")
    assert main(["--config", str(path)]) == 1


class TestBuildSettlement:
    def test_dry_run_by_default(self, raw_config):
        config = build_config(raw_config, environ={})
        assert isinstance(build_settlement(config, MagicMock(), {}), DryRunSettlement)

    def test_live_settlement_needs_private_key(self, raw_config):
        raw_config["settlement"] = {"dry_run": False, "contract_address": "0x" + "5" * 40}
        config = build_config(raw_config, environ={})

        with pytest.raises(ConfigurationError, match="PRIVATE_KEY"):
            build_settlement(config, MagicMock(), {})

    def test_live_settlement_with_key(self, raw_config):
        raw_config["settlement"] = {"dry_run": False, "contract_address": "0x" + "5" * 40}
        config = build_config(raw_config, environ={})

        settlement = build_settlement(config, MagicMock(), {"PRIVATE_KEY": TEST_KEY})
        assert isinstance(settlement, ContractSettlement)
        assert settlement.chain_id == 137


def test_once_runs_single_scan(raw_config, tmp_path):
    scanner = MagicMock()

    async def scan_cache():
        return None

    scanner.scan_cache = MagicMock(side_effect=scan_cache)

    with patch("flash_arbitrage.cli.load_config") as load, patch(
        "flash_arbitrage.cli.build_scanner", return_value=scanner
    ):
        load.return_value = build_config(raw_config, environ={})
        assert main(["--once", "--no-mempool"]) == 0

    scanner.scan_cache.assert_called_once()
    scanner.run.assert_not_called()
