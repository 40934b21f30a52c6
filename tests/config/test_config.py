"""Tests for YAML configuration loading (pos_ledger/config.py)."""

from decimal import Decimal

import pytest
import yaml

from pos_ledger.config import load_config, merge
from pos_ledger.domain.dtos import AccountRole
from pos_ledger.exceptions import ConfigurationError
from pos_ledger.models.account import AccountCategory


def _write(tmp_path, data) -> str:
    path = tmp_path / "overlay.yaml"
    path.write_text(yaml.safe_dump(data))
    return str(path)


class TestDefaults:
    def test_packaged_defaults(self):
        config = load_config(environ={})

        assert config.balance_tolerance == Decimal("0.01")
        assert config.cogs_cost_ratio == Decimal("0.60")
        assert config.number_width == 5
        assert config.prefix_for("journal_entry") == "JE"
        assert config.retry_attempts == 3
        assert config.outbox_max_attempts == 5
        assert config.well_known_accounts[AccountRole.CASH] == "1060"
        assert config.well_known_accounts[AccountRole.SALES_REVENUE] == "4100"

    def test_default_chart(self):
        chart = load_config(environ={}).chart

        assert {t.category for t in chart.types} == set(AccountCategory)
        assert len(chart.accounts) == 17
        codes = {a.code for a in chart.accounts}
        assert {"1060", "1510", "2100", "2120", "4100", "5010"} <= codes

    def test_every_well_known_code_is_in_the_chart(self):
        config = load_config(environ={})
        codes = {a.code for a in config.chart.accounts}
        assert set(config.well_known_accounts.values()) <= codes

    def test_checksum_is_stable(self):
        assert load_config(environ={}).checksum == load_config(environ={}).checksum

    def test_unknown_prefix(self):
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(environ={}).prefix_for("invoice")
        assert exc_info.value.key == "sequences.prefixes.invoice"


class TestOverlay:
    def test_overlay_merges_key_by_key(self, tmp_path):
        path = _write(tmp_path, {"posting": {"cogs_cost_ratio": "0.55"}})
        config = load_config(path, environ={})

        assert config.cogs_cost_ratio == Decimal("0.55")
        assert config.balance_tolerance == Decimal("0.01")

    def test_overlay_from_environment(self, tmp_path):
        path = _write(tmp_path, {"outbox": {"max_attempts": 2}})
        config = load_config(environ={"POS_LEDGER_CONFIG": path})
        assert config.outbox_max_attempts == 2

    def test_overlay_changes_checksum(self, tmp_path):
        path = _write(tmp_path, {"retry": {"attempts": 7}})
        assert load_config(path, environ={}).checksum != load_config(environ={}).checksum

    def test_database_url_from_environment(self):
        config = load_config(environ={"DATABASE_URL": "sqlite:///x.db"})
        assert config.database_url == "sqlite:///x.db"

    def test_specific_database_variable_wins(self):
        config = load_config(environ={
            "POS_LEDGER_DATABASE_URL": "sqlite:///a.db",
            "DATABASE_URL": "sqlite:///b.db",
        })
        assert config.database_url == "sqlite:///a.db"

    def test_merge_replaces_lists(self):
        merged = merge({"a": {"b": [1, 2], "c": 1}}, {"a": {"b": [3]}})
        assert merged == {"a": {"b": [3], "c": 1}}


class TestMalformed:
    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="file not found"):
            load_config(str(tmp_path / "nope.yaml"), environ={})

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("posting: [unclosed")
        with pytest.raises(ConfigurationError, match="invalid YAML"):
            load_config(str(path), environ={})

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(str(path), environ={})

    def test_bad_decimal(self, tmp_path):
        path = _write(tmp_path, {"posting": {"balance_tolerance": "lots"}})
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path, environ={})
        assert exc_info.value.key == "posting.balance_tolerance"

    def test_non_positive_int(self, tmp_path):
        path = _write(tmp_path, {"retry": {"attempts": 0}})
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path, environ={})
        assert exc_info.value.key == "retry.attempts"

    def test_missing_well_known_role(self, tmp_path):
        path = _write(tmp_path, {"well_known_accounts": {"cash": None}})
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path, environ={})
        assert exc_info.value.key == "well_known_accounts.cash"

    def test_unknown_well_known_role(self, tmp_path):
        path = _write(tmp_path, {"well_known_accounts": {"petty_cash": "1065"}})
        with pytest.raises(ConfigurationError, match="unknown roles"):
            load_config(path, environ={})

    def test_account_with_undeclared_sub_type(self, tmp_path):
        path = _write(tmp_path, {
            "chart": {
                "accounts": [
                    {"code": "9999", "name": "Odd", "type": "Assets", "sub_type": "Crypto"},
                ],
            },
        })
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path, environ={})
        assert exc_info.value.key == "chart.accounts[0]"

    def test_duplicate_category(self, tmp_path):
        path = _write(tmp_path, {
            "chart": {
                "types": [
                    {"name": "Assets", "category": "asset", "sub_types": ["A"]},
                    {"name": "More Assets", "category": "asset", "sub_types": ["B"]},
                ],
                "accounts": [],
            },
        })
        with pytest.raises(ConfigurationError, match="only once"):
            load_config(path, environ={})
