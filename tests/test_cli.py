"""Tests for the pos-ledger command line (pos_ledger/cli.py)."""

import json
from decimal import Decimal

import pytest

from pos_ledger.cli import main
from pos_ledger.db.engine import reset_engine


@pytest.fixture
def db_url(tmp_path):
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    reset_engine()
    yield url
    reset_engine()


def _cli(db_url, *argv):
    return main(["--database-url", db_url, *argv])


def test_init_db(db_url, capsys):
    assert _cli(db_url, "init-db") == 0
    assert "9 well-known accounts verified" in capsys.readouterr().out


def test_seed_twice(db_url, capsys):
    assert _cli(db_url, "init-db") == 0
    assert _cli(db_url, "seed") == 0
    assert "already present" in capsys.readouterr().out


def test_trial_balance_text(db_url, capsys):
    _cli(db_url, "init-db")
    capsys.readouterr()

    assert _cli(db_url, "trial-balance") == 0
    out = capsys.readouterr().out
    assert "TRIAL BALANCE" in out
    assert "[OK] debits equal credits" in out
    assert "1060" in out


def test_trial_balance_json_after_sale(db_url, capsys):
    from pos_ledger.config import load_config
    from pos_ledger.services.container import Ledger

    _cli(db_url, "init-db")
    ledger = Ledger(load_config(environ={"POS_LEDGER_DATABASE_URL": db_url}))
    ledger.run(lambda s: s.adapters.post_sale("ord-1", Decimal("100"), cost_estimate=Decimal("60")))
    capsys.readouterr()

    assert _cli(db_url, "trial-balance", "--json") == 0
    report = json.loads(capsys.readouterr().out)
    assert Decimal(report["total_debit"]) == Decimal("160")
    assert report["is_balanced"] is True


def test_income_statement(db_url, capsys):
    _cli(db_url, "init-db")
    capsys.readouterr()
    assert _cli(db_url, "income-statement", "--start", "2025-01-01", "--end", "2025-12-31") == 0
    out = capsys.readouterr().out
    assert "INCOME STATEMENT" in out
    assert "2025-01-01 to 2025-12-31" in out


def test_income_statement_bad_period(db_url, capsys):
    _cli(db_url, "init-db")
    assert _cli(db_url, "income-statement", "--start", "2025-02-01", "--end", "2025-01-01") == 2
    assert "VALIDATION_ERROR" in capsys.readouterr().err


def test_balance_sheet_json(db_url, capsys):
    _cli(db_url, "init-db")
    capsys.readouterr()
    assert _cli(db_url, "balance-sheet", "--as-of", "2025-06-30", "--json") == 0
    report = json.loads(capsys.readouterr().out)
    assert report["metadata"]["as_of_date"] == "2025-06-30"


def test_reconcile_clean(db_url, capsys):
    _cli(db_url, "init-db")
    capsys.readouterr()
    assert _cli(db_url, "reconcile") == 0
    assert "attempted=0" in capsys.readouterr().out


def test_bad_date_is_usage_error(db_url):
    with pytest.raises(SystemExit) as exc_info:
        _cli(db_url, "trial-balance", "--as-of", "yesterday")
    assert exc_info.value.code == 2


def test_missing_config_file(db_url, tmp_path, capsys):
    assert main(["--config", str(tmp_path / "missing.yaml"), "init-db"]) == 2
    assert "file not found" in capsys.readouterr().err
