import json

import yaml
from click.testing import CliRunner

from finance_tracker.auth import verify_token
from finance_tracker.cli import main as cli


def write_manual(path):
    path.write_text(
        """\
transactions:
  - type: income
    category: Salary
    amount: 1000
    description: Pay
    date: 2025-05-01
  - type: expense
    category: Food
    amount: 200
    description: Groceries
    date: 2025-05-02
    tags: [weekly]
  - type: expense
    category: Food
    amount: 50
    description: Cafe
    date: 2025-05-03
budgets:
  - name: Food
    category: Food
    amount: 400
    period: monthly
savingsGoals:
  - name: Holiday
    targetAmount: 500
    targetDate: 2026-07-01
"""
    )


def _base_args(tmp_path):
    return ["--config", str(tmp_path / "config.yaml"), "--db", str(tmp_path / "finance.db")]


def test_cli_import_and_stats(tmp_path):
    manual = tmp_path / "manual.yaml"
    write_manual(manual)
    runner = CliRunner()

    res = runner.invoke(cli, _base_args(tmp_path) + ["import", "alice", str(manual)])
    assert res.exit_code == 0, res.output
    assert "Imported 3 transaction(s), 1 budget(s) and 1 savings goal(s)" in res.output

    res = runner.invoke(cli, _base_args(tmp_path) + ["stats", "alice"])
    assert res.exit_code == 0, res.output
    payload = json.loads(res.output)
    assert payload["transactions"]["netAmount"] == 750
    assert payload["transactions"]["categoryBreakdown"]["Food"] == {"income": 0, "expenses": 250}
    assert payload["budgets"]["totalBudgetAmount"] == 400
    assert payload["savingsGoals"]["totalGoals"] == 1

    res = runner.invoke(
        cli, _base_args(tmp_path) + ["stats", "alice", "--start-date", "2025-05-02", "--end-date", "2025-05-02"]
    )
    assert json.loads(res.output)["transactions"]["transactionCount"] == 1


def test_cli_import_rejects_bad_entries(tmp_path):
    manual = tmp_path / "manual.yaml"
    manual.write_text("- type: expense\n  category: Food\n  description: No amount\n")
    runner = CliRunner()
    res = runner.invoke(cli, _base_args(tmp_path) + ["import", "alice", str(manual)])
    assert res.exit_code != 0
    assert "amount is required" in res.output

    res = runner.invoke(cli, _base_args(tmp_path) + ["stats", "alice"])
    assert json.loads(res.output)["transactions"]["transactionCount"] == 0


def test_cli_token_uses_configured_secret(tmp_path):
    config = tmp_path / "config.yaml"
    config.write_text("jwt_secret: from-config\n")
    runner = CliRunner()
    res = runner.invoke(cli, ["--config", str(config), "token", "alice"])
    assert res.exit_code == 0, res.output
    assert verify_token(res.output.strip(), "from-config") == "alice"


def test_cli_serve_refuses_default_secret(tmp_path, monkeypatch):
    monkeypatch.delenv("FINANCE_TRACKER_JWT_SECRET", raising=False)
    started = []
    monkeypatch.setattr("finance_tracker.cli.create_server", lambda *args: started.append(args))
    runner = CliRunner()

    res = runner.invoke(cli, _base_args(tmp_path) + ["serve"])
    assert res.exit_code != 0
    assert "jwt_secret" in res.output
    assert started == []

    config = tmp_path / "config.yaml"
    config.write_text("jwt_secret: ''\n")
    res = runner.invoke(cli, _base_args(tmp_path) + ["serve"])
    assert res.exit_code != 0
    assert started == []


def test_cli_init_writes_fresh_secret(tmp_path, monkeypatch):
    monkeypatch.delenv("FINANCE_TRACKER_JWT_SECRET", raising=False)
    runner = CliRunner()
    res = runner.invoke(cli, _base_args(tmp_path) + ["init"])
    assert res.exit_code == 0, res.output

    cfg = yaml.safe_load((tmp_path / "config.yaml").read_text())
    assert cfg["jwt_secret"] not in ("", "change-me")
    assert cfg["db_path"] == str(tmp_path / "finance.db")

    res = runner.invoke(cli, _base_args(tmp_path) + ["init"])
    assert res.exit_code != 0
    assert "already exists" in res.output

    res = runner.invoke(cli, _base_args(tmp_path) + ["token", "alice"])
    assert verify_token(res.output.strip(), cfg["jwt_secret"]) == "alice"


def test_cli_reports_bad_env_integer(tmp_path, monkeypatch):
    monkeypatch.setenv("FINANCE_TRACKER_PORT", "eighty")
    res = CliRunner().invoke(cli, _base_args(tmp_path) + ["stats", "alice"])
    assert res.exit_code != 0
    assert "FINANCE_TRACKER_PORT must be an integer" in res.output
    assert not isinstance(res.exception, ValueError)
