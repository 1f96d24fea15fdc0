"""Tests for the command-line front end (scripts/cli)."""

import pytest

from scripts.cli import config as cli_config
from scripts.cli.main import main
from tool_config import CONFIG_ENV_VAR, DATABASE_URL_ENV_VAR


@pytest.fixture
def cli(tmp_path, monkeypatch, capsys):
    """Run CLI commands against a file-backed SQLite database."""
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.delenv(DATABASE_URL_ENV_VAR, raising=False)
    monkeypatch.setattr(cli_config, "LOG_DIR", tmp_path / "logs")
    monkeypatch.setattr(cli_config, "LOG_FILE", tmp_path / "logs" / "tooling_cli.log")
    url = f"sqlite:///{tmp_path / 'tooling.db'}"

    def _run(*args: str) -> tuple[int, str, str]:
        code = main(["--database-url", url, *args])
        captured = capsys.readouterr()
        return code, captured.out, captured.err

    code, _, err = _run("init-db")
    assert code == 0, err
    return _run


@pytest.fixture
def stocked(cli):
    assert cli("add-catalog-item", "EM-10", "End mill 10mm",
               "--estimated-life", "100", "--unit-cost", "50")[0] == 0
    assert cli("add-work-order", "WO-1", "--materials", "20")[0] == 0
    assert cli("create-tool", "EM-10", "--code", "T-1")[0] == 0
    assert cli("mount", "T-1", "CNC-01")[0] == 0
    return cli


def test_init_db_lists_tables(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(cli_config, "LOG_DIR", tmp_path / "logs")
    monkeypatch.setattr(cli_config, "LOG_FILE", tmp_path / "logs" / "tooling_cli.log")

    code = main(["--database-url", f"sqlite:///{tmp_path / 'x.db'}", "init-db"])

    out = capsys.readouterr().out
    assert code == 0
    assert "tool_instances" in out
    assert "tool_usage_records" in out
    assert (tmp_path / "logs" / "tooling_cli.log").exists()


def test_full_tool_life(stocked):
    code, out, _ = stocked("produce", "WO-1", "CNC-01", "10")
    assert code == 0
    assert "across 1 tool(s)" in out

    code, out, _ = stocked("work-order", "WO-1")
    assert code == 0
    assert "$5.00" in out
    assert "$25.00" in out

    code, out, _ = stocked("retire", "T-1", "broken")
    assert code == 0
    assert "Tool T-1 retired (broken); 1 adjustment(s)" in out

    code, out, _ = stocked("work-order", "WO-1")
    assert "$50.00" in out
    assert "$70.00" in out

    code, out, _ = stocked("show-tool", "T-1")
    assert code == 0
    assert "broken" in out
    assert "in_use->in_use" in out


def test_auto_code(cli):
    cli("add-catalog-item", "DR-6", "Drill 6mm", "--unit-cost", "20")

    code, out, _ = cli("create-tool", "DR-6")

    assert code == 0
    assert out.startswith("Tool DR-6-000001 created")


def test_use_with_final_state(stocked):
    code, out, _ = stocked("use", "WO-1", "T-1", "10", "--final-state", "sharpened")
    assert code == 0

    code, out, _ = stocked("machine-tools", "CNC-01")
    assert "No tools mounted on machine CNC-01" in out


def test_unmount_and_set_state(stocked):
    assert stocked("unmount", "T-1", "--state", "new")[0] == 0

    code, _, err = stocked("set-state", "T-1", "in_use")

    assert code == 1
    assert "TOOL_NOT_MOUNTED" in err


def test_unknown_tool(cli):
    code, _, err = cli("mount", "NOPE", "CNC-01")

    assert code == 1
    assert "TOOL_NOT_FOUND" in err


def test_unknown_work_order(stocked):
    code, _, err = stocked("produce", "WO-404", "CNC-01", "10")

    assert code == 1
    assert "WORK_ORDER_NOT_FOUND" in err


def test_invalid_quantity(stocked):
    code, _, err = stocked("use", "WO-1", "T-1", "abc")

    assert code == 1
    assert "INVALID_QUANTITY" in err


def test_retire_rejects_non_terminal_state(cli):
    with pytest.raises(SystemExit):
        cli("retire", "T-1", "sharpened")
