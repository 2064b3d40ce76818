from pathlib import Path

import pandas as pd
import pytest

from smb_pulse import __version__
from smb_pulse.cli import main

OVERDUE_ID = "invoices_overdue:2025-01-01"


@pytest.fixture
def config_path(tmp_path) -> Path:
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    (data_dir / "transactions.csv").write_text(
        "date,type,amount,category\n2025-06-01,income,1000,Sales\n",
        encoding="utf-8",
    )
    (data_dir / "invoices.csv").write_text(
        "client,amount,status,due\nAcme,250,unpaid,2025-01-01\n",
        encoding="utf-8",
    )

    path = tmp_path / "smb_pulse_config.toml"
    path.write_text(
        """
[business]
tax_rate = 15
state_tax_rate = 5

[data]
transactions = "data/transactions.csv"
invoices = "data/invoices.csv"

[storage]
path = "data/db/test.sqlite"
""",
        encoding="utf-8",
    )
    return path


def run_cli(capsys, config_path: Path, *args: str) -> str:
    main(["--config", str(config_path), "--today", "2025-06-15", *args])
    return capsys.readouterr().out


def test_count_dismiss_and_reset(config_path, capsys):
    assert run_cli(capsys, config_path, "count").strip() == "2"

    out = run_cli(capsys, config_path, "dismiss", OVERDUE_ID)
    assert "Dismissed 1 insight(s)." in out
    assert run_cli(capsys, config_path, "count").strip() == "1"

    run_cli(capsys, config_path, "reset")
    assert run_cli(capsys, config_path, "count").strip() == "2"


def test_restore_shows_insight_again(config_path, capsys):
    run_cli(capsys, config_path, "dismiss", OVERDUE_ID)
    out = run_cli(capsys, config_path, "restore", OVERDUE_ID)

    assert f"Restored insight {OVERDUE_ID}." in out
    assert run_cli(capsys, config_path, "count").strip() == "2"


def test_list_prints_table(config_path, capsys):
    out = run_cli(capsys, config_path, "list")

    assert "=== Insights ===" in out
    assert OVERDUE_ID in out
    assert "tax_underfunded:2025-06" in out


def test_list_hides_dismissed_unless_all(config_path, capsys):
    run_cli(capsys, config_path, "dismiss", OVERDUE_ID)

    assert OVERDUE_ID not in run_cli(capsys, config_path, "list")
    assert OVERDUE_ID in run_cli(capsys, config_path, "list", "--all")


def test_list_with_no_matches(config_path, capsys):
    out = run_cli(capsys, config_path, "list", "--category", "spending")

    assert "No insights to display." in out


def test_list_csv_mode_writes_file(config_path, capsys, tmp_path):
    output_dir = tmp_path / "out"

    out = run_cli(
        capsys,
        config_path,
        "list",
        "--display-mode",
        "csv",
        "--output",
        str(output_dir),
    )

    files = list(output_dir.glob("insights_*.csv"))
    assert len(files) == 1
    assert "Wrote" in out
    assert "=== Insights ===" not in out

    df = pd.read_csv(files[0])
    assert list(df["id"]) == [OVERDUE_ID, "tax_underfunded:2025-06"]


def test_stats(config_path, capsys):
    run_cli(capsys, config_path, "dismiss", OVERDUE_ID)
    out = run_cli(capsys, config_path, "stats")

    assert "metric" in out
    assert "dismissed" in out
    assert "actionable" in out


def test_version_flag(capsys):
    main(["--version"])

    assert capsys.readouterr().out.strip() == f"smb_pulse version {__version__}"


def test_missing_command_exits(capsys):
    with pytest.raises(SystemExit):
        main([])


def test_invalid_today_exits(config_path):
    with pytest.raises(SystemExit, match="Invalid date format"):
        main(["--config", str(config_path), "--today", "15/06/2025", "count"])


def test_missing_config_exits(tmp_path):
    with pytest.raises(SystemExit, match="Configuration error"):
        main(["--config", str(tmp_path / "missing.toml"), "count"])


def test_missing_data_file_exits(config_path):
    (config_path.parent / "data" / "invoices.csv").unlink()

    with pytest.raises(SystemExit, match="invoices file not found"):
        main(["--config", str(config_path), "count"])
