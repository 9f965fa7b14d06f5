"""Tests for the rebound CLI."""

from click.testing import CliRunner

from rebound.cli import main


def test_classify_auth_error():
    result = CliRunner().invoke(main, ["classify", "401 Unauthorized"])
    assert result.exit_code == 0
    assert "auth" in result.output
    assert "redirect" in result.output


def test_classify_uses_type_name():
    result = CliRunner().invoke(main, ["classify", "boom", "--type", "ConnectionError"])
    assert result.exit_code == 0
    assert "network" in result.output


def test_backoff_schedule():
    result = CliRunner().invoke(
        main,
        ["backoff", "--attempts", "4", "--base-delay", "1", "--multiplier", "2", "--max-delay", "30"],
    )
    assert result.exit_code == 0
    for delay in ("1.00", "2.00", "4.00", "8.00"):
        assert delay in result.output


def test_config_from_file(tmp_path):
    path = tmp_path / "custom.yaml"
    path.write_text("optimistic:\n  max_history_size: 12\n")

    result = CliRunner().invoke(main, ["config", "--config", str(path)])
    assert result.exit_code == 0
    assert "max_history_size" in result.output
    assert "12" in result.output
