"""
Tests for ruletable/main.py CLI commands.
"""

import pytest
from unittest.mock import AsyncMock, patch
from argparse import Namespace

from ruletable.errors import StoreUnavailable
from ruletable.models.rule import RemovalResult
from ruletable.main import (
    cmd_create_table,
    cmd_export,
    cmd_import,
    cmd_remove_filtered,
    main,
)


POLICY = """\
p, alice, data1, read
p, bob, data2, write
p, data2_admin, data2, read
p, data2_admin, data2, write
g, alice, data2_admin
"""


@pytest.fixture
def config_path(tmp_path):
    """Config file pointing at a SQLite database in tmp_path."""
    path = tmp_path / "config.yaml"
    path.write_text(
        f"""
store:
  backend: "sql"

database:
  url: "sqlite+aiosqlite:///{tmp_path / 'rules.db'}"

logging:
  level: "WARNING"
""",
        encoding="utf-8",
    )
    return str(path)


@pytest.fixture
def policy_path(tmp_path):
    path = tmp_path / "policy.csv"
    path.write_text(POLICY, encoding="utf-8")
    return str(path)


class TestCmdCreateTable:
    """Tests for create-table command."""

    def test_create_then_exists(self, config_path, capsys):
        """Test that a second create reports the existing table."""
        args = Namespace(config=config_path)

        assert cmd_create_table(args) == 0
        assert "Created table" in capsys.readouterr().out

        assert cmd_create_table(args) == 0
        assert "already exists" in capsys.readouterr().out

    def test_missing_config(self, tmp_path, capsys):
        """Test error when the config file doesn't exist."""
        args = Namespace(config=str(tmp_path / "missing.yaml"))

        assert cmd_create_table(args) == 1
        assert "Config file not found" in capsys.readouterr().out

    def test_store_error(self, config_path, capsys):
        """Test that store errors are reported, not raised."""
        with patch("ruletable.main.create_table") as mock_create:
            mock_create.side_effect = StoreUnavailable("create_table", message="endpoint down")

            assert cmd_create_table(Namespace(config=config_path)) == 1

        assert "endpoint down" in capsys.readouterr().out


class TestCmdImportExport:
    """Tests for import and export commands."""

    def test_import_then_export(self, config_path, policy_path, tmp_path, capsys):
        """Test that an imported file comes back out of export."""
        cmd_create_table(Namespace(config=config_path))

        result = cmd_import(Namespace(config=config_path, file=policy_path, dry_run=False))
        assert result == 0
        assert "5 added, 0 removed, 0 unchanged" in capsys.readouterr().out

        output = tmp_path / "out.csv"
        assert cmd_export(Namespace(config=config_path, output=str(output))) == 0
        assert sorted(output.read_text(encoding="utf-8").splitlines()) == sorted(POLICY.splitlines())

    def test_dry_run_writes_nothing(self, config_path, policy_path, capsys):
        """Test that --dry-run only prints the diff."""
        cmd_create_table(Namespace(config=config_path))

        result = cmd_import(Namespace(config=config_path, file=policy_path, dry_run=True))
        assert result == 0
        assert "(dry run)" in capsys.readouterr().out

        assert cmd_export(Namespace(config=config_path, output=None)) == 0
        assert capsys.readouterr().out == ""

    def test_import_missing_file(self, config_path, tmp_path, capsys):
        """Test error when the policy file doesn't exist."""
        args = Namespace(config=config_path, file=str(tmp_path / "nope.csv"), dry_run=False)

        assert cmd_import(args) == 1
        assert "Policy file not found" in capsys.readouterr().out

    def test_import_invalid_file(self, config_path, tmp_path, capsys):
        """Test that a malformed policy line is reported."""
        cmd_create_table(Namespace(config=config_path))
        bad = tmp_path / "bad.csv"
        bad.write_text("p, alice, data1, read\n, orphan\n", encoding="utf-8")

        assert cmd_import(Namespace(config=config_path, file=str(bad), dry_run=False)) == 1
        assert "line 2" in capsys.readouterr().out


class TestCmdRemoveFiltered:
    """Tests for remove-filtered command."""

    def test_remove_by_subject(self, config_path, policy_path, capsys):
        """Test removing every rule of one role."""
        cmd_create_table(Namespace(config=config_path))
        cmd_import(Namespace(config=config_path, file=policy_path, dry_run=False))
        capsys.readouterr()

        args = Namespace(config=config_path, ptype="p", field_index=0, values=["data2_admin"])
        assert cmd_remove_filtered(args) == 0
        assert "Removed 2 rule(s)" in capsys.readouterr().out

    def test_reports_kept_records(self, config_path, capsys):
        """Test that records left in place are reported."""
        with patch("ruletable.main.remove_filtered", new_callable=AsyncMock) as mock_remove:
            mock_remove.return_value = RemovalResult(removed=2, skipped=1)

            args = Namespace(config=config_path, ptype="p", field_index=0, values=["alice"])
            assert cmd_remove_filtered(args) == 0

        out = capsys.readouterr().out
        assert "Removed 2 rule(s)" in out
        assert "Kept 1 record(s)" in out

    def test_negative_index(self, config_path, capsys):
        """Test that a negative field index is an error."""
        cmd_create_table(Namespace(config=config_path))

        args = Namespace(config=config_path, ptype="p", field_index=-1, values=["x"])
        assert cmd_remove_filtered(args) == 1
        assert "field_index" in capsys.readouterr().out


class TestMainCLI:
    """Tests for main CLI argument parsing."""

    def test_no_command_prints_help(self, capsys):
        """Test that no command shows usage."""
        with patch("sys.argv", ["ruletable"]):
            result = main()

        assert result == 1
        assert "usage" in capsys.readouterr().out

    def test_create_table_command(self):
        """Test dispatch of create-table."""
        with patch("sys.argv", ["ruletable", "create-table", "-c", "test.yaml"]):
            with patch("ruletable.main.cmd_create_table") as mock_cmd:
                mock_cmd.return_value = 0
                result = main()

                assert result == 0
                args = mock_cmd.call_args[0][0]
                assert args.config == "test.yaml"

    def test_export_command(self):
        """Test dispatch of export with an output file."""
        with patch("sys.argv", ["ruletable", "export", "-o", "out.csv"]):
            with patch("ruletable.main.cmd_export") as mock_cmd:
                mock_cmd.return_value = 0
                main()

                args = mock_cmd.call_args[0][0]
                assert args.output == "out.csv"
                assert args.config == "config.yaml"

    def test_import_command(self):
        """Test dispatch of import with --dry-run."""
        with patch("sys.argv", ["ruletable", "import", "policy.csv", "--dry-run"]):
            with patch("ruletable.main.cmd_import") as mock_cmd:
                mock_cmd.return_value = 0
                main()

                args = mock_cmd.call_args[0][0]
                assert args.file == "policy.csv"
                assert args.dry_run is True

    def test_remove_filtered_command(self):
        """Test dispatch of remove-filtered with wildcard values."""
        with patch("sys.argv", ["ruletable", "remove-filtered", "g", "1", "", "domain1"]):
            with patch("ruletable.main.cmd_remove_filtered") as mock_cmd:
                mock_cmd.return_value = 0
                main()

                args = mock_cmd.call_args[0][0]
                assert args.ptype == "g"
                assert args.field_index == 1
                assert args.values == ["", "domain1"]
