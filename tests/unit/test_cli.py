"""
Unit tests for the command-line entry points.

Database-backed runs are covered by the e2e suite; here the import CLI runs
with --dry-run and the lookup CLI is only exercised up to its error paths.
"""

import pytest

from sales_index.cli import import_cli, lookup_cli


@pytest.mark.unit
class TestImportCLI:
    """Tests for the import CLI"""

    def test_dry_run_invoices(self, clean_env, invoice_files, capsys):
        header_path, line_path = invoice_files

        import_cli.main([
            "--dry-run", "invoices",
            "--headers", str(header_path),
            "--lines", str(line_path),
            "--with-index",
        ])

        out = capsys.readouterr().out
        assert '"headers"' in out
        assert '"entries_written"' in out

    def test_paths_from_environment(self, clean_env, invoice_files, capsys):
        header_path, line_path = invoice_files
        clean_env.setenv("CSV_HH_PATH", str(header_path))
        clean_env.setenv("CSV_HD_PATH", str(line_path))

        import_cli.main(["--dry-run", "index"])

        assert '"lines_used"' in capsys.readouterr().out

    def test_missing_path_exits_nonzero(self, clean_env):
        with pytest.raises(SystemExit) as exc_info:
            import_cli.main(["--dry-run", "invoices"])
        assert exc_info.value.code == 1

    def test_missing_file_exits_nonzero(self, clean_env, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            import_cli.main([
                "--dry-run", "invoices",
                "--headers", str(tmp_path / "a.csv"),
                "--lines", str(tmp_path / "b.csv"),
            ])
        assert exc_info.value.code == 1

    def test_database_run_requires_password(self, clean_env, invoice_files):
        header_path, line_path = invoice_files

        with pytest.raises(SystemExit) as exc_info:
            import_cli.main(["invoices", "--headers", str(header_path), "--lines", str(line_path)])
        assert exc_info.value.code == 1

    def test_no_command_prints_help(self, clean_env):
        with pytest.raises(SystemExit) as exc_info:
            import_cli.main([])
        assert exc_info.value.code == 1

    def test_dry_run_customers(self, clean_env, write_csv, capsys):
        customers = write_csv("customers.csv", ["CustomerNo", "CustomerName"], [["C1", "Acme"]])

        import_cli.main(["--dry-run", "customers", "--customers", str(customers)])

        assert '"written": 1' in capsys.readouterr().out


@pytest.mark.unit
class TestLookupCLI:
    """Tests for the lookup CLI"""

    def test_requires_item(self, clean_env):
        with pytest.raises(SystemExit) as exc_info:
            lookup_cli.main([])
        assert exc_info.value.code == 2

    def test_rejects_unknown_tier(self, clean_env):
        with pytest.raises(SystemExit) as exc_info:
            lookup_cli.main(["--item", "K233", "--tier", "E"])
        assert exc_info.value.code == 2

    def test_missing_credentials(self, clean_env):
        with pytest.raises(SystemExit) as exc_info:
            lookup_cli.main(["--item", "K233", "--salesperson", "7"])
        assert exc_info.value.code == 1
