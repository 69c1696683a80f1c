"""Tests for the CLI interface."""

import os
import tempfile
from pathlib import Path

import pytest
from typer.testing import CliRunner

from circdesk.catalog import CatalogManager, ItemCreate
from circdesk.cli import app
from circdesk.config import reset_config
from circdesk.db.sqlite import get_db, reset_db
from circdesk.patrons import PatronCreate, PatronManager


@pytest.fixture(autouse=True)
def setup_test_db():
    """Set up a test database for each test."""
    reset_db()
    reset_config()

    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    os.environ["CIRCDESK_DB_PATH"] = db_path

    yield db_path

    # Cleanup
    reset_db()
    reset_config()
    if "CIRCDESK_DB_PATH" in os.environ:
        del os.environ["CIRCDESK_DB_PATH"]
    if Path(db_path).exists():
        Path(db_path).unlink()


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def desk(setup_test_db):
    """One item and two patrons in the CLI's database."""
    db = get_db(setup_test_db)
    item = CatalogManager(db).add_item(ItemCreate(title="Solaris", author="Stanislaw Lem"))[0]
    patrons = PatronManager(db)
    alice = patrons.register(PatronCreate(name="Alice"))
    bob = patrons.register(PatronCreate(name="Bob"))
    return {"item": item.id, "alice": alice.id, "bob": bob.id}


class TestCLIBasics:
    """Tests for basic CLI functionality."""

    def test_help(self, runner: CliRunner):
        """Test that help command works."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "circulation" in result.stdout

    def test_version(self, runner: CliRunner):
        """Test version command."""
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.stdout


class TestCatalogCommands:
    """Tests for catalog commands."""

    def test_add_and_list(self, runner: CliRunner):
        result = runner.invoke(app, ["catalog", "add", "Kindred", "Octavia Butler", "--copies", "2"])
        assert result.exit_code == 0
        assert "2 copies" in result.stdout

        result = runner.invoke(app, ["catalog", "list"])
        assert result.exit_code == 0
        assert "Kindred" in result.stdout

    def test_add_invalid_isbn(self, runner: CliRunner):
        result = runner.invoke(app, ["catalog", "add", "Kindred", "Octavia Butler", "--isbn", "123"])
        assert result.exit_code == 1

    def test_search_no_results(self, runner: CliRunner):
        result = runner.invoke(app, ["catalog", "search", "nothing"])
        assert result.exit_code == 0
        assert "No titles" in result.stdout


class TestPatronCommands:
    """Tests for patron commands."""

    def test_add_and_show(self, runner: CliRunner):
        result = runner.invoke(app, ["patron", "add", "Dana", "--class", "faculty"])
        assert result.exit_code == 0

        result = runner.invoke(app, ["patron", "show", "Dana"])
        assert result.exit_code == 0
        assert "0/10" in result.stdout

    def test_show_unknown(self, runner: CliRunner):
        result = runner.invoke(app, ["patron", "show", "Nobody"])
        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_add_empty_name(self, runner: CliRunner):
        """Test an invalid registration exits with an error."""
        result = runner.invoke(app, ["patron", "add", ""])
        assert result.exit_code == 1
        assert "Error" in result.stdout

    def test_pay(self, runner: CliRunner, desk, setup_test_db):
        PatronManager(get_db(setup_test_db)).charge(desk["alice"], 150)
        result = runner.invoke(app, ["patron", "pay", "Alice", "--cents", "100"])
        assert result.exit_code == 0
        assert "$1.00" in result.stdout


class TestLoanCommands:
    """Tests for the circulation workflow."""

    def test_borrow_and_return(self, runner: CliRunner, desk):
        result = runner.invoke(app, ["loan", "borrow", "Alice", desk["item"]])
        assert result.exit_code == 0
        assert "Borrowed" in result.stdout

        result = runner.invoke(app, ["loan", "list", "--patron", "Alice"])
        assert result.exit_code == 0
        assert "Solaris" in result.stdout

        result = runner.invoke(app, ["loan", "return", "Alice", desk["item"]])
        assert result.exit_code == 0
        assert "on time" in result.stdout

    def test_borrow_unavailable(self, runner: CliRunner, desk):
        """Test a rejected request exits with an error."""
        runner.invoke(app, ["loan", "borrow", "Alice", desk["item"]])
        result = runner.invoke(app, ["loan", "borrow", "Bob", desk["item"]])
        assert result.exit_code == 1
        assert "Error" in result.stdout

    def test_reserve_and_notify(self, runner: CliRunner, desk):
        """Test the waiting patron sees a notice after the return."""
        runner.invoke(app, ["loan", "borrow", "Alice", desk["item"]])
        result = runner.invoke(app, ["loan", "reserve", "Bob", desk["item"]])
        assert result.exit_code == 0
        assert "Position in queue: 1" in result.stdout

        runner.invoke(app, ["loan", "return", "Alice", desk["item"]])
        result = runner.invoke(app, ["notify", "list", "Bob"])
        assert result.exit_code == 0
        assert "reservation_ready" in result.stdout

    def test_renew_blocked(self, runner: CliRunner, desk, setup_test_db):
        runner.invoke(app, ["loan", "borrow", "Alice", desk["item"]])
        runner.invoke(app, ["loan", "reserve", "Bob", desk["item"]])
        loan_id = PatronManager(get_db(setup_test_db)).active_loan_ids(desk["alice"])[0]

        result = runner.invoke(app, ["loan", "renew", loan_id])
        assert result.exit_code == 1

    def test_overdue_none(self, runner: CliRunner, desk):
        result = runner.invoke(app, ["loan", "overdue"])
        assert result.exit_code == 0
        assert "No overdue loans" in result.stdout


class TestItemCommands:
    """Tests for item inspection and overrides."""

    def test_withdraw_and_restore(self, runner: CliRunner, desk):
        result = runner.invoke(app, ["item", "withdraw", desk["item"], "lost"])
        assert result.exit_code == 0
        assert "lost" in result.stdout

        result = runner.invoke(app, ["item", "restore", desk["item"]])
        assert result.exit_code == 0
        assert "available" in result.stdout

    def test_show(self, runner: CliRunner, desk):
        result = runner.invoke(app, ["item", "show", desk["item"]])
        assert result.exit_code == 0
        assert "Solaris" in result.stdout

    def test_remove(self, runner: CliRunner, desk):
        result = runner.invoke(app, ["item", "remove", desk["item"]])
        assert result.exit_code == 0

        result = runner.invoke(app, ["item", "show", desk["item"]])
        assert result.exit_code == 1

    def test_remove_on_loan(self, runner: CliRunner, desk):
        """Test a copy on loan cannot be removed."""
        runner.invoke(app, ["loan", "borrow", "Alice", desk["item"]])
        result = runner.invoke(app, ["item", "remove", desk["item"]])
        assert result.exit_code == 1
        assert "Error" in result.stdout


class TestReportCommands:
    """Tests for sweep and stats."""

    def test_sweep(self, runner: CliRunner, desk):
        runner.invoke(app, ["loan", "borrow", "Alice", desk["item"]])
        result = runner.invoke(app, ["sweep", "--as-of", "2099-01-01"])
        assert result.exit_code == 0
        assert "1 overdue" in result.stdout

    def test_bad_date(self, runner: CliRunner):
        """Test a malformed --as-of is reported, not raised."""
        for command in (["sweep"], ["loan", "overdue"]):
            result = runner.invoke(app, [*command, "--as-of", "garbage"])
            assert result.exit_code == 1
            assert "Invalid date" in result.stdout

    def test_stats(self, runner: CliRunner, desk):
        runner.invoke(app, ["loan", "borrow", "Alice", desk["item"]])
        result = runner.invoke(app, ["stats"])
        assert result.exit_code == 0
        assert "Open loans: 1" in result.stdout
