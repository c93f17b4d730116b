"""Unit tests for the pluto console commands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from pluto_orm.adapters.inbound import cli
from pluto_orm.adapters.inbound.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def keep_logging_config(monkeypatch: pytest.MonkeyPatch) -> None:
    """Leave structlog unconfigured so no logger binds the runner's streams."""
    monkeypatch.setattr(cli, "setup_logging", lambda *args, **kwargs: None)


@pytest.mark.unit
class TestMigrateCommand:
    """Tests for `pluto migrate`."""

    def test_migrate_all(self) -> None:
        result = runner.invoke(app, ["migrate"])

        assert result.exit_code == 0
        assert "InitialModel" in result.output
        assert "AddCoversTable" in result.output
        assert "pending" not in result.output
        assert "Covers" in result.output

    def test_migrate_to_target(self) -> None:
        result = runner.invoke(app, ["migrate", "--target", "InitialModel"])

        assert result.exit_code == 0
        assert "pending" in result.output
        assert "Title" in result.output

    def test_migrate_down(self) -> None:
        result = runner.invoke(app, ["migrate", "--down", "-t", "InitialModel"])

        assert result.exit_code == 0
        assert "Reverted" in result.output
        assert "AddCoversTable" in result.output

    def test_unknown_target(self) -> None:
        result = runner.invoke(app, ["migrate", "--target", "Nope"])

        assert result.exit_code == 1


@pytest.mark.unit
class TestSeedCommand:
    """Tests for `pluto seed`."""

    def test_default_seed(self) -> None:
        result = runner.invoke(app, ["seed"])

        assert result.exit_code == 0
        assert "First run" in result.output
        assert "Second run" in result.output
        assert "Author 2" in result.output
        assert "Course 1" in result.output

    def test_seed_file(self, tmp_path: Path) -> None:
        path = tmp_path / "authors.json"
        path.write_text(json.dumps([{"name": "Dana Smith", "courses": []}]))

        result = runner.invoke(app, ["seed", "--file", str(path)])

        assert result.exit_code == 0
        assert "Dana Smith" in result.output

    def test_invalid_seed_file(self, tmp_path: Path) -> None:
        path = tmp_path / "authors.json"
        path.write_text("{not json")

        result = runner.invoke(app, ["seed", "-f", str(path)])

        assert result.exit_code == 1
        assert "Invalid seed file" in result.output

    def test_invalid_key(self) -> None:
        result = runner.invoke(app, ["seed", "--key", "email"])

        assert result.exit_code == 1


@pytest.mark.unit
class TestDemoCommands:
    """Tests for the query, loading and sql demos."""

    def test_queries(self) -> None:
        result = runner.invoke(app, ["queries"])

        assert result.exit_code == 0
        assert "Free courses" in result.output
        assert "BEGINNER" in result.output
        assert "Terminal operations" in result.output

    def test_loading(self) -> None:
        result = runner.invoke(app, ["loading"])

        assert result.exit_code == 0
        assert "Loading strategies" in result.output
        assert "Both strategies returned the same authors" in result.output
        assert "explicit" in result.output

    def test_sql(self) -> None:
        result = runner.invoke(app, ["sql"])

        assert result.exit_code == 0
        assert "Generated SQL" in result.output
        assert "translatable" in result.output

    def test_no_args_shows_help(self) -> None:
        result = runner.invoke(app, [])

        assert "migrate" in result.output
