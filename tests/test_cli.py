import io

import pytest
from rich.console import Console
from typer.testing import CliRunner

from catalog_sync import __version__
from catalog_sync.cli import app as cli_app
from catalog_sync.cli.progress_manager import ProgressManager
from catalog_sync.models.stats import SyncProgress

from conftest import FakeCatalogSource

runner = CliRunner()


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(cli_app, "CONFIG_DIR", tmp_path)
    monkeypatch.setattr(cli_app, "CONFIG_FILE", tmp_path / "config.ini")
    return tmp_path


def test_version():
    result = runner.invoke(cli_app.app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_init_then_validate(config_dir):
    result = runner.invoke(
        cli_app.app,
        [
            "init",
            "https://docs.google.com/spreadsheets/d/abc123/edit",
            "--items-gid",
            "11",
            "--db-gid",
            "22",
        ],
    )
    assert result.exit_code == 0, result.output
    assert "sheet_id = abc123" in (config_dir / "config.ini").read_text()

    result = runner.invoke(cli_app.app, ["validate"])
    assert result.exit_code == 0, result.output
    assert "abc123" in result.output


def test_init_rejects_bad_gid(config_dir):
    result = runner.invoke(
        cli_app.app, ["init", "abc123", "--items-gid", "tab", "--db-gid", "22"]
    )
    assert result.exit_code == 1
    assert not (config_dir / "config.ini").exists()


def test_validate_without_config(config_dir):
    result = runner.invoke(cli_app.app, ["validate"])
    assert result.exit_code == 1


def test_status_with_empty_store(config_dir):
    runner.invoke(
        cli_app.app, ["init", "abc123", "--items-gid", "11", "--db-gid", "22"]
    )
    result = runner.invoke(cli_app.app, ["status"])
    assert result.exit_code == 0, result.output
    assert "not cached" in result.output
    assert (config_dir / "catalog.sqlite").exists()


def test_clear_cache_forced(config_dir):
    runner.invoke(
        cli_app.app, ["init", "abc123", "--items-gid", "11", "--db-gid", "22"]
    )
    result = runner.invoke(cli_app.app, ["clear-cache", "--media", "-f"])
    assert result.exit_code == 0, result.output
    assert "Cleared" in result.output


class FakeSheetsClient(FakeCatalogSource):
    def __init__(self, timeout=None):
        super().__init__(version="7", rows=[["sv.Brand.A"], ["sv.Brand.B"]])

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


def test_refresh_without_store_loads_from_sheet(config_dir, monkeypatch):
    runner.invoke(
        cli_app.app, ["init", "abc123", "--items-gid", "11", "--db-gid", "22"]
    )
    (config_dir / "catalog.sqlite").mkdir()
    monkeypatch.setattr(cli_app, "SheetsClient", FakeSheetsClient)

    result = runner.invoke(cli_app.app, ["refresh"])

    assert result.exit_code == 0, result.output
    assert "Catalog v7 loaded from sheet (2 products)" in result.output


@pytest.mark.asyncio
async def test_progress_manager_tracks_events():
    console = Console(file=io.StringIO(), force_terminal=False)
    async with ProgressManager(console) as manager:
        manager.on_progress(SyncProgress(1, 3, "Syncing media 1/3"))
        manager.on_progress(SyncProgress(3, 3, "Done"))

    task = manager.progress.tasks[0]
    assert task.completed == 3
    assert task.total == 3
    assert task.description == "Done"


@pytest.mark.asyncio
async def test_progress_manager_empty_run_completes():
    console = Console(file=io.StringIO(), force_terminal=False)
    async with ProgressManager(console) as manager:
        manager.on_progress(SyncProgress(0, 0, "Nothing to sync"))

    assert manager.progress.tasks[0].finished
