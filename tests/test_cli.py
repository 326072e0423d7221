"""Test the command line interface (offline flows)"""

import pytest
from click.testing import CliRunner

from kiosk_cache import __version__
from kiosk_cache.cli import cli
from kiosk_cache.core.database import LocalStore
from kiosk_cache.library.models import LocalTrackRecord


@pytest.fixture
def config_path(temp_dir, clean_env):
    """Config with local storage only and no remote credentials"""
    path = temp_dir / "config.yaml"
    path.write_text(f'storage:\n  data_dir: "{temp_dir / "data"}"\n', encoding="utf-8")
    return path


@pytest.fixture
def runner():
    return CliRunner()


def invoke(runner, config_path, *args):
    return runner.invoke(cli, ["--config", str(config_path), *args], obj={})


def seed_track(temp_dir, code: str, artist: str, title: str) -> None:
    """Index one track with its media file, before the CLI opens the store"""
    media_dir = temp_dir / "data" / "media"
    media_dir.mkdir(parents=True, exist_ok=True)
    path = media_dir / f"{code}.mp4"
    path.write_bytes(b"video")

    store = LocalStore(temp_dir / "data" / "db.sqlite")
    store.insert_track(LocalTrackRecord(
        id=f"id-{code}", code=code, artist=artist, title=title, local_path=str(path), size=5,
    ))
    store.close()


class TestGlobalOptions:
    """Test group-level behavior"""

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_missing_config(self, runner, temp_dir):
        result = invoke(runner, temp_dir / "missing.yaml", "status")
        assert result.exit_code == 1
        assert "Configuration error" in result.output


class TestActivationCommands:
    """Test activation commands without a remote service"""

    def test_status_not_activated(self, runner, config_path):
        result = invoke(runner, config_path, "status")
        assert result.exit_code == 0
        assert "not activated" in result.output
        assert "offline" in result.output

    def test_activate_without_remote(self, runner, config_path):
        result = invoke(runner, config_path, "activate", "ABCD-1234")
        assert result.exit_code == 4
        assert "Activation failed" in result.output

    def test_deactivate(self, runner, config_path):
        result = invoke(runner, config_path, "deactivate")
        assert result.exit_code == 0
        assert "Local activation removed" in result.output


class TestSyncCommands:
    """Test sync commands without a remote service"""

    def test_offline_status(self, runner, config_path, temp_dir):
        seed_track(temp_dir, "01009", "Queen", "Bohemian Rhapsody")

        result = invoke(runner, config_path, "offline-status")

        assert result.exit_code == 0
        assert "Catalog unreachable" in result.output
        assert "Offline:        1" in result.output

    def test_sync_requires_remote(self, runner, config_path):
        result = invoke(runner, config_path, "sync")
        assert result.exit_code == 3
        assert "Remote error" in result.output

    def test_sync_rejects_zero_batch(self, runner, config_path):
        result = invoke(runner, config_path, "sync", "--batch-size", "0")
        assert result.exit_code == 2

    def test_reindex_without_files(self, runner, config_path):
        result = invoke(runner, config_path, "reindex")
        assert result.exit_code == 0
        assert "Media files: 0" in result.output


class TestLibraryCommands:
    """Test library commands"""

    def test_search(self, runner, config_path, temp_dir):
        seed_track(temp_dir, "01009", "Queen", "Bohemian Rhapsody")
        seed_track(temp_dir, "02000", "Beatles", "Hey Jude")

        result = invoke(runner, config_path, "search", "queen")

        assert result.exit_code == 0
        assert "01009" in result.output
        assert "02000" not in result.output

    def test_search_no_results(self, runner, config_path):
        result = invoke(runner, config_path, "search", "zz")
        assert result.exit_code == 0
        assert "No tracks found" in result.output

    def test_lookup(self, runner, config_path, temp_dir):
        seed_track(temp_dir, "01009", "Queen", "Bohemian Rhapsody")

        assert "01009" in invoke(runner, config_path, "lookup", "1009").output
        assert invoke(runner, config_path, "lookup", "4242").exit_code == 4

    def test_random(self, runner, config_path, temp_dir):
        assert invoke(runner, config_path, "random").exit_code == 4

        seed_track(temp_dir, "01009", "Queen", "Bohemian Rhapsody")
        result = invoke(runner, config_path, "random")
        assert result.exit_code == 0
        assert "01009" in result.output

    def test_play_records_history(self, runner, config_path, temp_dir):
        seed_track(temp_dir, "01009", "Queen", "Bohemian Rhapsody")

        result = invoke(runner, config_path, "play", "1009")

        assert result.exit_code == 0
        assert "01009.mp4" in result.output

        store = LocalStore(temp_dir / "data" / "db.sqlite")
        assert [event.code for event in store.get_history()] == ["01009"]
        store.close()

    def test_play_missing(self, runner, config_path):
        result = invoke(runner, config_path, "play", "4242")
        assert result.exit_code == 4
        assert "Video not found for code 4242" in result.output

    def test_history(self, runner, config_path, temp_dir):
        seed_track(temp_dir, "01009", "Queen", "Bohemian Rhapsody")
        invoke(runner, config_path, "play", "01009")

        result = invoke(runner, config_path, "history", "--limit", "5")

        assert result.exit_code == 0
        assert "01009" in result.output
