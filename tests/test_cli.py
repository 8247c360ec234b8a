"""Tests for CLI commands.

These tests verify:
- Cache inspection commands (stats, status)
- Cache management commands (remove, sweep, clear)
- Error handling and user feedback
"""

import pytest
from click.testing import CliRunner

from snapcache.cli.main import cli

AVATAR = "https://cdn.example.com/avatar.png"


@pytest.fixture
def cli_args(cache_config):
    return [
        "--cache-dir",
        str(cache_config.cache_dir),
        "--storage-dir",
        str(cache_config.storage_dir),
    ]


@pytest.fixture
def populated(make_cache):
    """Cache one image using the shared test directories."""
    cache = make_cache()
    path = cache.resolve(AVATAR)
    return path


class TestStats:
    """Test stats command."""

    def test_stats_empty(self, cli_args):
        result = CliRunner().invoke(cli, [*cli_args, "stats"])

        assert result.exit_code == 0
        assert "Entries" in result.output
        assert "0 B" in result.output

    def test_stats_populated(self, cli_args, populated):
        result = CliRunner().invoke(cli, [*cli_args, "stats"])

        assert result.exit_code == 0
        assert "100 B" in result.output


class TestStatus:
    """Test status command."""

    def test_status_uncached(self, cli_args):
        result = CliRunner().invoke(cli, [*cli_args, "status", AVATAR])

        assert result.exit_code == 0
        assert "Not cached" in result.output

    def test_status_cached(self, cli_args, populated):
        result = CliRunner().invoke(cli, [*cli_args, "status", AVATAR])

        assert result.exit_code == 0
        assert "image/png" in result.output
        assert "100 B" in result.output


class TestFetch:
    """Test fetch command."""

    def test_fetch_missing_local_file_fails(self, cli_args):
        missing = "/nonexistent-snapcache-dir/photo.jpg"
        result = CliRunner().invoke(cli, [*cli_args, "fetch", missing])

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_fetch_cached_image(self, cli_args, populated):
        result = CliRunner().invoke(cli, [*cli_args, "fetch", AVATAR])

        assert result.exit_code == 0
        assert "✓" in result.output


class TestPreload:
    """Test preload command."""

    def test_preload_reports_failures(self, cli_args, populated):
        result = CliRunner().invoke(
            cli, [*cli_args, "preload", AVATAR, "/nonexistent-snapcache-dir/photo.jpg"]
        )

        assert result.exit_code == 1
        assert "1 of 2 images failed" in result.output

    def test_preload_requires_sources(self, cli_args):
        result = CliRunner().invoke(cli, [*cli_args, "preload"])

        assert result.exit_code != 0


class TestRemove:
    """Test remove command."""

    def test_remove_cached(self, cli_args, populated, make_cache):
        result = CliRunner().invoke(cli, [*cli_args, "remove", AVATAR])

        assert result.exit_code == 0
        assert "Removed" in result.output
        assert make_cache().is_cached(AVATAR) is False

    def test_remove_uncached(self, cli_args):
        result = CliRunner().invoke(cli, [*cli_args, "remove", AVATAR])

        assert result.exit_code == 0
        assert "Not cached" in result.output


class TestSweep:
    """Test sweep command."""

    def test_sweep(self, cli_args, populated):
        result = CliRunner().invoke(cli, [*cli_args, "sweep"])

        assert result.exit_code == 0
        assert "Evicted 0 entries" in result.output


class TestClear:
    """Test clear command."""

    def test_clear_with_yes(self, cli_args, populated, make_cache):
        result = CliRunner().invoke(cli, [*cli_args, "clear", "-y"])

        assert result.exit_code == 0
        assert "cleared" in result.output
        assert make_cache().stats()["entry_count"] == 0

    def test_clear_cancelled(self, cli_args, populated, make_cache):
        result = CliRunner().invoke(cli, [*cli_args, "clear"], input="n\n")

        assert result.exit_code == 0
        assert "Cancelled" in result.output
        assert make_cache().stats()["entry_count"] == 1


class TestConfiguration:
    """Test directory options."""

    def test_storage_inside_cache_dir_rejected(self, tmp_path):
        args = [
            "--cache-dir",
            str(tmp_path / "images"),
            "--storage-dir",
            str(tmp_path / "images" / "index"),
        ]
        result = CliRunner().invoke(cli, [*args, "stats"])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output
