"""Tests for the leadscore command line."""

import re
import click
import pytest
import tempfile
from pathlib import Path
from click.testing import CliRunner

from conversion_engine.cli.main import cli, parse_meta_options


@pytest.fixture
def temp_data_dir(monkeypatch):
    """Create temporary data directory with a clean environment."""
    for name in ("CONVERSION_ENGINE_DATA_DIR", "CONVERSION_ENGINE_TELEMETRY_URL", "CONVERSION_ENGINE_STORAGE_QUOTA"):
        monkeypatch.delenv(name, raising=False)
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def run(temp_data_dir):
    """Invoke the CLI against temp config and storage."""
    runner = CliRunner()
    base = [
        "--config", str(temp_data_dir / "engine_config.json"),
        "--data-dir", str(temp_data_dir / "profiles"),
    ]

    def invoke(*args):
        return runner.invoke(cli, base + list(args))

    return invoke


class TestCommands:
    """Tests for CLI commands."""

    def test_track_and_show(self, run):
        result = run("track", "s1", "tool_usage")
        assert result.exit_code == 0, result.output
        assert "Cold Lead" in result.output

        result = run("show", "s1")
        assert result.exit_code == 0, result.output
        assert "Cold Lead" in result.output
        assert "tool_usage" in result.output

    def test_track_with_metadata(self, run):
        result = run("track", "s1", "time_on_site", "--meta", "minutes=30")
        assert result.exit_code == 0, result.output
        assert "+30 points" in result.output

    def test_bad_meta_option(self, run):
        result = run("track", "s1", "tool_usage", "--meta", "oops")
        assert result.exit_code == 2

    def test_negative_multiplier(self, run):
        result = run("track", "s1", "tool_usage", "--meta", "multiplier=-1")
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_unknown_trigger_rejected(self, run):
        result = run("track", "s1", "telepathy")
        assert result.exit_code == 2

    def test_show_missing(self, run):
        result = run("show", "nobody")
        assert result.exit_code == 0
        assert "No profile" in result.output

    def test_override(self, run):
        result = run("override", "s1", "hot_lead")
        assert result.exit_code == 0, result.output
        assert "Hot Lead" in result.output

    def test_insights(self, run):
        run("track", "s1", "tool_usage")
        result = run("insights", "s1")
        assert result.exit_code == 0, result.output
        assert "Recommendations" in result.output

    def test_distribution(self, run):
        run("track", "s1", "tool_usage")
        run("track", "s2", "webinar_registered")
        result = run("distribution")
        assert result.exit_code == 0, result.output
        assert "Status Distribution" in result.output
        assert "Conversion Funnel" in result.output

    def test_new_session(self, run):
        result = run("new-session")
        assert result.exit_code == 0
        assert re.match(r"^session_\d+_[0-9a-z]{9}$", result.output.strip())

    def test_triggers(self, run):
        result = run("triggers")
        assert result.exit_code == 0
        assert "webinar_registered" in result.output


class TestParseMetaOptions:
    """Tests for key=value parsing."""

    def test_pairs(self):
        assert parse_meta_options(("tool_id=vision-void", "minutes = 3")) == {
            "tool_id": "vision-void",
            "minutes": "3",
        }

    def test_value_may_contain_equals(self):
        assert parse_meta_options(("page_url=/a?b=c",)) == {"page_url": "/a?b=c"}

    def test_missing_separator(self):
        with pytest.raises(click.BadParameter):
            parse_meta_options(("oops",))
