"""Tests for engine configuration."""

import json
import pytest
import tempfile
from pathlib import Path

from conversion_engine.core.config import ConfigManager, EngineConfig

ENV_VARS = [
    "CONVERSION_ENGINE_DATA_DIR",
    "CONVERSION_ENGINE_TELEMETRY_URL",
    "CONVERSION_ENGINE_STORAGE_QUOTA",
]


@pytest.fixture
def temp_data_dir(monkeypatch):
    """Create temporary data directory with a clean environment."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


class TestConfigManager:
    """Tests for ConfigManager."""

    def test_defaults_without_file(self, temp_data_dir):
        manager = ConfigManager(temp_data_dir / "engine_config.json")
        defaults = EngineConfig()
        assert manager.config.activity_cap == defaults.activity_cap == 100
        assert manager.config.persisted_activity_cap == 50
        assert manager.config.retention_count == 5
        assert manager.config.telemetry_url is None

    def test_save_and_reload(self, temp_data_dir):
        path = temp_data_dir / "engine_config.json"
        manager = ConfigManager(path)
        manager.set_telemetry_url("https://collector.test/api/track-interaction")
        manager.set_retention(activity_cap=80, persisted_activity_cap=40, retention_count=3)

        reloaded = ConfigManager(path).config
        assert reloaded.telemetry_url == "https://collector.test/api/track-interaction"
        assert reloaded.activity_cap == 80
        assert reloaded.persisted_activity_cap == 40
        assert reloaded.retention_count == 3

    def test_corrupt_file_uses_defaults(self, temp_data_dir):
        path = temp_data_dir / "engine_config.json"
        path.write_text("{broken")
        assert ConfigManager(path).config.activity_cap == 100

    def test_partial_file(self, temp_data_dir):
        path = temp_data_dir / "engine_config.json"
        path.write_text(json.dumps({"retention_count": 9, "data_dir": str(temp_data_dir / "p")}))
        config = ConfigManager(path).config
        assert config.retention_count == 9
        assert config.data_dir == temp_data_dir / "p"
        assert config.storage_quota_bytes == 5 * 1024 * 1024

    def test_environment_overrides(self, temp_data_dir, monkeypatch):
        monkeypatch.setenv("CONVERSION_ENGINE_DATA_DIR", str(temp_data_dir / "env"))
        monkeypatch.setenv("CONVERSION_ENGINE_TELEMETRY_URL", "https://env.test/collect")
        monkeypatch.setenv("CONVERSION_ENGINE_STORAGE_QUOTA", "2048")

        config = ConfigManager(temp_data_dir / "engine_config.json").config
        assert config.data_dir == temp_data_dir / "env"
        assert config.telemetry_url == "https://env.test/collect"
        assert config.storage_quota_bytes == 2048

    def test_bad_quota_ignored(self, temp_data_dir, monkeypatch):
        monkeypatch.setenv("CONVERSION_ENGINE_STORAGE_QUOTA", "plenty")
        config = ConfigManager(temp_data_dir / "engine_config.json").config
        assert config.storage_quota_bytes == 5 * 1024 * 1024

    def test_retention_must_fit(self, temp_data_dir):
        manager = ConfigManager(temp_data_dir / "engine_config.json")
        with pytest.raises(ValueError):
            manager.set_retention(activity_cap=10, persisted_activity_cap=20, retention_count=1)
