"""Engine configuration - retention caps, storage quota and telemetry sink."""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from datetime import datetime

logger = logging.getLogger(__name__)

DEFAULT_HOME = Path.home() / ".conversion-engine"


@dataclass
class EngineConfig:
    """Tunable limits for the scoring engine and its durable store."""

    # Activity log retention
    activity_cap: int = 100  # in memory
    persisted_activity_cap: int = 50  # written to storage
    minimal_activity_tail: int = 5  # degraded-mode writes
    status_history_cap: int = 20

    # Eviction: other profiles kept besides the active one
    retention_count: int = 5

    # Storage
    data_dir: Path = field(default_factory=lambda: DEFAULT_HOME / "profiles")
    storage_quota_bytes: int = 5 * 1024 * 1024
    namespace: str = "lead_engine:"

    # Telemetry
    telemetry_url: Optional[str] = None
    telemetry_timeout: float = 5.0

    updated_at: datetime = field(default_factory=datetime.now)


class ConfigManager:
    """Load, override and persist engine configuration."""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize config manager."""
        self.config_path = config_path or DEFAULT_HOME / "engine_config.json"
        self.config = self._load_config()
        self._apply_env_overrides()

    def _load_config(self) -> EngineConfig:
        """Load configuration from file."""
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                    defaults = EngineConfig()
                    return EngineConfig(
                        activity_cap=data.get("activity_cap", defaults.activity_cap),
                        persisted_activity_cap=data.get("persisted_activity_cap", defaults.persisted_activity_cap),
                        minimal_activity_tail=data.get("minimal_activity_tail", defaults.minimal_activity_tail),
                        status_history_cap=data.get("status_history_cap", defaults.status_history_cap),
                        retention_count=data.get("retention_count", defaults.retention_count),
                        data_dir=Path(data["data_dir"]) if data.get("data_dir") else defaults.data_dir,
                        storage_quota_bytes=data.get("storage_quota_bytes", defaults.storage_quota_bytes),
                        namespace=data.get("namespace", defaults.namespace),
                        telemetry_url=data.get("telemetry_url"),
                        telemetry_timeout=data.get("telemetry_timeout", defaults.telemetry_timeout),
                    )
            except Exception as e:
                logger.error(f"Error loading engine config: {e}")

        return EngineConfig()

    def _apply_env_overrides(self):
        """Environment variables win over the config file."""
        data_dir = os.getenv("CONVERSION_ENGINE_DATA_DIR")
        if data_dir:
            self.config.data_dir = Path(data_dir)

        telemetry_url = os.getenv("CONVERSION_ENGINE_TELEMETRY_URL")
        if telemetry_url:
            self.config.telemetry_url = telemetry_url

        quota = os.getenv("CONVERSION_ENGINE_STORAGE_QUOTA")
        if quota:
            try:
                self.config.storage_quota_bytes = int(quota)
            except ValueError:
                logger.error(f"Ignoring non-numeric CONVERSION_ENGINE_STORAGE_QUOTA: {quota!r}")

    def save_config(self):
        """Save configuration to file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "activity_cap": self.config.activity_cap,
            "persisted_activity_cap": self.config.persisted_activity_cap,
            "minimal_activity_tail": self.config.minimal_activity_tail,
            "status_history_cap": self.config.status_history_cap,
            "retention_count": self.config.retention_count,
            "data_dir": str(self.config.data_dir),
            "storage_quota_bytes": self.config.storage_quota_bytes,
            "namespace": self.config.namespace,
            "telemetry_url": self.config.telemetry_url,
            "telemetry_timeout": self.config.telemetry_timeout,
            "updated_at": self.config.updated_at.isoformat(),
        }
        with open(self.config_path, 'w') as f:
            json.dump(data, f, indent=2)

    def set_telemetry_url(self, url: Optional[str]):
        """Point telemetry at a new collector (None disables it)."""
        self.config.telemetry_url = url
        self.config.updated_at = datetime.now()
        self.save_config()

    def set_retention(self, activity_cap: int, persisted_activity_cap: int, retention_count: int):
        """Update activity and profile retention limits."""
        if persisted_activity_cap > activity_cap:
            raise ValueError("persisted_activity_cap cannot exceed activity_cap")
        self.config.activity_cap = activity_cap
        self.config.persisted_activity_cap = persisted_activity_cap
        self.config.retention_count = retention_count
        self.config.updated_at = datetime.now()
        self.save_config()
