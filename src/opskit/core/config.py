# opskit/src/opskit/core/config.py

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

KEYRING_SERVICE = "opskit"


class Settings(BaseSettings):
    # Output locations
    log_dir: Path = Field(default=Path("/tmp"))
    report_dir: Path = Field(default=Path("."))
    backup_dir: Path = Field(default=Path("/tmp/backups"))
    db_backup_dir: Path = Field(default=Path("/tmp/db_backups"))

    # Saved configuration files
    db_config_path: Path = Field(default=Path("~/.db_config"))
    api_config_path: Path = Field(default=Path("~/.api_config"))

    # Backup rotation
    max_backups: int = Field(default=5, ge=1)

    # Timeouts (seconds)
    http_timeout: float = Field(default=30.0)
    ping_count: int = Field(default=4)
    ping_timeout: int = Field(default=5)
    port_timeout: float = Field(default=3.0)

    # Alert thresholds (percent)
    cpu_alert_threshold: float = Field(default=80.0)
    memory_alert_threshold: float = Field(default=80.0)
    disk_alert_threshold: float = Field(default=80.0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="OPSKIT_",
        extra="ignore",
    )

    @property
    def db_profile_file(self) -> Path:
        return self.db_config_path.expanduser()

    @property
    def api_suite_file(self) -> Path:
        return self.api_config_path.expanduser()

    def log_file(self, tool: str) -> Path:
        """Path of the audit log for one tool, e.g. ``/tmp/backup.log``."""
        return self.log_dir / f"{tool}.log"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
