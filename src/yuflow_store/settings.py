from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_NAME = "yuflow-store"  # Application name constant. Should be in format "kebab-case".


class StorageSettings(BaseModel):
    """Where the database and the backups live, relative to the data directory."""

    database_filename: str = Field(
        default="yuflow.db", description="SQLite database file name"
    )
    backup_dir_name: str = Field(default="backups", description="Backup directory name")
    echo_sql: bool = Field(default=False, description="Log every SQL statement")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix=f"{APP_NAME.upper().replace('-', '_')}__",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = Field(default=APP_NAME, description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    app_data_dir: str = Field(
        default=Path.home().joinpath(f".{APP_NAME}").as_posix(),
        description="Data directory path",
    )

    storage: StorageSettings = Field(
        default_factory=StorageSettings, description="Database and backup locations"
    )

    # Logging settings
    logging_level: str = Field(
        default="INFO", description="Logging level (e.g., DEBUG, INFO, WARNING, ERROR)"
    )
    logging_format: str = Field(
        default="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{module}</cyan>:<cyan>{line}</cyan> - <level>{message}</level> | {extra}",
        description="Logging format string",
    )
    logging_file: Optional[str] = Field(
        default="logs/yuflow-store.log",
        description="Log file path relative to the data directory; empty disables file logging",
    )
    logging_rotation: str = Field(default="10 MB", description="Log file rotation size")
    logging_retention: str = Field(
        default="10 days", description="Log file retention period"
    )

    @property
    def database_path(self) -> Path:
        return Path(self.app_data_dir) / self.storage.database_filename

    @property
    def database_url(self) -> str:
        return f"sqlite:///{self.database_path.as_posix()}"

    @property
    def backup_dir(self) -> Path:
        return Path(self.app_data_dir) / self.storage.backup_dir_name

    @property
    def log_path(self) -> Optional[Path]:
        if not self.logging_file:
            return None
        return Path(self.app_data_dir) / self.logging_file


def get_settings() -> Settings:
    """Retrieve application settings."""
    return Settings()
