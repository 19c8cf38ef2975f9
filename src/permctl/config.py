"""Application configuration from the YAML policy file and environment variables."""

import os
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from permctl.domain.entities import CommandPolicy
from permctl.domain.exceptions import ConfigError
from permctl.infrastructure.sudoers.renderer import is_safe_command

DEFAULT_CONFIG_PATH = Path("/etc/permctl/config.yaml")
CONFIG_PATH_ENV = "PERMCTL_CONFIG"


class CommandConfig(BaseModel):
    """Policy for one allowed command as written in the config file."""

    description: str = Field(default="", description="What the command does")
    max_duration: int = Field(gt=0, description="Maximum grant duration in minutes")
    required_groups: list[str] = Field(default_factory=list)
    audit_usage: bool = Field(default=False, description="Audit every recorded use")
    max_concurrent_users: int = Field(default=10, ge=1)


class Settings(BaseSettings):
    """permctl settings. Environment variables override the YAML file."""

    model_config = SettingsConfigDict(
        env_prefix="PERMCTL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    allowed_commands: dict[str, CommandConfig] = Field(
        default_factory=dict,
        description="Absolute command path -> policy",
    )

    # Paths
    sudoers_path: Path = Field(
        default=Path("/etc/sudoers.d/permctl"),
        description="sudoers.d file owned by permctl",
    )
    db_path: Path = Field(
        default=Path("/var/lib/permctl/permissions.db"),
        description="SQLite permission ledger",
    )
    log_path: Path | None = Field(
        default=Path("/var/log/permctl/access.log"),
        description="Log file, or null for stderr only",
    )

    # Timeouts (seconds)
    db_busy_timeout: float = Field(default=5.0, gt=0)
    sync_lock_timeout: float = Field(default=10.0, gt=0)
    identity_lookup_timeout: float = Field(default=5.0, gt=0)

    # Enforcement
    visudo_path: str | None = Field(
        default="/usr/sbin/visudo",
        description="visudo used to syntax-check the generated file, or null to skip",
    )
    enforce_concurrent_limit: bool = Field(default=True)

    # Application
    log_level: str = Field(default="INFO", description="Logging level")
    debug: bool = Field(default=False, description="Debug mode")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # YAML values arrive as init kwargs; the environment must win over them.
        return (env_settings, dotenv_settings, init_settings, file_secret_settings)

    @field_validator("allowed_commands")
    @classmethod
    def _commands_are_absolute(cls, value: dict[str, CommandConfig]) -> dict[str, CommandConfig]:
        for command in value:
            if not command.startswith("/"):
                raise ValueError(f"Command path must be absolute: {command}")
            if not is_safe_command(command):
                raise ValueError(f"Command path contains characters unsafe for sudoers: {command}")
        return value

    @field_validator("sudoers_path", "db_path", "log_path")
    @classmethod
    def _paths_are_absolute(cls, value: Path | None) -> Path | None:
        if value is not None and not value.is_absolute():
            raise ValueError(f"Path must be absolute: {value}")
        return value

    def command_policies(self) -> dict[str, CommandPolicy]:
        """Immutable domain policies keyed by command path."""
        return {
            command: CommandPolicy(
                command=command,
                max_duration=timedelta(minutes=cfg.max_duration),
                description=cfg.description,
                required_groups=frozenset(cfg.required_groups),
                audit_usage=cfg.audit_usage,
                max_concurrent_users=cfg.max_concurrent_users,
            )
            for command, cfg in self.allowed_commands.items()
        }


def resolve_config_path(config_path: Path | str | None = None) -> Path:
    """Explicit path, else $PERMCTL_CONFIG, else the system default."""
    if config_path:
        return Path(config_path)
    return Path(os.environ.get(CONFIG_PATH_ENV, str(DEFAULT_CONFIG_PATH)))


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from the YAML file (if present) and the environment."""
    path = resolve_config_path(config_path)
    raw: dict[str, Any] = {}
    if path.exists():
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Cannot read config {path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"Config {path} must be a mapping at top level")
    try:
        return Settings(**raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config {path}: {exc}") from exc


def default_config_document() -> dict[str, Any]:
    """Starter configuration written by `permctl init`."""
    settings = Settings(
        allowed_commands={
            "/usr/bin/docker": CommandConfig(
                description="Docker command access",
                max_duration=480,
                required_groups=["docker"],
                audit_usage=True,
                max_concurrent_users=5,
            ),
        },
    )
    return settings.model_dump(
        mode="json",
        include={
            "allowed_commands",
            "sudoers_path",
            "db_path",
            "log_path",
            "log_level",
            "visudo_path",
        },
    )


def write_config(path: Path, document: dict[str, Any]) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(document, sort_keys=False), encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot write config {path}: {exc}") from exc
