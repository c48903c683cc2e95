"""Configuration management for stackctl using Pydantic.

Two sources are involved:

* the stack configuration, a ``key=value`` file (``.env`` by default) holding
  credentials and feature flags for the deployed services;
* the tool settings, optional YAML files describing images, service names,
  readiness policy and endpoints. Defaults reproduce the standard stack.
"""

import shutil
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from stackctl.core.exceptions import ConfigError
from stackctl.core.logging import LogLevel

DEFAULT_ENV_FILE = ".env"
DEFAULT_ENV_TEMPLATE = ".env.example"
GIB = 1024**3

SECRET_KEYS = ("PASSWORD", "SECRET", "TOKEN", "KEY")


class StackConfig(BaseModel):
    """Stack configuration loaded from the env file.

    Immutable for the duration of a run.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    db_user: str = Field(alias="DB_USER", min_length=1)
    db_password: str = Field(alias="DB_PASSWORD", min_length=1)
    db_root_password: str = Field(alias="DB_ROOT_PASSWORD", min_length=1)
    db_name: str = Field(alias="DB_NAME", min_length=1)
    db_monitor_password: str = Field(default="", alias="DB_MONITOR_PASSWORD")
    redis_password: str = Field(default="", alias="REDIS_PASSWORD")
    grafana_password: str = Field(default="", alias="GRAFANA_PASSWORD")
    enable_monitoring: bool = Field(default=False, alias="ENABLE_MONITORING")
    raw: Mapping[str, str] = Field(default_factory=dict, exclude=True)

    @field_validator("enable_monitoring", mode="before")
    @classmethod
    def parse_flag(cls, v: Any) -> bool:
        # Only the exact string "true" switches the flag on
        if isinstance(v, bool):
            return v
        return v == "true"

    @field_validator("raw", mode="after")
    @classmethod
    def freeze_values(cls, v: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(v))

    def masked(self) -> dict[str, str]:
        """Raw values with secrets hidden, for display."""
        return {
            key: "****" if any(marker in key.upper() for marker in SECRET_KEYS) and value else value
            for key, value in self.raw.items()
        }


def load_stack_config(
    env_file: str | Path = DEFAULT_ENV_FILE,
    template: str | Path | None = None,
) -> StackConfig:
    """Load the stack configuration from a ``key=value`` file.

    When the file is missing but a template exists beside it, the template is
    copied into place so the operator can fill it in. The load still fails.

    Args:
        env_file: Path to the env file
        template: Path to the template, defaults to ``.env.example`` next to env_file

    Returns:
        Loaded configuration

    Raises:
        ConfigError: If the file is missing or invalid
    """
    env_path = Path(env_file)
    template_path = Path(template) if template else env_path.with_name(DEFAULT_ENV_TEMPLATE)

    if not env_path.is_file():
        if template_path.is_file():
            shutil.copyfile(template_path, env_path)
            raise ConfigError(
                f"{env_path} not found; created it from {template_path}. "
                f"Edit {env_path} before running the deploy again."
            )
        raise ConfigError(
            f"{env_path} not found. Copy {template_path} to {env_path} and fill it in."
        )

    try:
        raw = dotenv_values(env_path)
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read {env_path}: {e}")

    values = {key: value or "" for key, value in raw.items()}

    try:
        return StackConfig.model_validate({**values, "raw": values})
    except ValidationError as e:
        missing = sorted(
            str(err["loc"][0]) for err in e.errors() if err["loc"] and err["type"] in ("missing", "string_too_short")
        )
        if missing:
            raise ConfigError(f"Missing required settings in {env_path}: {', '.join(missing)}")
        raise ConfigError(f"Invalid configuration in {env_path}: {e}")


class ImageSpec(BaseModel):
    """A container image built before the stack starts."""

    name: str
    tag: str
    context: str
    build_args: dict[str, str] = Field(default_factory=dict)


def _default_images() -> list[ImageSpec]:
    return [
        ImageSpec(
            name="php",
            tag="highload-php:latest",
            context="./php",
            build_args={"PHP_ENV": "production", "COMPOSER_NO_DEV": "1"},
        ),
        ImageSpec(name="nginx", tag="highload-nginx:latest", context="./nginx"),
    ]


class ServiceNames(BaseModel):
    """Compose service names of the stack."""

    database: str = "mysql"
    cache: str = "redis"
    app: str = "php"
    proxy: str = "nginx"
    load_balancer: str = "haproxy"


class ReadinessConfig(BaseModel):
    """Readiness poll budget."""

    max_attempts: int = Field(default=30, ge=1)
    interval: float = Field(default=2.0, ge=0)


class DatasourceConfig(BaseModel):
    """Grafana datasource registered after the monitoring stack starts."""

    name: str = "Prometheus"
    type: str = "prometheus"
    url: str = "http://prometheus:9090"
    access: str = "proxy"


class GrafanaConfig(BaseModel):
    """Grafana configuration."""

    url: str = "http://localhost:3000"
    user: str = "admin"
    timeout: int = 30
    datasource: DatasourceConfig = Field(default_factory=DatasourceConfig)


class DatabaseConfig(BaseModel):
    """Administrative settings applied after the database is ready."""

    monitor_user: str = "monitor"
    monitor_grants: list[str] = Field(default_factory=lambda: ["PROCESS", "REPLICATION CLIENT"])
    tuning: dict[str, int] = Field(
        default_factory=lambda: {
            "innodb_buffer_pool_size": 2147483648,
            "innodb_log_file_size": 268435456,
            "max_connections": 1000,
        }
    )


class EndpointConfig(BaseModel):
    """An endpoint listed in the post-deploy summary."""

    name: str
    url: str
    credentials: str | None = None


def _default_endpoints() -> list[EndpointConfig]:
    return [
        EndpointConfig(name="Application", url="http://localhost"),
        EndpointConfig(name="Grafana", url="http://localhost:3000", credentials="admin:${GRAFANA_PASSWORD}"),
        EndpointConfig(name="Prometheus", url="http://localhost:9090"),
    ]


class StackSettings(BaseModel):
    """Tool settings for the deploy sequencer."""

    model_config = ConfigDict(frozen=True)

    project_dir: str = "."
    env_file: str = DEFAULT_ENV_FILE
    env_template: str = DEFAULT_ENV_TEMPLATE
    compose_command: list[str] = Field(default_factory=lambda: ["docker-compose"])
    compose_file: str | None = None
    monitoring_compose_file: str = "docker-compose.monitoring.yml"
    required_tools: list[str] = Field(default_factory=lambda: ["docker", "docker-compose"])
    disk_path: str = "/"
    min_free_disk_gb: float = Field(default=10, ge=0)
    images: list[ImageSpec] = Field(default_factory=_default_images)
    services: ServiceNames = Field(default_factory=ServiceNames)
    readiness: ReadinessConfig = Field(default_factory=ReadinessConfig)
    settle_delay: float = Field(default=10.0, ge=0)
    health_url: str = "http://localhost/health"
    http_timeout: float = 10.0
    app_check_command: list[str] = Field(default_factory=lambda: ["php-fpm", "-t"])
    build_timeout: int = 600
    command_timeout: int = 120
    grafana: GrafanaConfig = Field(default_factory=GrafanaConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    endpoints: list[EndpointConfig] = Field(default_factory=_default_endpoints)
    verbosity: LogLevel = LogLevel.INFO

    @field_validator("compose_command", "app_check_command", mode="before")
    @classmethod
    def split_command(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.split()
        return v

    @field_validator("images")
    @classmethod
    def validate_images(cls, v: list[ImageSpec]) -> list[ImageSpec]:
        if len({image.name for image in v}) != len(v):
            raise ValueError("image names must be unique")
        return v

    @property
    def min_free_disk_bytes(self) -> int:
        return int(self.min_free_disk_gb * GIB)

    def resolve(self, path: str) -> Path:
        """Resolve a path relative to the project directory."""
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return Path(self.project_dir) / candidate


class ConfigLoader:
    """Loads and merges tool settings from multiple sources."""

    CONFIG_FILENAMES = ["stackctl.yaml", "stackctl.yml", ".stackctl.yaml", ".stackctl.yml"]

    def load(self, config_file: str | Path | None = None) -> StackSettings:
        """Load settings from files.

        Priority (highest to lowest):
        1. Explicitly specified config file
        2. Project config (./stackctl.yaml)
        3. User config (~/.stackctl/config.yaml)

        Args:
            config_file: Optional explicit config file path

        Returns:
            Merged settings
        """
        configs: list[dict[str, Any]] = []

        user_config_path = Path.home() / ".stackctl" / "config.yaml"
        if user_config_path.exists():
            configs.append(self._load_yaml_file(user_config_path))

        project_config = self._find_project_config()
        if project_config:
            configs.append(self._load_yaml_file(project_config))

        if config_file:
            config_path = Path(config_file)
            if not config_path.exists():
                raise ConfigError(f"Config file not found: {config_file}")
            configs.append(self._load_yaml_file(config_path))

        merged = self._merge_configs(configs)

        try:
            return StackSettings(**merged)
        except ValidationError as e:
            raise ConfigError(f"Invalid settings: {e}")

    def _find_project_config(self) -> Path | None:
        """Find project config file in current or parent directories."""
        current = Path.cwd()

        while current != current.parent:
            for filename in self.CONFIG_FILENAMES:
                config_path = current / filename
                if config_path.exists():
                    return config_path
            current = current.parent

        return None

    def _load_yaml_file(self, path: Path) -> dict[str, Any]:
        """Load a YAML config file."""
        try:
            with open(path) as f:
                content = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}")
        except OSError as e:
            raise ConfigError(f"Cannot read {path}: {e}")

        if not isinstance(content, dict):
            raise ConfigError(f"Expected a mapping at the top of {path}")
        return content

    def _merge_configs(self, configs: list[dict[str, Any]]) -> dict[str, Any]:
        """Deep merge multiple configuration dictionaries."""
        result: dict[str, Any] = {}
        for config in configs:
            result = self._deep_merge(result, config)
        return result

    def _deep_merge(
        self,
        base: dict[str, Any],
        override: dict[str, Any],
    ) -> dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result


def load_settings(config_file: str | Path | None = None) -> StackSettings:
    """Load stackctl tool settings.

    Args:
        config_file: Optional explicit config file path

    Returns:
        Loaded settings
    """
    return ConfigLoader().load(config_file)


def get_default_settings() -> StackSettings:
    """Get default settings without loading from files."""
    return StackSettings()
