import logging
import os
import sys
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource
from typing_extensions import Self

from evsrc.domain.source.model.source import SourceKind


def default_data_dir() -> Path:
    """Data directory, overridable with EVSRC_DATA_DIR."""
    override = os.environ.get("EVSRC_DATA_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".local" / "share" / "evsrc"


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Load settings from YAML file specified by EVSRC_CONFIG_FILE env var."""

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        yaml_data = self._load_yaml_config()
        field_value = yaml_data.get(field_name)
        return field_value, field_name, False

    def __call__(self) -> dict[str, Any]:
        return self._load_yaml_config()

    def _load_yaml_config(self) -> dict[str, Any]:
        config_file = os.environ.get("EVSRC_CONFIG_FILE")
        if config_file:
            path = Path(config_file)
            if path.exists():
                return yaml.safe_load(path.read_text()) or {}
        return {}


class DatabaseConfig(BaseModel):
    """Database configuration (nested in Config, uses env_nested_delimiter).

    An empty url means "sqlite file in the data directory", computed in
    Config's model_validator.
    """

    url: str = ""
    echo: bool = False


class LoggingConfig(BaseModel):
    """Logging configuration (nested in Config, uses env_nested_delimiter)."""

    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"

    @property
    def file(self) -> str | None:
        """Get log file path from EVSRC_LOG_FILE env var."""
        return os.environ.get("EVSRC_LOG_FILE")


class WorkerConfig(BaseModel):
    """Reconcile queue configuration.

    The n-th consecutive failure of a key is retried after
    ``backoff_base * 2**(n-1)`` seconds, at most ``backoff_max``. Every stored
    source is re-queued each ``resync_interval`` seconds so drift in adapters
    and Zendesk is repaired.
    Changed or deleted sources are picked up every ``poll_interval`` seconds.
    """

    concurrency: int = 2
    backoff_base: float = 0.5
    backoff_max: float = 300.0
    resync_interval: float = 600.0
    poll_interval: float = 2.0  # Seconds between checks for changed sources


class AdaptersConfig(BaseModel):
    """Container image of the receive adapter of each source kind."""

    http_image: str = "ghcr.io/evsrc/httpsource-adapter:latest"
    zendesk_image: str = "ghcr.io/evsrc/zendesksource-adapter:latest"
    slack_image: str = "ghcr.io/evsrc/slacksource-adapter:latest"

    def image_for(self, kind: SourceKind) -> str:
        return {
            SourceKind.HTTP: self.http_image,
            SourceKind.ZENDESK: self.zendesk_image,
            SourceKind.SLACK: self.slack_image,
        }[kind]


class ObservabilityConfig(BaseModel):
    """Logging, metrics and tracing config handed to every adapter as JSON strings."""

    logging_config: str = ""
    metrics_config: str = ""
    tracing_config: str = ""


class DockerConfig(BaseModel):
    # Host under which published adapter ports are reachable from outside.
    public_host: str = "localhost"
    network: str | None = None


class SecretsConfig(BaseModel):
    """File secret store: ``<directory>/<namespace>/<name>.yaml``.

    An empty directory means "secrets/ in the data directory".
    """

    directory: str = ""


class SinkConfig(BaseModel):
    """An addressable object sources may reference as their sink."""

    kind: str
    namespace: str = "default"
    name: str
    url: str


class ZendeskConfig(BaseModel):
    base_url: str = "https://{subdomain}.zendesk.com"
    timeout: float = 10.0


class Config(BaseSettings):
    logging: LoggingConfig = LoggingConfig()
    database: DatabaseConfig = DatabaseConfig()
    worker: WorkerConfig = WorkerConfig()
    adapters: AdaptersConfig = AdaptersConfig()
    observability: ObservabilityConfig = ObservabilityConfig()
    docker: DockerConfig = DockerConfig()
    secrets: SecretsConfig = SecretsConfig()
    sinks: list[SinkConfig] = []
    zendesk: ZendeskConfig = ZendeskConfig()

    model_config = {
        "env_prefix": "EVSRC_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",  # Allows EVSRC_DATABASE__URL override
    }

    @model_validator(mode="after")
    def derive_data_paths(self) -> Self:
        """Place the database and secrets in the data directory unless set explicitly."""
        data_dir = default_data_dir()
        if not self.database.url:
            self.database = DatabaseConfig(
                url=f"sqlite+aiosqlite:///{data_dir / 'evsrc.db'}",
                echo=self.database.echo,
            )
        if not self.secrets.directory:
            self.secrets = SecretsConfig(directory=str(data_dir / "secrets"))
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to include YAML config.

        Priority (highest to lowest):
        1. init_settings - values passed to Config()
        2. env_settings - environment variables
        3. dotenv_settings - .env file
        4. yaml_settings - EVSRC_CONFIG_FILE yaml
        5. file_secret_settings - secrets from files
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


def configure_logging(config: LoggingConfig) -> None:
    """Configure Python logging based on config.

    Should be called early in application startup so that every logger
    picks up the configuration.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(config.level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(config.format, datefmt=config.date_format)

    if config.file:
        log_path = Path(config.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_path)
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(config.level)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("aiodocker").setLevel(logging.WARNING)

    logging.debug("Logging configured: level=%s, file=%s", config.level, config.file)
