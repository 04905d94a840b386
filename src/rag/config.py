"""Configuration management for ydrag.

Settings resolve with the following precedence (highest first):
- Explicit values (command-line flags)
- Environment variables with the YDRAG_ prefix (YDRAG_MODEL, YDRAG_DB_PATH, ...)
- YAML configuration file (config.yaml by default)
- Built-in defaults

Numeric environment values that do not parse are ignored so the next
source wins; the skip is logged at INFO level.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import Field, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    EnvSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from src.rag.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.yaml"


class RunMode(str, Enum):
    """Embedding backend selection."""

    PRODUCTION = "production"
    MOCK = "mock"


class StoreBackend(str, Enum):
    """Available vector store implementations."""

    CHROMA = "chroma"
    MEMORY = "memory"


class TransportKind(str, Enum):
    """Tool server transport bindings."""

    STDIO = "stdio"
    SSE = "sse"
    STREAMABLE_HTTP = "streamable-http"


TRANSPORT_ALIASES = {
    "": TransportKind.STDIO,
    "stdio": TransportKind.STDIO,
    "sse": TransportKind.SSE,
    "push-stream": TransportKind.SSE,
    "streamable-http": TransportKind.STREAMABLE_HTTP,
    "http-stream": TransportKind.STREAMABLE_HTTP,
}

NUMERIC_FIELDS: dict[str, type] = {
    "context_size": int,
    "batch_size": int,
    "embedding_dimensions": int,
    "server_port": int,
    "shutdown_grace_seconds": float,
    "embed_timeout_seconds": float,
}


def parse_number(name: str, raw: Any, source: str) -> Optional[Union[int, float]]:
    """Parse a numeric setting, returning None (and logging) when it is invalid."""
    kind = NUMERIC_FIELDS[name]
    try:
        return kind(raw)
    except (TypeError, ValueError):
        logger.info("Ignoring %s value %r for %s: not a valid %s", source, raw, name, kind.__name__)
        return None


def resolve_transport(value: Union[str, TransportKind]) -> TransportKind:
    """Map a transport name or alias onto a TransportKind."""
    if isinstance(value, TransportKind):
        return value
    try:
        return TRANSPORT_ALIASES[str(value).strip().lower()]
    except KeyError:
        raise ValueError(
            f"unsupported transport: {value!r} (use stdio, sse, or streamable-http)"
        ) from None


def read_config_file(path: Optional[Union[str, Path]]) -> dict[str, Any]:
    """Load a YAML config file into flat settings keys.

    A missing file yields no values. A nested ``server`` section maps onto
    ``server_host``, ``server_port`` and ``transport``.
    """
    if not path:
        return {}
    file_path = Path(path)
    if not file_path.is_file():
        return {}

    try:
        data = yaml.safe_load(file_path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid config file {file_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"invalid config file {file_path}: expected a mapping")

    server = data.pop("server", None) or {}
    if not isinstance(server, dict):
        raise ConfigError(f"invalid config file {file_path}: 'server' must be a mapping")
    for key, field_name in (("host", "server_host"), ("port", "server_port"), ("transport", "transport")):
        if key in server:
            data.setdefault(field_name, server[key])
    return data


class _LenientEnvSource(EnvSettingsSource):
    """Environment source that drops unparseable numeric values."""

    def __call__(self) -> dict[str, Any]:
        data = super().__call__()
        for name in NUMERIC_FIELDS:
            if name in data and parse_number(name, data[name], "environment") is None:
                del data[name]
        return data


class _YamlFileSource(PydanticBaseSettingsSource):
    """Settings source backed by a YAML config file."""

    def __init__(self, settings_cls: type[BaseSettings], path: Optional[str]) -> None:
        super().__init__(settings_cls)
        self._path = path

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        return read_config_file(self._path)


class Settings(BaseSettings):
    """Resolved ydrag configuration.

    All settings can be overridden via environment variables with the YDRAG_
    prefix. Example: YDRAG_MODEL=./models/nomic-embed-text-v1.5.Q8_0.gguf
    """

    model_config = SettingsConfigDict(env_prefix="YDRAG_", extra="ignore")

    # Source selection; read only from keyword arguments
    config_file: Optional[str] = Field(
        default=DEFAULT_CONFIG_FILE, exclude=True, description="YAML config file path"
    )

    # Embedding settings
    mode: RunMode = Field(default=RunMode.PRODUCTION, description="Embedding backend")
    model: str = Field(default="", description="Path to embedding model file (GGUF)")
    lib_path: str = Field(default="", description="Path to the llama.cpp shared library")
    context_size: int = Field(default=512, gt=0, description="Context size for embeddings")
    batch_size: int = Field(default=512, gt=0, description="Batch size for processing")
    embedding_dimensions: int = Field(
        default=384, gt=0, description="Vector dimensions for the mock provider"
    )
    embed_timeout_seconds: Optional[float] = Field(
        default=None, gt=0, description="Max wait for the embedding model per operation"
    )

    # Store settings
    store: StoreBackend = Field(default=StoreBackend.CHROMA, description="Vector store backend")
    db_path: str = Field(
        default="rag_data", description="Store directory (use :memory: for in-memory)"
    )
    collection: str = Field(default="documents", description="Collection name")

    # Server settings
    transport: TransportKind = Field(default=TransportKind.STDIO, description="Tool server transport")
    server_host: str = Field(default="127.0.0.1", description="Network transport host")
    server_port: int = Field(default=8080, ge=0, le=65535, description="Network transport port")
    shutdown_grace_seconds: float = Field(
        default=5.0, ge=0, description="Time allowed for open connections to drain"
    )

    verbose: bool = Field(default=False, description="Enable verbose logging")

    @field_validator("transport", mode="before")
    @classmethod
    def _resolve_transport(cls, value: Any) -> TransportKind:
        return resolve_transport(value)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        init_kwargs = getattr(init_settings, "init_kwargs", {})
        config_file = init_kwargs.get("config_file", DEFAULT_CONFIG_FILE)
        return (
            init_settings,
            _LenientEnvSource(settings_cls),
            _YamlFileSource(settings_cls, config_file),
        )


def load_settings(config_file: Optional[str] = DEFAULT_CONFIG_FILE, **overrides: Any) -> Settings:
    """Resolve settings from flags, environment, config file and defaults.

    ``overrides`` whose value is None are treated as unset so lower
    precedence sources apply.
    """
    explicit = {key: value for key, value in overrides.items() if value is not None}
    for name in NUMERIC_FIELDS:
        if name in explicit and isinstance(explicit[name], str):
            parsed = parse_number(name, explicit[name], "flag")
            if parsed is None:
                del explicit[name]
            else:
                explicit[name] = parsed
    try:
        return Settings(config_file=config_file, **explicit)
    except ValueError as e:
        # pydantic's ValidationError subclasses ValueError
        raise ConfigError(f"invalid configuration: {e}") from e


class MockConfig:
    """Configuration presets for mock mode.

    Uses the hashed mock embedder and the in-memory store, so no model file
    or database directory is required. Useful for tests and demos.
    """

    @staticmethod
    def default() -> Settings:
        """Create a default mock configuration."""
        return Settings(
            config_file=None, mode=RunMode.MOCK, store=StoreBackend.MEMORY, db_path=":memory:"
        )

    @staticmethod
    def with_overrides(**kwargs: object) -> Settings:
        """Create mock config with specific overrides."""
        defaults: dict[str, object] = {
            "config_file": None,
            "mode": RunMode.MOCK,
            "store": StoreBackend.MEMORY,
            "db_path": ":memory:",
        }
        defaults.update(kwargs)
        return Settings(**defaults)  # type: ignore[arg-type]
