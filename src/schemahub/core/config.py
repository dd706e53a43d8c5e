"""
schemahub - configuration validation

Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from collections.abc import Mapping
from copy import deepcopy
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from schemahub.core.schema_type import SchemaFormat
from schemahub.core.typing import NameStrategy
from schemahub.core.utils import json_encode

import logging

LOG = logging.getLogger(__name__)


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="schemahub_", env_ignore_empty=True, env_nested_delimiter="__")

    # Server
    host: str = "127.0.0.1"
    port: int = 8990
    allow_schema_deletion: bool = False
    log_handler: str | None = "stdout"
    log_level: str = "DEBUG"
    log_format: str = "%(name)-20s\t%(threadName)s\t%(levelname)-8s\t%(message)s"

    # Registry client
    registry_url: str = "http://localhost:8990"
    registry_ca: str | None = None
    registry_user: str | None = None
    registry_password: str | None = None
    registry_request_timeout: float = 10.0
    registry_client_cached: bool = True
    registry_cache_maxsize: int = 1000
    # Seconds, 0 keeps entries until evicted by size.
    registry_cache_ttl: int = 600

    # Schema resolution
    schema_format: str = SchemaFormat.AVRO.value
    reader_schema: Path | None = None
    schema_locations: list[Path] = []
    schema_imports: list[Path] = []
    dynamic_schema_generation_enabled: bool = False
    subject_naming_strategy: str = NameStrategy.default.value
    content_type_prefix: str = "vnd"

    def to_env_str(self) -> str:
        env_prefix = str(self.model_config.get("env_prefix", "")).upper()
        env_lines: list[str] = []
        for key, value in self.model_dump(mode="json").items():
            if value is None:
                continue
            # Complex values are read back as JSON.
            if isinstance(value, (list, dict)):
                value = json_encode(value)
            env_lines.append(f"{env_prefix}{key.upper()}={value}")
        return "\n".join(env_lines)

    def set_config_defaults(self, new_config: Mapping[str, object] | None = None) -> Config:
        config = deepcopy(self)
        if new_config:
            for key, value in new_config.items():
                setattr(config, key, value)
        validate_config(config)
        return config


SECRET_CONFIG_OPTIONS = ["registry_password"]


class InvalidConfiguration(Exception):
    pass


def validate_config(config: Config) -> None:
    name_strategy = config.subject_naming_strategy
    try:
        NameStrategy(name_strategy)
    except ValueError:
        valid_strategies = [strategy.value for strategy in NameStrategy]
        raise InvalidConfiguration(
            f"Invalid subject naming strategy: {name_strategy}, valid values are {valid_strategies}"
        ) from None

    schema_format = config.schema_format
    try:
        SchemaFormat(schema_format)
    except ValueError:
        valid_formats = [schema_format.value for schema_format in SchemaFormat]
        raise InvalidConfiguration(f"Invalid schema format: {schema_format}, valid values are {valid_formats}") from None

    if config.registry_cache_maxsize < 1:
        raise InvalidConfiguration("`registry_cache_maxsize` must be positive")
    if config.registry_cache_ttl < 0:
        raise InvalidConfiguration("`registry_cache_ttl` must not be negative")
    if not config.content_type_prefix or "." in config.content_type_prefix:
        raise InvalidConfiguration("`content_type_prefix` must be a non-empty token without dots")


def write_config(config_path: Path, custom_values: Config) -> None:
    config_path.write_text(json_encode(custom_values.model_dump(mode="json")))


def write_env_file(dot_env_path: Path, config: Config) -> None:
    dot_env_path.write_text(config.to_env_str())


def read_env_file(env_file_path: str) -> Config:
    return Config(_env_file=env_file_path, _env_file_encoding="utf-8")
