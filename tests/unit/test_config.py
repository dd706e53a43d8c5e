"""
Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""

from pathlib import Path
from schemahub.core.config import Config, InvalidConfiguration, read_env_file, write_config, write_env_file
from schemahub.core.container import SchemaHubContainer
from schemahub.core.utils import json_decode

import pytest


def test_defaults() -> None:
    config = Config()

    assert config.port == 8990
    assert config.allow_schema_deletion is False
    assert config.schema_format == "avro"
    assert config.subject_naming_strategy == "default"
    assert config.registry_client_cached is True
    assert config.content_type_prefix == "vnd"


def test_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SCHEMAHUB_ALLOW_SCHEMA_DELETION", "true")
    monkeypatch.setenv("SCHEMAHUB_SUBJECT_NAMING_STRATEGY", "qualified")
    monkeypatch.setenv("SCHEMAHUB_REGISTRY_CACHE_TTL", "0")

    config = Config()

    assert config.allow_schema_deletion is True
    assert config.subject_naming_strategy == "qualified"
    assert config.registry_cache_ttl == 0


def test_set_config_defaults_copies() -> None:
    config = Config()

    updated = config.set_config_defaults({"registry_url": "http://registry:8990", "registry_client_cached": False})

    assert updated.registry_url == "http://registry:8990"
    assert updated.registry_client_cached is False
    assert config.registry_url == "http://localhost:8990"


@pytest.mark.parametrize(
    "overrides",
    [
        {"subject_naming_strategy": "topic"},
        {"schema_format": "protobuf"},
        {"registry_cache_maxsize": 0},
        {"registry_cache_ttl": -1},
        {"content_type_prefix": ""},
        {"content_type_prefix": "vnd.acme"},
    ],
)
def test_invalid_configuration(overrides: dict[str, object]) -> None:
    with pytest.raises(InvalidConfiguration):
        Config().set_config_defaults(overrides)


def test_write_and_read_env_file(tmp_path: Path) -> None:
    config = Config().set_config_defaults({"port": 9000, "subject_naming_strategy": "qualified"})
    env_path = tmp_path / ".env"

    write_env_file(env_path, config)

    assert "SCHEMAHUB_PORT=9000" in env_path.read_text().splitlines()
    read_back = read_env_file(str(env_path))
    assert read_back.port == 9000
    assert read_back.subject_naming_strategy == "qualified"


def test_write_config(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"

    write_config(config_path, Config().set_config_defaults({"port": 9001}))

    assert json_decode(config_path.read_text())["port"] == 9001


def test_container_config() -> None:
    container = SchemaHubContainer()

    assert container.config() is container.config()
