"""
Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Iterator
from dependency_injector import providers
from fastapi import FastAPI
from fastapi.testclient import TestClient
from schemahub.api.container import SchemaRegistryContainer
from schemahub.api.factory import create_schema_registry_application, schema_registry_lifespan
from schemahub.core.config import Config
from schemahub.core.container import SchemaHubContainer
from schemahub.core.schema_registry import SchemaRegistry
from schemahub.registry_client import SchemaRegistryClient
from schemahub.schema_cache import cache_manager_from_config
from schemahub.serialization import SchemaResolver
from tests.utils import AsgiClient

import pytest
import schemahub.api.controller
import schemahub.api.factory
import schemahub.api.routers.health
import schemahub.api.routers.schemas
import schemahub.api.routers.subjects


@pytest.fixture(name="allow_schema_deletion")
def fixture_allow_schema_deletion() -> bool:
    return True


@pytest.fixture(name="config")
def fixture_config(allow_schema_deletion: bool) -> Config:
    return Config().set_config_defaults(
        {
            "allow_schema_deletion": allow_schema_deletion,
            "log_level": "INFO",
        }
    )


@pytest.fixture(name="schemahub_container")
def fixture_schemahub_container(config: Config) -> SchemaHubContainer:
    return SchemaHubContainer(config=providers.Object(config))


@pytest.fixture(name="schema_registry")
def fixture_schema_registry(config: Config) -> SchemaRegistry:
    return SchemaRegistry(config)


@pytest.fixture(name="schema_registry_container")
def fixture_schema_registry_container(
    schemahub_container: SchemaHubContainer,
) -> Iterator[SchemaRegistryContainer]:
    container = SchemaRegistryContainer(schemahub_container=schemahub_container)
    container.wire(
        modules=[
            schemahub.api.controller,
            schemahub.api.factory,
            schemahub.api.routers.health,
            schemahub.api.routers.schemas,
            schemahub.api.routers.subjects,
        ]
    )
    yield container
    container.unwire()


@pytest.fixture(name="app")
def fixture_app(config: Config, schema_registry_container: SchemaRegistryContainer) -> FastAPI:
    return create_schema_registry_application(config=config, lifespan=schema_registry_lifespan)


@pytest.fixture(name="client")
def fixture_client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as client:
        yield client


@pytest.fixture(name="asgi_client")
async def fixture_asgi_client(app: FastAPI) -> AsyncIterator[AsgiClient]:
    client = AsgiClient(app)
    yield client
    await client.close()


@pytest.fixture(name="registry_client_factory")
def fixture_registry_client_factory(asgi_client: AsgiClient) -> Callable[..., SchemaRegistryClient]:
    def _create(**overrides: object) -> SchemaRegistryClient:
        config = Config().set_config_defaults(overrides)
        return SchemaRegistryClient(cache_manager=cache_manager_from_config(config), client=asgi_client)

    return _create


@pytest.fixture(name="resolver_factory")
def fixture_resolver_factory(asgi_client: AsgiClient) -> Callable[..., SchemaResolver]:
    """Resolvers talking to the same in-process registry.

    `reader_definition` is parsed as the reader schema, config overrides are
    passed as keyword arguments.
    """

    def _create(reader_definition: str | None = None, **overrides: object) -> SchemaResolver:
        config = Config().set_config_defaults(overrides)
        cache_manager = cache_manager_from_config(config)
        registry_client = SchemaRegistryClient(cache_manager=cache_manager, client=asgi_client)
        return SchemaResolver(config, registry_client, cache_manager=cache_manager, reader_schema=reader_definition)

    return _create
