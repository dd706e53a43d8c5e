"""
Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from dependency_injector import containers, providers
from schemahub.api.controller import SchemaRegistryController
from schemahub.core.container import SchemaHubContainer
from schemahub.core.in_memory_database import InMemorySchemaStore
from schemahub.core.schema_registry import SchemaRegistry
from schemahub.core.validators import FormatValidatorRegistry


class SchemaRegistryContainer(containers.DeclarativeContainer):
    schemahub_container = providers.Container(SchemaHubContainer)

    schema_store = providers.Singleton(InMemorySchemaStore)

    validators = providers.Singleton(FormatValidatorRegistry)

    schema_registry = providers.Singleton(
        SchemaRegistry,
        config=schemahub_container.config,
        store=schema_store,
        validators=validators,
    )

    schema_registry_controller = providers.Singleton(
        SchemaRegistryController,
        schema_registry=schema_registry,
    )
