"""
Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from dependency_injector.wiring import inject, Provide
from fastapi import APIRouter, Depends
from schemahub.api.container import SchemaRegistryContainer
from schemahub.api.controller import SchemaRegistryController
from schemahub.api.routers.requests import SchemaResponse
from schemahub.core.typing import SchemaId

schemas_router = APIRouter(
    prefix="/schemas",
    tags=["schemas"],
    responses={404: {"description": "Not found"}},
)


@schemas_router.get("/{schema_id}")
@inject
async def schemas_get(
    schema_id: int,
    controller: SchemaRegistryController = Depends(Provide[SchemaRegistryContainer.schema_registry_controller]),
) -> SchemaResponse:
    return await controller.get_schema_by_id(schema_id=SchemaId(schema_id))


@schemas_router.delete("/{schema_id}")
@inject
async def schemas_delete(
    schema_id: int,
    controller: SchemaRegistryController = Depends(Provide[SchemaRegistryContainer.schema_registry_controller]),
) -> SchemaResponse:
    return await controller.delete_schema_by_id(schema_id=SchemaId(schema_id))
