"""
Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from dependency_injector.wiring import inject, Provide
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from schemahub.api.container import SchemaRegistryContainer
from schemahub.core.schema_registry import SchemaRegistry


class HealthStatus(BaseModel):
    schema_registry_ready: bool
    schema_registry_formats: list[str]
    schema_registry_schema_count: int


class HealthCheck(BaseModel):
    status: HealthStatus
    healthy: bool


health_router = APIRouter(
    prefix="/_health",
    tags=["health"],
    responses={404: {"description": "Not found"}},
)


@health_router.get("")
@inject
async def health(
    schema_registry: SchemaRegistry = Depends(Provide[SchemaRegistryContainer.schema_registry]),
) -> HealthCheck:
    health_status = HealthStatus(
        schema_registry_ready=schema_registry.ready,
        schema_registry_formats=schema_registry.validators.formats(),
        schema_registry_schema_count=schema_registry.store.num_schemas(),
    )
    if not schema_registry.ready:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return HealthCheck(status=health_status, healthy=True)
