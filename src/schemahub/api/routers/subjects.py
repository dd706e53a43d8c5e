"""
Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from dependency_injector.wiring import inject, Provide
from fastapi import APIRouter, Depends, Request, Response, status
from schemahub.api.container import SchemaRegistryContainer
from schemahub.api.controller import SchemaRegistryController
from schemahub.api.routers.requests import SchemaRequest, SchemaResponse
from schemahub.core.typing import Subject
from urllib.parse import quote

subjects_router = APIRouter(
    tags=["subjects"],
    responses={404: {"description": "Not found"}},
)


@subjects_router.post("/", status_code=status.HTTP_201_CREATED)
@inject
async def subjects_register(
    request: Request,
    response: Response,
    schema_request: SchemaRequest,
    controller: SchemaRegistryController = Depends(Provide[SchemaRegistryContainer.schema_registry_controller]),
) -> SchemaResponse:
    registered = await controller.register(schema_request=schema_request)
    base_url = str(request.base_url).rstrip("/")
    response.headers["Location"] = (
        f"{base_url}/{quote(registered.subject, safe='')}/{quote(registered.schema_format, safe='')}/v{registered.version}"
    )
    return registered


@subjects_router.get("/{subject}/{schema_format}/v{version}")
@inject
async def subjects_version_get(
    subject: str,
    schema_format: str,
    version: int,
    controller: SchemaRegistryController = Depends(Provide[SchemaRegistryContainer.schema_registry_controller]),
) -> SchemaResponse:
    return await controller.get_schema_version(subject=Subject(subject), schema_format=schema_format, version=version)


@subjects_router.get("/{subject}/{schema_format}")
@inject
async def subjects_versions_list(
    subject: str,
    schema_format: str,
    controller: SchemaRegistryController = Depends(Provide[SchemaRegistryContainer.schema_registry_controller]),
) -> list[SchemaResponse]:
    return await controller.get_schema_versions(subject=Subject(subject), schema_format=schema_format)


@subjects_router.delete("/{subject}/{schema_format}/v{version}")
@inject
async def subjects_version_delete(
    subject: str,
    schema_format: str,
    version: int,
    controller: SchemaRegistryController = Depends(Provide[SchemaRegistryContainer.schema_registry_controller]),
) -> SchemaResponse:
    return await controller.delete_schema_version(subject=Subject(subject), schema_format=schema_format, version=version)


@subjects_router.delete("/{subject}")
@inject
async def subjects_delete(
    subject: str,
    controller: SchemaRegistryController = Depends(Provide[SchemaRegistryContainer.schema_registry_controller]),
) -> list[SchemaResponse]:
    return await controller.delete_subject(subject=Subject(subject))
