"""
Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from fastapi import HTTPException, status
from schemahub.api.routers.errors import SchemaErrorCodes
from schemahub.api.routers.requests import SchemaRequest, SchemaResponse
from schemahub.core.errors import (
    InvalidReferences,
    InvalidSchema,
    InvalidSubject,
    InvalidVersion,
    SchemaDeletionNotAllowed,
    SchemaNotFound,
    UnsupportedFormat,
)
from schemahub.core.schema_models import SchemaRecord
from schemahub.core.schema_registry import SchemaRegistry
from schemahub.core.typing import SchemaId, Subject, Version
from typing import TypeVar

import logging

LOG = logging.getLogger(__name__)

T = TypeVar("T")


def _error(status_code: int, error_code: SchemaErrorCodes, message: str) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={
            "error_code": error_code.value,
            "message": message,
        },
    )


class SchemaRegistryController:
    def __init__(self, schema_registry: SchemaRegistry) -> None:
        self.schema_registry = schema_registry

    async def _call(self, operation: Callable[[], Awaitable[T]]) -> T:
        try:
            return await operation()
        except UnsupportedFormat as exc:
            raise _error(status.HTTP_400_BAD_REQUEST, SchemaErrorCodes.UNSUPPORTED_FORMAT, str(exc)) from exc
        except InvalidReferences as exc:
            raise _error(status.HTTP_400_BAD_REQUEST, SchemaErrorCodes.INVALID_REFERENCES, str(exc)) from exc
        except InvalidSchema as exc:
            raise _error(status.HTTP_400_BAD_REQUEST, SchemaErrorCodes.INVALID_SCHEMA, str(exc)) from exc
        except InvalidSubject as exc:
            raise _error(status.HTTP_400_BAD_REQUEST, SchemaErrorCodes.INVALID_SUBJECT, str(exc)) from exc
        except InvalidVersion as exc:
            raise _error(status.HTTP_404_NOT_FOUND, SchemaErrorCodes.SCHEMA_NOT_FOUND, str(exc)) from exc
        except SchemaNotFound as exc:
            raise _error(status.HTTP_404_NOT_FOUND, SchemaErrorCodes.SCHEMA_NOT_FOUND, str(exc)) from exc
        except SchemaDeletionNotAllowed as exc:
            raise _error(
                status.HTTP_405_METHOD_NOT_ALLOWED, SchemaErrorCodes.SCHEMA_DELETION_NOT_ALLOWED, str(exc)
            ) from exc

    async def register(self, *, schema_request: SchemaRequest) -> SchemaResponse:
        async def _register() -> SchemaRecord:
            return await self.schema_registry.register(
                subject=Subject(schema_request.subject),
                schema_format=schema_request.schema_format,
                definition=schema_request.definition,
                references=[reference.to_reference() for reference in schema_request.references],
            )

        record = await self._call(_register)
        return SchemaResponse.from_record(record)

    async def get_schema_version(self, *, subject: Subject, schema_format: str, version: int) -> SchemaResponse:
        async def _get() -> SchemaRecord:
            return self.schema_registry.get_schema_version(
                subject=subject, schema_format=schema_format, version=Version(version)
            )

        return SchemaResponse.from_record(await self._call(_get))

    async def get_schema_versions(self, *, subject: Subject, schema_format: str) -> list[SchemaResponse]:
        async def _get() -> list[SchemaRecord]:
            return self.schema_registry.get_schema_versions(subject=subject, schema_format=schema_format)

        return [SchemaResponse.from_record(record) for record in await self._call(_get)]

    async def get_schema_by_id(self, *, schema_id: SchemaId) -> SchemaResponse:
        async def _get() -> SchemaRecord:
            return self.schema_registry.get_schema_by_id(schema_id=schema_id)

        return SchemaResponse.from_record(await self._call(_get))

    async def delete_schema_version(self, *, subject: Subject, schema_format: str, version: int) -> SchemaResponse:
        async def _delete() -> SchemaRecord:
            self.schema_registry.check_deletion_allowed()
            return await self.schema_registry.delete_schema_version(
                subject=subject, schema_format=schema_format, version=Version(version)
            )

        return SchemaResponse.from_record(await self._call(_delete))

    async def delete_schema_by_id(self, *, schema_id: SchemaId) -> SchemaResponse:
        async def _delete() -> SchemaRecord:
            return await self.schema_registry.delete_schema_by_id(schema_id=schema_id)

        return SchemaResponse.from_record(await self._call(_delete))

    async def delete_subject(self, *, subject: Subject) -> list[SchemaResponse]:
        async def _delete() -> list[SchemaRecord]:
            return await self.schema_registry.delete_subject(subject=subject)

        return [SchemaResponse.from_record(record) for record in await self._call(_delete)]
