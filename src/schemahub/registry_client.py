"""
schemahub - schema registry client

Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from aiohttp import BasicAuth, ClientError
from collections.abc import Awaitable, Callable, Sequence
from schemahub.api.routers.errors import SchemaErrorCodes
from schemahub.client import Client, Result
from schemahub.core.config import Config
from schemahub.core.errors import (
    InvalidReferences,
    InvalidSchema,
    InvalidSubject,
    SchemaDeletionNotAllowed,
    SchemaNotFound,
    UnsupportedFormat,
)
from schemahub.core.schema_models import SchemaRecord, SchemaReference
from schemahub.core.typing import JsonData, SchemaId, Subject, Version
from schemahub.core.utils import KeyedLock
from schemahub.schema_cache import cache_manager_from_config, REGISTRY_RECORDS_CACHE, SchemaCacheManager
from typing import cast
from urllib.parse import quote

import asyncio
import logging

LOG = logging.getLogger(__name__)

RecordKey = tuple[Subject, str, Version]


class RegistryUnavailable(Exception):
    """The registry could not be reached or failed to answer."""


class RegistryError(Exception):
    """The registry answered with an unexpected error or response."""


def _error_message(result: Result) -> tuple[int | None, str]:
    body = result.json()
    if isinstance(body, dict):
        error_code = body.get("error_code")
        return (error_code if isinstance(error_code, int) else None), str(body.get("message", body))
    return None, str(body)


def raise_for_result(result: Result) -> None:
    if result.ok:
        return
    error_code, message = _error_message(result)
    status = result.status_code
    if status >= 500:
        raise RegistryUnavailable(f"Schema registry error {status}: {message}")
    if status == 404:
        raise SchemaNotFound(message)
    if status == 405:
        raise SchemaDeletionNotAllowed(message)
    if status == 400:
        if error_code == SchemaErrorCodes.UNSUPPORTED_FORMAT.value:
            raise UnsupportedFormat(message)
        if error_code == SchemaErrorCodes.INVALID_REFERENCES.value:
            raise InvalidReferences(message)
        if error_code == SchemaErrorCodes.INVALID_SUBJECT.value:
            raise InvalidSubject(message)
        raise InvalidSchema(message)
    raise RegistryError(f"Unexpected schema registry response {status}: {message}")


class SchemaRegistryClient:
    """Async client of the schema registry HTTP API.

    Fetched records are cached by id and by (subject, format, version). A record
    is immutable once stored so cached entries never go stale, only missing when
    deleted remotely. Concurrent lookups of the same missing key share one
    remote call.
    """

    def __init__(
        self,
        schema_registry_url: str = "http://localhost:8990",
        server_ca: str | None = None,
        session_auth: BasicAuth | None = None,
        cache_manager: SchemaCacheManager | None = None,
        timeout: float | None = None,
        client: Client | None = None,
    ) -> None:
        self.base_url = schema_registry_url
        self.client = client or Client(
            server_uri=schema_registry_url,
            server_ca=server_ca,
            session_auth=session_auth,
            timeout=timeout,
        )
        self.cache_manager = cache_manager if cache_manager is not None else SchemaCacheManager()
        self._records = self.cache_manager.get_cache(REGISTRY_RECORDS_CACHE)
        self._locks = KeyedLock()

    @classmethod
    def from_config(cls, config: Config, cache_manager: SchemaCacheManager | None = None) -> SchemaRegistryClient:
        session_auth = None
        if config.registry_user is not None:
            session_auth = BasicAuth(config.registry_user, config.registry_password or "")
        return cls(
            schema_registry_url=config.registry_url,
            server_ca=config.registry_ca,
            session_auth=session_auth,
            cache_manager=cache_manager if cache_manager is not None else cache_manager_from_config(config),
            timeout=config.registry_request_timeout,
        )

    async def _call(self, request: Awaitable[Result]) -> Result:
        try:
            result = await request
        except (ClientError, asyncio.TimeoutError) as e:
            raise RegistryUnavailable(f"Schema registry at {self.base_url} is unavailable: {e!r}") from e
        raise_for_result(result)
        return result

    async def _cached(self, key: tuple, loader: Callable[[], Awaitable[SchemaRecord]]) -> SchemaRecord:
        cached = self._records.get(key)
        if cached is not None:
            return cached
        async with self._locks.lock(key):
            # Another task may have filled the entry while this one waited.
            cached = self._records.get(key)
            if cached is not None:
                return cached
            record = await loader()
            self._store(record)
            return record

    def _store(self, record: SchemaRecord) -> None:
        self._records.set(("id", record.schema_id), record)
        self._records.set(("version", *record.key), record)

    async def _record_from_json(self, json_result: JsonData, explored: frozenset[RecordKey]) -> SchemaRecord:
        if not isinstance(json_result, dict):
            raise RegistryError(f"Invalid result format: {json_result!r}")
        try:
            references = [
                SchemaReference.from_dict(data) for data in cast(list, json_result.get("references") or [])
            ]
            subject = Subject(cast(str, json_result["subject"]))
            schema_format = cast(str, json_result["format"])
            version = Version(cast(int, json_result["version"]))
            schema_id = SchemaId(cast(int, json_result["id"]))
            definition = cast(str, json_result["definition"])
        except (KeyError, TypeError, ValueError) as e:
            raise RegistryError(f"Invalid result format: {json_result!r}") from e

        explored = explored | {(subject, schema_format, version)}
        resolved = []
        for reference in references:
            resolved.append(await self._fetch(reference.subject, reference.schema_format, reference.version, explored))
        return SchemaRecord(
            schema_id=schema_id,
            subject=subject,
            schema_format=schema_format,
            version=version,
            definition=definition,
            references=tuple(resolved),
        )

    async def _fetch(
        self,
        subject: Subject,
        schema_format: str,
        version: Version,
        explored: frozenset[RecordKey],
    ) -> SchemaRecord:
        if (subject, schema_format, version) in explored:
            raise InvalidSchema(
                f"The schema has at least a cycle in dependencies, "
                f"one path of the cycle is given by the following nodes: {sorted(map(str, explored))}"
            )

        async def _load() -> SchemaRecord:
            path = f"{quote(subject, safe='')}/{quote(schema_format, safe='')}/v{version}"
            result = await self._call(self.client.get(path))
            return await self._record_from_json(result.json(), explored)

        return await self._cached(("version", subject, schema_format, version), _load)

    async def register_record(
        self,
        subject: Subject,
        schema_format: str,
        definition: str,
        references: Sequence[SchemaReference] = (),
    ) -> SchemaRecord:
        payload = {
            "subject": str(subject),
            "format": schema_format,
            "definition": definition,
            "references": [reference.to_dict() for reference in references],
        }
        result = await self._call(self.client.post("", json=payload))
        record = await self._record_from_json(result.json(), frozenset())
        self._store(record)
        LOG.debug("Registered %r as id %r", record.to_reference(), record.schema_id)
        return record

    async def register(
        self,
        subject: Subject,
        schema_format: str,
        definition: str,
        references: Sequence[SchemaReference] = (),
    ) -> SchemaId:
        record = await self.register_record(subject, schema_format, definition, references)
        return record.schema_id

    async def fetch(self, subject: Subject, schema_format: str, version: Version) -> SchemaRecord:
        return await self._fetch(subject, schema_format, version, frozenset())

    async def fetch_by_id(self, schema_id: SchemaId) -> SchemaRecord:
        async def _load() -> SchemaRecord:
            result = await self._call(self.client.get(f"schemas/{schema_id}"))
            return await self._record_from_json(result.json(), frozenset())

        return await self._cached(("id", schema_id), _load)

    async def fetch_latest(self, subject: Subject, schema_format: str) -> SchemaRecord:
        result = await self._call(self.client.get(f"{quote(subject, safe='')}/{quote(schema_format, safe='')}"))
        versions = result.json()
        if not isinstance(versions, list) or not versions:
            raise RegistryError(f"Invalid result format: {versions!r}")
        return await self._record_from_json(versions[-1], frozenset())

    async def close(self) -> None:
        await self.client.close()
