"""
Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from collections.abc import Sequence
from schemahub.core.config import Config
from schemahub.core.errors import (
    InvalidReferences,
    InvalidSubject,
    SchemaDeletionNotAllowed,
    SchemaNotFound,
    VersionConflict,
)
from schemahub.core.in_memory_database import InMemorySchemaStore, SchemaStore
from schemahub.core.schema_models import SchemaRecord, SchemaReference
from schemahub.core.typing import SchemaId, Subject, Version
from schemahub.core.utils import KeyedLock
from schemahub.core.validators import FormatValidatorRegistry

import logging

LOG = logging.getLogger(__name__)

# A store shared by several writers can reject a version picked by another
# writer. Registration then reloads the versions and tries again.
MAX_REGISTRATION_ATTEMPTS = 5


class SchemaRegistry:
    def __init__(
        self,
        config: Config,
        store: SchemaStore | None = None,
        validators: FormatValidatorRegistry | None = None,
    ) -> None:
        self.config = config
        self.store = store if store is not None else InMemorySchemaStore()
        self.validators = validators if validators is not None else FormatValidatorRegistry()
        self._locks = KeyedLock()
        self.ready = False

    async def start(self) -> None:
        self.ready = True
        LOG.info("Schema registry ready, supported formats: %s", self.validators.formats())

    async def close(self) -> None:
        self.ready = False

    def resolve_references(self, references: Sequence[SchemaReference]) -> tuple[SchemaRecord, ...]:
        resolved = []
        for reference in references:
            record = self.store.find_schema(
                subject=reference.subject,
                schema_format=reference.schema_format,
                version=reference.version,
            )
            if record is None:
                raise InvalidReferences(f"Referenced schema {reference!r} does not exist")
            resolved.append(record)
        return tuple(resolved)

    async def register(
        self,
        *,
        subject: Subject,
        schema_format: str,
        definition: str,
        references: Sequence[SchemaReference] = (),
    ) -> SchemaRecord:
        """Register a definition, returning the matching or the newly created record.

        Registering a definition structurally equal to an existing version of
        the same (subject, format) returns that version unchanged.
        """
        validator = self.validators.get(schema_format)
        try:
            subject = Subject.validate(subject)
        except ValueError as e:
            raise InvalidSubject(str(e)) from e

        resolved_references = self.resolve_references(references)
        validator.validate(definition, resolved_references)

        async with self._locks.lock((subject, schema_format)):
            for attempt in range(1, MAX_REGISTRATION_ATTEMPTS + 1):
                existing = self.store.find_schemas(subject=subject, schema_format=schema_format)
                if not existing:
                    version = Version(1)
                    LOG.debug("Registering new subject: %r, format: %r", subject, schema_format)
                else:
                    matching = validator.match(existing, definition, resolved_references)
                    if matching is not None:
                        LOG.debug("Schema %r matches existing id %r", matching.to_reference(), matching.schema_id)
                        return matching
                    version = existing[-1].version.next()
                    LOG.debug("Registering subject: %r, format: %r new version: %r", subject, schema_format, version)

                try:
                    return self.store.insert_schema(
                        subject=subject,
                        schema_format=schema_format,
                        version=version,
                        definition=definition,
                        references=resolved_references,
                    )
                except VersionConflict:
                    LOG.warning(
                        "Version %r of %r/%r taken concurrently, attempt %d", version, subject, schema_format, attempt
                    )
        raise VersionConflict(f"Could not assign a version for {subject}/{schema_format}")

    def get_schema_version(self, *, subject: Subject, schema_format: str, version: Version) -> SchemaRecord:
        record = self.store.find_schema(subject=subject, schema_format=schema_format, version=version)
        if record is None:
            raise SchemaNotFound(f"Schema {subject}/{schema_format} version {version} not found")
        return record

    def get_schema_versions(self, *, subject: Subject, schema_format: str) -> list[SchemaRecord]:
        records = self.store.find_schemas(subject=subject, schema_format=schema_format)
        if not records:
            raise SchemaNotFound(f"No schemas found for {subject}/{schema_format}")
        return records

    def get_latest_schema(self, *, subject: Subject, schema_format: str) -> SchemaRecord:
        return self.get_schema_versions(subject=subject, schema_format=schema_format)[-1]

    def get_schema_by_id(self, *, schema_id: SchemaId) -> SchemaRecord:
        record = self.store.find_schema_by_id(schema_id=schema_id)
        if record is None:
            raise SchemaNotFound(f"Schema id {schema_id} not found")
        return record

    def check_deletion_allowed(self) -> None:
        if not self.config.allow_schema_deletion:
            raise SchemaDeletionNotAllowed()

    async def delete_schema_version(self, *, subject: Subject, schema_format: str, version: Version) -> SchemaRecord:
        self.check_deletion_allowed()
        async with self._locks.lock((subject, schema_format)):
            record = self.get_schema_version(subject=subject, schema_format=schema_format, version=version)
            self.store.delete_schema(record=record)
        LOG.info("Deleted schema %r", record.to_reference())
        return record

    async def delete_schema_by_id(self, *, schema_id: SchemaId) -> SchemaRecord:
        self.check_deletion_allowed()
        record = self.get_schema_by_id(schema_id=schema_id)
        async with self._locks.lock((record.subject, record.schema_format)):
            self.store.delete_schema(record=record)
        LOG.info("Deleted schema %r with id %r", record.to_reference(), schema_id)
        return record

    async def delete_subject(self, *, subject: Subject) -> list[SchemaRecord]:
        self.check_deletion_allowed()
        records = self.store.find_subject_schemas(subject=subject)
        if not records:
            raise SchemaNotFound(f"Subject {subject} not found")
        for record in records:
            async with self._locks.lock((record.subject, record.schema_format)):
                self.store.delete_schema(record=record)
        LOG.info("Deleted subject %r, %d schemas", subject, len(records))
        return records
