"""
schemahub - Schema records in memory database

Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from schemahub.core.errors import VersionConflict
from schemahub.core.schema_models import SchemaRecord
from schemahub.core.typing import SchemaId, Subject, Version
from threading import Lock, RLock

import logging

LOG = logging.getLogger(__name__)


class SchemaStore(ABC):
    @abstractmethod
    def find_schemas(self, *, subject: Subject, schema_format: str) -> list[SchemaRecord]:
        """All versions of (subject, format), ascending by version."""

    @abstractmethod
    def find_schema(self, *, subject: Subject, schema_format: str, version: Version) -> SchemaRecord | None:
        pass

    @abstractmethod
    def find_schema_by_id(self, *, schema_id: SchemaId) -> SchemaRecord | None:
        pass

    @abstractmethod
    def find_subject_schemas(self, *, subject: Subject) -> list[SchemaRecord]:
        pass

    @abstractmethod
    def insert_schema(
        self,
        *,
        subject: Subject,
        schema_format: str,
        version: Version,
        definition: str,
        references: Sequence[SchemaRecord],
    ) -> SchemaRecord:
        """Store a new record under a fresh id.

        Raises VersionConflict when (subject, format, version) is taken.
        """

    @abstractmethod
    def delete_schema(self, *, record: SchemaRecord) -> None:
        pass

    @abstractmethod
    def num_schemas(self) -> int:
        pass


class InMemorySchemaStore(SchemaStore):
    def __init__(self) -> None:
        self.global_schema_id = SchemaId(0)
        self.id_lock_thread = Lock()
        self.records: dict[tuple[Subject, str], dict[Version, SchemaRecord]] = {}
        self.records_by_id: dict[SchemaId, SchemaRecord] = {}
        self.schema_lock_thread = RLock()

    def _next_schema_id(self) -> SchemaId:
        with self.id_lock_thread:
            self.global_schema_id = SchemaId(self.global_schema_id + 1)
            return self.global_schema_id

    def find_schemas(self, *, subject: Subject, schema_format: str) -> list[SchemaRecord]:
        with self.schema_lock_thread:
            versions = self.records.get((subject, schema_format), {})
            return [versions[version] for version in sorted(versions)]

    def find_schema(self, *, subject: Subject, schema_format: str, version: Version) -> SchemaRecord | None:
        with self.schema_lock_thread:
            return self.records.get((subject, schema_format), {}).get(version)

    def find_schema_by_id(self, *, schema_id: SchemaId) -> SchemaRecord | None:
        with self.schema_lock_thread:
            return self.records_by_id.get(schema_id)

    def find_subject_schemas(self, *, subject: Subject) -> list[SchemaRecord]:
        with self.schema_lock_thread:
            found = [
                record
                for (record_subject, _), versions in self.records.items()
                if record_subject == subject
                for record in versions.values()
            ]
        return sorted(found, key=lambda record: (record.schema_format, record.version))

    def insert_schema(
        self,
        *,
        subject: Subject,
        schema_format: str,
        version: Version,
        definition: str,
        references: Sequence[SchemaRecord],
    ) -> SchemaRecord:
        with self.schema_lock_thread:
            versions = self.records.setdefault((subject, schema_format), {})
            if version in versions:
                raise VersionConflict(f"Version {version} of {subject}/{schema_format} already exists")
            record = SchemaRecord(
                schema_id=self._next_schema_id(),
                subject=subject,
                schema_format=schema_format,
                version=version,
                definition=definition,
                references=tuple(references),
            )
            versions[version] = record
            self.records_by_id[record.schema_id] = record
            LOG.info("Stored schema %s/%s v%s with id %s", subject, schema_format, version, record.schema_id)
            return record

    def delete_schema(self, *, record: SchemaRecord) -> None:
        with self.schema_lock_thread:
            key = (record.subject, record.schema_format)
            versions = self.records.get(key)
            if versions is not None:
                versions.pop(record.version, None)
                if not versions:
                    del self.records[key]
            self.records_by_id.pop(record.schema_id, None)

    def num_schemas(self) -> int:
        with self.schema_lock_thread:
            return len(self.records_by_id)
