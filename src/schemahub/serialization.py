"""
schemahub - schema resolution and payload codecs

Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from avro.errors import AvroException
from avro.io import BinaryDecoder, BinaryEncoder, DatumReader, DatumWriter
from collections.abc import Callable, Mapping
from copy import deepcopy
from dataclasses import dataclass, field, is_dataclass
from jsonschema import ValidationError
from pydantic import BaseModel, PydanticUserError, TypeAdapter
from schemahub.avro_dataclasses.introspect import record_schema, UnsupportedAnnotation
from schemahub.avro_dataclasses.models import as_avro_value, from_avro_dict
from schemahub.content_type import (
    CONTENT_TYPE_HEADER,
    InvalidContentType,
    parse_content_type,
    SchemaContentType,
)
from schemahub.core.config import Config
from schemahub.core.dataclasses import default_dataclass
from schemahub.core.errors import InvalidSchema
from schemahub.core.schema_models import ParsedSchema, SchemaRecord
from schemahub.core.schema_type import SchemaFormat
from schemahub.core.typing import NameStrategy, Subject
from schemahub.core.utils import json_decode, json_encode, JSONDecodeError
from schemahub.core.validators import FormatValidator, FormatValidatorRegistry
from schemahub.registry_client import SchemaRegistryClient
from schemahub.schema_cache import (
    cache_manager_from_config,
    OUTBOUND_SCHEMAS_CACHE,
    SchemaCacheManager,
    WRITER_SCHEMAS_CACHE,
)
from schemahub.schema_locations import load_schema_file, load_static_schemas
from typing import Any

import avro.io
import avro.schema
import io
import logging
import struct

LOG = logging.getLogger(__name__)


class SchemaResolutionError(Exception):
    """No schema could be determined for an outgoing payload."""


class InvalidMessageSchema(Exception):
    """The payload does not conform to the schema selected for it."""


class DeserializationError(Exception):
    pass


class InvalidMessageHeader(DeserializationError):
    pass


class InvalidPayload(DeserializationError):
    pass


class MissingDefaultError(DeserializationError):
    """A reader-only field declares no default value."""


class FieldTypeMismatchError(DeserializationError):
    """A field common to writer and reader has a different type in each."""


class DecodeConfigurationError(DeserializationError):
    """The decode request cannot be served with the configured reader schema."""


def default_naming_strategy(record_name: str, namespace: str | None, schema_format: str) -> Subject:
    return Subject(record_name.lower())


def qualified_naming_strategy(record_name: str, namespace: str | None, schema_format: str) -> Subject:
    return Subject(f"{namespace}.{record_name}" if namespace else record_name)


NamingStrategy = Callable[[str, "str | None", str], Subject]

NAME_STRATEGIES: dict[NameStrategy, NamingStrategy] = {
    NameStrategy.default: default_naming_strategy,
    NameStrategy.qualified: qualified_naming_strategy,
}


@dataclass(frozen=True)
class Message:
    value: bytes
    headers: Mapping[str, str] = field(default_factory=dict)

    def header(self, name: str) -> str | None:
        if name in self.headers:
            return self.headers[name]
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None


@dataclass(frozen=True)
class GenericRecord:
    """A payload carrying its own schema."""

    schema: ParsedSchema
    value: Any


@default_dataclass
class OutboundSchema:
    schema: ParsedSchema
    record: SchemaRecord

    @property
    def content_type(self) -> SchemaContentType:
        return SchemaContentType(
            subject=self.record.subject,
            version=self.record.version,
            schema_format=self.record.schema_format,
        )


class PayloadCodec(ABC):
    @abstractmethod
    def encode(self, schema: ParsedSchema, payload: object) -> bytes:
        pass

    @abstractmethod
    def decode(self, schema: ParsedSchema, data: bytes) -> Any:
        pass

    @abstractmethod
    def project(self, value: Any, writer: ParsedSchema, reader: ParsedSchema) -> Any:
        """Reshape a value decoded with the writer schema to the reader schema."""

    @abstractmethod
    def build(self, target_type: type, value: Any) -> Any:
        pass


class AvroCodec(PayloadCodec):
    def encode(self, schema: ParsedSchema, payload: object) -> bytes:
        if isinstance(payload, BaseModel):
            datum = as_avro_value(payload.model_dump())
        else:
            datum = as_avro_value(payload)
        buffer = io.BytesIO()
        try:
            DatumWriter(schema.schema).write(datum, BinaryEncoder(buffer))
        except (AvroException, TypeError, ValueError, struct.error) as e:
            raise InvalidMessageSchema(f"Object does not fit to stored schema: {e}") from e
        return buffer.getvalue()

    def decode(self, schema: ParsedSchema, data: bytes) -> Any:
        try:
            return DatumReader(schema.schema).read(BinaryDecoder(io.BytesIO(data)))
        except (AvroException, EOFError, IndexError, TypeError, ValueError, struct.error) as e:
            raise InvalidPayload(f"Cannot decode payload with writer schema: {e}") from e

    def project(self, value: Any, writer: ParsedSchema, reader: ParsedSchema) -> Any:
        return _project_avro(value, writer.schema, reader.schema, "")

    def build(self, target_type: type, value: Any) -> Any:
        if is_dataclass(target_type) and isinstance(value, Mapping):
            return from_avro_dict(target_type, value)
        return TypeAdapter(target_type).validate_python(value)


def _avro_default(reader_field: avro.schema.Field) -> Any:
    default = deepcopy(reader_field.default)
    field_type = reader_field.type
    if isinstance(field_type, avro.schema.UnionSchema):
        field_type = field_type.schemas[0]
    # Avro declares bytes defaults as strings of code points 0-255.
    if field_type.type in ("bytes", "fixed") and isinstance(default, str):
        return default.encode("latin-1")
    return default


def _branch_key(schema: avro.schema.Schema) -> str:
    if isinstance(schema, avro.schema.NamedSchema):
        return schema.fullname
    return schema.type


def _writer_branch(union: avro.schema.UnionSchema, value: Any) -> avro.schema.Schema | None:
    for branch in union.schemas:
        if avro.io.validate(branch, value):
            return branch
    return None


def _reader_branch(union: avro.schema.UnionSchema, writer: avro.schema.Schema) -> avro.schema.Schema | None:
    key = _branch_key(writer)
    for branch in union.schemas:
        if _branch_key(branch) == key:
            return branch
    return None


def _project_avro(  # pylint: disable=too-many-return-statements
    value: Any, writer: avro.schema.Schema, reader: avro.schema.Schema, path: str
) -> Any:
    if writer == reader:
        return value
    # Unions resolve to the branch the value was written with and the reader branch of the same type.
    if isinstance(writer, avro.schema.UnionSchema):
        writer_branch = _writer_branch(writer, value)
        if writer_branch is not None:
            return _project_avro(value, writer_branch, reader, path)
    elif isinstance(reader, avro.schema.UnionSchema):
        reader_branch = _reader_branch(reader, writer)
        if reader_branch is not None:
            return _project_avro(value, writer, reader_branch, path)
    elif writer.type == "array" and reader.type == "array" and isinstance(value, list):
        return [_project_avro(item, writer.items, reader.items, path) for item in value]
    elif writer.type == "map" and reader.type == "map" and isinstance(value, Mapping):
        return {key: _project_avro(item, writer.values, reader.values, path) for key, item in value.items()}
    elif writer.type == "record" and reader.type == "record" and isinstance(value, Mapping):
        writer_fields = {writer_field.name: writer_field for writer_field in writer.fields}
        projected = {}
        for reader_field in reader.fields:
            writer_field = writer_fields.get(reader_field.name)
            if writer_field is None:
                if not reader_field.has_default:
                    raise MissingDefaultError(
                        f"Field '{path}{reader_field.name}' is missing from the writer schema and has no default"
                    )
                projected[reader_field.name] = _avro_default(reader_field)
            else:
                projected[reader_field.name] = _project_avro(
                    value[reader_field.name], writer_field.type, reader_field.type, f"{path}{reader_field.name}."
                )
        return projected
    raise FieldTypeMismatchError(
        f"Field '{path.rstrip('.') or '<root>'}' has type {writer.to_json()!r} in the writer schema "
        f"and {reader.to_json()!r} in the reader schema"
    )


class JsonSchemaCodec(PayloadCodec):
    def encode(self, schema: ParsedSchema, payload: object) -> bytes:
        if isinstance(payload, BaseModel):
            datum = payload.model_dump(mode="json")
        elif is_dataclass(payload) and not isinstance(payload, type):
            datum = TypeAdapter(type(payload)).dump_python(payload, mode="json")
        else:
            datum = payload
        try:
            schema.validator.validate(datum)
        except ValidationError as e:
            raise InvalidMessageSchema(f"Object does not fit to stored schema: {e.message}") from e
        try:
            return json_encode(datum, binary=True)
        except (TypeError, ValueError) as e:
            raise InvalidMessageSchema(f"Object is not representable as JSON: {e}") from e

    def decode(self, schema: ParsedSchema, data: bytes) -> Any:
        try:
            value = json_decode(data)
        except (JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidPayload(f"Payload is not valid JSON: {e}") from e
        try:
            schema.validator.validate(value)
        except ValidationError as e:
            raise InvalidPayload(f"Payload does not conform to the writer schema: {e.message}") from e
        return value

    def project(self, value: Any, writer: ParsedSchema, reader: ParsedSchema) -> Any:
        return _project_json(value, writer.schema, reader.schema, "")

    def build(self, target_type: type, value: Any) -> Any:
        return TypeAdapter(target_type).validate_python(value)


def _json_type(schema: object) -> object:
    if isinstance(schema, dict):
        return schema.get("type")
    return None


def _project_json(value: Any, writer: object, reader: object, path: str) -> Any:
    if writer == reader:
        return value
    if isinstance(reader, dict) and "properties" in reader and isinstance(value, dict):
        writer_properties = writer.get("properties", {}) if isinstance(writer, dict) else {}
        required = set(reader.get("required", []))
        projected = {}
        for name, reader_property in reader["properties"].items():
            has_default = isinstance(reader_property, dict) and "default" in reader_property
            if name in writer_properties:
                if name in value:
                    projected[name] = _project_json(
                        value[name], writer_properties[name], reader_property, f"{path}{name}."
                    )
                elif has_default:
                    projected[name] = deepcopy(reader_property["default"])
            elif has_default:
                projected[name] = deepcopy(reader_property["default"])
            elif name in required:
                raise MissingDefaultError(f"Property '{path}{name}' is missing from the writer schema and has no default")
        return projected
    writer_type, reader_type = _json_type(writer), _json_type(reader)
    if writer_type is not None and reader_type is not None and writer_type != reader_type:
        raise FieldTypeMismatchError(
            f"Property '{path.rstrip('.') or '<root>'}' has type {writer_type!r} in the writer schema "
            f"and {reader_type!r} in the reader schema"
        )
    return value


CODECS: dict[str, PayloadCodec] = {
    SchemaFormat.AVRO.value: AvroCodec(),
    SchemaFormat.JSONSCHEMA.value: JsonSchemaCodec(),
}


def _candidate_names(payload_type: type) -> list[str]:
    return [f"{payload_type.__module__}.{payload_type.__qualname__}", payload_type.__qualname__, payload_type.__name__]


class SchemaResolver:
    """Maps payloads to registered schemas and back.

    Outgoing payloads are encoded with their schema and tagged with a content
    type naming the subject, version and format of the registered schema.
    Incoming messages are decoded with the writer schema named by their
    content type and projected onto the reader schema when one is configured.
    """

    def __init__(
        self,
        config: Config,
        registry_client: SchemaRegistryClient,
        *,
        cache_manager: SchemaCacheManager | None = None,
        validators: FormatValidatorRegistry | None = None,
        reader_schema: ParsedSchema | str | None = None,
        codecs: Mapping[str, PayloadCodec] | None = None,
    ) -> None:
        self.config = config
        self.registry_client = registry_client
        self.validators = validators if validators is not None else FormatValidatorRegistry()
        self.codecs = dict(codecs if codecs is not None else CODECS)
        self.naming_strategy = NAME_STRATEGIES[NameStrategy(config.subject_naming_strategy)]
        self.cache_manager = cache_manager if cache_manager is not None else cache_manager_from_config(config)
        self._outbound = self.cache_manager.get_cache(OUTBOUND_SCHEMAS_CACHE)
        self._writer_schemas = self.cache_manager.get_cache(WRITER_SCHEMAS_CACHE)

        default_validator = self.validators.get(config.schema_format)
        self.static_schemas = load_static_schemas(
            default_validator,
            imports=config.schema_imports,
            locations=config.schema_locations,
        )
        if self.static_schemas:
            LOG.info("Loaded %d static schemas", len(self.static_schemas))

        self.reader_schema: ParsedSchema | None
        if isinstance(reader_schema, str):
            self.reader_schema = default_validator.parse(reader_schema)
        elif reader_schema is None and config.reader_schema is not None:
            self.reader_schema = load_schema_file(default_validator, config.reader_schema)
        else:
            self.reader_schema = reader_schema

    @classmethod
    def from_config(cls, config: Config) -> SchemaResolver:
        cache_manager = cache_manager_from_config(config)
        registry_client = SchemaRegistryClient.from_config(config, cache_manager=cache_manager)
        return cls(config, registry_client, cache_manager=cache_manager)

    async def close(self) -> None:
        await self.registry_client.close()

    def _codec(self, schema_format: str) -> PayloadCodec:
        codec = self.codecs.get(schema_format)
        if codec is None:
            raise SchemaResolutionError(f"No codec for schema format '{schema_format}'")
        return codec

    def _validator(self, schema_format: str) -> FormatValidator:
        return self.validators.get(schema_format)

    def _generate_schema(self, payload_type: type, schema_format: str) -> ParsedSchema:
        try:
            if schema_format == SchemaFormat.AVRO.value:
                if not is_dataclass(payload_type):
                    raise SchemaResolutionError(f"Cannot generate an Avro schema for {payload_type!r}, not a dataclass")
                schema_json: Any = record_schema(payload_type, namespace=payload_type.__module__)
            else:
                schema_json = TypeAdapter(payload_type).json_schema()
        except (UnsupportedAnnotation, PydanticUserError) as e:
            raise SchemaResolutionError(f"Cannot generate a schema for {payload_type!r}: {e}") from e
        try:
            return self._validator(schema_format).parse(json_encode(schema_json))
        except InvalidSchema as e:
            raise SchemaResolutionError(f"Generated schema for {payload_type!r} is invalid: {e}") from e

    def _static_schema(self, payload_type: type, schema_format: str) -> ParsedSchema | None:
        for candidate in _candidate_names(payload_type):
            schema = self.static_schemas.get(candidate)
            if schema is not None and schema.schema_format == schema_format:
                return schema
        return None

    def _schema_for_type(self, payload_type: type, schema_format: str) -> ParsedSchema:
        if self.config.dynamic_schema_generation_enabled:
            return self._generate_schema(payload_type, schema_format)
        schema = self._static_schema(payload_type, schema_format)
        if schema is None:
            raise SchemaResolutionError(
                f"No schema found for {payload_type!r}, configure a schema location or enable dynamic schema generation"
            )
        return schema

    def _subject_for(self, schema: ParsedSchema, payload_type: type | None) -> Subject:
        if payload_type is not None and (self.config.dynamic_schema_generation_enabled or schema.name is None):
            return self.naming_strategy(payload_type.__name__, payload_type.__module__, schema.schema_format)
        if schema.name is None:
            raise SchemaResolutionError("Cannot derive a subject for a schema without a name")
        return self.naming_strategy(schema.name, schema.namespace, schema.schema_format)

    async def _register(self, schema: ParsedSchema, subject: Subject) -> SchemaRecord:
        return await self.registry_client.register_record(
            subject,
            schema.schema_format,
            schema.definition,
            [reference.to_reference() for reference in schema.references],
        )

    async def resolve_outbound(self, payload: object, schema_format: str | None = None) -> OutboundSchema:
        """Pick, register and cache the schema for a payload."""
        if isinstance(payload, GenericRecord):
            if schema_format is not None and schema_format != payload.schema.schema_format:
                raise SchemaResolutionError(
                    f"Record schema is '{payload.schema.schema_format}', requested format '{schema_format}'"
                )
            key: tuple = ("schema", payload.schema)
            payload_type = None
        else:
            schema_format = schema_format or self.config.schema_format
            payload_type = type(payload)
            key = ("type", schema_format, payload_type)

        cached = self._outbound.get(key)
        if cached is not None:
            return cached

        if isinstance(payload, GenericRecord):
            schema = payload.schema
        else:
            assert schema_format is not None
            schema = self._schema_for_type(type(payload), schema_format)

        subject = self._subject_for(schema, payload_type)
        record = await self._register(schema, subject)
        outbound = OutboundSchema(schema=schema, record=record)
        self._outbound.set(key, outbound)
        LOG.debug("Resolved %r to %r", payload_type or schema.fullname, record.to_reference())
        return outbound

    async def serialize(self, payload: object, schema_format: str | None = None) -> Message:
        outbound = await self.resolve_outbound(payload, schema_format)
        value = payload.value if isinstance(payload, GenericRecord) else payload
        data = self._codec(outbound.schema.schema_format).encode(outbound.schema, value)
        content_type = SchemaContentType(
            prefix=self.config.content_type_prefix,
            subject=outbound.record.subject,
            version=outbound.record.version,
            schema_format=outbound.record.schema_format,
        )
        return Message(value=data, headers={CONTENT_TYPE_HEADER: str(content_type)})

    async def writer_schema(self, content_type: SchemaContentType) -> ParsedSchema:
        key = (content_type.subject, content_type.schema_format, content_type.version)
        cached = self._writer_schemas.get(key)
        if cached is not None:
            return cached
        record = await self.registry_client.fetch(content_type.subject, content_type.schema_format, content_type.version)
        try:
            parsed = self._validator(record.schema_format).parse(record.definition, record.references)
        except InvalidSchema as e:
            raise DeserializationError(f"Writer schema {record.to_reference()!r} does not parse: {e}") from e
        self._writer_schemas.set(key, parsed)
        return parsed

    async def deserialize(self, message: Message, target_type: type | None = None) -> Any:
        header = message.header(CONTENT_TYPE_HEADER)
        if header is None:
            raise InvalidMessageHeader(f"Message has no '{CONTENT_TYPE_HEADER}' header")
        try:
            content_type = parse_content_type(header)
        except InvalidContentType as e:
            raise InvalidMessageHeader(str(e)) from e

        if target_type is not None and self.reader_schema is None:
            raise DecodeConfigurationError(
                f"Decoding into {target_type!r} requires a configured reader schema"
            )

        writer = await self.writer_schema(content_type)
        codec = self._codec(writer.schema_format)
        value = codec.decode(writer, message.value)

        reader = self.reader_schema if self.reader_schema is not None else writer
        if reader.schema_format != writer.schema_format:
            raise DecodeConfigurationError(
                f"Reader schema format '{reader.schema_format}' cannot read '{writer.schema_format}' payloads"
            )
        if reader != writer:
            value = codec.project(value, writer, reader)

        if target_type is None:
            return GenericRecord(schema=reader, value=value)
        try:
            return codec.build(target_type, value)
        except (TypeError, ValueError) as e:
            raise DeserializationError(f"Cannot build {target_type!r} from decoded value: {e}") from e
