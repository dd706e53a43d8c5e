"""
schemahub - format validators

Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from avro.errors import AvroException
from avro.name import Names
from collections.abc import Iterable, Iterator, Sequence
from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError
from referencing import Registry, Resource
from referencing.exceptions import NoSuchResource, Unresolvable
from referencing.jsonschema import DRAFT7
from schemahub.core.errors import InvalidSchema, UnsupportedFormat
from schemahub.core.schema_models import ParsedSchema, SchemaRecord
from schemahub.core.schema_type import SchemaFormat
from schemahub.core.typing import JsonData, Subject, Version
from schemahub.core.utils import json_decode, json_encode, JSONDecodeError
from typing import Any

import avro.schema
import logging

LOG = logging.getLogger(__name__)

RecordKey = tuple[Subject, str, Version]


class FormatValidator(ABC):
    """Parses and compares definitions of one schema format.

    References are parsed depth-first in list order into one parser context
    shared with the definition being parsed, so named types defined by a
    reference are visible to the definitions parsed after it.
    """

    @abstractmethod
    def get_format(self) -> str:
        pass

    @abstractmethod
    def new_context(self) -> Any:
        """Create an empty parser context."""

    @abstractmethod
    def parse_definition(self, context: Any, definition: str, record: SchemaRecord | None) -> ParsedSchema:
        """Parse a single definition into `context`.

        `record` is the stored record owning the definition when it is parsed
        as a reference, None for the top level definition.
        """

    def add_import(self, context: Any, parsed: ParsedSchema) -> None:
        """Make a statically loaded schema visible to definitions parsed later in `context`."""

    def standalone_definition(self, context: Any, parsed: ParsedSchema) -> str:
        """`parsed` as a definition that needs no references."""
        return parsed.definition

    def parse(self, definition: str, references: Sequence[SchemaRecord] = ()) -> ParsedSchema:
        context = self.new_context()
        self._parse_references(context, references, in_progress=set(), parsed=set())
        parsed = self.parse_definition(context, definition, None)
        return ParsedSchema(
            schema_format=parsed.schema_format,
            definition=definition,
            schema=parsed.schema,
            canonical=parsed.canonical,
            references=tuple(references),
            validator=parsed.validator,
            structure=parsed.structure,
        )

    def _parse_references(
        self,
        context: Any,
        references: Sequence[SchemaRecord],
        *,
        in_progress: set[RecordKey],
        parsed: set[RecordKey],
    ) -> None:
        for reference in references:
            if reference.key in parsed:
                continue
            if reference.key in in_progress:
                raise InvalidSchema(f"Circular reference detected at {reference.to_reference()!r}")
            if reference.schema_format != self.get_format():
                raise InvalidSchema(
                    f"Reference {reference.to_reference()!r} is of format '{reference.schema_format}', "
                    f"expected '{self.get_format()}'"
                )
            in_progress.add(reference.key)
            self._parse_references(context, reference.references, in_progress=in_progress, parsed=parsed)
            self.parse_definition(context, reference.definition, reference)
            in_progress.remove(reference.key)
            parsed.add(reference.key)

    def is_valid(self, definition: str, references: Sequence[SchemaRecord] = ()) -> bool:
        try:
            self.parse(definition, references)
        except InvalidSchema:
            return False
        return True

    def validate(self, definition: str, references: Sequence[SchemaRecord] = ()) -> None:
        self.parse(definition, references)

    def match(
        self,
        candidates: Iterable[SchemaRecord],
        definition: str,
        references: Sequence[SchemaRecord] = (),
    ) -> SchemaRecord | None:
        target = self.parse(definition, references)
        for candidate in candidates:
            try:
                parsed_candidate = self.parse(candidate.definition, candidate.references)
            except InvalidSchema as e:
                LOG.warning("Stored schema %r no longer parses, skipping it: %s", candidate.to_reference(), e)
                continue
            if parsed_candidate == target:
                return candidate
        return None


def _without_docs(node: Any) -> Any:
    """Avro schema JSON without `doc` attributes, defaults are left untouched."""
    if isinstance(node, list):
        return [_without_docs(item) for item in node]
    if not isinstance(node, dict):
        return node
    stripped = {}
    for key, value in node.items():
        if key == "doc":
            continue
        if key in ("type", "items", "values", "fields"):
            value = _without_docs(value)
        stripped[key] = value
    return stripped


class AvroSchemaValidator(FormatValidator):
    def get_format(self) -> str:
        return SchemaFormat.AVRO.value

    def new_context(self) -> Names:
        return Names()

    def standalone_definition(self, context: Names, parsed: ParsedSchema) -> str:
        # Named types coming from the context are written out in full at their first use.
        return json_encode(parsed.schema.to_json())

    def parse_definition(self, context: Names, definition: str, record: SchemaRecord | None) -> ParsedSchema:
        try:
            schema_json = json_decode(definition)
        except JSONDecodeError as e:
            raise InvalidSchema(f"Invalid JSON: {e}") from e

        try:
            # A bare name refers to a named type brought in by a reference.
            if isinstance(schema_json, str) and context.has_name(schema_json, None):
                schema = context.get_name(schema_json, None)
            else:
                schema = avro.schema.make_avsc_object(schema_json, context)
        except (AvroException, TypeError, ValueError) as e:
            raise InvalidSchema(f"Invalid Avro schema: {e}") from e

        structure = _without_docs(schema.to_json())
        return ParsedSchema(
            schema_format=self.get_format(),
            definition=definition,
            schema=schema,
            canonical=json_encode(structure, sort_keys=True),
            structure=structure,
        )


class JsonSchemaContext:
    def __init__(self) -> None:
        self.resources: list[tuple[str, Resource]] = []

    def add(self, uris: Iterable[str], document: JsonData) -> None:
        resource = Resource.from_contents(document, default_specification=DRAFT7)
        for uri in uris:
            self.resources.append((uri, resource))

    def registry(self) -> Registry:
        return Registry().with_resources(self.resources)


def _external_refs(document: JsonData) -> Iterator[str]:
    if isinstance(document, dict):
        for key, value in document.items():
            if key == "$ref" and isinstance(value, str):
                if not value.startswith("#"):
                    yield value
            else:
                yield from _external_refs(value)
    elif isinstance(document, list):
        for item in document:
            yield from _external_refs(item)


def _inline_external_refs(node: JsonData, resolver: Any, seen: tuple[int, ...]) -> JsonData:
    """Replace every external `$ref` with the document it points at."""
    if isinstance(node, list):
        return [_inline_external_refs(item, resolver, seen) for item in node]
    if not isinstance(node, dict):
        return node
    ref = node.get("$ref")
    if isinstance(ref, str) and not ref.startswith("#"):
        try:
            resolved = resolver.lookup(ref)
        except Unresolvable as e:
            raise InvalidSchema(f"Unresolvable reference '{ref}'") from e
        if id(resolved.contents) in seen:
            raise InvalidSchema(f"Circular reference '{ref}'")
        return _inline_external_refs(resolved.contents, resolved.resolver, (*seen, id(resolved.contents)))
    return {key: _inline_external_refs(value, resolver, seen) for key, value in node.items()}


class JsonSchemaValidator(FormatValidator):
    """Draft 7 JSON Schema.

    A reference is registered under its `$id` when it declares one and
    always under its subject name, so a definition may point at it with
    `{"$ref": "<subject>"}`.
    """

    def get_format(self) -> str:
        return SchemaFormat.JSONSCHEMA.value

    def new_context(self) -> JsonSchemaContext:
        return JsonSchemaContext()

    def add_import(self, context: JsonSchemaContext, parsed: ParsedSchema) -> None:
        document = parsed.schema
        if not isinstance(document, dict):
            return
        uris = [uri for uri in (document.get("$id"), document.get("title")) if isinstance(uri, str) and uri]
        if uris:
            context.add(uris, document)

    def standalone_definition(self, context: JsonSchemaContext, parsed: ParsedSchema) -> str:
        document = parsed.schema
        base_uri = document.get("$id", "") if isinstance(document, dict) else ""
        return json_encode(_inline_external_refs(document, context.registry().resolver(base_uri=base_uri), ()))

    def parse_definition(self, context: JsonSchemaContext, definition: str, record: SchemaRecord | None) -> ParsedSchema:
        try:
            document = json_decode(definition)
        except JSONDecodeError as e:
            raise InvalidSchema(f"Invalid JSON: {e}") from e

        if not isinstance(document, (dict, bool)):
            raise InvalidSchema("A JSON schema must be an object or a boolean")

        try:
            Draft7Validator.check_schema(document)
        except SchemaError as e:
            raise InvalidSchema(f"Invalid JSON schema: {e.message}") from e

        registry = context.registry()
        base_uri = document.get("$id", "") if isinstance(document, dict) else ""
        resolver = registry.resolver(base_uri=base_uri)
        for ref in _external_refs(document):
            try:
                resolver.lookup(ref)
            except (Unresolvable, NoSuchResource) as e:
                raise InvalidSchema(f"Unresolvable reference '{ref}'") from e

        if record is not None:
            uris = [str(record.subject)]
            if base_uri:
                uris.append(base_uri)
            context.add(uris, document)

        return ParsedSchema(
            schema_format=self.get_format(),
            definition=definition,
            schema=document,
            canonical=json_encode(document, sort_keys=True),
            validator=Draft7Validator(document, registry=registry),
        )


class FormatValidatorRegistry:
    """Validators by format name, populated at startup."""

    def __init__(self, validators: Iterable[FormatValidator] | None = None) -> None:
        self._validators: dict[str, FormatValidator] = {}
        if validators is None:
            validators = (AvroSchemaValidator(), JsonSchemaValidator())
        for validator in validators:
            self.register(validator)

    def register(self, validator: FormatValidator) -> None:
        self._validators[validator.get_format()] = validator

    def get(self, schema_format: str) -> FormatValidator:
        try:
            return self._validators[schema_format]
        except KeyError:
            raise UnsupportedFormat(
                f"Unsupported schema format '{schema_format}', supported formats are {self.formats()}"
            ) from None

    def formats(self) -> list[str]:
        return sorted(self._validators)

    def __contains__(self, schema_format: object) -> bool:
        return schema_format in self._validators
