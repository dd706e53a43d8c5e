"""
schemahub - statically configured schemas

Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path
from schemahub.core.errors import InvalidSchema
from schemahub.core.schema_models import ParsedSchema
from schemahub.core.utils import json_decode, json_encode, JSONDecodeError
from schemahub.core.validators import FormatValidator

import logging

LOG = logging.getLogger(__name__)


class SchemaLocationError(Exception):
    pass


def read_schema_definitions(path: Path) -> list[str]:
    """Definitions stored in a file.

    A file holding a JSON array carries one definition per element, any
    other file is a single definition.
    """
    try:
        text = path.read_text(encoding="utf8")
    except OSError as e:
        raise SchemaLocationError(f"Cannot read schema file {path}: {e}") from e
    try:
        content = json_decode(text)
    except JSONDecodeError as e:
        raise SchemaLocationError(f"Schema file {path} is not valid JSON: {e}") from e
    if isinstance(content, list):
        return [json_encode(item) for item in content]
    return [text]


def expand_locations(locations: Iterable[Path]) -> list[Path]:
    """Files named directly, and the files of named directories in name order."""
    expanded: list[Path] = []
    for location in locations:
        if location.is_dir():
            expanded.extend(sorted(child for child in location.iterdir() if child.is_file()))
        else:
            expanded.append(location)
    return expanded


def load_static_schemas(
    validator: FormatValidator,
    *,
    imports: Sequence[Path] = (),
    locations: Sequence[Path] = (),
) -> dict[str, ParsedSchema]:
    """Parse imports then locations into one context, keyed by full and short name.

    Each returned schema carries a self-contained definition that can be
    registered without references.
    """
    context = validator.new_context()
    schemas: dict[str, ParsedSchema] = {}
    for path in expand_locations([*imports, *locations]):
        for definition in read_schema_definitions(path):
            try:
                parsed = validator.parse_definition(context, definition, None)
                validator.add_import(context, parsed)
                if parsed.name is None:
                    LOG.warning("Skipping unnamed schema in %s", path)
                    continue
                standalone = validator.parse(validator.standalone_definition(context, parsed))
            except InvalidSchema as e:
                raise SchemaLocationError(f"Invalid schema in {path}: {e}") from e
            assert parsed.fullname is not None
            schemas[parsed.fullname] = standalone
            schemas.setdefault(parsed.name, standalone)
            LOG.debug("Loaded schema %s from %s", parsed.fullname, path)
    return schemas


def load_schema_file(validator: FormatValidator, path: Path) -> ParsedSchema:
    definitions = read_schema_definitions(path)
    if len(definitions) != 1:
        raise SchemaLocationError(f"Expected a single schema in {path}, found {len(definitions)}")
    try:
        return validator.parse(definitions[0])
    except InvalidSchema as e:
        raise SchemaLocationError(f"Invalid schema in {path}: {e}") from e
