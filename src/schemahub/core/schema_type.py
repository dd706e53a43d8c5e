"""
schemahub - schema formats

Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from enum import unique
from schemahub.core.typing import StrEnum


@unique
class SchemaFormat(StrEnum):
    """Formats with a built-in validator."""

    AVRO = "avro"
    JSONSCHEMA = "json"
