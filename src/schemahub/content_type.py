"""
schemahub - schema reference content types

Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from email.message import Message as EmailMessage
from schemahub.core.dataclasses import default_dataclass
from schemahub.core.errors import InvalidVersion
from schemahub.core.typing import Subject, Version
from typing import Final

import logging
import re

LOG = logging.getLogger(__name__)

CONTENT_TYPE_HEADER: Final = "contentType"
DEFAULT_CONTENT_TYPE_PREFIX: Final = "vnd"

# application/{prefix}.{subject}.v{version}+{format}, the subject may contain dots.
SCHEMA_CONTENT_TYPE_RE: Final = re.compile(
    r"^application/(?P<prefix>[^./+]+)\.(?P<subject>.+)\.v(?P<version>\d+)\+(?P<schema_format>[^+./]+)$"
)


class InvalidContentType(ValueError):
    pass


@default_dataclass
class SchemaContentType:
    subject: Subject
    version: Version
    schema_format: str
    prefix: str = DEFAULT_CONTENT_TYPE_PREFIX

    def __str__(self) -> str:
        return f"application/{self.prefix}.{self.subject}.v{self.version}+{self.schema_format}"


def parse_content_type(value: str) -> SchemaContentType:
    message = EmailMessage()
    message["Content-Type"] = value
    params = message.get_params()
    if not params:
        raise InvalidContentType(f"Empty content type: {value!r}")
    media_type = params[0][0].strip()

    match = SCHEMA_CONTENT_TYPE_RE.match(media_type)
    if match is None:
        raise InvalidContentType(f"Content type {value!r} does not reference a schema")
    try:
        version = Version(int(match.group("version")))
    except InvalidVersion as e:
        raise InvalidContentType(f"Content type {value!r} has an invalid version") from e
    return SchemaContentType(
        prefix=match.group("prefix"),
        subject=Subject(match.group("subject")),
        version=version,
        schema_format=match.group("schema_format").lower(),
    )
