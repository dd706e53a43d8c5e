"""
schemahub - message conversion

Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from schemahub.core.errors import InvalidSchema, SchemaNotFound, UnsupportedFormat
from schemahub.registry_client import RegistryError, RegistryUnavailable
from schemahub.serialization import (
    DeserializationError,
    InvalidMessageSchema,
    Message,
    SchemaResolutionError,
    SchemaResolver,
)
from schemahub.version import __version__
from typing import Any, Generic, TypeVar

import logging

LOG = logging.getLogger(__name__)
X_SCHEMAHUB_VERSION_HEADER = ("X-Schemahub-Version", f"schemahub-{__version__}")

# Failures that concern a single message. Anything else is a bug and propagates.
MESSAGE_ERRORS = (
    DeserializationError,
    InvalidMessageSchema,
    InvalidSchema,
    RegistryError,
    RegistryUnavailable,
    SchemaNotFound,
    SchemaResolutionError,
    UnsupportedFormat,
)

T = TypeVar("T")


@dataclass(frozen=True)
class Delivery(Generic[T]):
    """Outcome of converting one message, either a result or the error."""

    result: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class MessageConverter:
    """Converts batches message by message, a failing message never aborts the batch."""

    def __init__(self, resolver: SchemaResolver) -> None:
        self.resolver = resolver

    async def to_message(self, payload: object, schema_format: str | None = None) -> Delivery[Message]:
        try:
            message = await self.resolver.serialize(payload, schema_format)
        except MESSAGE_ERRORS as e:
            LOG.warning("Failed to convert payload of type %s: %s", type(payload).__name__, e)
            return Delivery(error=e)
        headers = {**message.headers, X_SCHEMAHUB_VERSION_HEADER[0]: X_SCHEMAHUB_VERSION_HEADER[1]}
        return Delivery(result=Message(value=message.value, headers=headers))

    async def from_message(self, message: Message, target_type: type | None = None) -> Delivery[Any]:
        try:
            return Delivery(result=await self.resolver.deserialize(message, target_type))
        except MESSAGE_ERRORS as e:
            LOG.warning("Failed to convert message with headers %r: %s", dict(message.headers), e)
            return Delivery(error=e)

    async def to_messages(self, payloads: Iterable[object], schema_format: str | None = None) -> list[Delivery[Message]]:
        return [await self.to_message(payload, schema_format) for payload in payloads]

    async def from_messages(self, messages: Iterable[Message], target_type: type | None = None) -> list[Delivery[Any]]:
        return [await self.from_message(message, target_type) for message in messages]
