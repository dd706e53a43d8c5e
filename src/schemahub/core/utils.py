"""
schemahub - utils

Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from .typing import ArgJsonData, JsonData
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from json import JSONDecodeError  # noqa: F401 pylint: disable=unused-import
from types import MappingProxyType
from typing import IO, Literal, overload

import asyncio
import json


def _json_default(obj: object) -> str | dict:
    """Datetimes are written in UTC with the Z designator, naive ones are assumed UTC."""
    if isinstance(obj, datetime):
        if obj.tzinfo:
            obj = obj.astimezone(timezone.utc).replace(tzinfo=None)
        return obj.isoformat() + "Z"
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, MappingProxyType):
        return dict(obj)
    raise TypeError(f"Object of type {obj.__class__.__name__!r} is not JSON serializable")


@overload
def json_encode(obj: ArgJsonData, *, binary: Literal[False] = ..., sort_keys: bool = ..., indent: int | None = ...) -> str:
    ...


@overload
def json_encode(obj: ArgJsonData, *, binary: Literal[True], sort_keys: bool = ..., indent: int | None = ...) -> bytes:
    ...


def json_encode(
    obj: ArgJsonData, *, binary: bool = False, sort_keys: bool = False, indent: int | None = None
) -> str | bytes:
    """Compact JSON unless an indent is given."""
    separators = None if indent is not None else (",", ":")
    encoded = json.dumps(obj, default=_json_default, sort_keys=sort_keys, indent=indent, separators=separators)
    return encoded.encode("utf8") if binary else encoded


def json_decode(content: str | bytes | IO[str] | IO[bytes]) -> JsonData:
    if isinstance(content, (str, bytes)):
        return json.loads(content)
    return json.load(content)


class KeyedLock:
    """A map of asyncio locks, one per key.

    Locks are created on first use and dropped once no task holds or waits
    for them, so the map does not grow with the number of keys ever seen.
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._waiters: dict[Hashable, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def lock(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]
