"""
schemahub - client side schema caches

Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from cachetools import LRUCache, TTLCache
from collections.abc import Hashable, MutableMapping
from schemahub.core.config import Config
from threading import Lock
from typing import Any, Final

import logging

LOG = logging.getLogger(__name__)

REGISTRY_RECORDS_CACHE: Final = "schemahub.registry.records"
WRITER_SCHEMAS_CACHE: Final = "schemahub.resolver.writer-schemas"
OUTBOUND_SCHEMAS_CACHE: Final = "schemahub.resolver.outbound-schemas"


class SchemaCacheProtocol(ABC):
    @abstractmethod
    def get(self, key: Hashable) -> Any | None:
        pass

    @abstractmethod
    def set(self, key: Hashable, value: Any) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass


class SchemaCache(SchemaCacheProtocol):
    def __init__(self, maxsize: int = 1000, ttl: int = 600) -> None:
        self._lock = Lock()
        self._entries: MutableMapping[Hashable, Any]
        if ttl > 0:
            self._entries = TTLCache(maxsize=maxsize, ttl=ttl)
        else:
            self._entries = LRUCache(maxsize=maxsize)

    def get(self, key: Hashable) -> Any | None:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._entries[key] = value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class EmptySchemaCache(SchemaCacheProtocol):
    """Stores nothing, every lookup is a miss."""

    def get(self, key: Hashable) -> None:
        return None

    def set(self, key: Hashable, value: Any) -> None:
        pass

    def clear(self) -> None:
        pass

    def __len__(self) -> int:
        return 0


class SchemaCacheManager:
    """Named caches, created on first use and shared by name."""

    def __init__(self, maxsize: int = 1000, ttl: int = 600) -> None:
        self.maxsize = maxsize
        self.ttl = ttl
        self._caches: dict[str, SchemaCache] = {}
        self._lock = Lock()

    def get_cache(self, name: str) -> SchemaCacheProtocol:
        with self._lock:
            cache = self._caches.get(name)
            if cache is None:
                LOG.debug("Creating schema cache %r (maxsize=%d, ttl=%d)", name, self.maxsize, self.ttl)
                cache = self._caches[name] = SchemaCache(maxsize=self.maxsize, ttl=self.ttl)
            return cache

    def cache_names(self) -> list[str]:
        with self._lock:
            return sorted(self._caches)


class NoOpSchemaCacheManager(SchemaCacheManager):
    def __init__(self) -> None:
        super().__init__(maxsize=0, ttl=0)
        self._empty_schema_cache: Final = EmptySchemaCache()

    def get_cache(self, name: str) -> SchemaCacheProtocol:
        return self._empty_schema_cache


def cache_manager_from_config(config: Config) -> SchemaCacheManager:
    if not config.registry_client_cached:
        return NoOpSchemaCacheManager()
    return SchemaCacheManager(maxsize=config.registry_cache_maxsize, ttl=config.registry_cache_ttl)
