"""
Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from dependency_injector import containers, providers
from schemahub.core.config import Config


class SchemaHubContainer(containers.DeclarativeContainer):
    config = providers.Singleton(Config)
