"""
Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from dependency_injector.wiring import inject, Provide
from fastapi import Depends, FastAPI
from schemahub import version as schemahub_version
from schemahub.api.container import SchemaRegistryContainer
from schemahub.api.http_handlers import setup_exception_handlers
from schemahub.api.routers.setup import setup_routers
from schemahub.core.config import Config
from schemahub.core.logging_setup import configure_logging, log_config_without_secrets
from schemahub.core.schema_registry import SchemaRegistry
from typing import AsyncContextManager

import logging


@asynccontextmanager
@inject
async def schema_registry_lifespan(
    _: FastAPI,
    schema_registry: SchemaRegistry = Depends(Provide[SchemaRegistryContainer.schema_registry]),
) -> AsyncGenerator[None, None]:
    try:
        await schema_registry.start()

        yield
    finally:
        await schema_registry.close()


def create_schema_registry_application(
    *,
    config: Config,
    lifespan: Callable[[FastAPI, SchemaRegistry], AsyncContextManager[None]],
) -> FastAPI:
    configure_logging(config=config)
    log_config_without_secrets(config=config)
    logging.info("Starting schemahub registry (%s)", schemahub_version.__version__)

    app = FastAPI(lifespan=lifespan)  # type: ignore[arg-type]

    setup_routers(app=app)
    setup_exception_handlers(app=app)

    return app
