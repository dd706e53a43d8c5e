"""
Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from fastapi import FastAPI
from schemahub.api.routers.health import health_router
from schemahub.api.routers.schemas import schemas_router
from schemahub.api.routers.subjects import subjects_router


def setup_routers(app: FastAPI) -> None:
    # `/schemas/{id}` and `/_health` must win over `/{subject}/{format}`.
    app.include_router(health_router)
    app.include_router(schemas_router)
    app.include_router(subjects_router)
