"""
Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from schemahub.api.container import SchemaRegistryContainer
from schemahub.api.factory import create_schema_registry_application, schema_registry_lifespan
from schemahub.core.container import SchemaHubContainer

import schemahub.api.controller
import schemahub.api.factory
import schemahub.api.routers.health
import schemahub.api.routers.schemas
import schemahub.api.routers.subjects
import uvicorn


def main() -> None:
    schemahub_container = SchemaHubContainer()
    schemahub_container.wire(modules=[__name__])

    schema_registry_container = SchemaRegistryContainer(schemahub_container=schemahub_container)
    schema_registry_container.wire(
        modules=[
            __name__,
            schemahub.api.controller,
            schemahub.api.factory,
            schemahub.api.routers.health,
            schemahub.api.routers.schemas,
            schemahub.api.routers.subjects,
        ]
    )

    config = schemahub_container.config()
    app = create_schema_registry_application(config=config, lifespan=schema_registry_lifespan)
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower(), log_config=None)


if __name__ == "__main__":
    main()
