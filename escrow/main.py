import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from escrow import __version__
from escrow.api import create_api_router
from escrow.core.config import get_settings
from escrow.core.container import ApplicationContainer, get_container
from escrow.core.logging import configure_logging

logger = logging.getLogger(__name__)


def create_app(container: Optional[ApplicationContainer] = None) -> FastAPI:
    settings = container.settings if container is not None else get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.logging, debug=settings.debug)
        app.state.container = container or get_container()
        await app.state.container.init_infrastructure()
        logger.info("Settlement server started (%s, ledger=%s)", settings.environment, settings.ledger.provider)
        yield
        await app.state.container.dispose()

    app = FastAPI(
        title=settings.project_name,
        description="Escrow and settlement for marketplace orders",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(create_api_router(settings.api_prefix))

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": __version__}

    return app


app = create_app()
