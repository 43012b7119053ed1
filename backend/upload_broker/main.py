import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from upload_broker.api.middleware import (
    AccessLogMiddleware,
    JSONContentTypeMiddleware,
    RecoveryMiddleware,
)
from upload_broker.api.routers import health as health_router
from upload_broker.api.routers import uploads as uploads_router
from upload_broker.core.config import Settings, get_settings
from upload_broker.core.logging import configure_logging
from upload_broker.services.storage import StorageGateway, get_storage_service
from upload_broker.services.uploads import UploadBroker

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    broker: UploadBroker = app.state.upload_broker
    configure_logging(broker.settings.log_level)
    if not broker.settings.aws_bucket:
        logger.warning("AWS_BUCKET is not set; upload requests will fail")
    logger.info(
        "Upload broker ready (region=%s, bucket=%s)",
        broker.settings.aws_region,
        broker.settings.aws_bucket,
    )
    yield


def create_app(
    settings: Settings | None = None,
    storage: StorageGateway | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(
        debug=settings.debug,
        title="Multipart Upload Broker",
        lifespan=lifespan,
    )
    app.state.upload_broker = UploadBroker(storage or get_storage_service(), settings)

    # Last added runs first.
    app.add_middleware(JSONContentTypeMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Accept", "Authorization", "Content-Type", "X-CSRF-Token"],
        expose_headers=["Link"],
        allow_credentials=False,
        max_age=settings.cors_max_age,
    )
    app.add_middleware(RecoveryMiddleware)
    app.add_middleware(AccessLogMiddleware)

    app.include_router(health_router.router)
    app.include_router(uploads_router.router)

    return app


app = create_app()
