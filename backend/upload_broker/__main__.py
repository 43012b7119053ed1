import uvicorn

from upload_broker.core.config import get_settings
from upload_broker.core.logging import configure_logging


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        "upload_broker.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=settings.env == "local" and settings.debug,
    )


if __name__ == "__main__":
    main()
