import logging

import uvicorn

from pawnroom.config import Settings, configure_logging
from pawnroom.server import create_app

logger = logging.getLogger(__name__)


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    logger.info(f"pawnroom listening on http://{settings.host}:{settings.port}")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
