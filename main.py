# main.py
import sys

import uvicorn
from loguru import logger

from compressor import engine_config


def configure_logging() -> None:
    """
    Single stderr sink at LOG_LEVEL.
    uvicorn keeps its own access log; the engine logs through loguru.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=engine_config.LOG_LEVEL.upper(),
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | {name}:{line} - {message}",
    )


if __name__ == "__main__":
    configure_logging()
    logger.info("Starting {} v{} on {}:{}",
                engine_config.SERVICE_NAME, engine_config.SERVICE_VERSION,
                engine_config.HOST, engine_config.PORT)

    uvicorn.run(
        "api:app",
        host=engine_config.HOST,
        port=engine_config.PORT,
        log_level=engine_config.LOG_LEVEL.lower(),
    )
