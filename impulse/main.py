"""Entry point: run the Impulse API with uvicorn"""
import logging

import uvicorn

from impulse.api.server import create_api_application
from impulse.config import API_HOST, API_PORT, LOG_LEVEL, validate_config

logger = logging.getLogger(__name__)


def main() -> None:
    validate_config()
    app = create_api_application()
    logger.info(f"Starting Impulse API on {API_HOST}:{API_PORT}")
    uvicorn.run(app, host=API_HOST, port=API_PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
