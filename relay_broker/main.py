"""
Relay broker entry point.

Starts the FastAPI app under uvicorn with settings from RELAY_* env vars.
"""
import logging

import uvicorn

from relay_broker.api.app import create_app
from relay_broker.models.config import load_config


def main() -> None:
    config = load_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    uvicorn.run(create_app(config), host=config.host, port=config.port)


if __name__ == "__main__":
    main()
