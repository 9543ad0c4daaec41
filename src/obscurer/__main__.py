"""Run the obscurer gateway: python -m obscurer"""

import logging

import uvicorn

from obscurer.config import load_config

config = load_config()
logging.basicConfig(
    level=config.log_level.upper(),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
uvicorn.run(
    "obscurer.app:create_app",
    host=config.host,
    port=config.port,
    log_level=config.log_level.lower(),
    factory=True,
)
