import logging
import sys

import uvicorn

from pumpbot.config import settings, validate_runtime
from pumpbot.errors import ConfigurationError

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"

logger = logging.getLogger("pumpbot")


def main() -> int:
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)
    try:
        validate_runtime(settings)
    except ConfigurationError as e:
        logger.error("%s", e)
        return 1

    logger.info("Starting PumpFun bot for wallet %s", settings.wallet_address)
    uvicorn.run(
        "pumpbot.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
