import os

import uvicorn

from app.config import settings
from utils.logging_utils import get_tagged_logger, setup_logging

logger = get_tagged_logger(__name__, tag="server")


if __name__ == "__main__":
    setup_logging(level=settings.log_level, job_name="swapmap")
    logger.info(f"Starting SwapMap ({settings.environment})")

    # uvicorn turns SIGINT/SIGTERM into a lifespan shutdown, which stops the
    # pollers and flushes analytics.
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 3000)),
        reload=False,
    )
