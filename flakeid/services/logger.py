import logging

from flakeid.core.config import settings


def setup_logger():
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        handlers=[logging.StreamHandler()],
    )

    flakeid_logger = logging.getLogger("flakeid")
    flakeid_logger.setLevel(settings.LOG_LEVEL)

    return flakeid_logger
