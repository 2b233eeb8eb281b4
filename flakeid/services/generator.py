from fastapi import HTTPException, Request, status

from flakeid.services.logger import setup_logger
from flakeid.utils.snowflake import SnowflakeIDGenerator

logger = setup_logger()


def get_generator(request: Request) -> SnowflakeIDGenerator:
    """Retrieve the application's ID generator for dependency injection.

    The generator is created once in the application lifespan and kept on
    ``app.state``, so every request shares the same sequence and clock state.

    Args:
        request (Request): The incoming request object.

    Raises:
        HTTPException: 503 Service Unavailable if the generator was never created.
    """
    generator = getattr(request.app.state, "generator", None)

    if generator is None:
        logger.error("ID generator not initialized. Is the lifespan running?")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="ID generator not initialized",
        )

    return generator


def issue_ids(generator: SnowflakeIDGenerator, count: int) -> list[int]:
    """Issue ``count`` IDs from one generator, in ascending order.

    Errors from the generator propagate unchanged; IDs issued before the error
    are discarded by the caller along with the failed batch.
    """
    ids = [generator.next_id() for _ in range(count)]

    logger.info(f"Issued batch of {count} ids ({ids[0]}..{ids[-1]})")

    return ids
