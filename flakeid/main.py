"""
FastAPI Snowflake ID Service

Serves unique, time-ordered 63-bit identifiers over HTTP. One Snowflake
generator is built from the process settings when the application starts and
shared by every request, so IDs issued by one process never repeat and always
increase.

Key Features:
    - Single ID issuance
    - Batch issuance for up to MAX_BATCH_SIZE IDs at once
    - Decoding of any ID into timestamp, node identity and sequence
    - Health endpoint reporting the node identity and halt state

Error Mapping:
    - ClockRollbackError / GeneratorHaltedError: 503 Service Unavailable
    - TimestampOverflowError: 500 Internal Server Error

Dependencies:
    - FastAPI: Web framework and automatic API documentation
    - pydantic-settings: Node identity and clock policy from the environment
    - Custom utilities: Snowflake ID generator
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Path, Query, status

from flakeid.core.config import settings
from flakeid.core.exceptions import (
    ClockRollbackError,
    InvalidParameterError,
    TimestampOverflowError,
)
from flakeid.schema import DecodedID, HealthResponse, IDBatchResponse, IDResponse
from flakeid.services.generator import get_generator, issue_ids
from flakeid.services.logger import setup_logger
from flakeid.utils.snowflake import SnowflakeIDGenerator, parse, to_datetime

logger = setup_logger()

MAX_ID = (1 << 63) - 1


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan event handler that builds the ID generator.

    The generator is created from settings and stored on ``app.state`` for the
    lifetime of the application. It holds no external resources, so nothing
    needs to be released on shutdown.

    Args:
        app (FastAPI): The FastAPI application instance

    Raises:
        InvalidParameterError: If the configured node identity or clock policy
            is out of range; the application refuses to start.

    Yields:
        None: Control to the application during its lifetime
    """
    logger.info("Starting application and initializing ID generator...")

    try:
        app.state.generator = SnowflakeIDGenerator.from_settings(settings)
    except InvalidParameterError as e:
        logger.error(f"ID generator initialization failed: {e}")
        raise

    yield

    logger.info("Application is shutting down.")
    app.state.generator = None


app = FastAPI(lifespan=lifespan)


def _issue_error(e: Exception) -> HTTPException:
    if isinstance(e, ClockRollbackError):
        logger.error(f"ID generation refused: {e}")
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )

    logger.error(f"ID generation failed: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="ID generation failed",
    )


@app.get(
    "/ids",
    status_code=status.HTTP_200_OK,
    response_model=IDResponse,
    summary="Issue a Snowflake ID",
    description="""
    Issue one unique Snowflake ID from this node.

    Every ID is strictly greater than the IDs this process issued before it.
    If the system clock moved backwards by more than the configured tolerance
    the request fails with 503 instead of risking a duplicate ID.
    """,
    responses={
        503: {
            "description": "Clock moved backwards, no ID was issued",
            "content": {
                "application/json": {
                    "example": {
                        "detail": "Clock moved backwards. Refusing to generate id for 10 milliseconds"
                    }
                }
            },
        },
    },
)
def create_id(generator: SnowflakeIDGenerator = Depends(get_generator)):
    """Issue a single Snowflake ID.

    Args:
        generator (SnowflakeIDGenerator): The application's ID generator.

    Returns:
        IDResponse: The ID as an integer and as a string.

    Raises:
        HTTPException: 503 on clock rollback, 500 on timestamp overflow.
    """
    try:
        snowflake_id = generator.next_id()
    except (ClockRollbackError, TimestampOverflowError) as e:
        raise _issue_error(e)

    return IDResponse(id=snowflake_id, id_str=str(snowflake_id))


@app.get(
    "/ids/batch",
    status_code=status.HTTP_200_OK,
    response_model=IDBatchResponse,
    summary="Issue a batch of Snowflake IDs",
)
def create_ids(
    count: int = Query(
        ...,
        ge=1,
        le=settings.MAX_BATCH_SIZE,
        description="Number of IDs to issue",
    ),
    generator: SnowflakeIDGenerator = Depends(get_generator),
):
    """Issue several Snowflake IDs at once.

    The batch is all or nothing: if the clock rolls back halfway through, no
    IDs are returned.

    Args:
        count (int): Number of IDs to issue.
        generator (SnowflakeIDGenerator): The application's ID generator.

    Returns:
        IDBatchResponse: The issued IDs in ascending order.
    """
    try:
        ids = issue_ids(generator, count)
    except (ClockRollbackError, TimestampOverflowError) as e:
        raise _issue_error(e)

    return IDBatchResponse(ids=ids)


@app.get(
    "/ids/{snowflake_id}/decode",
    status_code=status.HTTP_200_OK,
    response_model=DecodedID,
    summary="Decode a Snowflake ID",
)
def decode_id(
    snowflake_id: int = Path(..., ge=0, le=MAX_ID, description="ID to decode"),
):
    """Decode a Snowflake ID into its fields.

    Decoding does not check that the ID was issued by a generator; any 63-bit
    value decodes to in-range fields.
    """
    parts = parse(snowflake_id)

    return DecodedID(
        id=snowflake_id,
        timestamp=parts.timestamp,
        datacenter_id=parts.datacenter_id,
        worker_id=parts.worker_id,
        sequence=parts.sequence,
        created_at=to_datetime(snowflake_id, settings.EPOCH),
    )


@app.get(
    "/health",
    status_code=status.HTTP_200_OK,
    response_model=HealthResponse,
    summary="Report generator health",
)
def health(generator: SnowflakeIDGenerator = Depends(get_generator)):
    """Report the node identity and whether the generator still issues IDs.

    A generator running the ``halt`` rollback policy reports ``"halted"`` once
    a fatal clock rollback stopped it; it stays that way until restart.

    Args:
        generator (SnowflakeIDGenerator): The application's ID generator.

    Returns:
        HealthResponse: Status, node identity and halt flag.
    """
    return HealthResponse(
        status="halted" if generator.halted else "ok",
        datacenter_id=generator.datacenter_id,
        worker_id=generator.worker_id,
        halted=generator.halted,
    )
