from flakeid.core.exceptions import (
    ClockRollbackError,
    FlakeIDError,
    GeneratorHaltedError,
    InvalidParameterError,
    TimestampOverflowError,
)
from flakeid.utils.snowflake import (
    SnowflakeIDGenerator,
    SnowflakeParts,
    decode,
    new_generator,
    parse,
    to_datetime,
)

__all__ = [
    "ClockRollbackError",
    "FlakeIDError",
    "GeneratorHaltedError",
    "InvalidParameterError",
    "SnowflakeIDGenerator",
    "SnowflakeParts",
    "TimestampOverflowError",
    "decode",
    "new_generator",
    "parse",
    "to_datetime",
]
