"""
Snowflake ID Generator Module

A Python implementation of Twitter's Snowflake algorithm for generating unique,
distributed, and time-ordered 63-bit identifiers. Every node is given a fixed
(datacenter, worker) identity, so nodes never need to talk to each other to
stay collision free.

Algorithm Overview:
    The generator packs four fields into one non-negative integer:

    |1 bit|        41 bits          | 5 bits  | 5 bits  |  12 bits  |
    |sign |       timestamp         |   dc    | worker  | sequence  |
    | 0   | milliseconds since epoch|  0-31   |  0-31   |  0-4095   |

    - Sign bit: Always 0, so ids fit a signed 64-bit column
    - Timestamp: 41 bits = ~69 years of milliseconds from the epoch
    - Datacenter ID: 5 bits = 32 datacenters
    - Worker ID: 5 bits = 32 workers per datacenter
    - Sequence: 12 bits = 4096 IDs per millisecond per node

Clock Considerations:
    - Time is sampled from a monotonic clock anchored to the epoch when the
      generator is built, so wall clock steps after that point are ignored
    - Small backward jumps (up to ``max_backward_ms``) are absorbed by sleeping
      twice the offset and sampling again
    - Larger jumps, or jumps the wait did not resolve, raise
      ``ClockRollbackError``; with the ``halt`` policy the generator then
      refuses every later call
    - When 4096 IDs were issued in one millisecond the generator spins until
      the next millisecond

Thread Safety:
    - One ``threading.Lock`` per generator guards the whole of ``next_id``,
      including rollback sleeps and sequence spin-waits
    - ``decode``, ``parse`` and ``to_datetime`` are pure functions
"""

import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, NamedTuple, Optional, Tuple

from flakeid.core.exceptions import (
    ClockRollbackError,
    GeneratorHaltedError,
    InvalidParameterError,
    TimestampOverflowError,
)
from flakeid.services.logger import setup_logger
from flakeid.utils.clock import MonotonicClock

logger = setup_logger()

# 2020-01-01 00:00:00 (UTC+8), in milliseconds
EPOCH = 1577808000000

TIMESTAMP_BITS = 41
DATACENTER_ID_BITS = 5
WORKER_ID_BITS = 5
SEQUENCE_BITS = 12

MAX_TIMESTAMP = (1 << TIMESTAMP_BITS) - 1
MAX_DATACENTER_ID = (1 << DATACENTER_ID_BITS) - 1
MAX_WORKER_ID = (1 << WORKER_ID_BITS) - 1
MAX_SEQUENCE = (1 << SEQUENCE_BITS) - 1

WORKER_ID_SHIFT = SEQUENCE_BITS
DATACENTER_ID_SHIFT = SEQUENCE_BITS + WORKER_ID_BITS
TIMESTAMP_SHIFT = SEQUENCE_BITS + WORKER_ID_BITS + DATACENTER_ID_BITS

MAX_BACKWARD_MS = 3

ROLLBACK_POLICIES = ("raise", "halt")


class SnowflakeParts(NamedTuple):
    """Fields unpacked from a Snowflake ID."""

    timestamp: int
    datacenter_id: int
    worker_id: int
    sequence: int


def decode(snowflake_id: int) -> Tuple[int, int]:
    """Extracts the node identity from a Snowflake ID.

    Masks keep both values inside their field range for any integer, whether
    or not it was produced by a generator.

    Args:
        snowflake_id: The ID to decode.

    Returns:
        A ``(datacenter_id, worker_id)`` tuple.
    """
    datacenter_id = (snowflake_id >> DATACENTER_ID_SHIFT) & MAX_DATACENTER_ID
    worker_id = (snowflake_id >> WORKER_ID_SHIFT) & MAX_WORKER_ID
    return datacenter_id, worker_id


def parse(snowflake_id: int) -> SnowflakeParts:
    """Unpacks every field of a Snowflake ID.

    The timestamp is returned relative to the epoch, as it is stored.
    """
    datacenter_id, worker_id = decode(snowflake_id)
    return SnowflakeParts(
        timestamp=(snowflake_id >> TIMESTAMP_SHIFT) & MAX_TIMESTAMP,
        datacenter_id=datacenter_id,
        worker_id=worker_id,
        sequence=snowflake_id & MAX_SEQUENCE,
    )


def to_datetime(snowflake_id: int, epoch: int = EPOCH) -> datetime:
    """Returns the UTC instant at which a Snowflake ID was issued."""
    elapsed_ms = (snowflake_id >> TIMESTAMP_SHIFT) & MAX_TIMESTAMP
    return datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(
        milliseconds=epoch + elapsed_ms
    )


def _check_range(field: str, value, low: int, high: int) -> int:
    # bool is an int subclass but never a valid id
    if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
        raise InvalidParameterError(field, value, f"an integer between {low} and {high}")
    return value


class SnowflakeIDGenerator:
    """A thread-safe Snowflake ID generator for creating unique identifiers.

    Attributes:
        datacenter_id: Datacenter part of the node identity (0-31).
        worker_id: Worker part of the node identity (0-31).
        epoch: The epoch timestamp in milliseconds.
        max_backward_ms: Largest clock rollback absorbed by waiting.
        rollback_policy: ``"raise"`` keeps the generator usable after a fatal
            rollback, ``"halt"`` stops it for good.
        last_timestamp: Timestamp of the last issued ID, relative to the epoch.
        sequence: Sequence of the last issued ID.
        halted: Whether the generator stopped issuing IDs.
    """

    decode = staticmethod(decode)

    def __init__(
        self,
        datacenter_id: int,
        worker_id: int,
        epoch: int = EPOCH,
        max_backward_ms: int = MAX_BACKWARD_MS,
        rollback_policy: str = "raise",
        clock=None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initializes a new Snowflake ID generator instance.

        Args:
            datacenter_id: Datacenter identifier (0-31).
            worker_id: Worker identifier (0-31).
            epoch: The epoch timestamp in milliseconds.
            max_backward_ms: Clock rollback tolerance in milliseconds.
            rollback_policy: ``"raise"`` or ``"halt"``.
            clock: Object with a ``now_ms()`` method returning milliseconds
                since ``epoch``. Defaults to a ``MonotonicClock``.
            sleep: Function used to wait out small rollbacks, in seconds.

        Raises:
            InvalidParameterError: If any argument is outside its valid range.
        """
        self.datacenter_id = _check_range(
            "datacenter_id", datacenter_id, 0, MAX_DATACENTER_ID
        )
        self.worker_id = _check_range("worker_id", worker_id, 0, MAX_WORKER_ID)
        # an epoch in the future would make every sample negative
        self.epoch = _check_range("epoch", epoch, 0, time.time_ns() // 1_000_000)
        self.max_backward_ms = _check_range(
            "max_backward_ms", max_backward_ms, 0, MAX_TIMESTAMP
        )
        if rollback_policy not in ROLLBACK_POLICIES:
            raise InvalidParameterError(
                "rollback_policy", rollback_policy, f"one of {ROLLBACK_POLICIES}"
            )
        self.rollback_policy = rollback_policy

        self.clock = clock if clock is not None else MonotonicClock(epoch)
        self._sleep = sleep

        self.last_timestamp = 0
        self.sequence = 0
        self.halted = False
        self._halted_at: Optional[int] = None
        self.lock = threading.Lock()

        logger.info(
            f"Snowflake generator ready (datacenter_id={datacenter_id}, "
            f"worker_id={worker_id}, rollback_policy={rollback_policy})"
        )

    @classmethod
    def from_settings(cls, settings) -> "SnowflakeIDGenerator":
        """Builds a generator from the application settings."""
        return cls(
            datacenter_id=settings.DATACENTER_ID,
            worker_id=settings.WORKER_ID,
            epoch=settings.EPOCH,
            max_backward_ms=settings.MAX_BACKWARD_MS,
            rollback_policy=settings.ROLLBACK_POLICY,
        )

    def _current_timestamp(self) -> int:
        """Returns the milliseconds elapsed since the epoch."""
        return self.clock.now_ms()

    def _wait_for_next_millis(self, last_timestamp: int) -> int:
        """Spins until the clock moves past ``last_timestamp``."""
        timestamp = self._current_timestamp()
        while timestamp <= last_timestamp:
            timestamp = self._current_timestamp()
        return timestamp

    def _recover_from_rollback(self, timestamp: int) -> int:
        """Waits out a small clock rollback or fails the call.

        Returns:
            A timestamp no smaller than ``last_timestamp``.

        Raises:
            ClockRollbackError: If the rollback is too large or the wait did
                not resolve it.
        """
        offset = self.last_timestamp - timestamp
        if offset <= self.max_backward_ms:
            logger.warning(
                f"Clock moved backwards by {offset} ms, waiting {offset << 1} ms"
            )
            self._sleep((offset << 1) / 1000)

            timestamp = self._current_timestamp()
            if timestamp >= self.last_timestamp:
                return timestamp

        if self.rollback_policy == "halt":
            self.halted = True
            self._halted_at = timestamp

        logger.error(
            f"Clock moved backwards by {self.last_timestamp - timestamp} ms, "
            f"refusing to generate id (policy: {self.rollback_policy})"
        )
        raise ClockRollbackError(self.last_timestamp, timestamp)

    def next_id(self) -> int:
        """Generates a new unique Snowflake ID.

        Returns:
            A 63-bit unique Snowflake ID, larger than any ID this generator
            returned before.

        Raises:
            ClockRollbackError: If the clock moved backwards beyond tolerance.
            GeneratorHaltedError: If a previous rollback halted the generator.
            TimestampOverflowError: If the elapsed time does not fit 41 bits.
        """
        with self.lock:
            if self.halted:
                raise GeneratorHaltedError(self.last_timestamp, self._halted_at)

            timestamp = self._current_timestamp()

            if timestamp < self.last_timestamp:
                timestamp = self._recover_from_rollback(timestamp)

            if timestamp == self.last_timestamp:
                sequence = (self.sequence + 1) & MAX_SEQUENCE
                if sequence == 0:
                    logger.debug(
                        f"Sequence exhausted at {timestamp}, waiting for next millisecond"
                    )
                    timestamp = self._wait_for_next_millis(self.last_timestamp)
            else:
                sequence = 0

            if not 0 <= timestamp <= MAX_TIMESTAMP:
                raise TimestampOverflowError(
                    f"Timestamp {timestamp} is outside the {TIMESTAMP_BITS}-bit range"
                )

            self.sequence = sequence
            self.last_timestamp = timestamp

            return (
                (timestamp << TIMESTAMP_SHIFT)
                | (self.datacenter_id << DATACENTER_ID_SHIFT)
                | (self.worker_id << WORKER_ID_SHIFT)
                | sequence
            )


def new_generator(datacenter_id: int, worker_id: int, **options) -> SnowflakeIDGenerator:
    """Creates a generator for the given node identity.

    Keyword options are passed through to ``SnowflakeIDGenerator``.
    """
    return SnowflakeIDGenerator(datacenter_id, worker_id, **options)
