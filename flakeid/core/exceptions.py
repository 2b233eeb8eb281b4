class FlakeIDError(Exception):
    """Base class for all errors raised by the ID generator."""

    pass


class InvalidParameterError(FlakeIDError, ValueError):
    """Raised when a generator is configured with an out-of-range value."""

    def __init__(self, field: str, value, expected: str):
        self.field = field
        self.value = value
        super().__init__(f"{field} must be {expected}, got {value!r}")


class ClockRollbackError(FlakeIDError):
    """Raised when the clock moved backwards further than the generator tolerates."""

    def __init__(self, last_timestamp: int, now: int):
        self.last_timestamp = last_timestamp
        self.now = now
        self.offset_ms = last_timestamp - now
        super().__init__(
            f"Clock moved backwards. Refusing to generate id for {self.offset_ms} milliseconds"
        )


class GeneratorHaltedError(ClockRollbackError):
    """Raised by a generator that stopped issuing ids after a fatal clock rollback."""

    pass


class TimestampOverflowError(FlakeIDError):
    """Raised when the elapsed time since the epoch does not fit the timestamp field."""

    pass
