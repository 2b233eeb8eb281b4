import time


class MonotonicClock:
    """Millisecond clock measured from a fixed epoch.

    The wall clock is read once, at construction, and paired with a monotonic
    reading. Every later sample is that wall reading plus the monotonic time
    elapsed since, so stepping the system clock after construction (NTP
    corrections, manual changes, VM resume) does not move the samples.

    Args:
        epoch: Reference instant in milliseconds since 1970-01-01T00:00:00Z.
    """

    def __init__(self, epoch: int):
        self.epoch = epoch
        self._anchor_ms = time.time_ns() // 1_000_000 - epoch
        self._anchor_mono_ns = time.monotonic_ns()

    def now_ms(self) -> int:
        """Returns the milliseconds elapsed since the epoch."""
        elapsed_ns = time.monotonic_ns() - self._anchor_mono_ns
        return self._anchor_ms + elapsed_ns // 1_000_000
