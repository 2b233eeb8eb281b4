import pytest

from flakeid.utils.snowflake import SnowflakeIDGenerator


class FakeClock:
    """Manually driven millisecond clock.

    ``script`` queues readings returned by the next samples; once it is empty
    the clock keeps returning ``now``. ``sleep`` advances ``now`` by the slept
    time when ``advance_on_sleep`` is set.
    """

    def __init__(self, now: int = 1000):
        self.now = now
        self.advance_on_sleep = True
        self.sleeps = []
        self._script = []

    def script(self, readings):
        self._script = list(readings)

    def now_ms(self) -> int:
        if self._script:
            self.now = self._script.pop(0)
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        if self.advance_on_sleep:
            self.now += round(seconds * 1000)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_generator(clock):
    def _make(datacenter_id=1, worker_id=2, **options):
        return SnowflakeIDGenerator(
            datacenter_id, worker_id, clock=clock, sleep=clock.sleep, **options
        )

    return _make
