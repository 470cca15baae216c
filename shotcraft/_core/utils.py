import time
from typing import Optional


class Timer:
    """
    Context manager measuring wall-clock time with `perf_counter`.

    `elapsed_time` stays None until the block exits, then holds seconds
    rounded to milliseconds. `started_at` is a UTC timestamp for log lines.

        with Timer() as timer:
            await runner.run(candidates, holdout)
        timer.elapsed_time  # 4.217
    """

    def __init__(self):
        self._start: Optional[float] = None
        self._elapsed: Optional[float] = None
        self.started_at: Optional[str] = None

    @property
    def elapsed_time(self) -> Optional[float]:
        if self._elapsed is None:
            return None
        return round(self._elapsed, 3)

    def __enter__(self) -> 'Timer':
        self._start = time.perf_counter()
        self._elapsed = None
        self.started_at = time.strftime('%Y-%m-%d %H:%M:%S', time.gmtime())
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._elapsed = time.perf_counter() - self._start
