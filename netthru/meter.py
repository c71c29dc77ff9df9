"""
Throughput Meter - turns byte counts into rate reports.

Both ends of a session count bytes the same way:

1. Every observed chunk is added to the session total and to the current
   window.
2. Once a window has spanned at least REPORT_INTERVAL seconds, its rate is
   reported and a new window starts.
3. The final figure is total bytes over total elapsed time for the whole
   session. It is never derived from the window samples, so rounding in
   the periodic reports does not leak into the result.

Rates are expressed in MB/sec (1 MB = 1024*1024 bytes) with Mb/sec derived
as 8 times that.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional


MB = 1024 * 1024

# Seconds a window must span before it is reported
REPORT_INTERVAL = 1.0


@dataclass
class RateSample:
    """A byte count over an elapsed time."""
    nbytes: int
    seconds: float

    @property
    def mb_per_sec(self) -> float:
        """Rate in MB/sec; 0 if no time has elapsed."""
        if self.seconds <= 0:
            return 0.0
        return self.nbytes / self.seconds / MB

    @property
    def mbit_per_sec(self) -> float:
        """Rate in Mb/sec."""
        return 8 * self.mb_per_sec

    def __str__(self) -> str:
        return f"{self.mb_per_sec:9.3f} MB/sec ({self.mbit_per_sec:.3f} Mb/sec)"


@dataclass
class SessionStats:
    """Counters for one session, mutated while the bulk phase runs."""
    session_start: float
    window_start: float
    total_bytes: int = 0
    window_bytes: int = 0
    calls: int = 0      # record() calls, including zero-byte ones
    samples: int = 0    # windows reported

    def elapsed(self, now: float) -> float:
        """Seconds since the session started."""
        return now - self.session_start


class ThroughputMeter:
    """
    Wall-clock sampler for one session.

    Usage:
        meter = ThroughputMeter()
        meter.start()
        for chunk in stream:
            sample = meter.record(len(chunk))
            if sample:
                print(sample)
        final = meter.finish()
    """

    def __init__(self, interval: float = REPORT_INTERVAL,
                 clock: Callable[[], float] = time.time,
                 on_sample: Optional[Callable[[RateSample], None]] = None):
        """
        Args:
            interval: Minimum window length in seconds
            clock: Source of wall-clock seconds
            on_sample: Called with every window sample as it is produced
        """
        self.interval = interval
        self._clock = clock
        self._on_sample = on_sample
        self._stats: Optional[SessionStats] = None

    @property
    def stats(self) -> SessionStats:
        if self._stats is None:
            raise RuntimeError("Meter has not been started")
        return self._stats

    def start(self, now: Optional[float] = None) -> SessionStats:
        """Begin a session; both the session and the first window start now."""
        if now is None:
            now = self._clock()
        self._stats = SessionStats(session_start=now, window_start=now)
        return self._stats

    def record(self, nbytes: int, now: Optional[float] = None) -> Optional[RateSample]:
        """
        Count nbytes and report the window if it is due.

        Returns:
            The window's RateSample if one was completed, else None
        """
        stats = self.stats
        if now is None:
            now = self._clock()

        stats.calls += 1
        stats.total_bytes += nbytes
        stats.window_bytes += nbytes

        if nbytes <= 0:
            return None

        window_secs = now - stats.window_start
        if window_secs < self.interval:
            return None

        sample = RateSample(stats.window_bytes, window_secs)
        stats.window_start = now
        stats.window_bytes = 0
        stats.samples += 1

        if self._on_sample:
            self._on_sample(sample)
        return sample

    def finish(self, now: Optional[float] = None) -> RateSample:
        """Overall average from session start to now."""
        stats = self.stats
        if now is None:
            now = self._clock()
        return RateSample(stats.total_bytes, stats.elapsed(now))
