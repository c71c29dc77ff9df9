"""
Tests for throughput sampling.
"""

import pytest
from netthru.meter import MB, RateSample, ThroughputMeter


class TestRateSample:
    """Test rate arithmetic and formatting."""

    def test_rates(self):
        sample = RateSample(nbytes=2 * MB, seconds=0.5)
        assert sample.mb_per_sec == pytest.approx(4.0)
        assert sample.mbit_per_sec == pytest.approx(32.0)

    def test_zero_elapsed(self):
        """Test that no elapsed time gives a rate of 0, not an error."""
        assert RateSample(nbytes=1024, seconds=0.0).mb_per_sec == 0.0

    def test_str(self):
        assert str(RateSample(nbytes=MB, seconds=1.0)) == "    1.000 MB/sec (8.000 Mb/sec)"


class TestThroughputMeter:
    """Test windowed and final reporting."""

    def test_requires_start(self):
        meter = ThroughputMeter()
        with pytest.raises(RuntimeError):
            meter.record(10, now=1.0)

    def test_no_sample_before_interval(self):
        meter = ThroughputMeter()
        meter.start(now=100.0)
        assert meter.record(1000, now=100.4) is None
        assert meter.record(1000, now=100.99) is None
        assert meter.stats.window_bytes == 2000

    def test_sample_after_interval(self):
        """Test that a window spanning a second is reported and reset."""
        meter = ThroughputMeter()
        meter.start(now=100.0)
        meter.record(MB, now=100.5)
        sample = meter.record(MB, now=101.0)

        assert sample is not None
        assert sample.nbytes == 2 * MB
        assert sample.seconds == pytest.approx(1.0)
        assert sample.mb_per_sec == pytest.approx(2.0)
        assert meter.stats.window_bytes == 0
        assert meter.stats.window_start == 101.0
        assert meter.stats.samples == 1

    def test_window_measured_from_last_report(self):
        meter = ThroughputMeter()
        meter.start(now=0.0)
        meter.record(100, now=1.5)
        assert meter.record(100, now=2.0) is None
        sample = meter.record(100, now=2.5)
        assert sample.nbytes == 200
        assert sample.seconds == pytest.approx(1.0)

    def test_zero_bytes_never_reports(self):
        meter = ThroughputMeter()
        meter.start(now=0.0)
        assert meter.record(0, now=5.0) is None
        assert meter.stats.calls == 1

    def test_callback(self):
        seen = []
        meter = ThroughputMeter(on_sample=seen.append)
        meter.start(now=0.0)
        meter.record(10, now=1.0)
        meter.record(10, now=1.2)
        assert len(seen) == 1
        assert seen[0].nbytes == 10

    def test_custom_interval(self):
        meter = ThroughputMeter(interval=0.25)
        meter.start(now=0.0)
        assert meter.record(10, now=0.25) is not None

    def test_final_is_total_over_elapsed(self):
        """Test that the final figure ignores how the windows fell."""
        meter = ThroughputMeter()
        meter.start(now=0.0)
        for i, nbytes in enumerate([300, 7, 1999, 12288, 5, 40000]):
            meter.record(nbytes, now=0.7 * (i + 1))

        final = meter.finish(now=4.5)
        total = 300 + 7 + 1999 + 12288 + 5 + 40000
        assert final.nbytes == total
        assert final.seconds == pytest.approx(4.5)
        assert final.mb_per_sec == pytest.approx(total / 4.5 / MB)
        assert meter.stats.samples >= 1

    def test_final_same_regardless_of_sampling(self):
        """Test that the window length does not change the final average."""
        results = []
        for interval in (0.1, 1.0, 100.0):
            meter = ThroughputMeter(interval=interval)
            meter.start(now=10.0)
            for step in range(1, 21):
                meter.record(4096, now=10.0 + step * 0.13)
            results.append(meter.finish(now=13.0).mb_per_sec)
        assert results[0] == results[1] == results[2]

    def test_uses_clock(self):
        ticks = iter([5.0, 6.5, 8.0])
        meter = ThroughputMeter(clock=lambda: next(ticks))
        meter.start()
        sample = meter.record(3000)
        assert sample.seconds == pytest.approx(1.5)
        assert meter.finish().seconds == pytest.approx(3.0)
