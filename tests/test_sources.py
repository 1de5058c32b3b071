"""Tests for tick sources, native load and file helpers."""

from collections import namedtuple

import psutil
import pytest

from cpuload import sources
from cpuload.identity import ProcessorIdentity
from cpuload.models import zero_ticks
from cpuload.processor import CentralProcessor
from cpuload.procfs import parse_key_value_lines, read_lines
from cpuload.sources import (
    ProcStatTickSource,
    PsutilNativeLoadSource,
    PsutilProcessorCounts,
    PsutilTickSource,
    parse_stat_line,
)

from fakes import FakeCounts, FakeNativeSource

PROC_STAT_TEXT = """\
cpu  4705 356 584 3699176 23060 0 277 0 0 0
cpu0 1393 280 201 924538 11587 0 234 0 0 0
cpu1 3312 76 383 2774638 11473 0 43 0 0 0
intr 114930548 113199788 3 0 5 263 0 4 [... lots more numbers ...]
ctxt 1990473
btime 1062191376
"""

LinuxTimes = namedtuple(
    "LinuxTimes",
    "user nice system idle iowait irq softirq steal guest guest_nice",
)
WindowsTimes = namedtuple("WindowsTimes", "user system idle interrupt dpc")


class TestProcfs:
    """Tests for file reading helpers."""

    def test_read_lines(self, tmp_path):
        """Test a file is read as a list of lines."""
        path = tmp_path / "stat"
        path.write_text("a\nb\n")
        assert read_lines(path) == ["a", "b"]

    def test_missing_file(self, tmp_path):
        """Test a missing file reads as empty."""
        assert read_lines(tmp_path / "missing") == []

    def test_undecodable_file(self, tmp_path):
        """Test a file with invalid UTF-8 reads as empty instead of raising."""
        path = tmp_path / "stat"
        path.write_bytes(b"cpu  1 2 3 \xff\xfe 5 6 7\n")
        assert read_lines(path) == []

    def test_parse_key_value_lines(self):
        """Test key/value lines keep the first occurrence of each key."""
        lines = ["vendor_id\t: GenuineIntel", "noise", "vendor_id : Other", "model : 158"]
        assert parse_key_value_lines(lines) == {"vendor_id": "GenuineIntel", "model": "158"}


class TestProcStatTickSource:
    """Tests for the /proc/stat tick source."""

    def test_parse_stat_line(self):
        """Test only the first seven counters are kept."""
        label, ticks = parse_stat_line("cpu0 1 2 3 4 5 6 7 8 9 10")
        assert label == "cpu0"
        assert ticks == (1, 2, 3, 4, 5, 6, 7)

    def test_parse_short_line(self):
        """Test older kernels with fewer columns read missing ones as zero."""
        assert parse_stat_line("cpu 1 2 3 4")[1] == (1, 2, 3, 4, 0, 0, 0)

    def test_system_ticks(self, tmp_path):
        """Test the aggregate cpu line becomes the system tick vector."""
        path = tmp_path / "stat"
        path.write_text(PROC_STAT_TEXT)
        source = ProcStatTickSource(path)
        assert source.system_ticks() == (4705, 356, 584, 3699176, 23060, 0, 277)

    def test_processor_ticks(self, tmp_path):
        """Test cpuN lines become rows indexed by N."""
        path = tmp_path / "stat"
        path.write_text(PROC_STAT_TEXT)
        rows = ProcStatTickSource(path).processor_ticks()
        assert rows == (
            (1393, 280, 201, 924538, 11587, 0, 234),
            (3312, 76, 383, 2774638, 11473, 0, 43),
        )

    def test_offline_processor_gap(self, tmp_path):
        """Test a missing cpuN line leaves a zero row at that index."""
        path = tmp_path / "stat"
        path.write_text("cpu  2 0 0 2 0 0 0\ncpu0 1 0 0 1 0 0 0\ncpu2 1 0 0 1 0 0 0\n")
        rows = ProcStatTickSource(path).processor_ticks()
        assert rows == ((1, 0, 0, 1, 0, 0, 0), zero_ticks(), (1, 0, 0, 1, 0, 0, 0))

    def test_unreadable_file(self, tmp_path):
        """Test an unreadable file signals no data instead of raising."""
        source = ProcStatTickSource(tmp_path / "missing")
        assert source.system_ticks() == zero_ticks()
        assert source.processor_ticks() == ()

    def test_garbage(self, tmp_path):
        """Test unparseable counters signal no data."""
        path = tmp_path / "stat"
        path.write_text("cpu  a b c d\n")
        assert ProcStatTickSource(path).system_ticks() == zero_ticks()

    def test_undecodable_file(self, tmp_path):
        """Test invalid UTF-8 signals no data and a processor still builds on it."""
        path = tmp_path / "stat"
        path.write_bytes(b"cpu  4705 356 \xff\xfe 0 0 0\ncpu0 1 0 0 1 0 0 0\n")
        source = ProcStatTickSource(path)
        assert source.system_ticks() == zero_ticks()
        assert source.processor_ticks() == ()

        processor = CentralProcessor(
            tick_source=source,
            native_source=FakeNativeSource(None),
            counts=FakeCounts(logical=2),
            identity=ProcessorIdentity(),
        )
        assert processor.get_system_cpu_load_between_ticks() == 0.0
        assert processor.get_processor_cpu_load_between_ticks() == [0.0, 0.0]


class TestPsutilTickSource:
    """Tests for the psutil tick source."""

    def test_linux_fields(self, monkeypatch):
        """Test seconds are converted to milliseconds in TickType order."""
        times = LinuxTimes(1.5, 0.25, 2.0, 10.0, 0.5, 0.125, 0.001, 9.0, 0.0, 0.0)
        monkeypatch.setattr(psutil, "cpu_times", lambda percpu=False: times)
        assert PsutilTickSource().system_ticks() == (1500, 250, 2000, 10000, 500, 125, 1)

    def test_windows_fields(self, monkeypatch):
        """Test interrupt/dpc stand in for irq/softirq and missing fields are zero."""
        times = WindowsTimes(1.0, 2.0, 3.0, 0.5, 0.25)
        monkeypatch.setattr(psutil, "cpu_times", lambda percpu=False: times)
        assert PsutilTickSource().system_ticks() == (1000, 0, 2000, 3000, 0, 500, 250)

    def test_per_processor(self, monkeypatch):
        """Test per-processor times become one row each."""
        times = [WindowsTimes(1.0, 0.0, 1.0, 0.0, 0.0), WindowsTimes(2.0, 0.0, 0.0, 0.0, 0.0)]
        monkeypatch.setattr(psutil, "cpu_times", lambda percpu=False: times)
        assert PsutilTickSource().processor_ticks() == (
            (1000, 0, 0, 1000, 0, 0, 0),
            (2000, 0, 0, 0, 0, 0, 0),
        )

    def test_failure(self, monkeypatch):
        """Test a psutil failure signals no data."""

        def fail(percpu=False):
            raise psutil.AccessDenied()

        monkeypatch.setattr(psutil, "cpu_times", fail)
        source = PsutilTickSource()
        assert source.system_ticks() == zero_ticks()
        assert source.processor_ticks() == ()

    def test_real_ticks(self):
        """Test real cpu times are non-negative and not all zero."""
        ticks = PsutilTickSource().system_ticks()
        assert len(ticks) == 7
        assert all(t >= 0 for t in ticks)
        assert any(ticks)


class TestDefaultTickSource:
    """Tests for tick source selection."""

    def test_non_linux(self, monkeypatch):
        """Test psutil is used off Linux."""
        monkeypatch.setattr(sources.sys, "platform", "darwin")
        assert isinstance(sources.default_tick_source(), PsutilTickSource)

    def test_linux_without_proc(self, monkeypatch, tmp_path):
        """Test psutil is used when /proc/stat cannot be read."""
        monkeypatch.setattr(sources.sys, "platform", "linux")
        monkeypatch.setattr(sources, "PROC_STAT", tmp_path / "missing")
        assert isinstance(sources.default_tick_source(), PsutilTickSource)

    def test_linux_with_proc(self, monkeypatch, tmp_path):
        """Test /proc/stat is preferred on Linux."""
        path = tmp_path / "stat"
        path.write_text(PROC_STAT_TEXT)
        monkeypatch.setattr(sources.sys, "platform", "linux")
        monkeypatch.setattr(sources, "PROC_STAT", path)
        assert isinstance(sources.default_tick_source(), ProcStatTickSource)


class TestPsutilNativeLoadSource:
    """Tests for the psutil native load source."""

    def test_ratio(self, monkeypatch):
        """Test percentages are reported as ratios."""
        monkeypatch.setattr(psutil, "cpu_percent", lambda interval=None: 42.0)
        assert PsutilNativeLoadSource().instant_load() == pytest.approx(0.42)

    def test_nan_is_absent(self, monkeypatch):
        """Test a NaN reading is reported as absent."""
        monkeypatch.setattr(psutil, "cpu_percent", lambda interval=None: float("nan"))
        assert PsutilNativeLoadSource().instant_load() is None

    def test_unsupported(self, monkeypatch):
        """Test an unsupported platform is reported as absent."""

        def fail(interval=None):
            raise NotImplementedError

        monkeypatch.setattr(psutil, "cpu_percent", fail)
        assert PsutilNativeLoadSource().instant_load() is None


class TestPsutilProcessorCounts:
    """Tests for psutil processor counts."""

    def test_physical_falls_back_to_logical(self, monkeypatch):
        """Test an unknown physical count reads as the logical count."""
        monkeypatch.setattr(
            psutil, "cpu_count", lambda logical=True: 8 if logical else None
        )
        counts = PsutilProcessorCounts()
        assert counts.logical_count() == 8
        assert counts.physical_count() == 8

    def test_unknown_logical(self, monkeypatch):
        """Test an unknown logical count reads as one processor."""
        monkeypatch.setattr(psutil, "cpu_count", lambda logical=True: None)
        assert PsutilProcessorCounts().logical_count() == 1
