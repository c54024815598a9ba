"""
Match driver tests — end-to-end counts, configuration errors, source errors,
progress reporting and cancellation, file counting.
"""
import io
import os
import random
import shutil
import tempfile

import pytest

from patterncount.config import CountConfig, MAX_PATTERN_LEN, STRATEGIES
from patterncount.driver import MatchDriver, count_path, run
from patterncount.errors import ConfigurationError, SourceReadError
from patterncount.pattern import Pattern


def naive_count(data: bytes, pattern: bytes) -> int:
    n = len(pattern)
    return sum(1 for i in range(len(data) - n + 1) if data[i:i + n] == pattern)


class RecordingSource(io.BytesIO):
    """BytesIO that counts read() calls."""

    def __init__(self, data=b""):
        super().__init__(data)
        self.reads = 0

    def read(self, n=-1):
        self.reads += 1
        return super().read(n)


class FailingSource:
    """Delivers `good` bytes, then fails."""

    def __init__(self, good: bytes):
        self._good = io.BytesIO(good)

    def read(self, n):
        data = self._good.read(n)
        if not data:
            raise SourceReadError("device went away")
        return data


def test_worked_example():
    assert run(io.BytesIO(b"aababab"), b"ab", 4) == 3
    for strategy in STRATEGIES:
        assert run(io.BytesIO(b"aababab"), b"ab", 4, strategy) == 3


def test_overlap_and_single_byte():
    assert run(io.BytesIO(b"aaaa"), b"aa", 8) == 3
    assert run(io.BytesIO(b"aaa"), b"a", 2) == 3


def test_no_match_at_end_of_stream():
    assert run(io.BytesIO(b"ababab"), b"abc", 4) == 0
    assert run(io.BytesIO(b"ababab"), b"abc", 100) == 0


def test_empty_stream():
    for strategy in STRATEGIES:
        assert run(io.BytesIO(b""), b"xyz", 16, strategy) == 0


def test_match_straddling_chunk_boundary():
    capacity = 16
    needle = b"NEEDL"
    data = bytearray(b"." * 40)
    data[capacity - 1:capacity - 1 + len(needle)] = needle
    for strategy in STRATEGIES:
        assert run(io.BytesIO(bytes(data)), needle, capacity, strategy) == 1


def test_match_ending_exactly_on_boundary():
    capacity = 10
    data = b"." * 6 + b"WXYZ" + b"." * 10
    for strategy in STRATEGIES:
        assert run(io.BytesIO(data), b"WXYZ", capacity, strategy) == 1


def test_chunk_capacity_invariance():
    rng = random.Random(7)
    for _ in range(60):
        data = bytes(rng.choice(b"abab\x00") for _ in range(rng.randint(0, 300)))
        pattern = bytes(rng.choice(b"ab\x00") for _ in range(rng.randint(1, 5)))
        expected = naive_count(data, pattern)
        for capacity in (len(pattern) + 1, len(pattern) * 5, 64, 1024):
            for strategy in STRATEGIES:
                assert run(io.BytesIO(data), pattern, capacity, strategy) == expected


def test_configuration_errors_before_any_read():
    for pattern, capacity in ((b"", 16), (b"abcd", 4), (b"abcd", 2), (b"a", 0)):
        src = RecordingSource(b"abcdabcd")
        with pytest.raises(ConfigurationError):
            run(src, pattern, capacity)
        assert src.reads == 0

    src = RecordingSource(b"abc")
    with pytest.raises(ConfigurationError):
        run(src, b"a" * (MAX_PATTERN_LEN + 1), MAX_PATTERN_LEN * 10)
    with pytest.raises(ConfigurationError):
        run(src, b"ab", 16, strategy="nope")
    assert src.reads == 0


def test_source_error_propagates():
    with pytest.raises(SourceReadError, match="device went away"):
        run(FailingSource(b"ab" * 50), b"ab", 16)


def test_progress_and_cancel():
    driver = MatchDriver(b"a", CountConfig(chunk_size=10))
    seen = []

    def on_progress(p):
        seen.append(p.chunks_scanned)
        driver.cancel()

    driver.set_progress_callback(on_progress)
    total = driver.count(io.BytesIO(b"a" * 100), total_size=100)
    assert total == 10
    assert driver.progress.is_cancelled is True
    assert driver.progress.bytes_read == 10
    assert driver.progress.progress_percent == 10.0
    assert seen[0] == 1


def test_count_after_cancel_starts_fresh():
    driver = MatchDriver(b"a", CountConfig(chunk_size=10))
    driver.set_progress_callback(lambda p: driver.cancel())
    assert driver.count(io.BytesIO(b"a" * 100), total_size=100) == 10
    assert driver.progress.is_cancelled is True

    driver.set_progress_callback(None)
    assert driver.count(io.BytesIO(b"a" * 50)) == 50
    assert driver.progress.is_cancelled is False
    assert driver.progress.bytes_read == 50
    assert driver.progress.status_message == "Done: 50 matches"


def test_driver_accepts_pattern_objects():
    driver = MatchDriver(Pattern.from_text("ab"), CountConfig(chunk_size=8))
    assert driver.count(io.BytesIO(b"xxabxxab")) == 2
    assert driver.progress.matches == 2
    assert driver.progress.is_running is False


def test_count_path_reports_size_and_matches():
    tmpdir = tempfile.mkdtemp(prefix="test_count_")
    try:
        path = os.path.join(tmpdir, "data.bin")
        data = (b"\xff\xd8\xff" + b"\x00" * 97) * 50
        with open(path, "wb") as f:
            f.write(data)

        for use_mmap in (True, False):
            config = CountConfig(chunk_size=64, use_mmap=use_mmap)
            result = count_path(path, Pattern.from_hex("FFD8FF"), config)
            assert result.size == len(data)
            assert result.matches == 50
            assert result.using_mmap is use_mmap
            assert result.summary["matches"] == 50
            assert result.summary["pattern_hex"] == "ffd8ff"

        empty = os.path.join(tmpdir, "empty.bin")
        open(empty, "wb").close()
        result = count_path(empty, b"abc")
        assert result.size == 0
        assert result.matches == 0
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


def test_count_path_missing_file():
    with pytest.raises(FileNotFoundError):
        count_path("/nonexistent/definitely/missing.bin", b"abc")


def main():
    tests = [v for k, v in sorted(globals().items()) if k.startswith("test_")]
    for t in tests:
        t()
        print(f"  ✅ {t.__name__}: PASS")


if __name__ == "__main__":
    main()
