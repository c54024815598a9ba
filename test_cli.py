"""
CLI tests — report lines on stdout and in the output file, error exits.
"""
import io
import os
import sys
import json
import shutil
import tempfile
import contextlib
from unittest import mock

import pytest

import main as cli


def _run(argv):
    out = io.StringIO()
    with contextlib.redirect_stdout(out):
        rc = cli.main(argv)
    return rc, out.getvalue()


def test_cli_counts_and_writes_report():
    tmpdir = tempfile.mkdtemp(prefix="test_cli_")
    try:
        inp = os.path.join(tmpdir, "in.bin")
        outp = os.path.join(tmpdir, "out.txt")
        with open(inp, "wb") as f:
            f.write(b"aababab")

        rc, stdout = _run([inp, "ab", outp, "--chunk-size", "4"])
        expected = "Size of file is 7\nNumber of matches = 3\n"
        assert rc == 0
        assert stdout == expected
        with open(outp) as f:
            assert f.read() == expected
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


def test_cli_reads_stdin_for_dash():
    tmpdir = tempfile.mkdtemp(prefix="test_cli_")
    try:
        outp = os.path.join(tmpdir, "out.txt")
        stdin = io.TextIOWrapper(io.BytesIO(b"aababab"))
        with mock.patch.object(sys, "stdin", stdin):
            rc, stdout = _run(["-", "ab", outp, "--chunk-size", "4"])
        expected = "Size of file is 7\nNumber of matches = 3\n"
        assert rc == 0
        assert stdout == expected
        with open(outp) as f:
            assert f.read() == expected
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


def test_cli_hex_pattern_and_json_summary():
    tmpdir = tempfile.mkdtemp(prefix="test_cli_")
    try:
        inp = os.path.join(tmpdir, "in.bin")
        outp = os.path.join(tmpdir, "out.txt")
        with open(inp, "wb") as f:
            f.write(b"\x00\xff\xff\xff\x00")

        rc, stdout = _run(["--hex", "--json", "--strategy", "prefix", inp, "ffff", outp])
        assert rc == 0
        assert "Number of matches = 2" in stdout
        with open(outp + ".json") as f:
            summary = json.load(f)
        assert summary["matches"] == 2
        assert summary["size"] == 5
        assert summary["strategy"] == "prefix"
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


def test_cli_missing_input_exits_with_usage():
    tmpdir = tempfile.mkdtemp(prefix="test_cli_")
    try:
        out = io.StringIO()
        with contextlib.redirect_stdout(out), pytest.raises(SystemExit) as info:
            cli.main([os.path.join(tmpdir, "nope.bin"), "ab", os.path.join(tmpdir, "o.txt")])
        assert info.value.code == 1
        text = out.getvalue()
        assert text.startswith('ERROR: open_input - "')
        assert cli.USAGE in text
        # Input is checked before the output file is created
        assert not os.path.exists(os.path.join(tmpdir, "o.txt"))
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


def test_cli_configuration_errors():
    tmpdir = tempfile.mkdtemp(prefix="test_cli_")
    try:
        inp = os.path.join(tmpdir, "in.bin")
        with open(inp, "wb") as f:
            f.write(b"abc")
        outp = os.path.join(tmpdir, "o.txt")

        for argv in (
            [inp, "", outp],                                # empty pattern
            [inp, "abcdef", outp, "--chunk-size", "4"],     # pattern >= chunk
            [inp, "zz", outp, "--hex"],                     # bad hex
            [inp, "x" * 5000, outp],                        # over the maximum
            [inp, "ab"],                                    # missing argument
        ):
            out = io.StringIO()
            with contextlib.redirect_stdout(out), pytest.raises(SystemExit) as info:
                cli.main(argv)
            assert info.value.code == 1
            assert out.getvalue().startswith("ERROR: ")
            assert cli.USAGE in out.getvalue()
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


def main():
    tests = [v for k, v in sorted(globals().items()) if k.startswith("test_")]
    for t in tests:
        t()
        print(f"  ✅ {t.__name__}: PASS")


if __name__ == "__main__":
    main()
