"""
Result reporting — the two-line text report and a JSON summary.
"""

import json
import logging

logger = logging.getLogger(__name__)


def human_size(n) -> str:
    s = float(n)
    for u in ("B", "KB", "MB", "GB"):
        if s < 1024:
            return f"{s:.1f} {u}"
        s /= 1024
    return f"{s:.1f} TB"


def format_stats(size: int, matches: int) -> str:
    return f"Size of file is {size}\nNumber of matches = {matches}\n"


def write_stats(stream, size: int, matches: int):
    """Write the report to a text stream (stdout, an output file, ...)."""
    stream.write(format_stats(size, matches))
    stream.flush()


def write_json_summary(path: str, result):
    """Dump CountResult.summary as JSON."""
    with open(path, "w") as f:
        json.dump(result.summary, f, indent=2)
    logger.info("Summary written to %s", path)
