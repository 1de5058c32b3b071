"""
File reading helpers for Linux pseudo-files (/proc, /sys).

read_lines returns an empty list when the file cannot be read or decoded, so
callers never see an exception for a missing or unreadable counter.
"""

from pathlib import Path

from loguru import logger


def read_lines(path: str | Path, report_error: bool = True) -> list[str]:
    """
    Read an entire file at once.

    Args:
        path: File to read.
        report_error: Log a warning or error when the file cannot be read.

    Returns:
        The lines of the file, or an empty list if it could not be read.
    """
    path = Path(path)
    logger.debug("Reading file {}", path)
    try:
        return path.read_text(encoding="utf-8").splitlines()
    except FileNotFoundError:
        if report_error:
            logger.warning("File not found: {}", path)
    except (OSError, UnicodeDecodeError) as e:
        if report_error:
            logger.error("Error reading file {}. {}", path, e)
    return []


def parse_key_value_lines(lines: list[str], separator: str = ":") -> dict[str, str]:
    """
    Parse `key<separator>value` lines into a dict.

    Keys and values are stripped; lines without the separator are skipped and
    the first occurrence of a key wins.
    """
    values: dict[str, str] = {}
    for line in lines:
        key, sep, value = line.partition(separator)
        if not sep:
            continue
        values.setdefault(key.strip(), value.strip())
    return values
