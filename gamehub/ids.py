"""
Sequential, human-readable record ids.

Users get USR0001, USR0002, ...; games get GAME<category code>0001, ...
Both are allocated the same way: take the id of the last inserted record,
parse its trailing number and add one.
"""

import re

_TRAILING_DIGITS = re.compile(r"(\d+)$")


def parse_sequence(record_id: str | None) -> int:
    """Return the trailing number of `record_id`, or 0 when there is none."""
    if not record_id:
        return 0
    match = _TRAILING_DIGITS.search(record_id)
    if match is None:
        return 0
    return int(match.group(1))


def next_sequential_id(prefix: str, last_id: str | None, width: int = 4) -> str:
    """
    Build the id following `last_id`.

    >>> next_sequential_id("USR", None)
    'USR0001'
    >>> next_sequential_id("USR", "USR0041")
    'USR0042'
    >>> next_sequential_id("GAMERP", "GAMESB0007")
    'GAMERP0008'

    Numbers wider than `width` are kept intact (USR9999 -> USR10000).
    """
    return f"{prefix}{parse_sequence(last_id) + 1:0{width}d}"
