"""
Timestamps are integer seconds since the Unix epoch.
"""

from __future__ import annotations

import time
from typing import Union


def now_epoch() -> int:
    return int(time.time())


def parse_epoch(value: Union[int, str]) -> int:
    """Accept an int or a decimal string, as directories emit either."""
    if isinstance(value, bool):
        raise ValueError("timestamp must be an integer, not a bool")
    if isinstance(value, int):
        seconds = value
    elif isinstance(value, str) and value.isdigit():
        seconds = int(value)
    else:
        raise ValueError(f"invalid timestamp: {value!r}")
    if seconds < 0:
        raise ValueError(f"timestamp before epoch: {seconds}")
    return seconds
