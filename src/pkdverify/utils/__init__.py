from .json import json_loads, canonical_json_bytes
from .logging import configure_logging
from .timestamps import now_epoch, parse_epoch

__all__ = [
    "json_loads",
    "canonical_json_bytes",
    "configure_logging",
    "now_epoch",
    "parse_epoch",
]
