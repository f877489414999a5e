"""Utility functions."""

from paperpulse.utils.dates import format_timestamp, parse_timestamp, utc_now
from paperpulse.utils.text import (
    dedupe,
    includes_token,
    normalize_arxiv_id,
    normalize_name,
    parse_identifier_list,
    strip_version,
)

__all__ = [
    "dedupe",
    "format_timestamp",
    "includes_token",
    "normalize_arxiv_id",
    "normalize_name",
    "parse_identifier_list",
    "parse_timestamp",
    "strip_version",
    "utc_now",
]
