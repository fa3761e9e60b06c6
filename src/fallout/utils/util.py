"""
Some utils for Fallout
"""

import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import List

# ----------------------
#
#  Option Parsing
#
# ----------------------

sep_pattern = re.compile(r"[\s,]+")


def split_options(value: str) -> List[str]:
    """
    Split a comma or whitespace separated option value, dropping empty items
    """
    if not value:
        return []
    return [v for v in sep_pattern.split(value) if v]


def parse_datetime(value: str) -> datetime:
    """
    Parse an RFC 3339 date (2006-01-02) or date-time (2006-01-02T15:04:05Z)

    Values without a zone are taken as UTC, the result is always UTC.
    """
    value = value.strip()
    try:
        if "T" not in value and "t" not in value and " " not in value:
            ts = datetime.strptime(value, "%Y-%m-%d")
        else:
            ts = datetime.fromisoformat(value)
    except ValueError:
        raise ValueError(f"invalid date or date-time, want RFC 3339: {value!r}")
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


# ----------------------
#
#  Formatting
#
# ----------------------

size_units = ["B", "KiB", "MiB", "GiB", "TiB"]


def format_size(size: int) -> str:
    """
    Human readable byte count, 1536 -> 1.5 KiB
    """
    if size < 1024:
        return f"{size} B"
    value = float(size)
    for unit in size_units[1:]:
        value /= 1024
        if value < 1024 or unit == size_units[-1]:
            return f"{value:.1f} {unit}"
    return f"{size} B"


# ----------------------
#
#  User Directories
#
# ----------------------

def user_cache_dir() -> Path:
    """$XDG_CACHE_HOME, or ~/.cache"""
    xdg = os.environ.get("XDG_CACHE_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".cache"


def user_config_dir() -> Path:
    """$XDG_CONFIG_HOME, or ~/.config"""
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".config"
