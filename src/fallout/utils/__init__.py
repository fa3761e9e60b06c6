"""
Fallout Utils Module

- logger: Logging setup and configuration
- util: Option splitting, date-time parsing, size formatting, user directories

Usage:
    from fallout.utils import setup_logger, split_options, parse_datetime
"""

from .logger import setup_logger, parse_module_levels
from .util import (
    split_options,
    parse_datetime,
    format_size,
    user_cache_dir,
    user_config_dir,
)

__all__ = [
    'setup_logger',
    'parse_module_levels',
    'split_options',
    'parse_datetime',
    'format_size',
    'user_cache_dir',
    'user_config_dir',
]
