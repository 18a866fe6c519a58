"""
Application settings management.
Uses python-dotenv to load environment variables from .env file.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file from project root
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(dotenv_path=env_path)

# Values are read once per process; later environment changes are ignored
_ENV_CACHE = {}


def get_setting(key: str, default=None):
    """
    Read a setting from the environment (after .env has been loaded).

    Example:
        >>> DATASET_PATH = get_setting('DATASET_PATH', 'data/keywords.parquet')
    """
    if key not in _ENV_CACHE:
        _ENV_CACHE[key] = os.getenv(key, default)
    return _ENV_CACHE[key]


def get_bool_setting(key: str, default: str = 'False') -> bool:
    """Read a boolean flag ('true', '1', 'yes' are truthy)."""
    return str(get_setting(key, default)).lower() in ('true', '1', 'yes')


def get_optional_float(key: str):
    """Read a float setting, returning None when unset or empty."""
    value = get_setting(key)
    if value in (None, ''):
        return None
    return float(value)


# Debug mode
DEBUG = get_bool_setting('DEBUG')

# Storage paths
DATASET_PATH = get_setting('DATASET_PATH', 'data/keywords.parquet')
RUN_LOG_DB_PATH = get_setting('RUN_LOG_DB_PATH', 'data/run_logs.db')

# Extraction
EXTRACT_PARTITIONS = int(get_setting('EXTRACT_PARTITIONS', '8'))
EXTRACT_WORKERS = int(get_setting('EXTRACT_WORKERS', '4'))
EXTRACT_POLICY = get_setting('EXTRACT_POLICY', 'cpu')
ARCHIVE_MATCH_FILTER = get_setting('ARCHIVE_MATCH_FILTER', 'keywords')
ARCHIVE_RECORD_MODE = get_setting('ARCHIVE_RECORD_MODE', 'line')
EXTRACT_TAG = get_setting('EXTRACT_TAG', 'meta')
EXTRACT_ATTRIBUTE = get_setting('EXTRACT_ATTRIBUTE', 'keywords')
EXTRACT_PARSER = get_setting('EXTRACT_PARSER', 'regex')
KEYWORD_CASE_FOLD = get_bool_setting('KEYWORD_CASE_FOLD')
KEYWORD_STRIP_ACCENTS = get_bool_setting('KEYWORD_STRIP_ACCENTS')

# Suggestions
SUGGEST_LIMIT = int(get_setting('SUGGEST_LIMIT', '1000'))
DISPLAY_LIMIT = int(get_setting('DISPLAY_LIMIT', '400'))
DISPLAY_KEYWORD_WIDTH = int(get_setting('DISPLAY_KEYWORD_WIDTH', '60'))
QUERY_TIMEOUT = get_optional_float('QUERY_TIMEOUT')
