"""
Storage package: Parquet keyword dataset and SQLite run logs.
"""

from .models import Base, ExtractionRun, SuggestionQuery
from .database import Database
from .dataset import (
    KEYWORD_SCHEMA, PersistenceError, DatasetReader, DatasetWriter,
    save_dataset, load_dataset, dataset_stats, build_footer_metadata, rows_to_table
)

__all__ = ['Base', 'ExtractionRun', 'SuggestionQuery', 'Database',
           'KEYWORD_SCHEMA', 'PersistenceError', 'DatasetReader', 'DatasetWriter',
           'save_dataset', 'load_dataset', 'dataset_stats', 'build_footer_metadata', 'rows_to_table']
