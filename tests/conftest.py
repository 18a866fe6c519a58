"""
Shared pytest fixtures.
"""

import gzip

import pytest

from db.dataset import save_dataset

# Dataset used throughout the ranking tests
SCENARIO_ROWS = [
    (1, 'math'),
    (1, 'algebra'),
    (2, 'math'),
    (2, 'forum'),
    (3, 'algebra'),
]


def meta_line(keywords):
    return f'<html><head><meta name="keywords" content="{keywords}"></head></html>'


@pytest.fixture
def scenario_rows():
    return list(SCENARIO_ROWS)


@pytest.fixture
def scenario_dataset(tmp_path):
    """Persisted copy of the scenario rows."""
    location = tmp_path / 'keywords.parquet'
    save_dataset(SCENARIO_ROWS, location)
    return location


@pytest.fixture
def log_db(tmp_path):
    """Path to a throwaway run log database."""
    return str(tmp_path / 'run_logs.db')


@pytest.fixture
def archive_dir(tmp_path):
    """
    Two archive files, one gzip-compressed.

    In run order (sorted file names) the pages with a keywords tag are:
    0: math, algebra   1: math, forum   2: algebra   3: (only commas)   4: python, math

    Six records mention "keywords" and pass the default match filter.
    """
    root = tmp_path / 'crawl'
    root.mkdir()

    (root / 'part-00000.txt').write_text('\n'.join([
        meta_line('math, algebra'),
        '<p>no tag here</p>',
        meta_line('math,forum'),
        '<meta name="description" content="keywords are elsewhere">',
    ]) + '\n', encoding='utf-8')

    with gzip.open(root / 'part-00001.txt.gz', 'wt', encoding='utf-8') as f:
        f.write('\n'.join([
            meta_line(' algebra ,, '),
            meta_line(' , '),
            meta_line('python, math'),
        ]) + '\n')

    return root
