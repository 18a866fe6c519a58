import threading

import pyarrow as pa
import pytest

from db.dataset import DatasetReader, PersistenceError, rows_to_table, save_dataset
from domain.cooccurrence import (
    CooccurrenceRanker, CooccurrenceResult, QueryCancelled, QueryTimeout
)


@pytest.fixture
def ranker():
    return CooccurrenceRanker()


def as_tuples(results):
    return [r.as_tuple() for r in results]


def test_scenario(ranker, scenario_dataset):
    results = ranker.rank({'math'}, scenario_dataset)
    assert as_tuples(results) == [('algebra', 1), ('forum', 1)]


def test_accepts_table_and_open_reader(ranker, scenario_rows, scenario_dataset):
    expected = [('algebra', 1), ('forum', 1)]
    assert as_tuples(ranker.rank({'math'}, rows_to_table(scenario_rows))) == expected
    with DatasetReader(scenario_dataset) as reader:
        assert as_tuples(ranker.rank({'math'}, reader)) == expected


def test_query_keywords_never_appear_in_results(ranker, scenario_dataset):
    results = ranker.rank({'math', 'algebra'}, scenario_dataset)
    assert as_tuples(results) == [('forum', 1)]


def test_ordered_by_count_then_keyword(ranker):
    table = rows_to_table([
        (0, 'q'), (0, 'zeta'), (0, 'beta'),
        (1, 'q'), (1, 'zeta'), (1, 'alpha'),
        (2, 'q'), (2, 'zeta'), (2, 'beta'),
        (3, 'zeta'), (3, 'alpha'), (3, 'alpha'),
    ])
    results = ranker.rank(['q'], table)
    assert as_tuples(results) == [('zeta', 3), ('beta', 2), ('alpha', 1)]
    assert all(a.count >= b.count for a, b in zip(results, results[1:]))


def test_tie_break_uses_code_point_order(ranker):
    table = rows_to_table([(0, 'q'), (0, 'b'), (0, 'B'), (0, 'á'), (0, 'a')])
    assert [r.keyword for r in ranker.rank({'q'}, table)] == ['B', 'a', 'b', 'á']


def test_duplicate_rows_count_per_row(ranker):
    table = rows_to_table([(0, 'q'), (0, 'x'), (0, 'x'), (1, 'q'), (1, 'y')])
    assert as_tuples(ranker.rank({'q'}, table)) == [('x', 2), ('y', 1)]


def test_rows_off_anchor_pages_are_ignored(ranker, scenario_dataset):
    # Page 3 only has algebra, which must not add to its count
    results = ranker.rank({'forum'}, scenario_dataset)
    assert as_tuples(results) == [('math', 1)]


def test_empty_query(ranker, scenario_dataset):
    assert ranker.rank(set(), scenario_dataset) == []


def test_empty_query_does_not_touch_dataset(ranker, tmp_path):
    assert ranker.rank([], tmp_path / 'missing.parquet') == []


def test_unmatched_query(ranker, scenario_dataset):
    assert ranker.rank({'chemistry'}, scenario_dataset) == []


def test_query_with_no_other_keywords(ranker):
    table = rows_to_table([(0, 'solo'), (1, 'other')])
    assert ranker.rank({'solo'}, table) == []


def test_small_batches_give_same_result(scenario_dataset):
    results = CooccurrenceRanker(batch_size=1).rank({'math'}, scenario_dataset)
    assert as_tuples(results) == [('algebra', 1), ('forum', 1)]


def test_rank_detailed_reports_anchor_pages(ranker, scenario_dataset):
    outcome = ranker.rank_detailed({'math'}, scenario_dataset)
    assert outcome.anchor_pages == 2
    assert outcome.results == [CooccurrenceResult('algebra', 1), CooccurrenceResult('forum', 1)]


def test_timeout(scenario_dataset):
    with pytest.raises(QueryTimeout):
        CooccurrenceRanker().rank({'math'}, scenario_dataset, timeout_seconds=0)


def test_default_timeout_from_constructor(scenario_dataset):
    with pytest.raises(QueryTimeout):
        CooccurrenceRanker(timeout_seconds=0).rank({'math'}, scenario_dataset)


def test_cancellation(ranker, scenario_dataset):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(QueryCancelled):
        ranker.rank({'math'}, scenario_dataset, cancel_event=cancel)


def test_cancelled_is_a_timeout():
    assert issubclass(QueryCancelled, QueryTimeout)


def test_missing_dataset(ranker, tmp_path):
    with pytest.raises(PersistenceError):
        ranker.rank({'math'}, tmp_path / 'missing.parquet')


def test_table_with_wrong_schema(ranker):
    with pytest.raises(PersistenceError):
        ranker.rank({'math'}, pa.table({'kw': ['math']}))


def test_popular_query_counts_every_anchor_page(tmp_path):
    rows = []
    for page in range(2000):
        rows.append((page, 'common'))
        rows.append((page, f'k{page % 10}'))
    table = rows_to_table(rows)
    expected = [(f'k{i}', 200) for i in range(10)]

    ranker = CooccurrenceRanker(batch_size=64)
    outcome = ranker.rank_detailed({'common'}, table)
    assert outcome.anchor_pages == 2000
    assert as_tuples(outcome.results) == expected

    location = tmp_path / 'keywords.parquet'
    save_dataset(rows, location)
    assert as_tuples(ranker.rank({'common'}, location)) == expected


class CancelAfterAnchors(CooccurrenceRanker):
    def __init__(self, cancel):
        super().__init__()
        self.cancel = cancel

    def anchor_pages(self, *args):
        anchors = super().anchor_pages(*args)
        self.cancel.set()
        return anchors


def test_cancellation_before_join(scenario_dataset):
    cancel = threading.Event()
    with pytest.raises(QueryCancelled):
        CancelAfterAnchors(cancel).rank({'math'}, scenario_dataset, cancel_event=cancel)
