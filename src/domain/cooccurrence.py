"""
Keyword co-occurrence ranking.

Given query keywords and the persisted (page_id, keyword) dataset, ranks
every other keyword by the number of rows it has on "anchor pages" (pages
carrying at least one query keyword):

1. Scan for rows whose keyword is in the query; collect distinct anchor page ids.
2. Keep only rows on anchor pages with one hash semi-join on page_id.
   Output is bounded by anchor pages x keywords per page, never by the
   full dataset, and no full cross-product of keywords is materialized.
3. Group by keyword and count rows. Duplicate rows on one page count twice.
4. Drop the query keywords themselves.
5. Sort by count descending, then keyword ascending for reproducible ties.

Both passes read the same snapshot of the dataset file. A deadline and a
cancel event are checked between record batches of the anchor scan and
around the join.
"""

import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Union

import pyarrow as pa
import pyarrow.compute as pc

from db.dataset import DatasetReader, conform_table


class QueryTimeout(Exception):
    """Ranking exceeded the caller's time budget. Safe to retry with a narrower query."""
    pass


class QueryCancelled(QueryTimeout):
    """Ranking was cancelled by the caller."""
    pass


@dataclass(frozen=True)
class CooccurrenceResult:
    """One suggested keyword and the number of anchor-page rows it appears in."""
    keyword: str
    count: int

    def as_tuple(self):
        return (self.keyword, self.count)


@dataclass
class RankingOutcome:
    """Ranked results plus the size of the anchor page set."""
    results: List[CooccurrenceResult]
    anchor_pages: int


class _Deadline:
    """Deadline/cancellation checkpoint shared by one ranking call."""

    def __init__(self, timeout_seconds: Optional[float], cancel_event: Optional[threading.Event]):
        self.timeout_seconds = timeout_seconds
        self.cancel_event = cancel_event
        self.started = time.monotonic()
        self.expires_at = self.started + timeout_seconds if timeout_seconds is not None else None

    def check(self):
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise QueryCancelled("Query cancelled")
        if self.expires_at is not None and time.monotonic() >= self.expires_at:
            raise QueryTimeout(f"Query exceeded {self.timeout_seconds:g}s time budget")


class CooccurrenceRanker:
    """Rank keywords co-occurring with a query over the persisted dataset."""

    def __init__(self, batch_size: int = 65536, timeout_seconds: Optional[float] = None):
        """
        Initialize ranker.

        Args:
            batch_size: Rows per scanned record batch (granularity of timeout checks)
            timeout_seconds: Default time budget per query (None = unlimited)
        """
        self.batch_size = batch_size
        self.timeout_seconds = timeout_seconds

    def _batches(self, source, columns: List[str]) -> Iterator[pa.RecordBatch]:
        if isinstance(source, pa.Table):
            yield from source.select(columns).to_batches(max_chunksize=self.batch_size)
        else:
            yield from source.iter_batches(columns=columns, batch_size=self.batch_size)

    def anchor_pages(self, query: pa.Array, source, deadline: _Deadline) -> pa.Array:
        """Distinct page ids carrying at least one query keyword."""
        chunks = []
        for batch in self._batches(source, ['page_id', 'keyword']):
            deadline.check()
            mask = pc.is_in(batch.column(1), value_set=query)
            matched = pc.filter(batch.column(0), mask)
            if len(matched):
                chunks.append(pc.unique(matched))

        if not chunks:
            return pa.array([], type=pa.uint64())
        return pc.unique(pa.concat_arrays(chunks))

    def anchor_keywords(self, anchors: pa.Array, source, deadline: _Deadline) -> pa.Array:
        """Keywords of every row on an anchor page (one hash semi-join)."""
        if isinstance(source, pa.Table):
            table = source.select(['page_id', 'keyword'])
        else:
            table = source.read_all()
        deadline.check()

        # The anchor hash table is built once, not per record batch
        matched = table.join(pa.table({'page_id': anchors}), 'page_id', join_type='left semi')
        deadline.check()
        return matched.column('keyword').combine_chunks()

    def rank(
        self,
        query_keywords: Iterable[str],
        source: Union[str, Path, pa.Table, DatasetReader],
        timeout_seconds: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> List[CooccurrenceResult]:
        """
        Rank keywords co-occurring with the query.

        Args:
            query_keywords: Query keywords (treated as a set)
            source: Dataset location, open DatasetReader, or in-memory Arrow table
            timeout_seconds: Time budget for this call (overrides the default)
            cancel_event: Set from another thread to abort the query

        Returns:
            Results sorted by count descending, then keyword ascending

        Raises:
            QueryTimeout: If the time budget is exceeded
            QueryCancelled: If cancel_event is set
            PersistenceError: If the dataset cannot be read
        """
        return self.rank_detailed(query_keywords, source, timeout_seconds, cancel_event).results

    def rank_detailed(
        self,
        query_keywords: Iterable[str],
        source: Union[str, Path, pa.Table, DatasetReader],
        timeout_seconds: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> RankingOutcome:
        """Same as rank(), also reporting how many anchor pages were found."""
        query = sorted(set(query_keywords))
        if not query:
            return RankingOutcome(results=[], anchor_pages=0)

        deadline = _Deadline(
            timeout_seconds if timeout_seconds is not None else self.timeout_seconds,
            cancel_event
        )
        deadline.check()

        if isinstance(source, (str, Path)):
            with DatasetReader(source) as reader:
                return self._rank(query, reader, deadline)
        if isinstance(source, pa.Table):
            source = conform_table(source)
        return self._rank(query, source, deadline)

    def _rank(self, query: List[str], source, deadline: _Deadline) -> RankingOutcome:
        query_array = pa.array(query, type=pa.string())

        anchors = self.anchor_pages(query_array, source, deadline)
        if not len(anchors):
            return RankingOutcome(results=[], anchor_pages=0)

        keywords = self.anchor_keywords(anchors, source, deadline)
        deadline.check()

        counts = pa.table({'keyword': keywords}).group_by('keyword').aggregate([('keyword', 'count')])
        counts = counts.filter(pc.invert(pc.is_in(counts.column('keyword'), value_set=query_array)))
        counts = counts.sort_by([('keyword_count', 'descending'), ('keyword', 'ascending')])

        results = [
            CooccurrenceResult(keyword=keyword, count=count)
            for keyword, count in zip(
                counts.column('keyword').to_pylist(),
                counts.column('keyword_count').to_pylist()
            )
        ]
        return RankingOutcome(results=results, anchor_pages=len(anchors))
