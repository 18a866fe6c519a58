"""
Keyword suggestion service.

Thin request/response layer over the co-occurrence ranker: parses a
free-text query, ranks against the persisted dataset, and truncates the
result. It only ever reads the persisted dataset; extraction is never
triggered from here.

The service holds no per-query mutable state, so one instance can serve
concurrent suggest() calls from several threads.
"""

import threading
from pathlib import Path
from typing import FrozenSet, List, Optional, Union

from db.dataset import DatasetReader
from domain.cooccurrence import CooccurrenceRanker, CooccurrenceResult
from domain.logging import log_suggestion_query
from processors.keywords import KeywordNormalizer

DEFAULT_LIMIT = 1000


def parse_query(raw_query: Optional[str], normalizer: Optional[KeywordNormalizer] = None) -> FrozenSet[str]:
    """
    Parse a comma-separated query into a keyword set.

    Uses the same split/trim/drop-empty rule as extraction; duplicates collapse.

    Examples:
        >>> sorted(parse_query("math, math"))
        ['math']
        >>> parse_query(" , ")
        frozenset()
    """
    return frozenset((normalizer or KeywordNormalizer()).split(raw_query))


class SuggestionService:
    """Serve related-keyword suggestions from a persisted dataset."""

    def __init__(
        self,
        location: Union[str, Path],
        limit: int = DEFAULT_LIMIT,
        timeout_seconds: Optional[float] = None,
        ranker: Optional[CooccurrenceRanker] = None,
        log_queries: bool = True,
        log_db_path: Optional[str] = None
    ):
        """
        Initialize service.

        Args:
            location: Persisted dataset path
            limit: Default maximum number of results
            timeout_seconds: Default time budget per query (None = unlimited)
            ranker: Ranker instance (default: CooccurrenceRanker())
            log_queries: Record each query in the run log database
            log_db_path: Run log database path (defaults to RUN_LOG_DB_PATH)
        """
        if limit < 0:
            raise ValueError("limit must be >= 0")

        self.location = Path(location)
        self.limit = limit
        self.timeout_seconds = timeout_seconds
        self.ranker = ranker or CooccurrenceRanker()
        self.log_queries = log_queries
        self.log_db_path = log_db_path

    def suggest(
        self,
        raw_query: str,
        limit: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> List[CooccurrenceResult]:
        """
        Suggest keywords related to a free-text query.

        Args:
            raw_query: Comma-separated keywords, e.g. "math, algebra"
            limit: Maximum results (defaults to the service limit)
            timeout_seconds: Time budget (defaults to the service timeout)
            cancel_event: Set from another thread to abort the query

        Returns:
            Up to `limit` results, by count descending then keyword ascending.
            Empty when the query has no keywords.

        Raises:
            QueryTimeout: If the time budget is exceeded (QueryCancelled if cancelled)
            PersistenceError: If the dataset cannot be read
        """
        limit = self.limit if limit is None else limit
        if limit < 0:
            raise ValueError("limit must be >= 0")
        timeout_seconds = self.timeout_seconds if timeout_seconds is None else timeout_seconds

        with log_suggestion_query(
            raw_query,
            dataset_path=str(self.location),
            result_limit=limit,
            timeout_seconds=timeout_seconds,
            db_path=self.log_db_path,
            enabled=self.log_queries
        ) as query_log:
            # Empty query: answer without opening the dataset
            if not parse_query(raw_query):
                query_log.mark_empty_query()
                return []

            with DatasetReader(self.location) as reader:
                # Match how the dataset's keywords were normalized
                keywords = parse_query(raw_query, reader.normalizer())
                query_log.set_keywords(keywords)
                if not keywords:
                    query_log.mark_empty_query()
                    return []

                outcome = self.ranker.rank_detailed(
                    keywords,
                    reader,
                    timeout_seconds=timeout_seconds,
                    cancel_event=cancel_event
                )

            results = outcome.results[:limit]
            query_log.set_result(len(results), outcome.anchor_pages)
            return results
