"""
Suggestion query logging.

Records every suggestion request (query, result size, timing, outcome) in
the run log database.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import List, Optional


class SuggestionQueryLogger:
    """Logger for suggestion queries."""

    def __init__(
        self,
        raw_query: str,
        dataset_path: Optional[str] = None,
        result_limit: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        db_path: Optional[str] = None,
        enabled: bool = True
    ):
        self.raw_query = raw_query
        self.dataset_path = str(dataset_path) if dataset_path is not None else None
        self.result_limit = result_limit
        self.timeout_seconds = timeout_seconds
        self.db_path = db_path
        self.enabled = enabled

        # Timing
        self.started_at = datetime.utcnow()
        self.completed_at: Optional[datetime] = None
        self.duration_seconds: Optional[float] = None

        # Request / response
        self.keywords: Optional[List[str]] = None
        self.result_count: Optional[int] = None
        self.anchor_pages: Optional[int] = None

        # Status
        self.status = 'success'
        self.error_message: Optional[str] = None
        self.log_id: Optional[int] = None

    def set_keywords(self, keywords):
        self.keywords = sorted(keywords)

    def set_result(self, result_count: int, anchor_pages: Optional[int] = None):
        self.result_count = result_count
        self.anchor_pages = anchor_pages

    def _finish(self):
        self.completed_at = datetime.utcnow()
        self.duration_seconds = (self.completed_at - self.started_at).total_seconds()

    def mark_success(self):
        """Mark query as served. Status stays 'success' or 'empty_query'."""
        self._finish()

    def mark_empty_query(self):
        self.status = 'empty_query'
        self.result_count = 0

    def mark_error(self, status: str, error_message: str):
        """Mark query as failed ('timeout', 'cancelled' or 'error')."""
        self._finish()
        self.status = status
        self.error_message = error_message

    def save(self):
        """Save log entry to the run log database (no-op when disabled)."""
        if not self.enabled:
            return

        from db import Database, SuggestionQuery

        db = Database(self.db_path)
        try:
            entry = SuggestionQuery(
                started_at=self.started_at,
                completed_at=self.completed_at,
                duration_seconds=self.duration_seconds,
                raw_query=self.raw_query,
                keywords=self.keywords,
                result_limit=self.result_limit,
                timeout_seconds=self.timeout_seconds,
                dataset_path=self.dataset_path,
                result_count=self.result_count,
                anchor_pages=self.anchor_pages,
                status=self.status,
                error_message=self.error_message
            )
            self.log_id = db.add_with_retry(entry)
        finally:
            db.dispose()


@contextmanager
def log_suggestion_query(
    raw_query: str,
    dataset_path: Optional[str] = None,
    result_limit: Optional[int] = None,
    timeout_seconds: Optional[float] = None,
    db_path: Optional[str] = None,
    enabled: bool = True
):
    """
    Context manager for logging suggestion queries.

    Timeouts and cancellations are logged with their own status; the
    exception is re-raised either way.

    Example:
        >>> with log_suggestion_query('math, algebra', 'data/keywords.parquet') as query_log:
        ...     query_log.set_keywords(keywords)
        ...     outcome = ranker.rank_detailed(keywords, reader)
        ...     query_log.set_result(len(outcome.results), outcome.anchor_pages)
    """
    from domain.cooccurrence import QueryCancelled, QueryTimeout

    logger = SuggestionQueryLogger(raw_query, dataset_path, result_limit, timeout_seconds, db_path, enabled)

    try:
        yield logger
        logger.mark_success()
    except QueryCancelled as e:
        logger.mark_error('cancelled', str(e))
        raise
    except QueryTimeout as e:
        logger.mark_error('timeout', str(e))
        raise
    except Exception as e:
        logger.mark_error('error', str(e))
        raise
    finally:
        logger.save()
