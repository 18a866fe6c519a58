"""
Extraction run logging.

Provides context manager and logger class for recording each extraction
run (parameters, counts, timing, errors) in the run log database.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional


class ExtractionRunLogger:
    """
    Logger for extraction runs.

    Tracks the run's parameters, result counts, timing and errors.
    """

    def __init__(
        self,
        run_id: str,
        output_path: str,
        sources: Optional[List[str]] = None,
        params: Optional[Dict[str, Any]] = None,
        db_path: Optional[str] = None,
        enabled: bool = True
    ):
        """
        Initialize logger.

        Args:
            run_id: Run identifier (also stored in the dataset footer)
            output_path: Dataset location being written
            sources: Archive sources as given on the command line
            params: partitions, workers, policy, parser, record_mode, match_filter
            db_path: Run log database path (defaults to RUN_LOG_DB_PATH)
            enabled: If False, save() is a no-op
        """
        self.run_id = run_id
        self.output_path = str(output_path)
        self.sources = sources or []
        self.params = params or {}
        self.db_path = db_path
        self.enabled = enabled

        # Timing
        self.started_at = datetime.utcnow()
        self.completed_at: Optional[datetime] = None
        self.duration_seconds: Optional[float] = None

        # Results
        self.records_scanned: Optional[int] = None
        self.pages: Optional[int] = None
        self.keyword_rows: Optional[int] = None
        self.file_size_bytes: Optional[int] = None

        # Status
        self.success: bool = True
        self.error_message: Optional[str] = None
        self.log_id: Optional[int] = None

    def set_result(self, result: Dict[str, Any]):
        """Copy counts from an extraction result summary."""
        self.records_scanned = result.get('records_scanned')
        self.pages = result.get('pages')
        self.keyword_rows = result.get('keyword_rows')
        self.file_size_bytes = result.get('file_size_bytes')

    def _finish(self):
        self.completed_at = datetime.utcnow()
        self.duration_seconds = (self.completed_at - self.started_at).total_seconds()

    def mark_success(self):
        """Mark run as successful and calculate duration."""
        self._finish()
        self.success = True

    def mark_error(self, error_message: str):
        """Mark run as failed with error message."""
        self._finish()
        self.success = False
        self.error_message = error_message

    def save(self):
        """
        Save log entry to the run log database.

        Uses its own session so it never interferes with the caller.
        """
        if not self.enabled:
            return

        from db import Database, ExtractionRun

        db = Database(self.db_path)
        try:
            entry = ExtractionRun(
                run_id=self.run_id,
                started_at=self.started_at,
                completed_at=self.completed_at,
                duration_seconds=self.duration_seconds,
                sources=self.sources,
                output_path=self.output_path,
                partitions=self.params.get('partitions'),
                workers=self.params.get('workers'),
                policy=self.params.get('policy'),
                parser=self.params.get('parser'),
                record_mode=self.params.get('record_mode'),
                match_filter=self.params.get('match_filter'),
                records_scanned=self.records_scanned,
                pages=self.pages,
                keyword_rows=self.keyword_rows,
                file_size_bytes=self.file_size_bytes,
                success=1 if self.success else 0,
                error_message=self.error_message
            )
            self.log_id = db.add_with_retry(entry)
        finally:
            db.dispose()


@contextmanager
def log_extraction_run(
    run_id: str,
    output_path: str,
    sources: Optional[List[str]] = None,
    params: Optional[Dict[str, Any]] = None,
    db_path: Optional[str] = None,
    enabled: bool = True
):
    """
    Context manager for logging extraction runs.

    Automatically handles success/error tracking and database persistence.

    Yields:
        ExtractionRunLogger instance

    Example:
        >>> with log_extraction_run(run_id, 'data/keywords.parquet', sources) as run_log:
        ...     result = pipeline.run(partitions, output_path, run_id=run_id)
        ...     run_log.set_result(result)
    """
    logger = ExtractionRunLogger(run_id, output_path, sources, params, db_path, enabled)

    try:
        yield logger
        logger.mark_success()
    except BaseException as e:
        logger.mark_error(str(e) or type(e).__name__)
        raise
    finally:
        logger.save()
