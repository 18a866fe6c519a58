"""
SQLAlchemy models for pipeline run logs.

The keyword dataset itself lives in Parquet (see db.dataset); this
database only records what each extraction run and suggestion query did.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, Float, JSON, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class ExtractionRun(Base):
    """Log of extraction runs (archives -> keyword dataset)."""
    __tablename__ = 'extraction_runs'

    id = Column(Integer, primary_key=True)
    run_id = Column(String(32), nullable=False, unique=True, index=True)  # Also written to the Parquet footer

    # Timing
    started_at = Column(DateTime, nullable=False, index=True)
    completed_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Float, nullable=True)

    # Input parameters
    sources = Column(JSON, nullable=True)                  # Archive paths/globs as given
    output_path = Column(Text, nullable=False)
    partitions = Column(Integer, nullable=True)
    workers = Column(Integer, nullable=True)
    policy = Column(String(10), nullable=True)             # 'cpu' or 'io'
    parser = Column(String(20), nullable=True)             # 'regex' or 'soup'
    record_mode = Column(String(20), nullable=True)        # 'line' or 'document'
    match_filter = Column(Text, nullable=True)

    # Results
    records_scanned = Column(Integer, nullable=True)       # Records that passed the match filter
    pages = Column(Integer, nullable=True)                 # Records with a non-empty keyword string
    keyword_rows = Column(Integer, nullable=True)
    file_size_bytes = Column(Integer, nullable=True)

    # Status and errors
    success = Column(Integer, nullable=False, default=1, index=True)  # 1=success, 0=error
    error_message = Column(Text, nullable=True)

    def __repr__(self):
        status = 'success' if self.success else 'error'
        duration = f"{self.duration_seconds:.2f}s" if self.duration_seconds else 'N/A'
        return f"<ExtractionRun(run_id={self.run_id}, pages={self.pages}, rows={self.keyword_rows}, status={status}, duration={duration})>"


class SuggestionQuery(Base):
    """Log of suggestion queries served from a persisted dataset."""
    __tablename__ = 'suggestion_queries'

    id = Column(Integer, primary_key=True)

    # Timing
    started_at = Column(DateTime, nullable=False, index=True)
    completed_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Float, nullable=True)

    # Request
    raw_query = Column(Text, nullable=False)
    keywords = Column(JSON, nullable=True)                 # Parsed query keywords (sorted)
    result_limit = Column(Integer, nullable=True)
    timeout_seconds = Column(Float, nullable=True)
    dataset_path = Column(Text, nullable=True)

    # Response
    result_count = Column(Integer, nullable=True)
    anchor_pages = Column(Integer, nullable=True)

    # Status: 'success', 'empty_query', 'timeout', 'cancelled', 'error'
    status = Column(String(20), nullable=False, default='success', index=True)
    error_message = Column(Text, nullable=True)

    __table_args__ = (
        Index('idx_suggestion_queries_status_started', 'status', 'started_at'),
    )

    def __repr__(self):
        duration = f"{self.duration_seconds:.3f}s" if self.duration_seconds else 'N/A'
        return f"<SuggestionQuery(id={self.id}, query={self.raw_query!r}, results={self.result_count}, status={self.status}, duration={duration})>"
