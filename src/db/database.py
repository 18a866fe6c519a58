"""
Run log database connection.
"""

import sys
import time
from pathlib import Path
from typing import Optional
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker, Session
from .models import Base


class Database:
    """Database manager for pipeline run logs."""

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file. If None, uses RUN_LOG_DB_PATH from settings.
        """
        if db_path is None:
            from settings import get_setting
            db_path = get_setting('RUN_LOG_DB_PATH', 'data/run_logs.db')

        # Ensure data directory exists
        db_file = Path(db_path)
        db_file.parent.mkdir(parents=True, exist_ok=True)

        self.db_path = str(db_path)

        # Create engine and session
        self.engine = create_engine(f'sqlite:///{db_path}', echo=False)
        self.SessionLocal = sessionmaker(bind=self.engine)

        # Create tables if they don't exist
        Base.metadata.create_all(self.engine)

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    def add_with_retry(self, entry, max_retries: int = 3, retry_delay: float = 0.1) -> Optional[int]:
        """
        Insert a log entry, retrying while SQLite reports the database as locked.

        Log writes must never crash the caller: failures print a warning
        to stderr and return None.

        Args:
            entry: Mapped instance to insert
            max_retries: Attempts before giving up
            retry_delay: Initial delay in seconds (doubles each attempt)

        Returns:
            Primary key of the committed entry, or None
        """
        session = self.get_session()

        try:
            for attempt in range(max_retries):
                try:
                    session.add(entry)
                    session.commit()
                    return entry.id

                except OperationalError:
                    # Database locked - retry
                    session.rollback()
                    if attempt < max_retries - 1:
                        time.sleep(retry_delay)
                        retry_delay *= 2  # Exponential backoff
                        continue
                    print(f"Warning: Failed to save {type(entry).__name__} log after {max_retries} attempts (database locked)", file=sys.stderr)

                except Exception as e:
                    # Other error - print to stderr but don't crash
                    session.rollback()
                    print(f"Warning: Failed to save {type(entry).__name__} log: {e}", file=sys.stderr)
                    break  # Don't retry on other errors

        finally:
            # Keep attribute values readable after the session is gone
            session.expunge_all()
            session.close()

        return None

    def dispose(self):
        """Release pooled connections."""
        self.engine.dispose()
