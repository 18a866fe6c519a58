"""
Parquet persistence for the (page_id, keyword) relation.

The dataset is a single Parquet file written atomically
(temp file -> fsync -> rename), so a concurrent reader sees either the
previous dataset or the new one, never a partial write. A successful save
fully replaces whatever was at the location before.

Readers open one snapshot of the file; a save that lands while a query is
running does not affect the handle the query already holds.
"""

import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

import pyarrow as pa
import pyarrow.compute as pc
import pyarrow.parquet as pq

from processors.keywords import KeywordNormalizer

SCHEMA_VERSION = 'kwmine/keywords/1.0.0'
METADATA_PREFIX = 'kwmine.'

KEYWORD_SCHEMA = pa.schema([
    pa.field('page_id', pa.uint64(), nullable=False),
    pa.field('keyword', pa.string(), nullable=False),
])


class PersistenceError(Exception):
    """Failure to write or read the persisted keyword dataset."""
    pass


def rows_to_table(rows: Iterable[Tuple[int, str]]) -> pa.Table:
    """Build a keyword table from (page_id, keyword) rows."""
    page_ids = []
    keywords = []
    for page_id, keyword in rows:
        page_ids.append(page_id)
        keywords.append(keyword)
    try:
        columns = [pa.array(page_ids, type=pa.uint64()), pa.array(keywords, type=pa.string())]
    except (OverflowError, TypeError, ValueError, pa.ArrowException) as e:
        # page_id must fit uint64 and keywords must be text
        raise PersistenceError(f"Invalid keyword rows: {e}")
    return pa.table(columns, schema=KEYWORD_SCHEMA)


def conform_table(table: pa.Table) -> pa.Table:
    """
    Cast a table to the keyword schema.

    Raises:
        PersistenceError: If columns are missing or cannot be cast
    """
    missing = [name for name in KEYWORD_SCHEMA.names if name not in table.column_names]
    if missing:
        raise PersistenceError(f"Dataset is missing columns: {', '.join(missing)}")

    table = table.select(KEYWORD_SCHEMA.names)
    if table.column('page_id').null_count or table.column('keyword').null_count:
        raise PersistenceError("Dataset contains null page_id or keyword values")

    try:
        return table.cast(KEYWORD_SCHEMA)
    except (pa.ArrowInvalid, pa.ArrowNotImplementedError, pa.ArrowTypeError) as e:
        raise PersistenceError(f"Dataset does not match keyword schema: {e}")


def build_footer_metadata(
    run_id: Optional[str] = None,
    normalizer: Optional[KeywordNormalizer] = None,
    extra: Optional[Dict[str, str]] = None
) -> Dict[str, str]:
    """Footer metadata written with every dataset."""
    metadata = {
        'kwmine.schema_version': SCHEMA_VERSION,
        'kwmine.run_id': run_id or uuid.uuid4().hex,
        'kwmine.created_at': datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ'),
    }
    metadata.update((normalizer or KeywordNormalizer()).metadata())
    if extra:
        metadata.update({k if k.startswith(METADATA_PREFIX) else METADATA_PREFIX + k: str(v)
                         for k, v in extra.items()})
    return metadata


def _fsync(path: Path):
    try:
        with open(path, 'rb') as f:
            os.fsync(f.fileno())
    except OSError:
        # Some filesystems do not support fsync on read handles
        pass


class DatasetWriter:
    """
    Streaming, atomic writer for the keyword dataset.

    Rows are appended in batches (one row group per call to write_rows or
    write_table). Nothing is visible at `location` until commit().

    Example:
        >>> with DatasetWriter('data/keywords.parquet', metadata) as writer:
        ...     writer.write_rows([(0, 'math'), (0, 'algebra')])
        ...     writer.write_rows([(1, 'math')])
    """

    def __init__(
        self,
        location: Union[str, Path],
        metadata: Optional[Dict[str, str]] = None,
        compression: str = 'zstd'
    ):
        self.location = Path(location)
        self.metadata = metadata or build_footer_metadata()
        self.compression = compression
        self.row_count = 0

        self._tmp_path = self.location.with_name(f"{self.location.name}.tmp.{uuid.uuid4().hex}")
        self._schema = KEYWORD_SCHEMA.with_metadata(self.metadata)
        self._writer: Optional[pq.ParquetWriter] = None
        self._committed = False
        self.summary: Optional[Dict[str, Any]] = None

    def _open(self):
        if self._writer is None:
            try:
                self.location.parent.mkdir(parents=True, exist_ok=True)
                self._writer = pq.ParquetWriter(
                    str(self._tmp_path),
                    self._schema,
                    compression=self.compression,
                    write_statistics=True
                )
            except (OSError, pa.ArrowException) as e:
                raise PersistenceError(f"Cannot open dataset for writing at {self.location}: {e}")
        return self._writer

    def write_table(self, table: pa.Table):
        """Append a table as one row group."""
        table = conform_table(table).replace_schema_metadata(self.metadata)
        writer = self._open()
        if table.num_rows == 0:
            return
        try:
            writer.write_table(table)
        except (OSError, pa.ArrowException) as e:
            raise PersistenceError(f"Failed writing dataset rows: {e}")
        self.row_count += table.num_rows

    def write_rows(self, rows: Iterable[Tuple[int, str]]):
        """Append (page_id, keyword) rows as one row group."""
        self.write_table(rows_to_table(rows))

    def commit(self) -> Dict[str, Any]:
        """
        Close the temp file and atomically move it onto the location.

        Returns:
            Summary dict with output_path, row_count and file_size_bytes
        """
        if self._committed:
            raise PersistenceError("Dataset already committed")

        # An empty run still produces a readable, empty dataset
        writer = self._open()
        try:
            writer.close()
            _fsync(self._tmp_path)
            self._tmp_path.replace(self.location)
        except (OSError, pa.ArrowException) as e:
            self.abort()
            raise PersistenceError(f"Failed to replace dataset at {self.location}: {e}")

        self._committed = True
        self.summary = {
            'output_path': str(self.location),
            'row_count': self.row_count,
            'file_size_bytes': self.location.stat().st_size,
            'run_id': self.metadata.get('kwmine.run_id'),
        }
        return self.summary

    def abort(self):
        """Discard the temp file; the existing dataset is left untouched."""
        if self._writer is not None:
            try:
                self._writer.close()
            except (OSError, pa.ArrowException):
                pass
            self._writer = None
        self._tmp_path.unlink(missing_ok=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            if not self._committed:
                self.commit()
        else:
            self.abort()
        return False


def save_dataset(
    dataset: Union[pa.Table, Iterable[Tuple[int, str]]],
    location: Union[str, Path],
    metadata: Optional[Dict[str, str]] = None
) -> Dict[str, Any]:
    """
    Persist a keyword dataset, replacing anything at `location`.

    Args:
        dataset: Arrow table with page_id/keyword columns, or (page_id, keyword) rows
        location: Output Parquet file path
        metadata: Footer metadata (defaults to build_footer_metadata())

    Returns:
        Summary dict (see DatasetWriter.commit)

    Raises:
        PersistenceError: On I/O failure or schema mismatch
    """
    with DatasetWriter(location, metadata) as writer:
        if isinstance(dataset, pa.Table):
            writer.write_table(dataset)
        else:
            writer.write_rows(dataset)
    return writer.summary


def _validate_schema(schema: pa.Schema, location) -> None:
    expected_types = {f.name: f.type for f in KEYWORD_SCHEMA}
    actual_types = {f.name: f.type for f in schema}
    if actual_types != expected_types:
        raise PersistenceError(
            f"Schema mismatch in {location}: expected {expected_types}, found {actual_types}"
        )


def _decode_metadata(raw: Optional[Dict[bytes, bytes]]) -> Dict[str, str]:
    if not raw:
        return {}
    return {
        k.decode('utf-8'): v.decode('utf-8')
        for k, v in raw.items()
        if k.decode('utf-8', errors='ignore').startswith(METADATA_PREFIX)
    }


def load_dataset(location: Union[str, Path]) -> pa.Table:
    """
    Load the full keyword dataset.

    Raises:
        PersistenceError: If the file is missing, unreadable, or has the wrong schema
    """
    with DatasetReader(location) as reader:
        return reader.read_all()


class DatasetReader:
    """
    Read-only handle on one snapshot of a persisted dataset.

    Example:
        >>> with DatasetReader('data/keywords.parquet') as reader:
        ...     for batch in reader.iter_batches(['keyword']):
        ...         ...
    """

    def __init__(self, location: Union[str, Path]):
        self.location = Path(location)
        self._file = None
        self._parquet: Optional[pq.ParquetFile] = None

    def open(self) -> 'DatasetReader':
        if self._parquet is not None:
            return self
        if not self.location.is_file():
            raise PersistenceError(f"Dataset not found: {self.location}")
        try:
            # Holding the file object pins this snapshot across later replaces
            self._file = open(self.location, 'rb')
            self._parquet = pq.ParquetFile(self._file)
        except (OSError, pa.ArrowException) as e:
            self.close()
            raise PersistenceError(f"Cannot read dataset {self.location}: {e}")
        try:
            _validate_schema(self._parquet.schema_arrow, self.location)
        except PersistenceError:
            self.close()
            raise
        return self

    def close(self):
        if self._parquet is not None:
            self._parquet.close()
            self._parquet = None
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @property
    def parquet(self) -> pq.ParquetFile:
        return self.open()._parquet

    @property
    def num_rows(self) -> int:
        return self.parquet.metadata.num_rows

    @property
    def metadata(self) -> Dict[str, str]:
        """Footer metadata written by this project (kwmine.* keys)."""
        return _decode_metadata(self.parquet.schema_arrow.metadata)

    def normalizer(self) -> KeywordNormalizer:
        """The normalizer the dataset was built with."""
        return KeywordNormalizer.from_metadata(self.metadata)

    def iter_batches(self, columns: Optional[List[str]] = None, batch_size: int = 65536) -> Iterator[pa.RecordBatch]:
        """Stream record batches from this snapshot."""
        try:
            for batch in self.parquet.iter_batches(batch_size=batch_size, columns=columns):
                yield batch
        except (OSError, pa.ArrowException) as e:
            raise PersistenceError(f"Failed reading dataset {self.location}: {e}")

    def read_all(self) -> pa.Table:
        try:
            table = self.parquet.read()
        except (OSError, pa.ArrowException) as e:
            raise PersistenceError(f"Failed reading dataset {self.location}: {e}")
        return table.select(KEYWORD_SCHEMA.names)


def dataset_stats(location: Union[str, Path], top: int = 10) -> Dict[str, Any]:
    """
    Summary statistics for a persisted dataset.

    Returns:
        Dict with keys: rows, pages, keywords, top_keywords (list of (keyword, rows)),
        metadata, file_size_bytes
    """
    with DatasetReader(location) as reader:
        table = reader.read_all()
        metadata = reader.metadata

    counts = table.group_by('keyword').aggregate([('keyword', 'count')])
    counts = counts.sort_by([('keyword_count', 'descending'), ('keyword', 'ascending')])
    top_rows = counts.slice(0, top).to_pylist()

    return {
        'rows': table.num_rows,
        'pages': pc.count_distinct(table.column('page_id')).as_py() if table.num_rows else 0,
        'keywords': counts.num_rows,
        'top_keywords': [(row['keyword'], row['keyword_count']) for row in top_rows],
        'metadata': metadata,
        'file_size_bytes': Path(location).stat().st_size,
    }
