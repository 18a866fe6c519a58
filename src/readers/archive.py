"""
Archive reader for crawl dumps.

Reads plain or gzip-compressed text archives (WARC/WAT/WET dumps, or any
line-oriented export) and yields raw records, partitioned for parallel
extraction. A match filter skips records that cannot contain the tag.

Partitions are contiguous slices of the sorted file list, so
(partition index, position within partition) is a total order over all
records of a run.
"""

import glob
import gzip
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence

RECORD_MODES = ('line', 'document')

# WARC record header, e.g. "WARC/1.0" or "WARC/1.1"
WARC_HEADER_PATTERN = re.compile(r'^WARC/\d+\.\d+\s*$')


def open_archive(path: str):
    """Open an archive file as text, transparently handling gzip."""
    if str(path).endswith('.gz'):
        return gzip.open(path, 'rt', encoding='utf-8', errors='replace')
    return open(path, 'r', encoding='utf-8', errors='replace')


def iter_lines(path: str) -> Iterator[str]:
    """Yield lines of an archive without trailing newlines."""
    with open_archive(path) as f:
        for line in f:
            yield line.rstrip('\r\n')


def iter_documents(path: str) -> Iterator[str]:
    """
    Yield WARC records as whole documents.

    Each record runs from one `WARC/1.x` header line to the next. Files
    without any header come back as a single document.
    """
    buffer: List[str] = []
    for line in iter_lines(path):
        if WARC_HEADER_PATTERN.match(line) and buffer:
            yield '\n'.join(buffer)
            buffer = []
        buffer.append(line)
    if buffer:
        yield '\n'.join(buffer)


def compile_match_filter(match_filter: Optional[str]):
    """Compile a match filter (case-insensitive regex). None/'' disables filtering."""
    if not match_filter:
        return None
    return re.compile(match_filter, re.IGNORECASE)


@dataclass
class FilePartition:
    """A contiguous group of archive files processed by one worker."""

    index: int
    paths: List[str]
    match_filter: Optional[str] = None
    record_mode: str = 'line'

    def records(self) -> Iterator[str]:
        pattern = compile_match_filter(self.match_filter)
        read = iter_documents if self.record_mode == 'document' else iter_lines

        for path in self.paths:
            for record in read(path):
                if pattern is None or pattern.search(record):
                    yield record


@dataclass
class MemoryPartition:
    """An in-memory partition, for small inputs and tests."""

    index: int
    items: List[str] = field(default_factory=list)
    match_filter: Optional[str] = None

    def records(self) -> Iterator[str]:
        pattern = compile_match_filter(self.match_filter)
        for record in self.items:
            if pattern is None or pattern.search(record):
                yield record


def split_contiguous(items: Sequence, partitions: int) -> List[List]:
    """
    Split a sequence into at most `partitions` contiguous, order-preserving chunks.

    Examples:
        >>> split_contiguous([1, 2, 3, 4, 5], 2)
        [[1, 2, 3], [4, 5]]
    """
    items = list(items)
    if not items:
        return []
    partitions = max(1, min(partitions, len(items)))
    size, remainder = divmod(len(items), partitions)

    chunks = []
    start = 0
    for i in range(partitions):
        end = start + size + (1 if i < remainder else 0)
        chunks.append(items[start:end])
        start = end
    return chunks


def memory_partitions(records: Iterable[str], partitions: int = 1,
                      match_filter: Optional[str] = None) -> List[MemoryPartition]:
    """Partition in-memory records contiguously."""
    return [
        MemoryPartition(index=i, items=chunk, match_filter=match_filter)
        for i, chunk in enumerate(split_contiguous(records, partitions))
    ]


class ArchiveReader:
    """
    Resolves archive locations into ordered partitions of raw records.

    A file is never split across partitions, so parallelism is capped by the
    number of files. Split a single large dump into several files to spread
    it over more workers.
    """

    def __init__(
        self,
        sources: Sequence[str],
        partitions: int = 8,
        match_filter: Optional[str] = 'keywords',
        record_mode: str = 'line'
    ):
        """
        Args:
            sources: Files, directories, or glob patterns
            partitions: Desired number of partitions (capped by file count)
            match_filter: Case-insensitive regex records must match to be yielded
            record_mode: 'line' (one record per line) or 'document' (one per WARC record)
        """
        if record_mode not in RECORD_MODES:
            raise ValueError(f"Unknown record mode '{record_mode}' (expected one of: {', '.join(RECORD_MODES)})")
        if partitions < 1:
            raise ValueError("partitions must be >= 1")

        self.sources = list(sources)
        self.num_partitions = partitions
        self.match_filter = match_filter
        self.record_mode = record_mode

    def files(self) -> List[str]:
        """
        Resolve sources to a sorted, de-duplicated list of files.

        Raises:
            FileNotFoundError: If a source matches nothing
        """
        resolved = []
        for source in self.sources:
            path = Path(source)
            if path.is_dir():
                matches = [str(p) for p in path.rglob('*') if p.is_file()]
            elif path.is_file():
                matches = [str(path)]
            else:
                matches = [m for m in glob.glob(source, recursive=True) if os.path.isfile(m)]

            if not matches:
                raise FileNotFoundError(f"No archive files found for '{source}'")
            resolved.extend(matches)

        return sorted(set(resolved))

    def partitions(self) -> List[FilePartition]:
        """Split the resolved files into ordered partitions."""
        return [
            FilePartition(
                index=i,
                paths=chunk,
                match_filter=self.match_filter,
                record_mode=self.record_mode
            )
            for i, chunk in enumerate(split_contiguous(self.files(), self.num_partitions))
        ]

    def records(self) -> Iterator[str]:
        """Yield every record in run order (sequential)."""
        for partition in self.partitions():
            yield from partition.records()
