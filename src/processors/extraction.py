"""
Keyword extraction pipeline.

Turns partitioned raw records into the persisted (page_id, keyword)
dataset:

1. Pass 1 (parallel): extract the keywords tag from every record of each
   partition and count the records with a non-empty value.
2. Offsets: exclusive prefix sum of the per-partition counts, so page ids
   form one dense sequence over the whole run (not per-partition counters).
3. Pass 2 (parallel): re-extract each partition and assign
   page_id = offset + local index, expanding each page into keyword rows.
4. Write partitions in order, one row group each, and commit atomically.

Page ids are scoped to one run. Changing the filter or the input order
shifts them.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

import pyarrow as pa

from db.dataset import DatasetWriter, build_footer_metadata, rows_to_table
from extractors import BaseExtractor, MetaTagExtractor
from processors.executors import create_executor, map_ordered
from processors.keywords import KeywordNormalizer


@dataclass
class PartitionCount:
    """Pass 1 result for one partition."""
    index: int
    records_scanned: int
    pages: int


@dataclass
class PartitionTask:
    """Work unit shipped to an executor (must stay picklable)."""
    partition: Any
    extractor: BaseExtractor
    normalizer: KeywordNormalizer
    base: int = 0


def iter_pages(partition, extractor: BaseExtractor) -> Iterator[Tuple[int, str]]:
    """
    Yield (records_seen, raw_keywords) for records with a non-empty keywords value.

    records_seen is the running count of records read so far, so the caller
    can report how many records passed the archive match filter.
    """
    seen = 0
    for record in partition.records():
        seen += 1
        raw_keywords = extractor.extract(record)
        if raw_keywords:
            yield seen, raw_keywords


def count_partition(task: PartitionTask) -> PartitionCount:
    """Pass 1: count records and surviving pages in one partition."""
    scanned = 0
    pages = 0
    for record in task.partition.records():
        scanned += 1
        if task.extractor.extract(record):
            pages += 1
    return PartitionCount(index=task.partition.index, records_scanned=scanned, pages=pages)


def expand_partition(task: PartitionTask) -> Tuple[int, int, pa.Table]:
    """
    Pass 2: assign global page ids and expand keywords for one partition.

    Returns:
        Tuple of (partition index, pages found, keyword table)
    """
    rows: List[Tuple[int, str]] = []
    pages = 0
    for _, raw_keywords in iter_pages(task.partition, task.extractor):
        rows.extend(task.normalizer.expand(task.base + pages, raw_keywords))
        pages += 1
    return task.partition.index, pages, rows_to_table(rows)


def compute_offsets(counts: Sequence[PartitionCount]) -> List[int]:
    """
    Exclusive prefix sum of surviving pages per partition.

    Examples:
        >>> compute_offsets([PartitionCount(0, 10, 3), PartitionCount(1, 4, 0), PartitionCount(2, 7, 5)])
        [0, 3, 3]
    """
    offsets = []
    total = 0
    for count in counts:
        offsets.append(total)
        total += count.pages
    return offsets


class ExtractionPipeline:
    """Runs extraction over partitions and persists the keyword dataset."""

    def __init__(
        self,
        extractor: Optional[BaseExtractor] = None,
        normalizer: Optional[KeywordNormalizer] = None,
        workers: int = 1,
        policy: str = 'cpu',
        verbose: bool = False
    ):
        """
        Initialize pipeline.

        Args:
            extractor: Tag extractor (default: regex <meta name="keywords">)
            normalizer: Keyword normalizer (default: trim only)
            workers: Parallel workers; 1 runs inline
            policy: 'cpu' (process pool) or 'io' (thread pool)
            verbose: Print per-partition progress
        """
        self.extractor = extractor or MetaTagExtractor()
        self.normalizer = normalizer or KeywordNormalizer()
        self.workers = workers
        self.policy = policy
        self.verbose = verbose

    def _tasks(self, partitions: Sequence, offsets: Optional[List[int]] = None) -> List[PartitionTask]:
        return [
            PartitionTask(
                partition=partition,
                extractor=self.extractor,
                normalizer=self.normalizer,
                base=offsets[i] if offsets else 0
            )
            for i, partition in enumerate(partitions)
        ]

    def iter_entries(self, partitions: Sequence) -> Iterator[Tuple[int, str]]:
        """
        Yield (page_id, keyword) rows sequentially, without persisting.

        Produces the same ids as run() for the same partitions.
        """
        page_id = 0
        for partition in partitions:
            for _, raw_keywords in iter_pages(partition, self.extractor):
                yield from self.normalizer.expand(page_id, raw_keywords)
                page_id += 1

    def run(
        self,
        partitions: Sequence,
        output_path: str,
        run_id: Optional[str] = None,
        progress: Optional[Callable[[str], None]] = None
    ) -> Dict[str, Any]:
        """
        Extract keywords from all partitions and save the dataset.

        Args:
            partitions: Ordered partitions (FilePartition / MemoryPartition)
            output_path: Dataset location; replaced atomically on success
            run_id: Run identifier (generated if omitted)
            progress: Optional callback for progress messages (e.g. click.echo)

        Returns:
            Dict with run_id, partitions, records_scanned, pages, keyword_rows,
            output_path, file_size_bytes

        Raises:
            PersistenceError: If the dataset cannot be written
            RuntimeError: If a partition yields different pages in the two passes
        """
        run_id = run_id or uuid.uuid4().hex
        partitions = list(partitions)

        def report(message: str):
            if progress is not None:
                progress(message)
            elif self.verbose:
                print(message)

        executor, needs_shutdown = create_executor(self.policy, min(self.workers, max(1, len(partitions))))
        try:
            # Pass 1: count survivors per partition
            report(f"Pass 1: counting pages in {len(partitions)} partition(s)...")
            counts = map_ordered(executor, count_partition, self._tasks(partitions))
            offsets = compute_offsets(counts)
            total_pages = sum(c.pages for c in counts)
            records_scanned = sum(c.records_scanned for c in counts)
            report(f"  ✓ {records_scanned} records scanned, {total_pages} pages with keywords")

            # Pass 2: assign base + local index and expand
            report("Pass 2: expanding keywords...")
            metadata = build_footer_metadata(
                run_id=run_id,
                normalizer=self.normalizer,
                extra={'pages': total_pages, 'partitions': len(partitions)}
            )
            with DatasetWriter(output_path, metadata) as writer:
                tasks = self._tasks(partitions, offsets)
                if executor is None:
                    results = (expand_partition(task) for task in tasks)
                else:
                    results = executor.map(expand_partition, tasks)

                for count, (index, pages, table) in zip(counts, results):
                    if pages != count.pages:
                        raise RuntimeError(
                            f"Partition {index} changed between passes ({count.pages} pages, then {pages})"
                        )
                    writer.write_table(table)
                    report(f"  ✓ Partition {index}: {pages} pages, {table.num_rows} keywords")

            summary = writer.summary
        finally:
            if needs_shutdown:
                executor.shutdown(wait=True, cancel_futures=True)

        return {
            'run_id': run_id,
            'partitions': len(partitions),
            'records_scanned': records_scanned,
            'pages': total_pages,
            'keyword_rows': summary['row_count'],
            'output_path': summary['output_path'],
            'file_size_bytes': summary['file_size_bytes'],
        }
