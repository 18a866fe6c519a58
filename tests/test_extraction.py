import pytest

from db.dataset import DatasetReader, load_dataset
from processors.extraction import (
    ExtractionPipeline, PartitionCount, compute_offsets, count_partition, PartitionTask
)
from processors.executors import create_executor, map_ordered
from processors.keywords import KeywordNormalizer
from extractors import MetaTagExtractor
from readers.archive import ArchiveReader, memory_partitions

from conftest import meta_line

EXPECTED_ROWS = [
    (0, 'math'), (0, 'algebra'),
    (1, 'math'), (1, 'forum'),
    (2, 'algebra'),
    (4, 'python'), (4, 'math'),
]


def rows_of(table):
    return list(zip(table.column('page_id').to_pylist(), table.column('keyword').to_pylist()))


def test_compute_offsets():
    counts = [PartitionCount(0, 10, 3), PartitionCount(1, 4, 0), PartitionCount(2, 7, 5)]
    assert compute_offsets(counts) == [0, 3, 3]
    assert compute_offsets([]) == []


def test_count_partition_counts_only_pages_with_keywords():
    partition = memory_partitions([meta_line('a'), '<meta name="keywords">', meta_line('b, c')])[0]
    task = PartitionTask(partition, MetaTagExtractor(), KeywordNormalizer())
    count = count_partition(task)
    assert (count.records_scanned, count.pages) == (3, 2)


def test_iter_entries_assigns_dense_ids_after_filtering():
    records = [
        meta_line('math, algebra'),
        '<p>keywords missing</p>',
        meta_line('math'),
    ]
    pipeline = ExtractionPipeline()
    assert list(pipeline.iter_entries(memory_partitions(records))) == [
        (0, 'math'), (0, 'algebra'), (1, 'math')
    ]


def test_run_writes_dataset(archive_dir, tmp_path):
    output = tmp_path / 'out' / 'keywords.parquet'
    partitions = ArchiveReader([str(archive_dir)], partitions=2).partitions()

    result = ExtractionPipeline().run(partitions, str(output), run_id='run-1')

    assert result['records_scanned'] == 6
    assert result['pages'] == 5
    assert result['keyword_rows'] == 7
    assert result['partitions'] == 2
    assert result['run_id'] == 'run-1'
    assert rows_of(load_dataset(output)) == EXPECTED_ROWS

    with DatasetReader(output) as reader:
        assert reader.metadata['kwmine.run_id'] == 'run-1'
        assert reader.metadata['kwmine.pages'] == '5'
        assert reader.metadata['kwmine.partitions'] == '2'


def test_page_ids_are_global_across_partitions(tmp_path):
    records = [meta_line(f'kw{i}') for i in range(10)]
    output = tmp_path / 'keywords.parquet'

    ExtractionPipeline().run(memory_partitions(records, partitions=3), str(output))

    table = load_dataset(output)
    assert sorted(table.column('page_id').to_pylist()) == list(range(10))
    assert rows_of(table) == [(i, f'kw{i}') for i in range(10)]


def test_parallel_run_matches_sequential_entries(tmp_path):
    records = []
    for i in range(40):
        records.append(meta_line(f'topic{i % 7}, shared'))
        if i % 3 == 0:
            records.append('<p>keywords: nothing tagged</p>')
    partitions = memory_partitions(records, partitions=5)
    output = tmp_path / 'keywords.parquet'

    pipeline = ExtractionPipeline(workers=3, policy='io')
    pipeline.run(partitions, str(output))

    assert rows_of(load_dataset(output)) == list(pipeline.iter_entries(partitions))


def test_process_pool_run(archive_dir, tmp_path):
    output = tmp_path / 'keywords.parquet'
    partitions = ArchiveReader([str(archive_dir)], partitions=2).partitions()

    result = ExtractionPipeline(workers=2, policy='cpu').run(partitions, str(output))

    assert result['pages'] == 5
    assert rows_of(load_dataset(output)) == EXPECTED_ROWS


def test_empty_input_still_writes_dataset(tmp_path):
    output = tmp_path / 'keywords.parquet'
    result = ExtractionPipeline().run(memory_partitions(['<p>keywords</p>']), str(output))

    assert result['pages'] == 0
    assert load_dataset(output).num_rows == 0


def test_normalizer_is_recorded_in_footer(tmp_path):
    output = tmp_path / 'keywords.parquet'
    pipeline = ExtractionPipeline(normalizer=KeywordNormalizer(case_fold=True))
    pipeline.run(memory_partitions([meta_line('Math, ALGEBRA')]), str(output))

    assert rows_of(load_dataset(output)) == [(0, 'math'), (0, 'algebra')]
    with DatasetReader(output) as reader:
        assert reader.normalizer() == KeywordNormalizer(case_fold=True)


class FlakyPartition:
    """Yields a different record set on every pass."""

    def __init__(self):
        self.index = 0
        self.calls = 0

    def records(self):
        self.calls += 1
        return iter([meta_line('a')] * self.calls)


def test_partition_changing_between_passes_fails_without_replacing(scenario_dataset):
    before = rows_of(load_dataset(scenario_dataset))

    with pytest.raises(RuntimeError):
        ExtractionPipeline().run([FlakyPartition()], str(scenario_dataset))

    assert rows_of(load_dataset(scenario_dataset)) == before
    assert [p.name for p in scenario_dataset.parent.iterdir() if '.tmp.' in p.name] == []


def test_executor_policies():
    assert create_executor('cpu', 1) == (None, False)
    executor, needs_shutdown = create_executor('io', 2)
    try:
        assert needs_shutdown
        assert map_ordered(executor, abs, [-3, 2, -1]) == [3, 2, 1]
    finally:
        executor.shutdown()
    with pytest.raises(ValueError):
        create_executor('gpu', 2)
