import pytest

from readers.archive import (
    ArchiveReader, FilePartition, iter_documents, memory_partitions, split_contiguous
)


def test_split_contiguous_keeps_order():
    assert split_contiguous([1, 2, 3, 4, 5], 2) == [[1, 2, 3], [4, 5]]
    assert split_contiguous([1, 2], 5) == [[1], [2]]
    assert split_contiguous([], 3) == []


def test_files_are_sorted_and_resolved_from_directory(archive_dir):
    reader = ArchiveReader([str(archive_dir)])
    assert [p.rsplit('/', 1)[-1] for p in reader.files()] == ['part-00000.txt', 'part-00001.txt.gz']


def test_glob_sources_are_deduplicated(archive_dir):
    reader = ArchiveReader([str(archive_dir / 'part-*'), str(archive_dir / 'part-00000.txt')])
    assert len(reader.files()) == 2


def test_missing_source_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        ArchiveReader([str(tmp_path / 'nothing-*.gz')]).files()


def test_invalid_arguments():
    with pytest.raises(ValueError):
        ArchiveReader(['x'], record_mode='bogus')
    with pytest.raises(ValueError):
        ArchiveReader(['x'], partitions=0)


def test_match_filter_skips_records(archive_dir):
    records = list(ArchiveReader([str(archive_dir)]).records())
    assert len(records) == 6
    assert all('keywords' in r for r in records)


def test_no_match_filter_reads_everything(archive_dir):
    records = list(ArchiveReader([str(archive_dir)], match_filter=None).records())
    assert len(records) == 7


def test_partitions_cover_files_in_order(archive_dir):
    partitions = ArchiveReader([str(archive_dir)], partitions=8).partitions()
    # Capped by the number of files
    assert [p.index for p in partitions] == [0, 1]
    assert partitions[0].paths[0].endswith('part-00000.txt')
    assert partitions[1].paths[0].endswith('part-00001.txt.gz')


def test_document_mode_splits_on_warc_headers(tmp_path):
    path = tmp_path / 'sample.warc'
    path.write_text(
        'WARC/1.0\nWARC-Type: response\n\n<meta name="keywords" content="a">\n'
        'WARC/1.0\nWARC-Type: response\n\n<p>none</p>\n',
        encoding='utf-8'
    )
    documents = list(iter_documents(str(path)))
    assert len(documents) == 2
    assert 'content="a"' in documents[0]

    partition = FilePartition(index=0, paths=[str(path)], match_filter='keywords', record_mode='document')
    assert len(list(partition.records())) == 1


def test_memory_partitions():
    partitions = memory_partitions(['a keywords', 'b', 'c keywords'], partitions=2, match_filter='keywords')
    assert [list(p.records()) for p in partitions] == [['a keywords'], ['c keywords']]


def test_single_file_is_one_partition(tmp_path):
    path = tmp_path / 'dump.txt'
    path.write_text('\n'.join(f'line {i} keywords' for i in range(100)), encoding='utf-8')

    partitions = ArchiveReader([str(path)], partitions=4).partitions()

    assert len(partitions) == 1
    assert len(list(partitions[0].records())) == 100
