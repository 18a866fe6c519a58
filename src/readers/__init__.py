"""
Archive readers.
"""

from .archive import ArchiveReader, FilePartition, MemoryPartition, memory_partitions, split_contiguous

__all__ = ['ArchiveReader', 'FilePartition', 'MemoryPartition', 'memory_partitions', 'split_contiguous']
