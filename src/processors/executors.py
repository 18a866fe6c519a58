"""Worker pools for partitioned extraction."""

from concurrent import futures
from multiprocessing import get_context
from typing import Callable, Iterable, List, Optional, Tuple

POLICIES = ('cpu', 'io')


def create_executor(policy: str, workers: int) -> Tuple[Optional[futures.Executor], bool]:
    """
    Build the pool that extraction partitions are mapped over.

    Args:
        policy: 'cpu' for a spawn-context process pool, 'io' for a thread pool
        workers: Pool size; 1 or less means run inline

    Returns:
        Tuple of (executor, needs_shutdown). (None, False) means run inline.

    Raises:
        ValueError: If the policy is unknown
    """
    policy = (policy or 'io').lower()
    if policy not in POLICIES:
        raise ValueError(f"Unknown policy '{policy}' (expected one of: {', '.join(POLICIES)})")
    if workers <= 1:
        return None, False

    if policy == 'cpu':
        # Workers re-import the extractor modules instead of forking parent state
        return futures.ProcessPoolExecutor(max_workers=workers, mp_context=get_context('spawn')), True
    return futures.ThreadPoolExecutor(max_workers=workers, thread_name_prefix='kwmine-extract'), True


def map_ordered(executor: Optional[futures.Executor], fn: Callable, items: Iterable) -> List:
    """
    Apply fn to every item, returning results in input order.

    Runs inline when executor is None. The first worker exception is re-raised.
    """
    items = list(items)
    if executor is None:
        return [fn(item) for item in items]
    return list(executor.map(fn, items))
