"""
Bounded worker pool

A fixed number of threads walk an index range; each one takes the next
unclaimed index until the range is exhausted. Results land at their item's
index, so output order always matches input order.
"""
from concurrent.futures import ThreadPoolExecutor
from threading import Lock
from typing import Callable, List, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def map_bounded(fn: Callable[[T], R], items: Sequence[T], concurrency: int) -> List[R]:
  """
  Apply fn to every item with at most `concurrency` calls in flight.

  fn is expected to handle its own per-item failures (e.g. return None).
  An exception escaping fn is raised here once all workers stopped.
  """
  items = list(items)
  if not items:
    return []

  results: List[R] = [None] * len(items)
  next_index = [0]
  lock = Lock()

  def worker():
    while True:
      with lock:
        index = next_index[0]
        if index >= len(items):
          return
        next_index[0] += 1
      results[index] = fn(items[index])

  workers = max(1, min(concurrency, len(items)))
  with ThreadPoolExecutor(max_workers=workers) as pool:
    futures = [pool.submit(worker) for _ in range(workers)]
    for future in futures:
      future.result()
  return results
