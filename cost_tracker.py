"""
API cost tracking
v1.0.0

Append-only ledger of LLM spend. Tracking is best effort: an unknown model
costs 0, a missing tracker is a no-op, and a failed write is printed as a
warning. None of it can fail or retry the caller.
"""
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from threading import Lock
from typing import List, Optional

from errors import ApiCostInsertError
from schema import get_current_timestamp


# USD per token (OpenRouter pricing.prompt / pricing.completion)
PRICING = {
  "google/gemini-3-flash-preview": {"input": 0.0000005, "output": 0.000003},
  "x-ai/grok-4.1-fast": {"input": 0.0000002, "output": 0.0000005},
}


def calculate_cost_usd(model: str, input_tokens: int, output_tokens: int) -> float:
  pricing = PRICING.get(model)
  if not pricing:
    return 0.0
  return input_tokens * pricing["input"] + output_tokens * pricing["output"]


@dataclass(frozen=True)
class ApiCostEntry:
  created_at: str
  operation: str
  model: str
  input_tokens: int
  output_tokens: int
  cost_usd: float


class ApiCostTracker:
  """Anything with a log(entry) method can track costs"""

  def log(self, entry: ApiCostEntry):
    raise NotImplementedError


class SqliteCostTracker(ApiCostTracker):
  """Writes entries to the api_costs table on a background thread"""

  def __init__(self, dal):
    self.dal = dal
    self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cost-tracker")
    self._pending: List[Future] = []
    self._lock = Lock()

  def log(self, entry: ApiCostEntry):
    future = self._executor.submit(self._write, entry)
    with self._lock:
      self._pending.append(future)

  def _write(self, entry: ApiCostEntry):
    try:
      self.dal.insert_api_cost(entry)
    except Exception as e:
      error = ApiCostInsertError(f"Failed to record {entry.operation} cost", e)
      print(f"  ⚠️ {error}")

  def flush(self):
    """Wait for every queued write to finish"""
    with self._lock:
      pending, self._pending = self._pending, []
    for future in pending:
      future.result()

  def close(self):
    self.flush()
    self._executor.shutdown(wait=True)


class MemoryCostTracker(ApiCostTracker):
  """Keeps entries in a list (tests, dry runs)"""

  def __init__(self):
    self.entries: List[ApiCostEntry] = []

  def log(self, entry: ApiCostEntry):
    self.entries.append(entry)


def log_usage(
  tracker: Optional[ApiCostTracker],
  operation: str,
  model: str,
  input_tokens: int,
  output_tokens: int,
) -> Optional[ApiCostEntry]:
  """Record one call. No tracker means nothing happens"""
  if tracker is None:
    return None
  entry = ApiCostEntry(
    created_at=get_current_timestamp(),
    operation=operation,
    model=model,
    input_tokens=input_tokens,
    output_tokens=output_tokens,
    cost_usd=calculate_cost_usd(model, input_tokens, output_tokens),
  )
  try:
    tracker.log(entry)
  except Exception as e:
    print(f"  ⚠️ Cost tracking failed for {operation}: {e}")
  return entry
