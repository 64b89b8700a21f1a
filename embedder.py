"""
Reindex worker
v1.0.0

Consumes batches of search.reindex jobs and keeps the vector index in sync.

Per batch:
- delete jobs: one batched delete_by_ids, retried with exponential backoff
  (3 attempts, 100ms base). Acked on success.
- upsert jobs carrying a description: one batched embedding call, one
  batched upsert. Acked on success.

Deletes and upserts settle independently: a failed delete sub-batch only
hands the delete messages back to the queue, a failed upsert sub-batch only
the upsert messages. Anything unexpected hands back every message that was
not acked yet.
"""
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from config import AIConfig
from cost_tracker import ApiCostTracker, log_usage
from errors import EmbeddingError, VectorizeError
from jobs import SEARCH_REINDEX, parse_envelope
from llm_client import OpenRouterClient
from vector_store import VectorIndex, VectorRecord


DELETE_ATTEMPTS = 3
DELETE_BASE_DELAY = 0.1


def retry_with_backoff(
  fn: Callable[[], object],
  attempts: int = DELETE_ATTEMPTS,
  base_delay: float = DELETE_BASE_DELAY,
  sleep: Callable[[float], None] = time.sleep,
):
  """Call fn until it succeeds or attempts run out. Delay doubles after each failure"""
  for attempt in range(attempts):
    try:
      return fn()
    except Exception as e:
      if attempt == attempts - 1:
        raise
      delay = base_delay * (2 ** attempt)
      print(f"  ⚠️ Attempt {attempt + 1}/{attempts} failed ({e}), retrying in {delay:.1f}s")
      sleep(delay)


class EmbeddingService:
  """Batch text embeddings through OpenRouter"""

  def __init__(self, client: OpenRouterClient, config: AIConfig, cost_tracker: Optional[ApiCostTracker] = None):
    self.client = client
    self.model = config.embedding_model
    self.cost_tracker = cost_tracker

  def embed(self, texts: Sequence[str]) -> List[List[float]]:
    try:
      response = self.client.embed(self.model, list(texts))
    except Exception as e:
      raise EmbeddingError(f"Failed to generate embeddings for {len(texts)} text(s)", e) from e

    if len(response.vectors) != len(texts):
      raise EmbeddingError(f"Expected {len(texts)} embeddings, got {len(response.vectors)}")
    log_usage(self.cost_tracker, "embedding", response.model, response.input_tokens, 0)
    return response.vectors


@dataclass
class ReindexOutcome:
  deleted: int = 0
  upserted: int = 0
  skipped: int = 0
  retried: int = 0


class ReindexWorker:

  def __init__(self, index: VectorIndex, embeddings: EmbeddingService, sleep: Callable[[float], None] = time.sleep):
    self.index = index
    self.embeddings = embeddings
    self.sleep = sleep

  def delete_vectors(self, ids: List[str]):
    """Batched delete with bounded retry. Raises VectorizeError when every attempt failed"""
    try:
      retry_with_backoff(lambda: self.index.delete_by_ids(ids), sleep=self.sleep)
    except Exception as e:
      raise VectorizeError("delete", f"Failed to delete {len(ids)} vector(s)", e) from e

  def upsert_vectors(self, dog_ids: List[str], texts: List[str], metadata: List[dict]):
    vectors = self.embeddings.embed(texts)
    records = [
      VectorRecord(id=dog_id, values=values, metadata=meta)
      for dog_id, values, meta in zip(dog_ids, vectors, metadata)
    ]
    try:
      self.index.upsert(records)
    except Exception as e:
      raise VectorizeError("upsert", f"Failed to upsert {len(records)} vector(s)", e) from e

  def handle_batch(self, messages: Sequence) -> ReindexOutcome:
    """Process one delivered batch. Every message ends up acked or retried"""
    outcome = ReindexOutcome()
    settled = set()
    deletes = []
    upserts = []

    def ack(message):
      message.ack()
      settled.add(id(message))

    def retry(message):
      message.retry()
      settled.add(id(message))
      outcome.retried += 1

    try:
      for message in messages:
        try:
          envelope = parse_envelope(message.body)
        except ValueError as e:
          print(f"  ⚠️ Dropping malformed reindex message: {e}")
          ack(message)
          outcome.skipped += 1
          continue

        payload = envelope.payload
        if envelope.type != SEARCH_REINDEX:
          print(f"  ⚠️ Dropping {envelope.type} job sent to the reindex queue")
          ack(message)
          outcome.skipped += 1
        elif payload.op == "delete":
          deletes.append((message, payload))
        elif payload.description:
          upserts.append((message, payload))
        else:
          print(f"  ⚠️ Upsert for {payload.dog_id} has no description, skipping")
          ack(message)
          outcome.skipped += 1

      if deletes:
        ids = [payload.dog_id for _, payload in deletes]
        try:
          self.delete_vectors(ids)
        except VectorizeError as e:
          print(f"  ❌ {e}")
          for message, _ in deletes:
            retry(message)
        else:
          print(f"  🗑️ Deleted {len(ids)} vectors")
          for message, _ in deletes:
            ack(message)
          outcome.deleted = len(ids)

      if upserts:
        try:
          self.upsert_vectors(
            [payload.dog_id for _, payload in upserts],
            [payload.description for _, payload in upserts],
            [payload.metadata or {} for _, payload in upserts],
          )
        except (EmbeddingError, VectorizeError) as e:
          print(f"  ❌ {e}")
          for message, _ in upserts:
            retry(message)
        else:
          print(f"  ✅ Upserted {len(upserts)} vectors")
          for message, _ in upserts:
            ack(message)
          outcome.upserted = len(upserts)
    except Exception as e:
      print(f"  ❌ Reindex batch failed: {e}")
      for message in messages:
        if id(message) not in settled:
          retry(message)

    return outcome
