"""
Vector index

Local SQLite implementation of the three operations the reindex worker and
search need: batched upsert, batched delete by id, and top-k query. Deletes
of unknown ids are a no-op, so repeating one is harmless.
"""
import json
import math
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence


@dataclass
class VectorRecord:
  id: str
  values: List[float]
  metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class VectorMatch:
  id: str
  score: float
  metadata: Dict[str, Any] = field(default_factory=dict)


class VectorIndex:
  """Interface shared by the local index and test fakes"""

  def upsert(self, records: Sequence[VectorRecord]):
    raise NotImplementedError

  def delete_by_ids(self, ids: Sequence[str]):
    raise NotImplementedError

  def query(self, vector: Sequence[float], top_k: int = 10) -> List[VectorMatch]:
    raise NotImplementedError


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
  dot = sum(x * y for x, y in zip(a, b))
  norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
  return dot / norm if norm else 0.0


class SqliteVectorIndex(VectorIndex):

  def __init__(self, db_path: str = "vectors.db"):
    self.db_path = db_path
    with self._get_connection() as conn:
      conn.execute("""
        CREATE TABLE IF NOT EXISTS vectors (
          id TEXT PRIMARY KEY,
          vector TEXT NOT NULL,
          metadata TEXT
        )
      """)

  @contextmanager
  def _get_connection(self):
    """Get database connection with automatic cleanup"""
    conn = sqlite3.connect(self.db_path)
    conn.row_factory = sqlite3.Row
    try:
      yield conn
      conn.commit()
    except Exception:
      conn.rollback()
      raise
    finally:
      conn.close()

  def upsert(self, records: Sequence[VectorRecord]):
    with self._get_connection() as conn:
      conn.executemany(
        "INSERT OR REPLACE INTO vectors (id, vector, metadata) VALUES (?, ?, ?)",
        [(r.id, json.dumps(list(r.values)), json.dumps(r.metadata, ensure_ascii=False)) for r in records],
      )

  def delete_by_ids(self, ids: Sequence[str]):
    if not ids:
      return
    placeholders = ",".join("?" * len(ids))
    with self._get_connection() as conn:
      conn.execute(f"DELETE FROM vectors WHERE id IN ({placeholders})", list(ids))

  def query(self, vector: Sequence[float], top_k: int = 10) -> List[VectorMatch]:
    with self._get_connection() as conn:
      rows = conn.execute("SELECT id, vector, metadata FROM vectors").fetchall()
    matches = [
      VectorMatch(
        id=row["id"],
        score=cosine_similarity(vector, json.loads(row["vector"])),
        metadata=json.loads(row["metadata"]) if row["metadata"] else {},
      )
      for row in rows
    ]
    matches.sort(key=lambda m: m.score, reverse=True)
    return matches[:top_k]

  def count(self) -> int:
    with self._get_connection() as conn:
      return conn.execute("SELECT COUNT(*) FROM vectors").fetchone()[0]
