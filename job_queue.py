"""
Local job queue on SQLite
v1.0.0

At-least-once delivery with per-message acknowledge / retry:
- receive() leases messages for `visibility_timeout` seconds
- ack() removes a message for good
- retry() hands it back (optionally delayed)
- a lease that runs out without ack/retry makes the message visible again
- messages received more than `max_attempts` times go to the dead letter state

Usage:
  queue = JobQueue("queue.db")
  queue.send("scrape-jobs", envelope)
  for message in queue.receive("scrape-jobs", max_messages=10):
    ...
    message.ack()
"""
import json
import sqlite3
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List

from errors import QueueError
from jobs import JobEnvelope


PENDING = "pending"
DEAD = "dead"


@dataclass
class QueueMessage:
  """A leased message. Settle it with ack() or retry()"""
  id: int
  queue: str
  body: Dict[str, Any]
  attempts: int
  _settle: Callable[["QueueMessage", str, float], None] = field(repr=False, default=None)
  settled: str = ""

  def ack(self):
    if not self.settled:
      self._settle(self, "ack", 0)
      self.settled = "ack"

  def retry(self, delay_seconds: float = 0):
    if not self.settled:
      self._settle(self, "retry", delay_seconds)
      self.settled = "retry"


class JobQueue:
  """SQLite backed queue shared by all pipeline stages"""

  def __init__(self, db_path: str = "queue.db", max_attempts: int = 5, clock: Callable[[], float] = time.time):
    self.db_path = db_path
    self.max_attempts = max_attempts
    self.clock = clock
    self._init_schema()

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

  def _init_schema(self):
    try:
      with self._get_connection() as conn:
        conn.execute("""
          CREATE TABLE IF NOT EXISTS queue_messages (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            queue TEXT NOT NULL,
            body TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending',
            attempts INTEGER NOT NULL DEFAULT 0,
            visible_at REAL NOT NULL,
            created_at REAL NOT NULL,
            last_error TEXT
          )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_queue_visible ON queue_messages(queue, status, visible_at)")
    except sqlite3.Error as e:
      raise QueueError("init", "Failed to initialize queue", e) from e

  # ============================================
  # Producing
  # ============================================

  def send(self, queue: str, envelope: JobEnvelope):
    self.send_batch(queue, [envelope])

  def send_batch(self, queue: str, envelopes: Iterable[JobEnvelope]) -> int:
    """Enqueue envelopes in one transaction. Returns how many were sent"""
    now = self.clock()
    rows = [(queue, json.dumps(env.to_dict(), ensure_ascii=False), now, now) for env in envelopes]
    if not rows:
      return 0
    try:
      with self._get_connection() as conn:
        conn.executemany(
          "INSERT INTO queue_messages (queue, body, visible_at, created_at) VALUES (?, ?, ?, ?)",
          rows,
        )
    except sqlite3.Error as e:
      raise QueueError("send", f"Failed to enqueue {len(rows)} message(s) on {queue}", e) from e
    return len(rows)

  # ============================================
  # Consuming
  # ============================================

  def receive(self, queue: str, max_messages: int = 10, visibility_timeout: float = 300) -> List[QueueMessage]:
    """Lease up to max_messages visible messages"""
    now = self.clock()
    messages = []
    try:
      with self._get_connection() as conn:
        conn.execute("BEGIN IMMEDIATE")
        rows = conn.execute("""
          SELECT id, body, attempts FROM queue_messages
          WHERE queue = ? AND status = ? AND visible_at <= ?
          ORDER BY id LIMIT ?
        """, (queue, PENDING, now, max_messages)).fetchall()

        for row in rows:
          attempts = row["attempts"] + 1
          if attempts > self.max_attempts:
            conn.execute(
              "UPDATE queue_messages SET status = ?, last_error = ? WHERE id = ?",
              (DEAD, "max attempts exceeded", row["id"]),
            )
            print(f"  ⚠️ Message {row['id']} on {queue} moved to dead letters")
            continue

          conn.execute(
            "UPDATE queue_messages SET attempts = ?, visible_at = ? WHERE id = ?",
            (attempts, now + visibility_timeout, row["id"]),
          )
          messages.append(QueueMessage(
            id=row["id"],
            queue=queue,
            body=json.loads(row["body"]),
            attempts=attempts,
            _settle=self._settle,
          ))
    except sqlite3.Error as e:
      raise QueueError("receive", f"Failed to receive from {queue}", e) from e
    return messages

  def _settle(self, message: QueueMessage, action: str, delay_seconds: float):
    try:
      with self._get_connection() as conn:
        if action == "ack":
          conn.execute("DELETE FROM queue_messages WHERE id = ?", (message.id,))
        else:
          conn.execute(
            "UPDATE queue_messages SET visible_at = ? WHERE id = ?",
            (self.clock() + delay_seconds, message.id),
          )
    except sqlite3.Error as e:
      raise QueueError(action, f"Failed to {action} message {message.id}", e) from e

  # ============================================
  # Inspection
  # ============================================

  def pending_count(self, queue: str) -> int:
    with self._get_connection() as conn:
      row = conn.execute(
        "SELECT COUNT(*) AS n FROM queue_messages WHERE queue = ? AND status = ?",
        (queue, PENDING),
      ).fetchone()
      return row["n"]

  def dead_letters(self, queue: str) -> List[Dict[str, Any]]:
    with self._get_connection() as conn:
      rows = conn.execute(
        "SELECT id, body, attempts, last_error FROM queue_messages WHERE queue = ? AND status = ? ORDER BY id",
        (queue, DEAD),
      ).fetchall()
      return [
        {"id": r["id"], "body": json.loads(r["body"]), "attempts": r["attempts"], "last_error": r["last_error"]}
        for r in rows
      ]
