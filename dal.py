"""
Data Access Layer (DAL)
v2.0.0 - Shelter sync pipeline

Central API for all relational data operations. Every read/write of
shelters, dogs, sync logs and the API cost ledger goes through here.

Design Principles:
- Single point of access for all data
- Storage implementation is abstracted (SQLite today)
- Fingerprints are recomputed from content on every write
- Dogs are soft deleted (status=removed), never hard deleted
- A dog stays jobs_pending until its reindex/image jobs are queued
- Every sqlite failure surfaces as StorageError

Usage:
  from dal import DAL

  dal = DAL()
  dal.init_database()
  fingerprints = dal.get_fingerprints(shelter.id)
"""
import sqlite3
import json
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from errors import NotFoundError, StorageError
from schema import (
  Dog, DogSex, DogStatus, Shelter, ShelterStatus, SyncLog,
  AgeEstimate, BreedEstimate, SizeEstimate, WeightEstimate,
  get_current_timestamp,
)


# Columns stored as JSON, with the model used to read them back (None = plain JSON)
_JSON_COLUMNS = {
  "breed_estimates": BreedEstimate,
  "size_estimate": SizeEstimate,
  "age_estimate": AgeEstimate,
  "weight_estimate": WeightEstimate,
  "personality_tags": None,
  "photos": None,
  "photos_generated": None,
}

_BOOL_COLUMNS = (
  "is_foster", "vaccinated", "sterilized", "chipped",
  "good_with_kids", "good_with_dogs", "good_with_cats", "urgent",
)

_DOG_COLUMNS = tuple(name for name in Dog.__dataclass_fields__)


def _parse_timestamp(value: str) -> datetime:
  parsed = datetime.fromisoformat(value)
  if parsed.tzinfo is None:
    parsed = parsed.replace(tzinfo=timezone.utc)
  return parsed


class DAL:
  """
  Data Access Layer - The single gateway for all data operations.

  Responsibilities:
  - Shelter registry rows and their sync status
  - CRUD operations for Dogs (with derived fingerprint)
  - Sync log lifecycle
  - API cost ledger
  """

  def __init__(self, db_path: str = "dogs.db"):
    self.db_path = db_path

  # ============================================
  # Database Connection Management
  # ============================================

  @contextmanager
  def _get_connection(self, operation: str = "read"):
    """Get database connection with automatic cleanup"""
    try:
      conn = sqlite3.connect(self.db_path)
    except sqlite3.Error as e:
      raise StorageError(operation, f"Cannot open {self.db_path}", e) from e
    conn.row_factory = sqlite3.Row
    try:
      yield conn
      conn.commit()
    except sqlite3.Error as e:
      conn.rollback()
      raise StorageError(operation, f"Database {operation} failed", e) from e
    except Exception:
      conn.rollback()
      raise
    finally:
      conn.close()

  def init_database(self):
    """Initialize database schema"""
    with self._get_connection("write") as conn:
      cursor = conn.cursor()

      cursor.execute("""
        CREATE TABLE IF NOT EXISTS shelters (
          id TEXT PRIMARY KEY,
          slug TEXT NOT NULL UNIQUE,
          name TEXT NOT NULL,
          url TEXT NOT NULL,
          city TEXT,
          region TEXT,
          lat REAL,
          lng REAL,
          phone TEXT,
          email TEXT,
          active INTEGER DEFAULT 1,
          status TEXT DEFAULT 'active',
          last_sync TEXT
        )
      """)

      cursor.execute("""
        CREATE TABLE IF NOT EXISTS dogs (
          id TEXT PRIMARY KEY,
          shelter_id TEXT NOT NULL,
          external_id TEXT NOT NULL,
          name TEXT NOT NULL,
          sex TEXT DEFAULT 'unknown',
          description TEXT,
          location_name TEXT,
          location_city TEXT,
          location_lat REAL,
          location_lng REAL,
          is_foster INTEGER,
          breed_estimates TEXT,
          size_estimate TEXT,
          age_estimate TEXT,
          weight_estimate TEXT,
          personality_tags TEXT,
          vaccinated INTEGER,
          sterilized INTEGER,
          chipped INTEGER,
          good_with_kids INTEGER,
          good_with_dogs INTEGER,
          good_with_cats INTEGER,
          fur_length TEXT,
          fur_type TEXT,
          color_primary TEXT,
          color_secondary TEXT,
          color_pattern TEXT,
          ear_type TEXT,
          tail_type TEXT,
          photos TEXT,
          photos_generated TEXT,
          generated_bio TEXT,
          source_url TEXT,
          source_checksum TEXT,
          enriched INTEGER DEFAULT 0,
          jobs_pending INTEGER DEFAULT 0,
          fingerprint TEXT NOT NULL,
          urgent INTEGER DEFAULT 0,
          status TEXT DEFAULT 'available',
          last_seen_at TEXT,
          created_at TEXT,
          updated_at TEXT,
          UNIQUE (shelter_id, external_id),
          FOREIGN KEY (shelter_id) REFERENCES shelters(id)
        )
      """)

      cursor.execute("""
        CREATE TABLE IF NOT EXISTS sync_logs (
          id TEXT PRIMARY KEY,
          shelter_id TEXT NOT NULL,
          started_at TEXT NOT NULL,
          finished_at TEXT,
          dogs_added INTEGER DEFAULT 0,
          dogs_updated INTEGER DEFAULT 0,
          dogs_removed INTEGER DEFAULT 0,
          errors TEXT,
          FOREIGN KEY (shelter_id) REFERENCES shelters(id)
        )
      """)

      cursor.execute("""
        CREATE TABLE IF NOT EXISTS api_costs (
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          created_at TEXT NOT NULL,
          operation TEXT NOT NULL,
          model TEXT NOT NULL,
          input_tokens INTEGER NOT NULL,
          output_tokens INTEGER NOT NULL,
          cost_usd REAL NOT NULL
        )
      """)

      # Indexes
      cursor.execute("CREATE INDEX IF NOT EXISTS idx_dogs_shelter ON dogs(shelter_id)")
      cursor.execute("CREATE INDEX IF NOT EXISTS idx_dogs_status ON dogs(status)")
      cursor.execute("CREATE INDEX IF NOT EXISTS idx_sync_logs_shelter ON sync_logs(shelter_id)")
      cursor.execute("CREATE INDEX IF NOT EXISTS idx_api_costs_time ON api_costs(created_at)")

      # Migrations for existing databases
      cursor.execute("PRAGMA table_info(dogs)")
      columns = [col[1] for col in cursor.fetchall()]
      if "source_checksum" not in columns:
        cursor.execute("ALTER TABLE dogs ADD COLUMN source_checksum TEXT")
      if "enriched" not in columns:
        cursor.execute("ALTER TABLE dogs ADD COLUMN enriched INTEGER DEFAULT 0")
      if "jobs_pending" not in columns:
        cursor.execute("ALTER TABLE dogs ADD COLUMN jobs_pending INTEGER DEFAULT 0")

  # ============================================
  # Shelters
  # ============================================

  def upsert_shelter(self, shelter: Shelter):
    """Insert a shelter or refresh its descriptive fields (sync state is kept)"""
    with self._get_connection("write") as conn:
      conn.execute("""
        INSERT INTO shelters (id, slug, name, url, city, region, lat, lng, phone, email, active, status, last_sync)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
          slug = excluded.slug, name = excluded.name, url = excluded.url,
          city = excluded.city, region = excluded.region, lat = excluded.lat,
          lng = excluded.lng, phone = excluded.phone, email = excluded.email,
          active = excluded.active
      """, (
        shelter.id, shelter.slug, shelter.name, shelter.url, shelter.city,
        shelter.region, shelter.lat, shelter.lng, shelter.phone, shelter.email,
        1 if shelter.active else 0, shelter.status.value, shelter.last_sync,
      ))

  def seed_shelters(self, adapters: Iterable[Any]) -> List[Shelter]:
    """Make sure every registered adapter has a shelter row (id = slug = adapter id)"""
    seeded = []
    for adapter in adapters:
      shelter = Shelter(
        id=adapter.id,
        slug=adapter.id,
        name=adapter.name,
        url=adapter.url,
        city=adapter.city,
        region=adapter.region,
      )
      self.upsert_shelter(shelter)
      seeded.append(shelter)
      print(f"  ✅ {shelter.slug}: {shelter.name}")
    return seeded

  def get_shelter(self, shelter_id: str) -> Optional[Shelter]:
    with self._get_connection() as conn:
      row = conn.execute("SELECT * FROM shelters WHERE id = ?", (shelter_id,)).fetchone()
      return self._row_to_shelter(row) if row else None

  def require_shelter(self, shelter_id: str) -> Shelter:
    shelter = self.get_shelter(shelter_id)
    if shelter is None:
      raise NotFoundError("Shelter", shelter_id)
    return shelter

  def list_shelters(self, active_only: bool = False) -> List[Shelter]:
    with self._get_connection() as conn:
      if active_only:
        rows = conn.execute("SELECT * FROM shelters WHERE active = 1 ORDER BY slug").fetchall()
      else:
        rows = conn.execute("SELECT * FROM shelters ORDER BY slug").fetchall()
      return [self._row_to_shelter(row) for row in rows]

  def get_due_shelters(self, interval_minutes: int, now: Optional[datetime] = None) -> List[Shelter]:
    """Active shelters never synced, or last synced more than interval_minutes ago"""
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(minutes=interval_minutes)
    due = []
    for shelter in self.list_shelters(active_only=True):
      if shelter.last_sync is None or _parse_timestamp(shelter.last_sync) < cutoff:
        due.append(shelter)
    return due

  def mark_shelter_synced(self, shelter_id: str, when: Optional[str] = None):
    with self._get_connection("write") as conn:
      conn.execute(
        "UPDATE shelters SET last_sync = ?, status = ? WHERE id = ?",
        (when or get_current_timestamp(), ShelterStatus.ACTIVE.value, shelter_id),
      )

  def set_shelter_status(self, shelter_id: str, status: ShelterStatus):
    with self._get_connection("write") as conn:
      conn.execute("UPDATE shelters SET status = ? WHERE id = ?", (status.value, shelter_id))

  def _row_to_shelter(self, row: sqlite3.Row) -> Shelter:
    data = dict(row)
    data["active"] = bool(data["active"])
    data["status"] = ShelterStatus(data["status"] or ShelterStatus.ACTIVE.value)
    data["city"] = data["city"] or ""
    return Shelter(**data)

  # ============================================
  # Dog CRUD Operations
  # ============================================

  def get_dog(self, dog_id: str) -> Optional[Dog]:
    """Get a single dog by ID"""
    with self._get_connection() as conn:
      row = conn.execute("SELECT * FROM dogs WHERE id = ?", (dog_id,)).fetchone()
      return self._row_to_dog(row) if row else None

  def get_dogs_by_shelter(self, shelter_id: str, status: Optional[DogStatus] = None) -> List[Dog]:
    """All dogs of a shelter, optionally filtered by status"""
    with self._get_connection() as conn:
      if status is not None:
        rows = conn.execute(
          "SELECT * FROM dogs WHERE shelter_id = ? AND status = ? ORDER BY external_id",
          (shelter_id, status.value),
        ).fetchall()
      else:
        rows = conn.execute(
          "SELECT * FROM dogs WHERE shelter_id = ? ORDER BY external_id",
          (shelter_id,),
        ).fetchall()
      return [self._row_to_dog(row) for row in rows]

  def get_fingerprints(self, shelter_id: str) -> Dict[str, str]:
    """Stored external_id -> fingerprint map for one shelter"""
    with self._get_connection() as conn:
      rows = conn.execute(
        "SELECT external_id, fingerprint FROM dogs WHERE shelter_id = ?",
        (shelter_id,),
      ).fetchall()
      return {row["external_id"]: row["fingerprint"] for row in rows}

  def insert_dog(self, dog: Dog) -> Dog:
    """Insert a new dog. Assigns id and timestamps when missing"""
    now = get_current_timestamp()
    if not dog.id:
      dog.id = str(uuid.uuid4())
    dog.created_at = dog.created_at or now
    dog.updated_at = now
    dog.last_seen_at = dog.last_seen_at or now

    values = self._dog_to_row(dog)
    columns = ", ".join(values)
    placeholders = ", ".join("?" * len(values))
    with self._get_connection("write") as conn:
      conn.execute(f"INSERT INTO dogs ({columns}) VALUES ({placeholders})", tuple(values.values()))

    print(f"  🆕 New dog: {dog.name} ({dog.shelter_id})")
    return dog

  def update_dog(self, dog: Dog) -> Dog:
    """Overwrite an existing dog row"""
    dog.updated_at = get_current_timestamp()
    values = self._dog_to_row(dog)
    values.pop("id")
    values.pop("created_at")
    assignments = ", ".join(f"{name} = ?" for name in values)
    with self._get_connection("write") as conn:
      cursor = conn.execute(
        f"UPDATE dogs SET {assignments} WHERE id = ?",
        tuple(values.values()) + (dog.id,),
      )
      if cursor.rowcount == 0:
        raise NotFoundError("Dog", dog.id)
    return dog

  def touch_dogs(self, dog_ids: List[str], when: Optional[str] = None):
    """Bump last_seen_at for dogs seen again without content changes"""
    if not dog_ids:
      return
    placeholders = ",".join("?" * len(dog_ids))
    with self._get_connection("write") as conn:
      conn.execute(
        f"UPDATE dogs SET last_seen_at = ? WHERE id IN ({placeholders})",
        [when or get_current_timestamp()] + list(dog_ids),
      )

  def mark_dogs_removed(self, shelter_id: str, external_ids: List[str]) -> List[Dog]:
    """Soft delete dogs the source no longer lists. Returns the affected dogs"""
    if not external_ids:
      return []
    now = get_current_timestamp()
    placeholders = ",".join("?" * len(external_ids))

    with self._get_connection("delete") as conn:
      rows = conn.execute(f"""
        SELECT * FROM dogs
        WHERE shelter_id = ? AND status != ? AND external_id IN ({placeholders})
      """, [shelter_id, DogStatus.REMOVED.value] + list(external_ids)).fetchall()

      removed = [self._row_to_dog(row) for row in rows]
      for dog in removed:
        conn.execute(
          "UPDATE dogs SET status = ?, updated_at = ?, jobs_pending = 1 WHERE id = ?",
          (DogStatus.REMOVED.value, now, dog.id),
        )
        dog.status = DogStatus.REMOVED
        dog.updated_at = now
        dog.jobs_pending = True
        print(f"  🏠 No longer listed: {dog.name}")

    return removed

  def clear_jobs_pending(self, dog_ids: List[str]):
    """Follow-up jobs for these dogs are on the queue"""
    if not dog_ids:
      return
    placeholders = ",".join("?" * len(dog_ids))
    with self._get_connection("write") as conn:
      conn.execute(f"UPDATE dogs SET jobs_pending = 0 WHERE id IN ({placeholders})", list(dog_ids))

  def _dog_to_row(self, dog: Dog) -> Dict[str, Any]:
    row: Dict[str, Any] = {}
    for name in _DOG_COLUMNS:
      value = getattr(dog, name)
      if name in _JSON_COLUMNS:
        row[name] = self._dump_json(value)
      elif name in _BOOL_COLUMNS:
        row[name] = None if value is None else int(bool(value))
      elif name in ("enriched", "jobs_pending"):
        row[name] = int(bool(value))
      elif name in ("sex", "status"):
        row[name] = value.value
      else:
        row[name] = value
    row["fingerprint"] = dog.fingerprint
    return row

  def _row_to_dog(self, row: sqlite3.Row) -> Dog:
    """Convert database row to Dog object"""
    data = dict(row)
    data.pop("fingerprint", None)
    for name, model in _JSON_COLUMNS.items():
      data[name] = self._load_json(data.get(name), model, name)
    for name in _BOOL_COLUMNS:
      if data.get(name) is not None:
        data[name] = bool(data[name])
    for name in ("urgent", "enriched", "jobs_pending"):
      data[name] = bool(data.get(name))
    data["sex"] = DogSex.from_string(data.get("sex"))
    data["status"] = DogStatus(data.get("status") or DogStatus.AVAILABLE.value)
    return Dog(**{name: data.get(name) for name in _DOG_COLUMNS if name in data})

  @staticmethod
  def _dump_json(value: Any) -> Optional[str]:
    if value is None:
      return None
    if isinstance(value, list):
      plain = [v.model_dump(mode="json", by_alias=True) if hasattr(v, "model_dump") else v for v in value]
    elif hasattr(value, "model_dump"):
      plain = value.model_dump(mode="json", by_alias=True)
    else:
      plain = value
    return json.dumps(plain, ensure_ascii=False)

  @staticmethod
  def _load_json(raw: Optional[str], model, name: str):
    list_column = name in ("breed_estimates", "personality_tags", "photos", "photos_generated")
    if raw is None:
      return [] if list_column else None
    data = json.loads(raw)
    if model is None:
      return data
    if isinstance(data, list):
      return [model.model_validate(item) for item in data]
    return model.model_validate(data)

  # ============================================
  # Sync Logs
  # ============================================

  def create_sync_log(self, shelter_id: str) -> SyncLog:
    log = SyncLog(id=str(uuid.uuid4()), shelter_id=shelter_id, started_at=get_current_timestamp())
    with self._get_connection("write") as conn:
      conn.execute(
        "INSERT INTO sync_logs (id, shelter_id, started_at, errors) VALUES (?, ?, ?, ?)",
        (log.id, log.shelter_id, log.started_at, "[]"),
      )
    return log

  def finish_sync_log(self, log: SyncLog) -> SyncLog:
    """Finalize a run. A finished log is never written again"""
    if log.is_finished:
      return log
    log.finished_at = get_current_timestamp()
    with self._get_connection("write") as conn:
      conn.execute("""
        UPDATE sync_logs SET finished_at = ?, dogs_added = ?, dogs_updated = ?,
          dogs_removed = ?, errors = ?
        WHERE id = ? AND finished_at IS NULL
      """, (
        log.finished_at, log.dogs_added, log.dogs_updated, log.dogs_removed,
        json.dumps(log.errors, ensure_ascii=False), log.id,
      ))
    return log

  def get_sync_logs(self, shelter_id: str, limit: int = 20) -> List[SyncLog]:
    with self._get_connection() as conn:
      rows = conn.execute(
        "SELECT * FROM sync_logs WHERE shelter_id = ? ORDER BY started_at DESC LIMIT ?",
        (shelter_id, limit),
      ).fetchall()
    logs = []
    for row in rows:
      data = dict(row)
      data["errors"] = json.loads(data["errors"]) if data["errors"] else []
      logs.append(SyncLog(**data))
    return logs

  # ============================================
  # API cost ledger
  # ============================================

  def insert_api_cost(self, entry) -> None:
    with self._get_connection("write") as conn:
      conn.execute("""
        INSERT INTO api_costs (created_at, operation, model, input_tokens, output_tokens, cost_usd)
        VALUES (?, ?, ?, ?, ?, ?)
      """, (
        entry.created_at, entry.operation, entry.model,
        entry.input_tokens, entry.output_tokens, entry.cost_usd,
      ))

  def get_api_cost_summary(self) -> List[Dict[str, Any]]:
    """Totals per operation and model"""
    with self._get_connection() as conn:
      rows = conn.execute("""
        SELECT operation, model, COUNT(*) AS calls,
          SUM(input_tokens) AS input_tokens, SUM(output_tokens) AS output_tokens,
          SUM(cost_usd) AS cost_usd
        FROM api_costs GROUP BY operation, model ORDER BY cost_usd DESC
      """).fetchall()
      return [dict(row) for row in rows]
