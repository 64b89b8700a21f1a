"""
Shelter and sync log records
"""
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional, List, Dict


class ShelterStatus(str, Enum):
  ACTIVE = "active"
  INACTIVE = "inactive"
  ERROR = "error"


@dataclass
class Shelter:
  """A source organization whose listings get scraped"""
  id: str
  slug: str             # adapter id in the registry
  name: str
  url: str
  city: str = ""
  region: Optional[str] = None
  lat: Optional[float] = None
  lng: Optional[float] = None
  phone: Optional[str] = None
  email: Optional[str] = None
  active: bool = True
  status: ShelterStatus = ShelterStatus.ACTIVE
  last_sync: Optional[str] = None  # ISO timestamp, None = never synced

  def to_dict(self) -> Dict:
    result = asdict(self)
    result["status"] = self.status.value
    return result


@dataclass
class SyncLog:
  """One scrape run. Created at start, finalized at the end, never edited after"""
  id: str
  shelter_id: str
  started_at: str
  finished_at: Optional[str] = None
  dogs_added: int = 0
  dogs_updated: int = 0
  dogs_removed: int = 0
  errors: List[str] = field(default_factory=list)

  @property
  def is_finished(self) -> bool:
    return self.finished_at is not None
