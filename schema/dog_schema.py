"""
Universal Dog Schema
v2.0.0 - Shelter sync pipeline

This is the single source of truth for dog data structure.
All adapters, the processor and storage conform to it.

Lifecycle:
- RawDogData: what an adapter scraped, never stored
- CreateDogInput: adapter output after transform (and AI enrichment)
- Dog: the canonical, persisted record

Design Principles:
- Health / compatibility booleans stay nullable: None means "unknown",
  which is not the same as False
- The fingerprint is derived from the content fields and cannot be set
"""
from dataclasses import dataclass, field, asdict, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any

from fingerprint import fingerprint_of
from .estimations import AgeEstimate, BreedEstimate, SizeEstimate, WeightEstimate


class DogStatus(str, Enum):
  """Standardized dog status values"""
  AVAILABLE = "available"
  ADOPTED = "adopted"
  RESERVED = "reserved"
  REMOVED = "removed"


class DogSex(str, Enum):
  MALE = "male"
  FEMALE = "female"
  UNKNOWN = "unknown"

  @classmethod
  def from_string(cls, value: Optional[str]) -> "DogSex":
    """Convert string to DogSex, anything unexpected is unknown"""
    if not value:
      return cls.UNKNOWN
    value_lower = value.lower().strip()
    for member in cls:
      if member.value == value_lower:
        return member
    return cls.UNKNOWN


class DogSize(str, Enum):
  SMALL = "small"
  MEDIUM = "medium"
  LARGE = "large"


@dataclass
class RawDogData:
  """
  Adapter-local intermediate record.
  `fingerprint` here is only the identity seed "{shelter_id}:{external_id}".
  """
  fingerprint: str
  external_id: str
  name: str
  raw_description: str
  breed: Optional[str] = None
  age_months: Optional[int] = None
  size: Optional[str] = None
  sex: str = DogSex.UNKNOWN.value
  personality_tags: List[str] = field(default_factory=list)
  photos: List[str] = field(default_factory=list)
  urgent: bool = False
  source_url: Optional[str] = None

  def to_dict(self) -> Dict[str, Any]:
    return asdict(self)


@dataclass(frozen=True)
class CreateDogInput:
  """
  Canonical dog content as produced by an adapter.
  Immutable: enrichment returns a new instance via `with_changes`.
  """
  shelter_id: str
  external_id: str
  name: str
  sex: DogSex = DogSex.UNKNOWN
  description: Optional[str] = None

  # Location
  location_name: Optional[str] = None
  location_city: Optional[str] = None
  location_lat: Optional[float] = None
  location_lng: Optional[float] = None
  is_foster: Optional[bool] = None

  # AI estimations
  breed_estimates: List[BreedEstimate] = field(default_factory=list)
  size_estimate: Optional[SizeEstimate] = None
  age_estimate: Optional[AgeEstimate] = None
  weight_estimate: Optional[WeightEstimate] = None
  personality_tags: List[str] = field(default_factory=list)

  # Health / compatibility (None = unknown)
  vaccinated: Optional[bool] = None
  sterilized: Optional[bool] = None
  chipped: Optional[bool] = None
  good_with_kids: Optional[bool] = None
  good_with_dogs: Optional[bool] = None
  good_with_cats: Optional[bool] = None

  # Appearance (from photos)
  fur_length: Optional[str] = None
  fur_type: Optional[str] = None
  color_primary: Optional[str] = None
  color_secondary: Optional[str] = None
  color_pattern: Optional[str] = None
  ear_type: Optional[str] = None
  tail_type: Optional[str] = None

  photos: List[str] = field(default_factory=list)
  source_url: Optional[str] = None
  urgent: bool = False

  @property
  def fingerprint(self) -> str:
    return fingerprint_of(self)

  def with_changes(self, **changes) -> "CreateDogInput":
    return replace(self, **changes)


# Content fields shared by CreateDogInput and Dog
INPUT_FIELDS = tuple(CreateDogInput.__dataclass_fields__)


@dataclass
class Dog:
  """
  Canonical dog record.

  Identity is (id, shelter_id, external_id). Created on first sighting,
  updated on content change, soft deleted (status=removed) when the source
  stops listing it. Never hard deleted by the pipeline.
  """

  # ===== IDENTITY =====
  id: str
  shelter_id: str
  external_id: str

  # ===== BASIC =====
  name: str
  sex: DogSex = DogSex.UNKNOWN
  description: Optional[str] = None

  # ===== LOCATION =====
  location_name: Optional[str] = None
  location_city: Optional[str] = None
  location_lat: Optional[float] = None
  location_lng: Optional[float] = None
  is_foster: Optional[bool] = None

  # ===== AI ESTIMATIONS =====
  breed_estimates: List[BreedEstimate] = field(default_factory=list)
  size_estimate: Optional[SizeEstimate] = None
  age_estimate: Optional[AgeEstimate] = None
  weight_estimate: Optional[WeightEstimate] = None
  personality_tags: List[str] = field(default_factory=list)

  # ===== HEALTH / COMPATIBILITY =====
  vaccinated: Optional[bool] = None
  sterilized: Optional[bool] = None
  chipped: Optional[bool] = None
  good_with_kids: Optional[bool] = None
  good_with_dogs: Optional[bool] = None
  good_with_cats: Optional[bool] = None

  # ===== APPEARANCE =====
  fur_length: Optional[str] = None
  fur_type: Optional[str] = None
  color_primary: Optional[str] = None
  color_secondary: Optional[str] = None
  color_pattern: Optional[str] = None
  ear_type: Optional[str] = None
  tail_type: Optional[str] = None

  # ===== PHOTOS =====
  photos: List[str] = field(default_factory=list)            # original URLs
  photos_generated: List[str] = field(default_factory=list)  # generated photo keys

  # ===== GENERATED / META =====
  generated_bio: Optional[str] = None
  source_url: Optional[str] = None
  source_checksum: Optional[str] = None
  enriched: bool = False        # AI extraction (and bio, when enabled) succeeded
  jobs_pending: bool = False    # follow-up jobs not confirmed sent yet
  urgent: bool = False
  status: DogStatus = DogStatus.AVAILABLE

  # ===== TIMESTAMPS =====
  last_seen_at: Optional[str] = None
  created_at: Optional[str] = None
  updated_at: Optional[str] = None

  @property
  def fingerprint(self) -> str:
    return fingerprint_of(self)

  @classmethod
  def from_input(cls, dog_id: str, data: CreateDogInput, **extra) -> "Dog":
    """Build a canonical record from adapter content plus generated/meta fields"""
    values = {name: getattr(data, name) for name in INPUT_FIELDS}
    values["breed_estimates"] = list(values["breed_estimates"])
    values["personality_tags"] = list(values["personality_tags"])
    values["photos"] = list(values["photos"])
    values.update(extra)
    return cls(id=dog_id, **values)

  def to_input(self) -> CreateDogInput:
    """The content part of this record"""
    return CreateDogInput(**{name: getattr(self, name) for name in INPUT_FIELDS})


def get_current_timestamp() -> str:
  """Returns current UTC timestamp in ISO format"""
  return datetime.now(timezone.utc).isoformat()
