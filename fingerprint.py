"""
Content fingerprints and sync diffing
v1.0.0

A fingerprint is a digest over the content-bearing fields of a dog record.
Between two sync runs we only spend AI / embedding work on records whose
fingerprint moved.

Diff rules per shelter:
- new external id                      -> create (+ reindex upsert)
- known id, fingerprint changed        -> update (+ reindex upsert)
- known id, fingerprint unchanged      -> nothing
- stored id missing from fresh results -> removed (+ reindex delete)
"""
import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set


# Order matters: the serialized form follows this tuple exactly
CONTENT_FIELDS = (
  "name",
  "sex",
  "description",
  "breed_estimates",
  "size_estimate",
  "age_estimate",
  "personality_tags",
  "photos",
  "urgent",
)


def _to_plain(value: Any) -> Any:
  """Convert estimates / enums / tuples into plain JSON values"""
  if hasattr(value, "model_dump"):
    return value.model_dump(mode="json", by_alias=True)
  if isinstance(value, Enum):
    return value.value
  if isinstance(value, (list, tuple)):
    return [_to_plain(v) for v in value]
  if isinstance(value, dict):
    return {k: _to_plain(v) for k, v in value.items()}
  return value


def canonical_fields(record: Any) -> Dict[str, Any]:
  """Pull the content fields out of a record (object or mapping)"""
  if isinstance(record, Mapping):
    return {name: record.get(name) for name in CONTENT_FIELDS}
  return {name: getattr(record, name, None) for name in CONTENT_FIELDS}


def serialize_canonical(fields: Mapping[str, Any]) -> str:
  """Canonical text form of the content fields"""
  ordered = [[name, _to_plain(fields.get(name))] for name in CONTENT_FIELDS]
  return json.dumps(ordered, ensure_ascii=False, separators=(",", ":"))


def compute_fingerprint(fields: Mapping[str, Any]) -> str:
  """Deterministic sha256 over the canonical serialization"""
  return hashlib.sha256(serialize_canonical(fields).encode("utf-8")).hexdigest()


def fingerprint_of(record: Any) -> str:
  return compute_fingerprint(canonical_fields(record))


@dataclass
class SyncDiff:
  """Outcome of comparing fresh candidates with stored fingerprints"""
  created: List[Any] = field(default_factory=list)
  updated: List[Any] = field(default_factory=list)
  unchanged: List[Any] = field(default_factory=list)
  removed: List[str] = field(default_factory=list)  # external ids

  @property
  def has_changes(self) -> bool:
    return bool(self.created or self.updated or self.removed)


def diff_candidates(
  stored: Mapping[str, str],
  candidates: Iterable[Any],
  fingerprint: Callable[[Any], str] = fingerprint_of,
  inactive_ids: Optional[Set[str]] = None,
  also_seen: Iterable[str] = (),
  detect_removals: bool = True,
) -> SyncDiff:
  """
  Classify candidates against the stored `external_id -> fingerprint` map.

  inactive_ids: stored ids already marked removed. If one shows up again it
    is treated as an update so it gets restored, and it is never removed twice.
  also_seen: ids the source listed but that could not be processed; they
    are not treated as gone.
  detect_removals: False for partial runs (e.g. --limit).
  """
  inactive_ids = inactive_ids or set()
  diff = SyncDiff()
  classified: Set[str] = set()

  for candidate in candidates:
    external_id = candidate.external_id
    if external_id in classified:
      # Same id twice in one listing, keep the first
      continue
    classified.add(external_id)

    stored_fp = stored.get(external_id)
    if stored_fp is None:
      diff.created.append(candidate)
    elif external_id in inactive_ids or stored_fp != fingerprint(candidate):
      diff.updated.append(candidate)
    else:
      diff.unchanged.append(candidate)

  if detect_removals:
    seen = classified | set(also_seen)
    for external_id in stored:
      if external_id not in seen and external_id not in inactive_ids:
        diff.removed.append(external_id)

  return diff
