"""
Job envelopes
v1.0.0

Every asynchronous hop carries its payload inside a versioned envelope:

  {"v": 1, "type": "...", "payload": {...}, "traceId": "...",
   "createdAt": <epoch ms>, "source": "...", "parentTraceId": "..."}

`parentTraceId` is only present when the producer passes one. The payload
shape is determined by the `type` literal (see JOB_PAYLOAD_TYPES).
"""
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


ENVELOPE_VERSION = 1

JOB_SOURCES = ("api", "scheduler", "scraper-processor", "cli", "admin")

SCRAPE_RUN = "scrape.run"
IMAGES_PROCESS_ORIGINAL = "images.processOriginal"
PHOTOS_GENERATE = "photos.generate"
SEARCH_REINDEX = "search.reindex"

PHOTO_VARIANTS = ("professional", "nose")
REINDEX_OPS = ("upsert", "delete")


# ============================================
# Payloads
# ============================================

@dataclass(frozen=True)
class ScrapeRunPayload:
  shelter_id: str
  shelter_slug: str
  base_url: str

  def to_dict(self) -> Dict[str, Any]:
    return {"shelterId": self.shelter_id, "shelterSlug": self.shelter_slug, "baseUrl": self.base_url}

  @classmethod
  def from_dict(cls, data: Dict[str, Any]) -> "ScrapeRunPayload":
    return cls(
      shelter_id=_required_str(data, "shelterId"),
      shelter_slug=_required_str(data, "shelterSlug"),
      base_url=_required_str(data, "baseUrl", allow_empty=True),
    )


@dataclass(frozen=True)
class ImagesProcessOriginalPayload:
  dog_id: str
  urls: List[str] = field(default_factory=list)

  def to_dict(self) -> Dict[str, Any]:
    return {"dogId": self.dog_id, "urls": list(self.urls)}

  @classmethod
  def from_dict(cls, data: Dict[str, Any]) -> "ImagesProcessOriginalPayload":
    urls = data.get("urls")
    if not isinstance(urls, list) or not all(isinstance(u, str) for u in urls):
      raise ValueError("images.processOriginal payload needs a list of url strings")
    return cls(dog_id=_required_str(data, "dogId"), urls=urls)


@dataclass(frozen=True)
class PhotosGeneratePayload:
  dog_id: str
  variant: str
  force: Optional[bool] = None

  def to_dict(self) -> Dict[str, Any]:
    result: Dict[str, Any] = {"dogId": self.dog_id, "variant": self.variant}
    if self.force is not None:
      result["force"] = self.force
    return result

  @classmethod
  def from_dict(cls, data: Dict[str, Any]) -> "PhotosGeneratePayload":
    variant = data.get("variant")
    if variant not in PHOTO_VARIANTS:
      raise ValueError(f"Unknown photo variant: {variant!r}")
    force = data.get("force")
    if force is not None and not isinstance(force, bool):
      raise ValueError("photos.generate force must be a boolean")
    return cls(dog_id=_required_str(data, "dogId"), variant=variant, force=force)


@dataclass(frozen=True)
class SearchReindexPayload:
  op: str
  dog_id: str
  description: Optional[str] = None
  metadata: Optional[Dict[str, Any]] = None

  def to_dict(self) -> Dict[str, Any]:
    result: Dict[str, Any] = {"op": self.op, "dogId": self.dog_id}
    if self.description is not None:
      result["description"] = self.description
    if self.metadata is not None:
      result["metadata"] = dict(self.metadata)
    return result

  @classmethod
  def from_dict(cls, data: Dict[str, Any]) -> "SearchReindexPayload":
    op = data.get("op")
    if op not in REINDEX_OPS:
      raise ValueError(f"Unknown reindex op: {op!r}")
    metadata = data.get("metadata")
    if metadata is not None and not isinstance(metadata, dict):
      raise ValueError("search.reindex metadata must be an object")
    return cls(
      op=op,
      dog_id=_required_str(data, "dogId"),
      description=data.get("description"),
      metadata=metadata,
    )


JOB_PAYLOAD_TYPES = {
  SCRAPE_RUN: ScrapeRunPayload,
  IMAGES_PROCESS_ORIGINAL: ImagesProcessOriginalPayload,
  PHOTOS_GENERATE: PhotosGeneratePayload,
  SEARCH_REINDEX: SearchReindexPayload,
}


def _required_str(data: Dict[str, Any], key: str, allow_empty: bool = False) -> str:
  value = data.get(key)
  if not isinstance(value, str) or (not value and not allow_empty):
    raise ValueError(f"Missing or invalid '{key}'")
  return value


# ============================================
# Envelope
# ============================================

@dataclass(frozen=True)
class JobEnvelope:
  """Versioned, immutable message wrapper"""
  type: str
  payload: Any
  trace_id: str
  created_at: int
  source: str
  parent_trace_id: Optional[str] = None
  v: int = ENVELOPE_VERSION

  def to_dict(self) -> Dict[str, Any]:
    """Wire form. parentTraceId is left out entirely when not set"""
    payload = self.payload.to_dict() if hasattr(self.payload, "to_dict") else self.payload
    result = {
      "v": self.v,
      "type": self.type,
      "payload": payload,
      "traceId": self.trace_id,
      "createdAt": self.created_at,
      "source": self.source,
    }
    if self.parent_trace_id is not None:
      result["parentTraceId"] = self.parent_trace_id
    return result


def make_envelope(
  type: str,
  payload: Any,
  source: str,
  parent_trace_id: Optional[str] = None,
) -> JobEnvelope:
  """Wrap a payload with a fresh trace id and creation time"""
  if source not in JOB_SOURCES:
    raise ValueError(f"Unknown job source: {source!r}")
  return JobEnvelope(
    type=type,
    payload=payload,
    trace_id=str(uuid.uuid4()),
    created_at=int(time.time() * 1000),
    source=source,
    parent_trace_id=parent_trace_id,
  )


def parse_envelope(data: Dict[str, Any]) -> JobEnvelope:
  """Validate a wire-form envelope and decode its payload by type"""
  if not isinstance(data, dict):
    raise ValueError("Envelope must be an object")
  if data.get("v") != ENVELOPE_VERSION:
    raise ValueError(f"Unsupported envelope version: {data.get('v')!r}")

  job_type = data.get("type")
  payload_cls = JOB_PAYLOAD_TYPES.get(job_type)
  if payload_cls is None:
    raise ValueError(f"Unknown job type: {job_type!r}")

  raw_payload = data.get("payload")
  if not isinstance(raw_payload, dict):
    raise ValueError("Envelope payload must be an object")

  created_at = data.get("createdAt")
  if not isinstance(created_at, int):
    raise ValueError("Envelope createdAt must be an integer")

  parent = data.get("parentTraceId")
  if parent is not None and not isinstance(parent, str):
    raise ValueError("Envelope parentTraceId must be a string")

  return JobEnvelope(
    type=job_type,
    payload=payload_cls.from_dict(raw_payload),
    trace_id=_required_str(data, "traceId"),
    created_at=created_at,
    source=_required_str(data, "source"),
    parent_trace_id=parent,
  )


# ============================================
# Job factories
# ============================================

def scrape_run_job(shelter, source: str = "scheduler", parent_trace_id: Optional[str] = None) -> JobEnvelope:
  return make_envelope(
    SCRAPE_RUN,
    ScrapeRunPayload(shelter_id=shelter.id, shelter_slug=shelter.slug, base_url=shelter.url),
    source,
    parent_trace_id,
  )


def reindex_upsert_job(dog_id: str, document, parent_trace_id: Optional[str] = None) -> JobEnvelope:
  """Upsert job carrying a prebuilt search document"""
  return make_envelope(
    SEARCH_REINDEX,
    SearchReindexPayload(op="upsert", dog_id=dog_id, description=document.text, metadata=document.metadata),
    "scraper-processor",
    parent_trace_id,
  )


def reindex_delete_job(dog_id: str, parent_trace_id: Optional[str] = None) -> JobEnvelope:
  return make_envelope(
    SEARCH_REINDEX,
    SearchReindexPayload(op="delete", dog_id=dog_id),
    "scraper-processor",
    parent_trace_id,
  )


def images_process_job(dog_id: str, urls: List[str], parent_trace_id: Optional[str] = None) -> JobEnvelope:
  return make_envelope(
    IMAGES_PROCESS_ORIGINAL,
    ImagesProcessOriginalPayload(dog_id=dog_id, urls=list(urls)),
    "scraper-processor",
    parent_trace_id,
  )


def photos_generate_job(
  dog_id: str,
  variant: str = "professional",
  force: Optional[bool] = None,
  parent_trace_id: Optional[str] = None,
) -> JobEnvelope:
  if variant not in PHOTO_VARIANTS:
    raise ValueError(f"Unknown photo variant: {variant!r}")
  return make_envelope(
    PHOTOS_GENERATE,
    PhotosGeneratePayload(dog_id=dog_id, variant=variant, force=force),
    "scraper-processor",
    parent_trace_id,
  )
