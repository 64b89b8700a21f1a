"""
Scrape processor
v1.0.0

Handles one scrape.run job end to end:

  adapter fetch -> parse -> transform
  -> AI enrichment (skipped when the adapter output did not change
     and the stored record is already enriched)
  -> fingerprint diff against stored dogs
  -> persist created / updated / removed
  -> enqueue search.reindex, images.processOriginal and photos.generate jobs

A failed listing fetch/parse aborts only this shelter's run and is recorded
in its sync log. A failed dog is recorded and skipped. Dogs stay
jobs_pending until their follow-up jobs are queued, so a redelivered job
sends whatever the failed delivery did not.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from config import IMAGE_QUEUE, PHOTO_QUEUE, REINDEX_QUEUE, get_ai_concurrency
from description_generator import DogData
from errors import CircuitBreakerError, NotFoundError, ParseError, PipelineError, ScrapeError, StorageError
from fingerprint import diff_candidates, fingerprint_of
from jobs import (
  JobEnvelope, ScrapeRunPayload, SCRAPE_RUN,
  images_process_job, parse_envelope, photos_generate_job,
  reindex_delete_job, reindex_upsert_job,
)
from schema import (
  CreateDogInput, Dog, DogSex, DogStatus, PhotoExtraction, RawDogData,
  ShelterStatus, TextExtraction, get_current_timestamp,
)
from scrapers import ScraperConfig, get_adapter
from search_document import build_search_document
from workers import map_bounded


MAX_COLLECTED_ERRORS = 20
CIRCUIT_BREAKER_MIN_EXISTING = 5
CIRCUIT_BREAKER_RATIO = 0.3
WARNING_RATIO = 0.7


@dataclass
class SyncResult:
  shelter_id: str
  sync_log_id: Optional[str] = None
  added: int = 0
  updated: int = 0
  unchanged: int = 0
  removed: int = 0
  errors: List[str] = field(default_factory=list)
  reindex_jobs: List[JobEnvelope] = field(default_factory=list)
  image_jobs: List[JobEnvelope] = field(default_factory=list)
  photo_jobs: List[JobEnvelope] = field(default_factory=list)


@dataclass
class Candidate:
  """A transformed (and possibly enriched) dog plus its adapter checksum"""
  data: CreateDogInput
  source_checksum: str
  reused: bool = False
  enriched: bool = False


def merge_extraction(
  base: CreateDogInput,
  text: Optional[TextExtraction],
  photo: Optional[PhotoExtraction],
) -> CreateDogInput:
  """
  Fold AI results into adapter output.
  Text wins for facts (sex, age, size, health), photos win for looks and breed.
  Adapter values stay when the model had nothing to say.
  """
  changes = {}

  if text is not None:
    if text.sex is not None:
      changes["sex"] = DogSex.from_string(text.sex)
    changes["age_estimate"] = text.age_estimate or base.age_estimate
    changes["size_estimate"] = text.size_estimate or base.size_estimate
    changes["weight_estimate"] = text.weight_estimate or base.weight_estimate
    if text.breed_estimates:
      changes["breed_estimates"] = list(text.breed_estimates)
    if text.personality_tags:
      changes["personality_tags"] = list(text.personality_tags)
    for name in ("vaccinated", "sterilized", "chipped", "good_with_kids", "good_with_dogs", "good_with_cats"):
      value = getattr(text, name)
      changes[name] = value if value is not None else getattr(base, name)
    hints = text.location_hints
    if hints.city_mention:
      changes["location_city"] = hints.city_mention
      changes["location_name"] = hints.city_mention
    if hints.is_foster is not None:
      changes["is_foster"] = hints.is_foster
    changes["urgent"] = text.urgent or base.urgent

  if photo is not None:
    if photo.breed_estimates:
      changes["breed_estimates"] = list(photo.breed_estimates)
    if changes.get("size_estimate") is None and base.size_estimate is None and photo.size_estimate:
      changes["size_estimate"] = photo.size_estimate
    for name in ("fur_length", "fur_type", "color_primary", "color_secondary", "color_pattern", "ear_type", "tail_type"):
      value = getattr(photo, name)
      if value is not None:
        changes[name] = value

  return base.with_changes(**changes) if changes else base


class ScrapeProcessor:
  """Runs scrape jobs against the store, the AI services and the queue"""

  def __init__(
    self,
    dal,
    queue,
    http,
    extraction=None,
    describer=None,
    ai_concurrency: Optional[int] = None,
    generate_photos: bool = False,
  ):
    self.dal = dal
    self.queue = queue
    self.http = http
    self.extraction = extraction
    self.describer = describer
    self.ai_concurrency = ai_concurrency or get_ai_concurrency()
    self.generate_photos = generate_photos

  # ============================================
  # Queue entry point
  # ============================================

  def handle_message(self, message) -> Optional[SyncResult]:
    """Process one queue message and settle it"""
    try:
      envelope = parse_envelope(message.body)
    except ValueError as e:
      print(f"❌ Dropping malformed scrape message: {e}")
      message.ack()
      return None

    if envelope.type != SCRAPE_RUN:
      print(f"❌ Unexpected job type on scrape queue: {envelope.type}")
      message.ack()
      return None

    try:
      result = self.process_job(envelope.payload, parent_trace_id=envelope.trace_id)
    except CircuitBreakerError as e:
      print(f"⚠️ {e}")
      message.retry()
      return None
    except NotFoundError as e:
      print(f"❌ {e}")
      message.ack()
      return None
    except (ScrapeError, ParseError) as e:
      # Already recorded in the sync log, the next scheduler tick retries
      print(f"❌ Scrape failed for {e.shelter_id}: {e}")
      message.ack()
      return None
    except PipelineError as e:
      print(f"❌ {e}")
      message.retry()
      return None

    message.ack()
    return result

  # ============================================
  # One shelter run
  # ============================================

  def process_job(
    self,
    payload: ScrapeRunPayload,
    limit: Optional[int] = None,
    parent_trace_id: Optional[str] = None,
  ) -> SyncResult:
    adapter = get_adapter(payload.shelter_slug)
    if adapter is None:
      raise NotFoundError("Adapter", payload.shelter_slug)

    shelter = self.dal.get_shelter(payload.shelter_id)
    shelter_name = shelter.name if shelter else adapter.name
    shelter_city = (shelter.city if shelter else "") or adapter.city

    print(f"\n🐕 Processing {shelter_name} ({payload.shelter_slug})")
    log = self.dal.create_sync_log(payload.shelter_id)
    result = SyncResult(shelter_id=payload.shelter_id, sync_log_id=log.id)

    try:
      self._sync(adapter, payload, log, result, shelter_name, shelter_city, limit, parent_trace_id)
    except PipelineError as e:
      self._abort_sync_log(log, result, e)
      raise

    print(
      f"  ✅ Sync complete for {payload.shelter_id}: +{result.added} "
      f"~{result.updated} ={result.unchanged} -{result.removed}"
    )
    if result.errors:
      print(f"  ⚠️ {len(result.errors)} dog(s) failed processing")
    return result

  def _sync(
    self,
    adapter,
    payload: ScrapeRunPayload,
    log,
    result: SyncResult,
    shelter_name: str,
    shelter_city: str,
    limit: Optional[int],
    parent_trace_id: Optional[str],
  ):
    config = ScraperConfig(shelter_id=payload.shelter_id, base_url=payload.base_url)

    try:
      content = adapter.fetch(config, self.http)
      raw_dogs = adapter.parse(content, config, self.http)
    except (ScrapeError, ParseError) as e:
      log.errors = [str(e)]
      self.dal.finish_sync_log(log)
      self.dal.set_shelter_status(payload.shelter_id, ShelterStatus.ERROR)
      raise

    if limit is not None:
      raw_dogs = raw_dogs[:limit]
    print(f"  ✅ Scraped {len(raw_dogs)} dogs")

    existing = self.dal.get_dogs_by_shelter(payload.shelter_id)
    by_external_id = {dog.external_id: dog for dog in existing}
    self._check_circuit_breaker(payload.shelter_id, existing, len(raw_dogs), limit, log)

    # Transform + enrich, bounded
    def prepare(raw: RawDogData) -> Tuple[RawDogData, Optional[Candidate], Optional[str]]:
      try:
        return raw, self._prepare_candidate(adapter, raw, config, by_external_id, shelter_name, shelter_city), None
      except Exception as e:
        return raw, None, f"{raw.fingerprint}: {e}"

    prepared = map_bounded(prepare, raw_dogs, self.ai_concurrency)

    candidates: Dict[str, Candidate] = {}
    failed_ids = []
    for raw, candidate, error in prepared:
      if candidate is None:
        failed_ids.append(raw.external_id)
        self._record_error(result, error)
      elif raw.external_id not in candidates:
        candidates[raw.external_id] = candidate

    diff = diff_candidates(
      stored=self.dal.get_fingerprints(payload.shelter_id),
      candidates=[c.data for c in candidates.values()],
      inactive_ids={dog.external_id for dog in existing if dog.status == DogStatus.REMOVED},
      also_seen=failed_ids,
      detect_removals=limit is None,
    )

    # Same content, but enrichment only succeeded now
    unchanged, refreshed = [], []
    for data in diff.unchanged:
      if candidates[data.external_id].enriched and not by_external_id[data.external_id].enriched:
        refreshed.append(data)
      else:
        unchanged.append(data)

    now = get_current_timestamp()
    handled = set()

    for data in diff.created:
      try:
        dog = self._create_dog(data, candidates[data.external_id], now)
      except Exception as e:
        self._record_error(result, f"{data.external_id}: {e}")
        continue
      result.added += 1
      handled.add(dog.id)
      self._queue_jobs_for(dog, result, created=True, parent_trace_id=parent_trace_id)

    for data in diff.updated + refreshed:
      try:
        dog = self._update_dog(by_external_id[data.external_id], data, candidates[data.external_id], now)
      except Exception as e:
        self._record_error(result, f"{data.external_id}: {e}")
        continue
      result.updated += 1
      handled.add(dog.id)
      self._queue_jobs_for(dog, result, created=False, parent_trace_id=parent_trace_id)

    result.unchanged = len(unchanged)
    self.dal.touch_dogs([by_external_id[d.external_id].id for d in unchanged], now)

    for dog in self.dal.mark_dogs_removed(payload.shelter_id, diff.removed):
      result.removed += 1
      handled.add(dog.id)
      result.reindex_jobs.append(reindex_delete_job(dog.id, parent_trace_id))

    # Jobs an earlier delivery of this run stored but never got onto the queue
    for dog in existing:
      if dog.jobs_pending and dog.id not in handled:
        handled.add(dog.id)
        if dog.status == DogStatus.REMOVED:
          result.reindex_jobs.append(reindex_delete_job(dog.id, parent_trace_id))
        else:
          self._queue_jobs_for(dog, result, created=False, parent_trace_id=parent_trace_id)

    self._send(REINDEX_QUEUE, result.reindex_jobs)
    self._send(IMAGE_QUEUE, result.image_jobs)
    self._send(PHOTO_QUEUE, result.photo_jobs)
    self.dal.clear_jobs_pending(sorted(handled))

    log.dogs_added = result.added
    log.dogs_updated = result.updated
    log.dogs_removed = result.removed
    log.errors = list(result.errors)
    self.dal.finish_sync_log(log)
    self.dal.mark_shelter_synced(payload.shelter_id)

  def _abort_sync_log(self, log, result: SyncResult, error: PipelineError):
    if log.is_finished:
      return
    log.dogs_added = result.added
    log.dogs_updated = result.updated
    log.dogs_removed = result.removed
    log.errors = result.errors[:MAX_COLLECTED_ERRORS - 1] + [str(error)]
    try:
      self.dal.finish_sync_log(log)
    except StorageError as e:
      print(f"  ⚠️ Could not finish sync log {log.id}: {e}")

  # ============================================
  # Steps
  # ============================================

  def _check_circuit_breaker(self, shelter_id: str, existing: List[Dog], scraped: int, limit: Optional[int], log):
    if limit is not None:
      return
    available = sum(1 for dog in existing if dog.status == DogStatus.AVAILABLE)
    if available <= CIRCUIT_BREAKER_MIN_EXISTING:
      return
    if scraped < available * WARNING_RATIO:
      print(f"  ⚠️ Significant dog count drop: scraped {scraped}, expected ~{available}")
    if scraped < available * CIRCUIT_BREAKER_RATIO:
      message = f"Circuit breaker triggered: scraped {scraped} dogs, expected ~{available}. Will retry."
      log.errors = [message]
      self.dal.finish_sync_log(log)
      raise CircuitBreakerError(shelter_id, message)

  def _prepare_candidate(
    self,
    adapter,
    raw: RawDogData,
    config: ScraperConfig,
    by_external_id: Dict[str, Dog],
    shelter_name: str,
    shelter_city: str,
  ) -> Candidate:
    base = adapter.transform(raw, config)
    checksum = fingerprint_of(base)

    stored = by_external_id.get(base.external_id)
    if stored is not None and stored.source_checksum == checksum and (stored.enriched or self.extraction is None):
      # Same adapter output as last time: keep the stored enrichment
      return Candidate(data=stored.to_input(), source_checksum=checksum, reused=True, enriched=stored.enriched)

    if self.extraction is None:
      return Candidate(data=base, source_checksum=checksum)

    text = None
    try:
      text = self.extraction.extract_from_text(raw.raw_description, shelter_name, shelter_city)
    except PipelineError as e:
      print(f"  ⚠️ Text extraction failed for {raw.fingerprint}: {e}")

    photo = None
    if base.photos:
      try:
        photo = self.extraction.extract_from_photos(base.photos, shelter_name, shelter_city)
      except PipelineError as e:
        print(f"  ⚠️ Photo analysis failed for {raw.fingerprint}: {e}")

    return Candidate(
      data=merge_extraction(base, text, photo),
      source_checksum=checksum,
      enriched=text is not None and (photo is not None or not base.photos),
    )

  def _generate_bio(self, data: CreateDogInput) -> Optional[str]:
    if self.describer is None:
      return None
    try:
      return self.describer.generate(DogData.from_dog(data)).bio
    except PipelineError as e:
      print(f"  ⚠️ Bio generation failed for {data.name}: {e}")
      return None

  def _create_dog(self, data: CreateDogInput, candidate: Candidate, now: str) -> Dog:
    bio = self._generate_bio(data)
    dog = Dog.from_input(
      "",
      data,
      generated_bio=bio,
      source_checksum=candidate.source_checksum,
      enriched=candidate.enriched and (self.describer is None or bio is not None),
      jobs_pending=True,
      status=DogStatus.AVAILABLE,
      last_seen_at=now,
    )
    return self.dal.insert_dog(dog)

  def _update_dog(self, stored: Dog, data: CreateDogInput, candidate: Candidate, now: str) -> Dog:
    bio = stored.generated_bio
    enriched = candidate.enriched
    if not candidate.reused:
      fresh = self._generate_bio(data)
      bio = fresh or bio
      enriched = enriched and (self.describer is None or fresh is not None)
    if stored.status == DogStatus.REMOVED:
      print(f"  🔄 Back on the listing: {data.name}")
    dog = Dog.from_input(
      stored.id,
      data,
      generated_bio=bio,
      photos_generated=list(stored.photos_generated),
      source_checksum=candidate.source_checksum,
      enriched=enriched,
      jobs_pending=True,
      status=DogStatus.AVAILABLE,
      last_seen_at=now,
      created_at=stored.created_at,
    )
    return self.dal.update_dog(dog)

  def _queue_jobs_for(self, dog: Dog, result: SyncResult, created: bool, parent_trace_id: Optional[str]):
    document = build_search_document(dog)
    result.reindex_jobs.append(reindex_upsert_job(dog.id, document, parent_trace_id))
    if dog.photos:
      result.image_jobs.append(images_process_job(dog.id, dog.photos, parent_trace_id))
    if created and self.generate_photos:
      result.photo_jobs.append(photos_generate_job(dog.id, "professional", parent_trace_id=parent_trace_id))

  def _record_error(self, result: SyncResult, message: str):
    print(f"  ⚠️ {message}")
    if len(result.errors) < MAX_COLLECTED_ERRORS:
      result.errors.append(message)

  def _send(self, queue_name: str, jobs: List[JobEnvelope]):
    if jobs:
      self.queue.send_batch(queue_name, jobs)
