import json
import sqlite3

import pytest

from config import IMAGE_QUEUE, PHOTO_QUEUE, REINDEX_QUEUE
from conftest import FakeHttp, FakeMessage, photo_extraction_json, text_extraction_json
from dal import DAL
from errors import CircuitBreakerError, ExtractionError, QueueError, ScrapeError, StorageError
from jobs import ScrapeRunPayload, parse_envelope, scrape_run_job
from processor import ScrapeProcessor, merge_extraction
from schema import (
  CreateDogInput, DogBio, DogSex, DogStatus, PhotoExtraction, ShelterStatus, SizeEstimate, TextExtraction,
)
from scrapers import get_adapter, tozjawor


PAYLOAD = ScrapeRunPayload(shelter_id="tozjawor", shelter_slug="tozjawor", base_url="https://tozjawor.pl")


def _toz(*dogs):
  """dogs: (id, name, description) tuples -> TOZ Jawor API response"""
  return json.dumps({"dogs": [
    {"_id": dog_id, "image": f"/uploads/{dog_id}.jpg", "name": name, "sex": "pies", "age": "2 lata", "description": description, "createdAt": "2024-01-01"}
    for dog_id, name, description in dogs
  ]})


TWO_DOGS = _toz(("a1", "Azor", "Azor jest spokojny."), ("a2", "Kropka", "Kropka lubi dzieci."))


class FakeExtraction:

  def __init__(self):
    self.text_calls = []
    self.photo_calls = []

  def extract_from_text(self, text, shelter_name="", shelter_city=""):
    self.text_calls.append(text)
    return TextExtraction.model_validate_json(text_extraction_json())

  def extract_from_photos(self, urls, shelter_name="", shelter_city=""):
    self.photo_calls.append(list(urls))
    return PhotoExtraction.model_validate_json(photo_extraction_json())


class FakeDescriber:

  def __init__(self):
    self.calls = []

  def generate(self, dog_data):
    self.calls.append(dog_data.name)
    return DogBio(bio=f"{dog_data.name} czeka na dom.", tone="hopeful")


@pytest.fixture
def shelter(dal):
  dal.seed_shelters([get_adapter("tozjawor")])
  return dal.get_shelter("tozjawor")


def _processor(dal, queue, content=TWO_DOGS, **kwargs):
  http = FakeHttp({tozjawor.API_URL: content} if content is not None else {})
  return ScrapeProcessor(dal, queue, http, ai_concurrency=2, **kwargs)


def test_first_run_creates_dogs_and_jobs(dal, queue, shelter):
  extraction, describer = FakeExtraction(), FakeDescriber()

  result = _processor(dal, queue, extraction=extraction, describer=describer).process_job(PAYLOAD)

  assert (result.added, result.updated, result.unchanged, result.removed) == (2, 0, 0, 0)
  dogs = dal.get_dogs_by_shelter("tozjawor")
  assert [d.name for d in dogs] == ["Azor", "Kropka"]
  azor = dogs[0]
  assert azor.generated_bio == "Azor czeka na dom."
  assert azor.age_estimate.months == 36
  assert azor.breed_estimates[0].breed == "mieszaniec"
  assert azor.fur_length == "short"
  assert azor.location_city == "Jawor"
  assert azor.source_checksum

  assert queue.pending_count(REINDEX_QUEUE) == 2
  assert queue.pending_count(IMAGE_QUEUE) == 2
  assert queue.pending_count(PHOTO_QUEUE) == 0
  upsert = parse_envelope(queue.receive(REINDEX_QUEUE)[0].body)
  assert upsert.payload.op == "upsert"
  assert upsert.payload.description.startswith("Pies ")
  assert upsert.payload.metadata["shelterId"] == "tozjawor"

  log = dal.get_sync_logs("tozjawor")[0]
  assert log.is_finished
  assert log.dogs_added == 2
  assert dal.get_shelter("tozjawor").last_sync is not None


def test_unchanged_listing_skips_ai_and_reindex(dal, queue, shelter):
  extraction, describer = FakeExtraction(), FakeDescriber()
  _processor(dal, queue, extraction=extraction, describer=describer).process_job(PAYLOAD)
  before = dal.get_dogs_by_shelter("tozjawor")

  result = _processor(dal, queue, extraction=extraction, describer=describer).process_job(PAYLOAD)

  assert (result.added, result.updated, result.unchanged) == (0, 0, 2)
  assert result.reindex_jobs == []
  assert len(extraction.text_calls) == 2
  assert len(describer.calls) == 2
  after = dal.get_dogs_by_shelter("tozjawor")
  assert [d.fingerprint for d in after] == [d.fingerprint for d in before]


def test_changed_description_updates_dog(dal, queue, shelter):
  describer = FakeDescriber()
  _processor(dal, queue, describer=describer).process_job(PAYLOAD)
  original = dal.get_dogs_by_shelter("tozjawor")[0]

  changed = _toz(("a1", "Azor", "Azor znalazł dom tymczasowy."), ("a2", "Kropka", "Kropka lubi dzieci."))
  result = _processor(dal, queue, changed, describer=describer).process_job(PAYLOAD)

  assert (result.updated, result.unchanged) == (1, 1)
  updated = dal.get_dog(original.id)
  assert updated.description == "Azor znalazł dom tymczasowy."
  assert updated.created_at == original.created_at
  assert describer.calls == ["Azor", "Kropka", "Azor"]


def test_missing_dog_is_removed_and_restored(dal, queue, shelter):
  _processor(dal, queue).process_job(PAYLOAD)
  kropka = dal.get_dogs_by_shelter("tozjawor")[1]

  result = _processor(dal, queue, _toz(("a1", "Azor", "Azor jest spokojny."))).process_job(PAYLOAD)

  assert result.removed == 1
  assert dal.get_dog(kropka.id).status == DogStatus.REMOVED
  delete = parse_envelope(result.reindex_jobs[0].to_dict())
  assert (delete.payload.op, delete.payload.dog_id) == ("delete", kropka.id)

  # Removing again is a no-op
  again = _processor(dal, queue, _toz(("a1", "Azor", "Azor jest spokojny."))).process_job(PAYLOAD)
  assert again.removed == 0

  back = _processor(dal, queue).process_job(PAYLOAD)
  assert back.updated == 1
  assert dal.get_dog(kropka.id).status == DogStatus.AVAILABLE


def test_partial_run_never_removes(dal, queue, shelter):
  first = _processor(dal, queue).process_job(PAYLOAD, limit=1)
  assert first.added == 1

  second = _processor(dal, queue).process_job(PAYLOAD)
  assert (second.added, second.unchanged) == (1, 1)

  third = _processor(dal, queue).process_job(PAYLOAD, limit=1)
  assert third.removed == 0


def test_broken_record_is_skipped_not_removed(dal, queue, shelter):
  _processor(dal, queue).process_job(PAYLOAD)

  broken = _toz(("a1", "Azor", "Azor jest spokojny."), ("a2", "", "Kropka lubi dzieci."))
  result = _processor(dal, queue, broken).process_job(PAYLOAD)

  assert result.removed == 0
  assert len(result.errors) == 1
  assert "tozjawor:a2" in result.errors[0]
  assert dal.get_sync_logs("tozjawor")[0].errors == result.errors


def test_circuit_breaker_on_suspicious_drop(dal, queue, shelter):
  many = _toz(*[(f"d{n}", f"Pies {n}", f"Opis {n}") for n in range(10)])
  _processor(dal, queue, many).process_job(PAYLOAD)

  with pytest.raises(CircuitBreakerError):
    _processor(dal, queue, _toz(("d1", "Pies 1", "Opis 1"), ("d2", "Pies 2", "Opis 2"))).process_job(PAYLOAD)

  assert len(dal.get_dogs_by_shelter("tozjawor", DogStatus.AVAILABLE)) == 10
  log = dal.get_sync_logs("tozjawor")[0]
  assert log.is_finished
  assert "Circuit breaker" in log.errors[0]


def test_fetch_failure_is_recorded(dal, queue, shelter):
  with pytest.raises(ScrapeError):
    _processor(dal, queue, content=None).process_job(PAYLOAD)

  assert dal.get_shelter("tozjawor").status == ShelterStatus.ERROR
  log = dal.get_sync_logs("tozjawor")[0]
  assert log.is_finished
  assert "Failed to fetch" in log.errors[0]


def test_photo_jobs_only_for_new_dogs(dal, queue, shelter):
  result = _processor(dal, queue, generate_photos=True).process_job(PAYLOAD)
  assert len(result.photo_jobs) == 2
  assert result.photo_jobs[0].payload.variant == "professional"

  changed = _toz(("a1", "Azor", "Nowy opis."), ("a2", "Kropka", "Kropka lubi dzieci."))
  again = _processor(dal, queue, changed, generate_photos=True).process_job(PAYLOAD)
  assert again.photo_jobs == []


def test_trace_ids_link_child_jobs(dal, queue, shelter):
  result = _processor(dal, queue).process_job(PAYLOAD, parent_trace_id="trace-1")
  assert {job.parent_trace_id for job in result.reindex_jobs + result.image_jobs} == {"trace-1"}


# ============================================
# Redelivery and partial failures
# ============================================

class FlakyQueue:
  """Fails the first send to each of `failing`, then delegates"""

  def __init__(self, queue, failing=(REINDEX_QUEUE,)):
    self.queue = queue
    self.failing = set(failing)

  def send_batch(self, name, jobs):
    if name in self.failing:
      self.failing.discard(name)
      raise QueueError("send", f"{name} unavailable")
    return self.queue.send_batch(name, jobs)


class FailingExtraction(FakeExtraction):

  def extract_from_text(self, text, shelter_name="", shelter_city=""):
    self.text_calls.append(text)
    raise ExtractionError("text", "model overloaded")


class RemovalFailsDAL(DAL):

  def mark_dogs_removed(self, shelter_id, external_ids):
    raise StorageError("delete", "disk I/O error")


def test_redelivered_run_sends_jobs_a_failed_send_lost(dal, queue, shelter):
  flaky = FlakyQueue(queue)
  with pytest.raises(QueueError):
    _processor(dal, flaky).process_job(PAYLOAD)

  assert queue.pending_count(REINDEX_QUEUE) == 0
  assert all(d.jobs_pending for d in dal.get_dogs_by_shelter("tozjawor"))
  failed_log = dal.get_sync_logs("tozjawor")[0]
  assert failed_log.is_finished
  assert "reindex-jobs unavailable" in failed_log.errors[-1]

  result = _processor(dal, flaky).process_job(PAYLOAD)

  assert (result.added, result.updated, result.unchanged) == (0, 0, 2)
  assert queue.pending_count(REINDEX_QUEUE) == 2
  assert queue.pending_count(IMAGE_QUEUE) == 2
  assert not any(d.jobs_pending for d in dal.get_dogs_by_shelter("tozjawor"))

  assert _processor(dal, queue).process_job(PAYLOAD).reindex_jobs == []


def test_redelivered_run_resends_deletes(dal, queue, shelter):
  _processor(dal, queue).process_job(PAYLOAD)
  kropka = dal.get_dogs_by_shelter("tozjawor")[1]
  only_azor = _toz(("a1", "Azor", "Azor jest spokojny."))

  with pytest.raises(QueueError):
    _processor(dal, FlakyQueue(queue), only_azor).process_job(PAYLOAD)
  result = _processor(dal, queue, only_azor).process_job(PAYLOAD)

  assert result.removed == 0
  jobs = [parse_envelope(job.to_dict()).payload for job in result.reindex_jobs]
  assert [(job.op, job.dog_id) for job in jobs] == [("delete", kropka.id)]


def test_stored_digest_drives_the_diff(dal, queue, shelter):
  _processor(dal, queue).process_job(PAYLOAD)
  conn = sqlite3.connect(dal.db_path)
  conn.execute("UPDATE dogs SET fingerprint = 'legacy-digest'")
  conn.commit()
  conn.close()

  result = _processor(dal, queue).process_job(PAYLOAD)

  assert (result.updated, result.unchanged) == (2, 0)
  assert len(result.reindex_jobs) == 2
  assert "legacy-digest" not in dal.get_fingerprints("tozjawor").values()


def test_enrichment_catches_up_after_run_without_ai(dal, queue, shelter):
  _processor(dal, queue).process_job(PAYLOAD)
  assert not dal.get_dogs_by_shelter("tozjawor")[0].enriched

  extraction, describer = FakeExtraction(), FakeDescriber()
  result = _processor(dal, queue, extraction=extraction, describer=describer).process_job(PAYLOAD)

  assert result.updated == 2
  assert len(extraction.text_calls) == 2
  assert describer.calls == ["Azor", "Kropka"]
  azor = dal.get_dogs_by_shelter("tozjawor")[0]
  assert azor.enriched
  assert azor.generated_bio == "Azor czeka na dom."
  assert azor.personality_tags == ["przyjazny", "spokojny"]

  again = _processor(dal, queue, extraction=extraction, describer=describer).process_job(PAYLOAD)
  assert again.unchanged == 2
  assert len(extraction.text_calls) == 2


def test_failed_extraction_is_retried_next_run(dal, queue, shelter):
  _processor(dal, queue, extraction=FailingExtraction(), describer=FakeDescriber()).process_job(PAYLOAD)
  assert not any(d.enriched for d in dal.get_dogs_by_shelter("tozjawor"))

  extraction = FakeExtraction()
  _processor(dal, queue, extraction=extraction, describer=FakeDescriber()).process_job(PAYLOAD)

  assert len(extraction.text_calls) == 2
  assert all(d.enriched for d in dal.get_dogs_by_shelter("tozjawor"))


def test_storage_failure_still_finishes_sync_log(dal, queue, shelter):
  _processor(dal, queue).process_job(PAYLOAD)

  broken = RemovalFailsDAL(dal.db_path)
  message = FakeMessage(scrape_run_job(shelter).to_dict())
  _processor(broken, queue, _toz(("a1", "Azor", "Azor jest spokojny."))).handle_message(message)

  assert message.retried and not message.acked
  log = dal.get_sync_logs("tozjawor")[0]
  assert log.is_finished
  assert "disk I/O error" in log.errors[-1]


# ============================================
# Queue handling
# ============================================

def test_handle_message_acks_success(dal, queue, shelter):
  message = FakeMessage(scrape_run_job(shelter).to_dict())
  result = _processor(dal, queue).handle_message(message)
  assert message.acked
  assert result.added == 2


def test_handle_message_acks_malformed(dal, queue):
  message = FakeMessage({"v": 1, "type": "scrape.run"})
  assert _processor(dal, queue).handle_message(message) is None
  assert message.acked


def test_handle_message_acks_unknown_adapter(dal, queue, shelter):
  shelter.slug = "closed-shelter"
  message = FakeMessage(scrape_run_job(shelter).to_dict())
  _processor(dal, queue).handle_message(message)
  assert message.acked


def test_handle_message_acks_scrape_failure(dal, queue, shelter):
  message = FakeMessage(scrape_run_job(shelter).to_dict())
  _processor(dal, queue, content=None).handle_message(message)
  assert message.acked and not message.retried


def test_handle_message_retries_circuit_breaker(dal, queue, shelter):
  many = _toz(*[(f"d{n}", f"Pies {n}", f"Opis {n}") for n in range(10)])
  _processor(dal, queue, many).process_job(PAYLOAD)

  message = FakeMessage(scrape_run_job(shelter).to_dict())
  _processor(dal, queue, _toz(("d1", "Pies 1", "Opis 1"))).handle_message(message)

  assert message.retried and not message.acked


# ============================================
# Merging AI output
# ============================================

def test_merge_extraction_prefers_text_facts_and_photo_looks():
  base = CreateDogInput(
    shelter_id="s1",
    external_id="e1",
    name="Azor",
    size_estimate=SizeEstimate(value="small", confidence=1.0),
    vaccinated=False,
  )
  text = TextExtraction.model_validate_json(text_extraction_json(sizeEstimate=None, vaccinated=None, urgent=True))
  photo = PhotoExtraction.model_validate_json(photo_extraction_json())

  merged = merge_extraction(base, text, photo)

  assert merged.sex == DogSex.MALE
  assert merged.size_estimate.value == "small"
  assert merged.vaccinated is False
  assert merged.chipped is True
  assert merged.urgent is True
  assert merged.breed_estimates[0].breed == "mieszaniec"
  assert merged.color_primary == "czarny"
  assert merged.name == "Azor"
  assert base.sex == DogSex.UNKNOWN


def test_merge_without_ai_output_is_identity():
  base = CreateDogInput(shelter_id="s1", external_id="e1", name="Azor")
  assert merge_extraction(base, None, None) is base
