from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from jobs import SCRAPE_RUN, parse_envelope
from scheduler import ScrapeScheduler


def _adapter(slug):
  return SimpleNamespace(id=slug, name=slug.title(), url=f"https://{slug}.pl", city="Konin", region=None)


def test_only_due_shelters_are_enqueued(dal, queue):
  dal.seed_shelters([_adapter("never"), _adapter("stale"), _adapter("fresh")])
  now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
  dal.mark_shelter_synced("stale", (now - timedelta(minutes=90)).isoformat())
  dal.mark_shelter_synced("fresh", (now - timedelta(minutes=10)).isoformat())

  jobs = ScrapeScheduler(dal, queue, interval_minutes=60).run(now)

  assert sorted(job.payload.shelter_slug for job in jobs) == ["never", "stale"]
  assert all(job.source == "scheduler" for job in jobs)

  messages = queue.receive("scrape-jobs")
  assert len(messages) == 2
  envelope = parse_envelope(messages[0].body)
  assert envelope.type == SCRAPE_RUN
  assert envelope.payload.base_url.startswith("https://")


def test_inactive_shelters_are_skipped(dal, queue):
  dal.seed_shelters([_adapter("paused")])
  shelter = dal.get_shelter("paused")
  shelter.active = False
  dal.upsert_shelter(shelter)

  assert ScrapeScheduler(dal, queue, interval_minutes=60).run() == []
  assert queue.pending_count("scrape-jobs") == 0


def test_nothing_due(dal, queue):
  assert ScrapeScheduler(dal, queue).run() == []
