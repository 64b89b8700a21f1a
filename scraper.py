#!/usr/bin/env python3
"""
Shelter Sync - Main Runner
v3.0.0 - Queue based pipeline

Command line entry point for the shelter sync pipeline.

Usage:
  python scraper.py list                               # Registered adapters / shelters
  python scraper.py seed                               # Create shelter rows for all adapters
  python scraper.py run schronisko-konin --limit 5     # Dry run: fetch + parse, print dogs
  python scraper.py process tozjawor --generate-photos # Full pipeline for one shelter
  python scraper.py schedule                           # Enqueue scrape jobs for due shelters
  python scraper.py work --queue reindex               # Drain a local queue
  python scraper.py costs                              # API spend per operation/model
"""
import argparse
import sys
import traceback

from ai_extraction import AIExtractionService
from config import (
  DB_PATH, QUEUE_DB_PATH, REINDEX_QUEUE, SCRAPE_QUEUE, VECTOR_DB_PATH,
  AIConfig, get_ai_concurrency,
)
from cost_tracker import SqliteCostTracker
from dal import DAL
from description_generator import DescriptionGenerator
from embedder import EmbeddingService, ReindexWorker
from http_client import HttpClient
from job_queue import JobQueue
from jobs import ScrapeRunPayload
from llm_client import OpenRouterClient
from processor import ScrapeProcessor
from scheduler import ScrapeScheduler
from scrapers import ScraperConfig, get_adapter, get_all_adapters, list_adapters
from vector_store import SqliteVectorIndex


def get_dal() -> DAL:
  dal = DAL(DB_PATH)
  dal.init_database()
  return dal


def show_list():
  """Registered adapters and their shelter sync state"""
  dal = get_dal()
  shelters = {s.slug: s for s in dal.list_shelters()}

  print("\n" + "=" * 60)
  print("🏠 SHELTERS")
  print("=" * 60)
  for entry in list_adapters():
    shelter = shelters.get(entry["id"])
    if shelter is None:
      state = "not seeded"
    else:
      state = f"{shelter.status.value}, last sync: {shelter.last_sync or 'never'}"
    print(f"  {entry['id']:<24} {entry['name']} ({state})")


def seed():
  dal = get_dal()
  print("\n🌱 Seeding shelters")
  seeded = dal.seed_shelters(get_all_adapters())
  print(f"✅ {len(seeded)} shelters ready")


def dry_run(shelter_id: str, limit: int = None):
  """fetch + parse only, nothing is stored"""
  adapter = get_adapter(shelter_id)
  if adapter is None:
    raise SystemExit(f"Unknown shelter: {shelter_id}")

  http = HttpClient()
  config = ScraperConfig(shelter_id=adapter.id, base_url=adapter.url)
  content = adapter.fetch(config, http)
  dogs = adapter.parse(content, config, http)
  if limit is not None:
    dogs = dogs[:limit]

  print(f"\n📋 {adapter.name}: {len(dogs)} dogs")
  print("-" * 40)
  for raw in dogs:
    print(f"  🐕 {raw.name} [{raw.external_id}] {raw.sex}, {len(raw.photos)} photo(s)")
    if raw.source_url:
      print(f"     {raw.source_url}")


def build_processor(dal: DAL, queue: JobQueue, concurrency: int = None, generate_photos: bool = False):
  ai_config = AIConfig.from_env()
  tracker = SqliteCostTracker(dal)
  extraction = None
  describer = None
  if ai_config.api_key:
    client = OpenRouterClient(ai_config)
    extraction = AIExtractionService.from_config(ai_config, client, tracker)
    describer = DescriptionGenerator(client, ai_config, tracker)
  else:
    print("⚠️ OPENROUTER_API_KEY not set, AI enrichment disabled")

  processor = ScrapeProcessor(
    dal,
    queue,
    HttpClient(),
    extraction=extraction,
    describer=describer,
    ai_concurrency=get_ai_concurrency(str(concurrency)) if concurrency is not None else None,
    generate_photos=generate_photos,
  )
  return processor, tracker


def process(shelter_id: str, limit: int = None, concurrency: int = None, generate_photos: bool = False):
  dal = get_dal()
  shelter = dal.get_shelter(shelter_id)
  if shelter is None:
    adapter = get_adapter(shelter_id)
    if adapter is None:
      raise SystemExit(f"Unknown shelter: {shelter_id}")
    shelter = dal.seed_shelters([adapter])[0]

  queue = JobQueue(QUEUE_DB_PATH)
  processor, tracker = build_processor(dal, queue, concurrency, generate_photos)
  try:
    payload = ScrapeRunPayload(shelter_id=shelter.id, shelter_slug=shelter.slug, base_url=shelter.url)
    result = processor.process_job(payload, limit=limit)
  finally:
    tracker.close()

  print("\n" + "=" * 60)
  print("📊 SYNC COMPLETE")
  print("=" * 60)
  print(f"  Added: {result.added} | Updated: {result.updated} | Unchanged: {result.unchanged} | Removed: {result.removed}")
  print(f"  Jobs: {len(result.reindex_jobs)} reindex, {len(result.image_jobs)} image, {len(result.photo_jobs)} photo")
  for error in result.errors:
    print(f"  ❌ {error}")


def schedule():
  dal = get_dal()
  ScrapeScheduler(dal, JobQueue(QUEUE_DB_PATH)).run()


def work(queue_name: str, batch_size: int = 10):
  """Drain one local queue until it is empty"""
  queue = JobQueue(QUEUE_DB_PATH)
  handled = 0

  if queue_name == "scrape":
    dal = get_dal()
    processor, tracker = build_processor(dal, queue)
    try:
      while True:
        messages = queue.receive(SCRAPE_QUEUE, max_messages=1, visibility_timeout=900)
        if not messages:
          break
        processor.handle_message(messages[0])
        handled += 1
    finally:
      tracker.close()
  else:
    ai_config = AIConfig.from_env()
    tracker = SqliteCostTracker(get_dal())
    worker = ReindexWorker(
      SqliteVectorIndex(VECTOR_DB_PATH),
      EmbeddingService(OpenRouterClient(ai_config), ai_config, tracker),
    )
    try:
      while True:
        messages = queue.receive(REINDEX_QUEUE, max_messages=batch_size, visibility_timeout=300)
        if not messages:
          break
        outcome = worker.handle_batch(messages)
        handled += len(messages)
        if outcome.retried:
          # Retried messages are visible again right away, stop instead of spinning
          break
    finally:
      tracker.close()

  print(f"✅ Handled {handled} message(s) from {queue_name}")


def show_costs():
  dal = get_dal()
  rows = dal.get_api_cost_summary()

  print("\n" + "=" * 60)
  print("💰 API COSTS")
  print("=" * 60)
  if not rows:
    print("  No API calls recorded")
    return
  total = 0.0
  for row in rows:
    total += row["cost_usd"] or 0
    print(f"  {row['operation']:<24} {row['model']:<32} {row['calls']:>5} calls  ${row['cost_usd']:.4f}")
  print(f"  {'TOTAL':<24} {'':<32} {'':>11}  ${total:.4f}")


def main(argv=None):
  parser = argparse.ArgumentParser(description="Shelter Sync v3.0")
  sub = parser.add_subparsers(dest="command", required=True)

  sub.add_parser("list", help="List adapters and shelters")
  sub.add_parser("seed", help="Create shelter rows for every adapter")

  run_parser = sub.add_parser("run", help="Dry run: fetch and parse one shelter")
  run_parser.add_argument("shelter_id")
  run_parser.add_argument("--limit", type=int, help="Only show the first N dogs")

  process_parser = sub.add_parser("process", help="Run the full pipeline for one shelter")
  process_parser.add_argument("shelter_id")
  process_parser.add_argument("--limit", type=int, help="Only process the first N dogs (no removals)")
  process_parser.add_argument("--concurrency", type=int, help="Parallel AI enrichment (1-10)")
  process_parser.add_argument("--generate-photos", action="store_true", help="Enqueue photo generation for new dogs")

  sub.add_parser("schedule", help="Enqueue scrape jobs for due shelters")

  work_parser = sub.add_parser("work", help="Drain a local queue")
  work_parser.add_argument("--queue", choices=["scrape", "reindex"], default="scrape")
  work_parser.add_argument("--batch", type=int, default=10, help="Reindex batch size")

  sub.add_parser("costs", help="Show API spend")

  args = parser.parse_args(argv)

  try:
    if args.command == "list":
      show_list()
    elif args.command == "seed":
      seed()
    elif args.command == "run":
      dry_run(args.shelter_id, args.limit)
    elif args.command == "process":
      process(args.shelter_id, args.limit, args.concurrency, args.generate_photos)
    elif args.command == "schedule":
      schedule()
    elif args.command == "work":
      work(args.queue, args.batch)
    elif args.command == "costs":
      show_costs()
  except Exception as e:
    print(f"❌ {args.command} failed: {e}", file=sys.stderr)
    traceback.print_exc()
    return 1
  return 0


if __name__ == "__main__":
  sys.exit(main())
