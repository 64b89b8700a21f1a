"""
Scrape scheduler

One tick: find shelters that are due (never synced, or synced longer than
the interval ago) and enqueue one scrape.run job for each in a single batch.
"""
from datetime import datetime
from typing import List, Optional

from config import SCRAPE_QUEUE, get_sync_interval_minutes
from jobs import JobEnvelope, scrape_run_job


class ScrapeScheduler:

  def __init__(self, dal, queue, interval_minutes: Optional[int] = None):
    self.dal = dal
    self.queue = queue
    self.interval_minutes = interval_minutes or get_sync_interval_minutes()

  def run(self, now: Optional[datetime] = None) -> List[JobEnvelope]:
    due = self.dal.get_due_shelters(self.interval_minutes, now)
    print(f"📅 Found {len(due)} shelters due for sync")

    jobs = [scrape_run_job(shelter, source="scheduler") for shelter in due]
    if jobs:
      self.queue.send_batch(SCRAPE_QUEUE, jobs)
      print(f"  ✅ Enqueued {len(jobs)} scrape jobs")
    return jobs
