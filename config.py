"""
Configuration for the shelter sync pipeline

All values can be overridden with environment variables.
"""
import os
from dataclasses import dataclass
from typing import Optional


# Storage locations
DB_PATH = os.environ.get("DB_PATH", "dogs.db")
QUEUE_DB_PATH = os.environ.get("QUEUE_DB_PATH", "queue.db")
VECTOR_DB_PATH = os.environ.get("VECTOR_DB_PATH", "vectors.db")

# Queue names
SCRAPE_QUEUE = "scrape-jobs"
REINDEX_QUEUE = "reindex-jobs"
IMAGE_QUEUE = "image-jobs"
PHOTO_QUEUE = "photo-jobs"

# Scheduling
DEFAULT_SYNC_INTERVAL_MINUTES = 60

# AI enrichment concurrency per shelter run
DEFAULT_AI_CONCURRENCY = 5
MIN_AI_CONCURRENCY = 1
MAX_AI_CONCURRENCY = 10

# Detail page fetching
DETAIL_FETCH_CONCURRENCY = 5
HTTP_TIMEOUT = 30

# User agent for web requests
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"


def get_sync_interval_minutes() -> int:
  """Sync interval in minutes, falling back to the default on bad input"""
  raw = os.environ.get("SYNC_INTERVAL_MINUTES", "")
  try:
    value = int(raw)
  except ValueError:
    return DEFAULT_SYNC_INTERVAL_MINUTES
  return value if value > 0 else DEFAULT_SYNC_INTERVAL_MINUTES


def get_ai_concurrency(raw: Optional[str] = None) -> int:
  """Clamp SCRAPER_AI_CONCURRENCY into the allowed range"""
  if raw is None:
    raw = os.environ.get("SCRAPER_AI_CONCURRENCY", "")
  try:
    value = int(raw)
  except (TypeError, ValueError):
    return DEFAULT_AI_CONCURRENCY
  return max(MIN_AI_CONCURRENCY, min(MAX_AI_CONCURRENCY, value))


@dataclass(frozen=True)
class AIConfig:
  """Model identifiers and credentials for the OpenRouter API"""
  api_key: str = ""
  base_url: str = "https://openrouter.ai/api/v1"
  text_extraction_model: str = "x-ai/grok-4.1-fast"
  photo_analysis_model: str = "google/gemini-3-flash-preview"
  description_gen_model: str = "google/gemini-3-flash-preview"
  embedding_model: str = "google/gemini-embedding-001"

  @classmethod
  def from_env(cls) -> "AIConfig":
    defaults = cls()
    return cls(
      api_key=os.environ.get("OPENROUTER_API_KEY", ""),
      base_url=os.environ.get("OPENROUTER_BASE_URL", defaults.base_url),
      text_extraction_model=os.environ.get("MODEL_TEXT_EXTRACTION", defaults.text_extraction_model),
      photo_analysis_model=os.environ.get("MODEL_PHOTO_ANALYSIS", defaults.photo_analysis_model),
      description_gen_model=os.environ.get("MODEL_DESCRIPTION_GEN", defaults.description_gen_model),
      embedding_model=os.environ.get("MODEL_EMBEDDING", defaults.embedding_model),
    )

  def __repr__(self) -> str:
    # Never print the key
    masked = "***" if self.api_key else ""
    return (
      f"AIConfig(api_key={masked!r}, base_url={self.base_url!r}, "
      f"text_extraction_model={self.text_extraction_model!r}, "
      f"photo_analysis_model={self.photo_analysis_model!r}, "
      f"description_gen_model={self.description_gen_model!r}, "
      f"embedding_model={self.embedding_model!r})"
    )
