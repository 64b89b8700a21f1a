"""
Base adapter class for shelter websites

Every shelter is one ShelterAdapter with three steps:
  fetch(config, http)            -> raw listing content    (ScrapeError)
  parse(content, config, http)   -> List[RawDogData]       (ParseError)
  transform(raw, config)         -> CreateDogInput         (ParseError)

Adapters keep no state between calls; the HTTP capability is passed in.
"""
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence
from urllib.parse import urljoin

import requests

from config import DETAIL_FETCH_CONCURRENCY
from errors import ParseError, ScrapeError
from schema import (
  AgeEstimate, BreedEstimate, CreateDogInput, DogSex, RawDogData, SizeEstimate,
  normalize_breed,
)
from workers import map_bounded


PHOTO_URL_PATTERN = re.compile(r"\.(?:jpe?g|png|webp)(?:\?|$)", re.IGNORECASE)

MALE_KEYWORDS = ("piesek", "samiec")
FEMALE_KEYWORDS = ("suczka", "samica")


@dataclass(frozen=True)
class ScraperConfig:
  shelter_id: str
  base_url: str
  options: Dict[str, Any] = field(default_factory=dict)


def absolute_url(href: str, base_url: str) -> str:
  """Resolve a relative link against the site root"""
  if href.startswith("http://") or href.startswith("https://"):
    return href
  return urljoin(base_url.rstrip("/") + "/", href)


def is_photo_url(url: str) -> bool:
  return bool(url) and bool(PHOTO_URL_PATTERN.search(url))


def unique(values: Sequence[str]) -> List[str]:
  """Deduplicate keeping first-seen order"""
  seen = set()
  result = []
  for value in values:
    if value and value not in seen:
      seen.add(value)
      result.append(value)
  return result


def infer_sex(text: str) -> str:
  """Polish gendered nouns in page text -> male / female / unknown"""
  text_lower = (text or "").lower()
  if any(word in text_lower for word in MALE_KEYWORDS):
    return DogSex.MALE.value
  if any(word in text_lower for word in FEMALE_KEYWORDS):
    return DogSex.FEMALE.value
  return DogSex.UNKNOWN.value


def clean_text(text: Optional[str]) -> str:
  return re.sub(r"\s+", " ", text or "").strip()


class ShelterAdapter:
  """Base class for shelter website adapters"""

  id: str = ""
  name: str = ""
  url: str = ""
  source_url: str = ""
  city: str = ""
  region: Optional[str] = None

  # ============================================
  # The three adapter steps
  # ============================================

  def fetch(self, config: ScraperConfig, http) -> str:
    """Default: GET the listing page"""
    return self.fetch_page(self.source_url or config.base_url, config, http)

  def parse(self, content: str, config: ScraperConfig, http) -> List[RawDogData]:
    raise NotImplementedError("Subclass must implement parse()")

  def transform(self, raw: RawDogData, config: ScraperConfig) -> CreateDogInput:
    """Map adapter hints onto the canonical input (hints get confidence 1.0)"""
    if not raw.external_id or not raw.name:
      raise ParseError(config.shelter_id, f"Incomplete record: {raw.fingerprint}")

    breed_estimates = []
    breed = normalize_breed(raw.breed) if raw.breed else None
    if breed:
      breed_estimates.append(BreedEstimate(breed=breed, confidence=1.0))

    size_estimate = None
    if raw.size in ("small", "medium", "large"):
      size_estimate = SizeEstimate(value=raw.size, confidence=1.0)

    age_estimate = None
    if raw.age_months is not None:
      age_estimate = AgeEstimate(
        months=raw.age_months,
        confidence=1.0,
        range_min=raw.age_months,
        range_max=raw.age_months,
      )

    return CreateDogInput(
      shelter_id=config.shelter_id,
      external_id=raw.external_id,
      name=raw.name,
      sex=DogSex.from_string(raw.sex),
      description=raw.raw_description,
      location_city=self.city or None,
      breed_estimates=breed_estimates,
      size_estimate=size_estimate,
      age_estimate=age_estimate,
      personality_tags=list(raw.personality_tags),
      photos=list(raw.photos),
      source_url=raw.source_url,
      urgent=raw.urgent,
    )

  # ============================================
  # Helpers
  # ============================================

  def fetch_page(self, url: str, config: ScraperConfig, http) -> str:
    try:
      return http.get_text(url)
    except requests.RequestException as e:
      raise ScrapeError(config.shelter_id, f"Failed to fetch {url}", e) from e

  def fetch_details(
    self,
    urls: Sequence[str],
    extract: Callable[[str, str], RawDogData],
    http,
    concurrency: int = DETAIL_FETCH_CONCURRENCY,
  ) -> List[RawDogData]:
    """
    Fetch detail pages with bounded concurrency, in listing order.
    A page that fails to download or parse is dropped.
    """
    def fetch_one(url: str) -> Optional[RawDogData]:
      try:
        return extract(http.get_text(url), url)
      except Exception as e:
        print(f"  ⚠️ Skipping {url}: {e}")
        return None

    return [dog for dog in map_bounded(fetch_one, urls, concurrency) if dog is not None]

  def seed(self, external_id: str) -> str:
    """Identity seed stored on RawDogData"""
    return f"{self.id}:{external_id}"

  def parse_error(self, config: ScraperConfig, cause: BaseException) -> ParseError:
    return ParseError(config.shelter_id, f"Failed to parse {self.name} pages", cause)
