"""
Adapter for Przytulisko w Wolsztynie (Fundacja Pieskowo)
v1.0.0

Old-style PHP site: the listing links to index.php?do=szczegoly&id=N and each
detail page keeps the story in a single table cell.
"""
import re
from typing import List

from bs4 import BeautifulSoup

from schema import RawDogData
from scrapers.base_scraper import ShelterAdapter, ScraperConfig, absolute_url, unique


SHELTER_ID = "przytulisko-wolsztyn"
BASE_URL = "https://zwierzaki.wolsztyn.pl"
SOURCE_URL = f"{BASE_URL}/przytulisko.html"

MAX_DOGS = 50
MAX_PHOTOS = 10
MAX_DESCRIPTION = 5000
DETAIL_CONCURRENCY = 3

ID_PATTERN = re.compile(r"id=(\d+)")
NAME_FROM_PRZYTULISKO = re.compile(r"([A-ZĄĆĘŁŃÓŚŹŻ][a-ząćęłńóśźż]+)\s+z\s+Przytuliska")
NAME_AT_START = re.compile(r"^([A-ZĄĆĘŁŃÓŚŹŻ][a-ząćęłńóśźż]+)")

MALE_WORDS = ("samczyk", "samiec", "chłopak")
FEMALE_WORDS = ("suczka", "samica", "sunia")


def _site_url(href: str) -> str:
  if href.startswith("http"):
    return href
  return absolute_url(re.sub(r"^\.?/", "", href), BASE_URL)


def parse_sex(text: str) -> str:
  text_lower = (text or "").lower()
  if any(word in text_lower for word in MALE_WORDS):
    return "male"
  if any(word in text_lower for word in FEMALE_WORDS):
    return "female"
  return "unknown"


def extract_dog_urls(html: str) -> List[str]:
  soup = BeautifulSoup(html, "html.parser")
  hrefs = [
    a["href"] for a in soup.select('a[href*="do=szczegoly"]')
    if "id=" in a["href"]
  ]
  return unique([_site_url(href) for href in hrefs])[:MAX_DOGS]


def extract_dog(html: str, url: str) -> RawDogData:
  soup = BeautifulSoup(html, "html.parser")

  id_match = ID_PATTERN.search(url)
  external_id = id_match.group(1) if id_match else url

  raw_description = ""
  for td in soup.find_all("td"):
    text = td.get_text().strip()
    if len(text) > 100 and "szuka domu" in text:
      raw_description = text[:MAX_DESCRIPTION]
      break

  name_match = NAME_FROM_PRZYTULISKO.search(raw_description) or NAME_AT_START.search(raw_description)
  name = name_match.group(1) if name_match else external_id

  # Full-size gallery links first, then inline photos (thumbnails skipped)
  large = [_site_url(a["href"]) for a in soup.select('a[href*="/foto/duze/"]')]
  inline = [
    _site_url(img["src"]) for img in soup.select('img[src*="/foto/"]')
    if "mini" not in img["src"]
  ]

  return RawDogData(
    fingerprint=f"{SHELTER_ID}:{external_id}",
    external_id=external_id,
    name=name,
    raw_description=raw_description,
    photos=unique(large + inline)[:MAX_PHOTOS],
    sex=parse_sex(raw_description),
    source_url=url,
  )


class PrzytuliskoWolsztynAdapter(ShelterAdapter):
  id = SHELTER_ID
  name = "Przytulisko w Wolsztynie (Fundacja Pieskowo)"
  url = BASE_URL
  source_url = SOURCE_URL
  city = "Wolsztyn"
  region = "Wielkopolskie"

  def parse(self, content: str, config: ScraperConfig, http) -> List[RawDogData]:
    try:
      urls = extract_dog_urls(content)
    except Exception as e:
      raise self.parse_error(config, e) from e
    return self.fetch_details(urls, extract_dog, http, concurrency=DETAIL_CONCURRENCY)
