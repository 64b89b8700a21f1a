"""
Adapter for Schronisko dla Bezdomnych Zwierząt w Koninie
v1.0.0 - Joomla listing with ?start= pagination

Listing: /kacik-adopcyjny (up to MAX_PAGES pages)
Detail pages: /kacik-adopcyjny/<number>-<slug>, externalId = <number>
"""
import re
from typing import List
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from schema import RawDogData
from scrapers.base_scraper import (
  ShelterAdapter, ScraperConfig, absolute_url, clean_text, infer_sex, is_photo_url, unique,
)
from workers import map_bounded


SHELTER_ID = "schronisko-konin"
BASE_URL = "https://www.schroniskokonin.pl"
SOURCE_URL = f"{BASE_URL}/kacik-adopcyjny"

MAX_DOG_URLS = 300
MAX_PAGES = 20
PAGE_FETCH_CONCURRENCY = 3

_DETAIL_SLUG = re.compile(r"^\d+-")


def extract_dog_urls(html: str) -> List[str]:
  """Detail page URLs from a listing page, deduplicated and capped"""
  soup = BeautifulSoup(html, "html.parser")
  urls = []
  for link in soup.select('a[href*="/kacik-adopcyjny/"]'):
    href = link.get("href")
    if not href:
      continue
    path = href.replace(BASE_URL, "")
    if "metamorfozy" in path or "?start=" in path:
      continue
    segments = [s for s in path.split("/") if s]
    if len(segments) == 2 and segments[0] == "kacik-adopcyjny" and _DETAIL_SLUG.match(segments[1]):
      urls.append(absolute_url(href, BASE_URL))
  return unique(urls)[:MAX_DOG_URLS]


def extract_dog(html: str, url: str) -> RawDogData:
  soup = BeautifulSoup(html, "html.parser")

  slug = [s for s in urlparse(url).path.split("/") if s][-1]
  id_match = re.match(r"^(\d+)-", slug)
  external_id = id_match.group(1) if id_match else slug

  heading = soup.select_one("h2, h1.page-header")
  name = clean_text(heading.get_text()) if heading else "Unknown"
  if name.startswith("Psy"):
    name = name[3:].strip()
  dash_index = name.find(" - ")
  if dash_index > 0:
    name = name[:dash_index].strip()

  description = soup.select_one(".item-page p, article p, .content p")
  raw_description = clean_text(description.get_text()) if description else ""

  photos = []
  og_image = soup.select_one('meta[property="og:image"]')
  if og_image and is_photo_url(og_image.get("content", "")):
    photos.append(absolute_url(og_image["content"], BASE_URL))
  for img in soup.select('img[src*="/images/"]'):
    src = img.get("src", "")
    if is_photo_url(src) and "logo" not in src and "favicon" not in src:
      photos.append(absolute_url(src, BASE_URL))

  page_text = soup.body.get_text(" ") if soup.body else soup.get_text(" ")

  return RawDogData(
    fingerprint=f"{SHELTER_ID}:{external_id}",
    external_id=external_id,
    name=name or "Unknown",
    raw_description=raw_description or "No description",
    photos=unique(photos),
    sex=infer_sex(page_text),
    source_url=url,
  )


class SchroniskoKoninAdapter(ShelterAdapter):
  id = SHELTER_ID
  name = "Schronisko dla Bezdomnych Zwierząt w Koninie"
  url = BASE_URL
  source_url = SOURCE_URL
  city = "Konin"
  region = "Wielkopolskie"

  def fetch(self, config: ScraperConfig, http) -> str:
    first_page = self.fetch_page(SOURCE_URL, config, http)

    soup = BeautifulSoup(first_page, "html.parser")
    page_urls = unique([
      absolute_url(a["href"], BASE_URL)
      for a in soup.select('a[href*="?start="]')
      if a.get("href")
    ])[:MAX_PAGES - 1]

    def fetch_extra(page_url: str) -> str:
      # A missing page only loses its dogs
      try:
        return http.get_text(page_url)
      except Exception as e:
        print(f"  ⚠️ Skipping listing page {page_url}: {e}")
        return ""

    extra_pages = map_bounded(fetch_extra, page_urls, PAGE_FETCH_CONCURRENCY)
    return "\n".join([first_page] + extra_pages)

  def parse(self, content: str, config: ScraperConfig, http) -> List[RawDogData]:
    try:
      urls = extract_dog_urls(content)
    except Exception as e:
      raise self.parse_error(config, e) from e
    return self.fetch_details(urls, extract_dog, http)
