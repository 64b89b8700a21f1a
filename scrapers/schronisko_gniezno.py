"""
Adapter for Schronisko dla Bezdomnych Zwierząt w Gnieźnie
v1.0.0 - Listings hosted on puszatek.pl

The shelter publishes its animals on the puszatek.pl platform. Detail pages
carry the name, sex ("on"/"ona") and a photo gallery under /pictures/pets/.
"""
from typing import List
from urllib.parse import urljoin, urldefrag, urlparse

from bs4 import BeautifulSoup

from schema import RawDogData
from scrapers.base_scraper import ShelterAdapter, ScraperConfig, unique


SHELTER_ID = "schronisko-gniezno"
PLATFORM_URL = "https://puszatek.pl"
SOURCE_URL = f"{PLATFORM_URL}/schronisko/317"
OFFICIAL_URL = "https://urbis.gniezno.pl/schronisko/"

MAX_DOG_URLS = 200
MAX_PHOTOS = 20


def _platform_url(href: str) -> str:
  return urldefrag(urljoin(PLATFORM_URL, href))[0]


def parse_sex(text: str) -> str:
  value = (text or "").strip().lower()
  if value == "on":
    return "male"
  if value == "ona":
    return "female"
  return "unknown"


def extract_dog_urls(html: str) -> List[str]:
  soup = BeautifulSoup(html, "html.parser")
  urls = [
    _platform_url(a["href"])
    for a in soup.select('a.stretched-link[href^="/zwierzak/"]')
    if a.get("href")
  ]
  return unique(urls)[:MAX_DOG_URLS]


def extract_dog(html: str, url: str) -> RawDogData:
  soup = BeautifulSoup(html, "html.parser")

  segments = [s for s in urlparse(url).path.split("/") if s]
  external_id = segments[-1] if segments else url

  name_el = soup.select_one("#pet-name-main")
  name = name_el.get_text(strip=True) if name_el else "Unknown"

  gender_el = soup.select_one("#pet-gender")
  sex = parse_sex(gender_el.get_text() if gender_el else "")

  description_el = soup.select_one("div#pet-description") or soup.select_one("p#pet-description") or soup.body
  lines = []
  if description_el is not None:
    for el in description_el.select("#button-more, #button-less, script, style"):
      el.decompose()
    lines = [line.strip() for line in description_el.get_text("\n").split("\n") if line.strip()]
  raw_description = "\n".join(lines) or "No description"

  candidates = []
  main_image = soup.select_one("#pet-main-image")
  if main_image and main_image.get("src"):
    candidates.append(main_image["src"])
  candidates.extend(
    img["src"] for img in soup.select("#pet-photos img, .swiper-slide img, img.pet-thumb") if img.get("src")
  )
  photos = unique([
    u for u in (_platform_url(src) for src in candidates) if "/pictures/pets/" in u
  ])[:MAX_PHOTOS]

  return RawDogData(
    fingerprint=f"{SHELTER_ID}:{external_id}",
    external_id=external_id,
    name=name or "Unknown",
    raw_description=raw_description,
    photos=photos,
    sex=sex,
    source_url=url,
  )


class SchroniskoGnieznoAdapter(ShelterAdapter):
  id = SHELTER_ID
  name = "Schronisko dla Bezdomnych Zwierząt w Gnieźnie"
  url = OFFICIAL_URL
  source_url = SOURCE_URL
  city = "Gniezno"
  region = "Wielkopolskie"

  def parse(self, content: str, config: ScraperConfig, http) -> List[RawDogData]:
    try:
      urls = extract_dog_urls(content)
    except Exception as e:
      raise self.parse_error(config, e) from e
    return self.fetch_details(urls, extract_dog, http)
