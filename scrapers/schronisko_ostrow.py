"""
Adapter for Schronisko Pod Wiatrakami w Ostrowie Wielkopolskim
v1.0.0

Site builder page: every dog lives at a one-segment slug under the site root
(https://schroniskoostrow.pl/bodzio). The listing mixes those links with menu
and social links, so only single-segment slugs survive the filter.
"""
from typing import List

from bs4 import BeautifulSoup

from schema import RawDogData
from scrapers.base_scraper import ShelterAdapter, ScraperConfig, unique


SHELTER_ID = "schronisko-ostrow"
BASE_URL = "https://schroniskoostrow.pl"
SOURCE_URL = f"{BASE_URL}/adopcja-psy"

MAX_DOGS = 150
MAX_PHOTOS = 20
MAX_DESCRIPTION = 5000

NON_DOG_LINKS = ("/adopcja-", "/o-nas", "facebook", "instagram", "google")
# Footer / site builder boilerplate
NOISE = ("WebWave", "cookie", "537-830-730")


def _slug(url: str) -> str:
  return url.replace(BASE_URL, "", 1).strip("/")


def parse_sex(text: str) -> str:
  text_lower = (text or "").lower()
  if "samiec" in text_lower or "pies:" in text_lower:
    return "male"
  if "samica" in text_lower or "suka" in text_lower:
    return "female"
  return "unknown"


def extract_dog_urls(html: str) -> List[str]:
  soup = BeautifulSoup(html, "html.parser")
  urls = []
  for a in soup.find_all("a", href=True):
    href = a["href"]
    if not href.startswith(BASE_URL + "/"):
      continue
    if any(part in href for part in NON_DOG_LINKS):
      continue
    slug = _slug(href)
    if slug and "/" not in slug and 1 < len(slug) < 50:
      urls.append(href.rstrip("/"))
  return unique(urls)[:MAX_DOGS]


def extract_dog(html: str, url: str) -> RawDogData:
  soup = BeautifulSoup(html, "html.parser")

  external_id = _slug(url) or url.rstrip("/").rsplit("/", 1)[-1]

  h1 = soup.find("h1")
  name = h1.get_text(strip=True) if h1 else external_id

  blocks = [el.get_text().strip() for el in soup.find_all(["p", "div"])]
  blocks = [
    text for text in blocks
    if len(text) > 30 and not any(noise in text for noise in NOISE)
  ]
  raw_description = "\n".join(unique(blocks))[:MAX_DESCRIPTION]

  og_image = soup.find("meta", attrs={"property": "og:image"})
  photos = [og_image["content"]] if og_image and og_image.get("content") else []

  return RawDogData(
    fingerprint=f"{SHELTER_ID}:{external_id}",
    external_id=external_id,
    name=name or external_id,
    raw_description=raw_description,
    photos=photos[:MAX_PHOTOS],
    sex=parse_sex(raw_description),
    source_url=url,
  )


class SchroniskoOstrowAdapter(ShelterAdapter):
  id = SHELTER_ID
  name = "Schronisko Pod Wiatrakami w Ostrowie Wielkopolskim"
  url = BASE_URL
  source_url = SOURCE_URL
  city = "Ostrów Wielkopolski"
  region = "Wielkopolskie"

  def parse(self, content: str, config: ScraperConfig, http) -> List[RawDogData]:
    try:
      urls = extract_dog_urls(content)
    except Exception as e:
      raise self.parse_error(config, e) from e
    return self.fetch_details(urls, extract_dog, http)
