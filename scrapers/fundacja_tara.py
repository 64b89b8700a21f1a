"""
Adapter for Fundacja Tara
v1.0.0 - WordPress tag listing (/tag/dom-dla-psa/)

Posts are free-form, so the dog's name is guessed from, in order:
image alt text, "Mam na imię X" / "X to ..." in the text, the post title.
Photos come from the post body (src + srcset) with WordPress thumbnail
suffixes (-300x200) stripped.
"""
import re
from typing import List, Optional

from bs4 import BeautifulSoup

from schema import RawDogData
from scrapers.base_scraper import ShelterAdapter, ScraperConfig, is_photo_url, unique


SHELTER_ID = "fundacja-tara"
BASE_URL = "https://fundacjatara.info"
SOURCE_URL = f"{BASE_URL}/tag/dom-dla-psa/"

MAX_LISTING_PAGES = 3
MAX_DOG_URLS = 50

BLOCKED_NAMES = {
  "pies", "piesek", "kundel", "kundelki", "pomoc",
  "szczeniak", "szczeniaki", "szczeniaczki",
}

_WP_SIZE_SUFFIX = re.compile(r"-\d+x\d+(?=\.(?:jpe?g|png|webp)(?:\?|$))", re.IGNORECASE)
_NAME_CHARS = re.compile(r"^[^\W\d_](?:[^\W\d_]|[\s-])*$")
_MAM_NA_IMIE = re.compile(r"\bMam na imię\s+([^\W\d_](?:[^\W\d_]|-){1,30})\b", re.IGNORECASE)
_X_TO = re.compile(r"\b([^\W\d_](?:[^\W\d_]|-){1,30})\s+to\b", re.IGNORECASE)
_PAGE_NUMBER = re.compile(r"/page/(\d+)/")


def normalize_wp_image_url(url: str) -> str:
  return _WP_SIZE_SUFFIX.sub("", url)


def normalize_dog_name(name: str) -> str:
  name = re.sub(r"\s+", " ", name.strip())
  return name[:1].upper() + name[1:]


def looks_like_dog_name(candidate: str) -> bool:
  value = candidate.strip()
  if len(value) < 2 or len(value) > 30:
    return False
  if not _NAME_CHARS.match(value):
    return False
  return value.lower() not in BLOCKED_NAMES


def extract_name_from_text(text: str) -> Optional[str]:
  normalized = re.sub(r"\s+", " ", text).strip()
  if not normalized:
    return None
  match = _MAM_NA_IMIE.search(normalized) or _X_TO.search(normalized)
  return match.group(1) if match else None


def extract_dog_urls(html: str) -> List[str]:
  soup = BeautifulSoup(html, "html.parser")
  anchors = soup.select("article.latestPost h2.title.front-view-title a")
  if not anchors:
    anchors = soup.select("h2.title.front-view-title a")

  urls = []
  for a in anchors:
    href = a.get("href", "")
    if not href.startswith(f"{BASE_URL}/"):
      continue
    if any(part in href for part in ("/tag/", "/category/", "/author/", "/wp-content/")):
      continue
    urls.append(href)
  return unique(urls)[:MAX_DOG_URLS]


def _absolute(url: str) -> str:
  if url.startswith("//"):
    return f"https:{url}"
  if url.startswith("/"):
    return f"{BASE_URL}{url}"
  return url


def extract_dog(html: str, url: str) -> RawDogData:
  soup = BeautifulSoup(html, "html.parser")

  post = soup.select_one('#content_box [id^="post-"]') or soup.select_one('article[id^="post-"]')
  post_match = re.search(r"\bpost-(\d+)\b", post.get("id", "")) if post else None
  external_id = post_match.group(1) if post_match else [s for s in url.split("/") if s][-1]

  content = (
    soup.select_one('.thecontent[itemprop="articleBody"]')
    or soup.select_one(".thecontent")
    or soup.select_one(".entry-content")
  )

  paragraphs = []
  if content is not None:
    paragraphs = [p.get_text(strip=True) for p in content.select("p")]
  raw_description = "\n".join(p for p in paragraphs if p) or "No description"

  alt_names = []
  if content is not None:
    alt_names = [img.get("alt", "").strip() for img in content.select("img[alt]")]
    alt_names = [alt for alt in alt_names if looks_like_dog_name(alt)]

  title_el = soup.select_one("h1.entry-title") or soup.select_one("title")
  name_from_title = title_el.get_text(strip=True) if title_el else "Unknown"
  name_from_text = extract_name_from_text(raw_description)

  if alt_names:
    name = normalize_dog_name(alt_names[0])
  elif name_from_text:
    name = normalize_dog_name(name_from_text)
  else:
    name = name_from_title

  candidates = []
  if content is not None:
    for img in content.select("img"):
      src = (img.get("src") or "").strip()
      if src:
        candidates.append(src)
      srcset = (img.get("srcset") or "").strip()
      if srcset:
        candidates.extend(entry.strip().split()[0] for entry in srcset.split(",") if entry.strip())

  photos = unique([
    normalize_wp_image_url(u)
    for u in (_absolute(c) for c in candidates)
    if "/wp-content/uploads/" in u
  ])
  photos = [u for u in photos if is_photo_url(u) and "taralogo" not in u.lower()]

  og_image = soup.select_one('meta[property="og:image"]')
  og_url = (og_image.get("content") or "").strip() if og_image else ""
  if og_url and is_photo_url(og_url):
    og_url = normalize_wp_image_url(og_url)
    if og_url not in photos:
      photos.insert(0, og_url)

  return RawDogData(
    fingerprint=f"{SHELTER_ID}:{external_id}",
    external_id=external_id,
    name=name,
    raw_description=raw_description,
    photos=photos,
    source_url=url,
  )


class FundacjaTaraAdapter(ShelterAdapter):
  id = SHELTER_ID
  name = "Fundacja Tara - Schronisko dla Koni"
  url = BASE_URL
  source_url = SOURCE_URL
  city = "Piskorzyna"
  region = "Dolnośląskie"

  def fetch(self, config: ScraperConfig, http) -> str:
    first_page = self.fetch_page(SOURCE_URL, config, http)

    soup = BeautifulSoup(first_page, "html.parser")
    max_page = 1
    for a in soup.select('a[href*="/tag/dom-dla-psa/page/"]'):
      match = _PAGE_NUMBER.search(a.get("href", ""))
      if match:
        max_page = max(max_page, int(match.group(1)))

    pages = [first_page]
    for number in range(2, min(max_page, MAX_LISTING_PAGES) + 1):
      pages.append(self.fetch_page(f"{SOURCE_URL}page/{number}/", config, http))
    return "\n".join(pages)

  def parse(self, content: str, config: ScraperConfig, http) -> List[RawDogData]:
    try:
      urls = extract_dog_urls(content)
    except Exception as e:
      raise self.parse_error(config, e) from e

    dogs = self.fetch_details(urls, extract_dog, http)
    # Litter posts are not single dogs
    return [dog for dog in dogs if "szczeni" not in dog.name.lower()]
