"""
Fallback adapter for shelters without a dedicated one yet

Fetches the configured base URL so connectivity gets checked, but has no
site knowledge and yields no dogs.
"""
from typing import List

from bs4 import BeautifulSoup

from schema import RawDogData
from scrapers.base_scraper import ShelterAdapter, ScraperConfig


class GenericHtmlAdapter(ShelterAdapter):
  id = "generic-html"
  name = "Generic HTML Scraper"

  def fetch(self, config: ScraperConfig, http) -> str:
    return self.fetch_page(config.base_url, config, http)

  def parse(self, content: str, config: ScraperConfig, http) -> List[RawDogData]:
    try:
      BeautifulSoup(content, "html.parser")
    except Exception as e:
      raise self.parse_error(config, e) from e
    return []
