"""
Shelter adapters package

Importing the package registers every adapter.
"""
from scrapers.base_scraper import ShelterAdapter, ScraperConfig
from scrapers.fundacja_tara import FundacjaTaraAdapter
from scrapers.generic_html import GenericHtmlAdapter
from scrapers.przytulisko_wolsztyn import PrzytuliskoWolsztynAdapter
from scrapers.registry import get_adapter, get_all_adapters, list_adapters, register_adapter
from scrapers.schronisko_gniezno import SchroniskoGnieznoAdapter
from scrapers.schronisko_konin import SchroniskoKoninAdapter
from scrapers.schronisko_ostrow import SchroniskoOstrowAdapter
from scrapers.tozjawor import TozJaworAdapter


for _adapter_cls in (
  SchroniskoKoninAdapter,
  SchroniskoGnieznoAdapter,
  FundacjaTaraAdapter,
  TozJaworAdapter,
  PrzytuliskoWolsztynAdapter,
  SchroniskoOstrowAdapter,
  GenericHtmlAdapter,
):
  register_adapter(_adapter_cls())

__all__ = [
  "ShelterAdapter",
  "ScraperConfig",
  "get_adapter",
  "get_all_adapters",
  "list_adapters",
  "register_adapter",
]
