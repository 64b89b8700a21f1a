"""
Adapter registry: shelter slug -> adapter

Filled once when the scrapers package is imported.
"""
from typing import Dict, List, Optional

from scrapers.base_scraper import ShelterAdapter


_adapters: Dict[str, ShelterAdapter] = {}


def register_adapter(adapter: ShelterAdapter):
  _adapters[adapter.id] = adapter


def get_adapter(adapter_id: str) -> Optional[ShelterAdapter]:
  return _adapters.get(adapter_id)


def get_all_adapters() -> List[ShelterAdapter]:
  return list(_adapters.values())


def list_adapters() -> List[Dict[str, str]]:
  """id + name of every registered adapter"""
  return [{"id": adapter.id, "name": adapter.name} for adapter in _adapters.values()]
