"""
HTTP capability handed to adapters

Adapters never create their own network clients. They receive an HttpClient
so tests can pass a fake with the same get_text method.
"""
from typing import Optional

import requests

from config import HTTP_TIMEOUT, USER_AGENT


class HttpClient:
  """Thin wrapper over requests.Session with our User-Agent"""

  def __init__(self, session: Optional[requests.Session] = None, timeout: float = HTTP_TIMEOUT):
    self.session = session or requests.Session()
    self.session.headers.update({"User-Agent": USER_AGENT})
    self.timeout = timeout

  def get_text(self, url: str) -> str:
    """GET a page and return its body. Raises requests.HTTPError on non-2xx"""
    print(f"  🔍 Fetching: {url}")
    response = self.session.get(url, timeout=self.timeout)
    response.raise_for_status()
    if response.encoding is None or response.encoding.lower() == "iso-8859-1":
      response.encoding = response.apparent_encoding
    return response.text

  def close(self):
    self.session.close()
