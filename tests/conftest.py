import json
from typing import Dict, List

import pytest
import requests

from dal import DAL
from job_queue import JobQueue
from llm_client import EmbeddingResponse, LLMResponse


class FakeHttp:
  """Serves canned pages by URL, 404 for anything else"""

  def __init__(self, pages: Dict[str, str] = None):
    self.pages = dict(pages or {})
    self.requested: List[str] = []

  def get_text(self, url: str) -> str:
    self.requested.append(url)
    if url not in self.pages:
      raise requests.HTTPError(f"404 Client Error: Not Found for url: {url}")
    return self.pages[url]


class FakeLLMClient:
  """Returns queued responses in order. An exception in the queue is raised"""

  def __init__(self, responses=None, vectors=None):
    self.responses = list(responses or [])
    self.vectors = vectors
    self.calls = []

  def complete(self, model, messages, response_format=None, temperature=0.2, max_tokens=2000):
    self.calls.append({"model": model, "messages": messages, "response_format": response_format})
    response = self.responses.pop(0)
    if isinstance(response, Exception):
      raise response
    if isinstance(response, LLMResponse):
      return response
    return LLMResponse(text=response, model=model, input_tokens=100, output_tokens=50)

  def embed(self, model, texts):
    self.calls.append({"model": model, "texts": texts})
    vectors = self.vectors if self.vectors is not None else [[float(len(t)), 1.0] for t in texts]
    return EmbeddingResponse(vectors=vectors, model=model, input_tokens=10 * len(texts))


class FakeMessage:
  """Queue message double that records how it was settled"""

  def __init__(self, body):
    self.body = body
    self.acked = False
    self.retried = False

  def ack(self):
    self.acked = True

  def retry(self, delay_seconds=0):
    self.retried = True


@pytest.fixture
def dal(tmp_path):
  store = DAL(str(tmp_path / "dogs.db"))
  store.init_database()
  return store


@pytest.fixture
def queue(tmp_path):
  return JobQueue(str(tmp_path / "queue.db"))


def text_extraction_json(**overrides) -> str:
  data = {
    "name": "Burek",
    "sex": "male",
    "ageEstimate": {"months": 36, "confidence": 0.8, "rangeMin": 24, "rangeMax": 48},
    "breedEstimates": [{"breed": "labrador", "confidence": 0.7}],
    "sizeEstimate": {"value": "large", "confidence": 0.9},
    "weightEstimate": None,
    "personalityTags": ["przyjazny", "spokojny"],
    "vaccinated": True,
    "sterilized": None,
    "chipped": True,
    "goodWithKids": True,
    "goodWithDogs": None,
    "goodWithCats": False,
    "locationHints": {"isFoster": False, "cityMention": None},
    "urgent": False,
  }
  data.update(overrides)
  return json.dumps(data)


def photo_extraction_json(**overrides) -> str:
  data = {
    "breedEstimates": [{"breed": "mieszaniec", "confidence": 0.6}],
    "sizeEstimate": {"value": "medium", "confidence": 0.5},
    "ageCategory": "adult",
    "furLength": "short",
    "furType": "smooth",
    "colorPrimary": "czarny",
    "colorSecondary": None,
    "colorPattern": "solid",
    "earType": "floppy",
    "tailType": "long",
  }
  data.update(overrides)
  return json.dumps(data)
