"""
AI extraction
v1.0.0

Turns a raw adoption listing (text) and its photos into validated structured
attributes. Both extractors follow the same steps:

  1. fill the prompt template (breed vocabulary, shelter name/city)
  2. call the LLM with a strict json_schema response_format
  3. strip markdown code fences, parse JSON, validate with pydantic

Empty responses, invalid JSON, schema violations and transport failures all
surface as ExtractionError(source="text"|"photo"). Nothing is retried here;
the SDK already retries rate limits and 5xx.
"""
import json
import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Type

from pydantic import BaseModel, ValidationError

import prompts
from config import AIConfig
from cost_tracker import ApiCostTracker, log_usage
from errors import ExtractionError, PipelineError
from llm_client import OpenRouterClient
from schema import BREEDS, PhotoExtraction, TextExtraction, response_format


MAX_PHOTOS_PER_CALL = 5

_FENCE_START = re.compile(r"^\s*```(?:json)?\s*\n?", re.IGNORECASE)
_FENCE_END = re.compile(r"\n?```\s*$", re.IGNORECASE)


def strip_markdown_fences(text: str) -> str:
  """Remove a ```json ... ``` wrapper some models put around JSON"""
  return _FENCE_END.sub("", _FENCE_START.sub("", text)).strip()


def call_structured(
  client: OpenRouterClient,
  model: str,
  messages: List[Dict[str, Any]],
  schema_name: str,
  result_type: Type[BaseModel],
  fail: Callable[[str, Optional[BaseException]], PipelineError],
  operation: str,
  cost_tracker: Optional[ApiCostTracker] = None,
):
  """Run one schema-constrained completion and return the validated model"""
  try:
    response = client.complete(model, messages, response_format=response_format(schema_name, result_type))
  except Exception as e:
    raise fail(f"{operation} request failed", e) from e

  log_usage(cost_tracker, operation, response.model, response.input_tokens, response.output_tokens)

  if not response.text or not response.text.strip():
    raise fail("No text in response", None)

  try:
    data = json.loads(strip_markdown_fences(response.text))
  except ValueError as e:
    raise fail("Failed to parse JSON response", e) from e

  try:
    return result_type.model_validate(data)
  except ValidationError as e:
    raise fail("Validation failed", e) from e


def _fill(template: str, **values: str) -> str:
  for key, value in values.items():
    template = template.replace("{{" + key + "}}", value)
  return template


class TextExtractor:
  """Structured facts from listing text"""

  def __init__(self, client: OpenRouterClient, config: AIConfig, cost_tracker: Optional[ApiCostTracker] = None):
    self.client = client
    self.model = config.text_extraction_model
    self.cost_tracker = cost_tracker

  def extract(self, raw_description: str, shelter_name: str = "", shelter_city: str = "") -> TextExtraction:
    prompt = _fill(
      prompts.TEXT_EXTRACTION,
      RAW_DESCRIPTION=raw_description,
      BREED_LIST=", ".join(BREEDS),
      SHELTER_NAME=shelter_name or "-",
      SHELTER_CITY=shelter_city or "-",
    )
    messages = [
      {"role": "system", "content": prompts.TEXT_EXTRACTION_INSTRUCTIONS},
      {"role": "user", "content": prompt},
    ]
    return call_structured(
      self.client, self.model, messages, "text_extraction", TextExtraction,
      lambda message, cause: ExtractionError("text", message, cause),
      "text_extraction", self.cost_tracker,
    )


class PhotoAnalyzer:
  """Visible attributes from up to MAX_PHOTOS_PER_CALL photos"""

  def __init__(self, client: OpenRouterClient, config: AIConfig, cost_tracker: Optional[ApiCostTracker] = None):
    self.client = client
    self.model = config.photo_analysis_model
    self.cost_tracker = cost_tracker

  def analyze(self, photo_url: str, shelter_name: str = "", shelter_city: str = "") -> PhotoExtraction:
    return self.analyze_multiple([photo_url], shelter_name, shelter_city)

  def analyze_multiple(self, photo_urls: Sequence[str], shelter_name: str = "", shelter_city: str = "") -> PhotoExtraction:
    urls = list(photo_urls)[:MAX_PHOTOS_PER_CALL]
    if not urls:
      raise ExtractionError("photo", "No photos to analyze")

    prompt = _fill(
      prompts.PHOTO_ANALYSIS,
      BREED_LIST=", ".join(BREEDS),
      SHELTER_NAME=shelter_name or "-",
      SHELTER_CITY=shelter_city or "-",
    )
    content: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]
    content.extend({"type": "image_url", "image_url": {"url": url}} for url in urls)

    return call_structured(
      self.client, self.model, [{"role": "user", "content": content}],
      "photo_extraction", PhotoExtraction,
      lambda message, cause: ExtractionError("photo", message, cause),
      "photo_analysis", self.cost_tracker,
    )


class AIExtractionService:
  """Single entry point the processor talks to"""

  def __init__(self, text_extractor: TextExtractor, photo_analyzer: PhotoAnalyzer):
    self.text_extractor = text_extractor
    self.photo_analyzer = photo_analyzer

  @classmethod
  def from_config(
    cls,
    config: AIConfig,
    client: Optional[OpenRouterClient] = None,
    cost_tracker: Optional[ApiCostTracker] = None,
  ) -> "AIExtractionService":
    client = client or OpenRouterClient(config)
    return cls(
      TextExtractor(client, config, cost_tracker),
      PhotoAnalyzer(client, config, cost_tracker),
    )

  def extract_from_text(self, text: str, shelter_name: str = "", shelter_city: str = "") -> TextExtraction:
    return self.text_extractor.extract(text, shelter_name, shelter_city)

  def extract_from_photo(self, photo_url: str, shelter_name: str = "", shelter_city: str = "") -> PhotoExtraction:
    return self.photo_analyzer.analyze(photo_url, shelter_name, shelter_city)

  def extract_from_photos(self, photo_urls: Sequence[str], shelter_name: str = "", shelter_city: str = "") -> PhotoExtraction:
    return self.photo_analyzer.analyze_multiple(photo_urls, shelter_name, shelter_city)
