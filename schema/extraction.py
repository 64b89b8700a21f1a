"""
LLM response schemas

Each model doubles as the strict JSON schema sent in `response_format` and as
the validator for what comes back.
"""
from typing import Any, Dict, List, Literal, Optional

from .estimations import (
  EstimateModel,
  AgeCategory,
  AgeEstimate,
  BreedEstimate,
  ColorPattern,
  EarType,
  FurLength,
  FurType,
  SizeEstimate,
  TailType,
  WeightEstimate,
)


class LocationHints(EstimateModel):
  is_foster: Optional[bool]
  city_mention: Optional[str]


class TextExtraction(EstimateModel):
  """What the text extractor pulls out of a raw adoption listing"""
  name: Optional[str]
  sex: Optional[Literal["male", "female", "unknown"]]
  age_estimate: Optional[AgeEstimate]
  breed_estimates: List[BreedEstimate]
  size_estimate: Optional[SizeEstimate]
  weight_estimate: Optional[WeightEstimate]
  personality_tags: List[str]
  vaccinated: Optional[bool]
  sterilized: Optional[bool]
  chipped: Optional[bool]
  good_with_kids: Optional[bool]
  good_with_dogs: Optional[bool]
  good_with_cats: Optional[bool]
  location_hints: LocationHints
  urgent: bool


class PhotoExtraction(EstimateModel):
  """What the photo analyzer reads off one or more photos"""
  breed_estimates: List[BreedEstimate]
  size_estimate: Optional[SizeEstimate]
  age_category: Optional[AgeCategory]
  fur_length: Optional[FurLength]
  fur_type: Optional[FurType]
  color_primary: Optional[str]
  color_secondary: Optional[str]
  color_pattern: Optional[ColorPattern]
  ear_type: Optional[EarType]
  tail_type: Optional[TailType]


class DogBio(EstimateModel):
  bio: str
  tone: Literal["hopeful", "urgent", "gentle"]


def response_format(name: str, model: type) -> Dict[str, Any]:
  """Build a strict json_schema response_format for the given model"""
  return {
    "type": "json_schema",
    "json_schema": {
      "name": name,
      "strict": True,
      "schema": model.model_json_schema(by_alias=True),
    },
  }
