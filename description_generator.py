"""
Bio generation

Writes the warm Polish adoption bio shown on a dog's page and appended to
its search document. Same call/strip/validate path as the extractors, but
failures are GenerationError.
"""
import json
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import prompts
from ai_extraction import call_structured
from config import AIConfig
from cost_tracker import ApiCostTracker
from errors import GenerationError
from llm_client import OpenRouterClient
from schema import DogBio


@dataclass
class DogData:
  """What the generator is allowed to know about a dog"""
  name: str
  sex: Optional[str] = None
  breed_estimates: List[Dict[str, Any]] = field(default_factory=list)
  age_months: Optional[float] = None
  size: Optional[str] = None
  personality_tags: List[str] = field(default_factory=list)
  good_with_kids: Optional[bool] = None
  good_with_dogs: Optional[bool] = None
  good_with_cats: Optional[bool] = None
  vaccinated: Optional[bool] = None
  sterilized: Optional[bool] = None
  urgent: bool = False

  @classmethod
  def from_dog(cls, dog) -> "DogData":
    """Build from a Dog or CreateDogInput"""
    sex = dog.sex.value if dog.sex is not None else None
    return cls(
      name=dog.name,
      sex=None if sex == "unknown" else sex,
      breed_estimates=[{"breed": b.breed, "confidence": b.confidence} for b in dog.breed_estimates],
      age_months=dog.age_estimate.months if dog.age_estimate else None,
      size=dog.size_estimate.value if dog.size_estimate else None,
      personality_tags=list(dog.personality_tags),
      good_with_kids=dog.good_with_kids,
      good_with_dogs=dog.good_with_dogs,
      good_with_cats=dog.good_with_cats,
      vaccinated=dog.vaccinated,
      sterilized=dog.sterilized,
      urgent=dog.urgent,
    )

  def to_prompt_json(self) -> str:
    return json.dumps(asdict(self), ensure_ascii=False, indent=2)


class DescriptionGenerator:

  def __init__(self, client: OpenRouterClient, config: AIConfig, cost_tracker: Optional[ApiCostTracker] = None):
    self.client = client
    self.model = config.description_gen_model
    self.cost_tracker = cost_tracker

  def generate(self, dog_data: DogData) -> DogBio:
    messages = [
      {"role": "system", "content": prompts.DESCRIPTION_SYSTEM},
      {"role": "user", "content": prompts.DESCRIPTION_GEN.replace("{{DOG_DATA}}", dog_data.to_prompt_json())},
    ]
    return call_structured(
      self.client, self.model, messages, "dog_bio", DogBio,
      lambda message, cause: GenerationError(message, cause),
      "description_generation", self.cost_tracker,
    )
