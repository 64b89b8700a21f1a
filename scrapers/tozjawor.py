"""
Adapter for TOZ Jawor
v1.0.0 - JSON API

The only source with a real API. The payload is validated with pydantic
before any dog is built from it.
"""
import json
import re
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError

from errors import ParseError
from schema import RawDogData
from scrapers.base_scraper import ShelterAdapter, ScraperConfig


SHELTER_ID = "tozjawor"
API_URL = "https://api.tozjawor.pl/api/dog"
IMAGE_BASE_URL = "https://api.tozjawor.pl"
PETS_URL = "https://tozjawor.pl/pets"

_AGE = re.compile(r"(\d+)\s*(lat|lata|rok|miesi)", re.IGNORECASE)


class TozDog(BaseModel):
  id: str = Field(alias="_id")
  image: str
  name: str
  sex: str
  age: str
  description: str
  created_at: str = Field(alias="createdAt")


class TozResponse(BaseModel):
  dogs: List[TozDog]


def parse_age(age: str) -> Optional[int]:
  """Age text to months: "3 lata" -> 36, "5 miesięcy" -> 5"""
  match = _AGE.search(age or "")
  if not match:
    return None
  number = int(match.group(1))
  if match.group(2).lower().startswith("miesi"):
    return number
  return number * 12


def parse_sex(sex: str) -> str:
  value = (sex or "").strip().lower()
  if value == "pies":
    return "male"
  if value == "suczka":
    return "female"
  return "unknown"


def parse_dogs(content: str, shelter_id: str = SHELTER_ID) -> List[RawDogData]:
  try:
    data = json.loads(content)
  except ValueError as e:
    raise ParseError(shelter_id, "Invalid JSON from TOZ Jawor", e) from e

  try:
    parsed = TozResponse.model_validate(data)
  except ValidationError as e:
    raise ParseError(shelter_id, "Schema validation failed", e) from e

  return [
    RawDogData(
      fingerprint=f"{SHELTER_ID}:{dog.id}",
      external_id=dog.id,
      name=dog.name,
      raw_description=dog.description,
      age_months=parse_age(dog.age),
      sex=parse_sex(dog.sex),
      photos=[f"{IMAGE_BASE_URL}/{dog.image.lstrip('/')}"],
      source_url=PETS_URL,
    )
    for dog in parsed.dogs
  ]


class TozJaworAdapter(ShelterAdapter):
  id = SHELTER_ID
  name = "TOZ Jawor"
  url = "https://tozjawor.pl"
  source_url = API_URL
  city = "Jawor"
  region = "Dolnośląskie"

  def parse(self, content: str, config: ScraperConfig, http) -> List[RawDogData]:
    return parse_dogs(content, config.shelter_id)
