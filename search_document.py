"""
Search documents

Builds the text + facet metadata that gets embedded into the vector index.
Pure: the same dog always yields the same document.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


SIZE_PHRASES = {
  "small": "mały pies",
  "medium": "średni pies",
  "large": "duży pies",
}


def polish_years(years: int) -> str:
  """Plural form of "rok" for a year count"""
  if years == 1:
    return "rok"
  last_digit = years % 10
  last_two_digits = years % 100
  if 12 <= last_two_digits <= 14:
    return "lat"
  if 2 <= last_digit <= 4:
    return "lata"
  return "lat"


def _number(value: float):
  # 6.0 -> 6, 6.5 stays
  return int(value) if float(value).is_integer() else value


def _plain(value: Any) -> Any:
  return value.value if isinstance(value, Enum) else value


@dataclass
class SearchDocument:
  id: str
  text: str
  metadata: Dict[str, Any] = field(default_factory=dict)


def build_search_document(dog) -> SearchDocument:
  """
  Text parts, in order: name, age, size, primary breed, city, sex noun,
  personality tags, generated bio. Joined with ". ".

  Metadata carries shelterId, plus city/size/ageMonths/sex only when known.
  """
  parts = [f"Pies {dog.name}"]

  age = dog.age_estimate
  if age is not None:
    if age.months < 12:
      parts.append(f"szczeniak {_number(age.months)} miesięcy")
    else:
      years = int(age.months // 12)
      parts.append(f"{years} {polish_years(years)}")

  size = dog.size_estimate.value if dog.size_estimate else None
  if size:
    parts.append(SIZE_PHRASES.get(size, size))

  if dog.breed_estimates:
    parts.append("rasa " + dog.breed_estimates[0].breed.replace("_", " "))

  city = getattr(dog, "location_city", None)
  if city:
    parts.append(f"z miasta {city}")

  sex = _plain(dog.sex)
  if sex == "male":
    parts.append("samiec")
  elif sex == "female":
    parts.append("samica")

  if dog.personality_tags:
    parts.append(", ".join(dog.personality_tags))

  bio = getattr(dog, "generated_bio", None)
  if bio:
    parts.append(bio)

  metadata: Dict[str, Any] = {"shelterId": dog.shelter_id}
  if city:
    metadata["city"] = city
  if size:
    metadata["size"] = size
  if age is not None:
    metadata["ageMonths"] = _number(age.months)
  if sex in ("male", "female"):
    metadata["sex"] = sex

  return SearchDocument(id=dog.id, text=". ".join(parts), metadata=metadata)
