"""
AI estimation types

Structured guesses (breed, size, age, weight, appearance) produced by the
text and photo extractors. Every estimate carries a confidence in [0, 1].
"""
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# Controlled breed vocabulary handed to the LLM
BREEDS = (
  # Owczarki
  "owczarek_niemiecki",
  "owczarek_belgijski",
  "owczarek_podhalanski",
  "owczarek_szetlandzki",

  # Popularne duze
  "labrador",
  "golden_retriever",
  "husky",
  "malamut",
  "bernardyn",
  "nowofundland",
  "dog_niemiecki",
  "rottweiler",
  "doberman",
  "bokser",
  "amstaf",
  "pitbull",
  "cane_corso",
  "akita",

  # Popularne srednie
  "border_collie",
  "beagle",
  "cocker_spaniel",
  "springer_spaniel",
  "seter",
  "pointer",
  "buldog",
  "basenji",
  "shiba",
  "chow_chow",
  "shar_pei",
  "dalmatynczyk",

  # Popularne male
  "jamnik",
  "jack_russell",
  "fox_terrier",
  "west_highland_terrier",
  "yorkshire_terrier",
  "maltanczyk",
  "shih_tzu",
  "pekinczyk",
  "mops",
  "buldog_francuski",
  "chihuahua",
  "pomeranian",
  "cavalier",
  "bichon",
  "pudel",
  "miniatura_schnauzer",

  # Polskie/lokalne
  "gonczy_polski",
  "ogar_polski",
  "chart_polski",

  # Catch-all
  "kundelek",
  "mieszaniec",
  "nieznana",
)

Breed = Literal[BREEDS]
SizeValue = Literal["small", "medium", "large"]
FurLength = Literal["short", "medium", "long"]
FurType = Literal["smooth", "wire", "curly", "double"]
ColorPattern = Literal["solid", "spotted", "brindle", "merle", "bicolor", "tricolor", "sable", "tuxedo"]
EarType = Literal["floppy", "erect", "semi"]
TailType = Literal["long", "short", "docked", "curled"]
AgeCategory = Literal["puppy", "young", "adult", "senior"]

Confidence = Annotated[float, Field(ge=0, le=1)]


class EstimateModel(BaseModel):
  """Shared config: camelCase on the wire, no unknown keys, immutable"""
  model_config = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    extra="forbid",
    frozen=True,
  )


class BreedEstimate(EstimateModel):
  breed: Breed
  confidence: Confidence


class SizeEstimate(EstimateModel):
  value: SizeValue
  confidence: Confidence


class AgeEstimate(EstimateModel):
  months: float
  confidence: Confidence
  range_min: float
  range_max: float


class WeightEstimate(EstimateModel):
  kg: float
  confidence: Confidence
  range_min: float
  range_max: float


def normalize_breed(value: str):
  """Map free text breed to the vocabulary, or None when it is not in it"""
  if not value:
    return None
  key = value.strip().lower().replace("-", "_").replace(" ", "_")
  return key if key in BREEDS else None
