"""
Schema Package
v2.0.0 - Shelter sync pipeline

Contains all data models and schemas for the shelter sync pipeline.

Modules:
- dog_schema: RawDogData, CreateDogInput and the canonical Dog
- shelter: Shelter and SyncLog
- estimations: AI estimate types and the breed vocabulary
- extraction: LLM response schemas
"""

from .dog_schema import (
  Dog,
  DogSex,
  DogSize,
  DogStatus,
  CreateDogInput,
  RawDogData,
  get_current_timestamp,
)

from .shelter import (
  Shelter,
  ShelterStatus,
  SyncLog,
)

from .estimations import (
  BREEDS,
  AgeEstimate,
  BreedEstimate,
  SizeEstimate,
  WeightEstimate,
  normalize_breed,
)

from .extraction import (
  DogBio,
  PhotoExtraction,
  TextExtraction,
  response_format,
)

__all__ = [
  # Dog schema
  'Dog',
  'DogSex',
  'DogSize',
  'DogStatus',
  'CreateDogInput',
  'RawDogData',
  'get_current_timestamp',

  # Shelter
  'Shelter',
  'ShelterStatus',
  'SyncLog',

  # Estimations
  'BREEDS',
  'AgeEstimate',
  'BreedEstimate',
  'SizeEstimate',
  'WeightEstimate',
  'normalize_breed',

  # LLM responses
  'DogBio',
  'PhotoExtraction',
  'TextExtraction',
  'response_format',
]
