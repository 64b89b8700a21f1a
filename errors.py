"""
Pipeline error types

Every failure the pipeline raises on purpose is a PipelineError subclass
carrying a human readable message and the originating cause.
"""
from typing import Optional


class PipelineError(Exception):
  """Base class for all pipeline errors"""

  def __init__(self, message: str, cause: Optional[BaseException] = None):
    super().__init__(message)
    self.message = message
    self.cause = cause

  def __str__(self) -> str:
    if self.cause is not None:
      return f"{self.message}: {self.cause}"
    return self.message


class ScrapeError(PipelineError):
  """Network or fetch failure for a shelter source"""

  def __init__(self, shelter_id: str, message: str, cause: Optional[BaseException] = None):
    super().__init__(message, cause)
    self.shelter_id = shelter_id


class ParseError(PipelineError):
  """Source content did not have the expected structure"""

  def __init__(self, shelter_id: str, message: str, cause: Optional[BaseException] = None):
    super().__init__(message, cause)
    self.shelter_id = shelter_id


class ExtractionError(PipelineError):
  """LLM extraction call or response validation failed"""

  def __init__(self, source: str, message: str, cause: Optional[BaseException] = None):
    super().__init__(message, cause)
    self.source = source  # "text" or "photo"


class GenerationError(PipelineError):
  """Bio generation failed"""


class EmbeddingError(PipelineError):
  """Embedding call failed"""


class StorageError(PipelineError):
  """Relational store failure"""

  def __init__(self, operation: str, message: str, cause: Optional[BaseException] = None):
    super().__init__(message, cause)
    self.operation = operation  # "read", "write" or "delete"


class NotFoundError(PipelineError):
  """Entity lookup returned nothing"""

  def __init__(self, entity: str, id: str):
    super().__init__(f"{entity} not found: {id}")
    self.entity = entity
    self.id = id


class VectorizeError(PipelineError):
  """Vector index mutation failed"""

  def __init__(self, operation: str, message: str, cause: Optional[BaseException] = None):
    super().__init__(message, cause)
    self.operation = operation  # "upsert" or "delete"


class ApiCostInsertError(PipelineError):
  """Cost ledger write failed (never fatal)"""


class QueueError(PipelineError):
  """Job queue failure"""

  def __init__(self, operation: str, message: str, cause: Optional[BaseException] = None):
    super().__init__(message, cause)
    self.operation = operation


class CircuitBreakerError(PipelineError):
  """Scrape result looks truncated compared to what is stored"""

  def __init__(self, shelter_id: str, message: str):
    super().__init__(message)
    self.shelter_id = shelter_id
