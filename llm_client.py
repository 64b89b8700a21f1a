"""
OpenRouter client
v1.0.0

Chat completions (structured JSON output, vision input) and embeddings over
OpenRouter's OpenAI-compatible API. Rate limits and 5xx responses are retried
by the SDK itself; anything that still fails is raised to the caller.

Usage:
  client = OpenRouterClient(AIConfig.from_env())
  response = client.complete(model, messages, response_format=...)
  print(response.text, response.input_tokens, response.output_tokens)
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from openai import OpenAI

from config import AIConfig


@dataclass
class LLMResponse:
  text: str
  model: str
  input_tokens: int = 0
  output_tokens: int = 0


@dataclass
class EmbeddingResponse:
  vectors: List[List[float]] = field(default_factory=list)
  model: str = ""
  input_tokens: int = 0


class OpenRouterClient:
  """OpenAI SDK pointed at OpenRouter"""

  def __init__(self, config: AIConfig, timeout: float = 60.0, max_retries: int = 3, client: Optional[OpenAI] = None):
    self.config = config
    self.timeout = timeout
    self.max_retries = max_retries
    self._client = client

  @property
  def client(self) -> OpenAI:
    # Built on first use so commands that never call the API need no key
    if self._client is None:
      if not self.config.api_key:
        raise RuntimeError("Missing OPENROUTER_API_KEY")
      self._client = OpenAI(
        api_key=self.config.api_key,
        base_url=self.config.base_url,
        timeout=self.timeout,
        max_retries=self.max_retries,
      )
    return self._client

  def complete(
    self,
    model: str,
    messages: List[Dict[str, Any]],
    response_format: Optional[Dict[str, Any]] = None,
    temperature: float = 0.2,
    max_tokens: int = 2000,
  ) -> LLMResponse:
    """One chat completion. Returns the first choice's text and token usage"""
    payload: Dict[str, Any] = {
      "model": model,
      "messages": messages,
      "temperature": temperature,
      "max_tokens": max_tokens,
    }
    if response_format is not None:
      payload["response_format"] = response_format

    resp = self.client.chat.completions.create(**payload)
    text = (resp.choices[0].message.content or "") if resp.choices else ""
    usage = getattr(resp, "usage", None)
    return LLMResponse(
      text=text,
      model=getattr(resp, "model", None) or model,
      input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
      output_tokens=getattr(usage, "completion_tokens", 0) or 0,
    )

  def embed(self, model: str, texts: List[str]) -> EmbeddingResponse:
    """Embed all texts in one request, vectors in input order"""
    resp = self.client.embeddings.create(model=model, input=texts)
    data = sorted(resp.data, key=lambda item: item.index)
    usage = getattr(resp, "usage", None)
    return EmbeddingResponse(
      vectors=[list(item.embedding) for item in data],
      model=getattr(resp, "model", None) or model,
      input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
    )
