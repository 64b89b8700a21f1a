from types import SimpleNamespace

import pytest

from config import AIConfig
from llm_client import OpenRouterClient
from vector_store import SqliteVectorIndex, VectorRecord


class FakeOpenAI:
  """Just enough of the OpenAI SDK surface"""

  def __init__(self, content='{"ok": true}'):
    self.requests = []
    self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._chat))
    self.embeddings = SimpleNamespace(create=self._embed)
    self.content = content

  def _chat(self, **kwargs):
    self.requests.append(kwargs)
    return SimpleNamespace(
      choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))],
      usage=SimpleNamespace(prompt_tokens=120, completion_tokens=30),
      model="x-ai/grok-4.1-fast",
    )

  def _embed(self, model, input):
    self.requests.append({"model": model, "input": input})
    return SimpleNamespace(
      data=[SimpleNamespace(index=1, embedding=[0.0, 1.0]), SimpleNamespace(index=0, embedding=[1.0, 0.0])],
      usage=SimpleNamespace(prompt_tokens=8),
      model=model,
    )


def test_complete_returns_text_and_usage():
  sdk = FakeOpenAI()
  client = OpenRouterClient(AIConfig(), client=sdk)

  response = client.complete("x-ai/grok-4.1-fast", [{"role": "user", "content": "hi"}], response_format={"type": "json_schema"})

  assert response.text == '{"ok": true}'
  assert (response.input_tokens, response.output_tokens) == (120, 30)
  assert sdk.requests[0]["response_format"] == {"type": "json_schema"}
  assert sdk.requests[0]["temperature"] == 0.2


def test_complete_without_content():
  client = OpenRouterClient(AIConfig(), client=FakeOpenAI(content=None))
  assert client.complete("m", []).text == ""


def test_embed_restores_input_order():
  client = OpenRouterClient(AIConfig(), client=FakeOpenAI())
  response = client.embed("google/gemini-embedding-001", ["a", "b"])
  assert response.vectors == [[1.0, 0.0], [0.0, 1.0]]
  assert response.input_tokens == 8


def test_missing_key_fails_on_first_use():
  client = OpenRouterClient(AIConfig(api_key=""))
  with pytest.raises(RuntimeError, match="OPENROUTER_API_KEY"):
    client.complete("m", [])


def test_vector_index_upsert_query_delete(tmp_path):
  index = SqliteVectorIndex(str(tmp_path / "vectors.db"))
  index.upsert([
    VectorRecord(id="d1", values=[1.0, 0.0], metadata={"city": "Konin"}),
    VectorRecord(id="d2", values=[0.0, 1.0]),
  ])
  index.upsert([VectorRecord(id="d2", values=[0.6, 0.8])])

  matches = index.query([1.0, 0.0], top_k=2)
  assert [m.id for m in matches] == ["d1", "d2"]
  assert matches[0].metadata == {"city": "Konin"}
  assert matches[1].score == pytest.approx(0.6)

  index.delete_by_ids(["d1", "never-indexed"])
  index.delete_by_ids(["d1"])
  assert index.count() == 1
