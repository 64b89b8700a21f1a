import threading
import time

import pytest

from config import AIConfig, get_ai_concurrency, get_sync_interval_minutes
from workers import map_bounded


@pytest.mark.parametrize("raw, expected", [
  ("3", 3),
  ("0", 1),
  ("-4", 1),
  ("50", 10),
  ("lots", 5),
  ("", 5),
])
def test_ai_concurrency_is_clamped(raw, expected):
  assert get_ai_concurrency(raw) == expected


def test_ai_concurrency_from_env(monkeypatch):
  monkeypatch.setenv("SCRAPER_AI_CONCURRENCY", "7")
  assert get_ai_concurrency() == 7


def test_sync_interval(monkeypatch):
  monkeypatch.setenv("SYNC_INTERVAL_MINUTES", "15")
  assert get_sync_interval_minutes() == 15
  monkeypatch.setenv("SYNC_INTERVAL_MINUTES", "soon")
  assert get_sync_interval_minutes() == 60


def test_ai_config_never_shows_key(monkeypatch):
  monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or-secret")
  monkeypatch.setenv("MODEL_EMBEDDING", "custom/embedder")
  config = AIConfig.from_env()

  assert config.api_key == "sk-or-secret"
  assert config.embedding_model == "custom/embedder"
  assert "sk-or-secret" not in repr(config)


def test_map_bounded_keeps_order_and_limit():
  in_flight = [0]
  peak = [0]
  lock = threading.Lock()

  def work(n):
    with lock:
      in_flight[0] += 1
      peak[0] = max(peak[0], in_flight[0])
    time.sleep(0.01)
    with lock:
      in_flight[0] -= 1
    return n * 2

  assert map_bounded(work, list(range(12)), 3) == [n * 2 for n in range(12)]
  assert peak[0] <= 3


def test_map_bounded_empty():
  assert map_bounded(lambda n: n, [], 5) == []
