import json

import pytest

import scraper
from conftest import FakeHttp
from dal import DAL
from scrapers import tozjawor


@pytest.fixture
def workspace(tmp_path, monkeypatch):
  monkeypatch.setattr(scraper, "DB_PATH", str(tmp_path / "dogs.db"))
  monkeypatch.setattr(scraper, "QUEUE_DB_PATH", str(tmp_path / "queue.db"))
  monkeypatch.setattr(scraper, "VECTOR_DB_PATH", str(tmp_path / "vectors.db"))
  monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
  return tmp_path


def _fake_http(monkeypatch):
  payload = {"dogs": [
    {"_id": "a1", "image": "/a1.jpg", "name": "Azor", "sex": "pies", "age": "2 lata", "description": "Spokojny.", "createdAt": "2024-01-01"},
  ]}
  monkeypatch.setattr(scraper, "HttpClient", lambda: FakeHttp({tozjawor.API_URL: json.dumps(payload)}))


def test_seed_and_list(workspace, capsys):
  assert scraper.main(["seed"]) == 0
  assert scraper.main(["list"]) == 0

  out = capsys.readouterr().out
  assert "tozjawor" in out
  assert "last sync: never" in out
  assert len(DAL(str(workspace / "dogs.db")).list_shelters()) == 7


def test_dry_run_prints_dogs(workspace, monkeypatch, capsys):
  _fake_http(monkeypatch)
  assert scraper.main(["run", "tozjawor"]) == 0
  assert "Azor [a1]" in capsys.readouterr().out


def test_process_and_schedule(workspace, monkeypatch, capsys):
  _fake_http(monkeypatch)

  assert scraper.main(["process", "tozjawor"]) == 0
  out = capsys.readouterr().out
  assert "AI enrichment disabled" in out
  assert "Added: 1" in out

  assert scraper.main(["schedule"]) == 0
  assert "Found 0 shelters due" in capsys.readouterr().out


def test_failures_exit_non_zero(workspace, capsys):
  # The fallback adapter has no URL, so the fetch fails
  assert scraper.main(["process", "generic-html"]) == 1
  assert "process failed" in capsys.readouterr().err


def test_costs_without_calls(workspace, capsys):
  assert scraper.main(["costs"]) == 0
  assert "No API calls recorded" in capsys.readouterr().out
