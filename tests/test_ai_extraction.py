import pytest

from ai_extraction import AIExtractionService, MAX_PHOTOS_PER_CALL, strip_markdown_fences
from config import AIConfig
from conftest import FakeLLMClient, photo_extraction_json, text_extraction_json
from cost_tracker import MemoryCostTracker
from description_generator import DescriptionGenerator, DogData
from errors import ExtractionError, GenerationError
from llm_client import LLMResponse
from schema import CreateDogInput, DogSex


def _service(responses, tracker=None):
  client = FakeLLMClient(responses)
  return AIExtractionService.from_config(AIConfig(), client, tracker), client


def test_strip_markdown_fences():
  assert strip_markdown_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
  assert strip_markdown_fences('```\n{"a": 1}```') == '{"a": 1}'
  assert strip_markdown_fences('{"a": 1}') == '{"a": 1}'


def test_text_extraction_parses_and_logs_cost():
  tracker = MemoryCostTracker()
  service, client = _service(["```json\n" + text_extraction_json() + "\n```"], tracker)

  result = service.extract_from_text("Burek to wesoły piesek", "TOZ Jawor", "Jawor")

  assert result.sex == "male"
  assert result.age_estimate.months == 36
  assert result.breed_estimates[0].breed == "labrador"
  assert result.good_with_cats is False
  assert result.sterilized is None

  call = client.calls[0]
  assert call["model"] == "x-ai/grok-4.1-fast"
  assert call["response_format"]["type"] == "json_schema"
  assert call["response_format"]["json_schema"]["strict"] is True
  prompt = call["messages"][1]["content"]
  assert "Burek to wesoły piesek" in prompt
  assert "TOZ Jawor (Jawor)" in prompt
  assert "owczarek_niemiecki" in prompt

  assert [e.operation for e in tracker.entries] == ["text_extraction"]
  assert tracker.entries[0].input_tokens == 100


def test_empty_response_is_an_error():
  service, _ = _service(["   "])
  with pytest.raises(ExtractionError) as excinfo:
    service.extract_from_text("opis")
  assert excinfo.value.source == "text"
  assert "No text in response" in str(excinfo.value)


def test_invalid_json_is_an_error():
  service, _ = _service(["{not json"])
  with pytest.raises(ExtractionError, match="Failed to parse JSON"):
    service.extract_from_text("opis")


def test_schema_violation_is_an_error():
  service, _ = _service([text_extraction_json(breedEstimates=[{"breed": "wolf", "confidence": 0.9}])])
  with pytest.raises(ExtractionError, match="Validation failed"):
    service.extract_from_text("opis")


def test_confidence_out_of_range_is_rejected():
  service, _ = _service([text_extraction_json(sizeEstimate={"value": "small", "confidence": 1.5})])
  with pytest.raises(ExtractionError):
    service.extract_from_text("opis")


def test_transport_failure_is_an_error():
  service, _ = _service([ConnectionError("reset by peer")])
  with pytest.raises(ExtractionError) as excinfo:
    service.extract_from_text("opis")
  assert isinstance(excinfo.value.cause, ConnectionError)


def test_usage_is_logged_even_when_validation_fails():
  tracker = MemoryCostTracker()
  service, _ = _service(["{}"], tracker)
  with pytest.raises(ExtractionError):
    service.extract_from_text("opis")
  assert len(tracker.entries) == 1


def test_photo_analysis_sends_capped_image_parts():
  tracker = MemoryCostTracker()
  service, client = _service([photo_extraction_json()], tracker)
  urls = [f"https://a/{n}.jpg" for n in range(8)]

  result = service.extract_from_photos(urls)

  assert result.fur_length == "short"
  content = client.calls[0]["messages"][0]["content"]
  images = [part for part in content if part["type"] == "image_url"]
  assert [part["image_url"]["url"] for part in images] == urls[:MAX_PHOTOS_PER_CALL]
  assert client.calls[0]["model"] == "google/gemini-3-flash-preview"
  assert tracker.entries[0].operation == "photo_analysis"


def test_photo_analysis_needs_photos():
  service, client = _service([])
  with pytest.raises(ExtractionError) as excinfo:
    service.extract_from_photos([])
  assert excinfo.value.source == "photo"
  assert client.calls == []


def test_single_photo():
  service, client = _service([photo_extraction_json(earType="erect")])
  assert service.extract_from_photo("https://a/1.jpg").ear_type == "erect"
  assert len(client.calls) == 1


def _dog_input(**changes):
  return CreateDogInput(shelter_id="s1", external_id="e1", name="Luna", **changes)


def test_dog_data_hides_unknown_sex():
  assert DogData.from_dog(_dog_input()).sex is None
  assert DogData.from_dog(_dog_input(sex=DogSex.FEMALE)).sex == "female"


def test_bio_generation():
  tracker = MemoryCostTracker()
  client = FakeLLMClient([LLMResponse(text='{"bio": "Luna czeka na dom.", "tone": "hopeful"}', model="google/gemini-3-flash-preview", input_tokens=300, output_tokens=80)])
  generator = DescriptionGenerator(client, AIConfig(), tracker)

  bio = generator.generate(DogData.from_dog(_dog_input(urgent=True)))

  assert bio.bio == "Luna czeka na dom."
  assert bio.tone == "hopeful"
  assert '"urgent": true' in client.calls[0]["messages"][1]["content"]
  assert tracker.entries[0].operation == "description_generation"
  assert tracker.entries[0].cost_usd > 0


def test_bio_generation_rejects_unknown_tone():
  generator = DescriptionGenerator(FakeLLMClient(['{"bio": "x", "tone": "sarcastic"}']), AIConfig())
  with pytest.raises(GenerationError):
    generator.generate(DogData(name="Luna"))
