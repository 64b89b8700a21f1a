import pytest

from dal import DAL
from errors import NotFoundError, StorageError
from schema import (
  AgeEstimate, BreedEstimate, CreateDogInput, Dog, DogSex, DogStatus, Shelter, ShelterStatus,
)


def _dog(external_id="e1", **changes):
  data = CreateDogInput(
    shelter_id="s1",
    external_id=external_id,
    name="Burek",
    sex=DogSex.MALE,
    breed_estimates=[BreedEstimate(breed="beagle", confidence=0.6)],
    age_estimate=AgeEstimate(months=18, confidence=0.7, range_min=12, range_max=24),
    personality_tags=["energiczny"],
    photos=["https://a/1.jpg"],
    good_with_cats=False,
  )
  return Dog.from_input("", data, **changes)


def test_dog_roundtrip(dal):
  dog = dal.insert_dog(_dog(generated_bio="Bio", photos_generated=["dogs/1/professional.webp"]))

  loaded = dal.get_dog(dog.id)

  assert loaded.id and loaded.id == dog.id
  assert loaded.sex == DogSex.MALE
  assert loaded.breed_estimates == [BreedEstimate(breed="beagle", confidence=0.6)]
  assert loaded.age_estimate.range_max == 24
  assert loaded.good_with_cats is False
  assert loaded.good_with_dogs is None
  assert loaded.photos_generated == ["dogs/1/professional.webp"]
  assert loaded.created_at and loaded.last_seen_at
  assert loaded.fingerprint == dog.fingerprint
  assert dal.get_fingerprints("s1") == {"e1": dog.fingerprint}


def test_external_id_is_unique_per_shelter(dal):
  dal.insert_dog(_dog())
  with pytest.raises(StorageError) as excinfo:
    dal.insert_dog(_dog())
  assert excinfo.value.operation == "write"


def test_update_missing_dog(dal):
  dog = _dog()
  dog.id = "missing"
  with pytest.raises(NotFoundError):
    dal.update_dog(dog)


def test_update_refreshes_fingerprint(dal):
  dog = dal.insert_dog(_dog())
  dog.name = "Reks"
  dal.update_dog(dog)
  assert dal.get_fingerprints("s1")["e1"] == dal.get_dog(dog.id).fingerprint
  assert dal.get_dog(dog.id).name == "Reks"


def test_mark_removed_is_idempotent(dal):
  first = dal.insert_dog(_dog("e1"))
  dal.insert_dog(_dog("e2"))

  removed = dal.mark_dogs_removed("s1", ["e1", "unknown"])
  assert [d.id for d in removed] == [first.id]
  assert dal.get_dog(first.id).status == DogStatus.REMOVED
  assert dal.mark_dogs_removed("s1", ["e1"]) == []
  assert len(dal.get_dogs_by_shelter("s1", DogStatus.AVAILABLE)) == 1


def test_touch_dogs(dal):
  dog = dal.insert_dog(_dog())
  dal.touch_dogs([dog.id], "2030-01-01T00:00:00+00:00")
  assert dal.get_dog(dog.id).last_seen_at == "2030-01-01T00:00:00+00:00"


def test_sync_log_is_written_once(dal):
  log = dal.create_sync_log("s1")
  log.dogs_added = 3
  log.errors = ["e9: timeout"]
  dal.finish_sync_log(log)

  log.dogs_added = 99
  dal.finish_sync_log(log)

  stored = dal.get_sync_logs("s1")[0]
  assert stored.dogs_added == 3
  assert stored.errors == ["e9: timeout"]
  assert stored.is_finished


def test_shelter_upsert_keeps_sync_state(dal):
  dal.upsert_shelter(Shelter(id="s1", slug="s1", name="Old", url="https://old"))
  dal.mark_shelter_synced("s1", "2026-01-01T00:00:00+00:00")
  dal.set_shelter_status("s1", ShelterStatus.ERROR)

  dal.upsert_shelter(Shelter(id="s1", slug="s1", name="New", url="https://new"))

  shelter = dal.require_shelter("s1")
  assert shelter.name == "New"
  assert shelter.last_sync == "2026-01-01T00:00:00+00:00"
  assert shelter.status == ShelterStatus.ERROR


def test_require_missing_shelter(dal):
  with pytest.raises(NotFoundError):
    dal.require_shelter("nope")


def test_unreachable_database(tmp_path):
  store = DAL(str(tmp_path / "missing-dir" / "dogs.db"))
  with pytest.raises(StorageError):
    store.init_database()
