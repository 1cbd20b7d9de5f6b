import json
from dataclasses import FrozenInstanceError

import pytest

from conftest import EventRecorder, make_clock
from domain.models import Candidate, HistoryEntry, InvalidCoordinates, StorageError
from repositories.history_store import HISTORY_KEY, InMemoryHistoryStore
from services.events import HISTORY_CHANGED, EventBus
from services.history import HistoryManager, serialize_history


def _place(i: int) -> Candidate:
    return Candidate.from_raw(
        {
            "display_name": f"Place {i}, Somewhere",
            "place_id": str(i),
            "lat": f"{10 + i}.5",
            "lon": f"{20 + i}.25",
            "type": "city",
        }
    )


class FailingStore(InMemoryHistoryStore):
    def set(self, key, blob):
        raise StorageError("disk full")

    def remove(self, key):
        raise StorageError("read-only")


def _manager(store=None, **kwargs):
    return HistoryManager(store or InMemoryHistoryStore(), clock=make_clock(), **kwargs)


def test_record_selection_prepends_and_persists(paris, london):
    store = InMemoryHistoryStore()
    manager = _manager(store)

    manager.record_selection(Candidate.from_raw(paris))
    manager.record_selection(Candidate.from_raw(london))

    assert [e.place_id for e in manager.entries] == ["2", "1"]
    persisted = json.loads(store.get(HISTORY_KEY))
    assert [item["placeId"] for item in persisted] == ["2", "1"]


def test_selecting_same_coordinates_twice_keeps_one_entry_with_new_timestamp(paris):
    manager = _manager()

    first = manager.record_selection(Candidate.from_raw(paris))
    second = manager.record_selection(Candidate.from_raw(paris))

    assert len(manager.entries) == 1
    assert manager.entries[0].timestamp == second.timestamp
    assert second.timestamp != first.timestamp


def test_reselecting_moves_entry_to_front(paris, london, tokyo):
    manager = _manager()
    for raw in (tokyo, london, paris):
        manager.record_selection(Candidate.from_raw(raw))
    before = manager.entries
    assert [e.short_name for e in before] == ["Paris", "London", "Tokyo"]

    manager.record_selection(Candidate.from_raw(london))

    after = manager.entries
    assert [e.short_name for e in after] == ["London", "Paris", "Tokyo"]
    assert after[0].timestamp > before[1].timestamp


def test_dedup_is_by_coordinates_not_id(paris):
    manager = _manager()
    manager.record_selection(Candidate.from_raw(paris))
    other_id = dict(paris, place_id="999", display_name="Paris (alt)")

    manager.record_selection(Candidate.from_raw(other_id))

    assert len(manager.entries) == 1
    assert manager.entries[0].place_id == "999"


def test_dedup_uses_exact_float_equality(paris):
    manager = _manager()
    manager.record_selection(Candidate.from_raw(paris))
    nearby = dict(paris, place_id="3", lat="48.85660001")

    manager.record_selection(Candidate.from_raw(nearby))

    assert len(manager.entries) == 2


def test_history_is_bounded_to_ten_most_recent():
    manager = _manager()
    for i in range(13):
        manager.record_selection(_place(i))

    entries = manager.entries
    assert len(entries) == 10
    assert [e.place_id for e in entries] == [str(i) for i in range(12, 2, -1)]
    timestamps = [e.timestamp for e in entries]
    assert timestamps == sorted(timestamps, reverse=True)


@pytest.mark.parametrize("count", [1, 4, 10])
def test_history_length_never_exceeds_selections(count):
    manager = _manager()
    for i in range(count):
        manager.record_selection(_place(i))
    assert len(manager.entries) == min(10, count)


def test_record_selection_rejects_invalid_coordinates(paris):
    store = InMemoryHistoryStore()
    manager = _manager(store)
    manager.record_selection(Candidate.from_raw(paris))
    blob_before = store.get(HISTORY_KEY)

    with pytest.raises(InvalidCoordinates):
        manager.record_selection(Candidate.from_raw(dict(paris, lat="abc")))

    assert len(manager.entries) == 1
    assert store.get(HISTORY_KEY) == blob_before


def test_record_selection_accepts_history_entry(paris, london):
    manager = _manager()
    manager.record_selection(Candidate.from_raw(paris))
    manager.record_selection(Candidate.from_raw(london))
    paris_entry = manager.entries[1]

    refreshed = manager.record_selection(paris_entry)

    assert [e.short_name for e in manager.entries] == ["Paris", "London"]
    assert refreshed.timestamp != paris_entry.timestamp


def test_load_round_trips_saved_list(paris, london, tokyo):
    store = InMemoryHistoryStore()
    manager = _manager(store)
    for raw in (paris, london, tokyo):
        manager.record_selection(Candidate.from_raw(raw))

    restarted = _manager(store)
    assert restarted.load() == manager.entries


def test_load_missing_yields_empty():
    assert _manager().load() == []


@pytest.mark.parametrize("blob", ["{not json", '{"a": 1}', "42"])
def test_load_corrupt_yields_empty(blob):
    store = InMemoryHistoryStore({HISTORY_KEY: blob})
    assert _manager(store).load() == []


def test_load_skips_entries_with_bad_coordinates(paris):
    good = HistoryEntry.from_candidate(Candidate.from_raw(paris), "2025-08-01T12:00:00.000Z")
    blob = json.dumps([{"name": "Broken", "latitude": "abc", "longitude": "1"}, good.to_dict(), "junk"])
    store = InMemoryHistoryStore({HISTORY_KEY: blob})

    assert _manager(store).load() == [good]


def test_load_truncates_oversized_blob():
    entries = [HistoryEntry.from_candidate(_place(i), f"2025-01-01T00:00:{i:02d}.000Z") for i in range(12)]
    store = InMemoryHistoryStore({HISTORY_KEY: serialize_history(entries)})

    assert len(_manager(store).load()) == 10


def test_load_survives_storage_error():
    class BrokenReads(InMemoryHistoryStore):
        def get(self, key):
            raise StorageError("locked")

    assert _manager(BrokenReads()).load() == []


def test_clear_empties_list_and_store(paris):
    store = InMemoryHistoryStore()
    manager = _manager(store)
    manager.record_selection(Candidate.from_raw(paris))

    manager.clear()

    assert manager.entries == []
    assert store.get(HISTORY_KEY) is None
    assert _manager(store).load() == []


def test_clear_without_record_does_not_fail():
    manager = _manager()
    manager.clear()
    assert manager.entries == []


def test_storage_failures_keep_memory_authoritative(paris):
    manager = _manager(FailingStore())

    entry = manager.record_selection(Candidate.from_raw(paris))
    assert manager.entries == [entry]

    manager.clear()
    assert manager.entries == []


def test_history_changed_events(paris):
    bus = EventBus()
    recorder = EventRecorder(bus, HISTORY_CHANGED)
    manager = _manager(events=bus)

    manager.load()
    manager.record_selection(Candidate.from_raw(paris))
    manager.clear()

    assert [len(value) for value in recorder[HISTORY_CHANGED]] == [0, 1, 0]


def test_entries_cannot_be_mutated_into_invalid_state(paris, london):
    store = InMemoryHistoryStore()
    manager = _manager(store)
    recorded = manager.record_selection(Candidate.from_raw(paris))

    with pytest.raises(FrozenInstanceError):
        manager.entries[0].latitude = float("nan")
    with pytest.raises(FrozenInstanceError):
        recorded.longitude = float("inf")

    manager.record_selection(Candidate.from_raw(london))
    blob = store.get(HISTORY_KEY)
    assert "NaN" not in blob
    assert "Infinity" not in blob
    assert [e.latitude for e in _manager(store).load()] == [51.5074, 48.8566]


@pytest.mark.parametrize(
    "field,value",
    [("name", 5), ("address", ["x"]), ("timestamp", 1722513600), ("type", {"a": 1}),
     ("importance", "high"), ("fullDetails", "raw")],
)
def test_load_skips_entries_with_mistyped_fields(paris, field, value):
    good = HistoryEntry.from_candidate(Candidate.from_raw(paris), "2025-08-01T12:00:00.000Z")
    bad = dict(good.to_dict(), **{field: value, "latitude": 1.0, "longitude": 2.0})
    store = InMemoryHistoryStore({HISTORY_KEY: json.dumps([bad, good.to_dict()])})

    assert _manager(store).load() == [good]


def test_load_round_trips_empty_address():
    entry = HistoryEntry(
        name="Unnamed pin",
        place_id=None,
        latitude=1.5,
        longitude=2.5,
        timestamp="2025-08-01T12:00:00.000Z",
        address="",
    )
    store = InMemoryHistoryStore({HISTORY_KEY: serialize_history([entry])})

    assert _manager(store).load() == [entry]
