"""Bounded context: Presets

Six quick-access slots. A slot holds at most one station and a station
holds at most one slot.
"""

import itertools
import random

import pytest


def _assert_slots_unique(library):
    held = [r.preset_slot for r in library.all() if r.preset_slot is not None]
    assert len(held) == len(set(held))


class TestUserAssignsPresets:

    def test_assign_slot(self, library, jazz):
        assert library.set_preset(jazz.id, 2) is True

        assert jazz.preset_slot == 2
        assert library.preset_at(2) is jazz

    def test_new_holder_displaces_old_one(self, library, jazz, rock):
        library.set_preset(jazz.id, 2)
        library.set_preset(rock.id, 2)

        assert jazz.preset_slot is None
        assert rock.preset_slot == 2

    def test_moving_station_releases_its_previous_slot(self, library, jazz):
        library.set_preset(jazz.id, 1)
        library.set_preset(jazz.id, 4)

        assert library.preset_at(1) is None
        assert library.preset_at(4) is jazz

    @pytest.mark.parametrize("slot", [0, 7, -1])
    def test_out_of_range_slot_is_refused(self, library, jazz, slot):
        assert library.set_preset(jazz.id, slot) is False
        assert jazz.preset_slot is None

    def test_unknown_station_is_refused(self, library):
        assert library.set_preset("station_missing", 1) is False

    def test_assignment_is_persisted_once(self, library, store, jazz, rock):
        library.set_preset(jazz.id, 3)
        writes_before = store.writes.count("stations")

        library.set_preset(rock.id, 3)

        assert store.writes.count("stations") == writes_before + 1
        slots = {item["id"]: item["presetSlot"] for item in store.data["stations"]}
        assert slots == {jazz.id: None, rock.id: 3}

    def test_change_event_names_displaced_station(self, library, jazz, rock):
        events = []
        library.events.on("preset_changed", lambda slot, record, displaced: events.append((slot, record, displaced)))
        library.set_preset(jazz.id, 5)
        library.set_preset(rock.id, 5)

        assert events[-1] == (5, rock, jazz)


class TestPresetHelpers:

    def test_add_to_presets_uses_first_free_slot(self, library, jazz, rock):
        library.set_preset(jazz.id, 1)

        assert library.add_to_presets(rock.id) == 2

    def test_add_to_presets_when_full_returns_none(self, library, make_candidate):
        stations = [library.add(make_candidate(f"S{i}")) for i in range(7)]
        for record in stations[:6]:
            assert library.add_to_presets(record.id) is not None

        assert library.add_to_presets(stations[6].id) is None
        assert library.available_preset_slots() == []

    def test_clear_preset(self, library, jazz):
        library.set_preset(jazz.id, 6)

        assert library.clear_preset(6) is True
        assert jazz.preset_slot is None
        assert library.clear_preset(6) is False

    def test_presets_are_ordered_by_slot(self, library, jazz, rock):
        library.set_preset(jazz.id, 5)
        library.set_preset(rock.id, 2)

        assert library.presets() == [rock, jazz]

    def test_removing_a_preset_station_frees_the_slot(self, library, jazz):
        library.set_preset(jazz.id, 1)
        library.remove(jazz.id)

        assert library.available_preset_slots() == [1, 2, 3, 4, 5, 6]


class TestPresetUniquenessProperty:

    def test_random_assignment_sequences_keep_slots_unique(self, library, make_candidate):
        stations = [library.add(make_candidate(f"S{i}")) for i in range(8)]
        rng = random.Random(1234)

        for _ in range(300):
            station = rng.choice(stations)
            slot = rng.randint(0, 7)
            library.set_preset(station.id, slot)
            _assert_slots_unique(library)

    def test_every_pairwise_overwrite_order(self, library, make_candidate):
        stations = [library.add(make_candidate(f"S{i}")) for i in range(3)]

        for first, second in itertools.permutations(stations, 2):
            library.set_preset(first.id, 1)
            library.set_preset(second.id, 1)
            assert library.preset_at(1) is second
            assert first.preset_slot is None
            _assert_slots_unique(library)
