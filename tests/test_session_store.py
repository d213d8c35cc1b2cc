"""Tests for SuggestionSessionStore persistence, isolation and expiry."""

import json
from datetime import date

from loresuggest.config import SessionConfig
from loresuggest.models import EntityKind
from loresuggest.session import SuggestionSessionStore, session_key
from loresuggest.storage.memory import InMemoryKeyValueStore

TODAY_KEY = "suggestions:team-1:2024-05-10"


class UnwritableKeyValueStore(InMemoryKeyValueStore):
    def set(self, key: str, value: bytes) -> None:
        raise OSError("disk full")


def _raw_state(**overrides) -> bytes:
    state = {"version": 1, "dismissed": [], "reclassified": [], "created": [], "timestamp": 0}
    state.update(overrides)
    return json.dumps(state).encode("utf-8")


class TestSessionKey:
    def test_format(self):
        assert session_key("team-1", date(2024, 5, 1)) == "suggestions:team-1:2024-05-01"

    def test_defaults_to_clock_date(self, kv_store, clock):
        store = SuggestionSessionStore(kv_store, "team-1", clock=clock)
        assert store.session_date == date(2024, 5, 10)
        assert store.key == TODAY_KEY


class TestDecisions:
    def test_dismiss_hides_candidate(self, kv_store, clock):
        store = SuggestionSessionStore(kv_store, "team-1", clock=clock)
        assert store.is_visible("ent-a")
        store.dismiss("ent-a")
        assert store.is_dismissed("ent-a")
        assert not store.is_visible("ent-a")

    def test_mark_created_removes_dismissal(self, kv_store, clock):
        store = SuggestionSessionStore(kv_store, "team-1", clock=clock)
        store.dismiss("ent-a")
        store.mark_created("ent-a")
        assert store.is_created("ent-a")
        assert not store.is_dismissed("ent-a")
        assert store.dismissed.isdisjoint(store.created)

    def test_dismiss_after_create_is_ignored(self, kv_store, clock):
        store = SuggestionSessionStore(kv_store, "team-1", clock=clock)
        store.mark_created("ent-a")
        store.dismiss("ent-a")
        assert store.is_created("ent-a")
        assert not store.is_dismissed("ent-a")

    def test_reclassify_last_write_wins(self, kv_store, clock):
        store = SuggestionSessionStore(kv_store, "team-1", clock=clock)
        assert store.get_reclassified_type("ent-a") is None
        store.reclassify("ent-a", "npc")
        store.reclassify("ent-a", EntityKind.PLACE)
        assert store.get_reclassified_type("ent-a") == "place"
        assert store.reclassified == {"ent-a": "place"}

    def test_reclassified_candidate_stays_visible(self, kv_store, clock):
        store = SuggestionSessionStore(kv_store, "team-1", clock=clock)
        store.reclassify("ent-a", "faction")
        assert store.is_visible("ent-a")

    def test_visible_filters_candidates(self, kv_store, clock, make_candidate):
        store = SuggestionSessionStore(kv_store, "team-1", clock=clock)
        garner = make_candidate("Garner")
        kira = make_candidate("Kira")
        store.dismiss(garner.id)
        assert store.visible([garner, kira]) == [kira]


class TestPersistence:
    def test_reload_sees_decisions(self, kv_store, clock):
        store = SuggestionSessionStore(kv_store, "team-1", clock=clock)
        store.dismiss("ent-a")
        store.reclassify("ent-b", "npc")
        store.mark_created("ent-c")

        reloaded = SuggestionSessionStore(kv_store, "team-1", clock=clock)
        assert reloaded.dismissed == {"ent-a"}
        assert reloaded.reclassified == {"ent-b": "npc"}
        assert reloaded.created == {"ent-c"}

    def test_stored_shape(self, kv_store, clock):
        store = SuggestionSessionStore(kv_store, "team-1", clock=clock)
        store.dismiss("ent-b")
        store.dismiss("ent-a")
        store.reclassify("ent-c", "npc")
        stored = json.loads(kv_store.get(TODAY_KEY))
        assert stored == {
            "version": 1,
            "dismissed": ["ent-a", "ent-b"],
            "reclassified": [["ent-c", "npc"]],
            "created": [],
            "timestamp": 1715342400000,
        }

    def test_teams_are_isolated(self, kv_store, clock):
        SuggestionSessionStore(kv_store, "team-1", clock=clock).dismiss("ent-a")
        other = SuggestionSessionStore(kv_store, "team-2", clock=clock)
        assert other.is_visible("ent-a")

    def test_days_are_isolated(self, kv_store, clock):
        SuggestionSessionStore(kv_store, "team-1", session_date=date(2024, 5, 9), clock=clock).dismiss("ent-a")
        today = SuggestionSessionStore(kv_store, "team-1", clock=clock)
        assert today.is_visible("ent-a")

    def test_clear_deletes_record(self, kv_store, clock):
        store = SuggestionSessionStore(kv_store, "team-1", clock=clock)
        store.dismiss("ent-a")
        store.clear()
        assert TODAY_KEY not in kv_store
        assert store.is_visible("ent-a")
        assert SuggestionSessionStore(kv_store, "team-1", clock=clock).is_visible("ent-a")

    def test_write_failure_keeps_memory_state(self, clock):
        store = SuggestionSessionStore(UnwritableKeyValueStore(), "team-1", clock=clock)
        store.dismiss("ent-a")
        assert store.is_dismissed("ent-a")


class TestCorruptState:
    """Anything unreadable resets the session to empty."""

    def _load(self, raw: bytes, clock) -> SuggestionSessionStore:
        kv = InMemoryKeyValueStore({TODAY_KEY: raw})
        return SuggestionSessionStore(kv, "team-1", clock=clock)

    def test_version_mismatch(self, clock):
        store = self._load(_raw_state(version=2, dismissed=["ent-a"]), clock)
        assert store.dismissed == frozenset()

    def test_invalid_json(self, clock):
        store = self._load(b"{not json", clock)
        assert store.dismissed == frozenset()
        assert store.created == frozenset()

    def test_wrong_types(self, clock):
        store = self._load(_raw_state(dismissed="ent-a"), clock)
        assert store.dismissed == frozenset()

    def test_dismissed_and_created_overlap(self, clock):
        store = self._load(_raw_state(dismissed=["ent-a", "ent-b"], created=["ent-a"]), clock)
        assert store.dismissed == frozenset()
        assert store.created == frozenset()

    def test_valid_state_loads(self, clock):
        store = self._load(_raw_state(dismissed=["ent-a"], reclassified=[["ent-b", "npc"]]), clock)
        assert store.dismissed == {"ent-a"}
        assert store.get_reclassified_type("ent-b") == "npc"

    def test_next_write_replaces_corrupt_record(self, clock):
        kv = InMemoryKeyValueStore({TODAY_KEY: b"garbage"})
        store = SuggestionSessionStore(kv, "team-1", clock=clock)
        store.dismiss("ent-a")
        assert json.loads(kv.get(TODAY_KEY))["dismissed"] == ["ent-a"]


class TestExpirySweep:
    def test_sweep_on_construction(self, clock):
        kv = InMemoryKeyValueStore(
            {
                "suggestions:team-1:2024-04-01": _raw_state(),
                "suggestions:team-1:not-a-date": _raw_state(),
                "suggestions:team-1:2024-05-03": _raw_state(),
                "suggestions:team-1:2024-05-05": _raw_state(),
                "suggestions:team-2:2024-01-01": _raw_state(),
                "suggestions:team-1:x:2024-01-01": _raw_state(),
                "other:team-1:2024-01-01": b"x",
            }
        )
        SuggestionSessionStore(kv, "team-1", clock=clock)
        assert set(kv.keys()) == {
            "suggestions:team-1:2024-05-03",
            "suggestions:team-1:2024-05-05",
            "suggestions:team-2:2024-01-01",
            "suggestions:team-1:x:2024-01-01",
            "other:team-1:2024-01-01",
        }

    def test_returns_removed_keys(self, kv_store, clock):
        store = SuggestionSessionStore(kv_store, "team-1", clock=clock)
        kv_store.set("suggestions:team-1:2024-04-30", _raw_state())
        kv_store.set("suggestions:team-1:2024-05-02", _raw_state())
        assert store.sweep_expired() == ["suggestions:team-1:2024-04-30", "suggestions:team-1:2024-05-02"]
        assert store.sweep_expired() == []

    def test_custom_retention(self, clock):
        kv = InMemoryKeyValueStore({"suggestions:team-1:2024-05-08": _raw_state()})
        SuggestionSessionStore(kv, "team-1", config=SessionConfig(retention_days=1), clock=clock)
        assert len(kv) == 0

    def test_current_session_kept(self, clock):
        kv = InMemoryKeyValueStore({"suggestions:team-1:2024-04-01": _raw_state(dismissed=["ent-a"])})
        store = SuggestionSessionStore(kv, "team-1", session_date=date(2024, 4, 1), clock=clock)
        assert store.is_dismissed("ent-a")
