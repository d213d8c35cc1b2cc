"""Tests for proximity suggestions and the symmetric lookup index."""

from loresuggest.config import ProximityConfig
from loresuggest.models import Confidence, EntityKind
from loresuggest.pipeline.detector import detect
from loresuggest.pipeline.proximity import (
    ProximityIndex,
    clip_excerpt,
    relationship_strength,
    suggest_proximity,
)


class TestSuggestProximity:
    def test_worked_example_pairs(self, example_text):
        """Three candidates in one sentence pair up at high confidence."""
        candidates = detect(example_text)
        suggestions = suggest_proximity(candidates, example_text)
        assert len(suggestions) == 3
        assert all(s.confidence is Confidence.HIGH for s in suggestions)

        by_key = {c.normalized_key: c.id for c in candidates}
        pair = {by_key["lord blackwood"], by_key["silverwood forest"]}
        match = next(s for s in suggestions if {s.anchor_entity_id, s.related_entity_id} == pair)
        assert match.distance == 13
        assert match.context_excerpt == "Lord Blackwood entered the Silverwood Forest"

    def test_one_record_per_pair_anchor_is_smaller_id(self, example_text):
        for s in suggest_proximity(detect(example_text), example_text):
            assert s.anchor_entity_id < s.related_entity_id

    def test_tiers_by_distance(self, make_candidate):
        text = "x" * 600
        a = make_candidate("Anna", spans=[(0, 4)])
        b = make_candidate("Boris", spans=[(150, 155)])
        c = make_candidate("Cato", spans=[(500, 504)])
        tiers = {
            frozenset((s.anchor_entity_id, s.related_entity_id)): s.confidence
            for s in suggest_proximity([a, b, c], text)
        }
        assert tiers[frozenset((a.id, b.id))] is Confidence.MEDIUM
        assert tiers[frozenset((b.id, c.id))] is Confidence.LOW
        assert tiers[frozenset((a.id, c.id))] is Confidence.LOW

    def test_max_distance_cutoff(self, make_candidate):
        text = "x" * 600
        a = make_candidate("Anna", spans=[(0, 4)])
        c = make_candidate("Cato", spans=[(500, 504)])
        config = ProximityConfig(max_distance=200)
        assert suggest_proximity([a, c], text, config) == []

    def test_closest_mention_pair_wins(self, make_candidate):
        text = "y" * 1000
        a = make_candidate("Anna", spans=[(0, 4), (800, 804)])
        b = make_candidate("Boris", spans=[(850, 855)])
        [suggestion] = suggest_proximity([a, b], text)
        assert suggestion.distance == 46
        assert suggestion.confidence is Confidence.HIGH

    def test_overlapping_mentions_distance_zero(self, make_candidate):
        text = "Captain Garner of the watch"
        a = make_candidate("Captain Garner", spans=[(0, 14)])
        b = make_candidate("Garner", spans=[(8, 14)])
        [suggestion] = suggest_proximity([a, b], text)
        assert suggestion.distance == 0

    def test_different_blocks_excluded(self, make_candidate):
        blocks = {"b1": "Anna waited.", "b2": "Boris left."}
        a = make_candidate("Anna", spans=[("b1", 0, 4)])
        b = make_candidate("Boris", spans=[("b2", 0, 5)])
        assert suggest_proximity([a, b], blocks) == []

    def test_same_block_in_block_map(self, make_candidate):
        blocks = {"b1": "Anna waited.", "b2": "Boris met Anna there."}
        a = make_candidate("Anna", spans=[("b1", 0, 4), ("b2", 10, 14)])
        b = make_candidate("Boris", spans=[("b2", 0, 5)])
        [suggestion] = suggest_proximity([a, b], blocks)
        assert suggestion.block_id == "b2"
        assert suggestion.context_excerpt == "Boris met Anna"

    def test_ai_only_candidates_skipped(self, make_candidate):
        text = "Anna and Boris"
        a = make_candidate("Anna", spans=[(0, 4)])
        b = make_candidate("Boris", spans=[(0, 5)], sources=("ai",))
        assert suggest_proximity([a, b], text) == []


class TestProximityIndex:
    def test_symmetric_lookup(self, example_text):
        """A pair reported from A is also found from B, same tier and excerpt."""
        candidates = detect(example_text)
        suggestions = suggest_proximity(candidates, example_text)
        index = ProximityIndex(suggestions)

        for s in suggestions:
            forward = [r for r in index.related(s.anchor_entity_id) if r.related_entity_id == s.related_entity_id]
            backward = [r for r in index.related(s.related_entity_id) if r.related_entity_id == s.anchor_entity_id]
            assert len(forward) == 1 and len(backward) == 1
            assert backward[0].anchor_entity_id == s.related_entity_id
            assert backward[0].confidence == forward[0].confidence
            assert backward[0].context_excerpt == forward[0].context_excerpt
        assert len(index) == 3

    def test_min_confidence_filter(self, make_candidate):
        text = "x" * 600
        a = make_candidate("Anna", spans=[(0, 4)])
        c = make_candidate("Cato", spans=[(500, 504)])
        index = ProximityIndex(suggest_proximity([a, c], text))
        assert index.related(a.id, Confidence.HIGH) == []
        assert len(index.related(a.id)) == 1
        assert c.id in index


class TestHelpers:
    def test_clip_excerpt_keeps_both_ends(self):
        text = "Lord Blackwood " + "and then " * 40 + "Silverwood Forest"
        clipped = clip_excerpt(text, 160)
        assert len(clipped) <= 160
        assert clipped.startswith("Lord Blackwood")
        assert clipped.endswith("Silverwood Forest")
        assert "…" in clipped

    def test_clip_excerpt_short_text_unchanged(self):
        assert clip_excerpt("Anna  met\nBoris", 160) == "Anna met Boris"

    def test_relationship_strength(self, make_candidate):
        a = make_candidate("Anna", spans=[(0, 4)])
        b = make_candidate("Boris", spans=[(17, 22)], kind=EntityKind.PERSON)
        # shared block 10 + close pair 5 + min frequency 1
        assert relationship_strength(a, b) == 16
