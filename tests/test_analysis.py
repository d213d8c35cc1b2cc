"""Tests for analyze_candidates, the one-call review pipeline."""

from loresuggest.models import ContentBlock, RecordSummary
from loresuggest.pipeline.analysis import analyze_candidates, block_content_map
from loresuggest.pipeline.detector import detect


class TestBlockContentMap:
    def test_plain_text(self):
        assert block_content_map("Kira drew her blade.") == {None: "Kira drew her blade."}

    def test_blocks(self):
        blocks = [ContentBlock(id="b1", content="one"), {"id": "b2", "content": "two"}]
        assert block_content_map(blocks) == {"b1": "one", "b2": "two"}


class TestAnalyzeCandidates:
    def test_without_ai(self, example_text):
        candidates = detect(example_text)
        lord = next(c for c in candidates if c.normalized_key == "lord blackwood")
        analysis = analyze_candidates(
            candidates, example_text, [RecordSummary(id="rec-1", title="Lord Blackwood", record_type="npc")]
        )
        assert analysis.candidates == tuple(candidates)
        assert analysis.matches == {lord.id: ["rec-1"]}
        assert analysis.relationships == ()
        assert any(lord.id in (p.anchor_entity_id, p.related_entity_id) for p in analysis.proximity)

    def test_with_ai(self, example_text, ai_result):
        candidates = detect(example_text)
        analysis = analyze_candidates(candidates, example_text, [], ai_result)
        keys = {c.normalized_key for c in analysis.candidates}
        assert {"lord blackwood", "silverwood forest", "silver crown"} <= keys
        assert analysis.matches == {}
        [relationship] = analysis.relationships
        assert relationship.relationship == "rules"

    def test_ai_only_candidates_have_no_proximity(self, example_text, ai_result):
        analysis = analyze_candidates([], example_text, [], ai_result)
        assert [c.normalized_key for c in analysis.candidates] == ["lord blackwood", "silver crown"]
        assert analysis.proximity == ()
