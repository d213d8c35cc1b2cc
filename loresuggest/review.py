"""Headless review workflow for entity suggestions.

SuggestionReviewer ties the pieces together for one team's session log:
it merges in AI results when available, matches candidates to existing
records, computes proximity hints, hides candidates the session store says
were already handled, and carries out the reviewer's actions against the
record store.

AI problems never reach the heuristic path. A failed extraction keeps the
previous AI result (or none) and comes back as an AiNotice for the UI.
"""

from typing import Any, Literal, Mapping, Sequence

from pydantic import BaseModel, Field

from loresuggest.ai import AiExtractorInterface
from loresuggest.config import LoreSuggestConfig
from loresuggest.errors import AiExtractionError, AiUnavailableError
from loresuggest.logging import setup_logging
from loresuggest.models import (
    AiExtractionResult,
    Backlink,
    CandidateEntity,
    Confidence,
    ContentBlock,
    EntityKind,
    InferredRelationship,
    NewRecord,
    ProximitySuggestion,
    RecordSummary,
)
from loresuggest.pipeline.analysis import CandidateAnalysis, analyze_candidates
from loresuggest.pipeline.proximity import ProximityIndex
from loresuggest.session import SuggestionSessionStore
from loresuggest.storage.interfaces import RecordStoreInterface
from loresuggest.worker import DetectionWorker

ContentInput = str | Sequence[ContentBlock | Mapping[str, Any]]


class AiNotice(BaseModel):
    """Dismissible notice about the AI path; heuristics keep working."""

    model_config = {"frozen": True}

    kind: Literal["subscription_required", "failed"]
    message: str


class ReviewSnapshot(BaseModel):
    """Everything the review panel renders for one detection pass."""

    model_config = {"frozen": True}

    candidates: tuple[CandidateEntity, ...] = ()
    new: tuple[CandidateEntity, ...] = Field((), description="Visible candidates with no record match.")
    existing: tuple[CandidateEntity, ...] = Field((), description="Visible candidates with record matches.")
    matches: dict[str, list[str]] = Field(default_factory=dict)
    proximity: tuple[ProximitySuggestion, ...] = ()
    relationships: tuple[InferredRelationship, ...] = ()

    def candidate(self, candidate_id: str) -> CandidateEntity:
        for candidate in self.candidates:
            if candidate.id == candidate_id:
                return candidate
        raise KeyError(candidate_id)

    @property
    def high_confidence_new(self) -> list[CandidateEntity]:
        """Bulk-accept set: new-lane candidates at high confidence."""
        return [c for c in self.new if c.confidence is Confidence.HIGH]

    def proximity_index(self) -> ProximityIndex:
        return ProximityIndex(self.proximity)


class BulkAcceptResult(BaseModel):
    model_config = {"frozen": True}

    created: int = 0
    linked: int = Field(0, description="Links to existing records added across all created records.")
    failed: int = 0
    record_ids: tuple[str, ...] = ()


def _plain_text(content: ContentInput) -> str:
    if isinstance(content, str):
        return content
    blocks = [b if isinstance(b, ContentBlock) else ContentBlock.model_validate(b) for b in content]
    return "\n\n".join(block.content for block in blocks)


class SuggestionReviewer:
    """Review actions for one team's session.

    Example:
        ```python
        reviewer = SuggestionReviewer("team-1", session_store, record_store)
        snapshot = await reviewer.refresh(candidates, text)
        for candidate in snapshot.high_confidence_new:
            ...
        ```
    """

    def __init__(
        self,
        team_id: str,
        session_store: SuggestionSessionStore,
        record_store: RecordStoreInterface,
        ai_extractor: AiExtractorInterface | None = None,
        config: LoreSuggestConfig | None = None,
    ):
        self.team_id = team_id
        self.session = session_store
        self.records = record_store
        self.ai_extractor = ai_extractor
        self.config = config or LoreSuggestConfig()
        self.ai_result: AiExtractionResult | None = None
        self.logger = setup_logging()

    # ------------------------------------------------------------------
    # Building the view
    # ------------------------------------------------------------------
    async def run_ai_extraction(self, content: ContentInput) -> AiNotice | None:
        """Ask the AI collaborator for entities; failures become a notice."""
        if self.ai_extractor is None:
            return AiNotice(kind="failed", message="No AI extraction service is configured.")
        records = await self.records.list_records(self.team_id)
        try:
            self.ai_result = await self.ai_extractor.extract(self.team_id, _plain_text(content), records)
        except AiUnavailableError as e:
            self.logger.info({"message": "AI extraction unavailable", "team_id": self.team_id, "error": str(e)})
            return AiNotice(
                kind="subscription_required",
                message="AI features require a subscription. Enable them in team settings.",
            )
        except AiExtractionError as e:
            self.logger.warning({"message": "AI extraction failed", "team_id": self.team_id, "error": str(e)})
            return AiNotice(kind="failed", message=str(e) or "Failed to extract entities with AI.")
        self.logger.info(
            {
                "message": "AI extraction complete",
                "entities": len(self.ai_result.entities),
                "relationships": len(self.ai_result.relationships),
            }
        )
        return None

    async def refresh(
        self,
        candidates: Sequence[CandidateEntity],
        content: ContentInput,
        worker: DetectionWorker | None = None,
    ) -> ReviewSnapshot:
        """Build a snapshot from fresh heuristic candidates.

        With a worker, the analysis runs in its background context.
        """
        records = list(await self.records.list_records(self.team_id))
        args = (list(candidates), content, records, self.ai_result, self.config)
        if worker is not None:
            analysis: CandidateAnalysis = await worker.offload(analyze_candidates, *args)
        else:
            analysis = analyze_candidates(*args)

        visible = self.session.visible(analysis.candidates)
        return ReviewSnapshot(
            candidates=analysis.candidates,
            new=tuple(c for c in visible if c.id not in analysis.matches),
            existing=tuple(c for c in visible if c.id in analysis.matches),
            matches=analysis.matches,
            proximity=analysis.proximity,
            relationships=analysis.relationships,
        )

    def default_links(self, snapshot: ReviewSnapshot, candidate_id: str) -> list[str]:
        """First matched record of every high-confidence proximity neighbour."""
        links: list[str] = []
        for suggestion in snapshot.proximity_index().related(candidate_id, Confidence.HIGH):
            matched = snapshot.matches.get(suggestion.related_entity_id)
            if matched and matched[0] not in links:
                links.append(matched[0])
        return links

    def record_type_for(self, candidate: CandidateEntity) -> str:
        """Reclassification wins; otherwise the kind's default record type."""
        override = self.session.get_reclassified_type(candidate.id)
        if override is None:
            return self.config.review.record_types[candidate.kind]
        try:
            return self.config.review.record_types[EntityKind(override)]
        except ValueError:
            return override

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    async def accept(
        self,
        snapshot: ReviewSnapshot,
        candidate_id: str,
        record_type: str | None = None,
        linked_record_ids: Sequence[str] | None = None,
        session_record_id: str | None = None,
    ) -> RecordSummary:
        """Create a record for a candidate and mark it created.

        Record store errors propagate; the candidate stays visible.
        """
        candidate = snapshot.candidate(candidate_id)
        if linked_record_ids is None:
            linked_record_ids = self.default_links(snapshot, candidate_id)
        record = await self.records.create_record(
            self.team_id,
            NewRecord(
                title=candidate.display_text,
                record_type=record_type or self.record_type_for(candidate),
                linked_record_ids=tuple(linked_record_ids),
            ),
        )
        if session_record_id is not None:
            await self.records.create_backlink(
                self.team_id,
                Backlink(source_id=session_record_id, target_id=record.id, excerpt=self._excerpt(candidate)),
            )
        self.session.mark_created(candidate.id)
        self.logger.info({"message": "Created record from suggestion", "candidate": candidate.id, "record": record.id})
        return record

    async def link_to_existing(
        self,
        snapshot: ReviewSnapshot,
        candidate_id: str,
        record_id: str,
        session_record_id: str,
    ) -> None:
        """Backlink the session record to an existing record instead of creating one."""
        candidate = snapshot.candidate(candidate_id)
        await self.records.create_backlink(
            self.team_id,
            Backlink(source_id=session_record_id, target_id=record_id, excerpt=self._excerpt(candidate)),
        )
        self.session.mark_created(candidate.id)

    def dismiss(self, candidate_id: str) -> None:
        self.session.dismiss(candidate_id)

    def reclassify(self, candidate_id: str, record_type: str | EntityKind) -> None:
        self.session.reclassify(candidate_id, record_type)

    async def bulk_accept(self, snapshot: ReviewSnapshot, session_record_id: str | None = None) -> BulkAcceptResult:
        """Accept every high-confidence new candidate; failures are counted and skipped."""
        created = linked = failed = 0
        record_ids: list[str] = []
        for candidate in snapshot.high_confidence_new:
            if not self.session.is_visible(candidate.id):
                continue
            links = self.default_links(snapshot, candidate.id)
            try:
                record = await self.accept(
                    snapshot,
                    candidate.id,
                    linked_record_ids=links,
                    session_record_id=session_record_id,
                )
            except Exception:
                self.logger.exception({"message": "Bulk accept failed for candidate", "candidate": candidate.id})
                failed += 1
                continue
            created += 1
            linked += len(links)
            record_ids.append(record.id)
        return BulkAcceptResult(created=created, linked=linked, failed=failed, record_ids=tuple(record_ids))

    @staticmethod
    def _excerpt(candidate: CandidateEntity) -> str:
        return candidate.mentions[0].surface_text or candidate.display_text
