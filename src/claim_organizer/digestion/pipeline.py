"""Claim organization pipeline.

Drives one batch run:
1. Load the claim registry from the grouping store
2. Extract a structured record from every source document
3. Match each record to an existing or new claim
4. Organize: ensure the claim grouping, move and rename the document
5. Report: ensure the claim report, append one row

Each document is handled independently. A failure on one document is logged
with the document's name and leaves it in the source for a later run.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from claim_organizer.clustering.matcher import (
    ClaimMatcher,
    MatchStrategy,
    TieBreak,
    build_matcher,
)
from claim_organizer.clustering.registry import ClaimRegistry, RegistryStrategy
from claim_organizer.config import Settings
from claim_organizer.digestion.task_queue import SequentialTaskQueue, TaskResult
from claim_organizer.errors import (
    CollaboratorUnavailable,
    ExtractionFailure,
    ModelCallFailure,
    ModelResponseUnparseable,
)
from claim_organizer.extraction.extractor_service import TextExtractionService
from claim_organizer.extraction.record_extractor import RecordExtractor
from claim_organizer.models.claim import Claim
from claim_organizer.models.document import DocumentRecord, SourceDocument
from claim_organizer.reports.base import REPORT_HEADER, ReportStore
from claim_organizer.storage.base import DocumentSource, GroupingInfo, GroupingStore, StorageError

logger = logging.getLogger(__name__)


class PipelineStep(str, Enum):
    """Steps a document goes through."""

    READ = "read"
    EXTRACT_TEXT = "extract_text"
    EXTRACT_RECORD = "extract_record"
    MATCH = "match"
    ORGANIZE = "organize"
    REPORT = "report"


class DocumentStatus(str, Enum):
    """Final status of one document in a run."""

    ORGANIZED = "organized"
    MATCHED = "matched"  # dry run: matched, no side effects
    SKIPPED = "skipped"
    FAILED = "failed"


class StepFailed(Exception):
    """Wraps an error with the pipeline step it occurred in."""

    def __init__(self, step: PipelineStep, cause: Exception):
        super().__init__(f"{step.value}: {cause}")
        self.step = step
        self.cause = cause


@dataclass
class PipelineConfig:
    """Explicit run configuration injected into the pipeline."""

    match_strategy: MatchStrategy
    match_window_days: int
    tie_break: TieBreak
    candidate_label_count: int
    registry_strategy: RegistryStrategy
    task_timeout_seconds: float | None
    dry_run: bool = False

    @classmethod
    def from_settings(cls, settings: Settings, dry_run: bool = False) -> "PipelineConfig":
        """Build a config from application settings."""
        return cls(
            match_strategy=MatchStrategy(settings.match_strategy),
            match_window_days=settings.match_window_days,
            tie_break=TieBreak(settings.tie_break),
            candidate_label_count=settings.candidate_label_count,
            registry_strategy=RegistryStrategy(settings.registry_strategy),
            # The model client has its own timeout; the task bound also
            # covers reading and OCR.
            task_timeout_seconds=settings.openai_timeout_seconds * 2,
            dry_run=dry_run,
        )


@dataclass
class DocumentOutcome:
    """What happened to one source document."""

    source_id: str
    name: str
    status: DocumentStatus
    claim_label: str | None = None
    created_claim: bool = False
    stored_as: str | None = None
    error_type: str | None = None
    error_message: str | None = None
    error_step: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "source_id": self.source_id,
            "name": self.name,
            "status": self.status.value,
            "claim_label": self.claim_label,
            "created_claim": self.created_claim,
            "stored_as": self.stored_as,
            "error_type": self.error_type,
            "error_message": self.error_message,
            "error_step": self.error_step,
        }


@dataclass
class RunReport:
    """Result of one batch run."""

    started_at: datetime
    completed_at: datetime | None = None
    documents_seen: int = 0
    outcomes: list[DocumentOutcome] = field(default_factory=list)
    claims_created: list[str] = field(default_factory=list)

    @property
    def documents_processed(self) -> int:
        return sum(
            1
            for o in self.outcomes
            if o.status in (DocumentStatus.ORGANIZED, DocumentStatus.MATCHED)
        )

    @property
    def documents_skipped(self) -> int:
        return sum(
            1 for o in self.outcomes if o.status in (DocumentStatus.SKIPPED, DocumentStatus.FAILED)
        )

    def outcome_for(self, name: str) -> DocumentOutcome | None:
        """Outcome of the document with the given name."""
        for outcome in self.outcomes:
            if outcome.name == name:
                return outcome
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "documents_seen": self.documents_seen,
            "documents_processed": self.documents_processed,
            "documents_skipped": self.documents_skipped,
            "claims_created": self.claims_created,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


class ClaimPipeline:
    """Batch controller from source documents to organized claims.

    Usage:
        pipeline = ClaimPipeline(
            config=PipelineConfig.from_settings(settings),
            source=LocalDocumentSource(settings.source_root),
            groupings=LocalGroupingStore(settings.destination_root),
            reports=ExcelReportStore(settings.report_filename),
            text_extraction=TextExtractionService.with_ocr(),
            record_extractor=RecordExtractor(api_key=settings.openai_api_key),
        )
        report = await pipeline.run()
    """

    def __init__(
        self,
        config: PipelineConfig,
        source: DocumentSource,
        groupings: GroupingStore,
        reports: ReportStore,
        text_extraction: TextExtractionService,
        record_extractor: RecordExtractor,
        matcher: ClaimMatcher | None = None,
    ):
        """Initialize pipeline.

        Args:
            config: Run configuration.
            source: Where new documents are listed and read.
            groupings: Destination store for claim groupings.
            reports: Store for per-claim reports.
            text_extraction: Turns document bytes into text.
            record_extractor: Turns text into structured records.
            matcher: Matching strategy (built from config if not provided).
        """
        self.config = config
        self.source = source
        self.groupings = groupings
        self.reports = reports
        self.text_extraction = text_extraction
        self.record_extractor = record_extractor
        self.matcher = matcher or build_matcher(
            config.match_strategy,
            window_days=config.match_window_days,
            tie_break=config.tie_break,
        )

    @property
    def defers_grouping(self) -> bool:
        """Whether all records are extracted and date-sorted before matching."""
        return self.matcher.strategy is MatchStrategy.IDENTITY_WINDOW

    # =========================================================================
    # Run
    # =========================================================================

    async def run(self, registry: ClaimRegistry | None = None) -> RunReport:
        """Process every document currently in the source.

        Args:
            registry: Pre-loaded registry. Loaded from the grouping store
                when omitted.

        Returns:
            RunReport with one outcome per document.

        Raises:
            CollaboratorUnavailable: If the source or destination cannot be
                listed. Nothing has been moved in that case.
        """
        report = RunReport(started_at=datetime.now(timezone.utc))

        if registry is None:
            registry = await ClaimRegistry.load(
                self.groupings,
                strategy=self.config.registry_strategy,
                recent_limit=self.config.candidate_label_count,
            )

        try:
            documents = await self.source.list_documents()
        except StorageError as e:
            raise CollaboratorUnavailable(f"Cannot list source documents: {e}") from e

        report.documents_seen = len(documents)

        logger.info("=" * 60)
        logger.info("Claim organizer run")
        logger.info("=" * 60)
        logger.info(f"Documents: {len(documents)}")
        logger.info(f"Known claims: {len(registry)}")
        logger.info(f"Strategy: {self.matcher.strategy.value}")
        logger.info(f"Dry run: {self.config.dry_run}")
        logger.info("=" * 60)

        if self.defers_grouping:
            await self._run_deferred(documents, registry, report)
        else:
            await self._run_immediate(documents, registry, report)

        report.completed_at = datetime.now(timezone.utc)
        logger.info(
            f"Run complete: {report.documents_processed} processed, "
            f"{report.documents_skipped} skipped, "
            f"{len(report.claims_created)} new claims"
        )
        return report

    async def _run_deferred(
        self,
        documents: list[SourceDocument],
        registry: ClaimRegistry,
        report: RunReport,
    ) -> None:
        """Extract everything, sort by event date, then match in order.

        Claims are anchored on their earliest record rather than on the
        first one processed.
        """
        queue = SequentialTaskQueue(timeout_seconds=self.config.task_timeout_seconds)
        for document in documents:
            queue.submit(document.name, lambda d=document: self._extract(d, None), context=document)

        extracted: list[tuple[SourceDocument, DocumentRecord]] = []
        async for result in queue.drain():
            if not result.ok:
                report.outcomes.append(self._failure_outcome(result.context, result))
                continue
            extracted.append((result.context, result.value))

        extracted.sort(key=lambda pair: pair[1].event_date)

        for document, record in extracted:
            outcome = await self._assign(document, record, registry)
            self._record_outcome(report, outcome)

    async def _run_immediate(
        self,
        documents: list[SourceDocument],
        registry: ClaimRegistry,
        report: RunReport,
    ) -> None:
        """Extract and match one document at a time, in source order.

        The candidate labels shown to the model are read when each
        extraction starts, so they include claims created earlier in the run.
        """
        queue = SequentialTaskQueue(timeout_seconds=self.config.task_timeout_seconds)
        for document in documents:
            queue.submit(
                document.name,
                lambda d=document: self._extract(
                    d, registry.recent_labels(self.config.candidate_label_count)
                ),
                context=document,
            )

        async for result in queue.drain():
            if not result.ok:
                report.outcomes.append(self._failure_outcome(result.context, result))
                continue
            outcome = await self._assign(result.context, result.value, registry)
            self._record_outcome(report, outcome)

    # =========================================================================
    # Per-document steps
    # =========================================================================

    async def _extract(
        self,
        document: SourceDocument,
        known_labels: list[str] | None,
    ) -> DocumentRecord:
        """Read a document and extract its structured record."""
        try:
            data = await self.source.read_bytes(document)
        except StorageError as e:
            raise StepFailed(PipelineStep.READ, e) from e

        text = await self.text_extraction.extract_text(data, document.name, document.content_type)

        try:
            record = await self.record_extractor.extract(
                text, source_id=document.source_id, known_labels=known_labels
            )
        except (ExtractionFailure, ValueError) as e:
            raise StepFailed(PipelineStep.EXTRACT_RECORD, e) from e
        record.content_digest = hashlib.sha1(data).hexdigest()

        logger.info(
            f"Extracted {document.name}: {record.category.value}, "
            f"date {record.event_date.isoformat()}, "
            f"identity {record.identity_key or 'absent'}"
        )
        return record

    async def _assign(
        self,
        document: SourceDocument,
        record: DocumentRecord,
        registry: ClaimRegistry,
    ) -> DocumentOutcome:
        """Match a record, then organize and report it."""
        outcome = DocumentOutcome(
            source_id=document.source_id,
            name=document.name,
            status=DocumentStatus.MATCHED,
        )
        step = PipelineStep.MATCH
        try:
            result = self.matcher.match(record, registry)
            claim = registry.insert(result.claim)
            registry.touch(claim.label)
            outcome.claim_label = claim.label
            outcome.created_claim = result.created
            logger.info(f"{document.name} -> {claim.label} ({result.reason})")

            if self.config.dry_run:
                return outcome

            step = PipelineStep.ORGANIZE
            # Only a grouping actually created in the store counts as a new claim
            outcome.created_claim = False
            grouping, outcome.created_claim = await self._ensure_claim_grouping(claim)
            outcome.stored_as = await self._file_document(document, record, grouping)

            step = PipelineStep.REPORT
            await self._report(grouping, document, record, outcome.stored_as)
        except Exception as e:
            logger.error(f"Failed to {step.value} {document.name}: {e}")
            outcome.status = DocumentStatus.FAILED
            outcome.error_type = type(e).__name__
            outcome.error_message = str(e)
            outcome.error_step = step.value
            return outcome

        outcome.status = DocumentStatus.ORGANIZED
        return outcome

    async def _ensure_claim_grouping(self, claim: Claim) -> tuple[GroupingInfo, bool]:
        """Find or create the claim grouping; a new one gets its sidecar.

        Returns:
            Tuple of (grouping, created).
        """
        grouping, created = await self.groupings.ensure_grouping(claim.label)
        if created:
            await self.groupings.write_metadata(grouping, claim.to_metadata())
            claim.persisted = True
            logger.info(f"Created claim grouping {claim.label}")
        return grouping, created

    async def _file_document(
        self,
        document: SourceDocument,
        record: DocumentRecord,
        grouping: GroupingInfo,
    ) -> str:
        """Move the document into its grouping and return the stored name."""
        moved = await self.groupings.move_document(document, grouping)
        stored = await self.groupings.rename_document(
            moved, f"{record.category.file_prefix}_{document.name}"
        )
        return self.groupings.document_name(stored)

    async def _report(
        self,
        grouping: GroupingInfo,
        document: SourceDocument,
        record: DocumentRecord,
        stored_as: str,
    ) -> None:
        """Ensure the claim report and append the document's row."""
        report, _ = await self.reports.ensure_report(grouping, REPORT_HEADER)
        values = record.report_row()
        await self.reports.append_row(
            report,
            [
                document.name,
                stored_as,
                values["category"],
                values["patient_name"],
                values["identity"],
                values["clinic_name"],
                values["bill_number"],
                values["amount"],
                values["event_date"],
                datetime.now(timezone.utc).isoformat(timespec="seconds"),
            ],
        )

    # =========================================================================
    # Outcomes
    # =========================================================================

    def _failure_outcome(self, document: SourceDocument, result: TaskResult) -> DocumentOutcome:
        """Log an extraction-phase failure and describe it."""
        error = result.error
        step = None
        if isinstance(error, StepFailed):
            step = error.step.value
            error = error.cause

        if isinstance(error, ModelCallFailure):
            logger.error(f"Model call failed for {document.name}: {error} payload={error.payload}")
        elif isinstance(error, ModelResponseUnparseable):
            logger.warning(f"Unparseable model response for {document.name}: {error}")
            logger.debug(f"Raw response for {document.name}: {error.raw_response}")
        elif isinstance(error, ExtractionFailure):
            logger.warning(f"Skipping {document.name}: {error}")
        else:
            logger.error(f"Failed to extract {document.name}: {error}")

        return DocumentOutcome(
            source_id=document.source_id,
            name=document.name,
            status=(
                DocumentStatus.SKIPPED
                if isinstance(error, ExtractionFailure)
                else DocumentStatus.FAILED
            ),
            error_type=type(error).__name__,
            error_message=str(error),
            error_step=step,
        )

    def _record_outcome(self, report: RunReport, outcome: DocumentOutcome) -> None:
        report.outcomes.append(outcome)
        if outcome.created_claim and outcome.claim_label:
            report.claims_created.append(outcome.claim_label)
