"""Command-line entry point for one claim organizer batch run.

Usage:
    claim-organizer --source ./inbox --destination ./claims
    python -m claim_organizer.worker --strategy candidate_label --dry-run
"""

import asyncio
import json
import logging
import sys

from claim_organizer.config import Settings, get_settings
from claim_organizer.digestion.pipeline import ClaimPipeline, PipelineConfig, RunReport
from claim_organizer.errors import CollaboratorUnavailable
from claim_organizer.extraction.extractor_service import TextExtractionService
from claim_organizer.extraction.record_extractor import RecordExtractor
from claim_organizer.reports.excel import ExcelReportStore
from claim_organizer.storage.local import LocalDocumentSource, LocalGroupingStore

logger = logging.getLogger(__name__)


def build_pipeline(settings: Settings, dry_run: bool = False) -> ClaimPipeline:
    """Wire the local stores, extractors and matcher from settings."""
    return ClaimPipeline(
        config=PipelineConfig.from_settings(settings, dry_run=dry_run),
        source=LocalDocumentSource(base_path=settings.source_root),
        groupings=LocalGroupingStore(base_path=settings.destination_root),
        reports=ExcelReportStore(filename=settings.report_filename),
        text_extraction=TextExtractionService.with_ocr(
            enabled=settings.ocr_enabled,
            tesseract_cmd=settings.tesseract_cmd,
        ),
        record_extractor=RecordExtractor(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            max_chars=settings.max_text_chars,
            min_chars=settings.min_text_chars,
            timeout_seconds=settings.openai_timeout_seconds,
            max_tokens=settings.openai_max_tokens,
        ),
    )


async def run_once(settings: Settings, dry_run: bool = False) -> RunReport:
    """Run a single batch over the configured source."""
    pipeline = build_pipeline(settings, dry_run=dry_run)
    return await pipeline.run()


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Organize medical documents into claim folders")
    parser.add_argument(
        "--source",
        "-s",
        help="Directory scanned for new documents (default: SOURCE_ROOT)",
    )
    parser.add_argument(
        "--destination",
        "-d",
        help="Directory holding claim folders (default: DESTINATION_ROOT)",
    )
    parser.add_argument(
        "--strategy",
        choices=["identity_window", "candidate_label"],
        help="Matching strategy (default: MATCH_STRATEGY)",
    )
    parser.add_argument(
        "--window-days",
        "-w",
        type=int,
        help="Tolerance window in days (default: MATCH_WINDOW_DAYS)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Extract and match only; move nothing and write no reports",
    )

    args = parser.parse_args(argv)

    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    overrides = {
        "source_root": args.source,
        "destination_root": args.destination,
        "match_strategy": args.strategy,
        "match_window_days": args.window_days,
    }
    overrides = {key: value for key, value in overrides.items() if value is not None}
    if overrides:
        settings = Settings.model_validate({**settings.model_dump(), **overrides})

    try:
        report = asyncio.run(run_once(settings, dry_run=args.dry_run))
    except CollaboratorUnavailable as e:
        logger.error(f"Run aborted: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nRun interrupted")
        return 1

    print(json.dumps(report.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
