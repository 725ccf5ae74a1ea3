"""
Main Orchestration Script

Coordinates the complete extraction and fusion pipeline:
1. Load source documents from JSON
2. Group documents by executive order number
3. Extract knowledge from every source of an order concurrently
4. Fuse the per-source bundles into unified knowledge records
5. Write unified records (and optionally the bundles) to JSON
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from eoknowledge.config import OUTPUTS_DIR, settings
from eoknowledge.fusion import fuse
from eoknowledge.models import KnowledgeType, PerSourceBundle, SourceDocument, UnifiedKnowledgeRecord
from eoknowledge.orchestrator import KnowledgeExtractor
from eoknowledge.utils import ProgressTracker, load_json, save_json, setup_logging, timeit

logger = logging.getLogger(__name__)


class KnowledgeFusionPipeline:
    """Batch pipeline from source documents to unified knowledge records."""

    def __init__(self, enabled_types: Optional[Sequence[str]] = None):
        """
        Initialize pipeline.

        Args:
            enabled_types: Knowledge types to extract (default: settings.enabled_extractors)
        """
        self.extractor = KnowledgeExtractor(enabled_types)
        logger.info(f"Pipeline initialized ({', '.join(t.value for t in self.extractor.enabled_types)})")

    def load_documents(self, input_path: Path) -> List[SourceDocument]:
        """
        Load source documents from a JSON file.

        The file holds a list of documents or an object with a "documents" list.
        Documents that fail validation are logged and skipped.
        """
        data = load_json(input_path)
        if isinstance(data, dict):
            data = data.get("documents", [])
        if not isinstance(data, list):
            raise ValueError(f"Expected a list of documents in {input_path}")

        documents = []
        for index, raw in enumerate(data):
            try:
                documents.append(SourceDocument.model_validate(raw))
            except ValidationError as e:
                logger.error(f"Skipping invalid document #{index} in {input_path}: {e}")

        logger.info(f"Loaded {len(documents)} documents from {input_path}")
        return documents

    @staticmethod
    def group_documents(documents: Sequence[SourceDocument]) -> List[List[SourceDocument]]:
        """
        Group documents by order number, highest priority first within a group.

        Documents without an order number form a group of their own.
        """
        groups: Dict[str, List[SourceDocument]] = {}
        for index, document in enumerate(documents):
            key = document.order_number or f"#{index}:{document.source_id}"
            groups.setdefault(key, []).append(document)
        return [sorted(group, key=lambda d: d.priority, reverse=True) for group in groups.values()]

    async def process_group(
        self, documents: Sequence[SourceDocument]
    ) -> Tuple[UnifiedKnowledgeRecord, List[PerSourceBundle]]:
        """
        Extract every source of one order concurrently and fuse the results.

        Args:
            documents: Source documents of one order, in priority order

        Returns:
            Unified record and the per-source bundles it was built from
        """
        bundles = list(await asyncio.gather(*(self.extractor.extract_all(d) for d in documents)))

        for bundle in bundles:
            summary = bundle.summary()
            if summary["success"]:
                logger.info(f"{summary['sourceId']}: {summary['totalItems']} items {summary['extractionCounts']}")
            else:
                logger.warning(f"{summary['sourceId']}: {summary['totalItems']} items, errors {summary['errors']}")

        return fuse(bundles), bundles

    async def process_documents(
        self, documents: Sequence[SourceDocument]
    ) -> Tuple[List[UnifiedKnowledgeRecord], List[PerSourceBundle]]:
        """Process every order group; a failing group is logged and skipped."""
        groups = self.group_documents(documents)
        tracker = ProgressTracker(len(groups), "Fusing orders")
        records: List[UnifiedKnowledgeRecord] = []
        all_bundles: List[PerSourceBundle] = []

        for group in groups:
            label = group[0].order_number or group[0].source_id
            try:
                record, bundles = await self.process_group(group)
            except Exception as e:
                logger.error(f"Error processing order {label}: {e}", exc_info=True)
                tracker.update(1, f"Error: {e}")
                continue
            records.append(record)
            all_bundles.extend(bundles)
            tracker.update(1, f"Completed {label}")

        tracker.finish()
        return records, all_bundles

    @timeit
    def run(
        self,
        input_path: Path,
        output_path: Path,
        bundles_output_path: Optional[Path] = None,
    ) -> List[UnifiedKnowledgeRecord]:
        """
        Run the pipeline end to end.

        Args:
            input_path: JSON file of source documents
            output_path: Destination for unified records
            bundles_output_path: Optional destination for per-source bundles

        Returns:
            Unified knowledge records, one per order
        """
        documents = self.load_documents(input_path)
        records, bundles = asyncio.run(self.process_documents(documents))

        save_json([record.to_dict() for record in records], output_path)
        if bundles_output_path:
            save_json([bundle.to_dict() for bundle in bundles], bundles_output_path)

        logger.info(f"Wrote {len(records)} unified records from {len(bundles)} source bundles")
        return records


def main(argv: Optional[Sequence[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Executive Order Knowledge Extraction and Fusion')
    parser.add_argument('--input', required=True, help='Input JSON file of source documents')
    parser.add_argument('--output', default=str(OUTPUTS_DIR / 'unified_knowledge.json'),
                        help='Output JSON file for unified records')
    parser.add_argument('--bundles-output', help='Optional output JSON file for per-source bundles')
    parser.add_argument('--types', nargs='*', choices=[t.value for t in KnowledgeType],
                        help='Knowledge types to extract (default: ENABLED_EXTRACTORS)')
    parser.add_argument('--log-level', default=settings.log_level,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        help='Logging level')

    args = parser.parse_args(argv)

    # Initialize logging
    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    setup_logging("eoknowledge", level=log_level)

    logger.info("Starting Knowledge Fusion Pipeline")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Impact linking: {'Enabled' if settings.link_impacts_to_requirements else 'Disabled'}")

    try:
        pipeline = KnowledgeFusionPipeline(enabled_types=args.types or None)
        pipeline.run(
            input_path=Path(args.input),
            output_path=Path(args.output),
            bundles_output_path=Path(args.bundles_output) if args.bundles_output else None,
        )
        logger.info("Pipeline completed successfully")

    except KeyboardInterrupt:
        logger.info("Pipeline interrupted by user")
        sys.exit(130)  # Standard exit code for SIGINT

    except Exception as e:
        logger.critical(f"Pipeline failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
