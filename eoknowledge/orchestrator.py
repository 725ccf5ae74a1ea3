"""
Extraction Orchestrator

Runs every enabled extractor over one source document concurrently and
packages the outcome as a PerSourceBundle.

Features:
- Concurrent fan-out with asyncio.gather over worker threads
- Failure isolation: one failing extractor never fails its siblings
- Impact-to-requirement linking after the join
- Per-extractor timing
"""

import asyncio
import logging
import time
from typing import Dict, Iterable, List, Optional, Union

from eoknowledge.config import settings
from eoknowledge.extractors import EXTRACTORS, BaseExtractor, link_requirements
from eoknowledge.models import (
    KnowledgeType,
    PerSourceBundle,
    RequirementItem,
    SourceDocument,
    TypeResult,
)

logger = logging.getLogger(__name__)


class UnknownExtractorTypeError(ValueError):
    """Requested knowledge type has no registered extractor."""


def resolve_types(types: Iterable[Union[str, KnowledgeType]]) -> List[KnowledgeType]:
    """
    Turn type names into KnowledgeType members, keeping order and dropping repeats.

    Raises:
        UnknownExtractorTypeError: A name is not a knowledge type
    """
    resolved: List[KnowledgeType] = []
    for name in types:
        try:
            knowledge_type = KnowledgeType(name)
        except ValueError as e:
            raise UnknownExtractorTypeError(f"Unknown extraction type: {name}") from e
        if knowledge_type not in resolved:
            resolved.append(knowledge_type)
    return resolved


class KnowledgeExtractor:
    """Fans a source document out to the registered extractors."""

    def __init__(self, enabled_types: Optional[Iterable[Union[str, KnowledgeType]]] = None):
        """
        Initialize orchestrator.

        Args:
            enabled_types: Types extracted by extract_all (default: settings.enabled_extractors)
        """
        if enabled_types is None:
            enabled_types = settings.enabled_extractors_list
        self.enabled_types = resolve_types(enabled_types)
        self.extractors: Dict[KnowledgeType, BaseExtractor] = {
            knowledge_type: EXTRACTORS[knowledge_type]() for knowledge_type in self.enabled_types
        }
        logger.debug(f"Knowledge extractor initialized with {[t.value for t in self.enabled_types]}")

    def register(self, knowledge_type: Union[str, KnowledgeType], extractor: BaseExtractor) -> None:
        """Add or replace the extractor handling a type."""
        (knowledge_type,) = resolve_types([knowledge_type])
        self.extractors[knowledge_type] = extractor
        if knowledge_type not in self.enabled_types:
            self.enabled_types.append(knowledge_type)

    def _extractor_for(self, knowledge_type: Union[str, KnowledgeType]) -> BaseExtractor:
        (knowledge_type,) = resolve_types([knowledge_type])
        extractor = self.extractors.get(knowledge_type)
        if extractor is None:
            raise UnknownExtractorTypeError(f"No extractor registered for type: {knowledge_type.value}")
        return extractor

    async def extract(self, knowledge_type: Union[str, KnowledgeType], document: SourceDocument) -> TypeResult:
        """
        Run one extractor over a document in a worker thread.

        Args:
            knowledge_type: Type to extract
            document: Source document

        Returns:
            TypeResult with items, confidence and processing time

        Raises:
            UnknownExtractorTypeError: No extractor handles the type
        """
        extractor = self._extractor_for(knowledge_type)
        start = time.perf_counter()
        result = await asyncio.to_thread(extractor.extract, document.text, document.context())
        elapsed_ms = (time.perf_counter() - start) * 1000

        return TypeResult(
            items=result.items,
            confidence=result.confidence,
            processing_time_ms=round(elapsed_ms, 3),
        )

    async def extract_all(
        self,
        document: SourceDocument,
        enabled_types: Optional[Iterable[Union[str, KnowledgeType]]] = None,
    ) -> PerSourceBundle:
        """
        Run every enabled extractor over a document concurrently.

        Failed extractors are recorded in the bundle with success=False; the
        call itself only raises for unknown types, before any work starts.

        Args:
            document: Source document
            enabled_types: Types to extract (default: the orchestrator's enabled types)

        Returns:
            PerSourceBundle for the document's source
        """
        types = self.enabled_types if enabled_types is None else resolve_types(enabled_types)
        for knowledge_type in types:
            self._extractor_for(knowledge_type)

        logger.info(f"Extracting {len(types)} knowledge types from {document.source_id}")

        results = await asyncio.gather(
            *(self.extract(knowledge_type, document) for knowledge_type in types),
            return_exceptions=True,
        )

        by_type: Dict[KnowledgeType, TypeResult] = {}
        for knowledge_type, result in zip(types, results):
            if isinstance(result, Exception):
                logger.error(f"Error extracting {knowledge_type.value} from {document.source_id}: {result}")
                by_type[knowledge_type] = TypeResult(success=False, error=str(result) or type(result).__name__)
            elif isinstance(result, BaseException):
                raise result
            else:
                by_type[knowledge_type] = result

        self._link_impacts(by_type, document)

        return PerSourceBundle(
            source_id=document.source_id,
            source_name=document.source_name,
            order_number=document.order_number,
            title=document.title,
            priority=document.priority,
            yale_impact_areas=document.yale_impact_areas,
            yale_stakeholders=document.yale_stakeholders,
            by_type=by_type,
        )

    def _link_impacts(self, by_type: Dict[KnowledgeType, TypeResult], document: SourceDocument) -> None:
        """Link impacts to the requirements extracted in the same run."""
        if not settings.link_impacts_to_requirements or document.requirements is not None:
            return

        impacts = by_type.get(KnowledgeType.IMPACT)
        requirements = by_type.get(KnowledgeType.REQUIREMENT)
        if not impacts or not requirements or not impacts.success or not requirements.success:
            return

        requirement_items: List[RequirementItem] = list(requirements.items)
        linked = link_requirements(impacts.items, requirement_items)
        impact_extractor = self.extractors[KnowledgeType.IMPACT]
        by_type[KnowledgeType.IMPACT] = impacts.model_copy(
            update={"items": linked, "confidence": impact_extractor.confidence(linked)}
        )
        logger.debug(
            f"Linked {sum(1 for item in linked if item.related_requirement_ids)}/{len(linked)} "
            f"impacts to requirements for {document.source_id}"
        )
