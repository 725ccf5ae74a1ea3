"""
Fusion Engine

Merges the per-source bundles of one logical document into a single
UnifiedKnowledgeRecord.

Merging rules:
- Bundles are read by descending priority, then by source id, so the result
  does not depend on the order of equally ranked bundles
- The first non-empty order number and title win
- Items are matched by identity key; each match adds the source once and
  keeps the highest confidence, showing the payload of the most confident source
  (ties go to the earlier bundle in reading order)
- Yale impact areas and stakeholders are unioned by id
- Failed extractor results contribute no items and are listed as failures
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

from eoknowledge.models import (
    ExtractionFailure,
    KnowledgeItem,
    KnowledgeType,
    PerSourceBundle,
    SourceInfo,
    SourceRef,
    UnifiedKnowledgeRecord,
)
from eoknowledge.utils import aggregate_confidence_scores

logger = logging.getLogger(__name__)


@dataclass
class _Slot:
    """Accumulator for one fused item."""
    item: KnowledgeItem
    confidence: float
    sources: List[SourceInfo] = field(default_factory=list)

    def add(self, item: KnowledgeItem, bundle: PerSourceBundle) -> None:
        for index, source in enumerate(self.sources):
            if source.source_id == bundle.source_id:
                if item.confidence > source.confidence:
                    self.sources[index] = source.model_copy(update={"confidence": item.confidence})
                break
        else:
            self.sources.append(
                SourceInfo(source_id=bundle.source_id, source_name=bundle.source_name, confidence=item.confidence)
            )
        if item.confidence > self.confidence:
            self.item = item
            self.confidence = item.confidence

    def fused(self) -> KnowledgeItem:
        return self.item.model_copy(update={"confidence": self.confidence, "sources_info": list(self.sources)})


def _union_by_id(groups: Sequence[Sequence[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """Union dictionaries by their "id" (whole content when there is none)."""
    merged: Dict[str, Dict[str, Any]] = {}
    for group in groups:
        for entry in group:
            key = str(entry.get("id")) if entry.get("id") is not None else json.dumps(entry, sort_keys=True, default=str)
            merged.setdefault(key, dict(entry))
    return list(merged.values())


def fuse(bundles: Sequence[PerSourceBundle]) -> UnifiedKnowledgeRecord:
    """
    Fuse per-source bundles of one document into a unified record.

    Args:
        bundles: Bundles of one document, in any order

    Returns:
        A fresh UnifiedKnowledgeRecord (empty with confidence 0 for no bundles)
    """
    if not bundles:
        logger.debug("No bundles to fuse")
        return UnifiedKnowledgeRecord()

    bundles = sorted(bundles, key=lambda b: (-b.priority, b.source_id))

    slots: Dict[KnowledgeType, Dict[Tuple[str, ...], _Slot]] = {t: {} for t in KnowledgeType}
    scores: Dict[KnowledgeType, List[float]] = {t: [] for t in KnowledgeType}
    failures: List[ExtractionFailure] = []
    sources: Dict[str, SourceRef] = {}

    for bundle in bundles:
        sources.setdefault(bundle.source_id, SourceRef(id=bundle.source_id, name=bundle.source_name))

        for knowledge_type in KnowledgeType:
            result = bundle.result(knowledge_type)
            if result is None:
                continue
            if not result.success:
                failures.append(ExtractionFailure(
                    source_id=bundle.source_id,
                    source_name=bundle.source_name,
                    type=knowledge_type,
                    error=result.error or "",
                ))
                continue

            if result.confidence is not None:
                scores[knowledge_type].append(result.confidence)

            type_slots = slots[knowledge_type]
            for item in result.items:
                key = item.identity_key()
                slot = type_slots.get(key)
                if slot is None:
                    type_slots[key] = slot = _Slot(item=item, confidence=item.confidence)
                slot.add(item, bundle)

    fused_items = {
        knowledge_type.field_name: [slot.fused() for slot in type_slots.values()]
        for knowledge_type, type_slots in slots.items()
    }
    type_confidence = {
        knowledge_type: round(aggregate_confidence_scores(type_scores), 4)
        for knowledge_type, type_scores in scores.items()
        if type_scores
    }
    all_scores = [score for type_scores in scores.values() for score in type_scores]

    record = UnifiedKnowledgeRecord(
        order_number=next((b.order_number for b in bundles if b.order_number), None),
        title=next((b.title for b in bundles if b.title), None),
        yale_impact_areas=_union_by_id([b.yale_impact_areas for b in bundles]),
        yale_stakeholders=_union_by_id([b.yale_stakeholders for b in bundles]),
        sources=list(sources.values()),
        type_confidence=type_confidence,
        failures=failures,
        overall_confidence=round(aggregate_confidence_scores(all_scores), 4),
        **fused_items,
    )

    if failures:
        logger.warning(f"Fused {len(bundles)} bundles with {len(failures)} failed extractions")
    logger.info(f"Fused {len(bundles)} bundles into {record.item_count} items "
                f"(overall confidence {record.overall_confidence:.2f})")
    return record
