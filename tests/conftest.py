import os

# Keep test runs from writing rotating log files
os.environ.setdefault("LOG_TO_FILE", "false")

import datetime as dt
from typing import Dict, List, Optional

import pytest

from eoknowledge.models import (
    ExtractionContext,
    KnowledgeItem,
    KnowledgeType,
    PerSourceBundle,
    SourceDocument,
    TypeResult,
)


REFERENCE_DATE = dt.date(2024, 1, 1)

SAMPLE_ORDER = """Executive Order 14100 of January 20, 2024

Improving Federal Energy Resilience

By the authority vested in me as President by the Constitution and the laws of the United States of America, including section 301 of title 3, United States Code, it is hereby ordered as follows:

Section 1. Policy. It is the policy of my Administration to strengthen the resilience of Federal energy infrastructure.

Sec. 2. Definitions. For purposes of this order:
(a) "Critical energy infrastructure" means the facilities and systems that generate or transmit energy.
(b) "Resilience plan" means a plan describing how an agency protects critical energy infrastructure.

Sec. 3. Agency Responsibilities. (a) The Secretary of Energy shall submit a report to Congress by March 1, 2025.
(b) The Department of Energy (DOE) shall coordinate with the Department of Homeland Security on security risks to critical energy infrastructure.
(c) Within 90 days of the date of this order, the Administrator of the Environmental Protection Agency shall issue guidance.

Sec. 4. Implementation. This order shall be implemented within 180 days.

Sec. 5. General Provisions. Nothing in this order shall be construed to impair the authority granted by law to the Department of Energy (DOE), consistent with 42 U.S.C. § 7151.

THE WHITE HOUSE,
January 20, 2024.
"""


@pytest.fixture
def sample_order_text() -> str:
    return SAMPLE_ORDER


@pytest.fixture
def context() -> ExtractionContext:
    return ExtractionContext(
        source_id="federal_register",
        source_name="Federal Register",
        reference_date=REFERENCE_DATE,
    )


@pytest.fixture
def sample_document() -> SourceDocument:
    return SourceDocument(
        text=SAMPLE_ORDER,
        reference_date=REFERENCE_DATE,
        source_id="federal_register",
        source_name="Federal Register",
        order_number="14100",
        title="Improving Federal Energy Resilience",
        priority=10,
    )


@pytest.fixture
def make_bundle():
    """Factory building a successful bundle from items grouped by type."""

    def _make(
        source_id: str,
        items: Optional[Dict[KnowledgeType, List[KnowledgeItem]]] = None,
        confidences: Optional[Dict[KnowledgeType, float]] = None,
        **kwargs,
    ) -> PerSourceBundle:
        items = items or {}
        confidences = confidences or {}
        by_type = {
            knowledge_type: TypeResult(
                items=type_items,
                confidence=confidences.get(knowledge_type, max((i.confidence for i in type_items), default=0.5)),
            )
            for knowledge_type, type_items in items.items()
        }
        kwargs.setdefault("source_name", source_id.replace("_", " ").title())
        return PerSourceBundle(source_id=source_id, by_type=by_type, **kwargs)

    return _make
