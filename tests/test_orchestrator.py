"""
Tests for KnowledgeExtractor - concurrent fan-out and failure isolation.
"""

import datetime as dt

import pytest

from eoknowledge.extractors import DateExtractor
from eoknowledge.models import (
    DateType,
    KnowledgeType,
    RequirementItem,
    RequirementType,
    SourceDocument,
)
from eoknowledge.orchestrator import KnowledgeExtractor, UnknownExtractorTypeError


class BrokenExtractor(DateExtractor):

    def extract(self, text, context=None):
        raise RuntimeError("boom")


@pytest.fixture
def orchestrator():
    return KnowledgeExtractor(enabled_types=[t.value for t in KnowledgeType])


class TestExtractAll:

    @pytest.mark.asyncio
    async def test_all_types_present(self, orchestrator, sample_document):
        bundle = await orchestrator.extract_all(sample_document)

        assert set(bundle.by_type) == set(KnowledgeType)
        assert bundle.failed_types == []
        assert bundle.source_id == "federal_register"
        assert bundle.order_number == "14100"
        assert bundle.priority == 10
        for result in bundle.by_type.values():
            assert 0.5 <= result.confidence <= 0.95
            assert result.processing_time_ms >= 0

    @pytest.mark.asyncio
    async def test_end_to_end_sentence(self, orchestrator):
        document = SourceDocument(
            text="The Secretary of Energy shall submit a report to Congress by March 1, 2025.",
            reference_date=dt.date(2024, 1, 1),
            source_id="whitehouse",
        )

        bundle = await orchestrator.extract_all(document)

        requirements = bundle.items(KnowledgeType.REQUIREMENT)
        assert any(
            r.requirement_type in (RequirementType.AGENCY_ACTION, RequirementType.REPORTING)
            and r.target_entities == ["Secretary of Energy"]
            for r in requirements
        )
        deadlines = [d for d in bundle.items(KnowledgeType.DATE) if d.date_type == DateType.DEADLINE]
        assert [d.date for d in deadlines] == [dt.date(2025, 3, 1)]

    @pytest.mark.asyncio
    async def test_failure_is_isolated(self, orchestrator, sample_document):
        orchestrator.register(KnowledgeType.DATE, BrokenExtractor())

        bundle = await orchestrator.extract_all(sample_document)

        date_result = bundle.result(KnowledgeType.DATE)
        assert date_result.success is False
        assert date_result.error == "boom"
        assert date_result.items == []
        assert bundle.items(KnowledgeType.DATE) == []
        assert bundle.failed_types == [KnowledgeType.DATE]
        assert bundle.result(KnowledgeType.ENTITY).success is True

    @pytest.mark.asyncio
    async def test_unknown_type_raises_before_fan_out(self, orchestrator, sample_document):
        with pytest.raises(UnknownExtractorTypeError):
            await orchestrator.extract_all(sample_document, enabled_types=["date", "weather"])

    @pytest.mark.asyncio
    async def test_subset_of_types(self, orchestrator, sample_document):
        bundle = await orchestrator.extract_all(sample_document, enabled_types=["entity"])

        assert list(bundle.by_type) == [KnowledgeType.ENTITY]


class TestExtractOne:

    @pytest.mark.asyncio
    async def test_unregistered_type(self, sample_document):
        orchestrator = KnowledgeExtractor(enabled_types=["date"])

        with pytest.raises(UnknownExtractorTypeError):
            await orchestrator.extract(KnowledgeType.ENTITY, sample_document)

    @pytest.mark.asyncio
    async def test_single_type(self, orchestrator, sample_document):
        result = await orchestrator.extract("authority", sample_document)

        assert result.success is True
        assert result.item_count >= 3

    def test_unknown_type_at_construction(self):
        with pytest.raises(UnknownExtractorTypeError):
            KnowledgeExtractor(enabled_types=["weather"])


class TestImpactLinking:

    TEXT = (
        "The Department of Energy shall update grid security standards for federal facilities. "
        "These changes affect federal facilities nationwide."
    )

    @pytest.mark.asyncio
    async def test_impacts_linked_to_same_run_requirements(self, orchestrator):
        document = SourceDocument(text=self.TEXT, source_id="whitehouse")

        bundle = await orchestrator.extract_all(document)

        requirement_ids = {r.id for r in bundle.items(KnowledgeType.REQUIREMENT)}
        impacts = bundle.items(KnowledgeType.IMPACT)
        linked = [i for i in impacts if i.related_requirement_ids]
        assert linked
        assert all(set(i.related_requirement_ids) <= requirement_ids for i in impacts)

    @pytest.mark.asyncio
    async def test_supplied_requirements_take_precedence(self, orchestrator):
        supplied = RequirementItem(
            requirement_type=RequirementType.GENERAL,
            description="Agencies shall modernize federal facilities nationwide",
        )
        document = SourceDocument(text=self.TEXT, source_id="whitehouse", requirements=[supplied])

        bundle = await orchestrator.extract_all(document)

        impacts = bundle.items(KnowledgeType.IMPACT)
        assert any(i.related_requirement_ids == [supplied.id] for i in impacts)
        assert all(set(i.related_requirement_ids) <= {supplied.id} for i in impacts)
