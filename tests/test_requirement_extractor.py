"""
Tests for RequirementExtractor.
"""

import pytest

from eoknowledge.extractors import RequirementExtractor
from eoknowledge.models import Priority, RequirementType


@pytest.fixture
def extractor():
    return RequirementExtractor()


def _of_type(result, requirement_type):
    return [item for item in result.items if item.requirement_type == requirement_type]


class TestRequirementTypes:

    def test_agency_action_targets_subject(self, extractor, context):
        result = extractor.extract(
            "The Secretary of Energy shall submit a report to Congress by March 1, 2025.", context
        )

        actions = _of_type(result, RequirementType.AGENCY_ACTION)
        assert len(actions) == 1
        assert actions[0].target_entities == ["Secretary of Energy"]
        assert actions[0].description == "Secretary of Energy shall submit a report to Congress by March 1, 2025"
        assert actions[0].confidence == 0.75

    def test_reporting_targets_recipient(self, extractor, context):
        result = extractor.extract(
            "The Secretary of Energy shall submit a report to Congress by March 1, 2025.", context
        )

        reporting = _of_type(result, RequirementType.REPORTING)
        assert len(reporting) == 1
        assert reporting[0].target_entities == ["Congress"]

    def test_general_fallback_dropped_when_overlapping(self, extractor, context):
        result = extractor.extract("The Secretary of State shall publish guidance.", context)

        assert _of_type(result, RequirementType.GENERAL) == []
        assert len(_of_type(result, RequirementType.AGENCY_ACTION)) == 1

    def test_general_requirement(self, extractor, context):
        result = extractor.extract("Contractors must maintain accurate records.", context)

        general = _of_type(result, RequirementType.GENERAL)
        assert [item.description for item in general] == ["Must maintain accurate records"]

    def test_prohibition(self, extractor, context):
        result = extractor.extract("Agencies shall not disclose personal data.", context)

        assert [item.requirement_type for item in result.items] == [RequirementType.PROHIBITION]
        assert result.items[0].description == "Shall not disclose personal data"

    def test_shall_not_is_not_agency_action(self, extractor, context):
        result = extractor.extract("The Secretary of Defense shall not delegate this authority.", context)

        assert _of_type(result, RequirementType.AGENCY_ACTION) == []
        prohibitions = _of_type(result, RequirementType.PROHIBITION)
        assert prohibitions[0].target_entities == ["Secretary of Defense"]

    def test_deadline_requirement(self, extractor, context):
        result = extractor.extract("Within 60 days, agencies must update their plans.", context)

        deadlines = _of_type(result, RequirementType.DEADLINE)
        assert [item.description for item in deadlines] == ["Within 60 days, agencies must update their plans"]
        assert _of_type(result, RequirementType.GENERAL) == []

    def test_subject_with_abbreviation(self, extractor, context):
        result = extractor.extract("The Department of Energy (DOE) shall coordinate with States.", context)

        actions = _of_type(result, RequirementType.AGENCY_ACTION)
        assert actions[0].target_entities == ["Department of Energy"]


class TestRequirementAttributes:

    def test_priority_from_keywords(self, extractor, context):
        result = extractor.extract("The Secretary of State shall immediately notify Congress.", context)

        assert result.items[0].priority == Priority.HIGH

    def test_default_priority(self, extractor, context):
        result = extractor.extract("The Secretary of State shall notify Congress.", context)

        assert result.items[0].priority == Priority.MEDIUM

    def test_conditional(self, extractor, context):
        result = extractor.extract(
            "If funds are available, the Director of the Office of Management and Budget shall allocate resources.",
            context,
        )

        actions = _of_type(result, RequirementType.AGENCY_ACTION)
        assert actions[0].target_entities == ["Director of the Office of Management and Budget"]
        assert actions[0].is_conditional is True

    def test_not_conditional(self, extractor, context):
        result = extractor.extract("The Secretary of State shall notify Congress.", context)

        assert result.items[0].is_conditional is False


class TestConfidence:

    def test_empty_text(self, extractor):
        result = extractor.extract("   ")

        assert result.items == []
        assert result.confidence == 0.5

    def test_count_bonus(self, extractor, context):
        text = " ".join(
            f"The Secretary of {dept} shall publish guidance number {n}."
            for n, dept in enumerate(["State", "Labor", "Energy", "Commerce", "Defense"])
        )
        result = extractor.extract(text, context)

        assert len(result.items) == 5
        assert result.confidence == 0.85

    def test_sample_order_in_range(self, extractor, sample_order_text, context):
        result = extractor.extract(sample_order_text, context)

        assert result.items
        assert 0.5 <= result.confidence <= 0.95
