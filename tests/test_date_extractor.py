"""
Tests for DateExtractor - explicit and relative dates.
"""

import datetime as dt

import pytest

from eoknowledge.extractors import DateExtractor, parse_month_date, MalformedMatchError
from eoknowledge.models import DateType, ExtractionContext


@pytest.fixture
def extractor():
    return DateExtractor()


def _by_type(result, date_type):
    return [item for item in result.items if item.date_type == date_type]


class TestExplicitDates:

    def test_deadline_date(self, extractor, context):
        result = extractor.extract("The Secretary of Energy shall submit a report to Congress by March 1, 2025.", context)

        deadlines = _by_type(result, DateType.DEADLINE)
        assert len(deadlines) == 1
        assert deadlines[0].date == dt.date(2025, 3, 1)
        assert deadlines[0].is_explicit is True
        assert deadlines[0].confidence == 0.8
        assert deadlines[0].source_id == "federal_register"

    def test_effective_date(self, extractor, context):
        result = extractor.extract("This order shall take effect on July 4, 2024.", context)

        effective = _by_type(result, DateType.EFFECTIVE)
        assert [item.date for item in effective] == [dt.date(2024, 7, 4)]

    def test_abbreviated_month(self, extractor, context):
        result = extractor.extract("Agencies shall respond no later than Sept. 15, 2024.", context)

        assert _by_type(result, DateType.DEADLINE)[0].date == dt.date(2024, 9, 15)

    def test_signing_day_of_form(self, extractor, context):
        result = extractor.extract("Done this 4th day of July, in the year 2024.", context)

        assert [item.date for item in _by_type(result, DateType.SIGNING)] == [dt.date(2024, 7, 4)]

    def test_signature_line(self, extractor, context):
        result = extractor.extract("THE WHITE HOUSE,\nJanuary 20, 2024.", context)

        assert [item.date for item in _by_type(result, DateType.SIGNING)] == [dt.date(2024, 1, 20)]

    def test_impossible_date_is_skipped(self, extractor, context):
        result = extractor.extract("Reports are due by February 30, 2025.", context)

        assert result.items == []
        assert result.confidence == 0.5

    def test_parse_month_date_rejects_unknown_month(self):
        with pytest.raises(MalformedMatchError):
            parse_month_date("Smarch 3, 2025")


class TestRelativeDates:

    def test_implementation_within_days(self, extractor, context):
        result = extractor.extract("This order shall be implemented within 90 days.", context)

        implementation = _by_type(result, DateType.IMPLEMENTATION)
        assert len(implementation) == 1
        assert implementation[0].date == dt.date(2024, 3, 31)
        assert implementation[0].is_explicit is False
        assert implementation[0].confidence == 0.6

    def test_relative_deadline_in_months(self, extractor):
        context = ExtractionContext(reference_date=dt.date(2024, 1, 31))
        result = extractor.extract("Within 1 month of the date of this order, agencies shall act.", context)

        # Calendar arithmetic clamps to the end of the month
        assert _by_type(result, DateType.RELATIVE_DEADLINE)[0].date == dt.date(2024, 2, 29)

    def test_relative_deadline_in_weeks(self, extractor, context):
        result = extractor.extract("Not later than 2 weeks after issuance, agencies shall report.", context)

        assert _by_type(result, DateType.RELATIVE_DEADLINE)[0].date == dt.date(2024, 1, 15)

    def test_out_of_range_offset_is_skipped(self, extractor, context):
        text = "This order shall be implemented within 9999999 days. Reports are due by March 1, 2025."
        result = extractor.extract(text, context)

        assert _by_type(result, DateType.IMPLEMENTATION) == []
        assert [item.date for item in _by_type(result, DateType.DEADLINE)] == [dt.date(2025, 3, 1)]


class TestConfidence:

    def test_empty_text(self, extractor):
        result = extractor.extract("")

        assert result.items == []
        assert result.confidence == 0.5

    def test_non_string_text(self, extractor):
        assert extractor.extract(None).confidence == 0.5

    def test_sample_order(self, extractor, sample_order_text, context):
        result = extractor.extract(sample_order_text, context)
        found = {(item.date_type, item.date) for item in result.items}

        assert (DateType.DEADLINE, dt.date(2025, 3, 1)) in found
        assert (DateType.SUBMISSION, dt.date(2025, 3, 1)) in found
        assert (DateType.RELATIVE_DEADLINE, dt.date(2024, 3, 31)) in found
        assert (DateType.IMPLEMENTATION, dt.date(2024, 6, 29)) in found
        assert (DateType.SIGNING, dt.date(2024, 1, 20)) in found
        # Three or more items earn the count bonus
        assert 0.5 <= result.confidence <= 0.95
        assert result.confidence == round(sum(i.confidence for i in result.items) / len(result.items) + 0.1, 4)

    def test_duplicates_collapse_within_run(self, extractor, context):
        text = "Submit plans by March 1, 2025. Submit budgets by March 1, 2025."
        result = extractor.extract(text, context)

        assert len(_by_type(result, DateType.DEADLINE)) == 1
