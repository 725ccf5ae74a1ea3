"""
Tests for AuthorityExtractor citation and description formats.
"""

import pytest

from eoknowledge.extractors import AuthorityExtractor
from eoknowledge.models import AuthorityType


@pytest.fixture
def extractor():
    return AuthorityExtractor()


def _citations(result):
    return {item.authority_type: item.citation for item in result.items}


class TestAuthorityForms:

    def test_presidential(self, extractor, sample_order_text, context):
        result = extractor.extract(sample_order_text, context)

        presidential = [i for i in result.items if i.authority_type == AuthorityType.PRESIDENTIAL]
        assert len(presidential) == 1
        assert presidential[0].citation == "the Constitution and the laws of the United States of America"
        assert presidential[0].description == (
            "Presidential authority as President under the Constitution and the laws of the United States of America"
        )

    def test_statute(self, extractor, sample_order_text, context):
        citations = _citations(extractor.extract(sample_order_text, context))

        assert citations[AuthorityType.STATUTE] == "Section 301 of title 3"

    def test_us_code_and_public_law(self, extractor, context):
        result = extractor.extract("This order is issued pursuant to 42 U.S.C. § 7151 and Public Law 117-58.", context)
        citations = _citations(result)

        assert citations[AuthorityType.USCODE] == "42 U.S.C. § 7151"
        assert citations[AuthorityType.PUBLICLAW] == "Public Law 117-58"
        assert citations[AuthorityType.LEGAL] == "42 U.S.C. § 7151 and Public Law 117-58"
        legal = [i for i in result.items if i.authority_type == AuthorityType.LEGAL][0]
        assert legal.description == "Authority pursuant to 42 U.S.C. § 7151 and Public Law 117-58"

    def test_us_code_keeps_its_type_over_legal(self, extractor, context):
        result = extractor.extract("Agencies shall act pursuant to 5 U.S.C. 552.", context)

        assert [(i.authority_type, i.citation) for i in result.items] == [(AuthorityType.USCODE, "5 U.S.C. § 552")]
        assert result.items[0].confidence == 0.9

    def test_constitution_citation(self, extractor, context):
        result = extractor.extract("Consistent with Article II, Section 3 of the Constitution, I direct as follows.",
                                   context)

        constitution = [i for i in result.items if i.authority_type == AuthorityType.CONSTITUTION]
        assert [i.citation for i in constitution] == ["U.S. Constitution, Article II, Section 3"]
        assert constitution[0].description == "Constitutional authority under U.S. Constitution, Article II, Section 3"

    def test_amendment(self, extractor, context):
        result = extractor.extract("Rights secured by the U.S. Constitution, Amendment XIV remain protected.", context)

        assert _citations(result)[AuthorityType.CONSTITUTION] == "U.S. Constitution, Amendment XIV"


class TestConfidence:

    def test_empty_text(self, extractor):
        result = extractor.extract("")

        assert result.items == []
        assert result.confidence == 0.5

    def test_bonuses_clamped(self, extractor, context):
        result = extractor.extract("This order is issued pursuant to 42 U.S.C. § 7151 and Public Law 117-58.", context)

        # avg 0.8333 + 0.1 count bonus + 0.05 U.S. Code bonus exceeds the ceiling
        assert result.confidence == 0.95

    def test_single_authority(self, extractor, context):
        result = extractor.extract("Funds are available under Public Law 117-58.", context)

        assert result.confidence == 0.8
