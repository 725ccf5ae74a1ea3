"""
Pattern Rule Tables

Every extractor is driven by an ordered table of PatternRule records
(compiled pattern, discriminator tag, post-processing hint). Keyword scoring
(priority, severity, timeframe) is driven by ordered tier tables. Keeping
both as data lets the rule sets be inspected and tested on their own,
independent of the scanning loop in eoknowledge.extractors.
"""

import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, Optional, Pattern, Sequence, Tuple

from eoknowledge.models import (
    AuthorityType,
    DateType,
    EntityType,
    ImpactType,
    Priority,
    RequirementType,
    Severity,
    Timeframe,
)


@dataclass(frozen=True)
class PatternRule:
    """One scanning rule: what to match, what to call it, how to read it."""
    pattern: Pattern[str]
    tag: Any
    hint: Optional[Any] = None


# Post-processing hints
EXPLICIT = "explicit"
DATE_PARTS = "date_parts"
RELATIVE = "relative"
FALLBACK = "fallback"


# ============================================================================
# Dates
# ============================================================================

_MONTH_DATE = r"([A-Za-z]+\.?\s+\d{1,2},?\s+\d{4})"
_DEADLINE_LEAD = r"(?:by|not later than|no later than|prior to|before)"
_UNIT = r"(day|week|month|year)s?\b"

DATE_RULES: Tuple[PatternRule, ...] = (
    PatternRule(
        re.compile(rf"\b(?:effective|takes effect|shall take effect)[^.]*?\bon\s+{_MONTH_DATE}", re.I),
        DateType.EFFECTIVE,
        EXPLICIT,
    ),
    PatternRule(
        re.compile(rf"\b{_DEADLINE_LEAD}\s+{_MONTH_DATE}", re.I),
        DateType.DEADLINE,
        EXPLICIT,
    ),
    PatternRule(
        re.compile(rf"\b(?:due|submit|report|provide)[^.]*?\b{_DEADLINE_LEAD}\s+{_MONTH_DATE}", re.I),
        DateType.SUBMISSION,
        EXPLICIT,
    ),
    PatternRule(
        re.compile(
            r"\b(?:signed|executed|done|issued)[^.]*?\b(?:on|this)\s+(?:the\s+)?(\d{1,2})(?:st|nd|rd|th)?"
            r"\s+day\s+of\s+([A-Za-z]+)(?:,\s+|,?\s+in\s+the\s+year\s+)(\d{4})",
            re.I,
        ),
        DateType.SIGNING,
        DATE_PARTS,
    ),
    PatternRule(
        re.compile(r"THE WHITE HOUSE,\s+([A-Z][a-z]+\.?\s+\d{1,2},\s+\d{4})"),
        DateType.SIGNING,
        EXPLICIT,
    ),
    PatternRule(
        re.compile(rf"\b(?:implement|implementation)[^.]*?\b(?:by|not later than|no later than|within)\s+(\d+)\s+{_UNIT}", re.I),
        DateType.IMPLEMENTATION,
        RELATIVE,
    ),
    PatternRule(
        re.compile(
            rf"\b(?:within|not later than|no later than)\s+(\d+)\s+{_UNIT}\s+(?:of|after|from|following)"
            r"(?:\s+the\s+date\s+of)?\s+(?:this order|the publication|publication|issuance)",
            re.I,
        ),
        DateType.RELATIVE_DEADLINE,
        RELATIVE,
    ),
)


# ============================================================================
# Entities
# ============================================================================

CABINET_DEPARTMENTS: Tuple[str, ...] = (
    "Agriculture",
    "Commerce",
    "Defense",
    "Education",
    "Energy",
    "Health and Human Services",
    "Homeland Security",
    "Housing and Urban Development",
    "Justice",
    "Labor",
    "State",
    "Transportation",
    "the Treasury",
    "the Interior",
    "Veterans Affairs",
)

# Optional parenthetical abbreviation following a name, e.g. (DOE) or ("NSC")
_ALIAS = r"(?:\s+\(\s*[\"'“]?([A-Z]{2,8})[\"'”]?\s*\))?"
_PROPER_TAIL = r"[A-Z][a-z]+(?:\s[A-Z][a-z]+)*"

ENTITY_RULES: Tuple[PatternRule, ...] = (
    PatternRule(
        re.compile(
            r"((?:The\s+)?(?:Department|Office|Bureau|Agency|Administration|Commission|Council|Committee)"
            rf"\s+of\s+(?:the\s+)?{_PROPER_TAIL}){_ALIAS}"
        ),
        EntityType.AGENCY,
    ),
    PatternRule(
        re.compile(
            r"((?:The\s+)?(?:Assistant Secretary|Under Secretary|Secretary|Administrator|Director|Chair|Commissioner)"
            rf"\s+of\s+(?:the\s+)?{_PROPER_TAIL}){_ALIAS}"
        ),
        EntityType.ROLE,
    ),
    PatternRule(
        re.compile(rf"\bestablish(?:es|ed)?\s+(?:a|an|the)\s+([A-Z][a-z]+(?:\s[A-Z][a-z]+){{1,5}}){_ALIAS}"),
        EntityType.CREATED_ENTITY,
    ),
    PatternRule(
        re.compile(
            r"(Department\s+of\s+(?:" + "|".join(re.escape(d) for d in CABINET_DEPARTMENTS) + r"))\b" + _ALIAS
        ),
        EntityType.DEPARTMENT,
    ),
)


# ============================================================================
# Requirements
# ============================================================================

_AGENCY_SUBJECT = (
    r"(?:\b[Tt]he\s+)?"
    r"((?:[A-Z][\w'-]*\s+){0,4}?"
    r"(?:Agency|Department|Secretary|Administrator|Director|Office|Bureau|Commission|Council|Administration|Attorney General)"
    r"(?:\s+of\s+(?:the\s+)?[A-Z][\w'-]*(?:\s+(?:(?:and|of|the|for)\s+)*[A-Z][\w'-]*)*)?)"
)

REQUIREMENT_RULES: Tuple[PatternRule, ...] = (
    PatternRule(
        re.compile(rf"{_AGENCY_SUBJECT}(?:\s+\([^()]{{1,12}}\))?\s+shall\s+(?!not\b)([^.;]+)[.;]"),
        RequirementType.AGENCY_ACTION,
    ),
    PatternRule(
        re.compile(r"\b(?:shall not|may not|must not|prohibited from|is not)\s+([^.;]+)[.;]", re.I),
        RequirementType.PROHIBITION,
    ),
    PatternRule(
        re.compile(r"\b(?i:report|submit|provide)\s+([^.;]+?)(?:\s+to\s+(?:the\s+)?([A-Z][^.;]*?))?[.;]"),
        RequirementType.REPORTING,
    ),
    PatternRule(
        re.compile(
            r"\b(?i:by|within|not later than|no later than)\s+([^.;,]+?),\s*"
            r"([^.;]*?\b(?i:shall|must|will)\b[^.;]*)[.;]"
        ),
        RequirementType.DEADLINE,
    ),
    PatternRule(
        re.compile(r"\b(?:must|required to|shall)\s+([^.;]+)[.;]", re.I),
        RequirementType.GENERAL,
        FALLBACK,
    ),
)

# Trailing deadline phrase trimmed off a reporting recipient
RECIPIENT_TRAILER = re.compile(r"\s+(?:by|not later than|no later than|within|before|on or before)\b.*$", re.I)

CONDITIONAL_MARKERS: Tuple[str, ...] = ("if", "when")


# ============================================================================
# Impacts
# ============================================================================

IMPACT_RULES: Tuple[PatternRule, ...] = (
    PatternRule(
        re.compile(r"\b(?:impacts?|affects?|affecting|effects? on|implications for)\s+([^.;]+)[.;]", re.I),
        ImpactType.GENERAL,
    ),
    PatternRule(
        re.compile(r"\b(?:costs?|funding|financial|budget|budgetary|economic)\s+([^.;]+)[.;]", re.I),
        ImpactType.FINANCIAL,
    ),
    PatternRule(
        re.compile(r"\b(?:requires?|compliance|comply with|adhere to)\s+([^.;]+)[.;]", re.I),
        ImpactType.COMPLIANCE,
    ),
    PatternRule(
        re.compile(r"\b(?:changes?|modify|modifies|amends?|revises?)\s+([^.;]+)[.;]", re.I),
        ImpactType.OPERATIONAL,
    ),
    PatternRule(
        re.compile(r"\b(?:risks?|vulnerabilit(?:y|ies)|threats?|security)\s+([^.;]+)[.;]", re.I),
        ImpactType.SECURITY,
    ),
)

AFFECTED_PHRASE = re.compile(
    r"\b(?:on|for|to|affects?|impacts?)\s+(?:the\s+)?([A-Z][\w-]*(?:\s+(?:(?:of|and)\s+(?:the\s+)?)?[A-Z][\w-]*){0,4})"
)

INDIRECT_MARKERS: Tuple[str, ...] = ("indirect", "indirectly", "secondary")


# ============================================================================
# Definitions
# ============================================================================

_OPEN_QUOTE = r"[\"'“‘]"
_CLOSE_QUOTE = r"[\"'”’]"
_TERM = r"([^\"'“”‘’]+)"
_DEFINITION = r"([^.;]+)[.;]"

DEFINITION_RULES: Tuple[PatternRule, ...] = (
    PatternRule(
        re.compile(rf"{_OPEN_QUOTE}{_TERM}{_CLOSE_QUOTE}\s+means\s+{_DEFINITION}", re.I),
        "means",
        (1, 2),
    ),
    PatternRule(
        re.compile(rf"{_OPEN_QUOTE}{_TERM}{_CLOSE_QUOTE}\s+refers\s+to\s+{_DEFINITION}", re.I),
        "refers_to",
        (1, 2),
    ),
    PatternRule(
        re.compile(rf"([A-Za-z ]+)\.--The term\s+{_OPEN_QUOTE}{_TERM}{_CLOSE_QUOTE}\s+means\s+{_DEFINITION}", re.I),
        "headed_term",
        (2, 3),
    ),
    PatternRule(
        re.compile(rf"\bThe term\s+{_OPEN_QUOTE}{_TERM}{_CLOSE_QUOTE}\s+means\s+{_DEFINITION}", re.I),
        "the_term",
        (1, 2),
    ),
    PatternRule(
        re.compile(
            rf"\bFor purposes of this (?:order|section|part),\s+{_OPEN_QUOTE}{_TERM}{_CLOSE_QUOTE}\s+means\s+{_DEFINITION}",
            re.I,
        ),
        "for_purposes",
        (1, 2),
    ),
    PatternRule(
        re.compile(
            rf"\bAs used in this (?:order|section|part),\s+{_OPEN_QUOTE}{_TERM}{_CLOSE_QUOTE}\s+means\s+{_DEFINITION}",
            re.I,
        ),
        "as_used",
        (1, 2),
    ),
)

_NEXT_SECTION = r"(?=(?:Sec\.|Section)\s+\d+\.|\Z)"

DEFINITIONS_SECTION_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(rf"(?:Sec\.|Section)\s+\d+\.\s+Definitions\.(.*?){_NEXT_SECTION}", re.S),
    re.compile(rf"^[ \t]*Definitions[.:]?[ \t]*$(.*?){_NEXT_SECTION}", re.S | re.M),
    # The lead-in opens the section, so it is part of the body
    re.compile(rf"(\bFor purposes of this order\b.*?){_NEXT_SECTION}", re.S | re.I),
)


# ============================================================================
# Authorities
# ============================================================================

# Citation text: stops at a comma, semicolon or sentence period; keeps U.S.C. and U.S. intact
_CITED = r"((?:U\.S\.C\.|U\.S\.(?=\s)|[^,;.])+)"
_CONSTITUTION = r"(?:United States Constitution|U\.S\. Constitution|Constitution of the United States)"

# Specific citation forms come before the catch-all legal rule so they keep their identity key
AUTHORITY_RULES: Tuple[PatternRule, ...] = (
    PatternRule(
        re.compile(
            r"By the authority vested in me(?:\s+as\s+([^,]+?))?\s+(?:by|under|pursuant to)\s+([^,;.]+)[,;.]",
            re.I,
        ),
        AuthorityType.PRESIDENTIAL,
    ),
    PatternRule(
        re.compile(r"\b(\d+)\s+U\.S\.C\.\s*(?:§+|sections?)?\s*(\d+[a-z]?(?:-\d+[a-z]?)?)", re.I),
        AuthorityType.USCODE,
    ),
    PatternRule(
        re.compile(r"\bPublic\s+Law\s+(\d+)\s*[-–]\s*(\d+)", re.I),
        AuthorityType.PUBLICLAW,
    ),
    PatternRule(
        re.compile(
            rf"{_CONSTITUTION}[^;.]{{0,80}}?\b(Article|Amendment)\s+([IVX]+|\d+)(?:[^;.]{{0,40}}?\bSection\s+(\d+))?",
            re.I,
        ),
        AuthorityType.CONSTITUTION,
    ),
    PatternRule(
        re.compile(
            r"\b(Article|Amendment)\s+([IVX]+|\d+)(?:,?\s+Section\s+(\d+))?\s+of\s+the\s+"
            r"(?:United States Constitution|U\.S\. Constitution|Constitution)",
            re.I,
        ),
        AuthorityType.CONSTITUTION,
    ),
    PatternRule(
        re.compile(
            rf"\bsections?\s+(\d+(?:\(\w+\))*(?:\s*(?:and|,)\s*\d+(?:\(\w+\))*)*)\s+of\s+(?:the\s+)?{_CITED}[,;.]",
            re.I,
        ),
        AuthorityType.STATUTE,
    ),
    PatternRule(
        re.compile(
            rf"\b(?:pursuant to|under the authority of|as authorized by|in accordance with)\s+{_CITED}[,;.]",
            re.I,
        ),
        AuthorityType.LEGAL,
    ),
)


# ============================================================================
# Keyword Tiers
# ============================================================================

PRIORITY_TIERS: Tuple[Tuple[Priority, Tuple[str, ...]], ...] = (
    (Priority.HIGH, ("immediately", "urgent", "high priority", "promptly", "expeditiously")),
    (Priority.MEDIUM, ("as soon as possible", "timely", "efficiently")),
    (Priority.LOW, ("as appropriate", "may", "consider", "evaluate")),
)

# Low is checked before medium
SEVERITY_TIERS: Tuple[Tuple[Severity, Tuple[str, ...]], ...] = (
    (Severity.HIGH, ("significant", "substantial", "major", "critical", "extensive")),
    (Severity.LOW, ("minimal", "minor", "limited", "small", "slight")),
    (Severity.MEDIUM, ("moderate", "considerable", "notable")),
)

TIMEFRAME_TIERS: Tuple[Tuple[Timeframe, Tuple[str, ...]], ...] = (
    (Timeframe.IMMEDIATE, ("immediate", "immediately", "instantly", "right away", "at once")),
    (Timeframe.SHORT_TERM, ("soon", "shortly", "near-term", "upcoming", "within days", "within weeks")),
    (Timeframe.MEDIUM_TERM, ("within months", "medium-term")),
    (Timeframe.LONG_TERM, ("long-term", "long range", "extended", "over years", "permanent")),
)

STOPWORDS = frozenset({
    "a", "an", "the", "and", "or", "but", "in", "on", "at", "by", "for", "with",
    "about", "to", "from", "of", "that", "this", "these", "those", "is", "are",
    "was", "were", "be", "been", "being", "have", "has", "had", "do", "does",
    "did", "shall", "will", "should", "would", "can", "could", "may", "might",
})

ENTITY_STOPWORDS = frozenset({
    "a", "an", "the", "this", "that", "these", "those", "each", "every", "some", "all",
})


@lru_cache(maxsize=None)
def _keyword_pattern(keyword: str) -> Pattern[str]:
    return re.compile(rf"(?<!\w){re.escape(keyword)}(?!\w)", re.I)


def has_keyword(text: str, keyword: str) -> bool:
    """Whole-word, case-insensitive keyword test."""
    return bool(text) and _keyword_pattern(keyword).search(text) is not None


def match_tier(text: str, tiers: Sequence[Tuple[Enum, Sequence[str]]], default: Enum) -> Enum:
    """
    Return the first tier whose keywords appear in text.

    Args:
        text: Clause to score
        tiers: Ordered (tier, keywords) pairs
        default: Tier returned when no keyword matches

    Returns:
        The matched tier or default
    """
    for tier, keywords in tiers:
        if any(has_keyword(text, keyword) for keyword in keywords):
            return tier
    return default
