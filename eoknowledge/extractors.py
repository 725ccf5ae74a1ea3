"""
Knowledge Extractors

Rule-driven extractors turning executive-order text into typed knowledge items:
1. Dates (explicit calendar dates and relative deadlines)
2. Requirements (agency actions, prohibitions, reporting, deadlines)
3. Impacts (general, financial, compliance, operational, security)
4. Entities (agencies, roles, created bodies, cabinet departments)
5. Definitions (defined terms, with a Definitions section boosting scope)
6. Authorities (presidential, statutory, U.S. Code, Public Law, Constitution)

Features:
- Ordered pattern tables from eoknowledge.patterns
- Per-item and per-run confidence scoring
- Malformed matches skipped and logged, never raised
- No mutable state: one extractor instance is safe to share between threads
"""

import datetime as dt
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Type

from dateutil.relativedelta import relativedelta

from eoknowledge.config import settings
from eoknowledge.models import (
    BASE_CONFIDENCE,
    MAX_CONFIDENCE,
    AuthorityItem,
    AuthorityType,
    DateItem,
    DefinitionItem,
    DefinitionScope,
    EntityItem,
    EntityType,
    ExtractionContext,
    ImpactItem,
    KnowledgeItem,
    KnowledgeType,
    Priority,
    RequirementItem,
    RequirementType,
    Severity,
    Timeframe,
)
from eoknowledge.patterns import (
    AFFECTED_PHRASE,
    AUTHORITY_RULES,
    CONDITIONAL_MARKERS,
    DATE_PARTS,
    DATE_RULES,
    DEFINITION_RULES,
    DEFINITIONS_SECTION_PATTERNS,
    ENTITY_RULES,
    ENTITY_STOPWORDS,
    FALLBACK,
    IMPACT_RULES,
    INDIRECT_MARKERS,
    PRIORITY_TIERS,
    RECIPIENT_TRAILER,
    RELATIVE,
    REQUIREMENT_RULES,
    SEVERITY_TIERS,
    STOPWORDS,
    TIMEFRAME_TIERS,
    PatternRule,
    has_keyword,
    match_tier,
)

logger = logging.getLogger(__name__)


class MalformedMatchError(ValueError):
    """A pattern matched but the match cannot become a valid item."""


@dataclass
class ExtractionResult:
    """Items produced by one extractor run with the run's confidence."""
    items: List[KnowledgeItem] = field(default_factory=list)
    confidence: float = BASE_CONFIDENCE

    def to_dict(self) -> Dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "confidence": self.confidence,
        }


# ============================================================================
# Shared Helpers
# ============================================================================

MONTHS = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sep": 9, "sept": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}

_MONTH_DATE_PARTS = re.compile(r"([A-Za-z]+)\.?\s+(\d{1,2}),?\s+(\d{4})")
_SENTENCE_END = re.compile(r"[.!?](?=\s|$)")
_SENTENCE = re.compile(r"[^.!?]+[.!?]?")


def score_confidence(item_confidences: Sequence[float], count_threshold: int, bonus: float = 0.0) -> float:
    """
    Score one extractor run.

    Args:
        item_confidences: Confidence of every item produced
        count_threshold: Item count from which the +0.1 count bonus applies
        bonus: Type-specific secondary bonus

    Returns:
        Confidence in [0.5, 0.95], or 0.5 when nothing was found
    """
    if not item_confidences:
        return BASE_CONFIDENCE

    score = sum(item_confidences) / len(item_confidences)
    if len(item_confidences) >= count_threshold:
        score += 0.1
    score += bonus
    return round(max(BASE_CONFIDENCE, min(MAX_CONFIDENCE, score)), 4)


def parse_month_date(raw: str, day: Optional[str] = None, year: Optional[str] = None) -> dt.date:
    """
    Parse "Month D, YYYY" (or month/day/year parts) into a date.

    Raises:
        MalformedMatchError: Unknown month name or impossible calendar date
    """
    if day is None:
        match = _MONTH_DATE_PARTS.search(raw)
        if not match:
            raise MalformedMatchError(f"Unrecognized date: {raw!r}")
        raw, day, year = match.groups()

    month = MONTHS.get(raw.strip().rstrip(".").lower())
    if month is None:
        raise MalformedMatchError(f"Unknown month: {raw!r}")
    try:
        return dt.date(int(year), month, int(day))
    except ValueError as e:
        raise MalformedMatchError(f"Invalid date {raw} {day}, {year}: {e}") from e


def strip_leading_the(name: str) -> str:
    return re.sub(r"^the\s+", "", name.strip(), flags=re.IGNORECASE)


def collapse_whitespace(text: str) -> str:
    return " ".join(text.split())


def clean_clause(text: str) -> str:
    """Single-spaced clause without trailing punctuation, first letter capitalized."""
    text = collapse_whitespace(text).rstrip(".;, ")
    return text[:1].upper() + text[1:]


def enclosing_sentence(text: str, start: int, end: int) -> str:
    """Sentence of text around the span [start, end)."""
    left = max(text.rfind(mark, 0, start) for mark in (". ", "! ", "? ", "\n"))
    left = 0 if left < 0 else left + 1
    right_match = _SENTENCE_END.search(text, max(end - 1, left))
    right = right_match.end() if right_match else len(text)
    return text[left:right].strip()


def unique_names(names: Iterable[str]) -> List[str]:
    """Case-insensitive ordered de-duplication."""
    seen = set()
    result = []
    for name in names:
        key = name.lower()
        if key and key not in seen:
            seen.add(key)
            result.append(name)
    return result


def find_entity_names(text: str) -> List[str]:
    """Names matched by the entity rules in text, in order of appearance."""
    found: List[Tuple[int, str]] = []
    for rule in ENTITY_RULES:
        for match in rule.pattern.finditer(text):
            name = collapse_whitespace(strip_leading_the(match.group(1)))
            if len(name) >= settings.min_entity_name_length:
                found.append((match.start(1), name))
    return unique_names(name for _, name in sorted(found, key=lambda pair: pair[0]))


def keywords(text: str) -> set:
    """Lowercase words longer than two characters that are not stopwords."""
    return {word for word in re.findall(r"\w+", text.lower()) if len(word) > 2 and word not in STOPWORDS}


def is_related(text_a: str, text_b: str, threshold: Optional[float] = None) -> bool:
    """Keyword-overlap relatedness: |A ∩ B| / min(|A|, |B|) above threshold."""
    if threshold is None:
        threshold = settings.relatedness_threshold
    keys_a, keys_b = keywords(text_a), keywords(text_b)
    if not keys_a or not keys_b:
        return False
    return len(keys_a & keys_b) / min(len(keys_a), len(keys_b)) > threshold


def link_requirements(impacts: Sequence[ImpactItem], requirements: Sequence[RequirementItem]) -> List[ImpactItem]:
    """
    Attach related requirement ids to impacts.

    Args:
        impacts: Impact items to link
        requirements: Requirements to link against

    Returns:
        New impact items with related_requirement_ids set
    """
    linked = []
    for impact in impacts:
        related = [
            requirement.id
            for requirement in requirements
            if is_related(impact.description, requirement.description)
        ]
        linked.append(impact.model_copy(update={"related_requirement_ids": unique_names(related)}))
    return linked


# ============================================================================
# Base Extractor
# ============================================================================

class BaseExtractor(ABC):
    """Scans text with an ordered rule table and scores the run."""

    knowledge_type: KnowledgeType
    rules: Tuple[PatternRule, ...] = ()
    count_threshold: int = 3

    def extract(self, text: str, context: Optional[ExtractionContext] = None) -> ExtractionResult:
        """
        Extract items from text.

        Args:
            text: Plain text of one source's rendering of a document
            context: Source attribution, reference date, known requirements

        Returns:
            ExtractionResult (no items and confidence 0.5 for empty text)
        """
        if not isinstance(text, str) or not text.strip():
            return ExtractionResult([], BASE_CONFIDENCE)

        context = context or ExtractionContext()
        items = self._collapse(self._candidates(text, context))
        items = self._finalize(items, text, context)
        return ExtractionResult(items, self.confidence(items))

    def confidence(self, items: Sequence[KnowledgeItem]) -> float:
        return score_confidence([item.confidence for item in items], self.count_threshold, self._bonus(items))

    def _bonus(self, items: Sequence[KnowledgeItem]) -> float:
        return 0.0

    def _candidates(self, text: str, context: ExtractionContext) -> List[Tuple[int, KnowledgeItem]]:
        """Every item built from a rule match, paired with its match position."""
        candidates = []
        claimed: List[Tuple[int, int]] = []

        for rule in self.rules:
            for match in rule.pattern.finditer(text):
                if rule.hint == FALLBACK and any(
                    match.start() < end and start < match.end() for start, end in claimed
                ):
                    continue
                try:
                    item = self._build(match, rule, text, context)
                except (ValueError, IndexError) as e:
                    logger.debug(f"Skipping malformed {self.knowledge_type.value} match {match.group(0)[:80]!r}: {e}")
                    continue
                if item is None:
                    continue
                if rule.hint != FALLBACK:
                    claimed.append(match.span())
                candidates.append((match.start(), item))

        return candidates

    def _collapse(self, candidates: Sequence[Tuple[int, KnowledgeItem]]) -> List[KnowledgeItem]:
        """Keep the first item per identity key."""
        collapsed: Dict[Tuple[str, ...], KnowledgeItem] = {}
        for _, item in candidates:
            collapsed.setdefault(item.identity_key(), item)
        return list(collapsed.values())

    def _finalize(self, items: List[KnowledgeItem], text: str, context: ExtractionContext) -> List[KnowledgeItem]:
        return items

    @abstractmethod
    def _build(self, match: re.Match, rule: PatternRule, text: str, context: ExtractionContext) -> Optional[KnowledgeItem]:
        """Turn one match into an item, or None to drop it."""

    def _common(self, match: re.Match, text: str, context: ExtractionContext) -> Dict:
        return {
            "source_id": context.source_id,
            "source_name": context.source_name,
            "text_evidence": collapse_whitespace(match.group(0)),
            "text_context": self._text_context(text, match.start(), match.end()),
        }

    @staticmethod
    def _text_context(text: str, start: int, end: int) -> str:
        window = settings.context_window
        return collapse_whitespace(text[max(0, start - window):end + window])


# ============================================================================
# Date Extractor
# ============================================================================

class DateExtractor(BaseExtractor):
    knowledge_type = KnowledgeType.DATE
    rules = DATE_RULES
    count_threshold = 3

    def _build(self, match, rule, text, context):
        label = rule.tag.value.replace("_", " ").capitalize()

        if rule.hint == RELATIVE:
            amount = int(match.group(1))
            unit = match.group(2).lower()
            reference = context.reference_date or dt.date.today()
            try:
                date = reference + relativedelta(**{f"{unit}s": amount})
            except OverflowError as e:
                raise MalformedMatchError(f"{amount} {unit}s after {reference} is out of range") from e
            plural = "s" if amount != 1 else ""
            return DateItem(
                date=date,
                date_type=rule.tag,
                description=f"{label} date: {amount} {unit}{plural} after {reference.isoformat()}",
                is_explicit=False,
                confidence=0.6,
                **self._common(match, text, context),
            )

        if rule.hint == DATE_PARTS:
            day, month, year = match.group(1), match.group(2), match.group(3)
            date = parse_month_date(month, day=day, year=year)
        else:
            date = parse_month_date(match.group(1))

        return DateItem(
            date=date,
            date_type=rule.tag,
            description=f"{label} date: {date.strftime('%B')} {date.day}, {date.year}",
            is_explicit=True,
            confidence=0.8,
            **self._common(match, text, context),
        )


# ============================================================================
# Requirement Extractor
# ============================================================================

class RequirementExtractor(BaseExtractor):
    knowledge_type = KnowledgeType.REQUIREMENT
    rules = REQUIREMENT_RULES
    count_threshold = 5

    def _build(self, match, rule, text, context):
        sentence = enclosing_sentence(text, match.start(), match.end())

        if rule.tag is RequirementType.AGENCY_ACTION:
            subject = collapse_whitespace(strip_leading_the(match.group(1)))
            action = collapse_whitespace(match.group(2))
            description = f"{subject} shall {action}"
            targets = [subject]
        elif rule.tag is RequirementType.REPORTING:
            description = clean_clause(match.group(0))
            recipient = match.group(2)
            if recipient:
                recipient = collapse_whitespace(RECIPIENT_TRAILER.sub("", recipient)).rstrip(",")
            targets = [recipient] if recipient else find_entity_names(sentence)
        else:
            description = clean_clause(match.group(0))
            targets = find_entity_names(sentence)

        if not description:
            raise MalformedMatchError("Empty requirement clause")

        return RequirementItem(
            requirement_type=rule.tag,
            description=description,
            target_entities=unique_names(targets),
            priority=match_tier(match.group(0), PRIORITY_TIERS, Priority.MEDIUM),
            is_conditional=any(has_keyword(sentence, marker) for marker in CONDITIONAL_MARKERS),
            confidence=0.75,
            **self._common(match, text, context),
        )


# ============================================================================
# Impact Extractor
# ============================================================================

class ImpactExtractor(BaseExtractor):
    knowledge_type = KnowledgeType.IMPACT
    rules = IMPACT_RULES
    count_threshold = 3

    def _build(self, match, rule, text, context):
        clause = match.group(0)
        sentence = enclosing_sentence(text, match.start(), match.end())
        affected = find_entity_names(clause) + [
            collapse_whitespace(phrase.group(1))
            for phrase in AFFECTED_PHRASE.finditer(clause)
            if phrase.group(1).lower() not in ENTITY_STOPWORDS
        ]

        return ImpactItem(
            impact_type=rule.tag,
            description=clean_clause(clause),
            affected_entities=unique_names(affected),
            severity=match_tier(sentence, SEVERITY_TIERS, Severity.MEDIUM),
            timeframe=match_tier(sentence, TIMEFRAME_TIERS, Timeframe.MEDIUM_TERM),
            is_indirect=any(has_keyword(sentence, marker) for marker in INDIRECT_MARKERS),
            confidence=0.7,
            **self._common(match, text, context),
        )

    def _finalize(self, items, text, context):
        if context.requirements is None:
            return items
        return link_requirements(items, context.requirements)

    def _bonus(self, items):
        if not items:
            return 0.0
        linked = sum(1 for item in items if item.related_requirement_ids)
        return 0.1 * linked / len(items)


# ============================================================================
# Entity Extractor
# ============================================================================

class EntityExtractor(BaseExtractor):
    knowledge_type = KnowledgeType.ENTITY
    rules = ENTITY_RULES
    count_threshold = 5

    def _build(self, match, rule, text, context):
        name = collapse_whitespace(strip_leading_the(match.group(1)))
        if len(name) < settings.min_entity_name_length:
            return None
        alias = match.group(2)

        return EntityItem(
            name=name,
            entity_type=rule.tag,
            aliases=[alias] if alias else [],
            is_created_by_order=rule.tag is EntityType.CREATED_ENTITY,
            confidence=0.9 if rule.tag is EntityType.DEPARTMENT else 0.8,
            **self._common(match, text, context),
        )

    def _collapse(self, candidates):
        """Keep the first item per name, merging aliases from repeats."""
        collapsed: Dict[Tuple[str, ...], EntityItem] = {}
        for _, item in candidates:
            key = item.identity_key()
            existing = collapsed.get(key)
            if existing is None:
                collapsed[key] = item
                continue
            aliases = unique_names(existing.aliases + item.aliases)
            if aliases != existing.aliases:
                collapsed[key] = existing.model_copy(update={"aliases": aliases})
        return list(collapsed.values())

    def _finalize(self, items, text, context):
        sentences = [collapse_whitespace(s) for s in _SENTENCE.findall(text)]
        duties = [s for s in sentences if any(has_keyword(s, verb) for verb in ("shall", "must", "will"))]

        finalized = []
        for item in items:
            name = item.name.lower()
            responsibilities = unique_names(s for s in duties if name in s.lower())
            finalized.append(item.model_copy(update={"responsibilities": responsibilities}))
        return finalized

    def _bonus(self, items):
        if not items:
            return 0.0
        with_duties = sum(1 for item in items if item.responsibilities)
        return 0.1 * with_duties / len(items)


# ============================================================================
# Definition Extractor
# ============================================================================

def find_definitions_section(text: str) -> Optional[Tuple[int, int]]:
    """Span of the Definitions section body, if the text has one."""
    for pattern in DEFINITIONS_SECTION_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.span(1)
    return None


class DefinitionExtractor(BaseExtractor):
    knowledge_type = KnowledgeType.DEFINITION
    rules = DEFINITION_RULES
    count_threshold = 5

    def _candidates(self, text, context):
        """Candidates inside the Definitions section become global."""
        candidates = super()._candidates(text, context)
        section = find_definitions_section(text)
        if section is None:
            return candidates

        start, end = section
        return [
            (position, item.model_copy(update={"scope": DefinitionScope.GLOBAL, "confidence": 0.9}))
            if start <= position < end else (position, item)
            for position, item in candidates
        ]

    def _build(self, match, rule, text, context):
        term_group, definition_group = rule.hint
        term = collapse_whitespace(match.group(term_group)).strip(" ,.")
        definition = collapse_whitespace(match.group(definition_group))
        if not term or not definition:
            raise MalformedMatchError("Empty term or definition")

        return DefinitionItem(
            term=term,
            definition=definition,
            scope=DefinitionScope.LOCAL,
            is_explicit=True,
            confidence=0.8,
            **self._common(match, text, context),
        )

    def _collapse(self, candidates):
        """Section terms first, then earliest position; first per term wins."""
        ordered = sorted(candidates, key=lambda pair: (pair[1].scope is not DefinitionScope.GLOBAL, pair[0]))
        return super()._collapse(ordered)

    def _finalize(self, items, text, context):
        finalized = []
        for item in items:
            definition = item.definition.lower()
            related = [
                other.term for other in items
                if other.term.lower() != item.term.lower() and other.term.lower() in definition
            ]
            finalized.append(item.model_copy(update={"related_terms": unique_names(related)}))
        return finalized

    def _bonus(self, items):
        if not items:
            return 0.0
        with_related = sum(1 for item in items if item.related_terms)
        return 0.05 * with_related / len(items)


# ============================================================================
# Authority Extractor
# ============================================================================

class AuthorityExtractor(BaseExtractor):
    knowledge_type = KnowledgeType.AUTHORITY
    rules = AUTHORITY_RULES
    count_threshold = 3

    def _build(self, match, rule, text, context):
        tag = rule.tag

        if tag is AuthorityType.PRESIDENTIAL:
            office = collapse_whitespace(match.group(1) or "")
            basis = collapse_whitespace(match.group(2))
            citation = basis
            if office:
                description = f"Presidential authority as {office} under {basis}"
            else:
                description = f"Presidential authority under {basis}"
        elif tag is AuthorityType.LEGAL:
            citation = collapse_whitespace(match.group(1))
            description = f"Authority pursuant to {citation}"
        elif tag is AuthorityType.STATUTE:
            sections = collapse_whitespace(match.group(1))
            act = collapse_whitespace(match.group(2))
            citation = f"Section {sections} of {act}"
            description = f"Authority under section {sections} of {act}"
        elif tag is AuthorityType.USCODE:
            citation = f"{match.group(1)} U.S.C. § {match.group(2)}"
            description = f"Authority under {citation}"
        elif tag is AuthorityType.PUBLICLAW:
            citation = f"Public Law {match.group(1)}-{match.group(2)}"
            description = f"Authority under {citation}"
        else:
            kind = match.group(1).capitalize()
            citation = f"U.S. Constitution, {kind} {match.group(2).upper()}"
            if match.group(3):
                citation += f", Section {match.group(3)}"
            description = f"Constitutional authority under {citation}"

        if not citation:
            raise MalformedMatchError("Empty citation")

        return AuthorityItem(
            authority_type=tag,
            citation=citation,
            description=description,
            confidence=0.9 if tag in (AuthorityType.USCODE, AuthorityType.CONSTITUTION) else 0.8,
            **self._common(match, text, context),
        )

    def _bonus(self, items):
        bonus = 0.0
        if any(item.authority_type is AuthorityType.USCODE for item in items):
            bonus += 0.05
        if any(item.authority_type is AuthorityType.CONSTITUTION for item in items):
            bonus += 0.05
        return bonus


EXTRACTORS: Dict[KnowledgeType, Type[BaseExtractor]] = {
    KnowledgeType.DATE: DateExtractor,
    KnowledgeType.REQUIREMENT: RequirementExtractor,
    KnowledgeType.IMPACT: ImpactExtractor,
    KnowledgeType.ENTITY: EntityExtractor,
    KnowledgeType.DEFINITION: DefinitionExtractor,
    KnowledgeType.AUTHORITY: AuthorityExtractor,
}
