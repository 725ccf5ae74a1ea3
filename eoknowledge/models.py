"""
Knowledge Models

Pydantic models for everything the extraction and fusion layers exchange:
1. Knowledge items (date, requirement, impact, entity, definition, authority)
2. Source documents handed in by the fetch layer
3. Per-source bundles produced by the orchestrator
4. Unified knowledge records produced by fusion

Features:
- Closed enumerations for knowledge types and every rule tag
- Content-derived identity keys and ids (stable across runs and sources)
- camelCase JSON shape via to_dict(), loadable with model_validate()
"""

import datetime as dt
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Tuple, Union, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from eoknowledge.utils import content_digest, normalize_text


BASE_CONFIDENCE = 0.5
MAX_CONFIDENCE = 0.95


# ============================================================================
# Enumerations
# ============================================================================

class KnowledgeType(str, Enum):
    """Kind of knowledge an extractor produces."""
    DATE = "date"
    REQUIREMENT = "requirement"
    IMPACT = "impact"
    ENTITY = "entity"
    DEFINITION = "definition"
    AUTHORITY = "authority"

    @property
    def field_name(self) -> str:
        """Plural field holding this type in a UnifiedKnowledgeRecord."""
        if self is KnowledgeType.ENTITY:
            return "entities"
        if self is KnowledgeType.AUTHORITY:
            return "authorities"
        return f"{self.value}s"


class DateType(str, Enum):
    EFFECTIVE = "effective"
    DEADLINE = "deadline"
    SUBMISSION = "submission"
    SIGNING = "signing"
    IMPLEMENTATION = "implementation"
    RELATIVE_DEADLINE = "relative_deadline"


class RequirementType(str, Enum):
    AGENCY_ACTION = "agency_action"
    PROHIBITION = "prohibition"
    REPORTING = "reporting"
    DEADLINE = "deadline"
    GENERAL = "general"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ImpactType(str, Enum):
    GENERAL = "general"
    FINANCIAL = "financial"
    COMPLIANCE = "compliance"
    OPERATIONAL = "operational"
    SECURITY = "security"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Timeframe(str, Enum):
    IMMEDIATE = "immediate"
    SHORT_TERM = "short-term"
    MEDIUM_TERM = "medium-term"
    LONG_TERM = "long-term"


class EntityType(str, Enum):
    AGENCY = "agency"
    ROLE = "role"
    CREATED_ENTITY = "created_entity"
    DEPARTMENT = "department"


class DefinitionScope(str, Enum):
    GLOBAL = "global"
    LOCAL = "local"


class AuthorityType(str, Enum):
    PRESIDENTIAL = "presidential"
    LEGAL = "legal"
    STATUTE = "statute"
    USCODE = "uscode"
    PUBLICLAW = "publiclaw"
    CONSTITUTION = "constitution"


# ============================================================================
# Base Model
# ============================================================================

class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class SourceInfo(CamelModel):
    """Attribution of a fused item to one contributing source."""
    source_id: str
    source_name: str = ""
    confidence: float = Field(..., ge=0.0, le=1.0)


# ============================================================================
# Knowledge Items
# ============================================================================

class KnowledgeItem(CamelModel):
    """One typed, confidence-scored fact extracted from text.

    Items are frozen; fusion attaches ``sources_info`` through
    ``model_copy`` instead of mutating the extractor's output.
    """

    model_config = ConfigDict(frozen=True)

    type: str
    source_id: str = ""
    source_name: str = ""
    confidence: float = Field(default=0.75, ge=0.0, le=1.0)
    text_evidence: str = ""
    text_context: str = ""
    sources_info: List[SourceInfo] = Field(default_factory=list)

    @property
    def knowledge_type(self) -> KnowledgeType:
        return KnowledgeType(self.type)

    def identity_key(self) -> Tuple[str, ...]:
        """Stable, content-derived key used to recognize the same fact."""
        raise NotImplementedError

    @computed_field
    @property
    def id(self) -> str:
        return f"{self.knowledge_type.value}-{content_digest(*self.identity_key())[:12]}"


class DateItem(KnowledgeItem):
    type: Literal["date"] = "date"
    date: dt.date
    date_type: DateType
    description: str = ""
    is_explicit: bool = True

    def identity_key(self) -> Tuple[str, ...]:
        return (self.date_type.value, self.date.isoformat())


class RequirementItem(KnowledgeItem):
    type: Literal["requirement"] = "requirement"
    requirement_type: RequirementType
    description: str
    target_entities: List[str] = Field(default_factory=list)
    priority: Priority = Priority.MEDIUM
    is_conditional: bool = False

    def identity_key(self) -> Tuple[str, ...]:
        return (content_digest(normalize_text(self.description)),)


class ImpactItem(KnowledgeItem):
    type: Literal["impact"] = "impact"
    impact_type: ImpactType
    description: str
    affected_entities: List[str] = Field(default_factory=list)
    severity: Severity = Severity.MEDIUM
    timeframe: Timeframe = Timeframe.MEDIUM_TERM
    is_indirect: bool = False
    related_requirement_ids: List[str] = Field(default_factory=list)

    def identity_key(self) -> Tuple[str, ...]:
        return (content_digest(normalize_text(self.description)),)


class EntityItem(KnowledgeItem):
    type: Literal["entity"] = "entity"
    name: str
    entity_type: EntityType
    aliases: List[str] = Field(default_factory=list)
    responsibilities: List[str] = Field(default_factory=list)
    is_created_by_order: bool = False

    def identity_key(self) -> Tuple[str, ...]:
        return (normalize_text(self.name),)


class DefinitionItem(KnowledgeItem):
    type: Literal["definition"] = "definition"
    term: str
    definition: str
    scope: DefinitionScope = DefinitionScope.LOCAL
    related_terms: List[str] = Field(default_factory=list)
    is_explicit: bool = True

    def identity_key(self) -> Tuple[str, ...]:
        return (normalize_text(self.term),)


class AuthorityItem(KnowledgeItem):
    type: Literal["authority"] = "authority"
    authority_type: AuthorityType
    citation: str
    description: str = ""

    def identity_key(self) -> Tuple[str, ...]:
        return (normalize_text(self.citation),)


AnyKnowledgeItem = Annotated[
    Union[DateItem, RequirementItem, ImpactItem, EntityItem, DefinitionItem, AuthorityItem],
    Field(discriminator="type"),
]


# ============================================================================
# Extraction Input / Output
# ============================================================================

class ExtractionContext(BaseModel):
    """Per-call context handed to every extractor."""

    model_config = ConfigDict(frozen=True)

    source_id: str = ""
    source_name: str = ""
    reference_date: Optional[dt.date] = None
    requirements: Optional[Tuple[RequirementItem, ...]] = None


class SourceDocument(CamelModel):
    """One source's plain-text rendering of a document."""

    text: str = Field(
        default="",
        validation_alias=AliasChoices("text", "fullText", "full_text"),
        serialization_alias="text",
    )
    reference_date: Optional[dt.date] = Field(
        default=None,
        validation_alias=AliasChoices("referenceDate", "reference_date", "signingDate", "signing_date"),
        serialization_alias="referenceDate",
    )
    source_id: str
    source_name: str = ""
    order_number: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("orderNumber", "order_number"),
        serialization_alias="orderNumber",
    )
    title: Optional[str] = None
    priority: int = 0
    yale_impact_areas: List[Dict[str, Any]] = Field(default_factory=list)
    yale_stakeholders: List[Dict[str, Any]] = Field(default_factory=list)
    requirements: Optional[List[RequirementItem]] = None

    def context(self) -> ExtractionContext:
        return ExtractionContext(
            source_id=self.source_id,
            source_name=self.source_name,
            reference_date=self.reference_date,
            requirements=tuple(self.requirements) if self.requirements is not None else None,
        )


class TypeResult(CamelModel):
    """Outcome of one extractor for one source.

    A failed extractor is recorded with ``success=False`` and its error
    message; it carries no items and no confidence.
    """

    items: List[AnyKnowledgeItem] = Field(default_factory=list)
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    processing_time_ms: float = 0.0
    success: bool = True
    error: Optional[str] = None

    @property
    def item_count(self) -> int:
        return len(self.items)


class PerSourceBundle(CamelModel):
    """All knowledge extracted from one source's rendering of a document."""

    source_id: str
    source_name: str = ""
    extraction_date: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))
    order_number: Optional[str] = None
    title: Optional[str] = None
    priority: int = 0
    yale_impact_areas: List[Dict[str, Any]] = Field(default_factory=list)
    yale_stakeholders: List[Dict[str, Any]] = Field(default_factory=list)
    by_type: Dict[KnowledgeType, TypeResult] = Field(default_factory=dict)

    def result(self, knowledge_type: KnowledgeType) -> Optional[TypeResult]:
        return self.by_type.get(KnowledgeType(knowledge_type))

    def items(self, knowledge_type: KnowledgeType) -> List[KnowledgeItem]:
        result = self.result(knowledge_type)
        if result is None or not result.success:
            return []
        return list(result.items)

    @property
    def failed_types(self) -> List[KnowledgeType]:
        return [t for t, result in self.by_type.items() if not result.success]

    def summary(self) -> Dict[str, Any]:
        """Item counts and failures for logging and reporting."""
        counts = {
            t.field_name: result.item_count
            for t, result in self.by_type.items()
            if result.success
        }
        return {
            "sourceId": self.source_id,
            "sourceName": self.source_name,
            "success": not self.failed_types,
            "extractionCounts": counts,
            "totalItems": sum(counts.values()),
            "errors": {
                t.value: self.by_type[t].error for t in self.failed_types
            },
        }


# ============================================================================
# Unified Record
# ============================================================================

class SourceRef(CamelModel):
    id: str
    name: str = ""


class ExtractionFailure(CamelModel):
    """A source/type pair whose extractor failed, surfaced after fusion."""
    source_id: str
    source_name: str = ""
    type: KnowledgeType
    error: str = ""


class UnifiedKnowledgeRecord(CamelModel):
    """Fused knowledge for one logical document across all sources."""

    order_number: Optional[str] = None
    title: Optional[str] = None
    dates: List[DateItem] = Field(default_factory=list)
    requirements: List[RequirementItem] = Field(default_factory=list)
    impacts: List[ImpactItem] = Field(default_factory=list)
    entities: List[EntityItem] = Field(default_factory=list)
    definitions: List[DefinitionItem] = Field(default_factory=list)
    authorities: List[AuthorityItem] = Field(default_factory=list)
    yale_impact_areas: List[Dict[str, Any]] = Field(default_factory=list)
    yale_stakeholders: List[Dict[str, Any]] = Field(default_factory=list)
    sources: List[SourceRef] = Field(default_factory=list)
    type_confidence: Dict[KnowledgeType, float] = Field(default_factory=dict)
    failures: List[ExtractionFailure] = Field(default_factory=list)
    overall_confidence: float = 0.0

    def items(self, knowledge_type: KnowledgeType) -> List[KnowledgeItem]:
        return list(getattr(self, KnowledgeType(knowledge_type).field_name))

    @property
    def item_count(self) -> int:
        return sum(len(self.items(t)) for t in KnowledgeType)
