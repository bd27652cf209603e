# screens/outcome_mapping/models.py
"""
Data models for CO->PO and PO->PEO outcome mapping.
Contains enums, dataclasses and the level adjacency rules.
"""

from __future__ import annotations
from typing import Optional, List, Dict, Union
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum


# ============================================================================
# ENUMS
# ============================================================================

class OutcomeLevel(str, Enum):
    """Outcome hierarchy, lowest first."""
    CO = "CO"    # Course Outcome
    PO = "PO"    # Program Outcome
    PEO = "PEO"  # Program Educational Objective


LEVEL_ORDER: List[OutcomeLevel] = [OutcomeLevel.CO, OutcomeLevel.PO, OutcomeLevel.PEO]


class Strength(IntEnum):
    """Ordinal contribution strength of a mapping edge."""
    WEAK = 1
    MODERATE = 2
    STRONG = 3

    @classmethod
    def parse(cls, raw: Union[int, str, "Strength", None]) -> "Strength":
        """Accepts 1/2/3, "1".."3" or WEAK/MODERATE/STRONG (any case)."""
        if isinstance(raw, Strength):
            return raw
        if isinstance(raw, bool) or raw is None:
            raise ValueError(f"Invalid strength {raw!r}")
        if isinstance(raw, int):
            return cls(raw)
        text = str(raw).strip()
        if text.isdigit():
            return cls(int(text))
        try:
            return cls[text.upper()]
        except KeyError:
            raise ValueError(f"Invalid strength {raw!r}") from None

    @property
    def label(self) -> str:
        return self.name.title()


class ContextKind(str, Enum):
    """Which pair of adjacent levels a mapping context covers."""
    CO_PO = "CO_PO"
    PO_PEO = "PO_PEO"

    @property
    def source_level(self) -> OutcomeLevel:
        return OutcomeLevel.CO if self is ContextKind.CO_PO else OutcomeLevel.PO

    @property
    def target_level(self) -> OutcomeLevel:
        return OutcomeLevel.PO if self is ContextKind.CO_PO else OutcomeLevel.PEO


def are_adjacent(source: OutcomeLevel, target: OutcomeLevel) -> bool:
    """True only for CO->PO and PO->PEO."""
    return LEVEL_ORDER.index(target) - LEVEL_ORDER.index(source) == 1


# ============================================================================
# DATA CLASSES
# ============================================================================

@dataclass(frozen=True)
class Outcome:
    """A CO / PO / PEO statement as supplied by the outcome provider."""
    id: int
    reference_code: str
    statement: str
    level: OutcomeLevel
    type: Optional[str] = None
    flags: frozenset = frozenset()


@dataclass(frozen=True)
class MappingContext:
    """
    Scope of edge uniqueness.
    CO_PO: context_id is a course id. PO_PEO: context_id is the curriculum id.
    """
    kind: ContextKind
    context_id: int
    curriculum_id: int

    @classmethod
    def for_course(cls, course_id: int, curriculum_id: int) -> "MappingContext":
        return cls(ContextKind.CO_PO, course_id, curriculum_id)

    @classmethod
    def for_curriculum(cls, curriculum_id: int) -> "MappingContext":
        return cls(ContextKind.PO_PEO, curriculum_id, curriculum_id)

    @property
    def key(self) -> tuple:
        return (self.kind.value, self.context_id)


@dataclass
class MappingEdge:
    """One weighted, justified link between adjacent-level outcomes."""
    context: MappingContext
    source_outcome_id: int
    target_outcome_id: int
    strength: Strength
    justification: str = ""
    contribution_descriptor: str = ""
    id: Optional[int] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def pair(self) -> tuple:
        return (self.source_outcome_id, self.target_outcome_id)

    def as_audit_dict(self) -> Dict:
        return {
            "strength": int(self.strength),
            "justification": self.justification,
            "contribution_descriptor": self.contribution_descriptor,
        }


@dataclass
class EditBuffer:
    """Working copy of one edge while the edit dialog is open."""
    context: MappingContext
    source: Outcome
    target: Outcome
    strength: Union[int, str, Strength] = Strength.WEAK
    justification: str = ""
    contribution_descriptor: str = ""
    existing_id: Optional[int] = None
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def is_new(self) -> bool:
        return self.existing_id is None


@dataclass(frozen=True)
class MappingStats:
    total: int = 0
    strong_count: int = 0
    moderate_count: int = 0
    weak_count: int = 0
    distinct_sources_mapped: int = 0
    distinct_targets_mapped: int = 0


# ============================================================================
# CONSTANTS
# ============================================================================

LEVEL_LABELS = {
    OutcomeLevel.CO: "COs (Course Outcomes)",
    OutcomeLevel.PO: "POs (Program Outcomes)",
    OutcomeLevel.PEO: "PEOs (Program Educational Objectives)",
}

CONTEXT_LABELS = {
    ContextKind.CO_PO: "CO → PO Mapping",
    ContextKind.PO_PEO: "PO → PEO Mapping",
}

STRENGTH_DESCRIPTIONS = {
    Strength.WEAK: "Slight contribution (1)",
    Strength.MODERATE: "Moderate contribution (2)",
    Strength.STRONG: "Substantial contribution (3)",
}
