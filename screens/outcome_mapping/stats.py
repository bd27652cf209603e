# screens/outcome_mapping/stats.py
from __future__ import annotations
from collections import Counter
from typing import Iterable

from .models import MappingEdge, MappingStats, Strength


def compute_stats(edges: Iterable[MappingEdge]) -> MappingStats:
    """Summary counts for one context's edges. Display only."""
    edges = list(edges)
    tiers = Counter(Strength.parse(e.strength) for e in edges)
    return MappingStats(
        total=len(edges),
        strong_count=tiers[Strength.STRONG],
        moderate_count=tiers[Strength.MODERATE],
        weak_count=tiers[Strength.WEAK],
        distinct_sources_mapped=len({e.source_outcome_id for e in edges}),
        distinct_targets_mapped=len({e.target_outcome_id for e in edges}),
    )
