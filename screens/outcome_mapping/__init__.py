# screens/outcome_mapping/__init__.py
"""
Outcome Mapping Module

CO -> PO mappings per course and PO -> PEO mappings per curriculum batch.
Each mapping is a weighted (1-3), justified edge between adjacent levels.

Main components:
- models: Data models, enums and the level adjacency rules
- helpers: Outcome provider, lookups and ordering utilities
- store: MappingStore (persistence and audit trail)
- matrix: MatrixBuilder and the MappingMatrix grid
- stats: Aggregate counts for a context
- editor: MappingEditor (validation and commit of one edge)
- page: Streamlit UI (main entry point)

Usage:
    From Streamlit navigation:
        st.Page("screens/outcome_mapping/page.py", title="Outcome Mapping")

    Programmatic access:
        from screens.outcome_mapping.store import MappingStore
        from screens.outcome_mapping.models import MappingContext, MappingEdge
"""

from .models import (
    OutcomeLevel,
    Strength,
    ContextKind,
    Outcome,
    MappingContext,
    MappingEdge,
    EditBuffer,
    MappingStats,
    CONTEXT_LABELS,
)

from .store import MappingStore
from .matrix import MappingMatrix, MatrixBuilder
from .editor import MappingEditor

# Re-export main function for direct page access
from .page import main

__all__ = [
    # Data models
    'Outcome',
    'MappingContext',
    'MappingEdge',
    'EditBuffer',
    'MappingStats',

    # Enums
    'OutcomeLevel',
    'Strength',
    'ContextKind',

    # Constants
    'CONTEXT_LABELS',

    # Services
    'MappingStore',
    'MappingMatrix',
    'MatrixBuilder',
    'MappingEditor',

    # Main function
    'main',
]

__version__ = '1.0.0'
