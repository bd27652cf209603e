# screens/term_details/__init__.py
"""
Curriculum Term Details Module

Per-term plan of a curriculum batch (duration, credits, course counts,
academic year) and its approval lifecycle.

Main components:
- models: Term rows, curriculum info and approval enums
- totals: Live column totals
- db: SqlTermDetailService (rows and approval records)
- workflow: TermPlanWorkflow and the approval state machine
- page: Streamlit UI (main entry point)
"""

from .models import (
    TermDetail,
    CurriculumInfo,
    TermPlanSnapshot,
    TermPlanTotals,
    ApprovalState,
    ApprovalStatus,
    STATE_LABELS,
)

from .db import SqlTermDetailService
from .workflow import TermPlanWorkflow, transition

# Re-export main function for direct page access
from .page import main

__all__ = [
    'TermDetail',
    'CurriculumInfo',
    'TermPlanSnapshot',
    'TermPlanTotals',
    'ApprovalState',
    'ApprovalStatus',
    'STATE_LABELS',
    'SqlTermDetailService',
    'TermPlanWorkflow',
    'transition',
    'main',
]
