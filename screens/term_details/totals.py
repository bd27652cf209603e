# screens/term_details/totals.py
from __future__ import annotations
from typing import Iterable

from .models import TermDetail, TermPlanTotals


def _num(value) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0


def compute_totals(rows: Iterable[TermDetail]) -> TermPlanTotals:
    """Sum credits, theory and practical counts across all rows. Not cached."""
    credits = 0.0
    theory = 0
    practical = 0
    for row in rows:
        credits += _num(row.credits)
        theory += int(_num(row.theory_course_count))
        practical += int(_num(row.practical_other_count))
    if credits.is_integer():
        credits = int(credits)
    return TermPlanTotals(credits=credits, theory_course_count=theory, practical_other_count=practical)
