# screens/outcome_mapping/matrix.py
"""
Mapping Matrix Builder.

Builds the source x target grid for one context from the outcome provider and
the mapping store. The grid is rebuilt from scratch on every call; nothing is
patched in place.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Tuple

import pandas as pd

from .models import MappingContext, MappingEdge, Outcome
from .helpers import OutcomeProvider, order_outcomes


class EdgeSource(Protocol):
    def get_all(self, context: MappingContext) -> List[MappingEdge]: ...


@dataclass(frozen=True)
class MatrixCell:
    source: Outcome
    target: Outcome
    edge: Optional[MappingEdge] = None

    @property
    def is_empty(self) -> bool:
        return self.edge is None


@dataclass
class MappingMatrix:
    context: MappingContext
    rows: List[Outcome]
    columns: List[Outcome]
    cells: List[List[MatrixCell]] = field(default_factory=list)

    def cell(self, source_id: int, target_id: int) -> MatrixCell:
        for r, src in enumerate(self.rows):
            if src.id != source_id:
                continue
            for c, tgt in enumerate(self.columns):
                if tgt.id == target_id:
                    return self.cells[r][c]
        raise KeyError((source_id, target_id))

    def edges(self) -> List[MappingEdge]:
        return [cell.edge for row in self.cells for cell in row if cell.edge is not None]

    def to_dataframe(self) -> pd.DataFrame:
        """Row codes x column codes; each cell is the strength number or blank."""
        data = [
            ["" if cell.is_empty else int(cell.edge.strength) for cell in row]
            for row in self.cells
        ]
        return pd.DataFrame(
            data,
            index=[o.reference_code for o in self.rows],
            columns=[o.reference_code for o in self.columns],
        )

    def to_csv(self) -> str:
        return self.to_dataframe().to_csv(index_label=self.context.kind.source_level.value)


class MatrixBuilder:
    def __init__(self, provider: OutcomeProvider, store: EdgeSource):
        self.provider = provider
        self.store = store

    def build(self, context: MappingContext) -> MappingMatrix:
        rows = order_outcomes(self.provider.list(context, context.kind.source_level))
        columns = order_outcomes(self.provider.list(context, context.kind.target_level))

        by_pair: Dict[Tuple[int, int], MappingEdge] = {
            e.pair: e for e in self.store.get_all(context)
        }
        cells = [
            [MatrixCell(src, tgt, by_pair.get((src.id, tgt.id))) for tgt in columns]
            for src in rows
        ]
        return MappingMatrix(context=context, rows=rows, columns=columns, cells=cells)
