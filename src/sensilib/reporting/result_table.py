"""
Tabular results of sensitivity runs.

One ResultTable holds the rows of a run. Its columns are fixed when the
table is created:

    Category, Element, [Curve Tenor], Pricer, Delta, [Gamma],
    [Hedge Tenor, Hedge Delta, Hedge Notional]

Rows are appended in two steps: new_row() hands out a detached row,
the caller fills it, add_row() commits it. Writing a disabled column
is ignored and reading it gives the default value.
"""

from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

import pandas as pd

CATEGORY = "Category"
ELEMENT = "Element"
CURVE_TENOR = "Curve Tenor"
PRICER = "Pricer"
DELTA = "Delta"
GAMMA = "Gamma"
HEDGE_TENOR = "Hedge Tenor"
HEDGE_DELTA = "Hedge Delta"
HEDGE_NOTIONAL = "Hedge Notional"


class ResultRow:
    """
    A row of a ResultTable.

    Attributes:
        category: Curve category, or "all"
        element: Names of the bumped curves
        pricer: Pricer name
        delta: First-order sensitivity
    """

    def __init__(self, table: "ResultTable"):
        self._table = table
        self.category: str = ""
        self.element: str = ""
        self.pricer: str = ""
        self.delta: float = 0.0
        self._curve_tenor: Optional[str] = None
        self._gamma = 0.0
        self._hedge_tenor: Optional[str] = None
        self._hedge_delta = 0.0
        self._hedge_notional = 0.0

    @property
    def table(self) -> "ResultTable":
        return self._table

    @property
    def curve_tenor(self) -> Optional[str]:
        return self._curve_tenor if self._table.include_curve_tenor else None

    @curve_tenor.setter
    def curve_tenor(self, value: Optional[str]):
        if self._table.include_curve_tenor:
            self._curve_tenor = value

    @property
    def gamma(self) -> float:
        return self._gamma if self._table.calc_gamma else 0.0

    @gamma.setter
    def gamma(self, value: float):
        if self._table.calc_gamma:
            self._gamma = float(value)

    @property
    def hedge_tenor(self) -> Optional[str]:
        return self._hedge_tenor if self._table.calc_hedge else None

    @hedge_tenor.setter
    def hedge_tenor(self, value: Optional[str]):
        if self._table.calc_hedge:
            self._hedge_tenor = value

    @property
    def hedge_delta(self) -> float:
        return self._hedge_delta if self._table.calc_hedge else 0.0

    @hedge_delta.setter
    def hedge_delta(self, value: float):
        if self._table.calc_hedge:
            self._hedge_delta = float(value)

    @property
    def hedge_notional(self) -> float:
        return self._hedge_notional if self._table.calc_hedge else 0.0

    @hedge_notional.setter
    def hedge_notional(self, value: float):
        if self._table.calc_hedge:
            self._hedge_notional = float(value)

    def to_dict(self) -> Dict[str, Any]:
        """Values of the table's columns, in column order."""
        values = {
            CATEGORY: self.category,
            ELEMENT: self.element,
            CURVE_TENOR: self.curve_tenor,
            PRICER: self.pricer,
            DELTA: self.delta,
            GAMMA: self.gamma,
            HEDGE_TENOR: self.hedge_tenor,
            HEDGE_DELTA: self.hedge_delta,
            HEDGE_NOTIONAL: self.hedge_notional,
        }
        return {c: values[c] for c in self._table.columns}

    def __repr__(self) -> str:
        return f"ResultRow({self.to_dict()})"


class ResultTable:
    """
    Rows of a sensitivity run with a fixed column set.

    Attributes:
        metadata: Free-form run information (elapsed time, cancellation)
    """

    def __init__(
        self,
        calc_gamma: bool = False,
        calc_hedge: bool = False,
        include_curve_tenor: bool = True
    ):
        self._calc_gamma = bool(calc_gamma)
        self._calc_hedge = bool(calc_hedge)
        self._include_curve_tenor = bool(include_curve_tenor)
        self._rows: List[ResultRow] = []
        self.metadata: Dict[str, Any] = {}

    @property
    def calc_gamma(self) -> bool:
        return self._calc_gamma

    @property
    def calc_hedge(self) -> bool:
        return self._calc_hedge

    @property
    def include_curve_tenor(self) -> bool:
        return self._include_curve_tenor

    @property
    def columns(self) -> List[str]:
        columns = [CATEGORY, ELEMENT]
        if self._include_curve_tenor:
            columns.append(CURVE_TENOR)
        columns += [PRICER, DELTA]
        if self._calc_gamma:
            columns.append(GAMMA)
        if self._calc_hedge:
            columns += [HEDGE_TENOR, HEDGE_DELTA, HEDGE_NOTIONAL]
        return columns

    @property
    def rows(self) -> List[ResultRow]:
        return list(self._rows)

    def new_row(self) -> ResultRow:
        """Create a row bound to this table; it is not part of the table yet."""
        return ResultRow(self)

    def add_row(self, row: ResultRow) -> None:
        """Commit a row created by new_row()."""
        if row.table is not self:
            raise ValueError("Row belongs to a different table")
        self._rows.append(row)

    def to_dataframe(self) -> pd.DataFrame:
        """Rows as a DataFrame with the table's columns."""
        return pd.DataFrame([r.to_dict() for r in self._rows], columns=self.columns)

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[ResultRow]:
        return iter(self._rows)

    def __getitem__(self, i: int) -> ResultRow:
        return self._rows[i]

    def __repr__(self) -> str:
        return f"ResultTable(rows={len(self._rows)}, columns={self.columns})"


def export_to_csv(table: ResultTable, path: Union[str, Path]) -> str:
    """
    Export a result table to a CSV file.

    Parent directories are created when missing.

    Args:
        table: ResultTable to export
        path: Output file

    Returns:
        Path of the created file
    """
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    table.to_dataframe().to_csv(output_path, index=False)
    return str(output_path)


__all__ = [
    "ResultRow",
    "ResultTable",
    "export_to_csv",
    "CATEGORY",
    "ELEMENT",
    "CURVE_TENOR",
    "PRICER",
    "DELTA",
    "GAMMA",
    "HEDGE_TENOR",
    "HEDGE_DELTA",
    "HEDGE_NOTIONAL",
]
