"""
In-Memory Table

DataFrame-backed table supplying column projections to the analysis engine.

The table owns a private snapshot of its rows: projections are copies, so no
analysis can mutate the snapshot.
"""

from typing import List, Optional, Sequence
import pandas as pd

from analysis.errors import InvalidColumn
from .filters import FilterPredicate, MissingDataOptions, apply_filters


class MemoryTable:
    """
    Immutable snapshot of tabular rows.

    Attributes:
        name (str): Table name used in messages and exports
        columns (List[str]): Column names in table order
    """

    def __init__(self, data: pd.DataFrame, name: str = 'table'):
        """
        Initialize table.

        Args:
            data: Rows of the table (copied)
            name: Table name
        """
        if not isinstance(data, pd.DataFrame):
            raise ValueError(f"Data must be a pandas DataFrame, got {type(data)}")

        self.name = name
        self._data = data.reset_index(drop=True).copy()

    @property
    def columns(self) -> List[str]:
        return [str(c) for c in self._data.columns]

    @property
    def n_rows(self) -> int:
        return len(self._data)

    def __len__(self) -> int:
        return self.n_rows

    def __repr__(self) -> str:
        return f"MemoryTable(name='{self.name}', rows={self.n_rows}, columns={len(self._data.columns)})"

    def to_frame(self) -> pd.DataFrame:
        """Copy of all rows."""
        return self._data.copy()

    def _check_columns(self, columns: Sequence[str]) -> None:
        missing = [c for c in columns if c not in self._data.columns]
        if missing:
            raise InvalidColumn(
                f"Column(s) not found in table '{self.name}': {', '.join(missing)}",
                columns=missing
            )

    def get_rows(
        self,
        columns: Sequence[str],
        filters: Optional[Sequence[FilterPredicate]] = None
    ) -> pd.DataFrame:
        """
        Filtered rows of the requested columns, missing values included.

        Args:
            columns: Requested columns (order preserved)
            filters: Row predicates

        Returns:
            DataFrame in row order with a fresh RangeIndex
        """
        columns = list(columns)
        self._check_columns(columns)
        rows = apply_filters(self._data, filters)
        return rows[columns].reset_index(drop=True)

    def get_column_data(
        self,
        columns: Sequence[str],
        filters: Optional[Sequence[FilterPredicate]] = None,
        missing: Optional[MissingDataOptions] = None
    ) -> pd.DataFrame:
        """
        Projection of the requested columns.

        Rows holding a missing value (as defined by ``missing``) in any
        requested column are excluded.

        Args:
            columns: Requested columns (order preserved)
            filters: Row predicates
            missing: Which values count as missing (None = nulls only)

        Returns:
            DataFrame whose columns are exactly ``columns`` in order

        Raises:
            InvalidColumn: If a requested column does not exist
        """
        missing = missing or MissingDataOptions()
        rows = self.get_rows(columns, filters)

        if len(rows.columns) == 0:
            return rows

        flags = pd.concat(
            [missing.missing_mask(rows.iloc[:, i]) for i in range(rows.shape[1])], axis=1
        )
        complete = ~flags.any(axis=1).to_numpy()
        return rows.loc[complete].reset_index(drop=True)
