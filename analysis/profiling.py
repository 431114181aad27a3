"""
Column Profiling

Per-column data quality summaries:
- Column profile: counts, inferred type, sample/top values, numeric stats
- Missing-data events: start/end of every run of missing values
"""

from typing import List, Dict, Optional, Any
import re
import numpy as np
import pandas as pd

from .results import (
    ColumnProfile, ColumnProfileResult,
    MissingDataEvent, MissingColumnStats, MissingDataResult,
)


TYPE_SAMPLE_SIZE = 100
TYPE_THRESHOLD = 0.8
NUMERIC_STATS_THRESHOLD = 0.5
TOP_VALUES = 10

_INTEGER = re.compile(r'^-?\d+$')
_FLOAT = re.compile(r'^-?\d*\.\d+$')
_DATE = re.compile(r'^\d{4}-\d{2}-\d{2}')


def is_null(value: Any) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def is_empty_string(value: Any) -> bool:
    return isinstance(value, str) and value.strip() == ''


def infer_data_type(values: pd.Series) -> str:
    """
    Infer a column type from its first 100 rows.

    A type wins when at least 80% of the non-empty sampled values match it:
    INTEGER, FLOAT, NUMERIC (integers and floats together), DATE, BOOLEAN;
    otherwise TEXT.
    """
    integer = floating = date = boolean = total = 0

    for value in values.iloc[:TYPE_SAMPLE_SIZE]:
        if is_null(value) or is_empty_string(value):
            continue
        total += 1

        if isinstance(value, (bool, np.bool_)):
            boolean += 1
            continue
        text = str(value).strip()
        if text.lower() in ('true', 'false'):
            boolean += 1
        elif _INTEGER.match(text):
            integer += 1
        elif _FLOAT.match(text):
            floating += 1
        elif _DATE.match(text):
            date += 1

    if total == 0:
        return 'TEXT'

    threshold = total * TYPE_THRESHOLD
    if integer >= threshold:
        return 'INTEGER'
    if floating >= threshold:
        return 'FLOAT'
    if integer + floating >= threshold:
        return 'NUMERIC'
    if date >= threshold:
        return 'DATE'
    if boolean >= threshold:
        return 'BOOLEAN'
    return 'TEXT'


class ColumnProfiler:
    """Profile columns of a table (all rows, missing values included)."""

    def __init__(self, top_values: int = TOP_VALUES, config: Optional[Dict] = None):
        self.config = config or {}

        profile_config = self.config.get('analysis', {}).get('column_profile', {})
        self.top_values = profile_config.get('top_values', top_values)

    def profile_column(self, values: pd.Series, column: str) -> ColumnProfile:
        """
        Profile one column.

        Numeric statistics (population std, upper median) are included when
        at least half of all rows hold a numeric value.
        """
        total = len(values)
        nulls = values.map(is_null)
        empties = values.map(is_empty_string)
        present = values[~nulls & ~empties]
        as_text = present.astype(str)

        frequency = as_text.value_counts(sort=True)
        top = tuple(
            (str(value), int(count), float(count) / total * 100.0 if total else 0.0)
            for value, count in frequency.head(self.top_values).items()
        )

        numeric = pd.to_numeric(present, errors='coerce').dropna().to_numpy(dtype=float)
        numeric_stats = None
        if len(numeric) > 0 and total > 0 and len(numeric) >= total * NUMERIC_STATS_THRESHOLD:
            ordered = np.sort(numeric)
            numeric_stats = {
                'min': float(ordered[0]),
                'max': float(ordered[-1]),
                'mean': float(np.mean(numeric)),
                'median': float(ordered[len(ordered) // 2]),
                'std': float(np.std(numeric)),
            }

        null_count = int(nulls.sum())
        empty_count = int(empties.sum())

        return ColumnProfile(
            column=column,
            total_rows=total,
            unique_values=int(as_text.nunique()),
            null_count=null_count,
            null_percentage=null_count / total * 100.0 if total else 0.0,
            empty_string_count=empty_count,
            empty_string_percentage=empty_count / total * 100.0 if total else 0.0,
            data_type=infer_data_type(values),
            sample_values=tuple(as_text.drop_duplicates().head(10)),
            top_values=top,
            numeric_stats=numeric_stats
        )

    def profile(self, data: pd.DataFrame, columns: Optional[List[str]] = None) -> ColumnProfileResult:
        columns = list(columns) if columns is not None else list(data.columns)
        return ColumnProfileResult(profiles=tuple(
            self.profile_column(data[column], column) for column in columns
        ))


class MissingDataDetector:
    """
    Detect runs of missing values in row order.

    A ``missing_start`` event is emitted at the first missing row of a run
    (with the last valid value before it) and a ``missing_end`` event at the
    first valid row after it (with the run length). A run still open at the
    end of the table has no end event but counts toward the run statistics.
    """

    def __init__(
        self,
        treat_empty_as_missing: bool = True,
        treat_zero_as_missing: bool = True,
        config: Optional[Dict] = None
    ):
        """
        Initialize missing-data detector.

        Args:
            treat_empty_as_missing: Blank strings count as missing
            treat_zero_as_missing: 0 and "0" count as missing
            config: Optional configuration dictionary
        """
        self.config = config or {}

        md_config = self.config.get('analysis', {}).get('missing_data', {})
        self.treat_empty_as_missing = md_config.get('treat_empty_as_missing', treat_empty_as_missing)
        self.treat_zero_as_missing = md_config.get('treat_zero_as_missing', treat_zero_as_missing)

    def is_missing(self, value: Any) -> bool:
        if is_null(value):
            return True
        if self.treat_empty_as_missing and is_empty_string(value):
            return True
        if self.treat_zero_as_missing and not isinstance(value, (bool, np.bool_)):
            if value == 0 or value == '0':
                return True
        return False

    def detect(self, data: pd.DataFrame, columns: Optional[List[str]] = None) -> MissingDataResult:
        """
        Detect missing-value runs for each column.

        Args:
            data: Table rows in their original order
            columns: Columns to scan (None = all columns of data)

        Returns:
            MissingDataResult with events sorted by row index
        """
        columns = list(columns) if columns is not None else list(data.columns)
        events: List[MissingDataEvent] = []
        column_stats: Dict[str, MissingColumnStats] = {}
        n_rows = len(data)

        for column in columns:
            values = data[column].tolist()
            streak = 0
            runs: List[int] = []
            last_valid = None
            missing_rows = 0

            for i, value in enumerate(values):
                if self.is_missing(value):
                    missing_rows += 1
                    if streak == 0:
                        events.append(MissingDataEvent(
                            row_index=i,
                            column=column,
                            event_type='missing_start',
                            value=None if is_null(value) else value,
                            previous_value=last_valid
                        ))
                    streak += 1
                else:
                    if streak > 0:
                        events.append(MissingDataEvent(
                            row_index=i,
                            column=column,
                            event_type='missing_end',
                            value=value,
                            missing_length=streak
                        ))
                        runs.append(streak)
                        streak = 0
                    last_valid = value

            if streak > 0:
                runs.append(streak)

            column_stats[column] = MissingColumnStats(
                total_missing_events=len(runs),
                average_missing_length=float(np.mean(runs)) if runs else 0.0,
                max_missing_length=max(runs) if runs else 0,
                missing_percentage=missing_rows / n_rows * 100.0 if n_rows else 0.0
            )

        events.sort(key=lambda e: e.row_index)

        return MissingDataResult(
            events=tuple(events),
            column_stats=column_stats,
            longest_missing_streak=max([s.max_missing_length for s in column_stats.values()] + [0])
        )
