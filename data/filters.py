"""
Row Filters

Filter predicates restricting which rows of a table take part in an
analysis, and the options controlling which values count as missing.

Active predicates combine conjunctively; inactive ones are ignored.
"""

from typing import List, Optional, Any, Sequence
from dataclasses import dataclass, field
import numpy as np
import pandas as pd

from analysis.errors import ValidationError


OPERATORS = (
    'equals', 'not_equals',
    'greater_than', 'less_than', 'greater_equal', 'less_equal',
    'contains', 'not_contains', 'starts_with', 'ends_with',
    'in', 'not_in',
    'is_null', 'is_not_null',
)

_COMPARISONS = {
    'greater_than': lambda a, b: a > b,
    'less_than': lambda a, b: a < b,
    'greater_equal': lambda a, b: a >= b,
    'less_equal': lambda a, b: a <= b,
}


@dataclass
class MissingDataOptions:
    """
    Which values count as missing when building a projection.

    Null values are always missing; blank strings and zeros only when the
    corresponding flag is set.
    """
    treat_empty_as_missing: bool = False
    treat_zero_as_missing: bool = False

    def missing_mask(self, values: pd.Series) -> pd.Series:
        mask = values.isna()
        if self.treat_empty_as_missing:
            mask |= values.map(lambda v: isinstance(v, str) and v.strip() == '')
        if self.treat_zero_as_missing:
            mask |= values.map(_is_zero)
        return mask


@dataclass
class FilterPredicate:
    """
    A single row restriction.

    Attributes:
        column: Column the predicate tests
        operator: One of OPERATORS
        value: Operand of scalar operators
        values: Operands of 'in' / 'not_in'
        active: Inactive predicates select every row
    """
    column: str
    operator: str
    value: Any = None
    values: List[Any] = field(default_factory=list)
    active: bool = True

    def __post_init__(self):
        if self.operator not in OPERATORS:
            raise ValidationError(
                f"Unknown filter operator '{self.operator}'. Valid options: {', '.join(OPERATORS)}"
            )

    @classmethod
    def from_dict(cls, entry: dict) -> 'FilterPredicate':
        """Build a predicate from a plain mapping (as read from YAML)."""
        return cls(
            column=entry['column'],
            operator=entry['operator'],
            value=entry.get('value'),
            values=list(entry.get('values') or []),
            active=entry.get('active', True)
        )

    def mask(self, data: pd.DataFrame) -> pd.Series:
        """
        Boolean row mask selected by this predicate.

        Raises:
            ValidationError: If the column does not exist
        """
        if not self.active:
            return pd.Series(True, index=data.index)
        if self.column not in data.columns:
            raise ValidationError(f"Filter column '{self.column}' not found")

        col = data[self.column]
        null = col.isna()
        op = self.operator
        value = self.value

        if op == 'is_null':
            return null
        if op == 'is_not_null':
            return ~null

        if op in ('equals', 'not_equals'):
            if _is_blank(value):
                blank = null | col.map(lambda v: v == '')
                return blank if op == 'equals' else ~blank
            matches = _equal_to(col, value) & ~null
            return matches if op == 'equals' else ~matches & ~null

        if op in _COMPARISONS:
            if _is_blank(value):
                return pd.Series(False, index=data.index)
            compare = _COMPARISONS[op]
            number = _as_number(value)
            if number is not None:
                numeric = pd.to_numeric(col, errors='coerce')
                return compare(numeric, number).fillna(False).astype(bool)
            text = col.astype(str)
            return (compare(text, str(value)) & ~null).astype(bool)

        if op in ('contains', 'not_contains', 'starts_with', 'ends_with'):
            if _is_blank(value):
                # No operand: negated match keeps every row
                return pd.Series(op == 'not_contains', index=data.index)
            text = col.astype(str)
            needle = str(value)
            if op == 'contains':
                found = text.str.contains(needle, regex=False)
            elif op == 'not_contains':
                found = ~text.str.contains(needle, regex=False)
            elif op == 'starts_with':
                found = text.str.startswith(needle)
            else:
                found = text.str.endswith(needle)
            return (found & ~null).astype(bool)

        # 'in' / 'not_in'
        if not self.values:
            return pd.Series(op == 'not_in', index=data.index)
        member = _member_of(col, self.values) & ~null
        return member if op == 'in' else ~member & ~null


def apply_filters(data: pd.DataFrame, filters: Optional[Sequence[FilterPredicate]]) -> pd.DataFrame:
    """
    Rows of ``data`` selected by every active predicate.

    Args:
        data: Table rows
        filters: Predicates (None or empty = no restriction)

    Returns:
        Filtered copy of data (index preserved)
    """
    if not filters:
        return data.copy()

    mask = pd.Series(True, index=data.index)
    for predicate in filters:
        mask &= predicate.mask(data)
    return data.loc[mask].copy()


def _is_null(value: Any) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _is_zero(value: Any) -> bool:
    if _is_null(value) or isinstance(value, (bool, np.bool_)):
        return False
    return value == 0 or value == '0'


def _is_blank(value: Any) -> bool:
    return _is_null(value) or (isinstance(value, str) and value == '')


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, (bool, np.bool_)):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _equal_to(col: pd.Series, value: Any) -> pd.Series:
    if isinstance(value, (bool, np.bool_)):
        return col.map(lambda v: isinstance(v, (bool, np.bool_)) and bool(v) == bool(value))
    number = _as_number(value)
    if number is not None and not isinstance(value, str):
        return (pd.to_numeric(col, errors='coerce') == number).fillna(False)
    text_match = col.astype(str) == str(value)
    if number is not None:
        text_match |= (pd.to_numeric(col, errors='coerce') == number).fillna(False)
    return text_match


def _member_of(col: pd.Series, values: List[Any]) -> pd.Series:
    result = pd.Series(False, index=col.index)
    for value in values:
        result |= _equal_to(col, value)
    return result
