"""
Association Rules

Apriori mining of frequent itemsets and association rules over rows viewed
as transactions of ``column=value`` items.

Item encoding:
- numbers are discretized: negative, zero, low (<= 10), medium (<= 100),
  high (<= 1000), very_high
- booleans contribute an item only when true
- other values are used as-is; missing values contribute nothing
- transactions without any item are dropped
"""

from typing import List, Dict, Optional, FrozenSet, Any, Iterable
from collections import Counter
import itertools
import numbers
import math
import numpy as np
import pandas as pd

from .errors import InsufficientData, ValidationError
from .results import AssociationRule, AssociationRuleSet


Itemset = FrozenSet[str]


def bin_numeric_value(value: float) -> str:
    """Discretize a number into a coarse magnitude label."""
    if value < 0:
        return 'negative'
    if value == 0:
        return 'zero'
    if value <= 10:
        return 'low'
    if value <= 100:
        return 'medium'
    if value <= 1000:
        return 'high'
    return 'very_high'


def encode_item(column: str, value: Any) -> Optional[str]:
    """Encode one cell as an item, or None when it contributes nothing."""
    if value is None or value is pd.NA or value is pd.NaT:
        return None
    if isinstance(value, (bool, np.bool_)):
        return f"{column}=true" if value else None
    if isinstance(value, numbers.Number):
        if isinstance(value, float) and math.isnan(value):
            return None
        return f"{column}={bin_numeric_value(float(value))}"
    text = str(value)
    if text == '':
        return None
    return f"{column}={text}"


def build_transactions(data: pd.DataFrame, columns: List[str]) -> List[Itemset]:
    """Turn each row into a transaction; empty transactions are dropped."""
    transactions = []
    for row in data[columns].itertuples(index=False, name=None):
        items = [encode_item(column, value) for column, value in zip(columns, row)]
        transaction = frozenset(item for item in items if item is not None)
        if transaction:
            transactions.append(transaction)
    return transactions


class AprioriMiner:
    """
    Level-wise Apriori.

    Candidates of size k are joined from frequent (k-1)-itemsets and pruned
    when any (k-1)-subset is infrequent, so every reported itemset has only
    frequent subsets.
    """

    def __init__(
        self,
        min_support: float = 0.1,
        min_confidence: float = 0.5,
        max_itemset_size: int = 3,
        config: Optional[Dict] = None
    ):
        """
        Initialize Apriori miner.

        Args:
            min_support: Minimum fraction of transactions containing an itemset
            min_confidence: Minimum rule confidence
            max_itemset_size: Largest itemset size explored
            config: Optional configuration dictionary
        """
        self.config = config or {}

        ar_config = self.config.get('analysis', {}).get('association_rules', {})
        self.min_support = ar_config.get('min_support', min_support)
        self.min_confidence = ar_config.get('min_confidence', min_confidence)
        self.max_itemset_size = ar_config.get('max_itemset_size', max_itemset_size)

        if not 0 < self.min_support <= 1:
            raise ValidationError(f"min_support must be in (0, 1], got {self.min_support}")
        if not 0 <= self.min_confidence <= 1:
            raise ValidationError(f"min_confidence must be in [0, 1], got {self.min_confidence}")
        if self.max_itemset_size < 2:
            raise ValidationError(f"max_itemset_size must be at least 2, got {self.max_itemset_size}")

    def frequent_itemsets(self, transactions: List[Itemset]) -> Dict[Itemset, float]:
        """
        Mine all frequent itemsets up to ``max_itemset_size``.

        Returns:
            Dict mapping itemset -> support
        """
        n = len(transactions)
        if n == 0:
            return {}

        item_counts = Counter(item for t in transactions for item in t)
        current = {
            frozenset([item]): count / n
            for item, count in item_counts.items()
            if count / n >= self.min_support
        }
        frequent = dict(current)

        k = 2
        while current and k <= self.max_itemset_size:
            candidates = self._generate_candidates(set(current), k)
            counts = Counter()
            for t in transactions:
                for candidate in candidates:
                    if candidate <= t:
                        counts[candidate] += 1

            current = {
                c: counts[c] / n for c in candidates
                if counts[c] / n >= self.min_support
            }
            frequent.update(current)
            k += 1

        return frequent

    @staticmethod
    def _generate_candidates(previous: Iterable[Itemset], k: int) -> List[Itemset]:
        previous = set(previous)
        candidates = set()
        for a, b in itertools.combinations(previous, 2):
            union = a | b
            if len(union) != k:
                continue
            # Prune: every (k-1)-subset must be frequent
            if all(frozenset(sub) in previous for sub in itertools.combinations(union, k - 1)):
                candidates.add(union)
        return sorted(candidates, key=lambda s: sorted(s))

    def generate_rules(self, frequent: Dict[Itemset, float]) -> List[AssociationRule]:
        """
        Generate rules from every frequent itemset of size >= 2.

        Returns:
            Rules with confidence >= ``min_confidence``, sorted by confidence
            (ties by support), descending
        """
        rules = []
        for itemset, support in frequent.items():
            if len(itemset) < 2:
                continue

            items = sorted(itemset)
            for size in range(1, len(items)):
                for antecedent in itertools.combinations(items, size):
                    antecedent = frozenset(antecedent)
                    consequent = itemset - antecedent

                    antecedent_support = frequent[antecedent]
                    consequent_support = frequent[consequent]

                    confidence = support / antecedent_support
                    if confidence < self.min_confidence:
                        continue

                    lift = confidence / consequent_support
                    if confidence >= 1.0:
                        conviction = math.inf
                    else:
                        conviction = (1.0 - consequent_support) / (1.0 - confidence)

                    rules.append(AssociationRule(
                        antecedent=tuple(sorted(antecedent)),
                        consequent=tuple(sorted(consequent)),
                        support=support,
                        confidence=confidence,
                        lift=lift,
                        conviction=conviction
                    ))

        rules.sort(key=lambda r: (-r.confidence, -r.support, r.antecedent, r.consequent))
        return rules

    def analyze(self, data: pd.DataFrame, columns: Optional[List[str]] = None) -> AssociationRuleSet:
        """
        Mine association rules over the rows of a projection.

        Args:
            data: Projection holding the requested columns
            columns: Columns forming the items (None = all columns of data)

        Returns:
            AssociationRuleSet; ``is_empty`` when no rule qualifies

        Raises:
            InsufficientData: If no row yields a non-empty transaction
        """
        columns = list(columns) if columns is not None else list(data.columns)
        if len(columns) < 2:
            raise ValidationError("Association rules require at least 2 columns")

        transactions = build_transactions(data, columns)
        if len(transactions) == 0:
            raise InsufficientData("No row yields a non-empty transaction", n_rows=len(data), required=1)

        frequent = self.frequent_itemsets(transactions)
        rules = self.generate_rules(frequent)

        item_frequency = Counter(item for t in transactions for item in t)

        return AssociationRuleSet(
            columns=tuple(columns),
            rules=tuple(rules),
            total_transactions=len(transactions),
            item_frequency=dict(sorted(item_frequency.items(), key=lambda kv: (-kv[1], kv[0]))),
            frequent_itemsets=len(frequent),
            min_support=self.min_support,
            min_confidence=self.min_confidence
        )
