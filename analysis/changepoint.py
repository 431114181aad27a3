"""
Change-Point Detection

Locates indices in an ordered numeric series where its statistical
behavior shifts.

Detectors:
- moving_average: trailing long-window mean vs. leading short-window mean
- cusum: standardized two-sided cumulative sums with slack and limit
- ewma: deviation of each point from the exponentially weighted mean
- binary_segmentation: recursive best split by variance reduction

Every detector is stateless and returns change points sorted by index with
confidence in [0, 1]. A constant series, or one shorter than a detector's
minimum length, has no change points.
"""

from typing import List, Dict, Optional, Any, Type
import numpy as np
import pandas as pd

from .errors import ValidationError, InvalidColumn
from .results import ChangePoint, ChangePointSet
from .statistical import to_numeric


_DETECTORS: Dict[str, Type['ChangePointDetector']] = {}


def register_detector(cls: Type['ChangePointDetector']) -> Type['ChangePointDetector']:
    """Class decorator adding a detector to the registry under ``cls.name``."""
    _DETECTORS[cls.name] = cls
    return cls


def available_detectors() -> List[str]:
    return list(_DETECTORS)


def get_detector(name: str) -> 'ChangePointDetector':
    """
    Create the detector registered under ``name``.

    Raises:
        ValidationError: If no detector has that name
    """
    if name not in _DETECTORS:
        raise ValidationError(
            f"Unknown change-point algorithm '{name}'. "
            f"Valid options: {', '.join(available_detectors())}"
        )
    return _DETECTORS[name]()


def _collapse_runs(flagged: List[int], scores: Dict[int, float]) -> List[int]:
    """Reduce each run of consecutive flagged indices to its highest-scoring index."""
    peaks = []
    run: List[int] = []
    for i in flagged:
        if run and i != run[-1] + 1:
            peaks.append(max(run, key=lambda j: scores[j]))
            run = []
        run.append(i)
    if run:
        peaks.append(max(run, key=lambda j: scores[j]))
    return peaks


class ChangePointDetector:
    """
    Base class for change-point detectors.

    Subclasses set ``name`` and ``min_length`` and implement ``_detect``.
    """

    name = 'base'
    min_length = 2

    def detect(self, series: Any, params: Optional[Dict] = None) -> List[ChangePoint]:
        """
        Detect change points.

        Args:
            series: Ordered numeric values (NaN entries are removed)
            params: Detector parameters overriding the defaults

        Returns:
            Change points sorted by index
        """
        x = np.asarray(series, dtype=float)
        x = x[~np.isnan(x)]
        params = params or {}

        if len(x) < self.min_length or np.all(x == x[0]):
            return []

        points = self._detect(x, params)
        return sorted(points, key=lambda p: p.index)

    def _detect(self, x: np.ndarray, params: Dict) -> List[ChangePoint]:
        raise NotImplementedError("Subclasses must implement _detect()")

    def _point(self, x: np.ndarray, index: int, confidence: float) -> ChangePoint:
        return ChangePoint(
            index=int(index),
            value=float(x[index]),
            confidence=float(min(1.0, max(0.0, confidence))),
            algorithm=self.name
        )


@register_detector
class MovingAverageDetector(ChangePointDetector):
    """
    Compare the mean of the ``long_window`` points before index i with the
    mean of the ``short_window`` points starting at i.

    Index i is flagged when the difference exceeds ``threshold`` times the
    series standard deviation; each run of consecutive flagged indices
    reports its largest difference.
    """

    name = 'moving_average'
    min_length = 4

    def _detect(self, x: np.ndarray, params: Dict) -> List[ChangePoint]:
        n = len(x)
        short = int(params.get('short_window') or max(2, min(5, n // 4)))
        long = int(params.get('long_window') or 2 * short)
        threshold = float(params.get('threshold', 1.0))

        if short < 1 or long < 1:
            raise ValidationError("Moving-average windows must be positive")

        std = float(np.std(x, ddof=1))
        limit = threshold * std
        if limit <= 0:
            return []

        deviations = {}
        flagged = []
        for i in range(short, n - short + 1):
            long_mean = np.mean(x[max(0, i - long):i])
            short_mean = np.mean(x[i:i + short])
            deviation = abs(short_mean - long_mean)
            deviations[i] = deviation
            if deviation > limit:
                flagged.append(i)

        return [
            self._point(x, i, deviations[i] / (2 * limit))
            for i in _collapse_runs(flagged, deviations)
        ]


@register_detector
class CusumDetector(ChangePointDetector):
    """
    Two-sided CUSUM on standardized values.

    z_t = (x_t - target) / sigma; S+ = max(0, S+ + z - k), S- = max(0, S- - z - k).
    A change is flagged when either sum exceeds ``h``; both sums then reset
    and the target moves to the mean of the next ``baseline`` points, so a
    sustained shift is reported once.
    """

    name = 'cusum'
    min_length = 4

    def _detect(self, x: np.ndarray, params: Dict) -> List[ChangePoint]:
        n = len(x)
        k = float(params.get('k', 0.5))
        h = float(params.get('h', 5.0))
        baseline = int(params.get('baseline', max(3, n // 4)))
        baseline = max(2, min(baseline, n))

        target = params.get('target')
        target = float(np.mean(x[:baseline])) if target is None else float(target)

        sigma = float(np.std(x[:baseline], ddof=1))
        if sigma <= 0:
            sigma = float(np.std(x, ddof=1))
        if sigma <= 0:
            return []

        points = []
        s_pos = s_neg = 0.0
        for i in range(n):
            z = (x[i] - target) / sigma
            s_pos = max(0.0, s_pos + z - k)
            s_neg = max(0.0, s_neg - z - k)

            if s_pos > h or s_neg > h:
                points.append(self._point(x, i, max(s_pos, s_neg) / (2 * h)))
                s_pos = s_neg = 0.0
                target = float(np.mean(x[i:i + baseline]))

        return points


@register_detector
class EwmaDetector(ChangePointDetector):
    """
    Exponentially weighted moving average detector.

    Sigma is estimated from the average moving range (MR / 1.128). Index t is
    flagged when |x_t - ewma_{t-1}| > k * sigma; each run of consecutive
    flagged indices reports its largest deviation.
    """

    name = 'ewma'
    min_length = 3

    def _detect(self, x: np.ndarray, params: Dict) -> List[ChangePoint]:
        lam = float(params.get('lam', params.get('lambda', 0.2)))
        k = float(params.get('k', 3.0))

        if not 0 < lam <= 1:
            raise ValidationError(f"EWMA smoothing must be in (0, 1], got {lam}")

        sigma = float(np.mean(np.abs(np.diff(x)))) / 1.128
        if sigma <= 0:
            return []

        limit = k * sigma
        ewma = x[0]
        deviations = {}
        flagged = []
        for t in range(1, len(x)):
            deviation = abs(x[t] - ewma)
            if deviation > limit:
                deviations[t] = deviation
                flagged.append(t)
            ewma = lam * x[t] + (1 - lam) * ewma

        return [
            self._point(x, t, deviations[t] / (2 * limit))
            for t in _collapse_runs(flagged, deviations)
        ]


@register_detector
class BinarySegmentationDetector(ChangePointDetector):
    """
    Recursive binary segmentation by variance reduction.

    A segment is split at the index maximizing SSE(parent) - SSE(left) -
    SSE(right). The split is accepted when both parts hold at least
    ``min_segment`` points and the reduction is at least ``threshold`` of
    the parent SSE; accepted parts are split again.
    """

    name = 'binary_segmentation'
    min_length = 4

    def _detect(self, x: np.ndarray, params: Dict) -> List[ChangePoint]:
        min_segment = int(params.get('min_segment', 3))
        threshold = float(params.get('threshold', 0.3))
        max_change_points = params.get('max_change_points')

        if min_segment < 1:
            raise ValidationError("min_segment must be at least 1")

        found: List[ChangePoint] = []
        self._split(x, 0, len(x), min_segment, threshold, found)

        if max_change_points is not None:
            found = sorted(found, key=lambda p: p.confidence, reverse=True)[:int(max_change_points)]

        return found

    @staticmethod
    def _sse(segment: np.ndarray) -> float:
        return float(np.sum((segment - np.mean(segment)) ** 2))

    def _split(
        self,
        x: np.ndarray,
        start: int,
        end: int,
        min_segment: int,
        threshold: float,
        found: List[ChangePoint]
    ) -> None:
        if end - start < 2 * min_segment:
            return

        segment = x[start:end]
        parent_sse = self._sse(segment)
        if parent_sse <= 1e-12:
            return

        best_index, best_gain = None, 0.0
        for s in range(start + min_segment, end - min_segment + 1):
            gain = parent_sse - self._sse(x[start:s]) - self._sse(x[s:end])
            if gain > best_gain:
                best_index, best_gain = s, gain

        if best_index is None:
            return

        normalized = best_gain / parent_sse
        if normalized < threshold:
            return

        found.append(self._point(x, best_index, normalized))
        self._split(x, start, best_index, min_segment, threshold, found)
        self._split(x, best_index, end, min_segment, threshold, found)


class ChangePointAnalyzer:
    """
    Run a registered detector on one column of a projection.

    The series follows the order of ``order_values`` when given (stable sort,
    ties keep row order), else row order. Detector parameters are read from
    the ``analysis.changepoint.<algorithm>`` config section and overridden by
    per-call parameters.
    """

    def __init__(self, algorithm: str = 'moving_average', config: Optional[Dict] = None):
        self.config = config or {}

        cp_config = self.config.get('analysis', {}).get('changepoint', {})
        self.algorithm = cp_config.get('algorithm', algorithm)
        self._defaults = cp_config

    def detect(
        self,
        values: Any,
        column: str,
        order_values: Optional[Any] = None,
        order_column: Optional[str] = None,
        algorithm: Optional[str] = None,
        params: Optional[Dict] = None
    ) -> ChangePointSet:
        """
        Detect change points in a column.

        Args:
            values: Column values
            column: Column name
            order_values: Optional x-axis values used to order the series
            order_column: Name of the x-axis column (reported only)
            algorithm: Detector name (None = configured default)
            params: Per-call detector parameters

        Returns:
            ChangePointSet (possibly empty)
        """
        algorithm = algorithm or self.algorithm
        detector = get_detector(algorithm)

        merged = dict(self._defaults.get(algorithm, {}) or {})
        merged.update(params or {})

        y = to_numeric(values).reset_index(drop=True)
        if order_values is not None:
            order = pd.Series(order_values).reset_index(drop=True)
            order_numeric = pd.to_numeric(order, errors='coerce')
            if order_numeric.notna().all():
                order = order_numeric
            else:
                order_dates = pd.to_datetime(order, errors='coerce')
                order = order_dates if order_dates.notna().all() else order.astype(str)
            y = y.iloc[np.argsort(order.to_numpy(), kind='stable')].reset_index(drop=True)

        y = y.dropna()
        if len(y) == 0:
            raise InvalidColumn(f"Column '{column}' has no numeric values", columns=[column])

        points = detector.detect(y.to_numpy(), merged)

        return ChangePointSet(
            column=column,
            algorithm=algorithm,
            points=tuple(points),
            series_length=int(len(y)),
            order_column=order_column
        )
