"""
Statistical Analysis

Descriptive statistics and pairwise correlation over a tabular projection.

Features:
- Basic statistics (count, mean, std, min, max, quartiles)
- Equal-width histograms with percentage frequencies
- Time series aggregation (hour/day/week/month buckets or row order)
- Pairwise Pearson (or Spearman) correlation on complete rows
- Highly correlated pair search
"""

from typing import List, Dict, Optional, Tuple, Any, Sequence
import pandas as pd
import numpy as np
from scipy import stats
import warnings

from .errors import InvalidColumn, ValidationError
from .results import (
    ColumnStats, BasicStatsResult,
    HistogramBin, HistogramResult,
    TimeSeriesPoint, TimeSeriesResult,
    CorrelationPair, CorrelationMatrixResult,
)


TIME_INTERVALS = ('hour', 'day', 'week', 'month')


def to_numeric(values: Any) -> pd.Series:
    """Coerce values to float, mapping non-convertible entries to NaN."""
    series = values if isinstance(values, pd.Series) else pd.Series(values)
    if series.dtype == bool:
        series = series.astype(float)
    return pd.to_numeric(series, errors='coerce').astype(float)


class StatisticalAnalyzer:
    """
    Descriptive statistics for single columns.

    Main operations:
    - compute_basic_stats: summary statistics of numeric columns
    - compute_histogram: equal-width binning
    - compute_time_series: values aggregated over time buckets

    Standard deviation is the population form (ddof=0) unless configured.
    """

    def __init__(
        self,
        histogram_bins: int = 10,
        ddof: int = 0,
        time_interval: str = 'day',
        config: Optional[Dict] = None
    ):
        """
        Initialize statistical analyzer.

        Args:
            histogram_bins: Default number of histogram bins
            ddof: Delta degrees of freedom for the standard deviation
                  (0 = population, 1 = sample)
            time_interval: Default time bucket ('hour', 'day', 'week', 'month')
            config: Optional configuration dictionary
        """
        self.config = config or {}

        # Override with config if provided
        stat_config = self.config.get('analysis', {}).get('statistical', {})
        self.histogram_bins = stat_config.get('histogram_bins', histogram_bins)
        self.ddof = stat_config.get('ddof', ddof)
        self.time_interval = stat_config.get('time_interval', time_interval)

    def compute_basic_stats(self, data: pd.DataFrame, columns: Optional[List[str]] = None) -> BasicStatsResult:
        """
        Compute summary statistics for each column.

        Args:
            data: Projection holding the requested columns
            columns: Columns to summarize (None = all columns of data)

        Returns:
            BasicStatsResult with one ColumnStats per column, in order

        Raises:
            InvalidColumn: If a column has no numeric values
        """
        if columns is None:
            columns = list(data.columns)

        return BasicStatsResult(columns=tuple(
            self.column_stats(data[column], column) for column in columns
        ))

    def column_stats(self, values: Any, column: str) -> ColumnStats:
        """Summary statistics of one column (non-numeric entries ignored)."""
        x = to_numeric(values).dropna().to_numpy()

        if len(x) == 0:
            raise InvalidColumn(f"Column '{column}' has no numeric values", columns=[column])

        q1, q2, q3 = np.percentile(x, [25, 50, 75])
        std = float(np.std(x, ddof=self.ddof)) if len(x) > self.ddof else 0.0

        return ColumnStats(
            column=column,
            count=int(len(x)),
            mean=float(np.mean(x)),
            std=std,
            min=float(np.min(x)),
            max=float(np.max(x)),
            q1=float(q1),
            q2=float(q2),
            q3=float(q3)
        )

    def compute_histogram(self, values: Any, column: str, bins: Optional[int] = None) -> HistogramResult:
        """
        Build an equal-width histogram between the column minimum and maximum.

        The last bin is closed on both ends so the maximum is counted.

        Args:
            values: Column values (non-numeric entries ignored)
            column: Column name
            bins: Number of bins (None = configured default)

        Returns:
            HistogramResult with labelled bins and percentage frequencies
        """
        bins = bins if bins is not None else self.histogram_bins
        if bins < 1:
            raise ValidationError(f"Histogram needs at least 1 bin, got {bins}")

        x = to_numeric(values).dropna().to_numpy()
        if len(x) == 0:
            raise InvalidColumn(f"Column '{column}' has no numeric values", columns=[column])

        lo, hi = float(np.min(x)), float(np.max(x))
        total = len(x)

        if lo == hi:
            warnings.warn(f"Column '{column}' is constant ({lo}); histogram has a single bin")
            return HistogramResult(
                column=column,
                bins=(HistogramBin(f"{lo:.2f}-{hi:.2f}", lo, hi, total, 100.0),),
                total_count=total
            )

        counts, edges = np.histogram(x, bins=bins, range=(lo, hi))

        histogram_bins = []
        for i, count in enumerate(counts):
            start, end = float(edges[i]), float(edges[i + 1])
            histogram_bins.append(HistogramBin(
                label=f"{start:.2f}-{end:.2f}",
                lower=start,
                upper=end,
                count=int(count),
                frequency=float(count) / total * 100.0
            ))

        return HistogramResult(column=column, bins=tuple(histogram_bins), total_count=total)

    def compute_time_series(
        self,
        values: Any,
        column: str,
        time_values: Optional[Any] = None,
        time_column: Optional[str] = None,
        interval: Optional[str] = None
    ) -> TimeSeriesResult:
        """
        Aggregate a column over time.

        With ``time_values`` the numeric values are averaged per time bucket
        (bucket start = timestamp truncated to the interval; weeks start on
        Monday). A numeric x-axis is not read as timestamps: values are
        averaged per distinct axis value in ascending order. Without
        ``time_values`` the row position is the time axis.

        Args:
            values: Column values
            column: Column name
            time_values: Optional datetime-like or numeric values aligned with ``values``
            time_column: Name of the time column (reported only)
            interval: 'hour', 'day', 'week' or 'month'

        Returns:
            TimeSeriesResult with points in time order
        """
        y = to_numeric(values).reset_index(drop=True)

        if time_values is None:
            points = tuple(
                TimeSeriesPoint(time=str(i), value=float(v), count=1)
                for i, v in y.items() if not np.isnan(v)
            )
            if len(points) == 0:
                raise InvalidColumn(f"Column '{column}' has no numeric values", columns=[column])
            return TimeSeriesResult(column=column, time_column=None, interval=None, points=points)

        raw = pd.Series(time_values).reset_index(drop=True)
        if len(raw) != len(y):
            raise ValidationError(
                f"Time values length ({len(raw)}) must match values length ({len(y)})"
            )

        # Numeric axes (row ids, sequence numbers) group by their own value
        if not pd.api.types.is_datetime64_any_dtype(raw):
            axis = pd.to_numeric(raw, errors='coerce')
            present = raw.notna()
            if present.any() and axis[present].notna().all():
                return self._numeric_axis_series(y, axis, column, time_column)

        interval = interval or self.time_interval
        if interval not in TIME_INTERVALS:
            raise ValidationError(
                f"Unknown time interval '{interval}'. Valid options: {', '.join(TIME_INTERVALS)}"
            )

        t = pd.to_datetime(raw, errors='coerce')
        frame = pd.DataFrame({'bucket': self._truncate(t, interval), 'value': y}).dropna()
        if len(frame) == 0:
            raise InvalidColumn(
                f"Column '{column}' has no numeric values with a valid timestamp", columns=[column]
            )

        grouped = frame.groupby('bucket', sort=True)['value'].agg(['mean', 'count'])
        points = tuple(
            TimeSeriesPoint(time=bucket.isoformat(), value=float(row['mean']), count=int(row['count']))
            for bucket, row in grouped.iterrows()
        )

        return TimeSeriesResult(column=column, time_column=time_column, interval=interval, points=points)

    @staticmethod
    def _numeric_axis_series(
        y: pd.Series,
        axis: pd.Series,
        column: str,
        time_column: Optional[str]
    ) -> TimeSeriesResult:
        """Average values per distinct numeric x-axis value, in ascending axis order."""
        frame = pd.DataFrame({'key': axis.astype(float), 'value': y}).dropna()
        if len(frame) == 0:
            raise InvalidColumn(
                f"Column '{column}' has no numeric values with an x-axis value", columns=[column]
            )

        grouped = frame.groupby('key', sort=True)['value'].agg(['mean', 'count'])
        points = tuple(
            TimeSeriesPoint(
                time=str(int(key)) if float(key).is_integer() else str(key),
                value=float(row['mean']),
                count=int(row['count'])
            )
            for key, row in grouped.iterrows()
        )
        return TimeSeriesResult(column=column, time_column=time_column, interval=None, points=points)

    def _truncate(self, t: pd.Series, interval: str) -> pd.Series:
        """Truncate timestamps to the start of their bucket."""
        if interval == 'hour':
            return t.dt.floor('60min')
        elif interval == 'day':
            return t.dt.normalize()
        elif interval == 'week':
            day = t.dt.normalize()
            return day - pd.to_timedelta(day.dt.dayofweek, unit='D')
        else:
            return t.dt.to_period('M').dt.to_timestamp()


class CorrelationAnalyzer:
    """
    Analyze pairwise correlations between columns.

    Every pair is computed on its own complete rows, so a missing value in
    one column does not remove rows from unrelated pairs.
    """

    def __init__(self, method: str = 'pearson', config: Optional[Dict] = None):
        """
        Initialize correlation analyzer.

        Args:
            method: 'pearson' or 'spearman'
            config: Optional configuration dictionary
        """
        self.config = config or {}

        corr_config = self.config.get('analysis', {}).get('correlation', {})
        self.method = corr_config.get('method', method)

        if self.method not in ('pearson', 'spearman'):
            raise ValidationError(f"Unknown correlation method '{self.method}'")

    def correlate(self, x: np.ndarray, y: np.ndarray) -> Tuple[float, float, int]:
        """
        Correlation of two aligned arrays on their complete rows.

        Returns:
            Tuple of (coefficient, p_value, n). A zero-variance side gives a
            coefficient of 0 and a p-value of 1. Fewer than 2 complete rows
            give NaN.
        """
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        valid_mask = ~(np.isnan(x) | np.isnan(y))
        x, y = x[valid_mask], y[valid_mask]
        n = int(len(x))

        if n < 2:
            return np.nan, np.nan, n

        if np.all(x == x[0]) or np.all(y == y[0]):
            return 0.0, 1.0, n

        if self.method == 'spearman':
            corr, pval = stats.spearmanr(x, y)
        else:
            corr, pval = stats.pearsonr(x, y)

        corr = float(np.clip(corr, -1.0, 1.0))
        pval = float(pval) if not np.isnan(pval) else 1.0
        return corr, pval, n

    def compute_feature_correlations(
        self,
        data: pd.DataFrame,
        columns: Optional[Sequence[str]] = None
    ) -> CorrelationMatrixResult:
        """
        Compute pairwise correlations for all column pairs.

        Args:
            data: Projection holding the requested columns
            columns: Columns to correlate (None = all columns of data)

        Returns:
            CorrelationMatrixResult with pairs in selection order (i < j)
        """
        columns = list(columns) if columns is not None else list(data.columns)
        k = len(columns)

        numeric = {c: to_numeric(data[c]).to_numpy() for c in columns}
        matrix = np.eye(k)
        pairs = []

        for i in range(k):
            for j in range(i + 1, k):
                corr, pval, n = self.correlate(numeric[columns[i]], numeric[columns[j]])

                if np.isnan(corr):
                    warnings.warn(
                        f"Skipping pair ({columns[i]}, {columns[j]}): "
                        f"{n} complete rows, need at least 2"
                    )
                    matrix[i, j] = matrix[j, i] = np.nan
                    continue

                matrix[i, j] = matrix[j, i] = corr
                pairs.append(CorrelationPair(columns[i], columns[j], corr, pval, n))

        return CorrelationMatrixResult(columns=tuple(columns), pairs=tuple(pairs), matrix=matrix)

    def find_highly_correlated_pairs(
        self,
        result: CorrelationMatrixResult,
        threshold: float = 0.9
    ) -> List[Tuple[str, str, float]]:
        """
        Find pairs of highly correlated columns.

        Args:
            result: Output of compute_feature_correlations()
            threshold: Absolute correlation threshold

        Returns:
            List of (column1, column2, correlation) tuples
        """
        pairs = [
            (p.column1, p.column2, p.correlation)
            for p in result.pairs
            if abs(p.correlation) >= threshold
        ]

        # Sort by absolute correlation
        pairs.sort(key=lambda x: abs(x[2]), reverse=True)

        return pairs
