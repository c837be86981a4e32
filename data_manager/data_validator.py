"""
Alignment and validation of daily return tables.
"""

import logging
from typing import Dict, List, Tuple

import numpy as np
import pandas as pd

from exceptions import DataAlignmentError

logger = logging.getLogger(__name__)


class DataValidator:
    """Turns raw price/return tables into an aligned ReturnMatrix."""

    def __init__(self, min_observations: int = 2):
        self.min_observations = min_observations

        # Reasonable bounds for simple daily returns
        self.validation_bounds = {
            'returns': {'min': -1.0, 'max': 10.0},
        }

    def prices_to_returns(self, prices: pd.DataFrame) -> pd.DataFrame:
        """Simple returns (p_t - p_{t-1}) / p_{t-1} per column, aligned on date"""
        if prices.empty:
            raise DataAlignmentError("No prices to convert")
        prices = self._prepare_index(prices)
        if (prices <= 0).any().any():
            bad = prices.columns[(prices <= 0).any()].tolist()
            raise DataAlignmentError(f"Non-positive prices for {bad}")

        previous = prices.shift(1)
        returns = (prices - previous) / previous
        return self.align(returns.iloc[1:])

    def align_series(self, series: Dict[str, pd.Series]) -> pd.DataFrame:
        """Intersect the dates of per-asset series and build one table"""
        if not series:
            raise DataAlignmentError("No series supplied")
        frame = pd.concat(series, axis=1, join='inner')
        if frame.empty:
            raise DataAlignmentError(f"No overlapping dates across {list(series)}")
        return self.align(frame)

    def align(self, returns: pd.DataFrame) -> pd.DataFrame:
        """
        Drop incomplete rows and check the table is usable as a return matrix.

        Args:
            returns: Wide table, one column per asset, indexed by date

        Returns:
            Table with a strictly increasing DatetimeIndex and no missing values
        """
        if returns.shape[1] == 0:
            raise DataAlignmentError("Return table has no asset columns")
        if returns.columns.duplicated().any():
            raise DataAlignmentError(
                f"Duplicate asset columns: {returns.columns[returns.columns.duplicated()].tolist()}"
            )

        returns = self._prepare_index(returns).astype(float)

        if np.isinf(returns.to_numpy()).any():
            raise DataAlignmentError("Return table contains infinite values")

        n_before = len(returns)
        returns = returns.dropna(how='any')
        n_dropped = n_before - len(returns)
        if n_dropped:
            logger.info(f"Dropped {n_dropped} of {n_before} rows with missing values")

        if len(returns) < self.min_observations:
            raise DataAlignmentError(
                f"Insufficient overlapping observations: {len(returns)} < {self.min_observations}"
            )
        return returns

    def validate_returns(self, returns: pd.DataFrame) -> Tuple[bool, List[str]]:
        """
        Flags suspicious values without modifying the table.

        Returns:
            Tuple of (is_valid, list_of_issues)
        """
        issues = []
        bounds = self.validation_bounds['returns']
        for col in returns.columns:
            issues.extend(self._validate_bounds(returns[col], bounds['min'], bounds['max'], f"{col} returns"))
            missing_count = returns[col].isna().sum()
            if missing_count > 0:
                issues.append(f"Column {col} has {missing_count} missing values")
        return len(issues) == 0, issues

    def _validate_bounds(self, series: pd.Series, min_val: float, max_val: float, name: str) -> List[str]:
        """Validates that values fall within expected bounds."""
        issues = []

        below_min = series[series <= min_val]
        if not below_min.empty:
            issues.append(
                f"{name}: {len(below_min)} values at or below {min_val} "
                f"(first occurrence at {below_min.index[0]})"
            )

        above_max = series[series > max_val]
        if not above_max.empty:
            issues.append(
                f"{name}: {len(above_max)} values above {max_val} "
                f"(first occurrence at {above_max.index[0]})"
            )

        return issues

    def _prepare_index(self, frame: pd.DataFrame) -> pd.DataFrame:
        try:
            index = pd.DatetimeIndex(pd.to_datetime(frame.index))
        except (TypeError, ValueError) as e:
            raise DataAlignmentError(f"Index cannot be read as dates: {e}") from e
        if index.has_duplicates:
            raise DataAlignmentError(f"Duplicate dates: {index[index.duplicated()][:5].tolist()}")
        frame = frame.copy()
        frame.index = index
        if not index.is_monotonic_increasing:
            logger.debug("Sorting table by date")
            frame = frame.sort_index()
        return frame
