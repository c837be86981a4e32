from dataclasses import dataclass, field
from typing import Hashable, List

import numpy as np
import pandas as pd


@dataclass
class KalmanFilterResult:
    """Forward pass of the local-level filter"""
    filtered_mean: np.ndarray
    filtered_var: np.ndarray
    predicted_mean: np.ndarray
    predicted_var: np.ndarray
    log_likelihood: float


@dataclass
class MomentumState:
    """Fitted local-level model for one asset and one window"""
    process_var: float  # level noise variance (eta)
    observation_var: float  # observation noise variance (epsilon)
    filtered_level: np.ndarray
    smoothed_level: np.ndarray
    smoothed_var: np.ndarray
    log_likelihood: float

    @property
    def momentum(self) -> float:
        """Smoothed level at the last point of the window"""
        return float(self.smoothed_level[-1])

    @property
    def signal_to_noise(self) -> float:
        return self.process_var / self.observation_var


@dataclass
class MomentumResult:
    """Momentum series of one asset; NaN marks undefined indices"""
    asset: Hashable
    series: pd.Series
    lookback: int
    failed_dates: List[pd.Timestamp] = field(default_factory=list)

    @property
    def n_failures(self) -> int:
        return len(self.failed_dates)

    @property
    def n_defined(self) -> int:
        return int(self.series.notna().sum())
