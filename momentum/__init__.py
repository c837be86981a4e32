"""
State-space momentum package.
Local-level Kalman filtering and smoothing on rolling windows of log-returns.
"""

from .kalman import MomentumKalmanFilter
from .models import KalmanFilterResult, MomentumResult, MomentumState

__all__ = ['MomentumKalmanFilter', 'KalmanFilterResult', 'MomentumResult', 'MomentumState']
