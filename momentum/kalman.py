"""
Rolling local-level Kalman momentum.

    Observation:  y_t = mu_t + eps_t,      eps_t ~ N(0, r)
    State:        mu_t = mu_{t-1} + eta_t,  eta_t ~ N(0, q)

with y_t = log(1 + return_t). For every index i >= lookback the variances
(q, r) are re-estimated by maximum likelihood on the trailing lookback
observations ending at i, the window is filtered forward and smoothed
backward (Rauch-Tung-Striebel), and the smoothed level at i is the
momentum value for i. Nothing is carried over from one window to the next.
"""

import logging
from typing import Hashable, Optional, Tuple

import numpy as np
import pandas as pd
from scipy.optimize import minimize

from config import KalmanFitOptions, MomentumConfig
from exceptions import FitFailure, InsufficientHistoryError
from .models import KalmanFilterResult, MomentumResult, MomentumState

logger = logging.getLogger(__name__)

_LOG_2PI = np.log(2.0 * np.pi)
_PENALTY = 1e10


class MomentumKalmanFilter:
    """Local-level filter/smoother with per-window variance estimation"""

    def __init__(self, config: Optional[MomentumConfig] = None):
        self.config = config or MomentumConfig()
        self.config.validate()
        self.options: KalmanFitOptions = self.config.fit_options

    @property
    def lookback(self) -> int:
        return self.config.lookback

    @staticmethod
    def log_returns(returns) -> np.ndarray:
        """log(1 + r); returns at or below -100% have no log-return and become NaN"""
        r = np.asarray(returns, dtype=float)
        total_loss = r <= -1
        if np.any(total_loss):
            logger.warning(f"{int(total_loss.sum())} returns at or below -1 set to NaN")
        with np.errstate(invalid='ignore', divide='ignore'):
            return np.where(total_loss, np.nan, np.log1p(r))

    def filter(self, y: np.ndarray, q: float, r: float) -> KalmanFilterResult:
        """Forward pass; log-likelihood is the exact Gaussian prediction-error decomposition"""
        y = np.ascontiguousarray(y, dtype=np.float64)
        n = len(y)
        min_var = self.options.min_variance

        m = self.options.m0
        c = self.options.c0

        filtered_mean = np.empty(n)
        filtered_var = np.empty(n)
        predicted_mean = np.empty(n)
        predicted_var = np.empty(n)
        log_likelihood = 0.0

        for t in range(n):
            a = m
            p = c + q

            s = max(p + r, min_var)
            k = p / s
            innovation = y[t] - a

            m = a + k * innovation
            c = max(p * r / s, min_var)

            predicted_mean[t] = a
            predicted_var[t] = p
            filtered_mean[t] = m
            filtered_var[t] = c

            log_likelihood += -0.5 * (_LOG_2PI + np.log(s) + innovation * innovation / s)

        return KalmanFilterResult(
            filtered_mean=filtered_mean,
            filtered_var=filtered_var,
            predicted_mean=predicted_mean,
            predicted_var=predicted_var,
            log_likelihood=float(log_likelihood)
        )

    @staticmethod
    def smooth(filtered: KalmanFilterResult) -> Tuple[np.ndarray, np.ndarray]:
        """Rauch-Tung-Striebel backward pass over a filtered window"""
        n = len(filtered.filtered_mean)
        smoothed_mean = filtered.filtered_mean.copy()
        smoothed_var = filtered.filtered_var.copy()

        for t in range(n - 2, -1, -1):
            gain = filtered.filtered_var[t] / filtered.predicted_var[t + 1]
            smoothed_mean[t] = (filtered.filtered_mean[t]
                                + gain * (smoothed_mean[t + 1] - filtered.predicted_mean[t + 1]))
            smoothed_var[t] = (filtered.filtered_var[t]
                               + gain ** 2 * (smoothed_var[t + 1] - filtered.predicted_var[t + 1]))

        return smoothed_mean, smoothed_var

    def estimate_variances(self, y: np.ndarray) -> Tuple[float, float, float]:
        """
        Maximum likelihood estimate of (q, r) for one window.

        The search runs on log-variances, starting from half the window's
        empirical variance for each noise term.

        Returns:
            Tuple of (process variance, observation variance, log-likelihood)
        """
        y = np.asarray(y, dtype=float)
        start_var = max(float(np.var(y, ddof=1)) / 2.0, self.options.min_variance)
        x0 = np.log([start_var, start_var])
        lo, hi = self.options.log_var_bounds
        x0 = np.clip(x0, lo, hi)

        def neg_ll(log_vars):
            q, r = np.exp(log_vars)
            with np.errstate(all='ignore'):
                ll = self.filter(y, q, r).log_likelihood
            return -ll if np.isfinite(ll) else _PENALTY

        result = minimize(
            neg_ll,
            x0=x0,
            method=self.options.method,
            bounds=[(lo, hi), (lo, hi)],
            tol=self.options.tol,
            options={'maxiter': self.options.maxiter}
        )

        if not result.success:
            raise FitFailure('local-level', f"optimizer did not converge: {result.message}")
        if result.fun >= _PENALTY or not np.all(np.isfinite(result.x)):
            raise FitFailure('local-level', "likelihood not finite at the optimum")

        q, r = np.exp(result.x)
        return float(q), float(r), float(-result.fun)

    def fit_window(self, y: np.ndarray) -> MomentumState:
        """Estimate variances, filter and smooth one window"""
        y = np.asarray(y, dtype=float)
        if len(y) < self.lookback:
            raise InsufficientHistoryError(len(y), self.lookback)
        if not np.all(np.isfinite(y)):
            raise FitFailure('local-level', "window contains non-finite observations")

        q, r, ll = self.estimate_variances(y)
        filtered = self.filter(y, q, r)
        smoothed_mean, smoothed_var = self.smooth(filtered)

        if not np.all(np.isfinite(smoothed_mean)):
            raise FitFailure('local-level', "smoother produced non-finite levels")

        return MomentumState(
            process_var=q,
            observation_var=r,
            filtered_level=filtered.filtered_mean,
            smoothed_level=smoothed_mean,
            smoothed_var=smoothed_var,
            log_likelihood=ll
        )

    def momentum_series(self, returns: pd.Series, asset: Optional[Hashable] = None) -> MomentumResult:
        """
        Momentum for every index of one asset's return series.

        Indices before the lookback are NaN. Each later index is fitted from
        scratch on its own window; a failed window is NaN and the loop moves on.
        """
        asset = asset if asset is not None else returns.name
        y = self.log_returns(returns.to_numpy())
        n = len(y)
        lookback = self.lookback

        values = np.full(n, np.nan)
        failed_dates = []

        if n <= lookback:
            logger.warning(f"{asset}: {n} observations, no index reaches lookback {lookback}")

        for i in range(lookback, n):
            window = y[i - lookback + 1:i + 1]
            try:
                state = self.fit_window(window)
            except FitFailure as e:
                logger.warning(f"{asset} momentum undefined at {returns.index[i]}: {e.reason}")
                failed_dates.append(returns.index[i])
                continue
            values[i] = state.momentum

        series = pd.Series(values, index=returns.index, name=asset)
        logger.info(
            f"{asset}: {int(np.isfinite(values).sum())} momentum values, "
            f"{len(failed_dates)} failed windows"
        )
        return MomentumResult(
            asset=asset,
            series=series,
            lookback=lookback,
            failed_dates=failed_dates
        )
