"""Runs both engines over a ReturnMatrix and assembles the outputs."""

import logging
from concurrent.futures import ProcessPoolExecutor
from typing import Dict, Hashable, List, Optional

import pandas as pd

from config import PipelineConfig
from copula.crash import CrashProbabilityEngine
from copula.models import CrashProbabilityResult
from data_manager.data_validator import DataValidator
from exceptions import DataAlignmentError
from momentum.kalman import MomentumKalmanFilter
from momentum.models import MomentumResult
from utils.progress import ProgressMonitor
from .models import SignalRun

logger = logging.getLogger(__name__)


class WindowDriver:
    """
    Slides the lookback windows across the date axis.

    The crash engine runs once on the final copula-lookback snapshot; the
    momentum filter runs once per time index for every asset.
    """

    def __init__(self, config: Optional[PipelineConfig] = None,
                 crash_engine: Optional[CrashProbabilityEngine] = None,
                 momentum_filter: Optional[MomentumKalmanFilter] = None):
        self.config = config or PipelineConfig()
        self.config.validate()
        self.crash_engine = crash_engine or CrashProbabilityEngine(self.config.crash)
        self.momentum_filter = momentum_filter or MomentumKalmanFilter(self.config.momentum)
        self.validator = DataValidator(min_observations=2)

    def prepare(self, returns: pd.DataFrame) -> pd.DataFrame:
        """Select the configured symbols and align on dates"""
        if self.config.symbols:
            missing = [s for s in self.config.symbols if s not in returns.columns]
            if missing:
                raise DataAlignmentError(f"Returns missing configured symbols {missing}")
            returns = returns[self.config.symbols]
        return self.validator.align(returns)

    def crash_probabilities(self, returns: pd.DataFrame) -> CrashProbabilityResult:
        returns = self.prepare(returns)
        return self.crash_engine.compute(returns, lookback=self.config.crash.lookback)

    def momentum(self, returns: pd.DataFrame) -> Dict[Hashable, MomentumResult]:
        """Momentum results per asset, in column order"""
        returns = self.prepare(returns)
        assets = list(returns.columns)
        results: Dict[Hashable, MomentumResult] = {}

        with ProgressMonitor(total=len(assets), desc="Momentum", logger=logger,
                             disable=not self.config.show_progress) as monitor:
            if self.config.momentum.n_jobs == 1 or len(assets) < 2:
                for asset in assets:
                    results[asset] = self.momentum_filter.momentum_series(returns[asset], asset)
                    monitor.update(asset, failures=results[asset].n_failures)
            else:
                with ProcessPoolExecutor(max_workers=self.config.momentum.n_jobs) as executor:
                    futures = {
                        asset: executor.submit(self.momentum_filter.momentum_series, returns[asset], asset)
                        for asset in assets
                    }
                    for asset, future in futures.items():
                        results[asset] = future.result()
                        monitor.update(asset, failures=results[asset].n_failures)

        return {asset: results[asset] for asset in assets}

    @staticmethod
    def momentum_frame(results: Dict[Hashable, MomentumResult]) -> pd.DataFrame:
        return pd.DataFrame({asset: result.series for asset, result in results.items()})

    def run(self, returns: pd.DataFrame) -> SignalRun:
        """Crash matrix for the final window plus the full momentum series"""
        returns = self.prepare(returns)
        assets: List[Hashable] = list(returns.columns)
        logger.info(
            f"Running signals for {len(assets)} assets over {len(returns)} observations "
            f"({returns.index[0]:%Y-%m-%d} to {returns.index[-1]:%Y-%m-%d})"
        )

        crash = None
        if len(assets) >= 2:
            crash = self.crash_engine.compute(returns, lookback=self.config.crash.lookback)
        else:
            logger.warning("Fewer than two assets, skipping crash probabilities")

        momentum_results = self.momentum(returns)

        run = SignalRun(
            crash=crash,
            momentum=self.momentum_frame(momentum_results),
            momentum_failures={asset: r.n_failures for asset, r in momentum_results.items()},
            config=self.config
        )
        logger.info(f"Failure summary:\n{run.failure_summary().to_string(index=False)}")
        return run
