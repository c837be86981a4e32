"""
Joint crash probabilities from the best-fitting copula of each asset pair.

For every pair the five copula families are fitted to the pseudo-observations
of the most recent lookback window, the family with the lowest AIC among the
successful fits is kept, and its CDF is evaluated at the lower-tail thresholds
(p1, p2). Thresholds are probabilities on the pseudo-observation scale.
"""

import logging
from concurrent.futures import ProcessPoolExecutor
from itertools import combinations
from typing import Dict, Hashable, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from config import CrashConfig
from data_manager.data_validator import DataValidator
from exceptions import ConfigurationError
from .families import CopulaFamily
from .fitter import CopulaFitter
from .models import NO_FAMILY, CopulaFit, CrashProbabilityEntry, CrashProbabilityResult
from .pseudo_obs import pseudo_observations

logger = logging.getLogger(__name__)


class CrashProbabilityEngine:
    """Builds the pairwise crash probability matrix for one window"""

    def __init__(self, config: Optional[CrashConfig] = None,
                 fitter: Optional[CopulaFitter] = None):
        self.config = config or CrashConfig()
        self.config.validate()
        self.fitter = fitter or CopulaFitter(self.config.fit_options)
        self.validator = DataValidator(min_observations=2)

    @staticmethod
    def select_best(fits: Mapping[CopulaFamily, CopulaFit]) -> Optional[CopulaFit]:
        """Minimum AIC among successful fits, None if nothing succeeded"""
        candidates = [fit for fit in fits.values() if fit.success and np.isfinite(fit.aic)]
        if not candidates:
            return None
        return min(candidates, key=lambda fit: fit.aic)

    def pair_crash_probability(self, x: np.ndarray, y: np.ndarray,
                               asset1: Hashable, asset2: Hashable) -> CrashProbabilityEntry:
        """Fit all families for one pair and evaluate the winner at (p1, p2)"""
        u = pseudo_observations(x)
        v = pseudo_observations(y)
        fits = self.fitter.fit_all(u, v)

        best = self.select_best(fits)
        if best is None:
            logger.warning(f"No copula family could be fitted for {asset1}/{asset2}")
            return CrashProbabilityEntry(asset1, asset2, NO_FAMILY, None, fits)

        p1, p2 = self.config.thresholds
        try:
            probability = best.cdf(p1, p2)
        except (ValueError, ArithmeticError) as e:
            logger.warning(f"CDF evaluation failed for {asset1}/{asset2} ({best.family.value}): {str(e)}")
            return CrashProbabilityEntry(asset1, asset2, NO_FAMILY, None, fits)

        if not np.isfinite(probability):
            logger.warning(f"Non-finite crash probability for {asset1}/{asset2} ({best.family.value})")
            return CrashProbabilityEntry(asset1, asset2, NO_FAMILY, None, fits)

        # A copula CDF never exceeds either margin
        probability = float(np.clip(probability, 0.0, min(p1, p2)))

        logger.debug(
            f"{asset1}/{asset2}: best={best.family.value} aic={best.aic:.3f} "
            f"params={best.param_dict} crash={probability:.6f}"
        )
        return CrashProbabilityEntry(asset1, asset2, best.family.value, probability, fits)

    def compute(self, returns: pd.DataFrame, lookback: Optional[int] = None) -> CrashProbabilityResult:
        """
        Crash probability matrix for the most recent lookback window.

        Args:
            returns: ReturnMatrix, one column per asset
            lookback: Number of trailing observations to use (defaults to config)

        Returns:
            CrashProbabilityResult; only the (asset1, asset2) cell of each
            pair is filled, in column order
        """
        lookback = self.config.lookback if lookback is None else lookback
        if lookback < 2:
            raise ConfigurationError(f"Lookback must be at least 2, got {lookback}")

        returns = self.validator.align(returns)
        window = returns.iloc[-lookback:]
        assets = list(window.columns)
        pairs = list(combinations(range(len(assets)), 2))

        if len(window) < lookback:
            logger.warning(
                f"Only {len(window)} observations available for lookback {lookback}, "
                f"all {len(pairs)} pairs undefined"
            )
            entries = [
                CrashProbabilityEntry(assets[i], assets[j], NO_FAMILY, None)
                for i, j in pairs
            ]
            return self._assemble(entries, assets, window)

        logger.info(
            f"Fitting {len(CopulaFamily)} copula families for {len(pairs)} pairs "
            f"on {len(window)} observations ({window.index[0]:%Y-%m-%d} to {window.index[-1]:%Y-%m-%d})"
        )

        values = window.to_numpy()
        entries = self._run_pairs(values, assets, pairs)
        return self._assemble(entries, assets, window)

    def _assemble(self, entries: List[CrashProbabilityEntry], assets: List[Hashable],
                  window: pd.DataFrame) -> CrashProbabilityResult:
        matrix = pd.DataFrame(np.nan, index=assets, columns=assets)
        families = pd.DataFrame(NO_FAMILY, index=assets, columns=assets)
        failure_counts = {family.value: 0 for family in CopulaFamily}
        for entry in entries:
            families.loc[entry.asset1, entry.asset2] = entry.best_family
            if entry.is_defined:
                matrix.loc[entry.asset1, entry.asset2] = entry.probability
            for name in entry.failed_families:
                failure_counts[name] += 1

        result = CrashProbabilityResult(
            matrix=matrix,
            families=families,
            entries=entries,
            failure_counts=failure_counts,
            thresholds=tuple(self.config.thresholds),
            window_start=window.index[0],
            window_end=window.index[-1]
        )
        logger.info(
            f"Crash matrix: {result.n_defined}/{len(entries)} pairs defined, "
            f"failed fits per family: {failure_counts}"
        )
        return result

    def _run_pairs(self, values: np.ndarray, assets: List[Hashable],
                   pairs: List[Tuple[int, int]]) -> List[CrashProbabilityEntry]:
        if self.config.n_jobs == 1 or len(pairs) < 2:
            return [
                self.pair_crash_probability(values[:, i], values[:, j], assets[i], assets[j])
                for i, j in pairs
            ]

        results: Dict[Tuple[int, int], CrashProbabilityEntry] = {}
        with ProcessPoolExecutor(max_workers=self.config.n_jobs) as executor:
            futures = {
                (i, j): executor.submit(
                    self.pair_crash_probability, values[:, i], values[:, j], assets[i], assets[j]
                )
                for i, j in pairs
            }
            for key, future in futures.items():
                results[key] = future.result()
        return [results[key] for key in pairs]
