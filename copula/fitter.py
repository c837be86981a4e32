"""Maximum likelihood fitting of the bivariate copula families."""

import logging
from typing import Dict, Iterable, Optional

import numpy as np
from scipy.optimize import minimize

from config import CopulaFitOptions
from exceptions import DataAlignmentError, FitFailure
from .families import CopulaFamily, CopulaModel
from .models import CopulaFit

logger = logging.getLogger(__name__)

# Objective value used where the likelihood is not finite
_PENALTY = 1e10


class CopulaFitter:
    """Fits one copula family at a time to a pair of pseudo-observation series"""

    def __init__(self, options: Optional[CopulaFitOptions] = None):
        self.options = options or CopulaFitOptions()

    def fit(self, u: np.ndarray, v: np.ndarray, family: CopulaFamily) -> CopulaFit:
        """
        Fit a single family by maximum likelihood.

        Numerical problems never raise: they come back as a CopulaFit with
        success=False so the family drops out of model selection.
        """
        u, v = self._check_inputs(u, v)
        n = len(u)
        model = family.model

        try:
            raw = self._maximize(model, u, v, family)
            params = model.finalize(raw)
            if not model.in_domain(params):
                raise FitFailure(family.value, f"parameters {params} outside the family domain")

            with np.errstate(all='ignore'):
                ll = model.log_likelihood(u, v, params)
            if not np.isfinite(ll):
                raise FitFailure(family.value, f"non-finite log-likelihood at {params}")

        except FitFailure as e:
            logger.warning(str(e))
            return CopulaFit.failed(family, e.reason, n)
        except (ValueError, ArithmeticError, np.linalg.LinAlgError) as e:
            logger.warning(f"{family.value} fit failed: {str(e)}")
            return CopulaFit.failed(family, str(e), n)

        aic = 2 * model.n_params - 2 * ll
        logger.debug(f"{family.value}: params={params}, loglik={ll:.4f}, aic={aic:.4f}")

        return CopulaFit(
            family=family,
            params=params,
            log_likelihood=float(ll),
            aic=float(aic),
            success=True,
            n_obs=n
        )

    def fit_all(self, u: np.ndarray, v: np.ndarray,
                families: Optional[Iterable[CopulaFamily]] = None) -> Dict[CopulaFamily, CopulaFit]:
        """Fit every requested family independently"""
        families = list(CopulaFamily) if families is None else list(families)
        return {family: self.fit(u, v, family) for family in families}

    def _maximize(self, model: CopulaModel, u: np.ndarray, v: np.ndarray,
                  family: CopulaFamily) -> np.ndarray:
        x0 = np.asarray(self.options.initial_guesses[family.value], dtype=float)
        bounds = self.options.bounds[family.value]

        def neg_ll(params):
            with np.errstate(all='ignore'):
                ll = model.log_likelihood(u, v, params)
            return -ll if np.isfinite(ll) else _PENALTY

        result = minimize(
            neg_ll,
            x0=x0,
            method=self.options.method,
            bounds=bounds,
            tol=self.options.tol,
            options={'maxiter': self.options.maxiter}
        )

        if not result.success:
            raise FitFailure(family.value, f"optimizer did not converge: {result.message}")
        if result.fun >= _PENALTY or not np.all(np.isfinite(result.x)):
            raise FitFailure(family.value, "likelihood not finite at the optimum")

        return result.x

    @staticmethod
    def _check_inputs(u, v):
        u = np.asarray(u, dtype=float).ravel()
        v = np.asarray(v, dtype=float).ravel()
        if len(u) != len(v):
            raise DataAlignmentError(f"Pseudo-observation lengths differ: {len(u)} vs {len(v)}")
        if len(u) < 2:
            raise DataAlignmentError(f"Need at least 2 pseudo-observations, got {len(u)}")
        if np.any((u <= 0) | (u >= 1)) or np.any((v <= 0) | (v >= 1)):
            raise DataAlignmentError("Pseudo-observations must lie strictly inside (0, 1)")
        return u, v
