from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Hashable, List, Optional, Tuple

import numpy as np
import pandas as pd

from .families import CopulaFamily

NO_FAMILY = 'none'


@dataclass
class CopulaFit:
    """Result of fitting one copula family to one pair in one window"""
    family: CopulaFamily
    params: Tuple[float, ...]
    log_likelihood: float
    aic: float
    success: bool
    n_obs: int
    message: str = ''

    @classmethod
    def failed(cls, family: CopulaFamily, reason: str, n_obs: int) -> 'CopulaFit':
        return cls(
            family=family,
            params=(),
            log_likelihood=np.nan,
            aic=np.nan,
            success=False,
            n_obs=n_obs,
            message=reason
        )

    @property
    def param_dict(self) -> Dict[str, float]:
        return dict(zip(self.family.model.param_names, self.params))

    def cdf(self, u: float, v: float) -> float:
        if not self.success:
            raise ValueError(f"Cannot evaluate failed {self.family.value} fit")
        return self.family.model.cdf(u, v, self.params)


@dataclass
class CrashProbabilityEntry:
    """Best copula and joint lower-tail probability for one asset pair"""
    asset1: Hashable
    asset2: Hashable
    best_family: str  # family value or 'none'
    probability: Optional[float]  # None when no family could be fitted
    fits: Dict[CopulaFamily, CopulaFit] = field(default_factory=dict)

    @property
    def is_defined(self) -> bool:
        return self.probability is not None

    @property
    def best_fit(self) -> Optional[CopulaFit]:
        if self.best_family == NO_FAMILY:
            return None
        return self.fits.get(CopulaFamily(self.best_family))

    @property
    def failed_families(self) -> List[str]:
        return [family.value for family, fit in self.fits.items() if not fit.success]


@dataclass
class CrashProbabilityResult:
    """Crash probability matrix for one lookback window"""
    matrix: pd.DataFrame  # asset x asset, NaN where undefined
    families: pd.DataFrame  # asset x asset, best family or 'none'
    entries: List[CrashProbabilityEntry]
    failure_counts: Dict[str, int]  # failed fits per family
    thresholds: Tuple[float, float]
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None

    @property
    def n_defined(self) -> int:
        return sum(entry.is_defined for entry in self.entries)

    def to_frame(self) -> pd.DataFrame:
        """One row per pair"""
        records = []
        for entry in self.entries:
            best = entry.best_fit
            records.append({
                'asset1': entry.asset1,
                'asset2': entry.asset2,
                'best_family': entry.best_family,
                'crash_probability': np.nan if entry.probability is None else entry.probability,
                'aic': best.aic if best is not None else np.nan,
                'params': best.param_dict if best is not None else {},
                'failed_families': ','.join(entry.failed_families)
            })
        return pd.DataFrame(records)
