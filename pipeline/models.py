from dataclasses import dataclass
from typing import Dict, Hashable, Optional

import pandas as pd

from config import PipelineConfig
from copula.models import CrashProbabilityResult


@dataclass
class SignalRun:
    """Outputs of one pipeline run"""
    crash: Optional[CrashProbabilityResult]  # None when fewer than two assets
    momentum: pd.DataFrame  # date x asset, NaN where undefined
    momentum_failures: Dict[Hashable, int]  # failed Kalman windows per asset
    config: PipelineConfig

    @property
    def copula_failures(self) -> Dict[str, int]:
        return dict(self.crash.failure_counts) if self.crash is not None else {}

    def failure_summary(self) -> pd.DataFrame:
        """Failed fits by engine and unit"""
        records = [
            {'engine': 'copula', 'unit': family, 'failures': count}
            for family, count in self.copula_failures.items()
        ]
        records += [
            {'engine': 'kalman', 'unit': asset, 'failures': count}
            for asset, count in self.momentum_failures.items()
        ]
        return pd.DataFrame(records, columns=['engine', 'unit', 'failures'])
