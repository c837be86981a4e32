"""Run configuration for the crash probability and momentum engines.

Optimizer starting points, bounds and iteration caps live here so that
every fit is reproducible from the configuration alone.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Tuple

from exceptions import ConfigurationError


@dataclass
class CopulaFitOptions:
    """Starting values, bounds and limits for the copula likelihood search"""
    initial_guesses: Dict[str, Tuple[float, ...]] = field(default_factory=lambda: {
        'gaussian': (0.0,),
        'student-t': (0.0, 5.0),
        'clayton': (1.0,),
        'gumbel': (1.5,),
        'frank': (2.0,),
    })
    bounds: Dict[str, Tuple[Tuple[float, float], ...]] = field(default_factory=lambda: {
        'gaussian': ((-0.99, 0.99),),
        'student-t': ((-0.99, 0.99), (1.0, 100.0)),
        'clayton': ((1e-4, 50.0),),
        'gumbel': ((1.0, 50.0),),
        'frank': ((-50.0, 50.0),),
    })
    method: str = 'L-BFGS-B'
    maxiter: int = 500
    tol: Optional[float] = None


@dataclass
class KalmanFitOptions:
    """Initial state and optimizer settings for the local-level model"""
    m0: float = 0.0
    c0: float = 1e7
    method: str = 'L-BFGS-B'
    maxiter: int = 500
    tol: Optional[float] = None
    # Bounds on log-variances
    log_var_bounds: Tuple[float, float] = (-30.0, 5.0)
    min_variance: float = 1e-12


@dataclass
class CrashConfig:
    lookback: int = 91
    thresholds: Tuple[float, float] = (0.05, 0.05)
    n_jobs: int = 1
    fit_options: CopulaFitOptions = field(default_factory=CopulaFitOptions)

    def validate(self):
        if self.lookback < 2:
            raise ConfigurationError(f"Copula lookback must be at least 2, got {self.lookback}")
        if len(self.thresholds) != 2:
            raise ConfigurationError("Exactly two lower-tail thresholds are required")
        for p in self.thresholds:
            if not 0 < p < 1:
                raise ConfigurationError(f"Threshold {p} outside (0, 1)")
        if self.n_jobs < 1:
            raise ConfigurationError(f"n_jobs must be positive, got {self.n_jobs}")


@dataclass
class MomentumConfig:
    lookback: int = 20
    n_jobs: int = 1
    fit_options: KalmanFitOptions = field(default_factory=KalmanFitOptions)

    def validate(self):
        if self.lookback < 2:
            raise ConfigurationError(f"Momentum lookback must be at least 2, got {self.lookback}")
        if self.n_jobs < 1:
            raise ConfigurationError(f"n_jobs must be positive, got {self.n_jobs}")


@dataclass
class PipelineConfig:
    """Everything a run needs besides the price data itself"""
    symbols: List[str] = field(default_factory=list)
    start: Optional[date] = None
    end: Optional[date] = None
    crash: CrashConfig = field(default_factory=CrashConfig)
    momentum: MomentumConfig = field(default_factory=MomentumConfig)
    show_progress: bool = False

    def validate(self):
        if len(set(self.symbols)) != len(self.symbols):
            raise ConfigurationError(f"Duplicate symbols in {self.symbols}")
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ConfigurationError(f"Start date {self.start} is after end date {self.end}")
        self.crash.validate()
        self.momentum.validate()
