"""
Pairwise copula modelling package.
Fits competing copula families per asset pair and derives joint crash probabilities.
"""

from .crash import CrashProbabilityEngine
from .families import CopulaFamily
from .fitter import CopulaFitter
from .models import CopulaFit, CrashProbabilityEntry, CrashProbabilityResult
from .pseudo_obs import pseudo_observations, pseudo_observations_frame

__all__ = [
    'CrashProbabilityEngine',
    'CopulaFamily',
    'CopulaFitter',
    'CopulaFit',
    'CrashProbabilityEntry',
    'CrashProbabilityResult',
    'pseudo_observations',
    'pseudo_observations_frame',
]
