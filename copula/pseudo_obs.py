"""Rank transform of return samples onto the open unit interval."""

import numpy as np
import pandas as pd
from scipy.stats import rankdata

from exceptions import DataAlignmentError


def pseudo_observations(values) -> np.ndarray:
    """
    Convert a sample to pseudo-observations rank / (n + 1).

    Ties receive their average rank, so the output is strictly inside (0, 1)
    and unchanged by any strictly increasing transform of the input.
    """
    x = np.asarray(values, dtype=float).ravel()
    n = len(x)
    if n < 2:
        raise DataAlignmentError(f"Need at least 2 observations for pseudo-observations, got {n}")
    if not np.all(np.isfinite(x)):
        raise DataAlignmentError("Pseudo-observation input contains non-finite values")
    return rankdata(x, method='average') / (n + 1)


def pseudo_observations_frame(frame: pd.DataFrame) -> pd.DataFrame:
    """Column-wise pseudo-observations of a return table"""
    return frame.apply(lambda col: pd.Series(pseudo_observations(col.to_numpy()), index=col.index))
