import sys
import os

# Add project root to Python path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

import matplotlib
matplotlib.use('Agg')

import pytest
import numpy as np
import pandas as pd

SYMBOLS = ['SPY', 'QQQ', 'IWM', 'EFA', 'EEM', 'TLT', 'GLD', 'USO', 'VNQ']


@pytest.fixture
def sample_returns():
    """9 assets, 60 trading days of correlated daily returns"""
    np.random.seed(42)
    n_days = 60
    dates = pd.bdate_range('2023-01-02', periods=n_days)

    # One common factor plus idiosyncratic noise
    market = np.random.normal(0.0005, 0.01, n_days)
    loadings = np.linspace(0.2, 1.2, len(SYMBOLS))
    noise = np.random.normal(0, 0.008, (n_days, len(SYMBOLS)))
    returns = market[:, None] * loadings[None, :] + noise

    return pd.DataFrame(returns, index=dates, columns=SYMBOLS)


@pytest.fixture
def sample_prices(sample_returns):
    """Price paths consistent with sample_returns, starting at 100"""
    first = pd.DataFrame(
        [[100.0] * sample_returns.shape[1]],
        index=[sample_returns.index[0] - pd.tseries.offsets.BDay(1)],
        columns=sample_returns.columns
    )
    growth = (1 + sample_returns).cumprod() * 100.0
    return pd.concat([first, growth])
