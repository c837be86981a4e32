import pytest
import numpy as np
import pandas as pd

from config import CrashConfig, MomentumConfig, PipelineConfig
from exceptions import ConfigurationError, DataAlignmentError
from pipeline.window_driver import WindowDriver

from conftest import SYMBOLS


@pytest.fixture
def config():
    return PipelineConfig(
        symbols=list(SYMBOLS),
        crash=CrashConfig(lookback=20, thresholds=(0.05, 0.05)),
        momentum=MomentumConfig(lookback=20)
    )


@pytest.fixture
def driver(config):
    return WindowDriver(config)


def test_full_run(driver, sample_returns):
    """9 assets, 60 days, lookback 20 for both engines"""
    run = driver.run(sample_returns)

    assert run.crash is not None
    assert len(run.crash.entries) == 36
    assert run.crash.window_start == sample_returns.index[-20]

    assert run.momentum.shape == sample_returns.shape
    assert list(run.momentum.columns) == SYMBOLS
    assert run.momentum.iloc[:20].isna().all().all()
    assert run.crash.n_defined == 36
    for asset in SYMBOLS:
        assert run.momentum[asset].iloc[20:].notna().sum() == 40
        assert run.momentum_failures[asset] == 0


def test_failure_summary(driver, sample_returns):
    run = driver.run(sample_returns)
    summary = run.failure_summary()

    assert list(summary.columns) == ['engine', 'unit', 'failures']
    copula = summary[summary['engine'] == 'copula']
    kalman = summary[summary['engine'] == 'kalman']
    assert len(copula) == 5
    assert list(kalman['unit']) == SYMBOLS
    assert run.copula_failures == run.crash.failure_counts


def test_run_is_idempotent(config, sample_returns):
    returns = sample_returns[['SPY', 'TLT', 'GLD']]
    config.symbols = ['SPY', 'TLT', 'GLD']
    first = WindowDriver(config).run(returns)
    second = WindowDriver(config).run(returns)

    pd.testing.assert_frame_equal(first.crash.matrix, second.crash.matrix)
    pd.testing.assert_frame_equal(first.momentum, second.momentum)


def test_symbol_selection_order(config, sample_returns):
    config.symbols = ['TLT', 'SPY']
    run = WindowDriver(config).run(sample_returns)
    assert list(run.momentum.columns) == ['TLT', 'SPY']
    assert [(e.asset1, e.asset2) for e in run.crash.entries] == [('TLT', 'SPY')]


def test_missing_symbol(driver, sample_returns):
    with pytest.raises(DataAlignmentError):
        driver.run(sample_returns.drop(columns=['VNQ']))


def test_single_asset_skips_crash(config, sample_returns):
    config.symbols = ['SPY']
    run = WindowDriver(config).run(sample_returns)

    assert run.crash is None
    assert run.copula_failures == {}
    assert list(run.momentum.columns) == ['SPY']
    assert set(run.failure_summary()['engine']) == {'kalman'}


def test_incomplete_rows_dropped_before_windows(config, sample_returns):
    config.symbols = ['SPY', 'QQQ']
    returns = sample_returns.copy()
    returns.iloc[5, 0] = np.nan

    run = WindowDriver(config).run(returns)
    assert len(run.momentum) == len(sample_returns) - 1
    assert sample_returns.index[5] not in run.momentum.index


def test_momentum_matches_filter(driver, sample_returns):
    results = driver.momentum(sample_returns)
    assert list(results) == SYMBOLS
    direct = driver.momentum_filter.momentum_series(sample_returns['SPY'])
    pd.testing.assert_series_equal(results['SPY'].series, direct.series, check_freq=False)


def test_invalid_config():
    with pytest.raises(ConfigurationError):
        WindowDriver(PipelineConfig(symbols=['SPY', 'SPY']))
    with pytest.raises(ConfigurationError):
        WindowDriver(PipelineConfig(momentum=MomentumConfig(lookback=1)))


def test_total_loss_return_does_not_abort_run(config, sample_returns):
    config.symbols = ['SPY', 'QQQ', 'IWM']
    returns = sample_returns[config.symbols].copy()
    returns.iloc[5, 0] = -1.0

    run = WindowDriver(config).run(returns)

    assert run.crash is not None
    assert run.momentum_failures['SPY'] == 5
    assert run.momentum['SPY'].iloc[20:25].isna().all()
    for asset in ['QQQ', 'IWM']:
        assert run.momentum[asset].iloc[20:].notna().sum() == 40
        assert run.momentum_failures[asset] == 0


def test_parallel_matches_serial(config, sample_returns):
    config.symbols = ['SPY', 'QQQ', 'IWM', 'TLT']
    serial = WindowDriver(config).run(sample_returns)

    config.crash.n_jobs = 2
    config.momentum.n_jobs = 2
    parallel = WindowDriver(config).run(sample_returns)

    pd.testing.assert_frame_equal(parallel.crash.matrix, serial.crash.matrix)
    pd.testing.assert_frame_equal(parallel.crash.families, serial.crash.families)
    pd.testing.assert_frame_equal(parallel.momentum, serial.momentum)
    assert parallel.momentum_failures == serial.momentum_failures
    assert parallel.copula_failures == serial.copula_failures


def test_integer_labels_match_across_outputs(config, sample_returns):
    returns = sample_returns[['SPY', 'QQQ', 'IWM']].copy()
    returns.columns = [1, 2, 3]
    config.symbols = []

    run = WindowDriver(config).run(returns)

    assert list(run.crash.matrix.columns) == [1, 2, 3]
    assert list(run.momentum.columns) == [1, 2, 3]
    assert list(run.crash.matrix.columns) == list(run.momentum.columns)
    assert set(run.momentum_failures) == {1, 2, 3}
