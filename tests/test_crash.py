import pytest
import numpy as np
import pandas as pd

from config import CrashConfig
from copula.crash import CrashProbabilityEngine
from copula.families import CopulaFamily
from copula.models import NO_FAMILY, CopulaFit
from exceptions import ConfigurationError

from conftest import SYMBOLS


def make_fit(family, aic, success=True):
    if not success:
        return CopulaFit.failed(family, "did not converge", 20)
    params = (0.5, 4.0) if family is CopulaFamily.STUDENT_T else (2.0,)
    return CopulaFit(family=family, params=params, log_likelihood=-aic / 2,
                     aic=aic, success=True, n_obs=20)


@pytest.fixture
def engine():
    return CrashProbabilityEngine(CrashConfig(lookback=20, thresholds=(0.05, 0.05)))


def test_select_best_minimum_aic():
    fits = {
        CopulaFamily.GAUSSIAN: make_fit(CopulaFamily.GAUSSIAN, -10.0),
        CopulaFamily.CLAYTON: make_fit(CopulaFamily.CLAYTON, -14.5),
        CopulaFamily.GUMBEL: make_fit(CopulaFamily.GUMBEL, 0.0, success=False),
        CopulaFamily.FRANK: make_fit(CopulaFamily.FRANK, -3.0),
    }
    assert CrashProbabilityEngine.select_best(fits).family is CopulaFamily.CLAYTON


def test_select_best_ignores_failures():
    fits = {family: make_fit(family, 0.0, success=False) for family in CopulaFamily}
    assert CrashProbabilityEngine.select_best(fits) is None

    fits[CopulaFamily.FRANK] = make_fit(CopulaFamily.FRANK, 50.0)
    assert CrashProbabilityEngine.select_best(fits).family is CopulaFamily.FRANK


def test_invalid_config_rejected():
    with pytest.raises(ConfigurationError):
        CrashProbabilityEngine(CrashConfig(thresholds=(0.05, 1.5)))
    with pytest.raises(ConfigurationError):
        CrashProbabilityEngine(CrashConfig(lookback=1))


def test_lookback_below_two_rejected(engine, sample_returns):
    with pytest.raises(ConfigurationError):
        engine.compute(sample_returns, lookback=1)


def test_nine_asset_matrix(engine, sample_returns):
    """Every pair of the 9 assets gets one entry on the final 20 days"""
    result = engine.compute(sample_returns)

    assert list(result.matrix.index) == SYMBOLS
    assert list(result.matrix.columns) == SYMBOLS
    assert len(result.entries) == 36
    assert result.n_defined == 36
    assert result.window_start == sample_returns.index[-20]
    assert result.window_end == sample_returns.index[-1]
    assert result.thresholds == (0.05, 0.05)

    for i, a1 in enumerate(SYMBOLS):
        for j, a2 in enumerate(SYMBOLS):
            value = result.matrix.loc[a1, a2]
            if i < j:
                assert 0.0 <= value <= 0.05
                assert result.families.loc[a1, a2] in {f.value for f in CopulaFamily}
            else:
                # Diagonal and mirrored cells stay undefined
                assert np.isnan(value)
                assert result.families.loc[a1, a2] == NO_FAMILY

    assert set(result.failure_counts) == {f.value for f in CopulaFamily}
    assert sum(result.failure_counts.values()) == sum(len(e.failed_families) for e in result.entries)


def test_entries_follow_column_order(engine, sample_returns):
    result = engine.compute(sample_returns[['TLT', 'SPY', 'GLD']])
    assert [(e.asset1, e.asset2) for e in result.entries] == [
        ('TLT', 'SPY'), ('TLT', 'GLD'), ('SPY', 'GLD')
    ]


def test_compute_is_idempotent(engine, sample_returns):
    returns = sample_returns[['SPY', 'QQQ', 'EEM']]
    first = engine.compute(returns)
    second = engine.compute(returns)
    pd.testing.assert_frame_equal(first.matrix, second.matrix)
    pd.testing.assert_frame_equal(first.families, second.families)


def test_only_last_lookback_rows_used(engine, sample_returns):
    returns = sample_returns[['SPY', 'VNQ']]
    base = engine.compute(returns)

    # Rows before the window do not matter
    changed = returns.copy()
    changed.iloc[:30] = changed.iloc[:30] * -3
    pd.testing.assert_frame_equal(base.matrix, engine.compute(changed).matrix)


def test_invariant_to_increasing_transform(engine, sample_returns):
    returns = sample_returns[['EFA', 'EEM', 'USO']]
    base = engine.compute(returns)
    scaled = engine.compute(returns * 3 + 0.01)
    pd.testing.assert_frame_equal(base.matrix, scaled.matrix)
    pd.testing.assert_frame_equal(base.families, scaled.families)


def test_short_history_is_undefined(sample_returns, monkeypatch):
    """60 rows against a 91-day lookback: every pair undefined, nothing fitted"""
    engine = CrashProbabilityEngine(CrashConfig(lookback=91))

    def no_fits(u, v, families=None):
        raise AssertionError("no family should be fitted on a short window")

    monkeypatch.setattr(engine.fitter, 'fit_all', no_fits)
    result = engine.compute(sample_returns)

    assert len(result.entries) == 36
    assert result.n_defined == 0
    assert result.matrix.isna().all().all()
    assert (result.families == NO_FAMILY).all().all()
    assert all(entry.best_family == NO_FAMILY for entry in result.entries)
    assert all(count == 0 for count in result.failure_counts.values())
    assert result.window_start == sample_returns.index[0]


def test_column_labels_kept(engine, sample_returns):
    returns = sample_returns[['SPY', 'QQQ', 'IWM']].copy()
    returns.columns = [1, 2, 3]
    result = engine.compute(returns)

    assert list(result.matrix.index) == [1, 2, 3]
    assert list(result.matrix.columns) == [1, 2, 3]
    assert [(e.asset1, e.asset2) for e in result.entries] == [(1, 2), (1, 3), (2, 3)]
    assert np.isfinite(result.matrix.loc[1, 2])


def test_cdf_failure_leaves_pair_undefined(engine, sample_returns, monkeypatch):
    """The minimum-AIC family is used or nothing; no fallback to the runner-up"""
    def broken_cdf(self, u, v):
        raise ValueError("quadrature failed")

    monkeypatch.setattr(CopulaFit, 'cdf', broken_cdf)
    result = engine.compute(sample_returns[['SPY', 'QQQ']])

    entry = result.entries[0]
    assert not entry.is_defined
    assert entry.best_family == NO_FAMILY
    assert any(fit.success for fit in entry.fits.values())
    assert np.isnan(result.matrix.loc['SPY', 'QQQ'])


def test_pair_with_no_successful_fit(engine, sample_returns, monkeypatch):
    def all_failed(u, v, families=None):
        return {family: CopulaFit.failed(family, "forced", len(u)) for family in CopulaFamily}

    monkeypatch.setattr(engine.fitter, 'fit_all', all_failed)
    result = engine.compute(sample_returns[['SPY', 'QQQ', 'IWM']])

    assert result.n_defined == 0
    assert result.matrix.isna().all().all()
    assert (result.families == NO_FAMILY).all().all()
    assert all(count == 3 for count in result.failure_counts.values())
    for entry in result.entries:
        assert not entry.is_defined
        assert entry.best_fit is None


def test_independent_pair_close_to_product():
    rng = np.random.RandomState(0)
    n = 1000
    dates = pd.bdate_range('2020-01-01', periods=n)
    returns = pd.DataFrame(rng.normal(0, 0.01, (n, 2)), index=dates, columns=['A', 'B'])

    engine = CrashProbabilityEngine(CrashConfig(lookback=n))
    result = engine.compute(returns)
    assert result.matrix.loc['A', 'B'] == pytest.approx(0.05 * 0.05, abs=0.0015)


def test_dependent_pair_has_fat_joint_tail():
    rng = np.random.RandomState(1)
    n = 250
    dates = pd.bdate_range('2020-01-01', periods=n)
    x = rng.normal(0, 0.01, n)
    returns = pd.DataFrame({'A': x, 'B': x + rng.normal(0, 0.002, n)}, index=dates)

    engine = CrashProbabilityEngine(CrashConfig(lookback=n))
    result = engine.compute(returns)
    assert 0.03 < result.matrix.loc['A', 'B'] <= 0.05


def test_to_frame(engine, sample_returns):
    result = engine.compute(sample_returns[['SPY', 'QQQ', 'TLT']])
    frame = result.to_frame()

    assert list(frame.columns) == [
        'asset1', 'asset2', 'best_family', 'crash_probability', 'aic', 'params', 'failed_families'
    ]
    assert len(frame) == 3
    for _, row in frame.iterrows():
        assert row['crash_probability'] == result.matrix.loc[row['asset1'], row['asset2']]
        assert isinstance(row['params'], dict)
