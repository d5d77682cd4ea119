"""
Unit tests for Kaplan-Meier estimation and survival tables
"""

import numpy as np
import pandas as pd
import pytest

from bfeed_survival.analysis.survival_curves import (
    fit_overall_curves, checkpoint_table, summarize_strata, run_survival_estimation
)
from bfeed_survival.exceptions import DegenerateStratumError
from bfeed_survival.models.kaplan_meier import (
    fit_kaplan_meier, fit_stratified, empirical_survival,
    survival_at_checkpoints, median_survival, restricted_mean
)


@pytest.fixture
def small_curve():
    # Events at 2, 3, 5; censored at 3 and 8
    return fit_kaplan_meier([2, 3, 3, 5, 8], [1, 1, 0, 1, 0])


class TestStepFunction:
    """Test properties of the estimated step function"""

    def test_starts_at_one(self, bfeed_data):
        curve = fit_kaplan_meier(bfeed_data['duration'], bfeed_data['delta'])
        assert curve.survival_at([0])[0] == 1.0
        assert curve.survival_probs[0] == 1.0

    def test_non_increasing(self, bfeed_data):
        curve = fit_kaplan_meier(bfeed_data['duration'], bfeed_data['delta'])
        assert np.all(np.diff(curve.survival_probs) <= 0)

    def test_steps_at_event_times(self, bfeed_data):
        curve = fit_kaplan_meier(bfeed_data['duration'], bfeed_data['delta'])
        drops = curve.timeline[1:][np.diff(curve.survival_probs) < 0]
        np.testing.assert_array_equal(drops, curve.event_times)

    def test_hand_computed_values(self, small_curve):
        # S(2) = 4/5, S(3) = 4/5 * 3/4, S(5) = 0.6 * 1/2
        values = small_curve.survival_at([1, 2, 2.5, 3, 5, 7])
        np.testing.assert_allclose(values, [1.0, 0.8, 0.8, 0.6, 0.3, 0.3])

    def test_right_continuous_lookup(self, small_curve):
        assert small_curve.survival_at([3])[0] == pytest.approx(0.6)
        assert small_curve.survival_at([2.999])[0] == pytest.approx(0.8)

    def test_beyond_last_time_is_missing(self, small_curve):
        assert np.isnan(small_curve.survival_at([9])[0])

    def test_no_events_is_degenerate(self):
        with pytest.raises(DegenerateStratumError):
            fit_kaplan_meier([1, 2, 3], [0, 0, 0], label='empty')


class TestEmpirical:
    """Test the no-censoring comparison curve"""

    def test_never_above_km(self, bfeed_data):
        km, emp = fit_overall_curves(bfeed_data)
        weeks = np.arange(1, km.last_time + 1)
        assert np.all(emp.survival_at(weeks) <= km.survival_at(weeks) + 1e-12)

    def test_counts_all_records(self, bfeed_data):
        emp = empirical_survival(bfeed_data['duration'])
        assert emp.n_events == len(bfeed_data)


class TestSummaries:
    """Test checkpoint, median and restricted mean summaries"""

    def test_checkpoint_columns(self, small_curve):
        table = survival_at_checkpoints(small_curve, [1, 4, 12])
        assert table.columns.tolist() == ['week', 'at_risk', 'survival', 'lower', 'upper']
        assert table['at_risk'].tolist() == [5, 2, 0]
        assert np.isnan(table['survival'].iloc[2])

    def test_bounds_contain_estimate(self, bfeed_data):
        curve = fit_kaplan_meier(bfeed_data['duration'], bfeed_data['delta'])
        table = survival_at_checkpoints(curve, [4, 8, 12]).dropna()
        assert (table['lower'] <= table['survival']).all()
        assert (table['survival'] <= table['upper']).all()

    def test_median(self, small_curve):
        assert median_survival(small_curve)['median'] == 5.0

    def test_restricted_mean_hand_computed(self, small_curve):
        # Area: 2*1 + 1*0.8 + 2*0.6 + 3*0.3 up to t=8
        result = restricted_mean(small_curve)
        assert result['horizon'] == 8.0
        assert result['mean'] == pytest.approx(4.9)
        assert result['se'] > 0

    def test_checkpoint_table_adds_empirical(self, bfeed_data):
        km, emp = fit_overall_curves(bfeed_data)
        table = checkpoint_table(km, emp, [4, 12])
        assert 'empirical' in table.columns
        assert (table['empirical'] <= table['survival']).all()


class TestStratified:
    """Test stratified curves"""

    def test_levels_in_category_order(self, bfeed_data):
        curves = fit_stratified(bfeed_data, 'race')
        assert list(curves) == ['white', 'black', 'other']
        assert sum(c.n_obs for c in curves.values()) == len(bfeed_data)

    def test_degenerate_stratum(self, bfeed_data):
        df = bfeed_data.copy()
        df.loc[df['alcohol'] == 'yes', 'delta'] = 0
        with pytest.raises(DegenerateStratumError, match="alcohol"):
            fit_stratified(df, 'alcohol')

    def test_strata_share_horizon(self, bfeed_data):
        table = summarize_strata(bfeed_data, 'smoke')
        assert table['horizon'].nunique() == 1
        assert table['horizon'].iloc[0] == bfeed_data['duration'].max()

    def test_run_survival_estimation(self, bfeed_data):
        results = run_survival_estimation(bfeed_data, ['race', 'smoke'], weeks=[4, 12], verbose=False)
        assert set(results['stratified_curves']) == {'race', 'smoke'}
        assert len(results['checkpoints']) == 2
        assert len(results['stratified_checkpoints']) == 2 * (3 + 2)
        assert isinstance(results['strata_summary'], pd.DataFrame)
