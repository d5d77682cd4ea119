"""
Unit tests for the Cox regression engine
"""

import numpy as np
import pandas as pd
import pytest

from bfeed_survival.config.settings import COVARIATES
from bfeed_survival.analysis.regression import compute_term_effects
from bfeed_survival.exceptions import ModelFitError, RegressionStateError
from bfeed_survival.models.cox_models import (
    CoxRegressionEngine, RegressionStage, choose_reference_level
)


class TestReferenceLevel:
    """Test the reference category rule"""

    def test_most_frequent_level(self):
        series = pd.Series(['black', 'other', 'other', 'white'])
        assert choose_reference_level(series, ['white', 'black', 'other']) == 'other'

    def test_tie_goes_to_declared_order(self):
        series = pd.Series(['other', 'other', 'black', 'black', 'white'])
        assert choose_reference_level(series, ['white', 'black', 'other']) == 'black'

    def test_binary_uses_first_level(self):
        series = pd.Series(['yes', 'yes', 'yes', 'no'])
        assert choose_reference_level(series, ['no', 'yes']) == 'no'

    def test_categorical_order(self):
        series = pd.Series(pd.Categorical(['b', 'a', 'a', 'c', 'c'], categories=['c', 'b', 'a']))
        assert choose_reference_level(series) == 'c'


class TestDesign:
    """Test design columns"""

    def test_dummy_columns(self, bfeed_data):
        engine = CoxRegressionEngine(bfeed_data, verbose=False)
        spec = engine.term_spec('race')
        assert spec.reference == 'white'
        assert spec.columns == ['race_black', 'race_other']
        assert spec.contrasts == ['black vs white', 'other vs white']

    def test_spline_columns(self, bfeed_data):
        engine = CoxRegressionEngine(bfeed_data, verbose=False)
        spec = engine.term_spec('agemth', 'spline')
        assert len(spec.columns) == 4
        assert spec.penalized

        frame, penalizer = engine.design_frame(['smoke', 'agemth'], {'smoke': 'linear', 'agemth': 'spline'})
        assert list(frame.columns[:2]) == ['duration', 'delta']
        assert isinstance(penalizer, np.ndarray)
        assert penalizer.tolist() == [0.0, 0.5, 0.5, 0.5, 0.5]

    def test_unpenalized_frame(self, bfeed_data):
        engine = CoxRegressionEngine(bfeed_data, verbose=False)
        _, penalizer = engine.design_frame(['race', 'agemth'])
        assert penalizer == 0.0


class TestWorkflowOrder:
    """Test the regression stage machine"""

    def test_initial_stage(self, bfeed_data):
        engine = CoxRegressionEngine(bfeed_data, verbose=False)
        assert engine.stage == RegressionStage.UNFITTED

    def test_multivariate_before_assumptions(self, bfeed_data):
        engine = CoxRegressionEngine(bfeed_data, verbose=False)
        with pytest.raises(RegressionStateError):
            engine.fit_multivariate()

    def test_stepwise_before_multivariate(self, bfeed_data):
        engine = CoxRegressionEngine(bfeed_data, covariates=['race', 'smoke'], verbose=False)
        engine.fit_univariate()
        with pytest.raises(RegressionStateError):
            engine.stepwise_select()

    def test_univariate_twice(self, bfeed_data):
        engine = CoxRegressionEngine(bfeed_data, covariates=['smoke'], verbose=False)
        engine.fit_univariate()
        with pytest.raises(RegressionStateError):
            engine.fit_univariate()


class TestUnivariate:
    """Test univariate fits"""

    def test_hazard_ratio_matches_coef(self, regression_results):
        table = regression_results['univariate']
        np.testing.assert_allclose(table['hr'], np.exp(table['coef']))
        assert (table['hr_lower'] <= table['hr']).all()
        assert (table['hr'] <= table['hr_upper']).all()

    def test_one_row_per_contrast(self, regression_results):
        table = regression_results['univariate']
        assert table['term'].tolist().count('race') == 2
        assert set(table['term']) == set(COVARIATES)

    def test_lr_df(self, regression_results):
        table = regression_results['univariate']
        assert table.loc[table['term'] == 'race', 'lr_df'].iloc[0] == 2
        assert table.loc[table['term'] == 'smoke', 'lr_df'].iloc[0] == 1


class TestAssumptions:
    """Test proportional-hazards checks"""

    def test_scopes(self, regression_results):
        table = regression_results['assumptions']
        assert set(table['scope']) == {'univariate', 'full'}

    def test_global_sums_columns(self, regression_results):
        full = regression_results['assumptions']
        full = full[full['scope'] == 'full']
        columns = full[full['level'] == 'column']
        global_row = full[full['level'] == 'global'].iloc[0]
        assert global_row['statistic'] == pytest.approx(columns['statistic'].sum())
        assert global_row['df'] == len(columns)

    def test_race_term_row(self, regression_results):
        full = regression_results['assumptions']
        rows = full[(full['scope'] == 'full') & (full['term'] == 'race') & (full['level'] == 'term')]
        assert len(rows) == 1
        assert rows['df'].iloc[0] == 2


class TestStepwise:
    """Test stepwise AIC selection"""

    def test_final_stage(self, regression_results):
        assert regression_results['stage'] == RegressionStage.STEPWISE_REDUCED

    def test_partition_of_terms(self, regression_results):
        stepwise = regression_results['stepwise']
        assert sorted(stepwise.final_terms + stepwise.removed_terms) == sorted(COVARIATES)

    def test_history_decreases(self, regression_results):
        history = regression_results['stepwise_history']
        assert history['action'].iloc[0] == 'start'
        assert np.all(np.diff(history['aic']) < 0)

    def test_no_dropped_term_lowers_aic(self, regression_results):
        check = regression_results['stepwise_check']
        assert not check['lowers_aic'].any()

    def test_final_aic(self, regression_results):
        stepwise = regression_results['stepwise']
        if stepwise.model is not None:
            assert stepwise.aic == pytest.approx(stepwise.model.AIC_partial_)

    def test_strong_effects_kept(self, regression_results):
        assert 'race' in regression_results['stepwise'].final_terms
        assert 'smoke' in regression_results['stepwise'].final_terms

    def test_final_table_terms(self, regression_results):
        table = regression_results['final_model']
        assert set(table['term']) == set(regression_results['stepwise'].final_terms)


class TestTermEffect:
    """Test spline term-effect curves"""

    def test_centred_at_median(self, bfeed_data):
        engine = CoxRegressionEngine(bfeed_data, verbose=False)
        effect = engine.term_effect('yschool', n_points=50)
        assert len(effect) == 50
        assert (effect['lower'] <= effect['log_hr']).all()
        assert (effect['log_hr'] <= effect['upper']).all()

        median = bfeed_data['yschool'].median()
        nearest = effect.iloc[(effect['x'] - median).abs().argmin()]
        assert abs(nearest['log_hr']) < 0.25

    def test_effects_for_plots(self, regression_results):
        assert set(regression_results['term_effects']) == {'agemth', 'yschool'}


@pytest.fixture
def u_shaped_data():
    """Hazard quadratic in mother age, so the spline term is strongly significant"""
    rng = np.random.default_rng(7)
    n = 400
    agemth = rng.integers(15, 29, size=n).astype(float)
    smoke = rng.choice(['no', 'yes'], size=n, p=[0.7, 0.3])
    log_hazard = 0.04 * (agemth - 21.5) ** 2 + 0.4 * (smoke == 'yes')
    duration = np.clip(np.ceil(rng.exponential(14.0 / np.exp(log_hazard))), 1, 192)
    return pd.DataFrame({
        'duration': duration,
        'delta': (rng.random(n) >= 0.1).astype(int),
        'smoke': pd.Categorical(smoke, categories=['no', 'yes'], ordered=True),
        'agemth': agemth,
    })


def _checked_engine(data):
    engine = CoxRegressionEngine(data, covariates=['smoke', 'agemth'], verbose=False)
    engine.fit_univariate()
    engine.check_assumptions()
    return engine


def _fix_ph_p(monkeypatch, engine, covariate, linear_p, spline_p):
    """Pin the single-term global PH p-values of the two forms of a covariate."""
    original = engine.ph_test

    def ph_test(terms, forms=None, scope='model'):
        table = original(terms, forms, scope)
        if scope == 'model' and terms == [covariate]:
            form = (forms or engine.forms)[covariate]
            table = table.copy()
            table.loc[table['level'] == 'global', 'p_value'] = linear_p if form == 'linear' else spline_p
        return table

    monkeypatch.setattr(engine, 'ph_test', ph_test)


class TestSplineRule:
    """Test the spline acceptance rule"""

    @pytest.fixture
    def engine(self, bfeed_data):
        return CoxRegressionEngine(bfeed_data, verbose=False)

    def test_accepts_when_ph_improves_and_term_significant(self, engine):
        assert engine.accept_spline(linear_ph_p=0.02, spline_ph_p=0.30, spline_lr_p=0.001)

    def test_rejects_when_ph_does_not_improve(self, engine):
        assert not engine.accept_spline(linear_ph_p=0.59, spline_ph_p=0.49, spline_lr_p=0.0)

    def test_rejects_when_ph_still_violated(self, engine):
        assert not engine.accept_spline(linear_ph_p=0.001, spline_ph_p=0.03, spline_lr_p=0.0)

    def test_rejects_when_term_not_significant(self, engine):
        assert not engine.accept_spline(linear_ph_p=0.02, spline_ph_p=0.30, spline_lr_p=0.20)

    def test_boundary_ph_p_equal_to_alpha(self, engine):
        assert engine.accept_spline(linear_ph_p=0.01, spline_ph_p=0.05, spline_lr_p=0.01)


class TestNonlinearWorkflow:
    """Test spline assessment inside the regression workflow"""

    def test_assessment_uses_fitted_models(self, u_shaped_data):
        engine = _checked_engine(u_shaped_data)
        assessment = engine.assess_spline('agemth')
        assert assessment.spline_lr_p < 0.05
        assert assessment.spline_aic < assessment.linear_aic
        assert assessment.accepted == engine.accept_spline(
            assessment.linear_ph_p, assessment.spline_ph_p, assessment.spline_lr_p
        )

    def test_rejection_keeps_linear_form(self, monkeypatch, u_shaped_data):
        engine = _checked_engine(u_shaped_data)
        _fix_ph_p(monkeypatch, engine, 'agemth', linear_p=0.40, spline_p=0.20)

        with pytest.warns(UserWarning, match="agemth.*rejected"):
            table = engine.assess_nonlinearity(['agemth'])

        assert table['accepted'].tolist() == [False]
        assert engine.forms['agemth'] == 'linear'
        assert engine.stage == RegressionStage.LINEAR_ACCEPTED

    def test_acceptance_carries_spline_through_selection(self, monkeypatch, u_shaped_data):
        engine = _checked_engine(u_shaped_data)
        _fix_ph_p(monkeypatch, engine, 'agemth', linear_p=0.01, spline_p=0.40)

        table = engine.assess_nonlinearity(['agemth'])

        assert table['accepted'].tolist() == [True]
        assert engine.forms['agemth'] == 'spline'
        assert engine.stage == RegressionStage.NONLINEAR_ACCEPTED

        full = engine.fit_multivariate()
        assert full.loc[full['term'] == 'agemth', 'column'].tolist() == [
            'agemth_s1', 'agemth_s2', 'agemth_s3', 'agemth_s4'
        ]

        result = engine.stepwise_select()
        assert 'agemth' in result.final_terms
        assert engine.stage == RegressionStage.STEPWISE_REDUCED
        assert not engine.verify_stepwise()['lowers_aic'].any()
        assert 'agemth_s1' in engine.final_model_table()['column'].tolist()

        effects = compute_term_effects(engine, ['agemth'])
        curve = effects['agemth']
        # Quadratic hazard: both ends sit above the median
        assert curve['log_hr'].iloc[0] > 0
        assert curve['log_hr'].iloc[-1] > 0


class TestConvergence:
    """Test that non-convergence is fatal"""

    @pytest.fixture
    def separated_data(self):
        # Every event is a smoker and every non-smoker is censored later
        return pd.DataFrame({
            'duration': np.arange(1, 61, dtype=float),
            'delta': [1] * 20 + [0] * 40,
            'smoke': pd.Categorical(['yes'] * 20 + ['no'] * 40, categories=['no', 'yes'], ordered=True),
        })

    def test_fit_raises_model_fit_error(self, separated_data):
        engine = CoxRegressionEngine(separated_data, covariates=['smoke'], verbose=False)
        with pytest.raises(ModelFitError, match="smoke"):
            engine.fit_terms(['smoke'])

    def test_workflow_stops_at_failed_fit(self, separated_data):
        engine = CoxRegressionEngine(separated_data, covariates=['smoke'], verbose=False)
        with pytest.raises(ModelFitError):
            engine.fit_univariate()
        assert engine.stage == RegressionStage.UNFITTED
