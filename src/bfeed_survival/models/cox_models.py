"""
Cox proportional-hazards regression for breastfeeding duration.

This module provides the regression engine used by the report: univariate
fits per covariate, Schoenfeld-residual checks of the proportional-hazards
assumption, penalized regression-spline refits for borderline continuous
covariates, and a multivariate model reduced by stepwise AIC selection.

The engine works on *terms*. A term is one covariate and may expand to
several design columns: treatment-coded dummies for categorical covariates
or B-spline basis columns for a nonlinear continuous covariate. Model
selection and likelihood-ratio tests always add or remove whole terms.
"""

import pandas as pd
import numpy as np
from typing import Dict, List, Optional, Tuple, Union, Any
from dataclasses import dataclass
from enum import Enum
import warnings
from scipy import stats

from lifelines import CoxPHFitter
from lifelines.statistics import proportional_hazard_test
from lifelines.exceptions import ConvergenceError, ConvergenceWarning
from patsy import dmatrix, build_design_matrices

from ..config.settings import (
    AnalysisConfig, COVARIATES, CATEGORICAL_COVARIATES, CATEGORY_LEVELS,
    DURATION_COL, EVENT_COL
)
from ..exceptions import ModelFitError, RegressionStateError
from ..utils.statistics import StatisticalAnalyzer


class RegressionStage(Enum):
    """Stages of the regression workflow, in the order they are reached."""
    UNFITTED = 'unfitted'
    UNIVARIATE_FITTED = 'univariate_fitted'
    ASSUMPTION_CHECKED = 'assumption_checked'
    LINEAR_ACCEPTED = 'linear_accepted'
    NONLINEAR_ACCEPTED = 'nonlinear_accepted'
    MULTIVARIATE_FITTED = 'multivariate_fitted'
    STEPWISE_REDUCED = 'stepwise_reduced'


@dataclass
class TermSpec:
    """Design columns generated for one covariate."""
    name: str
    form: str
    columns: List[str]
    contrasts: List[str]
    reference: Optional[str] = None
    penalized: bool = False


@dataclass
class SplineAssessment:
    """Comparison of the linear and penalized-spline forms of one covariate."""
    covariate: str
    linear_ph_p: float
    spline_ph_p: float
    spline_lr_statistic: float
    spline_lr_p: float
    nonlinearity_p: float
    linear_aic: float
    spline_aic: float
    accepted: bool


@dataclass
class StepwiseResult:
    """Outcome of stepwise AIC selection."""
    final_terms: List[str]
    removed_terms: List[str]
    history: pd.DataFrame
    model: Optional[CoxPHFitter]
    aic: float


def choose_reference_level(series: pd.Series, levels: Optional[List] = None) -> Any:
    """
    Reference level for treatment coding.

    With more than two levels the level with the largest count is used;
    ties go to the level that comes first in the declared order. Binary
    covariates use their first level.
    """
    if levels is None:
        if isinstance(series.dtype, pd.CategoricalDtype):
            levels = list(series.cat.categories)
        else:
            levels = sorted(series.dropna().unique())

    if len(levels) <= 2:
        return levels[0]

    counts = series.value_counts()
    max_count = max(int(counts.get(level, 0)) for level in levels)
    for level in levels:
        if int(counts.get(level, 0)) == max_count:
            return level


class CoxRegressionEngine:
    """
    Cox regression workflow over the bfeed covariates.

    Steps must be run in order; each one moves ``stage`` forward:

        UNFITTED -> UNIVARIATE_FITTED -> ASSUMPTION_CHECKED
        -> LINEAR_ACCEPTED | NONLINEAR_ACCEPTED
        -> MULTIVARIATE_FITTED -> STEPWISE_REDUCED
    """

    def __init__(self, data: pd.DataFrame,
                 covariates: Optional[List[str]] = None,
                 duration_col: str = DURATION_COL,
                 event_col: str = EVENT_COL,
                 alpha: float = AnalysisConfig.ALPHA,
                 verbose: bool = True):
        """
        Initialize the regression engine.

        Args:
            data: Observation table with decoded covariates
            covariates: Covariates to model (default: all eight)
            duration_col: Duration column
            event_col: Event indicator column
            alpha: Significance level
            verbose: Whether to print progress
        """
        self.data = data
        self.covariates = list(covariates) if covariates is not None else list(COVARIATES)
        self.duration_col = duration_col
        self.event_col = event_col
        self.alpha = alpha
        self.verbose = verbose
        self.stats_analyzer = StatisticalAnalyzer(alpha=alpha)

        self.stage = RegressionStage.UNFITTED
        self.forms: Dict[str, str] = {cov: 'linear' for cov in self.covariates}
        self._design_columns: Dict[Tuple[str, str], pd.DataFrame] = {}
        self._term_specs: Dict[Tuple[str, str], TermSpec] = {}
        self._spline_design_info: Dict[str, Any] = {}
        self._fit_cache: Dict[Tuple, CoxPHFitter] = {}
        self._null_log_likelihood: Optional[float] = None

        self.univariate_models: Dict[str, CoxPHFitter] = {}
        self.univariate_results: Optional[pd.DataFrame] = None
        self.assumption_results: Optional[pd.DataFrame] = None
        self.spline_assessments: Dict[str, SplineAssessment] = {}
        self.multivariate_model: Optional[CoxPHFitter] = None
        self.stepwise_result: Optional[StepwiseResult] = None

    # ------------------------------------------------------------------
    # Design matrices
    # ------------------------------------------------------------------

    def term_spec(self, covariate: str, form: Optional[str] = None) -> TermSpec:
        """Design specification of a covariate in the given (or accepted) form."""
        form = form or self.forms[covariate]
        self._encode(covariate, form)
        return self._term_specs[(covariate, form)]

    def _encode(self, covariate: str, form: str) -> pd.DataFrame:
        key = (covariate, form)
        if key in self._design_columns:
            return self._design_columns[key]

        series = self.data[covariate]

        if covariate in CATEGORICAL_COVARIATES:
            levels = CATEGORY_LEVELS[covariate]
            levels = [lvl for lvl in levels if (series == lvl).any()]
            reference = choose_reference_level(series, levels)
            columns = {}
            contrasts = []
            for level in levels:
                if level == reference:
                    continue
                columns[f"{covariate}_{level}"] = (series == level).astype(float).values
                contrasts.append(f"{level} vs {reference}")
            design = pd.DataFrame(columns, index=self.data.index)
            spec = TermSpec(covariate, 'linear', list(design.columns), contrasts, reference=str(reference))

        elif form == 'spline':
            basis = dmatrix(
                f"bs({covariate}, df={AnalysisConfig.SPLINE_DF}, "
                f"degree={AnalysisConfig.SPLINE_DEGREE}) - 1",
                {covariate: series.astype(float).values},
                return_type='dataframe'
            )
            self._spline_design_info[covariate] = basis.design_info
            names = [f"{covariate}_s{i + 1}" for i in range(basis.shape[1])]
            design = pd.DataFrame(basis.values, columns=names, index=self.data.index)
            spec = TermSpec(covariate, 'spline', names, [f"spline basis {i + 1}" for i in range(len(names))],
                            penalized=True)

        else:
            design = pd.DataFrame({covariate: series.astype(float).values}, index=self.data.index)
            spec = TermSpec(covariate, 'linear', [covariate], ['per unit increase'])

        self._design_columns[key] = design
        self._term_specs[key] = spec
        return design

    def design_frame(self, terms: List[str], forms: Optional[Dict[str, str]] = None) -> Tuple[pd.DataFrame, Union[float, np.ndarray]]:
        """
        Model frame (duration, event, design columns) and penalizer for a term set.

        Returns:
            Tuple of (frame, penalizer) where penalizer is a scalar 0.0 for
            unpenalized models or one entry per design column otherwise
        """
        forms = forms or self.forms
        parts = [self.data[[self.duration_col, self.event_col]].astype(float)]
        penalties = []
        for term in terms:
            design = self._encode(term, forms[term])
            spec = self._term_specs[(term, forms[term])]
            parts.append(design)
            penalty = AnalysisConfig.SPLINE_PENALIZER if spec.penalized else 0.0
            penalties.extend([penalty] * len(spec.columns))

        frame = pd.concat(parts, axis=1)
        penalizer = np.array(penalties) if any(p > 0 for p in penalties) else 0.0
        return frame, penalizer

    # ------------------------------------------------------------------
    # Fitting
    # ------------------------------------------------------------------

    def fit_terms(self, terms: List[str], forms: Optional[Dict[str, str]] = None) -> CoxPHFitter:
        """
        Fit a Cox model on a set of terms.

        Non-convergence is fatal: ConvergenceError and ConvergenceWarning
        from lifelines are raised as ModelFitError.
        """
        forms = forms or self.forms
        key = tuple((term, forms[term]) for term in terms)
        if key in self._fit_cache:
            return self._fit_cache[key]

        frame, penalizer = self.design_frame(terms, forms)
        label = ' + '.join(f"{t}({forms[t]})" for t in terms)

        cph = CoxPHFitter(penalizer=penalizer, alpha=self.alpha)
        with warnings.catch_warnings():
            warnings.simplefilter('error', ConvergenceWarning)
            try:
                cph.fit(frame, duration_col=self.duration_col, event_col=self.event_col)
            except (ConvergenceError, ConvergenceWarning) as e:
                raise ModelFitError(f"Cox model [{label}] failed to converge: {e}") from e

        if self._null_log_likelihood is None:
            lr = cph.log_likelihood_ratio_test()
            self._null_log_likelihood = cph.log_likelihood_ - lr.test_statistic / 2.0

        self._fit_cache[key] = cph
        return cph

    def model_aic(self, terms: List[str], forms: Optional[Dict[str, str]] = None) -> float:
        """Partial-likelihood AIC of a term set (the empty set is the null model)."""
        if not terms:
            if self._null_log_likelihood is None:
                self.fit_terms([self.covariates[0]], forms)
            return -2.0 * self._null_log_likelihood
        return float(self.fit_terms(terms, forms).AIC_partial_)

    def coefficient_table(self, cph: CoxPHFitter, terms: List[str],
                          forms: Optional[Dict[str, str]] = None) -> pd.DataFrame:
        """Hazard ratios with Wald confidence intervals and p-values per design column."""
        forms = forms or self.forms
        ci = np.exp(cph.confidence_intervals_)
        rows = []
        for term in terms:
            spec = self.term_spec(term, forms[term])
            for column, contrast in zip(spec.columns, spec.contrasts):
                rows.append({
                    'term': term,
                    'column': column,
                    'contrast': contrast,
                    'coef': float(cph.params_[column]),
                    'se': float(cph.standard_errors_[column]),
                    'hr': float(np.exp(cph.params_[column])),
                    'hr_lower': float(ci.loc[column].iloc[0]),
                    'hr_upper': float(ci.loc[column].iloc[1]),
                    'p_value': float(cph.summary.loc[column, 'p'])
                })
        return pd.DataFrame(rows)

    # ------------------------------------------------------------------
    # Workflow steps
    # ------------------------------------------------------------------

    def _require(self, *stages: RegressionStage):
        if self.stage not in stages:
            expected = ', '.join(s.name for s in stages)
            raise RegressionStateError(
                f"Regression step requires stage {expected}; current stage is {self.stage.name}"
            )

    def fit_univariate(self) -> pd.DataFrame:
        """
        Fit one Cox model per covariate.

        Returns:
            DataFrame with hazard ratios, Wald CIs and p-values per contrast,
            plus the likelihood-ratio p-value of the whole term
        """
        self._require(RegressionStage.UNFITTED)

        if self.verbose:
            print("🔄 Fitting univariate Cox models...")

        tables = []
        for cov in self.covariates:
            cph = self.fit_terms([cov])
            self.univariate_models[cov] = cph
            table = self.coefficient_table(cph, [cov])
            lr = cph.log_likelihood_ratio_test()
            table['lr_statistic'] = float(lr.test_statistic)
            table['lr_df'] = len(self.term_spec(cov).columns)
            table['lr_p_value'] = float(lr.p_value)
            table['aic'] = float(cph.AIC_partial_)
            tables.append(table)

            if self.verbose:
                for _, row in table.iterrows():
                    print(f"  {row['column']}: HR={row['hr']:.3f} "
                          f"({row['hr_lower']:.3f}-{row['hr_upper']:.3f}), p={row['p_value']:.4f}")

        self.univariate_results = pd.concat(tables, ignore_index=True)
        self.stage = RegressionStage.UNIVARIATE_FITTED
        return self.univariate_results

    def ph_test(self, terms: List[str], forms: Optional[Dict[str, str]] = None,
                scope: str = 'model') -> pd.DataFrame:
        """
        Scaled Schoenfeld residual test of proportional hazards.

        Per design column the residuals are correlated with KM-transformed
        time. Per term and for the whole model the column statistics are
        summed with degrees of freedom equal to the number of columns.

        Returns:
            DataFrame with one row per column, one per multi-column term and
            a final 'GLOBAL' row
        """
        forms = forms or self.forms
        cph = self.fit_terms(terms, forms)
        frame, _ = self.design_frame(terms, forms)

        result = proportional_hazard_test(cph, frame, time_transform=AnalysisConfig.PH_TIME_TRANSFORM)
        summary = result.summary
        if isinstance(summary.index, pd.MultiIndex):
            summary = summary.copy()
            summary.index = summary.index.get_level_values(0)

        rows = []
        total_stat = 0.0
        total_df = 0
        for term in terms:
            spec = self.term_spec(term, forms[term])
            term_stat = 0.0
            for column in spec.columns:
                stat = float(summary.loc[column, 'test_statistic'])
                term_stat += stat
                rows.append({
                    'scope': scope, 'term': term, 'column': column, 'level': 'column',
                    'statistic': stat, 'df': 1, 'p_value': float(summary.loc[column, 'p'])
                })
            if len(spec.columns) > 1:
                rows.append({
                    'scope': scope, 'term': term, 'column': term, 'level': 'term',
                    'statistic': term_stat, 'df': len(spec.columns),
                    'p_value': self.stats_analyzer.chi2_p_value(term_stat, len(spec.columns))
                })
            total_stat += term_stat
            total_df += len(spec.columns)

        rows.append({
            'scope': scope, 'term': 'GLOBAL', 'column': 'GLOBAL', 'level': 'global',
            'statistic': total_stat, 'df': total_df,
            'p_value': self.stats_analyzer.chi2_p_value(total_stat, total_df)
        })

        return pd.DataFrame(rows)

    @staticmethod
    def term_ph_p(ph_table: pd.DataFrame, term: str) -> float:
        """Smallest column-level PH p-value of a term."""
        rows = ph_table[(ph_table['term'] == term) & (ph_table['level'] == 'column')]
        return float(rows['p_value'].min())

    @staticmethod
    def global_ph_p(ph_table: pd.DataFrame) -> float:
        return float(ph_table.loc[ph_table['level'] == 'global', 'p_value'].iloc[0])

    def check_assumptions(self) -> pd.DataFrame:
        """
        Test proportional hazards per covariate and for the full linear model.

        Returns:
            Combined PH test table with a 'univariate' scope (each covariate
            alone) and a 'full' scope (all covariates together)
        """
        self._require(RegressionStage.UNIVARIATE_FITTED)

        if self.verbose:
            print("🔄 Checking proportional hazards (scaled Schoenfeld residuals)...")

        tables = [self.ph_test([cov], scope='univariate') for cov in self.covariates]
        full = self.ph_test(self.covariates, scope='full')
        tables.append(full)
        self.assumption_results = pd.concat(tables, ignore_index=True)

        if self.verbose:
            for cov in self.covariates:
                p = self.term_ph_p(full, cov)
                flag = "❌" if p < self.alpha else ("⚠️" if p < AnalysisConfig.PH_BORDERLINE_P else "✅")
                print(f"  {flag} {cov}: p={p:.4f}")
            print(f"  Global: p={self.global_ph_p(full):.4f}")

        self.stage = RegressionStage.ASSUMPTION_CHECKED
        return self.assumption_results

    def borderline_covariates(self) -> List[str]:
        """Continuous covariates whose full-model PH p-value is below the borderline threshold."""
        if self.assumption_results is None:
            return []
        full = self.assumption_results[self.assumption_results['scope'] == 'full']
        return [
            cov for cov in self.covariates
            if cov not in CATEGORICAL_COVARIATES
            and self.term_ph_p(full, cov) < AnalysisConfig.PH_BORDERLINE_P
        ]

    def accept_spline(self, linear_ph_p: float, spline_ph_p: float, spline_lr_p: float) -> bool:
        """Spline acceptance rule: PH improves and holds, and the term is significant."""
        return bool(
            spline_ph_p > linear_ph_p
            and spline_ph_p >= self.alpha
            and spline_lr_p < self.alpha
        )

    def assess_spline(self, covariate: str) -> SplineAssessment:
        """
        Compare the linear and penalized-spline forms of a continuous covariate.

        The spline form is accepted when its PH test improves on the linear
        form and is no longer significant, and the spline term itself is
        significant against the null model.
        """
        linear_forms = dict(self.forms, **{covariate: 'linear'})
        spline_forms = dict(self.forms, **{covariate: 'spline'})

        linear_model = self.fit_terms([covariate], linear_forms)
        spline_model = self.fit_terms([covariate], spline_forms)

        linear_ph_p = self.global_ph_p(self.ph_test([covariate], linear_forms))
        spline_ph_p = self.global_ph_p(self.ph_test([covariate], spline_forms))

        n_basis = len(self.term_spec(covariate, 'spline').columns)
        spline_lr = spline_model.log_likelihood_ratio_test()
        nonlinearity = self.stats_analyzer.likelihood_ratio_test(
            spline_model.log_likelihood_, linear_model.log_likelihood_, n_basis - 1
        )

        accepted = self.accept_spline(linear_ph_p, spline_ph_p, float(spline_lr.p_value))

        return SplineAssessment(
            covariate=covariate,
            linear_ph_p=linear_ph_p,
            spline_ph_p=spline_ph_p,
            spline_lr_statistic=float(spline_lr.test_statistic),
            spline_lr_p=float(spline_lr.p_value),
            nonlinearity_p=float(nonlinearity['p_value']),
            linear_aic=float(linear_model.AIC_partial_),
            spline_aic=float(spline_model.AIC_partial_),
            accepted=accepted
        )

    def assess_nonlinearity(self, candidates: Optional[List[str]] = None) -> pd.DataFrame:
        """
        Refit borderline continuous covariates with penalized splines.

        Args:
            candidates: Covariates to assess (default: borderline ones)

        Returns:
            DataFrame with one row per assessed covariate
        """
        self._require(RegressionStage.ASSUMPTION_CHECKED)

        if candidates is None:
            candidates = self.borderline_covariates()

        if self.verbose:
            print(f"🔄 Assessing spline terms for: {', '.join(candidates) if candidates else 'none'}")

        for cov in candidates:
            assessment = self.assess_spline(cov)
            self.spline_assessments[cov] = assessment
            if assessment.accepted:
                self.forms[cov] = 'spline'
                if self.verbose:
                    print(f"  ✅ {cov}: spline accepted (PH p {assessment.linear_ph_p:.4f} -> "
                          f"{assessment.spline_ph_p:.4f}, term p={assessment.spline_lr_p:.4f})")
            else:
                warnings.warn(
                    f"Spline form for '{cov}' rejected (PH p {assessment.linear_ph_p:.4f} -> "
                    f"{assessment.spline_ph_p:.4f}, term p={assessment.spline_lr_p:.4f}); keeping linear term"
                )

        if any(form == 'spline' for form in self.forms.values()):
            self.stage = RegressionStage.NONLINEAR_ACCEPTED
        else:
            self.stage = RegressionStage.LINEAR_ACCEPTED

        return self.spline_table()

    def spline_table(self) -> pd.DataFrame:
        columns = ['covariate', 'linear_ph_p', 'spline_ph_p', 'spline_lr_statistic',
                   'spline_lr_p', 'nonlinearity_p', 'linear_aic', 'spline_aic', 'accepted']
        return pd.DataFrame(
            [vars(a) for a in self.spline_assessments.values()], columns=columns
        )

    def fit_multivariate(self) -> pd.DataFrame:
        """Fit the full model with every covariate in its accepted form."""
        self._require(RegressionStage.LINEAR_ACCEPTED, RegressionStage.NONLINEAR_ACCEPTED)

        if self.verbose:
            print("🔄 Fitting full multivariate Cox model...")

        self.multivariate_model = self.fit_terms(self.covariates)
        self.stage = RegressionStage.MULTIVARIATE_FITTED

        if self.verbose:
            print(f"✅ Full model AIC: {self.multivariate_model.AIC_partial_:.2f}")

        return self.coefficient_table(self.multivariate_model, self.covariates)

    def stepwise_select(self) -> StepwiseResult:
        """
        Stepwise AIC selection starting from the full model.

        Each step evaluates dropping every current term and re-adding every
        previously dropped term, and applies the move with the lowest AIC.
        Selection stops when no move lowers AIC. Ties keep the first
        candidate in covariate order, drops before additions.
        """
        self._require(RegressionStage.MULTIVARIATE_FITTED)

        if self.verbose:
            print("🔄 Stepwise AIC selection...")

        current = list(self.covariates)
        removed: List[str] = []
        current_aic = self.model_aic(current)
        history = [{'step': 0, 'action': 'start', 'term': '', 'aic': current_aic,
                    'terms': ', '.join(current)}]

        step = 0
        while True:
            candidates = []
            for term in current:
                remaining = [t for t in current if t != term]
                candidates.append(('drop', term, remaining))
            for term in removed:
                enlarged = [t for t in self.covariates if t in current or t == term]
                candidates.append(('add', term, enlarged))

            if not candidates:
                break

            scored = [(self.model_aic(terms), action, term, terms) for action, term, terms in candidates]
            best_aic, action, term, terms = min(scored, key=lambda item: item[0])

            if best_aic >= current_aic - AnalysisConfig.AIC_TOLERANCE:
                break

            step += 1
            current = terms
            if action == 'drop':
                removed.append(term)
            else:
                removed.remove(term)
            current_aic = best_aic
            history.append({'step': step, 'action': action, 'term': term, 'aic': best_aic,
                            'terms': ', '.join(current)})

            if self.verbose:
                print(f"  Step {step}: {action} {term} -> AIC {best_aic:.2f}")

        model = self.fit_terms(current) if current else None
        self.stepwise_result = StepwiseResult(
            final_terms=current,
            removed_terms=[t for t in self.covariates if t not in current],
            history=pd.DataFrame(history),
            model=model,
            aic=current_aic
        )
        self.stage = RegressionStage.STEPWISE_REDUCED

        if self.verbose:
            print(f"✅ Final model: {', '.join(current) if current else '(null model)'} (AIC {current_aic:.2f})")

        return self.stepwise_result

    def final_model_table(self) -> pd.DataFrame:
        """Coefficient table of the stepwise-reduced model."""
        self._require(RegressionStage.STEPWISE_REDUCED)
        result = self.stepwise_result
        if result.model is None:
            return pd.DataFrame(columns=['term', 'column', 'contrast', 'coef', 'se',
                                         'hr', 'hr_lower', 'hr_upper', 'p_value'])
        return self.coefficient_table(result.model, result.final_terms)

    def verify_stepwise(self) -> pd.DataFrame:
        """
        Re-add each dropped term to the final model and report its AIC.

        Returns:
            DataFrame with one row per dropped term; 'lowers_aic' is False
            for every row when selection reached a local AIC minimum
        """
        self._require(RegressionStage.STEPWISE_REDUCED)
        result = self.stepwise_result

        rows = []
        for term in result.removed_terms:
            enlarged = [t for t in self.covariates if t in result.final_terms or t == term]
            aic = self.model_aic(enlarged)
            rows.append({
                'term': term,
                'aic_with_term': aic,
                'final_aic': result.aic,
                'lowers_aic': aic < result.aic - AnalysisConfig.AIC_TOLERANCE
            })

        return pd.DataFrame(rows, columns=['term', 'aic_with_term', 'final_aic', 'lowers_aic'])

    def final_ph_test(self) -> pd.DataFrame:
        """PH test of the stepwise-reduced model."""
        self._require(RegressionStage.STEPWISE_REDUCED)
        return self.ph_test(self.stepwise_result.final_terms, scope='final')

    # ------------------------------------------------------------------
    # Spline term effects
    # ------------------------------------------------------------------

    def term_effect(self, covariate: str, n_points: int = AnalysisConfig.SPLINE_GRID_POINTS,
                    model: Optional[CoxPHFitter] = None) -> pd.DataFrame:
        """
        Log-hazard contribution of a spline term over the covariate range.

        The curve is centred at the covariate median. Pointwise bands come
        from the covariance of the spline coefficients.

        Args:
            covariate: Continuous covariate
            n_points: Number of grid points
            model: Fitted model containing the spline term (default: the
                univariate spline model)

        Returns:
            DataFrame with x, log_hr, lower, upper and hr columns
        """
        spec = self.term_spec(covariate, 'spline')
        if model is None:
            model = self.fit_terms([covariate], dict(self.forms, **{covariate: 'spline'}))

        values = self.data[covariate].astype(float)
        grid = np.linspace(values.min(), values.max(), n_points)
        design_info = self._spline_design_info[covariate]

        basis_grid = np.asarray(build_design_matrices([design_info], {covariate: grid})[0])
        basis_ref = np.asarray(build_design_matrices([design_info], {covariate: [values.median()]})[0])
        contrast = basis_grid - basis_ref

        beta = model.params_[spec.columns].values
        cov = model.variance_matrix_.loc[spec.columns, spec.columns].values

        log_hr = contrast @ beta
        se = np.sqrt(np.einsum('ij,jk,ik->i', contrast, cov, contrast))
        z = stats.norm.ppf(1 - self.alpha / 2)

        return pd.DataFrame({
            'x': grid,
            'log_hr': log_hr,
            'lower': log_hr - z * se,
            'upper': log_hr + z * se,
            'hr': np.exp(log_hr)
        })

    def run_all(self) -> Dict[str, Any]:
        """Run every workflow step in order."""
        univariate = self.fit_univariate()
        assumptions = self.check_assumptions()
        splines = self.assess_nonlinearity()
        multivariate = self.fit_multivariate()
        stepwise = self.stepwise_select()

        return {
            'univariate': univariate,
            'assumptions': assumptions,
            'splines': splines,
            'multivariate': multivariate,
            'stepwise': stepwise,
            'final_model': self.final_model_table(),
            'final_ph': self.final_ph_test(),
            'stepwise_check': self.verify_stepwise()
        }
