"""
Cox regression workflow for the report.

Runs the regression engine end to end and collects the tables and spline
term-effect curves the report needs.
"""

import pandas as pd
from typing import Dict, List, Optional, Any

from ..config.settings import AnalysisConfig, COVARIATES
from ..models.cox_models import CoxRegressionEngine


def compute_term_effects(engine: CoxRegressionEngine,
                         covariates: Optional[List[str]] = None) -> Dict[str, pd.DataFrame]:
    """
    Spline term-effect curves for the configured continuous covariates.

    When the covariate kept its spline form in the final model, the curve
    comes from that model; otherwise from the univariate spline fit.
    """
    if covariates is None:
        covariates = AnalysisConfig.SPLINE_PLOT_COVARIATES

    final = engine.stepwise_result
    effects = {}
    for cov in covariates:
        if cov not in engine.covariates:
            continue
        model = None
        if final is not None and cov in final.final_terms and engine.forms[cov] == 'spline':
            model = final.model
        effects[cov] = engine.term_effect(cov, model=model)

    return effects


def run_regression_analysis(df: pd.DataFrame,
                            covariates: Optional[List[str]] = None,
                            alpha: float = AnalysisConfig.ALPHA,
                            verbose: bool = True) -> Dict[str, Any]:
    """
    Run the complete Cox regression workflow.

    Args:
        df: Observation table
        covariates: Covariates to model (default: all eight)
        alpha: Significance level
        verbose: Whether to print progress

    Returns:
        Dictionary with the engine, workflow tables and term-effect curves
    """
    if covariates is None:
        covariates = COVARIATES

    engine = CoxRegressionEngine(df, covariates=covariates, alpha=alpha, verbose=verbose)
    results = engine.run_all()

    stepwise = results['stepwise']
    results['stepwise_history'] = stepwise.history
    results['term_effects'] = compute_term_effects(engine)
    results['engine'] = engine
    results['stage'] = engine.stage

    return results
