"""
Analysis module for the breastfeeding survival analysis.

Each submodule covers one pipeline step: descriptive summaries, Kaplan-Meier
curves, log-rank comparisons and the Cox regression workflow. ``pipeline``
runs them in order and renders the report.
"""

from .descriptive import *
from .survival_curves import *
from .group_comparison import *
from .regression import *
from .pipeline import *

__all__ = [
    # Descriptive
    'describe_variables',
    'summarize_categorical',
    'summarize_continuous',
    'censoring_overview',

    # Survival curves
    'fit_overall_curves',
    'checkpoint_table',
    'stratified_checkpoint_table',
    'summarize_curve',
    'summarize_strata',
    'run_survival_estimation',

    # Group comparison
    'LogRankResult',
    'logrank_by_covariate',
    'pairwise_logrank',
    'run_logrank_tests',

    # Regression
    'compute_term_effects',
    'run_regression_analysis',

    # Pipeline
    'run_complete_analysis',
    'build_report',
]
