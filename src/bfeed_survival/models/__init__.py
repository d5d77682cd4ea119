"""
Models module for the breastfeeding survival analysis.
Contains Kaplan-Meier and Cox proportional-hazards model wrappers.
"""

from .kaplan_meier import *
from .cox_models import *

__all__ = [
    # Kaplan-Meier
    'KaplanMeierCurve',
    'fit_kaplan_meier',
    'fit_stratified',
    'empirical_survival',
    'survival_at_checkpoints',
    'median_survival',
    'restricted_mean',

    # Cox regression
    'RegressionStage',
    'TermSpec',
    'SplineAssessment',
    'StepwiseResult',
    'CoxRegressionEngine',
    'choose_reference_level',
]
