"""
Statistical utilities for the breastfeeding survival analysis.
"""

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.stats.multitest import multipletests
from typing import Dict, Any, List, Sequence

from ..config.settings import AnalysisConfig


class StatisticalAnalyzer:
    """
    Statistical helper routines shared by the analysis modules.

    Provides multiple-comparison adjustment, likelihood-ratio tests between
    nested models and descriptive summaries of continuous covariates.
    """

    def __init__(self, alpha: float = AnalysisConfig.ALPHA):
        """
        Initialize the statistical analyzer.

        Args:
            alpha: Significance level for hypothesis tests
        """
        self.alpha = alpha

    def adjust_pvalues(self, p_values: Sequence[float], method: str = 'fdr_bh') -> Dict[str, Any]:
        """
        Adjust p-values for multiple comparisons.

        Args:
            p_values: Raw p-values
            method: statsmodels multipletests method (default Benjamini-Hochberg)

        Returns:
            Dictionary with adjusted p-values and rejection decisions
        """
        p_values = np.asarray(p_values, dtype=float)
        if len(p_values) == 0:
            return {'adjusted': np.array([]), 'reject': np.array([], dtype=bool), 'method': method}

        reject, adjusted, _, _ = multipletests(p_values, alpha=self.alpha, method=method)

        return {
            'adjusted': adjusted,
            'reject': reject,
            'method': method
        }

    def likelihood_ratio_test(self, log_likelihood_full: float,
                              log_likelihood_reduced: float,
                              df: int) -> Dict[str, Any]:
        """
        Likelihood-ratio test between nested models.

        Args:
            log_likelihood_full: Log-likelihood of the larger model
            log_likelihood_reduced: Log-likelihood of the nested model
            df: Difference in number of parameters

        Returns:
            Dictionary with test statistic and p-value
        """
        statistic = max(2.0 * (log_likelihood_full - log_likelihood_reduced), 0.0)
        p_value = stats.chi2.sf(statistic, df)

        return {
            'statistic': statistic,
            'df': df,
            'p_value': p_value,
            'significant': p_value < self.alpha
        }

    def chi2_p_value(self, statistic: float, df: int) -> float:
        """Upper-tail chi-square probability."""
        return float(stats.chi2.sf(statistic, df))

    def describe_continuous(self, data: pd.DataFrame, columns: List[str]) -> pd.DataFrame:
        """
        Mean, standard deviation, minimum and maximum per column.

        Args:
            data: DataFrame containing the data
            columns: Continuous columns to describe

        Returns:
            DataFrame with one row per column
        """
        rows = []
        for col in columns:
            values = data[col].astype(float)
            rows.append({
                'variable': col,
                'n': int(values.count()),
                'mean': values.mean(),
                'sd': values.std(ddof=1),
                'min': values.min(),
                'max': values.max()
            })

        return pd.DataFrame(rows)

    @staticmethod
    def percent(count: float, total: float) -> float:
        """Percentage of count in total; NaN when total is zero."""
        return 100.0 * count / total if total else float('nan')
