"""
Log-rank (Mantel-Cox) group comparisons with pairwise post hoc tests.
"""

import pandas as pd
from itertools import combinations
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field

from lifelines.statistics import logrank_test, multivariate_logrank_test

from ..config.settings import AnalysisConfig, DURATION_COL, EVENT_COL
from ..exceptions import DegenerateStratumError
from ..utils.statistics import StatisticalAnalyzer


@dataclass
class LogRankResult:
    """Container for a log-rank comparison across the levels of one column."""
    variable: str
    levels: List[str]
    statistic: float
    df: int
    p_value: float
    pairwise: Optional[pd.DataFrame] = field(default=None)

    @property
    def n_groups(self) -> int:
        return len(self.levels)


def _present_levels(df: pd.DataFrame, column: str) -> List:
    if isinstance(df[column].dtype, pd.CategoricalDtype):
        return [lvl for lvl in df[column].cat.categories if (df[column] == lvl).any()]
    return sorted(df[column].dropna().unique())


def logrank_by_covariate(df: pd.DataFrame, column: str,
                         duration_col: str = DURATION_COL,
                         event_col: str = EVENT_COL,
                         analyzer: Optional[StatisticalAnalyzer] = None) -> LogRankResult:
    """
    Mantel-Cox test of equal survival across the levels of a column.

    For more than two levels every pair of levels is also compared and the
    pairwise p-values are adjusted with the Benjamini-Hochberg procedure.

    Args:
        df: Observation table
        column: Grouping column
        duration_col: Duration column
        event_col: Event indicator column
        analyzer: Statistical helper used for the p-value adjustment

    Returns:
        LogRankResult
    """
    analyzer = analyzer or StatisticalAnalyzer()
    levels = _present_levels(df, column)

    if len(levels) < 2:
        raise ValueError(f"Need at least 2 groups for a log-rank test on '{column}'")

    for level in levels:
        group = df[df[column] == level]
        if group[event_col].sum() == 0:
            raise DegenerateStratumError(column, level, len(group))

    groups = df[column].astype(str)
    result = multivariate_logrank_test(df[duration_col], groups, df[event_col])

    pairwise = None
    if len(levels) > 2:
        pairwise = pairwise_logrank(df, column, levels, duration_col, event_col, analyzer)

    return LogRankResult(
        variable=column,
        levels=[str(lvl) for lvl in levels],
        statistic=float(result.test_statistic),
        df=len(levels) - 1,
        p_value=float(result.p_value),
        pairwise=pairwise
    )


def pairwise_logrank(df: pd.DataFrame, column: str, levels: List,
                     duration_col: str = DURATION_COL,
                     event_col: str = EVENT_COL,
                     analyzer: Optional[StatisticalAnalyzer] = None) -> pd.DataFrame:
    """
    Log-rank tests for every pair of levels with BH-adjusted p-values.

    Returns:
        DataFrame with one row per pair
    """
    analyzer = analyzer or StatisticalAnalyzer()

    rows = []
    for level_a, level_b in combinations(levels, 2):
        group_a = df[df[column] == level_a]
        group_b = df[df[column] == level_b]
        res = logrank_test(
            group_a[duration_col], group_b[duration_col],
            event_observed_A=group_a[event_col],
            event_observed_B=group_b[event_col]
        )
        rows.append({
            'variable': column,
            'group_a': str(level_a),
            'group_b': str(level_b),
            'statistic': float(res.test_statistic),
            'p_value': float(res.p_value)
        })

    pairwise = pd.DataFrame(rows)
    adjustment = analyzer.adjust_pvalues(pairwise['p_value'], method='fdr_bh')
    pairwise['p_adjusted'] = adjustment['adjusted']
    pairwise['significant'] = adjustment['reject']

    return pairwise


def run_logrank_tests(df: pd.DataFrame, columns: List[str],
                      alpha: float = AnalysisConfig.ALPHA,
                      verbose: bool = True) -> Dict[str, Any]:
    """
    Run log-rank tests for a list of grouping columns.

    Args:
        df: Observation table
        columns: Grouping columns
        alpha: Significance level
        verbose: Whether to print progress

    Returns:
        Dictionary with per-column results, a summary table and the
        combined pairwise table
    """
    analyzer = StatisticalAnalyzer(alpha=alpha)

    if verbose:
        print("🔄 Running log-rank tests...")

    results = {}
    for column in columns:
        res = logrank_by_covariate(df, column, analyzer=analyzer)
        results[column] = res
        if verbose:
            marker = "✅" if res.p_value < alpha else "  "
            print(f"  {marker} {column}: chi2={res.statistic:.2f} (df={res.df}), p={res.p_value:.4f}")

    summary = pd.DataFrame([
        {
            'variable': res.variable,
            'groups': res.n_groups,
            'chi2': res.statistic,
            'df': res.df,
            'p_value': res.p_value,
            'significant': res.p_value < alpha
        }
        for res in results.values()
    ])

    pairwise_tables = [res.pairwise for res in results.values() if res.pairwise is not None]
    pairwise = pd.concat(pairwise_tables, ignore_index=True) if pairwise_tables else pd.DataFrame(
        columns=['variable', 'group_a', 'group_b', 'statistic', 'p_value', 'p_adjusted', 'significant']
    )

    return {
        'results': results,
        'summary': summary,
        'pairwise': pairwise
    }
