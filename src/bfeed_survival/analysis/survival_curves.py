"""
Kaplan-Meier survival curves: overall, stratified and checkpoint tables.
"""

import pandas as pd
from typing import Dict, List, Optional, Tuple

from ..config.settings import AnalysisConfig, DURATION_COL, EVENT_COL
from ..models.kaplan_meier import (
    KaplanMeierCurve, fit_kaplan_meier, fit_stratified, empirical_survival,
    survival_at_checkpoints, median_survival, restricted_mean
)


def fit_overall_curves(df: pd.DataFrame,
                       duration_col: str = DURATION_COL,
                       event_col: str = EVENT_COL) -> Tuple[KaplanMeierCurve, KaplanMeierCurve]:
    """
    Fit the overall Kaplan-Meier curve and the empirical no-censoring curve.

    Returns:
        Tuple of (kaplan_meier_curve, empirical_curve)
    """
    km_curve = fit_kaplan_meier(df[duration_col], df[event_col], label='Kaplan-Meier')
    emp_curve = empirical_survival(df[duration_col], label='Empirical')
    return km_curve, emp_curve


def checkpoint_table(km_curve: KaplanMeierCurve, emp_curve: Optional[KaplanMeierCurve] = None,
                     weeks: Optional[List[float]] = None) -> pd.DataFrame:
    """
    Survival estimates with confidence bounds at checkpoint weeks.

    When an empirical curve is given, its value is added for comparison.
    """
    table = survival_at_checkpoints(km_curve, weeks)
    if emp_curve is not None:
        table['empirical'] = emp_curve.survival_at(table['week'])
    return table


def stratified_checkpoint_table(curves: Dict[str, KaplanMeierCurve], column: str,
                                weeks: Optional[List[float]] = None) -> pd.DataFrame:
    """Checkpoint estimates for each stratum in long format."""
    tables = []
    for level, curve in curves.items():
        table = survival_at_checkpoints(curve, weeks)
        table.insert(0, 'level', str(level))
        table.insert(0, 'variable', column)
        tables.append(table)

    return pd.concat(tables, ignore_index=True)


def summarize_curve(curve: KaplanMeierCurve, horizon: Optional[float] = None) -> Dict[str, float]:
    """Size, events, median with limits and restricted mean with SE."""
    median = median_survival(curve)
    rmean = restricted_mean(curve, horizon)
    return {
        'n': curve.n_obs,
        'events': curve.n_events,
        'median': median['median'],
        'median_lower': median['lower'],
        'median_upper': median['upper'],
        'rmean': rmean['mean'],
        'rmean_se': rmean['se'],
        'horizon': rmean['horizon']
    }


def summarize_strata(df: pd.DataFrame, column: str,
                     duration_col: str = DURATION_COL,
                     event_col: str = EVENT_COL,
                     curves: Optional[Dict[str, KaplanMeierCurve]] = None) -> pd.DataFrame:
    """
    Median and restricted mean survival per level of a grouping column.

    All strata share the overall last observed time as restriction horizon
    so their means are comparable.
    """
    if curves is None:
        curves = fit_stratified(df, column, duration_col, event_col)

    horizon = float(df[duration_col].max())
    rows = []
    for level, curve in curves.items():
        row = {'variable': column, 'level': str(level)}
        row.update(summarize_curve(curve, horizon))
        rows.append(row)

    return pd.DataFrame(rows)


def run_survival_estimation(df: pd.DataFrame, group_columns: List[str],
                            weeks: Optional[List[float]] = None,
                            verbose: bool = True) -> Dict:
    """
    Fit overall and stratified curves and build the survival tables.

    Args:
        df: Observation table
        group_columns: Columns to stratify by
        weeks: Checkpoint weeks (default from config)
        verbose: Whether to print progress

    Returns:
        Dictionary with curves and tables
    """
    if weeks is None:
        weeks = AnalysisConfig.CHECKPOINT_WEEKS

    if verbose:
        print("🔄 Fitting Kaplan-Meier curves...")

    km_curve, emp_curve = fit_overall_curves(df)
    overall_summary = summarize_curve(km_curve)

    stratified = {}
    strata_tables = []
    checkpoint_tables = []
    for column in group_columns:
        curves = fit_stratified(df, column)
        stratified[column] = curves
        strata_tables.append(summarize_strata(df, column, curves=curves))
        checkpoint_tables.append(stratified_checkpoint_table(curves, column, weeks))

    if verbose:
        print(f"✅ Overall median survival: {overall_summary['median']:.1f} weeks "
              f"(restricted mean {overall_summary['rmean']:.2f} ± {overall_summary['rmean_se']:.2f})")
        print(f"✅ Stratified curves for {len(group_columns)} grouping variables")

    return {
        'km_curve': km_curve,
        'empirical_curve': emp_curve,
        'overall_summary': overall_summary,
        'checkpoints': checkpoint_table(km_curve, emp_curve, weeks),
        'stratified_curves': stratified,
        'strata_summary': pd.concat(strata_tables, ignore_index=True) if strata_tables else pd.DataFrame(),
        'stratified_checkpoints': pd.concat(checkpoint_tables, ignore_index=True) if checkpoint_tables else pd.DataFrame()
    }
