"""
Descriptive summaries of the observation table.
"""

import pandas as pd
from typing import Dict, List, Optional

from ..config.settings import (
    VARIABLE_DESCRIPTIONS, CATEGORICAL_COVARIATES, CONTINUOUS_COVARIATES,
    REQUIRED_COLUMNS, DURATION_COL, EVENT_COL
)
from ..utils.statistics import StatisticalAnalyzer


def describe_variables() -> pd.DataFrame:
    """Variable description table: name, type and meaning of each field."""
    rows = []
    for col in REQUIRED_COLUMNS:
        if col in CATEGORICAL_COVARIATES:
            var_type = 'categorical'
        elif col == EVENT_COL:
            var_type = 'indicator'
        else:
            var_type = 'continuous'
        rows.append({
            'variable': col,
            'type': var_type,
            'description': VARIABLE_DESCRIPTIONS[col]
        })

    return pd.DataFrame(rows)


def summarize_categorical(df: pd.DataFrame, columns: Optional[List[str]] = None,
                          event_col: str = EVENT_COL,
                          analyzer: Optional[StatisticalAnalyzer] = None) -> pd.DataFrame:
    """
    Frequency, percentage and censoring rate per level.

    Args:
        df: Observation table
        columns: Categorical columns (default: all categorical covariates)
        event_col: Event indicator column

    Returns:
        DataFrame with one row per (variable, level)
    """
    if columns is None:
        columns = CATEGORICAL_COVARIATES
    analyzer = analyzer or StatisticalAnalyzer()

    n_total = len(df)
    rows = []
    for col in columns:
        counts = df.groupby(col, observed=False)[event_col].count()
        censored = (df[event_col] == 0).groupby(df[col], observed=False).sum()

        for level in counts.index:
            n = int(counts[level])
            rows.append({
                'variable': col,
                'level': str(level),
                'n': n,
                'percent': analyzer.percent(n, n_total),
                'censored': int(censored[level]),
                'censored_pct': analyzer.percent(int(censored[level]), n)
            })

    return pd.DataFrame(rows)


def summarize_continuous(df: pd.DataFrame, columns: Optional[List[str]] = None,
                         analyzer: Optional[StatisticalAnalyzer] = None) -> pd.DataFrame:
    """Mean, SD, minimum and maximum of continuous covariates (and duration)."""
    if columns is None:
        columns = [DURATION_COL] + CONTINUOUS_COVARIATES
    analyzer = analyzer or StatisticalAnalyzer()

    return analyzer.describe_continuous(df, columns)


def censoring_overview(df: pd.DataFrame, event_col: str = EVENT_COL) -> Dict[str, float]:
    """Total, event and censored counts."""
    n = len(df)
    events = int(df[event_col].sum())
    return {
        'n': n,
        'events': events,
        'censored': n - events,
        'censored_pct': StatisticalAnalyzer.percent(n - events, n)
    }
