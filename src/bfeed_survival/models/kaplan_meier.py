"""
Kaplan-Meier estimation for right-censored breastfeeding durations.

Thin wrappers around ``lifelines.KaplanMeierFitter`` that expose the
quantities the report tabulates: step-function lookups with confidence
bounds at checkpoint weeks, median survival, restricted mean survival with
its standard error, and the no-censoring empirical curve used as a
comparison overlay.
"""

import pandas as pd
import numpy as np
from typing import Dict, List, Optional, Sequence, Tuple
from dataclasses import dataclass

from lifelines import KaplanMeierFitter
from lifelines.utils import median_survival_times

from ..config.settings import AnalysisConfig, DURATION_COL, EVENT_COL
from ..exceptions import DegenerateStratumError


@dataclass
class KaplanMeierCurve:
    """Container for a fitted Kaplan-Meier curve."""
    label: str
    fitter: KaplanMeierFitter
    durations: np.ndarray
    events: np.ndarray

    @property
    def n_obs(self) -> int:
        return len(self.durations)

    @property
    def n_events(self) -> int:
        return int(self.events.sum())

    @property
    def timeline(self) -> np.ndarray:
        return self.fitter.survival_function_.index.values.astype(float)

    @property
    def survival_probs(self) -> np.ndarray:
        return self.fitter.survival_function_.iloc[:, 0].values

    @property
    def lower_bound(self) -> np.ndarray:
        return self.fitter.confidence_interval_.iloc[:, 0].values

    @property
    def upper_bound(self) -> np.ndarray:
        return self.fitter.confidence_interval_.iloc[:, 1].values

    @property
    def event_times(self) -> np.ndarray:
        """Distinct times with at least one observed event."""
        return np.unique(self.durations[self.events == 1])

    @property
    def last_time(self) -> float:
        return float(self.durations.max())

    def survival_at(self, times: Sequence[float]) -> np.ndarray:
        """
        Evaluate the right-continuous step function at arbitrary times.

        Times beyond the last observation return NaN since the curve is not
        identified there when the last observation is censored.
        """
        return self._step_lookup(self.survival_probs, times)

    def confidence_at(self, times: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
        """Pointwise confidence bounds at the given times."""
        return self._step_lookup(self.lower_bound, times), self._step_lookup(self.upper_bound, times)

    def at_risk(self, times: Sequence[float]) -> np.ndarray:
        """Number of subjects still under observation just before each time."""
        return np.array([(self.durations >= t).sum() for t in times], dtype=int)

    def _step_lookup(self, values: np.ndarray, times: Sequence[float]) -> np.ndarray:
        times = np.asarray(times, dtype=float)
        idx = np.searchsorted(self.timeline, times, side='right') - 1
        result = values[np.clip(idx, 0, len(values) - 1)].astype(float)
        result[idx < 0] = 1.0
        result[times > self.last_time] = np.nan
        return result


def fit_kaplan_meier(durations, events, label: str = 'Overall',
                     alpha: float = AnalysisConfig.ALPHA) -> KaplanMeierCurve:
    """
    Fit a Kaplan-Meier curve.

    Args:
        durations: Observed times (weeks)
        events: Event indicators (1 = completed, 0 = censored)
        label: Curve label used in tables and legends
        alpha: One minus the confidence level of the pointwise bands

    Returns:
        Fitted KaplanMeierCurve
    """
    durations = np.asarray(durations, dtype=float)
    events = np.asarray(events, dtype=int)

    if events.sum() == 0:
        raise DegenerateStratumError('curve', label, len(durations))

    kmf = KaplanMeierFitter(alpha=alpha)
    kmf.fit(durations, event_observed=events, label=label)

    return KaplanMeierCurve(label=label, fitter=kmf, durations=durations, events=events)


def empirical_survival(durations, label: str = 'Empirical') -> KaplanMeierCurve:
    """
    Empirical survival curve that ignores censoring.

    Every record is treated as an observed event, so this is one minus the
    empirical distribution function of the recorded durations.
    """
    durations = np.asarray(durations, dtype=float)
    return fit_kaplan_meier(durations, np.ones(len(durations), dtype=int), label=label)


def fit_stratified(df: pd.DataFrame, column: str,
                   duration_col: str = DURATION_COL,
                   event_col: str = EVENT_COL,
                   alpha: float = AnalysisConfig.ALPHA) -> Dict[str, KaplanMeierCurve]:
    """
    Fit one Kaplan-Meier curve per level of a categorical column.

    Levels follow the categorical order when the column is categorical,
    otherwise sorted order. Levels with no records are skipped; a level with
    records but no events raises DegenerateStratumError.
    """
    if isinstance(df[column].dtype, pd.CategoricalDtype):
        levels = list(df[column].cat.categories)
    else:
        levels = sorted(df[column].dropna().unique())

    curves = {}
    for level in levels:
        group = df[df[column] == level]
        if len(group) == 0:
            continue
        if group[event_col].sum() == 0:
            raise DegenerateStratumError(column, level, len(group))

        curves[level] = fit_kaplan_meier(
            group[duration_col], group[event_col], label=str(level), alpha=alpha
        )

    return curves


def survival_at_checkpoints(curve: KaplanMeierCurve,
                            weeks: Optional[List[float]] = None) -> pd.DataFrame:
    """
    Tabulate S(t) and its confidence bounds at checkpoint weeks.

    Args:
        curve: Fitted curve
        weeks: Checkpoint times (default from config)

    Returns:
        DataFrame with week, at_risk, survival, lower and upper columns
    """
    if weeks is None:
        weeks = AnalysisConfig.CHECKPOINT_WEEKS

    lower, upper = curve.confidence_at(weeks)
    return pd.DataFrame({
        'week': weeks,
        'at_risk': curve.at_risk(weeks),
        'survival': curve.survival_at(weeks),
        'lower': lower,
        'upper': upper
    })


def median_survival(curve: KaplanMeierCurve) -> Dict[str, float]:
    """Median survival time (first t with S(t) <= 0.5) and its confidence limits."""
    ci = median_survival_times(curve.fitter.confidence_interval_)
    return {
        'median': float(curve.fitter.median_survival_time_),
        'lower': float(ci.iloc[0, 0]),
        'upper': float(ci.iloc[0, 1])
    }


def restricted_mean(curve: KaplanMeierCurve, horizon: Optional[float] = None) -> Dict[str, float]:
    """
    Mean survival time restricted to a horizon, with its standard error.

    The mean is the area under the step function up to the horizon, which
    defaults to the last observed time. The standard error uses
    the Greenwood-type variance sum over event times t_i before the horizon,
    sum A_i^2 d_i / (n_i (n_i - d_i)), where A_i is the area under the curve
    between t_i and the horizon.
    """
    if horizon is None:
        horizon = curve.last_time

    sf = curve.fitter.survival_function_.iloc[:, 0]
    knots = sf.index.values.astype(float)
    knots = knots[knots < horizon]
    heights = sf.loc[knots].values
    areas = heights * np.diff(np.append(knots, horizon))
    tail_areas = pd.Series(np.cumsum(areas[::-1])[::-1], index=knots)
    mean = areas.sum()

    table = curve.fitter.event_table
    table = table[(table.index > 0) & (table.index < horizon) & (table['observed'] > 0)]
    table = table[table['at_risk'] > table['observed']]

    d = table['observed'].values.astype(float)
    n = table['at_risk'].values.astype(float)
    a = tail_areas.reindex(table.index.values.astype(float)).values
    variance = np.sum(a ** 2 * d / (n * (n - d)))

    return {
        'horizon': float(horizon),
        'mean': float(mean),
        'se': float(np.sqrt(variance))
    }
