"""
Visualization utilities for the breastfeeding survival analysis.
"""

import matplotlib.pyplot as plt
import seaborn as sns
import pandas as pd
import numpy as np
from typing import Optional, Dict, Tuple
from pathlib import Path

from lifelines import CoxPHFitter

from ..config.settings import FIGURES_DIR, VARIABLE_LABELS
from ..models.kaplan_meier import KaplanMeierCurve

# Set style for consistent plots
plt.style.use('default')
sns.set_palette("husl")


class SurvivalVisualizer:
    """
    Plotting utilities for survival curves and Cox model diagnostics.

    Every method returns the matplotlib Figure and saves it when a file
    name is given.
    """

    def __init__(self, save_dir: Optional[Path] = None, figsize: Tuple[int, int] = (10, 6),
                 verbose: bool = True):
        """
        Initialize the visualizer.

        Args:
            save_dir: Directory to save figures. If None, uses default from config.
            figsize: Default figure size for plots.
            verbose: Whether to print saved file paths
        """
        self.save_dir = Path(save_dir) if save_dir is not None else FIGURES_DIR
        self.figsize = figsize
        self.verbose = verbose
        self.saved_files: Dict[str, Path] = {}

    def km_plot(self, curve: KaplanMeierCurve, title: str = "Kaplan-Meier estimate",
                show_ci: bool = True, save_name: Optional[str] = None) -> plt.Figure:
        """
        Plot one Kaplan-Meier curve with its pointwise confidence band.

        Args:
            curve: Fitted curve
            title: Plot title
            show_ci: Whether to shade the confidence band
            save_name: Filename to save the plot

        Returns:
            matplotlib Figure object
        """
        fig, ax = plt.subplots(figsize=self.figsize)

        self._draw_curve(ax, curve, show_ci=show_ci)
        self._mark_censored(ax, curve)
        self._format_survival_axes(ax, title)

        plt.tight_layout()

        if save_name:
            self._save_figure(fig, save_name)

        return fig

    def km_vs_empirical(self, km_curve: KaplanMeierCurve, emp_curve: KaplanMeierCurve,
                        title: str = "Kaplan-Meier vs empirical survival",
                        save_name: Optional[str] = None) -> plt.Figure:
        """
        Overlay the censoring-aware estimate on the no-censoring empirical curve.
        """
        fig, ax = plt.subplots(figsize=self.figsize)

        self._draw_curve(ax, km_curve, show_ci=False)
        ax.step(emp_curve.timeline, emp_curve.survival_probs, where='post',
                linestyle='--', linewidth=2, label=emp_curve.label)
        self._format_survival_axes(ax, title)

        plt.tight_layout()

        if save_name:
            self._save_figure(fig, save_name)

        return fig

    def stratified_km(self, curves: Dict[str, KaplanMeierCurve], column: str,
                      title: Optional[str] = None, show_ci: bool = False,
                      save_name: Optional[str] = None) -> plt.Figure:
        """
        Plot one Kaplan-Meier curve per level of a grouping column.

        Args:
            curves: Curves keyed by level
            column: Grouping column name
            title: Plot title
            show_ci: Whether to shade confidence bands
            save_name: Filename to save the plot

        Returns:
            matplotlib Figure object
        """
        fig, ax = plt.subplots(figsize=self.figsize)

        for level, curve in curves.items():
            self._draw_curve(ax, curve, show_ci=show_ci, label=f"{level} (n={curve.n_obs})")

        label = VARIABLE_LABELS.get(column, column.replace('_', ' ').title())
        self._format_survival_axes(ax, title or f"Kaplan-Meier estimate by {label.lower()}")
        ax.legend(title=label)

        plt.tight_layout()

        if save_name:
            self._save_figure(fig, save_name)

        return fig

    def term_effect_plot(self, effect: pd.DataFrame, covariate: str,
                         data: Optional[pd.Series] = None,
                         title: Optional[str] = None,
                         save_name: Optional[str] = None) -> plt.Figure:
        """
        Plot the log-hazard contribution of a spline term with its band.

        Args:
            effect: Output of CoxRegressionEngine.term_effect
            covariate: Covariate name
            data: Observed covariate values, drawn as a rug
            title: Plot title
            save_name: Filename to save the plot

        Returns:
            matplotlib Figure object
        """
        fig, ax = plt.subplots(figsize=self.figsize)

        ax.plot(effect['x'], effect['log_hr'], linewidth=2.5, label='Spline term')
        ax.fill_between(effect['x'], effect['lower'], effect['upper'], alpha=0.2, label='95% CI')
        ax.axhline(y=0, color='grey', linestyle='--', alpha=0.7)

        if data is not None:
            sns.rugplot(x=data.values, ax=ax, height=0.03, alpha=0.3)

        label = VARIABLE_LABELS.get(covariate, covariate)
        ax.set_title(title or f"Spline term effect: {label}", fontsize=14, fontweight='bold')
        ax.set_xlabel(label, fontsize=12)
        ax.set_ylabel('Log hazard ratio (vs median)', fontsize=12)
        ax.grid(True, alpha=0.3)
        ax.legend()

        plt.tight_layout()

        if save_name:
            self._save_figure(fig, save_name)

        return fig

    def schoenfeld_plot(self, cph: CoxPHFitter, frame: pd.DataFrame,
                        title: str = "Scaled Schoenfeld residuals",
                        save_name: Optional[str] = None) -> plt.Figure:
        """
        Scaled Schoenfeld residuals against event time, one panel per column.

        Args:
            cph: Fitted Cox model
            frame: Model frame the model was fitted on
            title: Figure title
            save_name: Filename to save the plot

        Returns:
            matplotlib Figure object
        """
        residuals = cph.compute_residuals(frame, 'scaled_schoenfeld')
        times = frame.loc[residuals.index, cph.duration_col]

        n_cols = len(residuals.columns)
        ncols = min(3, n_cols)
        nrows = int(np.ceil(n_cols / ncols))
        fig, axes = self.create_subplots(nrows, ncols, figsize=(5 * ncols, 3.5 * nrows))
        axes = np.atleast_1d(axes).flatten()

        for ax, col in zip(axes, residuals.columns):
            ax.scatter(times, residuals[col], s=8, alpha=0.4)
            order = np.argsort(times.values)
            trend = pd.Series(residuals[col].values[order]).rolling(51, center=True, min_periods=10).mean()
            ax.plot(times.values[order], trend, color='red', linewidth=2)
            ax.axhline(y=0, color='black', alpha=0.3)
            ax.set_title(col, fontsize=11)
            ax.set_xlabel('Weeks')
            ax.grid(True, alpha=0.3)

        for ax in axes[n_cols:]:
            ax.set_visible(False)

        fig.suptitle(title, fontsize=14, fontweight='bold')
        plt.tight_layout()

        if save_name:
            self._save_figure(fig, save_name)

        return fig

    def create_subplots(self, nrows: int, ncols: int, figsize: Optional[Tuple[int, int]] = None) -> Tuple[plt.Figure, np.ndarray]:
        """
        Create a figure with subplots.

        Args:
            nrows: Number of rows
            ncols: Number of columns
            figsize: Figure size. If None, uses default.

        Returns:
            Tuple of (figure, axes array)
        """
        if figsize is None:
            figsize = (self.figsize[0] * ncols, self.figsize[1] * nrows)

        fig, axes = plt.subplots(nrows, ncols, figsize=figsize)

        return fig, axes

    def _draw_curve(self, ax, curve: KaplanMeierCurve, show_ci: bool = True,
                    label: Optional[str] = None):
        line = ax.step(curve.timeline, curve.survival_probs, where='post',
                       linewidth=2.5, label=label or curve.label)[0]
        if show_ci:
            ax.fill_between(curve.timeline, curve.lower_bound, curve.upper_bound,
                            step='post', alpha=0.2, color=line.get_color())

    def _mark_censored(self, ax, curve: KaplanMeierCurve):
        censored_times = np.unique(curve.durations[curve.events == 0])
        if len(censored_times):
            ax.plot(censored_times, curve.survival_at(censored_times), '+',
                    color='black', markersize=8, label='Censored')

    def _format_survival_axes(self, ax, title: str):
        ax.set_title(title, fontsize=14, fontweight='bold')
        ax.set_xlabel('Weeks', fontsize=12)
        ax.set_ylabel('Proportion still breastfeeding', fontsize=12)
        ax.set_ylim(0, 1.02)
        ax.set_xlim(left=0)
        ax.grid(True, alpha=0.3)
        ax.legend()

    def _save_figure(self, fig: plt.Figure, filename: str, dpi: int = 300):
        """
        Save figure to file.

        Args:
            fig: matplotlib Figure object
            filename: Name of the file (without extension)
            dpi: Resolution for saved figure
        """
        # Ensure save directory exists
        self.save_dir.mkdir(parents=True, exist_ok=True)

        # Add .png extension if not present
        if not filename.endswith(('.png', '.pdf', '.svg', '.jpg', '.jpeg')):
            filename += '.png'

        filepath = self.save_dir / filename
        fig.savefig(filepath, dpi=dpi, bbox_inches='tight')
        self.saved_files[filename] = filepath
        if self.verbose:
            print(f"Figure saved: {filepath}")

    def set_style(self, style: str = 'whitegrid', palette: str = 'husl'):
        """
        Set the plotting style.

        Args:
            style: Seaborn style name
            palette: Color palette name
        """
        sns.set_style(style)
        sns.set_palette(palette)

    @staticmethod
    def close_all():
        """Close all figures to free memory."""
        plt.close('all')
