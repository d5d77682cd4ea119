"""
End-to-end analysis pipeline.

Runs the six steps in order: load, describe, Kaplan-Meier estimation,
log-rank comparisons, Cox regression and report rendering. Each step
consumes the output of the previous ones only.
"""

import pandas as pd
import matplotlib.pyplot as plt
from pathlib import Path
from typing import Dict, Any, Optional

from ..config.settings import (
    AnalysisConfig, OUTPUT_DIR, GROUP_COLUMNS, COVARIATES, VARIABLE_LABELS
)
from ..data.loader import BreastfeedingDataLoader
from ..utils.report import MarkdownReport
from ..utils.visualization import SurvivalVisualizer
from .descriptive import (
    describe_variables, summarize_categorical, summarize_continuous, censoring_overview
)
from .survival_curves import run_survival_estimation
from .group_comparison import run_logrank_tests
from .regression import run_regression_analysis


REPORT_TITLE = "Breastfeeding Duration: Survival Analysis Report"

KM_PLOT_GROUPS = ['smoke', 'race']


def run_descriptive_analysis(df: pd.DataFrame, verbose: bool = True) -> Dict[str, Any]:
    """Variable description, categorical/continuous summaries and censoring counts."""
    if verbose:
        print("🔄 Summarizing variables...")

    overview = censoring_overview(df)
    results = {
        'variables': describe_variables(),
        'categorical': summarize_categorical(df),
        'continuous': summarize_continuous(df),
        'censoring': overview
    }

    if verbose:
        print(f"✅ {overview['n']} records, {overview['events']} events, "
              f"{overview['censored']} censored ({overview['censored_pct']:.1f}%)")

    return results


def create_figures(survival: Dict[str, Any], regression: Dict[str, Any],
                   df: pd.DataFrame, figures_dir: Path,
                   verbose: bool = True) -> Dict[str, Path]:
    """
    Draw and save every report figure.

    Returns:
        Dictionary mapping figure keys to saved file paths
    """
    visualizer = SurvivalVisualizer(save_dir=figures_dir, verbose=verbose)
    visualizer.set_style('whitegrid')

    figures = {}

    fig = visualizer.km_plot(survival['km_curve'], title="Kaplan-Meier estimate of breastfeeding duration",
                             save_name='km_overall')
    figures['km_overall'] = visualizer.saved_files['km_overall.png']
    plt.close(fig)

    fig = visualizer.km_vs_empirical(survival['km_curve'], survival['empirical_curve'],
                                     save_name='km_vs_empirical')
    figures['km_vs_empirical'] = visualizer.saved_files['km_vs_empirical.png']
    plt.close(fig)

    for column in KM_PLOT_GROUPS:
        curves = survival['stratified_curves'].get(column)
        if not curves:
            continue
        name = f"km_by_{column}"
        fig = visualizer.stratified_km(curves, column, save_name=name)
        figures[name] = visualizer.saved_files[f"{name}.png"]
        plt.close(fig)

    for cov, effect in regression['term_effects'].items():
        name = f"spline_{cov}"
        fig = visualizer.term_effect_plot(effect, cov, data=df[cov], save_name=name)
        figures[name] = visualizer.saved_files[f"{name}.png"]
        plt.close(fig)

    engine = regression['engine']
    final_terms = regression['stepwise'].final_terms
    if final_terms:
        cph = engine.fit_terms(final_terms)
        frame, _ = engine.design_frame(final_terms)
        fig = visualizer.schoenfeld_plot(cph, frame, title="Scaled Schoenfeld residuals: final model",
                                         save_name='schoenfeld_final')
        figures['schoenfeld_final'] = visualizer.saved_files['schoenfeld_final.png']
        plt.close(fig)

    visualizer.close_all()
    return figures


def build_report(descriptive: Dict[str, Any], survival: Dict[str, Any],
                 logrank: Dict[str, Any], regression: Dict[str, Any],
                 figures: Dict[str, Path], output_dir: Path,
                 verbose: bool = True) -> Path:
    """
    Assemble the Markdown report from the step results.

    Returns:
        Path of the written report
    """
    report = MarkdownReport(REPORT_TITLE, output_dir=output_dir, verbose=verbose)
    alpha = AnalysisConfig.ALPHA

    # 1. Data
    censoring = descriptive['censoring']
    report.add_heading("1. Data")
    report.add_paragraph(
        f"The dataset contains {censoring['n']} first-born children whose mothers chose to "
        f"breastfeed. Breastfeeding was completed for {censoring['events']} children; "
        f"{censoring['censored']} ({censoring['censored_pct']:.1f}%) are right-censored."
    )
    report.add_table('variables', descriptive['variables'], "Variables in the bfeed dataset.")

    # 2. Descriptive statistics
    report.add_heading("2. Descriptive statistics")
    report.add_table('categorical_summary', descriptive['categorical'],
                     "Categorical covariates: counts, percent of records and percent censored within each level.")
    report.add_table('continuous_summary', descriptive['continuous'],
                     "Continuous variables: mean, standard deviation and range.")

    # 3. Kaplan-Meier estimation
    overall = survival['overall_summary']
    report.add_heading("3. Kaplan-Meier estimation")
    report.add_paragraph(
        f"The estimated median breastfeeding duration is {overall['median']:.0f} weeks "
        f"(95% CI {overall['median_lower']:.0f} to {overall['median_upper']:.0f}). The mean duration "
        f"restricted to {overall['horizon']:.0f} weeks is {overall['rmean']:.2f} weeks "
        f"(SE {overall['rmean_se']:.2f})."
    )
    if 'km_overall' in figures:
        report.add_figure(figures['km_overall'], "Kaplan-Meier estimate with pointwise 95% confidence band.")
    report.add_table('survival_checkpoints', survival['checkpoints'],
                     "Estimated proportion still breastfeeding at selected weeks, with 95% confidence limits. "
                     "The empirical column ignores censoring.")
    if 'km_vs_empirical' in figures:
        report.add_figure(figures['km_vs_empirical'],
                          "Kaplan-Meier estimate against the empirical survival curve that treats every record as an event.")
    report.add_table('strata_summary', survival['strata_summary'],
                     "Median and restricted mean duration (weeks) by group.")
    report.add_table('strata_checkpoints', survival['stratified_checkpoints'],
                     "Estimated proportion still breastfeeding at selected weeks by group, with 95% confidence limits.")
    for column in KM_PLOT_GROUPS:
        key = f"km_by_{column}"
        if key in figures:
            report.add_figure(figures[key], f"Kaplan-Meier estimates by {VARIABLE_LABELS[column].lower()}.")

    # 4. Group comparisons
    summary = logrank['summary']
    significant = summary.loc[summary['significant'], 'variable'].tolist()
    report.add_heading("4. Log-rank tests")
    report.add_paragraph(
        f"Survival curves differ at the {alpha:.2f} level by: "
        f"{', '.join(significant) if significant else 'none of the grouping variables'}."
    )
    report.add_table('logrank_tests', summary, "Log-rank (Mantel-Cox) tests of equal survival across groups.")
    report.add_table('logrank_pairwise', logrank['pairwise'],
                     "Pairwise log-rank comparisons with Benjamini-Hochberg adjusted p-values.")

    # 5. Cox regression
    stepwise = regression['stepwise']
    report.add_heading("5. Cox proportional-hazards regression")
    report.add_table('cox_univariate', regression['univariate'],
                     "Univariate Cox models: hazard ratios with Wald 95% confidence intervals "
                     "and likelihood-ratio tests of each covariate.")
    report.add_table('ph_tests', regression['assumptions'],
                     "Proportional-hazards tests on scaled Schoenfeld residuals (Kaplan-Meier time transform). "
                     "Term and GLOBAL rows sum the per-column statistics and ignore their correlation, "
                     "so they approximate rather than reproduce the joint score test of R cox.zph.")

    splines = regression['splines']
    if splines.empty:
        report.add_paragraph("No continuous covariate showed a borderline proportional-hazards test; "
                             "all continuous covariates enter linearly.")
    else:
        accepted = splines.loc[splines['accepted'], 'covariate'].tolist()
        report.add_paragraph(
            f"Penalized spline terms were assessed for {', '.join(splines['covariate'])}. "
            f"Accepted: {', '.join(accepted) if accepted else 'none'}."
        )
        report.add_table('spline_assessment', splines,
                         "Linear against penalized-spline forms of borderline continuous covariates.")
    for cov in regression['term_effects']:
        key = f"spline_{cov}"
        if key in figures:
            report.add_figure(figures[key],
                              f"Penalized spline term for {VARIABLE_LABELS[cov].lower()}, centred at the median, with 95% band.")

    report.add_table('cox_full', regression['multivariate'], "Full multivariate Cox model.")
    report.add_table('stepwise_history', regression['stepwise_history'], "Stepwise AIC selection history.")
    report.add_paragraph(
        f"Stepwise selection retained {', '.join(stepwise.final_terms) if stepwise.final_terms else 'no terms'} "
        f"and removed {', '.join(stepwise.removed_terms) if stepwise.removed_terms else 'no terms'} "
        f"(final AIC {stepwise.aic:.2f})."
    )
    report.add_table('stepwise_check', regression['stepwise_check'],
                     "AIC after re-adding each removed term to the final model.")
    report.add_table('cox_final', regression['final_model'], "Final multivariate Cox model.")
    report.add_table('ph_final', regression['final_ph'],
                     "Proportional-hazards tests for the final model. The GLOBAL row is the same "
                     "sum-of-columns approximation as above.")
    if 'schoenfeld_final' in figures:
        report.add_figure(figures['schoenfeld_final'],
                          "Scaled Schoenfeld residuals against time for the final model, with a running mean.")

    return report.save()


def run_complete_analysis(data: Optional[pd.DataFrame] = None,
                          data_file: Optional[Path] = None,
                          output_dir: Optional[Path] = None,
                          make_plots: bool = True,
                          verbose: bool = True) -> Dict[str, Any]:
    """
    Run the full report pipeline.

    Args:
        data: Preprocessed observation table (loaded from data_file when None)
        data_file: Path to the bfeed CSV
        output_dir: Output directory (default from config)
        make_plots: Whether to draw and save figures
        verbose: Whether to print progress

    Returns:
        Dictionary with the results of every step and the report path
    """
    output_dir = Path(output_dir) if output_dir is not None else OUTPUT_DIR

    # 1. Load
    if data is None:
        loader = BreastfeedingDataLoader(data_file=data_file, verbose=verbose)
        data = loader.preprocess_data()

    # 2. Describe
    descriptive = run_descriptive_analysis(data, verbose=verbose)

    # 3. Kaplan-Meier
    group_columns = [col for col in GROUP_COLUMNS if col in data.columns]
    survival = run_survival_estimation(data, group_columns, verbose=verbose)

    # 4. Log-rank
    logrank = run_logrank_tests(data, group_columns, verbose=verbose)

    # 5. Cox regression
    regression = run_regression_analysis(data, covariates=COVARIATES, verbose=verbose)

    # 6. Report
    figures = {}
    if make_plots:
        if verbose:
            print("🔄 Drawing figures...")
        figures = create_figures(survival, regression, data, output_dir / "figures", verbose=verbose)

    if verbose:
        print("🔄 Rendering report...")
    report_path = build_report(descriptive, survival, logrank, regression, figures, output_dir, verbose=verbose)

    if verbose:
        print(f"✅ Analysis complete: {report_path}")

    return {
        'data': data,
        'descriptive': descriptive,
        'survival': survival,
        'logrank': logrank,
        'regression': regression,
        'figures': figures,
        'report_path': report_path
    }
