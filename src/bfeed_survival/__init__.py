"""
Breastfeeding Duration Survival Analysis
========================================

Survival analysis report for the 927-record breastfeeding duration
dataset (first-born children, National Longitudinal Survey of Youth).

Structure:
- data/: Data loading and decoding of the bfeed table
- models/: Kaplan-Meier and Cox proportional-hazards model wrappers
- analysis/: Descriptive summaries, survival curves, group comparisons,
  regression workflow and the end-to-end pipeline
- utils/: Statistical helpers, plotting and report rendering
- config/: Paths, constants and variable labels

Pipeline order:
1. Load the observation table
2. Descriptive summaries and censoring rates
3. Kaplan-Meier curves (overall and stratified)
4. Log-rank tests with Benjamini-Hochberg post hoc comparisons
5. Cox regression: univariate, Schoenfeld checks, spline terms, stepwise AIC
6. Markdown report with tables and figures
"""

__version__ = "1.0.0"
__author__ = "BFeed Survival Team"
