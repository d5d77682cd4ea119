"""
Utilities module for the breastfeeding survival analysis.

This module provides statistical helpers, plotting and Markdown report
rendering for the analysis pipeline.
"""

from .visualization import SurvivalVisualizer
from .statistics import StatisticalAnalyzer
from .report import MarkdownReport, format_table

__all__ = ['SurvivalVisualizer', 'StatisticalAnalyzer', 'MarkdownReport', 'format_table']
