"""
Configuration module: paths, analysis constants and variable labels.
"""

from .settings import AnalysisConfig

__all__ = ['AnalysisConfig']
