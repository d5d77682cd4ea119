"""
Data module for the breastfeeding survival analysis.

This module provides loading and decoding of the bfeed observation table.
"""

from .loader import BreastfeedingDataLoader, load_bfeed_data

__all__ = ['BreastfeedingDataLoader', 'load_bfeed_data']
