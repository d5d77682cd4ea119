#!/usr/bin/env python3
"""
Quick runner for the breastfeeding survival report.

Usage:
    python run_report.py                      # Full report into output/
    python run_report.py --explore            # Load and describe the data only
    python run_report.py --no-plots --quiet   # Tables and report, no figures
"""

import sys
from pathlib import Path

# Add src to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root / "src"))

if __name__ == "__main__":
    from bfeed_survival.main import main
    sys.exit(main())
