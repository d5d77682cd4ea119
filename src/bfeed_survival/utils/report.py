"""
Markdown report rendering.

Tables are formatted with fixed decimals per column, rendered with
``DataFrame.to_markdown`` and saved as CSV next to the report.
"""

import numpy as np
import pandas as pd
from typing import Dict, List, Optional
from pathlib import Path

from ..config.settings import OUTPUT_DIR, REPORT_FILENAME


# Decimal places per column name, shared by every table
COLUMN_DECIMALS = {
    'percent': 1,
    'censored_pct': 1,
    'mean': 2,
    'sd': 2,
    'min': 2,
    'max': 2,
    'survival': 3,
    'lower': 3,
    'upper': 3,
    'empirical': 3,
    'median': 2,
    'median_lower': 2,
    'median_upper': 2,
    'rmean': 2,
    'rmean_se': 2,
    'horizon': 2,
    'chi2': 2,
    'statistic': 3,
    'p_value': 4,
    'p_adjusted': 4,
    'coef': 3,
    'se': 3,
    'hr': 3,
    'hr_lower': 3,
    'hr_upper': 3,
    'lr_statistic': 2,
    'lr_p_value': 4,
    'aic': 2,
    'linear_ph_p': 4,
    'spline_ph_p': 4,
    'spline_lr_statistic': 2,
    'spline_lr_p': 4,
    'nonlinearity_p': 4,
    'linear_aic': 2,
    'spline_aic': 2,
    'aic_with_term': 2,
    'final_aic': 2,
}

MISSING = 'NA'


def format_value(value, decimals: Optional[int]) -> str:
    """Fixed-decimal text for a number; NA for missing values."""
    if value is None:
        return MISSING
    if isinstance(value, (bool, np.bool_)):
        return 'yes' if value else 'no'
    if isinstance(value, (int, np.integer)):
        return str(int(value))
    if isinstance(value, (float, np.floating)):
        if np.isnan(value):
            return MISSING
        if decimals is None:
            return f"{value:g}"
        return f"{value:.{decimals}f}"
    return str(value)


def format_table(df: pd.DataFrame, decimals: Optional[Dict[str, int]] = None) -> pd.DataFrame:
    """
    Convert every cell to text with fixed decimals.

    Args:
        df: Table to format
        decimals: Per-column decimal places overriding COLUMN_DECIMALS

    Returns:
        DataFrame of strings
    """
    precision = dict(COLUMN_DECIMALS, **(decimals or {}))
    formatted = pd.DataFrame(index=df.index)
    for col in df.columns:
        places = precision.get(col)
        formatted[col] = [format_value(v, places) for v in df[col].tolist()]
    return formatted


class MarkdownReport:
    """
    Collects sections, tables and figures and writes them as one Markdown file.
    """

    def __init__(self, title: str, output_dir: Optional[Path] = None, verbose: bool = True):
        """
        Initialize the report.

        Args:
            title: Document title
            output_dir: Directory for the report; tables go to its results/ subdirectory
            verbose: Whether to print written file paths
        """
        self.title = title
        self.output_dir = Path(output_dir) if output_dir is not None else OUTPUT_DIR
        self.results_dir = self.output_dir / "results"
        self.verbose = verbose
        self.blocks: List[str] = [f"# {title}", ""]
        self.tables: Dict[str, Path] = {}
        self._table_count = 0
        self._figure_count = 0

    def add_heading(self, text: str, level: int = 2):
        self.blocks.extend([f"{'#' * level} {text}", ""])

    def add_paragraph(self, text: str):
        self.blocks.extend([text, ""])

    def add_table(self, name: str, df: pd.DataFrame, caption: str,
                  decimals: Optional[Dict[str, int]] = None):
        """
        Append a numbered table and save it as ``results/<name>.csv``.

        Args:
            name: File stem of the CSV export
            df: Table to render
            caption: Caption printed above the table
            decimals: Per-column decimal overrides
        """
        self._table_count += 1
        self.results_dir.mkdir(parents=True, exist_ok=True)
        csv_path = self.results_dir / f"{name}.csv"
        df.to_csv(csv_path, index=False)
        self.tables[name] = csv_path

        self.blocks.append(f"**Table {self._table_count}.** {caption}")
        self.blocks.append("")
        if df.empty:
            self.blocks.append("_No rows._")
        else:
            # Cells are already text; keep tabulate from reparsing them as numbers
            self.blocks.append(format_table(df, decimals).to_markdown(index=False, disable_numparse=True))
        self.blocks.append("")

    def add_figure(self, path: Path, caption: str):
        """Append a numbered figure linked relative to the report."""
        self._figure_count += 1
        path = Path(path)
        try:
            link = path.relative_to(self.output_dir).as_posix()
        except ValueError:
            link = path.as_posix()
        self.blocks.append(f"![Figure {self._figure_count}]({link})")
        self.blocks.append("")
        self.blocks.append(f"*Figure {self._figure_count}.* {caption}")
        self.blocks.append("")

    def render(self) -> str:
        return "\n".join(self.blocks).rstrip() + "\n"

    def save(self, filename: str = REPORT_FILENAME) -> Path:
        """Write the rendered report and return its path."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / filename
        path.write_text(self.render(), encoding='utf-8')
        if self.verbose:
            print(f"Report saved: {path}")
        return path
