"""
Data loading and decoding module for the breastfeeding duration dataset.
"""

import pandas as pd
import numpy as np
from pathlib import Path
from typing import Optional, Dict, Any
import warnings

from ..config.settings import (
    DATA_FILE, DATA_URL, COLUMN_MAPPING, CODE_MAPPING, CATEGORY_LEVELS,
    CATEGORICAL_COVARIATES, CONTINUOUS_COVARIATES, REQUIRED_COLUMNS,
    DURATION_COL, EVENT_COL, AnalysisConfig
)
from ..exceptions import DataIntegrityError


class BreastfeedingDataLoader:
    """
    Data loader for the bfeed observation table.

    Reads the CSV export of the dataset, decodes the numeric covariate codes
    into labelled categoricals and adds the binned fields used for
    stratified analysis. The source columns are never modified after
    decoding; derived fields are added alongside them.
    """

    def __init__(self, data_file: Optional[Path] = None, data_url: Optional[str] = DATA_URL,
                 verbose: bool = True):
        """
        Initialize the data loader.

        Args:
            data_file: Path to the CSV file. If None, uses default from config.
            data_url: Remote copy read (and cached to data_file) when the file
                is absent. None disables the download.
            verbose: Whether to print loading progress
        """
        self.data_file = Path(data_file) if data_file is not None else DATA_FILE
        self.data_url = data_url
        self.verbose = verbose
        self.raw_data = None
        self.processed_data = None

    def load_data(self) -> pd.DataFrame:
        """
        Load the raw table from the CSV file, falling back to the remote copy.

        Returns:
            DataFrame with raw data
        """
        if self.data_file.exists():
            self.raw_data = pd.read_csv(self.data_file)
            source = self.data_file
        elif self.data_url:
            try:
                self.raw_data = pd.read_csv(self.data_url)
            except OSError as e:
                raise FileNotFoundError(
                    f"Data file not found: {self.data_file} "
                    f"(download from {self.data_url} failed: {e})"
                ) from e
            self.data_file.parent.mkdir(parents=True, exist_ok=True)
            self.raw_data.to_csv(self.data_file, index=False)
            source = self.data_url
        else:
            raise FileNotFoundError(f"Data file not found: {self.data_file}")

        if self.verbose:
            print(f"Loaded data with shape: {self.raw_data.shape} from {source}")
        return self.raw_data

    def preprocess_data(self) -> pd.DataFrame:
        """
        Decode and check the raw data, adding derived fields.

        Returns:
            DataFrame with preprocessed data
        """
        if self.raw_data is None:
            self.load_data()

        self.processed_data = self.preprocess_frame(self.raw_data)
        return self.processed_data

    def preprocess_frame(self, raw: pd.DataFrame) -> pd.DataFrame:
        """
        Decode an in-memory table laid out like the bfeed export.

        Args:
            raw: Table with the ten bfeed fields (coded or labelled)

        Returns:
            DataFrame with decoded and derived fields
        """
        df = raw.copy()

        # Drop row-name columns written by R exports
        drop_cols = [c for c in df.columns
                     if c == 'rownames' or str(c).startswith('Unnamed')]
        df = df.drop(columns=drop_cols)
        df = df.rename(columns=COLUMN_MAPPING)

        self._check_integrity(df)

        df = df[REQUIRED_COLUMNS].copy()
        df = self._convert_data_types(df)
        df = self._add_derived_features(df)
        df = df.reset_index(drop=True)

        self._check_reference_counts(df)

        self.processed_data = df
        if self.verbose:
            print(f"Processed data shape: {df.shape}")

        return df

    def _check_integrity(self, df: pd.DataFrame):
        """Require every field and no missing values."""
        missing_cols = [c for c in REQUIRED_COLUMNS if c not in df.columns]
        if missing_cols:
            raise DataIntegrityError(f"Missing required columns: {missing_cols}")

        missing_stats = df[REQUIRED_COLUMNS].isnull().sum()
        if missing_stats.sum() > 0:
            print("Missing values summary:")
            print(missing_stats[missing_stats > 0])
            raise DataIntegrityError(
                f"Observation table contains {int(missing_stats.sum())} missing values"
            )

    def _convert_data_types(self, df: pd.DataFrame) -> pd.DataFrame:
        """Convert codes to labelled categoricals and numeric types."""

        df[DURATION_COL] = pd.to_numeric(df[DURATION_COL], errors='raise').astype(float)
        df[EVENT_COL] = pd.to_numeric(df[EVENT_COL], errors='raise').astype(int)

        if (df[DURATION_COL] <= 0).any():
            raise DataIntegrityError("Durations must be positive")
        if not df[EVENT_COL].isin([0, 1]).all():
            raise DataIntegrityError("Event indicator must be 0 or 1")

        for col in CATEGORICAL_COVARIATES:
            df[col] = self._decode_categorical(df[col], col)

        for col in CONTINUOUS_COVARIATES:
            df[col] = pd.to_numeric(df[col], errors='raise').astype(float)

        # Two-digit birth years in the KMsurv coding
        df['ybirth'] = np.where(df['ybirth'] < 100, df['ybirth'] + 1900, df['ybirth'])

        return df

    def _decode_categorical(self, series: pd.Series, col: str) -> pd.Categorical:
        """Map numeric codes to labels, keeping already-labelled values."""
        levels = CATEGORY_LEVELS[col]

        if pd.api.types.is_numeric_dtype(series):
            decoded = series.astype(int).map(CODE_MAPPING[col])
        else:
            decoded = series.astype(str).str.strip().str.lower()

        unknown = sorted(set(decoded.dropna().unique()) - set(levels))
        if decoded.isna().any() or unknown:
            raise DataIntegrityError(f"Unrecognised values in '{col}': {unknown or 'unmapped codes'}")

        return pd.Categorical(decoded, categories=levels, ordered=True)

    def _add_derived_features(self, df: pd.DataFrame) -> pd.DataFrame:
        """Add binned covariates for stratified analysis."""

        df['age_group'] = pd.cut(
            df['agemth'],
            bins=AnalysisConfig.AGE_BINS,
            labels=AnalysisConfig.AGE_LABELS,
            right=False
        )
        df['birth_cohort'] = pd.cut(
            df['ybirth'],
            bins=AnalysisConfig.BIRTH_COHORT_BINS,
            labels=AnalysisConfig.BIRTH_COHORT_LABELS,
            right=False
        )
        df['school_group'] = pd.cut(
            df['yschool'],
            bins=AnalysisConfig.SCHOOL_BINS,
            labels=AnalysisConfig.SCHOOL_LABELS,
            right=False
        )

        return df

    def _check_reference_counts(self, df: pd.DataFrame):
        """Warn when the table differs from the published dataset."""
        n_censored = int((df[EVENT_COL] == 0).sum())
        if len(df) != AnalysisConfig.EXPECTED_RECORDS or n_censored != AnalysisConfig.EXPECTED_CENSORED:
            warnings.warn(
                f"Table has {len(df)} records ({n_censored} censored); the reference "
                f"dataset has {AnalysisConfig.EXPECTED_RECORDS} "
                f"({AnalysisConfig.EXPECTED_CENSORED} censored)"
            )

    def get_summary_statistics(self) -> Dict[str, Any]:
        """
        Get summary statistics of the processed data.

        Returns:
            Dictionary with summary statistics
        """
        if self.processed_data is None:
            self.preprocess_data()

        df = self.processed_data
        n_events = int(df[EVENT_COL].sum())

        summary = {
            'total_records': len(df),
            'events': n_events,
            'censored': len(df) - n_events,
            'censored_pct': 100.0 * (len(df) - n_events) / len(df),
            'duration_range': {
                'min': df[DURATION_COL].min(),
                'max': df[DURATION_COL].max(),
                'median': df[DURATION_COL].median()
            },
            'race_distribution': df['race'].value_counts(sort=False).to_dict()
        }

        return summary


def load_bfeed_data(data_file: Optional[Path] = None, verbose: bool = True) -> pd.DataFrame:
    """Load and decode the bfeed table in one call."""
    loader = BreastfeedingDataLoader(data_file=data_file, verbose=verbose)
    return loader.preprocess_data()
