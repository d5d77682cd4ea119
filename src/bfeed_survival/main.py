"""
Main entry point for the breastfeeding survival analysis.

This script provides a command-line interface that loads the bfeed data,
runs the analysis pipeline and writes the Markdown report.
"""

import argparse
import sys
from pathlib import Path

from .config.settings import OUTPUT_DIR
from .data import BreastfeedingDataLoader
from .analysis import run_complete_analysis, summarize_categorical, summarize_continuous


def run_data_exploration(data_file=None, verbose=True):
    """Load the data and print summary statistics."""
    loader = BreastfeedingDataLoader(data_file=data_file, verbose=verbose)
    data = loader.preprocess_data()

    if not verbose:
        return data

    print("=== Breastfeeding Data Exploration ===")
    summary = loader.get_summary_statistics()
    print("\nData Summary:")
    for key, value in summary.items():
        print(f"{key}: {value}")

    print("\nCategorical covariates:")
    print(summarize_categorical(data).round(1).to_string(index=False))
    print("\nContinuous variables:")
    print(summarize_continuous(data).round(2).to_string(index=False))

    return data


def main(argv=None):
    """Main function."""
    parser = argparse.ArgumentParser(description='Breastfeeding Duration Survival Analysis')
    parser.add_argument(
        '--data-file',
        type=Path,
        help='Path to bfeed.csv (default: data/bfeed.csv, downloaded when missing)'
    )
    parser.add_argument(
        '--output-dir',
        type=Path,
        default=OUTPUT_DIR,
        help='Directory for figures, tables and the report'
    )
    parser.add_argument(
        '--explore',
        action='store_true',
        help='Only load and describe the data'
    )
    parser.add_argument(
        '--no-plots',
        action='store_true',
        help='Skip drawing figures'
    )
    parser.add_argument(
        '--quiet',
        action='store_true',
        help='Suppress progress output'
    )

    args = parser.parse_args(argv)
    verbose = not args.quiet

    try:
        data = run_data_exploration(args.data_file, verbose=verbose)

        if args.explore:
            return 0

        results = run_complete_analysis(
            data=data,
            output_dir=args.output_dir,
            make_plots=not args.no_plots,
            verbose=verbose
        )

        if verbose:
            print(f"\nAnalysis completed successfully! Report: {results['report_path']}")

    except Exception as e:
        print(f"❌ Error during analysis: {str(e)}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
