"""
Integration tests for the complete report pipeline on synthetic data
"""

import warnings

import pandas as pd
import pytest

from bfeed_survival.analysis.pipeline import run_complete_analysis
from bfeed_survival.main import main


@pytest.fixture
def pipeline_run(bfeed_data, output_dir):
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", UserWarning)
        return run_complete_analysis(data=bfeed_data, output_dir=output_dir, make_plots=True, verbose=False)


class TestCompleteAnalysis:
    """Test the end-to-end pipeline"""

    def test_report_written(self, pipeline_run, output_dir):
        report = pipeline_run['report_path']
        assert report == output_dir / "bfeed_survival_report.md"
        text = report.read_text(encoding='utf-8')
        assert "## 3. Kaplan-Meier estimation" in text
        assert "## 5. Cox proportional-hazards regression" in text

    def test_tables_exported(self, pipeline_run, output_dir):
        results_dir = output_dir / "results"
        for name in ['categorical_summary', 'survival_checkpoints', 'logrank_tests',
                     'cox_univariate', 'stepwise_history', 'cox_final']:
            assert (results_dir / f"{name}.csv").exists()

    def test_figures(self, pipeline_run, output_dir):
        figures = pipeline_run['figures']
        for key in ['km_overall', 'km_vs_empirical', 'km_by_smoke', 'km_by_race',
                    'spline_agemth', 'spline_yschool']:
            assert figures[key].exists()
            assert figures[key].parent == output_dir / "figures"

    def test_group_columns_include_derived(self, pipeline_run):
        variables = pipeline_run['logrank']['summary']['variable'].tolist()
        assert variables[-3:] == ['age_group', 'birth_cohort', 'school_group']

    def test_stratified_checkpoints_exported(self, pipeline_run, output_dir):
        exported = pd.read_csv(output_dir / "results" / "strata_checkpoints.csv")
        expected = pipeline_run['survival']['stratified_checkpoints']
        assert len(exported) == len(expected)
        assert set(exported['variable']) == set(expected['variable'])

    def test_ph_captions_state_approximation(self, pipeline_run):
        text = pipeline_run['report_path'].read_text(encoding='utf-8')
        assert "ignore their correlation" in text
        assert "sum-of-columns approximation" in text


class TestIdempotence:
    """Re-running reproduces identical tables"""

    def test_identical_tables(self, bfeed_data, tmp_path):
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", UserWarning)
            first = run_complete_analysis(data=bfeed_data, output_dir=tmp_path / "a", make_plots=False, verbose=False)
            second = run_complete_analysis(data=bfeed_data, output_dir=tmp_path / "b", make_plots=False, verbose=False)

        for name in ['survival_checkpoints', 'logrank_tests', 'cox_univariate', 'cox_final']:
            pd.testing.assert_frame_equal(
                pd.read_csv(tmp_path / "a" / "results" / f"{name}.csv"),
                pd.read_csv(tmp_path / "b" / "results" / f"{name}.csv")
            )
        assert first['report_path'].read_text() == second['report_path'].read_text()


class TestCommandLine:
    """Test the argparse entry point"""

    def test_explore(self, raw_bfeed, tmp_path):
        path = tmp_path / "bfeed.csv"
        raw_bfeed.to_csv(path, index=False)
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", UserWarning)
            assert main(['--data-file', str(path), '--explore', '--quiet']) == 0

    def test_full_run_without_plots(self, raw_bfeed, tmp_path):
        path = tmp_path / "bfeed.csv"
        raw_bfeed.to_csv(path, index=False)
        out = tmp_path / "out"
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", UserWarning)
            assert main(['--data-file', str(path), '--output-dir', str(out), '--no-plots', '--quiet']) == 0
        assert (out / "bfeed_survival_report.md").exists()
        assert not (out / "figures").exists()

    def test_failure_exit_code(self, raw_bfeed, tmp_path):
        path = tmp_path / "bfeed.csv"
        raw_bfeed.drop(columns=['race']).to_csv(path, index=False)
        assert main(['--data-file', str(path), '--quiet']) == 1
