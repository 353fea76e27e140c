"""Tests for the diffcoex command-line interface."""

import json

import numpy as np
import pandas as pd
import pytest

from diffcoex.cli import main
from diffcoex.io.loaders import load_expression_csv


class TestMain:
    """Tests for the dispatcher."""

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "diffcoex" in capsys.readouterr().out

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main(["--version"])
        assert excinfo.value.code == 0


class TestPreprocessCommand:
    """Tests for 'diffcoex preprocess'."""

    def test_writes_both_conditions(self, tmp_path, expression_csv):
        out_a = tmp_path / "a.csv"
        out_b = tmp_path / "b.csv"
        code = main([
            "preprocess", "--input", str(expression_csv),
            "--condition-a", "1-2", "--condition-b", "3-4",
            "--output-a", str(out_a), "--output-b", str(out_b),
        ])

        assert code == 0
        a = load_expression_csv(out_a, header=False)
        b = load_expression_csv(out_b, header=False)
        assert a.n_samples == 2 and b.n_samples == 2
        assert list(a.gene_ids) == ["p1", "p2", "p3"]
        # Each sample is mean-centred after normalisation
        np.testing.assert_allclose(a.data.mean(axis=1), 0.0, atol=1e-12)

    def test_provenance_records_transforms(self, tmp_path, expression_csv):
        provenance = tmp_path / "provenance.json"
        code = main([
            "preprocess", "--input", str(expression_csv),
            "--condition-a", "1-2", "--condition-b", "3-4",
            "--output-a", str(tmp_path / "a.csv"), "--output-b", str(tmp_path / "b.csv"),
            "--provenance", str(provenance),
        ])

        assert code == 0
        record = json.loads(provenance.read_text())
        assert [step["name"] for step in record["transforms"]] == [
            "Log2Transform", "QuantileNormalization",
        ]
        assert all("timestamp" in step for step in record["transforms"])
        assert record["condition_a"] == [1, 2]
        assert record["condition_b"] == [3, 4]
        assert record["n_genes"] == 3

    def test_overlapping_conditions_fail(self, tmp_path, expression_csv, capsys):
        code = main([
            "preprocess", "--input", str(expression_csv),
            "--condition-a", "1-3", "--condition-b", "3-4",
            "--output-a", str(tmp_path / "a.csv"), "--output-b", str(tmp_path / "b.csv"),
        ])
        assert code == 1
        assert "ERROR" in capsys.readouterr().out

    def test_missing_input_fails(self, tmp_path):
        code = main([
            "preprocess", "--input", str(tmp_path / "absent.csv"),
            "--condition-a", "1", "--condition-b", "2",
            "--output-a", str(tmp_path / "a.csv"), "--output-b", str(tmp_path / "b.csv"),
        ])
        assert code == 1


class TestDispersionCommand:
    """Tests for 'diffcoex dispersion'."""

    def test_writes_report(self, tmp_path, condition_files):
        path_a, path_b, modules = condition_files
        base = tmp_path / "results" / "run"
        code = main([
            "dispersion", "--condition-a", str(path_a), "--condition-b", str(path_b),
            "--modules", str(modules), "--output", str(base),
            "--permutations", "20", "--seed", "5", "--fdr", "BH",
        ])

        assert code == 0
        for part in ("dispersion", "counts", "pvalues", "qvalues"):
            assert (tmp_path / "results" / f"run.{part}.csv").exists()
        summary = json.loads((tmp_path / "results" / "run.summary.json").read_text())
        assert summary["n_permutations"] == 20
        assert summary["seed"] == 5

    def test_config_supplies_inputs(self, tmp_path, condition_files):
        path_a, path_b, modules = condition_files
        config = tmp_path / "run.yaml"
        config.write_text(
            f"condition_a: {path_a}\n"
            f"condition_b: {path_b}\n"
            f"modules: {modules}\n"
            f"output: {tmp_path / 'cfg'}\n"
            "permutation:\n  n_permutations: 7\n  seed: 1\n"
        )
        code = main(["dispersion", "--config", str(config), "--permutations", "9"])

        assert code == 0
        summary = json.loads((tmp_path / "cfg.summary.json").read_text())
        assert summary["n_permutations"] == 9
        assert summary["seed"] == 1

    def test_missing_required_input(self, tmp_path, condition_files, capsys):
        path_a, _, modules = condition_files
        code = main([
            "dispersion", "--condition-a", str(path_a), "--modules", str(modules),
            "--output", str(tmp_path / "run"),
        ])
        assert code == 1
        assert "--condition-b is required" in capsys.readouterr().out

    def test_unknown_module_label(self, tmp_path, condition_files):
        path_a, path_b, modules = condition_files
        code = main([
            "dispersion", "--condition-a", str(path_a), "--condition-b", str(path_b),
            "--modules", str(modules), "--output", str(tmp_path / "run"),
            "--permutations", "5", "--module-labels", "purple",
        ])
        assert code == 1

    def test_invalid_permutation_count_rejected(self, condition_files):
        path_a, path_b, modules = condition_files
        with pytest.raises(SystemExit):
            main([
                "dispersion", "--condition-a", str(path_a), "--condition-b", str(path_b),
                "--modules", str(modules), "--output", "x", "--permutations", "0",
            ])


class TestModuleStatsCommand:
    """Tests for 'diffcoex module-stats'."""

    def test_writes_table(self, tmp_path, condition_files):
        path_a, path_b, modules = condition_files
        out = tmp_path / "stats.csv"
        code = main([
            "module-stats", "--condition-x", str(path_a), "--condition-y", str(path_b),
            "--modules", str(modules), "--output", str(out), "--equalize-samples",
        ])

        assert code == 0
        table = pd.read_csv(out)
        assert sorted(table["module"]) == ["blue", "green", "red"]
        assert set(table.columns) >= {"module", "size", "t_statistic", "p_value"}

    def test_truncate_and_equalize_exclusive(self, tmp_path, condition_files):
        path_a, path_b, modules = condition_files
        with pytest.raises(SystemExit):
            main([
                "module-stats", "--condition-x", str(path_a), "--condition-y", str(path_b),
                "--modules", str(modules), "--output", str(tmp_path / "s.csv"),
                "--truncate", "5", "--equalize-samples",
            ])
