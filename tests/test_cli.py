"""
Tests for the graftexpr command-line interface.
"""

import json

import pandas as pd
import pytest
import yaml

from graftexpr.cli import main


FAST_ARGS = ["--max-components", "6", "--n-lambdas", "10"]


class TestRunCommand:
    """Full analysis from the command line."""

    def test_writes_every_output(self, expression_csv, tmp_path, capsys):
        out = tmp_path / "results"
        code = main(["run", "-i", str(expression_csv), "-o", str(out), *FAST_ARGS])

        assert code == 0
        for name in (
            "variance_explained.csv",
            "sample_scores.csv",
            "discriminant_scores.csv",
            "top_loadings.csv",
            "gene_tests.csv",
            "significant_genes.csv",
            "model_comparison.csv",
            "roc_pcr.csv",
            "roc_ridge.csv",
            "roc_lasso.csv",
            "summary.json",
        ):
            assert (out / name).exists(), name

        summary = json.loads((out / "summary.json").read_text())
        assert summary['command'] == "run"
        assert summary['data']['n_genes'] == 200
        assert summary['modeling']['best_model'] in {"pcr", "ridge", "lasso"}
        assert "Results" in capsys.readouterr().out

    def test_gene_table_contents(self, expression_csv, tmp_path):
        out = tmp_path / "results"
        assert main(["run", "-i", str(expression_csv), "-o", str(out), *FAST_ARGS]) == 0

        genes = pd.read_csv(out / "gene_tests.csv")
        assert len(genes) == 200
        assert {"gene_id", "statistic", "p_value", "q_value", "z", "local_fdr"} <= set(genes.columns)

        comparison = pd.read_csv(out / "model_comparison.csv")
        assert comparison['best'].sum() == 1


class TestStageCommands:
    """Single-stage commands write only their own tables."""

    def test_explore(self, expression_csv, tmp_path):
        out = tmp_path / "explore"
        assert main(["explore", "-i", str(expression_csv), "-o", str(out), "--n-components", "4"]) == 0

        scores = pd.read_csv(out / "sample_scores.csv", index_col=0)
        assert list(scores.columns) == ["label", "PC1", "PC2", "PC3", "PC4"]
        assert not (out / "gene_tests.csv").exists()
        summary = json.loads((out / "summary.json").read_text())
        assert "exploration" in summary and "modeling" not in summary

    def test_differential_from_config(self, expression_csv, tmp_path):
        out = tmp_path / "differential"
        config = tmp_path / "analysis.yaml"
        config.write_text(yaml.safe_dump({
            "input": str(expression_csv),
            "output": str(out),
            "testing": {"q_threshold": 0.05, "nulltype": "theoretical"},
        }))

        assert main(["differential", "-c", str(config)]) == 0
        summary = json.loads((out / "summary.json").read_text())
        assert summary['config']['testing']['q_threshold'] == 0.05
        assert summary['testing']['nulltype'] == "theoretical"
        assert not (out / "model_comparison.csv").exists()

    def test_numeric_positive_label_from_config(self, expression_csv, tmp_path):
        out = tmp_path / "differential"
        config = tmp_path / "analysis.yaml"
        config.write_text(yaml.safe_dump({
            "input": str(expression_csv),
            "output": str(out),
            "loader": {"positive_label": 1},
            "testing": {"nulltype": "theoretical"},
        }))

        assert main(["differential", "-c", str(config)]) == 0
        summary = json.loads((out / "summary.json").read_text())
        assert summary['data']['n_positive'] == 30

    def test_predict(self, expression_csv, tmp_path):
        out = tmp_path / "predict"
        assert main(["predict", "-i", str(expression_csv), "-o", str(out), *FAST_ARGS]) == 0
        assert (out / "roc_lasso.csv").exists()
        roc = pd.read_csv(out / "roc_lasso.csv")
        assert roc['tpr'].iloc[-1] == 1.0


class TestErrors:
    """Input and usage errors return exit code 1."""

    def test_missing_input_file(self, tmp_path, capsys):
        code = main(["run", "-i", str(tmp_path / "absent.csv"), "-o", str(tmp_path / "out")])
        assert code == 1
        assert "Error:" in capsys.readouterr().out

    def test_input_required(self, tmp_path, capsys):
        assert main(["explore", "-o", str(tmp_path / "out")]) == 1
        assert "--input is required" in capsys.readouterr().out

    def test_malformed_table(self, tmp_path, capsys):
        path = tmp_path / "bad.csv"
        path.write_text("ID,Y,A\nP1,1,x\nP2,0,2.0\n")
        assert main(["differential", "-i", str(path), "-o", str(tmp_path / "out")]) == 1
        assert "non-numeric" in capsys.readouterr().out

    def test_bad_config(self, tmp_path, capsys):
        config = tmp_path / "analysis.yaml"
        config.write_text(yaml.safe_dump({"model": {"learning_rate": 0.1}}))
        assert main(["run", "-c", str(config)]) == 1
        assert "Config file error" in capsys.readouterr().out

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "graftexpr" in capsys.readouterr().out

    def test_version(self):
        with pytest.raises(SystemExit) as excinfo:
            main(["--version"])
        assert excinfo.value.code == 0
