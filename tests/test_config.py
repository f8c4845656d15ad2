"""
Tests for config file loading and CLI precedence.
"""

import argparse
import json
from pathlib import Path

import pytest
import yaml

from graftexpr.cli import analyze
from graftexpr.cli._validators import _fold_count, _positive_int, _probability
from graftexpr.cli.config import config_from_args, load_config, merge_config_with_args
from graftexpr.config import AnalysisConfig, config_from_dict


def _parse(argv):
    parser = argparse.ArgumentParser(prog="graftexpr")
    subparsers = parser.add_subparsers(dest="command")
    analyze.register_parser(subparsers)
    return parser.parse_args(argv)


class TestLoadConfig:
    """YAML and JSON config files."""

    def test_yaml(self, tmp_path):
        path = tmp_path / "analysis.yaml"
        path.write_text(yaml.safe_dump({"testing": {"q_threshold": 0.05}, "model": {"seed": 9}}))
        config = load_config(path)
        assert config["testing"]["q_threshold"] == 0.05
        assert config["model"]["seed"] == 9

    def test_json(self, tmp_path):
        path = tmp_path / "analysis.json"
        path.write_text(json.dumps({"explore": {"n_components": 4}}))
        assert load_config(path) == {"explore": {"n_components": 4}}

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert load_config(path) == {}

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "analysis.toml"
        path.write_text("seed = 1")
        with pytest.raises(ValueError, match="Unsupported config format"):
            load_config(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("testing: [unclosed")
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_config(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="mapping"):
            load_config(path)


class TestConfigFromDict:
    """Dataclass tree construction."""

    def test_defaults(self):
        config = config_from_dict({})
        assert config == AnalysisConfig()
        assert config.testing.q_threshold == 0.10
        assert config.model.n_folds == 4
        assert config.model.train_fraction == 0.7

    def test_partial_sections(self):
        config = config_from_dict({"input": "data.csv", "testing": {"nulltype": "cme"}})
        assert config.input == Path("data.csv")
        assert config.testing.nulltype == "cme"
        assert config.testing.bins == 120

    def test_unknown_section(self):
        with pytest.raises(ValueError, match="Unknown config keys"):
            config_from_dict({"plotting": {}})

    def test_unknown_key(self):
        with pytest.raises(ValueError, match="model"):
            config_from_dict({"model": {"alpha": 0.5}})

    def test_to_dict_is_json_serializable(self):
        config = config_from_dict({"input": "data.csv", "output": "out"})
        data = config.to_dict()
        assert data["input"] == "data.csv"
        json.dumps(data)


class TestMergeConfigWithArgs:
    """Explicit CLI flag > config file > default."""

    def test_config_overrides_default(self):
        argv = ["run", "--input", "data.csv"]
        args = merge_config_with_args({"testing": {"q_threshold": 0.05}}, _parse(argv), argv[1:])
        assert args.q_threshold == 0.05

    def test_explicit_flag_overrides_config(self):
        argv = ["run", "--q-threshold", "0.2"]
        args = merge_config_with_args({"testing": {"q_threshold": 0.05}}, _parse(argv), argv[1:])
        assert args.q_threshold == 0.2

    def test_equals_syntax_counts_as_explicit(self):
        argv = ["run", "--seed=3"]
        args = merge_config_with_args({"model": {"seed": 11}}, _parse(argv), argv[1:])
        assert args.seed == 3

    def test_short_flags_count_as_explicit(self):
        argv = ["run", "-o", "cli_out"]
        args = merge_config_with_args({"output": "config_out"}, _parse(argv), argv[1:])
        assert args.output == Path("cli_out")

    def test_paths_from_config(self):
        argv = ["run"]
        args = merge_config_with_args({"input": "data.csv"}, _parse(argv), argv[1:])
        assert args.input == Path("data.csv")

    def test_config_from_args(self):
        args = _parse(["run", "-i", "d.csv", "-o", "out", "--nulltype", "theoretical", "--n-folds", "5"])
        config = config_from_args(args)
        assert config.input == Path("d.csv")
        assert config.testing.nulltype == "theoretical"
        assert config.model.n_folds == 5
        assert config.explore.n_components == 10

    def test_stage_command_keeps_other_defaults(self):
        config = config_from_args(_parse(["differential", "-i", "d.csv"]))
        assert config.model.seed == 0
        assert config.testing.fdr_method == "BH"


class TestValidators:
    """argparse bounds checks."""

    def test_positive_int(self):
        assert _positive_int("3") == 3
        with pytest.raises(argparse.ArgumentTypeError):
            _positive_int("0")

    def test_probability(self):
        assert _probability("0.1") == 0.1
        with pytest.raises(argparse.ArgumentTypeError):
            _probability("1.0")

    def test_fold_count(self):
        with pytest.raises(argparse.ArgumentTypeError):
            _fold_count("1")

    def test_parser_rejects_bad_threshold(self):
        with pytest.raises(SystemExit):
            _parse(["run", "--q-threshold", "2"])
