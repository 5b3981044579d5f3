"""
Tests for the command-line interface and configuration merging.
"""

import json
from argparse import Namespace
from pathlib import Path

import pandas as pd
import pytest
import yaml

from cooccurnet.cli import main
from cooccurnet.cli.config import (
    load_config,
    merge_config_with_args,
    validate_config,
)


class TestLoadConfig:

    def test_yaml(self, tmp_path):
        path = tmp_path / "run.yaml"
        path.write_text(yaml.safe_dump({"network": {"min_coefficient": 0.7}}))
        assert load_config(path) == {"network": {"min_coefficient": 0.7}}

    def test_json(self, tmp_path):
        path = tmp_path / "run.json"
        path.write_text(json.dumps({"workers": 2}))
        assert load_config(path) == {"workers": 2}

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "run.yml"
        path.write_text("")
        assert load_config(path) == {}

    def test_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "run.toml"
        path.write_text("x = 1")
        with pytest.raises(ValueError, match="Unsupported"):
            load_config(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "run.yaml"
        path.write_text("network: [unclosed")
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_config(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "run.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError, match="mapping"):
            load_config(path)


class TestValidateConfig:

    @pytest.mark.parametrize("config, message", [
        ({"network": {"method": "pearson"}}, "method"),
        ({"network": {"zero_total": "keep"}}, "zero_total"),
        ({"network": {"min_coefficient": 1.2}}, "min_coefficient"),
        ({"network": {"alpha": 0}}, "alpha"),
        ({"network": {"min_samples": 2}}, "min_samples"),
        ({"filter": {"min_prevalence": -0.1}}, "min_prevalence"),
        ({"workers": 0}, "workers"),
        ({"network": {"seed": "abc"}}, "seed"),
        ({"network": {"seed": 1.5}}, "seed"),
        ({"network": {"weighted_modularity": "yes"}}, "weighted_modularity"),
    ])
    def test_rejects(self, config, message):
        with pytest.raises(ValueError, match=message):
            validate_config(config)

    def test_accepts_valid(self):
        validate_config({
            "network": {"method": "spearman", "min_coefficient": 0.6, "alpha": 0.05,
                        "zero_total": "zero", "min_samples": 5, "seed": 7,
                        "weighted_modularity": False},
            "filter": {"min_count": 1, "min_prevalence": 0.2},
            "workers": 2,
        })


class TestMergeConfig:

    def _defaults(self):
        return Namespace(
            input=None, metadata=None, output=Path("results"), category_column=None,
            categories=None, workers=1, min_coefficient=0.6, alpha=0.05, zero_total="drop",
            min_samples=3, seed=None, weighted_modularity=True, min_count=0.0,
            min_prevalence=0.0,
        )

    def test_config_fills_defaults(self):
        config = {"input": "counts.csv", "network": {"alpha": 0.01}, "filter": {"min_count": 2}}
        merged = merge_config_with_args(config, self._defaults(), [])
        assert merged.input == Path("counts.csv")
        assert merged.alpha == 0.01
        assert merged.min_count == 2

    def test_explicit_cli_wins(self):
        config = {"network": {"min_coefficient": 0.7, "alpha": 0.01}}
        args = self._defaults()
        args.min_coefficient = 0.8
        merged = merge_config_with_args(config, args, ["--min-coefficient", "0.8"])
        assert merged.min_coefficient == 0.8
        assert merged.alpha == 0.01

    def test_equals_form_and_short_flags(self):
        config = {"output": "from_config", "category_column": "site"}
        args = self._defaults()
        args.output = Path("cli_out")
        args.category_column = "biome"
        merged = merge_config_with_args(config, args, ["--output=cli_out", "-c", "biome"])
        assert merged.output == Path("cli_out")
        assert merged.category_column == "biome"

    def test_original_namespace_untouched(self):
        args = self._defaults()
        merge_config_with_args({"workers": 4}, args, [])
        assert args.workers == 1


class TestCompareCommand:

    def test_end_to_end(self, synthetic_matrix, write_inputs, tmp_path):
        counts_path, metadata_path = write_inputs(synthetic_matrix)
        output = tmp_path / "results"
        exit_code = main([
            "compare",
            "--input", str(counts_path),
            "--metadata", str(metadata_path),
            "--category-column", "biome",
            "--output", str(output),
            "--seed", "1",
        ])
        assert exit_code == 0

        topology = pd.read_csv(output / "topology.csv")
        assert set(topology["category"]) == {"Gut", "Marine", "Soil"}
        assert (topology["status"] == "ok").all()
        assert sorted(p.name for p in (output / "edges").iterdir()) == [
            "Gut.csv", "Marine.csv", "Soil.csv"
        ]
        run_config = json.loads((output / "run_config.json").read_text())
        assert run_config["parameters"]["seed"] == 1
        assert run_config["organisms"] == synthetic_matrix.n_organisms

    def test_config_file_with_override(self, synthetic_matrix, write_inputs, tmp_path):
        counts_path, metadata_path = write_inputs(synthetic_matrix)
        output = tmp_path / "results"
        config_path = tmp_path / "run.yaml"
        config_path.write_text(yaml.safe_dump({
            "input": str(counts_path),
            "metadata": str(metadata_path),
            "category_column": "biome",
            "output": str(output),
            "network": {"min_coefficient": 0.7, "alpha": 0.01},
            "categories": ["Soil"],
        }))

        exit_code = main(["compare", "--config", str(config_path), "--alpha", "0.02"])
        assert exit_code == 0

        run_config = json.loads((output / "run_config.json").read_text())
        assert run_config["parameters"]["min_coefficient"] == 0.7
        assert run_config["parameters"]["alpha"] == 0.02
        assert run_config["categories"] == ["Soil"]

    def test_prefilter(self, synthetic_matrix, write_inputs, tmp_path):
        counts_path, metadata_path = write_inputs(synthetic_matrix)
        output = tmp_path / "results"
        exit_code = main([
            "compare", "-i", str(counts_path), "-m", str(metadata_path), "-c", "biome",
            "-o", str(output), "--min-count", "1", "--min-prevalence", "0.5",
        ])
        assert exit_code == 0
        run_config = json.loads((output / "run_config.json").read_text())
        assert run_config["prefilter"] == {"min_count": 1.0, "min_prevalence": 0.5}

    def test_missing_required(self, capsys):
        assert main(["compare", "--category-column", "biome"]) == 1
        assert "--input is required" in capsys.readouterr().out

    def test_missing_input_file(self, tmp_path, capsys):
        metadata = tmp_path / "samples.csv"
        metadata.write_text(",biome\nS1,Soil\n")
        exit_code = main([
            "compare", "--input", str(tmp_path / "absent.csv"), "--metadata", str(metadata),
            "--category-column", "biome", "--output", str(tmp_path / "out"),
        ])
        assert exit_code == 1
        assert "not found" in capsys.readouterr().out

    def test_unknown_category_column(self, synthetic_matrix, write_inputs, tmp_path):
        counts_path, metadata_path = write_inputs(synthetic_matrix)
        exit_code = main([
            "compare", "--input", str(counts_path), "--metadata", str(metadata_path),
            "--category-column", "depth", "--output", str(tmp_path / "out"),
        ])
        assert exit_code == 1

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "compare" in capsys.readouterr().out

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert "0.1.0" in capsys.readouterr().out
