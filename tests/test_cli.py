"""
Tests for the command-line interface.

Runs the typer application in-process and checks output and exit codes.
"""

import json
import logging

import pytest
from typer.testing import CliRunner

from fsm_hmm import __version__
from fsm_hmm.cli.errors import EXIT_CODES, FsmHmmCLIError, exit_code_for, parse_support
from fsm_hmm.cli.main import app
from fsm_hmm.config import get_config, load_config_file, reset_config
from fsm_hmm.exceptions import InvalidGraphError, ModelTrainingError, PersistenceError, PreconditionViolation
from fsm_hmm.logger import disable_file_logging


@pytest.fixture
def cli_runner():
    """Create CLI runner for testing."""
    return CliRunner()


@pytest.fixture
def trained_models_dir(cli_runner, graph_file, tmp_path):
    """Models directory holding a model named 'example'."""
    models_dir = tmp_path / "models"
    result = cli_runner.invoke(app, [
        "train", str(graph_file), "--states", "2", "--seed", "0",
        "--max-iter", "5", "--models-dir", str(models_dir), "--no-show"
    ])
    assert result.exit_code == 0, result.output
    return models_dir


class TestBasicCommands:
    """Help and version output."""

    def test_version(self, cli_runner):
        result = cli_runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert f"FSM-HMM Version {__version__}" in result.output

    def test_help(self, cli_runner):
        result = cli_runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("analyze", "train", "influence", "models"):
            assert command in result.output


class TestAnalyzeCommand:
    """fsm-hmm analyze."""

    def test_analyze(self, cli_runner, graph_file):
        """The summary reports the structure of the example graph."""
        result = cli_runner.invoke(app, ["analyze", str(graph_file)])
        assert result.exit_code == 0, result.output
        assert "Global period: 6" in result.output
        assert "Maximum distance: 2" in result.output
        assert "Groups: 3" in result.output

    def test_analyze_with_support(self, cli_runner, graph_file):
        """The period only covers groups reachable from the support."""
        result = cli_runner.invoke(app, ["analyze", str(graph_file), "--support", "2:1"])
        assert result.exit_code == 0, result.output
        assert "Global period: 2" in result.output

    def test_dot_file(self, cli_runner, graph_file, tmp_path):
        """--dot writes the graph in DOT format."""
        dot_file = tmp_path / "graph.dot"
        result = cli_runner.invoke(app, ["analyze", str(graph_file), "--dot", str(dot_file)])
        assert result.exit_code == 0, result.output
        dot = dot_file.read_text(encoding='utf-8')
        assert dot.startswith('digraph "example" {')
        assert "\tn3 -> n2;" in dot

    def test_dot_stdout(self, cli_runner, graph_file):
        """--dot - prints the DOT source."""
        result = cli_runner.invoke(app, ["analyze", str(graph_file), "--dot", "-"])
        assert result.exit_code == 0, result.output
        assert 'digraph "example" {' in result.output

    def test_invalid_graph(self, cli_runner, tmp_path):
        """Malformed graphs are argument errors."""
        graph_file = tmp_path / "bad.json"
        graph_file.write_text(json.dumps({"next": [0, 5], "output": [0, 0]}))
        result = cli_runner.invoke(app, ["analyze", str(graph_file)])
        assert result.exit_code == EXIT_CODES["invalid_argument"]
        assert "InvalidGraphError" in result.output

    def test_support_length_mismatch(self, cli_runner, graph_file):
        """The support must list one weight per index."""
        result = cli_runner.invoke(app, ["analyze", str(graph_file), "--support", "1,0"])
        assert result.exit_code == EXIT_CODES["invalid_argument"]

    def test_missing_graph_file(self, cli_runner, tmp_path):
        """Click rejects missing files."""
        result = cli_runner.invoke(app, ["analyze", str(tmp_path / "absent.json")])
        assert result.exit_code != 0


class TestTrainCommand:
    """fsm-hmm train."""

    def test_train_and_save(self, trained_models_dir):
        """Training saves the model under the graph name."""
        assert (trained_models_dir / "example.pkl").exists()
        metadata = json.loads((trained_models_dir / "example_meta.json").read_text())
        assert metadata['model_parameters'] == {'n_states': 2, 'n_outputs': 3}
        assert metadata['graph']['output'] == [1, 1, 2, 0, 0, 2, 2, 1]
        assert metadata['sample_length'] == 9

    def test_train_shows_matrices(self, cli_runner, graph_file):
        """Without --no-show the trained matrices are printed."""
        result = cli_runner.invoke(app, ["train", str(graph_file), "--max-iter", "2", "--seed", "1"])
        assert result.exit_code == 0, result.output
        assert "Transition" in result.output
        assert "Emission" in result.output

    def test_existing_model_needs_force(self, cli_runner, graph_file, trained_models_dir):
        """Saving over an existing model requires --force."""
        args = ["train", str(graph_file), "--max-iter", "1", "--models-dir", str(trained_models_dir), "--no-show"]
        result = cli_runner.invoke(app, args)
        assert result.exit_code == EXIT_CODES["persistence"]

        result = cli_runner.invoke(app, args + ["--force"])
        assert result.exit_code == 0, result.output

    def test_zero_sample_length(self, cli_runner, graph_file):
        """A non-positive sample length is a precondition violation."""
        result = cli_runner.invoke(app, ["train", str(graph_file), "--sample-length", "0", "--no-show"])
        assert result.exit_code == EXIT_CODES["precondition"]


class TestInfluenceCommand:
    """fsm-hmm influence and models."""

    def test_influence_of_every_group(self, cli_runner, graph_file, trained_models_dir):
        """Without --index every group is shown."""
        result = cli_runner.invoke(app, [
            "influence", str(graph_file), "example", "--models-dir", str(trained_models_dir)
        ])
        assert result.exit_code == 0, result.output
        assert "Index 4 (period 3)" in result.output
        assert "Index 5 (period 2)" in result.output
        assert "Steady state" in result.output

    def test_influence_of_tail_index(self, cli_runner, graph_file, trained_models_dir):
        """Indices off the cycles are rejected."""
        result = cli_runner.invoke(app, [
            "influence", str(graph_file), "example", "--models-dir", str(trained_models_dir), "--index", "3"
        ])
        assert result.exit_code == EXIT_CODES["precondition"]

    def test_influence_of_missing_model(self, cli_runner, graph_file, tmp_path):
        """Unknown models are persistence errors."""
        result = cli_runner.invoke(app, [
            "influence", str(graph_file), "absent", "--models-dir", str(tmp_path / "empty")
        ])
        assert result.exit_code == EXIT_CODES["persistence"]

    def test_models_listing(self, cli_runner, trained_models_dir):
        """Saved models are listed."""
        result = cli_runner.invoke(app, ["models", str(trained_models_dir)])
        assert result.exit_code == 0, result.output
        assert "example" in result.output


class TestConfigCommand:
    """fsm-hmm config and the global --config/--log-file options."""

    def test_show_defaults(self, cli_runner):
        result = cli_runner.invoke(app, ["config"])
        assert result.exit_code == 0, result.output
        assert "max_iterations" in result.output
        assert "validation_tolerance" in result.output

    def test_set_and_save(self, cli_runner, tmp_path):
        """Overrides are parsed as JSON and the saved file loads back."""
        config_path = tmp_path / "saved" / "config.json"
        result = cli_runner.invoke(app, [
            "config", "--set", "training.max_iterations=7", "--set", "logging.log_file=run.log",
            "--save", str(config_path)
        ])
        assert result.exit_code == 0, result.output

        saved = json.loads(config_path.read_text())
        assert saved['training']['max_iterations'] == 7
        assert saved['logging']['log_file'] == "run.log"

        reset_config()
        assert get_config('training', 'max_iterations') == 100
        load_config_file(str(config_path))
        assert get_config('training', 'max_iterations') == 7

    def test_saved_config_feeds_training(self, cli_runner, graph_file, tmp_path):
        """A saved configuration passed with --config drives the trainer."""
        config_path = tmp_path / "config.json"
        result = cli_runner.invoke(app, [
            "config", "--set", "training.max_iterations=1", "--save", str(config_path)
        ])
        assert result.exit_code == 0, result.output
        reset_config()

        result = cli_runner.invoke(app, [
            "--config", str(config_path), "train", str(graph_file), "--seed", "0", "--no-show"
        ])
        assert result.exit_code == 0, result.output
        assert "Iterations: 1" in result.output

    def test_invalid_setting(self, cli_runner):
        result = cli_runner.invoke(app, ["config", "--set", "max_iterations"])
        assert result.exit_code == EXIT_CODES["invalid_argument"]
        assert "section.key=value" in result.output

    def test_log_file(self, cli_runner, graph_file, tmp_path):
        """--log-file copies the package log messages to a file."""
        log_path = tmp_path / "fsm.log"
        try:
            result = cli_runner.invoke(app, [
                "--verbose", "--log-file", str(log_path), "analyze", str(graph_file)
            ])
            assert result.exit_code == 0, result.output
        finally:
            disable_file_logging()
        assert "Built transition graph" in log_path.read_text()
        assert not any(
            isinstance(handler, logging.FileHandler)
            for handler in logging.getLogger('fsm_hmm').handlers
        )


class TestErrorHelpers:
    """Exit code mapping and support parsing."""

    def test_exit_codes(self):
        assert exit_code_for(InvalidGraphError("x")) == EXIT_CODES["invalid_argument"]
        assert exit_code_for(PreconditionViolation("x")) == EXIT_CODES["precondition"]
        assert exit_code_for(PersistenceError("x")) == EXIT_CODES["persistence"]
        assert exit_code_for(ModelTrainingError("x")) == EXIT_CODES["training"]
        assert exit_code_for(RuntimeError("x")) == EXIT_CODES["general_error"]
        assert exit_code_for(FsmHmmCLIError("x", exit_code=7)) == 7

    def test_parse_support_default(self):
        """No support means uniform weights."""
        assert parse_support(None, 4) == [0.25] * 4
        assert parse_support(None, 0) == []

    def test_parse_support_list(self):
        assert parse_support("0, 1, 0.5", 3) == [0.0, 1.0, 0.5]

    def test_parse_support_pairs(self):
        assert parse_support("2:1,5:0.5", 6) == [0.0, 0.0, 1.0, 0.0, 0.0, 0.5]

    def test_parse_support_errors(self):
        with pytest.raises(FsmHmmCLIError) as exc_info:
            parse_support("a,b", 2)
        assert exc_info.value.suggestions

        with pytest.raises(FsmHmmCLIError, match="outside"):
            parse_support("9:1", 3)
