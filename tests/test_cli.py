"""Tests for the CLI module."""

import json

import pytest
import yaml

from synthkit.cli import EXIT_INVALID, EXIT_NOT_FOUND, EXIT_OK, EXIT_SYNTH_FAILED, main


@pytest.fixture(autouse=True)
def _isolated_env(clean_env):
    return clean_env


def _write(tmp_path, name, data):
    path = tmp_path / name
    with path.open("w") as f:
        yaml.safe_dump(data, f)
    return path


def test_cli_help():
    """Test CLI help display."""
    with pytest.raises(SystemExit) as exc_info:
        main(["--help"])
    assert exc_info.value.code == 0


def test_cli_missing_file():
    assert main(["nonexistent.yml"]) == EXIT_NOT_FOUND


def test_cli_invalid_document(tmp_path):
    path = tmp_path / "list.yml"
    path.write_text("- a\n- b\n")
    assert main([str(path)]) == EXIT_INVALID


def test_cli_sample_json(sample_path, capsys):
    assert main([str(sample_path)]) == EXIT_OK
    manifest = json.loads(capsys.readouterr().out)
    assert manifest["nodes"]["Producer/Rule"]["roleArn"] == "arn:aws:iam::111111111111:role/Forwarder"


def test_cli_sample_yaml(sample_path, capsys):
    assert main([str(sample_path), "--format", "yaml"]) == EXIT_OK
    manifest = yaml.safe_load(capsys.readouterr().out)
    assert manifest["nodes"]["Consumer/Queue"]["bucketName"] == "consumer-ingest"


def test_cli_cycle_fails(tmp_path, capsys):
    path = _write(tmp_path, "cycle.yml", {
        "stacks": {"Main": {"nodes": {
            "A": {"fields": {"x": "{{ref:Main/B.y}}"}},
            "B": {"fields": {"y": "{{ref:Main/A.x}}"}},
        }}}
    })
    assert main([str(path)]) == EXIT_SYNTH_FAILED
    assert "Cyclic resolution" in capsys.readouterr().out


def test_cli_strict_fails_on_warnings(tmp_path):
    path = _write(tmp_path, "warn.yml", {
        "stacks": {
            "Source": {
                "env": {"account": "111111111111", "region": "us-east-1"},
                "nodes": {"Rule": {"targets": ["Sink/Queue"]}},
            },
            "Sink": {"nodes": {"Queue": {}}},
        }
    })
    assert main([str(path)]) == EXIT_OK
    assert main([str(path), "--strict"]) == EXIT_SYNTH_FAILED


def test_cli_rejects_cross_environment_target_without_account(tmp_path, capsys):
    path = _write(tmp_path, "partial.yml", {
        "stacks": {
            "Source": {
                "env": {"account": "111111111111", "region": "us-east-1"},
                "nodes": {"Rule": {"targets": ["Sink/Queue"]}},
            },
            "Sink": {"env": {"region": "eu-west-1"}, "nodes": {"Queue": {}}},
        }
    })
    assert main([str(path)]) == EXIT_INVALID
    assert "concrete account" in capsys.readouterr().out


def test_cli_uses_config_defaults(tmp_path, capsys):
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    _write(config_dir, "test.yml", {"aws": {"account": "444444444444", "region": "ap-south-1"}})
    doc = _write(tmp_path, "doc.yml", {"stacks": {"Main": {"nodes": {}}}})

    assert main([str(doc), "--env", "test", "--config-dir", str(config_dir)]) == EXIT_OK
    manifest = json.loads(capsys.readouterr().out)
    assert manifest["nodes"]["Main"]["environment"] == {"account": "444444444444", "region": "ap-south-1"}


def test_cli_missing_config(tmp_path, sample_path):
    assert main([str(sample_path), "--env", "nope", "--config-dir", str(tmp_path)]) == EXIT_NOT_FOUND


def test_cli_invalid_config(tmp_path, sample_path):
    _write(tmp_path, "bad.yml", {"logging": {"level": "LOUD"}})
    assert main([str(sample_path), "--env", "bad", "--config-dir", str(tmp_path)]) == EXIT_INVALID


def test_cli_reports_validation_failures(sample_path, mocker, capsys):
    from synthkit.errors import NodeValidationError

    mocker.patch(
        "synthkit.cli.synthesize",
        side_effect=NodeValidationError([("Producer/Rule", "Event rule cannot have more than 5 targets.")]),
    )
    assert main([str(sample_path)]) == EXIT_SYNTH_FAILED
    assert "more than 5 targets" in capsys.readouterr().out
