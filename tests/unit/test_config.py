"""Unit tests for pipeline configuration loading."""

import pytest

from quiver.utils.config import load_pipeline_config


@pytest.mark.unit
def test_packaged_defaults(monkeypatch):
    monkeypatch.delenv("QUIVER_CONFIG_PATH", raising=False)
    config = load_pipeline_config()

    assert config["backoff"] == {"base_delay_s": 1.0, "max_delay_s": 10.0}
    assert config["session"]["error_log_size"] == 50
    assert set(config["recovery_strategies"]) == {
        "parsing_failure",
        "authentication_error",
        "file_format_error",
        "analysis_timeout",
        "network_error",
        "validation_error",
    }


@pytest.mark.unit
def test_override_merges_over_defaults(tmp_path):
    override = tmp_path / "override.yaml"
    override.write_text("backoff:\n  max_delay_s: 30.0\n")

    config = load_pipeline_config(override)

    assert config["backoff"]["max_delay_s"] == 30.0
    assert config["backoff"]["base_delay_s"] == 1.0
    assert config["stages"]["weights"]["PARSE_RESUME"] == 15


@pytest.mark.unit
def test_override_from_environment(tmp_path, monkeypatch):
    override = tmp_path / "override.yaml"
    override.write_text("session:\n  visible_errors: 3\n")
    monkeypatch.setenv("QUIVER_CONFIG_PATH", str(override))

    assert load_pipeline_config()["session"]["visible_errors"] == 3


@pytest.mark.unit
def test_missing_override_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_pipeline_config(tmp_path / "absent.yaml")
