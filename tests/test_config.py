#!/usr/bin/env python3
"""
KUBESHARD SETTINGS TESTS
------------------------
"""

import pytest

from kubeshard.config.settings import ConfigError, OperatorConfig, load_config


def write(tmp_path, text):
    path = tmp_path / "operator.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_without_a_file():
    config = load_config(None)

    assert config.tablet_available_seconds == 30
    assert config.topo_timeout == pytest.approx(6.0)


def test_file_overrides_and_coerces(tmp_path):
    config = load_config(write(tmp_path, "tablet_available_seconds: '45'\nreconcile_timeout: 20\nlog_level: debug\n"))

    assert config.tablet_available_seconds == 45
    assert config.reconcile_timeout == 20.0
    assert config.topo_timeout == pytest.approx(2.0)


def test_empty_file_means_defaults(tmp_path):
    assert load_config(write(tmp_path, "")) == OperatorConfig()


@pytest.mark.parametrize("text, message", [
    ("unknown_knob: 1\n", "unknown configuration keys"),
    ("topo_timeout_fraction: 1.5\n", "topo_timeout_fraction"),
    ("reconcile_timeout: 0\n", "reconcile_timeout"),
    ("tablet_available_seconds: soon\n", "invalid value"),
    ("tablet_available_seconds: true\n", "invalid value"),
    ("reconcile_timeout: false\n", "invalid value"),
    ("log_level: LOUD\n", "log_level"),
    ("- just\n- a list\n", "mapping"),
    ("key: [unclosed\n", "Failed to load"),
])
def test_bad_configuration_is_rejected(tmp_path, text, message):
    with pytest.raises(ConfigError, match=message):
        load_config(write(tmp_path, text))


def test_missing_file_is_a_config_error(tmp_path):
    with pytest.raises(ConfigError):
        load_config(tmp_path / "absent.yaml")
