"""Tests for environment presets, options validation and config loading."""

import json
from unittest.mock import MagicMock, patch

import httpx
import pytest

from samplify_client import config, errors


@pytest.mark.parametrize(
    ("environment", "api_base_url"),
    [
        ("dev", "https://api.dev.pe.dynata.com/sample/v1"),
        ("uat", "https://api.uat.pe.dynata.com/sample/v1"),
        ("prod", "https://api.researchnow.com/sample/v1"),
    ],
)
def test_named_environments_resolve_to_presets(environment, api_base_url):
    options = config.options_for_environment(environment)

    assert options.api_base_url == api_base_url
    assert options.auth_url.endswith("/auth/v1")
    assert options.gateway_url.endswith("/status/gateway")
    assert options.timeout == config.DEFAULT_TIMEOUT


@pytest.mark.parametrize("environment", ["staging", "", "PROD", "Dev "])
def test_unknown_environment_raises_configuration_error(environment):
    with pytest.raises(errors.ConfigurationError, match="dev/uat/prod"):
        config.options_for_environment(environment)


@patch("samplify_client.dispatch.httpx.Client")
def test_staging_client_is_rejected_before_any_network_call(mock_http_client):
    """Environment selection fails fast; no HTTP client is ever built."""
    from samplify_client import SamplifyClient

    with pytest.raises(errors.ConfigurationError):
        SamplifyClient.from_environment("c", "u", "p", "staging")

    mock_http_client.assert_not_called()


@pytest.mark.parametrize("timeout", [None, 0])
def test_missing_timeout_selects_default(timeout):
    options = config.options_for_environment("uat", timeout)

    assert options.timeout == 20.0


def test_explicit_timeout_is_kept():
    assert config.options_for_environment("prod", 45).timeout == 45


def test_negative_timeout_is_a_configuration_error():
    with pytest.raises(errors.ConfigurationError):
        config.options_for_environment("dev", -1)


def test_presets_are_fresh_values():
    """Each call returns an independent, immutable options object."""
    first = config.uat_options()
    second = config.uat_options(timeout=5)

    assert first.timeout == 20.0
    assert second.timeout == 5
    with pytest.raises(ValueError):
        first.timeout = 1


def test_urls_are_trimmed():
    options = config.ClientOptions(
        api_base_url="  https://x.test/sample/v1/ ",
        auth_url="https://x.test/auth/v1/",
        status_url="https://x.test/status",
        gateway_url="https://x.test/status/gateway",
    )

    assert options.api_base_url == "https://x.test/sample/v1"
    assert options.auth_url == "https://x.test/auth/v1"


def test_transport_override_is_carried_but_not_serialized():
    transport = httpx.MockTransport(MagicMock())
    options = config.options_for_environment("dev", transport=transport)

    assert options.transport is transport
    assert "transport" not in options.model_dump()


# ---------------------------------------------------------------------------
# load_options
# ---------------------------------------------------------------------------


def test_load_options_from_environment_name(tmp_path):
    path = tmp_path / "samplify.json"
    path.write_text(json.dumps({"environment": "prod", "timeout": 30}))

    options = config.load_options(str(path))

    assert options.api_base_url == "https://api.researchnow.com/sample/v1"
    assert options.timeout == 30


def test_load_options_from_explicit_urls(tmp_path):
    path = tmp_path / "samplify.json"
    path.write_text(
        json.dumps(
            {
                "api_base_url": "https://mock.test/sample/v1",
                "auth_url": "https://mock.test/auth/v1",
                "status_url": "https://mock.test/status",
                "gateway_url": "https://mock.test/status/gateway",
            }
        )
    )

    options = config.load_options(str(path))

    assert options.auth_url == "https://mock.test/auth/v1"


def test_load_options_reads_path_from_env_var(tmp_path, monkeypatch):
    path = tmp_path / "samplify.json"
    path.write_text(json.dumps({"environment": "dev"}))
    monkeypatch.setenv(config.CONFIG_ENV_VAR, str(path))

    assert config.load_options().api_base_url.startswith("https://api.dev.")


def test_load_options_without_path_or_env_var(monkeypatch):
    monkeypatch.delenv(config.CONFIG_ENV_VAR, raising=False)

    with pytest.raises(errors.ConfigurationError):
        config.load_options()


def test_load_options_missing_file(tmp_path):
    with pytest.raises(errors.ConfigurationError, match="not found"):
        config.load_options(str(tmp_path / "absent.json"))


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        json.dumps({"environment": "staging"}),
        json.dumps({"api_base_url": "https://x.test"}),
        json.dumps({"environment": "uat", "colour": "blue"}),
    ],
    ids=["invalid-json", "unknown-env", "missing-urls", "unknown-field"],
)
def test_load_options_rejects_bad_files(tmp_path, content):
    path = tmp_path / "samplify.json"
    path.write_text(content)

    with pytest.raises(errors.ConfigurationError):
        config.load_options(str(path))


def test_configure_logging_accepts_unknown_level():
    """An unrecognized level name falls back to INFO instead of failing."""
    config.configure_logging("chatty")
    config.configure_logging("debug")


@patch("samplify_client.config.structlog.configure")
def test_client_leaves_logging_configuration_to_the_application(mock_configure):
    from samplify_client import SamplifyClient

    with SamplifyClient.from_environment("c", "u", "p", "dev"):
        pass
    mock_configure.assert_not_called()

    config.configure_logging("warning")
    mock_configure.assert_called_once()
