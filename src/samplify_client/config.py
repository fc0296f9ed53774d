"""Client configuration.

Endpoint presets for the dev, UAT and production environments, the options
model consumed by :class:`~samplify_client.client.SamplifyClient`, a JSON
config file loader and the structlog setup.
"""

import json
import logging
import os
import pathlib
from typing import Any

import httpx
import pydantic
import structlog

from .errors import ConfigurationError

CONFIG_ENV_VAR = "SAMPLIFY_CLIENT_CONFIG_PATH"

DEFAULT_TIMEOUT = 20.0

logger = structlog.get_logger(__name__)


class ClientOptions(pydantic.BaseModel):
    """Endpoints, timeout and transport used by a client."""

    model_config = pydantic.ConfigDict(
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
        arbitrary_types_allowed=True,
    )

    api_base_url: str = pydantic.Field(description="Base URL of the sample API")
    auth_url: str = pydantic.Field(description="Base URL of the auth service")
    status_url: str = pydantic.Field(description="Base URL of the status service")
    gateway_url: str = pydantic.Field(description="Gateway health check URL")
    timeout: float = pydantic.Field(
        DEFAULT_TIMEOUT,
        description="Request timeout in seconds",
        gt=0,
    )
    transport: httpx.BaseTransport | None = pydantic.Field(
        None,
        description="httpx transport performing the exchanges",
        exclude=True,
    )

    @pydantic.field_validator("api_base_url", "auth_url", "status_url", "gateway_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        if not value:
            msg = "URL cannot be empty"
            raise ValueError(msg)
        return value.rstrip("/")


def _preset(host: str, timeout: float | None, **overrides: Any) -> ClientOptions:
    fields = {
        "api_base_url": f"{host}/sample/v1",
        "auth_url": f"{host}/auth/v1",
        "status_url": f"{host}/status",
        "gateway_url": f"{host}/status/gateway",
        "timeout": timeout or DEFAULT_TIMEOUT,
    }
    fields.update(overrides)
    return ClientOptions(**fields)


def dev_options(timeout: float | None = None, **overrides: Any) -> ClientOptions:
    """Options for the development environment."""
    return _preset("https://api.dev.pe.dynata.com", timeout, **overrides)


def uat_options(timeout: float | None = None, **overrides: Any) -> ClientOptions:
    """Options for the UAT environment, the default for new clients."""
    return _preset("https://api.uat.pe.dynata.com", timeout, **overrides)


def prod_options(timeout: float | None = None, **overrides: Any) -> ClientOptions:
    """Options for production."""
    return _preset("https://api.researchnow.com", timeout, **overrides)


ENVIRONMENTS = {
    "dev": dev_options,
    "uat": uat_options,
    "prod": prod_options,
}


def options_for_environment(
    environment: str,
    timeout: float | None = None,
    **overrides: Any,
) -> ClientOptions:
    """Return the preset options for a named environment.

    Args:
        environment: One of "dev", "uat" or "prod".
        timeout: Request timeout in seconds; None or 0 selects the default.
        **overrides: Extra ClientOptions fields, e.g. ``transport``.

    Raises:
        ConfigurationError: If the environment name is not recognized or
            the resulting options are invalid.
    """
    factory = ENVIRONMENTS.get(environment)
    if factory is None:
        msg = f"one of dev/uat/prod only are allowed, got {environment!r}"
        raise ConfigurationError(msg)
    try:
        return factory(timeout, **overrides)
    except pydantic.ValidationError as exc:
        msg = f"Invalid options for environment {environment!r}: {exc}"
        raise ConfigurationError(msg) from exc


def load_options(config_path: str | None = None) -> ClientOptions:
    """Load client options from a JSON file.

    The file holds either an ``environment`` name (with an optional
    ``timeout``) or the explicit URL fields of :class:`ClientOptions`. The
    path defaults to the ``SAMPLIFY_CLIENT_CONFIG_PATH`` environment
    variable.

    Raises:
        ConfigurationError: If no path is given, the file is missing or its
            contents are invalid.
    """
    resolved_path = config_path or os.environ.get(CONFIG_ENV_VAR)
    if not resolved_path:
        msg = f"No config path given and {CONFIG_ENV_VAR} is not set"
        raise ConfigurationError(msg)

    path = pathlib.Path(resolved_path)
    if not path.exists():
        msg = f"Configuration file not found: {resolved_path}"
        raise ConfigurationError(msg)

    try:
        with path.open("r") as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        msg = f"Configuration file is not valid JSON: {resolved_path}"
        raise ConfigurationError(msg) from exc

    if "environment" in data:
        environment = data.pop("environment")
        timeout = data.pop("timeout", None)
        options = options_for_environment(environment, timeout, **data)
    else:
        try:
            options = ClientOptions(**data)
        except pydantic.ValidationError as exc:
            msg = f"Invalid configuration in {resolved_path}: {exc}"
            raise ConfigurationError(msg) from exc

    logger.info("Loaded client options", path=resolved_path, api=options.api_base_url)
    return options


def configure_logging(log_level_name: str) -> None:
    """Configure structlog for logfmt output.

    Opt-in for applications and scripts embedding the client. This replaces
    the process-wide structlog configuration, so the client never calls it
    itself; without it the client logs through whatever structlog setup the
    application already has.

    Args:
        log_level_name: Level name such as "debug" or "INFO". Unknown names
            fall back to INFO.
    """
    log_level = getattr(logging, log_level_name.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.EventRenamer("msg"),
            structlog.processors.format_exc_info,
            structlog.processors.LogfmtRenderer(
                key_order=("timestamp", "level", "msg"),
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
