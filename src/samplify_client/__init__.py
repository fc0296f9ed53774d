"""Samplify API client.

Authenticated HTTP client for the Samplify sample-management REST API with
transparent token refresh, re-authentication on 401 and typed request
descriptions for projects, line items, quota cells, reports and templates.

Exports:
    SamplifyClient: Client facade with session management.
    ClientOptions: Endpoints, timeout and transport of a client.
    operations: Module of request builders for every resource call.
    types: Module of wire types (APIResponse, ErrorResponse, QueryOptions).
"""

from . import operations, types
from .client import SamplifyClient, send_request
from .config import (
    DEFAULT_TIMEOUT,
    ClientOptions,
    configure_logging,
    dev_options,
    load_options,
    options_for_environment,
    prod_options,
    uat_options,
)
from .errors import (
    APIError,
    ConfigurationError,
    RequestCancelledError,
    RequestTimeoutError,
    SamplifyError,
    SerializationError,
    SessionExpiredError,
    TransportError,
    ValidationError,
)
from .session import Credentials, Session
from .types import APIResponse, ErrorResponse

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_TIMEOUT",
    "APIError",
    "APIResponse",
    "ClientOptions",
    "ConfigurationError",
    "Credentials",
    "ErrorResponse",
    "RequestCancelledError",
    "RequestTimeoutError",
    "SamplifyClient",
    "SamplifyError",
    "SerializationError",
    "Session",
    "SessionExpiredError",
    "TransportError",
    "ValidationError",
    "configure_logging",
    "dev_options",
    "load_options",
    "operations",
    "options_for_environment",
    "prod_options",
    "send_request",
    "types",
    "uat_options",
]
