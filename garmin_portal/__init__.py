from .client import DATA_TYPES, PortalClient
from .errors import (
    AuthenticationError,
    GarminConnectError,
    InvalidParameter,
    MalformedResponse,
    MissingCredentials,
    TransportError,
    UnexpectedResponseCode,
)
from .params import (
    EQUAL,
    GREATER_THAN,
    GREATER_THAN_OR_EQUAL,
    LESS_THAN,
    LESS_THAN_OR_EQUAL,
    ActivityFilter,
    AuthParameters,
    QueryParams,
)

__all__ = [
    "__version__",
    "PortalClient",
    "DATA_TYPES",
    "QueryParams",
    "ActivityFilter",
    "AuthParameters",
    "EQUAL",
    "GREATER_THAN",
    "GREATER_THAN_OR_EQUAL",
    "LESS_THAN",
    "LESS_THAN_OR_EQUAL",
    "GarminConnectError",
    "InvalidParameter",
    "AuthenticationError",
    "MissingCredentials",
    "UnexpectedResponseCode",
    "MalformedResponse",
    "TransportError",
]

__version__ = "0.1.0"
