"""soap_connector package exports."""

from .core import (
    CapabilityDocument,
    ConnectionFailed,
    ConnectionState,
    ConnectionTimeout,
    ConnectorSettings,
    MalformedCapabilityDocument,
    MessageCodec,
    MethodNotFound,
    NotConnected,
    OperationBinding,
    OperationNotFound,
    OperationTable,
    SoapClient,
    SoapClientError,
    SoapConnector,
    SoapConnectorError,
    SoapFaultError,
    SoapHTTPError,
    load_env_config,
    parse_capability_document,
)
from .registry import register_operation_tools

__all__ = [
    # Connector
    "SoapConnector",
    "ConnectorSettings",
    "ConnectionState",
    "load_env_config",
    # Model / codec
    "CapabilityDocument",
    "MessageCodec",
    "OperationBinding",
    "OperationTable",
    "parse_capability_document",
    # Transport
    "SoapClient",
    # Exceptions
    "SoapConnectorError",
    "SoapClientError",
    "SoapHTTPError",
    "SoapFaultError",
    "MalformedCapabilityDocument",
    "MethodNotFound",
    "OperationNotFound",
    "ConnectionFailed",
    "ConnectionTimeout",
    "NotConnected",
    # Host integration
    "register_operation_tools",
]
