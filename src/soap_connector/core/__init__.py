"""Core domain surface for soap-connector (host-framework agnostic)."""

from .capabilities import (
    BindingStyle,
    CapabilityDocument,
    IgnoredNamespaces,
    MessageDefinition,
    MessagePart,
    Operation,
    Port,
    PortType,
    Service,
    parse_capability_document,
)
from .client import RetryConfig, SoapClient
from .codec import DEFAULT_RESPONSE_SUFFIXES, MessageCodec
from .config import ConnectorSettings, SoapHeaderSpec, load_env_config
from .connector import ConnectionEvents, ConnectionState, SoapConnector
from .errors import (
    ConnectionFailed,
    ConnectionTimeout,
    MalformedCapabilityDocument,
    MethodNotFound,
    NotConnected,
    OperationNotFound,
    SoapClientError,
    SoapConnectorError,
    SoapFaultError,
    SoapHTTPError,
)
from .operations import (
    OperationBinding,
    OperationTable,
    RemotingMetadata,
    build_operation_table,
)
from .resolver import OperationOverride, resolve_name
from .security import (
    BasicAuthSecurity,
    BearerSecurity,
    ClientSSLSecurity,
    ClientSSLSecurityPFX,
    Security,
    WSSecurity,
    WSSecurityCert,
    bind_security,
    build_security,
    parse_security_config,
)
from .service import ServiceClient

__all__ = [
    # Capability model
    "BindingStyle",
    "CapabilityDocument",
    "IgnoredNamespaces",
    "MessageDefinition",
    "MessagePart",
    "Operation",
    "Port",
    "PortType",
    "Service",
    "parse_capability_document",
    # Transport
    "RetryConfig",
    "SoapClient",
    "ServiceClient",
    # Codec / naming
    "DEFAULT_RESPONSE_SUFFIXES",
    "MessageCodec",
    "OperationOverride",
    "resolve_name",
    # Table
    "OperationBinding",
    "OperationTable",
    "RemotingMetadata",
    "build_operation_table",
    # Security
    "Security",
    "BasicAuthSecurity",
    "BearerSecurity",
    "ClientSSLSecurity",
    "ClientSSLSecurityPFX",
    "WSSecurity",
    "WSSecurityCert",
    "bind_security",
    "build_security",
    "parse_security_config",
    # Lifecycle
    "ConnectionEvents",
    "ConnectionState",
    "SoapConnector",
    # Config
    "ConnectorSettings",
    "SoapHeaderSpec",
    "load_env_config",
    # Exceptions
    "SoapClientError",
    "SoapHTTPError",
    "SoapFaultError",
    "SoapConnectorError",
    "MalformedCapabilityDocument",
    "MethodNotFound",
    "OperationNotFound",
    "ConnectionFailed",
    "ConnectionTimeout",
    "NotConnected",
]
