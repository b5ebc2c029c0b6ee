from typing import Optional

from .client import SoapClientError, SoapFaultError, SoapHTTPError


class SoapConnectorError(Exception):
    """Base error for connector failures."""


class MalformedCapabilityDocument(SoapConnectorError):
    """The capability document lacks structure an operation lookup depends on."""


class MethodNotFound(SoapConnectorError, LookupError):
    def __init__(self, name: str):
        super().__init__(f"Method not found in capability document port types: {name}")
        self.name = name


OperationNotFound = MethodNotFound


class ConnectionFailed(SoapConnectorError):
    def __init__(self, message: str, *, original_error: Optional[BaseException] = None):
        super().__init__(message)
        self.original_error = original_error


class ConnectionTimeout(SoapConnectorError, TimeoutError):
    def __init__(self, timeout_ms: int):
        super().__init__(f"Timeout in connecting after {timeout_ms} ms")
        self.timeout_ms = timeout_ms


class NotConnected(SoapConnectorError):
    def __init__(self, original_error: Optional[BaseException] = None):
        super().__init__("NOT Connected")
        self.original_error = original_error


__all__ = [
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
