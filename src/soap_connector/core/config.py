from __future__ import annotations

import os
from typing import Any, Dict, List, Optional, Tuple, Union

from dotenv import load_dotenv
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from .capabilities import IgnoredNamespaces
from .codec import DEFAULT_RESPONSE_SUFFIXES
from .resolver import OperationOverride
from .security import SecurityConfig, parse_security_config

DEFAULT_CONNECTION_TIMEOUT_MS = 60000

ENV_PREFIX = "SOAP_CONNECTOR_"


class SoapHeaderSpec(BaseModel):
    """A structured extra envelope header, serialized through the document's mapper."""

    element: Dict[str, Any] = Field(default_factory=dict)
    name: str
    prefix: Optional[str] = None
    namespace: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class IgnoredNamespacesConfig(BaseModel):
    namespaces: List[str] = Field(default_factory=list)
    override: bool = True

    def to_model(self) -> IgnoredNamespaces:
        return IgnoredNamespaces(tuple(self.namespaces), self.override)


class ConnectorSettings(BaseModel):
    """Connector configuration; camelCase keys are accepted alongside snake_case."""

    url: Optional[str] = Field(None, validation_alias=AliasChoices("url", "endpoint"))
    wsdl: Optional[str] = None
    ignored_namespaces: IgnoredNamespacesConfig = Field(
        default_factory=IgnoredNamespacesConfig,
        validation_alias=AliasChoices("ignored_namespaces", "ignoredNamespaces"),
    )
    security: Optional[Dict[str, Any]] = None
    username: Optional[str] = None
    password: Optional[str] = None
    soap_headers: List[Union[str, SoapHeaderSpec]] = Field(
        default_factory=list,
        validation_alias=AliasChoices("soap_headers", "soapHeaders"),
    )
    operations: Dict[str, OperationOverride] = Field(default_factory=dict)
    connection_timeout: int = Field(
        DEFAULT_CONNECTION_TIMEOUT_MS,
        validation_alias=AliasChoices("connection_timeout", "connectionTimeout"),
    )
    timeout_seconds: float = 10.0
    remoting_enabled: bool = Field(
        False, validation_alias=AliasChoices("remoting_enabled", "remotingEnabled")
    )
    response_suffixes: Tuple[str, ...] = DEFAULT_RESPONSE_SUFFIXES

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="after")
    def _require_location(self) -> "ConnectorSettings":
        if not self.url and not self.wsdl:
            raise ValueError("Either url/endpoint or wsdl must be provided.")
        return self

    @property
    def capability_location(self) -> str:
        if self.wsdl:
            return self.wsdl
        separator = "&" if "?" in self.url else "?"
        return f"{self.url}{separator}wsdl"

    def security_config(self) -> Optional[SecurityConfig]:
        if self.security:
            return parse_security_config(self.security)
        if self.username:
            return parse_security_config(
                {"username": self.username, "password": self.password}
            )
        return None


def _env_flag(name: str) -> Optional[bool]:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return None
    return raw in ("1", "true", "yes", "on")


def load_env_config(*, use_dotenv: bool = True, **overrides: Any) -> ConnectorSettings:
    """Build ConnectorSettings from SOAP_CONNECTOR_* environment variables (optional .env)."""
    if use_dotenv:
        load_dotenv()

    def env(name: str) -> Optional[str]:
        value = os.getenv(ENV_PREFIX + name, "").strip()
        return value or None

    data: Dict[str, Any] = {
        "url": env("URL"),
        "wsdl": env("WSDL"),
        "username": env("USERNAME"),
        "password": env("PASSWORD"),
    }

    scheme = env("SECURITY_SCHEME")
    token = env("BEARER_TOKEN")
    if scheme or token:
        data["security"] = {
            "scheme": scheme or "Bearer",
            "username": data["username"],
            "password": data["password"],
            "token": token,
        }

    timeout = env("CONNECTION_TIMEOUT_MS")
    if timeout:
        data["connection_timeout"] = int(timeout)
    remoting = _env_flag(ENV_PREFIX + "REMOTING_ENABLED")
    if remoting is not None:
        data["remoting_enabled"] = remoting

    data.update(overrides)
    return ConnectorSettings.model_validate(
        {k: v for k, v in data.items() if v is not None}
    )


__all__ = [
    "ConnectorSettings",
    "IgnoredNamespacesConfig",
    "SoapHeaderSpec",
    "DEFAULT_CONNECTION_TIMEOUT_MS",
    "load_env_config",
]
