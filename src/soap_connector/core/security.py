"""Credential schemes and the selection logic that attaches one to a client."""

from __future__ import annotations

import base64
import hashlib
import logging
import os
import ssl
import tempfile
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterator, Mapping, Optional, Union

import httpx
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12
from lxml import etree
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .client import SoapClient
from .xmlobject import SOAP11_ENV_NS, SOAP12_ENV_NS

if TYPE_CHECKING:
    from .service import ServiceClient

log = logging.getLogger("soap_connector.security")

WSSE_NS = (
    "http://docs.oasis-open.org/wss/2004/01/"
    "oasis-200401-wss-wssecurity-secext-1.0.xsd"
)
WSU_NS = (
    "http://docs.oasis-open.org/wss/2004/01/"
    "oasis-200401-wss-wssecurity-utility-1.0.xsd"
)
_TOKEN_PROFILE = (
    "http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-username-token-profile-1.0"
)
PASSWORD_TEXT = f"{_TOKEN_PROFILE}#PasswordText"
PASSWORD_DIGEST = f"{_TOKEN_PROFILE}#PasswordDigest"
BASE64_BINARY = (
    "http://docs.oasis-open.org/wss/2004/01/"
    "oasis-200401-wss-soap-message-security-1.0#Base64Binary"
)
X509_V3 = (
    "http://docs.oasis-open.org/wss/2004/01/"
    "oasis-200401-wss-x509-token-profile-1.0#X509v3"
)


# --- Configuration variants ------------------------------------------------- #


class _SecurityConfigBase(BaseModel):
    scheme: Optional[str] = None
    options: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True, extra="ignore")


class BasicAuthConfig(_SecurityConfigBase):
    username: Optional[str] = None
    password: Optional[str] = None


class WSSecurityConfig(_SecurityConfigBase):
    username: Optional[str] = None
    password: Optional[str] = None
    password_type: str = Field(
        "PasswordText", validation_alias=AliasChoices("password_type", "passwordType")
    )
    has_timestamp: bool = Field(
        True, validation_alias=AliasChoices("has_timestamp", "hasTimeStamp")
    )
    has_nonce: bool = Field(True, validation_alias=AliasChoices("has_nonce", "hasNonce"))
    must_understand: bool = Field(
        True, validation_alias=AliasChoices("must_understand", "mustUnderstand")
    )


class SecurityCertConfig(_SecurityConfigBase):
    private_pem: str = Field(validation_alias=AliasChoices("private_pem", "privatePEM"))
    public_pem: str = Field(
        validation_alias=AliasChoices("public_pem", "publicP12PEM", "public_p12_pem")
    )
    password: Optional[str] = None
    encoding: str = "utf-8"


class ClientSSLConfig(_SecurityConfigBase):
    pfx: Optional[Union[bytes, str]] = None
    passphrase: Optional[str] = None
    key: Optional[str] = Field(
        None, validation_alias=AliasChoices("key", "keyPath", "key_path")
    )
    cert: Optional[str] = Field(
        None, validation_alias=AliasChoices("cert", "certPath", "cert_path")
    )
    ca: Optional[str] = Field(None, validation_alias=AliasChoices("ca", "caPath", "ca_path"))


class BearerConfig(_SecurityConfigBase):
    token: str


SecurityConfig = Union[
    BasicAuthConfig, WSSecurityConfig, SecurityCertConfig, ClientSSLConfig, BearerConfig
]

_CONFIG_BY_SCHEME: Dict[str, type] = {
    "BasicAuth": BasicAuthConfig,
    "WS": WSSecurityConfig,
    "Security": WSSecurityConfig,
    "WSSecurity": WSSecurityConfig,
    "SecurityCert": SecurityCertConfig,
    "ClientSSL": ClientSSLConfig,
    "Bearer": BearerConfig,
}


def parse_security_config(raw: Union[SecurityConfig, Mapping[str, Any]]) -> SecurityConfig:
    """
    Select the configuration variant named by ``scheme``.

    Absent or unrecognized schemes fall back to BasicAuth, and so does a
    configuration missing the fields its scheme needs. Both fallbacks other
    than an absent scheme are logged as warnings.
    """
    if isinstance(raw, _SecurityConfigBase):
        return raw  # type: ignore[return-value]

    scheme = raw.get("scheme")
    model = _CONFIG_BY_SCHEME.get(scheme) if scheme is not None else None
    if model is None:
        if scheme is not None:
            log.warning(
                "Unrecognized security scheme %r; falling back to BasicAuth", scheme
            )
        model = BasicAuthConfig
    try:
        return model.model_validate(dict(raw))
    except ValidationError as exc:
        log.warning(
            "Invalid %s security configuration; falling back to BasicAuth: %s",
            model.__name__,
            exc.errors(include_url=False),
        )
        return BasicAuthConfig()


# --- Credential schemes ----------------------------------------------------- #


class Security:
    """A credential scheme occupying a service client's credential slot."""

    def configure(self, transport: SoapClient) -> None:
        """Apply transport-level credentials (auth headers, TLS)."""

    def header_xml(self, soap_version: str = "1.1") -> Optional[str]:
        """Envelope header fragment to send with every call, if any."""
        return None


class BasicAuthSecurity(Security):
    def __init__(
        self,
        username: Optional[str],
        password: Optional[str],
        options: Optional[Dict[str, Any]] = None,
    ):
        self.username = username or ""
        self.password = password or ""
        self.options = options or {}

    def configure(self, transport: SoapClient) -> None:
        transport.http.auth = httpx.BasicAuth(self.username, self.password)
        transport.http.headers.update(self.options.get("headers") or {})


class BearerSecurity(Security):
    def __init__(self, token: str, options: Optional[Dict[str, Any]] = None):
        self.token = token
        self.options = options or {}

    def configure(self, transport: SoapClient) -> None:
        transport.http.headers["Authorization"] = f"Bearer {self.token}"
        transport.http.headers.update(self.options.get("headers") or {})


def _utc_stamp(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def _security_element(must_understand: bool, soap_version: str) -> etree._Element:
    soap_ns = SOAP12_ENV_NS if soap_version == "1.2" else SOAP11_ENV_NS
    element = etree.Element(
        f"{{{WSSE_NS}}}Security",
        nsmap={"wsse": WSSE_NS, "wsu": WSU_NS, "soap": soap_ns},
    )
    if must_understand:
        element.set(f"{{{soap_ns}}}mustUnderstand", "1")
    return element


def _append_timestamp(security: etree._Element, now: datetime, ttl_seconds: int) -> None:
    timestamp = etree.SubElement(
        security,
        f"{{{WSU_NS}}}Timestamp",
        {f"{{{WSU_NS}}}Id": f"Timestamp-{uuid.uuid4()}"},
    )
    etree.SubElement(timestamp, f"{{{WSU_NS}}}Created").text = _utc_stamp(now)
    etree.SubElement(timestamp, f"{{{WSU_NS}}}Expires").text = _utc_stamp(
        now + timedelta(seconds=ttl_seconds)
    )


class WSSecurity(Security):
    """WS-Security UsernameToken, PasswordText or PasswordDigest."""

    def __init__(
        self,
        username: Optional[str],
        password: Optional[str],
        password_type: str = "PasswordText",
        *,
        has_timestamp: bool = True,
        has_nonce: bool = True,
        must_understand: bool = True,
        ttl_seconds: int = 600,
    ):
        self.username = username or ""
        self.password = password or ""
        self.password_type = password_type
        self.has_timestamp = has_timestamp
        self.has_nonce = has_nonce
        self.must_understand = must_understand
        self.ttl_seconds = ttl_seconds

    def header_xml(self, soap_version: str = "1.1") -> Optional[str]:
        now = datetime.now(timezone.utc)
        created = _utc_stamp(now)
        security = _security_element(self.must_understand, soap_version)
        if self.has_timestamp:
            _append_timestamp(security, now, self.ttl_seconds)

        token = etree.SubElement(
            security,
            f"{{{WSSE_NS}}}UsernameToken",
            {f"{{{WSU_NS}}}Id": f"SecurityToken-{uuid.uuid4()}"},
        )
        etree.SubElement(token, f"{{{WSSE_NS}}}Username").text = self.username

        nonce = os.urandom(16)
        if self.password_type == "PasswordDigest":
            digest = hashlib.sha1(
                nonce + created.encode("utf-8") + self.password.encode("utf-8")
            ).digest()
            password = etree.SubElement(token, f"{{{WSSE_NS}}}Password", Type=PASSWORD_DIGEST)
            password.text = base64.b64encode(digest).decode("ascii")
            include_nonce = True
        else:
            password = etree.SubElement(token, f"{{{WSSE_NS}}}Password", Type=PASSWORD_TEXT)
            password.text = self.password
            include_nonce = self.has_nonce

        if include_nonce:
            nonce_el = etree.SubElement(
                token, f"{{{WSSE_NS}}}Nonce", EncodingType=BASE64_BINARY
            )
            nonce_el.text = base64.b64encode(nonce).decode("ascii")
        etree.SubElement(token, f"{{{WSU_NS}}}Created").text = created

        return etree.tostring(security, encoding="unicode")


class WSSecurityCert(Security):
    """
    X.509 token profile: attaches the certificate as a BinarySecurityToken.

    Key material is loaded when the scheme is configured so that a wrong
    password or unreadable PEM fails the connect. Envelope signing is left
    to the transport.
    """

    def __init__(
        self,
        private_pem: str,
        public_pem: str,
        password: Optional[str] = None,
        encoding: str = "utf-8",
        *,
        ttl_seconds: int = 600,
    ):
        self.private_pem = private_pem
        self.public_pem = public_pem
        self.password = password
        self.encoding = encoding
        self.ttl_seconds = ttl_seconds
        self._certificate_der: Optional[bytes] = None

    def configure(self, transport: SoapClient) -> None:
        serialization.load_pem_private_key(
            self.private_pem.encode(self.encoding),
            password=self.password.encode(self.encoding) if self.password else None,
        )
        certificate = x509.load_pem_x509_certificate(self.public_pem.encode(self.encoding))
        self._certificate_der = certificate.public_bytes(serialization.Encoding.DER)

    def header_xml(self, soap_version: str = "1.1") -> Optional[str]:
        if self._certificate_der is None:
            return None
        security = _security_element(True, soap_version)
        _append_timestamp(security, datetime.now(timezone.utc), self.ttl_seconds)
        token = etree.SubElement(
            security,
            f"{{{WSSE_NS}}}BinarySecurityToken",
            {
                "EncodingType": BASE64_BINARY,
                "ValueType": X509_V3,
                f"{{{WSU_NS}}}Id": f"x509-{uuid.uuid4()}",
            },
        )
        token.text = base64.b64encode(self._certificate_der).decode("ascii")
        return etree.tostring(security, encoding="unicode")


def _is_pem(value: Union[str, bytes]) -> bool:
    marker = b"-----BEGIN" if isinstance(value, bytes) else "-----BEGIN"
    return marker in value  # type: ignore[operator]


@contextmanager
def _pem_paths(*values: Optional[Union[str, bytes]]) -> Iterator[list[Optional[str]]]:
    """Yield file paths for PEM values, spilling inline PEM text to temp files."""
    paths: list[Optional[str]] = []
    temporary: list[str] = []
    try:
        for value in values:
            if value is None or not _is_pem(value):
                paths.append(value if value is None else str(value))
                continue
            data = value.encode("utf-8") if isinstance(value, str) else value
            with tempfile.NamedTemporaryFile("wb", suffix=".pem", delete=False) as fh:
                fh.write(data)
            temporary.append(fh.name)
            paths.append(fh.name)
        yield paths
    finally:
        for path in temporary:
            Path(path).unlink(missing_ok=True)


def _tls_context(ca: Optional[str]) -> ssl.SSLContext:
    context = ssl.create_default_context()
    if ca:
        if _is_pem(ca):
            context.load_verify_locations(cadata=ca)
        else:
            context.load_verify_locations(cafile=ca)
    return context


class ClientSSLSecurity(Security):
    """Mutual TLS from separate key / certificate / CA material."""

    def __init__(
        self,
        key: Optional[str],
        cert: Optional[str],
        ca: Optional[str] = None,
        options: Optional[Dict[str, Any]] = None,
        *,
        passphrase: Optional[str] = None,
    ):
        self.key = key
        self.cert = cert
        self.ca = ca
        self.options = options or {}
        self.passphrase = passphrase or self.options.get("passphrase")

    def configure(self, transport: SoapClient) -> None:
        if not self.cert:
            raise ValueError("ClientSSL requires a certificate (cert/certPath).")
        context = _tls_context(self.ca)
        with _pem_paths(self.cert, self.key) as (cert_path, key_path):
            context.load_cert_chain(
                cert_path, key_path, password=self.passphrase
            )
        transport.configure_tls(context)


class ClientSSLSecurityPFX(Security):
    """Mutual TLS from a PKCS#12 bundle (raw bytes or a file path)."""

    def __init__(
        self,
        pfx: Union[bytes, str],
        passphrase: Optional[str] = None,
        options: Optional[Dict[str, Any]] = None,
    ):
        self.pfx = pfx
        self.passphrase = passphrase
        self.options = options or {}

    def configure(self, transport: SoapClient) -> None:
        data = self.pfx if isinstance(self.pfx, bytes) else Path(self.pfx).read_bytes()
        key, certificate, extra = pkcs12.load_key_and_certificates(
            data, self.passphrase.encode("utf-8") if self.passphrase else None
        )
        if key is None or certificate is None:
            raise ValueError("PFX bundle must contain a private key and a certificate.")

        key_pem = key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
        chain_pem = certificate.public_bytes(serialization.Encoding.PEM) + b"".join(
            c.public_bytes(serialization.Encoding.PEM) for c in extra or ()
        )

        context = _tls_context(self.options.get("ca"))
        with _pem_paths(chain_pem, key_pem) as (cert_path, key_path):
            context.load_cert_chain(cert_path, key_path)
        transport.configure_tls(context)


# --- Selection -------------------------------------------------------------- #


def build_security(config: Union[SecurityConfig, Mapping[str, Any]]) -> Security:
    """Build exactly one credential object for the configured scheme."""
    config = parse_security_config(config)

    if isinstance(config, WSSecurityConfig):
        return WSSecurity(
            config.username,
            config.password,
            config.password_type,
            has_timestamp=config.has_timestamp,
            has_nonce=config.has_nonce,
            must_understand=config.must_understand,
        )
    if isinstance(config, SecurityCertConfig):
        return WSSecurityCert(
            config.private_pem, config.public_pem, config.password, config.encoding
        )
    if isinstance(config, ClientSSLConfig):
        # a PFX bundle takes precedence over key/cert files
        if config.pfx:
            return ClientSSLSecurityPFX(config.pfx, config.passphrase, config.options)
        return ClientSSLSecurity(
            config.key, config.cert, config.ca, config.options, passphrase=config.passphrase
        )
    if isinstance(config, BearerConfig):
        return BearerSecurity(config.token, config.options)
    return BasicAuthSecurity(config.username, config.password, config.options)


def bind_security(
    client: "ServiceClient", config: Union[SecurityConfig, Mapping[str, Any]]
) -> Security:
    security = build_security(config)
    log.debug("Binding security scheme %s", type(security).__name__)
    client.set_security(security)
    return security


__all__ = [
    "BasicAuthConfig",
    "WSSecurityConfig",
    "SecurityCertConfig",
    "ClientSSLConfig",
    "BearerConfig",
    "SecurityConfig",
    "Security",
    "BasicAuthSecurity",
    "BearerSecurity",
    "WSSecurity",
    "WSSecurityCert",
    "ClientSSLSecurity",
    "ClientSSLSecurityPFX",
    "parse_security_config",
    "build_security",
    "bind_security",
]
