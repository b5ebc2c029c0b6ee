import base64
import datetime
import logging

import httpx
import pytest
import pytest_asyncio
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID
from soap_connector.core.client import SoapClient
from soap_connector.core.security import (
    PASSWORD_DIGEST,
    PASSWORD_TEXT,
    BasicAuthConfig,
    BasicAuthSecurity,
    BearerSecurity,
    ClientSSLSecurity,
    ClientSSLSecurityPFX,
    WSSecurity,
    WSSecurityCert,
    WSSecurityConfig,
    build_security,
    parse_security_config,
)
from soap_connector.core.xmlobject import parse_xml

WSSE = "{http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-wssecurity-secext-1.0.xsd}"
WSU = "{http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-wssecurity-utility-1.0.xsd}"


def _self_signed():
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "soap-client")])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    return key, cert


@pytest_asyncio.fixture
async def transport():
    client = SoapClient()
    yield client
    await client.aclose()


def test_missing_scheme_defaults_to_basic():
    security = build_security({"username": "u", "password": "p"})
    assert isinstance(security, BasicAuthSecurity)


def test_unknown_scheme_falls_back_to_basic_with_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="soap_connector.security"):
        security = build_security({"scheme": "Kerberos", "username": "u"})

    assert isinstance(security, BasicAuthSecurity)
    assert any("Kerberos" in rec.getMessage() for rec in caplog.records)


def test_scheme_aliases_select_ws_security():
    for scheme in ("WS", "Security", "WSSecurity"):
        assert isinstance(build_security({"scheme": scheme}), WSSecurity)


def test_camel_case_keys_are_accepted():
    config = parse_security_config(
        {"scheme": "WS", "passwordType": "PasswordDigest", "hasTimeStamp": False}
    )
    assert isinstance(config, WSSecurityConfig)
    assert config.password_type == "PasswordDigest"
    assert config.has_timestamp is False


def test_pfx_takes_precedence_over_key_and_cert():
    security = build_security(
        {"scheme": "ClientSSL", "pfx": b"bundle", "key": "k.pem", "cert": "c.pem"}
    )
    assert isinstance(security, ClientSSLSecurityPFX)

    security = build_security({"scheme": "ClientSSL", "key": "k.pem", "cert": "c.pem"})
    assert isinstance(security, ClientSSLSecurity)


@pytest.mark.asyncio
async def test_basic_auth_sets_only_basic_credentials(transport):
    build_security({"username": "u", "password": "p"}).configure(transport)

    assert isinstance(transport.http.auth, httpx.BasicAuth)
    assert "Authorization" not in transport.http.headers


@pytest.mark.asyncio
async def test_bearer_sets_only_bearer_credentials(transport):
    security = build_security({"scheme": "Bearer", "token": "abc"})
    assert isinstance(security, BearerSecurity)

    security.configure(transport)

    assert transport.http.headers["Authorization"] == "Bearer abc"
    assert transport.http.auth is None
    assert security.header_xml() is None


def test_ws_security_password_text_header():
    security = WSSecurity("alice", "secret", has_timestamp=True, has_nonce=True)
    root = parse_xml(security.header_xml())

    assert root.tag == f"{WSSE}Security"
    assert root.find(f"{WSU}Timestamp") is not None
    token = root.find(f"{WSSE}UsernameToken")
    assert token.findtext(f"{WSSE}Username") == "alice"
    password = token.find(f"{WSSE}Password")
    assert password.get("Type") == PASSWORD_TEXT
    assert password.text == "secret"
    assert token.find(f"{WSSE}Nonce") is not None


def test_ws_security_digest_hides_password():
    security = WSSecurity(
        "alice", "secret", "PasswordDigest", has_timestamp=False, has_nonce=False
    )
    root = parse_xml(security.header_xml("1.2"))

    assert root.find(f"{WSU}Timestamp") is None
    token = root.find(f"{WSSE}UsernameToken")
    password = token.find(f"{WSSE}Password")
    assert password.get("Type") == PASSWORD_DIGEST
    assert password.text != "secret"
    # a digest always carries its nonce
    assert token.find(f"{WSSE}Nonce") is not None
    assert "http://www.w3.org/2003/05/soap-envelope" in root.nsmap.values()


@pytest.mark.asyncio
async def test_security_cert_attaches_binary_token(transport):
    key, cert = _self_signed()
    private_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    public_pem = cert.public_bytes(serialization.Encoding.PEM).decode()

    security = build_security(
        {"scheme": "SecurityCert", "privatePEM": private_pem, "publicP12PEM": public_pem}
    )
    assert isinstance(security, WSSecurityCert)
    assert security.header_xml() is None

    security.configure(transport)
    root = parse_xml(security.header_xml())
    token = root.find(f"{WSSE}BinarySecurityToken")
    assert base64.b64decode(token.text) == cert.public_bytes(serialization.Encoding.DER)


@pytest.mark.asyncio
async def test_security_cert_bad_key_fails_configure(transport):
    security = WSSecurityCert("not a pem", "not a pem")
    with pytest.raises(ValueError):
        security.configure(transport)


@pytest.mark.asyncio
async def test_client_ssl_requires_certificate(transport):
    with pytest.raises(ValueError):
        ClientSSLSecurity(key="k.pem", cert=None).configure(transport)


@pytest.mark.asyncio
async def test_pfx_bundle_swaps_in_tls_client(transport):
    key, cert = _self_signed()
    bundle = pkcs12.serialize_key_and_certificates(
        b"client", key, cert, None, serialization.BestAvailableEncryption(b"pw")
    )
    transport.http.headers["X-Keep"] = "1"
    previous = transport.http

    ClientSSLSecurityPFX(bundle, "pw").configure(transport)

    assert transport.http is not previous
    assert transport.http.headers["X-Keep"] == "1"


@pytest.mark.parametrize(
    "raw, variant",
    [
        ({"scheme": "Bearer"}, "BearerConfig"),
        ({"scheme": "SecurityCert", "privatePEM": "x"}, "SecurityCertConfig"),
    ],
)
def test_incomplete_config_falls_back_to_basic_with_warning(caplog, raw, variant):
    with caplog.at_level(logging.WARNING, logger="soap_connector.security"):
        config = parse_security_config(raw)

    assert isinstance(config, BasicAuthConfig)
    assert isinstance(build_security(raw), BasicAuthSecurity)
    assert any(variant in rec.getMessage() for rec in caplog.records)
