import pytest
from pydantic import ValidationError
from soap_connector.core.config import ConnectorSettings, SoapHeaderSpec, load_env_config
from soap_connector.core.security import BasicAuthConfig, BearerConfig
from soap_connector.server import create_settings_from_env

ENV_VARS = (
    "URL",
    "WSDL",
    "USERNAME",
    "PASSWORD",
    "SECURITY_SCHEME",
    "BEARER_TOKEN",
    "CONNECTION_TIMEOUT_MS",
    "REMOTING_ENABLED",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(f"SOAP_CONNECTOR_{name}", raising=False)


def test_settings_require_url_or_wsdl():
    with pytest.raises(ValidationError):
        ConnectorSettings.model_validate({})


def test_settings_accept_camel_case_keys():
    settings = ConnectorSettings.model_validate(
        {
            "endpoint": "http://svc/soap",
            "connectionTimeout": 500,
            "remotingEnabled": True,
            "ignoredNamespaces": {"namespaces": ["xs"], "override": False},
            "soapHeaders": ["<h/>", {"name": "Trace", "element": {}}],
        }
    )

    assert settings.url == "http://svc/soap"
    assert settings.capability_location == "http://svc/soap?wsdl"
    assert settings.connection_timeout == 500
    assert settings.remoting_enabled is True
    assert settings.ignored_namespaces.to_model().prefixes[-1] == "xs"
    assert isinstance(settings.soap_headers[1], SoapHeaderSpec)


def test_explicit_wsdl_wins_over_url():
    settings = ConnectorSettings(url="http://svc/soap", wsdl="/tmp/svc.wsdl")
    assert settings.capability_location == "/tmp/svc.wsdl"


def test_capability_location_appends_to_existing_query():
    settings = ConnectorSettings(url="http://svc/soap?tenant=a")
    assert settings.capability_location == "http://svc/soap?tenant=a&wsdl"


def test_security_config_from_top_level_credentials():
    settings = ConnectorSettings(wsdl="x.wsdl", username="u", password="p")
    config = settings.security_config()

    assert isinstance(config, BasicAuthConfig)
    assert (config.username, config.password) == ("u", "p")
    assert ConnectorSettings(wsdl="x.wsdl").security_config() is None


def test_load_env_config(monkeypatch):
    monkeypatch.setenv("SOAP_CONNECTOR_URL", "http://svc/soap")
    monkeypatch.setenv("SOAP_CONNECTOR_BEARER_TOKEN", "tok")
    monkeypatch.setenv("SOAP_CONNECTOR_CONNECTION_TIMEOUT_MS", "1500")
    monkeypatch.setenv("SOAP_CONNECTOR_REMOTING_ENABLED", "yes")

    settings = load_env_config(use_dotenv=False)

    assert settings.url == "http://svc/soap"
    assert settings.connection_timeout == 1500
    assert settings.remoting_enabled is True
    config = settings.security_config()
    assert isinstance(config, BearerConfig)
    assert config.token == "tok"


def test_load_env_config_overrides_win(monkeypatch):
    monkeypatch.setenv("SOAP_CONNECTOR_WSDL", "svc.wsdl")
    settings = load_env_config(use_dotenv=False, remoting_enabled=False, wsdl="other.wsdl")

    assert settings.wsdl == "other.wsdl"
    assert settings.remoting_enabled is False


def test_create_settings_from_env_missing_vars(monkeypatch):
    # Prevent load_dotenv from repopulating values from .env
    monkeypatch.setattr("soap_connector.core.config.load_dotenv", lambda *a, **k: None)

    with pytest.raises(ValueError) as exc:
        create_settings_from_env()

    assert "Missing SOAP_CONNECTOR_URL or SOAP_CONNECTOR_WSDL" in str(exc.value)


def test_create_settings_from_env_enables_remoting(monkeypatch):
    monkeypatch.setattr("soap_connector.core.config.load_dotenv", lambda *a, **k: None)
    monkeypatch.setenv("SOAP_CONNECTOR_WSDL", "svc.wsdl")

    assert create_settings_from_env().remoting_enabled is True
