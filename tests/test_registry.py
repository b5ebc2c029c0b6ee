import inspect
from pathlib import Path

import pytest
import respx
from httpx import Response
from mcp.server.fastmcp import FastMCP
from soap_connector.core.capabilities import parse_capability_document
from soap_connector.core.client import SoapClient
from soap_connector.core.operations import build_operation_table
from soap_connector.core.service import ServiceClient
from soap_connector.registry import register_operation_tools

FIXTURES = Path(__file__).parent / "fixtures"


def _table(remoting_enabled: bool):
    document = parse_capability_document((FIXTURES / "stockquote.wsdl").read_bytes())
    client = ServiceClient(SoapClient(), document)
    return build_operation_table(client, remoting_enabled=remoting_enabled)


def _recording_app():
    app = FastMCP("test")
    registered = []

    # monkeypatch tool to record registrations
    def record_tool(name, description):
        def decorator(fn):
            registered.append((name, description, fn))
            return fn

        return decorator

    app.tool = record_tool  # type: ignore[attr-defined]
    return app, registered


@pytest.mark.asyncio
async def test_register_operation_tools_exposes_remoting_bindings():
    app, registered = _recording_app()
    table = _table(remoting_enabled=True)

    names = register_operation_tools(app, table)

    assert names == list(table)
    assert [n for n, _, _ in registered] == names

    _, description, fn = registered[0]
    assert description.startswith("Latest trade price for a ticker symbol.")
    assert "document style" in description
    assert list(inspect.signature(fn).parameters) == ["input"]

    async with respx.mock:
        route = respx.post("http://example.com/math").mock(
            return_value=Response(
                200,
                text=(
                    '<Envelope xmlns="http://schemas.xmlsoap.org/soap/envelope/">'
                    '<Body><AddResponse xmlns="">'
                    "<result>3</result></AddResponse></Body></Envelope>"
                ),
            )
        )
        add = next(fn for n, _, fn in registered if n == "Add")
        result = await add({"a": 1, "b": 2})

    assert route.called
    assert result == {"result": "3"}


def test_register_operation_tools_skips_private_bindings():
    app, registered = _recording_app()

    assert register_operation_tools(app, _table(remoting_enabled=False)) == []
    assert registered == []


def test_register_operation_tools_requires_tool_decorator():
    with pytest.raises(TypeError):
        register_operation_tools(object(), _table(remoting_enabled=True))


def test_register_operation_tools_on_real_app():
    app = FastMCP("test")
    names = register_operation_tools(app, _table(remoting_enabled=True))

    assert "BackupService_BackupPort_GetQuote" in names
