from pathlib import Path

import pytest
from soap_connector.core.capabilities import (
    BindingStyle,
    IgnoredNamespaces,
    parse_capability_document,
)
from soap_connector.core.errors import MalformedCapabilityDocument

FIXTURES = Path(__file__).parent / "fixtures"
TNS = "http://example.com/stockquote"


@pytest.fixture
def document():
    return parse_capability_document((FIXTURES / "stockquote.wsdl").read_bytes())


def test_services_ports_and_addresses(document):
    assert list(document.services) == ["QuoteService", "MathService", "BackupService"]

    quote_port = document.services["QuoteService"].ports["QuotePort"]
    assert quote_port.location == "http://example.com/quote"
    assert quote_port.soap_version == "1.1"
    assert list(quote_port.operations) == ["GetQuote", "Ping"]
    assert quote_port.soap_actions["GetQuote"] == f"{TNS}/GetQuote"

    backup_port = document.services["BackupService"].ports["BackupPort"]
    assert backup_port.soap_version == "1.2"
    assert backup_port.location == "http://backup.example.com/quote"


def test_document_style_message(document):
    op = document.find_operation("GetQuote")
    assert op.style is BindingStyle.DOCUMENT
    assert op.input.element_name == "GetQuote"
    assert op.input.message_name == "GetQuoteRequest"
    assert op.input.parts is None
    assert op.input.target_ns_alias == "tns"
    assert op.input.target_namespace == TNS
    assert op.output.element_name == "GetQuoteResponse"
    assert op.documentation == "Latest trade price for a ticker symbol."


def test_rpc_style_message(document):
    op = document.find_operation("Add")
    assert op.style is BindingStyle.RPC
    assert [p.name for p in op.input.parts] == ["a", "b"]
    assert op.input.parts[0].type == "int"
    assert op.input.element_name == "AddRequest"


def test_partless_message_is_void(document):
    op = document.find_operation("Ping")
    assert op.input.is_void
    assert op.output.is_void


def test_element_type_is_recorded():
    raw = (FIXTURES / "echo.wsdl").read_bytes()
    doc = parse_capability_document(raw)
    op = doc.find_operation("GetFoo")
    assert op.input.element_type == "FooRequestType"
    assert doc.schema.sequences["FooRequestType"] == ("id", "label")


def test_find_operation_missing_returns_none(document):
    assert document.find_operation("Nope") is None


def test_find_operation_first_declared_wins():
    raw = (FIXTURES / "stockquote.wsdl").read_text().replace(
        '<wsdl:operation name="Add">', '<wsdl:operation name="GetQuote">'
    )
    doc = parse_capability_document(raw)
    # QuotePortType is declared before MathPortType
    assert doc.find_operation("GetQuote").port_type == "QuotePortType"


def test_namespace_lookup_is_bidirectional(document):
    assert document.namespace_for("tns") == TNS
    assert document.prefix_for(TNS) == "tns"
    assert document.prefix_for("urn:unknown") is None
    assert document.target_namespace == TNS


def test_schema_index(document):
    assert document.schema.sequences["GetQuote"] == ("symbol", "currency")
    assert document.schema.leaf_types["price"] == "double"
    assert document.schema.leaf_types["volume"] == "int"
    assert TNS in document.schema.qualified_namespaces


def test_iter_operations_in_document_order(document):
    triples = [(s.name, p.name, o.name) for s, p, o in document.iter_operations()]
    assert triples == [
        ("QuoteService", "QuotePort", "GetQuote"),
        ("QuoteService", "QuotePort", "Ping"),
        ("MathService", "MathPort", "Add"),
        ("BackupService", "BackupPort", "GetQuote"),
        ("BackupService", "BackupPort", "Ping"),
    ]


def test_no_port_types_fails_on_lookup():
    doc = parse_capability_document(
        '<definitions xmlns="http://schemas.xmlsoap.org/wsdl/" targetNamespace="urn:x"/>'
    )
    with pytest.raises(MalformedCapabilityDocument):
        doc.find_operation("Anything")


def test_dangling_message_reference_is_malformed():
    raw = (FIXTURES / "stockquote.wsdl").read_text().replace(
        'message="tns:AddResponse"', 'message="tns:Missing"'
    )
    with pytest.raises(MalformedCapabilityDocument) as exc:
        parse_capability_document(raw)
    assert "Missing" in str(exc.value)


def test_dangling_binding_reference_is_malformed():
    raw = (FIXTURES / "stockquote.wsdl").read_text().replace(
        'binding="tns:MathBinding"', 'binding="tns:NoSuchBinding"'
    )
    with pytest.raises(MalformedCapabilityDocument):
        parse_capability_document(raw)


def test_non_xml_is_malformed():
    with pytest.raises(MalformedCapabilityDocument):
        parse_capability_document("<html>not a wsdl")


def test_non_wsdl_root_is_malformed():
    with pytest.raises(MalformedCapabilityDocument):
        parse_capability_document("<root/>")


def test_ignored_namespaces_prefixes():
    assert IgnoredNamespaces().prefixes == ()
    assert IgnoredNamespaces(("foo",), override=False).prefixes == (
        "tns",
        "targetNamespace",
        "typedNamespace",
        "foo",
    )


def test_schema_index_resolves_nested_element_types():
    schema = parse_capability_document((FIXTURES / "orders.wsdl").read_bytes()).schema

    assert schema.child_types == {"line": "LineType"}
    assert schema.sequence_for("line") == ("sku", "qty")
    assert schema.sequence_for("customer") == ("id", "email")
    assert schema.sequence_for("Place") == ("customer", "line")
