"""Parsed representation of a WSDL 1.1 capability document."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from functools import cached_property
from typing import Dict, Iterator, Optional, Tuple

from lxml import etree

from .errors import MalformedCapabilityDocument
from .xmlobject import (
    DEFAULT_IGNORED_PREFIXES,
    SchemaIndex,
    XmlMapper,
    parse_xml,
)

WSDL_NS = "http://schemas.xmlsoap.org/wsdl/"
SOAP_BINDING_NS = "http://schemas.xmlsoap.org/wsdl/soap/"
SOAP12_BINDING_NS = "http://schemas.xmlsoap.org/wsdl/soap12/"
XSD_NS = "http://www.w3.org/2001/XMLSchema"


def _w(tag: str) -> str:
    return f"{{{WSDL_NS}}}{tag}"


def _x(tag: str) -> str:
    return f"{{{XSD_NS}}}{tag}"


class BindingStyle(str, enum.Enum):
    RPC = "rpc"
    DOCUMENT = "document"


@dataclass(frozen=True)
class IgnoredNamespaces:
    """Prefixes stripped from qualified keys when serializing."""

    namespaces: Tuple[str, ...] = ()
    override: bool = True

    @property
    def prefixes(self) -> Tuple[str, ...]:
        if self.override:
            return tuple(self.namespaces)
        return DEFAULT_IGNORED_PREFIXES + tuple(self.namespaces)


@dataclass(frozen=True)
class MessagePart:
    name: str
    type: Optional[str] = None


@dataclass(frozen=True)
class MessageDefinition:
    element_name: str
    message_name: str
    parts: Optional[Tuple[MessagePart, ...]] = None
    target_ns_alias: Optional[str] = None
    target_namespace: Optional[str] = None
    element_type: Optional[str] = None

    @property
    def is_void(self) -> bool:
        return self.parts is not None and len(self.parts) == 0


@dataclass(frozen=True)
class Operation:
    name: str
    input: Optional[MessageDefinition]
    output: Optional[MessageDefinition]
    port_type: str
    documentation: Optional[str] = None

    @property
    def style(self) -> BindingStyle:
        if self.input is not None and self.input.parts:
            return BindingStyle.RPC
        return BindingStyle.DOCUMENT


@dataclass(frozen=True)
class PortType:
    name: str
    operations: Dict[str, Operation]


@dataclass(frozen=True)
class Port:
    name: str
    binding: str
    location: Optional[str]
    soap_version: str
    operations: Dict[str, Operation]
    soap_actions: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Service:
    name: str
    ports: Dict[str, Port]


@dataclass(frozen=True)
class CapabilityDocument:
    target_namespace: str
    namespaces: Dict[str, str]
    messages: Dict[str, MessageDefinition]
    port_types: Dict[str, PortType]
    services: Dict[str, Service]
    schema: SchemaIndex = field(default_factory=SchemaIndex)
    ignored_namespaces: IgnoredNamespaces = field(default_factory=IgnoredNamespaces)

    def namespace_for(self, prefix: str) -> Optional[str]:
        return self.namespaces.get(prefix)

    def prefix_for(self, uri: str) -> Optional[str]:
        for prefix, value in self.namespaces.items():
            if value == uri:
                return prefix
        return None

    def find_operation(self, name: str) -> Optional[Operation]:
        """Return the first operation called ``name`` across all port types."""
        if not self.port_types:
            raise MalformedCapabilityDocument(
                "Capability document declares no port types"
            )
        for port_type in self.port_types.values():
            operation = port_type.operations.get(name)
            if operation is not None:
                return operation
        return None

    def iter_operations(self) -> Iterator[Tuple[Service, Port, Operation]]:
        for service in self.services.values():
            for port in service.ports.values():
                for operation in port.operations.values():
                    yield service, port, operation

    @cached_property
    def mapper(self) -> XmlMapper:
        return XmlMapper(
            self.namespaces,
            ignored_prefixes=self.ignored_namespaces.prefixes,
            schema=self.schema,
        )


# --- Parsing ---------------------------------------------------------------- #


def parse_capability_document(
    raw: str | bytes,
    *,
    ignored_namespaces: Optional[IgnoredNamespaces] = None,
) -> CapabilityDocument:
    """Parse WSDL 1.1 text into a CapabilityDocument."""
    try:
        root = parse_xml(raw)
    except etree.XMLSyntaxError as exc:
        raise MalformedCapabilityDocument(
            f"Capability document is not well-formed XML: {exc}"
        ) from exc

    if root.tag != _w("definitions"):
        raise MalformedCapabilityDocument(
            f"Expected wsdl:definitions root element, got {root.tag!r}"
        )

    target_ns = root.get("targetNamespace", "")
    namespaces = {prefix: uri for prefix, uri in root.nsmap.items() if prefix}

    schema = _index_schemas(root)
    messages = {
        msg.get("name"): _parse_message(msg, schema, target_ns)
        for msg in root.findall(_w("message"))
    }

    port_types: Dict[str, PortType] = {}
    for pt in root.findall(_w("portType")):
        name = pt.get("name")
        operations = {
            op.get("name"): _parse_operation(op, name, messages)
            for op in pt.findall(_w("operation"))
        }
        port_types[name] = PortType(name=name, operations=operations)

    bindings = {b.get("name"): b for b in root.findall(_w("binding"))}

    services: Dict[str, Service] = {}
    for svc in root.findall(_w("service")):
        ports: Dict[str, Port] = {}
        for port_el in svc.findall(_w("port")):
            port = _parse_port(port_el, bindings, port_types)
            ports[port.name] = port
        services[svc.get("name")] = Service(name=svc.get("name"), ports=ports)

    return CapabilityDocument(
        target_namespace=target_ns,
        namespaces=namespaces,
        messages=messages,
        port_types=port_types,
        services=services,
        schema=schema,
        ignored_namespaces=ignored_namespaces or IgnoredNamespaces(),
    )


def _split_qname(element: etree._Element, value: str) -> Tuple[Optional[str], Optional[str], str]:
    prefix, _, name = value.rpartition(":")
    uri = element.nsmap.get(prefix or None)
    return prefix or None, uri, name


def _sequence_names(node: etree._Element) -> Tuple[str, ...]:
    for group in ("sequence", "all", "choice"):
        container = node.find(_x(group))
        if container is not None:
            names = []
            for child in container.findall(_x("element")):
                name = child.get("name") or child.get("ref", "").rpartition(":")[2]
                if name:
                    names.append(name)
            return tuple(names)
    return ()


def _index_schemas(root: etree._Element) -> SchemaIndex:
    sequences: Dict[str, Tuple[str, ...]] = {}
    element_types: Dict[str, str] = {}
    child_types: Dict[str, str] = {}
    leaf_types: Dict[str, str] = {}
    qualified = set()

    for schema in root.iter(_x("schema")):
        tns = schema.get("targetNamespace")
        if tns and schema.get("elementFormDefault") == "qualified":
            qualified.add(tns)

        for ct in schema.findall(_x("complexType")):
            names = _sequence_names(ct)
            if names:
                sequences.setdefault(ct.get("name"), names)

        for el in schema.findall(_x("element")):
            name = el.get("name")
            if el.get("type"):
                element_types[name] = el.get("type").rpartition(":")[2]
            inline = el.find(_x("complexType"))
            if inline is not None:
                names = _sequence_names(inline)
                if names:
                    sequences.setdefault(name, names)

        for el in schema.iter(_x("element")):
            name = el.get("name")
            if not name:
                continue
            nested = el.getparent() is not schema
            inline = el.find(_x("complexType"))
            if nested and inline is not None:
                names = _sequence_names(inline)
                if names:
                    sequences.setdefault(name, names)

            type_ref = el.get("type")
            if not type_ref:
                continue
            _, uri, type_name = _split_qname(el, type_ref)
            if uri == XSD_NS:
                leaf_types.setdefault(name, type_name)
            elif nested:
                child_types.setdefault(name, type_name)

    return SchemaIndex(
        sequences=sequences,
        element_types=element_types,
        child_types=child_types,
        leaf_types=leaf_types,
        qualified_namespaces=frozenset(qualified),
    )


def _parse_message(
    msg: etree._Element, schema: SchemaIndex, target_ns: str
) -> MessageDefinition:
    name = msg.get("name")
    parts = msg.findall(_w("part"))

    for part in parts:
        element_ref = part.get("element")
        if element_ref:
            alias, uri, element_name = _split_qname(part, element_ref)
            return MessageDefinition(
                element_name=element_name,
                message_name=name,
                target_ns_alias=alias,
                target_namespace=uri,
                element_type=schema.element_types.get(element_name),
            )

    return MessageDefinition(
        element_name=name,
        message_name=name,
        parts=tuple(
            MessagePart(
                name=p.get("name"),
                type=(p.get("type") or "").rpartition(":")[2] or None,
            )
            for p in parts
        ),
        target_namespace=target_ns or None,
    )


def _parse_operation(
    op: etree._Element, port_type: str, messages: Dict[str, MessageDefinition]
) -> Operation:
    name = op.get("name")

    def message_for(direction: str) -> Optional[MessageDefinition]:
        node = op.find(_w(direction))
        if node is None:
            return None
        ref = node.get("message", "").rpartition(":")[2]
        if ref not in messages:
            raise MalformedCapabilityDocument(
                f"Operation {port_type}.{name} references unknown {direction} "
                f"message {ref!r}"
            )
        return messages[ref]

    doc = op.find(_w("documentation"))
    documentation = (doc.text or "").strip() if doc is not None else ""
    return Operation(
        name=name,
        input=message_for("input"),
        output=message_for("output"),
        port_type=port_type,
        documentation=documentation or None,
    )


def _soap_child(node: etree._Element, tag: str) -> Tuple[Optional[etree._Element], str]:
    found = node.find(f"{{{SOAP12_BINDING_NS}}}{tag}")
    if found is not None:
        return found, "1.2"
    return node.find(f"{{{SOAP_BINDING_NS}}}{tag}"), "1.1"


def _parse_port(
    port_el: etree._Element,
    bindings: Dict[str, etree._Element],
    port_types: Dict[str, PortType],
) -> Port:
    name = port_el.get("name")
    binding_name = port_el.get("binding", "").rpartition(":")[2]
    binding = bindings.get(binding_name)
    if binding is None:
        raise MalformedCapabilityDocument(
            f"Port {name!r} references unknown binding {binding_name!r}"
        )

    type_name = binding.get("type", "").rpartition(":")[2]
    port_type = port_types.get(type_name)
    if port_type is None:
        raise MalformedCapabilityDocument(
            f"Binding {binding_name!r} references unknown port type {type_name!r}"
        )

    _, soap_version = _soap_child(binding, "binding")
    soap_actions: Dict[str, str] = {}
    for bop in binding.findall(_w("operation")):
        soap_op, _ = _soap_child(bop, "operation")
        if soap_op is not None:
            soap_actions[bop.get("name")] = soap_op.get("soapAction", "")

    address, _ = _soap_child(port_el, "address")
    return Port(
        name=name,
        binding=binding_name,
        location=address.get("location") if address is not None else None,
        soap_version=soap_version,
        operations=dict(port_type.operations),
        soap_actions=soap_actions,
    )


__all__ = [
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
]
