"""Conversion between JSON-like Python values and SOAP XML, built on lxml."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from lxml import etree

from .client import SoapFaultError

XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
SOAP11_ENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"
SOAP12_ENV_NS = "http://www.w3.org/2003/05/soap-envelope"

ATTRIBUTES_KEY = "$attributes"
VALUE_KEY = "$value"

DEFAULT_IGNORED_PREFIXES = ("tns", "targetNamespace", "typedNamespace")

_ENVELOPE_TEMPLATE = (
    '<?xml version="1.0" encoding="utf-8"?>'
    '<soap:Envelope xmlns:soap="{namespace}">'
    "{header}"
    "<soap:Body>{body}</soap:Body>"
    "</soap:Envelope>"
)

_INT_TYPES = frozenset(
    {
        "int",
        "integer",
        "long",
        "short",
        "byte",
        "nonNegativeInteger",
        "positiveInteger",
        "negativeInteger",
        "nonPositiveInteger",
        "unsignedInt",
        "unsignedLong",
        "unsignedShort",
        "unsignedByte",
    }
)
_FLOAT_TYPES = frozenset({"float", "double", "decimal"})


def _parser() -> etree.XMLParser:
    return etree.XMLParser(
        resolve_entities=False, no_network=True, remove_blank_text=True
    )


def parse_xml(source: str | bytes) -> etree._Element:
    if isinstance(source, str):
        source = source.encode("utf-8")
    return etree.fromstring(source, parser=_parser())


def local_name(tag: str) -> str:
    return etree.QName(tag).localname


def format_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_envelope(
    body: str, headers: Iterable[str] = (), *, soap_version: str = "1.1"
) -> str:
    """Wrap a body fragment and raw header fragments in a SOAP envelope."""
    namespace = SOAP12_ENV_NS if soap_version == "1.2" else SOAP11_ENV_NS
    fragments = [h for h in headers if h]
    header = f"<soap:Header>{''.join(fragments)}</soap:Header>" if fragments else ""
    return _ENVELOPE_TEMPLATE.format(namespace=namespace, header=header, body=body)


@dataclass(frozen=True)
class SchemaIndex:
    """What the serializer needs to know about the document's XML schemas."""

    # element or complexType name -> ordered child element names
    sequences: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    # top-level element name -> local name of its declared type
    element_types: Dict[str, str] = field(default_factory=dict)
    # nested element name -> local name of its declared schema type
    child_types: Dict[str, str] = field(default_factory=dict)
    # element name -> XSD built-in type local name
    leaf_types: Dict[str, str] = field(default_factory=dict)
    # target namespaces declared elementFormDefault="qualified"
    qualified_namespaces: frozenset[str] = frozenset()

    def sequence_for(
        self, name: str, type_name: Optional[str] = None
    ) -> Optional[Tuple[str, ...]]:
        """Child order for element ``name``, resolved through its type first."""
        type_name = type_name or self.child_types.get(name) or self.element_types.get(name)
        return self.sequences.get(type_name or "") or self.sequences.get(name)


class XmlMapper:
    """
    Serialize objects into XML and parse XML back into objects.

    Keys map to child elements, lists repeat an element, ``None`` renders as
    ``xsi:nil``. ``$attributes`` carries attributes and ``$value`` carries text
    next to attributes.
    """

    def __init__(
        self,
        namespaces: Mapping[str, str] | None = None,
        *,
        ignored_prefixes: Iterable[str] = DEFAULT_IGNORED_PREFIXES,
        schema: SchemaIndex | None = None,
    ):
        self.namespaces = dict(namespaces or {})
        self.ignored_prefixes = frozenset(ignored_prefixes)
        self.schema = schema or SchemaIndex()

    # --- object -> XML ------------------------------------------------------ #

    def object_to_rpc_xml(
        self, name: str, params: Any, alias: Optional[str], namespace: Optional[str]
    ) -> str:
        root = self._root(name, alias, namespace)
        # RPC/literal accessors are unqualified
        self._fill(root, params, None, order=None)
        return etree.tostring(root, encoding="unicode")

    def object_to_document_xml(
        self,
        name: str,
        params: Any,
        alias: Optional[str],
        namespace: Optional[str],
        type_name: Optional[str] = None,
    ) -> str:
        root = self._root(name, alias, namespace)
        child_ns = namespace if namespace in self.schema.qualified_namespaces else None
        order = self.schema.sequence_for(name, type_name)
        self._fill(root, params, child_ns, order=order)
        return etree.tostring(root, encoding="unicode")

    def object_to_xml(
        self,
        obj: Any,
        name: str,
        prefix: Optional[str] = None,
        namespace: Optional[str] = None,
    ) -> str:
        """Serialize a free-standing element, e.g. an extra envelope header."""
        root = self._root(name, prefix, namespace)
        self._fill(root, obj, namespace, order=None)
        return etree.tostring(root, encoding="unicode")

    def _root(
        self, name: str, alias: Optional[str], namespace: Optional[str]
    ) -> etree._Element:
        if not namespace:
            return etree.Element(name)
        return etree.Element(f"{{{namespace}}}{name}", nsmap={alias or "tns": namespace})

    def _fill(
        self,
        element: etree._Element,
        value: Any,
        namespace: Optional[str],
        *,
        order: Optional[Tuple[str, ...]],
    ) -> None:
        if value is None:
            element.set(f"{{{XSI_NS}}}nil", "true")
            return
        if not isinstance(value, Mapping):
            element.text = format_scalar(value)
            return

        for key, item in self._ordered(value, order):
            if key == ATTRIBUTES_KEY:
                for attr, attr_value in item.items():
                    element.set(attr, format_scalar(attr_value))
            elif key == VALUE_KEY:
                element.text = format_scalar(item)
            else:
                self._append(element, key, item, namespace)

    def _append(
        self,
        parent: etree._Element,
        key: str,
        value: Any,
        namespace: Optional[str],
    ) -> None:
        if isinstance(value, (list, tuple)):
            for item in value:
                self._append(parent, key, item, namespace)
            return
        tag, child_ns = self._qualify(key, namespace)
        child = etree.SubElement(parent, tag)
        order = self.schema.sequence_for(key.rpartition(":")[2])
        self._fill(child, value, child_ns, order=order)

    def _qualify(self, key: str, namespace: Optional[str]) -> Tuple[str, Optional[str]]:
        prefix, sep, name = key.rpartition(":")
        if sep and prefix not in self.ignored_prefixes:
            uri = self.namespaces.get(prefix)
            if uri:
                return f"{{{uri}}}{name}", uri
        if sep:
            key = name
        if namespace:
            return f"{{{namespace}}}{key}", namespace
        return key, None

    @staticmethod
    def _ordered(
        value: Mapping[str, Any], order: Optional[Tuple[str, ...]]
    ) -> list[Tuple[str, Any]]:
        items = list(value.items())
        if not order:
            return items
        position = {name: i for i, name in enumerate(order)}
        return sorted(
            items,
            key=lambda kv: position.get(kv[0].rpartition(":")[2], len(position)),
        )

    # --- XML -> object ------------------------------------------------------ #

    def xml_to_object(self, xml: str | bytes) -> Dict[str, Any]:
        """
        Parse an envelope into ``{"Header": ..., "Body": {...}}``.

        A bare element is treated as the only child of an implicit Body.
        Raises SoapFaultError when the Body carries a Fault.
        """
        root = parse_xml(xml)
        if local_name(root.tag) != "Envelope":
            return {"Body": {local_name(root.tag): self._to_value(root)}}

        result: Dict[str, Any] = {}
        for section in root:
            if not isinstance(section.tag, str):
                continue
            value = self._to_value(section)
            result[local_name(section.tag)] = value if isinstance(value, dict) else {}

        body = result.setdefault("Body", {})
        if "Fault" in body:
            raise _fault_error(body["Fault"])
        return result

    def _to_value(self, element: etree._Element) -> Any:
        if element.get(f"{{{XSI_NS}}}nil") in ("true", "1"):
            return None

        attributes = {
            local_name(k): v
            for k, v in element.attrib.items()
            if etree.QName(k).namespace != XSI_NS
        }
        children = [c for c in element if isinstance(c.tag, str)]

        if not children:
            text = self._coerce(local_name(element.tag), element.text or "")
            if not attributes:
                return text
            node: Dict[str, Any] = {ATTRIBUTES_KEY: attributes}
            if text != "":
                node[VALUE_KEY] = text
            return node

        obj: Dict[str, Any] = {}
        if attributes:
            obj[ATTRIBUTES_KEY] = attributes
        for child in children:
            key = local_name(child.tag)
            value = self._to_value(child)
            if key not in obj:
                obj[key] = value
            elif isinstance(obj[key], list):
                obj[key].append(value)
            else:
                obj[key] = [obj[key], value]
        return obj

    def _coerce(self, name: str, text: str) -> Any:
        xsd_type = self.schema.leaf_types.get(name)
        if not xsd_type or text == "":
            return text
        try:
            if xsd_type in _INT_TYPES:
                return int(text)
            if xsd_type in _FLOAT_TYPES:
                return float(text)
        except ValueError:
            return text
        if xsd_type == "boolean" and text in ("true", "false", "1", "0"):
            return text in ("true", "1")
        return text


def _fault_error(fault: Any) -> SoapFaultError:
    if not isinstance(fault, dict):
        return SoapFaultError(fault_code=None, fault_string=str(fault))
    if "faultcode" in fault or "faultstring" in fault:
        return SoapFaultError(
            fault_code=fault.get("faultcode"),
            fault_string=fault.get("faultstring"),
            detail=fault.get("detail"),
        )
    # SOAP 1.2
    code = fault.get("Code")
    reason = fault.get("Reason")
    return SoapFaultError(
        fault_code=_text(code.get("Value") if isinstance(code, dict) else code),
        fault_string=_text(reason.get("Text") if isinstance(reason, dict) else reason),
        detail=fault.get("Detail"),
    )


def _text(value: Any) -> Optional[str]:
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, dict):
        value = value.get(VALUE_KEY)
    return None if value is None else str(value)


__all__ = [
    "ATTRIBUTES_KEY",
    "VALUE_KEY",
    "DEFAULT_IGNORED_PREFIXES",
    "SchemaIndex",
    "XmlMapper",
    "build_envelope",
    "format_scalar",
    "local_name",
    "parse_xml",
]
