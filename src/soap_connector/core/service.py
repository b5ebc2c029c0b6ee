from __future__ import annotations

from typing import Any, Iterable, List, Optional

from .capabilities import CapabilityDocument, Operation, Port
from .client import SoapClient, SoapClientError
from .codec import DEFAULT_RESPONSE_SUFFIXES, MessageCodec
from .security import Security
from .xmlobject import build_envelope


class ServiceClient:
    """
    A transport bound to one parsed capability document.
    Holds the single active credential and the extra envelope headers
    applied to every call.
    """

    def __init__(
        self,
        transport: SoapClient,
        document: CapabilityDocument,
        *,
        endpoint: Optional[str] = None,
        response_suffixes: Iterable[str] = DEFAULT_RESPONSE_SUFFIXES,
    ):
        self.transport = transport
        self.document = document
        self.endpoint = endpoint
        self.codec = MessageCodec(document, response_suffixes=response_suffixes)
        self.security: Optional[Security] = None
        self.soap_headers: List[str] = []

    def set_security(self, security: Security) -> None:
        security.configure(self.transport)
        self.security = security

    def add_soap_header(self, header: str) -> None:
        self.soap_headers.append(header)

    def _headers(self, soap_version: str, extra: Iterable[str]) -> List[str]:
        headers: List[str] = []
        if self.security is not None:
            fragment = self.security.header_xml(soap_version)
            if fragment:
                headers.append(fragment)
        headers.extend(self.soap_headers)
        headers.extend(extra)
        return headers

    async def invoke(
        self,
        port: Port,
        operation: Operation,
        payload: Any = None,
        *,
        headers: Iterable[str] = (),
    ) -> Any:
        url = self.endpoint or port.location
        if not url:
            raise SoapClientError(
                f"No endpoint for {port.name}.{operation.name}: "
                "configure a url or declare soap:address in the document."
            )

        body = self.codec.json_to_xml(operation, payload)
        envelope = build_envelope(
            body,
            self._headers(port.soap_version, headers),
            soap_version=port.soap_version,
        )
        text = await self.transport.post_envelope(
            url,
            envelope,
            soap_action=port.soap_actions.get(operation.name, ""),
            soap_version=port.soap_version,
            operation=operation.name,
        )
        return self.codec.xml_to_json(operation, text)


__all__ = ["ServiceClient"]
