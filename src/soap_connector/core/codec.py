from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Optional

from .capabilities import CapabilityDocument, Operation
from .errors import MethodNotFound

DEFAULT_RESPONSE_SUFFIXES = ("Response", "Output", "Out")

log = logging.getLogger("soap_connector.codec")


class MessageCodec:
    """
    Translate between JSON-like payloads and the XML of one capability document.
    - RPC operations serialize as an accessor per named part
    - Document operations serialize as the declared body element
    - Responses are located by output name, then input name, then the
      output name without its response suffix
    """

    def __init__(
        self,
        document: CapabilityDocument,
        *,
        response_suffixes: Iterable[str] = DEFAULT_RESPONSE_SUFFIXES,
    ):
        self.document = document
        suffixes = sorted({s for s in response_suffixes if s}, key=len, reverse=True)
        self._suffix_pattern: Optional[re.Pattern[str]] = (
            re.compile("(?:" + "|".join(map(re.escape, suffixes)) + ")$")
            if suffixes
            else None
        )

    def resolve(self, operation: Operation | str) -> Operation:
        if not isinstance(operation, str):
            return operation
        found = self.document.find_operation(operation)
        if found is None:
            raise MethodNotFound(operation)
        return found

    def json_to_xml(self, operation: Operation | str, payload: Any) -> str:
        operation = self.resolve(operation)
        if not payload:
            return ""

        message = operation.input
        if message is None or message.is_void:
            return ""

        mapper = self.document.mapper
        if message.parts:
            tns = self.document.target_namespace
            alias = self.document.prefix_for(tns) or "tns"
            return mapper.object_to_rpc_xml(operation.name, payload, alias, tns)
        if isinstance(payload, str):
            # caller-supplied literal XML
            return payload
        return mapper.object_to_document_xml(
            message.element_name,
            payload,
            message.target_ns_alias,
            message.target_namespace,
            message.element_type,
        )

    def xml_to_json(self, operation: Operation | str, xml: str | bytes | None) -> Any:
        operation = self.resolve(operation)
        if not xml:
            return {}

        output = operation.output
        if output is not None and output.is_void:
            return {}

        body = self.document.mapper.xml_to_object(xml).get("Body") or {}
        for name in self._candidate_names(operation):
            if name in body:
                return body[name]

        log.debug(
            "No response element matched",
            extra={"operation": operation.name},
        )
        return {}

    def _candidate_names(self, operation: Operation) -> list[str]:
        names = []
        if operation.output is not None:
            names.append(operation.output.element_name)
        if operation.input is not None:
            names.append(operation.input.element_name)
        if operation.output is not None and self._suffix_pattern is not None:
            stripped = self._suffix_pattern.sub("", operation.output.element_name, count=1)
            if stripped and stripped not in names:
                names.append(stripped)
        return names


__all__ = ["MessageCodec", "DEFAULT_RESPONSE_SUFFIXES"]
