"""The exposed operation table: one bound callable per service/port/operation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterator,
    Mapping,
    Optional,
    Tuple,
)

from .capabilities import Operation
from .codec import MessageCodec
from .resolver import OperationOverride, resolve_name
from .service import ServiceClient

log = logging.getLogger("soap_connector.operations")

# Names the table's own codec utilities occupy when mixed into a model.
RESERVED_NAMES = frozenset({"json_to_xml", "xml_to_json"})


@dataclass(frozen=True)
class RemotingMetadata:
    """Declarative call shape for a host framework's dispatch layer."""

    shared: bool = True
    accepts: Tuple[Dict[str, Any], ...] = field(
        default_factory=lambda: (
            {
                "arg": "input",
                "type": "object",
                "required": True,
                "http": {"source": "body"},
            },
        )
    )
    returns: Dict[str, Any] = field(
        default_factory=lambda: {"arg": "output", "type": "object", "root": True}
    )


@dataclass(frozen=True, eq=False)
class OperationBinding:
    name: str
    service: str
    port: str
    operation: Operation
    invoke: Callable[..., Awaitable[Any]]
    codec: MessageCodec
    remoting: Optional[RemotingMetadata] = None

    async def __call__(self, payload: Any = None, **kwargs: Any) -> Any:
        return await self.invoke(payload, **kwargs)

    def json_to_xml(self, payload: Any) -> str:
        return self.codec.json_to_xml(self.operation, payload)

    def xml_to_json(self, xml: str | bytes | None) -> Any:
        return self.codec.xml_to_json(self.operation, xml)


class OperationTable(Mapping[str, OperationBinding]):
    """Read-only mapping of exposed names to bindings, plus ad hoc codec entry points."""

    def __init__(self, bindings: Mapping[str, OperationBinding], codec: MessageCodec):
        self._bindings = dict(bindings)
        self.codec = codec

    def __getitem__(self, name: str) -> OperationBinding:
        return self._bindings[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def __repr__(self) -> str:
        return f"OperationTable({sorted(self._bindings)!r})"

    def json_to_xml(self, operation: Operation | str, payload: Any) -> str:
        return self.codec.json_to_xml(operation, payload)

    def xml_to_json(self, operation: Operation | str, xml: str | bytes | None) -> Any:
        return self.codec.xml_to_json(operation, xml)


def _invoker(client: ServiceClient, port, operation) -> Callable[..., Awaitable[Any]]:
    async def invoke(payload: Any = None, **kwargs: Any) -> Any:
        return await client.invoke(port, operation, payload, **kwargs)

    invoke.__name__ = operation.name
    invoke.__doc__ = operation.documentation
    return invoke


def build_operation_table(
    client: ServiceClient,
    *,
    overrides: Optional[Mapping[str, OperationOverride]] = None,
    remoting_enabled: bool = False,
) -> OperationTable:
    """Bind every operation of the client's document under its exposed name."""
    bindings: Dict[str, OperationBinding] = {}

    for service, port, operation in client.document.iter_operations():
        log.debug(
            "Adding method",
            extra={
                "service": service.name,
                "port": port.name,
                "operation": operation.name,
            },
        )
        name = resolve_name(
            service.name,
            port.name,
            operation.name,
            bindings.keys() | RESERVED_NAMES,
            overrides,
        )
        if name in bindings:
            log.warning(
                "Method name %s already bound; %s.%s.%s replaces it",
                name,
                service.name,
                port.name,
                operation.name,
            )

        bindings[name] = OperationBinding(
            name=name,
            service=service.name,
            port=port.name,
            operation=operation,
            invoke=_invoker(client, port, operation),
            codec=client.codec,
            remoting=RemotingMetadata() if remoting_enabled else None,
        )

    return OperationTable(bindings, client.codec)


def mixin(model: Any, table: OperationTable) -> None:
    """Attach the table's bindings and codec utilities to a consumer model."""
    for name, binding in table.items():
        setattr(model, name, binding)
    model.json_to_xml = table.json_to_xml
    model.xml_to_json = table.xml_to_json


__all__ = [
    "OperationBinding",
    "OperationTable",
    "RemotingMetadata",
    "RESERVED_NAMES",
    "build_operation_table",
    "mixin",
]
