import logging
from typing import Any, Dict

from soap_connector.core.operations import OperationBinding, OperationTable

log = logging.getLogger("soap_connector.registry")


def _describe(binding: OperationBinding) -> str:
    op = binding.operation
    summary = op.documentation or f"Invoke {binding.service}.{binding.port}.{op.name}"
    return f"{summary} ({op.style.value} style)"


def _wrap_binding(binding: OperationBinding):
    """Return a tool function taking the request body as one ``input`` object."""

    async def wrapped(input: Dict[str, Any]):
        return await binding(input)

    wrapped.__name__ = binding.name
    wrapped.__doc__ = _describe(binding)
    return wrapped


def register_operation_tools(app, table: OperationTable) -> list[str]:
    """
    Register every remoting-enabled binding on an app exposing a .tool decorator.
    Bindings without remoting metadata stay private to Python callers.
    """
    if not hasattr(app, "tool"):
        raise TypeError("app must expose a 'tool' decorator")

    registered: list[str] = []
    for name, binding in table.items():
        if binding.remoting is None or not binding.remoting.shared:
            log.debug("Skipping %s: remoting disabled", name)
            continue

        app.tool(name=name, description=_describe(binding))(_wrap_binding(binding))
        registered.append(name)
        log.info("Registered tool: %s (%s.%s)", name, binding.service, binding.port)

    return registered


__all__ = ["register_operation_tools"]
