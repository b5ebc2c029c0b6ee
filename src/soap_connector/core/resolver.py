from __future__ import annotations

from typing import Container, Mapping, Optional

from pydantic import BaseModel, ConfigDict


class OperationOverride(BaseModel):
    """Pin an exposed method name to one service/port/operation triple."""

    service: str
    port: str
    operation: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="ignore")

    def matches(self, name: str, service: str, port: str, operation: str) -> bool:
        if self.service != service or self.port != port:
            return False
        if self.operation is None:
            return name == operation
        return self.operation == operation


def qualified_name(service: str, port: str, operation: str) -> str:
    return f"{service}_{port}_{operation}"


def resolve_name(
    service: str,
    port: str,
    operation: str,
    existing: Container[str],
    overrides: Optional[Mapping[str, OperationOverride]] = None,
) -> str:
    """
    Pick the exposed method name for an operation.

    Overrides win; otherwise a name already taken falls back to
    ``service_port_operation``.
    """
    for name, override in (overrides or {}).items():
        if override.matches(name, service, port, operation):
            return name

    if operation in existing:
        return qualified_name(service, port, operation)
    return operation


__all__ = ["OperationOverride", "qualified_name", "resolve_name"]
