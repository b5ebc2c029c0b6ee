"""Connection lifecycle: fetch the capability document once and publish the table."""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .capabilities import CapabilityDocument, parse_capability_document
from .client import SoapClient
from .config import ConnectorSettings, SoapHeaderSpec
from .errors import ConnectionFailed, ConnectionTimeout, NotConnected
from .logging import log_event
from .operations import OperationTable, build_operation_table, mixin
from .security import bind_security
from .service import ServiceClient

log = logging.getLogger("soap_connector.connector")

ConnectCallback = Callable[[Optional[BaseException], Optional[OperationTable]], Any]


class ConnectionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


class ConnectionEvents:
    """Listener registry for the ``connected`` and ``error`` lifecycle events."""

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Callable[..., Any]]] = {}

    def once(self, event: str, listener: Callable[..., Any]) -> None:
        self._listeners.setdefault(event, []).append(listener)

    def remove(self, event: str, listener: Callable[..., Any]) -> None:
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def emit(self, event: str, *args: Any) -> None:
        # one-shot: drop the listeners before notifying them
        for listener in self._listeners.pop(event, []):
            listener(*args)


class SoapConnector:
    """
    Expose the operations of a remote SOAP service as an OperationTable.

    ``connect()`` is idempotent: concurrent callers share one in-flight
    attempt and a connected connector returns its table without touching the
    network. Callbacks are always scheduled on the event loop, never run
    inline.
    """

    def __init__(
        self,
        settings: Union[ConnectorSettings, Mapping[str, Any]],
        *,
        transport: Optional[SoapClient] = None,
    ):
        if not isinstance(settings, ConnectorSettings):
            settings = ConnectorSettings.model_validate(dict(settings))
        self.settings = settings
        self.transport = transport or SoapClient(timeout_seconds=settings.timeout_seconds)
        self.events = ConnectionEvents()

        self.state = ConnectionState.DISCONNECTED
        self.document: Optional[CapabilityDocument] = None
        self.client: Optional[ServiceClient] = None
        self.table: Optional[OperationTable] = None

        self._pending: Optional[asyncio.Task] = None
        self._models: Dict[str, Any] = {}

    @property
    def capability_location(self) -> str:
        return self.settings.capability_location

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def connecting(self) -> bool:
        return self.state is ConnectionState.CONNECTING

    # --- Connect ------------------------------------------------------------ #

    async def connect(
        self, callback: Optional[ConnectCallback] = None
    ) -> Optional[OperationTable]:
        """
        Connect and return the operation table.

        Without a callback, failures raise ConnectionFailed. With a callback,
        ``callback(error, table)`` is scheduled on the loop instead and
        failures are not raised.
        """
        loop = asyncio.get_running_loop()

        if self.state is ConnectionState.CONNECTED:
            table = self.table
            if callback is not None:
                loop.call_soon(callback, None, table)
            await asyncio.sleep(0)
            return table

        attempt = self._ensure_attempt()
        try:
            table = await asyncio.shield(attempt)
        except ConnectionFailed as exc:
            if callback is None:
                raise
            loop.call_soon(callback, exc, None)
            return None

        if callback is not None:
            loop.call_soon(callback, None, table)
        return table

    def _ensure_attempt(self) -> asyncio.Task:
        if self._pending is None:
            self.state = ConnectionState.CONNECTING
            self._pending = asyncio.ensure_future(self._establish())
            # failures are delivered to waiters; keep the task from warning
            self._pending.add_done_callback(
                lambda t: t.cancelled() or t.exception()
            )
        return self._pending

    async def _establish(self) -> OperationTable:
        location = self.capability_location
        log.debug("Reading capability document", extra={"location": location})
        try:
            raw = await self.transport.fetch_document(location)
            document = parse_capability_document(
                raw, ignored_namespaces=self.settings.ignored_namespaces.to_model()
            )
            client = ServiceClient(
                self.transport,
                document,
                endpoint=self.settings.url,
                response_suffixes=self.settings.response_suffixes,
            )

            security = self.settings.security_config()
            if security is not None:
                bind_security(client, security)
            self._apply_headers(client)

            table = build_operation_table(
                client,
                overrides=self.settings.operations,
                remoting_enabled=self.settings.remoting_enabled,
            )
        except Exception as exc:
            self._pending = None
            self.state = ConnectionState.FAILED
            error = ConnectionFailed(
                f"Cannot connect to {location}: {exc}", original_error=exc
            )
            log_event(
                "connector.failed",
                level=logging.ERROR,
                location=location,
                state=self.state.value,
                error=str(exc),
            )
            self.events.emit("error", error)
            raise error from exc

        # publish only once the table is complete
        self.document = document
        self.client = client
        self.table = table
        self._pending = None
        self.state = ConnectionState.CONNECTED

        for name, model in self._models.items():
            log.debug("Mixing methods into %s", name)
            mixin(model, table)

        log_event(
            "connector.connected",
            location=location,
            state=self.state.value,
            operations=len(table),
        )
        self.events.emit("connected", table)
        return table

    def _apply_headers(self, client: ServiceClient) -> None:
        mapper = client.document.mapper
        for header in self.settings.soap_headers:
            log.debug("Adding soap header %r", header)
            if isinstance(header, SoapHeaderSpec):
                client.add_soap_header(
                    mapper.object_to_xml(
                        header.element, header.name, header.prefix, header.namespace
                    )
                )
            else:
                client.add_soap_header(header)

    # --- Readiness ---------------------------------------------------------- #

    async def await_ready(self, timeout_ms: Optional[int] = None) -> None:
        """
        Wait until connected, starting a connect attempt if none is running.

        Raises ConnectionTimeout when neither a ``connected`` nor an ``error``
        event arrives within ``timeout_ms`` (default: settings.connection_timeout),
        or the ConnectionFailed delivered by the ``error`` event.
        """
        if self.state is ConnectionState.CONNECTED:
            await asyncio.sleep(0)
            return

        if timeout_ms is None:
            timeout_ms = self.settings.connection_timeout
        waiter: asyncio.Future = asyncio.get_running_loop().create_future()

        def on_connected(_table: OperationTable) -> None:
            if not waiter.done():
                waiter.set_result(None)

        def on_error(exc: BaseException) -> None:
            if not waiter.done():
                waiter.set_exception(exc)

        self.events.once("connected", on_connected)
        self.events.once("error", on_error)
        try:
            if self.state is not ConnectionState.CONNECTING:
                self._ensure_attempt()
            await asyncio.wait_for(waiter, timeout_ms / 1000)
        except asyncio.TimeoutError:
            raise ConnectionTimeout(timeout_ms) from None
        finally:
            self.events.remove("connected", on_connected)
            self.events.remove("error", on_error)

    async def ping(self) -> None:
        """Health check: raises NotConnected, keeping the cause in ``original_error``."""
        try:
            await self.await_ready()
        except (ConnectionFailed, ConnectionTimeout) as exc:
            raise NotConnected(exc) from exc

    # --- Host framework hooks ----------------------------------------------- #

    def define(self, name: str, model: Any) -> None:
        """Register a consumer model; it receives the table on every build."""
        self._models[name] = model
        if self.table is not None:
            mixin(model, self.table)

    async def aclose(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        await self.transport.aclose()
        self.state = ConnectionState.DISCONNECTED
        self.document = None
        self.client = None
        self.table = None

    async def __aenter__(self) -> "SoapConnector":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


__all__ = [
    "ConnectionEvents",
    "ConnectionState",
    "SoapConnector",
]
