from __future__ import annotations

import asyncio
import os

from mcp.server.fastmcp import FastMCP

from soap_connector.core.config import ConnectorSettings, load_env_config
from soap_connector.core.connector import SoapConnector
from soap_connector.core.logging import setup_logging
from soap_connector.registry import register_operation_tools


def create_settings_from_env() -> ConnectorSettings:
    try:
        return load_env_config(remoting_enabled=True)
    except ValueError as exc:
        raise ValueError(
            "Missing SOAP_CONNECTOR_URL or SOAP_CONNECTOR_WSDL in environment."
        ) from exc


# --- Entry point ----------------------------------------------------------- #


async def main() -> None:
    setup_logging(os.getenv("SOAP_CONNECTOR_LOG_LEVEL", "INFO"))
    settings = create_settings_from_env()

    async with SoapConnector(settings) as connector:
        table = await connector.connect()

        app = FastMCP("soap-connector")
        register_operation_tools(app, table)

        await app.run_stdio_async()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
