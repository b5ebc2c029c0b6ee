import asyncio
import logging
import ssl
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

SOAP11_CONTENT_TYPE = "text/xml; charset=utf-8"
SOAP12_CONTENT_TYPE = "application/soap+xml; charset=utf-8"


class SoapClientError(Exception):
    """Base error for transport failures."""


class SoapHTTPError(SoapClientError):
    def __init__(
        self,
        *,
        status_code: int,
        method: str,
        url: str,
        message: str,
        response_text: Optional[str] = None,
    ):
        super().__init__(f"{status_code} {method} {url}: {message}")
        self.status_code = status_code
        self.method = method
        self.url = url
        self.response_text = response_text


class SoapFaultError(SoapClientError):
    """Raised when a response body carries a SOAP Fault."""

    def __init__(
        self,
        *,
        fault_code: Optional[str],
        fault_string: Optional[str],
        detail: Any = None,
    ):
        super().__init__(f"SOAP Fault {fault_code}: {fault_string}")
        self.fault_code = fault_code
        self.fault_string = fault_string
        self.detail = detail


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = 2  # total extra attempts
    backoff_base_seconds: float = 0.3  # 0.3, 0.6, 1.2...
    retry_statuses: frozenset[int] = frozenset({502, 503, 504})


class SoapClient:
    """
    Shared HTTP transport for WSDL documents and SOAP envelopes.
    - Fetches capability documents from http(s) URLs or local paths
    - Posts envelopes with the SOAP 1.1 / 1.2 content negotiation headers
    - Retries transient failures on document fetches only
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 10.0,
        retry: Optional[RetryConfig] = None,
        logger: Optional[logging.Logger] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.timeout_seconds = timeout_seconds
        self.retry = retry if retry is not None else RetryConfig()
        self.log = logger or logging.getLogger("soap_connector.client")

        self._owns_http = http is None
        self._retired: List[httpx.AsyncClient] = []
        self.http = http or self._build_http()

    def _build_http(self, verify: Any = True) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_seconds, verify=verify)

    async def aclose(self) -> None:
        for retired in self._retired:
            await retired.aclose()
        self._retired.clear()
        if self._owns_http:
            await self.http.aclose()

    async def __aenter__(self) -> "SoapClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def configure_tls(self, context: ssl.SSLContext) -> None:
        """Swap the owned HTTP client for one presenting a client certificate."""
        if not self._owns_http:
            raise SoapClientError(
                "Cannot configure client TLS on an externally supplied http client."
            )
        previous = self.http
        self.http = self._build_http(verify=context)
        self.http.auth = previous.auth
        self.http.headers.update(previous.headers)
        self._retired.append(previous)

    async def fetch_document(self, location: str) -> bytes:
        """
        Load a capability document.
        - http(s) locations are fetched with GET and retried on transient failures
        - anything else is read from the local filesystem
        """
        if not location.startswith(("http://", "https://")):
            try:
                return await asyncio.to_thread(Path(location).read_bytes)
            except OSError as exc:
                raise SoapClientError(
                    f"Cannot read capability document {location}: {exc}"
                ) from exc

        start = time.perf_counter()
        attempt = 0

        while True:
            try:
                resp = await self.http.get(location)
                duration_ms = int((time.perf_counter() - start) * 1000)

                self.log.debug(
                    "wsdl.fetch",
                    extra={
                        "url": location,
                        "status": resp.status_code,
                        "duration_ms": duration_ms,
                        "attempt": attempt,
                    },
                )

                if resp.status_code in self.retry.retry_statuses:
                    if attempt < self.retry.max_retries:
                        await asyncio.sleep(
                            self.retry.backoff_base_seconds * (2**attempt)
                        )
                        attempt += 1
                        continue

                if resp.status_code < 200 or resp.status_code >= 300:
                    raise self._to_http_error(resp, method="GET")

                return resp.content

            except (httpx.ConnectError, httpx.ReadTimeout, httpx.ConnectTimeout) as exc:
                if attempt < self.retry.max_retries:
                    await asyncio.sleep(self.retry.backoff_base_seconds * (2**attempt))
                    attempt += 1
                    continue
                raise SoapClientError(
                    f"Network/timeout error fetching {location}: {exc}"
                ) from exc

            except httpx.HTTPError as exc:
                raise SoapClientError(
                    f"HTTPX error fetching {location}: {exc}"
                ) from exc

    async def post_envelope(
        self,
        url: str,
        envelope: str,
        *,
        soap_action: str = "",
        soap_version: str = "1.1",
        operation: Optional[str] = None,
    ) -> str:
        """
        Post a SOAP envelope and return the response text.
        - Retries are NOT applied; operations are not assumed idempotent.
        - HTTP 500 responses are returned so the caller can surface the Fault.
        """
        headers: Dict[str, str] = {}
        if soap_version == "1.2":
            content_type = SOAP12_CONTENT_TYPE
            if soap_action:
                content_type += f'; action="{soap_action}"'
            headers["Content-Type"] = content_type
        else:
            headers["Content-Type"] = SOAP11_CONTENT_TYPE
            headers["SOAPAction"] = f'"{soap_action}"'

        start = time.perf_counter()
        try:
            resp = await self.http.post(
                url, content=envelope.encode("utf-8"), headers=headers
            )
        except (httpx.ConnectError, httpx.ReadTimeout, httpx.ConnectTimeout) as exc:
            raise SoapClientError(
                f"Network/timeout error calling POST {url}: {exc}"
            ) from exc
        except httpx.HTTPError as exc:
            raise SoapClientError(f"HTTPX error calling POST {url}: {exc}") from exc

        duration_ms = int((time.perf_counter() - start) * 1000)
        self.log.debug(
            "soap.call",
            extra={
                "operation": operation,
                "url": url,
                "status": resp.status_code,
                "duration_ms": duration_ms,
            },
        )

        if resp.status_code == 500 and resp.content:
            return resp.text
        if resp.status_code < 200 or resp.status_code >= 300:
            raise self._to_http_error(resp, method="POST")
        return resp.text

    def _to_http_error(self, resp: httpx.Response, *, method: str) -> SoapHTTPError:
        return SoapHTTPError(
            status_code=resp.status_code,
            method=method,
            url=str(resp.request.url),
            message=resp.reason_phrase or "request failed",
            response_text=(resp.text or "")[:500],
        )
