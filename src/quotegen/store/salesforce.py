"""
Salesforce Data API adapter for record store integration.

Provides queries and composite commits via the Salesforce REST API.
"""

from typing import Any, Dict, List, Optional

import httpx
import structlog

from quotegen.config import AppConfig, get_config
from quotegen.context import ClientContext
from quotegen.core.errors import (
    BackingStoreError,
    ProtocolError,
    StoreAuthenticationError,
    TransportError,
)
from quotegen.core.result import RecordError
from quotegen.store.interface import QueryResult, Record, RecordStore

logger = structlog.get_logger(__name__)


def parse_store_errors(response: httpx.Response) -> List[RecordError]:
    """Parse the error list Salesforce returns with a failed request."""
    try:
        data = response.json()
    except ValueError:
        return [RecordError(error_code=f"HTTP_{response.status_code}", message=response.text)]

    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        return [RecordError(error_code=f"HTTP_{response.status_code}", message=str(data))]
    return [RecordError.from_dict(item) for item in data]


class SalesforceStore(RecordStore):
    """
    Salesforce REST API adapter.

    Implements the RecordStore interface using the query and composite
    resources. One connection pool is shared by every request; the org URL,
    API version and bearer token come from each call's ClientContext.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the Salesforce adapter.

        Args:
            config: Application configuration. Uses global config if not provided.
            transport: Custom httpx transport (used by tests)
        """
        self.config = config or get_config()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def connect(self) -> None:
        """Create the shared HTTP client."""
        if self._client is not None:
            return

        self._client = httpx.AsyncClient(
            timeout=self.config.request_timeout_seconds,
            transport=self._transport,
            headers={"Accept": "application/json"},
        )
        logger.info("salesforce_store_connected")

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("salesforce_store_disconnected")

    def api_version(self, context: ClientContext) -> str:
        version = context.api_version or self.config.api_version
        return version[1:] if version.lower().startswith("v") else version

    def data_path(self, context: ClientContext) -> str:
        """Get the versioned Data API path prefix, e.g. /services/data/v62.0"""
        return f"/services/data/v{self.api_version(context)}"

    async def _request(
        self,
        method: str,
        path: str,
        context: ClientContext,
        **kwargs,
    ) -> httpx.Response:
        """Make an API request against the caller's org."""
        if not self._client:
            await self.connect()

        url = f"{context.org_domain_url}{path}"
        headers = {"Authorization": f"Bearer {context.access_token}"}

        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            logger.error("salesforce_request_timeout", path=path, **context.log_context())
            raise TransportError(f"Salesforce request timed out: {e}", cause=e)
        except httpx.RequestError as e:
            logger.error("salesforce_request_error", path=path, error=str(e), **context.log_context())
            raise TransportError(f"Salesforce request failed: {e}", cause=e)

        if response.status_code == 401:
            errors = parse_store_errors(response)
            logger.warning("salesforce_unauthorized", path=path, **context.log_context())
            raise StoreAuthenticationError(
                "; ".join(str(e) for e in errors) or "Salesforce rejected the credentials",
                errors=errors,
                status_code=401,
            )

        if response.status_code >= 500:
            logger.error(
                "salesforce_server_error",
                path=path,
                status=response.status_code,
                **context.log_context(),
            )
            raise TransportError(
                f"Salesforce returned HTTP {response.status_code}; outcome unknown"
            )

        if response.status_code >= 300:
            errors = parse_store_errors(response)
            logger.error(
                "salesforce_request_failed",
                path=path,
                status=response.status_code,
                errors=[str(e) for e in errors],
                **context.log_context(),
            )
            raise BackingStoreError(
                "; ".join(str(e) for e in errors),
                errors=errors,
                status_code=response.status_code,
            )

        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ProtocolError(f"Salesforce returned a non-JSON body: {e}")

    @staticmethod
    def _parse_record(data: Dict[str, Any]) -> Record:
        attributes = data.get("attributes") or {}
        fields = {k: v for k, v in data.items() if k != "attributes"}
        return Record(record_type=attributes.get("type"), fields=fields)

    async def query(self, soql: str, context: ClientContext) -> QueryResult:
        """Run a SOQL query, following every result page."""
        response = await self._request(
            "GET",
            f"{self.data_path(context)}/query",
            context,
            params={"q": soql},
        )
        data = self._json(response)

        records: List[Record] = []
        total_size = int(data.get("totalSize", 0))

        while True:
            records.extend(self._parse_record(item) for item in data.get("records", []))

            next_url = data.get("nextRecordsUrl")
            if data.get("done", True) or not next_url:
                break

            response = await self._request("GET", next_url, context)
            data = self._json(response)

        logger.debug("query_completed", count=len(records), **context.log_context())
        return QueryResult(records=records, total_size=total_size, done=True)

    async def submit_composite(
        self,
        payload: Dict[str, Any],
        context: ClientContext,
    ) -> Dict[str, Any]:
        """Submit a composite request in one round trip."""
        response = await self._request(
            "POST",
            f"{self.data_path(context)}/composite",
            context,
            json=payload,
        )
        data = self._json(response)
        if not isinstance(data, dict):
            raise ProtocolError("Composite response is not a JSON object")

        logger.info(
            "composite_submitted",
            subrequests=len(payload.get("compositeRequest", [])),
            **context.log_context(),
        )
        return data
